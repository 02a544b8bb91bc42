"""
Simulations package for the Concurrency Problem Simulator.
Contains the Banker's, Dining Philosophers, Producer/Consumer and
Reader/Writer simulators and the cooperative tick loop that drives them.
"""
