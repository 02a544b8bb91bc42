"""
Algorithms package for the Concurrency Problem Simulator.
Contains the Banker's safety engine, wait-for graph construction, deadlock
recovery strategies and the per-actor liveness classifier.
"""
