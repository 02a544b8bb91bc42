"""
Analysis package for the Concurrency Problem Simulator.
Contains the simulation event stream and per-run metrics.
"""
