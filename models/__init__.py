"""
Models package for the Concurrency Problem Simulator.
Contains the Banker's resource matrices and the per-actor liveness records.
"""
