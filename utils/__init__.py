"""
Utilities package for the Concurrency Problem Simulator.
Contains the logging collaborator and the scenario loader.
"""
