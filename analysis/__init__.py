"""
Analysis package for the Intersection Deadlock Simulator.
Contains the event log, metrics and policy comparison.
"""
