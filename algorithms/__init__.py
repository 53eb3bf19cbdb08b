"""
Algorithms package for the Intersection Deadlock Simulator.
Contains deadlock detection, avoidance (Banker's), prevention (resource
ordering) and recovery implementations.
"""
