"""
Models package for the Intersection Deadlock Simulator.
Contains the resource, process and system state data models.
"""
