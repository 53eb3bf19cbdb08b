"""
Controller package for the Intersection Deadlock Simulator.
Contains the admission controller and its typed operation results.
"""
