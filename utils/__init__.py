"""
Utilities for the Intersection Deadlock Simulator: logging, configuration
and scenario loading.
"""
