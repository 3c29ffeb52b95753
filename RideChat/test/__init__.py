"""
Test package for the RideChat client core.
"""
