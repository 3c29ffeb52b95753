"""Command-line entry points for RideChat."""
