"""Parameterized TCP evaluation experiments on dumbbell and parking-lot topologies."""

__version__ = "0.1.0"
