"""Gravity Well: import external files into a vault as structured notes."""

__version__ = "0.1.0"
