"""Starbase: repository import graphs and two-handed camera control."""

__version__ = "0.1.0"
