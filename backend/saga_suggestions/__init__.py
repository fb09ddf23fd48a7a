"""Relationship suggestion engine for saga knowledge graphs."""

__version__ = "0.1.0"
