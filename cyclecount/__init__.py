"""Cycle-count demand derivation and stocking decisions."""

__version__ = "1.0.0"
