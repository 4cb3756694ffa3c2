"""Decker: configuration-driven page and action dispatch for Stream Deck style devices."""

__version__ = "0.1.0"
