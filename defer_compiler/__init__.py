"""Compile-time parser and validator for deferred template blocks."""

__version__ = "0.1.0"
