"""Trigger grammar for deferred blocks."""
