"""Preservation catalog audit core."""
