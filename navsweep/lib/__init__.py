"""Navsweep library modules."""
