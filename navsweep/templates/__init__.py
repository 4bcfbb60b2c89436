"""Abstract interfaces implemented by navsweep components."""
