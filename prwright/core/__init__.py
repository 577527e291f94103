"""Core modules for prwright."""
