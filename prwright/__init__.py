"""prwright - turn natural-language change requests into GitHub pull requests."""

__version__ = "0.1.0"
