"""Version information for Critique."""

__version__ = "0.1.0"
