"""Critique: screenshot review and annotation for 3D model viewers."""

from critique.version import __version__

__all__ = ["__version__"]
