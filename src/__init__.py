# src/__init__.py — v1
"""copilens: cached code inspections and import context for editors."""

from copilens.version import __version__

__all__ = ["__version__"]
