# starch/core/__init__.py
"""Core computational modules for starch."""
from . import linalg, moments, transform

__all__ = ["linalg", "moments", "transform"]
