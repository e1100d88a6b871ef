# starch/utils/__init__.py
"""Utility functions module."""
from .instruments import InstrumentSet, build_instruments, expand_spatial_lags

__all__ = ["InstrumentSet", "build_instruments", "expand_spatial_lags"]
