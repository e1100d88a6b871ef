# starch/output/__init__.py
"""Output module for estimation results."""
from .summary import coef_table, summary

__all__ = ["coef_table", "summary"]
