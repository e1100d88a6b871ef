"""Spatial weights module."""
from .weights import (
    ShapeError,
    as_weight_stack,
    combine_weights,
    queen_lattice,
    rook_lattice,
    row_standardize,
)

__all__ = [
    "ShapeError",
    "as_weight_stack",
    "combine_weights",
    "queen_lattice",
    "rook_lattice",
    "row_standardize",
]
