"""starch: GMM estimation of dynamic spatiotemporal log-ARCH panel models.

Provides a data-generating simulator with known parameters and a two-variant
spatial GMM estimator with exact fixed-effects transformations.
"""
from __future__ import annotations

from importlib import import_module
from typing import Any

__version__ = "0.1.0"

__all__ = [
    "ErrorType",
    "EstimationResult",
    "ModelConfig",
    "MonteCarloResult",
    "ShapeError",
    "SimulatedPanel",
    "SimulationParameters",
    "SpatialARCHGMM",
    "VariantResult",
    "coef_table",
    "estimate",
    "monte_carlo",
    "queen_lattice",
    "rook_lattice",
    "row_standardize",
    "simulate",
    "summary",
    "true_parameters",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "ErrorType": ("starch.sim.simulate", "ErrorType"),
    "EstimationResult": ("starch.estimators.base", "EstimationResult"),
    "ModelConfig": ("starch.estimators.base", "ModelConfig"),
    "VariantResult": ("starch.estimators.base", "VariantResult"),
    "MonteCarloResult": ("starch.sim.montecarlo", "MonteCarloResult"),
    "ShapeError": ("starch.spatial.weights", "ShapeError"),
    "SimulatedPanel": ("starch.sim.simulate", "SimulatedPanel"),
    "SimulationParameters": ("starch.sim.simulate", "SimulationParameters"),
    "SpatialARCHGMM": ("starch.estimators.spatial_arch", "SpatialARCHGMM"),
    "coef_table": ("starch.output.summary", "coef_table"),
    "estimate": ("starch.estimators.spatial_arch", "estimate"),
    "monte_carlo": ("starch.sim.montecarlo", "monte_carlo"),
    "queen_lattice": ("starch.spatial.weights", "queen_lattice"),
    "rook_lattice": ("starch.spatial.weights", "rook_lattice"),
    "row_standardize": ("starch.spatial.weights", "row_standardize"),
    "simulate": ("starch.sim.simulate", "simulate"),
    "summary": ("starch.output.summary", "summary"),
    "true_parameters": ("starch.sim.montecarlo", "true_parameters"),
}


def __getattr__(name: str) -> Any:
    """Lazily import public estimators and utilities on first access."""
    if name in _LAZY_IMPORTS:
        module_name, attr_name = _LAZY_IMPORTS[name]
        module = import_module(module_name)
        attr = getattr(module, attr_name)
        globals()[name] = attr
        return attr
    raise AttributeError(f"module 'starch' has no attribute '{name}'")


def __dir__() -> list[str]:
    """Ensure dir() exposes lazily imported names."""
    return sorted(set(globals()) | set(__all__))
