"""Estimator exports."""
from __future__ import annotations

from .base import VARIANTS, EstimationResult, ModelConfig, VariantResult
from .spatial_arch import SpatialARCHGMM, estimate

__all__ = [
    "VARIANTS",
    "EstimationResult",
    "ModelConfig",
    "SpatialARCHGMM",
    "VariantResult",
    "estimate",
]
