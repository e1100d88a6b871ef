"""Model configuration and estimation result containers."""

# starch/estimators/base.py
from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from collections.abc import Mapping

    from numpy.typing import NDArray

__all__ = [
    "VARIANTS",
    "EstimationResult",
    "ModelConfig",
    "VariantResult",
]

# primary: full cross-layer instrument interaction; alternate: diagonal-only
VARIANTS = ("primary", "alternate")


def _as_flag(name: str, value: Any) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, (int, np.integer)) and int(value) in (0, 1):
        return bool(value)
    msg = f"{name} must be 0/1 or a bool; got {value!r}."
    raise ValueError(msg)


def _as_order(name: str, value: Any, minimum: int) -> int:
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, np.integer)):
        msg = f"{name} must be an integer; got {value!r}."
        raise ValueError(msg)
    if int(value) < minimum:
        msg = f"{name} must be >= {minimum}; got {value}."
        raise ValueError(msg)
    return int(value)


@dataclass(frozen=True)
class ModelConfig:
    """Specification of the estimated model and its instruments.

    Attributes
    ----------
    ksy : int, default 2
        Expansion order of the spatial instruments built from the lagged
        outcome (>= 1).
    ksx : int, default 1
        Expansion order of the spatial instruments built from each exogenous
        regressor (>= 0).
    stl : bool, default True
        Include the spatio-temporal lag ``W_l log(Y_{t-1}^2)`` as regressor.
        With ``stl`` on, ``W_l y_{t-1}`` is no longer an excluded instrument
        and only the higher-order spatial lags identify ``lambda``; when the
        true ``delta`` is zero this identification is weak and ``stl=0``
        gives far more reliable estimates of ``lambda``.
    tl : bool, default True
        Include the temporal lag ``log(Y_{t-1}^2)`` as regressor.
    ted : bool, default True
        Remove time fixed effects by cross-sectional demeaning.

    At least one of ``stl`` and ``tl`` must be set. Integers 0/1 are accepted
    for the flags.
    """

    ksy: int = 2
    ksx: int = 1
    stl: bool = True
    tl: bool = True
    ted: bool = True

    def __post_init__(self) -> None:
        # frozen: normalise through object.__setattr__
        object.__setattr__(self, "ksy", _as_order("ksy", self.ksy, 1))
        object.__setattr__(self, "ksx", _as_order("ksx", self.ksx, 0))
        for name in ("stl", "tl", "ted"):
            object.__setattr__(self, name, _as_flag(name, getattr(self, name)))
        if not (self.stl or self.tl):
            raise ValueError("Model must include a temporal or spatio-temporal lag (stl + tl >= 1).")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any] | None) -> ModelConfig:
        """Build a config from a mapping; unknown keys are rejected."""
        if values is None:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            msg = f"Unknown model configuration field(s): {unknown}; expected a subset of {sorted(known)}."
            raise ValueError(msg)
        return cls(**dict(values))

    @classmethod
    def coerce(cls, config: ModelConfig | Mapping[str, Any] | None) -> ModelConfig:
        if isinstance(config, cls):
            return config
        return cls.from_mapping(config)


@dataclass
class VariantResult:
    """Estimates for one instrument variant.

    Attributes
    ----------
    params : pd.Series
        Coefficients ordered as lambda (p), gamma, delta (p), beta (k).
    se : pd.Series
        Standard errors ``sqrt(|diag(cov)|)``; NaN when the covariance is
        undefined.
    cov : pd.DataFrame
        Asymptotic covariance matrix.
    tstat : pd.Series
        ``params / se`` element-wise; NaN where ``se`` is NaN and infinite
        where ``se`` is exactly zero.
    residuals : np.ndarray
        ``(n, T-1)`` residual panel in the transformed space.
    sigma2 : float
        Residual variance.
    """

    params: pd.Series
    se: pd.Series
    cov: pd.DataFrame
    tstat: pd.Series
    residuals: NDArray[np.float64]
    sigma2: float
    n_instruments: int = 0
    instrument_names: list[str] = field(default_factory=list)
    instrument_index: dict[str, dict[int, tuple[int, int]]] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        idx = self.params.index
        if not self.se.index.equals(idx) or not self.tstat.index.equals(idx):
            raise ValueError("se and tstat must be aligned to params.")
        if not (self.cov.index.equals(idx) and self.cov.columns.equals(idx)):
            raise ValueError("cov must be indexed by params on both axes.")
        if not np.all(np.isfinite(self.params.to_numpy())):
            raise ValueError("params contains non-finite values.")

    @property
    def cov_defined(self) -> bool:
        return bool(np.all(np.isfinite(self.cov.to_numpy())))


@dataclass
class EstimationResult:
    """Container for both instrument variants of one estimation call.

    Either variant may be ``None`` when its linear system could not be solved;
    the other variant is unaffected.
    """

    primary: VariantResult | None
    alternate: VariantResult | None
    n_obs: int | None = None
    model_info: dict[str, Any] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:  # pragma: no cover - convenience only
        head = ", ".join(f"{k}={v}" for k, v in self.model_info.items() if not isinstance(v, dict))
        return f"EstimationResult(n_obs={self.n_obs}, {head})"

    def __getitem__(self, name: str) -> VariantResult | None:
        key = str(name).lower()
        if key not in VARIANTS:
            msg = f"Unknown variant {name!r}; expected one of {VARIANTS}."
            raise KeyError(msg)
        return getattr(self, key)

    @property
    def variants(self) -> dict[str, VariantResult | None]:
        return {name: getattr(self, name) for name in VARIANTS}

    @property
    def sigma2(self) -> float:
        """Residual variance (primary variant, alternate if primary failed)."""
        for res in (self.primary, self.alternate):
            if res is not None:
                return float(res.sigma2)
        return float("nan")

    @property
    def params(self) -> pd.Series | None:
        return None if self.primary is None else self.primary.params
