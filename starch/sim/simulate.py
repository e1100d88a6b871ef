"""Data-generating process for dynamic spatiotemporal log-ARCH panels.

For t = 1, ..., 20 + T (the first 20 periods are burn-in and discarded):

    lagged_t = mu + alpha_t + gamma log(Y_{t-1}^2) + (sum_l delta_l W_l) log(Y_{t-1}^2) + X_t beta
    h_t      = (I - sum_l rho_l W_l)^{-1} lagged_t
    Y_t      = sqrt(exp(h_t)) * eps_t

with a persistent unit effect ``mu_i ~ N(0, 1)``, a scalar time effect
``alpha_t ~ N(0, 1)`` shared by all units (zero when ``ted`` is false), fresh
regressors ``X_t ~ N(0, 1)`` and i.i.d. innovations ``eps_t`` drawn from the
normal or Student-t(3) distribution.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import TYPE_CHECKING, Any

import numpy as np
import scipy.linalg as sla

from starch.spatial.weights import as_weight_stack, combine_weights

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from numpy.typing import NDArray

LOGGER = logging.getLogger(__name__)

__all__ = [
    "BURN_IN",
    "ErrorType",
    "SimulatedPanel",
    "SimulationParameters",
    "simulate",
]

BURN_IN = 20
STUDENT_T_DF = 3


class ErrorType(str, Enum):
    """Innovation distribution of the simulated outcome."""

    NORMAL = "normal"
    STUDENT_T3 = "student_t3"

    @classmethod
    def parse(cls, value: ErrorType | str) -> ErrorType:
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("-", "_")
        aliases = {
            "normal": cls.NORMAL,
            "gaussian": cls.NORMAL,
            "norm": cls.NORMAL,
            "student_t3": cls.STUDENT_T3,
            "student_t": cls.STUDENT_T3,
            "student": cls.STUDENT_T3,
            "t": cls.STUDENT_T3,
            "t3": cls.STUDENT_T3,
        }
        if key not in aliases:
            msg = f"errortype must be 'normal' or 'student_t3'; got {value!r}."
            raise ValueError(msg)
        return aliases[key]

    def sample(self, rng: np.random.Generator, size: int | tuple[int, ...]) -> NDArray[np.float64]:
        """Draw i.i.d. innovations."""
        if self is ErrorType.NORMAL:
            return rng.standard_normal(size)
        return rng.standard_t(STUDENT_T_DF, size)


def _as_vector(name: str, value: Any) -> tuple[float, ...]:
    arr = np.atleast_1d(np.asarray(value, dtype=np.float64)).reshape(-1)
    if not np.all(np.isfinite(arr)):
        msg = f"{name} must be finite."
        raise ValueError(msg)
    return tuple(float(v) for v in arr)


@dataclass(frozen=True)
class SimulationParameters:
    """True parameters of the simulated process.

    ``rho`` and ``delta`` hold one coefficient per weight layer; ``beta`` one
    per exogenous regressor (``None`` for a model without regressors).
    """

    rho: Sequence[float] | float
    gamma: float
    delta: Sequence[float] | float
    beta: Sequence[float] | float | None = None
    ted: bool = True
    errortype: ErrorType | str = ErrorType.NORMAL

    def __post_init__(self) -> None:
        object.__setattr__(self, "rho", _as_vector("rho", self.rho))
        object.__setattr__(self, "delta", _as_vector("delta", self.delta))
        beta = () if self.beta is None else _as_vector("beta", self.beta)
        object.__setattr__(self, "beta", beta)
        if not np.isfinite(float(self.gamma)):
            raise ValueError("gamma must be finite.")
        object.__setattr__(self, "gamma", float(self.gamma))
        object.__setattr__(self, "ted", bool(self.ted))
        object.__setattr__(self, "errortype", ErrorType.parse(self.errortype))
        if len(self.rho) != len(self.delta):
            msg = f"rho and delta must have one entry per weight layer; got {len(self.rho)} and {len(self.delta)}."
            raise ValueError(msg)

    @property
    def p(self) -> int:
        return len(self.rho)

    @property
    def k(self) -> int:
        return len(self.beta)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> SimulationParameters:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            msg = f"Unknown simulation parameter(s): {unknown}; expected a subset of {sorted(known)}."
            raise ValueError(msg)
        return cls(**dict(values))

    @classmethod
    def coerce(cls, parameters: SimulationParameters | Mapping[str, Any]) -> SimulationParameters:
        if isinstance(parameters, cls):
            return parameters
        if parameters is None:
            raise ValueError("Simulation parameters are required.")
        return cls.from_mapping(parameters)


@dataclass
class SimulatedPanel:
    """Simulated outcome ``y`` (n, t), regressors ``X`` (n, t, k) and parameters."""

    y: NDArray[np.float64]
    X: NDArray[np.float64]
    parameters: SimulationParameters
    extra: dict[str, Any] = field(default_factory=dict)


def simulate(
    n: int,
    t: int,
    weights: Any,
    parameters: SimulationParameters | Mapping[str, Any],
    *,
    seed: int | np.random.SeedSequence | np.random.Generator | None = None,
) -> SimulatedPanel:
    """Simulate a panel with ``n`` units and ``t`` retained periods.

    Parameters
    ----------
    n, t : int
        Cross-sectional size and number of periods returned.
    weights : (n, n) or (n, n, p) array
        Spatial weight stack.
    parameters : SimulationParameters or mapping
        Fields ``rho, gamma, delta, beta, ted, errortype``.
    seed : int, SeedSequence or Generator, optional
        Random source; a Generator is consumed in place.
    """
    n, t = int(n), int(t)
    if n < 1 or t < 1:
        msg = f"n and t must be positive; got n={n}, t={t}."
        raise ValueError(msg)
    params = SimulationParameters.coerce(parameters)
    W = as_weight_stack(weights, n)
    if W.shape[2] != params.p:
        msg = f"Weight stack has p={W.shape[2]} layers but rho/delta have {params.p} entries."
        raise ValueError(msg)

    rng = np.random.default_rng(seed)
    rho_w = combine_weights(W, params.rho)
    delta_m = combine_weights(W, params.delta)
    lu = sla.lu_factor(np.eye(n) - rho_w)
    beta = np.asarray(params.beta, dtype=np.float64)
    k = beta.size
    err = params.errortype

    mu = rng.standard_normal(n)
    log_prev = np.log(err.sample(rng, n) ** 2)

    y_out = np.empty((n, t), dtype=np.float64)
    X_out = np.empty((n, t, k), dtype=np.float64)
    for s in range(BURN_IN + t):
        eps = err.sample(rng, n)
        alpha = rng.standard_normal() if params.ted else 0.0
        x_s = rng.standard_normal((n, k))
        lagged = mu + alpha + params.gamma * log_prev + delta_m @ log_prev
        if k:
            lagged = lagged + x_s @ beta
        h = sla.lu_solve(lu, lagged)
        y_s = np.sqrt(np.exp(h)) * eps
        if s >= BURN_IN:
            y_out[:, s - BURN_IN] = y_s
            X_out[:, s - BURN_IN, :] = x_s
        log_prev = np.log(y_s**2)

    LOGGER.debug("Simulated panel n=%d, t=%d, p=%d, k=%d (%s errors)", n, t, params.p, k, err.value)
    return SimulatedPanel(y=y_out, X=X_out, parameters=params)
