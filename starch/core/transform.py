"""Fixed-effects transformations.

Exact linear operators that remove individual and time fixed effects from a
panel laid out as ``(n, T)`` (units in rows, periods in columns):

* the Helmert (forward orthogonal deviation) operator ``F`` of shape
  ``(T, T-1)``, applied per unit as ``panel @ F``. ``1' F = 0`` removes the
  unit intercept and ``F' F = I`` keeps i.i.d. errors i.i.d.;
* the spatial demeaning operator ``J_n = I - 11'/n``, applied per period to
  replace the time intercept by the deviation from the cross-sectional mean.

Every regressor, instrument and outcome column must go through the same
pipeline, otherwise the moment conditions are invalid.
"""

from __future__ import annotations

import warnings
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray
else:
    NDArray = np.ndarray  # type: ignore[misc,assignment]

__all__ = [
    "demeaning_operator",
    "forward_orthogonal",
    "helmert_operator",
    "log_squared",
]


def helmert_operator(T: int) -> NDArray[np.float64]:
    """Forward orthogonal deviation operator ``F`` of shape ``(T, T-1)``.

    Column ``i`` (1-based) carries ``c_i = sqrt((T-i)/(T-i+1))`` on
    observation ``i`` and ``-c_i/(T-i)`` on every later observation.
    """
    T = int(T)
    if T < 2:
        msg = f"At least two periods are required for the Helmert transform; got T={T}."
        raise ValueError(msg)
    F = np.zeros((T, T - 1), dtype=np.float64)
    for i in range(1, T):
        c = np.sqrt((T - i) / (T - i + 1.0))
        F[i - 1, i - 1] = c
        F[i:, i - 1] = -c / (T - i)
    return F


def demeaning_operator(n: int) -> NDArray[np.float64]:
    """``J_n = I_n - (1/n) 11'``."""
    n = int(n)
    if n < 1:
        raise ValueError("demeaning_operator requires n >= 1.")
    return np.eye(n, dtype=np.float64) - np.full((n, n), 1.0 / n)


def forward_orthogonal(panel: NDArray[np.float64], F: NDArray[np.float64]) -> NDArray[np.float64]:
    """Apply ``F`` along the time axis of an ``(n, T)`` or ``(n, T, k)`` panel."""
    arr = np.asarray(panel, dtype=np.float64)
    if arr.shape[1] != F.shape[0]:
        msg = f"Panel has {arr.shape[1]} periods but the operator expects {F.shape[0]}."
        raise ValueError(msg)
    if arr.ndim == 2:
        return arr @ F
    if arr.ndim == 3:
        return np.einsum("ntk,ts->nsk", arr, F)
    raise ValueError("forward_orthogonal expects a 2-D or 3-D panel.")


def log_squared(Y: NDArray[np.float64]) -> tuple[NDArray[np.float64], int]:
    """Return ``log(Y**2)`` and the number of substituted zero entries.

    Zeros would map to ``-inf``. Every zero in the panel is replaced by the
    single scalar ``log(min(Y[Y != 0]**2))`` and a RuntimeWarning is emitted.
    """
    Y2 = np.square(np.asarray(Y, dtype=np.float64))
    zero = Y2 == 0.0
    n_zero = int(np.count_nonzero(zero))
    if n_zero == 0:
        return np.log(Y2), 0
    if n_zero == Y2.size:
        raise ValueError("Outcome panel is identically zero; log-volatility is undefined.")
    fill = float(np.log(np.min(Y2[~zero])))
    warnings.warn(
        f"log_squared: {n_zero} zero outcome value(s) replaced by log of the smallest "
        f"nonzero squared value ({fill:.6g}).",
        RuntimeWarning,
        stacklevel=2,
    )
    out = np.empty_like(Y2)
    out[~zero] = np.log(Y2[~zero])
    out[zero] = fill
    return out, n_zero
