"""Block-wise aggregation of cross-moment matrices.

For the transformed periods t = 1..T-1 with instrument block ``Q_t`` (n x m),
regressor block ``Z_t`` (n x K) and outcome ``y_t`` (n,), accumulates

    Q'Z = sum_t Q_t' Z_t,   Q'Q = sum_t Q_t' Q_t,   Q'y = sum_t Q_t' y_t,

pre-multiplying every block by ``J_n`` when time fixed effects are removed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from starch.core import linalg as la
from starch.core.linalg import ShapeError
from starch.core.transform import demeaning_operator

if TYPE_CHECKING:
    from numpy.typing import NDArray
else:
    NDArray = np.ndarray  # type: ignore[misc,assignment]

__all__ = ["MomentSums", "aggregate_moments"]


@dataclass(slots=True)
class MomentSums:
    """Aggregated cross products of instruments, regressors and outcome."""

    qz: NDArray[np.float64]
    qq: NDArray[np.float64]
    qy: NDArray[np.float64]
    n_obs: int
    n_periods: int

    @property
    def n_instruments(self) -> int:
        return int(self.qq.shape[0])

    @property
    def n_regressors(self) -> int:
        return int(self.qz.shape[1])


def aggregate_moments(
    Q: NDArray[np.float64],
    Z: NDArray[np.float64],
    y: NDArray[np.float64],
    *,
    ted: bool,
) -> MomentSums:
    """Accumulate ``Q'Z``, ``Q'Q`` and ``Q'y`` period by period.

    Parameters
    ----------
    Q : (n, T', m) instrument tensor
    Z : (n, T', K) regressor tensor
    y : (n, T') transformed outcome
    ted : bool
        Pre-multiply each block by ``J_n`` (removes time fixed effects).
    """
    Q = np.asarray(Q, dtype=np.float64)
    Z = np.asarray(Z, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if Q.ndim != 3 or Z.ndim != 3 or y.ndim != 2:
        raise ShapeError("aggregate_moments expects Q (n,T,m), Z (n,T,K) and y (n,T).")
    if Q.shape[:2] != y.shape or Z.shape[:2] != y.shape:
        msg = f"Block shapes disagree: Q={Q.shape}, Z={Z.shape}, y={y.shape}."
        raise ShapeError(msg)

    n, n_periods = y.shape
    m, K = Q.shape[2], Z.shape[2]
    J = demeaning_operator(n) if ted else None

    qz = np.zeros((m, K), dtype=np.float64)
    qq = np.zeros((m, m), dtype=np.float64)
    qy = np.zeros((m, 1), dtype=np.float64)
    for t in range(n_periods):
        Qt, Zt, yt = Q[:, t, :], Z[:, t, :], y[:, t]
        if J is not None:
            Qt = la.dot(J, Qt)
            Zt = la.dot(J, Zt)
            yt = la.dot(J, yt)
        qz += la.crossprod(Qt, Zt)
        qq += la.tdot(Qt)
        qy += la.crossprod(Qt, yt)
    return MomentSums(qz=qz, qq=qq, qy=qy, n_obs=int(n * n_periods), n_periods=int(n_periods))
