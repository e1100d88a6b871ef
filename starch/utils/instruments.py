"""Spatial instrument construction.

Instruments for the endogenous spatial lag(s) ``W_j y_t`` are spatial lags of
predetermined or exogenous columns, expanded recursively up to a chosen order:

    order 0 :  b
    order 1 :  W_1 b, ..., W_p b
    order 2 :  W_j W_l b  (full)   or   W_j W_j b  (diagonal)
    ...

Two interaction modes share one recursive builder:

* ``"full"``: at order k every layer is applied to every column of order
  k-1, giving ``p**k`` new columns.
* ``"diagonal"``: at order k layer j is applied only to the column that
  layer j produced at order k-1, giving ``p`` new columns per order.

All periods are handled at once: bases are ``(n, T')`` panels and the output
is an ``(n, T', m)`` tensor whose slice ``[:, t, :]`` is the instrument block
of period t.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from starch.spatial.weights import ShapeError

if TYPE_CHECKING:
    from numpy.typing import NDArray
else:
    NDArray = np.ndarray  # type: ignore[misc,assignment]

LOGGER = logging.getLogger(__name__)

__all__ = [
    "INTERACTION_MODES",
    "InstrumentSet",
    "build_instruments",
    "expand_spatial_lags",
    "n_expanded_columns",
]

INTERACTION_MODES = {"full": "full", "primary": "full", "diagonal": "diagonal", "alternate": "diagonal"}


def _normalize_interaction(interaction: str) -> str:
    key = str(interaction).strip().lower()
    if key not in INTERACTION_MODES:
        msg = f"interaction must be one of {sorted(INTERACTION_MODES)}; got {interaction!r}."
        raise ValueError(msg)
    return INTERACTION_MODES[key]


def n_expanded_columns(p: int, order: int, interaction: str = "full") -> int:
    """Number of columns produced by expanding one base column to ``order``."""
    mode = _normalize_interaction(interaction)
    if mode == "full":
        return int(sum(p**k for k in range(order + 1)))
    return int(1 + p * order)


@dataclass
class InstrumentSet:
    """Instrument tensor with column labels and block boundaries.

    Attributes
    ----------
    Q : np.ndarray
        ``(n, T', m)`` instruments; ``Q[:, t, :]`` is the block of period t.
    names : list[str]
        Column labels, e.g. ``y``, ``W1y``, ``W2W1y``, ``x1``, ``W1x1``.
    index : dict[str, dict[int, tuple[int, int]]]
        For every source column, expansion order -> ``(start, end)`` column
        range within ``Q`` (end exclusive).
    interaction : str
        ``"full"`` or ``"diagonal"``.
    """

    Q: NDArray[np.float64]
    names: list[str]
    index: dict[str, dict[int, tuple[int, int]]] = field(default_factory=dict)
    interaction: str = "full"

    @property
    def n_instruments(self) -> int:
        return int(self.Q.shape[2])

    def block(self, t: int) -> NDArray[np.float64]:
        """Instrument block ``(n, m)`` of post-transform period ``t``."""
        return self.Q[:, t, :]


def expand_spatial_lags(
    base: NDArray[np.float64],
    W: NDArray[np.float64],
    order: int,
    *,
    interaction: str = "full",
    label: str = "b",
) -> tuple[NDArray[np.float64], list[str], dict[int, tuple[int, int]]]:
    """Recursively expand spatial lags of ``base`` up to ``order``.

    Parameters
    ----------
    base : (n, T') array
        Base column for every period.
    W : (n, n, p) array
        Weight stack.
    order : int
        Highest expansion order (0 returns the base only).
    interaction : {"full", "diagonal"}
        Cross-layer interaction mode.
    label : str
        Name of the base column.

    Returns
    -------
    tensor : (n, T', m) array
    names : list of m labels
    index : dict order -> (start, end)
    """
    mode = _normalize_interaction(interaction)
    b = np.asarray(base, dtype=np.float64)
    if b.ndim == 1:
        b = b.reshape(-1, 1)
    if b.ndim != 2:
        raise ShapeError("Instrument base must be an (n, T') panel.")
    if W.ndim != 3 or W.shape[0] != W.shape[1] or W.shape[0] != b.shape[0]:
        msg = f"Weight stack {W.shape} does not conform to a panel with n={b.shape[0]} units."
        raise ShapeError(msg)
    if int(order) < 0:
        raise ValueError("Expansion order must be non-negative.")
    p = W.shape[2]

    cols: list[NDArray[np.float64]] = [b]
    names: list[str] = [label]
    index: dict[int, tuple[int, int]] = {0: (0, 1)}

    def _expand(prev_cols: list, prev_names: list, k: int) -> None:
        if k > order:
            return
        new_cols, new_names = [], []
        for j in range(p):
            if mode == "full":
                sources = list(zip(prev_cols, prev_names))
            else:
                # order 1 starts from the single base column
                src = 0 if len(prev_cols) == 1 else j
                sources = [(prev_cols[src], prev_names[src])]
            for col, nm in sources:
                new_cols.append(W[:, :, j] @ col)
                new_names.append(f"W{j + 1}{nm}")
        start = len(cols)
        cols.extend(new_cols)
        names.extend(new_names)
        index[k] = (start, len(cols))
        _expand(new_cols, new_names, k + 1)

    _expand([b], [label], 1)
    return np.stack(cols, axis=2), names, index


def build_instruments(
    y_lag: NDArray[np.float64],
    X_star: NDArray[np.float64] | None,
    W: NDArray[np.float64],
    *,
    ksy: int,
    ksx: int,
    interaction: str = "full",
) -> InstrumentSet:
    """Assemble the instrument set for one interaction mode.

    ``y_lag`` holds, for every transformed period, the forward-orthogonal
    deviation of the lagged log-squared outcome.
    ``X_star`` holds the transformed exogenous regressors ``(n, T', k)``.
    """
    if int(ksy) < 1:
        msg = f"ksy (outcome instrument order) must be >= 1; got {ksy}."
        raise ValueError(msg)
    if int(ksx) < 0:
        msg = f"ksx (regressor instrument order) must be >= 0; got {ksx}."
        raise ValueError(msg)
    mode = _normalize_interaction(interaction)
    yl = np.asarray(y_lag, dtype=np.float64)
    if yl.ndim != 2:
        raise ShapeError("y_lag must be an (n, T') panel.")

    tensors = []
    names: list[str] = []
    index: dict[str, dict[int, tuple[int, int]]] = {}
    offset = 0

    Qy, ny, iy = expand_spatial_lags(yl, W, int(ksy), interaction=mode, label="y")
    tensors.append(Qy)
    names += ny
    index["y"] = {k: (s + offset, e + offset) for k, (s, e) in iy.items()}
    offset += Qy.shape[2]

    if X_star is not None and X_star.size and X_star.shape[2] > 0:
        if X_star.shape[:2] != yl.shape:
            msg = f"Regressor tensor {X_star.shape} does not conform to panel {yl.shape}."
            raise ShapeError(msg)
        for r in range(X_star.shape[2]):
            lab = f"x{r + 1}"
            Qx, nx, ix = expand_spatial_lags(X_star[:, :, r], W, int(ksx), interaction=mode, label=lab)
            tensors.append(Qx)
            names += nx
            index[lab] = {k: (s + offset, e + offset) for k, (s, e) in ix.items()}
            offset += Qx.shape[2]

    Q = np.concatenate(tensors, axis=2)
    LOGGER.debug("Built %d %s-interaction instruments", Q.shape[2], mode)
    return InstrumentSet(Q=Q, names=names, index=index, interaction=mode)
