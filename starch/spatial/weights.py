"""Spatial weight stacks.

Validates and normalises spatial interaction structures into an ``(n, n, p)``
stack of weight layers, and provides small builders for regular lattices.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from starch.core import linalg as la
from starch.core.linalg import ShapeError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray
else:
    Sequence = tuple  # type: ignore[assignment]
    NDArray = np.ndarray  # type: ignore[misc,assignment]

LOGGER = logging.getLogger(__name__)

__all__ = [
    "ShapeError",
    "as_weight_stack",
    "combine_weights",
    "queen_lattice",
    "rook_lattice",
    "row_standardize",
]


def as_weight_stack(
    W: la.Matrix | Sequence[la.Matrix],
    n: int | None = None,
    *,
    check_diagonal: bool = True,
) -> NDArray[np.float64]:
    """Return ``W`` as a dense ``(n, n, p)`` stack of weight layers.

    Parameters
    ----------
    W : array-like
        A single ``(n, n)`` matrix (dense or scipy.sparse), an ``(n, n, p)``
        array, or a list of ``(n, n)`` matrices.
    n : int, optional
        Cross-sectional size the stack must conform to.
    check_diagonal : bool, default True
        Require every layer to have a (numerically) zero diagonal.

    Raises
    ------
    ShapeError
        If the layers are not square or do not match ``n``.
    ValueError
        If entries are non-finite or a diagonal entry is nonzero.
    """
    if W is None:
        raise ValueError("Spatial weights are required.")
    if isinstance(W, (list, tuple)):
        if len(W) == 0:
            raise ShapeError("Weight list is empty; at least one layer is required.")
        layers = [la.to_dense(Wl) for Wl in W]
        if any(Wl.ndim != 2 for Wl in layers):
            raise ShapeError("Each weight layer in a list must be 2-dimensional.")
        if len({Wl.shape for Wl in layers}) != 1:
            raise ShapeError("All weight layers must share the same shape.")
        stack = np.stack(layers, axis=2)
    else:
        arr = la.to_dense(W)
        if arr.ndim == 2:
            stack = arr[:, :, np.newaxis]
        elif arr.ndim == 3:
            stack = arr
        else:
            msg = f"Weights must be 2- or 3-dimensional; got ndim={arr.ndim}."
            raise ShapeError(msg)

    if stack.shape[0] != stack.shape[1]:
        msg = f"Weight layers must be square (n x n); found shape={stack.shape[:2]}."
        raise ShapeError(msg)
    if stack.shape[2] < 1:
        raise ShapeError("Weight stack has no layers (p must be >= 1).")
    if n is not None and stack.shape[0] != int(n):
        msg = (
            f"Weight dimension {stack.shape[0]} must match the number of "
            f"spatial units {int(n)}."
        )
        raise ShapeError(msg)
    la._assert_all_finite(stack)  # noqa: SLF001

    if check_diagonal:
        for j in range(stack.shape[2]):
            diag = np.diag(stack[:, :, j])
            scale = max(1.0, float(np.max(np.abs(stack[:, :, j]))))
            if np.any(np.abs(diag) > 1e-12 * scale):
                msg = (
                    f"Weight layer {j + 1} has a nonzero diagonal; spatial weights "
                    "must not contain self-influence."
                )
                raise ValueError(msg)
    return np.ascontiguousarray(stack, dtype=np.float64)


def combine_weights(W: NDArray[np.float64], coefs: Sequence[float]) -> NDArray[np.float64]:
    """Weighted sum ``sum_l coefs[l] * W[:, :, l]`` of the layers of a stack."""
    c = np.atleast_1d(np.asarray(coefs, dtype=np.float64)).reshape(-1)
    if c.size != W.shape[2]:
        msg = f"Got {c.size} coefficients for a weight stack with p={W.shape[2]} layers."
        raise ShapeError(msg)
    return np.tensordot(W, c, axes=([2], [0]))


def row_standardize(W: la.Matrix) -> NDArray[np.float64]:
    """Scale each row to sum to one; all-zero rows are left unchanged."""
    Wd = la.to_dense(W)
    rs = Wd.sum(axis=1, keepdims=True)
    rs = np.where(rs == 0, 1.0, rs)
    return Wd / rs


def _lattice(nrow: int, ncol: int, *, diagonals: bool) -> NDArray[np.float64]:
    if nrow < 1 or ncol < 1:
        raise ValueError("Lattice dimensions must be positive.")
    n = nrow * ncol
    W = np.zeros((n, n), dtype=np.float64)
    steps = [(-1, 0), (1, 0), (0, -1), (0, 1)]
    if diagonals:
        steps += [(-1, -1), (-1, 1), (1, -1), (1, 1)]
    # cells are numbered row by row
    for r in range(nrow):
        for c in range(ncol):
            i = r * ncol + c
            for dr, dc in steps:
                rr, cc = r + dr, c + dc
                if 0 <= rr < nrow and 0 <= cc < ncol:
                    W[i, rr * ncol + cc] = 1.0
    return W


def queen_lattice(nrow: int, ncol: int | None = None, *, standardize: bool = True) -> NDArray[np.float64]:
    """Queen-contiguity weights for a regular ``nrow x ncol`` grid."""
    W = _lattice(int(nrow), int(nrow if ncol is None else ncol), diagonals=True)
    return row_standardize(W) if standardize else W


def rook_lattice(nrow: int, ncol: int | None = None, *, standardize: bool = True) -> NDArray[np.float64]:
    """Rook-contiguity weights (shared edges only) for a regular grid."""
    W = _lattice(int(nrow), int(nrow if ncol is None else ncol), diagonals=False)
    return row_standardize(W) if standardize else W
