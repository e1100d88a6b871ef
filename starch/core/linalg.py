"""Linear algebra routines for GMM estimation.

Thin, sparse-aware wrappers around NumPy/SciPy used throughout the package.
Generalized inverses are SVD based; strict inverses raise on singularity so
callers can decide how to degrade.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import numpy as np
import scipy.linalg as sla
import scipy.sparse as sp

if TYPE_CHECKING:
    from numpy.typing import NDArray
else:
    NDArray = np.ndarray  # type: ignore[misc,assignment]

LOGGER = logging.getLogger(__name__)

# Matrix type alias
Matrix = Any


class ShapeError(ValueError):
    """Raised when panel, regressor or weight dimensions are not conformable."""


__all__ = [
    "Matrix",
    "ShapeError",
    "crossprod",
    "dot",
    "inv",
    "pinv",
    "rank_from_singular_values",
    "svd",
    "tdot",
    "to_dense",
]


def _is_sparse(A: Matrix) -> bool:
    return sp.issparse(A)


def _check_array_finiteness(arr: NDArray[np.float64]) -> None:
    """Helper to validate array finiteness with clear error message."""
    if not np.all(np.isfinite(arr)):
        raise ValueError("Input contains NA/NaN/Inf; clean the panel before estimation.")


def _assert_all_finite(*matrices: Matrix) -> None:
    """Check dense or sparse matrices for non-finite entries."""
    for M in matrices:
        if M is None:
            continue
        if _is_sparse(M):
            # Only inspect stored entries to avoid densification.
            _check_array_finiteness(np.asarray(M.data))
        else:
            _check_array_finiteness(np.asarray(M))


def to_dense(A: Matrix) -> NDArray[np.float64]:
    """Convert a matrix-like object (ndarray, DataFrame, sparse) to dense float64."""
    if _is_sparse(A):
        return np.asarray(A.todense(), dtype=np.float64)
    return np.asarray(A, dtype=np.float64)


def dot(A: Matrix, B: Matrix) -> Matrix:
    """Matrix multiplication with sparsity awareness."""
    if _is_sparse(A) or _is_sparse(B):
        return A @ B  # type: ignore[operator]
    return np.asarray(A, dtype=np.float64) @ np.asarray(B, dtype=np.float64)


def crossprod(X: Matrix, y: Matrix) -> NDArray[np.float64]:
    """Compute X'y as a dense 2-D array (1-D ``y`` is treated as a column)."""
    Xd = to_dense(X)
    yd = to_dense(y)
    if yd.ndim == 1:
        yd = yd.reshape(-1, 1)
    if Xd.ndim == 1:
        Xd = Xd.reshape(-1, 1)
    return (Xd.T @ yd).astype(np.float64)


def tdot(X: Matrix) -> NDArray[np.float64]:
    """X' X (dense result)."""
    Xd = to_dense(X)
    if Xd.ndim == 1:
        Xd = Xd.reshape(-1, 1)
    return (Xd.T @ Xd).astype(np.float64)


def svd(
    A: Matrix, full_matrices: bool = False,
) -> tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.float64]]:
    """Singular value decomposition ``A = U diag(s) Vt``."""
    Ad = to_dense(A)
    try:
        return sla.svd(Ad, full_matrices=full_matrices, lapack_driver="gesdd")
    except (np.linalg.LinAlgError, ValueError) as exc:
        # gesdd occasionally fails to converge on nearly singular input
        LOGGER.debug("gesdd failed (%s); retrying with gesvd", exc)
        return sla.svd(Ad, full_matrices=full_matrices, lapack_driver="gesvd")


def pinv(A: Matrix, *, rcond: float | None = None) -> NDArray[np.float64]:
    """Compute Moore-Penrose pseudo-inverse with explicit rcond handling.

    Singular values below ``rcond * max(s)`` are treated as zero. The default
    ``rcond`` is ``sqrt(eps)``.
    """
    Ad = to_dense(A)
    if Ad.size == 0:
        return np.zeros((Ad.shape[1], Ad.shape[0]), dtype=np.float64)
    _assert_all_finite(Ad)
    U, s, Vt = svd(Ad, full_matrices=False)
    if rcond is None:
        rcond = np.sqrt(np.finfo(float).eps)
    tol = float(rcond) * (s.max() if s.size else 0.0)
    s_inv = np.where(s > tol, 1.0 / np.where(s > tol, s, 1.0), 0.0)
    return (Vt.T * s_inv) @ U.T


def inv(A: Matrix) -> NDArray[np.float64]:
    """Strict inverse of a square matrix.

    Raises ``numpy.linalg.LinAlgError`` when ``A`` is singular or the result
    is not finite; no ridge or pseudo-inverse fallback is applied here.
    """
    Ad = to_dense(A)
    if Ad.ndim != 2 or Ad.shape[0] != Ad.shape[1]:
        msg = f"inv: expected a square matrix, got shape {Ad.shape}."
        raise np.linalg.LinAlgError(msg)
    if not np.all(np.isfinite(Ad)):
        raise np.linalg.LinAlgError("inv: matrix contains non-finite entries.")
    out = sla.inv(Ad, check_finite=False)
    if not np.all(np.isfinite(out)):
        raise np.linalg.LinAlgError("inv: inverse is not finite (matrix is singular).")
    # LAPACK may return a huge but finite inverse for an exactly singular input
    s = np.linalg.svd(Ad, compute_uv=False)
    if s.size and s.min() <= np.finfo(float).eps * max(Ad.shape) * s.max():
        raise np.linalg.LinAlgError("inv: matrix is numerically singular.")
    return np.asarray(out, dtype=np.float64)


def rank_from_singular_values(s: NDArray[np.float64], shape: tuple[int, int]) -> int:
    """Numerical rank with the NumPy ``matrix_rank`` tolerance."""
    d = np.abs(np.asarray(s, dtype=float).reshape(-1))
    if d.size == 0:
        return 0
    tol = d.max() * max(shape) * np.finfo(float).eps
    return int(np.sum(d > tol))
