import numpy as np
import pytest
import scipy.sparse as sp

from starch.core import linalg as la

# ---------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------

@pytest.fixture
def rng():
    return np.random.default_rng(42)

@pytest.fixture
def rank_deficient(rng):
    X = rng.standard_normal((50, 3))
    return np.column_stack([X, X[:, 0] + X[:, 1]])  # 4th col is lin comb

# ---------------------------------------------------------------------
# Unit Tests: Finite Checks
# ---------------------------------------------------------------------

def test_check_array_finiteness():
    with pytest.raises(ValueError, match="Input contains NA/NaN/Inf"):
        la._check_array_finiteness(np.array([1.0, np.nan]))
    with pytest.raises(ValueError, match="Input contains NA/NaN/Inf"):
        la._check_array_finiteness(np.array([1.0, np.inf]))
    la._check_array_finiteness(np.array([1.0, 2.0]))

def test_assert_all_finite_sparse_stored_entries():
    S = sp.csc_matrix(np.array([[1.0, 0.0], [0.0, np.nan]]))
    with pytest.raises(ValueError):
        la._assert_all_finite(S)
    la._assert_all_finite(sp.eye(3, format="csr"), None)

# ---------------------------------------------------------------------
# Unit Tests: Products
# ---------------------------------------------------------------------

def test_crossprod_and_tdot(rng):
    X = rng.standard_normal((20, 3))
    y = rng.standard_normal(20)
    assert la.crossprod(X, y).shape == (3, 1)
    assert np.allclose(la.crossprod(X, y).ravel(), X.T @ y)
    assert np.allclose(la.tdot(X), X.T @ X)

def test_dot_accepts_sparse(rng):
    A = sp.random(10, 10, density=0.3, random_state=1, format="csr")
    B = rng.standard_normal((10, 2))
    assert np.allclose(la.to_dense(la.dot(A, B)), A.toarray() @ B)

# ---------------------------------------------------------------------
# Unit Tests: Inverses
# ---------------------------------------------------------------------

def test_pinv_matches_numpy_on_full_rank(rng):
    A = rng.standard_normal((6, 4))
    assert np.allclose(la.pinv(A), np.linalg.pinv(A))

def test_pinv_rank_deficient_is_generalized_inverse(rank_deficient):
    G = rank_deficient.T @ rank_deficient
    Gp = la.pinv(G)
    assert np.allclose(G @ Gp @ G, G, atol=1e-8)
    s = la.svd(G)[1]
    assert la.rank_from_singular_values(s, G.shape) == 3

def test_inv_strict_raises_on_singular(rank_deficient):
    G = rank_deficient.T @ rank_deficient
    with pytest.raises(np.linalg.LinAlgError):
        la.inv(G)
    with pytest.raises(np.linalg.LinAlgError):
        la.inv(np.zeros((3, 3)))

def test_inv_rejects_non_square_and_nonfinite():
    with pytest.raises(np.linalg.LinAlgError, match="square"):
        la.inv(np.ones((2, 3)))
    with pytest.raises(np.linalg.LinAlgError, match="non-finite"):
        la.inv(np.array([[1.0, np.nan], [0.0, 1.0]]))

def test_inv_regular(rng):
    A = rng.standard_normal((4, 4)) + 4 * np.eye(4)
    assert np.allclose(la.inv(A) @ A, np.eye(4))
