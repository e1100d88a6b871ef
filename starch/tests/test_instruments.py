import numpy as np
import pytest

from starch.utils.instruments import (
    build_instruments,
    expand_spatial_lags,
    n_expanded_columns,
)

# ---------------------------------------------------------------------
# Column counts
# ---------------------------------------------------------------------

@pytest.mark.parametrize(
    ("p", "order", "full", "diagonal"),
    [(1, 3, 4, 4), (2, 2, 7, 5), (3, 2, 13, 7), (2, 0, 1, 1)],
)
def test_n_expanded_columns(p, order, full, diagonal):
    assert n_expanded_columns(p, order, "full") == full
    assert n_expanded_columns(p, order, "diagonal") == diagonal
    assert n_expanded_columns(p, order, "primary") == full
    assert n_expanded_columns(p, order, "alternate") == diagonal

def test_unknown_interaction_rejected():
    with pytest.raises(ValueError, match="interaction"):
        n_expanded_columns(2, 1, "cross")

# ---------------------------------------------------------------------
# Expansion
# ---------------------------------------------------------------------

def test_expand_full_two_layers(rng, two_layer_w):
    base = rng.standard_normal((16, 3))
    Q, names, index = expand_spatial_lags(base, two_layer_w, 2, interaction="full", label="y")
    assert Q.shape == (16, 3, 7)
    assert names == ["y", "W1y", "W2y", "W1W1y", "W1W2y", "W2W1y", "W2W2y"]
    assert index == {0: (0, 1), 1: (1, 3), 2: (3, 7)}
    W1, W2 = two_layer_w[:, :, 0], two_layer_w[:, :, 1]
    assert np.allclose(Q[:, :, 0], base)
    assert np.allclose(Q[:, :, 5], W2 @ W1 @ base)

def test_expand_diagonal_two_layers(rng, two_layer_w):
    base = rng.standard_normal((16, 2))
    Q, names, index = expand_spatial_lags(base, two_layer_w, 3, interaction="diagonal", label="y")
    assert Q.shape == (16, 2, 7)
    assert names == ["y", "W1y", "W2y", "W1W1y", "W2W2y", "W1W1W1y", "W2W2W2y"]
    assert index[3] == (5, 7)
    W2 = two_layer_w[:, :, 1]
    assert np.allclose(Q[:, :, 6], W2 @ W2 @ W2 @ base)

def test_full_and_diagonal_coincide_for_single_layer(rng, queen_w):
    base = rng.standard_normal((25, 4))
    W = queen_w[:, :, np.newaxis]
    Qf, nf, _ = expand_spatial_lags(base, W, 3, interaction="full")
    Qd, nd, _ = expand_spatial_lags(base, W, 3, interaction="diagonal")
    assert nf == nd
    assert np.allclose(Qf, Qd)

def test_expand_shape_mismatch(rng, queen_w):
    with pytest.raises(ValueError):
        expand_spatial_lags(rng.standard_normal((7, 2)), queen_w[:, :, np.newaxis], 1)

# ---------------------------------------------------------------------
# Full instrument set
# ---------------------------------------------------------------------

def test_build_instruments_with_regressor(rng, two_layer_w):
    y_lag = rng.standard_normal((16, 4))
    X_star = rng.standard_normal((16, 4, 1))
    full = build_instruments(y_lag, X_star, two_layer_w, ksy=2, ksx=1, interaction="full")
    diag = build_instruments(y_lag, X_star, two_layer_w, ksy=2, ksx=1, interaction="diagonal")

    assert full.n_instruments == 7 + 3
    assert diag.n_instruments == 5 + 3
    assert full.index["y"] == {0: (0, 1), 1: (1, 3), 2: (3, 7)}
    assert full.index["x1"] == {0: (7, 8), 1: (8, 10)}
    assert full.names[7:] == ["x1", "W1x1", "W2x1"]
    assert full.block(2).shape == (16, 10)
    assert np.allclose(full.block(2)[:, 7], X_star[:, 2, 0])

def test_build_instruments_without_regressors(rng, queen_w):
    inst = build_instruments(rng.standard_normal((25, 3)), None, queen_w[:, :, np.newaxis], ksy=2, ksx=1)
    assert inst.n_instruments == 3
    assert list(inst.index) == ["y"]

def test_build_instruments_ksx_zero_keeps_regressor(rng, queen_w):
    inst = build_instruments(
        rng.standard_normal((25, 3)),
        rng.standard_normal((25, 3, 2)),
        queen_w[:, :, np.newaxis],
        ksy=1,
        ksx=0,
    )
    assert inst.names == ["y", "W1y", "x1", "x2"]

def test_build_instruments_rejects_bad_orders(rng, queen_w):
    W = queen_w[:, :, np.newaxis]
    with pytest.raises(ValueError, match="ksy"):
        build_instruments(rng.standard_normal((25, 3)), None, W, ksy=0, ksx=1)
    with pytest.raises(ValueError, match="ksx"):
        build_instruments(rng.standard_normal((25, 3)), None, W, ksy=1, ksx=-1)
