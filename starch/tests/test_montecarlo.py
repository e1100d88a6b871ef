import numpy as np
import pytest

from starch.estimators.base import ModelConfig
from starch.sim.montecarlo import monte_carlo, summarize_replications, true_parameters
from starch.sim.simulate import SimulationParameters

PARAMS = {"rho": 0.3, "gamma": 0.2, "delta": 0.1, "beta": [0.5]}


def test_true_parameters_follow_estimator_order():
    truth = true_parameters(PARAMS, ModelConfig())
    assert list(truth.index) == ["lambda", "gamma", "delta", "beta_1"]
    assert truth["delta"] == pytest.approx(0.1)
    truth = true_parameters(SimulationParameters(**PARAMS), {"tl": False})
    assert list(truth.index) == ["lambda", "delta", "beta_1"]

def test_monte_carlo_sequential(queen_w):
    out = monte_carlo(25, 12, queen_w, PARAMS, {"ksy": 3}, n_rep=3, seed=5)
    assert out.n_rep == 3
    assert set(out.estimates["replication"]) <= {0, 1, 2}
    assert set(out.summary["variant"]) <= {"primary", "alternate"}
    assert list(out.summary.columns) == [
        "variant", "param", "true", "mean", "bias", "sd", "rmse", "mean_se", "n_valid",
    ]
    row = out.summary.iloc[0]
    assert row["rmse"] >= abs(row["bias"]) - 1e-12

def test_monte_carlo_reproducible(queen_w):
    a = monte_carlo(25, 10, queen_w, PARAMS, {"ksy": 3}, n_rep=2, seed=17)
    b = monte_carlo(25, 10, queen_w, PARAMS, {"ksy": 3}, n_rep=2, seed=17)
    assert np.allclose(a.estimates["estimate"], b.estimates["estimate"])

def test_monte_carlo_rejects_zero_replications(queen_w):
    with pytest.raises(ValueError, match="n_rep"):
        monte_carlo(25, 10, queen_w, PARAMS, n_rep=0)

def test_summarize_empty():
    import pandas as pd

    empty = pd.DataFrame(columns=["replication", "variant", "param", "estimate", "se", "n_warnings"])
    assert summarize_replications(empty, true_parameters(PARAMS)).empty

def test_monte_carlo_error_shrinks_with_sample_size():
    from starch.spatial.weights import queen_lattice

    params = {"rho": 0.4, "gamma": 0.2, "delta": 0.0}
    small = monte_carlo(16, 8, queen_lattice(4), params, {"stl": 0}, n_rep=6, seed=21)
    large = monte_carlo(100, 40, queen_lattice(10), params, {"stl": 0}, n_rep=6, seed=21)

    def _row(out, name):
        tab = out.summary
        return tab[(tab["variant"] == "primary") & (tab["param"] == name)].iloc[0]

    for name in ("lambda", "gamma"):
        assert _row(large, name)["rmse"] < _row(small, name)["rmse"]
        assert abs(_row(large, name)["bias"]) < 0.15
    assert _row(large, "lambda")["n_valid"] == 6
