import numpy as np
import pytest

from starch.sim.simulate import (
    ErrorType,
    SimulationParameters,
    simulate,
)

# ---------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------

def test_parameters_coerced_to_tuples():
    params = SimulationParameters(rho=0.3, gamma=0.2, delta=[0.1], beta=[1.0, -0.5])
    assert params.rho == (0.3,)
    assert params.delta == (0.1,)
    assert params.beta == (1.0, -0.5)
    assert (params.p, params.k) == (1, 2)
    assert params.errortype is ErrorType.NORMAL

def test_parameters_length_mismatch():
    with pytest.raises(ValueError, match="one entry per weight layer"):
        SimulationParameters(rho=[0.2, 0.1], gamma=0.1, delta=[0.0])

def test_parameters_from_mapping_rejects_unknown():
    with pytest.raises(ValueError, match="Unknown simulation parameter"):
        SimulationParameters.from_mapping({"rho": 0.1, "gamma": 0.1, "delta": 0.0, "sigma": 1.0})

@pytest.mark.parametrize(
    ("value", "expected"),
    [("normal", ErrorType.NORMAL), ("Student-t3", ErrorType.STUDENT_T3), ("t", ErrorType.STUDENT_T3)],
)
def test_errortype_parse(value, expected):
    assert ErrorType.parse(value) is expected

def test_errortype_parse_unknown():
    with pytest.raises(ValueError, match="errortype"):
        ErrorType.parse("cauchy")

# ---------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------

def test_simulate_shapes_and_reproducibility(queen_w):
    params = {"rho": 0.3, "gamma": 0.2, "delta": 0.1, "beta": [0.5]}
    a = simulate(25, 8, queen_w, params, seed=7)
    b = simulate(25, 8, queen_w, params, seed=7)
    c = simulate(25, 8, queen_w, params, seed=8)
    assert a.y.shape == (25, 8)
    assert a.X.shape == (25, 8, 1)
    assert np.all(np.isfinite(a.y))
    assert np.array_equal(a.y, b.y)
    assert np.array_equal(a.X, b.X)
    assert not np.array_equal(a.y, c.y)

def test_simulate_without_regressors(queen_w):
    out = simulate(25, 5, queen_w, SimulationParameters(rho=0.2, gamma=0.1, delta=0.0), seed=1)
    assert out.X.shape == (25, 5, 0)

def test_simulate_student_t_errors(queen_w):
    params = SimulationParameters(rho=0.2, gamma=0.1, delta=0.0, errortype="student_t3", ted=False)
    out = simulate(25, 6, queen_w, params, seed=3)
    assert out.parameters.errortype is ErrorType.STUDENT_T3
    assert np.all(np.isfinite(out.y))

def test_simulate_two_layers(two_layer_w):
    params = SimulationParameters(rho=[0.2, 0.1], gamma=0.1, delta=[0.05, 0.0])
    out = simulate(16, 4, two_layer_w, params, seed=11)
    assert out.y.shape == (16, 4)

def test_simulate_rejects_layer_mismatch(queen_w):
    with pytest.raises(ValueError, match="layers"):
        simulate(25, 4, queen_w, SimulationParameters(rho=[0.1, 0.1], gamma=0.1, delta=[0.0, 0.0]))

def test_simulate_rejects_wrong_n(queen_w):
    with pytest.raises(ValueError):
        simulate(24, 4, queen_w, {"rho": 0.1, "gamma": 0.1, "delta": 0.0})
