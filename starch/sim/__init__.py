"""Simulation and Monte Carlo module."""
from .montecarlo import MonteCarloResult, monte_carlo, summarize_replications, true_parameters
from .simulate import BURN_IN, ErrorType, SimulatedPanel, SimulationParameters, simulate

__all__ = [
    "BURN_IN",
    "ErrorType",
    "MonteCarloResult",
    "SimulatedPanel",
    "SimulationParameters",
    "monte_carlo",
    "simulate",
    "summarize_replications",
    "true_parameters",
]
