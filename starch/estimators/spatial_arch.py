"""GMM estimation of the dynamic spatiotemporal log-ARCH panel model.

Model for the log-squared outcome ``y_t = log(Y_t**2)`` of an ``n``-unit panel:

    y_t = sum_j lambda_j W_j y_t + gamma y_{t-1} + sum_j delta_j W_j y_{t-1}
          + X_t beta + mu + alpha_t 1 + v_t

Unit effects ``mu`` are removed by the Helmert operator ``F``; time effects
``alpha_t`` by ``J_n`` (when ``ted``). The spatial lags ``W_j y_t`` are
endogenous and instrumented by spatial expansions of the transformed lagged
outcome and of the transformed exogenous regressors; every instrument column
goes through the same F / J_n pipeline as the regressors. With aggregated
moments the estimator is

    theta = [(Q'Z)' (Q'Q)^+ (Q'Z)]^+ (Q'Z)' (Q'Q)^+ (Q'y)
    Sigma = (1/ns) [ (1/(sigma2 ns)) (Q'Z)' (Q'Q)^+ (Q'Z) ]^{-1}

computed once with the full-interaction instrument set (``primary``) and once
with the diagonal-only set (``alternate``).
"""

from __future__ import annotations

import logging
import warnings
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd

from starch.core import linalg as la
from starch.core.moments import MomentSums, aggregate_moments
from starch.core.transform import (
    demeaning_operator,
    forward_orthogonal,
    helmert_operator,
    log_squared,
)
from starch.estimators.base import VARIANTS, EstimationResult, ModelConfig, VariantResult
from starch.spatial.weights import ShapeError, as_weight_stack
from starch.utils.instruments import InstrumentSet, build_instruments

if TYPE_CHECKING:
    from collections.abc import Mapping

    from numpy.typing import NDArray

LOGGER = logging.getLogger(__name__)

__all__ = ["SpatialARCHGMM", "estimate", "parameter_names", "solve_moment_equations"]

_INTERACTION = {"primary": "full", "alternate": "diagonal"}


def parameter_names(p: int, k: int, config: ModelConfig) -> list[str]:
    """Coefficient labels in estimation order: lambda, gamma, delta, beta."""

    def _layered(stem: str) -> list[str]:
        return [stem] if p == 1 else [f"{stem}_{j + 1}" for j in range(p)]

    names = _layered("lambda")
    if config.tl:
        names.append("gamma")
    if config.stl:
        names += _layered("delta")
    names += [f"beta_{r + 1}" for r in range(k)]
    return names


def solve_moment_equations(
    moments: MomentSums,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Solve the pseudo-inverse weighted moment equations.

    Returns ``theta`` (K,) and the outer matrix ``A = (Q'Z)'(Q'Q)^+(Q'Z)``.
    """
    qq_pinv = la.pinv(moments.qq)
    zq = moments.qz.T @ qq_pinv
    A = zq @ moments.qz
    b = zq @ moments.qy
    theta = (la.pinv(A) @ b).reshape(-1)
    if not np.all(np.isfinite(theta)):
        raise np.linalg.LinAlgError("GMM solution is not finite.")
    return theta, A


def _as_panel(y: Any) -> NDArray[np.float64]:
    if y is None:
        raise ValueError("Outcome panel is required.")
    arr = np.asarray(y, dtype=np.float64)
    if arr.ndim != 2:
        msg = f"Outcome panel must be 2-dimensional (n x (T+1)); got ndim={arr.ndim}."
        raise ShapeError(msg)
    if arr.shape[1] < 3:
        msg = f"At least three periods are required (initial lag plus T >= 2); got {arr.shape[1]}."
        raise ValueError(msg)
    la._assert_all_finite(arr)  # noqa: SLF001
    return arr


def _as_regressors(X: Any, n: int, n_periods: int) -> NDArray[np.float64]:
    if X is None:
        return np.zeros((n, n_periods, 0), dtype=np.float64)
    arr = np.asarray(X, dtype=np.float64)
    if arr.ndim == 2:
        arr = arr[:, :, np.newaxis]
    if arr.ndim != 3 or arr.shape[:2] != (n, n_periods):
        msg = f"Exogenous tensor must have shape ({n}, {n_periods}, k); got {arr.shape}."
        raise ShapeError(msg)
    la._assert_all_finite(arr)  # noqa: SLF001
    return arr


class SpatialARCHGMM:
    """Dynamic spatiotemporal log-ARCH model estimated by GMM.

    Parameters
    ----------
    y : (n, T+1) array
        Outcome panel; the first column only serves as initial lag.
    X : (n, T+1, k) array or None
        Exogenous regressors aligned with ``y``.
    W : (n, n) or (n, n, p) array
        Spatial weights with zero diagonal.
    config : ModelConfig or mapping, optional
        Instrument orders and model flags.
    """

    def __init__(
        self,
        y: Any,
        X: Any,
        W: Any,
        config: ModelConfig | Mapping[str, Any] | None = None,
    ) -> None:
        self.config = ModelConfig.coerce(config)
        self.y = _as_panel(y)
        n, n_periods = self.y.shape
        if W is None:
            raise ValueError("Spatial weights are required.")
        self.W = as_weight_stack(W, n)
        self.X = _as_regressors(X, n, n_periods)
        self._results: EstimationResult | None = None

    @property
    def n_units(self) -> int:
        return int(self.y.shape[0])

    @property
    def n_periods(self) -> int:
        """Number of periods T after reserving the initial lag."""
        return int(self.y.shape[1] - 1)

    @property
    def results(self) -> EstimationResult:
        if self._results is None:
            raise RuntimeError("Model has not been fitted yet; call fit().")
        return self._results

    def _design(self) -> dict[str, Any]:
        """Transformed outcome, regressors and instrument bases."""
        cfg = self.config
        W = self.W
        p = W.shape[2]
        T = self.n_periods
        L, n_zero = log_squared(self.y)
        F = helmert_operator(T)

        y_star = forward_orthogonal(L[:, 1:], F)
        ylag_star = forward_orthogonal(L[:, :-1], F)
        k = self.X.shape[2]
        X_star = forward_orthogonal(self.X[:, 1:, :], F) if k else None

        cols = [W[:, :, j] @ y_star for j in range(p)]
        if cfg.tl:
            cols.append(ylag_star)
        if cfg.stl:
            cols += [W[:, :, j] @ ylag_star for j in range(p)]
        if X_star is not None:
            cols += [X_star[:, :, r] for r in range(k)]
        Z = np.stack(cols, axis=2)

        return {
            "y_star": y_star,
            "Z": Z,
            "X_star": X_star,
            # instruments share the transformation pipeline of the regressors
            "y_base": ylag_star,
            "names": parameter_names(p, k, cfg),
            "n_zero": n_zero,
        }

    def _fit_variant(self, variant: str, design: dict[str, Any]) -> VariantResult:
        cfg = self.config
        instruments: InstrumentSet = build_instruments(
            design["y_base"],
            design["X_star"],
            self.W,
            ksy=cfg.ksy,
            ksx=cfg.ksx,
            interaction=_INTERACTION[variant],
        )
        Z, y_star = design["Z"], design["y_star"]
        names = design["names"]
        if instruments.n_instruments < Z.shape[2]:
            warnings.warn(
                f"{variant}: {instruments.n_instruments} instruments for {Z.shape[2]} "
                "regressors; the model is under-identified (raise ksy/ksx).",
                RuntimeWarning,
                stacklevel=3,
            )
        moments = aggregate_moments(instruments.Q, Z, y_star, ted=cfg.ted)
        theta, A = solve_moment_equations(moments)

        resid = y_star - np.einsum("ntk,k->nt", Z, theta)
        if cfg.ted:
            resid = demeaning_operator(self.n_units) @ resid
        sigma2 = float(np.mean((resid - resid.mean()) ** 2))

        ns = moments.n_obs
        K = theta.size
        try:
            cov = (1.0 / ns) * la.inv((1.0 / (sigma2 * ns)) * A)
        except (np.linalg.LinAlgError, ZeroDivisionError, FloatingPointError) as exc:
            warnings.warn(
                f"{variant}: asymptotic covariance is singular ({exc}); standard errors "
                "are undefined for this variant.",
                RuntimeWarning,
                stacklevel=3,
            )
            cov = np.full((K, K), np.nan)
        se = np.sqrt(np.abs(np.diag(cov)))
        with np.errstate(divide="ignore", invalid="ignore"):
            tstat = theta / se

        s = la.svd(moments.qq, full_matrices=False)[1]
        return VariantResult(
            params=pd.Series(theta, index=names, name="coef"),
            se=pd.Series(se, index=names, name="se"),
            cov=pd.DataFrame(cov, index=names, columns=names),
            tstat=pd.Series(tstat, index=names, name="t"),
            residuals=resid,
            sigma2=sigma2,
            n_instruments=instruments.n_instruments,
            instrument_names=list(instruments.names),
            instrument_index=instruments.index,
            extra={
                "interaction": instruments.interaction,
                "QQ_rank": la.rank_from_singular_values(s, moments.qq.shape),
                "moments": moments,
            },
        )

    def fit(self, *, verbose: bool = False) -> EstimationResult:
        """Estimate both instrument variants; a failing variant is returned as None."""
        cfg = self.config
        log = LOGGER.info if verbose else LOGGER.debug
        log(
            "Estimating log-ARCH GMM: n=%d, T=%d, p=%d, k=%d, ksy=%d, ksx=%d",
            self.n_units, self.n_periods, self.W.shape[2], self.X.shape[2], cfg.ksy, cfg.ksx,
        )
        design = self._design()

        fitted: dict[str, VariantResult | None] = {}
        for variant in VARIANTS:
            try:
                fitted[variant] = self._fit_variant(variant, design)
                log("%s variant: %d instruments", variant, fitted[variant].n_instruments)
            except (np.linalg.LinAlgError, ValueError) as exc:
                warnings.warn(
                    f"{variant} variant could not be estimated: {exc}",
                    RuntimeWarning,
                    stacklevel=2,
                )
                LOGGER.debug("%s variant failed", variant, exc_info=True)
                fitted[variant] = None

        self._results = EstimationResult(
            primary=fitted["primary"],
            alternate=fitted["alternate"],
            n_obs=int(self.n_units * (self.n_periods - 1)),
            model_info={
                "Estimator": "Spatiotemporal log-ARCH GMM",
                "n": self.n_units,
                "T": self.n_periods,
                "p": int(self.W.shape[2]),
                "k": int(self.X.shape[2]),
                "ksy": cfg.ksy,
                "ksx": cfg.ksx,
                "stl": cfg.stl,
                "tl": cfg.tl,
                "ted": cfg.ted,
                "ZerosSubstituted": int(design["n_zero"]),
                "Instruments": {
                    name: (None if res is None else res.n_instruments)
                    for name, res in fitted.items()
                },
            },
        )
        if verbose:
            from starch.output.summary import summary

            LOGGER.info("Estimation summary:\n%s", summary(self._results))
        return self._results


def estimate(
    y: Any,
    X: Any,
    weights: Any,
    config: ModelConfig | Mapping[str, Any] | None = None,
    verbose: bool = False,
) -> EstimationResult:
    """Estimate the model on an ``(n, T+1)`` panel; see :class:`SpatialARCHGMM`."""
    return SpatialARCHGMM(y, X, weights, config).fit(verbose=verbose)
