"""Summary tables for log-ARCH GMM estimates.

Reports coefficients, standard errors and t-statistics of both instrument
variants side by side. No p-values are computed.
"""

from __future__ import annotations

from typing import cast

import numpy as np
import pandas as pd
from tabulate import tabulate

from starch.estimators.base import VARIANTS, EstimationResult

__all__ = ["coef_table", "summary"]


def coef_table(result: EstimationResult) -> pd.DataFrame:
    """Long table with one row per (variant, parameter)."""
    frames = []
    for variant in VARIANTS:
        vr = result[variant]
        if vr is None:
            continue
        frames.append(
            pd.DataFrame(
                {
                    "variant": variant,
                    "param": vr.params.index,
                    "coef": vr.params.to_numpy(),
                    "se": vr.se.to_numpy(),
                    "t": vr.tstat.to_numpy(),
                },
            ),
        )
    if not frames:
        return pd.DataFrame(columns=["variant", "param", "coef", "se", "t"])
    return pd.concat(frames, ignore_index=True)


def _cell(val: float, fmt: str) -> str:
    return "" if val is None or not np.isfinite(val) else format(val, fmt)


def summary(
    result: EstimationResult,
    *,
    output: str = "text",
    coef_format: str = ".4f",
    latex_booktabs: bool = True,
) -> str:
    """Side-by-side table of both variants (coef, (se), [t]) plus footer rows."""
    if output not in {"text", "latex"}:
        raise ValueError("output must be either 'text' or 'latex'.")
    names: list[str] = []
    for variant in VARIANTS:
        vr = result[variant]
        if vr is not None:
            names += [nm for nm in vr.params.index if nm not in names]

    rows: list[list[str]] = []
    for nm in names:
        coef_row, se_row, t_row = [nm], [""], [""]
        for variant in VARIANTS:
            vr = result[variant]
            if vr is None or nm not in vr.params.index:
                coef_row.append("")
                se_row.append("")
                t_row.append("")
                continue
            coef_row.append(_cell(vr.params[nm], coef_format))
            se = _cell(vr.se[nm], coef_format)
            se_row.append(f"({se})" if se else "(n/a)")
            t = _cell(vr.tstat[nm], ".2f")
            t_row.append(f"[{t}]" if t else "")
        rows += [coef_row, se_row, t_row]

    footer = [
        ["Instruments"] + [
            "" if result[v] is None else str(result[v].n_instruments) for v in VARIANTS
        ],
        ["sigma2"] + [
            "" if result[v] is None else _cell(result[v].sigma2, coef_format) for v in VARIANTS
        ],
        ["N x (T-1)"] + [str(result.n_obs)] * len(VARIANTS),
    ]
    headers = ["", *VARIANTS]
    if output == "latex":
        tablefmt = "latex_booktabs" if latex_booktabs else "latex"
        return cast("str", tabulate(rows + footer, headers=headers, stralign="center", tablefmt=tablefmt))
    return cast("str", tabulate(rows + footer, headers=headers, stralign="center"))
