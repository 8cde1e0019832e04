"""
prevalence.py

Final topic model and covariate effects on topic prevalence.

The chosen K is fitted on the full matrix with the fixed spectral start,
then each topic's document proportions are regressed on

    C(race) + parent_wb + child_wb + poverty + s(month)

where s(month) is a cubic B-spline basis. Standard errors are
heteroskedasticity-robust.
"""

from dataclasses import dataclass

import joblib
import numpy as np
import pandas as pd
import pyfixest as pf
from sklearn.preprocessing import SplineTransformer

from caregiver_topics import pipeline_config as cfg
from caregiver_topics import topicmodel as tm

COVARIATES = ["race", "parent_wb", "child_wb", "poverty", "month"]

TIDY_RENAMES = {
    "Coefficient": "term",
    "Estimate": "estimate",
    "Std. Error": "std_error",
    "t value": "t_value",
    "Pr(>|t|)": "p_value",
    "2.5%": "ci_low",
    "97.5%": "ci_high",
}


@dataclass
class FinalModel:
    model: tm.TopicModel
    effects: pd.DataFrame
    design: pd.DataFrame
    spline: SplineTransformer
    formula: str

    def save(self, path=cfg.FINAL_MODEL_PATH):
        path.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(self, path)

    @staticmethod
    def load(path=cfg.FINAL_MODEL_PATH) -> "FinalModel":
        return joblib.load(path)


def prevalence_design(meta: pd.DataFrame, spline_df=cfg.MONTH_SPLINE_DF):
    """
    Covariate table for the prevalence regressions.

    Keeps the matrix row position in `doc` so topic proportions can be
    attached. Rows without a month are left out (the spline needs it).
    Returns (design, spline_columns, fitted_spline).
    """
    if spline_df < 3:
        raise ValueError("month spline needs at least 3 degrees of freedom")

    missing = [c for c in COVARIATES if c not in meta.columns]
    if missing:
        raise ValueError(f"Missing covariates: {missing}")

    design = meta[COVARIATES].copy()
    design["doc"] = np.arange(len(meta))
    design = design[design["month"].notna()].reset_index(drop=True)

    design["race"] = design["race"].astype(object).where(design["race"].notna(), None)
    design["poverty"] = pd.to_numeric(design["poverty"], errors="coerce").astype(float)
    design["month"] = design["month"].astype(float)

    spline = SplineTransformer(n_knots=spline_df - 1, degree=3, include_bias=False)
    basis = spline.fit_transform(design[["month"]])
    spline_cols = [f"month_s{j + 1}" for j in range(basis.shape[1])]
    design = pd.concat([design, pd.DataFrame(basis, columns=spline_cols)], axis=1)

    return design, spline_cols, spline


def estimate_effects(theta, design: pd.DataFrame, spline_cols) -> tuple:
    """One robust OLS per topic; returns (tidy effects, formula rhs)."""
    rhs = " + ".join(["C(race)", "parent_wb", "child_wb", "poverty"] + list(spline_cols))

    data = design.copy()
    K = theta.shape[1]
    for k in range(K):
        data[f"topic_{k + 1}"] = theta[data["doc"].to_numpy(), k]

    tables = []
    for k in range(K):
        fit = pf.feols(f"topic_{k + 1} ~ {rhs}", data=data, vcov="hetero")
        t = fit.tidy().reset_index().rename(columns=TIDY_RENAMES)
        t.insert(0, "topic", k + 1)
        t["n_obs"] = int(fit._N)
        tables.append(t)

    return pd.concat(tables, ignore_index=True), rhs


def fit_final_model(X, meta: pd.DataFrame, k=None, vocab=None, config=None) -> FinalModel:
    config = config or cfg.AnalysisConfig()
    k = k if k is not None else config.final_k

    if X.shape[0] != len(meta):
        raise ValueError(f"Matrix rows ({X.shape[0]}) != metadata rows ({len(meta)})")

    print(f"  Fitting K={k} ({config.init} init, seed {config.seed}) ...", flush=True)
    model = tm.fit_topic_model(
        X, k,
        init=config.init,
        seed=config.seed,
        max_em_its=config.max_em_its,
        em_tol=config.em_tol,
        em_block=config.em_block,
        vocab=vocab,
    )
    status = "converged" if model.converged else "stopped at max_em_its"
    print(f"  {status} after {model.n_iter} blocks, bound {model.final_bound:.2f}", flush=True)

    design, spline_cols, spline = prevalence_design(meta, config.month_spline_df)
    print(f"  Prevalence design: {len(design):,} documents, {len(spline_cols)} month splines", flush=True)

    effects, rhs = estimate_effects(model.theta, design, spline_cols)
    return FinalModel(model=model, effects=effects, design=design, spline=spline,
                      formula=f"topic ~ {rhs}")
