"""
sweep.py

Fit one topic model per candidate K and collect its diagnostics.

Each K is an independent joblib task reading the same held-out training
matrix. A task that raises is reported as a failed row; the other K keep
running.
"""

import os
import time

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

from caregiver_topics import pipeline_config as cfg
from caregiver_topics import topicmodel as tm

RECORD_COLUMNS = [
    "K", "status", "exclusivity", "semcoh", "heldout", "residual",
    "bound", "lbound", "em_its", "converged", "seconds", "error",
]


def _failed_record(k, error, seconds):
    return {
        "K": k, "status": "failed",
        "exclusivity": None, "semcoh": None,
        "heldout": np.nan, "residual": np.nan,
        "bound": np.nan, "lbound": np.nan,
        "em_its": np.nan, "converged": False,
        "seconds": seconds, "error": error,
    }


def fit_and_diagnose(X_train, heldout, k, vocab=None, config=None) -> dict:
    """Fit K topics on the training matrix; never raises."""
    config = config or cfg.AnalysisConfig()
    t0 = time.time()
    try:
        model = tm.fit_topic_model(
            X_train, k,
            init=config.init,
            seed=config.seed,
            max_em_its=config.max_em_its,
            em_tol=config.em_tol,
            em_block=config.em_block,
            vocab=vocab,
        )
        return {
            "K": k,
            "status": "ok",
            "exclusivity": tm.exclusivity(model).tolist(),
            "semcoh": tm.semantic_coherence(model, X_train).tolist(),
            "heldout": tm.eval_heldout(model, heldout)["expected_heldout"],
            "residual": tm.check_residuals(model, X_train)["dispersion"],
            "bound": model.final_bound,
            "lbound": model.lbound,
            "em_its": model.n_iter,
            "converged": model.converged,
            "seconds": time.time() - t0,
            "error": None,
        }
    except Exception as e:
        return _failed_record(k, f"{type(e).__name__}: {e}", time.time() - t0)


def search_k(X_train, heldout, ks=None, vocab=None, config=None, n_jobs=None) -> pd.DataFrame:
    config = config or cfg.AnalysisConfig()
    ks = sorted(set(ks if ks is not None else config.ks))
    n_jobs = n_jobs if n_jobs is not None else config.n_jobs

    cpu = os.cpu_count() or 1
    n_workers = cpu if n_jobs is None or n_jobs < 1 else min(n_jobs, cpu)
    n_workers = max(1, min(len(ks), n_workers))

    print(f"  Fitting {len(ks)} models on {n_workers} worker(s): K = {ks}", flush=True)

    tasks = (delayed(fit_and_diagnose)(X_train, heldout, k, vocab, config) for k in ks)
    runner = Parallel(n_jobs=n_workers, return_as="generator_unordered")
    records = list(tqdm(runner(tasks), total=len(ks), desc="searchK"))

    results = pd.DataFrame(records, columns=RECORD_COLUMNS).sort_values("K").reset_index(drop=True)

    for row in results.itertuples():
        if row.status == "ok":
            print(f"  K={row.K:<4d} heldout={row.heldout:.4f} residual={row.residual:.3f} "
                  f"lbound={row.lbound:.1f} its={row.em_its}", flush=True)
        else:
            print(f"  K={row.K:<4d} FAILED: {row.error}", flush=True)
    return results


def summarize(results: pd.DataFrame) -> pd.DataFrame:
    """Per-K means of the per-topic scores, for choosing K."""
    out = results.drop(columns=["exclusivity", "semcoh"]).copy()
    out["exclusivity"] = results["exclusivity"].apply(
        lambda v: float(np.mean(v)) if v is not None else np.nan)
    out["semcoh"] = results["semcoh"].apply(
        lambda v: float(np.mean(v)) if v is not None else np.nan)
    return out
