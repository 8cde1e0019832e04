import numpy as np
import pandas as pd
import pytest
import scipy.sparse as sp

from caregiver_topics.prevalence import FinalModel, fit_final_model, prevalence_design


def covariates(n, seed=0):
    rng = np.random.default_rng(seed)
    return pd.DataFrame({
        "obs_id": [f"{i}_1" for i in range(n)],
        "race": pd.array(rng.choice(["Black", "White", "Other"], size=n), dtype="string"),
        "parent_wb": rng.normal(size=n),
        "child_wb": rng.normal(size=n),
        "poverty": rng.integers(0, 2, size=n).astype(float),
        "month": pd.array(rng.integers(-1, 18, size=n), dtype="Int64"),
    })


def test_design_has_spline_basis_and_doc_positions():
    meta = covariates(30)
    meta.loc[4, "month"] = pd.NA
    design, spline_cols, spline = prevalence_design(meta, spline_df=5)

    assert len(spline_cols) == 5
    assert len(design) == 29
    assert 4 not in design["doc"].tolist()
    assert design[spline_cols].notna().all().all()
    assert spline.transform(design[["month"]]).shape == (29, 5)


def test_design_requires_covariates():
    with pytest.raises(ValueError, match="poverty"):
        prevalence_design(covariates(10).drop(columns=["poverty"]))


def test_final_model_effects(make_corpus, fast_config, tmp_path):
    X = sp.csr_matrix(make_corpus(n_docs=80, n_terms=50))
    meta = covariates(80)
    vocab = [f"w{j}" for j in range(50)]

    final = fit_final_model(X, meta, k=3, vocab=vocab, config=fast_config)

    assert final.model.k == 3
    assert final.model.init == "spectral"
    assert final.model.theta.shape == (80, 3)
    assert sorted(final.effects["topic"].unique()) == [1, 2, 3]
    terms = set(final.effects["term"])
    assert {"Intercept", "parent_wb", "child_wb", "poverty", "month_s1"} <= terms
    assert (final.effects["n_obs"] == 80).all()
    assert final.formula.startswith("topic ~ C(race)")

    final.save(tmp_path / "final.joblib")
    loaded = FinalModel.load(tmp_path / "final.joblib")
    np.testing.assert_allclose(loaded.model.beta, final.model.beta)


def test_final_model_rejects_misaligned_metadata(make_corpus, fast_config):
    X = sp.csr_matrix(make_corpus(n_docs=20, n_terms=10))
    with pytest.raises(ValueError, match="metadata"):
        fit_final_model(X, covariates(19), k=2, config=fast_config)
