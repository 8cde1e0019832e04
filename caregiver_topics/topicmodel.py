"""
topicmodel.py

Topic-model fitting and the diagnostics used to choose the number of
topics.

The model is Poisson / KL non-negative matrix factorization, which is the
maximum-likelihood fit of a multinomial topic model (PLSA). It is fitted
with scikit-learn's multiplicative-update NMF in blocks of `em_block`
updates, restarting each block from the previous factors (init="custom"),
so the log-likelihood can be traced block by block:

  spectral init : deterministic SVD start (nndsvda)
  random init   : seeded random start

Diagnostics follow the definitions of the R `stm` package:
  exclusivity        FREX score summed over each topic's top words
  semantic_coherence Mimno et al. (2011) document co-occurrence score
  eval_heldout       mean log-probability of hidden tokens
  check_residuals    Taddy (2012) multinomial dispersion
"""

import warnings
from dataclasses import dataclass, field
from itertools import combinations

import numpy as np
import pandas as pd
import scipy.sparse as sp
from scipy.special import gammaln
from scipy.stats import chi2, rankdata
from sklearn.decomposition import NMF
from sklearn.exceptions import ConvergenceWarning

from caregiver_topics import pipeline_config as cfg

INITS = {"spectral": "nndsvda", "random": "random"}
EPS = np.finfo(float).tiny


@dataclass
class TopicModel:
    beta: np.ndarray          # K x V topic-word probabilities
    theta: np.ndarray         # D x K document-topic proportions
    bound: list               # log-likelihood after each block
    k: int
    n_iter: int
    converged: bool
    init: str = "spectral"
    seed: int = None
    vocab: list = field(default=None, repr=False)

    @property
    def final_bound(self) -> float:
        return float(self.bound[-1])

    @property
    def lbound(self) -> float:
        """Bound corrected for the K! equivalent topic labelings."""
        return self.final_bound + float(gammaln(self.k + 1))


# --------------------------------------------------
# Fitting
# --------------------------------------------------

def _normalize(W, H):
    scale = H.sum(axis=1)
    V = H.shape[1]
    beta = np.where(scale[:, None] > 0, H / np.where(scale > 0, scale, 1)[:, None], 1.0 / V)

    weights = W * scale[None, :]
    totals = weights.sum(axis=1, keepdims=True)
    theta = np.where(totals > 0, weights / np.where(totals > 0, totals, 1), 1.0 / W.shape[1])
    return theta, beta


def log_likelihood(X, theta, beta) -> float:
    """Multinomial log-likelihood of the counts in X (up to a constant)."""
    X = sp.coo_matrix(X)
    q = np.einsum("ij,ji->i", theta[X.row], beta[:, X.col])
    return float(np.sum(X.data * np.log(np.maximum(q, EPS))))


def _nmf(k, init, seed, em_block):
    return NMF(
        n_components=k,
        init=init,
        beta_loss="kullback-leibler",
        solver="mu",
        max_iter=em_block,
        tol=0,
        random_state=seed,
    )


def fit_topic_model(X, k, init="spectral", seed=cfg.RANDOM_STATE, max_em_its=cfg.MAX_EM_ITS,
                    em_tol=cfg.EM_TOL, em_block=10, vocab=None, verbose=False) -> TopicModel:
    if init not in INITS:
        raise ValueError(f"Unknown init {init!r}; expected one of {sorted(INITS)}")
    if k < 2 or k > min(X.shape):
        raise ValueError(f"K={k} is out of range for a {X.shape[0]} x {X.shape[1]} matrix")

    X = sp.csr_matrix(X, dtype=np.float64)

    bound = []
    converged = False
    W = H = None

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", category=ConvergenceWarning)
        for it in range(max_em_its):
            if W is None:
                nmf = _nmf(k, INITS[init], seed, em_block)
                W = nmf.fit_transform(X)
            else:
                nmf = _nmf(k, "custom", seed, em_block)
                W = nmf.fit_transform(X, W=W, H=H)
            H = nmf.components_

            theta, beta = _normalize(W, H)
            bound.append(log_likelihood(X, theta, beta))
            if verbose:
                print(f"    K={k} block {it + 1}: bound {bound[-1]:.2f}", flush=True)

            if len(bound) > 1:
                change = abs((bound[-1] - bound[-2]) / bound[-2])
                if change < em_tol:
                    converged = True
                    break

    if not np.isfinite(bound[-1]):
        raise FloatingPointError(f"K={k}: non-finite bound")

    return TopicModel(
        beta=beta, theta=theta, bound=bound, k=k, n_iter=len(bound),
        converged=converged, init=init, seed=seed, vocab=vocab,
    )


def top_terms(model: TopicModel, n=10) -> list:
    order = np.argsort(-model.beta, axis=1)[:, :n]
    if model.vocab is None:
        return order.tolist()
    return [[model.vocab[j] for j in row] for row in order]


# --------------------------------------------------
# Diagnostics
# --------------------------------------------------

def exclusivity(model: TopicModel, n_words=10, frex_weight=0.7) -> np.ndarray:
    tbeta = model.beta.T                    # V x K
    V = tbeta.shape[0]
    n_words = min(n_words, V)

    row_sums = tbeta.sum(axis=1, keepdims=True)
    excl = np.divide(tbeta, row_sums, out=np.zeros_like(tbeta), where=row_sums > 0)

    ex = rankdata(excl, axis=0) / V
    fr = rankdata(tbeta, axis=0) / V
    frex = 1.0 / (frex_weight / ex + (1 - frex_weight) / fr)

    top = np.argsort(-tbeta, axis=0, kind="stable")[:n_words]
    return np.array([frex[top[:, k], k].sum() for k in range(model.k)])


def semantic_coherence(model: TopicModel, X, n_words=10) -> np.ndarray:
    n_words = min(n_words, model.beta.shape[1])
    top = np.argsort(-model.beta, axis=1, kind="stable")[:, :n_words]

    wordlist = pd.unique(top.ravel())
    position = {w: i for i, w in enumerate(wordlist)}

    present = (sp.csc_matrix(X)[:, wordlist] > 0).astype(np.float64)
    cross = (present.T @ present).toarray()

    scores = []
    for row in top:
        labels = [position[w] for w in row]
        total = 0.0
        for a, b in combinations(labels, 2):
            m, l = max(a, b), min(a, b)
            total += np.log(0.01 + cross[m, l]) - np.log(0.01 + cross[l, l])
        scores.append(total)
    return np.array(scores)


def eval_heldout(model: TopicModel, heldout) -> dict:
    doc_ll, doc_sum = [], []
    for i, (terms, counts) in zip(heldout.index, heldout.missing):
        probs = model.theta[i] @ model.beta[:, terms]
        doc_ll.append(float(np.sum(counts * np.log(np.maximum(probs, EPS))) / counts.sum()))
        doc_sum.append(int(counts.sum()))

    expected = float(np.mean(doc_ll)) if doc_ll else np.nan
    return {
        "expected_heldout": expected,
        "doc_heldout": np.array(doc_ll),
        "index": np.asarray(heldout.index),
        "doc_sum": np.array(doc_sum),
    }


def check_residuals(model: TopicModel, X, chunk_size=1000) -> dict:
    """
    Multinomial dispersion of the residuals.

    Values near 1 mean the counts are consistent with the fitted model;
    values well above 1 suggest too few topics.

    The sum runs over every document-term cell with positive variance and df
    counts all cells: D(V-1) - D(K-1) - K(V-1). stm's checkResiduals keeps only cells whose
    expected count clears a tolerance, so the two values are not directly
    comparable.
    """
    X = sp.csr_matrix(X)
    D, V = X.shape
    K = model.k

    total = 0.0
    for start in range(0, D, chunk_size):
        stop = min(start + chunk_size, D)
        counts = X[start:stop].toarray().astype(np.float64)
        m = counts.sum(axis=1, keepdims=True)
        q = model.theta[start:stop] @ model.beta
        expected = m * q
        var = expected * (1 - q)
        ok = var > 0
        total += np.sum((counts[ok] - expected[ok]) ** 2 / var[ok])

    df = D * (V - 1) - D * (K - 1) - K * (V - 1)
    if df <= 0:
        return {"dispersion": np.nan, "pvalue": np.nan, "df": df}
    return {
        "dispersion": total / df,
        "pvalue": float(chi2.sf(total, df)),
        "df": df,
    }
