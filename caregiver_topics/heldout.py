"""
heldout.py

Document-completion held-out split for topic-model evaluation.

A seeded random subset of documents (10% by default) each hides half of
its tokens. The hidden counts are subtracted from the training matrix;
nothing else about the matrix changes. A document is left intact when it
has fewer than two distinct terms, or would keep fewer than two. Terms
whose every occurrence ended up hidden are put back so the training matrix
still supports the whole vocabulary.
"""

from dataclasses import dataclass, field

import joblib
import numpy as np
import scipy.sparse as sp

from caregiver_topics import pipeline_config as cfg


@dataclass
class HeldoutSplit:
    train: sp.csr_matrix
    index: np.ndarray
    missing: list = field(default_factory=list)
    seed: int = None

    def missing_matrix(self) -> sp.csr_matrix:
        """Hidden counts as a matrix shaped like `train`."""
        rows, cols, vals = [], [], []
        for i, (terms, counts) in zip(self.index, self.missing):
            rows.append(np.full(len(terms), i))
            cols.append(terms)
            vals.append(counts)
        if not rows:
            return sp.csr_matrix(self.train.shape, dtype=np.int64)
        return sp.coo_matrix(
            (np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))),
            shape=self.train.shape,
        ).tocsr()

    @property
    def n_tokens(self) -> int:
        return int(sum(c.sum() for _, c in self.missing))

    def save(self, path=cfg.HELDOUT_PATH):
        path.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(self, path)

    @staticmethod
    def load(path=cfg.HELDOUT_PATH) -> "HeldoutSplit":
        return joblib.load(path)


def _split_document(terms, counts, proportion, rng):
    tokens = np.repeat(terms, counts)
    n_hidden = int(round(proportion * len(tokens)))
    if n_hidden == 0:
        return None

    hidden = np.zeros(len(tokens), dtype=bool)
    hidden[rng.choice(len(tokens), size=n_hidden, replace=False)] = True
    if len(np.unique(tokens[~hidden])) < 2:
        return None

    return np.unique(tokens[hidden], return_counts=True)


def make_heldout(X, fraction=0.1, proportion=0.5, seed=cfg.RANDOM_STATE,
                 n_docs=None) -> HeldoutSplit:
    X = sp.csr_matrix(X)
    rng = np.random.default_rng(seed)

    n_total = X.shape[0]
    if n_docs is None:
        n_docs = int(np.floor(fraction * n_total))
    n_docs = min(n_docs, n_total)
    candidates = np.sort(rng.choice(n_total, size=n_docs, replace=False))

    index, missing = [], []
    for i in candidates:
        start, end = X.indptr[i], X.indptr[i + 1]
        terms, counts = X.indices[start:end], X.data[start:end]
        if len(terms) < 2:
            continue
        split = _split_document(terms, counts, proportion, rng)
        if split is None:
            continue
        index.append(i)
        missing.append(split)

    split = HeldoutSplit(train=X, index=np.array(index, dtype=int), missing=missing, seed=seed)
    hidden = split.missing_matrix()

    # restore terms that lost all training support
    support = np.asarray((X - hidden).sum(axis=0)).ravel()
    lost = np.flatnonzero((support == 0) & (np.asarray(X.sum(axis=0)).ravel() > 0))
    if len(lost):
        kept_index, kept_missing = [], []
        for i, (terms, counts) in zip(split.index, split.missing):
            keep = ~np.isin(terms, lost)
            if keep.any():
                kept_index.append(i)
                kept_missing.append((terms[keep], counts[keep]))
        split.index = np.array(kept_index, dtype=int)
        split.missing = kept_missing
        hidden = split.missing_matrix()

    train = (X - hidden).tocsr()
    train.eliminate_zeros()
    split.train = train

    print(f"  Held-out docs: {len(split.index):,} / {n_total:,}  "
          f"tokens: {split.n_tokens:,}", flush=True)
    return split
