"""
dtm.py

Sparse document-term matrix from the token table, plus the metadata table
re-aligned to the matrix rows. Documents with no surviving tokens have no
row; the metadata loses them too.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd
import scipy.sparse as sp

from caregiver_topics import pipeline_config as cfg


@dataclass
class DocumentTermBundle:
    X: sp.csr_matrix
    obs_ids: list
    vocab: list
    meta: pd.DataFrame
    tokens: pd.DataFrame

    def save(self, dtm_path=cfg.DTM_PATH, vocab_path=cfg.VOCAB_PATH,
             meta_path=cfg.META_PATH, tokens_path=cfg.TOKENS_PATH):
        dtm_path.parent.mkdir(parents=True, exist_ok=True)
        sp.save_npz(dtm_path, self.X)
        pd.DataFrame({"term": self.vocab}).to_csv(vocab_path, index=False)
        self.meta.to_parquet(meta_path)
        self.tokens.to_parquet(tokens_path)

    @classmethod
    def load(cls, dtm_path=cfg.DTM_PATH, vocab_path=cfg.VOCAB_PATH,
             meta_path=cfg.META_PATH, tokens_path=cfg.TOKENS_PATH):
        X = sp.load_npz(dtm_path).tocsr()
        vocab = pd.read_csv(vocab_path, keep_default_na=False)["term"].astype(str).tolist()
        meta = pd.read_parquet(meta_path)
        tokens = pd.read_parquet(tokens_path)
        return cls(X=X, obs_ids=meta["obs_id"].tolist(), vocab=vocab, meta=meta, tokens=tokens)


def build_dtm(tokens: pd.DataFrame, doc_order=None):
    """
    Count (obs_id, word) pairs into a CSR matrix.

    Rows follow `doc_order` (obs_ids without tokens are skipped); columns are
    the sorted vocabulary. Returns (X, obs_ids, vocab).
    """
    counts = tokens.groupby(["obs_id", "word"]).size().rename("n").reset_index()

    present = set(counts["obs_id"])
    if doc_order is None:
        obs_ids = list(pd.unique(tokens["obs_id"]))
    else:
        obs_ids = [o for o in pd.unique(pd.Series(doc_order)) if o in present]
    vocab = sorted(counts["word"].unique())

    rows = pd.Categorical(counts["obs_id"], categories=obs_ids).codes
    cols = pd.Categorical(counts["word"], categories=vocab).codes

    X = sp.coo_matrix(
        (counts["n"].to_numpy(dtype=np.int64), (rows, cols)),
        shape=(len(obs_ids), len(vocab)),
    ).tocsr()
    return X, obs_ids, vocab


def align_metadata(meta: pd.DataFrame, obs_ids) -> pd.DataFrame:
    """Subset and reorder the observation table to the matrix row keys."""
    indexed = meta.set_index("obs_id", drop=False)
    missing = [o for o in obs_ids if o not in indexed.index]
    if missing:
        raise ValueError(f"Matrix rows without metadata: {missing[:5]}")
    return indexed.loc[list(obs_ids)].reset_index(drop=True)


def build_bundle(analysis: pd.DataFrame, tokens: pd.DataFrame) -> DocumentTermBundle:
    X, obs_ids, vocab = build_dtm(tokens, doc_order=analysis["obs_id"])
    meta = align_metadata(analysis, obs_ids)

    dropped = len(analysis) - len(meta)
    print(f"  DTM shape: {X.shape[0]:,} x {X.shape[1]:,}  nnz={X.nnz:,}", flush=True)
    print(f"  Documents without surviving terms: {dropped:,}", flush=True)

    return DocumentTermBundle(X=X, obs_ids=obs_ids, vocab=vocab, meta=meta, tokens=tokens)

