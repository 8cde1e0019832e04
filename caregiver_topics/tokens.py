"""
tokens.py

Tidy token table: one row per (obs_id, word) occurrence.

Cleaning:
  - lowercase word tokens, inner apostrophes kept ("don't")
  - scikit-learn English stopwords removed
  - tokens without a letter ("___") dropped at tokenizing
  - tokens containing any digit removed
  - terms with global count <= min_term_count removed
"""

import re

import pandas as pd
from sklearn.feature_extraction.text import ENGLISH_STOP_WORDS

from caregiver_topics import pipeline_config as cfg

TOKEN_RE = re.compile(r"\w+(?:'\w+)*")
DIGIT_RE = r"\d"
LETTER_RE = r"[^\W\d_]"

STOPWORDS = frozenset(ENGLISH_STOP_WORDS)


def tokenize(df: pd.DataFrame, text_col="response", id_col="obs_id") -> pd.DataFrame:
    words = df[text_col].fillna("").astype(str).str.lower().str.findall(TOKEN_RE)
    tokens = (
        pd.DataFrame({id_col: df[id_col].values, "word": words.values})
        .explode("word")
        .dropna(subset=["word"])
        .reset_index(drop=True)
    )
    tokens["word"] = tokens["word"].astype(str)
    has_letter = tokens["word"].str.contains(LETTER_RE, regex=True)
    return tokens[has_letter].reset_index(drop=True)


def remove_stopwords(tokens: pd.DataFrame, stopwords=STOPWORDS) -> pd.DataFrame:
    return tokens[~tokens["word"].isin(stopwords)].reset_index(drop=True)


def remove_numeric(tokens: pd.DataFrame) -> pd.DataFrame:
    return tokens[~tokens["word"].str.contains(DIGIT_RE, regex=True)].reset_index(drop=True)


def term_frequencies(tokens: pd.DataFrame) -> pd.Series:
    return tokens["word"].value_counts()


def prune_rare(tokens: pd.DataFrame, min_term_count=cfg.MIN_TERM_COUNT) -> pd.DataFrame:
    """Keep terms seen strictly more than `min_term_count` times overall."""
    counts = term_frequencies(tokens)
    keep = counts.index[counts > min_term_count]
    return tokens[tokens["word"].isin(keep)].reset_index(drop=True)


def build_tokens(df: pd.DataFrame, config=None) -> pd.DataFrame:
    config = config or cfg.AnalysisConfig()

    tokens = tokenize(df)
    print(f"  Raw tokens:        {len(tokens):,}", flush=True)

    tokens = remove_stopwords(tokens)
    tokens = remove_numeric(tokens)
    print(f"  After stop/digits: {len(tokens):,} ({tokens['word'].nunique():,} terms)", flush=True)

    tokens = prune_rare(tokens, config.min_term_count)
    print(f"  After pruning:     {len(tokens):,} ({tokens['word'].nunique():,} terms)", flush=True)

    if len(tokens) == 0:
        raise RuntimeError(f"Empty vocabulary: no term occurs more than {config.min_term_count} times")
    return tokens
