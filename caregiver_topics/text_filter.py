"""
text_filter.py

Free-text normalization and the row filters that define the analysis
sample. The steps run in a fixed order over the whole table; composites
must already be computed (their standardization uses the unfiltered rows).
"""

import pandas as pd

from caregiver_topics import pipeline_config as cfg

LINE_BREAK_RE = r"\r\n|\r|\n"


def normalize_line_breaks(df: pd.DataFrame, text_col="response") -> pd.DataFrame:
    out = df.copy()
    out[text_col] = out[text_col].str.replace(LINE_BREAK_RE, " ", regex=True)
    return out


def drop_placeholders(df: pd.DataFrame, placeholders=None, text_col="response") -> pd.DataFrame:
    """Drop rows whose whole response is a placeholder (exact match only)."""
    placeholders = placeholders if placeholders is not None else cfg.PLACEHOLDER_RESPONSES
    mask = df[text_col].isin(placeholders)
    return df[~mask].copy()


def drop_empty(df: pd.DataFrame, text_col="response") -> pd.DataFrame:
    text = df[text_col]
    mask = text.notna() & (text.astype("string") != "")
    return df[mask.fillna(False).astype(bool)].copy()


def keep_language(df: pd.DataFrame, language=None, lang_col="language") -> pd.DataFrame:
    language = language if language is not None else cfg.ANALYSIS_LANGUAGE
    return df[df[lang_col] == language].copy()


def drop_missing_composites(df: pd.DataFrame, composites=None) -> pd.DataFrame:
    composites = list(composites if composites is not None else cfg.COMPOSITE_GROUPS)
    return df.dropna(subset=composites).copy()


def filter_responses(df: pd.DataFrame, config=None) -> pd.DataFrame:
    config = config or cfg.AnalysisConfig()

    steps = [
        ("line breaks", normalize_line_breaks),
        ("placeholders", lambda d: drop_placeholders(d, config.placeholders)),
        ("empty text", drop_empty),
        ("language", lambda d: keep_language(d, config.analysis_language)),
        ("missing composites", lambda d: drop_missing_composites(d, config.composite_groups)),
    ]

    out = df
    for name, step in steps:
        before = len(out)
        out = step(out)
        print(f"  {name:<20s} {before:>8,} -> {len(out):>8,}", flush=True)

    if len(out) == 0:
        raise RuntimeError("No responses left after text filtering")
    return out.reset_index(drop=True)
