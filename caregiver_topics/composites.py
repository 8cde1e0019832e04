"""
composites.py

Parent and child well-being composites.

Two passes:
  1. average each construct's items and compute population mean / SD
     over the table handed in (the pre-text-filter sample),
  2. z-score every construct with those frozen statistics and take the
     negated group mean, so higher = better well-being.

Missing items are skipped; a construct or composite with nothing to
average stays NaN.
"""

from dataclasses import dataclass

import pandas as pd

from caregiver_topics import pipeline_config as cfg


@dataclass(frozen=True)
class StandardizationStats:
    mean: pd.Series
    sd: pd.Series

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"mean": self.mean, "sd": self.sd}).rename_axis("construct")

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "StandardizationStats":
        return cls(mean=df["mean"], sd=df["sd"])


def average_constructs(df: pd.DataFrame, construct_items=None) -> pd.DataFrame:
    construct_items = construct_items or cfg.CONSTRUCT_ITEMS

    out = df.copy()
    for construct, items in construct_items.items():
        missing = [c for c in items if c not in df.columns]
        if missing:
            raise ValueError(f"Missing items for {construct}: {missing}")
        values = df[items].apply(pd.to_numeric, errors="coerce")
        out[construct] = values.mean(axis=1, skipna=True)
    return out


def population_stats(df: pd.DataFrame, constructs) -> StandardizationStats:
    values = df[list(constructs)].astype(float)
    mean = values.mean()
    sd = values.std(ddof=1)

    bad = sd[~(sd > 0)].index.tolist()
    if bad:
        raise ValueError(f"Standard deviation is zero or undefined for: {bad}")

    return StandardizationStats(mean=mean, sd=sd)


def apply_composites(df: pd.DataFrame, stats: StandardizationStats,
                     composite_groups=None) -> pd.DataFrame:
    composite_groups = composite_groups or cfg.COMPOSITE_GROUPS

    out = df.copy()
    for construct in stats.mean.index:
        out[f"{construct}_z"] = (out[construct].astype(float) - stats.mean[construct]) / stats.sd[construct]

    for composite, constructs in composite_groups.items():
        z_cols = [f"{c}_z" for c in constructs]
        out[composite] = -1 * out[z_cols].mean(axis=1, skipna=True)
    return out


def score(df: pd.DataFrame, config=None):
    """Averages, frozen population statistics and composites in one call."""
    config = config or cfg.AnalysisConfig()

    out = average_constructs(df, config.construct_items)
    constructs = [c for group in config.composite_groups.values() for c in group]
    stats = population_stats(out, constructs)
    out = apply_composites(out, stats, config.composite_groups)
    return out, stats
