"""
survey.py

Load the raw caregiver survey export, project it to the analysis columns and
derive the observation-level fields (race, month offset, response sequence,
obs_id). Every function returns a new table.
"""

from pathlib import Path

import pandas as pd

from caregiver_topics import pipeline_config as cfg


# --------------------------------------------------
# Loading
# --------------------------------------------------

def load_survey(path) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Survey export not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".sav":
        return pd.read_spss(path, convert_categoricals=False)
    if suffix == ".dta":
        return pd.read_stata(path, convert_categoricals=False)
    if suffix == ".parquet":
        return pd.read_parquet(path)
    if suffix == ".csv":
        return pd.read_csv(path)
    raise ValueError(f"Unsupported survey format: {suffix}")


def select_columns(df: pd.DataFrame, columns=None) -> pd.DataFrame:
    """Project the export to the allow-listed columns, failing on any gap."""
    columns = list(columns if columns is not None else cfg.RAW_COLUMNS)

    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    return df[columns].copy()


# --------------------------------------------------
# Recoding
# --------------------------------------------------

def _is_set(s: pd.Series) -> pd.Series:
    return pd.to_numeric(s, errors="coerce").eq(1)


def derive_race(df: pd.DataFrame, priority=None) -> pd.DataFrame:
    """
    Map race indicator columns to one label by first match.

    Rows with several indicators set take the earliest one in `priority`;
    rows with none set stay missing.
    """
    priority = priority if priority is not None else cfg.RACE_PRIORITY

    race = pd.Series(pd.NA, index=df.index, dtype="string")
    # lowest priority first so earlier indicators overwrite later ones
    for col, label in reversed(priority):
        race = race.mask(_is_set(df[col]), label)

    out = df.copy()
    out["race"] = race
    return out


def rename_items(df: pd.DataFrame, renames=None) -> pd.DataFrame:
    renames = renames if renames is not None else cfg.ITEM_RENAMES
    if len(set(renames.values())) != len(renames):
        raise ValueError("Item renames must be one-to-one")
    return df.rename(columns=renames)


def floor_months(ts: pd.Timestamp, epoch: pd.Timestamp):
    """Whole calendar months from epoch to ts, floored (negative before epoch)."""
    if pd.isna(ts):
        return pd.NA
    months = (ts.year - epoch.year) * 12 + (ts.month - epoch.month)
    if ts < epoch + pd.DateOffset(months=months):
        months -= 1
    return months


def add_month(df: pd.DataFrame, epoch=None, ts_col="submitted_at") -> pd.DataFrame:
    epoch = pd.Timestamp(epoch if epoch is not None else cfg.EPOCH)
    if epoch.tz is not None:
        epoch = epoch.tz_convert(None)
    out = df.copy()
    stamps = pd.to_datetime(out[ts_col])
    # month offsets are taken on naive UTC wall time
    if stamps.dt.tz is not None:
        stamps = stamps.dt.tz_convert(None)
    out[ts_col] = stamps
    out["month"] = pd.array(
        [floor_months(ts, epoch) for ts in stamps], dtype="Int64"
    )
    return out


def add_response_sequence(df: pd.DataFrame, id_col="caregiver_id",
                          ts_col="submitted_at") -> pd.DataFrame:
    """1-based chronological rank within caregiver; ties keep row order."""
    if df[id_col].isna().any():
        raise ValueError(f"{df[id_col].isna().sum()} rows have no {id_col}")

    out = df.copy()
    seq = out.groupby(id_col)[ts_col].rank(method="first", na_option="bottom")
    out["response_seq"] = seq.astype(int)
    return out


def add_obs_id(df: pd.DataFrame, id_col="caregiver_id") -> pd.DataFrame:
    out = df.copy()
    out["obs_id"] = out[id_col].astype(str) + "_" + out["response_seq"].astype(str)
    if out["obs_id"].duplicated().any():
        dupes = out.loc[out["obs_id"].duplicated(), "obs_id"].tolist()[:5]
        raise ValueError(f"obs_id is not unique, e.g. {dupes}")
    return out


def fill_caregiver_constants(df: pd.DataFrame, columns=None,
                             id_col="caregiver_id") -> pd.DataFrame:
    """Spread once-captured fields to every wave of the same caregiver."""
    columns = columns if columns is not None else cfg.CAREGIVER_CONSTANTS

    out = df.sort_values([id_col, "response_seq"], kind="mergesort")
    for col in columns:
        out[col] = out.groupby(id_col)[col].transform(lambda s: s.ffill().bfill())
    return out.reindex(df.index)


def recode(df: pd.DataFrame, config=None) -> pd.DataFrame:
    """Raw selected export -> observation table with derived fields."""
    config = config or cfg.AnalysisConfig()

    out = derive_race(df)
    out = out.drop(columns=cfg.RACE_COLS)
    out = rename_items(out)
    out = add_month(out, epoch=config.epoch)
    out = add_response_sequence(out)
    out = add_obs_id(out)
    out = fill_caregiver_constants(out)
    return out
