"""
pipeline_config.py

Shared paths and analysis settings for the caregiver open-text pipeline.
Stage scripts import this module; change BASE_DIR via CAREGIVER_TOPICS_DIR.
The variable must be set before the first import: the path constants and
the function defaults built from them are bound at import time.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd

# ------------------------------------------------------------------
# Paths
# ------------------------------------------------------------------
BASE_DIR = Path(os.environ.get("CAREGIVER_TOPICS_DIR", "."))

RAW_DIR = BASE_DIR / "data" / "raw"
PROCESSED_DIR = BASE_DIR / "data" / "processed"
MODEL_DIR = BASE_DIR / "models"

RAW_SURVEY_PATH = RAW_DIR / "caregiver_survey.sav"

SELECTED_PATH = PROCESSED_DIR / "01_survey_selected.parquet"
ANALYSIS_PATH = PROCESSED_DIR / "02_analysis_table.parquet"
STANDARDIZATION_PATH = PROCESSED_DIR / "02_standardization.csv"
DTM_PATH = PROCESSED_DIR / "03_dtm.npz"
VOCAB_PATH = PROCESSED_DIR / "03_vocab.csv"
META_PATH = PROCESSED_DIR / "03_meta.parquet"
TOKENS_PATH = PROCESSED_DIR / "03_tokens.parquet"
HELDOUT_PATH = PROCESSED_DIR / "03_heldout.joblib"
SEARCHK_PATH = MODEL_DIR / "04_searchk.parquet"
FINAL_MODEL_PATH = MODEL_DIR / "05_final_model.joblib"
EFFECTS_PATH = MODEL_DIR / "05_prevalence_effects.parquet"

# ------------------------------------------------------------------
# Raw survey schema
# ------------------------------------------------------------------
ID_COL = "CaregiverID"
LANGUAGE_COL = "UserLanguage"
TIMESTAMP_COL = "EndDate"
TEXT_COL = "OPEN.001"

# Priority order matters: the first indicator set decides the label.
RACE_PRIORITY = [
    ("RACE.black", "Black"),
    ("RACE.white", "White"),
    ("RACE.asian", "Other"),
    ("RACE.aian", "Other"),
    ("RACE.nhpi", "Other"),
    ("RACE.other", "Other"),
]
RACE_COLS = [col for col, _ in RACE_PRIORITY]

ITEM_RENAMES = {
    ID_COL: "caregiver_id",
    LANGUAGE_COL: "language",
    TIMESTAMP_COL: "submitted_at",
    TEXT_COL: "response",
    "GAD2.a": "anxiety_1",
    "GAD2.b": "anxiety_2",
    "PHQ2.a": "depression_1",
    "PHQ2.b": "depression_2",
    "STRESS.001": "stress",
    "LONELY.001": "lonely",
    "CHILD.fussy": "fussy",
    "CHILD.fear": "fearful",
    "POV.001": "poverty",
}

RAW_COLUMNS = [ID_COL, LANGUAGE_COL, TIMESTAMP_COL] + RACE_COLS + [
    "GAD2.a", "GAD2.b", "PHQ2.a", "PHQ2.b",
    "STRESS.001", "LONELY.001", "CHILD.fussy", "CHILD.fear",
    "POV.001", TEXT_COL,
]

# Fields captured once per caregiver and shared across all their waves
CAREGIVER_CONSTANTS = ["race", "poverty"]

# ------------------------------------------------------------------
# Well-being constructs
# ------------------------------------------------------------------
CONSTRUCT_ITEMS = {
    "anxiety": ["anxiety_1", "anxiety_2"],
    "depression": ["depression_1", "depression_2"],
    "stress": ["stress"],
    "lonely": ["lonely"],
    "fussy": ["fussy"],
    "fearful": ["fearful"],
}
COMPOSITE_GROUPS = {
    "parent_wb": ["anxiety", "depression", "stress", "lonely"],
    "child_wb": ["fussy", "fearful"],
}

# ------------------------------------------------------------------
# Free-text filtering
# ------------------------------------------------------------------
ANALYSIS_LANGUAGE = "EN"

# Exact, case-sensitive matches only
PLACEHOLDER_RESPONSES = frozenset([
    "N/A", "n/a", "N/a", "n/A", "N/A.", "n/a.", "N/a.",
    "NA", "na", "Na", "NA.", "na.", "N.A.", "n.a.",
    "None", "none", "NONE", "None.", "none.",
    "No", "no", "NO", "No.", "no.",
    "Nope", "nope", "NOPE", "Nope.", "nope.",
    "Nothing", "nothing", "Nothing.", "nothing.",
    "Not applicable", "not applicable",
    "No comment", "no comment", "No comments", "no comments",
    "-", ".", "..", "...", "?",
])

MIN_TERM_COUNT = 20

# ------------------------------------------------------------------
# Topic models
# ------------------------------------------------------------------
EPOCH = pd.Timestamp("2020-04-01")
CANDIDATE_KS = [5, 10, 20, 30, 40, 50, 60, 70, 80, 100]
FINAL_K = 20
RANDOM_STATE = 8458159
MAX_EM_ITS = 500
EM_TOL = 1e-5
MONTH_SPLINE_DF = 5


@dataclass(frozen=True)
class AnalysisConfig:
    """Tunables passed through the stage functions."""

    analysis_language: str = ANALYSIS_LANGUAGE
    epoch: pd.Timestamp = EPOCH
    placeholders: frozenset = PLACEHOLDER_RESPONSES
    min_term_count: int = MIN_TERM_COUNT
    ks: tuple = tuple(CANDIDATE_KS)
    final_k: int = FINAL_K
    seed: int = RANDOM_STATE
    heldout_fraction: float = 0.1
    heldout_proportion: float = 0.5
    max_em_its: int = MAX_EM_ITS
    em_tol: float = EM_TOL
    em_block: int = 10
    init: str = "spectral"
    month_spline_df: int = MONTH_SPLINE_DF
    n_jobs: int = -1
    construct_items: dict = field(default_factory=lambda: dict(CONSTRUCT_ITEMS))
    composite_groups: dict = field(default_factory=lambda: dict(COMPOSITE_GROUPS))
