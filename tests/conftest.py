import numpy as np
import pandas as pd
import pytest
import scipy.sparse as sp

from caregiver_topics import pipeline_config as cfg


def raw_row(cid, ts, text, lang="EN", race=None, gad=(1, 2), phq=(1, 1),
            stress=3, lonely=2, fussy=2, fear=1, poverty=np.nan):
    row = {
        cfg.ID_COL: cid,
        cfg.LANGUAGE_COL: lang,
        cfg.TIMESTAMP_COL: pd.Timestamp(ts),
        cfg.TEXT_COL: text,
        "GAD2.a": gad[0], "GAD2.b": gad[1],
        "PHQ2.a": phq[0], "PHQ2.b": phq[1],
        "STRESS.001": stress, "LONELY.001": lonely,
        "CHILD.fussy": fussy, "CHILD.fear": fear,
        "POV.001": poverty,
    }
    for col in cfg.RACE_COLS:
        row[col] = np.nan
    for col in ([race] if isinstance(race, str) else (race or [])):
        row[col] = 1
    return row


def make_raw(rows):
    return pd.DataFrame(rows)[cfg.RAW_COLUMNS]


@pytest.fixture
def raw_survey():
    """3 caregivers x 2 waves; caregiver 102's first wave is a placeholder."""
    return make_raw([
        raw_row("101", "2020-05-03", "Worried about daycare and work.\nHard week.",
                race="RACE.black", poverty=1, gad=(2, 3), stress=4),
        raw_row("102", "2020-05-10", "n/a.", race="RACE.white", poverty=0,
                gad=(0, 0), phq=(0, 1), stress=1, lonely=1),
        raw_row("103", "2020-06-01", "Money is tight, work hours cut.",
                race="RACE.asian", gad=(1, 1), phq=(2, 2), fussy=3, fear=2),
        raw_row("101", "2020-07-15", "Daycare reopened, less worried about work.",
                gad=(1, 0), phq=(0, 0), stress=2, lonely=3, fussy=1, fear=0),
        raw_row("102", "2020-06-20", "Child misses friends, daycare closed.",
                gad=(3, 3), phq=(2, 3), stress=4, lonely=4, fussy=4, fear=3),
        raw_row("103", "2020-08-02", "Work from home with kids is hard.",
                poverty=1, gad=(2, 1), phq=(1, 0), stress=3, lonely=0, fussy=0, fear=2),
    ])


def planted_corpus(n_docs=80, n_terms=50, doc_len=40, seed=0):
    """Documents drawn from two topics with disjoint halves of the vocabulary."""
    rng = np.random.default_rng(seed)
    half = n_terms // 2
    X = np.zeros((n_docs, n_terms), dtype=np.int64)
    for d in range(n_docs):
        lo, hi = (0, half) if d % 2 == 0 else (half, n_terms)
        words = rng.integers(lo, hi, size=doc_len)
        np.add.at(X[d], words, 1)
    return X


@pytest.fixture
def corpus():
    return sp.csr_matrix(planted_corpus())


@pytest.fixture
def fast_config():
    return cfg.AnalysisConfig(max_em_its=40, em_block=5, em_tol=1e-6, n_jobs=1)


@pytest.fixture
def make_corpus():
    return planted_corpus
