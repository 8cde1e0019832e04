import numpy as np
import pandas as pd
import pytest

from caregiver_topics.composites import (
    StandardizationStats,
    apply_composites,
    average_constructs,
    population_stats,
    score,
)

ITEMS = {"anxiety": ["a1", "a2"], "stress": ["s"], "fussy": ["f"]}
GROUPS = {"parent_wb": ["anxiety", "stress"], "child_wb": ["fussy"]}


def items_frame():
    return pd.DataFrame({
        "a1": [1.0, np.nan, 3.0, np.nan, 0.0],
        "a2": [3.0, 2.0, np.nan, np.nan, 0.0],
        "s":  [2.0, 4.0, 1.0, np.nan, 3.0],
        "f":  [1.0, np.nan, 2.0, 3.0, 0.0],
    })


def test_average_skips_missing_items():
    out = average_constructs(items_frame(), ITEMS)
    assert out["anxiety"].tolist()[:3] == [2.0, 2.0, 3.0]
    assert np.isnan(out.loc[3, "anxiety"])      # all items missing stays missing


def test_average_requires_items():
    with pytest.raises(ValueError, match="anxiety"):
        average_constructs(items_frame().drop(columns=["a2"]), ITEMS)


def test_zscores_have_mean_zero_sd_one():
    rng = np.random.default_rng(3)
    df = pd.DataFrame({"anxiety": rng.normal(7.0, 2.5, size=500),
                       "stress": rng.normal(-1.0, 0.3, size=500),
                       "fussy": rng.normal(0.0, 10.0, size=500)})
    stats = population_stats(df, ["anxiety", "stress", "fussy"])
    out = apply_composites(df, stats, GROUPS)
    for col in ["anxiety_z", "stress_z", "fussy_z"]:
        assert out[col].mean() == pytest.approx(0.0, abs=1e-10)
        assert out[col].std(ddof=1) == pytest.approx(1.0)


def test_stats_ignore_missing_values():
    df = pd.DataFrame({"x": [1.0, np.nan, 3.0]})
    stats = population_stats(df, ["x"])
    assert stats.mean["x"] == 2.0
    assert stats.sd["x"] == pytest.approx(np.sqrt(2.0))


def test_constant_construct_is_rejected():
    with pytest.raises(ValueError, match="zero"):
        population_stats(pd.DataFrame({"x": [1.0, 1.0, 1.0]}), ["x"])


def test_composite_is_negated_mean_of_zscores():
    out, stats = score(items_frame(), _config())

    z_anx = (out["anxiety"] - stats.mean["anxiety"]) / stats.sd["anxiety"]
    z_str = (out["stress"] - stats.mean["stress"]) / stats.sd["stress"]
    assert out.loc[0, "parent_wb"] == pytest.approx(-(z_anx[0] + z_str[0]) / 2)
    # row 3: anxiety missing, stress missing -> parent composite missing
    assert np.isnan(out.loc[3, "parent_wb"])
    # row 1: child item missing -> child composite missing, parent defined
    assert np.isnan(out.loc[1, "child_wb"])
    assert out.loc[1, "parent_wb"] == pytest.approx(-(z_anx[1] + z_str[1]) / 2)


def test_composite_missing_iff_all_items_missing():
    out, _ = score(items_frame(), _config())
    parent_items_missing = items_frame()[["a1", "a2", "s"]].isna().all(axis=1)
    assert (out["parent_wb"].isna() == parent_items_missing).all()


def test_higher_distress_means_lower_wellbeing():
    df = pd.DataFrame({"a1": [0.0, 3.0], "a2": [0.0, 3.0], "s": [0.0, 4.0], "f": [0.0, 4.0]})
    out, _ = score(df, _config())
    assert out.loc[0, "parent_wb"] > out.loc[1, "parent_wb"]
    assert out.loc[0, "child_wb"] > out.loc[1, "child_wb"]


def test_frozen_stats_are_reused():
    stats = StandardizationStats(mean=pd.Series({"anxiety": 1.0, "stress": 0.0, "fussy": 0.0}),
                                 sd=pd.Series({"anxiety": 2.0, "stress": 1.0, "fussy": 1.0}))
    df = pd.DataFrame({"anxiety": [3.0], "stress": [1.0], "fussy": [-1.0]})
    out = apply_composites(df, stats, GROUPS)
    assert out.loc[0, "anxiety_z"] == 1.0
    assert out.loc[0, "parent_wb"] == -1.0
    assert out.loc[0, "child_wb"] == 1.0

    frame = stats.to_frame()
    assert StandardizationStats.from_frame(frame).sd["anxiety"] == 2.0


def _config():
    from caregiver_topics.pipeline_config import AnalysisConfig
    return AnalysisConfig(construct_items=ITEMS, composite_groups=GROUPS)
