"""
02_clean_survey.py

Recode the selected survey table, build well-being composites and apply the
free-text filters.

Order:
  1. race / renames / month / response sequence / obs_id / carry fill
  2. construct averages, z-scores and composites
     (standardized over ALL recoded rows, before any text filtering)
  3. line breaks -> placeholders -> empty text -> language -> composites

Inputs:
  - data/processed/01_survey_selected.parquet

Outputs:
  - data/processed/02_analysis_table.parquet
  - data/processed/02_standardization.csv
"""

import argparse
from pathlib import Path

import pandas as pd

from caregiver_topics import pipeline_config as cfg
from caregiver_topics.composites import score
from caregiver_topics.survey import recode
from caregiver_topics.text_filter import filter_responses

# --------------------------------------------------
# Arguments
# --------------------------------------------------

parser = argparse.ArgumentParser()
parser.add_argument("--input", type=Path, default=cfg.SELECTED_PATH)
parser.add_argument("--output", type=Path, default=cfg.ANALYSIS_PATH)
parser.add_argument("--stats-output", type=Path, default=cfg.STANDARDIZATION_PATH)
parser.add_argument("--language", default=cfg.ANALYSIS_LANGUAGE)
args = parser.parse_args()

# --------------------------------------------------
# Main
# --------------------------------------------------

def main():
    config = cfg.AnalysisConfig(analysis_language=args.language)

    df = pd.read_parquet(args.input)
    print(f"Loaded {len(df):,} survey rows from {args.input}")

    print("\nRecoding ...")
    df = recode(df, config)
    print(f"  Caregivers: {df['caregiver_id'].nunique():,}")
    print(f"  Waves per caregiver (max): {df['response_seq'].max()}")
    print(f"  Race: {df['race'].value_counts(dropna=False).to_dict()}")

    print("\nScoring composites ...")
    df, stats = score(df, config)
    print(stats.to_frame().round(3).to_string())

    print("\nFiltering responses ...")
    df = filter_responses(df, config)

    args.output.parent.mkdir(parents=True, exist_ok=True)
    df.to_parquet(args.output)
    stats.to_frame().to_csv(args.stats_output)

    print(f"\nSaved: {args.output} ({len(df):,} rows)")
    print(f"Saved: {args.stats_output}")


if __name__ == "__main__":
    main()
