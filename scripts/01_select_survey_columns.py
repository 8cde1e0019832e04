"""
01_select_survey_columns.py

Read the raw survey export and keep only the analysis columns.

Inputs:
  - data/raw/caregiver_survey.sav  (or --input; .sav / .dta / .parquet / .csv)

Outputs:
  - data/processed/01_survey_selected.parquet
"""

import argparse
from pathlib import Path

from caregiver_topics import pipeline_config as cfg
from caregiver_topics.survey import load_survey, select_columns

# --------------------------------------------------
# Arguments
# --------------------------------------------------

parser = argparse.ArgumentParser()
parser.add_argument("--input", type=Path, default=cfg.RAW_SURVEY_PATH)
parser.add_argument("--output", type=Path, default=cfg.SELECTED_PATH)
args = parser.parse_args()

# --------------------------------------------------
# Main
# --------------------------------------------------

def main():
    print(f"Loading survey export: {args.input}")
    raw = load_survey(args.input)
    print(f"  Raw shape: {raw.shape[0]:,} rows x {raw.shape[1]:,} columns")

    df = select_columns(raw)
    print(f"  Selected {df.shape[1]} columns")

    args.output.parent.mkdir(parents=True, exist_ok=True)
    df.to_parquet(args.output)
    print(f"Saved: {args.output}")


if __name__ == "__main__":
    main()
