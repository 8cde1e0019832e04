"""
03_build_dtm.py

Tokenize the cleaned responses, build the document-term matrix, align the
metadata to its rows and set up the held-out split.

Inputs:
  - data/processed/02_analysis_table.parquet

Outputs:
  - data/processed/03_dtm.npz
  - data/processed/03_vocab.csv
  - data/processed/03_meta.parquet
  - data/processed/03_tokens.parquet
  - data/processed/03_heldout.joblib
"""

import argparse
from pathlib import Path

import pandas as pd

from caregiver_topics import pipeline_config as cfg
from caregiver_topics.dtm import build_bundle
from caregiver_topics.heldout import make_heldout
from caregiver_topics.tokens import build_tokens

# --------------------------------------------------
# Arguments
# --------------------------------------------------

parser = argparse.ArgumentParser()
parser.add_argument("--input", type=Path, default=cfg.ANALYSIS_PATH)
parser.add_argument("--min-term-count", type=int, default=cfg.MIN_TERM_COUNT)
parser.add_argument("--seed", type=int, default=cfg.RANDOM_STATE)
args = parser.parse_args()

# --------------------------------------------------
# Main
# --------------------------------------------------

def main():
    config = cfg.AnalysisConfig(min_term_count=args.min_term_count, seed=args.seed)

    analysis = pd.read_parquet(args.input)
    print(f"Loaded {len(analysis):,} responses from {args.input}")

    print("\nTokenizing ...")
    tokens = build_tokens(analysis, config)

    print("\nBuilding document-term matrix ...")
    bundle = build_bundle(analysis, tokens)

    assert set(bundle.obs_ids) == set(bundle.meta["obs_id"]), \
        "matrix rows and metadata obs_id differ"

    print("\nHeld-out split ...")
    heldout = make_heldout(
        bundle.X,
        fraction=config.heldout_fraction,
        proportion=config.heldout_proportion,
        seed=config.seed,
    )

    bundle.save()
    heldout.save()

    print(f"\nSaved: {cfg.DTM_PATH}")
    print(f"Saved: {cfg.VOCAB_PATH} ({len(bundle.vocab):,} terms)")
    print(f"Saved: {cfg.META_PATH}")
    print(f"Saved: {cfg.TOKENS_PATH}")
    print(f"Saved: {cfg.HELDOUT_PATH}")


if __name__ == "__main__":
    main()
