"""
05_fit_final_model.py

Fit the chosen K on the full document-term matrix and estimate how topic
prevalence varies with race, parent / child well-being, poverty and a smooth
function of month.

Inputs:
  - data/processed/03_dtm.npz, 03_vocab.csv, 03_meta.parquet, 03_tokens.parquet

Outputs:
  - models/05_final_model.joblib
  - models/05_prevalence_effects.parquet
"""

import argparse
from pathlib import Path

from caregiver_topics import pipeline_config as cfg
from caregiver_topics.dtm import DocumentTermBundle
from caregiver_topics.prevalence import fit_final_model
from caregiver_topics.topicmodel import top_terms

# --------------------------------------------------
# Arguments
# --------------------------------------------------

parser = argparse.ArgumentParser()
parser.add_argument("--k", type=int, default=cfg.FINAL_K)
parser.add_argument("--seed", type=int, default=cfg.RANDOM_STATE)
parser.add_argument("--output", type=Path, default=cfg.FINAL_MODEL_PATH)
parser.add_argument("--effects-output", type=Path, default=cfg.EFFECTS_PATH)
args = parser.parse_args()

# --------------------------------------------------
# Main
# --------------------------------------------------

def main():
    config = cfg.AnalysisConfig(final_k=args.k, seed=args.seed)

    bundle = DocumentTermBundle.load()
    print(f"Loaded DTM {bundle.X.shape[0]:,} x {bundle.X.shape[1]:,}")

    final = fit_final_model(bundle.X, bundle.meta, k=config.final_k,
                            vocab=bundle.vocab, config=config)

    print("\n  Topics (top 10 words):")
    for k, words in enumerate(top_terms(final.model, 10)):
        print(f"    Topic {k + 1:>3d}: {', '.join(words)}")

    final.save(args.output)
    args.effects_output.parent.mkdir(parents=True, exist_ok=True)
    final.effects.to_parquet(args.effects_output)

    print(f"\nSaved: {args.output}")
    print(f"Saved: {args.effects_output} ({len(final.effects):,} rows)")


if __name__ == "__main__":
    main()
