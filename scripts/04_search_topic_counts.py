"""
04_search_topic_counts.py

Fit one topic model per candidate K in parallel and save the diagnostics
(exclusivity, semantic coherence, held-out likelihood, residual dispersion,
bound, lbound, iterations). Failed fits are kept as rows with status "failed".

Inputs:
  - data/processed/03_dtm.npz, 03_vocab.csv, 03_meta.parquet, 03_tokens.parquet
  - data/processed/03_heldout.joblib

Outputs:
  - models/04_searchk.parquet
"""

import argparse
from pathlib import Path

from caregiver_topics import pipeline_config as cfg
from caregiver_topics.dtm import DocumentTermBundle
from caregiver_topics.heldout import HeldoutSplit
from caregiver_topics.sweep import search_k, summarize

# --------------------------------------------------
# Arguments
# --------------------------------------------------

parser = argparse.ArgumentParser()
parser.add_argument("--ks", type=int, nargs="+", default=cfg.CANDIDATE_KS)
parser.add_argument("--n-jobs", type=int, default=-1)
parser.add_argument("--seed", type=int, default=cfg.RANDOM_STATE)
parser.add_argument("--output", type=Path, default=cfg.SEARCHK_PATH)
args = parser.parse_args()

# --------------------------------------------------
# Main
# --------------------------------------------------

def main():
    config = cfg.AnalysisConfig(ks=tuple(args.ks), n_jobs=args.n_jobs, seed=args.seed)

    bundle = DocumentTermBundle.load()
    heldout = HeldoutSplit.load()
    print(f"Loaded DTM {bundle.X.shape[0]:,} x {bundle.X.shape[1]:,}, "
          f"{len(heldout.index):,} held-out documents")

    print("\nSearching K ...")
    results = search_k(heldout.train, heldout, vocab=bundle.vocab, config=config)

    args.output.parent.mkdir(parents=True, exist_ok=True)
    results.to_parquet(args.output)

    print("\n" + "=" * 72)
    print("SUMMARY: searchK")
    print("=" * 72)
    print(summarize(results).drop(columns=["error"]).round(3).to_string(index=False))
    n_failed = (results["status"] != "ok").sum()
    if n_failed:
        print(f"\n  {n_failed} of {len(results)} fits failed")
    print("=" * 72)
    print(f"Saved: {args.output}")


if __name__ == "__main__":
    main()
