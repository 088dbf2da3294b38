#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Unified runner for the party-classification experiments.

- Run from project root after `pip install -e .`.
- `--mode polarization` (default): per-term train/test classification for
  each penalty, with plots and summary tables under --results-dir.
- `--mode tune`: nested cross-validation of the registry grids on the
  pooled (optionally balanced) corpus.
"""

from __future__ import annotations

import argparse
import json
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional

from parlitext.core.cross_validation import nested_cv
from parlitext.experiments.experimental_pipeline import ExperimentalPipeline
from parlitext.models.models_registry import get_factory_and_grid
from parlitext.prepare_dataset import balance_by_term, filter_parties, load_corpus

PENALTIES = ["lasso", "ridge", "elasticnet"]


# -----------------------------
# Utilities
# -----------------------------
def _parse_terms(values: Optional[List[str]]):
    if not values:
        return None
    return [int(v) if v.isdigit() else v for v in values]


def _run_tuning(args: argparse.Namespace, penalties: List[str]) -> Dict[str, Any]:
    print("============================================================")
    print("Nested-CV tuning per penalty")
    print("============================================================")
    df = load_corpus(args.data)
    df = filter_parties(df, parties=args.parties, top_n=None if args.parties else args.top_parties)
    if args.balance:
        df = balance_by_term(df, "party", random_state=args.seed)
    X = df["text"].astype(str).tolist()
    y = df["party"].astype(str).to_numpy()
    print(f"[data] rows={len(df)}, balance={dict(Counter(y))}")

    results: Dict[str, Any] = {}
    for penalty in penalties:
        print("============================================================")
        print(f"Tuning hyperparameters for: {penalty}")
        print("============================================================")
        print(f"Outer folds: {args.outer_k}, Inner folds: {args.inner_k}")
        print(f"Fast mode: {args.fast}")
        factory, grid = get_factory_and_grid(penalty, fast=args.fast)
        results[penalty] = nested_cv(
            X,
            y,
            outer_k=args.outer_k,
            inner_k=args.inner_k,
            estimator_factory=factory,
            param_grid=grid,
            seed=args.seed,
        )

    args.results_dir.mkdir(parents=True, exist_ok=True)
    out_path = args.results_dir / "tuning_summary.json"
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(results, f, ensure_ascii=False, indent=2, default=str)
    print(f"Saved summary: {out_path}")
    return results


# -----------------------------
# Main
# -----------------------------
def main() -> None:
    ap = argparse.ArgumentParser(description="Classify parties from speeches, term by term")
    ap.add_argument("--data", type=Path, required=True, help="Speech corpus (csv, tsv, parquet, feather, pkl, json)")
    ap.add_argument("--results-dir", type=Path, default=Path("results"))
    ap.add_argument("--mode", choices=["polarization", "tune"], default="polarization")
    ap.add_argument("--penalty", choices=PENALTIES + ["all"], default="all")
    ap.add_argument("--alpha", type=float, default=None, help="Elastic-net mixing weight (default 0.5)")
    ap.add_argument("--parties", nargs="+", default=None, help="Parties to compare")
    ap.add_argument("--top-parties", type=int, default=2, help="Keep the N largest parties when --parties is not given")
    ap.add_argument("--terms", nargs="+", default=None, help="Restrict to these legislative terms")
    ap.add_argument("--test-size", type=float, default=0.2)
    ap.add_argument("--folds", type=int, default=5, help="CV folds for choosing lambda")
    ap.add_argument("--lambda-rule", choices=["min", "1se"], default="min")
    ap.add_argument("--measure", choices=["deviance", "class", "f1"], default="deviance")
    ap.add_argument("--no-balance", dest="balance", action="store_false")
    ap.add_argument("--stem", action="store_true", help="Snowball-stem tokens")
    ap.add_argument("--ngrams", type=int, default=1, help="Use 1..N-grams")
    ap.add_argument("--min-docfreq", type=int, default=2)
    ap.add_argument("--tune", action="store_true", help="Also run pooled nested-CV tuning in polarization mode")
    ap.add_argument("--outer_k", type=int, default=3)
    ap.add_argument("--inner_k", type=int, default=2)
    ap.add_argument("--seed", type=int, default=42)
    ap.add_argument("--fast", action="store_true")

    args = ap.parse_args()
    penalties = PENALTIES if args.penalty == "all" else [args.penalty]

    if args.mode == "tune":
        _run_tuning(args, penalties)
        return

    pipeline = ExperimentalPipeline(
        data_path=args.data,
        results_dir=args.results_dir,
        parties=args.parties,
        top_n_parties=args.top_parties,
        penalties=penalties,
        alpha=args.alpha,
        terms=_parse_terms(args.terms),
        test_size=args.test_size,
        cv_folds=args.folds,
        lambda_rule=args.lambda_rule,
        measure=args.measure,
        balance=args.balance,
        dfm_params={"stem": args.stem, "ngrams": (1, args.ngrams), "min_docfreq": args.min_docfreq},
        random_state=args.seed,
        fast=args.fast,
        include_tuning=args.tune,
    )
    out_path = pipeline.run_complete_pipeline()
    print(f"Saved results: {out_path}")


if __name__ == "__main__":
    main()
