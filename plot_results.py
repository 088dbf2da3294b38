#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Standalone script to re-plot a saved experiment_results_*.json file
(the most recent one under --results-dir unless --file is given).
"""

import argparse
import json
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

from parlitext.experiments.polarization import party_metrics_frame, summarize
from parlitext.experiments.visualization import (
    export_summary_table,
    plot_confusion_matrices,
    plot_cv_curve,
    plot_party_f1,
    plot_polarization_trend,
)


def find_latest_results_file(results_dir: Path):
    """Find the most recent experiment results file"""
    experiment_files = list(results_dir.glob("experiment_results_*.json"))
    if not experiment_files:
        return None
    return max(experiment_files, key=lambda p: p.stat().st_mtime)


def main():
    ap = argparse.ArgumentParser(description="Plot saved party-classification results")
    ap.add_argument("--results-dir", type=Path, default=Path("results"))
    ap.add_argument("--file", type=Path, default=None, help="Explicit experiment_results_*.json")
    ap.add_argument("--metric", default="f1_macro")
    args = ap.parse_args()

    results_file = args.file or find_latest_results_file(args.results_dir)
    if results_file is None or not results_file.exists():
        print(f"Error: No experiment results files found in {args.results_dir}/")
        return

    print(f"Loading results from: {results_file}")
    with open(results_file, "r", encoding="utf-8") as f:
        data = json.load(f)
    if "polarization" not in data:
        print("Error: No polarization results found in the file")
        return

    results = data["polarization"]
    summary = summarize(results)
    if summary.empty:
        print("Error: every term failed; nothing to plot")
        return
    print(f"Found {len(summary)} fitted (term, penalty) pairs")

    out_dir = results_file.parent
    print("\nGenerating visualizations...")
    plot_polarization_trend(summary, out_dir, metric=args.metric)
    export_summary_table(summary, out_dir)

    party_metrics = party_metrics_frame(results)
    for penalty in summary["penalty"].unique():
        plot_party_f1(party_metrics, out_dir, penalty)
        plot_confusion_matrices(results["terms"], out_dir, penalty)
    for r in results["terms"]:
        if "cv" in r:
            plot_cv_curve(
                r["cv"], out_dir, r.get("lambda_min"), r.get("lambda_1se"),
                filename=f"cv_curve_{r['term']}_{r['penalty']}.png",
            )

    print("\nVisualization complete!")


if __name__ == "__main__":
    main()
