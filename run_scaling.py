#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Place the speakers of a debate transcript on one ideological dimension.

Wordfish always runs; Wordscores runs when reference positions are given,
e.g. `--reference TRUMP=1 CLINTON=-1`, and is then compared with Wordfish.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Dict, List, Optional

import matplotlib

matplotlib.use("Agg")

from parlitext.experiments.scaling import ScalingExperiment
from parlitext.experiments.visualization import plot_document_positions, plot_word_positions


def _parse_references(values: Optional[List[str]]) -> Dict[str, float]:
    refs: Dict[str, float] = {}
    for item in values or []:
        speaker, sep, score = item.rpartition("=")
        if not sep or not speaker:
            raise argparse.ArgumentTypeError(f"Reference must look like SPEAKER=score, got '{item}'")
        refs[speaker.strip()] = float(score)
    return refs


def main() -> None:
    ap = argparse.ArgumentParser(description="Wordfish / Wordscores scaling of a debate transcript")
    ap.add_argument("transcript", type=Path, help="Plain-text transcript with 'SPEAKER: text' turns")
    ap.add_argument("--results-dir", type=Path, default=Path("results/scaling"))
    ap.add_argument("--unit", choices=["speaker", "turn"], default="speaker")
    ap.add_argument("--exclude", nargs="*", default=[], help="Speaker labels to drop (moderators, audience)")
    ap.add_argument("--min-words", type=int, default=50)
    ap.add_argument("--min-termfreq", type=int, default=2)
    ap.add_argument("--stem", action="store_true")
    ap.add_argument("--dir", nargs=2, default=None, metavar=("LOW", "HIGH"),
                    help="Two speakers; the first gets the lower Wordfish position")
    ap.add_argument("--reference", nargs="*", default=None, metavar="SPEAKER=SCORE")
    ap.add_argument("--rescaling", choices=["none", "lbg", "mv"], default="lbg")
    ap.add_argument("--highlight", nargs="*", default=[], help="Words to label in the word-position plot")
    ap.add_argument("--quiet", action="store_true")

    args = ap.parse_args()

    exp = ScalingExperiment(
        unit=args.unit,
        exclude_speakers=args.exclude,
        min_words=args.min_words,
        dfm_params={"stem": args.stem},
        min_termfreq=args.min_termfreq,
        wordfish_dir=tuple(args.dir) if args.dir else None,
        reference_scores=_parse_references(args.reference),
        rescaling=args.rescaling,
        verbose=not args.quiet,
    )
    results = exp.run_complete_pipeline(args.transcript)

    plot_document_positions(results["wordfish"], args.results_dir, title="Wordfish positions",
                            filename="wordfish_positions.png")
    plot_word_positions(exp.wordfish.features_frame(), args.highlight, args.results_dir)
    if "wordscores" in results:
        plot_document_positions(results["wordscores"], args.results_dir, title="Wordscores positions",
                                filename="wordscores_positions.png")
    exp.save_results(args.results_dir)


if __name__ == "__main__":
    main()
