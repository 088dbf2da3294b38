#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Ideological Scaling of a Debate Transcript

Turns a plain-text debate transcript into one document per speaker (or per
turn), builds a dfm and places the documents on a single dimension with
Wordfish (unsupervised) and, when reference positions are given, with
Wordscores (semi-supervised). The two sets of estimates are then compared.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.stats import pearsonr, spearmanr

from ..core.dfm import Dfm, build_dfm, dfm_trim
from ..models.wordfish import Wordfish
from ..models.wordscores import Wordscores
from ..transcripts import read_transcript, speaker_documents

SCALING_DFM_PARAMS: Dict[str, Any] = {
    "stopwords": "english",
    "remove_numbers": True,
    "remove_punct": True,
    "stem": False,
    "min_docfreq": 1,
}


class ScalingExperiment:
    """
    Wordfish / Wordscores pipeline for one transcript.
    """

    def __init__(
        self,
        unit: str = "speaker",
        exclude_speakers: Sequence[str] = (),
        min_words: int = 50,
        dfm_params: Optional[Dict[str, Any]] = None,
        min_termfreq: int = 2,
        wordfish_dir: Optional[Tuple[Any, Any]] = None,
        reference_scores: Optional[Mapping[str, float]] = None,
        rescaling: str = "lbg",
        verbose: bool = True,
    ):
        """
        Args:
            unit: 'speaker' (one document per speaker) or 'turn'
            exclude_speakers: Labels to drop (moderators, audience)
            min_words: Drop documents shorter than this
            dfm_params: Options for build_dfm
            min_termfreq: Trim features rarer than this
            wordfish_dir: Two speaker labels (or row positions); the first
                gets the lower Wordfish position
            reference_scores: {speaker: position} for Wordscores
            rescaling: Wordscores rescaling ('none', 'lbg', 'mv')
        """
        if unit not in ("speaker", "turn"):
            raise ValueError("unit must be 'speaker' or 'turn'")
        self.unit = unit
        self.exclude_speakers = list(exclude_speakers)
        self.min_words = min_words
        self.dfm_params = {**SCALING_DFM_PARAMS, **(dfm_params or {})}
        self.min_termfreq = min_termfreq
        self.wordfish_dir = wordfish_dir
        self.reference_scores = dict(reference_scores or {})
        self.rescaling = rescaling
        self.verbose = verbose

        self.turns: Optional[pd.DataFrame] = None
        self.documents: Optional[pd.DataFrame] = None
        self.dfm: Optional[Dfm] = None
        self.wordfish: Optional[Wordfish] = None
        self.wordscores: Optional[Wordscores] = None
        self.results: Dict[str, Any] = {}

    def _log(self, msg: str):
        if self.verbose:
            print(msg)

    def load(self, path) -> pd.DataFrame:
        self.turns = read_transcript(path)
        self._log(f"[data] turns={len(self.turns)} speakers={self.turns['speaker'].nunique()}")
        return self.turns

    def build_documents(self, turns: Optional[pd.DataFrame] = None) -> pd.DataFrame:
        turns = turns if turns is not None else self.turns
        if turns is None:
            raise ValueError("No transcript loaded; call load() first")
        if self.unit == "speaker":
            docs = speaker_documents(turns, exclude=self.exclude_speakers, min_words=self.min_words)
            docs["docname"] = docs["speaker"]
        else:
            excluded = {s.upper() for s in self.exclude_speakers}
            docs = turns[~turns["speaker"].str.upper().isin(excluded)].copy()
            docs["n_words"] = docs["text"].str.split().str.len()
            docs = docs[docs["n_words"] >= self.min_words].reset_index(drop=True)
            docs["docname"] = [f"{s}_{t}" for s, t in zip(docs["speaker"], docs["turn"])]
        if len(docs) < 2:
            raise ValueError(f"Need at least two documents to scale, got {len(docs)}")
        self.documents = docs.reset_index(drop=True)
        self._log(f"[data] documents={len(self.documents)} unit={self.unit}")
        return self.documents

    def build_dfm(self) -> Dfm:
        if self.documents is None:
            self.build_documents()
        dfm = build_dfm(
            self.documents["text"].tolist(),
            docnames=self.documents["docname"].tolist(),
            docvars=self.documents[["speaker"]],
            **self.dfm_params,
        )
        dfm = dfm_trim(dfm, min_termfreq=self.min_termfreq)
        empty = dfm.row_sums() == 0
        if empty.any():
            dropped = [d for d, e in zip(dfm.docnames, empty) if e]
            print(f"[warn] dropping documents with no features left: {dropped}")
            dfm = dfm.subset(~empty)
        self.dfm = dfm
        self._log(f"[dfm] {dfm!r}")
        return dfm

    def _resolve_dir(self) -> Tuple[int, int]:
        if self.wordfish_dir is None:
            return (0, 1)
        idx = []
        for d in self.wordfish_dir:
            if isinstance(d, (int, np.integer)):
                idx.append(int(d))
                continue
            matches = [i for i, name in enumerate(self.dfm.docnames) if name == d]
            if not matches:
                matches = [i for i, s in enumerate(self.dfm.docvars["speaker"]) if s == d]
            if not matches:
                raise KeyError(f"wordfish_dir document '{d}' not found")
            idx.append(matches[0])
        return idx[0], idx[1]

    def run_wordfish(self, **kwargs: Any) -> pd.DataFrame:
        if self.dfm is None:
            self.build_dfm()
        self._log("\n" + "=" * 60)
        self._log("Wordfish")
        self._log("=" * 60)
        self.wordfish = Wordfish(dir=self._resolve_dir(), verbose=self.verbose, **kwargs).fit(self.dfm)
        est = self.wordfish.predict(interval="confidence")
        est.insert(0, "speaker", self.dfm.docvars["speaker"].to_numpy())
        self._log(f"[wordfish] iterations={self.wordfish.n_iter} converged={self.wordfish.converged}")
        self._log(est.sort_values("fit").to_string())
        self.results["wordfish"] = est
        return est

    def run_wordscores(self, **kwargs: Any) -> pd.DataFrame:
        if not self.reference_scores:
            raise ValueError("Wordscores needs reference_scores {speaker: position}")
        if self.dfm is None:
            self.build_dfm()
        self._log("\n" + "=" * 60)
        self._log("Wordscores")
        self._log("=" * 60)
        speakers = self.dfm.docvars["speaker"].tolist()
        y = np.array([self.reference_scores.get(s, np.nan) for s in speakers], dtype=float)
        missing = set(self.reference_scores) - set(speakers)
        if missing:
            print(f"[warn] reference speakers not in the dfm: {sorted(missing)}")
        self.wordscores = Wordscores(**kwargs).fit(self.dfm, y)
        est = self.wordscores.predict(rescaling=self.rescaling, interval="confidence")
        est.insert(0, "speaker", speakers)
        est.insert(1, "reference", y)
        self._log(est.sort_values("fit").to_string())
        self.results["wordscores"] = est
        return est

    def compare(self) -> Dict[str, Any]:
        """Join both estimates and correlate them over the virgin documents."""
        wf = self.results.get("wordfish")
        ws = self.results.get("wordscores")
        if wf is None or ws is None:
            raise ValueError("Run both run_wordfish() and run_wordscores() before compare()")
        joined = pd.DataFrame(
            {
                "speaker": wf["speaker"],
                "wordfish": wf["fit"],
                "wordscores": ws["fit"],
                "reference": ws["reference"],
            }
        )
        virgin = joined[joined["reference"].isna()].dropna(subset=["wordfish", "wordscores"])
        stats = {"n": int(len(virgin)), "pearson": np.nan, "spearman": np.nan}
        if len(virgin) >= 3:
            stats["pearson"] = float(pearsonr(virgin["wordfish"], virgin["wordscores"])[0])
            stats["spearman"] = float(spearmanr(virgin["wordfish"], virgin["wordscores"])[0])
        self._log(f"\n[compare] virgin documents={stats['n']} pearson={stats['pearson']:.3f} spearman={stats['spearman']:.3f}")
        self.results["comparison"] = joined
        self.results["correlation"] = stats
        return {"table": joined, **stats}

    def run_complete_pipeline(self, path) -> Dict[str, Any]:
        self.load(path)
        self.build_documents()
        self.build_dfm()
        self.run_wordfish()
        if self.reference_scores:
            self.run_wordscores()
            self.compare()
        return self.results

    def save_results(self, results_dir) -> Path:
        results_dir = Path(results_dir)
        results_dir.mkdir(parents=True, exist_ok=True)
        payload: Dict[str, Any] = {
            "unit": self.unit,
            "n_documents": self.dfm.ndoc if self.dfm is not None else 0,
            "n_features": self.dfm.nfeat if self.dfm is not None else 0,
        }
        for key in ("wordfish", "wordscores", "comparison"):
            frame = self.results.get(key)
            if frame is not None:
                frame.to_csv(results_dir / f"scaling_{key}.csv")
                payload[key] = frame.reset_index().to_dict(orient="records")
        if self.wordfish is not None:
            self.wordfish.features_frame().to_csv(results_dir / "scaling_wordfish_features.csv", index=False)
            payload["wordfish_converged"] = self.wordfish.converged
        if "correlation" in self.results:
            payload["correlation"] = self.results["correlation"]
        out = results_dir / f"scaling_results_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"
        with open(out, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False, default=_to_json)
        self._log(f"Results saved to: {out}")
        return out


def _to_json(o):
    if hasattr(o, "item") and np.ndim(o) == 0:
        return o.item()
    return str(o)
