# wordscores.py
"""
Wordscores text scaling (Laver, Benoit & Garry 2003).

Reference texts with known positions give every word a score: the average
reference position weighted by how much more likely the word is to be read
in each reference text. Virgin texts are then scored as the frequency
weighted mean of the scores of the words they contain.
"""
from __future__ import annotations
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from scipy import sparse
from scipy.stats import norm

from ..core.dfm import Dfm, dfm_match

RESCALINGS = ("none", "lbg", "mv")


class Wordscores:
    """
    params:
      - smooth: pseudo-count added to every reference cell before scoring
      - scale:  'linear' (LBG word scores) or 'logit' (log-odds word scores,
                exactly two reference texts)
    """

    def __init__(self, smooth: float = 0.0, scale: str = "linear"):
        if scale not in ("linear", "logit"):
            raise ValueError(f"scale must be 'linear' or 'logit', got {scale}")
        if smooth < 0:
            raise ValueError("smooth must be non-negative")
        self.smooth = smooth
        self.scale = scale
        self.dfm: Optional[Dfm] = None
        self.y: Optional[np.ndarray] = None
        self.wordscores_: Optional[np.ndarray] = None
        self.features_: Optional[list] = None

    def fit(self, dfm: Dfm, y: Sequence[float]) -> "Wordscores":
        """
        Compute word scores from the reference documents.

        Args:
            dfm: Counts for all documents (reference and virgin)
            y: Reference score per document, NaN for virgin texts
        """
        y = np.asarray(y, dtype=float)
        if len(y) != dfm.ndoc:
            raise ValueError(f"{len(y)} scores for {dfm.ndoc} documents")
        ref = ~np.isnan(y)
        if ref.sum() < 2:
            raise ValueError("Wordscores needs at least two reference texts")
        if self.scale == "logit" and ref.sum() != 2:
            raise ValueError("logit word scores need exactly two reference texts")

        counts = dfm.matrix[np.flatnonzero(ref)].toarray().astype(float) + self.smooth
        totals = counts.sum(axis=1, keepdims=True)
        if (totals == 0).any():
            raise ValueError("Reference texts must contain at least one feature")
        F = counts / totals
        used = F.sum(axis=0) > 0
        F = F[:, used]
        A = y[ref]

        if self.scale == "linear":
            P = F / F.sum(axis=0, keepdims=True)
            scores = A @ P
        else:
            lo, hi = np.argsort(A)
            with np.errstate(divide="ignore"):
                scores = np.log(F[hi]) - np.log(F[lo])
            # words seen in only one reference get a finite score
            finite = np.isfinite(scores)
            bound = np.abs(scores[finite]).max() if finite.any() else 0.0
            scores[~finite] = np.sign(F[hi] - F[lo])[~finite] * (bound or 1.0)

        self.dfm = dfm
        self.y = y
        self.features_ = [f for f, u in zip(dfm.features, used) if u]
        self.wordscores_ = np.asarray(scores, dtype=float)
        return self

    def wordscores_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"feature": self.features_, "score": self.wordscores_})

    def _raw(self, dfm: Dfm):
        """Raw text scores, LBG standard errors and scored-word totals."""
        X = dfm_match(dfm, self.features_).matrix.astype(float)
        X = sparse.csr_matrix(X)
        n_scored = np.asarray(X.sum(axis=1)).ravel()
        with np.errstate(invalid="ignore", divide="ignore"):
            F = sparse.diags(np.where(n_scored > 0, 1.0 / np.where(n_scored > 0, n_scored, 1), 0.0)) @ X
        S = self.wordscores_
        raw = np.asarray(F @ S).ravel()
        var = np.asarray(F @ (S ** 2)).ravel() - raw ** 2
        var = np.maximum(var, 0.0)
        se = np.sqrt(var / np.where(n_scored > 0, n_scored, 1))
        raw[n_scored == 0] = np.nan
        se[n_scored == 0] = np.nan
        return raw, se, n_scored

    def predict(
        self,
        dfm: Optional[Dfm] = None,
        rescaling: str = "none",
        se_fit: bool = True,
        interval: Optional[str] = None,
        level: float = 0.95,
    ) -> pd.DataFrame:
        """
        Score documents.

        Args:
            dfm: Documents to score (defaults to the fitted dfm, all documents)
            rescaling: 'none', 'lbg' (Laver-Benoit-Garry) or 'mv' (Martin-Vanberg)
            se_fit: Include LBG standard errors
            interval: None or 'confidence' for lwr/upr bounds
            level: Confidence level for the interval

        Returns:
            DataFrame indexed by docname with 'fit' (+ 'se', 'lwr', 'upr')
        """
        if self.wordscores_ is None:
            raise ValueError("Wordscores must be fitted before predict()")
        if rescaling not in RESCALINGS:
            raise ValueError(f"Unknown rescaling '{rescaling}', use one of {RESCALINGS}")
        if interval not in (None, "none", "confidence"):
            raise ValueError(f"Unknown interval '{interval}'")
        dfm = dfm if dfm is not None else self.dfm
        raw, se, _ = self._raw(dfm)
        z = norm.ppf(0.5 + level / 2.0)
        lwr, upr = raw - z * se, raw + z * se

        if rescaling == "lbg":
            transform = self._lbg_transform(raw)
        elif rescaling == "mv":
            transform = self._mv_transform()
        else:
            transform = lambda v: v
        out = pd.DataFrame({"fit": transform(raw)}, index=pd.Index(dfm.docnames, name="document"))
        if se_fit:
            if rescaling == "none":
                out["se"] = se
            else:
                # rescaled standard error from the rescaled interval width
                out["se"] = (transform(upr) - transform(lwr)) / (2 * z)
        if interval == "confidence":
            a, b = transform(lwr), transform(upr)
            out["lwr"] = np.minimum(a, b)
            out["upr"] = np.maximum(a, b)
        return out

    def _lbg_transform(self, raw: np.ndarray):
        ref_scores = self.y[~np.isnan(self.y)]
        virgin = raw[~np.isnan(raw)]
        sd_r = np.std(ref_scores, ddof=1)
        mean_v = float(np.mean(virgin)) if len(virgin) else 0.0
        sd_v = np.std(virgin, ddof=1) if len(virgin) > 1 else 0.0
        mult = 0.0 if sd_r == 0 or sd_v == 0 else sd_r / sd_v
        return lambda v: (v - mean_v) * mult + mean_v

    def _mv_transform(self):
        ref_idx = np.flatnonzero(~np.isnan(self.y))
        ref_raw, _, _ = self._raw(self.dfm.subset(ref_idx))
        A = self.y[ref_idx]
        lo, hi = int(np.argmin(A)), int(np.argmax(A))
        span = ref_raw[hi] - ref_raw[lo]
        if not np.isfinite(span) or span == 0:
            raise ValueError("MV rescaling needs distinct raw scores for the extreme reference texts")
        return lambda v: (v - ref_raw[lo]) / span * (A[hi] - A[lo]) + A[lo]
