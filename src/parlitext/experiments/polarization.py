#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Party Classification Across Legislative Terms

For every legislative term, speeches are split into a training and a test
set, a penalized logistic regression learns to attribute speeches to
parties, and the test-set precision / recall / F1 are recorded. The easier
it is to tell the parties apart by their words, the more polarized the
term is taken to be.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.model_selection import train_test_split

from ..core.cross_validation import cross_validate_path
from ..core.dfm import DfmBuilder, dfm_weight
from ..core.metrics import (
    compute_all_metrics,
    confusion_matrix,
    f1_score,
    per_class_metrics,
)
from ..models.logistic_regression import (
    RegularizedLogit,
    lambda_path,
    penalty_alpha,
    top_features,
)
from ..prepare_dataset import stratified_sample
from .visualization import export_summary_table

SUMMARY_COLUMNS = [
    "term",
    "penalty",
    "alpha",
    "lambda",
    "n_train",
    "n_test",
    "n_features",
    "n_nonzero",
    "accuracy",
    "precision_macro",
    "recall_macro",
    "f1_macro",
    "train_f1_macro",
    "f1_gap",
]


def _sorted_terms(values) -> List[Any]:
    uniq = list(pd.unique(values))
    try:
        return sorted(uniq)
    except TypeError:
        return sorted(uniq, key=str)


class PolarizationExperiment:
    """
    Train / evaluate one classifier per legislative term and penalty.
    """

    def __init__(
        self,
        penalties: Sequence[str] = ("lasso", "ridge", "elasticnet"),
        alpha: Optional[float] = None,
        test_size: float = 0.2,
        cv_folds: int = 5,
        n_lambda: int = 20,
        lambda_rule: str = "min",
        measure: str = "deviance",
        balance: bool = True,
        min_per_party: int = 10,
        dfm_params: Optional[Dict[str, Any]] = None,
        weight: str = "count",
        top_n: int = 15,
        max_iter: int = 2000,
        random_state: int = 42,
        verbose: bool = True,
    ):
        """
        Args:
            penalties: Penalty variants to compare
            alpha: l1 mixing weight for elastic-net (default 0.5)
            test_size: Share of each term's speeches held out for testing
            cv_folds: Folds for choosing lambda on the training speeches
            n_lambda: Length of the lambda path
            lambda_rule: 'min' or '1se'
            measure: CV loss, 'deviance', 'class' or 'f1'
            balance: Downsample parties to equal size inside each term
            min_per_party: Minimum speeches per party (after balancing)
            dfm_params: Options for DfmBuilder
            weight: dfm weighting applied before fitting
            top_n: Number of strongest coefficients kept per party
        """
        self.penalties = [penalty_alpha(p, alpha)[0] for p in penalties]
        self.alpha = alpha
        if not 0.0 < test_size < 1.0:
            raise ValueError("test_size must be between 0 and 1")
        if lambda_rule not in ("min", "1se"):
            raise ValueError("lambda_rule must be 'min' or '1se'")
        self.test_size = test_size
        self.cv_folds = cv_folds
        self.n_lambda = n_lambda
        self.lambda_rule = lambda_rule
        self.measure = measure
        self.balance = balance
        self.min_per_party = min_per_party
        self.dfm_params = dict(dfm_params or {})
        self.weight = weight
        self.top_n = top_n
        self.max_iter = max_iter
        self.random_state = random_state
        self.verbose = verbose
        self.results: Dict[str, Any] = {"terms": []}

    def config(self) -> Dict[str, Any]:
        return {
            "penalties": self.penalties,
            "alpha": self.alpha,
            "test_size": self.test_size,
            "cv_folds": self.cv_folds,
            "n_lambda": self.n_lambda,
            "lambda_rule": self.lambda_rule,
            "measure": self.measure,
            "balance": self.balance,
            "min_per_party": self.min_per_party,
            "dfm_params": self.dfm_params,
            "weight": self.weight,
            "random_state": self.random_state,
        }

    def _log(self, msg: str):
        if self.verbose:
            print(msg)

    def _prepare_term(self, df_term: pd.DataFrame) -> pd.DataFrame:
        counts = df_term["party"].value_counts()
        if len(counts) < 2:
            raise ValueError(f"fewer than two parties ({list(counts.index)})")
        if self.balance:
            df_term = stratified_sample(
                df_term, "party", n_per_class=int(counts.min()), random_state=self.random_state
            )
            counts = df_term["party"].value_counts()
        if counts.min() < self.min_per_party:
            raise ValueError(
                f"party '{counts.idxmin()}' has only {int(counts.min())} speeches "
                f"(min_per_party={self.min_per_party})"
            )
        return df_term

    def run_term(self, df_term: pd.DataFrame, term: Any, penalty: str) -> Dict[str, Any]:
        """
        Fit and evaluate one penalized classifier on one term's speeches.

        Returns:
            Dictionary with settings, test metrics, per-party metrics,
            confusion matrix, top features and the lambda CV curve
        """
        name, alpha = penalty_alpha(penalty, self.alpha)
        data = self._prepare_term(df_term)
        texts = data["text"].astype(str).tolist()
        y = data["party"].astype(str).to_numpy()

        X_tr_text, X_te_text, y_train, y_test = train_test_split(
            texts, y, test_size=self.test_size, random_state=self.random_state, stratify=y
        )

        builder = DfmBuilder(**self.dfm_params)
        dfm_train = builder.fit_transform(X_tr_text)
        dfm_test = builder.transform(X_te_text)
        X_train = dfm_weight(dfm_train, self.weight).matrix
        X_test = dfm_weight(dfm_test, self.weight).matrix

        k = min(self.cv_folds, int(pd.Series(y_train).value_counts().min()))
        if k < 2:
            raise ValueError("too few training speeches per party for cross-validation")
        lambdas = lambda_path(X_train, y_train, alpha, n_lambda=self.n_lambda)

        def factory(lam):
            return RegularizedLogit(name, alpha, lam, max_iter=self.max_iter, random_state=self.random_state)

        cv = cross_validate_path(
            X_train, y_train, lambdas, factory, k=k, seed=self.random_state, measure=self.measure
        )
        lam = cv.select(self.lambda_rule)
        model = factory(lam).fit(X_train, y_train)

        y_pred = model.predict(X_test)
        train_pred = model.predict(X_train)
        labels = [str(c) for c in model.classes_]
        metrics = compute_all_metrics(y_test, y_pred)
        train_f1 = f1_score(y_train, train_pred, average="macro", zero_division=0)

        result = {
            "term": term,
            "penalty": name,
            "alpha": alpha,
            "lambda": float(lam),
            "n_train": len(y_train),
            "n_test": len(y_test),
            "n_features": dfm_train.nfeat,
            "n_nonzero": model.n_nonzero,
            "converged": model.converged_,
            **metrics,
            "train_f1_macro": train_f1,
            "f1_gap": train_f1 - metrics["f1_macro"],
            "labels": labels,
            "party_metrics": per_class_metrics(y_test, y_pred, labels).to_dict(orient="records"),
            "confusion_matrix": confusion_matrix(y_test, y_pred, labels).tolist(),
            "top_features": top_features(model, dfm_train.features, self.top_n),
            "cv": cv.to_frame().to_dict(orient="list"),
            "lambda_min": cv.lambda_min,
            "lambda_1se": cv.lambda_1se,
        }
        self._log(
            f"[term {term}] {name:10} lambda={lam:.5g} nonzero={model.n_nonzero:5d} "
            f"acc={metrics['accuracy']:.4f} F1={metrics['f1_macro']:.4f} "
            f"(train F1={train_f1:.4f})"
        )
        return result

    def run(self, df: pd.DataFrame, terms: Optional[Sequence[Any]] = None) -> Dict[str, Any]:
        """Run every penalty on every term; failed terms are recorded, not fatal."""
        for col in ("text", "party", "term"):
            if col not in df.columns:
                raise KeyError(f"Corpus has no '{col}' column")
        terms = list(terms) if terms is not None else _sorted_terms(df["term"])
        self._log("=" * 60)
        self._log(f"Party classification across {len(terms)} terms, penalties={self.penalties}")
        self._log("=" * 60)

        rows = []
        for term in terms:
            df_term = df[df["term"] == term]
            self._log(f"\n[term {term}] speeches={len(df_term)} parties={df_term['party'].value_counts().to_dict()}")
            for penalty in self.penalties:
                try:
                    rows.append(self.run_term(df_term, term, penalty))
                except ValueError as e:
                    print(f"[warn] term {term} / {penalty} skipped: {e}")
                    rows.append({"term": term, "penalty": penalty, "error": str(e)})
        self.results = {"config": self.config(), "terms": rows}
        return self.results

    def summary(self) -> pd.DataFrame:
        return summarize(self.results)

    def party_metrics(self) -> pd.DataFrame:
        return party_metrics_frame(self.results)

    def save_results(self, results_dir) -> Path:
        results_dir = Path(results_dir)
        results_dir.mkdir(parents=True, exist_ok=True)
        out = results_dir / f"experiment_results_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"
        with open(out, "w", encoding="utf-8") as f:
            json.dump({"polarization": self.results}, f, indent=2, ensure_ascii=False, default=_to_json)
        export_summary_table(self.summary(), results_dir)
        self._log(f"Results saved to: {out}")
        return out


def summarize(results: Dict[str, Any]) -> pd.DataFrame:
    """One row per successful (term, penalty) fit."""
    rows = [r for r in results.get("terms", []) if "error" not in r]
    if not rows:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)
    return pd.DataFrame(rows)[SUMMARY_COLUMNS].reset_index(drop=True)


def party_metrics_frame(results: Dict[str, Any]) -> pd.DataFrame:
    rows = []
    for r in results.get("terms", []):
        for pm in r.get("party_metrics", []):
            rows.append(
                {"term": r["term"], "penalty": r["penalty"], "party": pm["label"],
                 **{k: v for k, v in pm.items() if k != "label"}}
            )
    return pd.DataFrame(rows, columns=["term", "penalty", "party", "precision", "recall", "f1", "support"])


def polarization_index(summary: pd.DataFrame, metric: str = "f1_macro") -> pd.DataFrame:
    """Metric per term (rows) and penalty (columns)."""
    if metric not in summary.columns:
        raise KeyError(f"Summary has no '{metric}' column")
    return summary.pivot_table(index="term", columns="penalty", values=metric, aggfunc="mean")


def _to_json(o):
    if hasattr(o, "item") and np.ndim(o) == 0:
        return o.item()
    if hasattr(o, "tolist"):
        return o.tolist()
    return str(o)
