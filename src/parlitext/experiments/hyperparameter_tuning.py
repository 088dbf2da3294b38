#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Penalty Tuning with Nested Cross-Validation

Chooses lambda (and, for elastic-net, the l1 mixing weight alpha) together
with a few dfm options for each penalty on the pooled speech corpus. The
inner folds pick the setting, the outer folds give the unbiased macro F1.
"""

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Tuple

import numpy as np
import pandas as pd

from ..core.cross_validation import nested_cv
from ..core.metrics import f1_score
from ..models.logistic_regression import create_logit_factory

# lambda on the glmnet scale; other keys go to DfmBuilder
HYPERPARAMETER_GRIDS: Dict[str, Dict[str, List[Any]]] = {
    "lasso": {
        "lam": [0.1, 0.03, 0.01, 0.003, 0.001],
        "min_docfreq": [2, 5],
        "stem": [False, True],
    },
    "ridge": {
        "lam": [1.0, 0.3, 0.1, 0.03, 0.01],
        "min_docfreq": [2, 5],
        "stem": [False, True],
    },
    "elasticnet": {
        "lam": [0.1, 0.03, 0.01, 0.003],
        "alpha": [0.25, 0.5, 0.75],
        "min_docfreq": [2],
        "stem": [False, True],
    },
}
HYPERPARAMETER_GRIDS_FAST: Dict[str, Dict[str, List[Any]]] = {
    "lasso": {"lam": [0.1, 0.01, 0.001]},
    "ridge": {"lam": [1.0, 0.1, 0.01]},
    "elasticnet": {"lam": [0.1, 0.01, 0.001], "alpha": [0.5]},
}

COMPARISON_COLUMNS = ["penalty", "best_params", "cv_f1", "cv_std", "n_speeches"]


def _macro_f1(y_true, y_pred) -> float:
    return f1_score(y_true, y_pred, average="macro", zero_division=0)


class HyperparameterTuner:
    """
    Nested-CV grid search, one entry in `results` per tuned penalty.
    """

    def __init__(
        self,
        outer_folds: int = 5,
        inner_folds: int = 3,
        random_state: int = 42,
        scoring_func: Callable = _macro_f1,
        fast: bool = False,
        verbose: bool = True,
    ):
        """
        Args:
            outer_folds: Folds that score the selected setting
            inner_folds: Folds that select the setting
            scoring_func: (y_true, y_pred) -> float, higher is better
            fast: Use HYPERPARAMETER_GRIDS_FAST
        """
        self.outer_folds = outer_folds
        self.inner_folds = inner_folds
        self.random_state = random_state
        self.scoring_func = scoring_func
        self.fast = fast
        self.verbose = verbose
        self.results: Dict[str, Any] = {}

    def grid_for(self, penalty: str) -> Dict[str, List[Any]]:
        grids = HYPERPARAMETER_GRIDS_FAST if self.fast else HYPERPARAMETER_GRIDS
        if penalty not in grids:
            raise ValueError(f"No hyperparameter grid for '{penalty}'")
        return grids[penalty]

    def tune_model(
        self,
        X: List[str],
        y: np.ndarray,
        model_factory: Callable,
        param_grid: Dict[str, List[Any]],
        name: str,
    ) -> Dict[str, Any]:
        """
        Run nested CV for one estimator factory and record the outcome.

        Args:
            X: Speech texts
            y: Party labels
            model_factory: params dict -> unfitted estimator
            param_grid: {param: [values]} or a list of param dicts
            name: Key under which the outcome is stored

        Returns:
            The nested_cv result dictionary
        """
        if self.verbose:
            print(f"\n{'=' * 60}")
            print(f"Tuning: {name}")
            print(f"{'=' * 60}")
            print(f"[info] grid={param_grid}")
            print(f"[data] speeches={len(X)} outer={self.outer_folds} inner={self.inner_folds}")

        cv_results = nested_cv(
            X,
            np.asarray(y),
            outer_k=self.outer_folds,
            inner_k=self.inner_folds,
            estimator_factory=model_factory,
            param_grid=param_grid,
            seed=self.random_state,
            score_fn=self.scoring_func,
            verbose=self.verbose,
        )

        self.results[name] = {
            "cv_results": cv_results,
            "param_grid": param_grid,
            "n_speeches": len(X),
            "best_params": cv_results["best_params"],
            "mean_cv_score": cv_results["mean_cv_score"],
            "std_cv_score": cv_results["std_cv_score"],
        }
        if self.verbose:
            print(
                f"\n[info] {name}: best={cv_results['best_params']} "
                f"F1={cv_results['mean_cv_score']:.4f} ± {cv_results['std_cv_score']:.4f}"
            )
        return cv_results

    def tune_penalty(self, X: List[str], y: np.ndarray, penalty: str, **defaults: Any) -> Dict[str, Any]:
        factory = create_logit_factory({"penalty": penalty, **defaults})
        return self.tune_model(X, y, factory, self.grid_for(penalty), penalty)

    def tune_multiple_models(
        self,
        experiments: List[Tuple[str, List[str], np.ndarray, Callable, Dict[str, List[Any]]]],
    ) -> Dict[str, Any]:
        """Tune (name, X, y, factory, grid) entries; a failing entry is recorded and skipped."""
        out = {}
        for i, (name, X, y, factory, grid) in enumerate(experiments, 1):
            if self.verbose:
                print(f"\n[info] experiment {i}/{len(experiments)}: {name}")
            try:
                out[name] = self.tune_model(X, y, factory, grid, name)
            except ValueError as e:
                print(f"[warn] tuning {name} failed: {e}")
                out[name] = {"error": str(e), "cv_results": None}
        return out

    def get_best_models(self) -> Dict[str, Dict[str, Any]]:
        return {
            name: {
                "best_params": res["best_params"],
                "cv_score": res["mean_cv_score"],
                "cv_std": res["std_cv_score"],
            }
            for name, res in self.results.items()
            if res.get("cv_results") is not None
        }

    def compare_models(self) -> pd.DataFrame:
        """Outer-fold F1 per tuned penalty, best first."""
        rows = [
            {
                "penalty": name,
                "best_params": str(res["best_params"]),
                "cv_f1": res["mean_cv_score"],
                "cv_std": res["std_cv_score"],
                "n_speeches": res["n_speeches"],
            }
            for name, res in self.results.items()
            if res.get("cv_results") is not None
        ]
        if not rows:
            return pd.DataFrame(columns=COMPARISON_COLUMNS)
        return pd.DataFrame(rows).sort_values("cv_f1", ascending=False).reset_index(drop=True)

    def save_results(self, filepath):
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.results, f, indent=2, default=_json_default)
        print(f"Tuning results saved to: {path}")

    def load_results(self, filepath):
        with open(filepath, "r", encoding="utf-8") as f:
            self.results = json.load(f)
        print(f"Tuning results loaded from: {filepath}")


def _json_default(o):
    if hasattr(o, "tolist"):
        return o.tolist()
    return str(o)
