# cross_validation.py
from __future__ import annotations
import itertools, random
from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from scipy import sparse

from .metrics import accuracy_score, f1_score

MEASURES = ("deviance", "class", "f1")


def stratified_kfold_indices(y: Sequence, k: int = 10, seed: int = 42) -> List[Dict[str, List[int]]]:
    """
    Label-stratified k-fold split.

    Every index lands in exactly one test fold; fold sizes within a label
    differ by at most one. Labels can be any hashable value.
    """
    if k < 2:
        raise ValueError(f"k must be at least 2, got {k}")
    y = list(np.asarray(y).tolist())
    rng = random.Random(seed)
    buckets: Dict[Any, List[int]] = {}
    for i, yi in enumerate(y):
        buckets.setdefault(yi, []).append(i)
    smallest = min(len(v) for v in buckets.values())
    if k > smallest:
        raise ValueError(
            f"k={k} folds but the smallest class has only {smallest} members"
        )
    for v in buckets.values():
        rng.shuffle(v)

    all_idx = set(range(len(y)))
    folds = []
    for i in range(k):
        test_idx = []
        for idxs in buckets.values():
            size, r = divmod(len(idxs), k)
            start = i * size + min(i, r)
            take = size + (1 if i < r else 0)
            test_idx.extend(idxs[start:start + take])
        test_idx = sorted(test_idx)
        train_idx = sorted(all_idx - set(test_idx))
        folds.append({"train": train_idx, "test": test_idx})
    return folds


def take_rows(X, idx: Sequence[int]):
    """Row subset for lists, numpy arrays, sparse matrices and DataFrames."""
    if isinstance(X, (pd.DataFrame, pd.Series)):
        return X.iloc[list(idx)]
    if sparse.issparse(X) or isinstance(X, np.ndarray):
        return X[np.asarray(idx, dtype=int)]
    return [X[i] for i in idx]


def grid_dict_product(grid: Dict[str, List[Any]]):
    keys = list(grid.keys())
    for values in itertools.product(*[grid[k] for k in keys]):
        yield dict(zip(keys, values))


def loss(measure: str, y_true, y_pred=None, proba=None, classes=None) -> float:
    """Cross-validation loss (lower is better)."""
    if measure == "class":
        return 1.0 - accuracy_score(y_true, y_pred)
    if measure == "f1":
        return 1.0 - f1_score(y_true, y_pred, average="macro", zero_division=0)
    if measure == "deviance":
        if proba is None or classes is None:
            raise ValueError("deviance needs predicted probabilities and classes")
        col = {c: j for j, c in enumerate(list(classes))}
        idx = np.array([col.get(v, -1) for v in np.asarray(y_true).tolist()])
        p = np.where(idx >= 0, proba[np.arange(len(idx)), np.maximum(idx, 0)], 0.0)
        p = np.clip(p, 1e-15, 1.0)
        return float(-2.0 * np.mean(np.log(p)))
    raise ValueError(f"Unknown measure '{measure}', use one of {MEASURES}")


@dataclass
class CVResult:
    fold: int
    best_params: Dict[str, Any]
    macro_f1: float
    acc: float


@dataclass
class PathCVResult:
    """Cross-validated loss along a regularization path."""

    lambdas: List[float]
    cvm: List[float]
    cvsd: List[float]
    lambda_min: float
    lambda_1se: float
    measure: str
    fold_losses: List[List[float]] = field(default_factory=list)

    def select(self, rule: str = "min") -> float:
        if rule == "min":
            return self.lambda_min
        if rule == "1se":
            return self.lambda_1se
        raise ValueError(f"Unknown lambda rule '{rule}', use 'min' or '1se'")

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {"lambda": self.lambdas, "cvm": self.cvm, "cvsd": self.cvsd}
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def cross_validate_path(
    X,
    y: Sequence,
    lambdas: Sequence[float],
    estimator_factory: Callable[[float], Any],
    k: int = 5,
    seed: int = 42,
    measure: str = "deviance",
    verbose: bool = False,
) -> PathCVResult:
    """
    k-fold cross-validation of one estimator per lambda.

    Args:
        X: Training data (texts, dense or sparse matrix)
        y: Labels
        lambdas: Regularization strengths (any order)
        estimator_factory: lam -> unfitted estimator with fit/predict(/predict_proba)
        k: Number of folds
        seed: Fold assignment seed
        measure: 'deviance', 'class' or 'f1'

    Returns:
        PathCVResult with mean loss / standard error per lambda, lambda_min
        and lambda_1se (largest lambda within one SE of the minimum)
    """
    if measure not in MEASURES:
        raise ValueError(f"Unknown measure '{measure}', use one of {MEASURES}")
    lambdas = [float(l) for l in lambdas]
    if not lambdas:
        raise ValueError("lambdas must not be empty")
    y = np.asarray(y)
    folds = stratified_kfold_indices(y, k=k, seed=seed)

    fold_losses = np.zeros((len(folds), len(lambdas)))
    for fi, f in enumerate(folds):
        X_tr, y_tr = take_rows(X, f["train"]), y[f["train"]]
        X_va, y_va = take_rows(X, f["test"]), y[f["test"]]
        for li, lam in enumerate(lambdas):
            est = estimator_factory(lam)
            est.fit(X_tr, y_tr)
            if measure == "deviance":
                fold_losses[fi, li] = loss(
                    measure, y_va, proba=est.predict_proba(X_va), classes=est.classes_
                )
            else:
                fold_losses[fi, li] = loss(measure, y_va, est.predict(X_va))
        if verbose:
            best = int(np.argmin(fold_losses[fi]))
            print(
                f"  [fold {fi + 1}/{len(folds)}] best lambda={lambdas[best]:.5g} "
                f"{measure}={fold_losses[fi, best]:.4f}"
            )

    cvm = fold_losses.mean(axis=0)
    cvsd = fold_losses.std(axis=0, ddof=1) / np.sqrt(len(folds))
    i_min = int(np.argmin(cvm))
    threshold = cvm[i_min] + cvsd[i_min]
    within = [lam for lam, m in zip(lambdas, cvm) if m <= threshold]
    return PathCVResult(
        lambdas=lambdas,
        cvm=cvm.tolist(),
        cvsd=cvsd.tolist(),
        lambda_min=lambdas[i_min],
        lambda_1se=max(within),
        measure=measure,
        fold_losses=fold_losses.tolist(),
    )


def nested_cv(
    X_texts: List[str],
    y: np.ndarray,
    outer_k: int,
    inner_k: int,
    estimator_factory: Callable[[Dict[str, Any]], Any],
    param_grid: Dict[str, List[Any]] | List[Dict[str, Any]],
    seed: int = 42,
    score_fn: Optional[Callable[[np.ndarray, np.ndarray], float]] = None,
    verbose: bool = True,
) -> Dict[str, Any]:
    """
    Grid search in inner folds, unbiased score on outer folds.

    The estimator is refit on each outer training fold with the inner
    winner, so vocabularies are only ever learned from training texts.
    """
    score_fn = score_fn or (lambda yt, yp: f1_score(yt, yp, average="macro", zero_division=0))
    candidates = (
        list(grid_dict_product(param_grid)) if isinstance(param_grid, dict) else list(param_grid)
    )
    if not candidates:
        raise ValueError("param_grid is empty")
    y = np.asarray(y)
    outer = stratified_kfold_indices(y, k=outer_k, seed=seed)
    results: List[CVResult] = []

    for oi, fold in enumerate(outer):
        tr_idx, te_idx = fold["train"], fold["test"]
        X_tr = take_rows(X_texts, tr_idx); y_tr = y[tr_idx]
        X_te = take_rows(X_texts, te_idx); y_te = y[te_idx]

        inner = stratified_kfold_indices(y_tr, k=inner_k, seed=seed + oi + 1)
        best_params, best_score = None, -np.inf
        if verbose:
            print(f"Outer Fold {oi + 1}/{outer_k}: testing {len(candidates)} parameter combinations")

        for pi, params in enumerate(candidates, 1):
            scores = []
            for f in inner:
                est = estimator_factory(params)
                est.fit(take_rows(X_tr, f["train"]), y_tr[f["train"]])
                yhat = est.predict(take_rows(X_tr, f["test"]))
                scores.append(score_fn(y_tr[f["test"]], yhat))
            mean_score = float(np.mean(scores))
            if verbose:
                print(f"    [{pi}/{len(candidates)}] params={params}  inner_score={mean_score:.4f}")
            if mean_score > best_score:
                best_score, best_params = mean_score, params

        best_est = estimator_factory(best_params)
        best_est.fit(X_tr, y_tr)
        ypred = best_est.predict(X_te)
        mf1 = score_fn(y_te, ypred)
        acc = accuracy_score(y_te, ypred)
        results.append(CVResult(oi, best_params, float(mf1), float(acc)))
        if verbose:
            print(f"[outer {oi + 1}] acc={acc:.4f} macroF1={mf1:.4f} best={best_params}")

    f1s = np.array([r.macro_f1 for r in results])
    votes = Counter(repr(r.best_params) for r in results)
    winner = votes.most_common(1)[0][0]
    best_params = next(r.best_params for r in results if repr(r.best_params) == winner)
    return {
        "folds": [asdict(r) for r in results],
        "best_params_by_outer": [r.best_params for r in results],
        "best_params": best_params,
        "cv_scores": f1s.tolist(),
        "mean_cv_score": float(f1s.mean()),
        "std_cv_score": float(f1s.std()),
        "mean_accuracy": float(np.mean([r.acc for r in results])),
    }
