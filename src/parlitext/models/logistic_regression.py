# logistic_regression.py
"""
Penalized (lasso / ridge / elastic-net) logistic regression on dfm features.

Regularization follows the glmnet convention

    -(1/n) loglik + lambda * ((1 - alpha) / 2 * ||b||^2 + alpha * ||b||_1)

which maps onto scikit-learn's LogisticRegression with l1_ratio=alpha and
C = 1 / (n * lambda).
"""
from __future__ import annotations
import warnings
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import sparse
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import LogisticRegression
from sklearn.preprocessing import StandardScaler

from ..core.dfm import DEFAULT_DFM_PARAMS, Dfm, DfmBuilder, dfm_weight

PENALTIES = {"lasso": 1.0, "ridge": 0.0, "elasticnet": 0.5}
PENALTY_ALIASES = {
    "l1": "lasso",
    "l2": "ridge",
    "enet": "elasticnet",
    "elastic-net": "elasticnet",
    "elastic_net": "elasticnet",
}
RIDGE_ALPHA_FLOOR = 1e-3


def penalty_alpha(penalty: str, alpha: Optional[float] = None) -> Tuple[str, float]:
    """Canonical penalty name and its l1 mixing weight."""
    name = PENALTY_ALIASES.get(penalty.lower(), penalty.lower())
    if name not in PENALTIES:
        raise ValueError(f"Unknown penalty '{penalty}', use one of {sorted(PENALTIES)}")
    if name != "elasticnet":
        return name, PENALTIES[name]
    a = PENALTIES[name] if alpha is None else float(alpha)
    if not 0.0 < a < 1.0:
        raise ValueError(f"elastic-net alpha must be strictly between 0 and 1, got {a}")
    return name, a


def _scaled(X, standardize: bool):
    X = sparse.csr_matrix(X, dtype=float) if sparse.issparse(X) else np.asarray(X, dtype=float)
    if not standardize:
        return X
    return StandardScaler(with_mean=False).fit_transform(X)


def lambda_max(X, y: Sequence, alpha: float, standardize: bool = True) -> float:
    """Smallest lambda for which every coefficient is zero."""
    Xs = _scaled(X, standardize)
    y = np.asarray(y)
    n = Xs.shape[0]
    classes = np.unique(y)
    if len(classes) < 2:
        raise ValueError("Need at least two classes to fit a classifier")
    targets = classes[1:] if len(classes) == 2 else classes
    grad = 0.0
    for c in targets:
        r = (y == c).astype(float)
        r -= r.mean()
        g = np.abs(np.asarray(Xs.T @ r).ravel()).max() / n
        grad = max(grad, g)
    return float(grad / max(alpha, RIDGE_ALPHA_FLOOR))


def lambda_path(
    X,
    y: Sequence,
    alpha: float,
    n_lambda: int = 20,
    ratio: Optional[float] = None,
    standardize: bool = True,
) -> np.ndarray:
    """
    Decreasing, log-spaced lambda sequence from lambda_max down to ratio * lambda_max.

    ratio defaults to 0.01 when there are more features than documents and
    1e-4 otherwise.
    """
    if n_lambda < 1:
        raise ValueError("n_lambda must be positive")
    lmax = lambda_max(X, y, alpha, standardize)
    if lmax <= 0:
        raise ValueError("All features are constant; no lambda path can be built")
    if ratio is None:
        n, p = X.shape
        ratio = 0.01 if p > n else 1e-4
    return np.geomspace(lmax, lmax * ratio, num=n_lambda)


class RegularizedLogit:
    """Penalized logistic regression on a (sparse) feature matrix."""

    def __init__(
        self,
        penalty: str = "lasso",
        alpha: Optional[float] = None,
        lam: float = 0.01,
        standardize: bool = True,
        max_iter: int = 2000,
        tol: float = 1e-4,
        class_weight=None,
        random_state: int = 42,
    ):
        self.penalty, self.alpha = penalty_alpha(penalty, alpha)
        if lam <= 0:
            raise ValueError(f"lambda must be positive, got {lam}")
        self.lam = float(lam)
        self.standardize = standardize
        self.max_iter = max_iter
        self.tol = tol
        self.class_weight = class_weight
        self.random_state = random_state
        self.scaler_: Optional[StandardScaler] = None
        self.clf_: Optional[LogisticRegression] = None
        self.converged_ = True

    def _transform(self, X):
        X = sparse.csr_matrix(X, dtype=float) if sparse.issparse(X) else np.asarray(X, dtype=float)
        return self.scaler_.transform(X) if self.scaler_ is not None else X

    def fit(self, X, y):
        y = np.asarray(y)
        if len(np.unique(y)) < 2:
            raise ValueError("Need at least two classes to fit a classifier")
        X = sparse.csr_matrix(X, dtype=float) if sparse.issparse(X) else np.asarray(X, dtype=float)
        if self.standardize:
            self.scaler_ = StandardScaler(with_mean=False)
            X = self.scaler_.fit_transform(X)
        self.clf_ = LogisticRegression(
            penalty="elasticnet",
            l1_ratio=self.alpha,
            C=1.0 / (X.shape[0] * self.lam),
            solver="saga",
            max_iter=self.max_iter,
            tol=self.tol,
            class_weight=self.class_weight,
            random_state=self.random_state,
        )
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", ConvergenceWarning)
            self.clf_.fit(X, y)
        self.converged_ = not any(issubclass(w.category, ConvergenceWarning) for w in caught)
        for w in caught:
            if not issubclass(w.category, ConvergenceWarning):
                warnings.warn_explicit(w.message, w.category, w.filename, w.lineno)
        return self

    @property
    def classes_(self) -> np.ndarray:
        return self.clf_.classes_

    @property
    def coef_(self) -> np.ndarray:
        return self.clf_.coef_

    @property
    def n_nonzero(self) -> int:
        return int(np.count_nonzero(np.any(self.clf_.coef_ != 0, axis=0)))

    def predict(self, X) -> np.ndarray:
        return self.clf_.predict(self._transform(X))

    def predict_proba(self, X) -> np.ndarray:
        return self.clf_.predict_proba(self._transform(X))

    def coef_frame(self, features: Sequence[str]) -> pd.DataFrame:
        """
        Non-zero coefficients in long format (class, feature, coef).

        For two classes the single coefficient row belongs to the second
        class: positive values push towards classes_[1].
        """
        coef = self.clf_.coef_
        if coef.shape[1] != len(features):
            raise ValueError(f"{len(features)} feature names for {coef.shape[1]} coefficients")
        row_classes = [self.classes_[1]] if coef.shape[0] == 1 else list(self.classes_)
        rows = []
        for cls, row in zip(row_classes, coef):
            for j in np.flatnonzero(row):
                rows.append({"class": cls, "feature": features[j], "coef": float(row[j])})
        frame = pd.DataFrame(rows, columns=["class", "feature", "coef"])
        return frame.sort_values(["class", "coef"], ascending=[True, False]).reset_index(drop=True)


LOGIT_KEYS = ("penalty", "alpha", "lam", "standardize", "max_iter", "tol", "class_weight", "random_state")


class DfmLogitEstimator:
    """Texts -> dfm (fitted on training texts only) -> RegularizedLogit.

    params:
      - penalty, alpha, lam, standardize, max_iter, tol, class_weight: see RegularizedLogit
      - weight: dfm weighting scheme applied before fitting ('count', 'prop', 'tfidf', ...)
      - any key of DEFAULT_DFM_PARAMS (stopwords, stem, min_docfreq, ngrams, ...)
    """

    def __init__(self, **params: Any):
        self.p = dict(params)
        self.weight = self.p.pop("weight", "count")
        self.logit_params = {k: self.p.pop(k) for k in LOGIT_KEYS if k in self.p}
        unknown = set(self.p) - set(DEFAULT_DFM_PARAMS)
        if unknown:
            raise ValueError(f"Unknown parameters: {sorted(unknown)}")
        self.builder: Optional[DfmBuilder] = None
        self.model: Optional[RegularizedLogit] = None

    def _matrix(self, dfm: Dfm):
        return dfm_weight(dfm, self.weight).matrix

    def fit(self, texts: Sequence[str], y):
        self.builder = DfmBuilder(**self.p)
        dfm = self.builder.fit_transform(texts)
        self.model = RegularizedLogit(**self.logit_params)
        self.model.fit(self._matrix(dfm), y)
        return self

    def predict(self, texts: Sequence[str]) -> np.ndarray:
        return self.model.predict(self._matrix(self.builder.transform(texts)))

    def predict_proba(self, texts: Sequence[str]) -> np.ndarray:
        return self.model.predict_proba(self._matrix(self.builder.transform(texts)))

    @property
    def classes_(self) -> np.ndarray:
        return self.model.classes_

    @property
    def features(self) -> List[str]:
        return list(self.builder.features_)

    def top_features(self, n: int = 10) -> Dict[str, List[Tuple[str, float]]]:
        return top_features(self.model, self.features, n)


def top_features(model: RegularizedLogit, features: Sequence[str], n: int = 10) -> Dict[str, List[Tuple[str, float]]]:
    """Strongest n coefficients pointing towards each class."""
    coef = model.coef_
    out: Dict[str, List[Tuple[str, float]]] = {}
    if coef.shape[0] == 1:
        row = coef[0]
        pos = [j for j in np.argsort(-row, kind="stable")[:n] if row[j] > 0]
        neg = [j for j in np.argsort(row, kind="stable")[:n] if row[j] < 0]
        out[str(model.classes_[1])] = [(features[j], float(row[j])) for j in pos]
        out[str(model.classes_[0])] = [(features[j], float(row[j])) for j in neg]
        return out
    for cls, row in zip(model.classes_, coef):
        best = [j for j in np.argsort(-row, kind="stable")[:n] if row[j] > 0]
        out[str(cls)] = [(features[j], float(row[j])) for j in best]
    return out


def create_logit_factory(defaults: Optional[Dict[str, Any]] = None):
    defaults = dict(defaults or {})

    def factory(params: Dict[str, Any]):
        cfg = {**defaults, **params}
        return DfmLogitEstimator(**cfg)

    return factory
