#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Classification Metrics for Party Prediction

This module implements the classification metrics used to judge how well
speeches can be attributed to parties, without using sklearn.metrics:
- Accuracy
- Precision (binary, macro, micro, weighted, per class)
- Recall (binary, macro, micro, weighted, per class)
- F1-Score (binary, macro, micro, weighted, per class)
- Confusion Matrix
- Classification Report / per-class table

Labels may be any hashable values (party names are strings); the positive
class for binary averaging is chosen with pos_label.
"""

import numpy as np
import pandas as pd
from typing import Any, Dict, List, Optional, Tuple, Union

AVERAGES = ("binary", "macro", "micro", "weighted", None)


def _check_lengths(y_true: np.ndarray, y_pred: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    y_true = np.asarray(y_true)
    y_pred = np.asarray(y_pred)
    if len(y_true) != len(y_pred):
        raise ValueError("y_true and y_pred must have the same length")
    return y_true, y_pred


def _resolve_labels(y_true, y_pred, labels: Optional[List]) -> List:
    if labels is not None:
        return list(labels)
    uniq = set(y_true.tolist()) | set(y_pred.tolist())
    try:
        return sorted(uniq)
    except TypeError:
        return sorted(uniq, key=str)


def confusion_matrix(
    y_true: np.ndarray, y_pred: np.ndarray, labels: Optional[List] = None
) -> np.ndarray:
    """
    Compute confusion matrix.

    Args:
        y_true: Ground truth labels
        y_pred: Predicted labels
        labels: List of labels to include in matrix (if None, use unique labels)

    Returns:
        Confusion matrix as 2D numpy array (rows = true, columns = predicted)
    """
    y_true, y_pred = _check_lengths(y_true, y_pred)
    labels = _resolve_labels(y_true, y_pred, labels)

    label_to_idx = {label: i for i, label in enumerate(labels)}
    cm = np.zeros((len(labels), len(labels)), dtype=int)

    for true_label, pred_label in zip(y_true.tolist(), y_pred.tolist()):
        ti = label_to_idx.get(true_label)
        pi = label_to_idx.get(pred_label)
        # pairs outside `labels` are ignored
        if ti is not None and pi is not None:
            cm[ti, pi] += 1

    return cm


def accuracy_score(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    y_true, y_pred = _check_lengths(y_true, y_pred)
    if len(y_true) == 0:
        return 0.0
    return float(np.mean(y_true == y_pred))


def _divide(num: np.ndarray, den: np.ndarray, what: str, labels: List, zero_division) -> np.ndarray:
    num = num.astype(float)
    den = den.astype(float)
    out = np.zeros_like(num)
    ok = den > 0
    out[ok] = num[ok] / den[ok]
    if (~ok).any():
        if zero_division == "warn":
            bad = [labels[i] for i in np.flatnonzero(~ok)]
            print(f"Warning: {what} is ill-defined for class(es) {bad}")
            fill = 0.0
        else:
            fill = float(zero_division)
        out[~ok] = fill
    return out


def _class_stats(cm: np.ndarray) -> Dict[str, np.ndarray]:
    tp = np.diag(cm)
    return {
        "tp": tp,
        "fp": cm.sum(axis=0) - tp,
        "fn": cm.sum(axis=1) - tp,
        "support": cm.sum(axis=1),
    }


def _average(
    scores: np.ndarray,
    support: np.ndarray,
    labels: List,
    average: Optional[str],
    pos_label: Any,
    micro: float,
) -> Union[float, np.ndarray]:
    if average is None:
        return scores
    if average == "binary":
        if len(labels) != 2:
            raise ValueError("binary averaging requires exactly 2 classes")
        if pos_label is None:
            pos_label = labels[1]
        if pos_label not in labels:
            raise ValueError(f"pos_label={pos_label!r} is not a valid label: {labels}")
        return float(scores[labels.index(pos_label)])
    if average == "macro":
        return float(np.mean(scores)) if len(scores) else 0.0
    if average == "micro":
        return float(micro)
    if average == "weighted":
        if np.sum(support) == 0:
            return 0.0
        return float(np.average(scores, weights=support))
    raise ValueError(f"Unknown averaging strategy: {average}")


def precision_score(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    average: Optional[str] = "binary",
    labels: Optional[List] = None,
    pos_label: Any = None,
    zero_division: Union[str, float] = "warn",
) -> Union[float, np.ndarray]:
    """
    Compute precision score.

    Args:
        y_true: Ground truth labels
        y_pred: Predicted labels
        average: Averaging strategy ('binary', 'macro', 'micro', 'weighted', None)
        labels: List of labels to include (if None, use unique labels)
        pos_label: Positive class for binary averaging (default: second label)
        zero_division: How to handle division by zero ('warn', 0, 1)

    Returns:
        Precision score(s)
    """
    y_true, y_pred = _check_lengths(y_true, y_pred)
    labels = _resolve_labels(y_true, y_pred, labels)
    stats = _class_stats(confusion_matrix(y_true, y_pred, labels))
    scores = _divide(stats["tp"], stats["tp"] + stats["fp"], "Precision", labels, zero_division)
    micro = _divide(
        np.array([stats["tp"].sum()]),
        np.array([stats["tp"].sum() + stats["fp"].sum()]),
        "Micro precision",
        ["all"],
        zero_division,
    )[0]
    return _average(scores, stats["support"], labels, average, pos_label, micro)


def recall_score(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    average: Optional[str] = "binary",
    labels: Optional[List] = None,
    pos_label: Any = None,
    zero_division: Union[str, float] = "warn",
) -> Union[float, np.ndarray]:
    """
    Compute recall score.

    Args:
        y_true: Ground truth labels
        y_pred: Predicted labels
        average: Averaging strategy ('binary', 'macro', 'micro', 'weighted', None)
        labels: List of labels to include (if None, use unique labels)
        pos_label: Positive class for binary averaging (default: second label)
        zero_division: How to handle division by zero ('warn', 0, 1)

    Returns:
        Recall score(s)
    """
    y_true, y_pred = _check_lengths(y_true, y_pred)
    labels = _resolve_labels(y_true, y_pred, labels)
    stats = _class_stats(confusion_matrix(y_true, y_pred, labels))
    scores = _divide(stats["tp"], stats["tp"] + stats["fn"], "Recall", labels, zero_division)
    micro = _divide(
        np.array([stats["tp"].sum()]),
        np.array([stats["support"].sum()]),
        "Micro recall",
        ["all"],
        zero_division,
    )[0]
    return _average(scores, stats["support"], labels, average, pos_label, micro)


def f1_score(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    average: Optional[str] = "binary",
    labels: Optional[List] = None,
    pos_label: Any = None,
    zero_division: Union[str, float] = "warn",
) -> Union[float, np.ndarray]:
    """
    Compute F1 score, the harmonic mean of precision and recall per class.

    Macro F1 is the unweighted mean of the per-class F1 values.

    Args:
        y_true: Ground truth labels
        y_pred: Predicted labels
        average: Averaging strategy ('binary', 'macro', 'micro', 'weighted', None)
        labels: List of labels to include (if None, use unique labels)
        pos_label: Positive class for binary averaging (default: second label)
        zero_division: How to handle division by zero ('warn', 0, 1)

    Returns:
        F1 score(s)
    """
    y_true, y_pred = _check_lengths(y_true, y_pred)
    labels = _resolve_labels(y_true, y_pred, labels)
    stats = _class_stats(confusion_matrix(y_true, y_pred, labels))
    # F1 = 2TP / (2TP + FP + FN), defined whenever the class occurs at all
    scores = _divide(
        2 * stats["tp"],
        2 * stats["tp"] + stats["fp"] + stats["fn"],
        "F1 score",
        labels,
        zero_division,
    )
    tp, fp, fn = stats["tp"].sum(), stats["fp"].sum(), stats["fn"].sum()
    micro = _divide(
        np.array([2 * tp]), np.array([2 * tp + fp + fn]), "Micro F1", ["all"], zero_division
    )[0]
    return _average(scores, stats["support"], labels, average, pos_label, micro)


def per_class_metrics(
    y_true: np.ndarray, y_pred: np.ndarray, labels: Optional[List] = None
) -> pd.DataFrame:
    """Precision, recall, F1 and support for every label as a DataFrame."""
    y_true, y_pred = _check_lengths(y_true, y_pred)
    labels = _resolve_labels(y_true, y_pred, labels)
    cm = confusion_matrix(y_true, y_pred, labels)
    return pd.DataFrame(
        {
            "label": labels,
            "precision": precision_score(y_true, y_pred, None, labels, zero_division=0),
            "recall": recall_score(y_true, y_pred, None, labels, zero_division=0),
            "f1": f1_score(y_true, y_pred, None, labels, zero_division=0),
            "support": cm.sum(axis=1),
        }
    )


def classification_report(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    labels: Optional[List] = None,
    target_names: Optional[List[str]] = None,
    digits: int = 2,
) -> str:
    """
    Generate a text classification report.

    Args:
        y_true: Ground truth labels
        y_pred: Predicted labels
        labels: List of labels to include (if None, use unique labels)
        target_names: Names for labels (if None, use label values)
        digits: Number of decimal places to show

    Returns:
        Formatted classification report string
    """
    y_true, y_pred = _check_lengths(y_true, y_pred)
    labels = _resolve_labels(y_true, y_pred, labels)

    if target_names is None:
        target_names = [str(label) for label in labels]
    if len(target_names) != len(labels):
        raise ValueError("target_names length must match number of labels")

    table = per_class_metrics(y_true, y_pred, labels)
    support = table["support"].to_numpy()
    total = int(support.sum())

    width = max(len(name) for name in list(target_names) + ["weighted avg"])

    report = (
        f"{'':>{width}} {'precision':>9} {'recall':>9} {'f1-score':>9} {'support':>9}\n\n"
    )
    for name, row in zip(target_names, table.itertuples(index=False)):
        report += (
            f"{name:>{width}} {row.precision:>9.{digits}f} {row.recall:>9.{digits}f} "
            f"{row.f1:>9.{digits}f} {int(row.support):>9}\n"
        )
    report += "\n"
    report += (
        f"{'accuracy':>{width}} {'':>9} {'':>9} "
        f"{accuracy_score(y_true, y_pred):>9.{digits}f} {total:>9}\n"
    )
    for avg_name, weights in (("macro avg", None), ("weighted avg", support)):
        if weights is not None and weights.sum() == 0:
            p = r = f = 0.0
        else:
            p = np.average(table["precision"], weights=weights)
            r = np.average(table["recall"], weights=weights)
            f = np.average(table["f1"], weights=weights)
        report += (
            f"{avg_name:>{width}} {p:>9.{digits}f} {r:>9.{digits}f} {f:>9.{digits}f} {total:>9}\n"
        )

    return report


def compute_all_metrics(y_true: np.ndarray, y_pred: np.ndarray) -> Dict[str, float]:
    """
    Compute all standard classification metrics.

    Args:
        y_true: Ground truth labels
        y_pred: Predicted labels

    Returns:
        Dictionary containing all metrics
    """
    return {
        "accuracy": accuracy_score(y_true, y_pred),
        "precision_macro": precision_score(y_true, y_pred, average="macro", zero_division=0),
        "recall_macro": recall_score(y_true, y_pred, average="macro", zero_division=0),
        "f1_macro": f1_score(y_true, y_pred, average="macro", zero_division=0),
        "precision_weighted": precision_score(y_true, y_pred, average="weighted", zero_division=0),
        "recall_weighted": recall_score(y_true, y_pred, average="weighted", zero_division=0),
        "f1_weighted": f1_score(y_true, y_pred, average="weighted", zero_division=0),
    }
