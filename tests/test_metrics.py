"""Tests for the hand-written classification metrics."""

from __future__ import annotations

import numpy as np
import pytest

from parlitext.core.metrics import (
    accuracy_score,
    classification_report,
    compute_all_metrics,
    confusion_matrix,
    f1_score,
    per_class_metrics,
    precision_score,
    recall_score,
)

Y_TRUE = np.array(["A", "A", "B", "B", "C"])
Y_PRED = np.array(["A", "B", "B", "B", "A"])


class TestConfusionMatrix:
    def test_string_labels_sorted(self) -> None:
        cm = confusion_matrix(Y_TRUE, Y_PRED)
        np.testing.assert_array_equal(cm, [[1, 1, 0], [0, 2, 0], [1, 0, 0]])

    def test_explicit_labels_ignore_others(self) -> None:
        cm = confusion_matrix(Y_TRUE, Y_PRED, labels=["B", "A"])
        np.testing.assert_array_equal(cm, [[2, 0], [1, 1]])

    def test_length_mismatch(self) -> None:
        with pytest.raises(ValueError):
            confusion_matrix([1, 2], [1])


class TestScores:
    def test_accuracy(self) -> None:
        assert accuracy_score(Y_TRUE, Y_PRED) == pytest.approx(0.6)
        assert accuracy_score([], []) == 0.0

    def test_per_class(self) -> None:
        np.testing.assert_allclose(precision_score(Y_TRUE, Y_PRED, None, zero_division=0), [0.5, 2 / 3, 0.0])
        np.testing.assert_allclose(recall_score(Y_TRUE, Y_PRED, None), [0.5, 1.0, 0.0])
        np.testing.assert_allclose(f1_score(Y_TRUE, Y_PRED, None), [0.5, 0.8, 0.0])

    def test_macro_f1_is_mean_of_class_f1(self) -> None:
        assert f1_score(Y_TRUE, Y_PRED, average="macro") == pytest.approx(1.3 / 3)

    def test_micro_and_weighted(self) -> None:
        assert f1_score(Y_TRUE, Y_PRED, average="micro") == pytest.approx(0.6)
        assert f1_score(Y_TRUE, Y_PRED, average="weighted") == pytest.approx((0.5 * 2 + 0.8 * 2) / 5)

    def test_binary(self) -> None:
        y_true, y_pred = [0, 1, 1, 0], [0, 1, 0, 0]
        assert precision_score(y_true, y_pred) == pytest.approx(1.0)
        assert recall_score(y_true, y_pred) == pytest.approx(0.5)
        assert f1_score(y_true, y_pred) == pytest.approx(2 / 3)
        assert recall_score(y_true, y_pred, pos_label=0) == pytest.approx(1.0)

    def test_binary_needs_two_classes(self) -> None:
        with pytest.raises(ValueError):
            f1_score(Y_TRUE, Y_PRED)

    def test_zero_division_warning(self, capsys) -> None:
        precision_score(Y_TRUE, Y_PRED, average="macro")
        assert "Warning" in capsys.readouterr().out

    def test_zero_division_fill(self) -> None:
        scores = precision_score(Y_TRUE, Y_PRED, None, zero_division=1)
        assert scores[2] == 1.0

    def test_unknown_average(self) -> None:
        with pytest.raises(ValueError):
            f1_score(Y_TRUE, Y_PRED, average="samples")


class TestReports:
    def test_per_class_metrics_frame(self) -> None:
        table = per_class_metrics(Y_TRUE, Y_PRED)
        assert table["label"].tolist() == ["A", "B", "C"]
        assert table["support"].tolist() == [2, 2, 1]

    def test_classification_report(self) -> None:
        report = classification_report(Y_TRUE, Y_PRED, target_names=["SPD", "CDU", "FDP"])
        assert "CDU" in report
        assert "macro avg" in report
        with pytest.raises(ValueError):
            classification_report(Y_TRUE, Y_PRED, target_names=["SPD"])

    def test_compute_all_metrics(self) -> None:
        metrics = compute_all_metrics(Y_TRUE, Y_PRED)
        assert metrics["accuracy"] == pytest.approx(0.6)
        assert metrics["f1_macro"] == pytest.approx(1.3 / 3)
        assert set(metrics) >= {"precision_macro", "recall_macro", "f1_weighted"}
