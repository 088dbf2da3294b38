"""Tests for nested-CV hyperparameter tuning."""

from __future__ import annotations

import pytest

from parlitext.experiments.hyperparameter_tuning import (
    HYPERPARAMETER_GRIDS,
    HYPERPARAMETER_GRIDS_FAST,
    HyperparameterTuner,
)


@pytest.fixture(scope="module")
def tuned(speech_corpus) -> HyperparameterTuner:
    data = speech_corpus[speech_corpus["term"] == 18]
    tuner = HyperparameterTuner(outer_folds=2, inner_folds=2, fast=True, verbose=False)
    X, y = data["text"].tolist(), data["party"].to_numpy()
    tuner.tune_penalty(X, y, "lasso")
    tuner.tune_penalty(X, y, "ridge")
    return tuner


class TestGrids:
    def test_every_penalty_has_a_grid(self) -> None:
        assert set(HYPERPARAMETER_GRIDS) == set(HYPERPARAMETER_GRIDS_FAST) == {"lasso", "ridge", "elasticnet"}

    def test_unknown_penalty(self) -> None:
        with pytest.raises(ValueError):
            HyperparameterTuner().grid_for("svm")


class TestTuner:
    def test_results_tracked(self, tuned) -> None:
        assert set(tuned.results) == {"lasso", "ridge"}
        best = tuned.get_best_models()
        assert best["lasso"]["best_params"]["lam"] in HYPERPARAMETER_GRIDS_FAST["lasso"]["lam"]
        assert 0.0 <= best["ridge"]["cv_score"] <= 1.0

    def test_compare_models_sorted(self, tuned) -> None:
        table = tuned.compare_models()
        assert sorted(table["penalty"]) == ["lasso", "ridge"]
        assert table["cv_f1"].is_monotonic_decreasing

    def test_compare_models_empty(self) -> None:
        assert HyperparameterTuner().compare_models().empty

    def test_tune_multiple_models_records_errors(self, speech_corpus) -> None:
        data = speech_corpus[speech_corpus["term"] == 18]
        tuner = HyperparameterTuner(outer_folds=2, inner_folds=2, verbose=False)
        out = tuner.tune_multiple_models(
            [("broken", data["text"].tolist(), data["party"].to_numpy(), lambda p: None, [])]
        )
        assert "error" in out["broken"]

    def test_save_and_load(self, tuned, tmp_path) -> None:
        path = tmp_path / "tuning" / "results.json"
        tuned.save_results(path)
        fresh = HyperparameterTuner()
        fresh.load_results(path)
        assert fresh.get_best_models()["lasso"]["best_params"] == tuned.get_best_models()["lasso"]["best_params"]
