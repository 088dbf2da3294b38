"""End-to-end test of the party-classification pipeline on a small corpus."""

from __future__ import annotations

import json

import pytest

from parlitext.experiments import hyperparameter_tuning
from parlitext.experiments.experimental_pipeline import ExperimentalPipeline


class TestExperimentalPipeline:
    def test_complete_pipeline(self, corpus_csv, tmp_path) -> None:
        results_dir = tmp_path / "results"
        pipeline = ExperimentalPipeline(
            data_path=corpus_csv,
            results_dir=results_dir,
            penalties=("lasso",),
            fast=True,
        )
        out = pipeline.run_complete_pipeline()
        data = json.loads(out.read_text(encoding="utf-8"))
        assert [r["term"] for r in data["polarization"]["terms"]] == [18, 19]
        assert (results_dir / "polarization_f1_macro.png").exists()
        assert (results_dir / "confusion_matrices_lasso.png").exists()
        assert (results_dir / "model_summary.md").exists()

    def test_terms_filter(self, corpus_csv, tmp_path) -> None:
        pipeline = ExperimentalPipeline(data_path=corpus_csv, results_dir=tmp_path, terms=[19])
        df = pipeline.load_and_prepare_data()
        assert set(df["term"]) == {19}

    def test_missing_file(self, tmp_path) -> None:
        pipeline = ExperimentalPipeline(data_path=tmp_path / "missing.csv", results_dir=tmp_path)
        with pytest.raises(FileNotFoundError):
            pipeline.load_and_prepare_data()

    def test_tuned_dfm_options_used_per_term(self, corpus_csv, tmp_path, monkeypatch) -> None:
        monkeypatch.setitem(
            hyperparameter_tuning.HYPERPARAMETER_GRIDS_FAST, "lasso", {"lam": [0.01], "min_docfreq": [3]}
        )
        pipeline = ExperimentalPipeline(
            data_path=corpus_csv, results_dir=tmp_path, penalties=("lasso",), fast=True
        )
        pipeline.load_and_prepare_data()
        pipeline.run_hyperparameter_tuning()
        assert pipeline.experiment.dfm_params["min_docfreq"] == 3
        assert pipeline.results["tuned_dfm_params"] == {"min_docfreq": 3}

    def test_explicit_dfm_options_beat_tuned_ones(self, corpus_csv, tmp_path, monkeypatch) -> None:
        monkeypatch.setitem(
            hyperparameter_tuning.HYPERPARAMETER_GRIDS_FAST, "lasso", {"lam": [0.01], "min_docfreq": [3]}
        )
        pipeline = ExperimentalPipeline(
            data_path=corpus_csv,
            results_dir=tmp_path,
            penalties=("lasso",),
            dfm_params={"min_docfreq": 1},
            fast=True,
        )
        pipeline.load_and_prepare_data()
        pipeline.run_hyperparameter_tuning()
        assert pipeline.experiment.dfm_params["min_docfreq"] == 1
