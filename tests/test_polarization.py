"""Tests for per-term party classification."""

from __future__ import annotations

import json

import pytest

from parlitext.experiments.polarization import (
    SUMMARY_COLUMNS,
    PolarizationExperiment,
    polarization_index,
)


def _experiment(**kwargs) -> PolarizationExperiment:
    params = dict(penalties=("lasso", "ridge"), cv_folds=3, n_lambda=5, min_per_party=5, verbose=False)
    params.update(kwargs)
    return PolarizationExperiment(**params)


@pytest.fixture(scope="module")
def finished(speech_corpus) -> PolarizationExperiment:
    exp = _experiment()
    exp.run(speech_corpus)
    return exp


class TestRun:
    def test_one_result_per_term_and_penalty(self, finished) -> None:
        rows = finished.results["terms"]
        assert [(r["term"], r["penalty"]) for r in rows] == [
            (18, "lasso"),
            (18, "ridge"),
            (19, "lasso"),
            (19, "ridge"),
        ]
        assert not any("error" in r for r in rows)

    def test_parties_are_separable(self, finished) -> None:
        summary = finished.summary()
        assert list(summary.columns) == SUMMARY_COLUMNS
        assert (summary["f1_macro"] >= 0.75).all()
        assert (summary["n_test"] == 12).all()
        assert (summary["n_train"] == 48).all()

    def test_result_contents(self, finished) -> None:
        r = finished.results["terms"][0]
        assert r["labels"] == ["CDU", "SPD"]
        assert len(r["confusion_matrix"]) == 2
        assert sum(map(sum, r["confusion_matrix"])) == r["n_test"]
        assert set(r["top_features"]) <= {"CDU", "SPD"}
        assert len(r["cv"]["lambda"]) == 5
        assert r["lambda"] == r["lambda_min"]
        assert r["f1_gap"] == pytest.approx(r["train_f1_macro"] - r["f1_macro"])

    def test_party_metrics(self, finished) -> None:
        pm = finished.party_metrics()
        assert len(pm) == 8
        assert set(pm["party"]) == {"CDU", "SPD"}

    def test_polarization_index(self, finished) -> None:
        table = polarization_index(finished.summary())
        assert table.shape == (2, 2)
        assert list(table.columns) == ["lasso", "ridge"]
        with pytest.raises(KeyError):
            polarization_index(finished.summary(), "auc")

    def test_save_results(self, finished, tmp_path) -> None:
        out = finished.save_results(tmp_path)
        data = json.loads(out.read_text(encoding="utf-8"))
        assert len(data["polarization"]["terms"]) == 4
        assert data["polarization"]["config"]["penalties"] == ["lasso", "ridge"]
        assert (tmp_path / "model_summary.csv").exists()
        assert (tmp_path / "model_summary.md").exists()


class TestFailures:
    def test_single_party_term_is_recorded(self, speech_corpus) -> None:
        data = speech_corpus[~((speech_corpus["term"] == 19) & (speech_corpus["party"] == "CDU"))]
        exp = _experiment(penalties=("lasso",))
        results = exp.run(data)
        failed = [r for r in results["terms"] if "error" in r]
        assert [(r["term"], r["penalty"]) for r in failed] == [(19, "lasso")]
        assert exp.summary()["term"].tolist() == [18]

    def test_too_few_speeches(self, speech_corpus) -> None:
        exp = _experiment(penalties=("lasso",), min_per_party=100)
        exp.run(speech_corpus)
        assert exp.summary().empty
        assert list(exp.summary().columns) == SUMMARY_COLUMNS

    def test_missing_term_column(self, speech_corpus) -> None:
        with pytest.raises(KeyError):
            _experiment().run(speech_corpus.drop(columns=["term"]))

    def test_invalid_settings(self) -> None:
        with pytest.raises(ValueError):
            _experiment(test_size=1.5)
        with pytest.raises(ValueError):
            _experiment(lambda_rule="best")
        with pytest.raises(ValueError):
            _experiment(penalties=("dropout",))


class TestSettings:
    def test_one_se_rule_and_elasticnet(self, speech_corpus) -> None:
        exp = _experiment(penalties=("elasticnet",), alpha=0.3, lambda_rule="1se", measure="class")
        results = exp.run(speech_corpus[speech_corpus["term"] == 18])
        r = results["terms"][0]
        assert r["alpha"] == 0.3
        assert r["lambda"] == r["lambda_1se"]
        assert r["lambda_1se"] >= r["lambda_min"]
