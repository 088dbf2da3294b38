#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Party Classification Pipeline

Research question: "How well can penalized logistic regressions tell the
parties apart from their speeches, and how does that change from one
legislative term to the next?"

Steps:
1. Corpus loading and preprocessing
2. Optional nested-CV tuning of the dfm options on the pooled corpus
3. Per-term classification for every penalty
4. Visualization and results export
"""

from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

import matplotlib.pyplot as plt
import pandas as pd

from ..core.dfm import DEFAULT_DFM_PARAMS
from ..prepare_dataset import balance_by_term, filter_parties, load_corpus
from .hyperparameter_tuning import HyperparameterTuner
from .polarization import PolarizationExperiment, polarization_index
from .visualization import (
    plot_confusion_matrices,
    plot_party_f1,
    plot_polarization_trend,
    plot_top_features,
)


class ExperimentalPipeline:
    """
    Orchestrates the party-classification workflow from corpus file to plots.
    """

    def __init__(
        self,
        data_path: str,
        results_dir: str = "results",
        parties: Optional[Iterable[str]] = None,
        top_n_parties: Optional[int] = 2,
        penalties: Sequence[str] = ("lasso", "ridge", "elasticnet"),
        alpha: Optional[float] = None,
        terms: Optional[Sequence[Any]] = None,
        term_boundaries: Optional[Mapping] = None,
        test_size: float = 0.2,
        cv_folds: int = 5,
        lambda_rule: str = "min",
        measure: str = "deviance",
        balance: bool = True,
        dfm_params: Optional[Dict[str, Any]] = None,
        random_state: int = 42,
        fast: bool = False,
        include_tuning: bool = False,
    ):
        """
        Args:
            data_path: Serialized speech corpus
            results_dir: Directory to save results
            parties: Parties to compare (default: the top_n_parties largest)
            penalties: Penalty variants
            alpha: Elastic-net mixing weight (default 0.5)
            terms: Restrict to these legislative terms
            term_boundaries: {term: start_date} when the corpus has no term column
            fast: Shorter lambda paths / fewer folds / small tuning grids
            dfm_params: DfmBuilder options; these take precedence over tuned ones
            include_tuning: Run nested-CV tuning on the pooled corpus first. The
                dfm options of the best-scoring penalty are then used for the
                per-term runs; lambda is still chosen per term by CV.
        """
        self.data_path = Path(data_path)
        self.results_dir = Path(results_dir)
        self.parties = list(parties) if parties else None
        self.top_n_parties = top_n_parties
        self.terms = terms
        self.term_boundaries = term_boundaries
        self.random_state = random_state
        self.fast = fast
        self.include_tuning = include_tuning
        self.balance = balance
        self.user_dfm_params = dict(dfm_params or {})
        self.data: Optional[pd.DataFrame] = None
        self.tuner: Optional[HyperparameterTuner] = None
        self.results: Dict[str, Any] = {}

        self.experiment = PolarizationExperiment(
            penalties=penalties,
            alpha=alpha,
            test_size=test_size,
            cv_folds=3 if fast else cv_folds,
            n_lambda=10 if fast else 20,
            lambda_rule=lambda_rule,
            measure=measure,
            balance=balance,
            dfm_params=dfm_params,
            random_state=random_state,
        )

    def load_and_prepare_data(self):
        print("=" * 60)
        print("[1/5] Speech corpus")
        print("=" * 60)

        if not self.data_path.exists():
            raise FileNotFoundError(f"Corpus file not found: {self.data_path}")
        df = load_corpus(self.data_path, term_boundaries=self.term_boundaries)
        if "term" not in df.columns:
            raise KeyError("Corpus has no 'term' column; pass term_boundaries to derive it from dates")
        df = filter_parties(df, parties=self.parties, top_n=None if self.parties else self.top_n_parties)
        if self.terms is not None:
            df = df[df["term"].isin(self.terms)].reset_index(drop=True)
        self.data = df

        print(f"[data] rows={len(df)}, parties={df['party'].value_counts().to_dict()}")
        print(f"[data] terms={df['term'].value_counts().sort_index().to_dict()}")
        return df

    def run_hyperparameter_tuning(self):
        print("\n" + "=" * 60)
        print("[2/5] Nested-CV tuning on the pooled corpus")
        print("=" * 60)

        data = self.data
        if self.balance:
            data = balance_by_term(data, "party", random_state=self.random_state)
        tuner = HyperparameterTuner(
            outer_folds=3 if self.fast else 5,
            inner_folds=2 if self.fast else 3,
            random_state=self.random_state,
            fast=self.fast,
        )
        X = data["text"].tolist()
        y = data["party"].to_numpy()
        for penalty in self.experiment.penalties:
            try:
                tuner.tune_penalty(X, y, penalty)
            except ValueError as e:
                print(f"[warn] tuning {penalty} failed: {e}")
        self.tuner = tuner
        best_models = tuner.get_best_models()
        self.results["hyperparameter_tuning"] = best_models
        table = tuner.compare_models()
        print("\n[info] penalty comparison (outer-fold F1):")
        print(table)

        if not table.empty:
            winner = table.loc[0, "penalty"]
            tuned = {
                k: v for k, v in best_models[winner]["best_params"].items() if k in DEFAULT_DFM_PARAMS
            }
            if tuned:
                self.experiment.dfm_params = {**tuned, **self.user_dfm_params}
                self.results["tuned_dfm_params"] = tuned
                print(f"[info] dfm options from {winner}: {tuned}")
        return tuner.results

    def run_polarization(self):
        print("\n" + "=" * 60)
        print("[3/5] Party classification by term")
        print("=" * 60)
        self.results["polarization"] = self.experiment.run(self.data)
        summary = self.experiment.summary()
        if not summary.empty:
            print("\nF1 (macro) per term and penalty:")
            print(polarization_index(summary).round(4))
        return self.results["polarization"]

    def create_visualizations(self):
        print("\n" + "=" * 60)
        print("[4/5] Figures")
        print("=" * 60)

        plt.style.use("seaborn-v0_8")
        summary = self.experiment.summary()
        if summary.empty:
            print("[warn] no classification results, skipping figures")
            return
        plot_polarization_trend(summary, self.results_dir)
        terms = self.results["polarization"]["terms"]
        party_metrics = self.experiment.party_metrics()
        for penalty in self.experiment.penalties:
            if (party_metrics["penalty"] == penalty).any():
                plot_party_f1(party_metrics, self.results_dir, penalty)
            plot_confusion_matrices(terms, self.results_dir, penalty)
        last = [r for r in terms if "top_features" in r and r["penalty"] == self.experiment.penalties[0]]
        if last:
            r = last[-1]
            try:
                plot_top_features(
                    r["top_features"],
                    self.results_dir,
                    title=f"Most predictive features, term {r['term']} ({r['penalty']})",
                )
            except ValueError as e:
                print(f"[warn] {e}")
        print(f"[info] figures written to {self.results_dir}/")

    def save_results(self):
        print("\n" + "=" * 60)
        print("[5/5] Export")
        print("=" * 60)
        if self.tuner is not None:
            self.tuner.save_results(self.results_dir / "hyperparameter_tuning.json")
        return self.experiment.save_results(self.results_dir)

    def run_complete_pipeline(self):
        self.load_and_prepare_data()
        if self.include_tuning:
            self.run_hyperparameter_tuning()
        else:
            print("\n[info] Pooled tuning is disabled (set include_tuning=True to enable).")
        self.run_polarization()
        self.create_visualizations()
        return self.save_results()
