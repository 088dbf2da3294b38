"""Tests for the Wordfish Poisson scaling model."""

from __future__ import annotations

import numpy as np
import pytest
from scipy import sparse

from parlitext.core.dfm import Dfm
from parlitext.models.wordfish import Wordfish


def _simulate(n_docs: int = 10, n_words: int = 150, seed: int = 5):
    rng = np.random.default_rng(seed)
    theta = np.linspace(-1.5, 1.5, n_docs)
    alpha = rng.normal(0, 0.3, n_docs)
    psi = rng.normal(0.5, 0.8, n_words)
    beta = rng.normal(0, 0.8, n_words)
    rates = np.exp(alpha[:, None] + psi[None, :] + theta[:, None] * beta[None, :])
    Y = rng.poisson(rates)
    # every row and column needs at least one count
    Y[:, Y.sum(axis=0) == 0] = 1
    dfm = Dfm(
        sparse.csr_matrix(Y),
        [f"doc{i}" for i in range(n_docs)],
        [f"w{j}" for j in range(n_words)],
    )
    return dfm, theta


@pytest.fixture(scope="module")
def simulated():
    return _simulate()


@pytest.fixture(scope="module")
def fitted(simulated):
    dfm, _ = simulated
    return Wordfish(dir=(0, 9)).fit(dfm)


class TestWordfishFit:
    def test_recovers_positions(self, simulated, fitted) -> None:
        _, theta = simulated
        assert np.corrcoef(fitted.theta, theta)[0, 1] > 0.9

    def test_direction(self, fitted) -> None:
        assert fitted.theta[0] < fitted.theta[9]

    def test_flipped_direction(self, simulated) -> None:
        dfm, theta = simulated
        model = Wordfish(dir=(9, 0)).fit(dfm)
        assert model.theta[9] < model.theta[0]
        assert np.corrcoef(model.theta, theta)[0, 1] < -0.9

    def test_identification(self, fitted) -> None:
        assert fitted.theta.mean() == pytest.approx(0.0, abs=1e-8)
        assert fitted.theta.std(ddof=1) == pytest.approx(1.0, abs=1e-8)
        assert fitted.alpha[0] == 0.0

    def test_converged(self, fitted) -> None:
        assert fitted.converged
        assert 0 < fitted.n_iter <= fitted.max_iter
        assert np.isfinite(fitted.loglik)

    def test_standard_errors(self, fitted) -> None:
        assert np.all(np.isfinite(fitted.se_theta))
        assert np.all(fitted.se_theta > 0)

    def test_quasipoisson_never_shrinks_standard_errors(self, simulated, fitted) -> None:
        dfm, _ = simulated
        quasi = Wordfish(dir=(0, 9), dispersion="quasipoisson").fit(dfm)
        assert quasi.phi > 0
        assert np.all(quasi.se_theta >= fitted.se_theta - 1e-12)
        np.testing.assert_allclose(quasi.theta, fitted.theta)


class TestWordfishOutput:
    def test_predict_frame(self, fitted) -> None:
        pred = fitted.predict(interval="confidence")
        assert list(pred.columns) == ["fit", "se", "lwr", "upr"]
        assert pred.index.name == "document"
        assert (pred["lwr"] < pred["fit"]).all() and (pred["fit"] < pred["upr"]).all()

    def test_predict_without_interval(self, fitted) -> None:
        assert list(fitted.predict(interval=None).columns) == ["fit", "se"]

    def test_features_frame(self, fitted) -> None:
        frame = fitted.features_frame()
        assert list(frame.columns) == ["feature", "beta", "psi"]
        assert len(frame) == 150

    def test_documents_frame(self, fitted) -> None:
        assert fitted.documents_frame()["document"].tolist()[:2] == ["doc0", "doc1"]


class TestWordfishErrors:
    def test_empty_document(self) -> None:
        dfm = Dfm(sparse.csr_matrix(np.array([[1, 2], [0, 0], [3, 1]])), ["a", "b", "c"], ["x", "y"])
        with pytest.raises(ValueError, match="empty documents"):
            Wordfish().fit(dfm)

    def test_zero_feature(self) -> None:
        dfm = Dfm(sparse.csr_matrix(np.array([[1, 0], [2, 0]])), ["a", "b"], ["x", "y"])
        with pytest.raises(ValueError):
            Wordfish().fit(dfm)

    def test_bad_dir(self, simulated) -> None:
        dfm, _ = simulated
        with pytest.raises(ValueError):
            Wordfish(dir=(3, 3)).fit(dfm)
        with pytest.raises(ValueError):
            Wordfish(dir=(0, 99)).fit(dfm)

    def test_bad_priors(self) -> None:
        with pytest.raises(ValueError):
            Wordfish(priors=(1, 1))

    def test_predict_before_fit(self) -> None:
        with pytest.raises(ValueError):
            Wordfish().predict()
