# wordfish.py
"""
Wordfish Poisson scaling model (Slapin & Proksch 2008).

    y_ij ~ Poisson(lambda_ij),  log lambda_ij = alpha_i + psi_j + beta_j * theta_i

alpha_i: document fixed effect (length), psi_j: word fixed effect
(frequency), beta_j: word discrimination, theta_i: document position.

Estimation alternates penalized Newton steps for the word parameters
(psi, beta) and the document parameters (alpha, theta). Each block is a
set of independent two-parameter problems, solved in closed form and
vectorized over words / documents, with step-halving so the penalized
log-likelihood never decreases within a block.

Identification: theta is standardized to mean 0 / sd 1 after every
iteration (psi and beta absorb the transformation so fitted rates do not
change), alpha of the first document is fixed at 0, and the sign is chosen
so that theta[dir[0]] < theta[dir[1]].
"""
from __future__ import annotations
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.stats import norm

from ..core.dfm import Dfm

MAX_HALVINGS = 30


def _precision(sd: float) -> float:
    return 0.0 if np.isinf(sd) else 1.0 / (sd * sd)


def _newton_2x2(g1, g2, h11, h12, h22):
    """Solve [[h11, h12], [h12, h22]] d = g for stacked 2x2 systems."""
    det = h11 * h22 - h12 * h12
    ok = det > 1e-12
    safe = np.where(ok, det, 1.0)
    d1 = np.where(ok, (h22 * g1 - h12 * g2) / safe, 0.0)
    d2 = np.where(ok, (h11 * g2 - h12 * g1) / safe, 0.0)
    return d1, d2


class Wordfish:
    """
    params:
      - dir:        (i, j) document positions; the fit satisfies theta[i] < theta[j]
      - priors:     prior standard deviations for (theta, alpha, psi, beta);
                    inf means a flat prior
      - tol:        convergence tolerance on the relative change of the
                    penalized log-likelihood
      - max_iter:   maximum number of alternating iterations
      - dispersion: 'poisson' or 'quasipoisson' (inflates standard errors by
                    the overall Pearson dispersion)
    """

    def __init__(
        self,
        dir: Tuple[int, int] = (0, 1),
        priors: Sequence[float] = (np.inf, np.inf, 3.0, 1.0),
        tol: float = 1e-6,
        max_iter: int = 500,
        dispersion: str = "poisson",
        verbose: bool = False,
    ):
        if len(priors) != 4:
            raise ValueError("priors must give (theta, alpha, psi, beta) standard deviations")
        if dispersion not in ("poisson", "quasipoisson"):
            raise ValueError(f"Unknown dispersion '{dispersion}'")
        self.dir = tuple(dir)
        self.priors = tuple(float(p) for p in priors)
        self.tol = tol
        self.max_iter = max_iter
        self.dispersion = dispersion
        self.verbose = verbose

        self.theta: Optional[np.ndarray] = None
        self.alpha: Optional[np.ndarray] = None
        self.beta: Optional[np.ndarray] = None
        self.psi: Optional[np.ndarray] = None
        self.se_theta: Optional[np.ndarray] = None
        self.loglik: Optional[float] = None
        self.phi: float = 1.0
        self.n_iter = 0
        self.converged = False
        self.docnames: list = []
        self.features: list = []

    # -- likelihood pieces -------------------------------------------------

    def _rates(self, alpha, psi, beta, theta):
        with np.errstate(over="ignore"):
            return np.exp(alpha[:, None] + psi[None, :] + theta[:, None] * beta[None, :])

    def _penalized_loglik(self, Y, alpha, psi, beta, theta) -> float:
        eta = alpha[:, None] + psi[None, :] + theta[:, None] * beta[None, :]
        with np.errstate(over="ignore"):
            ll = float(np.sum(Y * eta - np.exp(eta)))
        pt, pa, pp, pb = self._prec
        return ll - 0.5 * (
            pt * np.sum(theta ** 2) + pa * np.sum(alpha ** 2)
            + pp * np.sum(psi ** 2) + pb * np.sum(beta ** 2)
        )

    # -- start values ------------------------------------------------------

    def _start_values(self, Y):
        n, _ = Y.shape
        rs = Y.sum(axis=1)
        cs = Y.sum(axis=0)
        alpha = np.log(rs / rs[0])
        psi = np.log(cs * rs[0] / rs.sum())
        expected = np.outer(rs, cs) / rs.sum()
        Z = np.log((Y + 0.5) / (expected + 0.5))
        U, S, Vt = np.linalg.svd(Z, full_matrices=False)
        theta = U[:, 0].copy()
        beta = S[0] * Vt[0].copy()
        return self._standardize(alpha, psi, beta, theta)

    @staticmethod
    def _standardize(alpha, psi, beta, theta):
        m = theta.mean()
        s = theta.std(ddof=1)
        if s <= 0:
            s = 1.0
        psi = psi + beta * m
        beta = beta * s
        theta = (theta - m) / s
        return alpha, psi, beta, theta

    # -- block updates -----------------------------------------------------

    def _word_step(self, Y, alpha, psi, beta, theta):
        _, _, pp, pb = self._prec
        lam = self._rates(alpha, psi, beta, theta)
        R = Y - lam
        g_psi = R.sum(axis=0) - pp * psi
        g_beta = R.T @ theta - pb * beta
        h_pp = lam.sum(axis=0) + pp
        h_pb = lam.T @ theta
        h_bb = lam.T @ (theta ** 2) + pb
        d_psi, d_beta = _newton_2x2(g_psi, g_beta, h_pp, h_pb, h_bb)

        def objective(ps, be):
            eta = alpha[:, None] + ps[None, :] + theta[:, None] * be[None, :]
            with np.errstate(over="ignore", invalid="ignore"):
                f = (Y * eta - np.exp(eta)).sum(axis=0)
            return f - 0.5 * pp * ps ** 2 - 0.5 * pb * be ** 2

        f_old = objective(psi, beta)
        step = np.ones_like(psi)
        for _ in range(MAX_HALVINGS):
            f_new = objective(psi + step * d_psi, beta + step * d_beta)
            bad = ~(f_new >= f_old - 1e-10)
            if not bad.any():
                break
            step[bad] /= 2.0
        else:
            step[bad] = 0.0
        return psi + step * d_psi, beta + step * d_beta

    def _doc_step(self, Y, alpha, psi, beta, theta):
        pt, pa, _, _ = self._prec
        lam = self._rates(alpha, psi, beta, theta)
        R = Y - lam
        g_alpha = R.sum(axis=1) - pa * alpha
        g_theta = R @ beta - pt * theta
        h_aa = lam.sum(axis=1) + pa
        h_at = lam @ beta
        h_tt = lam @ (beta ** 2) + pt
        d_alpha, d_theta = _newton_2x2(g_alpha, g_theta, h_aa, h_at, h_tt)
        # alpha of the first document is pinned at zero
        d_alpha[0] = 0.0
        d_theta[0] = g_theta[0] / h_tt[0] if h_tt[0] > 0 else 0.0

        def objective(al, th):
            eta = al[:, None] + psi[None, :] + th[:, None] * beta[None, :]
            with np.errstate(over="ignore", invalid="ignore"):
                f = (Y * eta - np.exp(eta)).sum(axis=1)
            return f - 0.5 * pa * al ** 2 - 0.5 * pt * th ** 2

        f_old = objective(alpha, theta)
        step = np.ones_like(theta)
        for _ in range(MAX_HALVINGS):
            f_new = objective(alpha + step * d_alpha, theta + step * d_theta)
            bad = ~(f_new >= f_old - 1e-10)
            if not bad.any():
                break
            step[bad] /= 2.0
        else:
            step[bad] = 0.0
        return alpha + step * d_alpha, theta + step * d_theta

    # -- public API ----------------------------------------------------------

    def fit(self, dfm: Dfm) -> "Wordfish":
        """Estimate document positions and word parameters from a count dfm."""
        Y = dfm.matrix.toarray().astype(float)
        n, p = Y.shape
        if n < 2 or p < 2:
            raise ValueError("Wordfish needs at least two documents and two features")
        if (Y < 0).any():
            raise ValueError("Wordfish needs non-negative counts")
        if (Y.sum(axis=1) == 0).any():
            raise ValueError("Wordfish cannot scale empty documents; trim the dfm first")
        if (Y.sum(axis=0) == 0).any():
            raise ValueError("Wordfish cannot use zero-count features; trim the dfm first")
        i, j = self.dir
        if not (0 <= i < n and 0 <= j < n) or i == j:
            raise ValueError(f"dir={self.dir} must name two different documents")

        self._prec = tuple(_precision(sd) for sd in self.priors)
        alpha, psi, beta, theta = self._start_values(Y)
        ll_old = self._penalized_loglik(Y, alpha, psi, beta, theta)

        self.converged = False
        for it in range(1, self.max_iter + 1):
            psi, beta = self._word_step(Y, alpha, psi, beta, theta)
            alpha, theta = self._doc_step(Y, alpha, psi, beta, theta)
            alpha, psi, beta, theta = self._standardize(alpha, psi, beta, theta)
            ll = self._penalized_loglik(Y, alpha, psi, beta, theta)
            self.n_iter = it
            if self.verbose and it % 10 == 0:
                print(f"  [wordfish] iter={it} loglik={ll:.4f}")
            if abs(ll - ll_old) / max(abs(ll_old), 1e-12) < self.tol:
                self.converged = True
                break
            ll_old = ll

        if not self.converged:
            print(f"[warn] Wordfish did not converge in {self.max_iter} iterations")

        if theta[i] > theta[j]:
            theta, beta = -theta, -beta

        self.alpha, self.psi, self.beta, self.theta = alpha, psi, beta, theta
        self.loglik = self._penalized_loglik(Y, alpha, psi, beta, theta)
        self.docnames = list(dfm.docnames)
        self.features = list(dfm.features)
        self.se_theta = self._theta_se(Y)
        return self

    def _theta_se(self, Y) -> np.ndarray:
        pt, pa, _, _ = self._prec
        lam = self._rates(self.alpha, self.psi, self.beta, self.theta)
        h_aa = lam.sum(axis=1) + pa
        h_at = lam @ self.beta
        h_tt = lam @ (self.beta ** 2) + pt
        det = h_aa * h_tt - h_at ** 2
        var = np.where(det > 0, h_aa / np.where(det > 0, det, 1.0), np.inf)
        var[0] = 1.0 / h_tt[0]
        if self.dispersion == "quasipoisson":
            n, p = Y.shape
            dof = max(n * p - (2 * n - 1) - 2 * p, 1)
            self.phi = float(np.sum((Y - lam) ** 2 / lam) / dof)
            var = var * max(self.phi, 1.0)
        return np.sqrt(var)

    def predict(self, interval: Optional[str] = "confidence", level: float = 0.95) -> pd.DataFrame:
        """Document positions, with standard errors and a confidence interval."""
        if self.theta is None:
            raise ValueError("Wordfish must be fitted before predict()")
        out = pd.DataFrame(
            {"fit": self.theta, "se": self.se_theta},
            index=pd.Index(self.docnames, name="document"),
        )
        if interval == "confidence":
            z = norm.ppf(0.5 + level / 2.0)
            out["lwr"] = self.theta - z * self.se_theta
            out["upr"] = self.theta + z * self.se_theta
        elif interval not in (None, "none"):
            raise ValueError(f"Unknown interval '{interval}'")
        return out

    def features_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"feature": self.features, "beta": self.beta, "psi": self.psi})

    def documents_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {"document": self.docnames, "theta": self.theta, "alpha": self.alpha, "se": self.se_theta}
        )
