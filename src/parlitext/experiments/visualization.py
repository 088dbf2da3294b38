# visualization.py
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns


def _finish(fig, save_dir: Optional[Path], filename: str) -> Optional[Path]:
    """Save to save_dir/filename, or show interactively when save_dir is None."""
    fig.tight_layout()
    if save_dir is None:
        plt.show()
        return None
    save_dir = Path(save_dir)
    save_dir.mkdir(parents=True, exist_ok=True)
    out = save_dir / filename
    fig.savefig(out, dpi=200, bbox_inches="tight")
    plt.close(fig)
    return out


def plot_polarization_trend(
    summary: pd.DataFrame, save_dir: Optional[Path] = None, metric: str = "f1_macro"
) -> Optional[Path]:
    """Test-set metric per legislative term, one line per penalty."""
    if summary.empty:
        raise ValueError("No results to plot")
    fig, ax = plt.subplots(figsize=(9, 5))
    terms = list(pd.unique(summary["term"]))
    x = {t: i for i, t in enumerate(terms)}
    for penalty, g in summary.groupby("penalty", sort=False):
        ax.plot([x[t] for t in g["term"]], g[metric], marker="o", linewidth=2, label=penalty)
    ax.set_xticks(range(len(terms)))
    ax.set_xticklabels([str(t) for t in terms])
    ax.set_xlabel("Legislative term")
    ax.set_ylabel(metric.replace("_", " "))
    ax.set_ylim(0, 1.05)
    ax.set_title("Party separability by term")
    ax.legend(title="Penalty")
    ax.grid(True, alpha=0.3)
    return _finish(fig, save_dir, f"polarization_{metric}.png")


def plot_party_f1(
    party_metrics: pd.DataFrame,
    save_dir: Optional[Path] = None,
    penalty: Optional[str] = None,
) -> Optional[Path]:
    """Per-party F1 across terms for one penalty."""
    data = party_metrics
    if penalty is not None:
        data = data[data["penalty"] == penalty]
    if data.empty:
        raise ValueError("No party metrics to plot")
    data = data.assign(term=data["term"].astype(str))
    fig, ax = plt.subplots(figsize=(9, 5))
    sns.lineplot(data=data, x="term", y="f1", hue="party", marker="o", ax=ax)
    ax.set_xlabel("Legislative term")
    ax.set_ylabel("F1")
    ax.set_ylim(0, 1.05)
    ax.set_title(f"F1 by party{f' ({penalty})' if penalty else ''}")
    return _finish(fig, save_dir, f"party_f1{f'_{penalty}' if penalty else ''}.png")


def plot_confusion_matrices(
    term_results: List[Dict[str, Any]],
    save_dir: Optional[Path] = None,
    penalty: Optional[str] = None,
) -> Optional[Path]:
    """One confusion-matrix heatmap per term."""
    results = [
        r for r in term_results
        if "confusion_matrix" in r and (penalty is None or r["penalty"] == penalty)
    ]
    if not results:
        print("Warning: No confusion matrices found")
        return None

    n = len(results)
    fig, axes = plt.subplots(1, n, figsize=(4.5 * n, 4), squeeze=False)
    for ax, res in zip(axes[0], results):
        cm = np.asarray(res["confusion_matrix"], dtype=int)
        sns.heatmap(
            cm,
            annot=True,
            fmt="d",
            cmap="Blues",
            ax=ax,
            cbar=False,
            square=True,
            xticklabels=res["labels"],
            yticklabels=res["labels"],
        )
        ax.set_title(f"Term {res['term']} ({res['penalty']})")
        ax.set_xlabel("Predicted")
        ax.set_ylabel("Actual")
    return _finish(fig, save_dir, f"confusion_matrices{f'_{penalty}' if penalty else ''}.png")


def plot_top_features(
    top: Dict[str, Sequence[Tuple[str, float]]],
    save_dir: Optional[Path] = None,
    title: str = "Most predictive features",
    filename: str = "top_features.png",
) -> Optional[Path]:
    """Horizontal bars of the strongest coefficients for each party."""
    parties = [p for p, feats in top.items() if len(feats)]
    if not parties:
        raise ValueError("No non-zero coefficients to plot")
    fig, axes = plt.subplots(1, len(parties), figsize=(5 * len(parties), 5), squeeze=False)
    for ax, party in zip(axes[0], parties):
        feats = list(top[party])[::-1]
        ax.barh([f for f, _ in feats], [abs(c) for _, c in feats], color=sns.color_palette()[0])
        ax.set_title(party)
        ax.set_xlabel("|coefficient|")
    fig.suptitle(title)
    return _finish(fig, save_dir, filename)


def plot_cv_curve(
    cv: Dict[str, Sequence[float]],
    save_dir: Optional[Path] = None,
    lambda_min: Optional[float] = None,
    lambda_1se: Optional[float] = None,
    filename: str = "cv_curve.png",
) -> Optional[Path]:
    """Cross-validated loss against log(lambda) with one-SE error bars."""
    lam = np.asarray(cv["lambda"], dtype=float)
    fig, ax = plt.subplots(figsize=(7, 4.5))
    ax.errorbar(np.log(lam), cv["cvm"], yerr=cv["cvsd"], fmt="o", color="firebrick", ecolor="grey", capsize=3)
    for value, style in ((lambda_min, "--"), (lambda_1se, ":")):
        if value is not None:
            ax.axvline(np.log(value), linestyle=style, color="black")
    ax.set_xlabel("log(lambda)")
    ax.set_ylabel("CV loss")
    return _finish(fig, save_dir, filename)


def plot_document_positions(
    estimates: pd.DataFrame,
    save_dir: Optional[Path] = None,
    title: str = "Estimated document positions",
    filename: str = "document_positions.png",
    label_col: Optional[str] = None,
) -> Optional[Path]:
    """Point estimates with confidence intervals, sorted by position."""
    est = estimates.dropna(subset=["fit"]).sort_values("fit")
    labels = est[label_col].astype(str) if label_col else est.index.astype(str)
    fig, ax = plt.subplots(figsize=(7, max(3, 0.35 * len(est) + 1)))
    y = np.arange(len(est))
    if {"lwr", "upr"} <= set(est.columns):
        ax.hlines(y, est["lwr"], est["upr"], color="grey")
    ax.plot(est["fit"], y, "o", color="black")
    ax.set_yticks(y)
    ax.set_yticklabels(labels)
    ax.axvline(0, color="lightgrey", linewidth=0.8)
    ax.set_xlabel("Estimated position")
    ax.set_title(title)
    return _finish(fig, save_dir, filename)


def plot_word_positions(
    features: pd.DataFrame,
    highlight: Sequence[str] = (),
    save_dir: Optional[Path] = None,
    filename: str = "word_positions.png",
) -> Optional[Path]:
    """Wordfish word discrimination (beta) against word fixed effect (psi)."""
    fig, ax = plt.subplots(figsize=(8, 6))
    ax.scatter(features["beta"], features["psi"], s=6, alpha=0.4, color="grey")
    hits = features[features["feature"].isin(list(highlight))]
    for row in hits.itertuples(index=False):
        ax.annotate(row.feature, (row.beta, row.psi), color="firebrick", fontsize=9)
    ax.set_xlabel("beta (discrimination)")
    ax.set_ylabel("psi (word fixed effect)")
    ax.set_title("Wordfish word parameters")
    return _finish(fig, save_dir, filename)


def export_summary_table(summary: pd.DataFrame, save_dir: Path):
    save_dir = Path(save_dir)
    save_dir.mkdir(parents=True, exist_ok=True)
    summary.to_csv(save_dir / "model_summary.csv", index=False)
    (save_dir / "model_summary.md").write_text(
        summary.to_markdown(index=False, floatfmt=".4f"), encoding="utf-8"
    )
