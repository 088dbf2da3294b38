from __future__ import annotations

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

LEFT_WORDS = ["healthcare", "union", "wages", "climate", "equality", "workers", "housing", "pension"]
RIGHT_WORDS = ["taxes", "border", "business", "military", "freedom", "market", "deregulation", "police"]
COMMON_WORDS = ["people", "country", "plan", "believe", "future", "families", "jobs", "nation"]


def _speech(rng: np.random.Generator, position: float, n_words: int) -> str:
    """Words drawn towards the left (-1) or right (+1) vocabulary."""
    p_left = 0.6 * (1 - position) / 2
    p_right = 0.6 * (1 + position) / 2
    words = []
    for u in rng.random(n_words):
        if u < p_left:
            pool = LEFT_WORDS
        elif u < p_left + p_right:
            pool = RIGHT_WORDS
        else:
            pool = COMMON_WORDS
        words.append(pool[rng.integers(len(pool))])
    return " ".join(words)


# ── Speech corpus ─────────────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def speech_corpus() -> pd.DataFrame:
    """Two parties, two terms; the parties are far apart in term 18, closer in 19."""
    rng = np.random.default_rng(7)
    rows = []
    for term, spread in ((18, 0.9), (19, 0.6)):
        for party, sign in (("SPD", -1), ("CDU", 1)):
            for i in range(30):
                rows.append(
                    {
                        "text": _speech(rng, sign * spread, 30),
                        "party": party,
                        "speaker": f"{party}-{i % 5}",
                        "term": term,
                    }
                )
    return pd.DataFrame(rows)


@pytest.fixture
def corpus_csv(tmp_path, speech_corpus):
    """The same corpus serialized with source-style column names."""
    raw = speech_corpus.rename(columns={"text": "speech", "party": "faction", "term": "wahlperiode"})
    path = tmp_path / "speeches.csv"
    raw.to_csv(path, index=False)
    return path


# ── Transcripts ───────────────────────────────────────────────────────────────

SHORT_TRANSCRIPT = """Transcript of the second debate, as released
MODERATOR: Good evening and welcome. (APPLAUSE)
SMITH: I believe in lower taxes.
And smaller government.
JONES: We need [crosstalk] public healthcare.
Note: this sentence continues the answer
SMITH: Taxes again.
"""


@pytest.fixture
def short_transcript() -> str:
    return SHORT_TRANSCRIPT


@pytest.fixture
def debate_transcript(tmp_path):
    """Five candidates from left to right plus a moderator, several turns each."""
    rng = np.random.default_rng(11)
    positions = {"LEFT1": -1.0, "LEFT2": -0.6, "CENTER": 0.0, "RIGHT2": 0.6, "RIGHT1": 1.0}
    lines = ["Debate transcript", ""]
    for _ in range(4):
        lines.append("MODERATOR: Next question please. (LAUGHTER)")
        for speaker, pos in positions.items():
            lines.append(f"{speaker}: {_speech(rng, pos, 80)}")
    path = tmp_path / "debate.txt"
    path.write_text("\n".join(lines), encoding="utf-8")
    return path
