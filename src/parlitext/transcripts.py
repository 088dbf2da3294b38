# transcripts.py
"""
Read plain-text debate transcripts into speaker turns.

A turn starts with an upper-case speaker label and a colon at the beginning
of a line ("SANDERS: ...", "MR. O'ROURKE: ..."). Lines without a label
continue the previous turn; text before the first label is dropped.
"""
from __future__ import annotations
import re
from pathlib import Path
from typing import Iterable, List

import pandas as pd

LABEL_RE = re.compile(r"^\s*([^:\n]{1,40}?)\s*:\s*(.*)$")
ANNOTATION_RE = re.compile(r"\(\s*[A-Z][A-Z ,.'\-]*\s*\)|\[[^\]]*\]")
STAGE_WORDS = (
    "applause", "laughter", "laughs", "laughing", "crosstalk", "cross-talk",
    "inaudible", "unintelligible", "booing", "boos", "cheering", "cheers",
    "chanting", "groans", "sighs", "pause", "silence", "bell", "music",
)
# "(Applause)", "(laughter and cheering)"
STAGE_RE = re.compile(
    r"\(\s*(?:" + "|".join(re.escape(w) for w in STAGE_WORDS) + r")\b[^()]*\)",
    re.IGNORECASE,
)
WS_RE = re.compile(r"\s+")


def _speaker_label(line: str):
    """Return (speaker, rest) when the line opens a new turn, else None."""
    m = LABEL_RE.match(line)
    if not m:
        return None
    label = m.group(1).strip()
    if not any(ch.isalpha() for ch in label):
        return None
    if label != label.upper() or len(label.split()) > 5:
        return None
    return label, m.group(2)


def clean_turn(text: str) -> str:
    s = STAGE_RE.sub(" ", ANNOTATION_RE.sub(" ", text))
    return WS_RE.sub(" ", s).strip()


def parse_transcript(text: str) -> pd.DataFrame:
    """
    Split a transcript into speaker turns.

    Args:
        text: Full transcript

    Returns:
        DataFrame with columns turn, speaker, text (empty turns removed)
    """
    turns: List[dict] = []
    current = None
    for line in text.splitlines():
        hit = _speaker_label(line)
        if hit is not None:
            speaker, rest = hit
            current = {"speaker": speaker, "lines": [rest]}
            turns.append(current)
        elif current is not None:
            current["lines"].append(line)

    rows = []
    for t in turns:
        body = clean_turn(" ".join(t["lines"]))
        if body:
            rows.append({"turn": len(rows), "speaker": t["speaker"], "text": body})
    return pd.DataFrame(rows, columns=["turn", "speaker", "text"])


def read_transcript(path: str | Path, encoding: str = "utf-8") -> pd.DataFrame:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Transcript not found: {p}")
    return parse_transcript(p.read_text(encoding=encoding))


def speaker_documents(
    turns: pd.DataFrame, exclude: Iterable[str] = (), min_words: int = 0
) -> pd.DataFrame:
    """
    Concatenate all turns of each speaker into one document.

    Args:
        turns: Output of parse_transcript
        exclude: Speaker labels to drop (moderators, audience)
        min_words: Drop speakers with fewer words in total

    Returns:
        DataFrame with columns speaker, text, n_turns, n_words, ordered by
        first appearance
    """
    excluded = {e.upper() for e in exclude}
    kept = turns[~turns["speaker"].str.upper().isin(excluded)]
    rows = []
    for speaker, g in kept.groupby("speaker", sort=False):
        body = " ".join(g.sort_values("turn")["text"])
        rows.append(
            {
                "speaker": speaker,
                "text": body,
                "n_turns": int(len(g)),
                "n_words": len(body.split()),
            }
        )
    docs = pd.DataFrame(rows, columns=["speaker", "text", "n_turns", "n_words"])
    return docs[docs["n_words"] >= min_words].reset_index(drop=True)
