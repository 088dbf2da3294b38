#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Prepare a parliamentary speech corpus:
- Read a serialized speech table (csv/tsv/parquet/feather/pickle/json)
- Map source columns to text, party, speaker, date, term
- Clean text (HTML entities/tags, unicode normalization, whitespace)
- Keep the requested parties, optionally balance parties inside each term
- Save to <outdir>/speeches_clean.csv

This module provides functions to prepare the corpus programmatically.
"""
from __future__ import annotations
import html, json, re, unicodedata
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

import numpy as np
import pandas as pd

TAG_RE = re.compile(r"<[^>]+>")
WS_RE = re.compile(r"\s+")

CANONICAL_COLUMNS = ("text", "party", "speaker", "date", "term")

# lower-cased source column name -> canonical name
COLUMN_ALIASES: Dict[str, str] = {
    "text": "text",
    "speech": "text",
    "speech_text": "text",
    "content": "text",
    "body": "text",
    "party": "party",
    "faction": "party",
    "fraktion": "party",
    "party_abbrev": "party",
    "speaker": "speaker",
    "speaker_name": "speaker",
    "name": "speaker",
    "redner": "speaker",
    "date": "date",
    "speech_date": "date",
    "datum": "date",
    "term": "term",
    "legislative_term": "term",
    "legislative_period": "term",
    "period": "term",
    "session": "term",
    "wahlperiode": "term",
    "electoral_term": "term",
}

READERS = {
    ".csv": lambda p: pd.read_csv(p),
    ".tsv": lambda p: pd.read_csv(p, sep="\t"),
    ".parquet": pd.read_parquet,
    ".feather": pd.read_feather,
    ".pkl": pd.read_pickle,
    ".pickle": pd.read_pickle,
    ".json": pd.read_json,
    ".jsonl": lambda p: pd.read_json(p, lines=True),
}


def strip_control_chars(s: str) -> str:
    return "".join(ch for ch in s if ch.isprintable() or ch in "\n\t")


def normalize_text(text: str) -> str:
    s = str(text)
    s = html.unescape(s).replace("<br />", " ")
    s = TAG_RE.sub(" ", s)
    s = unicodedata.normalize("NFKC", s)
    s = strip_control_chars(s)
    s = WS_RE.sub(" ", s).strip()
    return s


def read_table(path: str | Path) -> pd.DataFrame:
    """Read a serialized table, choosing the reader from the file suffix."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Corpus file not found: {p}")
    reader = READERS.get(p.suffix.lower())
    if reader is None:
        raise ValueError(
            f"Unsupported corpus format '{p.suffix}'. Use one of: {sorted(READERS)}"
        )
    return reader(p)


def canonicalize_columns(
    df: pd.DataFrame, overrides: Optional[Mapping[str, str]] = None
) -> pd.DataFrame:
    """
    Rename source columns to the canonical names.

    Args:
        df: Raw speech table
        overrides: Explicit {canonical_name: source_column} mapping, takes
            precedence over the alias table

    Returns:
        DataFrame with canonical column names where a match was found
    """
    rename_map = {}
    taken = set()
    for canon, src in (overrides or {}).items():
        if src is None:
            continue
        if src not in df.columns:
            raise KeyError(f"Column '{src}' not in corpus columns {list(df.columns)}")
        rename_map[src] = canon
        taken.add(canon)
    for c in df.columns:
        if c in rename_map:
            continue
        canon = COLUMN_ALIASES.get(str(c).strip().lower())
        if canon is not None and canon not in taken:
            rename_map[c] = canon
            taken.add(canon)
    return df.rename(columns=rename_map)


def assign_terms(df: pd.DataFrame, boundaries: Mapping) -> pd.DataFrame:
    """
    Derive the legislative term of each speech from its date.

    Args:
        df: Corpus with a 'date' column
        boundaries: {term: start_date}; a term runs until the next start

    Returns:
        Copy of df with a 'term' column (NaN before the first start date)
    """
    if "date" not in df.columns:
        raise KeyError("assign_terms needs a 'date' column")
    starts = sorted(
        ((pd.Timestamp(d), t) for t, d in boundaries.items()), key=lambda x: x[0]
    )
    if not starts:
        raise ValueError("boundaries must name at least one term")
    edges = np.array([s for s, _ in starts], dtype="datetime64[ns]")
    labels = [t for _, t in starts]
    dates = pd.to_datetime(df["date"]).to_numpy(dtype="datetime64[ns]")
    pos = np.searchsorted(edges, dates, side="right") - 1
    out = df.copy()
    out["term"] = [labels[i] if i >= 0 else np.nan for i in pos]
    return out


def canonical_corpus(
    df: pd.DataFrame,
    text_col: Optional[str] = None,
    party_col: Optional[str] = None,
    speaker_col: Optional[str] = None,
    date_col: Optional[str] = None,
    term_col: Optional[str] = None,
    term_boundaries: Optional[Mapping] = None,
    clean: bool = True,
) -> pd.DataFrame:
    """
    Bring a raw speech table into the canonical layout.

    Args:
        df: Raw table as read by read_table
        text_col, party_col, speaker_col, date_col, term_col: Source column
            names when the alias table does not recognise them
        term_boundaries: {term: start_date} used when there is no term column
        clean: Whether to run normalize_text on every speech

    Returns:
        DataFrame with columns text, party (+ speaker, date, term when present)
    """
    df = canonicalize_columns(
        df,
        {
            "text": text_col,
            "party": party_col,
            "speaker": speaker_col,
            "date": date_col,
            "term": term_col,
        },
    )
    for required in ("text", "party"):
        if required not in df.columns:
            raise KeyError(
                f"Corpus has no '{required}' column (columns: {list(df.columns)})"
            )

    if "date" in df.columns:
        df["date"] = pd.to_datetime(df["date"], errors="coerce")
    if "term" not in df.columns and term_boundaries:
        df = assign_terms(df.dropna(subset=["date"]), term_boundaries)

    df = df.dropna(subset=["text", "party"])
    df["party"] = df["party"].astype(str).str.strip()
    df["text"] = df["text"].astype(str)
    if clean:
        df["text"] = df["text"].map(normalize_text)
    df = df[df["text"].str.len() > 0]
    df = df.drop_duplicates(subset=[c for c in CANONICAL_COLUMNS if c in df.columns])
    if "term" in df.columns:
        df = df.dropna(subset=["term"])
    return df.reset_index(drop=True)


def load_corpus(
    path: str | Path,
    text_col: Optional[str] = None,
    party_col: Optional[str] = None,
    speaker_col: Optional[str] = None,
    date_col: Optional[str] = None,
    term_col: Optional[str] = None,
    term_boundaries: Optional[Mapping] = None,
    clean: bool = True,
) -> pd.DataFrame:
    """Read a serialized corpus file and canonicalize it (see canonical_corpus)."""
    return canonical_corpus(
        read_table(path),
        text_col=text_col,
        party_col=party_col,
        speaker_col=speaker_col,
        date_col=date_col,
        term_col=term_col,
        term_boundaries=term_boundaries,
        clean=clean,
    )


def filter_parties(
    df: pd.DataFrame,
    parties: Optional[Iterable[str]] = None,
    min_speeches: int = 0,
    top_n: Optional[int] = None,
) -> pd.DataFrame:
    """Keep the listed parties, the top_n largest, or those above min_speeches."""
    counts = df["party"].value_counts()
    if parties is not None:
        keep = [p for p in parties]
        missing = set(keep) - set(counts.index)
        if missing:
            print(f"[warn] parties not found in corpus: {sorted(missing)}")
    elif top_n is not None:
        keep = list(counts.index[:top_n])
    else:
        keep = list(counts.index)
    keep = [p for p in keep if counts.get(p, 0) >= max(min_speeches, 1)]
    return df[df["party"].isin(keep)].reset_index(drop=True)


def stratified_sample(
    df: pd.DataFrame,
    label_col: str,
    n_per_class: int | None = None,
    frac: float | None = None,
    random_state: int = 42,
) -> pd.DataFrame:
    if (n_per_class is None) == (frac is None):
        raise ValueError("choose n_per_class OR frac")
    parts = []
    for _, g in df.groupby(label_col, sort=False):
        if n_per_class is not None:
            parts.append(
                g.sample(n=min(n_per_class, len(g)), random_state=random_state)
            )
        else:
            parts.append(g.sample(frac=frac, random_state=random_state))
    return (
        pd.concat(parts)
        .sample(frac=1.0, random_state=random_state)
        .reset_index(drop=True)
    )


def balance_by_term(
    df: pd.DataFrame, label_col: str = "party", random_state: int = 42
) -> pd.DataFrame:
    """Downsample every party to the smallest party's size within each term."""
    if "term" not in df.columns:
        per_class = int(df[label_col].value_counts().min())
        return stratified_sample(df, label_col, n_per_class=per_class, random_state=random_state)
    parts = []
    for _, g in df.groupby("term", sort=True):
        per_class = int(g[label_col].value_counts().min())
        parts.append(
            stratified_sample(g, label_col, n_per_class=per_class, random_state=random_state)
        )
    return pd.concat(parts).reset_index(drop=True)


def prepare_corpus(
    src_path: str | Path,
    outdir: str | Path = "data",
    parties: Optional[Iterable[str]] = None,
    top_n: Optional[int] = None,
    min_speeches: int = 0,
    balance: bool = False,
    random_state: int = 42,
    **load_kwargs,
) -> dict:
    """
    Prepare a speech corpus from a raw serialized file.

    Args:
        src_path: Path to the raw corpus file
        outdir: Output directory for processed files
        parties: Parties to keep (None keeps all, or the top_n largest)
        top_n: Keep only the top_n most frequent parties
        min_speeches: Drop parties with fewer speeches
        balance: Downsample parties to equal size within each term
        random_state: Random seed for reproducibility
        **load_kwargs: Passed through to canonical_corpus

    Returns:
        Dictionary with metadata about the processing
    """
    src = Path(src_path)
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    raw = read_table(src)
    before = len(raw)
    df = canonical_corpus(raw, **load_kwargs)
    df = filter_parties(df, parties=parties, min_speeches=min_speeches, top_n=top_n)
    if balance:
        df = balance_by_term(df, "party", random_state=random_state)
    after = len(df)

    clean_path = outdir / "speeches_clean.csv"
    df.to_csv(clean_path, index=False, encoding="utf-8")

    meta = {
        "src": str(src),
        "out_clean": str(clean_path),
        "dropped_rows": before - after,
        "final_rows": int(after),
        "party_counts": {str(k): int(v) for k, v in df["party"].value_counts().items()},
    }
    if "term" in df.columns:
        meta["term_counts"] = {
            str(k): int(v) for k, v in df["term"].value_counts().sort_index().items()
        }
    return meta


def main():
    """CLI interface."""
    import argparse

    parser = argparse.ArgumentParser()
    parser.add_argument("--src", required=True, help="Path to the raw speech corpus")
    parser.add_argument("--outdir", default="data", help="Output root directory")
    parser.add_argument("--parties", nargs="*", default=None, help="Parties to keep")
    parser.add_argument("--top-n", type=int, default=None, help="Keep the N largest parties")
    parser.add_argument("--min-speeches", type=int, default=0)
    parser.add_argument(
        "--balance", action="store_true", help="Balance parties within each term"
    )
    parser.add_argument("--seed", type=int, default=42)

    args = parser.parse_args()

    meta = prepare_corpus(
        src_path=args.src,
        outdir=args.outdir,
        parties=args.parties,
        top_n=args.top_n,
        min_speeches=args.min_speeches,
        balance=args.balance,
        random_state=args.seed,
    )

    print(json.dumps(meta, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
