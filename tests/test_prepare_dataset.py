"""Tests for corpus loading, cleaning, party filtering and balancing."""

from __future__ import annotations

import pandas as pd
import pytest

from parlitext import prepare_dataset
from parlitext.prepare_dataset import (
    assign_terms,
    balance_by_term,
    canonical_corpus,
    canonicalize_columns,
    filter_parties,
    load_corpus,
    normalize_text,
    prepare_corpus,
    read_table,
    stratified_sample,
)


class TestNormalizeText:
    def test_strips_tags_entities_and_whitespace(self) -> None:
        assert normalize_text("Mr.&nbsp;Speaker,<br />  we <b>object</b>!") == "Mr. Speaker, we object !"

    def test_unicode_normalized(self) -> None:
        assert normalize_text("ﬁnance") == "finance"


class TestReadTable:
    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            read_table(tmp_path / "nope.csv")

    def test_unsupported_suffix(self, tmp_path) -> None:
        path = tmp_path / "corpus.xlsx"
        path.write_text("x")
        with pytest.raises(ValueError, match="Unsupported corpus format"):
            read_table(path)

    def test_tsv(self, tmp_path) -> None:
        path = tmp_path / "corpus.tsv"
        path.write_text("speech\tparty\nhello there\tA\n")
        assert list(read_table(path).columns) == ["speech", "party"]

    def test_parquet_round_trip(self, tmp_path) -> None:
        frame = pd.DataFrame({"speech": ["first speech", "second speech"], "faction": ["A", "B"]})
        path = tmp_path / "corpus.parquet"
        frame.to_parquet(path, index=False)
        df = load_corpus(path)
        assert df["text"].tolist() == ["first speech", "second speech"]
        assert df["party"].tolist() == ["A", "B"]

    def test_feather(self, tmp_path) -> None:
        frame = pd.DataFrame({"text": ["a speech"], "party": ["A"], "term": [19]})
        path = tmp_path / "corpus.feather"
        frame.to_feather(path)
        back = read_table(path)
        assert list(back.columns) == ["text", "party", "term"]
        assert back.loc[0, "text"] == "a speech"
        assert back.loc[0, "term"] == 19

    def test_jsonl(self, tmp_path) -> None:
        path = tmp_path / "corpus.jsonl"
        pd.DataFrame({"content": ["one", "two"], "party": ["A", "B"]}).to_json(
            path, orient="records", lines=True
        )
        assert load_corpus(path)["text"].tolist() == ["one", "two"]


class TestLoadCorpus:
    def test_aliases_are_mapped(self, corpus_csv) -> None:
        df = load_corpus(corpus_csv)
        assert {"text", "party", "speaker", "term"} <= set(df.columns)
        assert sorted(df["party"].unique()) == ["CDU", "SPD"]
        assert len(df) == 120

    def test_explicit_column_overrides(self, tmp_path) -> None:
        path = tmp_path / "corpus.csv"
        pd.DataFrame({"rede": ["a speech"], "partei": ["B"]}).to_csv(path, index=False)
        df = load_corpus(path, text_col="rede", party_col="partei")
        assert df.loc[0, "text"] == "a speech"
        assert df.loc[0, "party"] == "B"

    def test_missing_party_column(self, tmp_path) -> None:
        path = tmp_path / "corpus.csv"
        pd.DataFrame({"text": ["a speech"]}).to_csv(path, index=False)
        with pytest.raises(KeyError, match="party"):
            load_corpus(path)

    def test_unknown_override_column(self, tmp_path) -> None:
        df = pd.DataFrame({"text": ["a"], "party": ["A"]})
        with pytest.raises(KeyError):
            canonicalize_columns(df, {"term": "period_id"})

    def test_empty_and_duplicate_speeches_dropped(self, tmp_path) -> None:
        path = tmp_path / "corpus.csv"
        pd.DataFrame(
            {"text": ["same words", "same words", "<p></p>", None], "party": ["A", "A", "B", "B"]}
        ).to_csv(path, index=False)
        df = load_corpus(path)
        assert df["text"].tolist() == ["same words"]

    def test_terms_from_dates(self, tmp_path) -> None:
        path = tmp_path / "corpus.csv"
        pd.DataFrame(
            {
                "text": ["one", "two", "three", "zero"],
                "party": ["A", "B", "A", "B"],
                "date": ["2014-01-10", "2017-12-01", "2018-03-01", "2010-05-05"],
            }
        ).to_csv(path, index=False)
        df = load_corpus(path, term_boundaries={18: "2013-10-22", 19: "2017-10-24"})
        # speeches before the first boundary have no term and are dropped
        assert df["term"].tolist() == [18, 19, 19]


class TestAssignTerms:
    def test_boundaries_are_inclusive_starts(self) -> None:
        df = pd.DataFrame({"date": pd.to_datetime(["2017-10-24", "2017-10-23"])})
        out = assign_terms(df, {"19": "2017-10-24", "18": "2013-10-22"})
        assert out["term"].tolist() == ["19", "18"]

    def test_needs_date(self) -> None:
        with pytest.raises(KeyError):
            assign_terms(pd.DataFrame({"text": ["x"]}), {1: "2000-01-01"})


class TestFilterAndBalance:
    def test_top_n(self) -> None:
        df = pd.DataFrame({"party": ["A"] * 5 + ["B"] * 3 + ["C"] * 1, "text": ["x"] * 9})
        assert sorted(filter_parties(df, top_n=2)["party"].unique()) == ["A", "B"]

    def test_min_speeches(self) -> None:
        df = pd.DataFrame({"party": ["A"] * 5 + ["B"] * 3 + ["C"] * 1, "text": ["x"] * 9})
        assert sorted(filter_parties(df, min_speeches=3)["party"].unique()) == ["A", "B"]

    def test_listed_parties(self) -> None:
        df = pd.DataFrame({"party": ["A", "B", "C"], "text": ["x"] * 3})
        assert filter_parties(df, parties=["C", "Z"])["party"].tolist() == ["C"]

    def test_stratified_sample_requires_one_mode(self) -> None:
        df = pd.DataFrame({"party": ["A", "B"], "text": ["x", "y"]})
        with pytest.raises(ValueError):
            stratified_sample(df, "party")
        with pytest.raises(ValueError):
            stratified_sample(df, "party", n_per_class=1, frac=0.5)

    def test_balance_by_term(self) -> None:
        df = pd.DataFrame(
            {
                "party": ["A"] * 6 + ["B"] * 2 + ["A"] * 3 + ["B"] * 4,
                "term": [1] * 8 + [2] * 7,
                "text": [f"speech {i}" for i in range(15)],
            }
        )
        out = balance_by_term(df)
        counts = out.groupby(["term", "party"]).size().to_dict()
        assert counts == {(1, "A"): 2, (1, "B"): 2, (2, "A"): 3, (2, "B"): 3}


class TestPrepareCorpus:
    def test_writes_clean_file(self, tmp_path, corpus_csv) -> None:
        meta = prepare_corpus(corpus_csv, outdir=tmp_path / "data", balance=True)
        out = pd.read_csv(meta["out_clean"])
        assert len(out) == meta["final_rows"] == 120
        assert meta["party_counts"] == {"SPD": 60, "CDU": 60}
        assert meta["term_counts"] == {"18": 60, "19": 60}

    def test_source_read_once(self, tmp_path, monkeypatch) -> None:
        path = tmp_path / "corpus.csv"
        pd.DataFrame(
            {"text": ["one", "one", "two", ""], "party": ["A", "A", "B", "B"]}
        ).to_csv(path, index=False)
        calls = []

        def counting_read(p):
            calls.append(p)
            return read_table(p)

        monkeypatch.setattr(prepare_dataset, "read_table", counting_read)
        meta = prepare_corpus(path, outdir=tmp_path / "data")
        assert len(calls) == 1
        assert meta["final_rows"] == 2
        assert meta["dropped_rows"] == 2


class TestCanonicalCorpus:
    def test_from_frame(self) -> None:
        raw = pd.DataFrame({"Speech": ["  hello   there "], "Wahlperiode": [19], "Partei": ["A"]})
        df = canonical_corpus(raw, party_col="Partei")
        assert df.loc[0, "text"] == "hello there"
        assert df.loc[0, "term"] == 19
