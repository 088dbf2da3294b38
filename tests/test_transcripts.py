"""Tests for transcript parsing into speaker turns and speaker documents."""

from __future__ import annotations

import pytest

from parlitext.transcripts import parse_transcript, read_transcript, speaker_documents


class TestParseTranscript:
    def test_turns_and_speakers(self, short_transcript) -> None:
        turns = parse_transcript(short_transcript)
        assert turns["speaker"].tolist() == ["MODERATOR", "SMITH", "JONES", "SMITH"]
        assert turns["turn"].tolist() == [0, 1, 2, 3]

    def test_continuation_lines_join_previous_turn(self, short_transcript) -> None:
        turns = parse_transcript(short_transcript)
        assert turns.loc[1, "text"] == "I believe in lower taxes. And smaller government."
        # a mixed-case "Note:" is text, not a new speaker
        assert turns.loc[2, "text"].endswith("Note: this sentence continues the answer")

    def test_annotations_removed(self, short_transcript) -> None:
        turns = parse_transcript(short_transcript)
        assert turns.loc[0, "text"] == "Good evening and welcome."
        assert "crosstalk" not in turns.loc[2, "text"]

    def test_mixed_and_lower_case_stage_directions_removed(self) -> None:
        turns = parse_transcript("SMITH: Thank you. (Applause) We will win. (laughter) [Crosstalk]")
        assert turns.loc[0, "text"] == "Thank you. We will win."

    def test_stage_direction_with_detail_removed(self) -> None:
        turns = parse_transcript("JONES: Really? (Laughter and cheering) Yes. (inaudible)")
        assert turns.loc[0, "text"] == "Really? Yes."

    def test_ordinary_parentheses_kept(self) -> None:
        turns = parse_transcript("JONES: The bill (as amended) passed.")
        assert turns.loc[0, "text"] == "The bill (as amended) passed."

    def test_preamble_dropped(self, short_transcript) -> None:
        turns = parse_transcript(short_transcript)
        assert not turns["text"].str.contains("Transcript of").any()

    def test_labels_with_titles(self) -> None:
        turns = parse_transcript("MR. O'ROURKE: Thank you.\nSEN. WARREN: Yes.")
        assert turns["speaker"].tolist() == ["MR. O'ROURKE", "SEN. WARREN"]

    def test_turn_with_only_annotation_is_dropped(self) -> None:
        turns = parse_transcript("AUDIENCE: (APPLAUSE)\nSMITH: Thanks.")
        assert turns["speaker"].tolist() == ["SMITH"]
        assert turns["turn"].tolist() == [0]

    def test_empty_text(self) -> None:
        turns = parse_transcript("")
        assert turns.empty
        assert list(turns.columns) == ["turn", "speaker", "text"]


class TestReadTranscript:
    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            read_transcript(tmp_path / "missing.txt")

    def test_reads_file(self, debate_transcript) -> None:
        turns = read_transcript(debate_transcript)
        assert set(turns["speaker"]) == {"MODERATOR", "LEFT1", "LEFT2", "CENTER", "RIGHT2", "RIGHT1"}


class TestSpeakerDocuments:
    def test_concatenates_in_order_of_appearance(self, short_transcript) -> None:
        docs = speaker_documents(parse_transcript(short_transcript), exclude=["moderator"])
        assert docs["speaker"].tolist() == ["SMITH", "JONES"]
        smith = docs.iloc[0]
        assert smith["n_turns"] == 2
        assert smith["text"] == "I believe in lower taxes. And smaller government. Taxes again."
        assert smith["n_words"] == 10

    def test_min_words(self, short_transcript) -> None:
        turns = parse_transcript(short_transcript)
        # MODERATOR has 4 words, SMITH and JONES 10 each
        assert speaker_documents(turns, min_words=5)["speaker"].tolist() == ["SMITH", "JONES"]
        assert speaker_documents(turns, min_words=10)["speaker"].tolist() == ["SMITH", "JONES"]
        assert speaker_documents(turns, min_words=11).empty
