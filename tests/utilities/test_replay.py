# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""Tests for the transcript replay tool."""

import io
import sys
import tempfile
from pathlib import Path

import pytest

from readalong.reference import ReferenceText, build_reference
from readalong.replay import (
    ReplayEvent,
    classify,
    load_reference,
    load_transcript,
    main,
    replay_transcript,
)

from conftest import WORDS


class TestLoadTranscript:
    """Tests for loading transcript files."""

    def test_load_transcript_filters_metadata(self) -> None:
        """Verify metadata lines starting with === are filtered out."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.txt', delete=False, encoding='utf-8') as f:
            f.write("=== Transcript started at 2025-12-21T00:00:00 ===\n")
            f.write("\n")
            f.write("بسم الله\n")
            f.write("الرحمن الرحيم\n")
            f.write("\n")
            f.write("=== Transcript ended at 2025-12-21T00:05:00 ===\n")
            f.flush()
            path: Path = Path(f.name)

        lines: list[str] = load_transcript(path)
        assert lines == ["بسم الله", "الرحمن الرحيم"]

    def test_load_reference_returns_content(self) -> None:
        with tempfile.NamedTemporaryFile(mode='w', suffix='.txt', delete=False, encoding='utf-8') as f:
            f.write("قل هو الله احد\n")
            f.flush()
            path: Path = Path(f.name)

        assert load_reference(path) == "قل هو الله احد\n"


class TestClassify:
    """Tests for classify()."""

    def test_classification(self) -> None:
        ref: ReferenceText = build_reference(" ".join(WORDS[:20]))

        assert classify(ref, 0, 0) == "no_change"
        assert classify(ref, ref.end_offset(3), ref.end_offset(1)) == "backtrack"
        assert classify(ref, 0, ref.end_offset(2)) == "advance"
        assert classify(ref, 0, ref.end_offset(10)) == "forward_jump"


class TestReplayTranscript:
    """Tests for replay_transcript()."""

    def test_clean_reading_advances(self) -> None:
        output = io.StringIO()

        events: list[ReplayEvent] = replay_transcript(
            ["apple bridge", "candle desert engine"], " ".join(WORDS[:10]), output)

        assert [e.event_type for e in events] == ["advance"] * 5
        assert events[-1].reference_word == "engine"
        assert events[-1].transcript_line == 2
        assert {e.phase for e in events} == {"sequential"}
        assert "Advances: 5" in output.getvalue()

    def test_forward_jump_logged(self) -> None:
        tokens: list[str] = WORDS[:50]
        tokens[30:35] = ["falcon", "guitar", "hornet", "insect", "jigsaw"]
        output = io.StringIO()

        events: list[ReplayEvent] = replay_transcript(
            ["falcon guitar hornet insect jigsaw"], " ".join(tokens), output)

        assert [e.event_type for e in events] == ["no_change"] * 4 + ["forward_jump"]
        assert events[-1].phase == "far_forward"
        assert "FORWARD JUMP" in output.getvalue()

    def test_backtrack_logged(self) -> None:
        output = io.StringIO()

        events: list[ReplayEvent] = replay_transcript(
            ["apple bridge candle desert engine forest", "bridge candle desert"],
            " ".join(WORDS[:20]), output)

        assert [e.event_type for e in events][-3:] == ["no_change", "no_change", "backtrack"]
        assert events[-1].reference_word == "desert"
        assert "BACKTRACK" in output.getvalue()
        assert "Backtracks: 1" in output.getvalue()

    def test_verbose_logs_every_word(self) -> None:
        output = io.StringIO()

        replay_transcript(["apple qzxq"], " ".join(WORDS[:5]), output, verbose=True)

        log: str = output.getvalue()
        assert '"apple" -> "apple" (sequential)' in log
        assert '"qzxq" (no_change)' in log

    def test_empty_reference(self) -> None:
        output = io.StringIO()

        events: list[ReplayEvent] = replay_transcript(["apple"], "", output)

        assert events[0].reference_word == "<END>"
        assert events[0].event_type == "no_change"


class TestMain:
    """Tests for the command line entry point."""

    def test_writes_log_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        transcript = tmp_path / "transcript.txt"
        transcript.write_text("apple bridge\n", encoding="utf-8")
        reference = tmp_path / "reference.txt"
        reference.write_text(" ".join(WORDS[:5]), encoding="utf-8")
        log = tmp_path / "replay.log"
        monkeypatch.setattr(sys, "argv", ["readalong-replay", str(transcript), str(reference), "-o", str(log)])

        main()

        assert "SUMMARY:" in log.read_text(encoding="utf-8")

    def test_missing_transcript_exits(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        reference = tmp_path / "reference.txt"
        reference.write_text("apple", encoding="utf-8")
        monkeypatch.setattr(sys, "argv", ["readalong-replay", str(tmp_path / "nope.txt"), str(reference)])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
