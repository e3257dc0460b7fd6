# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""Tests for the bounded transcript window."""

import pytest

from readalong.transcript import TranscriptWindow


class TestTranscriptWindow:
    """Tests for TranscriptWindow."""

    def test_update_keeps_words(self) -> None:
        window = TranscriptWindow()
        assert window.update("one two three")
        assert window.words == ["one", "two", "three"]
        assert len(window) == 3

    def test_identical_update_is_noop(self) -> None:
        """Re-delivering the same transcript reports no change."""
        window = TranscriptWindow()
        assert window.update("one two")
        assert not window.update("one two")
        assert not window.update("  one   two ")

    def test_capacity_bounds_window(self) -> None:
        window = TranscriptWindow(capacity=3)
        window.update("a b c d e")
        assert window.words == ["c", "d", "e"]

    def test_change_outside_window_is_noop(self) -> None:
        """Only the windowed tail matters for change detection."""
        window = TranscriptWindow(capacity=2)
        window.update("a b c")
        assert not window.update("x b c")

    def test_last_text_always_recorded(self) -> None:
        window = TranscriptWindow()
        window.update("one two")
        window.update("one  two")
        assert window.last_text == "one  two"

    def test_recent(self) -> None:
        window = TranscriptWindow()
        window.update("a b c d")
        assert list(window.recent(2)) == ["c", "d"]
        assert list(window.recent(10)) == ["a", "b", "c", "d"]
        assert list(window.recent(0)) == []

    def test_clear(self) -> None:
        window = TranscriptWindow()
        window.update("a b")
        window.clear()
        assert len(window) == 0
        assert window.last_text == ""
        assert window.update("a b")

    def test_invalid_capacity(self) -> None:
        with pytest.raises(ValueError):
            TranscriptWindow(capacity=0)
