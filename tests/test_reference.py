# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""Tests for the reference text index."""

from readalong.reference import ReferenceText, build_reference


class TestBuildReference:
    """Tests for build_reference()."""

    def test_offsets_follow_word_lengths(self) -> None:
        """Each offset is the sum of previous lengths plus one separator each."""
        ref: ReferenceText = build_reference("the quick brown fox")
        assert [w.char_offset for w in ref.words] == [0, 4, 10, 16]
        assert ref.text == "the quick brown fox"
        assert ref.total_chars == 19

    def test_whitespace_runs_collapse(self) -> None:
        """Newlines and repeated spaces count as a single separator."""
        ref: ReferenceText = build_reference("  A  B\n\nC\t")
        assert ref.text == "A B C"
        assert [w.char_offset for w in ref.words] == [0, 2, 4]

    def test_normalized_forms_precomputed(self) -> None:
        ref: ReferenceText = build_reference("بِسْمِ ٱللَّهِ Hello,")
        assert [w.normalized for w in ref.words] == ["بسم", "الله", "hello"]

    def test_annotations_flagged(self) -> None:
        ref: ReferenceText = build_reference("alpha ١ beta [note] gamma")
        assert [w.is_annotation for w in ref.words] == [False, True, False, True, False]

    def test_empty_text(self) -> None:
        ref: ReferenceText = build_reference("   ")
        assert len(ref) == 0
        assert ref.total_chars == 0
        assert ref.word_index_at(10) == 0
        assert ref.progress(0) == 0.0

    def test_word_end_offset(self) -> None:
        ref: ReferenceText = build_reference("one three")
        assert ref[0].end_offset == 3
        assert ref[1].end_offset == 9
        assert ref.end_offset(1) == ref.total_chars


class TestWordIndexAt:
    """Tests for ReferenceText.word_index_at()."""

    def test_offsets_inside_words(self) -> None:
        ref: ReferenceText = build_reference("the quick brown fox")
        assert ref.word_index_at(0) == 0
        assert ref.word_index_at(3) == 0
        assert ref.word_index_at(4) == 1
        assert ref.word_index_at(9) == 1
        assert ref.word_index_at(16) == 3

    def test_offset_past_end_is_last_word(self) -> None:
        ref: ReferenceText = build_reference("the quick brown fox")
        assert ref.word_index_at(1000) == 3

    def test_negative_offset_is_first_word(self) -> None:
        ref: ReferenceText = build_reference("the quick")
        assert ref.word_index_at(-5) == 0


class TestNavigation:
    """Tests for next_readable(), contextual_hints() and progress()."""

    def test_next_readable_skips_annotations(self) -> None:
        ref: ReferenceText = build_reference("alpha ١ [x] beta ٢")
        assert ref.next_readable(0) == 3
        assert ref.next_readable(1) == 3

    def test_next_readable_none_at_end(self) -> None:
        ref: ReferenceText = build_reference("alpha beta ٢")
        assert ref.next_readable(1) is None

    def test_contextual_hints_exclude_annotations(self) -> None:
        ref: ReferenceText = build_reference("alpha ١ beta gamma ٢ delta")
        assert ref.contextual_hints(0) == ["alpha", "beta", "gamma", "delta"]
        assert ref.contextual_hints(2, count=2) == ["beta", "gamma"]

    def test_contextual_hints_default_count(self) -> None:
        ref: ReferenceText = build_reference(" ".join(f"w{i}" for i in range(80)))
        hints: list[str] = ref.contextual_hints(10)
        assert len(hints) == 50
        assert hints[0] == "w10"

    def test_contextual_hints_past_end(self) -> None:
        ref: ReferenceText = build_reference("alpha beta")
        assert ref.contextual_hints(5) == []

    def test_progress(self) -> None:
        ref: ReferenceText = build_reference("abcd efgh")
        assert ref.progress(0) == 0.0
        assert ref.progress(9) == 1.0
        assert ref.progress(20) == 1.0
        assert 0.4 < ref.progress(4) < 0.5
