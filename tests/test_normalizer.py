# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""Tests for text normalization and annotation detection."""

import pytest

from readalong.normalizer import (
    NormalizationTable,
    comparison_key,
    is_annotation,
    normalize,
    strip_diacritics,
)

SAMPLES: list[str] = [
    "بِسْمِ",
    "ٱللَّهِ",
    "ٱلرَّحْمَٰنِ",
    "أَعُوذُ",
    "إِيَّاكَ",
    "مُؤْمِن",
    "الصَّلَاةَ",
    "السَّمَاءِ",
    "Hello,",
    "STRASSE",
    "Straße",
    "naïve café",
    "(١٢)",
    "[note]",
    "",
]


class TestNormalize:
    """Tests for normalize()."""

    @pytest.mark.parametrize("text", SAMPLES)
    def test_idempotent(self, text: str) -> None:
        """Normalizing twice gives the same result as normalizing once."""
        once: str = normalize(text)
        assert normalize(once) == once

    @pytest.mark.parametrize("text", SAMPLES)
    def test_case_insensitive(self, text: str) -> None:
        """Upper and lower case variants normalize identically."""
        assert normalize(text.upper()) == normalize(text.lower()) == normalize(text)

    def test_full_case_folding(self) -> None:
        """Case folding handles characters whose upper case is longer."""
        assert normalize("Straße") == normalize("STRASSE") == "strasse"

    def test_strips_arabic_diacritics(self) -> None:
        """Harakat are removed."""
        assert normalize("بِسْمِ") == "بسم"

    def test_strips_latin_accents(self) -> None:
        assert normalize("naïve café") == "naive cafe"

    def test_hamza_carriers_collapse_to_alef(self) -> None:
        """All alef forms normalize to a bare alef."""
        assert normalize("أحمد") == "احمد"
        assert normalize("إيمان") == "ايمان"
        assert normalize("آمن") == "امن"
        assert normalize("ٱلله") == "الله"

    def test_taa_marbuta_and_alef_maqsura(self) -> None:
        assert normalize("صلاة") == "صلاه"
        assert normalize("هدى") == "هدي"

    def test_waw_and_yaa_hamza(self) -> None:
        assert normalize("مؤمن") == "مومن"
        assert normalize("بئر") == "بير"

    def test_standalone_hamza_removed(self) -> None:
        assert normalize("سماء") == "سما"

    def test_tatweel_removed(self) -> None:
        assert normalize("بـــسم") == "بسم"

    def test_punctuation_removed_whitespace_kept(self) -> None:
        assert normalize("Hello, world!") == "hello world"

    def test_custom_table(self) -> None:
        """Letter variants come from the table, not from code."""
        table = NormalizationTable(letter_variants={"ø": "o"}, dropped=frozenset("-"))
        assert normalize("Søren-sen", table) == "sorensen"
        assert normalize("أحمد", table) == "احمد"


class TestComparisonKey:
    """Tests for comparison_key()."""

    def test_removes_whitespace(self) -> None:
        assert comparison_key("hello world") == "helloworld"

    def test_keeps_arabic_indic_digits(self) -> None:
        assert comparison_key("(١٢)") == "١٢"

    def test_empty_for_punctuation(self) -> None:
        assert comparison_key("...") == ""


class TestStripDiacritics:
    """Tests for strip_diacritics()."""

    def test_removes_combining_marks(self) -> None:
        assert strip_diacritics("é") == "e"

    def test_plain_text_unchanged(self) -> None:
        assert strip_diacritics("plain") == "plain"


class TestIsAnnotation:
    """Tests for is_annotation()."""

    @pytest.mark.parametrize("word", ["1", "12", "١٢", "٣", "(٣)", "۴۵"])
    def test_numbers_are_annotations(self, word: str) -> None:
        """Verse numbers in any digit script are annotations."""
        assert is_annotation(word)

    @pytest.mark.parametrize("word", ["[note]", "[سجدة]", "[]", "[a b]"])
    def test_bracketed_words_are_annotations(self, word: str) -> None:
        assert is_annotation(word)

    @pytest.mark.parametrize("word", ["۞", "***", "-", "۩"])
    def test_symbol_only_words_are_annotations(self, word: str) -> None:
        assert is_annotation(word)

    @pytest.mark.parametrize("word", ["بسم", "hello", "a1", "2nd", "[open"])
    def test_readable_words_are_not_annotations(self, word: str) -> None:
        assert not is_annotation(word)
