# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Text normalization shared by reference indexing and live transcript processing.

Words are folded into a comparison-friendly form: case folded, diacritics
stripped, letter variants collapsed to a canonical letter and everything that
is not a letter, digit or whitespace removed.

The letter-variant mapping is data, not code: pass a different
NormalizationTable to support another script.
"""

import unicodedata
from collections.abc import Mapping
from dataclasses import dataclass, field

# Arabic letter variants mapped to their canonical letter.
# Hamza carriers collapse onto the carrier letter, taa marbuta onto haa and
# the standalone hamza is removed entirely.
ARABIC_LETTER_VARIANTS: dict[str, str] = {
    "أ": "ا",
    "إ": "ا",
    "آ": "ا",
    "ٱ": "ا",
    "ى": "ي",
    "ئ": "ي",
    "ؤ": "و",
    "ة": "ه",
    "ء": "",
}

# Elongation (tatweel) carries no meaning for matching
ARABIC_DROPPED: frozenset[str] = frozenset(["ـ"])


@dataclass(frozen=True)
class NormalizationTable:
    """Script-specific normalization data."""
    letter_variants: Mapping[str, str] = field(
        default_factory=lambda: dict(ARABIC_LETTER_VARIANTS))
    dropped: frozenset[str] = ARABIC_DROPPED
    # Opening/closing pairs that mark a whole word as an annotation
    annotation_brackets: tuple[tuple[str, str], ...] = (("[", "]"),)


DEFAULT_TABLE: NormalizationTable = NormalizationTable()


def strip_diacritics(text: str) -> str:
    """Remove combining marks after canonical decomposition."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(
        ch for ch in decomposed if not unicodedata.category(ch).startswith("M")
    )


def normalize(word: str, table: NormalizationTable = DEFAULT_TABLE) -> str:
    """Normalize a word (or phrase) for comparison.

    Steps, in order: case fold, strip diacritics, map letter variants and
    drop elongation marks, keep only letters, digits and whitespace.
    Idempotent: normalize(normalize(x)) == normalize(x).
    """
    folded = unicodedata.normalize("NFD", word).casefold()
    stripped = strip_diacritics(folded)

    result: list[str] = []
    for ch in stripped:
        if ch in table.dropped:
            continue
        replacement = table.letter_variants.get(ch)
        if replacement is not None:
            result.append(replacement)
            continue
        if ch.isalnum() or ch.isspace():
            result.append(ch)
    return "".join(result)


def comparison_key(word: str, table: NormalizationTable = DEFAULT_TABLE) -> str:
    """Normalized form with whitespace removed too (letters and digits only)."""
    return "".join(ch for ch in normalize(word, table) if ch.isalnum())


def is_annotation(word: str, table: NormalizationTable = DEFAULT_TABLE) -> bool:
    """Check if a word is a non-readable token.

    Bracketed notes, words with no letters or digits at all and pure
    numbers (verse-end markers such as ١٢) are annotations.
    """
    for opening, closing in table.annotation_brackets:
        if word.startswith(opening) and word.endswith(closing):
            return True

    stripped = "".join(ch for ch in word if ch.isalnum())
    if not stripped:
        return True
    return all(ch.isnumeric() for ch in stripped)
