# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Reference text indexing.

Splits the passage being read into words, records where each word starts in
the space-joined text and precomputes its comparison form. Built once per
reading segment and never mutated afterwards; a new segment gets a new index.
"""

import bisect
from dataclasses import dataclass, field

from .normalizer import DEFAULT_TABLE, NormalizationTable, comparison_key, is_annotation


@dataclass(frozen=True)
class ReferenceWord:
    """A single word of the reference text."""
    text: str  # Original surface form
    normalized: str  # Letters/digits only comparison form
    char_offset: int  # Start offset in the space-joined reference text
    is_annotation: bool = False

    @property
    def end_offset(self) -> int:
        """Offset just past the last character of this word."""
        return self.char_offset + len(self.text)

    def __repr__(self) -> str:
        marker = " [annotation]" if self.is_annotation else ""
        return f"ReferenceWord({self.char_offset}: '{self.text}'{marker})"


@dataclass(frozen=True)
class ReferenceText:
    """Ordered reference words plus the collapsed text they came from."""
    words: tuple[ReferenceWord, ...]
    text: str
    table: NormalizationTable = DEFAULT_TABLE
    _offsets: tuple[int, ...] = field(default=(), repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self._offsets and self.words:
            object.__setattr__(
                self, "_offsets", tuple(w.char_offset for w in self.words))

    def __len__(self) -> int:
        return len(self.words)

    def __getitem__(self, index: int) -> ReferenceWord:
        return self.words[index]

    @property
    def total_chars(self) -> int:
        """Length of the space-joined reference text."""
        return len(self.text)

    def word_index_at(self, char_offset: int) -> int:
        """Index of the last word starting at or before char_offset."""
        if not self.words:
            return 0
        return max(0, bisect.bisect_right(self._offsets, char_offset) - 1)

    def end_offset(self, index: int) -> int:
        """End offset of the word at index, clamped to the text length."""
        return min(self.words[index].end_offset, self.total_chars)

    def next_readable(self, index: int) -> int | None:
        """First non-annotation word strictly after index."""
        idx = index + 1
        while idx < len(self.words) and self.words[idx].is_annotation:
            idx += 1
        return idx if idx < len(self.words) else None

    def contextual_hints(self, start_index: int, count: int = 50) -> list[str]:
        """Upcoming readable words, used to bias the speech recognizer."""
        end_index = min(len(self.words), start_index + count)
        if start_index >= end_index:
            return []
        return [w.text for w in self.words[start_index:end_index] if not w.is_annotation]

    def progress(self, char_offset: int) -> float:
        """Fraction of the text covered by char_offset (0.0 to 1.0)."""
        if self.total_chars == 0:
            return 0.0
        return max(0.0, min(1.0, char_offset / self.total_chars))


def build_reference(text: str, table: NormalizationTable = DEFAULT_TABLE) -> ReferenceText:
    """
    Build the reference index for a reading segment.

    Whitespace runs (newlines included) collapse to single spaces, so each
    word's offset is the running sum of the preceding word lengths plus one
    separator each.

    Args:
        text: The reference passage
        table: Normalization data for the passage's script

    Returns:
        ReferenceText with one ReferenceWord per whitespace-separated token
    """
    tokens: list[str] = text.split()
    words: list[ReferenceWord] = []

    offset: int = 0
    for token in tokens:
        words.append(ReferenceWord(
            text=token,
            normalized=comparison_key(token, table),
            char_offset=offset,
            is_annotation=is_annotation(token, table),
        ))
        offset += len(token) + 1

    return ReferenceText(words=tuple(words), text=" ".join(tokens), table=table)
