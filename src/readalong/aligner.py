# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Aligner: maps a noisy live transcript onto a position in the reference text.

On every transcript update the aligner takes the last few recognized words and
tries a sequence of search phases, cheapest and most local first:

1. Manual jump (only while a JumpRequest is active): a bounded window around
   the tapped word.
2. Sequential bias: the next few unread words, accepting one- or two-word
   evidence so clean reading advances smoothly.
3. Strong phases (three or more recent words): near-forward, far-forward,
   backward, then global backward and global forward, with longer required
   tails the further the match is from the cursor.
4. Stall handling: if nothing matched for several updates in a row while the
   speaker is still talking, move forward one word.

The cursor is a character offset into ReferenceText.text and always sits at
the end of a word (or at 0 / a seek target).
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from .fuzzy import edit_distance, is_fuzzy_match, is_relaxed_fuzzy_match
from .normalizer import comparison_key
from .reference import ReferenceText

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlignerSettings:
    """Tuning constants for the search phases."""
    recent_words: int = 6  # Spoken words considered per update
    min_tail_words: int = 3  # Minimum tail for near/backward/jump phases
    strong_tail_words: int = 5  # Minimum tail for far and global phases
    near_forward_words: int = 20
    far_forward_words: int = 120
    backward_words: int = 80
    sequential_search_words: int = 12
    sequential_candidates: int = 5
    sequential_min_word_length: int = 3
    # Single-word sequential matches beyond the next word may not land
    # further than this many words past the cursor word
    sequential_lookahead_cap: int = 4
    jump_window_words: int = 24
    jump_attempts: int = 6
    stall_threshold: int = 8
    # Tails shorter than short_tail_words need a word of at least
    # short_tail_long_word chars and short_tail_min_chars chars in total
    short_tail_words: int = 4
    short_tail_long_word: int = 4
    short_tail_min_chars: int = 8


@dataclass
class JumpRequest:
    """A pending manual seek waiting for speech to confirm it."""
    target_offset: int
    attempts_remaining: int


@dataclass(frozen=True)
class Match:
    """A matched span of reference word indices."""
    start: int
    end: int
    tail_length: int


class Aligner:
    """
    Keeps the read-along cursor in step with the speaker.

    Not thread-safe: every method must be called from the same thread (the
    session supervisor's event loop).
    """

    reference: ReferenceText
    settings: AlignerSettings

    cursor: int  # Character offset of the end of the last matched word
    anchor: int  # Search anchor, resynced to the cursor on provider restart
    stall_count: int
    jump: JumpRequest | None
    suppressed: bool
    last_phase: str | None

    def __init__(
        self,
        reference: ReferenceText,
        settings: AlignerSettings | None = None,
        cursor: int = 0
    ) -> None:
        """
        Initialize the aligner.

        Args:
            reference: Index of the text being read
            settings: Search tuning, defaults to AlignerSettings()
            cursor: Starting character offset (e.g. saved reading progress)
        """
        self.reference = reference
        self.settings = settings or AlignerSettings()
        self.cursor = self._clamp(cursor)
        self.anchor = self.cursor
        self.stall_count = 0
        self.jump = None
        self.suppressed = False
        self.last_phase = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def cursor_index(self) -> int:
        """Index of the word the cursor is in or just after."""
        return self.reference.word_index_at(self.cursor)

    @property
    def is_done(self) -> bool:
        """True once the cursor has reached the end of the reference text."""
        return self.cursor >= self.reference.total_chars

    def on_transcript_update(self, words: Sequence[str], speaking: bool = False) -> int | None:
        """
        Align the latest recognized words against the reference.

        Args:
            words: Recent raw transcript words, oldest first
            speaking: Whether the speaker is currently detected as talking

        Returns:
            The new cursor offset if it moved, else None
        """
        if self.suppressed:
            logger.debug("Ignoring update while suppressed")
            return None
        if not len(self.reference):
            return None

        recent = self._recent_keys(words)
        if not recent:
            return None

        if self.jump is not None:
            match = self._jump_phase(recent)
            if match is not None:
                self.jump = None
                return self._apply(match, "jump")
            if self.jump is not None:
                # Hold position until speech catches up to the tapped word
                return None

        match = self._sequential_phase(recent)
        if match is not None:
            return self._apply(match, "sequential")

        # Too little speech to judge a stall either way
        if len(recent) < self.settings.min_tail_words:
            return None

        phase, match = self._strong_phases(recent)
        if match is not None:
            return self._apply(match, phase)

        return self._stalled(speaking)

    def jump_to(self, char_offset: int) -> int:
        """
        Seek to a character offset and arm a jump request.

        The cursor and anchor move immediately; subsequent updates search a
        window around the target until speech confirms it or the attempt
        budget runs out.

        Returns:
            The clamped offset the cursor now sits at
        """
        offset = self._clamp(char_offset)
        self.cursor = offset
        self.anchor = offset
        self.stall_count = 0
        self.jump = JumpRequest(
            target_offset=offset,
            attempts_remaining=self.settings.jump_attempts,
        )
        logger.debug("Jump requested to offset %d (word %d)", offset, self.cursor_index)
        return offset

    def cancel_jump(self) -> None:
        self.jump = None

    def suppress(self) -> None:
        """Ignore updates until release() (provider restarting)."""
        self.suppressed = True

    def release(self) -> None:
        self.suppressed = False

    def resync(self) -> None:
        """Move the search anchor to the cursor (new provider session)."""
        self.anchor = self.cursor
        self.stall_count = 0

    def reset(self) -> None:
        """Return to the start of the reference."""
        self.cursor = 0
        self.anchor = 0
        self.stall_count = 0
        self.jump = None
        self.suppressed = False
        self.last_phase = None

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _jump_phase(self, recent: list[str]) -> Match | None:
        assert self.jump is not None
        n = len(self.reference)
        target_index = self.reference.word_index_at(self.jump.target_offset)
        window = self.settings.jump_window_words
        match = self.find_best_match(
            recent,
            search_start=max(0, target_index - window),
            search_end=min(n - 1, target_index + window),
            prefer_index=target_index,
            min_tail=self.settings.min_tail_words,
        )
        if match is not None:
            return match

        self.jump.attempts_remaining -= 1
        if self.jump.attempts_remaining <= 0:
            logger.debug("Abandoning jump to offset %d", self.jump.target_offset)
            self.jump = None
        return None

    def _sequential_phase(self, recent: list[str]) -> Match | None:
        next_index = self._next_word_index()
        if next_index is None:
            return None
        # Index the lookahead is measured from (the word before the next one)
        base = next_index - 1
        search_end = min(len(self.reference) - 1, base + self.settings.sequential_search_words)
        if next_index > search_end:
            return None
        return self.find_sequential_match(recent, next_index, search_end)

    def _strong_phases(self, recent: list[str]) -> tuple[str, Match | None]:
        s = self.settings
        n = len(self.reference)
        current = self.cursor_index

        near_end = min(n - 1, current + s.near_forward_words)
        match = self.find_best_match(recent, current, near_end, current, s.min_tail_words)
        if match is not None:
            return "near_forward", match

        far_end = min(n - 1, current + s.far_forward_words)
        match = self.find_best_match(recent, near_end + 1, far_end, current, s.strong_tail_words)
        if match is not None:
            return "far_forward", match

        back_start = max(0, current - s.backward_words)
        match = self.find_best_match(recent, back_start, current, current, s.min_tail_words)
        if match is not None:
            return "backward", match

        match = self.find_best_match(recent, 0, current, current, s.strong_tail_words)
        if match is not None:
            return "global_backward", match

        match = self.find_best_match(recent, current, n - 1, current, s.strong_tail_words)
        if match is not None:
            return "global_forward", match

        return "", None

    def _stalled(self, speaking: bool) -> int | None:
        self.stall_count += 1
        if self.stall_count < self.settings.stall_threshold or not speaking:
            return None

        next_index = self._next_word_index()
        self.stall_count = 0
        if next_index is None:
            return None

        new_cursor = self.reference.end_offset(next_index)
        logger.debug(
            "Stalled for %d updates while speaking, advancing to word %d",
            self.settings.stall_threshold, next_index)
        self.cursor = new_cursor
        self.anchor = new_cursor
        self.last_phase = "stall"
        return new_cursor

    # ------------------------------------------------------------------
    # Matching primitives
    # ------------------------------------------------------------------

    def match_tail(self, tail: Sequence[str], start_index: int, search_end: int) -> tuple[int, int] | None:
        """
        Match spoken words in order against reference words from start_index.

        Annotation words and words without a comparison form are skipped.
        Any mismatch aborts the attempt.

        Returns:
            (start, end) reference indices spanned by the match, or None
        """
        words = self.reference.words
        src = start_index
        first: int | None = None

        for spoken in tail:
            while src <= search_end and words[src].is_annotation:
                src += 1
            if src > search_end:
                return None

            src_word = words[src].normalized
            if not src_word:
                src += 1
                continue

            if not is_fuzzy_match(src_word, spoken):
                return None
            if first is None:
                first = src
            src += 1

        if first is None:
            return None
        return first, max(first, src - 1)

    def find_best_match(
        self,
        recent: Sequence[str],
        search_start: int,
        search_end: int,
        prefer_index: int,
        min_tail: int
    ) -> Match | None:
        """
        Find the best-scoring tail match inside a window of reference words.

        Tries every tail length from the longest available down to min_tail
        and every non-annotation start index in [search_start, search_end].
        Score is tail_length * 1000 minus the distance from prefer_index, so
        longer tails always win and proximity breaks ties.
        """
        s = self.settings
        if search_start > search_end or not recent:
            return None

        words = self.reference.words
        max_tail = min(len(recent), s.recent_words)
        best_score: int | None = None
        best: Match | None = None

        for tail_length in range(max_tail, min_tail - 1, -1):
            tail = recent[-tail_length:]
            if tail_length < s.short_tail_words:
                total_chars = sum(len(w) for w in tail)
                has_long_word = any(len(w) >= s.short_tail_long_word for w in tail)
                if not has_long_word or total_chars < s.short_tail_min_chars:
                    continue

            for start in range(search_start, search_end + 1):
                if words[start].is_annotation:
                    continue
                span = self.match_tail(tail, start, search_end)
                if span is None:
                    continue
                score = tail_length * 1000 - abs(span[0] - prefer_index)
                if best_score is None or score > best_score:
                    best_score = score
                    best = Match(start=span[0], end=span[1], tail_length=tail_length)

        return best

    def find_sequential_match(
        self,
        recent: Sequence[str],
        next_index: int,
        search_end: int
    ) -> Match | None:
        """
        Match the latest spoken words against the next few unread words.

        A two-word tail anchored at the first candidate wins outright.
        Otherwise the last spoken word is compared with each candidate in
        order: the immediate next word gets relaxed matching (and two-letter
        words may differ by one edit), later candidates need longer words
        and may not run too far ahead of the cursor.
        """
        s = self.settings
        words = self.reference.words

        candidates: list[int] = []
        idx = next_index
        while idx <= search_end and len(candidates) < s.sequential_candidates:
            if not words[idx].is_annotation and words[idx].normalized:
                candidates.append(idx)
            idx += 1
        if not candidates:
            return None

        if len(recent) >= 2:
            first = candidates[0]
            tail_end = min(len(words) - 1, first + 3)
            span = self.match_tail(recent[-2:], first, tail_end)
            if span is not None:
                return Match(start=span[0], end=span[1], tail_length=2)

        last = recent[-1]
        base = next_index - 1
        for i, src_index in enumerate(candidates):
            src_word = words[src_index].normalized
            if i > 0:
                if len(last) < s.sequential_min_word_length or len(src_word) < s.sequential_min_word_length:
                    continue
                if src_index - base > s.sequential_lookahead_cap:
                    continue

            if i == 0:
                if len(src_word) <= 2 and len(last) <= 2:
                    matched = edit_distance(src_word, last) <= 1
                else:
                    matched = is_relaxed_fuzzy_match(src_word, last)
            else:
                matched = is_fuzzy_match(src_word, last)

            if matched:
                return Match(start=src_index, end=src_index, tail_length=1)

        return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _apply(self, match: Match, phase: str) -> int | None:
        """Move the cursor to the end of a match, skipping trailing annotations."""
        words = self.reference.words
        if match.end >= len(words):
            return None

        end = match.end
        while end + 1 < len(words) and words[end + 1].is_annotation:
            end += 1

        self.stall_count = 0
        new_cursor = self.reference.end_offset(end)
        if new_cursor == self.cursor:
            return None

        logger.debug(
            "%s match of %d words at %d-%d: cursor %d -> %d",
            phase, match.tail_length, match.start, end, self.cursor, new_cursor)
        self.cursor = new_cursor
        self.anchor = new_cursor
        self.last_phase = phase
        return new_cursor

    def _next_word_index(self) -> int | None:
        """First readable word the cursor has not passed yet."""
        current = self.cursor_index
        ref = self.reference
        if self.cursor < ref.end_offset(current) and not ref[current].is_annotation:
            return current
        return ref.next_readable(current)

    def _recent_keys(self, words: Sequence[str]) -> list[str]:
        table = self.reference.table
        keys = (comparison_key(w, table) for w in list(words)[-self.settings.recent_words:])
        return [k for k in keys if k]

    def _clamp(self, offset: int) -> int:
        return max(0, min(offset, self.reference.total_chars))
