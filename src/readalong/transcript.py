# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Bounded buffer of the most recently recognized words.
"""

from collections.abc import Sequence


class TranscriptWindow:
    """
    Holds the last few words of the full-so-far transcript.

    The speech provider delivers the whole transcript on every callback, so
    the window is rebuilt each time and compared against its previous
    contents; identical updates are reported as no-ops so the aligner is not
    run twice on the same input.
    """

    capacity: int
    words: list[str]
    last_text: str

    def __init__(self, capacity: int = 80) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.words = []
        self.last_text = ""

    def update(self, transcript: str) -> bool:
        """
        Replace the window with the tail of a new transcript.

        Args:
            transcript: Full transcript text as delivered by the provider

        Returns:
            True if the windowed words changed, False for a no-op update
        """
        self.last_text = transcript
        recent: list[str] = transcript.split()[-self.capacity:]
        if recent == self.words:
            return False
        self.words = recent
        return True

    def recent(self, count: int) -> Sequence[str]:
        """The last count words (fewer if the window is shorter)."""
        if count <= 0:
            return []
        return self.words[-count:]

    def clear(self) -> None:
        """Forget everything (new recognition session)."""
        self.words = []
        self.last_text = ""

    def __len__(self) -> int:
        return len(self.words)
