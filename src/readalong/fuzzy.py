# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Word-level fuzzy comparison tolerant of speech recognition noise.

Both arguments are expected to be comparison keys (see normalizer.comparison_key).
Tolerance scales with word length: very short words must match exactly,
longer words may differ by a few edits.
"""

from rapidfuzz.distance import Levenshtein


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance between two words."""
    return Levenshtein.distance(a, b)


def shared_prefix_length(a: str, b: str) -> int:
    """Number of leading characters a and b have in common."""
    count = 0
    for ca, cb in zip(a, b):
        if ca != cb:
            break
        count += 1
    return count


def is_fuzzy_match(a: str, b: str) -> bool:
    """
    Check if two words match closely enough to be the same spoken word.

    Rules, first hit wins:
    - exact match
    - shorter word of 1-2 characters: exact only (keeps short particles
      such as من and في from matching inside longer words)
    - one word is a prefix of the other
    - one contains the other, if the shorter has at least 4 characters
    - shared prefix of at least 60% of the shorter word (minimum 2)
    - edit distance: <=1 up to 4 chars, <=2 up to 8, else <= longest/3
    """
    if not a or not b:
        return False
    if a == b:
        return True

    shorter = min(len(a), len(b))
    if shorter <= 2:
        return False

    if a.startswith(b) or b.startswith(a):
        return True

    if shorter >= 4 and (a in b or b in a):
        return True

    if shared_prefix_length(a, b) >= max(2, shorter * 3 // 5):
        return True

    dist = edit_distance(a, b)
    if shorter <= 4:
        return dist <= 1
    if shorter <= 8:
        return dist <= 2
    return dist <= max(len(a), len(b)) // 3


def is_relaxed_fuzzy_match(a: str, b: str) -> bool:
    """Looser variant used only for the immediately next reference word.

    Accepts a 50% shared prefix and one extra edit on top of is_fuzzy_match.
    """
    if is_fuzzy_match(a, b):
        return True
    if not a or not b:
        return False

    shorter = min(len(a), len(b))
    if shorter <= 2:
        return False

    if shared_prefix_length(a, b) >= max(2, shorter // 2):
        return True

    dist = edit_distance(a, b)
    if shorter <= 4:
        return dist <= 2
    if shorter <= 8:
        return dist <= 3
    return False
