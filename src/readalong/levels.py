# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Audio level metering used for the "is speaking" signal and the level display.

Levels are computed on the capture thread from raw sample buffers and handed
to the session supervisor, which owns the LevelMeter.
"""

from collections import deque

import numpy as np
import numpy.typing as npt

# 16-bit PCM full scale
INT16_SCALE: float = 32768.0


def rms_level(samples: npt.ArrayLike, gain: float = 5.0) -> float:
    """
    Display level for a buffer of float samples in [-1, 1].

    Returns min(rms * gain, 1.0); an empty buffer is silent.
    """
    data = np.asarray(samples, dtype=np.float64)
    if data.size == 0:
        return 0.0
    rms = float(np.sqrt(np.mean(np.square(data))))
    return min(rms * gain, 1.0)


def pcm16_level(buffer: bytes, gain: float = 5.0) -> float:
    """Level of a raw 16-bit little-endian mono PCM buffer."""
    samples: npt.NDArray[np.int16] = np.frombuffer(buffer, dtype=np.int16)
    return rms_level(samples.astype(np.float64) / INT16_SCALE, gain)


class LevelMeter:
    """Rolling history of recent audio levels."""

    history_size: int
    window: int
    threshold: float
    levels: deque[float]

    def __init__(self, history_size: int = 30, window: int = 10, threshold: float = 0.015) -> None:
        self.history_size = history_size
        self.window = window
        self.threshold = threshold
        self.levels = deque([0.0] * history_size, maxlen=history_size)

    def push(self, level: float) -> None:
        self.levels.append(max(0.0, min(float(level), 1.0)))

    @property
    def is_speaking(self) -> bool:
        """Mean of the most recent levels is above the speech threshold."""
        recent = list(self.levels)[-self.window:]
        if not recent:
            return False
        return sum(recent) / len(recent) > self.threshold

    def snapshot(self) -> list[float]:
        """Copy of the history, oldest first."""
        return list(self.levels)

    def clear(self) -> None:
        self.levels.extend([0.0] * self.history_size)
