# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Audio capture module using sounddevice for low-latency microphone input.
Captures audio in small chunks for the recognizer and samples the signal
level for the speaking indicator.
"""

import logging
import queue
from collections.abc import Callable
from typing import Any

import numpy as np
import numpy.typing as npt
import sounddevice as sd

from .levels import pcm16_level
from .speech_provider import AudioFormatError

logger = logging.getLogger(__name__)


class AudioCapture:
    """Captures audio from the microphone in small chunks for streaming recognition."""

    sample_rate: int
    chunk_duration_ms: int
    chunk_size: int
    device: int | None
    level_every: int
    audio_queue: queue.Queue[bytes]
    stream: sd.RawInputStream | None
    running: bool

    def __init__(
        self,
        sample_rate: int = 16000,
        chunk_duration_ms: int = 100,
        device: int | None = None,
        on_level: Callable[[float], None] | None = None,
        level_every: int = 5
    ) -> None:
        """
        Initialize audio capture.

        Args:
            sample_rate: Sample rate in Hz (16000 is optimal for Vosk)
            chunk_duration_ms: Duration of each audio chunk in milliseconds
            device: Audio device index, or None for default
            on_level: Called from the audio thread with a level in [0, 1]
            level_every: Only every Nth buffer is metered
        """
        self.sample_rate = sample_rate
        self.chunk_duration_ms = chunk_duration_ms
        self.chunk_size = int(sample_rate * chunk_duration_ms / 1000)
        self.device = device
        self.on_level = on_level
        self.level_every = max(1, level_every)

        self.audio_queue: queue.Queue[bytes] = queue.Queue()
        self.stream: sd.RawInputStream | None = None
        self.running = False
        self._buffer_count = 0

    def _audio_callback(
        self,
        indata: npt.NDArray[np.int16],
        frames: int,
        time: Any,
        status: sd.CallbackFlags
    ) -> None:
        """Called for each audio chunk from the microphone."""
        if status:
            logger.debug("Audio status: %s", status)
        data = bytes(indata)
        self.audio_queue.put(data)

        self._buffer_count += 1
        if self.on_level is not None and self._buffer_count % self.level_every == 0:
            self.on_level(pcm16_level(data))

    def check_device(self) -> None:
        """
        Verify the input device reports a usable format.

        Raises:
            AudioFormatError: No input channels or an invalid sample rate,
                typically while the system is switching devices
        """
        try:
            info: dict[str, Any] = dict(sd.query_devices(self.device, kind="input"))
        except (sd.PortAudioError, ValueError) as e:
            raise AudioFormatError(f"No usable input device: {e}") from e

        if int(info.get("max_input_channels", 0)) <= 0:
            raise AudioFormatError(f"Input device {info.get('name')} has no input channels")
        if float(info.get("default_samplerate", 0)) <= 0:
            raise AudioFormatError(f"Input device {info.get('name')} reports no sample rate")

    def start(self) -> None:
        """Start capturing audio from the microphone."""
        if self.running:
            return

        self.check_device()
        self._buffer_count = 0
        try:
            self.stream = sd.RawInputStream(
                samplerate=self.sample_rate,
                blocksize=self.chunk_size,
                device=self.device,
                dtype=np.int16,
                channels=1,
                callback=self._audio_callback
            )
            self.stream.start()
        except sd.PortAudioError as e:
            self.stream = None
            raise AudioFormatError(f"Could not open input stream: {e}") from e

        self.running = True
        logger.info("Audio capture started (device=%s, %d Hz)", self.device, self.sample_rate)

    def stop(self) -> None:
        """Stop capturing audio."""
        self.running = False
        if self.stream:
            self.stream.stop()
            self.stream.close()
            self.stream = None

    def get_chunk(self, timeout: float = 0.5) -> bytes | None:
        """
        Get the next audio chunk.

        Args:
            timeout: Maximum time to wait for a chunk

        Returns:
            Audio data as bytes, or None if timeout
        """
        try:
            return self.audio_queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def clear_queue(self) -> None:
        """Clear any pending audio chunks."""
        while not self.audio_queue.empty():
            try:
                self.audio_queue.get_nowait()
            except queue.Empty:
                break


def input_devices() -> list[dict[str, Any]]:
    """Available audio input devices as index/name/channels dicts."""
    devices: list[dict[str, Any]] = []
    for i, device in enumerate(sd.query_devices()):
        dev: dict[str, Any] = dict(device)
        if dev.get('max_input_channels', 0) > 0:
            devices.append({
                "index": i,
                "name": dev.get('name', 'Unknown'),
                "channels": dev.get('max_input_channels', 0),
            })
    return devices


def list_devices() -> list[dict[str, Any]]:
    """Print available audio input devices."""
    print("Available audio input devices:")
    devices = input_devices()
    for dev in devices:
        print(f"  [{dev['index']}] {dev['name']} (inputs: {dev['channels']})")
    return devices
