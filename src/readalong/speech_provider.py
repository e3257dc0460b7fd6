"""
Base interface for speech-to-text providers.

A provider streams recognition results for one listening session. The
session supervisor creates a provider, calls start() and from then on only
reacts to the callbacks; cancel() tears the session down. Providers may call
back from any thread.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass

TranscriptCallback = Callable[[str], None]
ErrorCallback = Callable[["SpeechProviderError"], None]
LevelCallback = Callable[[float], None]


class SpeechProviderError(Exception):
    """A recognition failure worth retrying."""


class AudioFormatError(SpeechProviderError):
    """The input device reported an unusable format (e.g. mid device switch)."""


class ProviderUnavailableError(SpeechProviderError):
    """No recognizer exists for the requested locale/model. Not retried."""


class AuthorizationError(SpeechProviderError):
    """Access to the microphone or recognizer was denied. Not retried."""


@dataclass
class ModelInfo:
    """Information about an available recognition model."""

    id: str  # Unique identifier (e.g., "vosk-ar-mgb2")
    name: str  # Display name (e.g., "Arabic - MGB2")
    provider: str  # Provider name ("vosk")
    size_mb: int | None = None
    description: str | None = None


class SpeechProvider(ABC):
    """Base interface for streaming speech recognizers."""

    @abstractmethod
    def start(
        self,
        locale: str,
        contextual_hints: Sequence[str],
        on_transcript: TranscriptCallback,
        on_error: ErrorCallback,
        on_level: LevelCallback | None = None
    ) -> None:
        """
        Begin recognizing.

        Returning normally means audio is flowing and the provider is ready.
        Start-time problems are raised as SpeechProviderError subclasses;
        later problems are reported once through on_error, after which the
        provider delivers nothing further.

        Args:
            locale: Recognition language (e.g. "ar")
            contextual_hints: Upcoming reference words to bias recognition
            on_transcript: Receives the full transcript recognized so far
            on_error: Receives a terminal recognition error
            on_level: Receives audio levels in [0, 1] from the capture side
        """

    def prepare(self) -> None:
        """
        Load slow resources such as recognition models ahead of start().

        May block for seconds, so callers on the event loop run it in an
        executor. The default does nothing.
        """

    @abstractmethod
    def cancel(self) -> None:
        """Stop recognizing and release audio resources. Idempotent."""


class WakeLock:
    """
    Keeps the display awake while a session is listening.

    The base class does nothing; platform integrations override acquire()
    and release(). Both must be idempotent.
    """

    held: bool = False

    def acquire(self) -> None:
        self.held = True

    def release(self) -> None:
        self.held = False
