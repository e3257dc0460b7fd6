# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Session supervisor: owns the speech provider lifecycle for one reading
session and feeds its transcripts through the aligner.

Everything here runs on a single asyncio event loop. Provider callbacks can
arrive on any thread; they are marshalled onto the loop with
call_soon_threadsafe and tagged with the provider session they came from, so
callbacks from a cancelled provider are dropped instead of acting on the
new session.

States:

    idle -> starting -> listening
    listening -> retrying -> starting        (transient error, restart)
    listening -> stopped                     (stop, retries exhausted)
    starting -> failed                       (authorization, no recognizer,
                                              format retries exhausted)
    any -> stopped                           (stop / force_stop)
    stopped | failed -> starting             (resume)
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal

from .aligner import Aligner, AlignerSettings
from .levels import LevelMeter
from .normalizer import DEFAULT_TABLE, NormalizationTable
from .reference import ReferenceText, build_reference
from .speech_provider import (
    AudioFormatError,
    AuthorizationError,
    ProviderUnavailableError,
    SpeechProvider,
    SpeechProviderError,
    WakeLock,
)
from .transcript import TranscriptWindow

logger = logging.getLogger(__name__)

SessionState = Literal["idle", "starting", "listening", "retrying", "stopped", "failed"]
EventKind = Literal["cursor", "state", "error", "levels", "transcript", "dismissed"]

# Allowed target states for each state (same-state updates are no-ops)
TRANSITIONS: dict[str, frozenset[str]] = {
    "idle": frozenset({"starting", "stopped"}),
    "starting": frozenset({"listening", "retrying", "failed", "stopped"}),
    "listening": frozenset({"starting", "retrying", "stopped"}),
    "retrying": frozenset({"starting", "stopped"}),
    "stopped": frozenset({"starting"}),
    "failed": frozenset({"starting", "stopped"}),
}

ERROR_NOT_AUTHORIZED = "Speech recognition not authorized"
ERROR_NOT_AVAILABLE = "Speech recognizer not available"
ERROR_AUDIO_UNAVAILABLE = "Audio input unavailable"

Authorizer = Callable[[Callable[[bool], None]], None]
ProviderFactory = Callable[[], SpeechProvider]


class SessionStateError(RuntimeError):
    """Raised on a state change the session state machine does not allow."""


@dataclass(frozen=True)
class SessionSettings:
    """Session lifecycle tuning."""
    locale: str = "ar"
    max_retries: int = 10
    retry_backoff_step: float = 0.5  # Seconds per retry for provider errors
    retry_backoff_cap: float = 1.5
    format_retry_delay: float = 0.3
    restart_delay: float = 0.5  # Settle time after a jump or device change
    hint_count: int = 50
    window_capacity: int = 80
    level_history: int = 30
    speaking_window: int = 10
    speaking_threshold: float = 0.015


@dataclass
class SessionEvent:
    """An observable change published to subscribers."""
    kind: EventKind
    cursor: int
    state: SessionState
    error: str | None = None
    levels: list[float] = field(default_factory=list)
    transcript: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly form for the web UI."""
        data: dict[str, Any] = {
            "type": self.kind,
            "cursor": self.cursor,
            "state": self.state,
        }
        if self.error is not None:
            data["error"] = self.error
        if self.kind == "levels":
            data["levels"] = self.levels
        if self.transcript is not None:
            data["transcript"] = self.transcript
        return data


def grant_authorization(callback: Callable[[bool], None]) -> None:
    """Default authorizer: no permission prompt on this platform."""
    callback(True)


class SessionSupervisor:
    """
    Drives one read-along session: authorization, provider start/restart,
    retry with backoff, manual jumps and output publishing.
    """

    def __init__(
        self,
        provider_factory: ProviderFactory,
        loop: asyncio.AbstractEventLoop | None = None,
        settings: SessionSettings | None = None,
        aligner_settings: AlignerSettings | None = None,
        authorizer: Authorizer | None = None,
        wake_lock: WakeLock | None = None,
        table: NormalizationTable = DEFAULT_TABLE
    ) -> None:
        """
        Initialize the supervisor.

        Args:
            provider_factory: Creates a fresh provider for every (re)start
            loop: Event loop all state lives on (defaults to the running loop)
            settings: Lifecycle tuning
            aligner_settings: Passed to every Aligner this session creates
            authorizer: Asks for recognition permission, answers via callback
            wake_lock: Held while listening
            table: Normalization data for the reference script
        """
        self.provider_factory = provider_factory
        self.loop = loop or asyncio.get_running_loop()
        self.settings = settings or SessionSettings()
        self.aligner_settings = aligner_settings or AlignerSettings()
        self.authorizer = authorizer or grant_authorization
        self.wake_lock = wake_lock or WakeLock()
        self.table = table

        self.reference: ReferenceText = build_reference("", table)
        self.aligner: Aligner = Aligner(self.reference, self.aligner_settings)
        self.window = TranscriptWindow(self.settings.window_capacity)
        self.meter = LevelMeter(
            history_size=self.settings.level_history,
            window=self.settings.speaking_window,
            threshold=self.settings.speaking_threshold,
        )

        self.state: SessionState = "idle"
        self.last_error: str | None = None
        self.last_spoken_text: str = ""
        self.retry_count: int = 0
        self.authorized: bool = False

        self._wants_listening: bool = False
        self._generation: int = 0
        self._provider: SpeechProvider | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._listeners: list[Callable[[SessionEvent], None]] = []

    # ------------------------------------------------------------------
    # Observable outputs
    # ------------------------------------------------------------------

    @property
    def cursor(self) -> int:
        return self.aligner.cursor

    @property
    def is_listening(self) -> bool:
        return self.state in ("listening", "retrying")

    @property
    def is_speaking(self) -> bool:
        return self.meter.is_speaking

    @property
    def levels(self) -> list[float]:
        return self.meter.snapshot()

    @property
    def is_done(self) -> bool:
        return bool(len(self.reference)) and self.aligner.is_done

    @property
    def progress(self) -> float:
        return self.reference.progress(self.cursor)

    def snapshot(self) -> dict[str, Any]:
        """Current outputs as a JSON-friendly dict."""
        return {
            "cursor": self.cursor,
            "state": self.state,
            "isListening": self.is_listening,
            "isSpeaking": self.is_speaking,
            "lastError": self.last_error,
            "levels": self.levels,
            "lastSpokenText": self.last_spoken_text,
            "isDone": self.is_done,
            "progress": self.progress,
            "totalChars": self.reference.total_chars,
        }

    def subscribe(self, listener: Callable[[SessionEvent], None]) -> Callable[[], None]:
        """
        Register a listener for SessionEvents.

        Returns:
            A function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def start(self, text: str, cursor: int = 0) -> None:
        """
        Start a new session on a reference text.

        Resets all state (including any sticky error), builds the reference
        index and asks for authorization before listening.

        Args:
            text: The reference passage
            cursor: Starting offset, e.g. saved reading progress
        """
        self._teardown()
        self.reference = build_reference(text, self.table)
        self.aligner = Aligner(self.reference, self.aligner_settings, cursor=cursor)
        self.window.clear()
        self.meter.clear()
        self.retry_count = 0
        self.last_error = None
        self.last_spoken_text = ""
        self._wants_listening = True

        logger.info("Starting session on %d words", len(self.reference))
        self._set_state("starting")
        self._publish("cursor")
        self._request_authorization()

    def stop(self) -> None:
        """Pause listening. Cursor and reference are kept for resume()."""
        self._wants_listening = False
        self._teardown()
        self.aligner.cancel_jump()
        self.aligner.release()
        self.wake_lock.release()
        self._set_state("stopped")

    def force_stop(self) -> None:
        """Stop immediately and exhaust the retry budget. Safe to call repeatedly."""
        self.stop()
        self.retry_count = self.settings.max_retries

    def dismiss(self) -> None:
        """Force stop and publish the final cursor for progress saving."""
        self.force_stop()
        self._publish("dismissed")

    def resume(self) -> None:
        """Restart listening from the current cursor."""
        if self.state not in ("stopped", "failed"):
            logger.debug("Ignoring resume in state %s", self.state)
            return

        self.retry_count = 0
        self.aligner.resync()
        self._wants_listening = True
        self._set_state("starting")
        if self.authorized:
            self._begin()
        else:
            self._request_authorization()

    def jump_to(self, char_offset: int) -> int:
        """
        Seek to a character offset.

        While listening the provider is restarted so the next transcript only
        contains speech from the new position; until then stale updates are
        ignored.

        Returns:
            The clamped cursor offset
        """
        offset = self.aligner.jump_to(char_offset)
        self.retry_count = 0
        self._publish("cursor")
        if self.is_listening:
            self.aligner.suppress()
            self._restart(self.settings.restart_delay)
        return offset

    def device_changed(self) -> None:
        """Audio device or configuration changed: restart on a fresh provider."""
        if not self.is_listening or not len(self.reference):
            return
        logger.info("Audio configuration changed, restarting recognition")
        self._restart(self.settings.restart_delay)

    # ------------------------------------------------------------------
    # Provider lifecycle
    # ------------------------------------------------------------------

    def _request_authorization(self) -> None:
        generation = self._generation

        def answer(granted: bool) -> None:
            self.loop.call_soon_threadsafe(
                self._dispatch, generation, self._on_authorized, (granted,))

        self.authorizer(answer)

    def _on_authorized(self, granted: bool) -> None:
        if not granted:
            self.authorized = False
            self._fail(ERROR_NOT_AUTHORIZED)
            return
        self.authorized = True
        self._begin()

    def _begin(self) -> None:
        """Create and start a fresh provider from the current anchor."""
        self._cancel_timer()
        self._cancel_provider()
        self.window.clear()
        self.aligner.release()
        self.aligner.resync()
        self._set_state("starting")

        generation = self._generation
        hints = self.reference.contextual_hints(
            self.reference.word_index_at(self.aligner.anchor), self.settings.hint_count)

        try:
            provider = self.provider_factory()
            provider.start(
                self.settings.locale,
                hints,
                on_transcript=lambda text: self._post(generation, self._on_transcript, text),
                on_error=lambda exc: self._post(generation, self._on_provider_error, exc),
                on_level=lambda level: self._post(generation, self._on_level, level),
            )
        except AuthorizationError:
            self._fail(ERROR_NOT_AUTHORIZED)
            return
        except ProviderUnavailableError as e:
            logger.warning("Recognizer unavailable: %s", e)
            self._fail(ERROR_NOT_AVAILABLE)
            return
        except AudioFormatError as e:
            self._retry_start(e, ERROR_AUDIO_UNAVAILABLE)
            return
        except SpeechProviderError as e:
            self._retry_start(e, f"Audio engine failed: {e}")
            return

        self._provider = provider
        self._set_state("listening")
        self.wake_lock.acquire()

    def _retry_start(self, error: SpeechProviderError, exhausted_message: str) -> None:
        if self.retry_count < self.settings.max_retries:
            self.retry_count += 1
            logger.info(
                "Provider start failed (%s), retry %d/%d",
                error, self.retry_count, self.settings.max_retries)
            self._set_state("retrying")
            self._schedule(self.settings.format_retry_delay)
        else:
            self._fail(exhausted_message)

    def _restart(self, delay: float) -> None:
        """Tear down the provider and start a fresh one after delay."""
        self.retry_count = 0
        self._wants_listening = True
        self._cancel_provider()
        self._set_state("retrying")
        self._schedule(delay)

    def _on_transcript(self, text: str) -> None:
        self.retry_count = 0
        self.last_spoken_text = text
        self._publish("transcript", transcript=text)

        if not self.window.update(text):
            return
        cursor = self.aligner.on_transcript_update(self.window.words, speaking=self.meter.is_speaking)
        if cursor is not None:
            self._publish("cursor")

    def _on_provider_error(self, error: SpeechProviderError) -> None:
        self._cancel_provider()
        if self._wants_listening and self.retry_count < self.settings.max_retries:
            self.retry_count += 1
            delay = min(self.retry_count * self.settings.retry_backoff_step,
                        self.settings.retry_backoff_cap)
            logger.info(
                "Recognition error (%s), retry %d/%d in %.1fs",
                error, self.retry_count, self.settings.max_retries, delay)
            self.aligner.resync()
            self._set_state("retrying")
            self._schedule(delay)
            return

        wanted = self._wants_listening
        self._wants_listening = False
        self.wake_lock.release()
        self._set_state("stopped")
        if wanted:
            self.last_error = f"Speech recognition failed: {error}"
            logger.warning(self.last_error)
            self._publish("error", error=self.last_error)

    def _on_level(self, level: float) -> None:
        self.meter.push(level)
        self._publish("levels", levels=self.meter.snapshot())

    def _fail(self, message: str) -> None:
        self._wants_listening = False
        self._cancel_timer()
        self._cancel_provider()
        self.wake_lock.release()
        self.last_error = message
        logger.warning("Session failed: %s", message)
        self._set_state("failed")
        self._publish("error", error=message)

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _schedule(self, delay: float) -> None:
        """Schedule _begin after delay, replacing any pending restart."""
        self._cancel_timer()
        self._timer = self.loop.call_later(delay, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self._begin()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel_provider(self) -> None:
        """Cancel the current provider; its pending callbacks become stale."""
        self._generation += 1
        provider, self._provider = self._provider, None
        if provider is not None:
            provider.cancel()

    def _teardown(self) -> None:
        self._cancel_timer()
        self._cancel_provider()

    def _post(self, generation: int, handler: Callable[..., None], *args: Any) -> None:
        self.loop.call_soon_threadsafe(self._dispatch, generation, handler, args)

    def _dispatch(self, generation: int, handler: Callable[..., None], args: tuple[Any, ...]) -> None:
        if generation != self._generation:
            logger.debug("Dropping stale callback %s", getattr(handler, "__name__", handler))
            return
        handler(*args)

    def _set_state(self, state: SessionState) -> None:
        if state == self.state:
            return
        if state not in TRANSITIONS[self.state]:
            raise SessionStateError(f"Illegal session transition {self.state} -> {state}")
        logger.info("Session %s -> %s", self.state, state)
        self.state = state
        self._publish("state")

    def _publish(self, kind: EventKind, **extra: Any) -> None:
        event = SessionEvent(kind=kind, cursor=self.cursor, state=self.state, **extra)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Session listener failed for %s event", kind)
