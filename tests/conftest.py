# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Shared fixtures: a vocabulary of mutually dissimilar words, an in-memory
event loop with a manual clock and a scripted speech provider.
"""

from collections.abc import Callable, Sequence
from typing import Any

import pytest

from readalong.reference import ReferenceText, build_reference
from readalong.speech_provider import SpeechProvider, SpeechProviderError
from readalong.supervisor import SessionSupervisor

# No two neighbouring words are even loosely similar, and no two words
# anywhere in the list fuzzy-match each other.
WORDS: list[str] = [
    "apple", "bridge", "candle", "desert", "engine", "forest", "garden", "harbor",
    "island", "jacket", "kettle", "ladder", "marble", "needle", "orange", "pepper",
    "quartz", "rabbit", "siren", "timber", "umbrella", "velvet", "walnut", "yacht",
    "mosaic", "anchor", "blanket", "cactus", "dolphin", "eagle", "feather", "glacier",
    "hammer", "iceberg", "jungle", "kitten", "lantern", "meadow", "napkin", "oyster",
    "pillow", "quiver", "riddle", "spider", "turtle", "urchin", "violin", "window",
    "yogurt", "zebra", "arrow", "button", "cobalt", "dragon", "elbow", "falcon",
    "guitar", "hornet", "insect", "jigsaw",
]

# Recognizer output that matches nothing in WORDS
GARBAGE: str = "qzxq"


@pytest.fixture
def words() -> list[str]:
    return list(WORDS)


@pytest.fixture
def make_reference() -> Callable[..., ReferenceText]:
    """Build a reference from a word list (or the first n vocabulary words)."""
    def make(source: Sequence[str] | int = len(WORDS)) -> ReferenceText:
        tokens = WORDS[:source] if isinstance(source, int) else list(source)
        return build_reference(" ".join(tokens))
    return make


class FakeTimer:
    """Stand-in for asyncio.TimerHandle."""

    def __init__(self, when: float, callback: Callable[..., None], args: tuple[Any, ...]) -> None:
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeLoop:
    """Just enough of an event loop for the supervisor, with a manual clock."""

    def __init__(self) -> None:
        self.now: float = 0.0
        self.ready: list[tuple[Callable[..., None], tuple[Any, ...]]] = []
        self.timers: list[FakeTimer] = []

    def call_soon_threadsafe(self, callback: Callable[..., None], *args: Any) -> None:
        self.ready.append((callback, args))

    def call_later(self, delay: float, callback: Callable[..., None], *args: Any) -> FakeTimer:
        timer = FakeTimer(self.now + delay, callback, args)
        self.timers.append(timer)
        return timer

    @property
    def pending_timers(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def run_ready(self) -> None:
        """Run queued callbacks, including any they queue in turn."""
        while self.ready:
            callback, args = self.ready.pop(0)
            callback(*args)

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in order."""
        target = self.now + seconds
        self.run_ready()
        while True:
            due = sorted(
                (t for t in self.pending_timers if t.when <= target + 1e-9),
                key=lambda t: t.when)
            if not due:
                break
            timer = due[0]
            self.now = max(self.now, timer.when)
            timer.fired = True
            timer.callback(*timer.args)
            self.run_ready()
        self.now = target


class FakeProvider(SpeechProvider):
    """Speech provider driven by the test."""

    def __init__(self, start_error: SpeechProviderError | None = None) -> None:
        self.start_error = start_error
        self.started = False
        self.cancelled = False
        self.locale: str | None = None
        self.hints: list[str] = []
        self._on_transcript: Callable[[str], None] | None = None
        self._on_error: Callable[[SpeechProviderError], None] | None = None
        self._on_level: Callable[[float], None] | None = None

    def start(self, locale, contextual_hints, on_transcript, on_error, on_level=None) -> None:
        self.locale = locale
        self.hints = list(contextual_hints)
        if self.start_error is not None:
            raise self.start_error
        self.started = True
        self._on_transcript = on_transcript
        self._on_error = on_error
        self._on_level = on_level

    def cancel(self) -> None:
        self.cancelled = True

    def emit(self, text: str) -> None:
        assert self._on_transcript is not None
        self._on_transcript(text)

    def fail(self, message: str = "boom") -> None:
        assert self._on_error is not None
        self._on_error(SpeechProviderError(message))

    def level(self, value: float) -> None:
        assert self._on_level is not None
        self._on_level(value)


class ProviderScript:
    """Provider factory recording every instance; start_errors are used in order."""

    def __init__(self) -> None:
        self.instances: list[FakeProvider] = []
        self.start_errors: list[SpeechProviderError | None] = []

    def __call__(self) -> FakeProvider:
        error = self.start_errors.pop(0) if self.start_errors else None
        provider = FakeProvider(error)
        self.instances.append(provider)
        return provider

    @property
    def current(self) -> FakeProvider:
        return self.instances[-1]


@pytest.fixture
def fake_loop() -> FakeLoop:
    return FakeLoop()


@pytest.fixture
def providers() -> ProviderScript:
    return ProviderScript()


@pytest.fixture
def make_session(fake_loop: FakeLoop, providers: ProviderScript) -> Callable[..., SessionSupervisor]:
    """Build a supervisor on the fake loop; keyword arguments are passed through."""
    def make(**kwargs: Any) -> SessionSupervisor:
        return SessionSupervisor(providers, loop=fake_loop, **kwargs)  # type: ignore[arg-type]
    return make


@pytest.fixture
def events() -> list[Any]:
    return []
