"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
Engine tests run on a FakeClock: time only moves when a test advances it.
"""
import asyncio
import heapq
import itertools
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings
from src.drill import Card, DeckStore, DrillEngine, MemoryStore, SessionPersistence


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


# =============================================================================
# Fakes
# =============================================================================


class FakeHandle:
    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeClock:
    """Manually advanced clock implementing the engine's Clock protocol."""

    def __init__(self):
        self._now = 0.0
        self._heap = []
        self._seq = itertools.count()

    def now(self):
        return self._now

    def call_later(self, delay, callback):
        handle = FakeHandle(self._now + max(delay, 0.0), callback)
        heapq.heappush(self._heap, (handle.when, next(self._seq), handle))
        return handle

    @property
    def pending(self):
        return sum(1 for _, _, handle in self._heap if not handle.cancelled)

    async def advance(self, seconds):
        """Fire every timer due within `seconds`, letting tasks run in between."""
        target = self._now + seconds
        await _drain()
        while self._heap:
            when, _, handle = self._heap[0]
            if handle.cancelled:
                heapq.heappop(self._heap)
                continue
            if when > target + 1e-9:
                break
            heapq.heappop(self._heap)
            self._now = max(self._now, when)
            handle.callback()
            await _drain()
        self._now = target
        await _drain()


async def _drain():
    for _ in range(50):
        await asyncio.sleep(0)


class ScriptedSpeech:
    """
    SpeechAdapter double.

    Modes:
        instant - start and done fire during speak()
        timed   - start fires at once, done after `duration` clock seconds
        silent  - no callback ever fires
        error   - on_error fires during speak()
        raise   - speak() itself raises
    """

    def __init__(self, clock, mode="instant", duration=0.0):
        self.clock = clock
        self.mode = mode
        self.duration = duration
        self.calls = []
        self.stops = 0
        self.speaking = False

    @property
    def spoken(self):
        return [text for text, _ in self.calls]

    def speak(self, text, voice, *, on_start=None, on_done=None, on_error=None):
        self.calls.append((text, voice))
        if self.mode == "raise":
            raise RuntimeError("speech engine unavailable")
        if self.mode == "error":
            on_error(RuntimeError("synthesis failed"))
        elif self.mode == "instant":
            on_start()
            on_done()
        elif self.mode == "timed":
            self.speaking = True
            on_start()

            def finish():
                self.speaking = False
                on_done()

            self.clock.call_later(self.duration, finish)

    def stop(self):
        self.stops += 1
        self.speaking = False

    def is_speaking(self):
        return self.speaking


class IdentityRng:
    """Random stand-in that leaves shuffled sequences in their original order."""

    def randint(self, a, b):
        return b


class EventLog:
    """Collects (event, view) pairs from DrillEngine.subscribe."""

    def __init__(self):
        self.entries = []

    def __call__(self, event, view):
        self.entries.append((event, view))

    def of(self, event):
        return [view for e, view in self.entries if e == event]

    def count(self, event):
        return len(self.of(event))

    def clear(self):
        self.entries.clear()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def settings():
    """Default timings, no .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def speech(clock):
    return ScriptedSpeech(clock)


@pytest.fixture
def sample_cards():
    return [
        Card(id=1, front="Good morning", back="Buenos días"),
        Card(id=2, front="Thank you", back="Gracias"),
        Card(id=3, front="Where is the bathroom?", back="¿Dónde está el baño?"),
    ]


@pytest.fixture
def deck(sample_cards):
    return DeckStore(sample_cards)


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def persistence(memory_store):
    return SessionPersistence(memory_store)


@pytest.fixture
def events():
    return EventLog()


@pytest.fixture
def make_engine(deck, clock, speech, settings, events):
    """Factory for engines wired to the fake clock and scripted speech."""

    def _make(**overrides):
        kwargs = {
            "speech": speech,
            "clock": clock,
            "settings": settings,
            "rng": IdentityRng(),
        }
        kwargs.update(overrides)
        engine = DrillEngine(kwargs.pop("deck", deck), **kwargs)
        engine.subscribe(events)
        return engine

    return _make
