"""
Timer primitives for the drill engine.

Every delay the engine uses goes through a Clock so that tests can drive
time by hand. Callbacks armed by the engine are wrapped with a Generation
guard: once the engine moves on (stop, reset, new session), callbacks armed
under the old generation become no-ops even if their cancellation raced.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Clock(Protocol):
    """Source of time and one-shot timers."""

    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle: ...


class AsyncioClock:
    """Clock backed by the running event loop."""

    def now(self) -> float:
        return asyncio.get_running_loop().time()

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(max(delay, 0.0), callback)


async def sleep(clock: Clock, delay: float) -> None:
    """Suspend for `delay` seconds of clock time."""
    if delay <= 0:
        return
    future = asyncio.get_running_loop().create_future()

    def _wake() -> None:
        if not future.done():
            future.set_result(None)

    handle = clock.call_later(delay, _wake)
    try:
        await future
    finally:
        handle.cancel()


class RepeatingTimer:
    """Fires `callback` every `interval` seconds until cancelled."""

    def __init__(self, clock: Clock, interval: float, callback: Callable[[], Any]):
        self._clock = clock
        self._interval = interval
        self._callback = callback
        self._cancelled = False
        self._handle: TimerHandle | None = clock.call_later(interval, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        # Re-arm first so the callback may cancel us
        self._handle = self._clock.call_later(self._interval, self._fire)
        self._callback()

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class Generation:
    """
    Monotonic operation token.

    Bumped whenever in-flight work must be invalidated. A callback bound
    to an older value does nothing when it eventually runs.
    """

    def __init__(self) -> None:
        self._value = 0

    @property
    def current(self) -> int:
        return self._value

    def bump(self) -> int:
        self._value += 1
        return self._value

    def is_current(self, token: int) -> bool:
        return token == self._value

    def guard(self, callback: Callable[[], Any], token: int | None = None) -> Callable[[], None]:
        """Wrap `callback` so it only runs while `token` is still current."""
        bound = self._value if token is None else token

        def _guarded() -> None:
            if self._value == bound:
                callback()

        return _guarded
