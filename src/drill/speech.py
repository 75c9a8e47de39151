"""
Speech narration.

The engine talks to a SpeechAdapter (callback based, may misbehave) through
a Narrator, which turns each utterance into a single awaitable that always
resolves: on completion, on error, when the engine never starts speaking,
or after a safety timeout. Narration problems are logged and never raised.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol

from loguru import logger

from .models import VoiceProfile
from .timers import Clock, TimerHandle, sleep

StartCallback = Callable[[], None]
DoneCallback = Callable[[], None]
ErrorCallback = Callable[[BaseException], None]


class SpeechAdapter(Protocol):
    """
    External text-to-speech capability.

    `speak` returns immediately. Each callback fires at most once; on_start
    may never fire.
    """

    def speak(
        self,
        text: str,
        voice: VoiceProfile,
        *,
        on_start: StartCallback | None = None,
        on_done: DoneCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None: ...

    def stop(self) -> None: ...

    def is_speaking(self) -> bool: ...


class NarrationOutcome(str, Enum):
    DONE = "done"
    ERROR = "error"
    NO_START = "no_start"
    TIMED_OUT = "timed_out"


# =============================================================================
# Narrator
# =============================================================================


class Narrator:
    """
    Serializes narration requests against one SpeechAdapter.

    Any utterance in flight is stopped before the next one starts.
    """

    def __init__(
        self,
        adapter: SpeechAdapter,
        clock: Clock,
        *,
        stop_settle: float = 0.5,
        idle_settle: float = 0.2,
        done_grace: float = 0.8,
        start_timeout: float = 5.0,
        safety_timeout: float = 20.0,
    ):
        self.adapter = adapter
        self.clock = clock
        self.stop_settle = stop_settle
        self.idle_settle = idle_settle
        self.done_grace = done_grace
        self.start_timeout = start_timeout
        self.safety_timeout = safety_timeout
        self._background: asyncio.Task | None = None

    @classmethod
    def from_config(cls, adapter: SpeechAdapter, clock: Clock, config: dict[str, Any]) -> Narrator:
        return cls(
            adapter,
            clock,
            stop_settle=config["stop_settle"],
            idle_settle=config["idle_settle"],
            done_grace=config["done_grace"],
            start_timeout=config["start_timeout"],
            safety_timeout=config["safety_timeout"],
        )

    async def narrate(self, text: str, voice: VoiceProfile) -> NarrationOutcome:
        """Speak `text` and wait until it is over, one way or another."""
        if self._adapter_speaking():
            self._stop_adapter()
            await sleep(self.clock, self.stop_settle)
        else:
            await sleep(self.clock, self.idle_settle)

        loop = asyncio.get_running_loop()
        settled: asyncio.Future[NarrationOutcome] = loop.create_future()
        started = False
        timers: list[TimerHandle] = []

        def settle(outcome: NarrationOutcome) -> None:
            if not settled.done():
                settled.set_result(outcome)

        def on_start() -> None:
            nonlocal started
            started = True

        def on_done() -> None:
            if not settled.done():
                timers.append(
                    self.clock.call_later(self.done_grace, lambda: settle(NarrationOutcome.DONE))
                )

        def on_error(error: BaseException) -> None:
            logger.warning(f"Speech error for {text!r}: {error}")
            settle(NarrationOutcome.ERROR)

        def on_start_timeout() -> None:
            if not started:
                logger.warning(f"Speech did not start within {self.start_timeout}s, continuing")
                settle(NarrationOutcome.NO_START)

        def on_safety_timeout() -> None:
            if not settled.done():
                logger.warning(f"Speech did not finish within {self.safety_timeout}s, continuing")
                settle(NarrationOutcome.TIMED_OUT)

        timers.append(self.clock.call_later(self.start_timeout, on_start_timeout))
        timers.append(self.clock.call_later(self.safety_timeout, on_safety_timeout))

        try:
            self.adapter.speak(
                text, voice, on_start=on_start, on_done=on_done, on_error=on_error
            )
        except Exception as e:
            logger.warning(f"Speech adapter failed to speak {text!r}: {e}")
            settle(NarrationOutcome.ERROR)

        try:
            return await settled
        finally:
            for handle in timers:
                handle.cancel()

    def speak_soon(self, text: str, voice: VoiceProfile) -> asyncio.Task:
        """Fire-and-forget narration; replaces any previous background one."""
        self.cancel_background()
        task = asyncio.ensure_future(self.narrate(text, voice))
        self._background = task
        return task

    def cancel_background(self) -> None:
        if self._background is not None and not self._background.done():
            self._background.cancel()
        self._background = None

    def stop(self) -> None:
        """Cancel background narration and silence the adapter."""
        self.cancel_background()
        self._stop_adapter()

    def _adapter_speaking(self) -> bool:
        try:
            return bool(self.adapter.is_speaking())
        except Exception as e:
            logger.warning(f"Speech adapter state check failed: {e}")
            return False

    def _stop_adapter(self) -> None:
        try:
            self.adapter.stop()
        except Exception as e:
            logger.warning(f"Speech adapter failed to stop: {e}")


# =============================================================================
# Adapters
# =============================================================================


class SilentSpeechAdapter:
    """Logs utterances instead of speaking them."""

    def __init__(self) -> None:
        self.spoken: list[tuple[str, VoiceProfile]] = []

    def speak(
        self,
        text: str,
        voice: VoiceProfile,
        *,
        on_start: StartCallback | None = None,
        on_done: DoneCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        logger.debug(f"[{voice.language}] {text}")
        self.spoken.append((text, voice))
        if on_start:
            on_start()
        if on_done:
            on_done()

    def stop(self) -> None:
        pass

    def is_speaking(self) -> bool:
        return False


class Pyttsx3SpeechAdapter:
    """
    Offline TTS through pyttsx3.

    pyttsx3 blocks while speaking, so each utterance runs on a worker
    thread and callbacks are marshalled back onto the event loop.
    """

    BASE_RATE_WPM = 200

    def __init__(self) -> None:
        import pyttsx3

        self._engine = pyttsx3.init()
        self._voices = self._engine.getProperty("voices") or []
        self._speaking = False

    def _pick_voice(self, language: str) -> str | None:
        hint = language.lower().split("-")[0]
        for voice in self._voices:
            languages = [
                lang.decode(errors="ignore") if isinstance(lang, bytes) else str(lang)
                for lang in (getattr(voice, "languages", None) or [])
            ]
            haystack = " ".join(languages + [voice.name or "", voice.id or ""]).lower()
            if hint in haystack:
                return voice.id
        return None

    def speak(
        self,
        text: str,
        voice: VoiceProfile,
        *,
        on_start: StartCallback | None = None,
        on_done: DoneCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        loop = asyncio.get_running_loop()

        def _call(callback: Callable[..., None] | None, *args: Any) -> None:
            if callback is not None:
                loop.call_soon_threadsafe(callback, *args)

        def _run() -> None:
            self._speaking = True
            try:
                voice_id = self._pick_voice(voice.language)
                if voice_id:
                    self._engine.setProperty("voice", voice_id)
                self._engine.setProperty("rate", int(self.BASE_RATE_WPM * voice.rate))
                _call(on_start)
                self._engine.say(text)
                self._engine.runAndWait()
            except Exception as e:
                _call(on_error, e)
            else:
                _call(on_done)
            finally:
                self._speaking = False

        loop.run_in_executor(None, _run)

    def stop(self) -> None:
        if self._speaking:
            self._engine.stop()

    def is_speaking(self) -> bool:
        return self._speaking


def create_speech_adapter(backend: str) -> SpeechAdapter:
    """Build the adapter named by configuration."""
    if backend == "pyttsx3":
        return Pyttsx3SpeechAdapter()
    return SilentSpeechAdapter()
