"""
Auto-Play Orchestrator.

Plays cards unattended in three phases:

1. source         - narrate the front in the source voice
2. target-first   - reveal the back, narrate it in the target voice
3. target-repeat  - narrate the back again

Each phase lasts max(narration time, phase floor) and reports progress on
a fast ticker. After the last phase the card counts as answered correctly
and the next card starts without user input.

Every step re-checks the generation token it was started under; stop()
bumps it, so nothing armed before a stop can touch the session afterwards.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from loguru import logger

from .models import (
    AutoPlayPhase,
    AutoPlayPresentation,
    Card,
    CompletionResult,
    Session,
    VoiceProfile,
)
from .queue import SessionQueue
from .speech import Narrator
from .timers import Clock, Generation, RepeatingTimer, sleep


class AutoPlayOrchestrator:
    def __init__(
        self,
        session: Session,
        queue: SessionQueue,
        clock: Clock,
        narrator: Narrator,
        generation: Generation,
        source_voice: VoiceProfile,
        target_voice: VoiceProfile,
        *,
        on_change: Callable[[], None],
        on_flip: Callable[[], None],
        on_complete: Callable[[CompletionResult], None],
        phase_floors: dict[str, float] | None = None,
        progress_tick_interval: float = 0.1,
        start_delay: float = 0.1,
        next_card_delay: float = 0.3,
    ):
        self.session = session
        self.queue = queue
        self.clock = clock
        self.narrator = narrator
        self.generation = generation
        self.source_voice = source_voice
        self.target_voice = target_voice
        self.on_change = on_change
        self.on_flip = on_flip
        self.on_complete = on_complete
        floors = phase_floors or {}
        self.floors = {
            AutoPlayPhase.SOURCE: floors.get("source", 8.0),
            AutoPlayPhase.TARGET_FIRST: floors.get("target_first", 8.0),
            AutoPlayPhase.TARGET_REPEAT: floors.get("target_repeat", 5.0),
        }
        self.progress_tick_interval = progress_tick_interval
        self.start_delay = start_delay
        self.next_card_delay = next_card_delay

        self._task: asyncio.Task | None = None
        self._ticker: RepeatingTimer | None = None

    @classmethod
    def from_config(cls, *args: Any, config: dict[str, Any], **kwargs: Any) -> AutoPlayOrchestrator:
        return cls(
            *args,
            phase_floors=config["phase_floors"],
            progress_tick_interval=config["progress_tick_interval"],
            start_delay=config["start_delay"],
            next_card_delay=config["next_card_delay"],
            **kwargs,
        )

    def launch(self) -> asyncio.Task:
        """Start playing from the current card under the current generation."""
        self.teardown()
        token = self.generation.current
        self._task = asyncio.ensure_future(self._run(token))
        return self._task

    async def _run(self, token: int) -> None:
        try:
            await sleep(self.clock, self.start_delay)
            while self.generation.is_current(token):
                card = self.session.current_card
                if card is None:
                    return
                if not await self._play_card(card, token):
                    return
                if not self._finish_card(token):
                    return
                await sleep(self.clock, self.next_card_delay)
                if not self.generation.is_current(token):
                    return
                if self.queue.advance() is None:
                    return
                self.session.presentation = AutoPlayPresentation()
                self.on_change()
        except asyncio.CancelledError:
            logger.debug("Auto-play task cancelled")
            raise

    async def _play_card(self, card: Card, token: int) -> bool:
        # The card may be edited mid-phase; always read the live session copy
        def live() -> Card:
            return self.session.current_card or card

        if not await self._run_phase(AutoPlayPhase.SOURCE, live, token):
            return False
        self.on_flip()
        if not await self._run_phase(AutoPlayPhase.TARGET_FIRST, live, token):
            return False
        return await self._run_phase(AutoPlayPhase.TARGET_REPEAT, live, token)

    async def _run_phase(
        self, phase: AutoPlayPhase, card: Callable[[], Card], token: int
    ) -> bool:
        if not self.generation.is_current(token):
            return False

        floor = self.floors[phase]
        presentation = AutoPlayPresentation(phase=phase, progress=0.0)
        self.session.presentation = presentation
        self.on_change()

        started = self.clock.now()

        def report_progress() -> None:
            elapsed = self.clock.now() - started
            presentation.progress = min(elapsed / floor, 1.0) if floor > 0 else 1.0
            self.on_change()

        self._cancel_ticker()
        ticker = RepeatingTimer(
            self.clock, self.progress_tick_interval, self.generation.guard(report_progress, token)
        )
        self._ticker = ticker

        if phase == AutoPlayPhase.SOURCE:
            text, voice = card().front, self.source_voice
        else:
            text, voice = card().back, self.target_voice

        try:
            outcome = await self.narrator.narrate(text, voice)
            logger.trace(f"{phase.value} narration finished: {outcome.value}")
            if not self.generation.is_current(token):
                return False
            remaining = floor - (self.clock.now() - started)
            if remaining > 0:
                await sleep(self.clock, remaining)
        finally:
            ticker.cancel()
            if self._ticker is ticker:
                self._ticker = None

        if not self.generation.is_current(token):
            return False
        presentation.progress = 1.0
        self.on_change()
        return True

    def _finish_card(self, token: int) -> bool:
        """Record the played card as correct. Returns False when the pass is over."""
        if not self.generation.is_current(token):
            return False
        self.queue.record_answer(True)
        result = self.queue.check_completion()
        if result is not None:
            self.on_complete(result)
            return False
        self.on_change()
        return True

    def _cancel_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def teardown(self) -> None:
        """Cancel the ticker and the playback task."""
        self._cancel_ticker()
        task = self._task
        self._task = None
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
