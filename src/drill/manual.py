"""
Manual Presentation Controller.

Per card: idle -> counting-down -> revealed -> (answered) -> idle -> next.
The controller never suspends: it arms timers and returns. At most one
countdown timer and one settle timer are alive at any time.
"""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from .errors import InvalidOperation
from .models import ManualPhase, ManualPresentation, Session, VoiceProfile
from .speech import Narrator
from .timers import Clock, Generation, RepeatingTimer, TimerHandle


class ManualController:
    def __init__(
        self,
        session: Session,
        clock: Clock,
        narrator: Narrator,
        generation: Generation,
        voice: VoiceProfile,
        *,
        on_change: Callable[[], None],
        on_flip: Callable[[], None],
        on_settled: Callable[[], None],
        countdown_ticks: int = 5,
        countdown_interval: float = 1.0,
        answer_settle_delay: float = 0.5,
    ):
        self.session = session
        self.clock = clock
        self.narrator = narrator
        self.generation = generation
        self.voice = voice
        self.on_change = on_change
        self.on_flip = on_flip
        self.on_settled = on_settled
        self.countdown_ticks = countdown_ticks
        self.countdown_interval = countdown_interval
        self.answer_settle_delay = answer_settle_delay

        self._countdown: RepeatingTimer | None = None
        self._settle: TimerHandle | None = None

    @property
    def presentation(self) -> ManualPresentation | None:
        p = self.session.presentation
        return p if isinstance(p, ManualPresentation) else None

    @property
    def settling(self) -> bool:
        return self._settle is not None

    def present(self, countdown: int | None = None) -> None:
        """Start the countdown for the current card."""
        self.teardown()
        value = self.countdown_ticks if countdown is None else countdown
        self.session.presentation = ManualPresentation(
            phase=ManualPhase.COUNTING_DOWN, countdown=value
        )
        if value <= 0:
            self._reveal()
            return
        self._countdown = RepeatingTimer(
            self.clock, self.countdown_interval, self.generation.guard(self._tick)
        )
        self.on_change()

    def _tick(self) -> None:
        presentation = self.presentation
        if presentation is None or presentation.phase != ManualPhase.COUNTING_DOWN:
            self._cancel_countdown()
            return
        presentation.countdown = max(presentation.countdown - 1, 0)
        if presentation.countdown == 0:
            self._reveal()
        else:
            self.on_change()

    def reveal(self) -> bool:
        """Reveal the back before the countdown runs out."""
        presentation = self.presentation
        if presentation is None or presentation.phase != ManualPhase.COUNTING_DOWN:
            return False
        self._reveal()
        return True

    def _reveal(self) -> None:
        self._cancel_countdown()
        self.session.presentation = ManualPresentation(phase=ManualPhase.REVEALED, countdown=0)
        card = self.session.current_card
        self.on_flip()
        if card is not None:
            self.narrator.speak_soon(card.back, self.voice)
        self.on_change()

    def repeat(self) -> None:
        presentation = self.presentation
        card = self.session.current_card
        if card is None or presentation is None or not presentation.revealed:
            raise InvalidOperation("Narration can only be repeated once the answer is revealed")
        self.narrator.speak_soon(card.back, self.voice)

    def check_can_answer(self) -> None:
        card = self.session.current_card
        if card is None:
            raise InvalidOperation("There is no card to answer")
        if card.id in self.session.answered_correctly:
            raise InvalidOperation("This card has already been answered correctly")
        if self.settling:
            raise InvalidOperation("An answer for this card is already being recorded")

    def answered(self) -> None:
        """Go idle and advance after the settle delay."""
        self._cancel_countdown()
        presentation = self.presentation
        if presentation is not None:
            presentation.phase = ManualPhase.IDLE
            presentation.countdown = 0
        self._settle = self.clock.call_later(
            self.answer_settle_delay, self.generation.guard(self._settled)
        )

    def _settled(self) -> None:
        self._settle = None
        self.on_settled()

    def _cancel_countdown(self) -> None:
        if self._countdown is not None:
            self._countdown.cancel()
            self._countdown = None

    def teardown(self) -> None:
        """Cancel every timer this controller owns."""
        self._cancel_countdown()
        if self._settle is not None:
            self._settle.cancel()
            self._settle = None
        logger.trace("Manual controller timers cleared")
