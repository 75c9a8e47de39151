"""
Drill Engine: caller-facing API for learning sessions.

Owns one Session and wires together:
- SessionQueue (queue, answered set, bookkeeping)
- ManualController (countdown / reveal / answer)
- AutoPlayOrchestrator (unattended three-phase playback)
- SessionPersistence (snapshot on every change, restore on start-up)

The engine runs on a single asyncio loop. Renderers read `snapshot()` and
`subscribe()` to change events; they never touch the Session directly.
"""

from __future__ import annotations

import random
from collections.abc import Callable
from enum import Enum

from loguru import logger

from config import Settings, get_settings

from .autoplay import AutoPlayOrchestrator
from .deck import DeckStore
from .errors import InvalidOperation
from .manual import ManualController
from .models import (
    AutoPlayPresentation,
    Card,
    CompletionResult,
    ManualPhase,
    ManualPresentation,
    Session,
    SessionView,
    VoiceProfile,
)
from .persistence import SessionPersistence
from .queue import SessionQueue
from .speech import Narrator, SpeechAdapter, create_speech_adapter
from .timers import AsyncioClock, Clock, Generation


class EngineEvent(str, Enum):
    """Notifications delivered to subscribers."""

    CHANGED = "changed"
    CARD_PRESENTED = "card_presented"
    FLIP = "flip"
    COMPLETED = "completed"
    RESET = "reset"


Listener = Callable[[EngineEvent, SessionView], None]


class DrillEngine:
    """
    Drives one learning pass over a deck.

    A saved, unfinished session is restored when the engine is created;
    call `resume()` to restart its timers.
    """

    def __init__(
        self,
        deck: DeckStore,
        *,
        persistence: SessionPersistence | None = None,
        speech: SpeechAdapter | None = None,
        clock: Clock | None = None,
        settings: Settings | None = None,
        rng: random.Random | None = None,
        on_complete: Callable[[CompletionResult], None] | None = None,
        restore: bool = True,
    ):
        self.settings = settings or get_settings()
        self.deck = deck
        self.persistence = persistence
        self.clock = clock or AsyncioClock()
        self.on_complete = on_complete

        self.session = Session()
        self.generation = Generation()
        self._listeners: list[Listener] = []

        speech_config = self.settings.get_speech_config()
        self.narrator = Narrator.from_config(
            speech or create_speech_adapter(speech_config["backend"]),
            self.clock,
            speech_config,
        )
        self.source_voice = VoiceProfile(
            language=self.settings.source_language,
            rate=self.settings.source_rate,
            pitch=self.settings.source_pitch,
        )
        self.target_voice = VoiceProfile(
            language=self.settings.target_language,
            rate=self.settings.target_rate,
            pitch=self.settings.target_pitch,
        )

        self.queue = SessionQueue(self.session, deck, rng)
        self.manual = ManualController(
            self.session,
            self.clock,
            self.narrator,
            self.generation,
            self.target_voice,
            on_change=self._changed,
            on_flip=self._flip,
            on_settled=self._advance_manual,
            **self.settings.get_manual_config(),
        )
        self.autoplay = AutoPlayOrchestrator.from_config(
            self.session,
            self.queue,
            self.clock,
            self.narrator,
            self.generation,
            self.source_voice,
            self.target_voice,
            config=self.settings.get_autoplay_config(),
            on_change=self._changed,
            on_flip=self._flip,
            on_complete=self._completed,
        )

        self.restored = self._restore() if restore else False

    # =========================================================================
    # Read side
    # =========================================================================

    def snapshot(self) -> SessionView:
        return SessionView.of(self.session, len(self.deck))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # =========================================================================
    # Manual sessions
    # =========================================================================

    def start(self) -> Card:
        """Begin a new user-paced pass over the whole deck."""
        self._halt()
        card = self.queue.start()
        self.manual.present()
        self._emit(EngineEvent.CARD_PRESENTED)
        return card

    def manual_reveal(self) -> bool:
        """Reveal the current card early. Returns False if it was not counting down."""
        if self.session.auto_play_active:
            return False
        return self.manual.reveal()

    def record_answer(self, correct: bool) -> Card:
        if self.session.auto_play_active:
            raise InvalidOperation("Answers are recorded automatically during auto-play")
        if not self.session.active:
            raise InvalidOperation("No session is active")
        self.manual.check_can_answer()

        card = self.queue.record_answer(correct)
        self.manual.answered()
        self._changed()
        return card

    def repeat_narration(self) -> None:
        if self.session.auto_play_active:
            raise InvalidOperation("Narration is driven by auto-play")
        self.manual.repeat()

    def _advance_manual(self) -> None:
        card = self.queue.advance()
        if card is not None:
            self.manual.present()
            self._emit(EngineEvent.CARD_PRESENTED)
        elif self.session.completed and self.queue.result is not None:
            self._completed(self.queue.result)
        else:
            logger.warning("Nothing left to present; ending session")
            self.reset()

    # =========================================================================
    # Auto-play
    # =========================================================================

    def start_auto_play(self) -> Card:
        """Begin a new unattended pass over the whole deck."""
        self._halt()
        card = self.queue.start()
        self.session.auto_play_active = True
        self.session.presentation = AutoPlayPresentation()
        self._changed()
        self._emit(EngineEvent.CARD_PRESENTED)
        self.autoplay.launch()
        logger.info("Auto-play started")
        return card

    def stop_auto_play(self) -> None:
        """
        Stop auto-play and leave the current card revealed.

        If the played card was already recorded, the next card is presented
        for manual answering instead. Safe to call at any time and more than once.
        """
        if not self.session.auto_play_active:
            return
        self._halt()
        self.session.auto_play_active = False
        logger.info("Auto-play stopped")

        card = self.session.current_card
        if card is not None and card.id in self.session.answered_correctly:
            # Stopped between cards: the played card is already recorded
            self.session.presentation = ManualPresentation()
            self._advance_manual()
            return

        if card is not None:
            if not self.session.presentation.revealed:
                self._flip()
            self.session.presentation = ManualPresentation(phase=ManualPhase.REVEALED)
        self._changed()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def reset(self) -> None:
        """Abandon the session from any state and forget its snapshot."""
        self._halt()
        self.session.clear()
        self.queue.result = None
        if self.persistence is not None:
            self.persistence.clear()
        logger.info("Session reset")
        self._emit(EngineEvent.RESET)

    def resume(self) -> bool:
        """
        Re-arm timers for a restored session.

        Countdowns continue from the saved value, a revealed card waits for
        an answer, and auto-play restarts the current card from its first phase.
        """
        session = self.session
        if not session.active or session.current_card is None:
            return False
        self._halt()

        if session.auto_play_active:
            session.presentation = AutoPlayPresentation()
            self._changed()
            self.autoplay.launch()
        else:
            presentation = session.presentation
            if not isinstance(presentation, ManualPresentation):
                presentation = ManualPresentation(phase=ManualPhase.REVEALED)
                session.presentation = presentation
            if presentation.phase == ManualPhase.COUNTING_DOWN:
                self.manual.present(countdown=presentation.countdown)
            elif presentation.phase == ManualPhase.IDLE:
                # The answer was recorded before the interruption
                self._advance_manual()
            else:
                self._changed()
        logger.info("Session resumed")
        return True

    # =========================================================================
    # Deck mutation
    # =========================================================================

    def add_card(self, front: str, back: str) -> Card:
        card = self.deck.add(front, back)
        self.queue.enqueue(card)
        self._changed()
        return card

    def edit_card(self, card_id: int, front: str, back: str) -> Card:
        card = self.deck.edit(card_id, front, back)
        self.queue.patch(card)
        self._changed()
        return card

    def delete_card(self, card_id: int) -> Card:
        card = self.deck.delete(card_id)
        was_current = self.queue.discard(card_id)

        if not (was_current and self.session.active):
            self._changed()
            return card

        if not self.session.queue:
            self.reset()
            return card

        self._halt()
        self.queue.advance()
        if self.session.auto_play_active:
            self.session.presentation = AutoPlayPresentation()
            self._changed()
            self._emit(EngineEvent.CARD_PRESENTED)
            self.autoplay.launch()
        else:
            self.manual.present()
            self._emit(EngineEvent.CARD_PRESENTED)
        return card

    # =========================================================================
    # Internals
    # =========================================================================

    def _halt(self) -> None:
        """Invalidate and cancel every pending timer, task and narration."""
        self.generation.bump()
        self.manual.teardown()
        self.autoplay.teardown()
        self.narrator.stop()

    def _completed(self, result: CompletionResult) -> None:
        self._halt()
        self.session.auto_play_active = False
        self.session.presentation = ManualPresentation()
        if self.persistence is not None:
            self.persistence.clear()
        self._emit(EngineEvent.COMPLETED)
        if self.on_complete is not None:
            try:
                self.on_complete(result)
            except Exception:
                logger.exception("Completion callback failed")

    def _flip(self) -> None:
        self._emit(EngineEvent.FLIP)

    def _changed(self) -> None:
        self._persist()
        self._emit(EngineEvent.CHANGED)

    def _persist(self) -> None:
        if self.persistence is None:
            return
        if self.session.in_progress:
            self.persistence.save(self.session)
        else:
            self.persistence.clear()

    def _emit(self, event: EngineEvent) -> None:
        if not self._listeners:
            return
        view = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(event, view)
            except Exception:
                logger.exception(f"Listener failed on {event.value}")

    def _restore(self) -> bool:
        if self.persistence is None:
            return False
        snapshot = self.persistence.load()
        if snapshot is None:
            return False
        snapshot.apply_to(self.session)
        logger.info(
            f"Restored session: {len(self.session.answered_correctly)}/{len(self.deck)} correct, "
            f"{len(self.session.queue)} queued"
        )
        return True
