"""
Session Queue Manager.

Owns the queue of cards still owed a presentation, the set of cards
answered correctly and the seen/asked bookkeeping. Incorrect answers go
back to the tail of the queue, so every card stays reachable until it is
answered correctly.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import TypeVar

from loguru import logger

from .deck import DeckStore
from .errors import EmptyDeckError, InvalidOperation
from .models import Card, CompletionResult, Session

T = TypeVar("T")


def shuffle(items: Sequence[T], rng: random.Random | None = None) -> list[T]:
    """Fisher-Yates shuffle into a new list."""
    rng = rng or random.Random()
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


class SessionQueue:
    """Queue and bookkeeping primitives shared by both session drivers."""

    def __init__(
        self,
        session: Session,
        deck: DeckStore,
        rng: random.Random | None = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.session = session
        self.deck = deck
        self.rng = rng or random.Random()
        self.now = now
        self.result: CompletionResult | None = None

    def start(self) -> Card:
        """Shuffle the deck into a fresh pass and present its first card."""
        if len(self.deck) == 0:
            raise EmptyDeckError("Cannot start a session with an empty deck")

        session = self.session
        session.clear()
        self.result = None
        session.queue = [card.copy() for card in shuffle(self.deck.cards, self.rng)]
        session.active = True
        session.completed = False

        card = self.advance()
        assert card is not None
        logger.info(f"Session started with {len(self.deck)} cards")
        return card

    def record_answer(self, correct: bool) -> Card:
        session = self.session
        card = session.current_card
        if card is None:
            raise InvalidOperation("There is no card to answer")

        at = self.now()
        if card.id in self.deck:
            stored = self.deck.record_result(card.id, correct, at)
            card.correct_count = stored.correct_count
            card.incorrect_count = stored.incorrect_count
        card.last_asked_at = at

        if correct:
            session.answered_correctly.add(card.id)
        else:
            session.queue.append(card.copy())

        logger.debug(f"Card {card.id} answered {'correctly' if correct else 'incorrectly'}")
        return card

    def advance(self) -> Card | None:
        """
        Move the head of the queue into the current slot.

        Returns None when nothing is left to present, which is either a
        completed pass or a session that no longer has cards to show.
        """
        session = self.session
        if not session.queue:
            session.current_card = None
            if self.check_completion() is None and self.reshuffle_unanswered():
                return self.advance()
            return None

        card = session.queue.pop(0)
        session.current_card = card
        if card.id not in session.seen_cards:
            session.seen_cards.add(card.id)
            session.total_asked += 1
        return card

    def completion_result(self) -> CompletionResult:
        session = self.session
        correct = len(session.answered_correctly)
        accuracy = correct / session.total_asked * 100 if session.total_asked > 0 else 100.0
        return CompletionResult(
            total_cards=len(self.deck),
            correct_answers=correct,
            accuracy=accuracy,
        )

    def is_complete(self) -> bool:
        return len(self.session.answered_correctly) == len(self.deck)

    def check_completion(self) -> CompletionResult | None:
        """Finish the pass if every deck card has been answered correctly."""
        session = self.session
        if not (self.is_complete() and session.active and not session.completed):
            return None

        session.completed = True
        session.active = False
        session.current_card = None
        result = self.completion_result()
        self.result = result
        logger.info(
            f"Session completed: {result.correct_answers}/{result.total_cards} cards, "
            f"accuracy {result.accuracy:.1f}%"
        )
        return result

    def reshuffle_unanswered(self) -> bool:
        """Refill an empty queue with the deck cards not yet answered correctly."""
        session = self.session
        if not session.active:
            return False
        remaining = [
            card for card in self.deck.cards if card.id not in session.answered_correctly
        ]
        if not remaining:
            return False
        session.queue = [card.copy() for card in shuffle(remaining, self.rng)]
        logger.debug(f"Queue reshuffled with {len(remaining)} unanswered cards")
        return True

    # =========================================================================
    # Deck mutation
    # =========================================================================

    def enqueue(self, card: Card) -> None:
        """Add a card created mid-session to the tail of the queue."""
        if self.session.active:
            self.session.queue.append(card.copy())

    def patch(self, card: Card) -> None:
        """Propagate edited text to the current card and queued copies."""
        session = self.session
        if session.current_card is not None and session.current_card.id == card.id:
            session.current_card.front = card.front
            session.current_card.back = card.back
        for queued in session.queue:
            if queued.id == card.id:
                queued.front = card.front
                queued.back = card.back

    def discard(self, card_id: int) -> bool:
        """
        Forget a deleted card.

        Returns True when it was the current card; the caller decides what
        to present next.
        """
        session = self.session
        session.queue = [card for card in session.queue if card.id != card_id]
        session.answered_correctly.discard(card_id)
        if card_id in session.seen_cards:
            session.seen_cards.discard(card_id)
            session.total_asked -= 1

        if session.current_card is not None and session.current_card.id == card_id:
            session.current_card = None
            return True
        return False
