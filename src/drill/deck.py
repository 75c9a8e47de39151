"""
Deck Store: the ordered card collection a session draws from.

Cards are persisted through a KeyValueStore under "{deck_id}.cards".
A new deck starts from a small set of travel phrases.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime

from loguru import logger
from pydantic import ValidationError

from .errors import CardNotFound, EmptyDeckError
from .models import Card
from .persistence import KeyValueStore
from .schemas import CardRecord, DeckRecord

DEFAULT_PHRASES: list[tuple[str, str]] = [
    ("I don't understand", "No entiendo"),
    ("Do you speak English?", "¿Habla inglés?"),
    ("Where is the bathroom?", "¿Dónde está el baño?"),
    ("How much does it cost?", "¿Cuánto cuesta?"),
    ("I need help", "Necesito ayuda"),
    ("My flight is delayed", "Mi vuelo está retrasado"),
    ("Here is my passport", "Aquí está mi pasaporte"),
    ("I have a reservation", "Tengo una reservación"),
    ("Is breakfast included?", "¿El desayuno está incluido?"),
    ("Where is the train station?", "¿Dónde está la estación de tren?"),
    ("Straight ahead", "Todo recto"),
    ("A table for two, please", "Una mesa para dos, por favor"),
    ("The check, please", "La cuenta, por favor"),
    ("Do you accept credit cards?", "¿Aceptan tarjetas de crédito?"),
    ("I need a doctor", "Necesito un médico"),
    ("Good morning", "Buenos días"),
    ("Good night", "Buenas noches"),
]


def default_cards() -> list[Card]:
    return [
        Card(id=index, front=front, back=back)
        for index, (front, back) in enumerate(DEFAULT_PHRASES, start=1)
    ]


class DeckStore:
    """
    Ordered, mutable collection of cards.

    When a store is attached every mutation is written through immediately.
    """

    def __init__(
        self,
        cards: list[Card] | None = None,
        store: KeyValueStore | None = None,
        deck_id: str = "default",
    ):
        self._cards: list[Card] = list(cards or [])
        self.store = store
        self.deck_id = deck_id

    @classmethod
    def load(cls, store: KeyValueStore, deck_id: str = "default") -> DeckStore:
        """Load a saved deck, seeding the default phrases when none exists."""
        deck = cls(store=store, deck_id=deck_id)
        blob = store.get(deck.key)
        cards: list[Card] = []
        if blob is not None:
            try:
                cards = [record.to_card() for record in DeckRecord.model_validate(blob).cards]
            except ValidationError as e:
                logger.warning(f"Saved deck {deck_id!r} is invalid, reseeding: {e.error_count()} error(s)")

        if cards:
            deck._cards = cards
        else:
            deck._cards = default_cards()
            deck.save()
        logger.debug(f"Loaded deck {deck_id!r} with {len(deck)} cards")
        return deck

    @property
    def key(self) -> str:
        return f"{self.deck_id}.cards"

    @property
    def cards(self) -> list[Card]:
        return list(self._cards)

    def __len__(self) -> int:
        return len(self._cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(list(self._cards))

    def __contains__(self, card_id: object) -> bool:
        return any(card.id == card_id for card in self._cards)

    def get(self, card_id: int) -> Card:
        for card in self._cards:
            if card.id == card_id:
                return card
        raise CardNotFound(card_id)

    def next_id(self) -> int:
        return max((card.id for card in self._cards), default=0) + 1

    def add(self, front: str, back: str) -> Card:
        card = Card(id=self.next_id(), front=front.strip(), back=back.strip())
        self._cards.append(card)
        self.save()
        logger.debug(f"Added card {card.id}")
        return card

    def edit(self, card_id: int, front: str, back: str) -> Card:
        card = self.get(card_id)
        card.front = front.strip()
        card.back = back.strip()
        self.save()
        logger.debug(f"Edited card {card_id}")
        return card

    def delete(self, card_id: int) -> Card:
        card = self.get(card_id)
        if len(self._cards) <= 1:
            raise EmptyDeckError("The deck must keep at least one card")
        self._cards = [c for c in self._cards if c.id != card_id]
        self.save()
        logger.debug(f"Deleted card {card_id}")
        return card

    def record_result(self, card_id: int, correct: bool, at: datetime) -> Card:
        """Update answer statistics for one card."""
        card = self.get(card_id)
        if correct:
            card.correct_count += 1
        else:
            card.incorrect_count += 1
        card.last_asked_at = at
        self.save()
        return card

    def replace_all(self, cards: list[Card]) -> None:
        self._cards = list(cards)
        self.save()

    def save(self) -> bool:
        if self.store is None:
            return True
        record = DeckRecord(
            cards=[CardRecord.from_card(card) for card in self._cards],
            saved_at=datetime.now(),
        )
        ok = self.store.set(self.key, record.model_dump(mode="json"))
        if not ok:
            logger.warning(f"Deck {self.deck_id!r} not saved")
        return ok
