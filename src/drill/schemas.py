"""
Pydantic schemas for persisted drill data.

Decks and session snapshots are stored as plain JSON blobs; these models
validate them on the way back in so a damaged blob is rejected as a whole.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from .models import (
    AutoPlayPhase,
    AutoPlayPresentation,
    Card,
    ManualPhase,
    ManualPresentation,
    Presentation,
    Session,
)


class CardRecord(BaseModel):
    id: int
    front: str
    back: str
    correct_count: int = Field(default=0, ge=0)
    incorrect_count: int = Field(default=0, ge=0)
    last_asked_at: datetime | None = None
    needs_review: bool = False

    @classmethod
    def from_card(cls, card: Card) -> CardRecord:
        return cls(
            id=card.id,
            front=card.front,
            back=card.back,
            correct_count=card.correct_count,
            incorrect_count=card.incorrect_count,
            last_asked_at=card.last_asked_at,
            needs_review=card.needs_review,
        )

    def to_card(self) -> Card:
        return Card(
            id=self.id,
            front=self.front,
            back=self.back,
            correct_count=self.correct_count,
            incorrect_count=self.incorrect_count,
            last_asked_at=self.last_asked_at,
            needs_review=self.needs_review,
        )


class DeckRecord(BaseModel):
    cards: list[CardRecord] = Field(default_factory=list)
    saved_at: datetime | None = None


class PresentationRecord(BaseModel):
    mode: Literal["manual", "autoplay"] = "manual"
    phase: str = ManualPhase.IDLE.value
    countdown: int = Field(default=0, ge=0)
    progress: float = Field(default=0.0, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_phase(self) -> PresentationRecord:
        phases = AutoPlayPhase if self.mode == "autoplay" else ManualPhase
        if self.phase not in {phase.value for phase in phases}:
            raise ValueError(f"Unknown {self.mode} phase: {self.phase!r}")
        return self

    @classmethod
    def from_presentation(cls, presentation: Presentation) -> PresentationRecord:
        if isinstance(presentation, AutoPlayPresentation):
            return cls(
                mode="autoplay",
                phase=presentation.phase.value,
                progress=presentation.progress,
            )
        return cls(
            mode="manual",
            phase=presentation.phase.value,
            countdown=presentation.countdown,
        )

    def to_presentation(self) -> Presentation:
        if self.mode == "autoplay":
            return AutoPlayPresentation(phase=AutoPlayPhase(self.phase), progress=self.progress)
        return ManualPresentation(phase=ManualPhase(self.phase), countdown=self.countdown)


class SessionSnapshot(BaseModel):
    """Everything needed to rebuild a Session."""

    active: bool
    completed: bool
    queue: list[CardRecord] = Field(default_factory=list)
    answered_correctly: list[int] = Field(default_factory=list)
    seen_cards: list[int] = Field(default_factory=list)
    total_asked: int = Field(default=0, ge=0)
    current_card: CardRecord | None = None
    presentation: PresentationRecord = Field(default_factory=PresentationRecord)
    auto_play_active: bool = False
    saved_at: datetime | None = None

    @property
    def resumable(self) -> bool:
        return self.active and not self.completed

    @classmethod
    def from_session(cls, session: Session, saved_at: datetime | None = None) -> SessionSnapshot:
        return cls(
            active=session.active,
            completed=session.completed,
            queue=[CardRecord.from_card(card) for card in session.queue],
            answered_correctly=sorted(session.answered_correctly),
            seen_cards=sorted(session.seen_cards),
            total_asked=session.total_asked,
            current_card=(
                CardRecord.from_card(session.current_card) if session.current_card else None
            ),
            presentation=PresentationRecord.from_presentation(session.presentation),
            auto_play_active=session.auto_play_active,
            saved_at=saved_at,
        )

    def apply_to(self, session: Session) -> None:
        """Overwrite every field of `session` with the snapshot's values."""
        session.active = self.active
        session.completed = self.completed
        session.queue = [record.to_card() for record in self.queue]
        session.answered_correctly = set(self.answered_correctly)
        session.seen_cards = set(self.seen_cards)
        session.total_asked = self.total_asked
        session.current_card = self.current_card.to_card() if self.current_card else None
        session.presentation = self.presentation.to_presentation()
        session.auto_play_active = self.auto_play_active
