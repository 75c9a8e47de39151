"""
Domain models for drill sessions.

- Card: a front/back pair with answer statistics
- Session: one pass through the deck (queue, answered set, bookkeeping)
- Presentation: manual or auto-play sub-state of the current card
- SessionView: read-only snapshot handed to renderers
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

# =============================================================================
# Cards
# =============================================================================


@dataclass
class Card:
    """A single flashcard."""

    id: int
    front: str
    back: str
    correct_count: int = 0
    incorrect_count: int = 0
    last_asked_at: datetime | None = None
    needs_review: bool = False

    def copy(self) -> Card:
        return replace(self)


@dataclass(frozen=True)
class VoiceProfile:
    """How a piece of text should be narrated."""

    language: str
    rate: float = 1.0
    pitch: float = 1.0


# =============================================================================
# Presentation State
# =============================================================================


class ManualPhase(str, Enum):
    """Steps of the user-paced card cycle."""

    IDLE = "idle"
    COUNTING_DOWN = "counting-down"
    REVEALED = "revealed"


class AutoPlayPhase(str, Enum):
    """Steps of the unattended card cycle, in playback order."""

    SOURCE = "source"
    TARGET_FIRST = "target-first"
    TARGET_REPEAT = "target-repeat"


@dataclass
class ManualPresentation:
    phase: ManualPhase = ManualPhase.IDLE
    countdown: int = 0

    @property
    def revealed(self) -> bool:
        return self.phase == ManualPhase.REVEALED


@dataclass
class AutoPlayPresentation:
    phase: AutoPlayPhase = AutoPlayPhase.SOURCE
    progress: float = 0.0

    @property
    def revealed(self) -> bool:
        # The back is shown from the second phase on
        return self.phase != AutoPlayPhase.SOURCE


Presentation = ManualPresentation | AutoPlayPresentation


# =============================================================================
# Session
# =============================================================================


@dataclass
class CompletionResult:
    """Summary emitted once when a pass finishes."""

    total_cards: int
    correct_answers: int
    accuracy: float


@dataclass
class Session:
    """
    Mutable state of one learning pass.

    The queue holds copies of deck cards; the engine patches them when
    the deck is edited mid-session.
    """

    active: bool = False
    completed: bool = False
    queue: list[Card] = field(default_factory=list)
    answered_correctly: set[int] = field(default_factory=set)
    seen_cards: set[int] = field(default_factory=set)
    total_asked: int = 0
    current_card: Card | None = None
    presentation: Presentation = field(default_factory=ManualPresentation)
    auto_play_active: bool = False

    def clear(self) -> None:
        """Return every field to its pre-session default."""
        self.active = False
        self.completed = False
        self.queue = []
        self.answered_correctly = set()
        self.seen_cards = set()
        self.total_asked = 0
        self.current_card = None
        self.presentation = ManualPresentation()
        self.auto_play_active = False

    @property
    def revealed(self) -> bool:
        return self.current_card is not None and self.presentation.revealed

    @property
    def in_progress(self) -> bool:
        """Whether this session should be persisted."""
        return self.active or self.auto_play_active


@dataclass(frozen=True)
class SessionView:
    """Read-only copy of a session for rendering."""

    active: bool
    completed: bool
    auto_play_active: bool
    current_card: Card | None
    queue_ids: tuple[int, ...]
    answered_correctly: frozenset[int]
    seen_cards: frozenset[int]
    total_asked: int
    deck_size: int
    presentation: Presentation
    revealed: bool

    @classmethod
    def of(cls, session: Session, deck_size: int) -> SessionView:
        return cls(
            active=session.active,
            completed=session.completed,
            auto_play_active=session.auto_play_active,
            current_card=session.current_card.copy() if session.current_card else None,
            queue_ids=tuple(card.id for card in session.queue),
            answered_correctly=frozenset(session.answered_correctly),
            seen_cards=frozenset(session.seen_cards),
            total_asked=session.total_asked,
            deck_size=deck_size,
            presentation=replace(session.presentation),
            revealed=session.revealed,
        )

    @property
    def asked_percentage(self) -> float:
        """Share of the deck presented at least once, capped at 100."""
        if self.total_asked <= 0 or self.deck_size == 0:
            return 0.0
        return min(self.total_asked / self.deck_size * 100, 100.0)

    @property
    def correct_percentage(self) -> float:
        """Share of the deck answered correctly."""
        if not self.answered_correctly or self.deck_size == 0:
            return 0.0
        return len(self.answered_correctly) / self.deck_size * 100
