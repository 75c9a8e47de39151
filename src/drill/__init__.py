"""
Drill: learning-session engine for phrase flashcards.

Drives a pass over a deck until every card has been answered correctly,
either user-paced (countdown, reveal, answer) or unattended (auto-play with
narration), and persists the session so it can be resumed.

Components:
- engine: DrillEngine facade and change events
- queue: SessionQueue (shuffle, answer, advance, completion)
- manual / autoplay: the two mutually exclusive session drivers
- speech: Narrator and speech adapters
- persistence: key-value stores and the session snapshot bridge
- deck: DeckStore with the default phrase deck
"""

from .deck import DeckStore, default_cards
from .engine import DrillEngine, EngineEvent
from .errors import CardNotFound, DrillError, EmptyDeckError, InvalidOperation
from .models import (
    AutoPlayPhase,
    AutoPlayPresentation,
    Card,
    CompletionResult,
    ManualPhase,
    ManualPresentation,
    Session,
    SessionView,
    VoiceProfile,
)
from .persistence import (
    JsonFileStore,
    KeyValueStore,
    MemoryStore,
    SessionPersistence,
    SqliteStore,
    create_store,
)
from .speech import Narrator, NarrationOutcome, SilentSpeechAdapter, SpeechAdapter
from .timers import AsyncioClock, Clock

__all__ = [
    # Engine
    "DrillEngine",
    "EngineEvent",
    # Deck
    "DeckStore",
    "default_cards",
    # Models
    "AutoPlayPhase",
    "AutoPlayPresentation",
    "Card",
    "CompletionResult",
    "ManualPhase",
    "ManualPresentation",
    "Session",
    "SessionView",
    "VoiceProfile",
    # Errors
    "CardNotFound",
    "DrillError",
    "EmptyDeckError",
    "InvalidOperation",
    # Persistence
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "SessionPersistence",
    "SqliteStore",
    "create_store",
    # Speech and time
    "Narrator",
    "NarrationOutcome",
    "SilentSpeechAdapter",
    "SpeechAdapter",
    "AsyncioClock",
    "Clock",
]
