"""
Exceptions raised by the drill engine.

All of them signal a rejected request; the session is left unchanged.
"""


class DrillError(Exception):
    """Base class for drill engine errors."""
    pass


class InvalidOperation(DrillError):
    """Raised when a request does not fit the current session state."""
    pass


class EmptyDeckError(InvalidOperation):
    """Raised when an operation would need, or leave, a deck with no cards."""
    pass


class CardNotFound(DrillError):
    """Raised when a card id is not in the deck."""

    def __init__(self, card_id: int):
        super().__init__(f"No card with id {card_id}")
        self.card_id = card_id
