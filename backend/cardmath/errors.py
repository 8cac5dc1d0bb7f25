"""Game errors.

Every error a player action can produce lives here so the socket layer can
turn them into ``{'error': reason}`` acknowledgements in one place.
"""
import logging
from contextlib import contextmanager


class CardMathError(Exception):
    """Base class for errors reported back to the acting connection."""
    reason = 'Server error'

    def __init__(self, message=None):
        super().__init__(message or self.reason)


class RoomNotFound(CardMathError):
    reason = 'Room not found'

    def __init__(self, room_id=None):
        self.room_id = room_id
        super().__init__()


class RoomFull(CardMathError):
    reason = 'Room is full'


class NotInRoom(CardMathError):
    reason = 'Not in room'


class NotAuthorized(CardMathError):
    """A non-creator tried to start the game."""
    reason = 'Only the room creator can start the game'


class InsufficientPlayers(CardMathError):
    reason = 'Need two players to start'


class MissingField(CardMathError):
    def __init__(self, *fields):
        self.fields = fields
        super().__init__(f"Missing {' or '.join(fields)}")


class InvalidField(CardMathError):
    def __init__(self, field, value):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field}: {value!r}")


class InternalError(CardMathError):
    reason = 'Server error'


@contextmanager
def best_effort(what, logger=None):
    """Run non-essential bookkeeping; failures are logged, never raised.

    The primary operation around it has already happened (or must still
    happen), so an error here must not abort it.
    """
    try:
        yield
    except Exception:
        (logger or logging.getLogger(__name__)).warning(f"[best-effort] {what} failed", exc_info=True)
