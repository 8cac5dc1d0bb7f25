import logging
import math
from typing import Callable, Optional

from cardmath.errors import InsufficientPlayers, NotAuthorized, NotInRoom, RoomNotFound
from cardmath.models import PLAYER_NUMBERS, Room
from .notifier import RoomNotifier
from .presence import PresenceBroadcaster
from .registry import LeaveResult, RoomRegistry
from .rematch import RematchCoordinator
from .rounds import RoundStateMachine
from .scheduler import TransitionScheduler

logger = logging.getLogger(__name__)

HAND_SIZE_KEYS = (
    'initialCards', 'cardsPerPlayer', 'cardCount', 'initialHandSize',
    'startingHandSize', 'startingCards', 'initialDealCount',
)


def _positive_number(value) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return int(value)


def parse_room_options(payload: dict):
    """Return ``(difficulty, initial_cards)`` from a start/options payload.

    Clients name the hand size several ways and may nest everything under
    ``options``; top-level keys win, then nested ones. Either may be None.
    """
    nested = payload.get('options') if isinstance(payload.get('options'), dict) else {}
    difficulty = payload.get('difficulty') or nested.get('difficulty') or None
    initial_cards = None
    for source in (payload, nested):
        for key in HAND_SIZE_KEYS:
            initial_cards = _positive_number(source.get(key))
            if initial_cards:
                return difficulty, initial_cards
    return difficulty, initial_cards


class GameHub:
    """Owns the game services for one server process and wires them together."""

    def __init__(self, emit: Callable[..., None], spawn: Callable, sleep: Callable[[float], None], config=None):
        config = config or {}
        self.config = config
        default_difficulty = config.get('DEFAULT_DIFFICULTY', 'easy')
        self.registry = RoomRegistry(room_ttl_sec=config.get('ROOM_TTL_SEC', 600), default_difficulty=default_difficulty)
        self.notifier = RoomNotifier(emit)
        self.rounds = RoundStateMachine(self.registry, default_difficulty=default_difficulty)
        self.scheduler = TransitionScheduler(
            self.registry, self.rounds, self.notifier, spawn, sleep,
            default_delay_ms=config.get('AUTO_ADVANCE_DELAY_MS', 800),
        )
        self.presence = PresenceBroadcaster(
            self.registry, self.notifier, spawn, sleep,
            default_delay_ms=config.get('PRESENCE_DEBOUNCE_MS', 200),
        )
        self.rematch = RematchCoordinator(self.registry, self.rounds, self.notifier, self.scheduler)
        self.sleep = sleep

        self.registry.on_room_deleted(self.scheduler.cancel_auto_advance)
        self.registry.on_room_deleted(self.presence.cancel)
        self.registry.on_room_deleted(self.rematch.clear)

    def require_room(self, room_id: str) -> Room:
        room = self.registry.get_room(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        return room

    def require_member(self, room_id: str, sid: str):
        room = self.require_room(room_id)
        player = room.players.get(sid)
        if player is None:
            raise NotInRoom()
        return room, player

    def start_game(self, room_id: str, sid: str, payload: dict):
        room, player = self.require_member(room_id, sid)
        if player.player_number != 1:
            raise NotAuthorized()
        if len(room.players) < len(PLAYER_NUMBERS):
            raise InsufficientPlayers()
        difficulty, initial_cards = parse_room_options(payload)
        with room.lock:
            self.scheduler.cancel_auto_advance(room_id)
            self.rematch.clear(room_id)
            state = self.rounds.init_game(room_id, difficulty, initial_cards)
            if state is None:
                raise RoomNotFound(room_id)
            self.notifier.state_update(room, state)
            for other in room.sids():
                self.notifier.emit_to(other, 'presenceUpdate', {
                    'roomId': room_id, 'playerSocket': other, 'status': 'in-game',
                })
        return state

    def set_room_options(self, room_id: str, sid: str, payload: dict) -> Room:
        room, _ = self.require_member(room_id, sid)
        difficulty, initial_cards = parse_room_options(payload)
        with room.lock:
            if difficulty:
                room.difficulty = difficulty
            if initial_cards:
                room.initial_cards = initial_cards
        logger.info(f"[room-options] room={room_id} difficulty={room.difficulty} initialCards={room.initial_cards}")
        self.presence.schedule(room_id, self.config.get('OPTIONS_PRESENCE_DEBOUNCE_MS', 100))
        return room

    def leave(self, sid: str) -> Optional[LeaveResult]:
        """Leave-room semantics shared by leaveRoom, setPresence('left') and disconnect."""
        left = self.registry.leave_room(sid)
        if left is None:
            return None
        if left.deleted:
            # Deletion listeners already dropped timers and rematch requests
            logger.info(f"[room-deleted] room={left.room_id} last player left")
            return left
        room = self.registry.get_room(left.room_id)
        self.scheduler.cancel_auto_advance(left.room_id)
        self.rematch.withdraw(left.room_id, left.player_number)
        if room is not None and room.players:
            self.notifier.emit_room(room, 'otherPlayerDisconnected')
            self.presence.schedule(left.room_id)
        return left

    def sweep_forever(self, interval_sec: float) -> None:
        while True:
            self.sleep(interval_sec)
            self.registry.sweep_idle_rooms()

