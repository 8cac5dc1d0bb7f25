import logging
import threading
from collections import defaultdict
from typing import Dict, NamedTuple, Optional, Set

from cardmath.errors import InternalError, RoomNotFound
from cardmath.models import PLAYER_NUMBERS, GameState, PlayerStatus
from .notifier import RoomNotifier
from .registry import RoomRegistry
from .rounds import RoundStateMachine

logger = logging.getLogger(__name__)


class RematchResult(NamedTuple):
    both_confirmed: bool
    state: Optional[GameState] = None

    def ack(self) -> dict:
        if self.both_confirmed:
            return {'ok': True, 'bothConfirmed': True}
        return {'ok': True, 'waiting': True}


class RematchCoordinator:
    """Both players must ask before a finished game is dealt again."""

    def __init__(self, registry: RoomRegistry, rounds: RoundStateMachine, notifier: RoomNotifier,
                 scheduler=None):
        self.registry = registry
        self.rounds = rounds
        self.notifier = notifier
        self.scheduler = scheduler
        self._requests: Dict[str, Set[int]] = defaultdict(set)  # room id -> player numbers
        self._lock = threading.Lock()

    def pending(self, room_id: str) -> Set[int]:
        with self._lock:
            return set(self._requests.get(room_id, ()))

    def clear(self, room_id: str) -> None:
        with self._lock:
            self._requests.pop(room_id, None)

    def withdraw(self, room_id: str, player_number: int) -> None:
        """Drop a departing player's request; a newcomer must ask for themselves."""
        with self._lock:
            requests = self._requests.get(room_id)
            if requests is not None:
                requests.discard(player_number)
                if not requests:
                    del self._requests[room_id]

    def request_rematch(self, room_id: str, player_number: int) -> RematchResult:
        room = self.registry.get_room(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        with room.lock:
            with self._lock:
                requests = self._requests[room_id]
                requests.add(player_number)
                agreed = all(n in requests for n in PLAYER_NUMBERS)
            logger.info(f"[rematch] room={room_id} player={player_number} requests={sorted(requests)}")

            if not agreed:
                other = [p.sid for p in room.players.values() if p.player_number != player_number]
                self.notifier.emit_many(other, 'rematchRequested', {'roomId': room_id, 'requestedBy': player_number})
                return RematchResult(both_confirmed=False)

            if self.scheduler is not None:
                self.scheduler.cancel_auto_advance(room_id)
            state = self.rounds.init_game(room_id, room.difficulty, room.initial_cards)
            if state is None:
                raise InternalError('Failed to reset game')
            # Fresh deal: clients animate it and do not auto-advance
            state.deal_complete = False
            state.advance_clients = False
            self.clear(room_id)

            self.notifier.state_update(room, state)
            for sid in room.sids():
                self.notifier.emit_to(sid, 'presenceUpdate', {
                    'roomId': room_id, 'playerSocket': sid, 'status': PlayerStatus.IN_GAME.value,
                })
        logger.info(f"[rematch-start] room={room_id} both players confirmed")
        return RematchResult(both_confirmed=True, state=state)
