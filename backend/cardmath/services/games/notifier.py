import logging
from typing import Callable, Iterable, Optional

from cardmath.errors import best_effort
from cardmath.models import GameState, Room

logger = logging.getLogger(__name__)

STATE_EVENTS = ('gameSync', 'otherPlayerAction')


class RoomNotifier:
    """Fans events out to the connections of a room.

    ``emit`` is ``emit(event, payload, to=sid)``. Sends are best-effort: a
    stale connection is logged and skipped, the state change that prompted
    the send stands.
    """

    def __init__(self, emit: Callable[..., None]):
        self._emit = emit

    def emit_to(self, sid: str, event: str, payload=None) -> None:
        with best_effort(f"emit {event} to {sid}", logger):
            if payload is None:
                self._emit(event, to=sid)
            else:
                self._emit(event, payload, to=sid)

    def emit_many(self, sids: Iterable[str], event: str, payload=None, exclude: Optional[str] = None) -> None:
        for sid in sids:
            if sid != exclude:
                self.emit_to(sid, event, payload)

    def emit_room(self, room: Room, event: str, payload=None, exclude: Optional[str] = None) -> None:
        self.emit_many(room.sids(), event, payload, exclude=exclude)

    def state_payload(self, room: Room, state: GameState, **extra) -> dict:
        payload = {'type': 'stateUpdate', 'roomId': room.room_id, 'data': state.to_dict(room.transitioning)}
        payload.update(extra)
        return payload

    def state_update(self, room: Room, state: GameState, **extra) -> dict:
        payload = self.state_payload(room, state, **extra)
        for sid in room.sids():
            for event in STATE_EVENTS:
                self.emit_to(sid, event, payload)
        logger.debug(f"[state-update] room={room.room_id} phase={payload['data']['phase']} keys={sorted(extra)}")
        return payload
