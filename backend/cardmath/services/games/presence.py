import logging
import threading
import time
from typing import Callable, Dict, Optional

from .notifier import RoomNotifier
from .registry import RoomRegistry

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 200


class PresenceBroadcaster:
    """Debounced ``presenceUpdate`` snapshots, one pending timer per room.

    A burst of joins/leaves/status changes collapses into the single
    snapshot sent by the last scheduled timer.
    """

    def __init__(self, registry: RoomRegistry, notifier: RoomNotifier,
                 spawn: Callable, sleep: Callable[[float], None],
                 default_delay_ms: int = DEFAULT_DEBOUNCE_MS):
        self.registry = registry
        self.notifier = notifier
        self.spawn = spawn
        self.sleep = sleep
        self.default_delay_ms = default_delay_ms
        self._timers: Dict[str, object] = {}
        self._lock = threading.Lock()

    def schedule(self, room_id: str, delay_ms: Optional[int] = None) -> None:
        delay_ms = self.default_delay_ms if delay_ms is None else delay_ms
        token = object()
        with self._lock:
            self._timers[room_id] = token  # replaces any pending timer
        self.spawn(self._worker, room_id, token, delay_ms)

    def cancel(self, room_id: str) -> None:
        with self._lock:
            self._timers.pop(room_id, None)

    def _worker(self, room_id: str, token, delay_ms: int) -> None:
        if delay_ms:
            self.sleep(delay_ms / 1000.0)
        with self._lock:
            if self._timers.get(room_id) is not token:
                return
            del self._timers[room_id]
        self.broadcast_now(room_id)

    def snapshot(self, room_id: str) -> Optional[dict]:
        room = self.registry.get_room(room_id)
        if room is None:
            return None
        with room.lock:
            payload = {'roomId': room_id}
            payload.update(room.presence())
        payload['ts'] = int(time.time() * 1000)
        return payload

    def broadcast_now(self, room_id: str) -> Optional[dict]:
        room = self.registry.get_room(room_id)
        payload = self.snapshot(room_id)
        if room is None or payload is None:
            logger.debug(f"[presence-skip] room={room_id} gone")
            return None
        self.notifier.emit_room(room, 'presenceUpdate', payload)
        logger.info(f"[presence] room={room_id} players={payload['playersStatus']}")
        return payload
