import logging
import threading
import time
from typing import Callable, Dict, Optional

from .notifier import RoomNotifier
from .registry import RoomRegistry
from .rounds import RoundStateMachine

logger = logging.getLogger(__name__)

DEFAULT_AUTO_ADVANCE_MS = 800


class PendingAdvance:
    """Handle for one scheduled advance; its identity is the cancel token."""

    def __init__(self, room_id: str, delay_ms: int):
        self.room_id = room_id
        self.delay_ms = delay_ms
        self.deadline = time.time() + delay_ms / 1000.0

    @property
    def deadline_ms(self) -> int:
        return int(self.deadline * 1000)


class TransitionScheduler:
    """Schedule the automatic round advance after a solved round.

    - At most one pending advance per room; a second schedule is a no-op
    - The room is marked ``transitioning`` for as long as one is pending
    - A fired timer only acts if its handle is still the pending one, checked
      under the room lock, so cancel-then-fire never both apply
    """

    def __init__(self, registry: RoomRegistry, rounds: RoundStateMachine, notifier: RoomNotifier,
                 spawn: Callable, sleep: Callable[[float], None],
                 default_delay_ms: int = DEFAULT_AUTO_ADVANCE_MS):
        self.registry = registry
        self.rounds = rounds
        self.notifier = notifier
        self.spawn = spawn
        self.sleep = sleep
        self.default_delay_ms = default_delay_ms
        self._pending: Dict[str, PendingAdvance] = {}
        self._lock = threading.Lock()

    def pending(self, room_id: str) -> Optional[PendingAdvance]:
        with self._lock:
            return self._pending.get(room_id)

    def schedule_auto_advance(self, room_id: str, delay_ms: Optional[int] = None) -> Optional[PendingAdvance]:
        room = self.registry.get_room(room_id)
        if room is None:
            return None
        delay_ms = self.default_delay_ms if delay_ms is None else delay_ms
        with room.lock:
            with self._lock:
                if room_id in self._pending:
                    logger.info(f"[timer-skip] room={room_id} already scheduled")
                    return None
                handle = PendingAdvance(room_id, delay_ms)
                self._pending[room_id] = handle
            # Selections are refused until the advance runs or is cancelled
            room.transitioning = True
        logger.info(f"[timer-set] room={room_id} delay={delay_ms}ms deadline={handle.deadline_ms}")
        self.spawn(self._worker, handle)
        return handle

    def cancel_auto_advance(self, room_id: str) -> bool:
        room = self.registry.get_room(room_id)
        if room is None:
            with self._lock:
                return self._pending.pop(room_id, None) is not None
        with room.lock:
            with self._lock:
                handle = self._pending.pop(room_id, None)
            room.transitioning = False
        if handle is not None:
            logger.info(f"[timer-cancel] room={room_id}")
        return handle is not None

    def _worker(self, handle: PendingAdvance) -> None:
        self.sleep(handle.delay_ms / 1000.0)
        self.fire(handle)

    def fire(self, handle: PendingAdvance) -> bool:
        """Run the advance for ``handle`` if it is still the pending one."""
        room_id = handle.room_id
        room = self.registry.get_room(room_id)
        if room is None:
            with self._lock:
                if self._pending.get(room_id) is handle:
                    del self._pending[room_id]
            logger.info(f"[timer-abort] room={room_id} room gone")
            return False
        with room.lock:
            with self._lock:
                if self._pending.get(room_id) is not handle:
                    logger.info(f"[timer-abort] room={room_id} cancelled or superseded")
                    return False
                del self._pending[room_id]
            try:
                state = self.rounds.advance_round(room_id)
            finally:
                room.transitioning = False
            logger.info(f"[timer-fire] room={room_id} advanced={state is not None}")
            if state is not None:
                self.notifier.state_update(room, state, transitioning=False)
        return state is not None
