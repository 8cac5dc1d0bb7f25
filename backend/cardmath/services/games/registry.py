"""Room registry: membership lifecycle for two-player rooms.

Rooms are independent aggregates (each carries its own lock and its
GameState); the registry only owns the table that maps room ids to rooms
and the bookkeeping around joining, leaving and sweeping them.
"""
import logging
import threading
import time
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

from cardmath.errors import RoomFull, RoomNotFound, best_effort
from cardmath.models import PLAYER_NUMBERS, Player, PlayerStatus, Room
from .naming import generate_player_id, generate_room_code, generate_room_name

logger = logging.getLogger(__name__)

DEFAULT_ROOM_TTL_SEC = 10 * 60
DEFAULT_DIFFICULTY = 'easy'


class LeaveResult(NamedTuple):
    room_id: str
    deleted: bool
    remaining: int
    player_number: int


class RoomRegistry:

    def __init__(self, room_ttl_sec: float = DEFAULT_ROOM_TTL_SEC, max_players: int = len(PLAYER_NUMBERS),
                 default_difficulty: str = DEFAULT_DIFFICULTY):
        self.room_ttl_sec = room_ttl_sec
        self.max_players = max_players
        self.default_difficulty = default_difficulty
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.RLock()
        self._on_deleted: List[Callable[[str], None]] = []

    def on_room_deleted(self, listener: Callable[[str], None]) -> None:
        self._on_deleted.append(listener)

    def join_ack(self, room: Room, player: Player) -> dict:
        return {
            'roomId': room.room_id,
            'roomName': room.name,
            'playerId': player.player_id,
            'playerNumber': player.player_number,
            'otherPlayerConnected': len(room.players) > 1,
        }

    def create_room(self, sid: str) -> Tuple[Room, dict]:
        with self._lock:
            room_id = generate_room_code()
            while room_id in self._rooms:
                logger.warning(f"[room-code-collision] {room_id}, regenerating")
                room_id = generate_room_code()
            name = generate_room_name({r.name for r in self._rooms.values()})
            room = Room(room_id=room_id, name=name, difficulty=self.default_difficulty)
            player = Player(player_id=generate_player_id(), player_number=1, sid=sid)
            room.players[sid] = player
            self._rooms[room_id] = room
        logger.info(f"[room-create] room={room_id} name={name!r} sid={sid} player={player.player_id}")
        return room, self.join_ack(room, player)

    def ensure_joinable(self, room_id: str, sid: str) -> Room:
        """Raise unless ``sid`` could join ``room_id`` right now; mutates nothing."""
        room = self.get_room(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        with room.lock:
            if sid not in room.players and len(room.players) >= self.max_players:
                raise RoomFull()
        return room

    def join_room(self, room_id: str, sid: str) -> Tuple[Room, dict]:
        room = self.get_room(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        with room.lock:
            # Room may have been deleted while we waited for its lock
            if self.get_room(room_id) is not room:
                raise RoomNotFound(room_id)
            if len(room.players) >= self.max_players:
                raise RoomFull()
            taken = {p.player_number for p in room.players.values()}
            number = next(n for n in PLAYER_NUMBERS if n not in taken)
            player = Player(player_id=generate_player_id(), player_number=number, sid=sid)
            room.players[sid] = player
            room.empty_since = None
            room.touch()
        logger.info(f"[room-join] room={room_id} sid={sid} player={player.player_id} number={number}")
        return room, self.join_ack(room, player)

    def leave_room(self, sid: str) -> Optional[LeaveResult]:
        found = self.find_room_by_sid(sid)
        if not found:
            return None
        room, player = found
        with room.lock:
            player.status = PlayerStatus.LEFT
            room.players.pop(sid, None)
            remaining = len(room.players)
            if remaining:
                room.empty_since = None
                room.touch()
                logger.info(f"[room-leave] room={room.room_id} sid={sid} remaining={remaining}")
                return LeaveResult(room.room_id, False, remaining, player.player_number)
            # Last one out: the room and its game go immediately
            self._delete(room.room_id)
        logger.info(f"[room-leave] room={room.room_id} sid={sid} remaining=0 deleted")
        return LeaveResult(room.room_id, True, 0, player.player_number)

    def _delete(self, room_id: str) -> None:
        with self._lock:
            room = self._rooms.pop(room_id, None)
        if room is None:
            return
        room.game = None
        room.transitioning = False
        for listener in self._on_deleted:
            with best_effort(f"room-deleted listener for {room_id}", logger):
                listener(room_id)

    def set_player_status(self, room_id: str, sid: str, status: PlayerStatus) -> bool:
        room = self.get_room(room_id)
        if room is None:
            return False
        with room.lock:
            player = room.players.get(sid)
            if player is None:
                return False
            player.status = PlayerStatus(status)
        return True

    def find_room_by_sid(self, sid: str) -> Optional[Tuple[Room, Player]]:
        with self._lock:
            rooms = list(self._rooms.values())
        for room in rooms:
            player = room.players.get(sid)
            if player is not None:
                return room, player
        return None

    def get_room(self, room_id: str) -> Optional[Room]:
        with self._lock:
            return self._rooms.get(room_id)

    def rooms(self) -> List[Room]:
        with self._lock:
            return list(self._rooms.values())

    def list_rooms(self) -> List[dict]:
        return [room.to_dict() for room in self.rooms()]

    def room_stats(self, now: Optional[float] = None) -> dict:
        now = time.time() if now is None else now
        rooms = []
        for room in self.rooms():
            rooms.append({
                'roomId': room.room_id,
                'playerCount': len(room.players),
                'players': [p.player_number for p in room.players.values()],
                'createdAt': int(room.created_at * 1000),
                'lastActivity': int(room.last_activity * 1000),
                'age': int((now - room.created_at) * 1000),
            })
        rooms.sort(key=lambda r: r['createdAt'], reverse=True)
        return {
            'totalRooms': len(rooms),
            'totalPlayers': sum(r['playerCount'] for r in rooms),
            'emptyRooms': sum(1 for r in rooms if r['playerCount'] == 0),
            'oldRooms': sum(1 for r in rooms if r['age'] >= self.room_ttl_sec * 1000),
            'rooms': rooms,
        }

    def sweep_idle_rooms(self, now: Optional[float] = None) -> List[str]:
        """Delete rooms that have sat empty for longer than the TTL.

        ``leave_room`` already deletes a room when its last player leaves, so
        this only catches rooms that ended up empty some other way. Such a
        room is stamped on the first sweep that sees it and removed once the
        stamp is older than the TTL.
        """
        now = time.time() if now is None else now
        removed = []
        for room in self.rooms():
            with room.lock:
                if room.players:
                    continue
                if room.empty_since is None:
                    room.empty_since = now
                    continue
                if now - room.empty_since <= self.room_ttl_sec:
                    continue
                self._delete(room.room_id)
            removed.append(room.room_id)
            logger.info(f"[room-sweep] removed idle room {room.room_id}")
        return removed
