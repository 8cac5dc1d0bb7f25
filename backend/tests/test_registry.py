import re

import pytest

from cardmath.errors import RoomFull, RoomNotFound
from cardmath.models import PlayerStatus
from cardmath.services.games import naming
from cardmath.services.games.registry import RoomRegistry


def test_create_room_assigns_player_one():
    registry = RoomRegistry()
    room, ack = registry.create_room('s1')
    assert re.fullmatch(r'[A-Z0-9]{6}', room.room_id)
    assert ack['roomId'] == room.room_id
    assert ack['roomName'] == room.name
    assert ack['playerNumber'] == 1
    assert ack['playerId'].startswith('player_')
    assert ack['otherPlayerConnected'] is False
    assert room.players['s1'].status is PlayerStatus.LOBBY


def test_join_room_assigns_player_two_and_rejects_third():
    registry = RoomRegistry()
    room, _ = registry.create_room('s1')
    _, ack = registry.join_room(room.room_id, 's2')
    assert ack['playerNumber'] == 2
    assert ack['otherPlayerConnected'] is True
    with pytest.raises(RoomFull) as exc:
        registry.join_room(room.room_id, 's3')
    assert str(exc.value) == 'Room is full'


def test_join_unknown_room():
    registry = RoomRegistry()
    with pytest.raises(RoomNotFound) as exc:
        registry.join_room('NOPE00', 's1')
    assert str(exc.value) == 'Room not found'


def test_rejoin_takes_lowest_free_number():
    registry = RoomRegistry()
    room, _ = registry.create_room('s1')
    registry.join_room(room.room_id, 's2')
    registry.leave_room('s1')
    _, ack = registry.join_room(room.room_id, 's3')
    assert ack['playerNumber'] == 1


def test_last_leave_deletes_room_and_notifies_listeners():
    registry = RoomRegistry()
    deleted = []
    registry.on_room_deleted(deleted.append)
    room, _ = registry.create_room('s1')
    registry.join_room(room.room_id, 's2')

    first = registry.leave_room('s1')
    assert (first.deleted, first.remaining) == (False, 1)
    assert registry.get_room(room.room_id) is room

    second = registry.leave_room('s2')
    assert (second.room_id, second.deleted, second.remaining) == (room.room_id, True, 0)
    assert registry.get_room(room.room_id) is None
    assert deleted == [room.room_id]
    assert registry.leave_room('s2') is None


def test_failing_delete_listener_does_not_block_deletion():
    registry = RoomRegistry()
    calls = []

    def broken(room_id):
        raise RuntimeError('boom')

    registry.on_room_deleted(broken)
    registry.on_room_deleted(calls.append)
    room, _ = registry.create_room('s1')
    registry.leave_room('s1')
    assert registry.get_room(room.room_id) is None
    assert calls == [room.room_id]


def test_find_room_by_sid_and_status():
    registry = RoomRegistry()
    room, _ = registry.create_room('s1')
    found_room, player = registry.find_room_by_sid('s1')
    assert found_room is room and player.player_number == 1
    assert registry.find_room_by_sid('ghost') is None

    assert registry.set_player_status(room.room_id, 's1', PlayerStatus.IN_GAME)
    assert player.status is PlayerStatus.IN_GAME
    assert not registry.set_player_status(room.room_id, 'ghost', PlayerStatus.IN_GAME)
    assert not registry.set_player_status('NOPE00', 's1', PlayerStatus.IN_GAME)


def test_sweep_removes_rooms_empty_longer_than_ttl():
    registry = RoomRegistry(room_ttl_sec=60)
    busy, _ = registry.create_room('s1')
    idle, _ = registry.create_room('s2')
    # Emptied without going through leave_room
    idle.players.clear()

    assert registry.sweep_idle_rooms(now=1000.0) == []
    assert idle.empty_since == 1000.0
    assert registry.sweep_idle_rooms(now=1030.0) == []
    assert registry.sweep_idle_rooms(now=1061.0) == [idle.room_id]
    assert registry.get_room(idle.room_id) is None
    assert registry.get_room(busy.room_id) is busy


def test_room_stats_counts_and_orders_newest_first():
    registry = RoomRegistry(room_ttl_sec=60)
    old, _ = registry.create_room('s1')
    new, _ = registry.create_room('s2')
    registry.join_room(new.room_id, 's3')
    old.created_at = 100.0
    new.created_at = 200.0

    stats = registry.room_stats(now=200.0)
    assert stats['totalRooms'] == 2
    assert stats['totalPlayers'] == 3
    assert stats['emptyRooms'] == 0
    assert stats['oldRooms'] == 1
    assert [r['roomId'] for r in stats['rooms']] == [new.room_id, old.room_id]
    assert stats['rooms'][0]['players'] == [1, 2]


def test_room_names_are_friendly_and_unique():
    taken = set()
    for _ in range(20):
        name = naming.generate_room_name(taken)
        assert re.fullmatch(r'[a-z]+( [a-z]+)?-[a-z0-9]+', name)
        assert name not in taken
        taken.add(name)


def test_ensure_joinable_checks_without_mutating():
    registry = RoomRegistry()
    room, _ = registry.create_room('s1')
    assert registry.ensure_joinable(room.room_id, 's2') is room
    assert set(room.players) == {'s1'}

    registry.join_room(room.room_id, 's2')
    with pytest.raises(RoomFull):
        registry.ensure_joinable(room.room_id, 's3')
    # A member may always re-join its own room
    assert registry.ensure_joinable(room.room_id, 's2') is room
    with pytest.raises(RoomNotFound):
        registry.ensure_joinable('NOPE00', 's3')


def test_leave_reports_player_number():
    registry = RoomRegistry()
    room, _ = registry.create_room('s1')
    registry.join_room(room.room_id, 's2')
    assert registry.leave_room('s2').player_number == 2
    assert registry.leave_room('s1').player_number == 1


def test_rooms_start_with_configured_difficulty():
    from cardmath.services.games.rounds import RoundStateMachine

    registry = RoomRegistry(default_difficulty='medium')
    room, _ = registry.create_room('s1')
    registry.join_room(room.room_id, 's2')
    summary = room.to_dict()
    assert summary['difficulty'] == 'medium'
    assert summary['options']['difficulty'] == 'medium'

    state = RoundStateMachine(registry, default_difficulty='medium').init_game(room.room_id)
    assert state.difficulty == 'medium'
    assert len(state.hands[1]) == 18
