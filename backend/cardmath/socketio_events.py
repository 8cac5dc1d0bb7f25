from functools import wraps

from flask import current_app, request
from flask_socketio import emit

from cardmath import socketio
from cardmath.errors import CardMathError, InvalidField, MissingField, NotInRoom
from cardmath.models import PlayerStatus


def _hub():
    return current_app.extensions['cardmath']


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _require(data, *fields):
    data = data if isinstance(data, dict) else {}
    missing = [f for f in fields if not data.get(f)]
    if missing:
        raise MissingField(*missing)
    return data


def acked(handler):
    """Turn game errors into ``{'error': reason}`` acks for the caller only."""
    @wraps(handler)
    def wrapper(*args):
        try:
            return handler(*args)
        except CardMathError as exc:
            current_app.logger.info(f"[{handler.__name__}] sid={_get_sid()} rejected: {exc}")
            return {'error': str(exc)}
        except Exception:
            current_app.logger.exception(f"[{handler.__name__}] sid={_get_sid()} failed")
            return {'error': 'Server error'}
    return wrapper


def _leave_current_room(sid: str, keep_room_id=None) -> None:
    found = _hub().registry.find_room_by_sid(sid)
    if found and found[0].room_id != keep_room_id:
        _hub().leave(sid)


def handle_connect(auth=None):
    current_app.logger.info(f"[connect] sid={_get_sid()}")
    emit('connected', {'sid': _get_sid()})


def handle_disconnect(reason=None):
    sid = _get_sid()
    left = _hub().leave(sid)
    current_app.logger.info(
        f"[disconnect] sid={sid} reason={reason} "
        + (f"room={left.room_id} deleted={left.deleted} remaining={left.remaining}" if left else 'not-in-room')
    )


@acked
def handle_create_room(data=None):
    sid = _get_sid()
    _leave_current_room(sid)
    room, ack = _hub().registry.create_room(sid)
    emit('roomJoined', ack)
    return ack


@acked
def handle_join_room(data=None):
    room_id = _require(data, 'roomId')['roomId']
    sid = _get_sid()
    hub = _hub()
    room = hub.registry.ensure_joinable(room_id, sid)
    if sid in room.players:
        return hub.registry.join_ack(room, room.players[sid])

    # Only give up the current room once the target will take us
    _leave_current_room(sid, keep_room_id=room_id)

    room, ack = hub.registry.join_room(room_id, sid)
    emit('roomJoined', ack)
    hub.notifier.emit_room(room, 'otherPlayerConnected', exclude=sid)
    hub.presence.schedule(room_id)
    # The creator starts the game explicitly; joining never deals
    return ack


@acked
def handle_start_game(data=None):
    data = _require(data, 'roomId')
    _hub().start_game(data['roomId'], _get_sid(), data)
    current_app.logger.info(f"[start] room={data['roomId']} sid={_get_sid()}")
    return {'ok': True}


def _card_id(data):
    data = data if isinstance(data, dict) else {}
    card = data.get('card') if isinstance(data.get('card'), dict) else {}
    return data.get('cardId') or card.get('id')


@acked
def handle_game_sync(message=None):
    message = _require(message, 'roomId')
    room_id = message['roomId']
    sid = _get_sid()
    hub = _hub()
    room, player = hub.require_member(room_id, sid)
    kind = message.get('type')
    data = message.get('data') if isinstance(message.get('data'), dict) else {}
    current_app.logger.info(f"[game-sync] room={room_id} sid={sid} player={player.player_number} type={kind}")

    with room.lock:
        if kind == 'cardSelected':
            state = hub.rounds.select_card(room_id, player.player_number, _card_id(data))
            if state is not None:
                hub.notifier.state_update(room, state)
            return {'ok': True}

        if kind == 'answerSubmitted':
            if 'answer' not in data:
                raise MissingField('answer')
            result = hub.rounds.submit_answer(room_id, player.player_number, data['answer'])
            if result is None:
                return {'ok': True}
            state, _ = result
            if not state.problem_solved:
                hub.notifier.state_update(room, state)
                return {'ok': True}
            hub.scheduler.schedule_auto_advance(room_id)
            pending = hub.scheduler.pending(room_id)
            extra = {'transitioning': room.transitioning}
            if pending is not None:
                extra['nextRoundInMs'] = pending.delay_ms
                extra['nextRoundAt'] = pending.deadline_ms
            hub.notifier.state_update(room, state, **extra)
            return {'ok': True}

        if kind == 'nextRound':
            # A manual advance wins over the pending timer
            hub.scheduler.cancel_auto_advance(room_id)
            state = hub.rounds.advance_round(room_id)
            if state is not None:
                hub.notifier.state_update(room, state, transitioning=False)
            return {'ok': True}

        if kind == 'resetGame':
            hub.scheduler.cancel_auto_advance(room_id)
            state = hub.rounds.reset_game(room_id)
            hub.rematch.clear(room_id)
            if state is not None:
                hub.notifier.state_update(room, state)
            return {'ok': True}

    # Anything else is relayed untouched to the other player
    for event in ('gameSync', 'otherPlayerAction'):
        hub.notifier.emit_room(room, event, message, exclude=sid)
    return {'ok': True}


@acked
def handle_request_rematch(data=None):
    room_id = _require(data, 'roomId')['roomId']
    hub = _hub()
    _, player = hub.require_member(room_id, _get_sid())
    return hub.rematch.request_rematch(room_id, player.player_number).ack()


@acked
def handle_set_presence(data=None):
    data = _require(data, 'roomId', 'status')
    room_id, status = data['roomId'], data['status']
    sid = _get_sid()
    hub = _hub()
    current_app.logger.info(f"[presence-set] room={room_id} sid={sid} status={status}")

    if status == PlayerStatus.LEFT.value:
        if hub.leave(sid) is None:
            raise NotInRoom('Not in a room')
        return {'ok': True}

    try:
        status = PlayerStatus(status)
    except ValueError:
        raise InvalidField('status', status)
    if not hub.registry.set_player_status(room_id, sid, status):
        raise CardMathError('Failed to set presence')
    hub.presence.schedule(room_id)

    room = hub.registry.get_room(room_id)
    if status is PlayerStatus.IN_GAME and room is not None and room.game is not None:
        # Send the authoritative state straight back so the caller can rejoin
        with room.lock:
            payload = hub.notifier.state_payload(room, room.game)
        hub.notifier.emit_to(sid, 'gameSync', payload)
    return {'ok': True}


@acked
def handle_set_room_options(data=None):
    data = _require(data, 'roomId')
    _hub().set_room_options(data['roomId'], _get_sid(), data)
    return {'ok': True}


@acked
def handle_leave_room(data=None):
    sid = _get_sid()
    left = _hub().leave(sid)
    if left is None:
        raise NotInRoom('Not in a room')
    current_app.logger.info(
        f"[leave] sid={sid} room={left.room_id} deleted={left.deleted} remaining={left.remaining}"
    )
    return {'ok': True, 'roomId': left.room_id, 'deleted': left.deleted, 'remaining': left.remaining}


def register_socketio_handlers(namespace: str = '/') -> None:
    """Register Socket.IO event handlers on ``namespace``."""
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('createRoom', handle_create_room, namespace=namespace)
    socketio.on_event('joinRoom', handle_join_room, namespace=namespace)
    socketio.on_event('startGame', handle_start_game, namespace=namespace)
    socketio.on_event('gameSync', handle_game_sync, namespace=namespace)
    socketio.on_event('requestRematch', handle_request_rematch, namespace=namespace)
    socketio.on_event('setPresence', handle_set_presence, namespace=namespace)
    socketio.on_event('setRoomOptions', handle_set_room_options, namespace=namespace)
    socketio.on_event('leaveRoom', handle_leave_room, namespace=namespace)
