from flask import Blueprint, current_app, jsonify

main = Blueprint('main', __name__)


def _hub():
    return current_app.extensions['cardmath']


@main.route('/')
def index():
    return jsonify({'status': 'ok', 'rooms': len(_hub().registry.rooms())})


@main.route('/health')
def health():
    return jsonify({'status': 'healthy'})


@main.route('/rooms')
def list_rooms():
    return jsonify({'rooms': _hub().registry.list_rooms()})


@main.route('/rooms/<string:room_id>')
def get_room(room_id):
    room = _hub().registry.get_room(room_id)
    if room is None:
        return jsonify({'error': 'Room not found'}), 404
    payload = room.to_dict()
    # Hints from the authoritative game so debug views reflect server intent
    if room.game is not None:
        payload['advanceClients'] = room.game.advance_clients
        payload['dealComplete'] = room.game.deal_complete
        payload['phase'] = room.phase.value
    return jsonify({'room': payload})


@main.route('/rooms/<string:room_id>/state')
def get_room_state(room_id):
    room = _hub().registry.get_room(room_id)
    if room is None or room.game is None:
        return jsonify({'error': 'Room or state not found'}), 404
    with room.lock:
        state = room.game.to_dict(room.transitioning)
    current_app.logger.debug(
        f"[state-read] room={room_id} p1={len(state['player1Hand'])} p2={len(state['player2Hand'])}"
    )
    return jsonify({'state': state})


@main.route('/api/rooms')
def room_stats():
    return jsonify(_hub().registry.room_stats())
