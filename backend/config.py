import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Comma separated list; '*' allows every origin (development default)
    ALLOWED_ORIGINS = [o.strip() for o in os.environ.get('ALLOWED_ORIGINS', '*').split(',') if o.strip()]
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/')
    PORT = int(os.environ.get('PORT', '3000'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Grace period between a solved round and the server-driven advance (ms)
    AUTO_ADVANCE_DELAY_MS = int(os.environ.get('AUTO_ADVANCE_DELAY_MS', '800'))
    # Presence broadcasts are debounced per room (ms)
    PRESENCE_DEBOUNCE_MS = int(os.environ.get('PRESENCE_DEBOUNCE_MS', '200'))
    OPTIONS_PRESENCE_DEBOUNCE_MS = int(os.environ.get('OPTIONS_PRESENCE_DEBOUNCE_MS', '100'))
    # Empty rooms older than this are removed by the sweeper (sec)
    ROOM_TTL_SEC = int(os.environ.get('ROOM_TTL_SEC', '600'))
    # Sweeper interval (sec). 0 disables.
    ROOM_SWEEP_INTERVAL_SEC = int(os.environ.get('ROOM_SWEEP_INTERVAL_SEC', '60'))
    DEFAULT_DIFFICULTY = os.environ.get('DEFAULT_DIFFICULTY', 'easy')
