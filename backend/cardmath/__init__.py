from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config

socketio = SocketIO(async_mode=None)


def _cors_origins(config):
    origins = config.get('ALLOWED_ORIGINS') or ['*']
    return '*' if '*' in origins else origins


def create_app(config_class=Config, spawn=None, sleep=None):
    """Build the Flask app, its Socket.IO server and the game hub.

    ``spawn``/``sleep`` default to Socket.IO background tasks; tests pass
    their own to fire timers deterministically.
    """
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    origins = _cors_origins(flask_app.config)
    CORS(flask_app, supports_credentials=True, origins=origins)
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    namespace = flask_app.config.get('SOCKETIO_NAMESPACE', '/')

    def emit(event, *args, to=None):
        socketio.emit(event, *args, to=to, namespace=namespace)

    from cardmath.services.games import GameHub
    hub = GameHub(
        emit,
        spawn or socketio.start_background_task,
        sleep or socketio.sleep,
        flask_app.config,
    )
    flask_app.extensions['cardmath'] = hub

    from cardmath.main import main
    flask_app.register_blueprint(main)

    from cardmath.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace)

    interval = int(flask_app.config.get('ROOM_SWEEP_INTERVAL_SEC', 0))
    if interval > 0 and not flask_app.config.get('TESTING'):
        socketio.start_background_task(hub.sweep_forever, interval)
        flask_app.logger.info(f"[sweep] idle-room sweeper every {interval}s")

    return flask_app
