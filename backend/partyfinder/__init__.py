import atexit
import json

import click
from flask import Flask, jsonify
from flask_cors import CORS
from flask_login import LoginManager
from flask_socketio import SocketIO

from config import Config

login_manager = LoginManager()
socketio = SocketIO(async_mode=None)


def _build_services(flask_app):
    from partyfinder.services.container import PartyServices
    from partyfinder.services.parties.notifier import PartyNotifier
    from partyfinder.services.parties.reaper import IdleReaper
    from partyfinder.services.parties.store import PartyStore
    from partyfinder.services.profiles import ProfileStore
    from partyfinder.services.sessions import SessionRegistry

    cfg = flask_app.config
    spawn = socketio.start_background_task
    sleep = socketio.sleep
    logger = flask_app.logger

    store = PartyStore(
        cfg['PERSIST_FILE'],
        party_ttl_ms=cfg.get('PARTY_TTL_MS', 2 * 60 * 60 * 1000),
        member_idle_ttl_ms=cfg.get('MEMBER_IDLE_TTL_MS', 30 * 60 * 1000),
        max_members=cfg.get('MAX_MEMBERS', 6),
        debounce_ms=cfg.get('PERSIST_DEBOUNCE_MS', 250),
        spawn=spawn,
        sleep=sleep,
        logger=logger,
    )
    profiles = ProfileStore(
        cfg['PROFILES_FILE'],
        debounce_ms=cfg.get('PERSIST_DEBOUNCE_MS', 250),
        spawn=spawn,
        sleep=sleep,
        logger=logger,
    )
    sessions = SessionRegistry(ttl_sec=cfg.get('SESSION_TTL_SEC', 7 * 24 * 60 * 60))
    notifier = PartyNotifier(
        socketio.emit,
        store,
        debounce_ms=cfg.get('BROADCAST_DEBOUNCE_MS', 150),
        spawn=spawn,
        sleep=sleep,
        logger=logger,
    )
    reaper = IdleReaper(
        store,
        notifier,
        sessions=sessions,
        interval_sec=cfg.get('REAPER_INTERVAL_SEC', 60),
        spawn=spawn,
        sleep=sleep,
        logger=logger,
    )
    return PartyServices(store=store, profiles=profiles, sessions=sessions, notifier=notifier, reaper=reaper)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    origins = flask_app.config.get('CORS_ORIGINS', '*')

    login_manager.init_app(flask_app)
    CORS(flask_app, supports_credentials=True, origins=origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    from partyfinder.services.container import EXTENSION_KEY
    services = _build_services(flask_app)
    flask_app.extensions[EXTENSION_KEY] = services

    from partyfinder.auth import init_login
    init_login(login_manager)

    from partyfinder.main import main
    flask_app.register_blueprint(main)

    from partyfinder.api.parties import parties
    flask_app.register_blueprint(parties, url_prefix='/api')

    from partyfinder.socketio_events import register_socketio_handlers
    register_socketio_handlers(socketio)

    if not flask_app.config.get('TESTING'):
        services.reaper.start()
        atexit.register(services.shutdown)

    @click.command('parties-list')
    def parties_list_command():
        """Prints the live parties as JSON."""
        click.echo(json.dumps(services.store.list_parties(), ensure_ascii=False, indent=2))

    @click.command('parties-reset')
    def parties_reset_command():
        """Drops every party and writes an empty snapshot."""
        dropped = services.store.reset()
        click.echo(f'Dropped {dropped} parties.')

    flask_app.cli.add_command(parties_list_command)
    flask_app.cli.add_command(parties_reset_command)

    @flask_app.errorhandler(404)
    def not_found(_exc):
        return jsonify({'error': 'NOT_FOUND'}), 404

    return flask_app
