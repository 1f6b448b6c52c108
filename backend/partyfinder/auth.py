"""Discord login and the Flask-Login bridge to the session registry.

Discord's authorization-code flow yields a user id, a name and an avatar;
that identity is bound to an opaque token stored in ``SessionRegistry`` and
delivered in a cookie. Flask-Login resolves ``current_user`` from that
cookie on every request through a request loader.
"""
from urllib.parse import urlencode

import requests
from flask import current_app, jsonify
from flask_login import UserMixin

from partyfinder.services.container import current_services
from partyfinder.services.sessions import DiscordUser, Session

DISCORD_API = 'https://discord.com/api'
DISCORD_AUTHORIZE_URL = 'https://discord.com/api/oauth2/authorize'


class DiscordAuthError(RuntimeError):
    pass


class SessionUser(UserMixin):
    def __init__(self, session: Session):
        self.session = session
        self.user = session.user
        self.id = session.user.id

    def get_id(self):
        return self.session.session_id


def cookie_name() -> str:
    return current_app.config.get('AUTH_COOKIE_NAME', 'ml_session')


def init_login(manager):
    @manager.request_loader
    def load_user_from_request(req):
        session = current_services().sessions.get(req.cookies.get(cookie_name()))
        return SessionUser(session) if session else None

    @manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'UNAUTHORIZED'}), 401


def authorize_url(cfg) -> str:
    params = {
        'client_id': cfg['DISCORD_CLIENT_ID'],
        'redirect_uri': cfg['DISCORD_REDIRECT_URI'],
        'response_type': 'code',
        'scope': 'identify',
    }
    return f"{DISCORD_AUTHORIZE_URL}?{urlencode(params)}"


def exchange_code(cfg, code: str, timeout: float = 10.0) -> DiscordUser:
    """Trade an authorization code for the Discord user it belongs to."""
    try:
        token_res = requests.post(
            f"{DISCORD_API}/oauth2/token",
            data={
                'client_id': cfg['DISCORD_CLIENT_ID'],
                'client_secret': cfg['DISCORD_CLIENT_SECRET'],
                'grant_type': 'authorization_code',
                'code': code,
                'redirect_uri': cfg['DISCORD_REDIRECT_URI'],
            },
            headers={'Content-Type': 'application/x-www-form-urlencoded'},
            timeout=timeout,
        )
        if not token_res.ok:
            raise DiscordAuthError('Token exchange failed')
        access_token = token_res.json().get('access_token')
        if not access_token:
            raise DiscordAuthError('Token exchange returned no access token')

        me_res = requests.get(
            f"{DISCORD_API}/users/@me",
            headers={'Authorization': f"Bearer {access_token}"},
            timeout=timeout,
        )
        if not me_res.ok:
            raise DiscordAuthError('Fetch user failed')
        me = me_res.json()
    except requests.exceptions.RequestException as exc:
        raise DiscordAuthError(f'Discord unreachable: {exc}') from exc
    except ValueError as exc:
        raise DiscordAuthError('Discord returned invalid JSON') from exc
    if not isinstance(me, dict) or not me.get('id'):
        raise DiscordAuthError('Discord user payload has no id')

    return DiscordUser(
        id=str(me['id']),
        username=str(me.get('username', '')),
        global_name=me.get('global_name'),
        avatar=me.get('avatar'),
    )
