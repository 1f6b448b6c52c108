from flask import Blueprint, current_app, jsonify, redirect, request
from flask_login import current_user, login_required

from partyfinder.auth import DiscordAuthError, authorize_url, cookie_name, exchange_code
from partyfinder.models import Profile
from partyfinder.ratelimit import rate_limit
from partyfinder.services.container import current_services
from partyfinder.limits import now_ms
from partyfinder.validators import ValidationError, parse_profile

main = Blueprint('main', __name__)


@main.route('/health')
def health():
    return jsonify({'ok': True, 'now': now_ms()})


@main.route('/auth/discord')
def discord_login():
    cfg = current_app.config
    if not cfg.get('DISCORD_CLIENT_ID'):
        return 'DISCORD_CLIENT_ID not set', 500
    return redirect(authorize_url(cfg))


@main.route('/auth/discord/callback')
@rate_limit(60, 30)
def discord_callback():
    code = request.args.get('code', '')
    if not code:
        return 'Missing code', 400
    cfg = current_app.config
    try:
        user = exchange_code(cfg, code)
    except DiscordAuthError as exc:
        current_app.logger.warning(f"[auth] discord login failed: {exc}")
        return 'OAuth error', 500

    session = current_services().sessions.create(user)
    current_app.logger.info(f"[auth] login user={user.id}")
    response = redirect(cfg.get('WEB_ORIGIN', '/'))
    response.set_cookie(
        cookie_name(),
        session.session_id,
        httponly=True,
        samesite='None',
        secure=True,
        path='/',
        max_age=int(cfg.get('SESSION_TTL_SEC', 7 * 24 * 60 * 60)),
    )
    return response


@main.route('/api/logout', methods=['POST'])
def logout():
    current_services().sessions.delete(request.cookies.get(cookie_name()))
    response = jsonify({'ok': True})
    response.set_cookie(cookie_name(), '', httponly=True, samesite='Lax', path='/', max_age=0)
    return response


@main.route('/api/me')
@login_required
def me():
    profile = current_services().profiles.get(current_user.id)
    return jsonify({
        'user': current_user.user.to_dict(),
        'profile': profile.to_dict() if profile else None,
    })


@main.route('/api/profile', methods=['GET'])
@login_required
def get_profile():
    profile = current_services().profiles.get(current_user.id)
    return jsonify({'profile': profile.to_dict() if profile else None})


@main.route('/api/profile', methods=['PUT'])
@login_required
def put_profile():
    try:
        data = parse_profile(request.get_json(silent=True))
    except ValidationError as exc:
        return jsonify({'error': 'INVALID_BODY', 'details': exc.details}), 400
    saved = current_services().profiles.set(current_user.id, Profile(**data))
    return jsonify({'ok': True, 'profile': saved.to_dict()})
