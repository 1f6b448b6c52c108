from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from partyfinder.models import ErrorCode, Profile
from partyfinder.ratelimit import rate_limit
from partyfinder.services.container import current_services
from partyfinder.validators import (
    ValidationError,
    parse_buffs,
    parse_create_party,
    parse_join_party,
    parse_lock,
    parse_rejoin,
    parse_target,
    parse_update_member,
    parse_update_title,
)

parties = Blueprint('parties', __name__)

_STATUS_BY_ERROR = {
    ErrorCode.PARTY_NOT_FOUND: 404,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.INVALID_TITLE: 400,
    ErrorCode.PASSCODE_REQUIRED: 400,
    ErrorCode.INVALID_PROFILE: 400,
}


def _error(code: ErrorCode):
    return jsonify({'error': code.value}), _STATUS_BY_ERROR.get(code, 409)


def _invalid(exc: ValidationError):
    return jsonify({'error': 'INVALID_BODY', 'details': exc.details}), 400


def _body():
    return request.get_json(silent=True)


def _profile(data) -> Profile:
    return Profile(name=data['name'], job=data['job'], power=data['power'])


def _acting_as(member_id) -> bool:
    # members joined over HTTP are keyed by the caller's Discord id
    return member_id == current_user.id


def _changed(party):
    """Push the party to its room and queue a list broadcast."""
    services = current_services()
    services.notifier.party_updated(party)
    services.notifier.schedule_list_broadcast()
    return jsonify({'party': party.to_dict()})


@parties.route('/parties', methods=['GET'])
@login_required
def list_parties():
    return jsonify({'parties': current_services().store.list_parties()})


@parties.route('/party/create', methods=['POST'])
@login_required
@rate_limit(10, 20)
def create_party():
    try:
        data = parse_create_party(_body())
    except ValidationError as exc:
        return _invalid(exc)
    services = current_services()
    outcome = services.store.create_party(
        _profile(data),
        title=data.get('title'),
        passcode=data.get('passcode'),
        user_id=current_user.id,
    )
    if not outcome.ok:
        return _error(outcome.error)
    services.notifier.schedule_list_broadcast()
    return jsonify({
        'partyId': outcome.party.id,
        'memberId': outcome.member_id,
        'party': outcome.party.to_dict(),
    }), 201


@parties.route('/party/join', methods=['POST'])
@login_required
@rate_limit(10, 30)
def join_party():
    try:
        data = parse_join_party(_body())
    except ValidationError as exc:
        return _invalid(exc)
    services = current_services()
    outcome = services.store.join_party(
        data['partyId'],
        _profile(data),
        passcode=data.get('passcode'),
        user_id=current_user.id,
    )
    if not outcome.ok:
        return _error(outcome.error)
    services.notifier.party_updated(outcome.party)
    services.notifier.schedule_list_broadcast()
    return jsonify({
        'partyId': outcome.party.id,
        'memberId': outcome.member_id,
        'party': outcome.party.to_dict(),
    })


@parties.route('/party/rejoin', methods=['POST'])
@login_required
def rejoin_party():
    try:
        data = parse_rejoin(_body())
    except ValidationError as exc:
        return _invalid(exc)
    if not _acting_as(data['memberId']):
        return _error(ErrorCode.FORBIDDEN)
    party = current_services().store.rejoin(data['partyId'], data['memberId'])
    if party is None:
        return _error(ErrorCode.NOT_FOUND)
    return jsonify({'party': party.to_dict()})


@parties.route('/party/<string:party_id>/buffs', methods=['PATCH'])
@login_required
def update_buffs(party_id):
    try:
        data = parse_buffs(_body())
    except ValidationError as exc:
        return _invalid(exc)
    if not _acting_as(data['memberId']):
        return _error(ErrorCode.FORBIDDEN)
    outcome = current_services().store.update_buffs(party_id, data['memberId'], data)
    if not outcome.ok:
        return _error(outcome.error)
    return _changed(outcome.party)


@parties.route('/party/<string:party_id>/members/<string:member_id>', methods=['PATCH'])
@login_required
def update_member(party_id, member_id):
    try:
        patch = parse_update_member(_body())
    except ValidationError as exc:
        return _invalid(exc)
    if not _acting_as(member_id):
        return _error(ErrorCode.FORBIDDEN)
    party = current_services().store.update_member(party_id, member_id, patch)
    if party is None:
        return _error(ErrorCode.NOT_FOUND)
    return _changed(party)


@parties.route('/party/<string:party_id>/title', methods=['PATCH'])
@login_required
def update_title(party_id):
    try:
        data = parse_update_title(_body())
    except ValidationError as exc:
        return _invalid(exc)
    if not _acting_as(data['memberId']):
        return _error(ErrorCode.FORBIDDEN)
    outcome = current_services().store.update_title(party_id, data['memberId'], data['title'])
    if not outcome.ok:
        return _error(outcome.error)
    return _changed(outcome.party)


@parties.route('/party/<string:party_id>/kick', methods=['POST'])
@login_required
def kick_member(party_id):
    try:
        data = parse_target(_body())
    except ValidationError as exc:
        return _invalid(exc)
    if not _acting_as(data['memberId']):
        return _error(ErrorCode.FORBIDDEN)
    services = current_services()
    outcome = services.store.kick(party_id, data['memberId'], data['targetMemberId'])
    if not outcome.ok:
        return _error(outcome.error)
    # the kicked client needs the notice before the update that drops it
    services.notifier.member_kicked(party_id, data['targetMemberId'])
    return _changed(outcome.party)


@parties.route('/party/<string:party_id>/transfer-owner', methods=['POST'])
@login_required
def transfer_owner(party_id):
    try:
        data = parse_target(_body())
    except ValidationError as exc:
        return _invalid(exc)
    if not _acting_as(data['memberId']):
        return _error(ErrorCode.FORBIDDEN)
    outcome = current_services().store.transfer_owner(party_id, data['memberId'], data['targetMemberId'])
    if not outcome.ok:
        return _error(outcome.error)
    return _changed(outcome.party)


@parties.route('/party/<string:party_id>/lock', methods=['PATCH'])
@login_required
def set_lock(party_id):
    try:
        data = parse_lock(_body())
    except ValidationError as exc:
        return _invalid(exc)
    if not _acting_as(data['memberId']):
        return _error(ErrorCode.FORBIDDEN)
    outcome = current_services().store.set_lock(
        party_id, data['memberId'], data['enabled'], passcode=data.get('passcode')
    )
    if not outcome.ok:
        return _error(outcome.error)
    return _changed(outcome.party)


@parties.route('/party/<string:party_id>/leave', methods=['POST'])
@login_required
def leave_party(party_id):
    body = _body()
    if isinstance(body, dict):
        body = dict(body, partyId=party_id)
    try:
        data = parse_rejoin(body)
    except ValidationError as exc:
        return _invalid(exc)
    if not _acting_as(data['memberId']):
        return _error(ErrorCode.FORBIDDEN)
    services = current_services()
    party = services.store.remove_member(party_id, data['memberId'])
    if party is not None:
        services.notifier.party_updated(party)
    services.notifier.schedule_list_broadcast()
    return jsonify({'party': party.to_dict() if party else None})
