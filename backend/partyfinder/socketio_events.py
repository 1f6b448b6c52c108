from flask_socketio import emit, join_room, leave_room

from partyfinder.services.container import current_services
from partyfinder.services.parties.notifier import DEFAULT_NAMESPACE, party_room


def _ids(data):
    data = data if isinstance(data, dict) else {}
    return data.get('partyId'), data.get('memberId')


def handle_connect(auth=None):
    emit('connected', {'message': f'Connected to {DEFAULT_NAMESPACE}'})


def handle_get_parties(data=None):
    emit('partiesUpdated', {'parties': current_services().store.list_parties()})


def handle_join_party(data):
    """Attach this socket to a party room the member already belongs to."""
    party_id, member_id = _ids(data)
    services = current_services()
    party = services.store.rejoin(party_id, member_id)
    if party is None:
        emit('errorMessage', {'code': 'NOT_FOUND'})
        return
    join_room(party_room(party.id))
    services.notifier.party_updated(party)
    services.notifier.schedule_list_broadcast()


def handle_leave_party(data):
    party_id, member_id = _ids(data)
    if isinstance(party_id, str):
        leave_room(party_room(party_id))
    services = current_services()
    party = services.store.remove_member(party_id, member_id)
    if party is not None:
        services.notifier.party_updated(party)
    services.notifier.schedule_list_broadcast()


def handle_ping(data):
    # keep-alive only; no broadcast
    party_id, member_id = _ids(data)
    current_services().store.ping(party_id, member_id)


def register_socketio_handlers(socketio, namespace: str = DEFAULT_NAMESPACE) -> None:
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('getParties', handle_get_parties, namespace=namespace)
    socketio.on_event('joinParty', handle_join_party, namespace=namespace)
    socketio.on_event('leaveParty', handle_leave_party, namespace=namespace)
    socketio.on_event('ping', handle_ping, namespace=namespace)
