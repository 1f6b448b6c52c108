from partyfinder.models import Job, Profile
from partyfinder.services.parties.notifier import PartyNotifier, party_room


class RecordingEmitter:
    def __init__(self):
        self.sent = []

    def __call__(self, event, payload, to=None, namespace=None):
        self.sent.append({'event': event, 'payload': payload, 'to': to, 'namespace': namespace})

    def events(self):
        return [s['event'] for s in self.sent]


def make_notifier(store, spawner, emitter):
    return PartyNotifier(emitter, store, spawn=spawner, sleep=lambda s: None)


def test_list_broadcast_burst_sends_once_with_current_state(store, spawner):
    emitter = RecordingEmitter()
    notifier = make_notifier(store, spawner, emitter)

    notifier.schedule_list_broadcast()
    created = store.create_party(Profile('A', Job.MAGE, 1))
    for _ in range(20):
        notifier.schedule_list_broadcast()
    spawner.run_all()

    broadcasts = [s for s in emitter.sent if s['event'] == 'partiesUpdated']
    assert len(broadcasts) == 1
    assert broadcasts[0]['to'] is None
    assert broadcasts[0]['namespace'] == '/ws'
    assert [p['id'] for p in broadcasts[0]['payload']['parties']] == [created.party.id]


def test_party_update_goes_only_to_party_room_and_hides_check_value(store, spawner):
    emitter = RecordingEmitter()
    notifier = make_notifier(store, spawner, emitter)
    created = store.create_party(Profile('A', Job.MAGE, 1), passcode='1234')

    notifier.party_updated(created.party)
    sent = emitter.sent[0]
    assert sent['event'] == 'partyUpdated'
    assert sent['to'] == party_room(created.party.id)
    assert sent['payload']['party']['lock'] == {'enabled': True}


def test_kick_notice_precedes_the_update(store, spawner):
    emitter = RecordingEmitter()
    notifier = make_notifier(store, spawner, emitter)
    created = store.create_party(Profile('A', Job.MAGE, 1))

    notifier.member_kicked(created.party.id, 'victim1234')
    notifier.party_updated(created.party)
    assert emitter.events() == ['kicked', 'partyUpdated']
    assert emitter.sent[0]['payload'] == {'targetMemberId': 'victim1234'}
    assert emitter.sent[0]['to'] == party_room(created.party.id)


def test_broadcast_party_skips_missing_party_but_still_queues_list(store, spawner):
    emitter = RecordingEmitter()
    notifier = make_notifier(store, spawner, emitter)

    notifier.broadcast_party('missing1')
    assert emitter.sent == []
    spawner.run_all()
    assert emitter.events() == ['partiesUpdated']

    created = store.create_party(Profile('A', Job.MAGE, 1))
    notifier.broadcast_party(created.party.id)
    assert emitter.events() == ['partiesUpdated', 'partyUpdated']
