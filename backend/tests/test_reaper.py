from partyfinder.models import Job, Profile
from partyfinder.services.parties.reaper import IdleReaper
from partyfinder.services.sessions import DiscordUser, SessionRegistry


class RecordingNotifier:
    def __init__(self):
        self.list_broadcasts = 0

    def schedule_list_broadcast(self):
        self.list_broadcasts += 1
        return True


def profile(name):
    return Profile(name, Job.THIEF, 10)


def test_sweep_deletes_expired_parties(store, clock, spawner):
    created = store.create_party(profile('A'))
    spawner.run_all()
    clock.advance(store.party_ttl_ms + 1)

    assert store.cleanup() is True
    assert store.get_party(created.party.id) is None
    assert len(spawner.calls) == 1


def test_sweep_evicts_idle_members_and_promotes_owner(store, clock):
    created = store.create_party(profile('Owner'))
    pid, owner = created.party.id, created.member_id
    clock.advance(1_000)
    older = store.join_party(pid, profile('Older')).member_id
    clock.advance(1_000)
    newer = store.join_party(pid, profile('Newer')).member_id

    # keep the two joiners fresh, let the owner go idle
    clock.advance(store.member_idle_ttl_ms - 500)
    store.ping(pid, older)
    store.ping(pid, newer)
    clock.advance(1_000)

    assert store.cleanup() is True
    party = store.get_party(pid)
    assert owner not in party.members
    assert party.owner_id == older
    assert set(party.members) == {older, newer}


def test_sweep_deletes_party_when_everyone_idles_out(store, clock):
    created = store.create_party(profile('A'))
    pid = created.party.id
    store.join_party(pid, profile('B'))
    clock.advance(store.member_idle_ttl_ms + 1)

    assert store.cleanup() is True
    assert store.get_party(pid) is None
    assert store.list_parties() == []


def test_sweep_with_many_changes_schedules_one_snapshot(store, clock, spawner):
    for name in 'ABCDE':
        store.create_party(profile(name))
    spawner.run_all()
    clock.advance(store.member_idle_ttl_ms + 1)

    assert store.cleanup() is True
    assert len(spawner.calls) == 1


def test_quiet_sweep_changes_nothing(store, spawner):
    store.create_party(profile('A'))
    spawner.run_all()
    assert store.cleanup() is False
    assert spawner.calls == []


def test_reaper_broadcasts_only_when_something_changed(store, clock):
    notifier = RecordingNotifier()
    sessions = SessionRegistry(ttl_sec=1, clock=clock)
    sessions.create(DiscordUser(id='1', username='a'))
    reaper = IdleReaper(store, notifier, sessions=sessions)

    store.create_party(profile('A'))
    assert reaper.sweep() is False
    assert notifier.list_broadcasts == 0

    clock.advance(store.member_idle_ttl_ms + 1)
    assert reaper.sweep() is True
    assert notifier.list_broadcasts == 1
    assert sessions.cleanup() == 0


def test_reaper_loop_runs_on_interval_until_stopped(store, clock, spawner):
    notifier = RecordingNotifier()
    ticks = []

    def fake_sleep(seconds):
        ticks.append(seconds)
        if len(ticks) == 3:
            reaper.stop()

    reaper = IdleReaper(store, notifier, interval_sec=60, spawn=spawner, sleep=fake_sleep)
    store.create_party(profile('A'))
    clock.advance(store.member_idle_ttl_ms + 1)

    assert reaper.start() is True
    assert reaper.start() is False
    assert reaper.running
    spawner.run_all()
    assert ticks == [60, 60, 60]
    assert notifier.list_broadcasts == 1
    assert not reaper.running
