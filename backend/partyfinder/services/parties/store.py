"""In-memory party state machine.

The store exclusively owns every ``Party`` and ``Member`` record. All public
methods run under one re-entrant lock, resolve their party through
``_live_party`` (which lazily deletes expired parties) and hand back detached
copies, so callers can never mutate live state. Every successful mutation
refreshes the party's idle TTL and arms the debounced snapshot write.

Rule failures come back as ``Outcome(error=ErrorCode...)`` values rather than
exceptions; mapping them onto transport responses is the caller's job.
"""
import copy
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from partyfinder.models import (
    DEFAULT_MAX_MEMBERS,
    DEFAULT_TITLE,
    Buffs,
    ErrorCode,
    Job,
    Member,
    Party,
    PartyLock,
    Profile,
)
from partyfinder.services.persistence import SnapshotFile

from partyfinder.limits import (
    MAX_NAME_LEN,
    MAX_TITLE_LEN,
    clamp_int,
    clamp_power,
    clean_text,
    hash_passcode,
    now_ms,
    passcode_matches,
    random_id,
)

PARTY_ID_LEN = 8
MEMBER_ID_LEN = 10
DEFAULT_PARTY_TTL_MS = 2 * 60 * 60 * 1000
DEFAULT_MEMBER_IDLE_TTL_MS = 30 * 60 * 1000
BUFF_FIELDS = ('simbi', 'bbeongbi', 'shopbi')


@dataclass(frozen=True)
class Outcome:
    party: Optional[Party] = None
    member_id: Optional[str] = None
    error: Optional[ErrorCode] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def fail(cls, code: ErrorCode) -> 'Outcome':
        return cls(error=code)


def _clean_secret(value) -> str:
    return value.strip() if isinstance(value, str) else ''


class PartyStore:
    def __init__(
        self,
        persist_file: str,
        party_ttl_ms: int = DEFAULT_PARTY_TTL_MS,
        member_idle_ttl_ms: int = DEFAULT_MEMBER_IDLE_TTL_MS,
        max_members: int = DEFAULT_MAX_MEMBERS,
        debounce_ms: int = 250,
        spawn=None,
        sleep=None,
        clock: Callable[[], int] = now_ms,
        logger: Optional[logging.Logger] = None,
        autoload: bool = True,
    ):
        self.party_ttl_ms = int(party_ttl_ms)
        self.member_idle_ttl_ms = int(member_idle_ttl_ms)
        self.max_members = max(1, int(max_members))
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._parties: Dict[str, Party] = {}
        self._snapshot = SnapshotFile(
            persist_file,
            'parties',
            self._collect,
            container=list,
            debounce_ms=debounce_ms,
            spawn=spawn,
            sleep=sleep,
            clock=clock,
            logger=self._logger,
            label='store',
        )
        if autoload:
            self.load()

    # ---- persistence ----

    @property
    def snapshot(self) -> SnapshotFile:
        return self._snapshot

    def _collect(self) -> List[dict]:
        with self._lock:
            return [p.to_dict(include_secret=True) for p in self._parties.values()]

    def load(self) -> int:
        body = self._snapshot.load()
        if body is None:
            return 0
        now = self._clock()
        loaded: Dict[str, Party] = {}
        for raw in body:
            try:
                party = Party.from_dict(raw)
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                self._logger.warning(f"[store] dropping malformed party: {exc}")
                continue
            if party.is_expired(now) or not party.members or party.owner_id not in party.members:
                continue
            party.max_members = max(1, party.max_members)
            loaded[party.id] = party
        with self._lock:
            self._parties.update(loaded)
        self._logger.info(f"[store] loaded {len(loaded)} parties from disk")
        return len(loaded)

    def flush(self) -> bool:
        return self._snapshot.flush()

    def reset(self) -> int:
        with self._lock:
            dropped = len(self._parties)
            self._parties.clear()
            self._snapshot.cancel()
            self._snapshot.save()
        self._logger.info(f"[store] reset dropped {dropped} parties")
        return dropped

    # ---- internals ----

    def _detach(self, party: Optional[Party]) -> Optional[Party]:
        return copy.deepcopy(party) if party is not None else None

    def _live_party(self, party_id) -> Optional[Party]:
        party = self._parties.get(party_id) if isinstance(party_id, str) else None
        if party is None:
            return None
        if party.is_expired(self._clock()):
            del self._parties[party_id]
            self._snapshot.schedule_save()
            self._logger.info(f"[store] party {party_id} expired on lookup")
            return None
        return party

    def _owned_party(self, party_id, member_id) -> Tuple[Optional[Party], Optional[ErrorCode]]:
        party = self._live_party(party_id)
        if party is None:
            return None, ErrorCode.PARTY_NOT_FOUND
        if party.owner_id != member_id:
            return party, ErrorCode.FORBIDDEN
        return party, None

    def _committed(self, party: Party, now: int) -> None:
        party.touch(now, self.party_ttl_ms)
        self._snapshot.schedule_save()

    def _drop_member(self, party: Party, member_id: str) -> bool:
        """Remove a member, re-home ownership, delete the party if empty.

        Returns True when the party was deleted.
        """
        party.members.pop(member_id, None)
        if not party.members:
            self._parties.pop(party.id, None)
            self._logger.info(f"[store] party {party.id} deleted (no members left)")
            return True
        if party.owner_id == member_id:
            party.owner_id = party.next_owner_id()
            self._logger.info(f"[store] party {party.id} ownership passed to {party.owner_id}")
        return False

    def _new_party_id(self) -> str:
        while True:
            party_id = random_id(PARTY_ID_LEN)
            if party_id not in self._parties:
                return party_id

    @staticmethod
    def _new_member_id(party: Party) -> str:
        while True:
            member_id = random_id(MEMBER_ID_LEN)
            if member_id not in party.members:
                return member_id

    @staticmethod
    def _sanitize(profile: Profile) -> Optional[Profile]:
        return Profile.cleaned(profile.name, profile.job, profile.power)

    # ---- lookups ----

    def get_party(self, party_id) -> Optional[Party]:
        with self._lock:
            return self._detach(self._live_party(party_id))

    def list_parties(self) -> List[dict]:
        with self._lock:
            now = self._clock()
            live = [p for p in self._parties.values() if not p.is_expired(now)]
            live.sort(key=lambda p: p.updated_at, reverse=True)
            return [p.to_summary() for p in live]

    # ---- lifecycle ----

    def create_party(self, profile: Profile, title=None, passcode=None, user_id=None) -> Outcome:
        profile = self._sanitize(profile)
        if profile is None:
            return Outcome.fail(ErrorCode.INVALID_PROFILE)
        stable_id = _clean_secret(user_id)
        with self._lock:
            now = self._clock()
            party_id = self._new_party_id()
            member_id = stable_id or random_id(MEMBER_ID_LEN)
            secret = _clean_secret(passcode)
            lock = PartyLock(enabled=True, passcode_hash=hash_passcode(party_id, secret)) if secret else PartyLock()
            party = Party(
                id=party_id,
                title=clean_text(title, MAX_TITLE_LEN) or DEFAULT_TITLE,
                owner_id=member_id,
                created_at=now,
                updated_at=now,
                expires_at=now + self.party_ttl_ms,
                max_members=self.max_members,
                lock=lock,
                buffs=Buffs(),
                members={
                    member_id: Member(
                        id=member_id,
                        name=profile.name,
                        job=profile.job,
                        power=profile.power,
                        joined_at=now,
                        last_seen_at=now,
                        user_id=stable_id or None,
                    )
                },
            )
            self._parties[party_id] = party
            self._snapshot.schedule_save()
            self._logger.info(f"[store] party {party_id} created by {member_id} locked={lock.enabled}")
            return Outcome(party=self._detach(party), member_id=member_id)

    def join_party(self, party_id, profile: Profile, passcode=None, user_id=None) -> Outcome:
        """Add a member, or refresh an existing member with the same stable id.

        The lock is checked before capacity. A returning stable identity is
        updated in place even if the party is full, since the count does not grow.
        """
        profile = self._sanitize(profile)
        if profile is None:
            return Outcome.fail(ErrorCode.INVALID_PROFILE)
        stable_id = _clean_secret(user_id)
        with self._lock:
            party = self._live_party(party_id)
            if party is None:
                return Outcome.fail(ErrorCode.PARTY_NOT_FOUND)
            if party.lock.enabled:
                given = _clean_secret(passcode)
                if not given:
                    return Outcome.fail(ErrorCode.PARTY_LOCKED)
                if not passcode_matches(party.id, given, party.lock.passcode_hash):
                    return Outcome.fail(ErrorCode.INVALID_PASSCODE)

            existing = party.members.get(stable_id) if stable_id else None
            if existing is None and party.is_full:
                return Outcome.fail(ErrorCode.PARTY_FULL)

            now = self._clock()
            if existing is not None:
                existing.apply_profile(profile)
                existing.last_seen_at = now
                existing.user_id = stable_id
                member_id = existing.id
            else:
                member_id = stable_id or self._new_member_id(party)
                party.members[member_id] = Member(
                    id=member_id,
                    name=profile.name,
                    job=profile.job,
                    power=profile.power,
                    joined_at=now,
                    last_seen_at=now,
                    user_id=stable_id or None,
                )
            self._committed(party, now)
            self._logger.info(f"[store] {member_id} joined party {party.id} ({party.member_count}/{party.max_members})")
            return Outcome(party=self._detach(party), member_id=member_id)

    def rejoin(self, party_id, member_id) -> Optional[Party]:
        with self._lock:
            party = self._live_party(party_id)
            if party is None:
                return None
            member = party.members.get(member_id)
            if member is None:
                return None
            now = self._clock()
            member.last_seen_at = now
            self._committed(party, now)
            return self._detach(party)

    def ping(self, party_id, member_id) -> Optional[Party]:
        return self.rejoin(party_id, member_id)

    def update_buffs(self, party_id, member_id, buffs: Mapping) -> Outcome:
        with self._lock:
            party, error = self._owned_party(party_id, member_id)
            if error:
                return Outcome.fail(error)
            values = {}
            for name in BUFF_FIELDS:
                given = buffs.get(name)
                values[name] = getattr(party.buffs, name) if given is None else clamp_int(given)
            party.buffs = Buffs(**values)
            now = self._clock()
            party.members[member_id].last_seen_at = now
            self._committed(party, now)
            return Outcome(party=self._detach(party))

    def update_member(self, party_id, member_id, patch: Mapping) -> Optional[Party]:
        with self._lock:
            party = self._live_party(party_id)
            if party is None:
                return None
            member = party.members.get(member_id)
            if member is None:
                return None
            name = clean_text(patch.get('name'), MAX_NAME_LEN)
            if name:
                member.name = name
            job = Job.parse(patch.get('job')) if patch.get('job') is not None else None
            if job is not None:
                member.job = job
            if patch.get('power') is not None:
                member.power = clamp_power(patch['power'])
            now = self._clock()
            member.last_seen_at = now
            self._committed(party, now)
            return self._detach(party)

    def update_title(self, party_id, member_id, title) -> Outcome:
        with self._lock:
            party, error = self._owned_party(party_id, member_id)
            if error:
                return Outcome.fail(error)
            cleaned = clean_text(title, MAX_TITLE_LEN)
            if not cleaned:
                return Outcome.fail(ErrorCode.INVALID_TITLE)
            party.title = cleaned
            self._committed(party, self._clock())
            return Outcome(party=self._detach(party))

    def set_lock(self, party_id, member_id, enabled: bool, passcode=None) -> Outcome:
        with self._lock:
            party, error = self._owned_party(party_id, member_id)
            if error:
                return Outcome.fail(error)
            if not enabled:
                party.lock = PartyLock()
            else:
                secret = _clean_secret(passcode)
                if not secret:
                    return Outcome.fail(ErrorCode.PASSCODE_REQUIRED)
                party.lock = PartyLock(enabled=True, passcode_hash=hash_passcode(party.id, secret))
            self._committed(party, self._clock())
            self._logger.info(f"[store] party {party.id} lock={party.lock.enabled}")
            return Outcome(party=self._detach(party))

    def kick(self, party_id, member_id, target_id) -> Outcome:
        with self._lock:
            party, error = self._owned_party(party_id, member_id)
            if error:
                return Outcome.fail(error)
            if target_id == party.owner_id:
                return Outcome.fail(ErrorCode.CANNOT_KICK_OWNER)
            if target_id not in party.members:
                return Outcome.fail(ErrorCode.NOT_FOUND)
            # the owner stays, so the party cannot empty out here
            self._drop_member(party, target_id)
            self._committed(party, self._clock())
            self._logger.info(f"[store] {target_id} kicked from party {party.id}")
            return Outcome(party=self._detach(party))

    def transfer_owner(self, party_id, member_id, target_id) -> Outcome:
        with self._lock:
            party, error = self._owned_party(party_id, member_id)
            if error:
                return Outcome.fail(error)
            if target_id not in party.members:
                return Outcome.fail(ErrorCode.NOT_FOUND)
            party.owner_id = target_id
            self._committed(party, self._clock())
            self._logger.info(f"[store] party {party.id} owner {member_id} -> {target_id}")
            return Outcome(party=self._detach(party))

    def remove_member(self, party_id, member_id) -> Optional[Party]:
        """Voluntary leave. Returns the updated party, or None if it is gone."""
        with self._lock:
            party = self._live_party(party_id)
            if party is None:
                return None
            if member_id not in party.members:
                return self._detach(party)
            now = self._clock()
            if self._drop_member(party, member_id):
                self._snapshot.schedule_save()
                return None
            self._committed(party, now)
            return self._detach(party)

    def cleanup(self) -> bool:
        """Sweep expired parties and idle members. Returns True if anything changed."""
        with self._lock:
            now = self._clock()
            changed = False
            for party_id, party in list(self._parties.items()):
                if party.is_expired(now):
                    del self._parties[party_id]
                    changed = True
                    continue
                for member_id, member in list(party.members.items()):
                    if member.last_seen_at + self.member_idle_ttl_ms < now:
                        changed = True
                        if self._drop_member(party, member_id):
                            break
            if changed:
                self._snapshot.schedule_save()
            return changed
