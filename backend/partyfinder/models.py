from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from partyfinder.limits import (
    MAX_NAME_LEN,
    MAX_TITLE_LEN,
    clamp_int,
    clamp_power,
    clean_text,
)

DEFAULT_MAX_MEMBERS = 6
DEFAULT_TITLE = '파티'


class Job(str, Enum):
    WARRIOR = '전사'
    THIEF = '도적'
    ARCHER = '궁수'
    MAGE = '마법사'

    @classmethod
    def parse(cls, value) -> Optional['Job']:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class ErrorCode(str, Enum):
    PARTY_NOT_FOUND = 'PARTY_NOT_FOUND'
    PARTY_LOCKED = 'PARTY_LOCKED'
    INVALID_PASSCODE = 'INVALID_PASSCODE'
    PARTY_FULL = 'PARTY_FULL'
    FORBIDDEN = 'FORBIDDEN'
    CANNOT_KICK_OWNER = 'CANNOT_KICK_OWNER'
    NOT_FOUND = 'NOT_FOUND'
    INVALID_TITLE = 'INVALID_TITLE'
    PASSCODE_REQUIRED = 'PASSCODE_REQUIRED'
    INVALID_PROFILE = 'INVALID_PROFILE'


@dataclass
class Profile:
    """Name/job/power template a member joins with; also what users save."""
    name: str
    job: Job
    power: int = 0

    def to_dict(self):
        return {'name': self.name, 'job': self.job.value, 'power': self.power}

    @classmethod
    def cleaned(cls, name, job, power=0) -> Optional['Profile']:
        """Trimmed and clamped copy, or None when no name or known job is left.

        The same rule guards writes and snapshot loads, so anything the store
        accepts survives a restart.
        """
        job = Job.parse(job)
        name = clean_text(name, MAX_NAME_LEN)
        if job is None or not name:
            return None
        return cls(name=name, job=job, power=clamp_power(power))

    @classmethod
    def from_dict(cls, raw) -> 'Profile':
        profile = cls.cleaned(raw.get('name'), raw.get('job'), raw.get('power', 0))
        if profile is None:
            raise ValueError('profile needs a name and a known job')
        return profile


@dataclass
class Buffs:
    simbi: int = 0
    bbeongbi: int = 0
    shopbi: int = 0

    def to_dict(self):
        return {'simbi': self.simbi, 'bbeongbi': self.bbeongbi, 'shopbi': self.shopbi}

    @classmethod
    def from_dict(cls, raw) -> 'Buffs':
        raw = raw or {}
        return cls(
            simbi=clamp_int(raw.get('simbi', 0)),
            bbeongbi=clamp_int(raw.get('bbeongbi', 0)),
            shopbi=clamp_int(raw.get('shopbi', 0)),
        )


@dataclass
class PartyLock:
    enabled: bool = False
    passcode_hash: Optional[str] = None

    def to_dict(self, include_secret: bool = False):
        data = {'enabled': self.enabled}
        if include_secret and self.enabled:
            data['passcodeHash'] = self.passcode_hash
        return data

    @classmethod
    def from_dict(cls, raw) -> 'PartyLock':
        if not raw or not raw.get('enabled') or not raw.get('passcodeHash'):
            return cls()
        return cls(enabled=True, passcode_hash=str(raw['passcodeHash']))


@dataclass
class Member:
    id: str
    name: str
    job: Job
    power: int
    joined_at: int
    last_seen_at: int
    user_id: Optional[str] = None

    def apply_profile(self, profile: Profile) -> None:
        self.name = profile.name
        self.job = profile.job
        self.power = profile.power

    def to_dict(self):
        data = {
            'id': self.id,
            'name': self.name,
            'job': self.job.value,
            'power': self.power,
            'joinedAt': self.joined_at,
            'lastSeenAt': self.last_seen_at,
        }
        if self.user_id:
            data['userId'] = self.user_id
        return data

    def to_summary(self):
        return {
            'id': self.id,
            'name': self.name,
            'job': self.job.value,
            'power': self.power,
            'lastSeenAt': self.last_seen_at,
        }

    @classmethod
    def from_dict(cls, raw) -> 'Member':
        profile = Profile.from_dict(raw)
        return cls(
            id=str(raw['id']),
            name=profile.name,
            job=profile.job,
            power=profile.power,
            joined_at=int(raw['joinedAt']),
            last_seen_at=int(raw['lastSeenAt']),
            user_id=raw.get('userId') or None,
        )


@dataclass
class Party:
    id: str
    title: str
    owner_id: str
    created_at: int
    updated_at: int
    expires_at: int
    max_members: int = DEFAULT_MAX_MEMBERS
    lock: PartyLock = field(default_factory=PartyLock)
    buffs: Buffs = field(default_factory=Buffs)
    members: Dict[str, Member] = field(default_factory=dict)

    @property
    def member_count(self) -> int:
        return len(self.members)

    @property
    def is_full(self) -> bool:
        return self.member_count >= self.max_members

    def is_expired(self, now: int) -> bool:
        return self.expires_at <= now

    def touch(self, now: int, ttl_ms: int) -> None:
        self.updated_at = now
        self.expires_at = now + ttl_ms

    def next_owner_id(self) -> Optional[str]:
        """Earliest joiner among the remaining members (id breaks ties)."""
        if not self.members:
            return None
        return min(self.members.values(), key=lambda m: (m.joined_at, m.id)).id

    def to_dict(self, include_secret: bool = False):
        return {
            'id': self.id,
            'title': self.title,
            'ownerId': self.owner_id,
            'maxMembers': self.max_members,
            'lock': self.lock.to_dict(include_secret=include_secret),
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
            'expiresAt': self.expires_at,
            'buffs': self.buffs.to_dict(),
            'members': {mid: m.to_dict() for mid, m in self.members.items()},
        }

    def to_summary(self):
        recent_first = sorted(self.members.values(), key=lambda m: m.last_seen_at, reverse=True)
        return {
            'id': self.id,
            'title': self.title,
            'ownerId': self.owner_id,
            'maxMembers': self.max_members,
            'locked': self.lock.enabled,
            'membersCount': self.member_count,
            'members': [m.to_summary() for m in recent_first],
            'updatedAt': self.updated_at,
            'expiresAt': self.expires_at,
        }

    @classmethod
    def from_dict(cls, raw) -> 'Party':
        """Rebuild a persisted party. Raises on anything malformed."""
        members = {}
        for value in (raw.get('members') or {}).values():
            member = Member.from_dict(value)
            members[member.id] = member
        max_members = raw.get('maxMembers')
        return cls(
            id=str(raw['id']),
            title=clean_text(raw.get('title'), MAX_TITLE_LEN) or DEFAULT_TITLE,
            owner_id=str(raw['ownerId']),
            created_at=int(raw['createdAt']),
            updated_at=int(raw['updatedAt']),
            expires_at=int(raw['expiresAt']),
            max_members=int(max_members) if max_members else DEFAULT_MAX_MEMBERS,
            lock=PartyLock.from_dict(raw.get('lock')),
            buffs=Buffs.from_dict(raw.get('buffs')),
            members=members,
        )
