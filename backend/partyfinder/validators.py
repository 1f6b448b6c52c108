"""Request body checks for the HTTP and socket layers.

Each ``parse_*`` function takes decoded JSON and returns a dict of trimmed,
type-checked fields, or raises ``ValidationError`` listing every bad field.
The store clamps and trims again on its own; these checks only decide what
gets rejected with ``INVALID_BODY``.
"""
import math

from partyfinder.models import Job
from partyfinder.limits import MAX_BUFF, MAX_NAME_LEN, MAX_POWER, MAX_TITLE_LEN

MAX_PASSCODE_LEN = 20
PARTY_ID_RANGE = (4, 32)
MEMBER_ID_RANGE = (4, 64)


class ValidationError(ValueError):
    def __init__(self, field_errors):
        super().__init__('invalid body')
        self.field_errors = field_errors

    @property
    def details(self):
        return {'fieldErrors': self.field_errors}


class _Body:
    def __init__(self, data):
        if not isinstance(data, dict):
            raise ValidationError({'body': ['Expected a JSON object']})
        self.data = data
        self.errors = {}
        self.out = {}

    def _fail(self, name, message):
        self.errors.setdefault(name, []).append(message)

    def _missing(self, name, optional):
        if self.data.get(name) is None:
            if not optional:
                self._fail(name, 'Required')
            return True
        return False

    def text(self, name, min_len=1, max_len=MAX_NAME_LEN, optional=False):
        if self._missing(name, optional):
            return self
        value = self.data[name]
        if not isinstance(value, str):
            self._fail(name, 'Expected string')
            return self
        value = value.strip()
        if len(value) < min_len:
            self._fail(name, f'Must be at least {min_len} characters')
        elif len(value) > max_len:
            self._fail(name, f'Must be at most {max_len} characters')
        else:
            self.out[name] = value
        return self

    def integer(self, name, upper, optional=False):
        if self._missing(name, optional):
            return self
        value = self.data[name]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            self._fail(name, 'Expected integer')
        elif isinstance(value, float) and not (math.isfinite(value) and value.is_integer()):
            self._fail(name, 'Expected integer')
        elif value < 0 or value > upper:
            self._fail(name, f'Must be between 0 and {upper}')
        else:
            self.out[name] = int(value)
        return self

    def job(self, name='job', optional=False):
        if self._missing(name, optional):
            return self
        job = Job.parse(self.data[name])
        if job is None:
            self._fail(name, 'Unknown job')
        else:
            self.out[name] = job
        return self

    def flag(self, name):
        value = self.data.get(name)
        if not isinstance(value, bool):
            self._fail(name, 'Expected boolean')
        else:
            self.out[name] = value
        return self

    def profile(self):
        return self.text('name').job().integer('power', MAX_POWER)

    def done(self):
        if self.errors:
            raise ValidationError(self.errors)
        return self.out


def _party_id(body, name='partyId'):
    return body.text(name, *PARTY_ID_RANGE)


def _member_id(body, name='memberId'):
    return body.text(name, *MEMBER_ID_RANGE)


def parse_profile(data):
    return _Body(data).profile().done()


def parse_create_party(data):
    body = _Body(data).profile()
    body.text('title', max_len=MAX_TITLE_LEN, optional=True)
    body.text('passcode', max_len=MAX_PASSCODE_LEN, optional=True)
    return body.done()


def parse_join_party(data):
    body = _party_id(_Body(data)).profile()
    body.text('passcode', max_len=MAX_PASSCODE_LEN, optional=True)
    return body.done()


def parse_rejoin(data):
    return _member_id(_party_id(_Body(data))).done()


def parse_buffs(data):
    body = _member_id(_Body(data))
    for name in ('simbi', 'bbeongbi', 'shopbi'):
        body.integer(name, MAX_BUFF, optional=True)
    return body.done()


def parse_update_member(data):
    body = _Body(data)
    body.text('name', optional=True).job(optional=True).integer('power', MAX_POWER, optional=True)
    return body.done()


def parse_update_title(data):
    return _member_id(_Body(data)).text('title', max_len=MAX_TITLE_LEN).done()


def parse_target(data):
    """Owner-initiated action on another member (kick, transfer)."""
    return _member_id(_member_id(_Body(data)), 'targetMemberId').done()


def parse_lock(data):
    body = _member_id(_Body(data)).flag('enabled')
    body.text('passcode', max_len=MAX_PASSCODE_LEN, optional=True)
    return body.done()
