import hashlib
import hmac
import math
import secrets
import string
import time

MAX_NAME_LEN = 20
MAX_TITLE_LEN = 30
MAX_POWER = 99999
MAX_BUFF = 9999

_ID_ALPHABET = string.ascii_letters + string.digits + '_-'


def now_ms() -> int:
    return int(time.time() * 1000)


def clamp_int(value, upper: int = MAX_BUFF) -> int:
    """Bound a numeric input to ``0..upper``.

    Non-numeric and non-finite values become 0; fractions are truncated
    toward zero.
    """
    if isinstance(value, bool):
        value = int(value)
    if not isinstance(value, (int, float)):
        try:
            value = float(value)
        except (TypeError, ValueError):
            return 0
    if isinstance(value, float):
        if not math.isfinite(value):
            return 0
        value = math.trunc(value)
    if value < 0:
        return 0
    if value > upper:
        return upper
    return int(value)


def clamp_power(value) -> int:
    return clamp_int(value, MAX_POWER)


def clean_text(value, limit: int) -> str:
    if not isinstance(value, str):
        return ''
    return value.strip()[:limit].strip()


def random_id(size: int) -> str:
    return ''.join(secrets.choice(_ID_ALPHABET) for _ in range(size))


def hash_passcode(party_id: str, passcode: str) -> str:
    # party id is mixed in so one secret yields a different value per party
    return hashlib.sha256(f"{party_id}:{passcode}".encode('utf-8')).hexdigest()


def passcode_matches(party_id: str, passcode: str, expected) -> bool:
    if not expected:
        return False
    return hmac.compare_digest(hash_passcode(party_id, passcode), expected)
