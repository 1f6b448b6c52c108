import os

from dotenv import load_dotenv

load_dotenv()


def _origins(raw):
    if raw.strip() == '*':
        return '*'
    return [o.strip() for o in raw.split(',') if o.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Comma separated list, or '*' to allow any origin
    CORS_ORIGINS = _origins(os.environ.get('ORIGIN', 'http://localhost:3000'))
    WEB_ORIGIN = os.environ.get('WEB_ORIGIN', 'http://localhost:3000')
    # Discord OAuth
    DISCORD_CLIENT_ID = os.environ.get('DISCORD_CLIENT_ID', '')
    DISCORD_CLIENT_SECRET = os.environ.get('DISCORD_CLIENT_SECRET', '')
    DISCORD_REDIRECT_URI = os.environ.get('DISCORD_REDIRECT_URI', 'http://localhost:4000/auth/discord/callback')
    AUTH_COOKIE_NAME = os.environ.get('AUTH_COOKIE_NAME', 'ml_session')
    SESSION_TTL_SEC = int(os.environ.get('SESSION_TTL_SEC', str(7 * 24 * 60 * 60)))
    # Party lifetime (ms): idle party TTL and idle member TTL
    PARTY_TTL_MS = int(os.environ.get('PARTY_TTL_MS', str(2 * 60 * 60 * 1000)))
    MEMBER_IDLE_TTL_MS = int(os.environ.get('MEMBER_IDLE_TTL_MS', str(30 * 60 * 1000)))
    MAX_MEMBERS = int(os.environ.get('MAX_MEMBERS', '6'))
    # Snapshot files
    PERSIST_FILE = os.path.abspath(os.environ.get('PERSIST_FILE', os.path.join('data', 'parties.json')))
    PROFILES_FILE = os.path.abspath(os.environ.get('PROFILES_FILE', os.path.join('data', 'profiles.json')))
    # Debounce windows (ms)
    PERSIST_DEBOUNCE_MS = int(os.environ.get('PERSIST_DEBOUNCE_MS', '250'))
    BROADCAST_DEBOUNCE_MS = int(os.environ.get('BROADCAST_DEBOUNCE_MS', '150'))
    # Idle sweep interval (sec)
    REAPER_INTERVAL_SEC = int(os.environ.get('REAPER_INTERVAL_SEC', '60'))
    RATE_LIMIT_ENABLED = os.environ.get('RATE_LIMIT_ENABLED', '1').lower() in ('1', 'true', 'yes', 'on')
