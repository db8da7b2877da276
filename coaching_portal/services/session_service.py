"""Tab-scoped session persistence over a mutable mapping."""

import time
from datetime import datetime, timezone

from coaching_portal.errors import Unauthenticated
from coaching_portal.models import Session

DEFAULT_TAB = 'default'
TAB_HEADER = 'X-Portal-Tab'
SESSION_KEY_PREFIX = 'portal_session'
NAVIGATION_KEY_PREFIX = 'portal_nav'


def tab_id_from_request(request):
    raw = str(request.headers.get(TAB_HEADER, '') or '').strip()[:64]
    if not raw or not all(ch.isalnum() or ch in '-_' for ch in raw):
        return DEFAULT_TAB
    return raw


def session_key(tab_id):
    return f"{SESSION_KEY_PREFIX}:{tab_id}"


def navigation_key(tab_id):
    return f"{NAVIGATION_KEY_PREFIX}:{tab_id}"


class SessionStore:
    """Holds one serialized Session under ``key`` in ``storage``.

    ``storage`` is any mutable mapping: the Flask session in the app, a plain
    dict in tests. Sessions older than ``max_age_seconds`` are dropped on load.
    """

    def __init__(self, storage, key=session_key(DEFAULT_TAB), max_age_seconds=12 * 60 * 60, clock=time.time):
        self.storage = storage
        self.key = key
        self.max_age_seconds = int(max_age_seconds)
        self.clock = clock

    def save(self, session):
        self.storage[self.key] = session.to_dict()

    def load(self):
        raw = self.storage.get(self.key)
        if raw is None:
            return None
        try:
            session = Session.from_dict(raw)
            login_ts = session.login_datetime().timestamp()
        except (AttributeError, TypeError, ValueError):
            self.clear()
            return None
        if self.clock() - login_ts > self.max_age_seconds:
            self.clear()
            return None
        return session

    def require(self):
        session = self.load()
        if session is None:
            raise Unauthenticated()
        return session

    def clear(self):
        self.storage.pop(self.key, None)

    def expires_at(self, session):
        login_ts = session.login_datetime().timestamp()
        return datetime.fromtimestamp(login_ts + self.max_age_seconds, tz=timezone.utc).isoformat()
