"""Login throttling.

Attempts are counted per client address and user id. Firestore holds one
counter document per fixed window so every worker sees the same count; when
Firestore is disabled or unreachable the process keeps its own sliding window.
"""

import hashlib
import re
import threading
import time

from coaching_portal.repositories import rate_limit_repo


def normalize_key_part(value, fallback='anon', max_len=120):
    raw = str(value or '').strip().lower()
    if not raw:
        return fallback
    safe = re.sub(r'[^a-z0-9_.:@-]+', '_', raw)
    return safe[:max_len] if safe else fallback


def login_key(client_ip, user_id):
    return f"login:{normalize_key_part(client_ip, fallback='unknown_ip')}:{normalize_key_part(user_id, fallback='anon_user')}"


def counter_id(key, window_start):
    return hashlib.sha256(f"{key}|{int(window_start)}".encode('utf-8')).hexdigest()


class LoginThrottle:
    def __init__(self, limit, window_seconds, *, firestore_module=None, collection='login_attempt_counters',
                 clock=time.time, logger=None):
        self.limit = int(limit)
        self.window_seconds = int(window_seconds)
        self.firestore_module = firestore_module
        self.collection = collection
        self.clock = clock
        self.logger = logger
        self._attempts = {}
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._attempts)

    def hit(self, client_ip, user_id, db=None):
        """Record one login attempt. Returns ``(allowed, retry_after_seconds)``."""
        key = login_key(client_ip, user_id)
        now_ts = self.clock()
        if db is not None and self.firestore_module is not None:
            shared = self._hit_shared(db, key, now_ts)
            if shared is not None:
                return shared
        return self._hit_local(key, now_ts)

    def _hit_shared(self, db, key, now_ts):
        window_start = int(now_ts // self.window_seconds) * self.window_seconds
        retry_after = max(1, int(window_start + self.window_seconds - now_ts))
        limit = self.limit
        expires_at = window_start + self.window_seconds * 3

        @self.firestore_module.transactional
        def _count(txn, ref):
            snapshot = ref.get(transaction=txn)
            attempts = int((snapshot.to_dict() or {}).get('count', 0) or 0) if snapshot.exists else 0
            if attempts >= limit:
                return False, retry_after
            txn.set(ref, {'key': key, 'count': attempts + 1, 'window_start': window_start, 'expires_at': expires_at})
            return True, 0

        try:
            ref = rate_limit_repo.counter_doc_ref(db, self.collection, counter_id(key, window_start))
            return _count(db.transaction(), ref)
        except Exception as exc:
            if self.logger is not None:
                self.logger.warning(f"Login attempt counter unavailable, counting locally: {exc}")
            return None

    def _hit_local(self, key, now_ts):
        cutoff = now_ts - self.window_seconds
        with self._lock:
            self._forget_before(cutoff)
            recent = self._attempts.get(key, [])
            if len(recent) >= self.limit:
                return False, max(1, int(recent[0] + self.window_seconds - now_ts))
            self._attempts[key] = recent + [now_ts]
        return True, 0

    def _forget_before(self, cutoff):
        for key in list(self._attempts):
            recent = [ts for ts in self._attempts[key] if ts >= cutoff]
            if recent:
                self._attempts[key] = recent
            else:
                del self._attempts[key]
