"""Credential check against the identity store."""

from coaching_portal.errors import BackendUnavailable
from coaching_portal.models import Session, utc_now_iso
from coaching_portal.repositories import users_repo


def normalize_user_id(raw_value):
    return str(raw_value or '').strip()


def fetch_user_record(db, user_id, logger=None):
    """Return the stored user dict, or None when no such user exists."""
    if db is None:
        raise BackendUnavailable('Could not reach the login server. Please try again.')
    try:
        snapshot = users_repo.get_doc(db, user_id)
    except Exception as exc:
        if logger is not None:
            logger.warning(f"Identity store lookup failed for {user_id}: {exc}")
        raise BackendUnavailable('Could not reach the login server. Please try again.') from exc
    if not snapshot.exists:
        return None
    return snapshot.to_dict() or {}


def authenticate(db, user_id, password, logger=None, now_iso=utc_now_iso):
    """Return a fresh Session for valid credentials, else None.

    Passwords are stored as-is in the users collection and compared by
    equality.
    """
    user_id = normalize_user_id(user_id)
    if not user_id or not password:
        return None
    record = fetch_user_record(db, user_id, logger)
    if record is None:
        return None
    stored = record.get('password')
    if not isinstance(stored, str) or stored != password:
        return None
    payload = dict(record)
    payload['userId'] = user_id
    payload['loginTime'] = now_iso()
    return Session.from_dict(payload)


def public_user(session):
    data = session.to_dict()
    data.pop('loginTime', None)
    return data
