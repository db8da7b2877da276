"""Allow-list checks for classes and subjects.

The same predicate filters what gets listed and gates every content action.
Listing filters are only a convenience; each action re-checks here.
"""

from coaching_portal.errors import AccessDenied, Unauthenticated
from coaching_portal.models import ALL_SUBJECTS


def can_access(session, class_id, subject_id=None, test_type_id=None):
    """Return True when ``session`` may open ``class_id`` (and ``subject_id``).

    ``test_type_id`` is accepted for per-type gating later on; sessions carry
    no per-type allow-lists, so it never narrows the decision. A missing
    session raises Unauthenticated instead of returning False.
    """
    if session is None:
        raise Unauthenticated()
    if class_id not in session.allowed_classes:
        return False
    if session.allowed_subjects == ALL_SUBJECTS:
        return True
    if subject_id is None:
        return True
    allowed = session.allowed_subjects.get(class_id)
    if not allowed:
        return False
    return subject_id in allowed


def ensure_access(session, class_id, subject_id=None, test_type_id=None, *, logger=None):
    if can_access(session, class_id, subject_id, test_type_id):
        return
    if logger is not None:
        logger.info(f"Access denied for user {session.user_id}: class={class_id} subject={subject_id}")
    if subject_id is None:
        raise AccessDenied('You are not permitted to access this class.')
    raise AccessDenied('You are not permitted to access this subject.')


def filter_subjects(session, class_id, entries):
    return [entry for entry in entries if can_access(session, class_id, entry.id)]
