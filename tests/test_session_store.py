import pytest

from coaching_portal.errors import Unauthenticated
from coaching_portal.models import Session
from coaching_portal.services import auth_service
from coaching_portal.services.session_service import SessionStore, navigation_key, session_key, tab_id_from_request
from doubles import FailingDB

LOGIN_TS = 1_700_000_000  # 2023-11-14T22:13:20+00:00


class _Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class _Request:
    def __init__(self, headers):
        self.headers = headers


def _session():
    return Session.from_dict({
        "userId": "STU001",
        "name": "John Doe",
        "allowedClasses": ["class-9"],
        "allowedSubjects": {"class-9": ["mathematics"]},
        "loginTime": "2023-11-14T22:13:20+00:00",
    })


def test_save_then_load_returns_equal_session():
    storage = {}
    store = SessionStore(storage, "portal_session:tab-1", 3600, clock=_Clock(LOGIN_TS + 10))

    store.save(_session())

    assert store.load() == _session()
    assert storage["portal_session:tab-1"]["allowedSubjects"] == {"class-9": ["mathematics"]}


def test_expired_session_is_cleared():
    storage = {}
    clock = _Clock(LOGIN_TS)
    store = SessionStore(storage, "k", 60, clock=clock)
    store.save(_session())

    clock.now = LOGIN_TS + 61

    assert store.load() is None
    assert "k" not in storage
    with pytest.raises(Unauthenticated):
        store.require()


def test_malformed_entry_is_cleared():
    storage = {"k": {"name": "no user id"}}
    store = SessionStore(storage, "k", 60, clock=_Clock(LOGIN_TS))

    assert store.load() is None
    assert storage == {}

    storage["k"] = {"userId": "u1", "loginTime": "not-a-date"}
    assert store.load() is None
    assert storage == {}


def test_clear_removes_only_own_tab():
    storage = {}
    first = SessionStore(storage, session_key("a"), 3600, clock=_Clock(LOGIN_TS))
    second = SessionStore(storage, session_key("b"), 3600, clock=_Clock(LOGIN_TS))
    first.save(_session())
    second.save(_session())

    first.clear()

    assert first.load() is None
    assert second.load() is not None


def test_tab_id_defaults_and_rejects_odd_values():
    assert tab_id_from_request(_Request({})) == "default"
    assert tab_id_from_request(_Request({"X-Portal-Tab": "tab_42-a"})) == "tab_42-a"
    assert tab_id_from_request(_Request({"X-Portal-Tab": "../etc"})) == "default"
    assert navigation_key("tab_42-a") == "portal_nav:tab_42-a"


def test_legacy_user_type_field_sets_role():
    session = Session.from_dict({"userId": "ADMIN001", "name": "Admin", "userType": "admin", "allowedSubjects": "all"})
    assert session.is_admin
    assert session.allowed_subjects == "all"


def test_authenticate_compares_stored_password(fake_db):
    session = auth_service.authenticate(fake_db, " STU001 ", "password123", now_iso=lambda: "2024-01-01T00:00:00+00:00")

    assert session.user_id == "STU001"
    assert session.role == "student"
    assert session.login_time == "2024-01-01T00:00:00+00:00"
    assert "password" not in auth_service.public_user(session)

    assert auth_service.authenticate(fake_db, "STU001", "wrong") is None
    assert auth_service.authenticate(fake_db, "NOPE", "password123") is None
    assert auth_service.authenticate(fake_db, "STU001", "") is None


def test_authenticate_reports_backend_failure():
    from coaching_portal.errors import BackendUnavailable

    with pytest.raises(BackendUnavailable):
        auth_service.authenticate(FailingDB(), "STU001", "password123")
    with pytest.raises(BackendUnavailable):
        auth_service.authenticate(None, "STU001", "password123")
