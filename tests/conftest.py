import os

import pytest

os.environ.setdefault("FLASK_ENV", "test")

from coaching_portal.config import Catalogue  # noqa: E402
from coaching_portal.models import Session  # noqa: E402
from coaching_portal.services.taxonomy_service import FirestoreListing, TaxonomyResolver  # noqa: E402
from doubles import FakeBucket, FakeDB, portal_data  # noqa: E402


@pytest.fixture()
def fake_db():
    return FakeDB(portal_data())


@pytest.fixture()
def fake_bucket():
    return FakeBucket()


@pytest.fixture()
def catalogue():
    return Catalogue()


@pytest.fixture()
def resolver(fake_db, catalogue):
    return TaxonomyResolver(FirestoreListing(fake_db), catalogue)


@pytest.fixture()
def student_session():
    return Session.from_dict({
        "userId": "STU001",
        "name": "John Doe",
        "allowedClasses": ["class-9"],
        "allowedSubjects": {"class-9": ["mathematics"]},
    })


@pytest.fixture()
def full_session():
    return Session.from_dict({
        "userId": "STU005",
        "name": "David Brown",
        "allowedClasses": ["class-9", "class-10"],
        "allowedSubjects": "all",
    })
