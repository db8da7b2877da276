"""Firestore accessors for the content taxonomy collections."""

from .query_utils import apply_equals, snapshot_to_record

COACHINGS = 'coachings'
CLASSES = 'classes'
SUBJECTS = 'subjects'
TEST_TYPES = 'test-types'
CHAPTERS = 'chapters'
PDFS = 'pdfs'


def list_records(db, collection_name, filters=()):
    query = apply_equals(db.collection(collection_name), filters)
    return [snapshot_to_record(doc) for doc in query.stream()]


def doc_ref(db, collection_name, key):
    return db.collection(collection_name).document(key)


def get_record(db, collection_name, key):
    snapshot = doc_ref(db, collection_name, key).get()
    if not snapshot.exists:
        return None
    return snapshot_to_record(snapshot)


def add_record(db, collection_name, data, key=None):
    if key:
        doc_ref(db, collection_name, key).set(data)
        return key
    _, ref = db.collection(collection_name).add(data)
    return ref.id


def delete_record(db, collection_name, key):
    return doc_ref(db, collection_name, key).delete()
