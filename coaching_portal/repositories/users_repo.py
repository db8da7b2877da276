"""Firestore accessors for users collection."""


def doc_ref(db, user_id):
    return db.collection('users').document(user_id)


def get_doc(db, user_id):
    return doc_ref(db, user_id).get()


def set_doc(db, user_id, data, merge=False):
    return doc_ref(db, user_id).set(data, merge=merge)


def delete_doc(db, user_id):
    return doc_ref(db, user_id).delete()


def stream_users(db):
    return db.collection('users').stream()
