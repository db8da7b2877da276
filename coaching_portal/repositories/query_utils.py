"""Shared Firestore query helpers.

Uses keyword-based filters to avoid positional-argument warnings in newer
Firestore SDK versions. Falls back to positional style for simple test doubles
that do not support keyword filters.
"""

from google.cloud.firestore_v1.base_query import FieldFilter


def apply_where(query, field_path, op_string, value):
    try:
        return query.where(filter=FieldFilter(field_path, op_string, value))
    except TypeError:
        return query.where(field_path, op_string, value)


def apply_equals(query, filters):
    """Chain one equality filter per (field, value) pair, skipping None values."""
    for field_path, value in filters:
        if value is None:
            continue
        query = apply_where(query, field_path, '==', value)
    return query


def snapshot_to_record(snapshot):
    record = dict(snapshot.to_dict() or {})
    record['key'] = snapshot.id
    return record
