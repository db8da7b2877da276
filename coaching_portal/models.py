"""Plain data records for sessions, navigation and listed content."""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple

ALL_SUBJECTS = 'all'
ROLE_STUDENT = 'student'
ROLE_ADMIN = 'admin'
ROLES = (ROLE_STUDENT, ROLE_ADMIN)

# Index i of LEVELS is what gets listed at depth DEPTHS[i]; selecting an
# entry of LEVELS[i] moves the navigation to DEPTHS[i + 1].
LEVELS = ('coachings', 'classes', 'subjects', 'types', 'chapters', 'pdfs')
DEPTHS = ('root', 'classes', 'subjects', 'types', 'chapters', 'pdfs')
SELECTION_FIELDS = ('coaching_id', 'class_id', 'subject_id', 'type_id', 'chapter_key')
PAYLOAD_FIELDS = ('coachingId', 'classId', 'subjectId', 'typeId', 'chapterId')
HOME_LABEL = 'Home'


def utc_now_iso():
    return datetime.now(timezone.utc).isoformat()


def _string_set(raw):
    if isinstance(raw, str):
        raw = [raw]
    return frozenset(str(value) for value in (raw or []))


def size_in_bytes(raw):
    try:
        return int(raw or 0)
    except (TypeError, ValueError):
        return 0


def _normalize_subject_map(raw):
    if raw == ALL_SUBJECTS:
        return ALL_SUBJECTS
    if not isinstance(raw, dict):
        return {}
    cleaned = {}
    for class_id, subjects in raw.items():
        cleaned[str(class_id)] = _string_set(subjects)
    return cleaned


@dataclass(frozen=True)
class Session:
    user_id: str
    name: str
    role: str = ROLE_STUDENT
    allowed_classes: frozenset = frozenset()
    allowed_subjects: object = field(default_factory=dict)
    login_time: str = field(default_factory=utc_now_iso)

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    def login_datetime(self):
        parsed = datetime.fromisoformat(self.login_time)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    def to_dict(self):
        if self.allowed_subjects == ALL_SUBJECTS:
            subjects = ALL_SUBJECTS
        else:
            subjects = {class_id: sorted(values) for class_id, values in self.allowed_subjects.items()}
        return {
            'userId': self.user_id,
            'name': self.name,
            'role': self.role,
            'allowedClasses': sorted(self.allowed_classes),
            'allowedSubjects': subjects,
            'loginTime': self.login_time,
        }

    @classmethod
    def from_dict(cls, data):
        """Build a session from its serialized form or from a user record.

        Raises ValueError when the mapping has no user id.
        """
        user_id = str(data.get('userId') or '').strip()
        if not user_id:
            raise ValueError('session payload has no userId')
        role = str(data.get('role') or data.get('userType') or ROLE_STUDENT).strip().lower()
        if role not in ROLES:
            role = ROLE_STUDENT
        return cls(
            user_id=user_id,
            name=str(data.get('name') or user_id),
            role=role,
            allowed_classes=_string_set(data.get('allowedClasses')),
            allowed_subjects=_normalize_subject_map(data.get('allowedSubjects')),
            login_time=str(data.get('loginTime') or utc_now_iso()),
        )


@dataclass(frozen=True)
class Selections:
    """Prefix-consistent tuple of navigation keys.

    A field may be set only when every field before it is set, so the depth
    of the navigation is simply the number of keys present.
    """

    coaching_id: Optional[str] = None
    class_id: Optional[str] = None
    subject_id: Optional[str] = None
    type_id: Optional[str] = None
    chapter_key: Optional[str] = None

    def __post_init__(self):
        seen_gap = False
        for name in SELECTION_FIELDS:
            value = getattr(self, name)
            if value is None:
                seen_gap = True
            elif seen_gap:
                raise ValueError(f'{name} is set while a parent selection is missing')
            elif not isinstance(value, str) or not value:
                raise ValueError(f'{name} must be a non-empty string')

    @classmethod
    def from_keys(cls, keys):
        keys = tuple(keys)
        if len(keys) > len(SELECTION_FIELDS):
            raise ValueError('too many selection keys')
        return cls(**dict(zip(SELECTION_FIELDS, keys)))

    def keys(self) -> Tuple[str, ...]:
        values = []
        for name in SELECTION_FIELDS:
            value = getattr(self, name)
            if value is None:
                break
            values.append(value)
        return tuple(values)

    @property
    def depth(self):
        return len(self.keys())

    def truncate(self, depth):
        return Selections.from_keys(self.keys()[:depth])

    def extend(self, key):
        return Selections.from_keys(self.keys() + (key,))

    def to_payload(self):
        keys = self.keys()
        return {name: (keys[index] if index < len(keys) else None) for index, name in enumerate(PAYLOAD_FIELDS)}


@dataclass(frozen=True)
class NavigationState:
    selections: Selections = field(default_factory=Selections)
    labels: Tuple[str, ...] = ()

    def __post_init__(self):
        if len(self.labels) != self.selections.depth:
            raise ValueError('one label is required per selection')

    @property
    def depth(self):
        return DEPTHS[self.selections.depth]

    @property
    def breadcrumb(self):
        # The coaching is chosen on the entry screen and is represented by Home.
        return (HOME_LABEL,) + tuple(self.labels[1:])


@dataclass(frozen=True)
class ContentItem:
    key: str
    serial_number: float
    display_name: str
    storage_locator: str
    size: int = 0
    uploaded_at: str = ''
    coaching_id: str = ''
    class_id: str = ''
    subject_id: str = ''
    type_id: str = ''
    chapter_key: str = ''
    file_name: str = ''
    storage_path: str = ''
    icon: str = ''

    @classmethod
    def from_record(cls, key, record):
        return cls(
            key=key,
            serial_number=serial_number_of(record),
            display_name=str(record.get('displayName') or record.get('fileName') or key),
            storage_locator=str(record.get('url') or record.get('downloadURL') or ''),
            size=size_in_bytes(record.get('fileSize')),
            uploaded_at=str(record.get('uploadedAt') or ''),
            coaching_id=str(record.get('coachingId') or ''),
            class_id=str(record.get('classId') or ''),
            subject_id=str(record.get('subjectName') or record.get('subjectId') or ''),
            type_id=str(record.get('testtypeName') or record.get('typeId') or ''),
            chapter_key=str(record.get('chapterKey') or ''),
            file_name=str(record.get('fileName') or ''),
            storage_path=str(record.get('filePath') or ''),
            icon=str(record.get('icon') or ''),
        )


@dataclass(frozen=True)
class ListingEntry:
    id: str
    label: str
    icon: str = ''
    color: str = ''
    serial_number: Optional[float] = None

    def to_dict(self):
        payload = {'id': self.id, 'label': self.label, 'icon': self.icon, 'color': self.color}
        if self.serial_number is not None and math.isfinite(self.serial_number):
            number = self.serial_number
            payload['serialNumber'] = int(number) if number.is_integer() else number
        return payload


def serial_number_of(record):
    raw = record.get('serialNo', record.get('serialNumber'))
    try:
        return float(raw)
    except (TypeError, ValueError):
        return float('inf')
