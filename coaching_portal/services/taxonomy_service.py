"""Content taxonomy listings: coaching → class → subject → test type → chapter → PDF."""

from coaching_portal.errors import BackendUnavailable, InvalidTransition, NotFound
from coaching_portal.models import LEVELS, ContentItem, ListingEntry, serial_number_of
from coaching_portal.repositories import content_repo
from coaching_portal.services import access_service

DEFAULT_PDF_ICON = '📄'


class FirestoreListing:
    """Reads taxonomy collections and turns SDK failures into BackendUnavailable."""

    def __init__(self, db, logger=None):
        self.db = db
        self.logger = logger

    def _fail(self, action, exc):
        if self.logger is not None:
            self.logger.warning(f"Content backend failure during {action}: {exc}")
        raise BackendUnavailable() from exc

    def list_records(self, collection_name, filters=()):
        if self.db is None:
            raise BackendUnavailable()
        try:
            return content_repo.list_records(self.db, collection_name, filters)
        except Exception as exc:
            self._fail(f"list {collection_name}", exc)

    def get_record(self, collection_name, key):
        if self.db is None:
            raise BackendUnavailable()
        try:
            return content_repo.get_record(self.db, collection_name, key)
        except Exception as exc:
            self._fail(f"get {collection_name}/{key}", exc)


class TaxonomyResolver:
    def __init__(self, listing, catalogue, logger=None):
        self.listing = listing
        self.catalogue = catalogue
        self.logger = logger

    def list_children(self, level, selections, session):
        """Entries of ``level`` under ``selections``, ordered for display.

        Subjects are filtered through the access model and keep the backing
        listing's order; chapters and PDFs are stably sorted by serial number.
        An existing parent with nothing under it yields an empty list; a
        missing parent raises NotFound.
        """
        self._check_context(level, selections)
        entries = self._entries(level, selections)
        if level == 'subjects':
            entries = access_service.filter_subjects(session, selections.class_id, entries)
        return entries

    def describe(self, level, selections, key):
        """The entry ``key`` of ``level`` under ``selections`` (unfiltered)."""
        self._check_context(level, selections)
        for entry in self._entries(level, selections):
            if entry.id == key:
                return entry
        raise NotFound(f'{level[:-1].capitalize()} not found')

    def content_item(self, pdf_key):
        record = self.listing.get_record(content_repo.PDFS, pdf_key)
        if record is None:
            raise NotFound('PDF not found')
        return ContentItem.from_record(pdf_key, record)

    def _check_context(self, level, selections):
        if level not in LEVELS:
            raise InvalidTransition(f'Unknown level: {level}')
        if selections.depth != LEVELS.index(level):
            raise InvalidTransition(f'Listing {level} needs exactly its parent selections')

    def _entries(self, level, selections):
        loader = getattr(self, f'_load_{level}')
        return loader(selections)

    def _load_coachings(self, selections):
        return [
            ListingEntry(
                id=record['key'],
                label=str(record.get('name') or record['key']),
                icon=str(record.get('icon') or ''),
                color=str(record.get('color') or ''),
            )
            for record in self.listing.list_records(content_repo.COACHINGS)
        ]

    def _load_classes(self, selections):
        coachings = self.listing.list_records(content_repo.COACHINGS)
        if not any(record['key'] == selections.coaching_id for record in coachings):
            raise NotFound('Coaching not found')
        records = self.listing.list_records(content_repo.CLASSES, (('coachingId', selections.coaching_id),))
        entries = []
        for record in records:
            class_id = str(record.get('classId') or record['key'])
            meta = self.catalogue.class_meta(class_id)
            entries.append(ListingEntry(
                id=class_id,
                label=str(record.get('name') or self.catalogue.class_label(class_id)),
                icon=str(record.get('icon') or meta.get('icon', '')),
                color=str(record.get('color') or meta.get('color', '')),
            ))
        return entries

    def _load_subjects(self, selections):
        self._require(content_repo.CLASSES, (
            ('coachingId', selections.coaching_id),
            ('classId', selections.class_id),
        ), 'Class not found')
        records = self.listing.list_records(content_repo.SUBJECTS, (
            ('coachingId', selections.coaching_id),
            ('classId', selections.class_id),
        ))
        return [
            ListingEntry(
                id=str(record.get('name')),
                label=str(record.get('label') or self.catalogue.subject_label(record.get('name'))),
                icon=str(record.get('icon') or self.catalogue.subject_icon(record.get('name'))),
                color=str(record.get('color') or ''),
            )
            for record in records
            if record.get('name')
        ]

    def _type_records(self, selections):
        return self.listing.list_records(content_repo.TEST_TYPES, (
            ('coachingId', selections.coaching_id),
            ('classId', selections.class_id),
            ('subjectName', selections.subject_id),
        ))

    def _load_types(self, selections):
        self._require(content_repo.SUBJECTS, (
            ('coachingId', selections.coaching_id),
            ('classId', selections.class_id),
            ('name', selections.subject_id),
        ), 'Subject not found')
        records = [record for record in self._type_records(selections) if record.get('name')]
        if not records:
            return [
                ListingEntry(id=entry['id'], label=entry['name'], icon=entry.get('icon', ''), color=entry.get('color', ''))
                for entry in self.catalogue.test_types
            ]
        return [
            ListingEntry(
                id=str(record['name']),
                label=str(record.get('label') or self.catalogue.test_type_label(record['name'])),
                icon=str(record.get('icon') or ''),
                color=str(record.get('color') or ''),
            )
            for record in records
        ]

    def _load_chapters(self, selections):
        known_types = {entry.id for entry in self._load_types(selections.truncate(3))}
        if selections.type_id not in known_types:
            raise NotFound('Test type not found')
        records = self.listing.list_records(content_repo.CHAPTERS, (
            ('coachingId', selections.coaching_id),
            ('classId', selections.class_id),
            ('subjectName', selections.subject_id),
            ('testtypeName', selections.type_id),
        ))
        records = sorted(records, key=serial_number_of)
        return [
            ListingEntry(
                id=record['key'],
                label=str(record.get('name') or record['key']),
                serial_number=serial_number_of(record),
            )
            for record in records
        ]

    def _load_pdfs(self, selections):
        chapter = self.listing.get_record(content_repo.CHAPTERS, selections.chapter_key)
        if chapter is None or any(
            chapter.get(field_path) != value
            for field_path, value in (
                ('coachingId', selections.coaching_id),
                ('classId', selections.class_id),
                ('subjectName', selections.subject_id),
                ('testtypeName', selections.type_id),
            )
        ):
            raise NotFound('Chapter not found')
        records = self.listing.list_records(content_repo.PDFS, (
            ('coachingId', selections.coaching_id),
            ('classId', selections.class_id),
            ('subjectName', selections.subject_id),
            ('testtypeName', selections.type_id),
            ('chapterKey', selections.chapter_key),
        ))
        records = sorted(records, key=serial_number_of)
        return [
            ListingEntry(
                id=record['key'],
                label=str(record.get('displayName') or record.get('fileName') or record['key']),
                icon=str(record.get('icon') or DEFAULT_PDF_ICON),
                serial_number=serial_number_of(record),
            )
            for record in records
        ]

    def _require(self, collection_name, filters, message):
        if not self.listing.list_records(collection_name, filters):
            raise NotFound(message)
