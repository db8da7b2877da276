"""Business logic handlers for admin APIs."""

import logging
from contextlib import contextmanager

from coaching_portal.errors import AccessDenied, BackendUnavailable, PortalError
from coaching_portal.logging_config import log_event
from coaching_portal.models import ALL_SUBJECTS, ROLE_STUDENT, ROLES, Selections, serial_number_of, size_in_bytes, utc_now_iso
from coaching_portal.repositories import content_repo, storage_repo, users_repo
from coaching_portal.services import file_service

TAXONOMY_REQUIRED_FIELDS = {
    content_repo.COACHINGS: ('name',),
    content_repo.CLASSES: ('coachingId', 'classId', 'name'),
    content_repo.SUBJECTS: ('coachingId', 'classId', 'name'),
    content_repo.TEST_TYPES: ('coachingId', 'classId', 'subjectName', 'name'),
    content_repo.CHAPTERS: ('coachingId', 'classId', 'subjectName', 'testtypeName', 'name'),
}
TAXONOMY_OPTIONAL_FIELDS = ('icon', 'color')
PDF_FILTER_FIELDS = (
    ('coachingId', 'coachingId'),
    ('classId', 'classId'),
    ('subjectId', 'subjectName'),
    ('typeId', 'testtypeName'),
    ('chapterKey', 'chapterKey'),
)


def require_admin(app_ctx, request):
    session = app_ctx.session_store(request).require()
    if not session.is_admin:
        log_event(app_ctx.logger, logging.WARNING, 'admin_access_denied', user_id=session.user_id)
        raise AccessDenied('Admin access required.')
    return session


@contextmanager
def backend_call(app_ctx, action):
    """Convert SDK failures inside the block into BackendUnavailable."""
    if app_ctx.db is None:
        raise BackendUnavailable()
    try:
        yield app_ctx.db
    except PortalError:
        raise
    except Exception as exc:
        app_ctx.logger.error(f"Admin backend failure during {action}: {exc}")
        raise BackendUnavailable() from exc


def _public_user_record(user_id, record):
    data = dict(record)
    data.pop('password', None)
    data['userId'] = data.get('userId') or user_id
    return data


def _string_list(raw):
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple)):
        return None
    values = []
    for item in raw:
        value = str(item or '').strip()
        if value and value not in values:
            values.append(value)
    return values


def clean_user_fields(data, existing=None):
    """Validate a create/update body; return ``(fields, error_message)``."""
    existing = existing or {}
    name = str(data.get('name', existing.get('name', '')) or '').strip()
    if not name:
        return None, 'name is required'

    role = str(data.get('role') or data.get('userType') or existing.get('role') or existing.get('userType') or ROLE_STUDENT).strip().lower()
    if role not in ROLES:
        return None, 'role must be student or admin'

    allowed_classes = _string_list(data.get('allowedClasses', existing.get('allowedClasses', [])))
    if allowed_classes is None:
        return None, 'allowedClasses must be a list of class ids'

    raw_subjects = data.get('allowedSubjects', existing.get('allowedSubjects', {}))
    if raw_subjects == ALL_SUBJECTS:
        allowed_subjects = ALL_SUBJECTS
    elif isinstance(raw_subjects, dict):
        allowed_subjects = {}
        for class_id, subjects in raw_subjects.items():
            # Subjects are only meaningful for classes the user may open.
            if str(class_id) not in allowed_classes:
                continue
            cleaned = _string_list(subjects)
            if cleaned is None:
                return None, f'allowedSubjects for {class_id} must be a list'
            allowed_subjects[str(class_id)] = cleaned
    else:
        return None, 'allowedSubjects must be "all" or a mapping of class id to subjects'

    return {
        'name': name,
        'role': role,
        'allowedClasses': allowed_classes,
        'allowedSubjects': allowed_subjects,
    }, ''


# --- users ---

def list_users(app_ctx, request):
    require_admin(app_ctx, request)
    term = str(request.args.get('q', '') or '').strip().lower()
    with backend_call(app_ctx, 'list users') as db:
        users = [_public_user_record(doc.id, doc.to_dict() or {}) for doc in users_repo.stream_users(db)]
    if term:
        users = [
            user for user in users
            if term in str(user.get('userId', '')).lower() or term in str(user.get('name', '')).lower()
        ]
    return app_ctx.jsonify({'users': users})


def create_user(app_ctx, request):
    admin = require_admin(app_ctx, request)
    data = request.get_json(silent=True) or {}
    user_id = str(data.get('userId') or '').strip()
    password = data.get('password')
    if not user_id or not isinstance(password, str) or not password:
        return app_ctx.jsonify({'error': 'userId and password are required'}), 400
    fields, error = clean_user_fields(data)
    if error:
        return app_ctx.jsonify({'error': error}), 400

    with backend_call(app_ctx, f'create user {user_id}') as db:
        if users_repo.get_doc(db, user_id).exists:
            return app_ctx.jsonify({'error': 'User ID already exists. Please choose a different ID.'}), 409
        now = utc_now_iso()
        record = {'userId': user_id, 'password': password, 'createdAt': now, 'updatedAt': now}
        record.update(fields)
        users_repo.set_doc(db, user_id, record)

    log_event(app_ctx.logger, logging.INFO, 'user_created', user_id=user_id, role=fields['role'], by=admin.user_id)
    return app_ctx.jsonify({'ok': True, 'user': _public_user_record(user_id, record)}), 201


def update_user(app_ctx, request, user_id):
    admin = require_admin(app_ctx, request)
    data = request.get_json(silent=True) or {}
    with backend_call(app_ctx, f'update user {user_id}') as db:
        snapshot = users_repo.get_doc(db, user_id)
        if not snapshot.exists:
            return app_ctx.jsonify({'error': 'User not found'}), 404
        existing = snapshot.to_dict() or {}
        fields, error = clean_user_fields(data, existing)
        if error:
            return app_ctx.jsonify({'error': error}), 400
        password = data.get('password')
        if isinstance(password, str) and password:
            fields['password'] = password
        fields['updatedAt'] = utc_now_iso()
        users_repo.set_doc(db, user_id, fields, merge=True)
        existing.update(fields)

    log_event(app_ctx.logger, logging.INFO, 'user_updated', user_id=user_id, by=admin.user_id)
    return app_ctx.jsonify({'ok': True, 'user': _public_user_record(user_id, existing)})


def delete_user(app_ctx, request, user_id):
    admin = require_admin(app_ctx, request)
    with backend_call(app_ctx, f'delete user {user_id}') as db:
        if not users_repo.get_doc(db, user_id).exists:
            return app_ctx.jsonify({'error': 'User not found'}), 404
        users_repo.delete_doc(db, user_id)
    log_event(app_ctx.logger, logging.INFO, 'user_deleted', user_id=user_id, by=admin.user_id)
    return app_ctx.jsonify({'ok': True})


# --- pdfs ---

def list_pdfs(app_ctx, request):
    require_admin(app_ctx, request)
    filters = []
    for arg_name, field_path in PDF_FILTER_FIELDS:
        value = str(request.args.get(arg_name, '') or '').strip()
        if value:
            filters.append((field_path, value))
    with backend_call(app_ctx, 'list pdfs') as db:
        records = content_repo.list_records(db, content_repo.PDFS, filters)
    records = sorted(records, key=serial_number_of)
    return app_ctx.jsonify({'pdfs': records})


def upload_pdf(app_ctx, request):
    admin = require_admin(app_ctx, request)
    if app_ctx.bucket is None:
        raise BackendUnavailable('File storage is not configured.')

    uploaded = request.files.get('file')
    if uploaded is None or not uploaded.filename:
        return app_ctx.jsonify({'error': 'Please choose a PDF file'}), 400
    filename = file_service.safe_pdf_filename(uploaded.filename)
    if not filename:
        return app_ctx.jsonify({'error': 'Only .pdf files can be uploaded'}), 400

    form = request.form
    keys = [str(form.get(name, '') or '').strip() for name in ('coachingId', 'classId', 'subjectId', 'typeId', 'chapterKey')]
    if not all(keys):
        return app_ctx.jsonify({'error': 'coachingId, classId, subjectId, typeId and chapterKey are required'}), 400
    serial_raw = str(form.get('serialNumber', '') or '').strip()
    try:
        serial_number = float(serial_raw) if serial_raw else None
    except ValueError:
        return app_ctx.jsonify({'error': 'serialNumber must be a number'}), 400
    if serial_number is not None and serial_number.is_integer():
        serial_number = int(serial_number)

    max_bytes = app_ctx.config.max_pdf_upload_bytes
    data = uploaded.read(max_bytes + 1)
    if len(data) > max_bytes:
        return app_ctx.jsonify({'error': f'PDF exceeds the {max_bytes // (1024 * 1024)}MB upload limit'}), 413
    if not file_service.has_pdf_signature(data):
        return app_ctx.jsonify({'error': 'Uploaded file is not a valid PDF'}), 400

    selections = Selections.from_keys(keys)
    # Raises NotFound when any part of the chapter path is missing.
    app_ctx.build_resolver().describe('chapters', selections.truncate(4), selections.chapter_key)

    try:
        path = file_service.storage_path(*keys, filename)
    except ValueError:
        return app_ctx.jsonify({'error': 'Taxonomy keys cannot be used in a storage path'}), 400
    try:
        url = storage_repo.upload_pdf(app_ctx.bucket, path, data)
    except Exception as exc:
        app_ctx.logger.error(f"Storage upload failed for {path}: {exc}")
        raise BackendUnavailable('Could not upload the PDF. Please try again.') from exc

    record = {
        'coachingId': keys[0],
        'classId': keys[1],
        'subjectName': keys[2],
        'testtypeName': keys[3],
        'chapterKey': keys[4],
        'serialNo': serial_number,
        'displayName': str(form.get('displayName', '') or '').strip() or filename,
        'fileName': filename,
        'url': url,
        'filePath': path,
        'fileSize': len(data),
        'uploadedAt': utc_now_iso(),
        'icon': str(form.get('icon', '') or '').strip(),
    }
    with backend_call(app_ctx, f'record pdf {path}') as db:
        key = content_repo.add_record(db, content_repo.PDFS, record)

    log_event(app_ctx.logger, logging.INFO, 'pdf_uploaded', pdf_key=key, path=path, size=len(data), by=admin.user_id)
    record['key'] = key
    return app_ctx.jsonify({'ok': True, 'pdf': record}), 201


def delete_pdf(app_ctx, request, pdf_key):
    admin = require_admin(app_ctx, request)
    with backend_call(app_ctx, f'load pdf {pdf_key}') as db:
        record = content_repo.get_record(db, content_repo.PDFS, pdf_key)
    if record is None:
        return app_ctx.jsonify({'error': 'PDF not found'}), 404

    path = str(record.get('filePath') or '')
    if path:
        if app_ctx.bucket is None:
            raise BackendUnavailable('File storage is not configured.')
        try:
            removed = storage_repo.delete_object(app_ctx.bucket, path)
        except Exception as exc:
            app_ctx.logger.error(f"Storage delete failed for {path}: {exc}")
            raise BackendUnavailable('Could not delete the PDF file. Please try again.') from exc
        if not removed:
            app_ctx.logger.info(f"Storage object already gone for pdf {pdf_key}: {path}")

    with backend_call(app_ctx, f'delete pdf {pdf_key}') as db:
        content_repo.delete_record(db, content_repo.PDFS, pdf_key)
    log_event(app_ctx.logger, logging.INFO, 'pdf_deleted', pdf_key=pdf_key, by=admin.user_id)
    return app_ctx.jsonify({'ok': True})


# --- taxonomy ---

def add_taxonomy_record(app_ctx, request, collection_name):
    admin = require_admin(app_ctx, request)
    if collection_name not in TAXONOMY_REQUIRED_FIELDS:
        return app_ctx.jsonify({'error': f'Unknown collection: {collection_name}'}), 404
    data = request.get_json(silent=True) or {}

    record = {}
    for field_name in TAXONOMY_REQUIRED_FIELDS[collection_name]:
        value = str(data.get(field_name, '') or '').strip()
        if not value:
            return app_ctx.jsonify({'error': f'{field_name} is required'}), 400
        record[field_name] = value
    for field_name in TAXONOMY_OPTIONAL_FIELDS:
        value = str(data.get(field_name, '') or '').strip()
        if value:
            record[field_name] = value
    if collection_name == content_repo.CHAPTERS:
        try:
            serial = float(data.get('serialNo'))
        except (TypeError, ValueError):
            return app_ctx.jsonify({'error': 'serialNo must be a number'}), 400
        record['serialNo'] = int(serial) if serial.is_integer() else serial

    key = str(data.get('id', '') or '').strip() if collection_name == content_repo.COACHINGS else ''
    with backend_call(app_ctx, f'add {collection_name}') as db:
        key = content_repo.add_record(db, collection_name, record, key=key or None)
    log_event(app_ctx.logger, logging.INFO, 'taxonomy_added', collection=collection_name, key=key, by=admin.user_id)
    record['key'] = key
    return app_ctx.jsonify({'ok': True, 'record': record}), 201


def delete_taxonomy_record(app_ctx, request, collection_name, key):
    admin = require_admin(app_ctx, request)
    if collection_name not in TAXONOMY_REQUIRED_FIELDS:
        return app_ctx.jsonify({'error': f'Unknown collection: {collection_name}'}), 404
    with backend_call(app_ctx, f'delete {collection_name}/{key}') as db:
        if content_repo.get_record(db, collection_name, key) is None:
            return app_ctx.jsonify({'error': 'Record not found'}), 404
        content_repo.delete_record(db, collection_name, key)
    log_event(app_ctx.logger, logging.INFO, 'taxonomy_deleted', collection=collection_name, key=key, by=admin.user_id)
    return app_ctx.jsonify({'ok': True})


# --- reporting ---

def admin_overview(app_ctx, request):
    require_admin(app_ctx, request)
    with backend_call(app_ctx, 'overview') as db:
        total_users = sum(1 for _ in users_repo.stream_users(db))
        pdfs = content_repo.list_records(db, content_repo.PDFS)
    storage_bytes = sum(size_in_bytes(pdf.get('fileSize')) for pdf in pdfs)
    return app_ctx.jsonify({'totalUsers': total_users, 'totalPdfs': len(pdfs), 'storageBytes': storage_bytes})


def admin_export(app_ctx, request):
    require_admin(app_ctx, request)
    with backend_call(app_ctx, 'export users') as db:
        users = [_public_user_record(doc.id, doc.to_dict() or {}) for doc in users_repo.stream_users(db)]
    return app_ctx.jsonify({'users': users, 'exportedAt': utc_now_iso()})


def admin_backup(app_ctx, request):
    admin = require_admin(app_ctx, request)
    with backend_call(app_ctx, 'backup') as db:
        users = [doc.to_dict() or {} for doc in users_repo.stream_users(db)]
        pdfs = content_repo.list_records(db, content_repo.PDFS)
    log_event(app_ctx.logger, logging.INFO, 'backup_created', users=len(users), pdfs=len(pdfs), by=admin.user_id)
    return app_ctx.jsonify({'users': users, 'pdfs': pdfs, 'timestamp': utc_now_iso()})
