"""PDF validation, storage paths and download-link helpers."""

import re

from werkzeug.utils import secure_filename

ALLOWED_PDF_EXTENSIONS = {'pdf'}
PDF_SIGNATURE = b'%PDF-'
DRIVE_FILE_PATTERN = re.compile(r'/file/d/([A-Za-z0-9_-]+)')
DRIVE_DOWNLOAD_URL = 'https://drive.google.com/uc?export=download&id={file_id}'


def allowed_file(filename, allowed_extensions=ALLOWED_PDF_EXTENSIONS):
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in allowed_extensions


def has_pdf_signature(data):
    return bytes(data[:len(PDF_SIGNATURE)]) == PDF_SIGNATURE


def safe_pdf_filename(filename):
    safe = secure_filename(filename or '')
    if not safe or not allowed_file(safe):
        return ''
    return safe


def storage_path(coaching_id, class_id, subject_id, type_id, chapter_key, filename):
    parts = [secure_filename(str(part or '')) for part in (coaching_id, class_id, subject_id, type_id, chapter_key)]
    if not all(parts):
        raise ValueError('every taxonomy key is required for a storage path')
    return '/'.join(['pdfs'] + parts + [filename])


def download_link(url):
    """Turn a Google Drive viewer link into a direct download link; others pass through."""
    match = DRIVE_FILE_PATTERN.search(url or '')
    if 'drive.google.com' in (url or '') and match:
        return DRIVE_DOWNLOAD_URL.format(file_id=match.group(1))
    return url
