import json
import os
from dataclasses import dataclass, field
from typing import Dict, Tuple

DEV_ENV_NAMES = {'development', 'dev', 'local', 'test'}


def _env(name, default=''):
    return (os.getenv(name, default) or default).strip()


def safe_int_env(name, default=0, minimum=1, maximum=100000):
    raw = os.getenv(name, str(default)).strip()
    try:
        value = int(raw)
    except Exception:
        value = int(default)
    return min(max(value, minimum), maximum)


def runtime_environment():
    return (
        os.getenv('SENTRY_ENVIRONMENT')
        or os.getenv('FLASK_ENV')
        or os.getenv('ENV')
        or ('production' if os.getenv('RENDER') else 'development')
    ).strip().lower()


@dataclass(frozen=True)
class AppConfig:
    """Central config object, read from the environment once at startup."""

    flask_secret_key: str = field(default_factory=lambda: _env('FLASK_SECRET_KEY'))
    log_level: str = field(default_factory=lambda: _env('LOG_LEVEL', 'INFO').upper())
    sentry_dsn: str = field(default_factory=lambda: _env('SENTRY_DSN_BACKEND'))
    sentry_environment: str = field(default_factory=lambda: _env('SENTRY_ENVIRONMENT', _env('FLASK_ENV', 'production')))
    sentry_release: str = field(default_factory=lambda: _env('SENTRY_RELEASE', 'coaching-portal'))
    storage_bucket: str = field(default_factory=lambda: _env('FIREBASE_STORAGE_BUCKET'))
    session_max_age_seconds: int = field(default_factory=lambda: safe_int_env('SESSION_MAX_AGE_SECONDS', 12 * 60 * 60, minimum=60, maximum=7 * 24 * 60 * 60))
    max_pdf_upload_bytes: int = field(default_factory=lambda: safe_int_env('MAX_PDF_UPLOAD_BYTES', 10 * 1024 * 1024, minimum=1024, maximum=200 * 1024 * 1024))
    catalogue_file: str = field(default_factory=lambda: _env('PORTAL_CATALOGUE_FILE'))
    login_rate_limit_max: int = field(default_factory=lambda: safe_int_env('LOGIN_RATE_LIMIT_MAX_REQUESTS', 10, minimum=1, maximum=1000))
    login_rate_limit_window_seconds: int = field(default_factory=lambda: safe_int_env('LOGIN_RATE_LIMIT_WINDOW_SECONDS', 300, minimum=10, maximum=86400))
    rate_limit_firestore_enabled: bool = field(default_factory=lambda: _env('RATE_LIMIT_FIRESTORE_ENABLED', '1').lower() in {'1', 'true', 'yes', 'on'})
    environment: str = field(default_factory=runtime_environment)

    @property
    def is_dev_like(self):
        return self.environment in DEV_ENV_NAMES


def load_config() -> AppConfig:
    config = AppConfig()
    if not config.is_dev_like and not config.flask_secret_key:
        raise RuntimeError('FLASK_SECRET_KEY must be set in non-development environments.')
    return config


# --- Display catalogue ---

DEFAULT_CLASSES = {
    'class-9': {'name': 'Class IX', 'icon': '📘', 'color': '#4CAF50'},
    'class-10': {'name': 'Class X', 'icon': '📗', 'color': '#2196F3'},
    'sem-1': {'name': 'SEM I', 'icon': '🎓', 'color': '#FF9800'},
    'sem-2': {'name': 'SEM II', 'icon': '🎓', 'color': '#FF5722'},
    'sem-3': {'name': 'SEM III', 'icon': '🎓', 'color': '#9C27B0'},
    'sem-4': {'name': 'SEM IV', 'icon': '🎓', 'color': '#E91E63'},
    'neet': {'name': 'NEET', 'icon': '🏥', 'color': '#00BCD4'},
    'jee': {'name': 'JEE', 'icon': '⚡', 'color': '#FFC107'},
}

DEFAULT_TEST_TYPES = (
    {'id': 'mock-test', 'name': 'Mock Test', 'icon': '📝', 'color': '#4CAF50'},
    {'id': 'assignments', 'name': 'Assignments', 'icon': '📋', 'color': '#2196F3'},
)

DEFAULT_SUBJECT_ICONS = {
    'mathematics': '🔢',
    'physics': '⚛️',
    'chemistry': '🧪',
    'biology': '🧬',
    'english': '📚',
    'hindi': '📖',
    'social': '🌍',
    'computer': '💻',
}
DEFAULT_SUBJECT_ICON = '📘'


@dataclass(frozen=True)
class Catalogue:
    """Display metadata for taxonomy nodes whose records carry no label/icon."""

    classes: Dict[str, dict] = field(default_factory=lambda: dict(DEFAULT_CLASSES))
    test_types: Tuple[dict, ...] = DEFAULT_TEST_TYPES
    subject_icons: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SUBJECT_ICONS))

    def class_label(self, class_id):
        return (self.classes.get(class_id) or {}).get('name') or class_id

    def class_meta(self, class_id):
        return self.classes.get(class_id) or {}

    def subject_label(self, subject_id):
        subject_id = str(subject_id or '')
        return subject_id[:1].upper() + subject_id[1:]

    def subject_icon(self, subject_id):
        return self.subject_icons.get(str(subject_id or '').lower(), DEFAULT_SUBJECT_ICON)

    def test_type_label(self, type_id):
        for test_type in self.test_types:
            if test_type['id'] == type_id:
                return test_type['name']
        return type_id


def load_catalogue(path='') -> Catalogue:
    """Resolve the display catalogue.

    Precedence: the JSON file at ``path`` (its missing keys keep the built-in
    value), then the built-in defaults. A configured file that cannot be read
    or parsed is a startup error.
    """
    if not path:
        return Catalogue()
    try:
        with open(path, 'r', encoding='utf-8') as handle:
            data = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise ValueError(f'Could not load catalogue file {path}: {exc}') from exc
    if not isinstance(data, dict):
        raise ValueError(f'Catalogue file {path} must contain a JSON object')

    classes = data.get('classes', DEFAULT_CLASSES)
    test_types = data.get('testTypes', DEFAULT_TEST_TYPES)
    subject_icons = data.get('subjectIcons', DEFAULT_SUBJECT_ICONS)
    if not isinstance(classes, dict) or not isinstance(subject_icons, dict) or not isinstance(test_types, (list, tuple)):
        raise ValueError(f'Catalogue file {path} has malformed sections')
    for entry in test_types:
        if not isinstance(entry, dict) or not entry.get('id') or not entry.get('name'):
            raise ValueError(f'Catalogue file {path} has a test type without id/name')
    return Catalogue(
        classes={str(key): dict(value) for key, value in classes.items()},
        test_types=tuple(dict(entry) for entry in test_types),
        subject_icons={str(key).lower(): str(value) for key, value in subject_icons.items()},
    )
