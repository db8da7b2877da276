"""Firebase and Sentry initialisation for the portal runtime."""

import json
import os

import firebase_admin
import sentry_sdk
from firebase_admin import credentials, firestore, storage
from sentry_sdk.integrations.flask import FlaskIntegration

CREDENTIALS_FILE = 'firebase-credentials.json'


def load_firebase_credentials():
    if os.path.exists(CREDENTIALS_FILE):
        return credentials.Certificate(CREDENTIALS_FILE)
    firebase_creds_raw = (os.getenv('FIREBASE_CREDENTIALS', '') or '').strip()
    if not firebase_creds_raw:
        raise ValueError('FIREBASE_CREDENTIALS is not set and firebase-credentials.json was not found.')
    return credentials.Certificate(json.loads(firebase_creds_raw))


def init_firebase(config, logger=None):
    """Return ``(db, bucket, error)``; db/bucket are None when Firebase is unavailable."""
    try:
        cred = load_firebase_credentials()
        if not firebase_admin._apps:
            options = {'storageBucket': config.storage_bucket} if config.storage_bucket else None
            firebase_admin.initialize_app(cred, options)
        db = firestore.client()
    except Exception as exc:
        if logger is not None:
            logger.info(f"⚠️ Firebase initialization skipped: {exc}")
        return None, None, str(exc)

    bucket = None
    if config.storage_bucket:
        try:
            bucket = storage.bucket(config.storage_bucket)
        except Exception as exc:
            if logger is not None:
                logger.info(f"⚠️ Storage bucket unavailable, uploads disabled: {exc}")
    return db, bucket, ''


def init_sentry(config):
    if not config.sentry_dsn:
        return False
    sentry_sdk.init(
        dsn=config.sentry_dsn,
        integrations=[FlaskIntegration()],
        traces_sample_rate=0.0,
        send_default_pii=False,
        environment=config.sentry_environment,
        release=config.sentry_release,
    )
    return True


def init_extensions(app, **services) -> None:
    if app is None:
        return
    app.extensions.setdefault('coaching_portal', {})
    app.extensions['coaching_portal'].update(services)
