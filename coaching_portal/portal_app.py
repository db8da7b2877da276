import logging
import os
import sys
import time
import uuid
from datetime import timedelta

import sentry_sdk
from dotenv import load_dotenv
from firebase_admin import firestore
from flask import Flask, g, jsonify, request, session as flask_session
from werkzeug.exceptions import RequestEntityTooLarge

from coaching_portal.config import load_catalogue, load_config
from coaching_portal.errors import PortalError
from coaching_portal.extensions import init_firebase, init_sentry
from coaching_portal.logging_config import configure_logging
from coaching_portal.services import admin_api_service, portal_api_service, rate_limit_service
from coaching_portal.services.session_service import (
    SessionStore,
    navigation_key,
    session_key,
    tab_id_from_request,
)
from coaching_portal.services.taxonomy_service import FirestoreListing, TaxonomyResolver

load_dotenv()
config = load_config()
configure_logging(config.log_level)
logger = logging.getLogger('coaching_portal')

app = Flask(__name__)
app.secret_key = config.flask_secret_key or os.urandom(32).hex()
app.permanent_session_lifetime = timedelta(seconds=config.session_max_age_seconds)
app.config['MAX_CONTENT_LENGTH'] = config.max_pdf_upload_bytes + (1024 * 1024)
app.config['SESSION_COOKIE_HTTPONLY'] = True
app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'
app.config['SESSION_COOKIE_SECURE'] = not config.is_dev_like

catalogue = load_catalogue(config.catalogue_file)
db, bucket, FIREBASE_INIT_ERROR = init_firebase(config, logger)
if db is None:
    logger.warning(f"⚠️ Running without Firestore; content APIs will answer 503 ({FIREBASE_INIT_ERROR})")
SENTRY_ENABLED = init_sentry(config)

login_throttle = rate_limit_service.LoginThrottle(
    config.login_rate_limit_max,
    config.login_rate_limit_window_seconds,
    firestore_module=firestore,
    logger=logger,
)


# --- request context ---

@app.before_request
def attach_request_context():
    request_id = str(request.headers.get('X-Request-ID', '') or '').strip()[:120] or uuid.uuid4().hex
    g.request_id = request_id
    if not SENTRY_ENABLED:
        return
    sentry_sdk.set_tag('request.id', request_id)
    sentry_sdk.set_tag('route.path', request.path)
    sentry_sdk.set_tag('route.method', request.method)
    sentry_sdk.set_tag('route.endpoint', request.endpoint or '')
    sentry_sdk.set_tag('route.environment', config.sentry_environment or 'production')


@app.after_request
def attach_response_context(response):
    request_id = str(getattr(g, 'request_id', '') or '').strip()
    if request_id:
        response.headers['X-Request-ID'] = request_id
    if SENTRY_ENABLED:
        sentry_sdk.set_tag('route.status_code', str(response.status_code))
    return response


@app.errorhandler(PortalError)
def handle_portal_error(error):
    return jsonify(error.to_payload()), error.status_code


@app.errorhandler(RequestEntityTooLarge)
def handle_request_entity_too_large(_error):
    limit_mb = config.max_pdf_upload_bytes // (1024 * 1024)
    return jsonify({'error': f'Upload too large. Maximum PDF size is {limit_mb}MB.'}), 413


# --- runtime helpers used by the api services ---

def session_store(req):
    return SessionStore(
        flask_session,
        session_key(tab_id_from_request(req)),
        config.session_max_age_seconds,
        clock=time.time,
    )


def load_navigation(req):
    return flask_session.get(navigation_key(tab_id_from_request(req)))


def save_navigation(req, snapshot):
    flask_session.permanent = True
    flask_session[navigation_key(tab_id_from_request(req))] = snapshot


def clear_navigation(req):
    flask_session.pop(navigation_key(tab_id_from_request(req)), None)


def build_resolver():
    return TaxonomyResolver(FirestoreListing(db, logger), catalogue, logger)


def check_login_attempt(client_ip, user_id):
    return login_throttle.hit(client_ip, user_id, db=db if config.rate_limit_firestore_enabled else None)


def build_rate_limited_response(message, retry_after):
    response = jsonify({
        'error': message,
        'retry_after_seconds': int(max(1, retry_after)),
    })
    response.status_code = 429
    response.headers['Retry-After'] = str(int(max(1, retry_after)))
    return response


def _ctx():
    return sys.modules[__name__]


# --- route implementations ---

def login_impl():
    flask_session.permanent = True
    return portal_api_service.login(_ctx(), request)


def logout_impl():
    return portal_api_service.logout(_ctx(), request)


def current_session_impl():
    return portal_api_service.current_session(_ctx(), request)


def start_navigation_impl():
    return portal_api_service.start_navigation(_ctx(), request)


def current_view_impl():
    return portal_api_service.current_view(_ctx(), request)


def select_impl():
    return portal_api_service.select(_ctx(), request)


def pop_impl():
    return portal_api_service.pop(_ctx(), request)


def list_level_impl(level):
    return portal_api_service.list_level(_ctx(), request, level)


def view_content_impl(pdf_key):
    return portal_api_service.view_content(_ctx(), request, pdf_key)


def download_content_impl(pdf_key):
    return portal_api_service.download_content(_ctx(), request, pdf_key)


def list_users_impl():
    return admin_api_service.list_users(_ctx(), request)


def create_user_impl():
    return admin_api_service.create_user(_ctx(), request)


def update_user_impl(user_id):
    return admin_api_service.update_user(_ctx(), request, user_id)


def delete_user_impl(user_id):
    return admin_api_service.delete_user(_ctx(), request, user_id)


def list_pdfs_impl():
    return admin_api_service.list_pdfs(_ctx(), request)


def upload_pdf_impl():
    return admin_api_service.upload_pdf(_ctx(), request)


def delete_pdf_impl(pdf_key):
    return admin_api_service.delete_pdf(_ctx(), request, pdf_key)


def add_taxonomy_record_impl(collection_name):
    return admin_api_service.add_taxonomy_record(_ctx(), request, collection_name)


def delete_taxonomy_record_impl(collection_name, key):
    return admin_api_service.delete_taxonomy_record(_ctx(), request, collection_name, key)


def admin_overview_impl():
    return admin_api_service.admin_overview(_ctx(), request)


def admin_export_impl():
    return admin_api_service.admin_export(_ctx(), request)


def admin_backup_impl():
    return admin_api_service.admin_backup(_ctx(), request)


@app.route('/healthz')
def healthz():
    return jsonify({'status': 'ok'}), 200


from coaching_portal.blueprints import admin_bp, auth_bp, portal_bp  # noqa: E402

app.register_blueprint(auth_bp)
app.register_blueprint(portal_bp)
app.register_blueprint(admin_bp)
