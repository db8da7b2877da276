"""Business logic handlers for session, navigation and content APIs."""

import logging

from coaching_portal.errors import NotFound, PortalError
from coaching_portal.logging_config import log_event
from coaching_portal.models import LEVELS, PAYLOAD_FIELDS, Selections
from coaching_portal.services import access_service, auth_service, file_service
from coaching_portal.services.navigation_service import NavigationStateMachine, RecordingHistory


# --- session ---

def login(app_ctx, request):
    data = request.get_json(silent=True) or {}
    user_id = auth_service.normalize_user_id(data.get('userId'))
    password = data.get('password') or ''
    if not user_id or not isinstance(password, str) or not password:
        return app_ctx.jsonify({'error': 'User ID and password are required'}), 400

    allowed, retry_after = app_ctx.check_login_attempt(client_ip=request.remote_addr, user_id=user_id)
    if not allowed:
        log_event(app_ctx.logger, logging.WARNING, 'login_throttled', user_id=user_id, retry_after=retry_after)
        return app_ctx.build_rate_limited_response('Too many login attempts. Please wait and try again.', retry_after)

    session = auth_service.authenticate(app_ctx.db, user_id, password, app_ctx.logger)
    if session is None:
        log_event(app_ctx.logger, logging.WARNING, 'login_failed', user_id=user_id)
        return app_ctx.jsonify({'error': 'Invalid credentials'}), 401

    app_ctx.session_store(request).save(session)
    app_ctx.clear_navigation(request)
    log_event(app_ctx.logger, logging.INFO, 'login_succeeded', user_id=session.user_id, role=session.role)
    return app_ctx.jsonify({'ok': True, 'user': auth_service.public_user(session)})


def logout(app_ctx, request):
    app_ctx.session_store(request).clear()
    app_ctx.clear_navigation(request)
    return app_ctx.jsonify({'ok': True})


def current_session(app_ctx, request):
    store = app_ctx.session_store(request)
    session = store.require()
    return app_ctx.jsonify({
        'user': auth_service.public_user(session),
        'loginTime': session.login_time,
        'expiresAt': store.expires_at(session),
    })


# --- navigation ---

def view_payload(machine, items, history):
    return {
        'view': machine.depth,
        'selections': machine.selections.to_payload(),
        'breadcrumb': list(machine.breadcrumb),
        'items': [entry.to_dict() for entry in (items or [])],
        'history': list(history.instructions),
    }


def _restore_machine(app_ctx, request, session, history):
    return NavigationStateMachine.restore(
        app_ctx.load_navigation(request),
        session,
        app_ctx.build_resolver(),
        history,
        logger=app_ctx.logger,
    )


def _respond_with_view(app_ctx, request, machine, history):
    # The transition is already applied; persist it before listing children.
    app_ctx.save_navigation(request, machine.snapshot())
    try:
        items = machine.load_children()
    except PortalError as exc:
        body = view_payload(machine, [], history)
        body.update(exc.to_payload())
        return app_ctx.jsonify(body), exc.status_code
    return app_ctx.jsonify(view_payload(machine, items, history))


def start_navigation(app_ctx, request):
    session = app_ctx.session_store(request).require()
    history = RecordingHistory()
    machine = NavigationStateMachine(session, app_ctx.build_resolver(), history, logger=app_ctx.logger)
    return _respond_with_view(app_ctx, request, machine, history)


def current_view(app_ctx, request):
    session = app_ctx.session_store(request).require()
    history = RecordingHistory()
    machine = _restore_machine(app_ctx, request, session, history)
    return _respond_with_view(app_ctx, request, machine, history)


def select(app_ctx, request):
    session = app_ctx.session_store(request).require()
    data = request.get_json(silent=True) or {}
    level = str(data.get('level') or '').strip()
    key = str(data.get('key') or '').strip()
    if not level or not key:
        return app_ctx.jsonify({'error': 'level and key are required'}), 400

    history = RecordingHistory()
    machine = _restore_machine(app_ctx, request, session, history)
    machine.select(level, key)
    return _respond_with_view(app_ctx, request, machine, history)


def pop(app_ctx, request):
    session = app_ctx.session_store(request).require()
    data = request.get_json(silent=True) or {}
    history = RecordingHistory()
    machine = _restore_machine(app_ctx, request, session, history)
    history.deliver_pop(data.get('state'))
    return _respond_with_view(app_ctx, request, machine, history)


# --- stateless listing ---

def list_level(app_ctx, request, level):
    session = app_ctx.session_store(request).require()
    if level not in LEVELS:
        return app_ctx.jsonify({'error': f'Unknown level: {level}'}), 404

    needed = LEVELS.index(level)
    keys = []
    for name in PAYLOAD_FIELDS[:needed]:
        value = str(request.args.get(name, '') or '').strip()
        if not value:
            return app_ctx.jsonify({'error': f'{name} is required to list {level}'}), 400
        keys.append(value)
    selections = Selections.from_keys(keys)

    if selections.class_id is not None:
        access_service.ensure_access(
            session,
            selections.class_id,
            selections.subject_id,
            selections.type_id,
            logger=app_ctx.logger,
        )
    entries = app_ctx.build_resolver().list_children(level, selections, session)
    return app_ctx.jsonify({'level': level, 'items': [entry.to_dict() for entry in entries]})


# --- content actions ---

def _authorized_item(app_ctx, request, pdf_key):
    session = app_ctx.session_store(request).require()
    item = app_ctx.build_resolver().content_item(pdf_key)
    access_service.ensure_access(session, item.class_id, item.subject_id, item.type_id, logger=app_ctx.logger)
    if not item.storage_locator:
        raise NotFound('PDF link not available')
    return session, item


def view_content(app_ctx, request, pdf_key):
    session, item = _authorized_item(app_ctx, request, pdf_key)
    log_event(app_ctx.logger, logging.INFO, 'content_viewed', user_id=session.user_id, pdf_key=pdf_key)
    return app_ctx.jsonify({'url': item.storage_locator, 'fileName': item.file_name or item.display_name})


def download_content(app_ctx, request, pdf_key):
    session, item = _authorized_item(app_ctx, request, pdf_key)
    log_event(app_ctx.logger, logging.INFO, 'content_downloaded', user_id=session.user_id, pdf_key=pdf_key)
    return app_ctx.jsonify({
        'url': file_service.download_link(item.storage_locator),
        'fileName': item.file_name or item.display_name,
    })
