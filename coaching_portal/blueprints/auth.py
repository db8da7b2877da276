from flask import Blueprint

auth_bp = Blueprint('auth_api', __name__)


@auth_bp.route('/api/session/login', methods=['POST'])
def login():
    from coaching_portal import portal_app

    return portal_app.login_impl()


@auth_bp.route('/api/session/logout', methods=['POST'])
def logout():
    from coaching_portal import portal_app

    return portal_app.logout_impl()


@auth_bp.route('/api/session', methods=['GET'])
def current_session():
    from coaching_portal import portal_app

    return portal_app.current_session_impl()
