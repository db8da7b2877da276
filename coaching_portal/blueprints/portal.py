from flask import Blueprint

portal_bp = Blueprint('portal_api', __name__)


@portal_bp.route('/api/navigation/start', methods=['POST'])
def start_navigation():
    from coaching_portal import portal_app

    return portal_app.start_navigation_impl()


@portal_bp.route('/api/navigation', methods=['GET'])
def current_view():
    from coaching_portal import portal_app

    return portal_app.current_view_impl()


@portal_bp.route('/api/navigation/select', methods=['POST'])
def select():
    from coaching_portal import portal_app

    return portal_app.select_impl()


@portal_bp.route('/api/navigation/pop', methods=['POST'])
def pop():
    from coaching_portal import portal_app

    return portal_app.pop_impl()


@portal_bp.route('/api/listing/<level>', methods=['GET'])
def list_level(level):
    from coaching_portal import portal_app

    return portal_app.list_level_impl(level)


@portal_bp.route('/api/content/<pdf_key>/view', methods=['GET'])
def view_content(pdf_key):
    from coaching_portal import portal_app

    return portal_app.view_content_impl(pdf_key)


@portal_bp.route('/api/content/<pdf_key>/download', methods=['GET'])
def download_content(pdf_key):
    from coaching_portal import portal_app

    return portal_app.download_content_impl(pdf_key)
