from flask import Blueprint

admin_bp = Blueprint('admin_api', __name__)


@admin_bp.route('/api/admin/users', methods=['GET'])
def list_users():
    from coaching_portal import portal_app

    return portal_app.list_users_impl()


@admin_bp.route('/api/admin/users', methods=['POST'])
def create_user():
    from coaching_portal import portal_app

    return portal_app.create_user_impl()


@admin_bp.route('/api/admin/users/<user_id>', methods=['PUT'])
def update_user(user_id):
    from coaching_portal import portal_app

    return portal_app.update_user_impl(user_id)


@admin_bp.route('/api/admin/users/<user_id>', methods=['DELETE'])
def delete_user(user_id):
    from coaching_portal import portal_app

    return portal_app.delete_user_impl(user_id)


@admin_bp.route('/api/admin/pdfs', methods=['GET'])
def list_pdfs():
    from coaching_portal import portal_app

    return portal_app.list_pdfs_impl()


@admin_bp.route('/api/admin/pdfs', methods=['POST'])
def upload_pdf():
    from coaching_portal import portal_app

    return portal_app.upload_pdf_impl()


@admin_bp.route('/api/admin/pdfs/<pdf_key>', methods=['DELETE'])
def delete_pdf(pdf_key):
    from coaching_portal import portal_app

    return portal_app.delete_pdf_impl(pdf_key)


@admin_bp.route('/api/admin/taxonomy/<collection_name>', methods=['POST'])
def add_taxonomy_record(collection_name):
    from coaching_portal import portal_app

    return portal_app.add_taxonomy_record_impl(collection_name)


@admin_bp.route('/api/admin/taxonomy/<collection_name>/<key>', methods=['DELETE'])
def delete_taxonomy_record(collection_name, key):
    from coaching_portal import portal_app

    return portal_app.delete_taxonomy_record_impl(collection_name, key)


@admin_bp.route('/api/admin/overview', methods=['GET'])
def admin_overview():
    from coaching_portal import portal_app

    return portal_app.admin_overview_impl()


@admin_bp.route('/api/admin/export', methods=['GET'])
def admin_export():
    from coaching_portal import portal_app

    return portal_app.admin_export_impl()


@admin_bp.route('/api/admin/backup', methods=['GET'])
def admin_backup():
    from coaching_portal import portal_app

    return portal_app.admin_backup_impl()
