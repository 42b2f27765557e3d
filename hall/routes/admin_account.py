"""
Admin account routes: current admin, profile update and password change.
"""

from flask import Blueprint, jsonify

from hall.routes import get_manager, json_body, respond, error_response, server_error
from hall.security import admin_required, current_user_id

admin_account_bp = Blueprint('admin_account', __name__)


@admin_account_bp.route('/current', methods=['GET'])
@admin_required
def current_admin():
    """The logged-in admin's profile"""
    try:
        admin = get_manager('auth_manager').get_admin_by_admin_id(current_user_id())
        if not admin:
            return error_response('Admin not found', 404)
        return jsonify({'success': True, 'admin': admin})
    except Exception as e:
        return server_error('Loading admin profile', e)


@admin_account_bp.route('/<int:admin_pk>/profile', methods=['PUT'])
@admin_required
def update_profile(admin_pk):
    """Update the logged-in admin's profile"""
    try:
        result = get_manager('auth_manager').update_admin_profile(admin_pk, current_user_id(), json_body())
        return respond(result)
    except Exception as e:
        return server_error('Updating admin profile', e)


@admin_account_bp.route('/<int:admin_pk>/change-password', methods=['POST'])
@admin_required
def change_password(admin_pk):
    """Change the logged-in admin's password"""
    try:
        data = json_body()
        if data.get('new_password') != data.get('confirm_password', data.get('new_password')):
            return error_response('New password and confirmation do not match')

        result = get_manager('auth_manager').change_admin_password(
            admin_pk, current_user_id(), data.get('current_password'), data.get('new_password')
        )
        return respond(result)
    except Exception as e:
        return server_error('Changing admin password', e)
