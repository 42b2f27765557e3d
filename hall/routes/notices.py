"""
Notice board routes.
"""

from flask import Blueprint, current_app, jsonify

from hall.routes import get_manager, json_body, respond, error_response, server_error, page_args
from hall.security import token_required, student_required, admin_required, current_user_pk

notices_bp = Blueprint('notices', __name__)


@notices_bp.route('', methods=['POST'])
@admin_required
def create_notice():
    try:
        data = json_body()
        result = get_manager('notice_manager').create_notice(
            current_user_pk(), data.get('subject'), data.get('description'),
            data.get('attachment_url'), data.get('attachment_file_name'), data.get('attachment_type')
        )
        return respond(result, 201)
    except Exception as e:
        return server_error('Creating notice', e)


@notices_bp.route('/admin', methods=['GET'])
@admin_required
def admin_notices():
    """The logged-in admin's notices with read counts"""
    try:
        notices = get_manager('notice_manager').get_admin_notices(current_user_pk())
        return jsonify({'success': True, 'notices': notices})
    except Exception as e:
        return server_error('Loading notices', e)


@notices_bp.route('/student', methods=['GET'])
@student_required
def student_notices():
    """Paginated notice feed with read flags"""
    try:
        page, page_size = page_args(default_size=current_app.config.get('NOTICE_PAGE_SIZE', 10))
        feed = get_manager('notice_manager').get_student_notices(current_user_pk(), page, page_size)
        return jsonify({'success': True, **feed})
    except Exception as e:
        return server_error('Loading notices', e)


@notices_bp.route('/student/unread-count', methods=['GET'])
@student_required
def unread_count():
    try:
        count = get_manager('notice_manager').get_unread_count(current_user_pk())
        return jsonify({'success': True, 'unread_count': count})
    except Exception as e:
        return server_error('Loading unread count', e)


@notices_bp.route('/<int:notice_id>', methods=['GET'])
@token_required
def get_notice(notice_id):
    try:
        notice = get_manager('notice_manager').get_notice(notice_id)
        if not notice:
            return error_response('Notice not found', 404)
        return jsonify({'success': True, 'notice': notice})
    except Exception as e:
        return server_error('Loading notice', e)


@notices_bp.route('/<int:notice_id>/read', methods=['POST'])
@student_required
def mark_read(notice_id):
    try:
        return respond(get_manager('notice_manager').mark_as_read(notice_id, current_user_pk()))
    except Exception as e:
        return server_error('Marking notice as read', e)


@notices_bp.route('/<int:notice_id>', methods=['DELETE'])
@admin_required
def delete_notice(notice_id):
    try:
        return respond(get_manager('notice_manager').delete_notice(notice_id))
    except Exception as e:
        return server_error('Deleting notice', e)
