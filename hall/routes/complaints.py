"""
Complaint routes.
"""

from flask import Blueprint, jsonify

from hall.routes import get_manager, json_body, respond, server_error, page_args
from hall.security import student_required, admin_required, current_user_id, current_user_pk

complaints_bp = Blueprint('complaints', __name__)


@complaints_bp.route('', methods=['GET'])
@admin_required
def list_complaints():
    """Every complaint, newest first"""
    try:
        return jsonify({'success': True, 'complaints': get_manager('complaint_manager').get_all_complaints()})
    except Exception as e:
        return server_error('Loading complaints', e)


@complaints_bp.route('', methods=['POST'])
@student_required
def create_complaint():
    try:
        data = json_body()
        result = get_manager('complaint_manager').create_complaint(
            current_user_id(), data.get('complaint_type'), data.get('short_description'),
            data.get('occurrence_time')
        )
        return respond(result, 201)
    except Exception as e:
        return server_error('Submitting complaint', e)


@complaints_bp.route('/my-complaints', methods=['GET'])
@student_required
def my_complaints():
    try:
        page, page_size = page_args(default_size=10)
        return respond(get_manager('complaint_manager').get_student_complaints(current_user_id(), page, page_size))
    except Exception as e:
        return server_error('Loading complaints', e)


@complaints_bp.route('/stats', methods=['GET'])
@student_required
def my_stats():
    try:
        return respond(get_manager('complaint_manager').get_student_stats(current_user_id()))
    except Exception as e:
        return server_error('Loading complaint statistics', e)


@complaints_bp.route('/student/<int:student_pk>', methods=['GET'])
@admin_required
def student_complaints(student_pk):
    try:
        complaints = get_manager('complaint_manager').get_complaints_by_student_pk(student_pk)
        return jsonify({'success': True, 'complaints': complaints})
    except Exception as e:
        return server_error('Loading complaints', e)


@complaints_bp.route('/<int:complaint_id>/mark-solved', methods=['PUT'])
@admin_required
def mark_solved(complaint_id):
    try:
        result = get_manager('complaint_manager').mark_solved(
            complaint_id, current_user_pk(), json_body().get('admin_response')
        )
        return respond(result)
    except Exception as e:
        return server_error('Updating complaint', e)
