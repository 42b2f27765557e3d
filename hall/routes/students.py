"""
Student routes: admin directory, profiles, admin room actions and
student password changes.
"""

from flask import Blueprint, jsonify, request

from hall.routes import get_manager, json_body, respond, error_response, server_error, page_args
from hall.security import (token_required, student_required, admin_required,
                           current_user_id, current_user_pk, is_admin)

students_bp = Blueprint('students', __name__)


def _can_access(student_pk):
    return is_admin() or current_user_pk() == student_pk


@students_bp.route('/admin', methods=['GET'])
@admin_required
def admin_directory():
    """Searchable, filterable and paginated student directory"""
    try:
        page, page_size = page_args()
        filters = {
            'search': request.args.get('search'),
            'department': request.args.get('department'),
            'year': request.args.get('year'),
            'blood_group': request.args.get('blood_group') or request.args.get('bloodGroup'),
            'room_status': request.args.get('room_status') or request.args.get('roomStatus'),
            'sort_by': request.args.get('sort_by') or request.args.get('sortBy'),
            'sort_order': request.args.get('sort_order') or request.args.get('sortOrder'),
            'page': page,
            'page_size': page_size
        }
        return respond(get_manager('student_manager').get_students_for_admin(filters))
    except Exception as e:
        return server_error('Loading students', e)


@students_bp.route('', methods=['GET'])
@admin_required
def list_students():
    """All active students"""
    try:
        return jsonify({'success': True, 'students': get_manager('student_manager').get_all_students()})
    except Exception as e:
        return server_error('Loading students', e)


@students_bp.route('/current', methods=['GET'])
@student_required
def current_student():
    """The logged-in student's profile"""
    try:
        student = get_manager('student_manager').get_student_by_number(current_user_id())
        if not student:
            return error_response('Student not found', 404)
        return jsonify({'success': True, 'student': student})
    except Exception as e:
        return server_error('Loading student profile', e)


@students_bp.route('/<int:student_pk>', methods=['GET'])
@token_required
def get_student(student_pk):
    """A student by database id (own record for students)"""
    try:
        if not _can_access(student_pk):
            return error_response('You can only view your own profile', 403)

        student = get_manager('student_manager').get_student_by_id(student_pk)
        if not student:
            return error_response('Student not found', 404)
        return jsonify({'success': True, 'student': student})
    except Exception as e:
        return server_error('Loading student', e)


@students_bp.route('/by-student-id/<student_number>', methods=['GET'])
@token_required
def get_student_by_number(student_number):
    """A student by student id (own record for students)"""
    try:
        if not is_admin() and current_user_id() != student_number:
            return error_response('You can only view your own profile', 403)

        student = get_manager('student_manager').get_student_by_number(student_number)
        if not student:
            return error_response('Student not found', 404)
        return jsonify({'success': True, 'student': student})
    except Exception as e:
        return server_error('Loading student', e)


@students_bp.route('/<int:student_pk>', methods=['PUT'])
@students_bp.route('/<int:student_pk>/profile', methods=['PUT'])
@token_required
def update_profile(student_pk):
    """Update a student's profile (own record for students)"""
    try:
        if not _can_access(student_pk):
            return error_response('You can only update your own profile', 403)
        return respond(get_manager('student_manager').update_profile(student_pk, json_body()))
    except Exception as e:
        return server_error('Updating student profile', e)


@students_bp.route('/<int:student_pk>/cancel-room', methods=['POST'])
@admin_required
def cancel_room(student_pk):
    """Cancel a student's room allocation"""
    try:
        return respond(get_manager('allotment_manager').cancel_allocation_by_admin(student_pk))
    except Exception as e:
        return server_error('Cancelling room allocation', e)


@students_bp.route('/<int:student_pk>', methods=['DELETE'])
@students_bp.route('/<int:student_pk>/admin-delete', methods=['DELETE'])
@admin_required
def admin_delete(student_pk):
    """Delete a student and their dependent records"""
    try:
        return respond(get_manager('student_manager').delete_student(student_pk))
    except Exception as e:
        return server_error('Deleting student', e)


@students_bp.route('/admin/bulk-delete', methods=['POST'])
@admin_required
def bulk_delete():
    """Delete several students by student id"""
    try:
        student_ids = json_body().get('student_ids') or []
        if not isinstance(student_ids, list):
            return error_response('student_ids must be a list')
        return respond(get_manager('student_manager').bulk_delete_students(student_ids))
    except Exception as e:
        return server_error('Deleting students', e)


@students_bp.route('/<int:student_pk>/admin-allocate-room', methods=['POST'])
@admin_required
def admin_allocate_room(student_pk):
    """Allocate a bed to a student directly"""
    try:
        data = json_body()
        result = get_manager('allotment_manager').admin_direct_allocate(
            student_pk, data.get('block'), data.get('room_no'), data.get('bed_no'),
            data.get('admin_notes') or '', current_user_id()
        )
        return respond(result)
    except Exception as e:
        return server_error('Allocating room', e)


@students_bp.route('/<int:student_pk>/change-password', methods=['POST'])
@student_required
def change_password(student_pk):
    """Change the logged-in student's password"""
    try:
        if current_user_pk() != student_pk:
            return error_response('You can only change your own password', 403)

        data = json_body()
        if data.get('new_password') != data.get('confirm_password', data.get('new_password')):
            return error_response('New password and confirmation do not match')

        result = get_manager('auth_manager').change_student_password(
            student_pk, data.get('current_password'), data.get('new_password')
        )
        return respond(result)
    except Exception as e:
        return server_error('Changing password', e)
