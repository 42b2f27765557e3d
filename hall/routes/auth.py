"""
Authentication routes: student and admin login, student registration.
"""

import logging

from flask import Blueprint, jsonify

from hall.routes import get_manager, json_body, respond, error_response, server_error

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/student/login', methods=['POST'])
def student_login():
    """Student login with student id and password"""
    try:
        data = json_body()
        student_id = (data.get('student_id') or '').strip()
        password = data.get('password') or ''

        if not student_id or not password:
            return error_response('Please provide both student ID and password.')

        result = get_manager('auth_manager').authenticate_student(student_id, password)
        if not result:
            return error_response('Invalid student ID or password', 401)

        return jsonify({
            'success': True,
            'message': 'Login successful',
            'token': result['token'],
            'student': result['student']
        })

    except Exception as e:
        return server_error('Processing student login', e)


@auth_bp.route('/admin/login', methods=['POST'])
def admin_login():
    """Admin login with admin id and password"""
    try:
        data = json_body()
        admin_id = (data.get('admin_id') or '').strip()
        password = data.get('password') or ''

        if not admin_id or not password:
            return error_response('Please provide both admin ID and password.')

        result = get_manager('auth_manager').authenticate_admin(admin_id, password)
        if not result:
            return error_response('Invalid admin ID or password', 401)

        return jsonify({
            'success': True,
            'message': 'Login successful',
            'token': result['token'],
            'admin': result['admin']
        })

    except Exception as e:
        return server_error('Processing admin login', e)


@auth_bp.route('/student/register', methods=['POST'])
def student_register():
    """Register a student account"""
    try:
        return respond(get_manager('auth_manager').register_student(json_body()), 201)
    except Exception as e:
        return server_error('Registering student', e)
