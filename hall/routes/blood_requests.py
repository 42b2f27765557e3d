"""
Blood request routes.
"""

from flask import Blueprint, jsonify

from hall.routes import get_manager, json_body, respond, server_error
from hall.security import token_required, student_required, current_user_id

blood_requests_bp = Blueprint('blood_requests', __name__)


@blood_requests_bp.route('', methods=['POST'])
@student_required
def create_request():
    """Post a blood requirement and count matching donors"""
    try:
        data = json_body()
        result = get_manager('blood_request_manager').create_request(
            current_user_id(), data.get('blood_group_needed'), data.get('place'),
            data.get('time'), data.get('special_notes')
        )
        return respond(result, 201)
    except Exception as e:
        return server_error('Creating blood request', e)


@blood_requests_bp.route('', methods=['GET'])
@token_required
def active_requests():
    try:
        requests = get_manager('blood_request_manager').get_active_requests()
        return jsonify({'success': True, 'requests': requests})
    except Exception as e:
        return server_error('Loading blood requests', e)
