# Hall Management System - Routes Package
"""
REST blueprints for the Hall Management System. Every area is mounted under
``/api/<area>`` and answers with JSON.
"""

import logging

from flask import current_app, jsonify, request

logger = logging.getLogger(__name__)


def get_manager(name):
    """Look up a component built by create_app."""
    return current_app.extensions['hall'][name]


def json_body():
    """The request's JSON object, or an empty dict."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def respond(result, success_status=200):
    """
    Turn a manager result dict into a JSON response.

    Failures carry their message under 'message' and use the result's
    'status' (400 when absent).

    Args:
        result (dict): Manager result with 'success' and optional 'error' / 'status'
        success_status (int): HTTP status for a successful result

    Returns:
        tuple: (response, status)
    """
    if result.get('success'):
        body = {key: value for key, value in result.items() if key not in ('status', 'error')}
        return jsonify(body), success_status

    return jsonify({
        'success': False,
        'message': result.get('error') or result.get('message') or 'Request failed'
    }), result.get('status', 400)


def error_response(message, status=400):
    return jsonify({'success': False, 'message': message}), status


def server_error(context, error):
    """Log an unexpected exception and answer 500."""
    logger.error(f"{context}: {str(error)}")
    return jsonify({'success': False, 'message': f'An error occurred while {context.lower()}'}), 500


def page_args(default_size=None):
    """Read page and page_size (or pageSize) query arguments."""
    page = request.args.get('page', 1, type=int)
    page_size = (request.args.get('page_size', type=int) or request.args.get('pageSize', type=int)
                 or default_size or current_app.config.get('DEFAULT_PAGE_SIZE', 20))
    return max(page, 1), max(page_size, 1)


def register_blueprints(app):
    """Mount every API blueprint on the application."""
    from .auth import auth_bp
    from .admin_account import admin_account_bp
    from .students import students_bp
    from .rooms import rooms_bp
    from .room_allocation import room_allocation_bp
    from .complaints import complaints_bp
    from .payments import payments_bp
    from .blood_requests import blood_requests_bp
    from .gallery import gallery_bp
    from .notices import notices_bp
    from .dashboard import dashboard_bp
    from .reports import reports_bp
    from .health import health_bp

    blueprints = [
        (auth_bp, '/api/auth'),
        (admin_account_bp, '/api/adminaccount'),
        (students_bp, '/api/students'),
        (rooms_bp, '/api/rooms'),
        (room_allocation_bp, '/api/roomallocation'),
        (complaints_bp, '/api/complaints'),
        (payments_bp, '/api/payments'),
        (blood_requests_bp, '/api/bloodrequest'),
        (gallery_bp, '/api/gallery'),
        (notices_bp, '/api/notices'),
        (dashboard_bp, '/api/dashboard'),
        (reports_bp, '/api/reports'),
        (health_bp, '/api/health'),
    ]

    for blueprint, prefix in blueprints:
        app.register_blueprint(blueprint, url_prefix=prefix)
