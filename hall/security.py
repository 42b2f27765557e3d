"""
Request authentication for the Hall Management System API.

Routes are protected with bearer JWTs issued by AuthManager. The decoded
claims are placed on ``flask.g.current_user`` for the view.
"""

from functools import wraps
import logging

from flask import current_app, g, jsonify, request

from hall.modules.auth_manager import ROLE_ADMIN, ROLE_STUDENT

logger = logging.getLogger(__name__)


def _bearer_token():
    header = request.headers.get('Authorization', '')
    if header.lower().startswith('bearer '):
        return header[7:].strip() or None
    return None


def _authenticate():
    """Decode the request's token into g.current_user. Returns an error response or None."""
    token = _bearer_token()
    if not token:
        return jsonify({'success': False, 'message': 'Authentication required'}), 401

    claims = current_app.extensions['hall']['auth_manager'].decode_token(token)
    if not claims:
        return jsonify({'success': False, 'message': 'Invalid or expired token'}), 401

    g.current_user = claims
    return None


def token_required(f):
    """Decorator to require a valid token of any role"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        error = _authenticate()
        if error:
            return error
        return f(*args, **kwargs)
    return decorated_function


def roles_required(*roles):
    """Decorator factory requiring a valid token whose role is one of ``roles``."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            error = _authenticate()
            if error:
                return error
            if g.current_user.get('role') not in roles:
                logger.warning(f"Role {g.current_user.get('role')} denied access to {request.path}")
                return jsonify({'success': False, 'message': 'You do not have permission to access this resource'}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


student_required = roles_required(ROLE_STUDENT)
admin_required = roles_required(ROLE_ADMIN)


def current_user_id():
    """Student id or admin id of the authenticated caller."""
    return g.current_user['sub']


def current_user_pk():
    """Database id of the authenticated caller."""
    return g.current_user['pk']


def is_admin():
    return g.current_user.get('role') == ROLE_ADMIN
