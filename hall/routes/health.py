"""
Health check routes.
"""

from datetime import datetime, timezone
import os
import platform
import logging
import time

from flask import Blueprint, jsonify

import hall
from hall.modules import get_module_info
from hall.routes import get_manager

logger = logging.getLogger(__name__)

health_bp = Blueprint('health', __name__)

STARTED_AT = time.time()


def _utc_timestamp():
    return datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%fZ')


def _environment():
    return os.environ.get('FLASK_ENV', 'production')


@health_bp.route('', methods=['GET'])
def health():
    return jsonify({
        'status': 'healthy',
        'message': 'Backend API is running successfully!',
        'timestamp': _utc_timestamp(),
        'environment': _environment(),
        'version': hall.__version__
    })


@health_bp.route('/ping', methods=['GET'])
def ping():
    return jsonify({'message': 'pong', 'timestamp': _utc_timestamp()})


@health_bp.route('/detailed', methods=['GET'])
def detailed():
    """System details plus a database round trip"""
    try:
        get_manager('db_manager').execute_query("SELECT 1 as ok", fetch_all=False)
        database = 'connected'
    except Exception as e:
        logger.error(f"Health check database query failed: {str(e)}")
        database = 'unavailable'

    return jsonify({
        'status': 'healthy' if database == 'connected' else 'degraded',
        'message': 'Hall Management System Backend API',
        'timestamp': _utc_timestamp(),
        'uptime': int(time.time() - STARTED_AT),
        'environment': _environment(),
        'platform': platform.system(),
        'python_version': platform.python_version(),
        'machine_name': platform.node(),
        'processor_count': os.cpu_count(),
        'database': database,
        'modules': sorted(get_module_info()),
        'version': hall.__version__,
        'endpoints': [
            '/api/health - Basic health check',
            '/api/health/ping - Simple ping endpoint',
            '/api/health/detailed - Detailed system information'
        ]
    })
