# Hall Management System - App Package
"""
Main application package for the Hall Management System.
This package contains the Flask application factory and all its modules.
"""

__version__ = "1.0.0"
__author__ = "Hall Management Team"
__description__ = "A Flask REST backend for residential hall rooms, dues and student services"

import logging

from flask import Flask, jsonify
from flask_cors import CORS

from config import init_config

# Import core components for easy access
from .modules.database_manager import DatabaseManager
from .modules.auth_manager import AuthManager
from .modules.room_manager import RoomManager
from .modules.student_manager import StudentManager
from .modules.allotment_manager import AllotmentManager
from .modules.payment_manager import PaymentManager
from .modules.complaint_manager import ComplaintManager
from .modules.blood_request_manager import BloodRequestManager
from .modules.gallery_manager import GalleryManager
from .modules.notice_manager import NoticeManager
from .modules.dashboard_manager import DashboardManager
from .modules.report_generator import ReportGenerator

logger = logging.getLogger(__name__)


def create_app(config_name=None, overrides=None):
    """
    Build the Flask application.

    Args:
        config_name (str): 'development', 'testing' or 'production'
            (FLASK_ENV when omitted)
        overrides (dict): Settings applied on top of the configuration class

    Returns:
        Flask: Configured application
    """
    app = Flask(__name__)
    init_config(app, config_name)
    if overrides:
        app.config.update(overrides)

    # Initialize system components
    db_manager = DatabaseManager(app.config['DATABASE_PATH'], app.config)
    room_manager = RoomManager(db_manager, app.config)
    student_manager = StudentManager(db_manager, room_manager)
    allotment_manager = AllotmentManager(db_manager, room_manager)
    payment_manager = PaymentManager(db_manager, app.config)
    complaint_manager = ComplaintManager(db_manager)
    gallery_manager = GalleryManager(db_manager)

    app.extensions['hall'] = {
        'db_manager': db_manager,
        'auth_manager': AuthManager(db_manager, app.config),
        'room_manager': room_manager,
        'student_manager': student_manager,
        'allotment_manager': allotment_manager,
        'payment_manager': payment_manager,
        'complaint_manager': complaint_manager,
        'blood_request_manager': BloodRequestManager(db_manager),
        'gallery_manager': gallery_manager,
        'notice_manager': NoticeManager(db_manager),
        'dashboard_manager': DashboardManager(db_manager, room_manager, student_manager, allotment_manager,
                                              complaint_manager, gallery_manager, payment_manager),
        'report_generator': ReportGenerator(db_manager, app.config),
    }

    from .routes import register_blueprints
    register_blueprints(app)

    _register_cors(app)
    _register_error_handlers(app)

    logger.info(f"Hall Management System initialized ({config_name or 'default'} configuration)")
    return app


def _register_cors(app):
    """Allow the configured frontend origin to call the API."""
    CORS(app, resources={r'/api/*': {'origins': [app.config.get('FRONTEND_URL')]}},
         supports_credentials=True,
         allow_headers=['Authorization', 'Content-Type'],
         methods=['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'])


def _register_error_handlers(app):
    """JSON bodies for errors raised outside the views."""

    @app.errorhandler(400)
    def bad_request(error):
        return jsonify({'success': False, 'message': 'Bad request'}), 400

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'success': False, 'message': 'Resource not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'success': False, 'message': 'Method not allowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        logger.error(f"Unhandled server error: {str(error)}")
        return jsonify({'success': False, 'message': 'An internal error occurred'}), 500


__all__ = [
    'create_app',
    'DatabaseManager',
    'AuthManager',
    'RoomManager',
    'StudentManager',
    'AllotmentManager',
    'PaymentManager',
    'ComplaintManager',
    'BloodRequestManager',
    'GalleryManager',
    'NoticeManager',
    'DashboardManager',
    'ReportGenerator'
]
