"""
Hall Management System - Main Application

This module serves as the main entry point for the Hall Management System
REST backend. It configures logging, builds the Flask application and runs
the development server.

Features:
- Student registration and JWT login
- Room allotment workflow with bed-level allocation
- Semester dues paid through SSLCommerz
- Complaints, blood requests, gallery and notice board
- Admin dashboard and CSV/Excel exports
"""

import logging
import os

from hall import create_app

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
)
logger = logging.getLogger(__name__)

app = create_app(os.environ.get('FLASK_ENV'))

if __name__ == '__main__':
    logger.info(f"Database ready at {app.config['DATABASE_PATH']}")

    # Run the application
    app.run(debug=app.config.get('DEBUG', False), host='0.0.0.0', port=int(os.environ.get('PORT', 5000)))
