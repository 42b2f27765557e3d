# Hall Management System Configuration

import os
from datetime import timedelta
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).parent.absolute()


def _env_flag(name, default='False'):
    return os.environ.get(name, default).lower() in ['true', 'on', '1']


class Config:
    """Base configuration class"""

    # Flask Configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'hall-management-secret-key-2025'

    # Database Configuration
    DATABASE_PATH = Path(os.environ.get('DATABASE_PATH') or BASE_DIR / 'database' / 'hall.db')

    # Upload / export Configuration
    EXPORTS_FOLDER = BASE_DIR / 'exports'
    REPORT_RETENTION_DAYS = int(os.environ.get('REPORT_RETENTION_DAYS', 1))
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB max request size

    # JWT Configuration
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or 'hall-management-jwt-key-change-me-2025'
    JWT_ALGORITHM = 'HS256'
    JWT_ISSUER = os.environ.get('JWT_ISSUER') or 'HallManagementSystem'
    JWT_AUDIENCE = os.environ.get('JWT_AUDIENCE') or 'HallManagementClient'
    JWT_EXPIRY_DAYS = int(os.environ.get('JWT_EXPIRY_DAYS') or 30)

    # Security Configuration
    PASSWORD_MIN_LENGTH = 6
    MAX_LOGIN_ATTEMPTS = 5
    LOGIN_LOCKOUT_DURATION = timedelta(minutes=15)
    DEFAULT_ADMIN_ID = os.environ.get('DEFAULT_ADMIN_ID') or 'admin'
    DEFAULT_ADMIN_PASSWORD = os.environ.get('DEFAULT_ADMIN_PASSWORD') or 'admin123'

    # CORS Configuration
    FRONTEND_URL = os.environ.get('FRONTEND_URL') or 'http://localhost:3000'
    BACKEND_URL = os.environ.get('BACKEND_URL') or 'http://localhost:5000'

    # Hall layout
    HALL_FLOORS = [1, 2, 3]
    HALL_BLOCKS = ['A', 'B']
    ROOMS_PER_FLOOR = 15
    BEDS_PER_ROOM = 4
    MAX_ROOM_CAPACITY = 6
    DEFAULT_MONTHLY_RENT = 5000
    DEFAULT_FACILITIES = 'Bed, Study Table, Chair, Wardrobe, Fan, Attached Bathroom'

    # Dues Configuration
    DUES_AMOUNT = 1320  # 6 months dues
    DUES_PERIOD_MONTHS = 6
    DUES_CURRENCY = 'BDT'

    # SSLCommerz Configuration
    SSLCOMMERZ_STORE_ID = os.environ.get('SSLCOMMERZ_STORE_ID') or ''
    SSLCOMMERZ_STORE_PASSWORD = os.environ.get('SSLCOMMERZ_STORE_PASSWORD') or ''
    SSLCOMMERZ_SESSION_API_URL = (os.environ.get('SSLCOMMERZ_SESSION_API_URL') or
                                  'https://sandbox.sslcommerz.com/gwprocess/v4/api.php')
    SSLCOMMERZ_VALIDATION_API_URL = (os.environ.get('SSLCOMMERZ_VALIDATION_API_URL') or
                                     'https://sandbox.sslcommerz.com/validator/api/validationserverAPI.php')
    SSLCOMMERZ_SUCCESS_URL = os.environ.get('SSLCOMMERZ_SUCCESS_URL') or 'http://localhost:3000/api/sslcommerz-callback'
    SSLCOMMERZ_FAIL_URL = os.environ.get('SSLCOMMERZ_FAIL_URL') or 'http://localhost:3000/api/sslcommerz-callback'
    SSLCOMMERZ_CANCEL_URL = os.environ.get('SSLCOMMERZ_CANCEL_URL') or 'http://localhost:3000/student/payments'
    SSLCOMMERZ_TIMEOUT = 30  # seconds

    # Pagination
    DEFAULT_PAGE_SIZE = 20
    NOTICE_PAGE_SIZE = 10

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FILE = BASE_DIR / 'logs' / 'hall.log'
    LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT = 5

    # Development Configuration
    DEBUG = _env_flag('DEBUG')
    TESTING = False

    @classmethod
    def init_app(cls, app):
        """Initialize application configuration"""
        directories = [cls.EXPORTS_FOLDER, cls.LOG_FILE.parent]
        if str(cls.DATABASE_PATH) != ':memory:':
            directories.append(Path(cls.DATABASE_PATH).parent)

        for directory in directories:
            Path(directory).mkdir(parents=True, exist_ok=True)

        # Copy every upper-case setting onto the Flask config
        app.config.update({
            key: getattr(cls, key) for key in dir(cls) if key.isupper()
        })


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False

    DATABASE_PATH = Path(os.environ.get('DATABASE_PATH') or BASE_DIR / 'database' / 'hall_dev.db')

    # More verbose logging
    LOG_LEVEL = 'DEBUG'


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = True

    # Tests pass their own temporary database path
    DATABASE_PATH = Path(os.environ.get('DATABASE_PATH') or BASE_DIR / 'database' / 'hall_test.db')

    # Small lockout window for testing
    MAX_LOGIN_ATTEMPTS = 3
    LOGIN_LOCKOUT_DURATION = timedelta(minutes=1)


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    DATABASE_PATH = Path(os.environ.get('DATABASE_PATH') or BASE_DIR / 'database' / 'hall_prod.db')

    # Production logging
    LOG_LEVEL = 'WARNING'

    @classmethod
    def init_app(cls, app):
        super().init_app(app)

        # Production-specific initialization
        import logging
        from logging.handlers import RotatingFileHandler

        # Setup file logging
        if not app.debug:
            file_handler = RotatingFileHandler(
                cls.LOG_FILE,
                maxBytes=cls.LOG_MAX_BYTES,
                backupCount=cls.LOG_BACKUP_COUNT
            )
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
            ))
            file_handler.setLevel(logging.INFO)
            app.logger.addHandler(file_handler)

            app.logger.setLevel(logging.INFO)
            app.logger.info('Hall Management System startup')


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


# Environment-specific configurations
def get_config():
    """Get configuration based on environment variable"""
    return config.get(os.environ.get('FLASK_ENV', 'default'), DevelopmentConfig)


# Validation functions
def validate_config(config_class=Config):
    """Validate configuration settings"""
    errors = []

    if config_class.BEDS_PER_ROOM < 1 or config_class.BEDS_PER_ROOM > config_class.MAX_ROOM_CAPACITY:
        errors.append(f"BEDS_PER_ROOM must be between 1 and {config_class.MAX_ROOM_CAPACITY}")

    if config_class.DUES_AMOUNT <= 0:
        errors.append("DUES_AMOUNT must be positive")

    if not config_class.JWT_SECRET_KEY:
        errors.append("JWT_SECRET_KEY is required")

    # Payment gateway is optional in development but required in production
    if config_class is ProductionConfig:
        if not config_class.SSLCOMMERZ_STORE_ID:
            errors.append("SSLCOMMERZ_STORE_ID is required in production")
        if not config_class.SSLCOMMERZ_STORE_PASSWORD:
            errors.append("SSLCOMMERZ_STORE_PASSWORD is required in production")

    return errors


# Initialize configuration
def init_config(app, config_name=None):
    """Initialize application with configuration"""
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'default')

    config_class = config.get(config_name, DevelopmentConfig)
    config_class.init_app(app)

    # Validate configuration
    errors = validate_config(config_class)
    if errors:
        for error in errors:
            app.logger.error(f"Configuration error: {error}")
        raise RuntimeError("Configuration validation failed")

    return config_class
