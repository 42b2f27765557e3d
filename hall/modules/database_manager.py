"""
Database Manager Module - Hall Management System

This module handles all database operations for the hall management system.
It provides a single interface for managing SQLite database connections,
table creation, seeding, and the query/update helpers every other manager
builds on. Multi-statement changes such as room allocation go through the
transaction() context manager so they either fully apply or roll back.

Features:
- SQLite database connection management (thread-local)
- Table schema creation
- Seeding of the room inventory and the default administrator
- Query/update helpers returning plain dicts
- Transaction support
"""

import sqlite3
import calendar
import logging
from datetime import datetime
from contextlib import contextmanager
import threading
from werkzeug.security import generate_password_hash
import os

TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'


def now_str(moment=None):
    """Return a local timestamp string in the format stored in the database."""
    return (moment or datetime.now()).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value):
    """Parse a stored timestamp (or date) string back into a datetime."""
    if value is None or isinstance(value, datetime):
        return value
    for fmt in (TIMESTAMP_FORMAT, '%Y-%m-%d'):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return datetime.fromisoformat(value)


def add_months(moment, months):
    """Shift a datetime by whole months, clamping the day to the target month's length."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS admins (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        admin_id VARCHAR(50) UNIQUE NOT NULL,
        first_name VARCHAR(100) NOT NULL,
        last_name VARCHAR(100) NOT NULL,
        email VARCHAR(100) NOT NULL,
        phone_number VARCHAR(20) NOT NULL DEFAULT '',
        password_hash VARCHAR(255) NOT NULL,
        role VARCHAR(50) DEFAULT 'Admin',
        department VARCHAR(100) DEFAULT '',
        created_date TIMESTAMP NOT NULL,
        is_active BOOLEAN DEFAULT 1
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS students (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        student_id VARCHAR(50) UNIQUE NOT NULL,
        first_name VARCHAR(100) NOT NULL,
        last_name VARCHAR(100) NOT NULL,
        email VARCHAR(100) NOT NULL,
        phone_number VARCHAR(20) NOT NULL,
        guardian_phone_number VARCHAR(20),
        password_hash VARCHAR(255) NOT NULL,
        address VARCHAR(200) DEFAULT '',
        date_of_birth DATE,
        department VARCHAR(50) DEFAULT '',
        year INTEGER DEFAULT 0,
        session VARCHAR(20) DEFAULT '',
        blood_group VARCHAR(5) DEFAULT '',
        profile_image_url VARCHAR(500) DEFAULT '',
        registration_date TIMESTAMP NOT NULL,
        is_active BOOLEAN DEFAULT 1,
        block VARCHAR(1),
        room_no VARCHAR(3),
        bed_no INTEGER,
        room_allocation_date TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS rooms (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        room_number VARCHAR(20) NOT NULL,
        floor INTEGER NOT NULL,
        block VARCHAR(1) NOT NULL,
        capacity INTEGER DEFAULT 4,
        current_occupancy INTEGER DEFAULT 0,
        monthly_rent DECIMAL(10, 2) DEFAULT 5000,
        room_type VARCHAR(20) DEFAULT 'Shared',
        is_available BOOLEAN DEFAULT 1,
        facilities VARCHAR(500) DEFAULT '',
        created_date TIMESTAMP NOT NULL,
        UNIQUE(block, room_number)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS room_allotments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        student_id INTEGER NOT NULL,
        student_number VARCHAR(50) NOT NULL,
        room_id INTEGER,
        requested_block VARCHAR(1) NOT NULL,
        requested_room_no VARCHAR(3) NOT NULL,
        requested_bed_no INTEGER NOT NULL,
        status VARCHAR(20) DEFAULT 'Pending',
        request_date TIMESTAMP NOT NULL,
        check_in_date TIMESTAMP,
        check_out_date TIMESTAMP,
        is_active BOOLEAN DEFAULT 1,
        is_room_change BOOLEAN DEFAULT 0,
        student_notes VARCHAR(500) DEFAULT '',
        admin_notes VARCHAR(500) DEFAULT '',
        approved_by_admin_id VARCHAR(50),
        admin_action_date TIMESTAMP,
        FOREIGN KEY (student_id) REFERENCES students(id) ON DELETE CASCADE,
        FOREIGN KEY (room_id) REFERENCES rooms(id) ON DELETE SET NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS dues_periods (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        student_id INTEGER NOT NULL,
        period_start TIMESTAMP NOT NULL,
        period_end TIMESTAMP NOT NULL,
        amount DECIMAL(10, 2) DEFAULT 1320,
        status VARCHAR(20) DEFAULT 'Pending',
        paid_date TIMESTAMP,
        payment_id INTEGER,
        FOREIGN KEY (student_id) REFERENCES students(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS payments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        student_id INTEGER NOT NULL,
        payment_type VARCHAR(50) DEFAULT 'Semester Dues',
        amount DECIMAL(10, 2) NOT NULL,
        payment_date TIMESTAMP NOT NULL,
        due_date TIMESTAMP,
        status VARCHAR(20) DEFAULT 'Pending',
        transaction_id VARCHAR(100) DEFAULT '',
        payment_method VARCHAR(50) DEFAULT 'SSLCommerz',
        description VARCHAR(500) DEFAULT '',
        paid_date TIMESTAMP,
        receipt_number VARCHAR(100) DEFAULT '',
        session_key VARCHAR(200) DEFAULT '',
        gateway_page_url VARCHAR(200) DEFAULT '',
        bank_transaction_id VARCHAR(50) DEFAULT '',
        card_type VARCHAR(50) DEFAULT '',
        card_number VARCHAR(50) DEFAULT '',
        currency VARCHAR(20) DEFAULT 'BDT',
        validated_date TIMESTAMP,
        validation_status VARCHAR(50) DEFAULT '',
        dues_period_id INTEGER,
        FOREIGN KEY (student_id) REFERENCES students(id) ON DELETE CASCADE,
        FOREIGN KEY (dues_period_id) REFERENCES dues_periods(id) ON DELETE SET NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS complaints (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        student_id INTEGER NOT NULL,
        complaint_type VARCHAR(50) NOT NULL,
        short_description VARCHAR(1000) NOT NULL,
        occurrence_time VARCHAR(200) NOT NULL,
        status VARCHAR(20) DEFAULT 'Unsolved',
        submitted_date TIMESTAMP NOT NULL,
        resolved_date TIMESTAMP,
        admin_response VARCHAR(1000) DEFAULT '',
        resolved_by_admin_id INTEGER,
        FOREIGN KEY (student_id) REFERENCES students(id) ON DELETE CASCADE,
        FOREIGN KEY (resolved_by_admin_id) REFERENCES admins(id) ON DELETE SET NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS blood_requests (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        requester_id INTEGER NOT NULL,
        blood_group_needed VARCHAR(5) NOT NULL,
        place VARCHAR(500) NOT NULL,
        time VARCHAR(200) NOT NULL,
        special_notes VARCHAR(1000),
        request_date TIMESTAMP NOT NULL,
        is_active BOOLEAN DEFAULT 1,
        FOREIGN KEY (requester_id) REFERENCES students(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS galleries (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        student_id INTEGER NOT NULL,
        image_url VARCHAR(500) NOT NULL,
        short_description VARCHAR(1000) NOT NULL,
        time_of_event VARCHAR(200) NOT NULL,
        status VARCHAR(20) DEFAULT 'Pending',
        submitted_date TIMESTAMP NOT NULL,
        reviewed_date TIMESTAMP,
        admin_response VARCHAR(1000) DEFAULT '',
        reviewed_by_admin_id INTEGER,
        FOREIGN KEY (student_id) REFERENCES students(id) ON DELETE CASCADE,
        FOREIGN KEY (reviewed_by_admin_id) REFERENCES admins(id) ON DELETE SET NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS notices (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        subject VARCHAR(200) NOT NULL,
        description TEXT NOT NULL,
        attachment_url VARCHAR(500),
        attachment_file_name VARCHAR(100),
        attachment_type VARCHAR(50),
        admin_id INTEGER NOT NULL,
        created_date TIMESTAMP NOT NULL,
        is_active BOOLEAN DEFAULT 1,
        FOREIGN KEY (admin_id) REFERENCES admins(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS notice_reads (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        notice_id INTEGER NOT NULL,
        student_id INTEGER NOT NULL,
        read_date TIMESTAMP NOT NULL,
        FOREIGN KEY (notice_id) REFERENCES notices(id) ON DELETE CASCADE,
        FOREIGN KEY (student_id) REFERENCES students(id) ON DELETE CASCADE,
        UNIQUE(notice_id, student_id)
    )
    """,
]

INDEXES = [
    # One student per bed
    """CREATE UNIQUE INDEX IF NOT EXISTS idx_students_bed
       ON students(block, room_no, bed_no) WHERE bed_no IS NOT NULL""",
    "CREATE INDEX IF NOT EXISTS idx_allotments_student ON room_allotments(student_number)",
    "CREATE INDEX IF NOT EXISTS idx_allotments_status ON room_allotments(status)",
    "CREATE INDEX IF NOT EXISTS idx_dues_student ON dues_periods(student_id)",
    "CREATE INDEX IF NOT EXISTS idx_payments_tran ON payments(transaction_id)",
    "CREATE INDEX IF NOT EXISTS idx_complaints_student ON complaints(student_id)",
    "CREATE INDEX IF NOT EXISTS idx_galleries_status ON galleries(status)",
]


class DatabaseManager:
    """
    Database management class for the hall management system.
    Handles connection management, schema creation and seeding, and
    data manipulation with transaction support.
    """

    def __init__(self, db_path, settings=None):
        """
        Initialize the database manager with the specified database path.

        Args:
            db_path (str): Path to the SQLite database file
            settings (Mapping): Hall layout and default admin settings
        """
        self.db_path = str(db_path)
        self.settings = settings or {}
        self.logger = logging.getLogger(__name__)
        self._local = threading.local()

        # Ensure database directory exists
        if self.db_path != ':memory:' and os.path.dirname(self.db_path):
            os.makedirs(os.path.dirname(self.db_path), exist_ok=True)

        # Initialize database schema if it doesn't exist
        self.initialize_database()

    @contextmanager
    def get_connection(self):
        """
        Context manager for database connections.
        Provides thread-local connections for thread safety.

        Yields:
            sqlite3.Connection: Database connection object
        """
        if not hasattr(self._local, 'connection'):
            self._local.connection = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                timeout=30.0
            )
            self._local.connection.row_factory = sqlite3.Row
            # Enable foreign key constraints
            self._local.connection.execute("PRAGMA foreign_keys = ON")

        try:
            yield self._local.connection
        except Exception as e:
            self._local.connection.rollback()
            self.logger.error(f"Database operation failed: {str(e)}")
            raise

    def initialize_database(self):
        """
        Create all tables and seed data. Idempotent.
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()

                for statement in SCHEMA:
                    cursor.execute(statement)
                for statement in INDEXES:
                    cursor.execute(statement)

                conn.commit()

                self._insert_default_data(cursor)
                conn.commit()

                self.logger.info("Database initialized successfully")

        except Exception as e:
            self.logger.error(f"Failed to initialize database: {str(e)}")
            raise

    def _insert_default_data(self, cursor):
        """
        Insert the default administrator and the hall's room inventory.

        Args:
            cursor: Database cursor object
        """
        created = now_str()

        cursor.execute("SELECT COUNT(*) FROM admins")
        if cursor.fetchone()[0] == 0:
            admin_password = generate_password_hash(
                self.settings.get('DEFAULT_ADMIN_PASSWORD', 'admin123')
            )
            cursor.execute("""
                INSERT INTO admins (admin_id, first_name, last_name, email, phone_number,
                                    password_hash, role, department, created_date)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (self.settings.get('DEFAULT_ADMIN_ID', 'admin'), 'Hall', 'Administrator',
                  'admin@hall.local', '', admin_password, 'SuperAdmin', 'Hall Office', created))

        cursor.execute("SELECT COUNT(*) FROM rooms")
        if cursor.fetchone()[0] == 0:
            rooms = []
            for floor in self.settings.get('HALL_FLOORS', [1, 2, 3]):
                for block in self.settings.get('HALL_BLOCKS', ['A', 'B']):
                    for number in range(1, self.settings.get('ROOMS_PER_FLOOR', 15) + 1):
                        rooms.append((
                            f"{floor}{number:02d}",
                            floor,
                            block,
                            self.settings.get('BEDS_PER_ROOM', 4),
                            self.settings.get('DEFAULT_MONTHLY_RENT', 5000),
                            self.settings.get('DEFAULT_FACILITIES',
                                              'Bed, Study Table, Chair, Wardrobe, Fan, Attached Bathroom'),
                            created
                        ))

            cursor.executemany("""
                INSERT INTO rooms (room_number, floor, block, capacity, monthly_rent,
                                   facilities, created_date)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, rooms)
            self.logger.info(f"Seeded {len(rooms)} rooms")

    def execute_query(self, query, params=None, fetch_all=True):
        """
        Execute a SELECT query and return results.

        Args:
            query (str): SQL query string
            params (tuple): Query parameters
            fetch_all (bool): Whether to fetch all results or just one

        Returns:
            list or dict: Query results
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()

                if params:
                    cursor.execute(query, params)
                else:
                    cursor.execute(query)

                if fetch_all:
                    return [dict(row) for row in cursor.fetchall()]
                result = cursor.fetchone()
                return dict(result) if result else None

        except Exception as e:
            self.logger.error(f"Query execution failed: {str(e)}")
            raise

    def execute_update(self, query, params=None):
        """
        Execute an INSERT, UPDATE, or DELETE query.

        Args:
            query (str): SQL query string
            params (tuple): Query parameters

        Returns:
            int: Last inserted row ID for INSERT, affected rows otherwise
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()

                if params:
                    cursor.execute(query, params)
                else:
                    cursor.execute(query)

                conn.commit()

                if query.strip().upper().startswith('INSERT'):
                    return cursor.lastrowid
                return cursor.rowcount

        except Exception as e:
            self.logger.error(f"Update execution failed: {str(e)}")
            raise

    @contextmanager
    def transaction(self):
        """
        Context manager for database transactions with automatic rollback on error.

        Yields:
            sqlite3.Connection: Database connection within transaction
        """
        with self.get_connection() as conn:
            try:
                yield conn
                conn.commit()
            except Exception as e:
                conn.rollback()
                self.logger.error(f"Transaction rolled back: {str(e)}")
                raise

    def close_all_connections(self):
        """Close the connection held by the current thread."""
        try:
            if hasattr(self._local, 'connection'):
                self._local.connection.close()
                del self._local.connection
        except Exception as e:
            self.logger.error(f"Error closing connections: {str(e)}")

    def __del__(self):
        """Cleanup when object is destroyed."""
        self.close_all_connections()
