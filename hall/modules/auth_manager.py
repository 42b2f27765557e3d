"""
Authentication Manager Module - Hall Management System

This module handles student and administrator authentication for the hall
management system. It registers students (opening their first dues period),
verifies credentials, issues and decodes JWT bearer tokens, tracks failed
logins with a temporary lockout, and manages admin account profiles.

Features:
- Student registration with validation
- Student and admin login
- JWT token generation and verification
- Password hashing and policy checks
- Login attempt tracking and lockout
- Password changes for students and admins
- Admin profile management
"""

from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional
import logging
import re
import jwt

from hall.modules.database_manager import now_str, add_months
from hall.modules.student_manager import serialize_student

BLOOD_GROUPS = ['A+', 'A-', 'B+', 'B-', 'AB+', 'AB-', 'O+', 'O-']

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'

ROLE_STUDENT = 'Student'
ROLE_ADMIN = 'Admin'


def serialize_admin(admin: Dict[str, Any]) -> Dict[str, Any]:
    """Strip the password hash from an admin row."""
    if not admin:
        return admin
    return {key: value for key, value in admin.items() if key != 'password_hash'}


class AuthManager:
    """
    Authentication and account management for students and administrators.
    """

    def __init__(self, database_manager, settings=None):
        """
        Initialize the authentication manager with database connection.

        Args:
            database_manager: Database manager instance
            settings (Mapping): Application settings (JWT, password policy, lockout, dues)
        """
        self.db = database_manager
        self.settings = settings or {}
        self.logger = logging.getLogger(__name__)

        # Security settings
        self.security_config = {
            'password_min_length': self.settings.get('PASSWORD_MIN_LENGTH', 6),
            'max_login_attempts': self.settings.get('MAX_LOGIN_ATTEMPTS', 5),
            'lockout_duration': self.settings.get('LOGIN_LOCKOUT_DURATION', timedelta(minutes=15)),
        }

        # Failed login attempts tracking
        self.failed_attempts = {}

        self.logger.info("Authentication manager initialized")

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def generate_token(self, subject: str, pk: int, email: str, role: str,
                       name: str = '') -> str:
        """
        Issue a signed JWT for a student or admin.

        Args:
            subject (str): Student id or admin id
            pk (int): Database id of the account
            email (str): Account email
            role (str): 'Student' or 'Admin'
            name (str): Display name

        Returns:
            str: Encoded token
        """
        issued = datetime.now(timezone.utc)
        payload = {
            'sub': subject,
            'pk': pk,
            'email': email,
            'role': role,
            'name': name,
            'iss': self.settings.get('JWT_ISSUER', 'HallManagementSystem'),
            'aud': self.settings.get('JWT_AUDIENCE', 'HallManagementClient'),
            'iat': issued,
            'exp': issued + timedelta(days=self.settings.get('JWT_EXPIRY_DAYS', 30)),
        }
        return jwt.encode(
            payload,
            self.settings.get('JWT_SECRET_KEY', 'hall-management-jwt-key-change-me-2025'),
            algorithm=self.settings.get('JWT_ALGORITHM', 'HS256')
        )

    def decode_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Verify a token and return its claims.

        Args:
            token (str): Encoded token

        Returns:
            Dict[str, Any]: Claims, or None when the token is invalid or expired
        """
        try:
            return jwt.decode(
                token,
                self.settings.get('JWT_SECRET_KEY', 'hall-management-jwt-key-change-me-2025'),
                algorithms=[self.settings.get('JWT_ALGORITHM', 'HS256')],
                audience=self.settings.get('JWT_AUDIENCE', 'HallManagementClient'),
                issuer=self.settings.get('JWT_ISSUER', 'HallManagementSystem'),
            )
        except jwt.ExpiredSignatureError:
            self.logger.warning("Rejected expired token")
            return None
        except jwt.InvalidTokenError as e:
            self.logger.warning(f"Rejected invalid token: {str(e)}")
            return None

    # ------------------------------------------------------------------
    # Students
    # ------------------------------------------------------------------

    def register_student(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Register a new student and open their first dues period.

        Args:
            data (Dict[str, Any]): Registration form fields

        Returns:
            Dict[str, Any]: Registration result with token and student
        """
        student_number = (data.get('student_id') or '').strip()
        try:
            validation_result = self._validate_registration(data)
            if not validation_result['valid']:
                return {'success': False, 'error': validation_result['error']}

            email = data['email'].strip()

            existing = self.db.execute_query(
                "SELECT id FROM students WHERE student_id = ?",
                (student_number,),
                fetch_all=False
            )
            if existing:
                return {'success': False, 'error': 'Student ID already exists'}

            existing_email = self.db.execute_query(
                "SELECT id FROM students WHERE email = ? AND is_active = 1",
                (email,),
                fetch_all=False
            )
            if existing_email:
                return {'success': False, 'error': 'Email address already exists'}

            registered = datetime.now()
            registered_at = now_str(registered)
            period_end = add_months(registered, self.settings.get('DUES_PERIOD_MONTHS', 6))

            with self.db.transaction() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    INSERT INTO students (student_id, first_name, last_name, email, phone_number,
                                          guardian_phone_number, password_hash, address,
                                          date_of_birth, department, year, session, blood_group,
                                          profile_image_url, registration_date, is_active)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1)
                """, (
                    student_number,
                    data['first_name'].strip(),
                    data['last_name'].strip(),
                    email,
                    data['phone_number'].strip(),
                    data.get('guardian_phone_number') or None,
                    generate_password_hash(data['password']),
                    data.get('address') or '',
                    data.get('date_of_birth') or None,
                    data.get('department') or '',
                    int(data.get('year') or 0),
                    data.get('session') or '',
                    data.get('blood_group') or '',
                    data.get('profile_image_url') or '',
                    registered_at
                ))
                student_pk = cursor.lastrowid

                cursor.execute("""
                    INSERT INTO dues_periods (student_id, period_start, period_end, amount, status)
                    VALUES (?, ?, ?, ?, 'Pending')
                """, (student_pk, registered_at, now_str(period_end),
                      self.settings.get('DUES_AMOUNT', 1320)))

            student = self.db.execute_query(
                "SELECT * FROM students WHERE id = ?", (student_pk,), fetch_all=False
            )
            token = self.generate_token(
                student_number, student_pk, email, ROLE_STUDENT,
                f"{student['first_name']} {student['last_name']}"
            )

            self.logger.info(f"Student registered successfully: {student_number} (ID: {student_pk})")

            return {
                'success': True,
                'message': 'Registration successful',
                'token': token,
                'student': serialize_student(student)
            }

        except Exception as e:
            self.logger.error(f"Student registration failed for {student_number}: {str(e)}")
            return {'success': False, 'error': 'Failed to register student'}

    def authenticate_student(self, student_id: str, password: str) -> Optional[Dict[str, Any]]:
        """
        Authenticate a student by student id and password.

        Args:
            student_id (str): Student id
            password (str): Password

        Returns:
            Dict[str, Any]: Token and student if authenticated, None otherwise
        """
        lock_key = f"student:{student_id}"
        try:
            if self._is_account_locked(lock_key):
                self.logger.warning(f"Authentication attempt for locked student account: {student_id}")
                return None

            student = self.db.execute_query(
                "SELECT * FROM students WHERE student_id = ? AND is_active = 1",
                (student_id,),
                fetch_all=False
            )

            if not student or not check_password_hash(student['password_hash'], password or ''):
                self._record_failed_attempt(lock_key)
                self.logger.warning(f"Authentication failed for student: {student_id}")
                return None

            self._clear_failed_attempts(lock_key)

            token = self.generate_token(
                student['student_id'], student['id'], student['email'], ROLE_STUDENT,
                f"{student['first_name']} {student['last_name']}"
            )

            self.logger.info(f"Student authenticated successfully: {student_id}")

            return {'token': token, 'student': serialize_student(student)}

        except Exception as e:
            self.logger.error(f"Authentication error for student {student_id}: {str(e)}")
            return None

    def change_student_password(self, student_pk: int, current_password: str,
                                new_password: str) -> Dict[str, Any]:
        """
        Change a student's password after verifying the current one.

        Args:
            student_pk (int): Student database id
            current_password (str): Current password
            new_password (str): New password

        Returns:
            Dict[str, Any]: Update result
        """
        return self._change_password('students', student_pk, current_password, new_password)

    # ------------------------------------------------------------------
    # Admins
    # ------------------------------------------------------------------

    def register_admin(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create an administrator account.

        Args:
            data (Dict[str, Any]): admin_id, first_name, last_name, email, password and optional fields

        Returns:
            Dict[str, Any]: Creation result
        """
        admin_id = (data.get('admin_id') or '').strip()
        try:
            for field in ('admin_id', 'first_name', 'last_name', 'email', 'password'):
                if not (data.get(field) or '').strip():
                    return {'success': False, 'error': f'{field} is required'}

            if not re.match(EMAIL_PATTERN, data['email'].strip()):
                return {'success': False, 'error': 'Invalid email address format'}

            password_validation = self._validate_password(data['password'])
            if not password_validation['valid']:
                return {'success': False, 'error': password_validation['error']}

            existing = self.db.execute_query(
                "SELECT id FROM admins WHERE admin_id = ?", (admin_id,), fetch_all=False
            )
            if existing:
                return {'success': False, 'error': 'Admin ID already exists'}

            admin_pk = self.db.execute_update("""
                INSERT INTO admins (admin_id, first_name, last_name, email, phone_number,
                                    password_hash, role, department, created_date)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (admin_id, data['first_name'].strip(), data['last_name'].strip(),
                  data['email'].strip(), data.get('phone_number') or '',
                  generate_password_hash(data['password']), data.get('role') or 'Admin',
                  data.get('department') or '', now_str()))

            self.logger.info(f"Admin created successfully: {admin_id} (ID: {admin_pk})")

            return {'success': True, 'admin_pk': admin_pk, 'message': 'Admin account created successfully'}

        except Exception as e:
            self.logger.error(f"Admin creation failed for {admin_id}: {str(e)}")
            return {'success': False, 'error': 'Failed to create admin account'}

    def authenticate_admin(self, admin_id: str, password: str) -> Optional[Dict[str, Any]]:
        """
        Authenticate an administrator by admin id and password.

        Args:
            admin_id (str): Admin id
            password (str): Password

        Returns:
            Dict[str, Any]: Token and admin if authenticated, None otherwise
        """
        lock_key = f"admin:{admin_id}"
        try:
            if self._is_account_locked(lock_key):
                self.logger.warning(f"Authentication attempt for locked admin account: {admin_id}")
                return None

            admin = self.get_admin_by_admin_id(admin_id, include_hash=True)

            if not admin or not check_password_hash(admin['password_hash'], password or ''):
                self._record_failed_attempt(lock_key)
                self.logger.warning(f"Authentication failed for admin: {admin_id}")
                return None

            self._clear_failed_attempts(lock_key)

            token = self.generate_token(
                admin['admin_id'], admin['id'], admin['email'], ROLE_ADMIN,
                f"{admin['first_name']} {admin['last_name']}"
            )

            self.logger.info(f"Admin authenticated successfully: {admin_id}")

            return {'token': token, 'admin': serialize_admin(admin)}

        except Exception as e:
            self.logger.error(f"Authentication error for admin {admin_id}: {str(e)}")
            return None

    def get_admin_by_admin_id(self, admin_id: str, include_hash: bool = False) -> Optional[Dict[str, Any]]:
        """
        Look up an active admin by admin id.

        Args:
            admin_id (str): Admin id
            include_hash (bool): Keep the password hash in the result

        Returns:
            Dict[str, Any]: Admin record or None
        """
        admin = self.db.execute_query(
            "SELECT * FROM admins WHERE admin_id = ? AND is_active = 1",
            (admin_id,),
            fetch_all=False
        )
        return admin if include_hash else serialize_admin(admin)

    def update_admin_profile(self, admin_pk: int, admin_id: str,
                             data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update the logged-in admin's own profile.

        Args:
            admin_pk (int): Database id of the profile to update
            admin_id (str): Admin id of the caller
            data (Dict[str, Any]): first_name, last_name, email, phone_number

        Returns:
            Dict[str, Any]: Update result with the refreshed admin
        """
        try:
            admin = self.get_admin_by_admin_id(admin_id)
            if not admin:
                return {'success': False, 'error': 'Admin not found', 'status': 404}

            if admin['id'] != admin_pk:
                return {'success': False, 'error': 'You can only update your own profile', 'status': 403}

            for field in ('first_name', 'last_name', 'email'):
                if not (data.get(field) or '').strip():
                    return {'success': False, 'error': f'{field} is required'}

            if not re.match(EMAIL_PATTERN, data['email'].strip()):
                return {'success': False, 'error': 'Invalid email address format'}

            self.db.execute_update("""
                UPDATE admins SET first_name = ?, last_name = ?, email = ?, phone_number = ?
                WHERE id = ?
            """, (data['first_name'].strip(), data['last_name'].strip(), data['email'].strip(),
                  (data.get('phone_number') or '').strip(), admin_pk))

            self.logger.info(f"Admin profile updated: {admin_id}")

            return {
                'success': True,
                'message': 'Profile updated successfully',
                'admin': self.get_admin_by_admin_id(admin_id)
            }

        except Exception as e:
            self.logger.error(f"Admin profile update failed for {admin_id}: {str(e)}")
            return {'success': False, 'error': 'Failed to update profile'}

    def change_admin_password(self, admin_pk: int, admin_id: str, current_password: str,
                              new_password: str) -> Dict[str, Any]:
        """
        Change the logged-in admin's password.

        Args:
            admin_pk (int): Database id of the account to change
            admin_id (str): Admin id of the caller
            current_password (str): Current password
            new_password (str): New password

        Returns:
            Dict[str, Any]: Update result
        """
        admin = self.get_admin_by_admin_id(admin_id)
        if not admin or admin['id'] != admin_pk:
            return {'success': False, 'error': 'You can only change your own password', 'status': 403}
        return self._change_password('admins', admin_pk, current_password, new_password)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _change_password(self, table: str, account_pk: int, current_password: str,
                         new_password: str) -> Dict[str, Any]:
        try:
            account = self.db.execute_query(
                f"SELECT id, password_hash FROM {table} WHERE id = ? AND is_active = 1",
                (account_pk,),
                fetch_all=False
            )

            if not account:
                return {'success': False, 'error': 'Account not found or inactive', 'status': 404}

            if not check_password_hash(account['password_hash'], current_password or ''):
                self.logger.warning(f"Password change failed - incorrect current password for {table} {account_pk}")
                return {'success': False, 'error': 'Current password is incorrect'}

            password_validation = self._validate_password(new_password)
            if not password_validation['valid']:
                return {'success': False, 'error': password_validation['error']}

            self.db.execute_update(
                f"UPDATE {table} SET password_hash = ? WHERE id = ?",
                (generate_password_hash(new_password), account_pk)
            )

            self.logger.info(f"Password updated successfully for {table} {account_pk}")
            return {'success': True, 'message': 'Password updated successfully'}

        except Exception as e:
            self.logger.error(f"Password update failed for {table} {account_pk}: {str(e)}")
            return {'success': False, 'error': 'Failed to update password'}

    def _validate_registration(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate student registration data.

        Args:
            data (Dict[str, Any]): Registration fields

        Returns:
            Dict[str, Any]: Validation result
        """
        for field in ('student_id', 'first_name', 'last_name', 'email', 'phone_number', 'password'):
            if not str(data.get(field) or '').strip():
                return {'valid': False, 'error': f'{field} is required'}

        if not re.match(EMAIL_PATTERN, data['email'].strip()):
            return {'valid': False, 'error': 'Invalid email address format'}

        blood_group = data.get('blood_group')
        if blood_group and blood_group not in BLOOD_GROUPS:
            return {'valid': False, 'error': f"Blood group must be one of: {', '.join(BLOOD_GROUPS)}"}

        year = data.get('year')
        if year not in (None, ''):
            try:
                int(year)
            except (TypeError, ValueError):
                return {'valid': False, 'error': 'Year must be a number'}

        return self._validate_password(data['password'])

    def _validate_password(self, password: str) -> Dict[str, Any]:
        """
        Validate password against security requirements.

        Args:
            password (str): Password to validate

        Returns:
            Dict[str, Any]: Validation result
        """
        if not password:
            return {'valid': False, 'error': 'Password is required'}

        if len(password) < self.security_config['password_min_length']:
            return {'valid': False, 'error': f'Password must be at least {self.security_config["password_min_length"]} characters long'}

        return {'valid': True}

    def _is_account_locked(self, key: str) -> bool:
        """
        Check if account is locked due to failed login attempts.

        Args:
            key (str): Role-qualified account key

        Returns:
            bool: True if account is locked
        """
        if key not in self.failed_attempts:
            return False

        attempt_data = self.failed_attempts[key]

        # Check if lockout period has expired
        if datetime.now() - attempt_data['last_attempt'] > self.security_config['lockout_duration']:
            del self.failed_attempts[key]
            return False

        return attempt_data['count'] >= self.security_config['max_login_attempts']

    def _record_failed_attempt(self, key: str) -> None:
        now = datetime.now()
        expired = [other for other, data in self.failed_attempts.items()
                   if now - data['last_attempt'] > self.security_config['lockout_duration']]
        for other in expired:
            del self.failed_attempts[other]

        if key not in self.failed_attempts:
            self.failed_attempts[key] = {'count': 0, 'last_attempt': now}

        self.failed_attempts[key]['count'] += 1
        self.failed_attempts[key]['last_attempt'] = now

        self.logger.warning(f"Failed login attempt {self.failed_attempts[key]['count']} for {key}")

    def _clear_failed_attempts(self, key: str) -> None:
        self.failed_attempts.pop(key, None)
