"""
Student Manager Module - Hall Management System

This module handles student administration for the hall management system.
It provides the admin student directory (search, filters, sorting and
pagination), student lookups, profile updates, and student removal, which
frees the student's bed before their records are deleted.

Features:
- Admin student directory with search, filters and pagination
- Student lookups by database id and student id
- Student profile updates
- Single and bulk student deletion
- Student counts
"""

from typing import Dict, List, Any, Optional
import logging
import math
import re

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'

BLOOD_GROUPS = ['A+', 'A-', 'B+', 'B-', 'AB+', 'AB-', 'O+', 'O-']

# Allowed sort keys mapped to ORDER BY expressions
SORT_COLUMNS = {
    'name': 'first_name {order}, last_name {order}',
    'studentid': 'student_id {order}',
    'department': 'department {order}',
    'year': 'year {order}',
    'registrationdate': 'registration_date {order}',
}

# Profile fields a student may edit
PROFILE_FIELDS = [
    'first_name', 'last_name', 'email', 'phone_number', 'guardian_phone_number',
    'address', 'department', 'year', 'session', 'blood_group', 'date_of_birth'
]


def serialize_student(student: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Return a student row without the password hash, with derived room fields."""
    if not student:
        return student
    result = {key: value for key, value in student.items() if key != 'password_hash'}
    result['full_name'] = f"{student.get('first_name', '')} {student.get('last_name', '')}".strip()
    result['has_room'] = student.get('bed_no') is not None
    return result


class StudentManager:
    """
    Student administration for the hall management system.
    """

    def __init__(self, database_manager, room_manager=None):
        """
        Initialize the student manager with database connection.

        Args:
            database_manager: Database manager instance
            room_manager: Room manager used to re-sync occupancy after deletions
        """
        self.db = database_manager
        self.room_manager = room_manager
        self.logger = logging.getLogger(__name__)

    def get_students_for_admin(self, filters: Dict[str, Any]) -> Dict[str, Any]:
        """
        Search, filter, sort and paginate the student directory.

        Args:
            filters (Dict[str, Any]): search, department, year, blood_group,
                room_status (allocated / not-allocated / all), sort_by,
                sort_order (asc / desc), page, page_size

        Returns:
            Dict[str, Any]: students, pagination, filter options and summary
        """
        try:
            where_conditions = ["is_active = 1"]
            params = []

            search = (filters.get('search') or '').strip()
            if search:
                like = f"%{search.lower()}%"
                where_conditions.append("""(
                    LOWER(student_id) LIKE ? OR LOWER(first_name) LIKE ? OR LOWER(last_name) LIKE ?
                    OR LOWER(first_name || ' ' || last_name) LIKE ? OR LOWER(email) LIKE ?
                    OR LOWER(department) LIKE ? OR LOWER(address) LIKE ? OR LOWER(session) LIKE ?
                    OR LOWER(COALESCE(room_no, '')) LIKE ? OR LOWER(COALESCE(block, '')) LIKE ?
                )""")
                params.extend([like] * 10)

            if filters.get('department'):
                where_conditions.append("department = ?")
                params.append(filters['department'])

            if filters.get('year'):
                where_conditions.append("year = ?")
                params.append(int(filters['year']))

            if filters.get('blood_group'):
                where_conditions.append("blood_group = ?")
                params.append(filters['blood_group'])

            room_status = (filters.get('room_status') or 'all').lower()
            if room_status == 'allocated':
                where_conditions.append("bed_no IS NOT NULL")
            elif room_status == 'not-allocated':
                where_conditions.append("bed_no IS NULL")

            where_clause = " AND ".join(where_conditions)

            sort_order = 'DESC' if (filters.get('sort_order') or 'asc').lower() == 'desc' else 'ASC'
            sort_key = (filters.get('sort_by') or 'name').lower()
            order_by = SORT_COLUMNS.get(sort_key, SORT_COLUMNS['name']).format(order=sort_order)

            page = max(int(filters.get('page') or 1), 1)
            page_size = max(int(filters.get('page_size') or 20), 1)

            total_count = self.db.execute_query(
                f"SELECT COUNT(*) as count FROM students WHERE {where_clause}",
                params,
                fetch_all=False
            )['count']

            rows = self.db.execute_query(f"""
                SELECT * FROM students
                WHERE {where_clause}
                ORDER BY {order_by}
                LIMIT ? OFFSET ?
            """, params + [page_size, (page - 1) * page_size])

            return {
                'success': True,
                'students': [serialize_student(row) for row in rows],
                'pagination': {
                    'page': page,
                    'page_size': page_size,
                    'total_count': total_count,
                    'total_pages': math.ceil(total_count / page_size) if total_count else 0
                },
                'filters': self.get_filter_options(),
                'summary': self.get_summary()
            }

        except (TypeError, ValueError) as e:
            return {'success': False, 'error': f'Invalid filter value: {str(e)}'}
        except Exception as e:
            self.logger.error(f"Failed to get students for admin: {str(e)}")
            return {'success': False, 'error': 'Failed to load students'}

    def get_filter_options(self) -> Dict[str, List[Any]]:
        """
        Get the distinct departments, blood groups and years of active students.

        Returns:
            Dict[str, List[Any]]: Filter option lists
        """
        def distinct(column):
            rows = self.db.execute_query(f"""
                SELECT DISTINCT {column} as value FROM students
                WHERE is_active = 1 AND {column} IS NOT NULL AND {column} != ''
                ORDER BY {column}
            """)
            return [row['value'] for row in rows]

        return {
            'departments': distinct('department'),
            'blood_groups': distinct('blood_group'),
            'years': [year for year in distinct('year') if year]
        }

    def get_summary(self) -> Dict[str, int]:
        """Get total, allocated and active student counts."""
        row = self.db.execute_query("""
            SELECT COUNT(*) as total,
                   SUM(CASE WHEN bed_no IS NOT NULL AND is_active = 1 THEN 1 ELSE 0 END) as allocated,
                   SUM(CASE WHEN is_active = 1 THEN 1 ELSE 0 END) as active
            FROM students
        """, fetch_all=False)
        return {
            'total': row['total'] or 0,
            'allocated': row['allocated'] or 0,
            'active': row['active'] or 0
        }

    def get_all_students(self) -> List[Dict[str, Any]]:
        """
        Get all active students ordered by name.

        Returns:
            List[Dict[str, Any]]: List of students
        """
        try:
            rows = self.db.execute_query(
                "SELECT * FROM students WHERE is_active = 1 ORDER BY first_name, last_name"
            )
            return [serialize_student(row) for row in rows]

        except Exception as e:
            self.logger.error(f"Failed to get students: {str(e)}")
            return []

    def get_student_by_id(self, student_pk: int) -> Optional[Dict[str, Any]]:
        """
        Get student by database ID.

        Args:
            student_pk (int): Student database ID

        Returns:
            Dict[str, Any]: Student information or None
        """
        try:
            return serialize_student(self.db.execute_query(
                "SELECT * FROM students WHERE id = ? AND is_active = 1",
                (student_pk,),
                fetch_all=False
            ))

        except Exception as e:
            self.logger.error(f"Failed to get student {student_pk}: {str(e)}")
            return None

    def get_student_by_number(self, student_number: str) -> Optional[Dict[str, Any]]:
        """
        Get student by student number/ID.

        Args:
            student_number (str): Student number

        Returns:
            Dict[str, Any]: Student information or None
        """
        try:
            return serialize_student(self.db.execute_query(
                "SELECT * FROM students WHERE student_id = ? AND is_active = 1",
                (student_number,),
                fetch_all=False
            ))

        except Exception as e:
            self.logger.error(f"Failed to get student by number {student_number}: {str(e)}")
            return None

    def update_profile(self, student_pk: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update a student's profile.

        Args:
            student_pk (int): Student database ID
            data (Dict[str, Any]): Profile fields; profile_image_url is applied only when non-empty

        Returns:
            Dict[str, Any]: Update result with the refreshed student
        """
        try:
            student = self.get_student_by_id(student_pk)
            if not student:
                return {'success': False, 'error': 'Student not found', 'status': 404}

            updates = {field: data[field] for field in PROFILE_FIELDS if field in data}
            if data.get('profile_image_url'):
                updates['profile_image_url'] = data['profile_image_url']

            for field in ('first_name', 'last_name', 'email', 'phone_number'):
                if field in updates and not str(updates[field] or '').strip():
                    return {'success': False, 'error': f'{field} cannot be empty'}

            if 'email' in updates:
                updates['email'] = updates['email'].strip()
                if not re.match(EMAIL_PATTERN, updates['email']):
                    return {'success': False, 'error': 'Invalid email address format'}

                existing_email = self.db.execute_query(
                    "SELECT id FROM students WHERE email = ? AND id != ? AND is_active = 1",
                    (updates['email'], student_pk),
                    fetch_all=False
                )
                if existing_email:
                    return {'success': False, 'error': 'Email address already exists'}

            if updates.get('blood_group') and updates['blood_group'] not in BLOOD_GROUPS:
                return {'success': False, 'error': f"Blood group must be one of: {', '.join(BLOOD_GROUPS)}"}

            if 'year' in updates:
                try:
                    updates['year'] = int(updates['year'] or 0)
                except (TypeError, ValueError):
                    return {'success': False, 'error': 'Year must be a number'}

            if not updates:
                return {'success': False, 'error': 'No valid fields to update'}

            set_clause = ", ".join(f"{field} = ?" for field in updates)
            self.db.execute_update(
                f"UPDATE students SET {set_clause} WHERE id = ?",
                list(updates.values()) + [student_pk]
            )

            self.logger.info(f"Student profile updated: {student['student_id']}")

            return {
                'success': True,
                'message': 'Profile updated successfully',
                'student': self.get_student_by_id(student_pk)
            }

        except Exception as e:
            self.logger.error(f"Failed to update student {student_pk}: {str(e)}")
            return {'success': False, 'error': 'Failed to update profile'}

    def delete_student(self, student_pk: int) -> Dict[str, Any]:
        """
        Delete a student. Their bed is freed first; allotments, dues, payments,
        complaints, gallery entries and blood requests go with the student.

        Args:
            student_pk (int): Student database ID

        Returns:
            Dict[str, Any]: Deletion result
        """
        try:
            student = self.db.execute_query(
                "SELECT id, student_id, block, room_no FROM students WHERE id = ?",
                (student_pk,),
                fetch_all=False
            )
            if not student:
                return {'success': False, 'error': 'Student not found', 'status': 404}

            with self.db.transaction() as conn:
                conn.execute(
                    "UPDATE students SET block = NULL, room_no = NULL, bed_no = NULL, "
                    "room_allocation_date = NULL WHERE id = ?",
                    (student_pk,)
                )
                conn.execute("DELETE FROM students WHERE id = ?", (student_pk,))

            if student['block'] and student['room_no'] and self.room_manager:
                self.room_manager.sync_occupancy(student['block'], student['room_no'])

            self.logger.info(f"Student {student['student_id']} deleted")

            return {
                'success': True,
                'message': f"Student {student['student_id']} deleted successfully",
                'student_id': student['student_id']
            }

        except Exception as e:
            self.logger.error(f"Failed to delete student {student_pk}: {str(e)}")
            return {'success': False, 'error': 'Failed to delete student'}

    def bulk_delete_students(self, student_numbers: List[str]) -> Dict[str, Any]:
        """
        Delete several students by student id.

        Args:
            student_numbers (List[str]): Student ids

        Returns:
            Dict[str, Any]: Deleted count and the ids that failed
        """
        if not student_numbers:
            return {'success': False, 'error': 'No student IDs provided'}

        deleted = []
        failed = []

        for student_number in student_numbers:
            student = self.db.execute_query(
                "SELECT id FROM students WHERE student_id = ?",
                (student_number,),
                fetch_all=False
            )
            if not student:
                failed.append({'student_id': student_number, 'error': 'Student not found'})
                continue

            result = self.delete_student(student['id'])
            if result['success']:
                deleted.append(student_number)
            else:
                failed.append({'student_id': student_number, 'error': result['error']})

        self.logger.info(f"Bulk delete: {len(deleted)} deleted, {len(failed)} failed")

        return {
            'success': len(deleted) > 0,
            'message': f"{len(deleted)} student(s) deleted",
            'deleted_count': len(deleted),
            'deleted': deleted,
            'failed': failed,
            'error': None if deleted else 'No students were deleted'
        }

    def get_student_count(self, active_only: bool = True) -> int:
        """
        Get count of students.

        Args:
            active_only (bool): Count only active students

        Returns:
            int: Number of students
        """
        try:
            where_clause = "WHERE is_active = 1" if active_only else ""
            result = self.db.execute_query(
                f"SELECT COUNT(*) as count FROM students {where_clause}",
                fetch_all=False
            )
            return result['count'] if result else 0

        except Exception as e:
            self.logger.error(f"Failed to get student count: {str(e)}")
            return 0
