"""
Complaint Manager Module - Hall Management System

This module handles maintenance complaints raised by residents (electrical,
plumbing, repair and other issues) and their resolution by administrators.

Features:
- Complaint submission
- Admin complaint listing
- Paginated per-student complaint history
- Per-student complaint statistics
- Marking complaints solved
"""

from typing import Dict, List, Any, Optional
import logging
import math

from hall.modules.database_manager import now_str

COMPLAINT_TYPES = ['Electrical', 'Plumber', 'Repair & Maintenance', 'Others']

STATUS_UNSOLVED = 'Unsolved'
STATUS_SOLVED = 'Solved'


class ComplaintManager:
    """
    Resident complaint tracking.
    """

    def __init__(self, database_manager):
        """
        Initialize the complaint manager with database connection.

        Args:
            database_manager: Database manager instance
        """
        self.db = database_manager
        self.logger = logging.getLogger(__name__)

    def create_complaint(self, student_number: str, complaint_type: str, description: str,
                         occurrence_time: str) -> Dict[str, Any]:
        """
        Submit a complaint.

        Args:
            student_number (str): Student id of the complainant
            complaint_type (str): One of COMPLAINT_TYPES
            description (str): Short description of the problem
            occurrence_time (str): When the problem occurred (free text)

        Returns:
            Dict[str, Any]: Creation result with the complaint
        """
        try:
            student = self._get_student(student_number)
            if not student:
                return {'success': False, 'error': 'Student not found', 'status': 404}

            if complaint_type not in COMPLAINT_TYPES:
                return {'success': False, 'error': f"Complaint type must be one of: {', '.join(COMPLAINT_TYPES)}"}

            if not (description or '').strip():
                return {'success': False, 'error': 'Description is required'}

            if not (occurrence_time or '').strip():
                return {'success': False, 'error': 'Occurrence time is required'}

            complaint_id = self.db.execute_update("""
                INSERT INTO complaints (student_id, complaint_type, short_description, occurrence_time,
                                        status, submitted_date)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (student['id'], complaint_type, description.strip(), occurrence_time.strip(),
                  STATUS_UNSOLVED, now_str()))

            self.logger.info(f"Complaint {complaint_id} ({complaint_type}) submitted by {student_number}")

            return {
                'success': True,
                'message': 'Complaint submitted successfully',
                'complaint': self.get_complaint(complaint_id)
            }

        except Exception as e:
            self.logger.error(f"Complaint submission failed for {student_number}: {str(e)}")
            return {'success': False, 'error': 'Failed to submit complaint'}

    def get_complaint(self, complaint_id: int) -> Optional[Dict[str, Any]]:
        """Get a complaint with its student."""
        return self.db.execute_query("""
            SELECT c.*, s.student_id as student_number, s.first_name || ' ' || s.last_name as student_name,
                   s.block, s.room_no, s.bed_no
            FROM complaints c
            JOIN students s ON c.student_id = s.id
            WHERE c.id = ?
        """, (complaint_id,), fetch_all=False)

    def get_all_complaints(self) -> List[Dict[str, Any]]:
        """
        Get every complaint with student details, newest first.

        Returns:
            List[Dict[str, Any]]: Complaints
        """
        try:
            return self.db.execute_query("""
                SELECT c.*, s.student_id as student_number, s.first_name || ' ' || s.last_name as student_name,
                       s.email as student_email, s.phone_number as student_phone,
                       s.block, s.room_no, s.bed_no,
                       a.first_name || ' ' || a.last_name as resolved_by_name
                FROM complaints c
                JOIN students s ON c.student_id = s.id
                LEFT JOIN admins a ON c.resolved_by_admin_id = a.id
                ORDER BY c.submitted_date DESC, c.id DESC
            """)

        except Exception as e:
            self.logger.error(f"Failed to get complaints: {str(e)}")
            return []

    def get_student_complaints(self, student_number: str, page: int = 1,
                               page_size: int = 10) -> Dict[str, Any]:
        """
        Get one page of a student's complaints, newest first.

        Args:
            student_number (str): Student id
            page (int): 1-based page number
            page_size (int): Page size

        Returns:
            Dict[str, Any]: complaints and pagination
        """
        student = self._get_student(student_number)
        if not student:
            return {'success': False, 'error': 'Student not found', 'status': 404}

        page = max(int(page or 1), 1)
        page_size = max(int(page_size or 10), 1)

        total_count = self.db.execute_query(
            "SELECT COUNT(*) as count FROM complaints WHERE student_id = ?",
            (student['id'],),
            fetch_all=False
        )['count']

        complaints = self.db.execute_query("""
            SELECT * FROM complaints
            WHERE student_id = ?
            ORDER BY submitted_date DESC, id DESC
            LIMIT ? OFFSET ?
        """, (student['id'], page_size, (page - 1) * page_size))

        return {
            'success': True,
            'complaints': complaints,
            'pagination': {
                'page': page,
                'page_size': page_size,
                'total_count': total_count,
                'total_pages': math.ceil(total_count / page_size) if total_count else 0
            }
        }

    def get_complaints_by_student_pk(self, student_pk: int) -> List[Dict[str, Any]]:
        """Get a student's complaints for the admin view, newest first."""
        return self.db.execute_query(
            "SELECT * FROM complaints WHERE student_id = ? ORDER BY submitted_date DESC, id DESC",
            (student_pk,)
        )

    def get_student_stats(self, student_number: str) -> Dict[str, Any]:
        """
        Complaint totals for a student.

        Args:
            student_number (str): Student id

        Returns:
            Dict[str, Any]: total, solved, unsolved and the last complaint
        """
        student = self._get_student(student_number)
        if not student:
            return {'success': False, 'error': 'Student not found', 'status': 404}

        counts = self.db.execute_query("""
            SELECT COUNT(*) as total,
                   SUM(CASE WHEN status = ? THEN 1 ELSE 0 END) as solved,
                   SUM(CASE WHEN status = ? THEN 1 ELSE 0 END) as unsolved
            FROM complaints WHERE student_id = ?
        """, (STATUS_SOLVED, STATUS_UNSOLVED, student['id']), fetch_all=False)

        last = self.db.execute_query(
            "SELECT * FROM complaints WHERE student_id = ? ORDER BY submitted_date DESC, id DESC LIMIT 1",
            (student['id'],),
            fetch_all=False
        )

        return {
            'success': True,
            'total': counts['total'] or 0,
            'solved': counts['solved'] or 0,
            'unsolved': counts['unsolved'] or 0,
            'last_complaint': last
        }

    def mark_solved(self, complaint_id: int, admin_pk: int, admin_response: str = None) -> Dict[str, Any]:
        """
        Mark a complaint solved.

        Args:
            complaint_id (int): Complaint id
            admin_pk (int): Database id of the resolving admin
            admin_response (str): Optional response to the student

        Returns:
            Dict[str, Any]: Update result
        """
        try:
            complaint = self.get_complaint(complaint_id)
            if not complaint:
                return {'success': False, 'error': 'Complaint not found', 'status': 404}

            if complaint['status'] == STATUS_SOLVED:
                return {'success': True, 'message': 'Complaint already solved', 'complaint': complaint}

            self.db.execute_update("""
                UPDATE complaints
                SET status = ?, resolved_date = ?, resolved_by_admin_id = ?,
                    admin_response = COALESCE(?, admin_response)
                WHERE id = ?
            """, (STATUS_SOLVED, now_str(), admin_pk, admin_response or None, complaint_id))

            self.logger.info(f"Complaint {complaint_id} marked solved by admin {admin_pk}; "
                             f"student {complaint['student_number']} to be notified")

            return {
                'success': True,
                'message': 'Complaint marked as solved',
                'complaint': self.get_complaint(complaint_id)
            }

        except Exception as e:
            self.logger.error(f"Failed to mark complaint {complaint_id} solved: {str(e)}")
            return {'success': False, 'error': 'Failed to update complaint'}

    def get_unsolved_count(self) -> int:
        """Count unsolved complaints."""
        result = self.db.execute_query(
            "SELECT COUNT(*) as count FROM complaints WHERE status = ?",
            (STATUS_UNSOLVED,),
            fetch_all=False
        )
        return result['count'] if result else 0

    def _get_student(self, student_number: str) -> Optional[Dict[str, Any]]:
        return self.db.execute_query(
            "SELECT id, student_id FROM students WHERE student_id = ? AND is_active = 1",
            (student_number,),
            fetch_all=False
        )
