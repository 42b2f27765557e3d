"""
Gallery Manager Module - Hall Management System

Residents submit event photos for the public hall gallery; administrators
approve or reject each submission before it is shown.

Features:
- Gallery submissions
- Public approved gallery
- Admin review (approve / reject) and deletion
- Per-student submission history
"""

from typing import Dict, List, Any, Optional
import logging

from hall.modules.database_manager import now_str

STATUS_PENDING = 'Pending'
STATUS_APPROVED = 'Approved'
STATUS_REJECTED = 'Rejected'

DEFAULT_RESPONSES = {
    STATUS_APPROVED: 'Your gallery request has been approved.',
    STATUS_REJECTED: 'Your gallery request has been rejected.',
}


class GalleryManager:
    """
    Gallery submissions and their review.
    """

    def __init__(self, database_manager):
        """
        Initialize the gallery manager with database connection.

        Args:
            database_manager: Database manager instance
        """
        self.db = database_manager
        self.logger = logging.getLogger(__name__)

    def create_request(self, student_number: str, image_url: str, description: str,
                       time_of_event: str) -> Dict[str, Any]:
        """
        Submit a photo for the gallery.

        Args:
            student_number (str): Student id of the submitter
            image_url (str): Image location
            description (str): Short description
            time_of_event (str): When the event happened (free text)

        Returns:
            Dict[str, Any]: Creation result
        """
        try:
            student = self.db.execute_query(
                "SELECT id FROM students WHERE student_id = ? AND is_active = 1",
                (student_number,),
                fetch_all=False
            )
            if not student:
                return {'success': False, 'error': 'Student not found', 'status': 404}

            for field, value in (('image_url', image_url), ('short_description', description),
                                 ('time_of_event', time_of_event)):
                if not (value or '').strip():
                    return {'success': False, 'error': f'{field} is required'}

            gallery_id = self.db.execute_update("""
                INSERT INTO galleries (student_id, image_url, short_description, time_of_event,
                                       status, submitted_date)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (student['id'], image_url.strip(), description.strip(), time_of_event.strip(),
                  STATUS_PENDING, now_str()))

            self.logger.info(f"Gallery request {gallery_id} submitted by {student_number}")

            return {
                'success': True,
                'message': 'Gallery request submitted successfully',
                'gallery_id': gallery_id
            }

        except Exception as e:
            self.logger.error(f"Gallery submission failed for {student_number}: {str(e)}")
            return {'success': False, 'error': 'Failed to submit gallery request'}

    def get_gallery(self, gallery_id: int) -> Optional[Dict[str, Any]]:
        """Get a gallery entry with its submitter."""
        return self.db.execute_query("""
            SELECT g.*, s.student_id as student_number, s.first_name || ' ' || s.last_name as student_name
            FROM galleries g
            JOIN students s ON g.student_id = s.id
            WHERE g.id = ?
        """, (gallery_id,), fetch_all=False)

    def get_approved(self) -> List[Dict[str, Any]]:
        """Approved entries for the public gallery, most recently reviewed first."""
        return self.db.execute_query("""
            SELECT g.id, g.image_url, g.short_description, g.time_of_event, g.status,
                   g.submitted_date, g.reviewed_date,
                   s.first_name || ' ' || s.last_name as student_name, s.student_id as student_number
            FROM galleries g
            JOIN students s ON g.student_id = s.id
            WHERE g.status = ?
            ORDER BY g.reviewed_date DESC, g.id DESC
        """, (STATUS_APPROVED,))

    def get_all_requests(self) -> List[Dict[str, Any]]:
        """Every gallery entry for admins, newest first."""
        return self.db.execute_query("""
            SELECT g.*, s.student_id as student_number, s.first_name || ' ' || s.last_name as student_name,
                   s.email as student_email,
                   a.first_name || ' ' || a.last_name as reviewed_by_name
            FROM galleries g
            JOIN students s ON g.student_id = s.id
            LEFT JOIN admins a ON g.reviewed_by_admin_id = a.id
            ORDER BY g.submitted_date DESC, g.id DESC
        """)

    def get_student_galleries(self, student_number: str) -> List[Dict[str, Any]]:
        """A student's own entries, newest first."""
        return self.db.execute_query("""
            SELECT g.* FROM galleries g
            JOIN students s ON g.student_id = s.id
            WHERE s.student_id = ?
            ORDER BY g.submitted_date DESC, g.id DESC
        """, (student_number,))

    def review(self, gallery_id: int, admin_pk: int, approve: bool,
               response: str = None) -> Dict[str, Any]:
        """
        Approve or reject a gallery entry.

        Args:
            gallery_id (int): Gallery entry id
            admin_pk (int): Database id of the reviewing admin
            approve (bool): Approve when True, reject otherwise
            response (str): Message for the student; a default is used when empty

        Returns:
            Dict[str, Any]: Review result
        """
        try:
            gallery = self.get_gallery(gallery_id)
            if not gallery:
                return {'success': False, 'error': 'Gallery request not found', 'status': 404}

            status = STATUS_APPROVED if approve else STATUS_REJECTED
            message = response or DEFAULT_RESPONSES[status]

            self.db.execute_update("""
                UPDATE galleries
                SET status = ?, reviewed_date = ?, reviewed_by_admin_id = ?, admin_response = ?
                WHERE id = ?
            """, (status, now_str(), admin_pk, message, gallery_id))

            self.logger.info(f"Gallery request {gallery_id} {status.lower()} by admin {admin_pk}; "
                             f"student {gallery['student_number']} to be notified")

            return {
                'success': True,
                'message': f'Gallery request {status.lower()} and student notified',
                'gallery': self.get_gallery(gallery_id)
            }

        except Exception as e:
            self.logger.error(f"Gallery review failed for {gallery_id}: {str(e)}")
            return {'success': False, 'error': 'Failed to review gallery request'}

    def delete(self, gallery_id: int) -> Dict[str, Any]:
        """
        Delete a gallery entry.

        Args:
            gallery_id (int): Gallery entry id

        Returns:
            Dict[str, Any]: Deletion result
        """
        try:
            affected_rows = self.db.execute_update(
                "DELETE FROM galleries WHERE id = ?", (gallery_id,)
            )
            if affected_rows == 0:
                return {'success': False, 'error': 'Gallery request not found', 'status': 404}

            self.logger.info(f"Gallery request {gallery_id} deleted")
            return {'success': True, 'message': 'Gallery request deleted successfully'}

        except Exception as e:
            self.logger.error(f"Failed to delete gallery request {gallery_id}: {str(e)}")
            return {'success': False, 'error': 'Failed to delete gallery request'}

    def get_pending_count(self) -> int:
        """Count gallery entries awaiting review."""
        result = self.db.execute_query(
            "SELECT COUNT(*) as count FROM galleries WHERE status = ?",
            (STATUS_PENDING,),
            fetch_all=False
        )
        return result['count'] if result else 0
