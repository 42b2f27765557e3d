"""
Notice Manager Module - Hall Management System

This module handles the hall notice board. Administrators publish notices
(optionally with an image or PDF attachment); residents page through them
and each resident's reads are tracked so the portal can show unread counts.

Features:
- Notice publishing with attachments
- Admin notice listing with read counts
- Paginated student notice feed with read flags
- Read tracking and unread counts
- Soft deletion
"""

from typing import Dict, List, Any, Optional
import logging
import math

from hall.modules.database_manager import now_str

ATTACHMENT_TYPES = ['image', 'pdf']


class NoticeManager:
    """
    Notice board publishing and read tracking.
    """

    def __init__(self, database_manager):
        """
        Initialize the notice manager with database connection.

        Args:
            database_manager: Database manager instance
        """
        self.db = database_manager
        self.logger = logging.getLogger(__name__)

    def create_notice(self, admin_pk: int, subject: str, description: str,
                      attachment_url: str = None, attachment_file_name: str = None,
                      attachment_type: str = None) -> Dict[str, Any]:
        """
        Publish a notice.

        Args:
            admin_pk (int): Database id of the publishing admin
            subject (str): Notice subject
            description (str): Notice body
            attachment_url (str): Optional attachment location
            attachment_file_name (str): Optional attachment file name
            attachment_type (str): 'image' or 'pdf' when an attachment is given

        Returns:
            Dict[str, Any]: Creation result with the notice
        """
        try:
            if not (subject or '').strip() or not (description or '').strip():
                return {'success': False, 'error': 'Subject and description are required'}

            if len(subject.strip()) > 200:
                return {'success': False, 'error': 'Subject must be at most 200 characters'}

            if attachment_url:
                attachment_type = (attachment_type or '').lower()
                if attachment_type not in ATTACHMENT_TYPES:
                    return {'success': False, 'error': "Attachment type must be 'image' or 'pdf'"}
            else:
                attachment_file_name = None
                attachment_type = None

            notice_id = self.db.execute_update("""
                INSERT INTO notices (subject, description, attachment_url, attachment_file_name,
                                     attachment_type, admin_id, created_date, is_active)
                VALUES (?, ?, ?, ?, ?, ?, ?, 1)
            """, (subject.strip(), description.strip(), attachment_url or None,
                  attachment_file_name, attachment_type, admin_pk, now_str()))

            self.logger.info(f"Notice {notice_id} published by admin {admin_pk}")

            return {
                'success': True,
                'message': 'Notice created successfully',
                'notice': self.get_notice(notice_id)
            }

        except Exception as e:
            self.logger.error(f"Notice creation failed: {str(e)}")
            return {'success': False, 'error': 'Failed to create notice'}

    def get_admin_notices(self, admin_pk: int) -> List[Dict[str, Any]]:
        """
        An admin's active notices with read counts, newest first.

        Args:
            admin_pk (int): Admin database id

        Returns:
            List[Dict[str, Any]]: Notices
        """
        return self.db.execute_query("""
            SELECT n.*, COUNT(r.id) as read_count
            FROM notices n
            LEFT JOIN notice_reads r ON r.notice_id = n.id
            WHERE n.admin_id = ? AND n.is_active = 1
            GROUP BY n.id
            ORDER BY n.created_date DESC, n.id DESC
        """, (admin_pk,))

    def get_student_notices(self, student_pk: int, page: int = 1, page_size: int = 10) -> Dict[str, Any]:
        """
        One page of active notices with the student's read flag.

        Args:
            student_pk (int): Student database id
            page (int): 1-based page number
            page_size (int): Page size

        Returns:
            Dict[str, Any]: notices and pagination
        """
        page = max(int(page or 1), 1)
        page_size = max(int(page_size or 10), 1)

        total_count = self.db.execute_query(
            "SELECT COUNT(*) as count FROM notices WHERE is_active = 1",
            fetch_all=False
        )['count']

        notices = self.db.execute_query("""
            SELECT n.id, n.subject, n.description, n.attachment_url, n.attachment_file_name,
                   n.attachment_type, n.created_date,
                   a.first_name || ' ' || a.last_name as admin_name,
                   r.read_date
            FROM notices n
            LEFT JOIN admins a ON n.admin_id = a.id
            LEFT JOIN notice_reads r ON r.notice_id = n.id AND r.student_id = ?
            WHERE n.is_active = 1
            ORDER BY n.created_date DESC, n.id DESC
            LIMIT ? OFFSET ?
        """, (student_pk, page_size, (page - 1) * page_size))

        for notice in notices:
            notice['isRead'] = notice['read_date'] is not None

        return {
            'notices': notices,
            'total_count': total_count,
            'page': page,
            'page_size': page_size,
            'total_pages': math.ceil(total_count / page_size) if total_count else 0
        }

    def get_notice(self, notice_id: int) -> Optional[Dict[str, Any]]:
        """Get an active notice with its author."""
        return self.db.execute_query("""
            SELECT n.*, a.first_name || ' ' || a.last_name as admin_name
            FROM notices n
            LEFT JOIN admins a ON n.admin_id = a.id
            WHERE n.id = ? AND n.is_active = 1
        """, (notice_id,), fetch_all=False)

    def mark_as_read(self, notice_id: int, student_pk: int) -> Dict[str, Any]:
        """
        Record that a student read a notice. Repeated calls are harmless.

        Args:
            notice_id (int): Notice id
            student_pk (int): Student database id

        Returns:
            Dict[str, Any]: Result
        """
        try:
            if not self.get_notice(notice_id):
                return {'success': False, 'error': 'Notice not found', 'status': 404}

            self.db.execute_update(
                "INSERT OR IGNORE INTO notice_reads (notice_id, student_id, read_date) VALUES (?, ?, ?)",
                (notice_id, student_pk, now_str())
            )
            return {'success': True, 'message': 'Notice marked as read'}

        except Exception as e:
            self.logger.error(f"Failed to mark notice {notice_id} read for student {student_pk}: {str(e)}")
            return {'success': False, 'error': 'Failed to mark notice as read'}

    def get_unread_count(self, student_pk: int) -> int:
        """Number of active notices the student has not read."""
        result = self.db.execute_query("""
            SELECT COUNT(*) as count FROM notices n
            WHERE n.is_active = 1
              AND NOT EXISTS (SELECT 1 FROM notice_reads r WHERE r.notice_id = n.id AND r.student_id = ?)
        """, (student_pk,), fetch_all=False)
        return result['count'] if result else 0

    def delete_notice(self, notice_id: int) -> Dict[str, Any]:
        """
        Hide a notice from every feed.

        Args:
            notice_id (int): Notice id

        Returns:
            Dict[str, Any]: Deletion result
        """
        try:
            affected_rows = self.db.execute_update(
                "UPDATE notices SET is_active = 0 WHERE id = ? AND is_active = 1", (notice_id,)
            )
            if affected_rows == 0:
                return {'success': False, 'error': 'Notice not found', 'status': 404}

            self.logger.info(f"Notice {notice_id} deleted")
            return {'success': True, 'message': 'Notice deleted successfully'}

        except Exception as e:
            self.logger.error(f"Failed to delete notice {notice_id}: {str(e)}")
            return {'success': False, 'error': 'Failed to delete notice'}
