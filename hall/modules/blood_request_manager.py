"""
Blood Request Manager Module - Hall Management System

Residents can post an urgent blood requirement; every other active resident
with the matching blood group and an email address is a potential donor.
"""

from typing import Dict, List, Any
import logging

from hall.modules.database_manager import now_str
from hall.modules.auth_manager import BLOOD_GROUPS


class BloodRequestManager:
    """
    Blood donation requests and donor matching.
    """

    def __init__(self, database_manager):
        self.db = database_manager
        self.logger = logging.getLogger(__name__)

    def create_request(self, student_number: str, blood_group_needed: str, place: str,
                       time: str, special_notes: str = None) -> Dict[str, Any]:
        """
        Post a blood request and count the matching donors.

        Args:
            student_number (str): Student id of the requester
            blood_group_needed (str): Required blood group
            place (str): Where the blood is needed
            time (str): When the blood is needed (free text)
            special_notes (str): Optional notes

        Returns:
            Dict[str, Any]: Creation result with donors_notified
        """
        try:
            requester = self.db.execute_query(
                "SELECT id, student_id FROM students WHERE student_id = ? AND is_active = 1",
                (student_number,),
                fetch_all=False
            )
            if not requester:
                return {'success': False, 'error': 'Student not found', 'status': 404}

            if blood_group_needed not in BLOOD_GROUPS:
                return {'success': False, 'error': f"Blood group must be one of: {', '.join(BLOOD_GROUPS)}"}

            if not (place or '').strip() or not (time or '').strip():
                return {'success': False, 'error': 'Place and time are required'}

            request_id = self.db.execute_update("""
                INSERT INTO blood_requests (requester_id, blood_group_needed, place, time,
                                            special_notes, request_date, is_active)
                VALUES (?, ?, ?, ?, ?, ?, 1)
            """, (requester['id'], blood_group_needed, place.strip(), time.strip(),
                  special_notes or None, now_str()))

            donors = self.get_matching_donors(blood_group_needed, exclude_student_pk=requester['id'])

            self.logger.info(f"Blood request {request_id} ({blood_group_needed}) by {student_number}; "
                             f"{len(donors)} potential donor(s) to be notified")

            return {
                'success': True,
                'message': 'Blood request created successfully',
                'request_id': request_id,
                'donors_notified': len(donors)
            }

        except Exception as e:
            self.logger.error(f"Blood request failed for {student_number}: {str(e)}")
            return {'success': False, 'error': 'Failed to create blood request'}

    def get_matching_donors(self, blood_group: str, exclude_student_pk: int = None) -> List[Dict[str, Any]]:
        """
        Active residents with the given blood group and an email address.

        Args:
            blood_group (str): Blood group
            exclude_student_pk (int): Requester to leave out

        Returns:
            List[Dict[str, Any]]: Donor contact rows
        """
        return self.db.execute_query("""
            SELECT id, student_id, first_name, last_name, email, phone_number, blood_group
            FROM students
            WHERE blood_group = ? AND id != ? AND is_active = 1
              AND email IS NOT NULL AND email != ''
            ORDER BY first_name, last_name
        """, (blood_group, exclude_student_pk or 0))

    def get_active_requests(self) -> List[Dict[str, Any]]:
        """Active blood requests with the requester's contact, newest first."""
        return self.db.execute_query("""
            SELECT b.*, s.student_id as requester_student_id,
                   s.first_name || ' ' || s.last_name as requester_name,
                   s.phone_number as requester_phone, s.email as requester_email
            FROM blood_requests b
            JOIN students s ON b.requester_id = s.id
            WHERE b.is_active = 1
            ORDER BY b.request_date DESC, b.id DESC
        """)
