"""
Allotment Manager Module - Hall Management System

This module runs the room allotment workflow. Students request a specific
bed; administrators approve, reject or re-assign requests; beds are freed
when a student leaves or is removed. The student record's block, room and
bed columns are the authoritative assignment, and every change re-syncs the
affected rooms' occupancy counters.

Request lifecycle:
    Pending -> Approved | Rejected
    Approved -> Cancelled (deallocation) or superseded by a room change

Features:
- Room applications and edits
- Room change requests
- Admin approval, rejection and re-allocation
- Direct admin allocation without a request
- Single and bulk deallocation
- Student allocation status
- Admin request listing
"""

from typing import Dict, List, Any, Optional, Tuple
import logging
import sqlite3

from hall.modules.database_manager import now_str

STATUS_PENDING = 'Pending'
STATUS_APPROVED = 'Approved'
STATUS_REJECTED = 'Rejected'
STATUS_CANCELLED = 'Cancelled'


def append_note(existing: Optional[str], note: str, timestamp: str) -> str:
    """Append a timestamped line to an allotment's admin notes."""
    line = f"[{timestamp}] {note}"
    return f"{existing}\n{line}" if existing else line


class AllotmentManager:
    """
    Room allotment workflow: requests, decisions, allocation and deallocation.
    """

    def __init__(self, database_manager, room_manager):
        """
        Initialize the allotment manager.

        Args:
            database_manager: Database manager instance
            room_manager: Room manager used for room lookups and occupancy sync
        """
        self.db = database_manager
        self.rooms = room_manager
        self.logger = logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Student requests
    # ------------------------------------------------------------------

    def apply_for_room(self, student_number: str, block: str, room_no: str,
                       bed_no: Any, notes: str = '') -> Dict[str, Any]:
        """
        Submit a request for a specific bed.

        Args:
            student_number (str): Student id of the applicant
            block (str): Requested block
            room_no (str): Requested room number
            bed_no: Requested bed number
            notes (str): Student notes

        Returns:
            Dict[str, Any]: Result with the created request id
        """
        try:
            student = self._get_student(student_number)
            if not student:
                return {'success': False, 'error': 'Student not found', 'status': 404}

            if student['bed_no'] is not None or self._get_active(student_number, STATUS_APPROVED):
                return {'success': False, 'error': 'You already have an allocated room. Use a room change request instead.'}

            if self._get_active(student_number, STATUS_PENDING):
                return {'success': False, 'error': 'You already have a pending room request'}

            room, bed, error = self._validate_target(block, room_no, bed_no)
            if error:
                return {'success': False, 'error': error}

            request_id = self.db.execute_update("""
                INSERT INTO room_allotments (student_id, student_number, room_id, requested_block,
                                             requested_room_no, requested_bed_no, status,
                                             request_date, is_active, is_room_change, student_notes)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1, 0, ?)
            """, (student['id'], student_number, room['id'], room['block'], room['room_number'],
                  bed, STATUS_PENDING, now_str(), notes or ''))

            self.logger.info(f"Room request {request_id} submitted by {student_number} for "
                             f"{room['room_number']}/{room['block']} bed {bed}")

            return {
                'success': True,
                'message': 'Room application submitted successfully',
                'request_id': request_id,
                'request': self.get_request(request_id)
            }

        except Exception as e:
            self.logger.error(f"Room application failed for {student_number}: {str(e)}")
            return {'success': False, 'error': 'Failed to submit room application'}

    def edit_request(self, request_id: int, student_number: str, block: str, room_no: str,
                     bed_no: Any, notes: str = None) -> Dict[str, Any]:
        """
        Change the target of the student's own pending request.

        Args:
            request_id (int): Allotment id
            student_number (str): Student id of the caller
            block (str): New block
            room_no (str): New room number
            bed_no: New bed number
            notes (str): New student notes (kept when None)

        Returns:
            Dict[str, Any]: Update result
        """
        try:
            request = self.get_request(request_id)
            if not request or not request['is_active'] or request['student_number'] != student_number:
                return {'success': False, 'error': 'Room request not found', 'status': 404}

            if request['status'] != STATUS_PENDING:
                return {'success': False, 'error': 'Only pending requests can be edited'}

            room, bed, error = self._validate_target(block, room_no, bed_no)
            if error:
                return {'success': False, 'error': error}

            if request['is_room_change']:
                student = self._get_student(student_number)
                if (student['block'], student['room_no'], student['bed_no']) == (room['block'], room['room_number'], bed):
                    return {'success': False, 'error': 'You are already assigned to this bed'}

            self.db.execute_update("""
                UPDATE room_allotments
                SET room_id = ?, requested_block = ?, requested_room_no = ?, requested_bed_no = ?,
                    student_notes = ?, request_date = ?
                WHERE id = ?
            """, (room['id'], room['block'], room['room_number'], bed,
                  request['student_notes'] if notes is None else notes, now_str(), request_id))

            self.logger.info(f"Room request {request_id} edited by {student_number}")

            return {
                'success': True,
                'message': 'Room request updated successfully',
                'request': self.get_request(request_id)
            }

        except Exception as e:
            self.logger.error(f"Editing room request {request_id} failed: {str(e)}")
            return {'success': False, 'error': 'Failed to update room request'}

    def request_room_change(self, student_number: str, block: str, room_no: str,
                            bed_no: Any, notes: str = '') -> Dict[str, Any]:
        """
        Request a move from the student's current bed to another one.

        Args:
            student_number (str): Student id
            block (str): Target block
            room_no (str): Target room number
            bed_no: Target bed number
            notes (str): Reason for the change

        Returns:
            Dict[str, Any]: Result with the created request id
        """
        try:
            student = self._get_student(student_number)
            if not student:
                return {'success': False, 'error': 'Student not found', 'status': 404}

            if student['bed_no'] is None:
                return {'success': False, 'error': 'You do not have a room allocated. Apply for a room first.'}

            if self._get_active(student_number, STATUS_PENDING):
                return {'success': False, 'error': 'You already have a pending room request'}

            room, bed, error = self._validate_target(block, room_no, bed_no)
            if error:
                return {'success': False, 'error': error}

            if (student['block'], student['room_no'], student['bed_no']) == (room['block'], room['room_number'], bed):
                return {'success': False, 'error': 'You are already assigned to this bed'}

            request_id = self.db.execute_update("""
                INSERT INTO room_allotments (student_id, student_number, room_id, requested_block,
                                             requested_room_no, requested_bed_no, status,
                                             request_date, is_active, is_room_change, student_notes)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1, 1, ?)
            """, (student['id'], student_number, room['id'], room['block'], room['room_number'],
                  bed, STATUS_PENDING, now_str(), notes or ''))

            self.logger.info(f"Room change request {request_id} submitted by {student_number}: "
                             f"{student['room_no']}/{student['block']} -> {room['room_number']}/{room['block']}")

            return {
                'success': True,
                'message': 'Room change request submitted successfully',
                'request_id': request_id,
                'request': self.get_request(request_id)
            }

        except Exception as e:
            self.logger.error(f"Room change request failed for {student_number}: {str(e)}")
            return {'success': False, 'error': 'Failed to submit room change request'}

    # ------------------------------------------------------------------
    # Admin decisions
    # ------------------------------------------------------------------

    def admin_action(self, request_id: int, action: str, admin_notes: str = '',
                     admin_id: str = None) -> Dict[str, Any]:
        """
        Approve or reject a pending request.

        Args:
            request_id (int): Allotment id
            action (str): 'approve' or 'reject'
            admin_notes (str): Notes shown to the student
            admin_id (str): Acting admin id

        Returns:
            Dict[str, Any]: Result with the new status
        """
        try:
            request = self.get_request(request_id)
            if not request or not request['is_active'] or request['status'] != STATUS_PENDING:
                return {'success': False, 'error': 'Room allocation request not found or already processed', 'status': 404}

            action = (action or '').lower()
            if action not in ('approve', 'reject'):
                return {'success': False, 'error': "Invalid action. Use 'approve' or 'reject'"}

            if action == 'reject':
                self.db.execute_update("""
                    UPDATE room_allotments
                    SET status = ?, admin_notes = ?, approved_by_admin_id = ?, admin_action_date = ?
                    WHERE id = ?
                """, (STATUS_REJECTED, admin_notes or '', admin_id, now_str(), request_id))

                self.logger.info(f"Room request {request_id} rejected by {admin_id}; "
                                 f"student {request['student_number']} to be notified")

                return {
                    'success': True,
                    'message': 'Room allocation request rejected successfully',
                    'request_id': request_id,
                    'request_status': STATUS_REJECTED,
                    'admin_notes': admin_notes or ''
                }

            student = self._get_student_by_pk(request['student_id'])
            if not student:
                return {'success': False, 'error': f"Student with ID {request['student_number']} not found"}

            room, bed, error = self._validate_target(
                request['requested_block'], request['requested_room_no'],
                request['requested_bed_no'], exclude_student_pk=student['id']
            )
            if error:
                return {'success': False, 'error': error}

            self._assign_bed(student, request_id, room, bed, admin_notes, admin_id,
                             note='Superseded by approved room change')

            self.logger.info(f"Room request {request_id} approved by {admin_id}: {student['student_id']} -> "
                             f"{room['room_number']}/{room['block']} bed {bed}; student to be notified")

            return {
                'success': True,
                'message': 'Room allocation request approved successfully',
                'request_id': request_id,
                'request_status': STATUS_APPROVED,
                'admin_notes': admin_notes or ''
            }

        except sqlite3.IntegrityError:
            return {'success': False, 'error': 'The requested bed is already occupied'}
        except Exception as e:
            self.logger.error(f"Admin action on request {request_id} failed: {str(e)}")
            return {'success': False, 'error': 'Failed to process admin action'}

    def admin_allocate(self, request_id: int, block: str, room_no: str, bed_no: Any,
                       admin_notes: str = '', admin_id: str = None) -> Dict[str, Any]:
        """
        Place the student of a pending or approved request into a chosen bed.

        Args:
            request_id (int): Allotment id
            block (str): Target block
            room_no (str): Target room number
            bed_no: Target bed number
            admin_notes (str): Admin notes
            admin_id (str): Acting admin id

        Returns:
            Dict[str, Any]: Allocation result
        """
        try:
            request = self.get_request(request_id)
            if not request or not request['is_active']:
                return {'success': False, 'error': 'Room allocation request not found', 'status': 404}

            if request['status'] not in (STATUS_PENDING, STATUS_APPROVED):
                return {'success': False, 'error': f"Cannot allocate a {request['status'].lower()} request"}

            student = self._get_student_by_pk(request['student_id'])
            if not student:
                return {'success': False, 'error': 'Student not found', 'status': 404}

            room, bed, error = self._validate_target(block, room_no, bed_no, exclude_student_pk=student['id'])
            if error:
                return {'success': False, 'error': error}

            self._assign_bed(student, request_id, room, bed, admin_notes, admin_id,
                             note='Superseded by admin re-allocation')

            self.logger.info(f"Admin {admin_id} allocated {student['student_id']} to "
                             f"{room['room_number']}/{room['block']} bed {bed} via request {request_id}")

            return {
                'success': True,
                'message': f"Student allocated to room {room['room_number']}/{room['block']}, bed {bed}",
                'request': self.get_request(request_id)
            }

        except sqlite3.IntegrityError:
            return {'success': False, 'error': 'The selected bed is already occupied'}
        except Exception as e:
            self.logger.error(f"Admin allocation for request {request_id} failed: {str(e)}")
            return {'success': False, 'error': 'Failed to allocate room'}

    def admin_direct_allocate(self, student_pk: int, block: str, room_no: str, bed_no: Any,
                              admin_notes: str = '', admin_id: str = None) -> Dict[str, Any]:
        """
        Allocate a bed to a student who has not requested one.

        Args:
            student_pk (int): Student database id
            block (str): Target block
            room_no (str): Target room number
            bed_no: Target bed number
            admin_notes (str): Admin notes
            admin_id (str): Acting admin id

        Returns:
            Dict[str, Any]: Allocation result
        """
        try:
            student = self._get_student_by_pk(student_pk)
            if not student:
                return {'success': False, 'error': 'Student not found', 'status': 404}

            room, bed, error = self._validate_target(block, room_no, bed_no, exclude_student_pk=student['id'])
            if error:
                return {'success': False, 'error': error}

            latest = self.db.execute_query("""
                SELECT * FROM room_allotments
                WHERE student_id = ? AND is_active = 1
                ORDER BY request_date DESC, id DESC
                LIMIT 1
            """, (student['id'],), fetch_all=False)

            if latest:
                allotment_id = latest['id']
            else:
                allotment_id = self.db.execute_update("""
                    INSERT INTO room_allotments (student_id, student_number, room_id, requested_block,
                                                 requested_room_no, requested_bed_no, status,
                                                 request_date, is_active, is_room_change, student_notes)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1, 0, ?)
                """, (student['id'], student['student_id'], room['id'], room['block'], room['room_number'],
                      bed, STATUS_PENDING, now_str(), 'Allocated directly by admin'))

            self._assign_bed(student, allotment_id, room, bed, admin_notes, admin_id,
                             note='Superseded by direct admin allocation')

            self.logger.info(f"Admin {admin_id} directly allocated {student['student_id']} to "
                             f"{room['room_number']}/{room['block']} bed {bed}")

            return {
                'success': True,
                'message': f"Student allocated to room {room['room_number']}/{room['block']}, bed {bed}",
                'allotment': self.get_request(allotment_id)
            }

        except sqlite3.IntegrityError:
            return {'success': False, 'error': 'The selected bed is already occupied'}
        except Exception as e:
            self.logger.error(f"Direct allocation for student {student_pk} failed: {str(e)}")
            return {'success': False, 'error': 'Failed to allocate room'}

    # ------------------------------------------------------------------
    # Deallocation
    # ------------------------------------------------------------------

    def deallocate(self, student_number: str, note: str = 'Room deallocated') -> Dict[str, Any]:
        """
        Free a student's bed and close their allotment records.

        Args:
            student_number (str): Student id
            note (str): Note appended to the cancelled allotment

        Returns:
            Dict[str, Any]: Result with the freed room and cancelled allotment ids
        """
        try:
            student = self._get_student(student_number)
            if not student:
                return {'success': False, 'error': 'Student not found', 'status': 404}

            approved = self._get_active(student_number, STATUS_APPROVED)
            if student['bed_no'] is None and not approved:
                return {'success': False, 'error': 'No room allocation found for this student'}

            previous = (student['block'], student['room_no'], student['bed_no'])
            cancelled_ids = self._release_bed(student, note)

            if previous[0] and previous[1]:
                self.rooms.sync_occupancy(previous[0], previous[1])

            self.logger.info(f"Student {student_number} deallocated from "
                             f"{previous[1]}/{previous[0]} bed {previous[2]}")

            return {
                'success': True,
                'message': 'Room deallocated successfully',
                'student_id': student_number,
                'room': f"{previous[1]}/{previous[0]}" if previous[0] else None,
                'bed_no': previous[2],
                'cancelled_allotment_ids': cancelled_ids
            }

        except Exception as e:
            self.logger.error(f"Deallocation failed for {student_number}: {str(e)}")
            return {'success': False, 'error': 'Failed to deallocate room'}

    def cancel_allocation_by_admin(self, student_pk: int) -> Dict[str, Any]:
        """
        Admin cancellation of a student's current allocation.

        Args:
            student_pk (int): Student database id

        Returns:
            Dict[str, Any]: Deallocation result
        """
        student = self._get_student_by_pk(student_pk)
        if not student:
            return {'success': False, 'error': 'Student not found', 'status': 404}

        if student['bed_no'] is None:
            return {'success': False, 'error': 'Student does not have a room allocated'}

        return self.deallocate(student['student_id'], note='Room allocation cancelled by admin')

    def bulk_deallocate(self, student_numbers: List[str]) -> Dict[str, Any]:
        """
        Deallocate several students.

        Args:
            student_numbers (List[str]): Student ids

        Returns:
            Dict[str, Any]: Counts of deallocated students and affected rooms, and failures
        """
        if not student_numbers:
            return {'success': False, 'error': 'No student IDs provided'}

        deallocated = []
        affected_rooms = set()
        cancelled_ids = []
        failed = []

        for student_number in student_numbers:
            result = self.deallocate(student_number, note='Bulk deallocation by admin')
            if result['success']:
                deallocated.append(student_number)
                if result['room']:
                    affected_rooms.add(result['room'])
                cancelled_ids.extend(result['cancelled_allotment_ids'])
            else:
                failed.append({'student_id': student_number, 'error': result['error']})

        self.logger.info(f"Bulk deallocation: {len(deallocated)} students, "
                         f"{len(affected_rooms)} rooms, {len(failed)} failed")

        return {
            'success': len(deallocated) > 0,
            'message': f"{len(deallocated)} student(s) deallocated",
            'deallocated_count': len(deallocated),
            'affected_rooms_count': len(affected_rooms),
            'affected_rooms': sorted(affected_rooms),
            'cancelled_allotment_ids': cancelled_ids,
            'deallocated': deallocated,
            'failed': failed,
            'error': None if deallocated else 'No students were deallocated'
        }

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_request(self, request_id: int) -> Optional[Dict[str, Any]]:
        """
        Get an allotment record by id.

        Args:
            request_id (int): Allotment id

        Returns:
            Dict[str, Any]: Allotment or None
        """
        allotment = self.db.execute_query(
            "SELECT * FROM room_allotments WHERE id = ?", (request_id,), fetch_all=False
        )
        if allotment:
            allotment['requested_room'] = f"{allotment['requested_room_no']}/{allotment['requested_block']}"
        return allotment

    def get_student_status(self, student_number: str) -> Optional[Dict[str, Any]]:
        """
        Summarize a student's allotment state.

        currentStatus is one of none, pending, approved,
        approved_with_pending_change, rejected or cancelled.

        Args:
            student_number (str): Student id

        Returns:
            Dict[str, Any]: Status summary, or None if the student is unknown
        """
        student = self._get_student(student_number)
        if not student:
            return None

        pending = self._get_active(student_number, STATUS_PENDING)
        approved = self._get_active(student_number, STATUS_APPROVED)
        rejected = self._get_active(student_number, STATUS_REJECTED)
        cancelled = self._get_active(student_number, STATUS_CANCELLED)

        current_status = 'none'
        has_change_request = bool(pending and pending['is_room_change'])

        cancelled_at = (cancelled['admin_action_date'] or '') if cancelled else ''
        cancellation_is_latest = (
            cancelled is not None
            and (not approved or cancelled_at > (approved['admin_action_date'] or ''))
            and (not pending or cancelled_at > pending['request_date'])
        )

        if cancellation_is_latest:
            current_status = 'cancelled'
        elif approved and not pending:
            current_status = 'approved'
        elif approved and has_change_request:
            current_status = 'approved_with_pending_change'
        elif pending and not approved:
            current_status = 'pending'
        elif rejected and not approved and not pending:
            current_status = 'rejected'

        return {
            'currentStatus': current_status,
            'is_allocated': student['bed_no'] is not None,
            'has_pending_request': pending is not None,
            'has_rejected_request': rejected is not None,
            'has_cancelled_request': cancelled is not None,
            'pending_request': {
                'id': pending['id'],
                'requested_room': f"{pending['requested_room_no']}/{pending['requested_block']}",
                'requested_bed': pending['requested_bed_no'],
                'request_date': pending['request_date'],
                'status': pending['status'],
                'student_notes': pending['student_notes'],
                'is_room_change': bool(pending['is_room_change'])
            } if pending else None,
            'current_allocation': {
                'id': approved['id'],
                'room': f"{approved['requested_room_no']}/{approved['requested_block']}",
                'bed': approved['requested_bed_no'],
                'allotment_date': approved['admin_action_date'],
                'check_in_date': approved['check_in_date'],
                'status': approved['status'],
                'admin_notes': approved['admin_notes'],
                'approved_by': approved['approved_by_admin_id']
            } if approved else None,
            'rejected_request': {
                'id': rejected['id'],
                'requested_room': f"{rejected['requested_room_no']}/{rejected['requested_block']}",
                'requested_bed': rejected['requested_bed_no'],
                'request_date': rejected['request_date'],
                'rejection_date': rejected['admin_action_date'],
                'admin_notes': rejected['admin_notes'],
                'rejected_by': rejected['approved_by_admin_id'],
                'student_notes': rejected['student_notes']
            } if rejected else None,
            'cancelled_request': {
                'id': cancelled['id'],
                'previous_room': f"{cancelled['requested_room_no']}/{cancelled['requested_block']}",
                'previous_bed': cancelled['requested_bed_no'],
                'original_request_date': cancelled['request_date'],
                'cancellation_date': cancelled['admin_action_date'],
                'admin_notes': cancelled['admin_notes'],
                'cancelled_by': cancelled['approved_by_admin_id']
            } if cancelled else None
        }

    def get_all_requests(self) -> List[Dict[str, Any]]:
        """
        Get every allotment with its student, oldest first.

        Returns:
            List[Dict[str, Any]]: Allotments; room changes include the current room and bed
        """
        try:
            rows = self.db.execute_query("""
                SELECT ra.*, s.first_name, s.last_name, s.email, s.phone_number, s.department,
                       s.year, s.session, s.block as current_block, s.room_no as current_room_no,
                       s.bed_no as current_bed_no
                FROM room_allotments ra
                JOIN students s ON ra.student_id = s.id
                ORDER BY ra.request_date ASC, ra.id ASC
            """)

            for row in rows:
                row['student_name'] = f"{row['first_name']} {row['last_name']}"
                row['requested_room'] = f"{row['requested_room_no']}/{row['requested_block']}"
                row['is_room_change'] = bool(row['is_room_change'])
                row['is_active'] = bool(row['is_active'])
                if row['is_room_change'] and row['current_room_no']:
                    row['current_room'] = f"{row['current_room_no']}/{row['current_block']}"
                    row['current_bed'] = row['current_bed_no']
                else:
                    row['current_room'] = None
                    row['current_bed'] = None

            return rows

        except Exception as e:
            self.logger.error(f"Failed to get room requests: {str(e)}")
            return []

    def get_pending_count(self) -> int:
        """Count active pending requests."""
        result = self.db.execute_query(
            "SELECT COUNT(*) as count FROM room_allotments WHERE status = ? AND is_active = 1",
            (STATUS_PENDING,),
            fetch_all=False
        )
        return result['count'] if result else 0

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_student(self, student_number: str) -> Optional[Dict[str, Any]]:
        return self.db.execute_query(
            "SELECT * FROM students WHERE student_id = ? AND is_active = 1",
            (student_number,),
            fetch_all=False
        )

    def _get_student_by_pk(self, student_pk: int) -> Optional[Dict[str, Any]]:
        return self.db.execute_query(
            "SELECT * FROM students WHERE id = ? AND is_active = 1",
            (student_pk,),
            fetch_all=False
        )

    def _get_active(self, student_number: str, status: str) -> Optional[Dict[str, Any]]:
        """Newest active allotment of a student in the given status."""
        order = 'request_date' if status == STATUS_PENDING else 'admin_action_date'
        return self.db.execute_query(f"""
            SELECT * FROM room_allotments
            WHERE student_number = ? AND status = ? AND is_active = 1
            ORDER BY {order} DESC, id DESC
            LIMIT 1
        """, (student_number, status), fetch_all=False)

    def _validate_target(self, block: str, room_no: str, bed_no: Any,
                         exclude_student_pk: int = None) -> Tuple[Optional[Dict[str, Any]], Optional[int], Optional[str]]:
        """
        Check that a bed exists and is free.

        Args:
            block (str): Block letter
            room_no (str): Room number
            bed_no: Bed number
            exclude_student_pk (int): Student whose own bed does not count as taken

        Returns:
            Tuple: (room, bed number, error message)
        """
        if not block or not room_no or bed_no in (None, ''):
            return None, None, 'Block, room number and bed number are required'

        block = str(block).strip().upper()
        room_no = str(room_no).strip()

        if isinstance(bed_no, bool) or (isinstance(bed_no, float) and not bed_no.is_integer()):
            return None, None, 'Bed number must be a whole number'
        try:
            bed = int(bed_no) if isinstance(bed_no, float) else int(str(bed_no).strip())
        except (TypeError, ValueError):
            return None, None, 'Bed number must be a whole number'

        room = self.rooms.get_room(block, room_no)
        if not room:
            return None, None, f'Room {room_no}/{block} not found'

        if bed < 1 or bed > room['capacity']:
            return None, None, f"Bed number must be between 1 and {room['capacity']}"

        occupants = [student for student in self.rooms.get_occupants(block, room_no)
                     if student['id'] != exclude_student_pk]

        if any(student['bed_no'] == bed for student in occupants):
            return None, None, f'Bed {bed} in room {room_no}/{block} is already occupied'

        if len(occupants) >= room['capacity']:
            return None, None, f'Room {room_no}/{block} is full'

        return room, bed, None

    def _assign_bed(self, student: Dict[str, Any], allotment_id: int, room: Dict[str, Any],
                    bed: int, admin_notes: str, admin_id: str, note: str) -> None:
        """
        Move a student into a bed and mark the allotment Approved.
        The student's other active pending/approved records are closed.
        """
        timestamp = now_str()
        previous = (student['block'], student['room_no'])

        with self.db.transaction() as conn:
            cursor = conn.cursor()

            # Free the old bed first so a move within the same room cannot collide
            cursor.execute(
                "UPDATE students SET block = NULL, room_no = NULL, bed_no = NULL WHERE id = ?",
                (student['id'],)
            )
            cursor.execute("""
                UPDATE students SET block = ?, room_no = ?, bed_no = ?, room_allocation_date = ?
                WHERE id = ?
            """, (room['block'], room['room_number'], bed, timestamp, student['id']))

            others = cursor.execute("""
                SELECT id, admin_notes FROM room_allotments
                WHERE student_id = ? AND id != ? AND is_active = 1 AND status IN (?, ?)
            """, (student['id'], allotment_id, STATUS_APPROVED, STATUS_PENDING)).fetchall()

            for other in others:
                cursor.execute(
                    "UPDATE room_allotments SET is_active = 0, admin_notes = ?, check_out_date = ? WHERE id = ?",
                    (append_note(other['admin_notes'], note, timestamp), timestamp, other['id'])
                )

            cursor.execute("""
                UPDATE room_allotments
                SET status = ?, room_id = ?, requested_block = ?, requested_room_no = ?,
                    requested_bed_no = ?, admin_notes = ?, approved_by_admin_id = ?,
                    admin_action_date = ?, check_in_date = ?, check_out_date = NULL
                WHERE id = ?
            """, (STATUS_APPROVED, room['id'], room['block'], room['room_number'], bed,
                  admin_notes or '', admin_id, timestamp, timestamp, allotment_id))

        if previous[0] and previous[1] and previous != (room['block'], room['room_number']):
            self.rooms.sync_occupancy(previous[0], previous[1])
        self.rooms.sync_occupancy(room['block'], room['room_number'])

    def _release_bed(self, student: Dict[str, Any], note: str) -> List[int]:
        """
        Clear a student's bed, cancel the active approved allotment and
        deactivate any other active records.

        Returns:
            List[int]: Ids of the cancelled allotments
        """
        timestamp = now_str()
        cancelled_ids = []

        with self.db.transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                UPDATE students SET block = NULL, room_no = NULL, bed_no = NULL, room_allocation_date = NULL
                WHERE id = ?
            """, (student['id'],))

            active = cursor.execute(
                "SELECT id, status, admin_notes FROM room_allotments WHERE student_id = ? AND is_active = 1",
                (student['id'],)
            ).fetchall()

            for allotment in active:
                if allotment['status'] == STATUS_APPROVED:
                    cursor.execute("""
                        UPDATE room_allotments
                        SET status = ?, admin_notes = ?, admin_action_date = ?, check_out_date = ?
                        WHERE id = ?
                    """, (STATUS_CANCELLED, append_note(allotment['admin_notes'], note, timestamp),
                          timestamp, timestamp, allotment['id']))
                    cancelled_ids.append(allotment['id'])
                else:
                    cursor.execute(
                        "UPDATE room_allotments SET is_active = 0 WHERE id = ?", (allotment['id'],)
                    )

        return cancelled_ids
