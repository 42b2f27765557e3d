"""
Dashboard Manager Module - Hall Management System

Aggregated figures for the admin dashboard: headline statistics, a merged
recent-activity feed, a monthly overview and the sidebar badge counts.

Features:
- Headline statistics with pending and approved-today breakdowns
- Recent activity feed across rooms, complaints, gallery and payments
- Month-by-month overview
- Sidebar counters
"""

from typing import Dict, List, Any
from datetime import datetime, timedelta
import logging

from hall.modules.database_manager import now_str, parse_timestamp, add_months


class DashboardManager:
    """
    Read-only statistics for administrators.
    """

    FEED_SOURCE_LIMIT = 10

    def __init__(self, database_manager, room_manager, student_manager, allotment_manager,
                 complaint_manager, gallery_manager, payment_manager):
        """
        Initialize the dashboard manager.

        Args:
            database_manager: Database manager instance
            room_manager: Room manager used for the occupancy totals
            student_manager: Student manager used for the head count
            allotment_manager: Allotment manager used for pending room requests
            complaint_manager: Complaint manager used for unsolved complaints
            gallery_manager: Gallery manager used for pending gallery entries
            payment_manager: Payment manager used for outstanding dues
        """
        self.db = database_manager
        self.room_manager = room_manager
        self.student_manager = student_manager
        self.allotment_manager = allotment_manager
        self.complaint_manager = complaint_manager
        self.gallery_manager = gallery_manager
        self.payment_manager = payment_manager
        self.logger = logging.getLogger(__name__)

    def get_stats(self) -> Dict[str, Any]:
        """
        Headline dashboard statistics.

        Returns:
            Dict[str, Any]: Student, request and occupancy figures
        """
        try:
            today = datetime.now().replace(hour=0, minute=0, second=0, microsecond=0)
            day_window = (now_str(today), now_str(today + timedelta(days=1)))

            pending_rooms = self.allotment_manager.get_pending_count()
            pending_gallery = self.gallery_manager.get_pending_count()
            pending_complaints = self.complaint_manager.get_unsolved_count()

            approved_rooms = self._count("""
                SELECT COUNT(*) as count FROM room_allotments
                WHERE status = 'Approved' AND admin_action_date >= ? AND admin_action_date < ?
            """, day_window)
            approved_gallery = self._count("""
                SELECT COUNT(*) as count FROM galleries
                WHERE status = 'Approved' AND reviewed_date >= ? AND reviewed_date < ?
            """, day_window)
            solved_complaints = self._count("""
                SELECT COUNT(*) as count FROM complaints
                WHERE status = 'Solved' AND resolved_date >= ? AND resolved_date < ?
            """, day_window)

            occupancy = self.room_manager.get_occupancy_summary()

            return {
                'totalStudents': self.student_manager.get_student_count(active_only=False),
                'pendingRequests': pending_rooms + pending_gallery + pending_complaints,
                'pendingRoomRequests': pending_rooms,
                'pendingGalleryRequests': pending_gallery,
                'pendingComplaints': pending_complaints,
                'approvedToday': approved_rooms + approved_gallery + solved_complaints,
                'roomOccupancy': occupancy['occupancy_percentage'],
                'allocatedStudents': occupancy['allocated_beds'],
                'totalCapacity': occupancy['total_capacity'],
                'totalRooms': occupancy['total_rooms']
            }

        except Exception as e:
            self.logger.error(f"Failed to build dashboard stats: {str(e)}")
            raise

    def get_recent_activities(self, limit: int = 4) -> List[Dict[str, Any]]:
        """
        The newest events across the hall, merged into one feed.

        Args:
            limit (int): Number of activities to return

        Returns:
            List[Dict[str, Any]]: Activities with type, status, message, time and color
        """
        source_limit = self.FEED_SOURCE_LIMIT
        activities = []

        for row in self.db.execute_query("""
            SELECT a.status, COALESCE(a.admin_action_date, a.request_date) as time,
                   s.first_name || ' ' || s.last_name as student_name
            FROM room_allotments a
            JOIN students s ON a.student_id = s.id
            ORDER BY time DESC LIMIT ?
        """, (source_limit,)):
            activities.append({
                'type': 'room_request',
                'status': row['status'],
                'message': f"Room request {row['status'].lower()} for {row['student_name']}",
                'time': row['time'],
                'color': {'Approved': 'success', 'Rejected': 'error'}.get(row['status'], 'warning')
            })

        for row in self.db.execute_query("""
            SELECT c.status, c.complaint_type, COALESCE(c.resolved_date, c.submitted_date) as time,
                   s.first_name || ' ' || s.last_name as student_name
            FROM complaints c
            JOIN students s ON c.student_id = s.id
            ORDER BY time DESC LIMIT ?
        """, (source_limit,)):
            solved = row['status'] == 'Solved'
            activities.append({
                'type': 'complaint',
                'status': row['status'],
                'message': (f"Complaint resolved: {row['complaint_type']}" if solved
                            else f"New complaint by {row['student_name']}: {row['complaint_type']}"),
                'time': row['time'],
                'color': 'success' if solved else 'warning'
            })

        for row in self.db.execute_query("""
            SELECT status, time_of_event, COALESCE(reviewed_date, submitted_date) as time
            FROM galleries
            ORDER BY time DESC LIMIT ?
        """, (source_limit,)):
            activities.append({
                'type': 'gallery_request',
                'status': row['status'],
                'message': f"Gallery image {row['status'].lower()}: {row['time_of_event']}",
                'time': row['time'],
                'color': {'Approved': 'success', 'Rejected': 'error'}.get(row['status'], 'warning')
            })

        for row in self.db.execute_query("""
            SELECT p.amount, COALESCE(p.paid_date, p.due_date) as time,
                   s.first_name || ' ' || s.last_name as student_name
            FROM payments p
            JOIN students s ON p.student_id = s.id
            WHERE p.status = 'Paid'
            ORDER BY time DESC LIMIT ?
        """, (source_limit,)):
            activities.append({
                'type': 'payment',
                'status': 'Paid',
                'message': f"Payment received from {row['student_name']} - {row['amount']:g} BDT",
                'time': row['time'],
                'color': 'info'
            })

        for row in self.db.execute_query("""
            SELECT COALESCE(a.admin_action_date, a.request_date) as time,
                   COALESCE(r.room_number, a.requested_room_no) as room_number,
                   s.first_name || ' ' || s.last_name as student_name
            FROM room_allotments a
            JOIN students s ON a.student_id = s.id
            LEFT JOIN rooms r ON a.room_id = r.id
            WHERE a.is_room_change = 1 AND a.status = 'Approved'
            ORDER BY time DESC LIMIT ?
        """, (source_limit,)):
            activities.append({
                'type': 'room_change',
                'status': 'Completed',
                'message': f"Room changed for {row['student_name']} to Room {row['room_number']}",
                'time': row['time'],
                'color': 'info'
            })

        activities.sort(key=lambda activity: parse_timestamp(activity['time']) or datetime.min, reverse=True)
        return activities[:limit]

    def get_monthly_overview(self, months: int = 6) -> List[Dict[str, Any]]:
        """
        Per-month totals for the trailing months, oldest first, current month last.

        Args:
            months (int): Number of months including the current one

        Returns:
            List[Dict[str, Any]]: month, newStudents, roomRequests, complaints, revenue
        """
        start_of_month = datetime.now().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        overview = []

        for offset in range(months - 1, -1, -1):
            month_start = add_months(start_of_month, -offset)
            window = (now_str(month_start), now_str(add_months(month_start, 1)))

            revenue = self.db.execute_query("""
                SELECT COALESCE(SUM(amount), 0) as total FROM payments
                WHERE status = 'Paid' AND paid_date >= ? AND paid_date < ?
            """, window, fetch_all=False)['total']

            overview.append({
                'month': month_start.strftime('%b'),
                'year': month_start.year,
                'newStudents': self._count(
                    "SELECT COUNT(*) as count FROM students WHERE registration_date >= ? AND registration_date < ?",
                    window),
                'roomRequests': self._count(
                    "SELECT COUNT(*) as count FROM room_allotments WHERE request_date >= ? AND request_date < ?",
                    window),
                'complaints': self._count(
                    "SELECT COUNT(*) as count FROM complaints WHERE submitted_date >= ? AND submitted_date < ?",
                    window),
                'revenue': revenue
            })

        return overview

    def get_sidebar_counts(self) -> Dict[str, int]:
        """Badge counts for the admin sidebar."""
        return {
            'pendingRoomRequests': self.allotment_manager.get_pending_count(),
            'unsolvedComplaints': self.complaint_manager.get_unsolved_count(),
            'pendingGalleryRequests': self.gallery_manager.get_pending_count(),
            'studentsWithoutRoom': self._count("""
                SELECT COUNT(*) as count FROM students
                WHERE block IS NULL OR block = '' OR room_no IS NULL OR room_no = '' OR bed_no IS NULL
            """),
            'studentsWithPendingDues': self.payment_manager.get_students_with_pending_dues()
        }

    def _count(self, query: str, params: tuple = None) -> int:
        result = self.db.execute_query(query, params, fetch_all=False)
        return result['count'] if result else 0
