"""
Room Manager Module - Hall Management System

This module handles the hall's room inventory. Rooms are identified by block
and room number (e.g. block A, room 203) and hold a fixed number of beds.
Bed assignments live on the student records; the room's occupancy counters
are a cache that sync_occupancy() recomputes from them.

Features:
- Room creation, updates and deletion
- Per-floor availability overview
- Bed status and room layout with roommates
- Capacity management
- Occupancy synchronization and summary
"""

from typing import Dict, List, Any, Optional
import logging
from dataclasses import dataclass, asdict

from hall.modules.database_manager import now_str

# Profile image shown for roommates without one
DEFAULT_PROFILE_IMAGE = '/images/user_icon.png'


@dataclass
class RoomOccupancy:
    """Data structure for room occupancy information."""
    room_id: int
    block: str
    room_number: str
    capacity: int
    current_occupancy: int
    available_beds: int
    status: str


def availability_status(available_beds: int) -> str:
    """Classify free beds as available (more than 2), limited (1-2) or full."""
    if available_beds > 2:
        return 'available'
    if available_beds > 0:
        return 'limited'
    return 'full'


class RoomManager:
    """
    Room inventory and bed occupancy management.
    """

    def __init__(self, database_manager, settings=None):
        """
        Initialize the room manager with database connection.

        Args:
            database_manager: Database manager instance
            settings (Mapping): Hall layout settings
        """
        self.db = database_manager
        self.settings = settings or {}
        self.logger = logging.getLogger(__name__)

        self.BLOCKS = list(self.settings.get('HALL_BLOCKS', ['A', 'B']))
        self.ROOMS_PER_FLOOR = self.settings.get('ROOMS_PER_FLOOR', 15)
        self.DEFAULT_CAPACITY = self.settings.get('BEDS_PER_ROOM', 4)
        self.MAX_CAPACITY = self.settings.get('MAX_ROOM_CAPACITY', 6)
        self.DEFAULT_RENT = self.settings.get('DEFAULT_MONTHLY_RENT', 5000)
        self.DEFAULT_FACILITIES = self.settings.get(
            'DEFAULT_FACILITIES', 'Bed, Study Table, Chair, Wardrobe, Fan, Attached Bathroom'
        )

        self.logger.info("Room manager initialized")

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def get_all_rooms(self) -> List[Dict[str, Any]]:
        """
        Get all rooms ordered by block, floor and room number.

        Returns:
            List[Dict[str, Any]]: Rooms with their available bed count
        """
        try:
            rooms = self.db.execute_query(
                "SELECT * FROM rooms ORDER BY block, floor, room_number"
            )
            for room in rooms:
                room['available_beds'] = max(room['capacity'] - room['current_occupancy'], 0)
            return rooms

        except Exception as e:
            self.logger.error(f"Failed to get rooms: {str(e)}")
            return []

    def get_available_rooms(self) -> List[Dict[str, Any]]:
        """
        Get rooms that still have a free bed.

        Returns:
            List[Dict[str, Any]]: Available rooms
        """
        return [room for room in self.get_all_rooms()
                if room['is_available'] and room['available_beds'] > 0]

    def get_room_by_id(self, room_id: int) -> Optional[Dict[str, Any]]:
        """
        Get room by database ID, with its occupants.

        Args:
            room_id (int): Room database ID

        Returns:
            Dict[str, Any]: Room information or None
        """
        try:
            room = self.db.execute_query(
                "SELECT * FROM rooms WHERE id = ?", (room_id,), fetch_all=False
            )
            if room:
                room['available_beds'] = max(room['capacity'] - room['current_occupancy'], 0)
                room['occupants'] = self.db.execute_query("""
                    SELECT id, student_id, first_name, last_name, bed_no
                    FROM students
                    WHERE block = ? AND room_no = ? AND bed_no IS NOT NULL AND is_active = 1
                    ORDER BY bed_no
                """, (room['block'], room['room_number']))
            return room

        except Exception as e:
            self.logger.error(f"Failed to get room {room_id}: {str(e)}")
            return None

    def get_room(self, block: str, room_no: str) -> Optional[Dict[str, Any]]:
        """
        Get room by block and room number.

        Args:
            block (str): Block letter
            room_no (str): Room number

        Returns:
            Dict[str, Any]: Room information or None
        """
        return self.db.execute_query(
            "SELECT * FROM rooms WHERE block = ? AND room_number = ?",
            (block, room_no),
            fetch_all=False
        )

    def create_room(self, room_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a new room.

        Args:
            room_data (Dict[str, Any]): room_number, floor, block and optional
                capacity, monthly_rent, room_type, facilities

        Returns:
            Dict[str, Any]: Creation result
        """
        room_number = str(room_data.get('room_number') or '').strip()
        block = str(room_data.get('block') or '').strip().upper()
        try:
            if not room_number or not block or room_data.get('floor') in (None, ''):
                return {'success': False, 'error': 'Room number, floor and block are required'}

            if block not in self.BLOCKS:
                return {'success': False, 'error': f"Block must be one of: {', '.join(self.BLOCKS)}"}

            capacity = int(room_data.get('capacity') or self.DEFAULT_CAPACITY)
            if capacity < 1 or capacity > self.MAX_CAPACITY:
                return {'success': False, 'error': f'Capacity must be between 1 and {self.MAX_CAPACITY}'}

            if self.get_room(block, room_number):
                return {'success': False, 'error': f'Room {room_number}/{block} already exists'}

            room_id = self.db.execute_update("""
                INSERT INTO rooms (room_number, floor, block, capacity, current_occupancy,
                                   monthly_rent, room_type, is_available, facilities, created_date)
                VALUES (?, ?, ?, ?, 0, ?, ?, 1, ?, ?)
            """, (room_number, int(room_data['floor']), block, capacity,
                  room_data.get('monthly_rent') or self.DEFAULT_RENT,
                  room_data.get('room_type') or 'Shared',
                  room_data.get('facilities') or self.DEFAULT_FACILITIES,
                  now_str()))

            self.logger.info(f"Room created successfully: {room_number}/{block} (ID: {room_id})")

            return {
                'success': True,
                'room_id': room_id,
                'room': self.get_room_by_id(room_id),
                'message': 'Room created successfully'
            }

        except (TypeError, ValueError):
            return {'success': False, 'error': 'Floor and capacity must be numbers'}
        except Exception as e:
            self.logger.error(f"Room creation failed for {room_number}/{block}: {str(e)}")
            return {'success': False, 'error': 'Failed to create room'}

    def update_room(self, room_id: int, room_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update room information.

        Args:
            room_id (int): Room database ID
            room_data (Dict[str, Any]): Fields to update

        Returns:
            Dict[str, Any]: Update result
        """
        try:
            room = self.db.execute_query(
                "SELECT * FROM rooms WHERE id = ?", (room_id,), fetch_all=False
            )
            if not room:
                return {'success': False, 'error': 'Room not found', 'status': 404}

            allowed_fields = ['capacity', 'monthly_rent', 'room_type', 'is_available', 'facilities']
            updates = {field: room_data[field] for field in allowed_fields if field in room_data}

            if not updates:
                return {'success': False, 'error': 'No valid fields to update'}

            if 'capacity' in updates:
                capacity_check = self._check_capacity(room, int(updates['capacity']))
                if not capacity_check['valid']:
                    return {'success': False, 'error': capacity_check['error']}
                updates['capacity'] = int(updates['capacity'])

            if 'is_available' in updates:
                updates['is_available'] = 1 if updates['is_available'] else 0

            set_clause = ", ".join(f"{field} = ?" for field in updates)
            self.db.execute_update(
                f"UPDATE rooms SET {set_clause} WHERE id = ?",
                list(updates.values()) + [room_id]
            )

            if 'capacity' in updates:
                self.sync_occupancy(room['block'], room['room_number'])

            self.logger.info(f"Room {room_id} updated")

            return {
                'success': True,
                'message': 'Room updated successfully',
                'room': self.get_room_by_id(room_id)
            }

        except (TypeError, ValueError):
            return {'success': False, 'error': 'Capacity must be a number'}
        except Exception as e:
            self.logger.error(f"Room update failed for {room_id}: {str(e)}")
            return {'success': False, 'error': 'Failed to update room'}

    def delete_room(self, room_id: int) -> Dict[str, Any]:
        """
        Delete a room. Refused while any student is assigned to it.

        Args:
            room_id (int): Room database ID

        Returns:
            Dict[str, Any]: Deletion result
        """
        try:
            room = self.db.execute_query(
                "SELECT * FROM rooms WHERE id = ?", (room_id,), fetch_all=False
            )
            if not room:
                return {'success': False, 'error': 'Room not found', 'status': 404}

            if self._count_occupants(room['block'], room['room_number']) > 0:
                return {'success': False, 'error': 'Cannot delete a room with allocated students'}

            self.db.execute_update("DELETE FROM rooms WHERE id = ?", (room_id,))

            self.logger.info(f"Room {room['room_number']}/{room['block']} deleted")
            return {'success': True, 'message': 'Room deleted successfully'}

        except Exception as e:
            self.logger.error(f"Failed to delete room {room_id}: {str(e)}")
            return {'success': False, 'error': 'Failed to delete room'}

    # ------------------------------------------------------------------
    # Availability and layout
    # ------------------------------------------------------------------

    def get_room_availability(self, floor: int, block: str) -> Dict[str, Any]:
        """
        Get free beds for every room on a floor of a block.
        Missing room records are created on demand.

        Args:
            floor (int): Floor number
            block (str): Block letter

        Returns:
            Dict[str, Any]: {room_no: {'availableBeds': int, 'status': str}}
        """
        availability = {}

        for number in range(1, self.ROOMS_PER_FLOOR + 1):
            room_no = f"{floor}{number:02d}"
            room = self.get_room(block, room_no)

            if not room:
                self.db.execute_update("""
                    INSERT INTO rooms (room_number, floor, block, capacity, monthly_rent,
                                       facilities, created_date)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (room_no, floor, block, self.DEFAULT_CAPACITY, self.DEFAULT_RENT,
                      self.DEFAULT_FACILITIES, now_str()))
                self.logger.info(f"Created missing room {room_no}/{block}")

            occupancy = self.sync_occupancy(block, room_no)
            available_beds = max(occupancy.available_beds, 0)
            availability[room_no] = {
                'availableBeds': available_beds,
                'status': availability_status(available_beds)
            }

        return availability

    def get_occupants(self, block: str, room_no: str) -> List[Dict[str, Any]]:
        """
        Get the active students assigned to a room, ordered by bed.

        Args:
            block (str): Block letter
            room_no (str): Room number

        Returns:
            List[Dict[str, Any]]: Student rows
        """
        return self.db.execute_query("""
            SELECT * FROM students
            WHERE block = ? AND room_no = ? AND bed_no IS NOT NULL AND is_active = 1
            ORDER BY bed_no
        """, (block, room_no))

    def get_bed_status(self, block: str, room_no: str) -> Optional[Dict[str, Any]]:
        """
        Get occupied/free state of every bed in a room.

        Args:
            block (str): Block letter
            room_no (str): Room number

        Returns:
            Dict[str, Any]: Room summary and per-bed status, or None if the room is unknown
        """
        room = self.get_room(block, room_no)
        if not room:
            return None

        beds = {bed: {'occupied': False, 'student': None} for bed in range(1, room['capacity'] + 1)}

        for student in self.get_occupants(block, room_no):
            if 1 <= student['bed_no'] <= room['capacity']:
                beds[student['bed_no']] = {
                    'occupied': True,
                    'student': {
                        'id': student['id'],
                        'student_id': student['student_id'],
                        'name': f"{student['first_name']} {student['last_name']}",
                        'profile_image_url': student['profile_image_url'] or DEFAULT_PROFILE_IMAGE
                    }
                }

        occupied = sum(1 for bed in beds.values() if bed['occupied'])

        return {
            'block': block,
            'room_number': room_no,
            'capacity': room['capacity'],
            'current_occupancy': occupied,
            'available_beds': room['capacity'] - occupied,
            'beds': beds
        }

    def get_room_layout(self, block: str, room_no: str) -> Optional[Dict[str, Any]]:
        """
        Get a room's occupancy, allocated beds and roommates.

        Args:
            block (str): Block letter
            room_no (str): Room number

        Returns:
            Dict[str, Any]: Room layout, or None if the room is unknown
        """
        room = self.get_room(block, room_no)
        if not room:
            return None

        occupants = self.get_occupants(block, room_no)
        allocated_beds = sorted(student['bed_no'] for student in occupants)

        roommates = []
        for student in occupants:
            registered = student['registration_date'] or ''
            roommates.append({
                'bed_no': student['bed_no'],
                'student_id': student['student_id'],
                'student_name': f"{student['first_name'] or ''} {student['last_name'] or ''}".strip(),
                'department': student['department'] or 'N/A',
                'year': student['year'],
                'session': student['session'] or 'Not specified',
                'blood_group': student['blood_group'] or 'Not specified',
                'email': student['email'] or 'Not available',
                'phone_number': student['phone_number'] or 'Not available',
                'address': student['address'] or 'Not available',
                'registration_date': registered[:10],
                'profile_image_url': student['profile_image_url'] or DEFAULT_PROFILE_IMAGE
            })

        return {
            'room_number': room['room_number'],
            'block': room['block'],
            'floor': room['floor'],
            'capacity': room['capacity'],
            'current_occupancy': len(occupants),
            'available_beds': room['capacity'] - len(occupants),
            'allocated_beds': allocated_beds,
            'roommates': roommates,
            'bedStatus': {
                f"bed{bed}": 'occupied' if bed in allocated_beds else 'available'
                for bed in range(1, room['capacity'] + 1)
            }
        }

    # ------------------------------------------------------------------
    # Capacity and occupancy
    # ------------------------------------------------------------------

    def update_capacity(self, block: str, room_no: str, new_capacity: int) -> Dict[str, Any]:
        """
        Change the number of beds in a room.

        Args:
            block (str): Block letter
            room_no (str): Room number
            new_capacity (int): New bed count (1 to MAX_ROOM_CAPACITY)

        Returns:
            Dict[str, Any]: Update result
        """
        try:
            room = self.get_room(block, room_no)
            if not room:
                return {'success': False, 'error': f'Room {room_no}/{block} not found', 'status': 404}

            capacity_check = self._check_capacity(room, new_capacity)
            if not capacity_check['valid']:
                return {'success': False, 'error': capacity_check['error']}

            self.db.execute_update(
                "UPDATE rooms SET capacity = ? WHERE id = ?", (new_capacity, room['id'])
            )
            occupancy = self.sync_occupancy(block, room_no)

            self.logger.info(f"Room {room_no}/{block} capacity changed from {room['capacity']} to {new_capacity}")

            return {
                'success': True,
                'message': f'Room {room_no}/{block} capacity updated to {new_capacity}',
                'room': asdict(occupancy)
            }

        except Exception as e:
            self.logger.error(f"Capacity update failed for {room_no}/{block}: {str(e)}")
            return {'success': False, 'error': 'Failed to update room capacity'}

    def adjust_occupancy(self, room_id: int, change: int) -> Dict[str, Any]:
        """
        Manually shift a room's occupancy counter, clamped to [0, capacity].

        Args:
            room_id (int): Room database ID
            change (int): Signed change

        Returns:
            Dict[str, Any]: Update result
        """
        try:
            room = self.db.execute_query(
                "SELECT * FROM rooms WHERE id = ?", (room_id,), fetch_all=False
            )
            if not room:
                return {'success': False, 'error': 'Room not found', 'status': 404}

            occupancy = min(max(room['current_occupancy'] + int(change), 0), room['capacity'])
            self.db.execute_update(
                "UPDATE rooms SET current_occupancy = ?, is_available = ? WHERE id = ?",
                (occupancy, 1 if occupancy < room['capacity'] else 0, room_id)
            )

            return {
                'success': True,
                'message': 'Room occupancy updated',
                'current_occupancy': occupancy
            }

        except (TypeError, ValueError):
            return {'success': False, 'error': 'Change must be a number'}
        except Exception as e:
            self.logger.error(f"Occupancy update failed for room {room_id}: {str(e)}")
            return {'success': False, 'error': 'Failed to update room occupancy'}

    def sync_occupancy(self, block: str, room_no: str) -> Optional[RoomOccupancy]:
        """
        Recompute a room's occupancy and availability from the student records.

        Args:
            block (str): Block letter
            room_no (str): Room number

        Returns:
            RoomOccupancy: Fresh occupancy figures, or None if the room is unknown
        """
        room = self.get_room(block, room_no)
        if not room:
            return None

        occupied = self._count_occupants(block, room_no)
        self.db.execute_update(
            "UPDATE rooms SET current_occupancy = ?, is_available = ? WHERE id = ?",
            (occupied, 1 if occupied < room['capacity'] else 0, room['id'])
        )

        available = room['capacity'] - occupied
        return RoomOccupancy(
            room_id=room['id'],
            block=block,
            room_number=room_no,
            capacity=room['capacity'],
            current_occupancy=occupied,
            available_beds=available,
            status=availability_status(available)
        )

    def get_occupancy_summary(self) -> Dict[str, Any]:
        """
        Get hall-wide room and bed totals.

        Returns:
            Dict[str, Any]: total_rooms, total_capacity, allocated_beds, occupancy_percentage
        """
        try:
            totals = self.db.execute_query(
                "SELECT COUNT(*) as total_rooms, COALESCE(SUM(capacity), 0) as total_capacity FROM rooms",
                fetch_all=False
            )
            allocated = self.db.execute_query(
                "SELECT COUNT(*) as count FROM students WHERE bed_no IS NOT NULL AND is_active = 1",
                fetch_all=False
            )['count']

            total_capacity = totals['total_capacity']
            return {
                'total_rooms': totals['total_rooms'],
                'total_capacity': total_capacity,
                'allocated_beds': allocated,
                'occupancy_percentage': round(allocated * 100.0 / total_capacity, 1) if total_capacity else 0
            }

        except Exception as e:
            self.logger.error(f"Failed to get occupancy summary: {str(e)}")
            return {'total_rooms': 0, 'total_capacity': 0, 'allocated_beds': 0, 'occupancy_percentage': 0}

    def _count_occupants(self, block: str, room_no: str) -> int:
        return self.db.execute_query("""
            SELECT COUNT(*) as count FROM students
            WHERE block = ? AND room_no = ? AND bed_no IS NOT NULL AND is_active = 1
        """, (block, room_no), fetch_all=False)['count']

    def _check_capacity(self, room: Dict[str, Any], new_capacity: int) -> Dict[str, Any]:
        """
        Validate a capacity change against the limit and the occupied beds.

        Args:
            room (Dict[str, Any]): Room row
            new_capacity (int): Proposed capacity

        Returns:
            Dict[str, Any]: Validation result
        """
        if new_capacity < 1 or new_capacity > self.MAX_CAPACITY:
            return {'valid': False, 'error': f'Capacity must be between 1 and {self.MAX_CAPACITY}'}

        highest_bed = self.db.execute_query("""
            SELECT MAX(bed_no) as bed FROM students
            WHERE block = ? AND room_no = ? AND bed_no IS NOT NULL
        """, (room['block'], room['room_number']), fetch_all=False)['bed']

        if highest_bed and highest_bed > new_capacity:
            return {
                'valid': False,
                'error': f'Bed {highest_bed} is occupied; capacity cannot be reduced below {highest_bed}'
            }

        return {'valid': True}
