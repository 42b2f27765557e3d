"""
Tests for the room inventory, availability, bed status and capacity changes
"""
from tests.conftest import auth


def allocate(client, admin_headers, student_pk, block='A', room_no='101', bed_no=1):
    response = client.post(f'/api/students/{student_pk}/admin-allocate-room', headers=admin_headers,
                           json={'block': block, 'room_no': room_no, 'bed_no': bed_no})
    assert response.status_code == 200, response.get_json()
    return response


class TestRoomInventory:
    """Room CRUD"""

    def test_seeded_rooms(self, client, student_headers):
        rooms = client.get('/api/rooms', headers=student_headers).get_json()['rooms']

        assert len(rooms) == 90
        assert rooms[0]['block'] == 'A'
        assert rooms[0]['room_number'] == '101'
        assert rooms[0]['available_beds'] == 4

    def test_listing_requires_token(self, client):
        assert client.get('/api/rooms').status_code == 401

    def test_create_room(self, client, admin_headers):
        response = client.post('/api/rooms', headers=admin_headers, json={
            'room_number': '401', 'floor': 4, 'block': 'b', 'capacity': 2
        })

        assert response.status_code == 201
        room = response.get_json()['room']
        assert room['block'] == 'B'
        assert room['capacity'] == 2
        assert room['occupants'] == []

    def test_create_duplicate_or_invalid_room(self, client, admin_headers):
        duplicate = client.post('/api/rooms', headers=admin_headers,
                                json={'room_number': '101', 'floor': 1, 'block': 'A'})
        assert duplicate.status_code == 400

        bad_block = client.post('/api/rooms', headers=admin_headers,
                                json={'room_number': '101', 'floor': 1, 'block': 'Z'})
        assert bad_block.status_code == 400

        too_big = client.post('/api/rooms', headers=admin_headers,
                              json={'room_number': '402', 'floor': 4, 'block': 'A', 'capacity': 9})
        assert too_big.status_code == 400

    def test_students_cannot_create_rooms(self, client, student_headers):
        response = client.post('/api/rooms', headers=student_headers,
                               json={'room_number': '401', 'floor': 4, 'block': 'A'})
        assert response.status_code == 403

    def test_update_room(self, client, admin_headers, managers):
        room_id = managers['room_manager'].get_room('A', '101')['id']

        response = client.put(f'/api/rooms/{room_id}', headers=admin_headers,
                              json={'monthly_rent': 6000, 'room_type': 'Double', 'ignored': 'x'})

        assert response.status_code == 200
        room = response.get_json()['room']
        assert room['monthly_rent'] == 6000
        assert room['room_type'] == 'Double'

    def test_update_unknown_room_is_404(self, client, admin_headers):
        assert client.put('/api/rooms/9999', headers=admin_headers, json={'capacity': 3}).status_code == 404

    def test_delete_room_refused_while_occupied(self, client, admin_headers, student, managers):
        room_id = managers['room_manager'].get_room('A', '101')['id']
        allocate(client, admin_headers, student['student']['id'])

        assert client.delete(f'/api/rooms/{room_id}', headers=admin_headers).status_code == 400

        client.post(f"/api/students/{student['student']['id']}/cancel-room", headers=admin_headers)
        assert client.delete(f'/api/rooms/{room_id}', headers=admin_headers).status_code == 200
        assert managers['room_manager'].get_room('A', '101') is None

    def test_get_room_with_occupants(self, client, admin_headers, student, student_headers, managers):
        room_id = managers['room_manager'].get_room('A', '101')['id']
        allocate(client, admin_headers, student['student']['id'], bed_no=3)

        room = client.get(f'/api/rooms/{room_id}', headers=student_headers).get_json()['room']

        assert room['current_occupancy'] == 1
        assert room['available_beds'] == 3
        assert room['occupants'][0]['bed_no'] == 3


class TestAvailability:
    """Floor availability, bed status and room layout"""

    def test_floor_availability(self, client, student_headers, register_student, admin_headers):
        for bed in range(1, 4):
            body = register_student(f'S40{bed:02d}')
            allocate(client, admin_headers, body['student']['id'], block='B', room_no='201', bed_no=bed)

        response = client.get('/api/roomallocation/availability/2/b', headers=student_headers)

        body = response.get_json()
        assert response.status_code == 200
        assert body['block'] == 'B'
        assert len(body['rooms']) == 15
        assert body['rooms']['201'] == {'availableBeds': 1, 'status': 'limited'}
        assert body['rooms']['202'] == {'availableBeds': 4, 'status': 'available'}

    def test_unknown_floor_or_block(self, client, student_headers):
        assert client.get('/api/roomallocation/availability/9/A', headers=student_headers).status_code == 400
        assert client.get('/api/roomallocation/availability/1/Q', headers=student_headers).status_code == 400

    def test_bed_status(self, client, student, student_headers, admin_headers):
        allocate(client, admin_headers, student['student']['id'], bed_no=2)

        body = client.get('/api/roomallocation/bed-status/a/101', headers=student_headers).get_json()

        assert body['capacity'] == 4
        assert body['current_occupancy'] == 1
        assert body['beds']['2']['occupied'] is True
        assert body['beds']['2']['student']['student_id'] == 'S1001'
        assert body['beds']['1'] == {'occupied': False, 'student': None}

    def test_room_layout(self, client, student, student_headers, admin_headers):
        allocate(client, admin_headers, student['student']['id'], bed_no=4)

        body = client.get('/api/roomallocation/room-layout/A/101', headers=student_headers).get_json()

        assert body['allocated_beds'] == [4]
        assert body['bedStatus']['bed4'] == 'occupied'
        assert body['bedStatus']['bed1'] == 'available'
        assert body['roommates'][0]['department'] == 'CSE'
        assert body['roommates'][0]['address'] == 'Not available'

    def test_unknown_room_is_404(self, client, student_headers):
        assert client.get('/api/roomallocation/bed-status/A/999', headers=student_headers).status_code == 404
        assert client.get('/api/roomallocation/room-layout/A/999', headers=student_headers).status_code == 404

    def test_available_rooms_exclude_full_rooms(self, client, register_student, admin_headers):
        for bed in range(1, 5):
            body = register_student(f'S50{bed:02d}')
            allocate(client, admin_headers, body['student']['id'], bed_no=bed)

        rooms = client.get('/api/rooms/available', headers=admin_headers).get_json()['rooms']
        numbers = {(room['block'], room['room_number']) for room in rooms}

        assert ('A', '101') not in numbers
        assert ('A', '102') in numbers


class TestCapacity:
    """Capacity and occupancy counters"""

    def test_update_capacity(self, client, admin_headers, managers):
        response = client.post('/api/roomallocation/update-capacity/A/101', headers=admin_headers,
                               json={'capacity': 6})

        assert response.status_code == 200
        assert response.get_json()['room']['available_beds'] == 6
        assert managers['room_manager'].get_room('A', '101')['capacity'] == 6

    def test_capacity_cannot_drop_below_occupied_bed(self, client, student, admin_headers):
        allocate(client, admin_headers, student['student']['id'], bed_no=4)

        response = client.post('/api/roomallocation/update-capacity/A/101', headers=admin_headers,
                               json={'capacity': 3})

        assert response.status_code == 400
        assert 'Bed 4 is occupied' in response.get_json()['message']

    def test_capacity_must_be_a_number(self, client, admin_headers):
        response = client.post('/api/roomallocation/update-capacity/A/101', headers=admin_headers,
                               json={'capacity': 'many'})
        assert response.status_code == 400

    def test_adjust_occupancy_is_clamped(self, client, admin_headers, managers):
        room_id = managers['room_manager'].get_room('A', '101')['id']

        up = client.put(f'/api/rooms/{room_id}/occupancy', headers=admin_headers, json={'change': 10})
        assert up.get_json()['current_occupancy'] == 4
        assert managers['room_manager'].get_room('A', '101')['is_available'] == 0

        down = client.put(f'/api/rooms/{room_id}/occupancy', headers=admin_headers, json={'change': -10})
        assert down.get_json()['current_occupancy'] == 0

    def test_sync_occupancy_repairs_counter(self, client, admin_headers, student, managers):
        rooms = managers['room_manager']
        allocate(client, admin_headers, student['student']['id'])
        room_id = rooms.get_room('A', '101')['id']
        client.put(f'/api/rooms/{room_id}/occupancy', headers=admin_headers, json={'change': 2})

        occupancy = rooms.sync_occupancy('A', '101')

        assert occupancy.current_occupancy == 1
        assert occupancy.status == 'available'
        assert rooms.get_room('A', '101')['current_occupancy'] == 1

    def test_occupancy_summary(self, client, admin_headers, student, managers):
        allocate(client, admin_headers, student['student']['id'])

        summary = managers['room_manager'].get_occupancy_summary()

        assert summary['total_rooms'] == 90
        assert summary['total_capacity'] == 360
        assert summary['allocated_beds'] == 1
