"""
Tests for the room allotment workflow: applications, admin decisions,
room changes, direct allocation and deallocation
"""
from tests.conftest import auth


def apply(client, headers, block='A', room_no='101', bed_no=1, notes='Near the stairs'):
    return client.post('/api/roomallocation/apply', headers=headers, json={
        'block': block, 'room_no': room_no, 'bed_no': bed_no, 'student_notes': notes
    })


def approve(client, admin_headers, request_id, notes='Approved'):
    return client.post(f'/api/roomallocation/admin-action/{request_id}', headers=admin_headers,
                       json={'action': 'approve', 'admin_notes': notes})


def room_occupancy(managers, block, room_no):
    return managers['room_manager'].get_room(block, room_no)['current_occupancy']


class TestApplications:
    """Student room applications"""

    def test_apply_creates_pending_request(self, client, student_headers):
        response = apply(client, student_headers)

        assert response.status_code == 201
        request = response.get_json()['request']
        assert request['status'] == 'Pending'
        assert request['requested_room'] == '101/A'
        assert request['requested_bed_no'] == 1

    def test_second_pending_request_refused(self, client, student_headers):
        apply(client, student_headers)
        response = apply(client, student_headers, bed_no=2)

        assert response.status_code == 400
        assert 'pending' in response.get_json()['message']

    def test_unknown_room_and_bad_bed_refused(self, client, student_headers):
        assert apply(client, student_headers, room_no='999').status_code == 400
        assert apply(client, student_headers, bed_no=5).status_code == 400
        assert apply(client, student_headers, bed_no='x').status_code == 400

    def test_fractional_bed_number_refused(self, client, student_headers):
        for bed_no in (1.9, '1.5', True):
            response = apply(client, student_headers, bed_no=bed_no)
            assert response.status_code == 400
            assert response.get_json()['message'] == 'Bed number must be a whole number'

        response = apply(client, student_headers, bed_no='2')
        assert response.status_code == 201
        assert response.get_json()['request']['requested_bed_no'] == 2

    def test_occupied_bed_refused(self, client, student_headers, register_student, admin_headers):
        other = register_student('S1002')
        request_id = apply(client, auth(other['token'])).get_json()['request_id']
        approve(client, admin_headers, request_id)

        response = apply(client, student_headers)
        assert response.status_code == 400
        assert 'already occupied' in response.get_json()['message']

    def test_full_room_refused(self, client, register_student, admin_headers, managers):
        for bed in range(1, 5):
            other = register_student(f'S20{bed:02d}')
            request_id = apply(client, auth(other['token']), bed_no=bed).get_json()['request_id']
            assert approve(client, admin_headers, request_id).status_code == 200

        late = register_student('S2099')
        response = apply(client, auth(late['token']), bed_no=4)
        assert response.status_code == 400
        assert room_occupancy(managers, 'A', '101') == 4

    def test_edit_pending_request(self, client, student_headers):
        request_id = apply(client, student_headers).get_json()['request_id']

        response = client.post(f'/api/roomallocation/edit-request/{request_id}', headers=student_headers,
                               json={'block': 'B', 'room_no': '205', 'bed_no': 3})

        assert response.status_code == 200
        edited = response.get_json()['request']
        assert edited['requested_room'] == '205/B'
        assert edited['student_notes'] == 'Near the stairs'

    def test_cannot_edit_someone_elses_request(self, client, student_headers, register_student):
        other = register_student('S1002')
        request_id = apply(client, auth(other['token'])).get_json()['request_id']

        response = client.post(f'/api/roomallocation/edit-request/{request_id}', headers=student_headers,
                               json={'block': 'A', 'room_no': '102', 'bed_no': 1})
        assert response.status_code == 404


class TestAdminDecisions:
    """Approval, rejection and admin re-allocation"""

    def test_approve_assigns_bed_and_syncs_room(self, client, student, student_headers, admin_headers, managers):
        request_id = apply(client, student_headers).get_json()['request_id']

        response = approve(client, admin_headers, request_id)

        assert response.status_code == 200
        assert response.get_json()['request_status'] == 'Approved'
        current = client.get('/api/students/current', headers=student_headers).get_json()['student']
        assert (current['block'], current['room_no'], current['bed_no']) == ('A', '101', 1)
        assert room_occupancy(managers, 'A', '101') == 1

    def test_reject_keeps_student_unallocated(self, client, student_headers, admin_headers):
        request_id = apply(client, student_headers).get_json()['request_id']

        response = client.post(f'/api/roomallocation/admin-action/{request_id}', headers=admin_headers,
                               json={'action': 'reject', 'admin_notes': 'Room reserved'})

        assert response.get_json()['request_status'] == 'Rejected'
        status = client.get('/api/roomallocation/student-status', headers=student_headers).get_json()
        assert status['currentStatus'] == 'rejected'
        assert status['rejected_request']['admin_notes'] == 'Room reserved'
        assert status['is_allocated'] is False

    def test_only_pending_requests_can_be_decided(self, client, student_headers, admin_headers):
        request_id = apply(client, student_headers).get_json()['request_id']
        approve(client, admin_headers, request_id)

        assert approve(client, admin_headers, request_id).status_code == 404

    def test_unknown_action_refused(self, client, student_headers, admin_headers):
        request_id = apply(client, student_headers).get_json()['request_id']

        response = client.post(f'/api/roomallocation/admin-action/{request_id}', headers=admin_headers,
                               json={'action': 'maybe'})
        assert response.status_code == 400

    def test_approve_fails_when_bed_taken_meanwhile(self, client, student_headers, register_student, admin_headers):
        first = apply(client, student_headers).get_json()['request_id']
        other = register_student('S1002')
        second = apply(client, auth(other['token'])).get_json()['request_id']

        assert approve(client, admin_headers, first).status_code == 200
        response = approve(client, admin_headers, second)
        assert response.status_code == 400

    def test_admin_allocate_moves_request_to_other_bed(self, client, student_headers, admin_headers, managers):
        request_id = apply(client, student_headers).get_json()['request_id']

        response = client.post(f'/api/roomallocation/allocate-by-admin/{request_id}', headers=admin_headers,
                               json={'block': 'B', 'room_no': '302', 'bed_no': 2, 'admin_notes': 'Moved'})

        assert response.status_code == 200
        assert response.get_json()['request']['status'] == 'Approved'
        assert room_occupancy(managers, 'B', '302') == 1
        assert room_occupancy(managers, 'A', '101') == 0

    def test_admin_requests_listing(self, client, student_headers, admin_headers):
        apply(client, student_headers)

        requests = client.get('/api/roomallocation/admin/requests', headers=admin_headers).get_json()['requests']
        assert len(requests) == 1
        assert requests[0]['student_name'].startswith('Rahim')
        assert requests[0]['current_room'] is None


class TestRoomChange:
    """Room change requests"""

    def test_change_requires_current_bed(self, client, student_headers):
        response = client.post('/api/roomallocation/change', headers=student_headers,
                               json={'block': 'A', 'room_no': '102', 'bed_no': 1})
        assert response.status_code == 400

    def test_approved_change_moves_student(self, client, student_headers, admin_headers, managers):
        first = apply(client, student_headers).get_json()['request_id']
        approve(client, admin_headers, first)

        same = client.post('/api/roomallocation/change', headers=student_headers,
                           json={'block': 'A', 'room_no': '101', 'bed_no': 1})
        assert same.status_code == 400

        change = client.post('/api/roomallocation/change', headers=student_headers,
                             json={'block': 'A', 'room_no': '102', 'bed_no': 3, 'student_notes': 'Quieter'})
        assert change.status_code == 201
        status = client.get('/api/roomallocation/student-status', headers=student_headers).get_json()
        assert status['currentStatus'] == 'approved_with_pending_change'

        approve(client, admin_headers, change.get_json()['request_id'])

        status = client.get('/api/roomallocation/student-status', headers=student_headers).get_json()
        assert status['currentStatus'] == 'approved'
        assert status['current_allocation']['room'] == '102/A'
        assert room_occupancy(managers, 'A', '101') == 0
        assert room_occupancy(managers, 'A', '102') == 1

        # The superseded allotment is deactivated with a note
        old = managers['allotment_manager'].get_request(first)
        assert old['is_active'] == 0
        assert 'Superseded' in old['admin_notes']


class TestDeallocation:
    """Freeing beds"""

    def test_student_deallocates_own_room(self, client, student_headers, admin_headers, managers):
        request_id = apply(client, student_headers).get_json()['request_id']
        approve(client, admin_headers, request_id)

        response = client.delete('/api/roomallocation/deallocate', headers=student_headers)

        assert response.status_code == 200
        body = response.get_json()
        assert body['room'] == '101/A'
        assert body['cancelled_allotment_ids'] == [request_id]
        assert room_occupancy(managers, 'A', '101') == 0

        status = client.get('/api/roomallocation/student-status', headers=student_headers).get_json()
        assert status['currentStatus'] == 'cancelled'
        assert 'Room deallocated by student' in status['cancelled_request']['admin_notes']

    def test_deallocate_without_room_refused(self, client, student_headers):
        assert client.delete('/api/roomallocation/deallocate', headers=student_headers).status_code == 400

    def test_new_request_after_cancellation_shows_pending(self, client, student_headers, admin_headers):
        request_id = apply(client, student_headers).get_json()['request_id']
        approve(client, admin_headers, request_id)
        client.delete('/api/roomallocation/deallocate', headers=student_headers)

        assert apply(client, student_headers, room_no='103').status_code == 201
        status = client.get('/api/roomallocation/student-status', headers=student_headers).get_json()
        assert status['currentStatus'] == 'pending'

    def test_admin_cancel_room(self, client, student, student_headers, admin_headers):
        pk = student['student']['id']
        assert client.post(f'/api/students/{pk}/cancel-room', headers=admin_headers).status_code == 400

        request_id = apply(client, student_headers).get_json()['request_id']
        approve(client, admin_headers, request_id)

        response = client.post(f'/api/students/{pk}/cancel-room', headers=admin_headers)
        assert response.status_code == 200
        current = client.get('/api/students/current', headers=student_headers).get_json()['student']
        assert current['bed_no'] is None

    def test_bulk_deallocate(self, client, register_student, admin_headers, managers):
        for number, room_no in (('S3001', '101'), ('S3002', '101'), ('S3003', '102')):
            body = register_student(number)
            request_id = apply(client, auth(body['token']), room_no=room_no,
                               bed_no=2 if number == 'S3002' else 1).get_json()['request_id']
            approve(client, admin_headers, request_id)

        response = client.post('/api/roomallocation/admin/bulk-deallocate', headers=admin_headers,
                               json={'student_ids': ['S3001', 'S3002', 'S3003', 'S9999']})

        body = response.get_json()
        assert response.status_code == 200
        assert body['deallocated_count'] == 3
        assert body['affected_rooms_count'] == 2
        assert [failure['student_id'] for failure in body['failed']] == ['S9999']
        assert room_occupancy(managers, 'A', '101') == 0


class TestDirectAllocation:
    """Admin allocation without a request"""

    def test_direct_allocate(self, client, student, student_headers, admin_headers, managers):
        pk = student['student']['id']

        response = client.post(f'/api/students/{pk}/admin-allocate-room', headers=admin_headers,
                               json={'block': 'B', 'room_no': '110', 'bed_no': 4})

        assert response.status_code == 200
        assert response.get_json()['allotment']['status'] == 'Approved'
        status = client.get('/api/roomallocation/student-status', headers=student_headers).get_json()
        assert status['currentStatus'] == 'approved'
        assert room_occupancy(managers, 'B', '110') == 1

    def test_direct_allocate_to_occupied_bed_refused(self, client, student, register_student, admin_headers):
        other = register_student('S1002')
        client.post(f"/api/students/{other['student']['id']}/admin-allocate-room", headers=admin_headers,
                    json={'block': 'B', 'room_no': '110', 'bed_no': 4})

        response = client.post(f"/api/students/{student['student']['id']}/admin-allocate-room",
                               headers=admin_headers, json={'block': 'B', 'room_no': '110', 'bed_no': 4})
        assert response.status_code == 400
