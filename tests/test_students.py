"""
Tests for the student directory, profiles and removal
"""
import pytest


@pytest.fixture
def directory(register_student):
    """Three students across two departments"""
    return [
        register_student('S3001', first_name='Karim', department='CSE', year=1, blood_group='O+'),
        register_student('S3002', first_name='Nadia', department='EEE', year=3, blood_group='B+'),
        register_student('S3003', first_name='Arif', department='CSE', year=3, blood_group='O+'),
    ]


class TestAdminDirectory:
    """Search, filters, sorting and pagination"""

    def test_default_listing_sorted_by_name(self, client, admin_headers, directory):
        body = client.get('/api/students/admin', headers=admin_headers).get_json()

        assert [s['first_name'] for s in body['students']] == ['Arif', 'Karim', 'Nadia']
        assert body['pagination']['total_count'] == 3
        assert body['filters']['departments'] == ['CSE', 'EEE']
        assert body['summary'] == {'total': 3, 'allocated': 0, 'active': 3}
        assert all('password_hash' not in s for s in body['students'])

    def test_filters_and_search(self, client, admin_headers, directory):
        cse_year3 = client.get('/api/students/admin?department=CSE&year=3', headers=admin_headers).get_json()
        assert [s['student_id'] for s in cse_year3['students']] == ['S3003']

        by_blood = client.get('/api/students/admin?bloodGroup=B%2B', headers=admin_headers).get_json()
        assert [s['student_id'] for s in by_blood['students']] == ['S3002']

        search = client.get('/api/students/admin?search=nad', headers=admin_headers).get_json()
        assert [s['student_id'] for s in search['students']] == ['S3002']

    def test_room_status_filter(self, client, admin_headers, directory):
        client.post(f"/api/students/{directory[0]['student']['id']}/admin-allocate-room",
                    headers=admin_headers, json={'block': 'A', 'room_no': '105', 'bed_no': 1})

        allocated = client.get('/api/students/admin?roomStatus=allocated', headers=admin_headers).get_json()
        without = client.get('/api/students/admin?room_status=not-allocated', headers=admin_headers).get_json()

        assert [s['student_id'] for s in allocated['students']] == ['S3001']
        assert allocated['students'][0]['has_room'] is True
        assert len(without['students']) == 2

    def test_sort_and_paginate(self, client, admin_headers, directory):
        body = client.get('/api/students/admin?sortBy=studentId&sortOrder=desc&page=2&page_size=2',
                          headers=admin_headers).get_json()

        assert [s['student_id'] for s in body['students']] == ['S3001']
        assert body['pagination']['total_pages'] == 2

    def test_bad_year_filter(self, client, admin_headers, directory):
        assert client.get('/api/students/admin?year=first', headers=admin_headers).status_code == 400

    def test_plain_listing(self, client, admin_headers, directory):
        students = client.get('/api/students', headers=admin_headers).get_json()['students']
        assert len(students) == 3


class TestProfiles:
    """Lookups and profile updates"""

    def test_student_reads_own_record_only(self, client, student, student_headers, register_student):
        other = register_student('S1002')

        own = client.get(f"/api/students/{student['student']['id']}", headers=student_headers)
        assert own.get_json()['student']['student_id'] == 'S1001'

        assert client.get(f"/api/students/{other['student']['id']}", headers=student_headers).status_code == 403
        assert client.get('/api/students/by-student-id/S1002', headers=student_headers).status_code == 403

    def test_admin_reads_any_record(self, client, student, admin_headers):
        response = client.get('/api/students/by-student-id/S1001', headers=admin_headers)
        assert response.get_json()['student']['full_name'] == 'Rahim Uddin01'

        assert client.get('/api/students/99999', headers=admin_headers).status_code == 404

    def test_update_profile(self, client, student, student_headers):
        pk = student['student']['id']
        response = client.put(f'/api/students/{pk}/profile', headers=student_headers, json={
            'address': 'Mirpur, Dhaka', 'year': '3', 'blood_group': 'B-', 'profile_image_url': ''
        })

        assert response.status_code == 200
        updated = response.get_json()['student']
        assert updated['address'] == 'Mirpur, Dhaka'
        assert updated['year'] == 3
        assert updated['blood_group'] == 'B-'

    def test_profile_validation(self, client, student, student_headers, register_student):
        pk = student['student']['id']
        register_student('S1002', email='taken@student.hall.edu')

        taken = client.put(f'/api/students/{pk}/profile', headers=student_headers,
                           json={'email': 'taken@student.hall.edu'})
        assert taken.get_json()['message'] == 'Email address already exists'

        blank = client.put(f'/api/students/{pk}/profile', headers=student_headers, json={'first_name': ' '})
        assert blank.status_code == 400

        nothing = client.put(f'/api/students/{pk}/profile', headers=student_headers, json={'student_id': 'X'})
        assert nothing.get_json()['message'] == 'No valid fields to update'


class TestRemoval:
    """Single and bulk deletion"""

    def test_delete_frees_bed_and_cascades(self, client, student, student_headers, admin_headers, managers):
        pk = student['student']['id']
        client.post(f'/api/students/{pk}/admin-allocate-room', headers=admin_headers,
                    json={'block': 'A', 'room_no': '101', 'bed_no': 1})
        client.post('/api/complaints', headers=student_headers, json={
            'complaint_type': 'Others', 'short_description': 'Noise', 'occurrence_time': 'Night'
        })

        response = client.delete(f'/api/students/{pk}/admin-delete', headers=admin_headers)

        assert response.status_code == 200
        assert managers['room_manager'].get_room('A', '101')['current_occupancy'] == 0
        assert managers['complaint_manager'].get_complaints_by_student_pk(pk) == []
        assert managers['payment_manager'].get_dues_periods(pk) == []

        # The token outlives the account but the account is gone
        assert client.get('/api/students/current', headers=student_headers).status_code == 404

    def test_delete_unknown_student(self, client, admin_headers):
        assert client.delete('/api/students/999/admin-delete', headers=admin_headers).status_code == 404

    def test_bulk_delete(self, client, admin_headers, directory):
        response = client.post('/api/students/admin/bulk-delete', headers=admin_headers,
                               json={'student_ids': ['S3001', 'S3002', 'S9999']})

        body = response.get_json()
        assert body['deleted_count'] == 2
        assert body['failed'] == [{'student_id': 'S9999', 'error': 'Student not found'}]

        remaining = client.get('/api/students', headers=admin_headers).get_json()['students']
        assert [s['student_id'] for s in remaining] == ['S3003']

    def test_bulk_delete_requires_list(self, client, admin_headers):
        response = client.post('/api/students/admin/bulk-delete', headers=admin_headers,
                               json={'student_ids': 'S3001'})
        assert response.status_code == 400

    def test_deleted_student_can_register_again(self, client, student, admin_headers, register_student):
        client.delete(f"/api/students/{student['student']['id']}/admin-delete", headers=admin_headers)

        again = register_student('S1001')
        assert again['student']['id'] != student['student']['id']

    def test_plain_put_and_delete_on_student(self, client, student, student_headers, admin_headers):
        pk = student['student']['id']

        updated = client.put(f'/api/students/{pk}', headers=student_headers, json={'department': 'ME'})
        assert updated.get_json()['student']['department'] == 'ME'

        assert client.delete(f'/api/students/{pk}', headers=student_headers).status_code == 403
        assert client.delete(f'/api/students/{pk}', headers=admin_headers).status_code == 200
        assert client.get(f'/api/students/{pk}', headers=admin_headers).status_code == 404
