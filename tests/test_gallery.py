"""
Tests for gallery submissions and review
"""


def submit(client, headers, description='Cultural night'):
    return client.post('/api/gallery', headers=headers, json={
        'image_url': 'https://cdn.hall.local/gallery/night.jpg',
        'short_description': description,
        'time_of_event': 'March 2025'
    })


class TestGallery:
    """Submission and review workflow"""

    def test_submission_starts_pending(self, client, student_headers, admin_headers):
        response = submit(client, student_headers)

        assert response.status_code == 201
        gallery_id = response.get_json()['gallery_id']

        mine = client.get('/api/gallery/my-galleries', headers=student_headers).get_json()['galleries']
        assert mine[0]['id'] == gallery_id
        assert mine[0]['status'] == 'Pending'

        # Pending entries stay out of the public gallery
        assert client.get('/api/gallery/approved').get_json()['galleries'] == []

    def test_missing_fields_rejected(self, client, student_headers):
        response = client.post('/api/gallery', headers=student_headers,
                               json={'image_url': 'x.jpg', 'short_description': ''})
        assert response.status_code == 400

    def test_approve_publishes_entry(self, client, student_headers, admin_headers):
        gallery_id = submit(client, student_headers).get_json()['gallery_id']

        response = client.put(f'/api/gallery/{gallery_id}/approve', headers=admin_headers, json={})

        assert response.status_code == 200
        gallery = response.get_json()['gallery']
        assert gallery['status'] == 'Approved'
        assert gallery['admin_response'] == 'Your gallery request has been approved.'

        public = client.get('/api/gallery/approved').get_json()['galleries']
        assert [entry['id'] for entry in public] == [gallery_id]
        assert public[0]['student_number'] == 'S1001'

    def test_reject_with_response(self, client, student_headers, admin_headers):
        gallery_id = submit(client, student_headers).get_json()['gallery_id']

        response = client.put(f'/api/gallery/{gallery_id}/reject', headers=admin_headers,
                              json={'admin_response': 'Image is blurry'})

        assert response.get_json()['gallery']['admin_response'] == 'Image is blurry'
        all_requests = client.get('/api/gallery', headers=admin_headers).get_json()['galleries']
        assert all_requests[0]['status'] == 'Rejected'
        assert all_requests[0]['reviewed_by_name'] == 'Hall Administrator'

    def test_delete_entry(self, client, student_headers, admin_headers):
        gallery_id = submit(client, student_headers).get_json()['gallery_id']

        assert client.delete(f'/api/gallery/{gallery_id}', headers=admin_headers).status_code == 200
        assert client.delete(f'/api/gallery/{gallery_id}', headers=admin_headers).status_code == 404

    def test_review_requires_admin(self, client, student_headers):
        gallery_id = submit(client, student_headers).get_json()['gallery_id']
        assert client.put(f'/api/gallery/{gallery_id}/approve', headers=student_headers).status_code == 403

    def test_review_unknown_entry(self, client, admin_headers):
        assert client.put('/api/gallery/404/approve', headers=admin_headers, json={}).status_code == 404
