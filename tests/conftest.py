"""
Shared fixtures: an application over a temporary SQLite database, a test
client, and helpers that register students and log in.
"""
import pytest

from hall import create_app


@pytest.fixture
def app(tmp_path):
    """Application built from the testing configuration"""
    app = create_app('testing', {
        'DATABASE_PATH': str(tmp_path / 'hall.db'),
        'EXPORTS_FOLDER': str(tmp_path / 'exports'),
        'SSLCOMMERZ_STORE_ID': 'teststore',
        'SSLCOMMERZ_STORE_PASSWORD': 'teststore@ssl',
    })
    yield app
    app.extensions['hall']['db_manager'].close_all_connections()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def managers(app):
    """The components built by create_app, keyed by name"""
    return app.extensions['hall']


def auth(token):
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def register_student(client):
    """Factory registering a student through the API and returning the response body"""
    def _register(student_id='S1001', **overrides):
        payload = {
            'student_id': student_id,
            'first_name': 'Rahim',
            'last_name': f'Uddin{student_id[-2:]}',
            'email': f'{student_id.lower()}@student.hall.edu',
            'phone_number': '01700000000',
            'password': 'secret123',
            'department': 'CSE',
            'year': 2,
            'session': '2022-23',
            'blood_group': 'A+',
        }
        payload.update(overrides)
        response = client.post('/api/auth/student/register', json=payload)
        assert response.status_code == 201, response.get_json()
        return response.get_json()
    return _register


@pytest.fixture
def student(register_student):
    """A registered student with a token"""
    return register_student('S1001')


@pytest.fixture
def student_headers(student):
    return auth(student['token'])


@pytest.fixture
def admin_token(client):
    response = client.post('/api/auth/admin/login', json={'admin_id': 'admin', 'password': 'admin123'})
    assert response.status_code == 200
    return response.get_json()['token']


@pytest.fixture
def admin_headers(admin_token):
    return auth(admin_token)
