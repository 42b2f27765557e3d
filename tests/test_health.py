"""
Tests for the health endpoints, CORS handling and JSON error pages
"""
from unittest.mock import patch
import sqlite3


class TestHealth:
    """Public health endpoints"""

    def test_basic_health(self, client):
        body = client.get('/api/health').get_json()

        assert body['status'] == 'healthy'
        assert body['version'] == '1.0.0'
        assert body['timestamp'].endswith('Z')

    def test_ping(self, client):
        assert client.get('/api/health/ping').get_json()['message'] == 'pong'

    def test_detailed_checks_database(self, client):
        body = client.get('/api/health/detailed').get_json()

        assert body['database'] == 'connected'
        assert body['status'] == 'healthy'
        assert body['uptime'] >= 0
        assert len(body['endpoints']) == 3
        assert 'allotment_manager' in body['modules']

    def test_detailed_hides_database_errors(self, client, managers):
        failure = sqlite3.OperationalError('unable to open database file /srv/hall/secret.db')
        with patch.object(managers['db_manager'], 'execute_query', side_effect=failure):
            response = client.get('/api/health/detailed')

        body = response.get_json()
        assert body['status'] == 'degraded'
        assert body['database'] == 'unavailable'
        assert b'secret.db' not in response.data


class TestApplicationShell:
    """CORS and error handlers"""

    def test_unknown_route_is_json_404(self, client):
        response = client.get('/api/nothing-here')

        assert response.status_code == 404
        assert response.get_json()['success'] is False

    def test_wrong_method_is_json_405(self, client):
        response = client.delete('/api/health/ping')
        assert response.status_code == 405
        assert response.get_json()['success'] is False

    def test_preflight_from_frontend(self, client, app):
        origin = app.config['FRONTEND_URL']
        response = client.options('/api/rooms', headers={
            'Origin': origin, 'Access-Control-Request-Method': 'GET',
            'Access-Control-Request-Headers': 'Authorization'
        })

        assert response.status_code == 200
        assert response.headers['Access-Control-Allow-Origin'] == origin
        assert 'authorization' in response.headers['Access-Control-Allow-Headers'].lower()

    def test_unknown_origin_gets_no_cors_headers(self, client):
        response = client.get('/api/health', headers={'Origin': 'https://elsewhere.example'})
        assert 'Access-Control-Allow-Origin' not in response.headers
