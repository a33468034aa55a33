"""
Tests for core API views and the exception handler.
"""
import pytest
from unittest.mock import Mock, patch
from django.db import DatabaseError
from django_ratelimit.exceptions import Ratelimited
from rest_framework import status

from apps.core.exceptions import (
    ConflictError, NotFoundError, VoxException, custom_exception_handler,
)


@pytest.mark.django_db
class TestHealthCheckView:
    """Test GET /v1/health."""

    def test_healthy(self, api_client):
        response = api_client.get('/v1/health')

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {'status': 'healthy', 'database': 'healthy', 'cache': 'healthy'}

    def test_request_id_header(self, api_client):
        response = api_client.get('/v1/health', HTTP_X_REQUEST_ID='req-abc')

        assert response['X-Request-ID'] == 'req-abc'

    def test_database_down(self, api_client):
        with patch('apps.core.views.connection') as connection:
            connection.cursor.side_effect = DatabaseError('connection refused')
            response = api_client.get('/v1/health')

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.data['database'] == 'unhealthy'
        assert response.data['cache'] == 'healthy'

    def test_cache_down(self, api_client):
        with patch('apps.core.views.cache') as cache:
            cache.get.return_value = None
            response = api_client.get('/v1/health')

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.data['cache'] == 'unhealthy'


def _context(path='/v1/auth/login'):
    request = Mock()
    request.path = path
    request.request_id = 'req-123'
    request.method = 'POST'
    request.META = {'REMOTE_ADDR': '10.0.0.1'}
    return {'request': request}


class TestCustomExceptionHandler:

    def test_vox_exception_body(self):
        response = custom_exception_handler(
            NotFoundError('Tenant not found', details={'slug': 'x'}), _context()
        )

        assert response.status_code == 404
        assert response.data == {
            'error': 'Tenant not found',
            'code': 'NOT_FOUND',
            'details': {'slug': 'x'},
            'request_id': 'req-123',
        }

    def test_conflict(self):
        response = custom_exception_handler(ConflictError('Already exists'), _context())

        assert response.status_code == 409
        assert response.data['details'] == {}

    def test_rate_limited(self):
        with patch('apps.core.logging.SecurityLogger.log_rate_limit_exceeded') as log_rate_limit:
            response = custom_exception_handler(Ratelimited(), _context('/v1/auth/register'))

        assert response.status_code == 429
        assert response['Retry-After'] == '3600'
        assert response.data['code'] == 'RATE_LIMIT_EXCEEDED'
        log_rate_limit.assert_called_once_with(endpoint='/v1/auth/register', ip_address='10.0.0.1')

    def test_unhandled_exception_is_500(self):
        response = custom_exception_handler(RuntimeError('boom'), _context())

        assert response.status_code == 500
        assert response.data['code'] == VoxException.code
        assert 'boom' not in str(response.data)
