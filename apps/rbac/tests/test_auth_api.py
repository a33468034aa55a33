"""
Tests for authentication API endpoints.
"""
import pytest
from unittest.mock import patch
from django.core import mail
from django.test import override_settings
from rest_framework import status

from apps.rbac.models import User, Profile, PasswordResetToken
from apps.rbac.policy import USER


@pytest.mark.django_db
class TestRegistrationEndpoint:
    """Test POST /v1/auth/register endpoint."""

    def test_register_user_success(self, api_client):
        data = {
            'email': 'NewUser@Example.com',
            'password': 'SecurePass123!',
            'first_name': 'Maria',
            'last_name': 'Lima',
        }

        response = api_client.post('/v1/auth/register', data, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['user']['email'] == 'newuser@example.com'
        assert response.data['profile']['user_level'] == USER
        assert response.data['profile']['name'] == 'Maria Lima'
        assert response.data['profile']['tenant_id'] is None
        assert response.data['token']

        user = User.objects.get(email='newuser@example.com')
        assert Profile.objects.filter(user=user).exists()

    def test_register_duplicate_email(self, api_client, user):
        data = {'email': user.email, 'password': 'SecurePass123!'}

        response = api_client.post('/v1/auth/register', data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'error' in response.data

    def test_register_weak_password(self, api_client):
        data = {'email': 'weak@example.com', 'password': '123'}

        response = api_client.post('/v1/auth/register', data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert not User.objects.filter(email='weak@example.com').exists()


@pytest.mark.django_db
class TestLoginEndpoint:
    """Test POST /v1/auth/login endpoint."""

    def test_login_success(self, api_client, user):
        response = api_client.post(
            '/v1/auth/login',
            {'email': user.email, 'password': 'testpass123'},
            format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['token']
        assert response.data['profile']['id'] == str(user.pk)

        profile = Profile.objects.get(user=user)
        assert profile.last_login is not None

    def test_login_is_case_insensitive(self, api_client, user):
        response = api_client.post(
            '/v1/auth/login',
            {'email': 'USER@example.com', 'password': 'testpass123'},
            format='json'
        )

        assert response.status_code == status.HTTP_200_OK

    def test_login_invalid_credentials(self, api_client, user):
        with patch('apps.rbac.services.SecurityLogger') as security_logger:
            response = api_client.post(
                '/v1/auth/login',
                {'email': user.email, 'password': 'wrong'},
                format='json'
            )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['code'] == 'UNAUTHENTICATED'
        security_logger.log_failed_login.assert_called_once()

    def test_login_creates_missing_profile(self, api_client):
        User.objects.create_user(email='noprofile@example.com', password='testpass123')

        response = api_client.post(
            '/v1/auth/login',
            {'email': 'noprofile@example.com', 'password': 'testpass123'},
            format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert Profile.objects.filter(email='noprofile@example.com').count() == 1

    @override_settings(RATELIMIT_ENABLE=True)
    def test_login_rate_limited(self, api_client, user):
        for _ in range(5):
            api_client.post('/v1/auth/login', {'email': user.email, 'password': 'wrong'}, format='json')

        response = api_client.post(
            '/v1/auth/login',
            {'email': user.email, 'password': 'testpass123'},
            format='json'
        )

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert response.data['code'] == 'RATE_LIMIT_EXCEEDED'
        assert response['Retry-After'] == '60'


@pytest.mark.django_db
class TestLogoutEndpoint:

    def test_logout_revokes_token(self, api_client, user, auth_headers):
        headers = auth_headers(user)

        response = api_client.post('/v1/auth/logout', **headers)
        assert response.status_code == status.HTTP_204_NO_CONTENT

        response = api_client.get('/v1/auth/me', **headers)
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_logout_requires_authentication(self, api_client):
        response = api_client.post('/v1/auth/logout')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestPasswordReset:

    def test_forgot_password_sends_mail(self, api_client, user):
        response = api_client.post('/v1/auth/forgot-password', {'email': user.email}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert len(mail.outbox) == 1
        token = PasswordResetToken.objects.get(user=user)
        assert token.token in mail.outbox[0].body

    def test_forgot_password_unknown_email_same_answer(self, api_client):
        response = api_client.post(
            '/v1/auth/forgot-password', {'email': 'ghost@example.com'}, format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert len(mail.outbox) == 0

    def test_reset_password(self, api_client, user):
        token = PasswordResetToken.create_token(user)

        response = api_client.post(
            '/v1/auth/reset-password',
            {'token': token.token, 'new_password': 'BrandNewPass456!'},
            format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        user.refresh_from_db()
        assert user.check_password('BrandNewPass456!')

        token.refresh_from_db()
        assert token.used is True

    def test_reset_token_single_use(self, api_client, user):
        token = PasswordResetToken.create_token(user)
        data = {'token': token.token, 'new_password': 'BrandNewPass456!'}

        api_client.post('/v1/auth/reset-password', data, format='json')
        response = api_client.post('/v1/auth/reset-password', data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestMeEndpoint:

    def test_get_profile(self, api_client, admin_user, tenant, auth_headers):
        response = api_client.get('/v1/auth/me', **auth_headers(admin_user))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['user_level'] == 'admin'
        assert response.data['tenant_id'] == str(tenant.id)

    def test_update_name(self, api_client, user, auth_headers):
        response = api_client.patch(
            '/v1/auth/me', {'name': 'Novo Nome'}, format='json', **auth_headers(user)
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['name'] == 'Novo Nome'

    def test_cannot_raise_own_level(self, api_client, user, auth_headers):
        response = api_client.patch(
            '/v1/auth/me', {'user_level': 'master'}, format='json', **auth_headers(user)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Profile.objects.get(user=user).user_level == USER

    def test_anonymous_rejected(self, api_client):
        response = api_client.get('/v1/auth/me')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
