"""
Tests for the access-control API endpoints.
"""
import uuid
import pytest
from unittest.mock import patch
from rest_framework import status

from apps.rbac.models import Profile, RoleGrant
from apps.rbac.policy import ADMIN, MASTER, USER


@pytest.mark.django_db
class TestPermissionsEndpoint:

    def test_user_capabilities(self, api_client, user, auth_headers):
        response = api_client.get('/v1/auth/permissions', **auth_headers(user))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['user_level'] == USER
        assert {'resource': 'leads', 'action': 'read'} in response.data['permissions']
        assert {'resource': 'users', 'action': 'delete'} not in response.data['permissions']

    def test_master_capabilities_are_wildcards(self, api_client, master_user, auth_headers):
        response = api_client.get('/v1/auth/permissions', **auth_headers(master_user))

        assert response.data['user_level'] == MASTER
        assert {'resource': '*', 'action': 'execute'} in response.data['permissions']

    def test_anonymous_rejected(self, api_client):
        response = api_client.get('/v1/auth/permissions')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestRouteCheckEndpoint:

    def test_anonymous_redirected_to_login(self, api_client):
        response = api_client.get('/v1/auth/route-check', {'required_level': 'admin'})

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {'kind': 'redirect', 'location': '/login', 'message': None}

    def test_admin_on_master_route(self, api_client, admin_user, auth_headers):
        response = api_client.get(
            '/v1/auth/route-check', {'required_level': 'master'}, **auth_headers(admin_user)
        )

        assert response.data['kind'] == 'redirect'
        assert response.data['location'] == '/admin'

    def test_permission_denied_inline(self, api_client, user, auth_headers):
        response = api_client.get(
            '/v1/auth/route-check',
            {'resource': 'reports', 'action': 'read'},
            **auth_headers(user)
        )

        assert response.data['kind'] == 'denied'
        assert response.data['location'] is None
        assert response.data['message']

    def test_render(self, api_client, admin_user, auth_headers):
        response = api_client.get(
            '/v1/auth/route-check',
            {'required_level': 'admin', 'resource': 'reports', 'action': 'read'},
            **auth_headers(admin_user)
        )

        assert response.data['kind'] == 'render'

    @pytest.mark.parametrize('query', [
        {'required_level': 'owner'},
        {'resource': 'leads'},
        {'resource': 'leads', 'action': 'fly'},
    ])
    def test_bad_query(self, api_client, user, auth_headers, query):
        response = api_client.get('/v1/auth/route-check', query, **auth_headers(user))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'VALIDATION_ERROR'


@pytest.mark.django_db
class TestRolesEndpoint:

    def test_master(self, api_client, master_user, auth_headers):
        response = api_client.get('/v1/auth/roles', **auth_headers(master_user))

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {'is_master': True, 'is_tenant_admin': False, 'roles': [MASTER]}

    def test_tenant_admin(self, api_client, admin_user, tenant, auth_headers):
        response = api_client.get(
            '/v1/auth/roles', {'tenant_id': str(tenant.id)}, **auth_headers(admin_user)
        )

        assert response.data['is_master'] is False
        assert response.data['is_tenant_admin'] is True
        assert response.data['roles'] == [ADMIN]

    def test_stale_profile_level_is_not_trusted(self, api_client, user, auth_headers):
        Profile.objects.filter(user=user).update(user_level=MASTER)

        response = api_client.get('/v1/auth/roles', **auth_headers(user))

        assert response.data['is_master'] is False

    def test_backend_failure_reads_as_no_roles(self, api_client, master_user, auth_headers):
        with patch('apps.rbac.services.get_role_functions', side_effect=RuntimeError('down')):
            response = api_client.get('/v1/auth/roles', **auth_headers(master_user))

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {'is_master': False, 'is_tenant_admin': False, 'roles': []}

    def test_malformed_tenant_id_is_a_bad_request(self, api_client, admin_user, auth_headers):
        with patch('apps.rbac.services.SecurityLogger') as security_logger:
            response = api_client.get(
                '/v1/auth/roles', {'tenant_id': 'not-a-uuid'}, **auth_headers(admin_user)
            )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'VALIDATION_ERROR'
        assert 'tenant_id' in response.data['details']
        security_logger.log_role_verification_failed.assert_not_called()


@pytest.mark.django_db
class TestUserRoleEndpoint:
    """Test PUT /v1/users/<id>/role."""

    def test_master_changes_level(self, api_client, master_user, user, tenant, auth_headers):
        response = api_client.put(
            f'/v1/users/{user.id}/role',
            {'user_level': 'admin', 'tenant_id': str(tenant.id)},
            format='json',
            **auth_headers(master_user)
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['user_level'] == ADMIN
        assert response.data['tenant_id'] == str(tenant.id)
        assert RoleGrant.objects.filter(user=user, role=ADMIN, tenant=tenant).exists()

    def test_non_master_forbidden(self, api_client, admin_user, user, auth_headers):
        response = api_client.put(
            f'/v1/users/{user.id}/role',
            {'user_level': 'admin'},
            format='json',
            **auth_headers(admin_user)
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert not RoleGrant.objects.filter(user=user).exists()

    def test_unknown_user(self, api_client, master_user, auth_headers):
        response = api_client.put(
            f'/v1/users/{uuid.uuid4()}/role',
            {'user_level': 'admin'},
            format='json',
            **auth_headers(master_user)
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_invalid_level(self, api_client, master_user, user, auth_headers):
        response = api_client.put(
            f'/v1/users/{user.id}/role',
            {'user_level': 'owner'},
            format='json',
            **auth_headers(master_user)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unknown_tenant(self, api_client, master_user, user, auth_headers):
        response = api_client.put(
            f'/v1/users/{user.id}/role',
            {'user_level': 'admin', 'tenant_id': str(uuid.uuid4())},
            format='json',
            **auth_headers(master_user)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestRevokeRoleEndpoint:
    """Test DELETE /v1/users/<id>/role."""

    def test_master_revokes_tenant_admin(self, api_client, master_user, admin_user, tenant, auth_headers):
        response = api_client.delete(
            f'/v1/users/{admin_user.id}/role',
            {'role': 'admin', 'tenant_id': str(tenant.id)},
            format='json',
            **auth_headers(master_user)
        )

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not RoleGrant.objects.filter(user=admin_user).exists()
        assert Profile.objects.get(user=admin_user).user_level == USER

    def test_missing_grant(self, api_client, master_user, user, auth_headers):
        response = api_client.delete(
            f'/v1/users/{user.id}/role',
            {'role': 'admin'},
            format='json',
            **auth_headers(master_user)
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_non_master_forbidden(self, api_client, admin_user, tenant, auth_headers):
        response = api_client.delete(
            f'/v1/users/{admin_user.id}/role',
            {'role': 'admin', 'tenant_id': str(tenant.id)},
            format='json',
            **auth_headers(admin_user)
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert RoleGrant.objects.filter(user=admin_user, role=ADMIN).exists()

    def test_master_keeps_own_master_role(self, api_client, master_user, auth_headers):
        response = api_client.delete(
            f'/v1/users/{master_user.id}/role',
            {'role': 'master'},
            format='json',
            **auth_headers(master_user)
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert RoleGrant.objects.filter(user=master_user, role=MASTER).exists()

    def test_invalid_role(self, api_client, master_user, user, auth_headers):
        response = api_client.delete(
            f'/v1/users/{user.id}/role',
            {'role': 'owner'},
            format='json',
            **auth_headers(master_user)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
