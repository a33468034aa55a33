"""
Pytest configuration and fixtures.
"""
import pytest
from django.core.cache import cache


@pytest.fixture(autouse=True)
def clear_cache():
    """Revoked tokens and rate limit counters live in the cache."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def tenant(db):
    """Create a test tenant."""
    from apps.tenants.models import Tenant
    return Tenant.objects.create(
        name='Acme',
        slug='acme',
        status='active',
        plan='professional',
        max_users=25,
    )


@pytest.fixture
def user(db):
    """Regular user with a resolved profile."""
    from apps.rbac.models import User
    from apps.rbac.services import ProfileService

    user = User.objects.create_user(
        email='user@example.com',
        password='testpass123',
        first_name='Regular',
        last_name='User',
    )
    ProfileService.resolve_profile(user)
    return user


@pytest.fixture
def master_user(db):
    """User holding the platform-wide master grant."""
    from apps.rbac.models import User, RoleGrant
    from apps.rbac.policy import MASTER

    user = User.objects.create_user(
        email='master@example.com',
        password='testpass123',
        first_name='Master',
    )
    RoleGrant.objects.create(user=user, role=MASTER, tenant=None)
    return user


@pytest.fixture
def admin_user(db, tenant):
    """Tenant admin of `tenant`, with an owner membership."""
    from apps.rbac.models import User, RoleGrant
    from apps.rbac.policy import ADMIN
    from apps.tenants.models import TenantMember

    user = User.objects.create_user(
        email='admin@example.com',
        password='testpass123',
        first_name='Tenant',
        last_name='Admin',
    )
    RoleGrant.objects.create(user=user, role=ADMIN, tenant=tenant)
    TenantMember.objects.create(tenant=tenant, user=user, role='owner')
    return user


@pytest.fixture
def auth_headers():
    """Build Authorization headers carrying a fresh JWT for a user."""
    from apps.rbac.services import AuthService

    def make_headers(user):
        return {'HTTP_AUTHORIZATION': f'Bearer {AuthService.generate_jwt(user)}'}

    return make_headers
