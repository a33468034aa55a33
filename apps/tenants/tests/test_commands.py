"""
Tests for the add_member management command.
"""
import pytest
from io import StringIO
from django.core.management import call_command
from django.core.management.base import CommandError

from apps.rbac.models import User, Profile
from apps.tenants.models import TenantMember


@pytest.mark.django_db
class TestAddMemberCommand:

    def test_adds_existing_user_by_slug(self, tenant, user):
        out = StringIO()
        call_command('add_member', tenant='acme', email=user.email, role='admin', stdout=out)

        assert TenantMember.objects.get(tenant=tenant, user=user).role == 'admin'
        assert 'Added' in out.getvalue()

    def test_adds_by_tenant_id(self, tenant, user):
        call_command('add_member', tenant=str(tenant.id), email=user.email, stdout=StringIO())

        assert TenantMember.objects.filter(tenant=tenant, user=user, role='member').exists()

    def test_creates_user(self, tenant):
        call_command(
            'add_member',
            tenant='acme',
            email='new@example.com',
            create_user=True,
            password='SecurePass123!',
            first_name='Nova',
            stdout=StringIO(),
        )

        user = User.objects.get(email='new@example.com')
        assert Profile.objects.get(user=user).name == 'Nova'
        assert TenantMember.objects.filter(tenant=tenant, user=user).exists()

    def test_existing_member(self, tenant, admin_user):
        out = StringIO()
        call_command('add_member', tenant='acme', email=admin_user.email, role='owner', stdout=out)

        assert 'already a member' in out.getvalue()

    def test_unknown_tenant(self, user):
        with pytest.raises(CommandError):
            call_command('add_member', tenant='missing', email=user.email, stdout=StringIO())

    def test_unknown_user(self, tenant):
        with pytest.raises(CommandError):
            call_command('add_member', tenant='acme', email='ghost@example.com', stdout=StringIO())

    def test_create_user_needs_password(self, tenant):
        with pytest.raises(CommandError):
            call_command(
                'add_member', tenant='acme', email='new@example.com',
                create_user=True, stdout=StringIO(),
            )

    def test_user_limit_is_command_error(self, tenant, user):
        tenant.max_users = 0
        tenant.save()

        with pytest.raises(CommandError):
            call_command('add_member', tenant='acme', email=user.email, stdout=StringIO())
