"""
Tests for the ensure_master management command.
"""
import pytest
from io import StringIO
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import override_settings

from apps.rbac.models import User, Profile, RoleGrant
from apps.rbac.policy import MASTER


@pytest.mark.django_db
class TestEnsureMaster:

    def test_creates_master(self):
        out = StringIO()
        call_command('ensure_master', email='root@example.com', password='SecurePass123!', stdout=out)

        user = User.objects.get(email='root@example.com')
        assert user.check_password('SecurePass123!')
        assert RoleGrant.objects.filter(user=user, role=MASTER, tenant__isnull=True).exists()
        assert Profile.objects.get(user=user).user_level == MASTER
        assert 'Profile level: master' in out.getvalue()

    def test_idempotent(self):
        call_command('ensure_master', email='root@example.com', password='SecurePass123!', stdout=StringIO())
        out = StringIO()
        call_command('ensure_master', email='root@example.com', stdout=out)

        assert RoleGrant.objects_with_deleted.filter(role=MASTER).count() == 1
        assert 'already present' in out.getvalue()

    def test_existing_password_untouched(self, user):
        call_command('ensure_master', email=user.email, password='Ignored123!', stdout=StringIO())

        user.refresh_from_db()
        assert user.check_password('testpass123')
        assert Profile.objects.get(user=user).user_level == MASTER

    def test_restores_soft_deleted_grant(self, master_user):
        RoleGrant.objects.get(user=master_user).delete()
        assert Profile.objects.get(user=master_user).user_level != MASTER

        call_command('ensure_master', email=master_user.email, stdout=StringIO())

        grants = RoleGrant.objects_with_deleted.filter(user=master_user, role=MASTER)
        assert grants.count() == 1
        assert grants.first().deleted_at is None
        assert Profile.objects.get(user=master_user).user_level == MASTER

    @override_settings(MASTER_EMAIL='configured@example.com', MASTER_PASSWORD='SecurePass123!')
    def test_reads_settings(self):
        call_command('ensure_master', stdout=StringIO())

        assert User.objects.filter(email='configured@example.com').exists()

    @override_settings(MASTER_EMAIL='', MASTER_PASSWORD='')
    def test_missing_email(self):
        with pytest.raises(CommandError):
            call_command('ensure_master', stdout=StringIO())

    @override_settings(MASTER_PASSWORD='')
    def test_new_user_without_password(self):
        with pytest.raises(CommandError):
            call_command('ensure_master', email='nobody@example.com', stdout=StringIO())

        assert not User.objects.filter(email='nobody@example.com').exists()
