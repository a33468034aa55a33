"""
Tests for ProfileService.
"""
import pytest
from unittest.mock import patch
from django.db import DatabaseError, IntegrityError

from apps.core.exceptions import BackendUnavailableError, ValidationError
from apps.rbac.models import User, Profile, RoleGrant
from apps.rbac.policy import ADMIN, MASTER, USER
from apps.rbac.services import ProfileService


@pytest.mark.django_db
class TestResolveProfile:
    """Test lazy, idempotent profile creation."""

    def test_creates_minimal_profile_on_first_access(self):
        user = User.objects.create_user(
            email='ana@example.com', password='testpass123',
            first_name='Ana', last_name='Souza',
        )
        assert not Profile.objects.filter(user=user).exists()

        profile = ProfileService.resolve_profile(user)

        assert profile.pk == user.pk
        assert profile.name == 'Ana Souza'
        assert profile.email == 'ana@example.com'
        assert profile.user_level == USER
        assert profile.tenant_id is None

    def test_returns_existing_profile(self, user):
        first = ProfileService.resolve_profile(user)
        first.name = 'Renamed'
        first.save()

        second = ProfileService.resolve_profile(user)

        assert second.pk == first.pk
        assert second.name == 'Renamed'
        assert Profile.objects.filter(user=user).count() == 1

    def test_repeated_resolution_creates_one_row(self):
        user = User.objects.create_user(email='once@example.com', password='testpass123')

        for _ in range(3):
            ProfileService.resolve_profile(user)

        assert Profile.objects_with_deleted.filter(user=user).count() == 1

    def test_existing_level_is_preserved(self, master_user):
        profile = ProfileService.resolve_profile(master_user)
        assert profile.user_level == MASTER

    def test_name_falls_back_to_email_local_part(self):
        user = User.objects.create_user(email='joao.silva@example.com', password='testpass123')

        assert ProfileService.resolve_profile(user).name == 'joao.silva'

    def test_name_falls_back_to_fixed_label(self):
        user = User(email='')
        assert ProfileService.derive_display_name(user) == 'Usuário'

    def test_concurrent_creation_refetches(self):
        """The insert losing a race surfaces as IntegrityError and is answered by refetching."""
        user = User.objects.create_user(email='race@example.com', password='testpass123')
        winner = Profile.objects.create(user=user, name='Winner', email=user.email)

        with patch.object(
            ProfileService, '_fetch',
            side_effect=[Profile.DoesNotExist(), winner],
        ), patch.object(Profile.objects, 'create', side_effect=IntegrityError('duplicate key')):
            profile = ProfileService.resolve_profile(user)

        assert profile.name == 'Winner'
        assert Profile.objects.filter(user=user).count() == 1

    def test_store_error_raises_backend_unavailable(self, user):
        with patch.object(ProfileService, '_fetch', side_effect=DatabaseError('connection lost')):
            with pytest.raises(BackendUnavailableError):
                ProfileService.resolve_profile(user)

    def test_insert_error_raises_backend_unavailable(self):
        user = User.objects.create_user(email='broken@example.com', password='testpass123')

        with patch.object(Profile.objects, 'create', side_effect=DatabaseError('disk full')):
            with pytest.raises(BackendUnavailableError):
                ProfileService.resolve_profile(user)


@pytest.mark.django_db
class TestUpdateProfile:

    def test_updates_self_service_fields(self, user):
        profile = ProfileService.update_profile(
            user, name='New Name', avatar_url='https://cdn.example.com/a.png'
        )

        profile.refresh_from_db()
        assert profile.name == 'New Name'
        assert profile.avatar_url == 'https://cdn.example.com/a.png'

    @pytest.mark.parametrize('field,value', [
        ('user_level', MASTER),
        ('tenant_id', None),
        ('email', 'other@example.com'),
    ])
    def test_rejects_privileged_fields(self, user, field, value):
        with pytest.raises(ValidationError) as exc_info:
            ProfileService.update_profile(user, **{field: value})

        assert exc_info.value.details['fields'] == [field]
        assert Profile.objects.get(user=user).user_level == USER


@pytest.mark.django_db
class TestSyncLevel:

    def test_master_grant_clears_tenant(self, user, tenant):
        profile = ProfileService.resolve_profile(user)
        profile.tenant = tenant
        profile.save()

        RoleGrant.objects.create(user=user, role=MASTER)

        profile.refresh_from_db()
        assert profile.user_level == MASTER
        assert profile.tenant_id is None

    def test_scoped_grant_sets_home_tenant(self, user, tenant):
        RoleGrant.objects.create(user=user, role=ADMIN, tenant=tenant)

        profile = Profile.objects.get(user=user)
        assert profile.user_level == ADMIN
        assert profile.tenant_id == tenant.id

    def test_no_grants_means_user(self, admin_user):
        RoleGrant.objects.filter(user=admin_user).delete()

        profile = ProfileService.sync_level(admin_user)
        assert profile.user_level == USER
