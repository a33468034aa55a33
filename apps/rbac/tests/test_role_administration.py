"""
Tests for RoleAdministrationService, the grant signals and the reconcile task.
"""
import pytest
from unittest.mock import patch

from apps.core.exceptions import ConflictError, PermissionDeniedError, ValidationError
from apps.rbac.models import AuditLog, Profile, RoleGrant, User
from apps.rbac.policy import ADMIN, MASTER, USER
from apps.rbac.services import RoleAdministrationService
from apps.rbac.tasks import reconcile_profile_levels


@pytest.mark.django_db
class TestUpdateUserRole:

    def test_master_promotes_user_to_tenant_admin(self, master_user, user, tenant):
        grant = RoleAdministrationService.update_user_role(master_user, user, ADMIN, tenant=tenant)

        assert grant.role == ADMIN
        assert grant.tenant_id == tenant.id
        assert grant.granted_by_id == master_user.id

        profile = Profile.objects.get(user=user)
        assert profile.user_level == ADMIN
        assert profile.tenant_id == tenant.id

    def test_change_is_audited(self, master_user, user, tenant):
        RoleAdministrationService.update_user_role(master_user, user, ADMIN, tenant=tenant)

        entry = AuditLog.objects.get(action='role_granted')
        assert entry.user_id == master_user.id
        assert entry.target_id == user.id
        assert entry.tenant_id == tenant.id
        assert entry.metadata['role'] == ADMIN

    def test_new_level_replaces_previous_grants(self, master_user, admin_user, tenant):
        RoleAdministrationService.update_user_role(master_user, admin_user, USER, tenant=tenant)

        assert RoleGrant.objects.roles_for(admin_user.pk) == {USER}
        assert Profile.objects.get(user=admin_user).user_level == USER

    def test_master_grant_is_platform_wide(self, master_user, user, tenant):
        grant = RoleAdministrationService.update_user_role(master_user, user, MASTER, tenant=tenant)

        assert grant.tenant_id is None
        assert Profile.objects.get(user=user).tenant_id is None

    def test_regranting_restores_soft_deleted_row(self, master_user, user, tenant):
        RoleAdministrationService.update_user_role(master_user, user, ADMIN, tenant=tenant)
        RoleAdministrationService.update_user_role(master_user, user, USER, tenant=tenant)
        RoleAdministrationService.update_user_role(master_user, user, ADMIN, tenant=tenant)

        rows = RoleGrant.objects_with_deleted.filter(user=user, role=ADMIN, tenant=tenant)
        assert rows.count() == 1
        assert rows.first().deleted_at is None

    def test_unknown_level_rejected(self, master_user, user):
        with pytest.raises(ValidationError):
            RoleAdministrationService.update_user_role(master_user, user, 'owner')

    def test_non_master_refused(self, admin_user, user, tenant):
        with patch('apps.rbac.services.SecurityLogger') as security_logger:
            with pytest.raises(PermissionDeniedError):
                RoleAdministrationService.update_user_role(admin_user, user, USER, tenant=tenant)

        security_logger.log_access_denied.assert_called_once()
        assert not RoleGrant.objects.filter(user=user).exists()

    def test_self_promotion_is_escalation_attempt(self, admin_user):
        with patch('apps.rbac.services.SecurityLogger') as security_logger:
            with pytest.raises(PermissionDeniedError):
                RoleAdministrationService.update_user_role(admin_user, admin_user, MASTER)

        security_logger.log_privilege_escalation_attempt.assert_called_once_with(
            admin_user.pk, admin_user.pk, MASTER
        )
        assert Profile.objects.get(user=admin_user).user_level == ADMIN

    def test_stale_cached_level_does_not_grant_rights(self, user):
        """A profile that claims master without a grant is not a master."""
        Profile.objects.filter(user=user).update(user_level=MASTER)
        target = User.objects.create_user(email='target@example.com', password='testpass123')

        with pytest.raises(PermissionDeniedError):
            RoleAdministrationService.update_user_role(user, target, ADMIN)

    def test_verification_outage_refuses(self, master_user, user):
        with patch('apps.rbac.services.RoleVerificationService.is_master', return_value=False):
            with pytest.raises(PermissionDeniedError):
                RoleAdministrationService.update_user_role(master_user, user, ADMIN)


@pytest.mark.django_db
class TestRevokeRole:

    def test_revoke(self, master_user, admin_user, tenant):
        assert RoleAdministrationService.revoke_role(master_user, admin_user, ADMIN, tenant=tenant) is True

        assert RoleGrant.objects.roles_for(admin_user.pk) == set()
        assert Profile.objects.get(user=admin_user).user_level == USER
        assert AuditLog.objects.filter(action='role_revoked').exists()

    def test_revoke_missing_grant(self, master_user, user):
        assert RoleAdministrationService.revoke_role(master_user, user, ADMIN) is False

    def test_master_cannot_revoke_own_master(self, master_user):
        with pytest.raises(ConflictError):
            RoleAdministrationService.revoke_role(master_user, master_user, MASTER)


@pytest.mark.django_db
class TestGrantSignals:

    def test_grant_save_updates_cached_level(self, user):
        RoleGrant.objects.create(user=user, role=MASTER)

        assert Profile.objects.get(user=user).user_level == MASTER

    def test_grant_soft_delete_updates_cached_level(self, master_user):
        RoleGrant.objects.get(user=master_user).delete()

        assert Profile.objects.get(user=master_user).user_level == USER

    def test_grant_hard_delete_updates_cached_level(self, master_user):
        RoleGrant.objects.get(user=master_user).hard_delete()

        assert Profile.objects.get(user=master_user).user_level == USER


@pytest.mark.django_db
class TestReconcileProfileLevels:

    def test_repairs_drift(self, master_user, admin_user, user):
        # Queryset updates bypass signals and leave drift behind
        Profile.objects.filter(user=master_user).update(user_level=USER)
        Profile.objects.filter(user=user).update(user_level=ADMIN)

        corrected = reconcile_profile_levels()

        assert corrected == 2
        assert Profile.objects.get(user=master_user).user_level == MASTER
        assert Profile.objects.get(user=user).user_level == USER
        assert Profile.objects.get(user=admin_user).user_level == ADMIN

    def test_nothing_to_do(self, master_user, user):
        assert reconcile_profile_levels() == 0
