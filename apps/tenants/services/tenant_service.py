"""
Tenant management service for the master panel.

Handles:
- Listing tenants and platform users
- Tenant creation with its first admin
- Suspension and activation
- Platform metrics (revenue estimate, health band)

Callers are expected to have passed IsVerifiedMaster; the service does not
re-check roles.
"""
import logging
from typing import Optional, Dict, Any
from django.db import transaction, IntegrityError
from django.utils.text import slugify
import uuid

from apps.core.exceptions import ConflictError, NotFoundError, ValidationError
from apps.rbac.models import User, Profile, AuditLog
from apps.rbac.policy import ADMIN
from apps.rbac.services import ProfileService, RoleAdministrationService
from apps.tenants.models import (
    Tenant, TenantMember, PLAN_MAX_USERS, PLAN_PRICES, default_settings_for,
)

logger = logging.getLogger(__name__)


class TenantService:
    """
    Master-panel operations on tenants.
    """

    # (minimum share of active tenants, band), checked top down
    HEALTH_BANDS = (
        (0.9, 'excellent'),
        (0.7, 'good'),
        (0.5, 'warning'),
    )

    @staticmethod
    def list_tenants(status=None):
        tenants = Tenant.objects.all().order_by('-created_at')
        if status:
            tenants = tenants.filter(status=status)
        return tenants

    @staticmethod
    def list_users(user_level=None, tenant=None):
        profiles = Profile.objects.select_related('user', 'tenant').order_by('-created_at')
        if user_level:
            profiles = profiles.filter(user_level=user_level)
        if tenant is not None:
            profiles = profiles.filter(tenant=tenant)
        return profiles

    @staticmethod
    def get_tenant(slug) -> Tenant:
        tenant = Tenant.objects.by_slug(slug)
        if tenant is None:
            raise NotFoundError(f"Tenant '{slug}' not found", details={'slug': slug})
        return tenant

    @staticmethod
    def add_member(tenant, user, role='member'):
        """
        Add a user to a tenant, or update the role of an existing member.

        Refuses new members once the tenant is at max_users. The tenant row
        stays locked while the limit is checked and the member written.
        """
        if role not in dict(TenantMember.ROLE_CHOICES):
            raise ValidationError(
                f"Unknown membership role '{role}'",
                details={'allowed': [choice for choice, _ in TenantMember.ROLE_CHOICES]}
            )

        with transaction.atomic():
            locked = Tenant.objects.select_for_update().get(pk=tenant.pk)

            membership = TenantMember.objects_with_deleted.filter(tenant=locked, user=user).first()
            if membership is not None and not membership.is_deleted:
                if membership.role != role:
                    membership.role = role
                    membership.save(update_fields=['role', 'updated_at'])
                return membership, False

            if not locked.can_add_user():
                raise ConflictError(
                    f"Tenant '{locked.slug}' has reached its user limit",
                    details={'max_users': locked.max_users}
                )

            if membership is not None:
                membership.role = role
                membership.save(update_fields=['role', 'updated_at'])
                membership.restore()
            else:
                membership = TenantMember.objects.create(tenant=locked, user=user, role=role)

        tenant.refresh_from_db(fields=['current_users'])
        return membership, True

    @staticmethod
    def _generate_unique_slug(name):
        base_slug = slugify(name)[:90] or 'tenant'
        slug = base_slug
        while Tenant.objects_with_deleted.filter(slug=slug).exists():
            slug = f"{base_slug}-{uuid.uuid4().hex[:6]}"
        return slug

    @classmethod
    def create_tenant(cls, actor, name: str, plan: str, admin_email: str,
                      admin_password: str, domain: Optional[str] = None,
                      request=None) -> Tenant:
        """
        Create a tenant in trial with its first admin.

        The admin gets a new identity, an owner membership and an admin
        RoleGrant scoped to the tenant.
        """
        if plan not in PLAN_MAX_USERS:
            raise ValidationError(
                f"Unknown plan '{plan}'",
                details={'allowed': list(PLAN_MAX_USERS)}
            )
        if User.objects_with_deleted.filter(
            email=User.objects.normalize_email(admin_email)
        ).exists():
            raise ConflictError(f"The email {admin_email} is already in use")

        try:
            with transaction.atomic():
                tenant = Tenant.objects.create(
                    name=name,
                    slug=cls._generate_unique_slug(name),
                    domain=domain or None,
                    plan=plan,
                    status='trial',
                    max_users=PLAN_MAX_USERS[plan],
                    settings=default_settings_for(plan),
                )
                admin = User.objects.create_user(
                    email=admin_email,
                    password=admin_password,
                    first_name='Administrador',
                )
                profile = ProfileService.resolve_profile(admin)
                profile.tenant = tenant
                profile.save(update_fields=['tenant', 'updated_at'])

                cls.add_member(tenant, admin, role='owner')
                RoleAdministrationService.update_user_role(actor, admin, ADMIN, tenant=tenant)

                tenant.admin_user = admin
                tenant.save(update_fields=['admin_user', 'updated_at'])
        except IntegrityError as e:
            raise ConflictError('Tenant or admin already exists') from e

        AuditLog.log_action(
            action='tenant_created',
            user=actor,
            tenant=tenant,
            target_type='Tenant',
            target_id=tenant.id,
            metadata={'plan': plan, 'admin_email': admin_email},
            request=request,
        )
        logger.info(
            f"Created tenant {tenant.slug}",
            extra={'tenant_id': str(tenant.id)}
        )
        return tenant

    @classmethod
    def _set_status(cls, actor, tenant, status, action, reason=None, request=None):
        previous = tenant.status
        tenant.status = status
        tenant.save(update_fields=['status', 'updated_at'])

        AuditLog.log_action(
            action=action,
            user=actor,
            tenant=tenant,
            target_type='Tenant',
            target_id=tenant.id,
            diff={'status': {'old': previous, 'new': status}},
            metadata={'reason': reason} if reason else {},
            request=request,
        )
        logger.info(
            f"Tenant {tenant.slug} status {previous} -> {status}",
            extra={'tenant_id': str(tenant.id)}
        )
        return tenant

    @classmethod
    def suspend_tenant(cls, actor, tenant, reason=None, request=None):
        return cls._set_status(actor, tenant, 'suspended', 'tenant_suspended', reason, request)

    @classmethod
    def activate_tenant(cls, actor, tenant, request=None):
        return cls._set_status(actor, tenant, 'active', 'tenant_activated', request=request)

    @classmethod
    def health_band(cls, active, total) -> str:
        if total == 0:
            return 'excellent'
        share = active / total
        for minimum, band in cls.HEALTH_BANDS:
            if share >= minimum:
                return band
        return 'critical'

    @classmethod
    def system_metrics(cls) -> Dict[str, Any]:
        """
        Platform totals for the master dashboard.

        Revenue counts active tenants only, at the monthly plan price.
        """
        tenants = list(Tenant.objects.values('status', 'plan'))
        total = len(tenants)
        active = [t for t in tenants if t['status'] == 'active']
        trial = sum(1 for t in tenants if t['status'] == 'trial')

        return {
            'total_tenants': total,
            'active_tenants': len(active),
            'trial_tenants': trial,
            'total_users': Profile.objects.count(),
            'total_revenue': sum(PLAN_PRICES.get(t['plan'], 0) for t in active),
            'system_health': cls.health_band(len(active), total),
        }
