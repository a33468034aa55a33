"""
Tenant models for multi-tenant isolation.

A Tenant is a customer organization; TenantMember records who belongs to
it and with which membership role.
"""
from django.db import models
from django.utils import timezone
from apps.core.models import BaseModel, LiveManager


PLAN_MAX_USERS = {
    'basic': 5,
    'professional': 25,
    'enterprise': 100,
}

# Monthly price per plan, in BRL
PLAN_PRICES = {
    'basic': 199,
    'professional': 299,
    'enterprise': 499,
}


def default_settings_for(plan):
    """Feature limits a new tenant starts with."""
    settings = {
        'max_leads': 1000,
        'max_clients': 500,
        'custom_branding': False,
        'integrations_enabled': ['email'],
    }
    if plan == 'professional':
        settings.update({
            'max_leads': 5000,
            'max_clients': 2000,
            'integrations_enabled': ['email', 'whatsapp', 'api'],
        })
    elif plan == 'enterprise':
        settings.update({
            'max_leads': 50000,
            'max_clients': 10000,
            'custom_branding': True,
            'integrations_enabled': ['email', 'whatsapp', 'api', 'webhook', 'smartbot'],
        })
    return settings


class TenantManager(LiveManager):
    """Manager for tenant queries."""

    def active(self):
        """Return tenants that can be used (active or in trial)."""
        return self.filter(status__in=['active', 'trial'])

    def by_slug(self, slug):
        return self.filter(slug=slug).first()


class Tenant(BaseModel):
    """
    Isolated customer organization.

    slug is the routing key: it resolves to at most one tenant.
    """

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
        ('suspended', 'Suspended'),
        ('trial', 'Trial'),
    ]

    PLAN_CHOICES = [
        ('basic', 'Basic'),
        ('professional', 'Professional'),
        ('enterprise', 'Enterprise'),
    ]

    name = models.CharField(
        max_length=255,
        help_text="Organization name"
    )
    slug = models.SlugField(
        unique=True,
        max_length=100,
        help_text="URL-friendly identifier"
    )
    domain = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Custom domain"
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='trial',
        db_index=True
    )
    plan = models.CharField(
        max_length=20,
        choices=PLAN_CHOICES,
        default='basic'
    )
    max_users = models.PositiveIntegerField(default=5)
    current_users = models.PositiveIntegerField(
        default=0,
        help_text="Member count maintained by signals"
    )
    admin_user = models.ForeignKey(
        'rbac.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='administered_tenants'
    )
    expires_at = models.DateTimeField(null=True, blank=True)
    settings = models.JSONField(
        default=dict,
        blank=True,
        help_text="Feature limits and flags"
    )

    objects = TenantManager()

    class Meta:
        db_table = 'tenants'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'plan'], name='tenant_status_plan_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.slug})"

    def is_active(self):
        if self.status == 'active':
            return True
        if self.status == 'trial':
            return self.expires_at is None or timezone.now() < self.expires_at
        return False

    def can_add_user(self):
        return self.current_users < self.max_users


class TenantMemberManager(LiveManager):

    def for_tenant(self, tenant):
        return self.filter(tenant=tenant)

    def get_membership(self, tenant, user):
        return self.filter(tenant=tenant, user=user).first()


class TenantMember(BaseModel):
    """
    Membership of an identity in a tenant. One row per (tenant, user).
    """

    ROLE_CHOICES = [
        ('owner', 'Owner'),
        ('admin', 'Admin'),
        ('member', 'Member'),
    ]

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name='members'
    )
    user = models.ForeignKey(
        'rbac.User',
        on_delete=models.CASCADE,
        related_name='tenant_memberships'
    )
    role = models.CharField(
        max_length=20,
        choices=ROLE_CHOICES,
        default='member',
        db_index=True
    )
    joined_at = models.DateTimeField(default=timezone.now)

    objects = TenantMemberManager()

    class Meta:
        db_table = 'tenant_members'
        ordering = ['joined_at']
        constraints = [
            models.UniqueConstraint(
                fields=['tenant', 'user'],
                name='unique_tenant_member',
            ),
        ]

    def __str__(self):
        return f"{self.user_id} @ {self.tenant.slug} ({self.role})"
