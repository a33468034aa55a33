"""
RBAC models for multi-tenant access control.

Implements:
- User: global identity, authenticated by email and password
- Profile: one record per identity with the client-facing user level
- RoleGrant: server-side (identity, role, tenant) relation used by the
  trusted role functions
- PasswordResetToken: single-use reset tokens
- AuditLog: trail of role changes and sensitive actions

RoleGrant is the source of truth for authorization. Profile.user_level is
a derived cache kept in step by signals (see apps.rbac.signals) and only
feeds UI-level decisions.
"""
import logging
import secrets
from datetime import timedelta
from django.db import models
from django.db.models import Q
from django.contrib.auth.hashers import make_password, check_password
from django.utils import timezone
from apps.core.models import BaseModel, LiveManager
from apps.rbac.policy import LEVEL_CHOICES, USER

logger = logging.getLogger(__name__)


class UserManager(LiveManager):
    """
    Manager for User queries.

    Compatible with Django's authentication system and admin interface.
    """

    def active(self):
        return self.filter(is_active=True)

    def by_email(self, email):
        return self.filter(email=self.normalize_email(email)).first()

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('Email address is required')

        email = self.normalize_email(email)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('is_superuser', False)

        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """Required by Django's createsuperuser command."""
        extra_fields.setdefault('is_superuser', True)
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True')
        return self.create_user(email, password, **extra_fields)

    @staticmethod
    def normalize_email(email):
        """Lowercase the whole address; logins are case-insensitive."""
        return (email or '').strip().lower()

    def get_by_natural_key(self, email):
        return self.get(**{self.model.USERNAME_FIELD: email})


class User(BaseModel):
    """
    Global user identity.

    Authentication happens at the User level; authorization comes from
    RoleGrant rows and tenant memberships.
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        help_text="User email address (unique globally)"
    )
    password_hash = models.CharField(
        max_length=255,
        blank=True,
        help_text="Hashed password",
        db_column='password_hash'
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether user account is active"
    )
    is_superuser = models.BooleanField(
        default=False,
        help_text="Django admin access (independent of the master role)"
    )

    # Session metadata used to derive a display name
    first_name = models.CharField(max_length=100, blank=True)
    last_name = models.CharField(max_length=100, blank=True)

    last_login_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last login timestamp"
    )

    USERNAME_FIELD = 'email'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        db_table = 'users'
        ordering = ['-created_at']

    def __str__(self):
        return self.email

    @property
    def password(self):
        """Alias for password_hash, expected by Django admin."""
        return self.password_hash

    @password.setter
    def password(self, value):
        self.password_hash = value

    def check_password(self, raw_password):
        return check_password(raw_password, self.password_hash)

    def set_password(self, raw_password):
        self.password_hash = make_password(raw_password)

    def get_full_name(self):
        """Full name from metadata, empty when none was supplied."""
        return f"{self.first_name} {self.last_name}".strip()

    def get_username(self):
        return self.email

    def update_last_login(self):
        self.last_login_at = timezone.now()
        self.save(update_fields=['last_login_at', 'updated_at'])

    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False

    @property
    def is_staff(self):
        return self.is_superuser

    def has_perm(self, perm, obj=None):
        return self.is_active and self.is_superuser

    def has_perms(self, perm_list, obj=None):
        return all(self.has_perm(perm, obj) for perm in perm_list)

    def has_module_perms(self, app_label):
        return self.is_active and self.is_superuser

    def natural_key(self):
        return (self.email,)


class Profile(BaseModel):
    """
    One profile per identity, created lazily on first authenticated access.

    The primary key is the user's id, so the store itself rejects a second
    profile for the same identity.
    """

    id = None
    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name='profile',
        help_text="Identity this profile belongs to"
    )
    name = models.CharField(max_length=255, null=True, blank=True)
    email = models.EmailField(null=True, blank=True)
    avatar_url = models.URLField(max_length=500, null=True, blank=True)
    user_level = models.CharField(
        max_length=20,
        choices=LEVEL_CHOICES,
        default=USER,
        db_index=True,
        help_text="Cached level for UI decisions; RoleGrant is authoritative"
    )
    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='profiles',
        help_text="Home tenant (null for master)"
    )
    is_active = models.BooleanField(default=True)
    last_login = models.DateTimeField(null=True, blank=True)

    SELF_SERVICE_FIELDS = ('name', 'avatar_url')

    class Meta:
        db_table = 'profiles'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name or self.email} ({self.user_level})"


class RoleGrantManager(LiveManager):
    """Manager for RoleGrant queries."""

    def for_user(self, user_id):
        return self.filter(user_id=user_id)

    def roles_for(self, user_id):
        return set(self.for_user(user_id).values_list('role', flat=True))


class RoleGrant(BaseModel):
    """
    Server-side fact that an identity holds a role.

    tenant is null for platform-wide grants (master) and set for
    tenant-scoped admin/user grants.
    """

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='role_grants',
        help_text="Identity holding the role"
    )
    role = models.CharField(
        max_length=20,
        choices=LEVEL_CHOICES,
        db_index=True
    )
    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='role_grants',
        help_text="Tenant scope (null for platform-wide grants)"
    )
    granted_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='role_grants_made'
    )
    granted_at = models.DateTimeField(default=timezone.now)

    objects = RoleGrantManager()

    class Meta:
        db_table = 'user_roles'
        ordering = ['-granted_at']
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'role', 'tenant'],
                name='unique_tenant_role_grant',
            ),
            models.UniqueConstraint(
                fields=['user', 'role'],
                condition=Q(tenant__isnull=True),
                name='unique_global_role_grant',
            ),
        ]
        indexes = [
            models.Index(fields=['user', 'role'], name='role_grant_user_role_idx'),
        ]

    def __str__(self):
        scope = self.tenant_id or 'platform'
        return f"{self.user_id} -> {self.role} @ {scope}"


class PasswordResetTokenManager(models.Manager):

    def get_valid_token(self, token):
        return self.filter(
            token=token,
            expires_at__gt=timezone.now(),
            used=False
        ).select_related('user').first()


class PasswordResetToken(BaseModel):
    """
    Password reset tokens for the forgot-password flow.

    Tokens expire after 24 hours and can only be used once.
    """

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='password_reset_tokens'
    )
    token = models.CharField(max_length=255, unique=True, db_index=True)
    expires_at = models.DateTimeField(db_index=True)
    used = models.BooleanField(default=False)
    used_at = models.DateTimeField(null=True, blank=True)

    objects = PasswordResetTokenManager()

    class Meta:
        db_table = 'password_reset_tokens'
        ordering = ['-created_at']

    def __str__(self):
        return f"Password reset token for {self.user.email}"

    def mark_as_used(self):
        self.used = True
        self.used_at = timezone.now()
        self.save(update_fields=['used', 'used_at', 'updated_at'])

    @classmethod
    def create_token(cls, user, ttl_hours=24):
        return cls.objects.create(
            user=user,
            token=secrets.token_urlsafe(32),
            expires_at=timezone.now() + timedelta(hours=ttl_hours)
        )


class AuditLog(BaseModel):
    """
    Audit trail for role changes and other sensitive operations.
    """

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs',
        help_text="Tenant this action belongs to (null for platform-level)"
    )
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs',
        help_text="User who performed the action (null for system actions)"
    )
    action = models.CharField(max_length=100, db_index=True)
    target_type = models.CharField(max_length=50, db_index=True)
    target_id = models.UUIDField(null=True, blank=True, db_index=True)
    diff = models.JSONField(default=dict, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    request_id = models.CharField(max_length=64, null=True, blank=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
            models.Index(fields=['target_type', 'target_id'], name='audit_target_idx'),
        ]

    def __str__(self):
        actor = self.user.email if self.user else 'System'
        return f"{actor} - {self.action}"

    @classmethod
    def log_action(cls, action, user=None, tenant=None, target_type='', target_id=None,
                   diff=None, metadata=None, request=None):
        """
        Create an audit entry.

        Audit failures are logged and swallowed so they never undo the
        operation being audited.
        """
        if user is not None and not user.is_authenticated:
            user = None

        log_data = {
            'action': action,
            'user': user,
            'tenant': tenant,
            'target_type': target_type,
            'target_id': target_id,
            'diff': diff or {},
            'metadata': metadata or {},
        }
        if request is not None:
            log_data['ip_address'] = request.META.get('REMOTE_ADDR')
            log_data['request_id'] = getattr(request, 'request_id', None)

        try:
            return cls.objects.create(**log_data)
        except Exception as e:
            logger.error(
                f"Failed to create audit log: {e}",
                extra={'action': action},
                exc_info=True
            )
            return None
