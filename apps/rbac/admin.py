"""
Django admin configuration for RBAC app.
"""
from django.contrib import admin
from .models import User, Profile, RoleGrant, AuditLog, PasswordResetToken


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    """
    Admin for the email-based User model.

    Passwords are hashed, so password_hash is shown read-only.
    """
    list_display = ['email', 'first_name', 'last_name', 'is_active', 'is_superuser', 'created_at']
    list_filter = ['is_active', 'is_superuser', 'created_at']
    search_fields = ['email', 'first_name', 'last_name']
    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('email', 'password_hash')
        }),
        ('Personal Info', {
            'fields': ('first_name', 'last_name')
        }),
        ('Permissions', {
            'fields': ('is_active', 'is_superuser')
        }),
        ('Activity', {
            'fields': ('last_login_at', 'created_at', 'updated_at')
        }),
    )
    readonly_fields = ['password_hash', 'created_at', 'updated_at', 'last_login_at']


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    """
    Profiles are edited through role grants; user_level here is the cache.
    """
    list_display = ['email', 'name', 'user_level', 'tenant', 'is_active', 'last_login']
    list_filter = ['user_level', 'is_active']
    search_fields = ['email', 'name']
    readonly_fields = ['user', 'user_level', 'created_at', 'updated_at']


@admin.register(RoleGrant)
class RoleGrantAdmin(admin.ModelAdmin):
    list_display = ['user', 'role', 'tenant', 'granted_by', 'granted_at', 'deleted_at']
    list_filter = ['role', 'granted_at']
    search_fields = ['user__email', 'tenant__slug']
    raw_id_fields = ['user', 'tenant', 'granted_by']


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    """Audit entries are append-only."""
    list_display = ['action', 'user', 'tenant', 'target_type', 'target_id', 'created_at']
    list_filter = ['action', 'target_type', 'created_at']
    search_fields = ['action', 'user__email', 'request_id']
    readonly_fields = [field.name for field in AuditLog._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(PasswordResetToken)
class PasswordResetTokenAdmin(admin.ModelAdmin):
    list_display = ['user', 'token_preview', 'expires_at', 'used', 'used_at', 'created_at']
    list_filter = ['used', 'expires_at', 'created_at']
    search_fields = ['user__email']
    readonly_fields = ['token', 'created_at', 'updated_at', 'used_at']

    def token_preview(self, obj):
        """Show first 8 characters of token."""
        return f"{obj.token[:8]}..." if obj.token else ""
    token_preview.short_description = 'Token'
