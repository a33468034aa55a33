"""
Django admin configuration for tenants app.
"""
from django.contrib import admin
from .models import Tenant, TenantMember


class TenantMemberInline(admin.TabularInline):
    model = TenantMember
    extra = 0
    raw_id_fields = ['user']
    fields = ['user', 'role', 'joined_at']


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'status', 'plan', 'current_users', 'max_users', 'created_at']
    list_filter = ['status', 'plan', 'created_at']
    search_fields = ['name', 'slug', 'domain']
    readonly_fields = ['current_users', 'created_at', 'updated_at']
    raw_id_fields = ['admin_user']
    inlines = [TenantMemberInline]


@admin.register(TenantMember)
class TenantMemberAdmin(admin.ModelAdmin):
    list_display = ['user', 'tenant', 'role', 'joined_at']
    list_filter = ['role']
    search_fields = ['user__email', 'tenant__slug']
    raw_id_fields = ['user', 'tenant']
