"""
Serializers for tenant API endpoints.
"""
from rest_framework import serializers
from apps.rbac.models import Profile
from apps.tenants.models import Tenant, TenantMember, PLAN_MAX_USERS


class TenantSerializer(serializers.ModelSerializer):
    """Serializer for Tenant."""

    class Meta:
        model = Tenant
        fields = [
            'id', 'name', 'slug', 'domain', 'status', 'plan',
            'max_users', 'current_users', 'expires_at', 'settings',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class MemberRowSerializer(serializers.Serializer):
    member_id = serializers.CharField()
    user_id = serializers.CharField()
    role = serializers.CharField()
    name = serializers.CharField(allow_null=True)
    email = serializers.CharField(allow_null=True)
    joined_at = serializers.DateTimeField()


class TenantMembershipSerializer(serializers.Serializer):
    """Tenant summary, roster and the caller's role."""

    tenant = TenantSerializer()
    members = MemberRowSerializer(many=True)
    current_user_role = serializers.CharField(allow_null=True)
    members_error = serializers.CharField(allow_null=True)


class TenantCreateSerializer(serializers.Serializer):
    """Serializer for creating a tenant from the master panel."""

    name = serializers.CharField(max_length=255)
    domain = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    plan = serializers.ChoiceField(choices=list(PLAN_MAX_USERS))
    admin_email = serializers.EmailField()
    admin_password = serializers.CharField(
        min_length=8,
        write_only=True,
        style={'input_type': 'password'}
    )

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError("Tenant name cannot be empty.")
        return value.strip()


class TenantMemberAddSerializer(serializers.Serializer):
    """Request body of POST /v1/tenants/<slug>/members."""

    user_id = serializers.UUIDField()
    role = serializers.ChoiceField(choices=TenantMember.ROLE_CHOICES, default='member')


class TenantSuspendSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500)


class PlatformUserSerializer(serializers.ModelSerializer):
    """Profile row for the master panel user list."""

    id = serializers.UUIDField(source='pk', read_only=True)
    tenant_id = serializers.UUIDField(read_only=True, allow_null=True)
    tenant_name = serializers.CharField(source='tenant.name', read_only=True, allow_null=True, default=None)

    class Meta:
        model = Profile
        fields = [
            'id', 'name', 'email', 'user_level', 'tenant_id', 'tenant_name',
            'is_active', 'last_login', 'created_at'
        ]
        read_only_fields = fields


class SystemMetricsSerializer(serializers.Serializer):
    total_tenants = serializers.IntegerField()
    active_tenants = serializers.IntegerField()
    trial_tenants = serializers.IntegerField()
    total_users = serializers.IntegerField()
    total_revenue = serializers.IntegerField()
    system_health = serializers.CharField()
