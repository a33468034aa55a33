"""
RBAC serializers for REST API endpoints.

Provides serialization for:
- Authentication (sign up, sign in, password reset)
- Profiles (read and self-service update)
- Route checks and role administration
"""
from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password

from apps.rbac.models import User, Profile
from apps.rbac.policy import ACTIONS, LEVELS


# ===== AUTHENTICATION SERIALIZERS =====

class SignUpSerializer(serializers.Serializer):
    """Serializer for user registration."""

    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )
    first_name = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')
    last_name = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')

    def validate_email(self, value):
        email = User.objects.normalize_email(value)
        if User.objects_with_deleted.filter(email=email).exists():
            raise serializers.ValidationError("A user with this email already exists.")
        return email

    def validate_password(self, value):
        validate_password(value)
        return value


class SignInSerializer(serializers.Serializer):
    """Serializer for user login."""

    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )


class PasswordResetRequestSerializer(serializers.Serializer):
    email = serializers.EmailField(required=True)


class PasswordResetSerializer(serializers.Serializer):
    token = serializers.CharField(required=True)
    new_password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )

    def validate_new_password(self, value):
        validate_password(value)
        return value


# ===== PROFILE SERIALIZERS =====

class ProfileSerializer(serializers.ModelSerializer):
    """Read-only view of a profile."""

    id = serializers.UUIDField(source='pk', read_only=True)
    tenant_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = Profile
        fields = [
            'id', 'name', 'email', 'avatar_url', 'user_level', 'tenant_id',
            'is_active', 'last_login', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class ProfileUpdateSerializer(serializers.Serializer):
    """
    Self-service profile update.

    Only name and avatar_url are writable. Unknown keys (user_level,
    tenant_id) are rejected rather than ignored.
    """

    name = serializers.CharField(required=False, allow_blank=False, max_length=255)
    avatar_url = serializers.URLField(required=False, allow_null=True, max_length=500)

    def validate(self, attrs):
        unknown = sorted(set(self.initial_data) - set(self.fields))
        if unknown:
            raise serializers.ValidationError(
                {field: 'This field cannot be changed here.' for field in unknown}
            )
        return attrs


# ===== ACCESS CONTROL SERIALIZERS =====

class RouteCheckQuerySerializer(serializers.Serializer):
    """Query parameters of the route check endpoint."""

    required_level = serializers.ChoiceField(choices=LEVELS, required=False)
    resource = serializers.CharField(required=False, max_length=100)
    action = serializers.ChoiceField(choices=ACTIONS, required=False)

    def validate(self, attrs):
        if bool(attrs.get('resource')) != bool(attrs.get('action')):
            raise serializers.ValidationError(
                'resource and action must be given together.'
            )
        return attrs

    @property
    def required_permission(self):
        data = self.validated_data
        if data.get('resource'):
            return (data['resource'], data['action'])
        return None


class RouteDecisionSerializer(serializers.Serializer):
    kind = serializers.CharField()
    location = serializers.CharField(allow_null=True)
    message = serializers.CharField(allow_null=True)


class GrantSerializer(serializers.Serializer):
    resource = serializers.CharField()
    action = serializers.CharField()


class RoleUpdateSerializer(serializers.Serializer):
    """Request body of PUT /v1/users/<id>/role."""

    user_level = serializers.ChoiceField(choices=LEVELS)
    tenant_id = serializers.UUIDField(required=False, allow_null=True)

    def validate_tenant_id(self, value):
        from apps.tenants.models import Tenant

        if value is None:
            return None
        tenant = Tenant.objects.filter(id=value).first()
        if tenant is None:
            raise serializers.ValidationError('Tenant not found.')
        self.context['tenant'] = tenant
        return value


class RoleRevokeSerializer(RoleUpdateSerializer):
    """Request body of DELETE /v1/users/<id>/role."""

    user_level = None
    role = serializers.ChoiceField(choices=LEVELS)


class RolesQuerySerializer(serializers.Serializer):
    """Query parameters of the roles endpoint."""

    tenant_id = serializers.UUIDField(required=False)
