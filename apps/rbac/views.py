"""
Access-control API views.

- GET /v1/auth/permissions   capability list for the caller's cached level
- GET /v1/auth/route-check   route guard decision for the SPA router
- GET /v1/auth/roles         server-verified role answers
- PUT /v1/users/<id>/role    master-only role change
- DELETE /v1/users/<id>/role master-only role revocation
"""
import logging
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import NotFoundError, ValidationError
from apps.core.permissions import IsVerifiedMaster
from apps.rbac.guards import RouteGuard
from apps.rbac.models import User
from apps.rbac.policy import PermissionChecker
from apps.rbac.serializers import (
    RouteCheckQuerySerializer, RouteDecisionSerializer, RoleUpdateSerializer,
    ProfileSerializer, RoleRevokeSerializer, RolesQuerySerializer,
)
from apps.rbac.services import RoleVerificationService, RoleAdministrationService
from apps.rbac.session import session_from_request

logger = logging.getLogger(__name__)


class PermissionsView(APIView):
    """
    Capability list for menu rendering.

    Reads the cached level; use for showing and hiding controls only.
    """
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=['Access Control'],
        summary='List capabilities',
        responses={200: OpenApiTypes.OBJECT},
    )
    def get(self, request):
        session = session_from_request(request)
        checker = PermissionChecker(session)
        return Response({
            'user_level': session.user_level,
            'permissions': checker.capabilities(),
        })


class RouteCheckView(APIView):
    """
    Route guard decision for a navigation.

    Anonymous callers are allowed: their answer is the redirect to login.
    """
    permission_classes = []

    @extend_schema(
        tags=['Access Control'],
        summary='Evaluate route guard',
        parameters=[
            OpenApiParameter('required_level', OpenApiTypes.STR, required=False,
                             enum=['master', 'admin', 'user']),
            OpenApiParameter('resource', OpenApiTypes.STR, required=False),
            OpenApiParameter('action', OpenApiTypes.STR, required=False,
                             enum=['create', 'read', 'update', 'delete', 'execute']),
        ],
        responses={200: RouteDecisionSerializer, 400: OpenApiTypes.OBJECT},
    )
    def get(self, request):
        query = RouteCheckQuerySerializer(data=request.query_params)
        if not query.is_valid():
            raise ValidationError('Invalid route check', details=query.errors)

        decision = RouteGuard.evaluate(
            session_from_request(request),
            required_level=query.validated_data.get('required_level'),
            required_permission=query.required_permission,
        )
        return Response(RouteDecisionSerializer(decision.to_dict()).data)


class RolesView(APIView):
    """
    Server-verified answers about the caller's roles.

    Each field is a fresh call to the role functions; failures read as
    False or an empty list.
    """
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=['Access Control'],
        summary='Verify own roles',
        parameters=[OpenApiParameter('tenant_id', OpenApiTypes.UUID, required=False)],
        responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT},
    )
    def get(self, request):
        query = RolesQuerySerializer(data=request.query_params)
        if not query.is_valid():
            raise ValidationError('Invalid roles query', details=query.errors)

        session = session_from_request(request)
        tenant_id = query.validated_data.get('tenant_id')
        return Response({
            'is_master': RoleVerificationService.is_master(session=session),
            'is_tenant_admin': RoleVerificationService.is_tenant_admin(
                tenant_id=tenant_id, session=session
            ),
            'roles': sorted(RoleVerificationService.get_user_roles(session=session)),
        })


class UserRoleView(APIView):
    """
    PUT /v1/users/<id>/role
    DELETE /v1/users/<id>/role

    Replace or revoke a user's level. Master only, verified server-side.
    """
    permission_classes = [IsAuthenticated, IsVerifiedMaster]

    @extend_schema(
        tags=['Access Control'],
        summary='Change user level',
        request=RoleUpdateSerializer,
        responses={
            200: ProfileSerializer,
            400: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
        },
    )
    def put(self, request, user_id):
        target = User.objects.filter(id=user_id).first()
        if target is None:
            raise NotFoundError('User not found', details={'user_id': str(user_id)})

        serializer = RoleUpdateSerializer(data=request.data, context={})
        if not serializer.is_valid():
            raise ValidationError('Validation error', details=serializer.errors)

        RoleAdministrationService.update_user_role(
            actor=request.user,
            target=target,
            level=serializer.validated_data['user_level'],
            tenant=serializer.context.get('tenant'),
            request=request,
        )
        target.profile.refresh_from_db()
        return Response(ProfileSerializer(target.profile).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=['Access Control'],
        summary='Revoke user level',
        request=RoleRevokeSerializer,
        responses={
            204: None,
            400: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
            409: OpenApiTypes.OBJECT,
        },
    )
    def delete(self, request, user_id):
        target = User.objects.filter(id=user_id).first()
        if target is None:
            raise NotFoundError('User not found', details={'user_id': str(user_id)})

        serializer = RoleRevokeSerializer(data=request.data, context={})
        if not serializer.is_valid():
            raise ValidationError('Validation error', details=serializer.errors)

        revoked = RoleAdministrationService.revoke_role(
            actor=request.user,
            target=target,
            role=serializer.validated_data['role'],
            tenant=serializer.context.get('tenant'),
            request=request,
        )
        if not revoked:
            raise NotFoundError(
                'Role grant not found',
                details={'role': serializer.validated_data['role']}
            )
        return Response(status=status.HTTP_204_NO_CONTENT)
