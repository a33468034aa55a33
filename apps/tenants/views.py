"""
Tenant API views.

Tenant-scoped screens:
- GET /v1/tenants/<slug>              tenant, roster and the caller's role
- GET /v1/tenants/<slug>/admin-check  server-verified tenant admin answer
- POST /v1/tenants/<slug>/members     add a member (verified tenant admin)

Master panel (server-verified master only):
- GET/POST /v1/master/tenants
- POST /v1/master/tenants/<slug>/suspend
- POST /v1/master/tenants/<slug>/activate
- GET /v1/master/users
- GET /v1/master/metrics
"""
import logging
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import NotFoundError, ValidationError
from apps.core.logging import SecurityLogger
from apps.core.permissions import (
    HasCapability, IsVerifiedMaster, IsVerifiedTenantAdmin, requires_capability,
)
from apps.rbac.guards import guarded_route
from apps.rbac.models import User
from apps.rbac.services import RoleVerificationService
from apps.rbac.session import session_from_request
from apps.tenants.models import Tenant
from apps.tenants.serializers import (
    TenantSerializer, TenantMembershipSerializer, TenantCreateSerializer,
    TenantSuspendSerializer, PlatformUserSerializer, SystemMetricsSerializer,
    TenantMemberAddSerializer, MemberRowSerializer,
)
from apps.tenants.services import (
    TenantMembershipService, TenantService, MembershipStatus, MemberRow,
)

logger = logging.getLogger(__name__)


class StandardResultsSetPagination(PageNumberPagination):
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 100


class TenantDetailView(APIView):
    """
    GET /v1/tenants/<slug>

    Unauthenticated callers are redirected to login and a session still
    being resolved gets 202. An unknown slug is a
    404 carrying `back_url`. Callers without a membership row need a
    server-verified master role.
    """
    permission_classes = []

    @extend_schema(
        tags=['Tenants'],
        summary='Load tenant with members',
        responses={
            200: TenantMembershipSerializer,
            202: OpenApiTypes.OBJECT,
            302: None,
            403: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
        },
    )
    @guarded_route()
    def get(self, request, slug):
        session = session_from_request(request)
        result = TenantMembershipService.load_tenant(session, slug)

        if result.status == MembershipStatus.NOT_FOUND:
            return Response(
                {
                    'error': f"Tenant '{slug}' not found",
                    'code': 'NOT_FOUND',
                    'back_url': result.redirect_to,
                    'members': [],
                },
                status=status.HTTP_404_NOT_FOUND
            )

        if result.current_user_role is None and \
                not RoleVerificationService.is_master(session=session):
            SecurityLogger.log_access_denied(
                session.identity,
                'tenant view without membership',
                path=request.path,
                tenant_slug=slug,
            )
            return Response(
                {'error': 'You do not have access to this tenant', 'code': 'ACCESS_DENIED'},
                status=status.HTTP_403_FORBIDDEN
            )

        return Response(TenantMembershipSerializer(result).data)


class TenantAdminCheckView(APIView):
    """
    GET /v1/tenants/<slug>/admin-check
    """
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=['Tenants'],
        summary='Verify tenant admin',
        responses={200: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    )
    def get(self, request, slug):
        tenant = TenantService.get_tenant(slug)
        is_admin = RoleVerificationService.is_tenant_admin(
            tenant_id=tenant.id,
            session=session_from_request(request),
        )
        return Response({'tenant_id': str(tenant.id), 'is_tenant_admin': is_admin})


@requires_capability('users', 'create')
class TenantMemberView(APIView):
    """
    POST /v1/tenants/<slug>/members

    Add a user to the tenant or change the role of an existing member.
    The capability check reads the cached level; IsVerifiedTenantAdmin then
    asks the role functions.
    """
    permission_classes = [IsAuthenticated, HasCapability, IsVerifiedTenantAdmin]

    @extend_schema(
        tags=['Tenants'],
        summary='Add tenant member',
        request=TenantMemberAddSerializer,
        responses={
            200: MemberRowSerializer,
            201: MemberRowSerializer,
            400: OpenApiTypes.OBJECT,
            403: OpenApiTypes.OBJECT,
            404: OpenApiTypes.OBJECT,
            409: OpenApiTypes.OBJECT,
        },
    )
    def post(self, request, slug):
        tenant = TenantService.get_tenant(slug)

        serializer = TenantMemberAddSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError('Validation error', details=serializer.errors)

        data = serializer.validated_data
        user = User.objects.filter(id=data['user_id']).first()
        if user is None:
            raise NotFoundError('User not found', details={'user_id': str(data['user_id'])})

        membership, created = TenantService.add_member(tenant, user, role=data['role'])
        profile = getattr(user, 'profile', None)
        row = MemberRow(
            member_id=str(membership.id),
            user_id=str(user.pk),
            role=membership.role,
            name=profile.name if profile else None,
            email=profile.email if profile else None,
            joined_at=membership.joined_at,
        )
        return Response(
            MemberRowSerializer(row).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK
        )


class MasterTenantListView(APIView):
    """
    GET /v1/master/tenants
    POST /v1/master/tenants
    """
    permission_classes = [IsAuthenticated, IsVerifiedMaster]

    @extend_schema(
        tags=['Master Panel'],
        summary='List tenants',
        parameters=[
            OpenApiParameter('status', OpenApiTypes.STR, required=False,
                             enum=[choice for choice, _ in Tenant.STATUS_CHOICES]),
            OpenApiParameter('page', OpenApiTypes.INT, required=False),
        ],
        responses={200: TenantSerializer(many=True)},
    )
    def get(self, request):
        tenants = TenantService.list_tenants(status=request.query_params.get('status'))
        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(tenants, request)
        return paginator.get_paginated_response(TenantSerializer(page, many=True).data)

    @extend_schema(
        tags=['Master Panel'],
        summary='Create tenant',
        request=TenantCreateSerializer,
        responses={201: TenantSerializer, 400: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT},
    )
    def post(self, request):
        serializer = TenantCreateSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError('Validation error', details=serializer.errors)

        data = serializer.validated_data
        tenant = TenantService.create_tenant(
            actor=request.user,
            name=data['name'],
            plan=data['plan'],
            admin_email=data['admin_email'],
            admin_password=data['admin_password'],
            domain=data.get('domain'),
            request=request,
        )
        tenant.refresh_from_db()
        return Response(TenantSerializer(tenant).data, status=status.HTTP_201_CREATED)


class MasterTenantSuspendView(APIView):
    """
    POST /v1/master/tenants/<slug>/suspend
    """
    permission_classes = [IsAuthenticated, IsVerifiedMaster]

    @extend_schema(
        tags=['Master Panel'],
        summary='Suspend tenant',
        request=TenantSuspendSerializer,
        responses={200: TenantSerializer, 404: OpenApiTypes.OBJECT},
    )
    def post(self, request, slug):
        serializer = TenantSuspendSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError('Validation error', details=serializer.errors)

        tenant = TenantService.get_tenant(slug)
        TenantService.suspend_tenant(
            request.user, tenant,
            reason=serializer.validated_data.get('reason'),
            request=request,
        )
        return Response(TenantSerializer(tenant).data)


class MasterTenantActivateView(APIView):
    """
    POST /v1/master/tenants/<slug>/activate
    """
    permission_classes = [IsAuthenticated, IsVerifiedMaster]

    @extend_schema(
        tags=['Master Panel'],
        summary='Activate tenant',
        request=None,
        responses={200: TenantSerializer, 404: OpenApiTypes.OBJECT},
    )
    def post(self, request, slug):
        tenant = TenantService.get_tenant(slug)
        TenantService.activate_tenant(request.user, tenant, request=request)
        return Response(TenantSerializer(tenant).data)


class MasterUserListView(APIView):
    """
    GET /v1/master/users
    """
    permission_classes = [IsAuthenticated, IsVerifiedMaster]

    @extend_schema(
        tags=['Master Panel'],
        summary='List platform users',
        parameters=[
            OpenApiParameter('user_level', OpenApiTypes.STR, required=False,
                             enum=['master', 'admin', 'user']),
            OpenApiParameter('tenant', OpenApiTypes.STR, required=False,
                             description='Tenant slug'),
        ],
        responses={200: PlatformUserSerializer(many=True)},
    )
    def get(self, request):
        tenant = None
        slug = request.query_params.get('tenant')
        if slug:
            tenant = Tenant.objects.by_slug(slug)
            if tenant is None:
                raise NotFoundError(f"Tenant '{slug}' not found", details={'slug': slug})

        profiles = TenantService.list_users(
            user_level=request.query_params.get('user_level'),
            tenant=tenant,
        )
        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(profiles, request)
        return paginator.get_paginated_response(PlatformUserSerializer(page, many=True).data)


class MasterMetricsView(APIView):
    """
    GET /v1/master/metrics
    """
    permission_classes = [IsAuthenticated, IsVerifiedMaster]

    @extend_schema(
        tags=['Master Panel'],
        summary='Platform metrics',
        responses={200: SystemMetricsSerializer},
    )
    def get(self, request):
        return Response(SystemMetricsSerializer(TenantService.system_metrics()).data)
