"""
Authentication REST API views.

Implements endpoints for:
- Registration and login
- Logout (token revocation)
- Password reset
- The caller's own profile
"""
import logging
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.conf import settings
from django.core.mail import send_mail
from django.utils.decorators import method_decorator
from django_ratelimit.decorators import ratelimit
from django_ratelimit.exceptions import Ratelimited
from drf_spectacular.utils import extend_schema, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import ValidationError
from apps.rbac.services import AuthService, ProfileService
from apps.rbac.serializers import (
    SignUpSerializer, SignInSerializer, PasswordResetRequestSerializer,
    PasswordResetSerializer, ProfileSerializer, ProfileUpdateSerializer,
)

logger = logging.getLogger(__name__)


def _validated(serializer):
    if not serializer.is_valid():
        raise ValidationError('Validation error', details=serializer.errors)
    return serializer.validated_data


def _session_payload(result):
    return {
        'user': {
            'id': str(result['user'].id),
            'email': result['user'].email,
            'full_name': result['user'].get_full_name(),
        },
        'profile': ProfileSerializer(result['profile']).data,
        'token': result['token'],
    }


@extend_schema(
    tags=['Authentication'],
    summary='Register new user',
    description='''
Create an identity and its profile (level `user`, no tenant) and return a
JWT for immediate use.

**Rate limit**: 3 requests/hour per IP
    ''',
    request=SignUpSerializer,
    responses={
        201: OpenApiTypes.OBJECT,
        400: OpenApiTypes.OBJECT,
        409: OpenApiTypes.OBJECT,
        429: OpenApiTypes.OBJECT,
    },
)
@method_decorator(ratelimit(key='ip', rate='3/h', method='POST', block=False), name='dispatch')
class SignUpView(APIView):
    """
    POST /v1/auth/register
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        if getattr(request, 'limited', False):
            raise Ratelimited()

        data = _validated(SignUpSerializer(data=request.data))
        result = AuthService.sign_up(
            email=data['email'],
            password=data['password'],
            first_name=data.get('first_name', ''),
            last_name=data.get('last_name', ''),
        )
        return Response(_session_payload(result), status=status.HTTP_201_CREATED)


@extend_schema(
    tags=['Authentication'],
    summary='Login',
    description='''
Authenticate with email and password and return a JWT.

The profile is resolved (and created when missing) and its `last_login`
stamped.

**Rate limit**: 5 requests/minute per IP, 10 requests/hour per email
    ''',
    request=SignInSerializer,
    responses={
        200: OpenApiTypes.OBJECT,
        401: OpenApiTypes.OBJECT,
        429: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Invalid Credentials',
            value={'error': 'Invalid email or password', 'code': 'UNAUTHENTICATED'},
            response_only=True,
            status_codes=['401']
        ),
    ]
)
@method_decorator(ratelimit(key='ip', rate='5/m', method='POST', block=False), name='dispatch')
@method_decorator(ratelimit(key='post:email', rate='10/h', method='POST', block=False), name='dispatch')
class SignInView(APIView):
    """
    POST /v1/auth/login
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        if getattr(request, 'limited', False):
            raise Ratelimited()

        data = _validated(SignInSerializer(data=request.data))
        result = AuthService.sign_in(
            email=data['email'],
            password=data['password'],
            ip_address=request.META.get('REMOTE_ADDR', 'unknown'),
        )
        return Response(_session_payload(result), status=status.HTTP_200_OK)


@extend_schema(
    tags=['Authentication'],
    summary='Logout',
    description='Revoke the bearer token used for this request.',
    request=None,
    responses={204: None, 401: OpenApiTypes.OBJECT},
)
class SignOutView(APIView):
    """
    POST /v1/auth/logout
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        header = request.headers.get('Authorization', '')
        scheme, _, token = header.partition(' ')
        if scheme.lower() == 'bearer' and token:
            AuthService.sign_out(token.strip())
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema(
    tags=['Authentication'],
    summary='Request password reset',
    description='''
Send a reset token by email. Always answers 200 so the endpoint does not
reveal which emails exist.

**Rate limit**: 3 requests/hour per IP
    ''',
    request=PasswordResetRequestSerializer,
    responses={200: OpenApiTypes.OBJECT, 429: OpenApiTypes.OBJECT},
)
@method_decorator(ratelimit(key='ip', rate='3/h', method='POST', block=False), name='dispatch')
class ForgotPasswordView(APIView):
    """
    POST /v1/auth/forgot-password
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        if getattr(request, 'limited', False):
            raise Ratelimited()

        data = _validated(PasswordResetRequestSerializer(data=request.data))
        token = AuthService.request_password_reset(data['email'])

        if token:
            reset_url = f"{settings.FRONTEND_URL}/reset-password?token={token}"
            send_mail(
                subject='Password reset',
                message=f"Use this link to choose a new password: {reset_url}",
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[data['email']],
                fail_silently=True,
            )

        return Response(
            {'message': 'If the email exists, a reset link has been sent.'},
            status=status.HTTP_200_OK
        )


@extend_schema(
    tags=['Authentication'],
    summary='Reset password',
    request=PasswordResetSerializer,
    responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT, 429: OpenApiTypes.OBJECT},
)
@method_decorator(ratelimit(key='ip', rate='5/h', method='POST', block=False), name='dispatch')
class ResetPasswordView(APIView):
    """
    POST /v1/auth/reset-password
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        if getattr(request, 'limited', False):
            raise Ratelimited()

        data = _validated(PasswordResetSerializer(data=request.data))
        if not AuthService.reset_password(data['token'], data['new_password']):
            raise ValidationError('Invalid or expired reset token')

        return Response({'message': 'Password has been reset.'}, status=status.HTTP_200_OK)


class MeView(APIView):
    """
    GET /v1/auth/me
    PATCH /v1/auth/me

    Returns the caller's profile, creating it on first access. PATCH accepts
    name and avatar_url only.
    """
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=['Authentication'],
        summary='Get own profile',
        responses={200: ProfileSerializer, 401: OpenApiTypes.OBJECT},
    )
    def get(self, request):
        profile = ProfileService.resolve_profile(request.user)
        return Response(ProfileSerializer(profile).data)

    @extend_schema(
        tags=['Authentication'],
        summary='Update own profile',
        request=ProfileUpdateSerializer,
        responses={200: ProfileSerializer, 400: OpenApiTypes.OBJECT, 401: OpenApiTypes.OBJECT},
    )
    def patch(self, request):
        data = _validated(ProfileUpdateSerializer(data=request.data))
        profile = ProfileService.update_profile(request.user, **data)
        return Response(ProfileSerializer(profile).data)
