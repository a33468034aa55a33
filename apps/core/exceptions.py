"""
Exception hierarchy and DRF exception handler.
"""
import logging
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
from django_ratelimit.exceptions import Ratelimited

logger = logging.getLogger(__name__)


class VoxException(Exception):
    """Base exception for Vox CRM errors."""

    status_code = 500
    code = 'INTERNAL_ERROR'

    def __init__(self, message, details=None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(VoxException):
    """Raised when no valid identity is attached to the request."""
    status_code = 401
    code = 'UNAUTHENTICATED'


class PermissionDeniedError(VoxException):
    """Raised when the caller lacks the required role or capability."""
    status_code = 403
    code = 'ACCESS_DENIED'


class NotFoundError(VoxException):
    """Raised when a primary record (tenant, user) does not exist."""
    status_code = 404
    code = 'NOT_FOUND'


class ConflictError(VoxException):
    """Raised when a write collides with an existing row."""
    status_code = 409
    code = 'CONFLICT'


class ValidationError(VoxException):
    """Raised when input validation fails."""
    status_code = 400
    code = 'VALIDATION_ERROR'


class BackendUnavailableError(VoxException):
    """Raised when the data store fails for reasons other than a missing row."""
    status_code = 503
    code = 'BACKEND_UNAVAILABLE'


class RoleVerificationError(VoxException):
    """
    Raised by role function backends when an answer cannot be obtained.

    Never escapes RoleVerificationService; callers there see a deny.
    """
    status_code = 503
    code = 'ROLE_VERIFICATION_FAILED'


RATE_LIMIT_RETRY_AFTER = {
    '/auth/register': 3600,
    '/auth/forgot-password': 3600,
    '/auth/reset-password': 3600,
    '/auth/login': 60,
}


def _retry_after_for(path):
    for fragment, seconds in RATE_LIMIT_RETRY_AFTER.items():
        if path and fragment in path:
            return seconds
    return 60


def custom_exception_handler(exc, context):
    """
    Log API errors and return a consistent error body.

    Body shape: {"error", "code", "details", "request_id"}.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None
    path = request.path if request else None

    if isinstance(exc, Ratelimited):
        from apps.core.logging import SecurityLogger

        retry_after = _retry_after_for(path)
        SecurityLogger.log_rate_limit_exceeded(
            endpoint=path or 'unknown',
            ip_address=request.META.get('REMOTE_ADDR', 'unknown') if request else 'unknown',
        )
        response = Response(
            {
                'error': 'Rate limit exceeded. Please try again later.',
                'code': 'RATE_LIMIT_EXCEEDED',
                'request_id': request_id,
                'retry_after': retry_after,
            },
            status=status.HTTP_429_TOO_MANY_REQUESTS
        )
        response['Retry-After'] = str(retry_after)
        return response

    if isinstance(exc, VoxException):
        level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        logger.log(
            level,
            f"API error: {exc.__class__.__name__}: {exc.message}",
            extra={
                'request_id': request_id,
                'path': path,
                'code': exc.code,
            }
        )
        return Response(
            {
                'error': exc.message,
                'code': exc.code,
                'details': exc.details,
                'request_id': request_id,
            },
            status=exc.status_code
        )

    response = exception_handler(exc, context)

    logger.error(
        f"API Exception: {exc.__class__.__name__}",
        extra={
            'exception': str(exc),
            'request_id': request_id,
            'path': path,
            'method': request.method if request else None,
        },
        exc_info=response is None
    )

    if response is None:
        return Response(
            {
                'error': 'Internal server error',
                'code': VoxException.code,
                'request_id': request_id,
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    if request_id and isinstance(response.data, dict):
        response.data['request_id'] = request_id

    return response
