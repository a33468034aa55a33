"""
DRF permission classes and decorators for access control.

Two tiers, and every view should say which one it relies on:

- HasCapability / @requires_capability read the client-held level from the
  SessionState. Use them for UI capability gating only.
- IsVerifiedMaster / IsVerifiedTenantAdmin ask the server-trusted role
  functions on every request. Use them before revealing privileged data.
"""
import logging
from functools import wraps
from rest_framework.permissions import BasePermission

from apps.core.logging import SecurityLogger

logger = logging.getLogger(__name__)


def _deny(request, view, reason, **context):
    session = getattr(request, 'session_state', None)
    SecurityLogger.log_access_denied(
        session.identity if session else None,
        reason,
        path=request.path,
        view=view.__class__.__name__,
        method=request.method,
        **context
    )
    return False


class HasCapability(BasePermission):
    """
    Checks view.required_capability = (resource, action) against the
    permission policy table for the caller's cached level.

    Usage:
        class ReportView(APIView):
            permission_classes = [HasCapability]
            required_capability = ('reports', 'read')
    """

    message = 'You do not have permission to perform this action.'

    def has_permission(self, request, view):
        from apps.rbac.policy import PermissionChecker
        from apps.rbac.session import session_from_request

        required = getattr(view, 'required_capability', None)
        if not required:
            return True

        resource, action = required
        if PermissionChecker(session_from_request(request)).has_permission(resource, action):
            return True

        return _deny(request, view, 'missing capability', resource=resource, action=action)


def requires_capability(resource, action):
    """
    Declare the capability a view class or method needs.

    Works together with HasCapability:
        @requires_capability('leads', 'delete')
        def delete(self, request, pk): ...
    """
    def decorator(view_or_method):
        if isinstance(view_or_method, type):
            view_or_method.required_capability = (resource, action)
            return view_or_method

        @wraps(view_or_method)
        def wrapped(self, request, *args, **kwargs):
            self.required_capability = (resource, action)
            if not HasCapability().has_permission(request, self):
                self.permission_denied(request, message=HasCapability.message)
            return view_or_method(self, request, *args, **kwargs)

        wrapped.required_capability = (resource, action)
        return wrapped

    return decorator


class IsVerifiedMaster(BasePermission):
    """
    Server-verified master check.

    Does not trust Profile.user_level; RoleVerificationService answers
    False on any backend failure, so an outage denies.
    """

    message = 'This area is restricted to master users.'

    def has_permission(self, request, view):
        from apps.rbac.services import RoleVerificationService
        from apps.rbac.session import session_from_request

        session = session_from_request(request)
        if not session.is_authenticated:
            return False

        if RoleVerificationService.is_master(session=session):
            return True

        return _deny(request, view, 'master verification failed')


class IsVerifiedTenantAdmin(BasePermission):
    """
    Server-verified tenant admin check for views routed by tenant slug.

    Masters pass as well. The tenant id is read from view.kwargs['slug'];
    an unknown slug is left for the view to turn into a 404.
    """

    message = 'You are not an administrator of this tenant.'

    def has_permission(self, request, view):
        from apps.rbac.services import RoleVerificationService
        from apps.rbac.session import session_from_request
        from apps.tenants.models import Tenant

        session = session_from_request(request)
        if not session.is_authenticated:
            return False

        if RoleVerificationService.is_master(session=session):
            return True

        slug = view.kwargs.get('slug')
        tenant = Tenant.objects.by_slug(slug) if slug else None
        if slug and tenant is None:
            return True

        tenant_id = tenant.id if tenant else None
        if RoleVerificationService.is_tenant_admin(tenant_id=tenant_id, session=session):
            return True

        return _deny(request, view, 'tenant admin verification failed', tenant_slug=slug)
