"""
Route guard.

RouteGuard.evaluate is a pure function of the session snapshot and the
route's requirements. Checks run strictly in this order:

1. loading          -> LOADING (no redirect decision yet)
2. unauthenticated  -> REDIRECT to the login route
3. level mismatch   -> REDIRECT to the landing route of the actual level
4. permission miss  -> DENIED (inline access-denied message)
5. otherwise        -> RENDER

Steps 3 and 4 read the client-held level and are a navigation
convenience. Views that reveal privileged data also need a server-verified
check (see guarded_route(verified_master=True) and IsVerifiedMaster).
"""
import enum
import functools
import logging
from dataclasses import dataclass, asdict
from typing import Optional, Tuple
from django.conf import settings
from django.http import HttpResponseRedirect, JsonResponse

from apps.core.logging import SecurityLogger
from apps.rbac.policy import LEVELS, PermissionChecker
from apps.rbac.session import session_from_request

logger = logging.getLogger(__name__)

ACCESS_DENIED_MESSAGE = 'You do not have permission to access this page.'
MASTER_ONLY_MESSAGE = 'This area is restricted to master users.'


class DecisionKind(str, enum.Enum):
    LOADING = 'loading'
    REDIRECT = 'redirect'
    DENIED = 'denied'
    RENDER = 'render'


@dataclass(frozen=True)
class RouteDecision:
    kind: DecisionKind
    location: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self):
        data = asdict(self)
        data['kind'] = self.kind.value
        return data


def landing_route_for(level) -> str:
    routes = settings.LANDING_ROUTES
    return routes.get(level, routes['default'])


class RouteGuard:

    @staticmethod
    def evaluate(session, required_level=None,
                 required_permission: Optional[Tuple[str, str]] = None) -> RouteDecision:
        if session.is_loading:
            return RouteDecision(DecisionKind.LOADING)

        if not session.is_authenticated:
            return RouteDecision(DecisionKind.REDIRECT, location=settings.LOGIN_ROUTE)

        if required_level is not None and session.user_level != required_level:
            return RouteDecision(
                DecisionKind.REDIRECT,
                location=landing_route_for(session.user_level),
            )

        if required_permission is not None:
            resource, action = required_permission
            if not PermissionChecker(session).has_permission(resource, action):
                return RouteDecision(DecisionKind.DENIED, message=ACCESS_DENIED_MESSAGE)

        return RouteDecision(DecisionKind.RENDER)


def decision_response(decision: RouteDecision):
    """HTTP rendition of a non-render decision."""
    if decision.kind == DecisionKind.REDIRECT:
        return HttpResponseRedirect(decision.location)
    if decision.kind == DecisionKind.DENIED:
        return JsonResponse(
            {'error': 'Access denied', 'code': 'ACCESS_DENIED', 'message': decision.message},
            status=403
        )
    return JsonResponse(
        {'status': DecisionKind.LOADING.value, 'detail': 'Session is still being resolved'},
        status=202
    )


def guarded_route(required_level=None, required_permission=None, verified_master=False):
    """
    Decorator applying RouteGuard to a Django view or a DRF view method.

    With verified_master=True a RENDER decision is additionally confirmed
    through RoleVerificationService.is_master; any failure there denies.

    Usage:
        @guarded_route(required_permission=('reports', 'read'))
        def get(self, request): ...
    """
    if required_level is not None and required_level not in LEVELS:
        raise ValueError(f"Unknown level '{required_level}'")

    def decorator(view_func):
        @functools.wraps(view_func)
        def wrapper(*args, **kwargs):
            request = _find_request(args)
            session = session_from_request(request)
            decision = RouteGuard.evaluate(session, required_level, required_permission)

            if decision.kind == DecisionKind.RENDER and verified_master:
                from apps.rbac.services import RoleVerificationService

                if not RoleVerificationService.is_master(session=session):
                    decision = RouteDecision(DecisionKind.DENIED, message=MASTER_ONLY_MESSAGE)

            if decision.kind == DecisionKind.RENDER:
                return view_func(*args, **kwargs)

            if decision.kind == DecisionKind.DENIED:
                SecurityLogger.log_access_denied(
                    session.identity,
                    decision.message,
                    path=request.path,
                    user_level=session.user_level,
                )
            return decision_response(decision)

        return wrapper
    return decorator


def _find_request(args):
    # Function views get the request first, methods get it after self
    for arg in args[:2]:
        if hasattr(arg, 'META') and hasattr(arg, 'path'):
            return arg
    raise TypeError('guarded_route could not find the request argument')
