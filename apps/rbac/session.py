"""
Per-request session state.

SessionStateMiddleware resolves the bearer token once per request and
attaches an immutable SessionState to the request. Guards, resolvers and
views receive that value explicitly instead of reading a global
current-user pointer.
"""
import enum
import logging
import threading
from dataclasses import dataclass
from typing import Optional
from django.contrib.auth.models import AnonymousUser
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)


class AuthStatus(str, enum.Enum):
    LOADING = 'loading'
    AUTHENTICATED = 'authenticated'
    UNAUTHENTICATED = 'unauthenticated'


@dataclass(frozen=True)
class SessionState:
    """
    Snapshot of who is calling and the level the client holds for them.

    user_level mirrors the cached Profile.user_level. It is good enough for
    menus and redirects, never for revealing privileged data.
    """

    status: AuthStatus
    identity: Optional[str] = None
    user_level: Optional[str] = None
    tenant_id: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.status == AuthStatus.AUTHENTICATED and self.identity is not None

    @property
    def is_loading(self) -> bool:
        return self.status == AuthStatus.LOADING

    @classmethod
    def anonymous(cls) -> 'SessionState':
        return cls(status=AuthStatus.UNAUTHENTICATED)

    @classmethod
    def loading(cls, identity=None) -> 'SessionState':
        return cls(status=AuthStatus.LOADING, identity=str(identity) if identity else None)

    @classmethod
    def for_profile(cls, user, profile) -> 'SessionState':
        return cls(
            status=AuthStatus.AUTHENTICATED,
            identity=str(user.pk),
            user_level=profile.user_level,
            tenant_id=str(profile.tenant_id) if profile.tenant_id else None,
            email=user.email,
        )


def session_from_request(request) -> SessionState:
    """Session attached by the middleware, anonymous when absent."""
    django_request = getattr(request, '_request', request)
    state = getattr(django_request, 'session_state', None)
    if state is None:
        return SessionState.anonymous()
    return state


class SessionStateMiddleware(MiddlewareMixin):
    """
    Resolve `Authorization: Bearer <jwt>` into request.user and
    request.session_state.

    Requests without a bearer token keep whatever user Django's session
    authentication attached (the admin site relies on this). The profile is
    resolved here, so first authenticated access creates it. When the
    profile store is unavailable the session stays LOADING: guards answer
    "try again" instead of making a decision on missing data.

    Must run after django.contrib.auth.middleware.AuthenticationMiddleware.
    """

    def process_request(self, request):
        from apps.core.exceptions import BackendUnavailableError
        from apps.rbac.services import AuthService, ProfileService

        token = self._bearer_token(request)
        if token is not None:
            user = AuthService.get_user_from_jwt(token)
            if user is None:
                logger.info(
                    "Rejected bearer token",
                    extra={'request_id': getattr(request, 'request_id', None)}
                )
                request.user = AnonymousUser()
                request.session_state = SessionState.anonymous()
                return None
            request.user = user
        else:
            user = getattr(request, 'user', None)

        if user is None or not user.is_authenticated:
            request.session_state = SessionState.anonymous()
            return None

        try:
            profile = ProfileService.resolve_profile(user)
        except BackendUnavailableError as e:
            logger.error(
                f"Profile resolution failed for {user.pk}: {e.message}",
                extra={'request_id': getattr(request, 'request_id', None)}
            )
            request.session_state = SessionState.loading(user.pk)
            return None

        state = SessionState.for_profile(user, profile)
        request.session_state = state
        if state.tenant_id:
            threading.current_thread().tenant_id = state.tenant_id
        return None

    @staticmethod
    def _bearer_token(request):
        header = request.headers.get('Authorization', '')
        scheme, _, credentials = header.partition(' ')
        if scheme.lower() != 'bearer' or not credentials.strip():
            return None
        return credentials.strip()
