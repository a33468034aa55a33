"""
Custom DRF authentication classes.
"""
from rest_framework.authentication import BaseAuthentication


class MiddlewareAuthentication(BaseAuthentication):
    """
    DRF authentication class that uses the user set by SessionStateMiddleware.

    The middleware decodes the bearer token once per request and stores both
    request.user and request.session_state; DRF only needs the user back.
    """

    def authenticate(self, request):
        django_request = request._request
        user = getattr(django_request, 'user', None)

        if user is not None and user.is_authenticated:
            return (user, None)

        return None

    def authenticate_header(self, request):
        # Makes DRF answer 401 instead of 403 for anonymous callers
        return 'Bearer'
