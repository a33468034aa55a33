"""
Core middleware for request processing.
"""
import uuid
import threading
import logging
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)


class RequestIDMiddleware(MiddlewareMixin):
    """
    Inject a unique request_id into each request for tracing.

    The id is echoed in the X-Request-ID response header and exposed to
    log records through thread-local storage.
    """

    def process_request(self, request):
        request_id = request.headers.get('X-Request-ID') or str(uuid.uuid4())
        request.request_id = request_id
        threading.current_thread().request_id = request_id

    def process_response(self, request, response):
        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id
        thread = threading.current_thread()
        for attr in ('request_id', 'tenant_id'):
            if hasattr(thread, attr):
                delattr(thread, attr)
        return response
