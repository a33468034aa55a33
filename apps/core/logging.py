"""
Structured JSON logging and security event logging.
"""
import json
import logging
import re
import threading
import traceback
from datetime import datetime, timezone as dt_timezone
from django.utils import timezone
import sentry_sdk


class PIIMasker:
    """
    Mask emails, tokens and other sensitive values before they reach logs.
    """

    EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')
    SECRET_PATTERN = re.compile(
        r'(api[_-]?key|token|secret|password|auth)["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)',
        re.IGNORECASE
    )

    SENSITIVE_FIELDS = {
        'password', 'password_hash', 'passwd',
        'token', 'access_token', 'refresh_token', 'bearer_token', 'reset_token',
        'secret', 'secret_key', 'api_key',
        'phone', 'phone_number',
    }

    @classmethod
    def mask_email(cls, text):
        """Keep the first character of the local part and the domain."""
        if not isinstance(text, str):
            return text

        def _mask(match):
            local, _, domain = match.group(0).partition('@')
            if len(local) > 1:
                local = local[0] + '*' * (len(local) - 1)
            return f"{local}@{domain}"

        return cls.EMAIL_PATTERN.sub(_mask, text)

    @classmethod
    def mask_secrets(cls, text):
        if not isinstance(text, str):
            return text
        return cls.SECRET_PATTERN.sub(r'\1: ********', text)

    @classmethod
    def mask_text(cls, text):
        """Apply all masking patterns to text."""
        if not isinstance(text, str):
            return text
        return cls.mask_secrets(cls.mask_email(text))

    @classmethod
    def mask_dict(cls, data):
        """Recursively mask sensitive data in dictionaries."""
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            if key.lower() in cls.SENSITIVE_FIELDS:
                masked[key] = '********' if value else value
            elif isinstance(value, dict):
                masked[key] = cls.mask_dict(value)
            elif isinstance(value, (list, tuple, set)):
                masked[key] = [
                    cls.mask_dict(item) if isinstance(item, dict) else cls.mask_text(item)
                    for item in value
                ]
            else:
                masked[key] = cls.mask_text(value)
        return masked


class RequestContextFilter(logging.Filter):
    """
    Copy request_id and tenant_id from thread-local storage onto records.
    """

    def filter(self, record):
        thread = threading.current_thread()
        if not hasattr(record, 'request_id') and hasattr(thread, 'request_id'):
            record.request_id = thread.request_id
        if not hasattr(record, 'tenant_id') and hasattr(thread, 'tenant_id'):
            record.tenant_id = thread.tenant_id
        return True


class JSONFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging.
    Includes request_id and tenant_id from extra fields if available.
    Automatically masks sensitive PII data.
    """

    RESERVED = {
        'name', 'msg', 'args', 'created', 'filename', 'funcName',
        'levelname', 'levelno', 'lineno', 'module', 'msecs', 'message',
        'pathname', 'process', 'processName', 'relativeCreated',
        'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
        'taskName', 'request_id', 'tenant_id',
    }

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(dt_timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': PIIMasker.mask_text(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if hasattr(record, 'request_id'):
            log_data['request_id'] = record.request_id
        if hasattr(record, 'tenant_id'):
            log_data['tenant_id'] = str(record.tenant_id)

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': PIIMasker.mask_text(str(record.exc_info[1])),
                'traceback': [
                    PIIMasker.mask_text(line)
                    for line in traceback.format_exception(*record.exc_info)
                ],
            }

        for key, value in record.__dict__.items():
            if key in self.RESERVED or key.startswith('_'):
                continue
            if isinstance(value, dict):
                value = PIIMasker.mask_dict(value)
            elif isinstance(value, str):
                value = PIIMasker.mask_text(value)
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = PIIMasker.mask_text(str(value))

        return json.dumps(log_data)


class SecurityLogger:
    """
    Centralized logging for access-control events.

    Every event goes to the 'security' logger with structured context.
    Critical events (failed role verification, escalation attempts) are
    also captured in Sentry for alerting.
    """

    CRITICAL_EVENTS = {
        'role_verification_failed',
        'privilege_escalation_attempt',
    }

    @staticmethod
    def log_event(event_type: str, level: str = 'warning', **context):
        """
        Log a security event with structured data.

        Example:
            >>> SecurityLogger.log_event(
            ...     'access_denied',
            ...     user_id='5b1c...',
            ...     resource='leads',
            ...     action='delete',
            ... )
        """
        logger = logging.getLogger('security')

        log_data = {
            'event_type': event_type,
            'timestamp': timezone.now().isoformat(),
        }
        log_data.update(context)
        log_data = PIIMasker.mask_dict(log_data)

        log_method = getattr(logger, level, logger.warning)
        log_method(f"Security event: {event_type}", extra={'security': log_data})

        if event_type in SecurityLogger.CRITICAL_EVENTS:
            sentry_sdk.capture_message(
                f"Critical security event: {event_type}",
                level='error',
            )

    @staticmethod
    def log_failed_login(email: str, ip_address: str, reason: str = None):
        SecurityLogger.log_event(
            'failed_login',
            email=email,
            ip_address=ip_address,
            reason=reason
        )

    @staticmethod
    def log_access_denied(user_id, reason: str, path: str = None, **context):
        """Log a route or capability denial."""
        SecurityLogger.log_event(
            'access_denied',
            level='info',
            user_id=str(user_id) if user_id else None,
            reason=reason,
            path=path,
            **context
        )

    @staticmethod
    def log_role_verification_failed(check: str, user_id, error: str):
        """
        Log a role check that could not be answered.

        The caller has already denied; this only records why.
        """
        SecurityLogger.log_event(
            'role_verification_failed',
            level='error',
            check=check,
            user_id=str(user_id) if user_id else None,
            error=error
        )

    @staticmethod
    def log_role_changed(actor_id, target_id, role: str, tenant_id=None, granted=True):
        SecurityLogger.log_event(
            'role_changed',
            level='info',
            actor_id=str(actor_id) if actor_id else None,
            target_id=str(target_id),
            role=role,
            tenant_id=str(tenant_id) if tenant_id else None,
            granted=granted
        )

    @staticmethod
    def log_privilege_escalation_attempt(actor_id, target_id, requested_role: str):
        SecurityLogger.log_event(
            'privilege_escalation_attempt',
            level='error',
            actor_id=str(actor_id) if actor_id else None,
            target_id=str(target_id) if target_id else None,
            requested_role=requested_role
        )

    @staticmethod
    def log_rate_limit_exceeded(endpoint: str, ip_address: str, user_email: str = None):
        SecurityLogger.log_event(
            'rate_limit_exceeded',
            endpoint=endpoint,
            ip_address=ip_address,
            user_email=user_email
        )
