"""
Log sanitization to prevent credential leakage.

Redacts bearer tokens, JWTs, passwords and connection-string secrets from
human-readable log lines. The JSON formatter does its own masking.
"""
import re
import logging


class SanitizingFormatter(logging.Formatter):
    """
    Log formatter that redacts secrets from the rendered line.
    """

    PATTERNS = [
        (re.compile(r'Bearer\s+([a-zA-Z0-9_\-\.]{20,})', re.IGNORECASE), r'Bearer [REDACTED]'),
        (re.compile(r'eyJ[a-zA-Z0-9_\-]+\.eyJ[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+'), r'[REDACTED_JWT]'),
        (re.compile(r'access[_-]?token["\s:=]+([a-zA-Z0-9_\-\.]{20,})', re.IGNORECASE), r'access_token=[REDACTED]'),
        (re.compile(r'refresh[_-]?token["\s:=]+([a-zA-Z0-9_\-\.]{20,})', re.IGNORECASE), r'refresh_token=[REDACTED]'),
        (re.compile(r'password["\s:=]+([^\s,\]}"\']+)', re.IGNORECASE), r'password=[REDACTED]'),
        (re.compile(r'api[_-]?key["\s:=]+([a-zA-Z0-9_\-]{20,})', re.IGNORECASE), r'api_key=[REDACTED]'),
        (re.compile(r'secret["\s:=]+([a-zA-Z0-9_\-]{20,})', re.IGNORECASE), r'secret=[REDACTED]'),
        (re.compile(r'://([^:/]+):([^@]+)@'), r'://\1:[REDACTED]@'),
        (re.compile(r'Authorization["\s:]+([^\s,\]}"\']+)', re.IGNORECASE), r'Authorization: [REDACTED]'),
    ]

    @classmethod
    def sanitize(cls, text):
        for pattern, replacement in cls.PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def format(self, record):
        return self.sanitize(super().format(record))


class SanitizingFilter(logging.Filter):
    """
    Logging filter that redacts secrets in the message and its args.
    """

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = SanitizingFormatter.sanitize(record.msg)

        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                SanitizingFormatter.sanitize(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )

        return True
