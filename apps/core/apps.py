from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
import logging

logger = logging.getLogger(__name__)

KEY_HINT = "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(50))\""


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core'

    def ready(self):
        """
        Perform startup validation checks when Django initializes.

        Runs for runserver, gunicorn and test runs. Other management
        commands (migrate, shell) skip it so they work with partial config.
        """
        import sys
        if 'runserver' not in sys.argv and 'gunicorn' not in sys.argv[0]:
            if len(sys.argv) > 1 and sys.argv[1] not in ['runserver', 'test']:
                return

        self._validate_jwt_configuration()
        self._validate_security_settings()
        self._validate_role_functions()

        logger.info("All startup security validations passed")

    def _validate_jwt_configuration(self):
        jwt_secret = getattr(settings, 'JWT_SECRET_KEY', None)
        secret_key = getattr(settings, 'SECRET_KEY', None)

        if not jwt_secret:
            raise ImproperlyConfigured(f"JWT_SECRET_KEY must be set. {KEY_HINT}")

        if len(jwt_secret) < 32:
            raise ImproperlyConfigured(
                f"JWT_SECRET_KEY must be at least 32 characters long. "
                f"Current length: {len(jwt_secret)}. {KEY_HINT}"
            )

        if jwt_secret == secret_key:
            raise ImproperlyConfigured(
                f"JWT_SECRET_KEY must be different from SECRET_KEY. {KEY_HINT}"
            )

        unique_chars = len(set(jwt_secret))
        if unique_chars < 16:
            raise ImproperlyConfigured(
                f"JWT_SECRET_KEY has insufficient entropy. "
                f"Found only {unique_chars} unique characters, need at least 16. {KEY_HINT}"
            )

        logger.info("JWT configuration validated")

    def _validate_security_settings(self):
        debug = getattr(settings, 'DEBUG', False)
        secret_key = getattr(settings, 'SECRET_KEY', None)

        if not secret_key:
            raise ImproperlyConfigured(f"SECRET_KEY must be set. {KEY_HINT}")

        if len(secret_key) < 50:
            logger.warning(
                f"SECRET_KEY is shorter than recommended "
                f"(current: {len(secret_key)}, recommended: 50+)"
            )

        if not debug:
            weak_patterns = ['your-secret-key', 'change-me', 'insecure', '12345', 'password']
            secret_lower = secret_key.lower()
            for pattern in weak_patterns:
                if pattern in secret_lower:
                    raise ImproperlyConfigured(
                        f"SECRET_KEY appears to be a default or weak value "
                        f"(contains '{pattern}'). {KEY_HINT}"
                    )

            if not getattr(settings, 'SESSION_COOKIE_SECURE', False):
                logger.warning("SESSION_COOKIE_SECURE is not enabled in production")

        logger.info("Security settings validated")

    def _validate_role_functions(self):
        backend = getattr(settings, 'ROLE_FUNCTIONS_BACKEND', 'database')
        if backend == 'remote' and not getattr(settings, 'ROLE_RPC_URL', None):
            raise ImproperlyConfigured(
                "ROLE_FUNCTIONS_BACKEND is 'remote' but ROLE_RPC_URL is not set"
            )
