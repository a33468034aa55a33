"""
Access-control services.

Implements:
- RoleVerificationService: fail-closed client over the server-trusted role functions
- ProfileService: lazy, conflict-tolerant profile resolution and self-service updates
- RoleAdministrationService: master-only role grants with profile cache sync
- AuthService: JWT sessions, sign up/in/out and password reset
"""
import logging
import uuid
from datetime import timedelta
from typing import Optional, Dict, Any, Set
from django.conf import settings
from django.core.cache import cache
from django.db import transaction, IntegrityError, DatabaseError
from django.utils import timezone
import jwt

from apps.core.exceptions import (
    AuthenticationError, BackendUnavailableError, ConflictError,
    PermissionDeniedError, ValidationError,
)
from apps.core.logging import SecurityLogger
from apps.rbac.models import User, Profile, RoleGrant, AuditLog, PasswordResetToken
from apps.rbac.policy import LEVELS, LEVEL_RANK, MASTER, USER, highest_level
from apps.rbac.role_functions import get_role_functions

logger = logging.getLogger(__name__)


class RoleVerificationService:
    """
    Answers authorization questions through the server-trusted role functions.

    Contract: only a literal True from the backend is an allow. Transport
    errors, server errors, malformed answers, a missing identity or an
    unknown role all produce False (or an empty set). Nothing is cached;
    every call asks the backend again.

    Identity defaults to the identity of the given SessionState.
    """

    @staticmethod
    def _identity(identity=None, session=None) -> Optional[str]:
        if identity:
            return str(identity)
        if session is not None and session.is_authenticated:
            return session.identity
        return None

    @classmethod
    def _ask(cls, check, identity, call):
        try:
            backend = get_role_functions()
            return call(backend)
        except Exception as e:
            logger.error(
                f"Role verification '{check}' failed for {identity}: {e}",
                exc_info=True
            )
            SecurityLogger.log_role_verification_failed(check, identity, str(e))
            return None

    @classmethod
    def is_master(cls, identity=None, session=None) -> bool:
        user_id = cls._identity(identity, session)
        if user_id is None:
            logger.debug("is_master called without identity")
            return False
        return cls._ask('is_master', user_id, lambda b: b.is_master(user_id)) is True

    @classmethod
    def is_tenant_admin(cls, identity=None, tenant_id=None, session=None) -> bool:
        user_id = cls._identity(identity, session)
        if user_id is None:
            logger.debug("is_tenant_admin called without identity")
            return False
        answer = cls._ask(
            'is_tenant_admin',
            user_id,
            lambda b: b.is_tenant_admin(user_id, tenant_id)
        )
        return answer is True

    @classmethod
    def has_role(cls, role, identity=None, session=None) -> bool:
        user_id = cls._identity(identity, session)
        if user_id is None:
            logger.debug("has_role called without identity")
            return False
        if role not in LEVELS:
            logger.warning(f"has_role called with unknown role {role!r}")
            return False
        return cls._ask('has_role', user_id, lambda b: b.has_role(user_id, role)) is True

    @classmethod
    def get_user_roles(cls, identity=None, session=None) -> Set[str]:
        user_id = cls._identity(identity, session)
        if user_id is None:
            return set()

        answer = cls._ask('get_user_roles', user_id, lambda b: b.get_user_roles(user_id))
        if answer is None:
            return set()

        if not isinstance(answer, (list, tuple, set, frozenset)) or \
                not all(isinstance(role, str) for role in answer):
            logger.error(f"Malformed role list for {user_id}: {answer!r}")
            SecurityLogger.log_role_verification_failed(
                'get_user_roles', user_id, 'malformed role list'
            )
            return set()
        return set(answer)


class ProfileService:
    """
    Guarantees one Profile per authenticated identity.
    """

    FALLBACK_NAME = 'Usuário'

    @staticmethod
    def derive_display_name(user) -> str:
        """Full name from session metadata, else the email local part, else a fixed fallback."""
        full_name = user.get_full_name() if hasattr(user, 'get_full_name') else ''
        if full_name:
            return full_name
        local_part = (user.email or '').split('@')[0].strip()
        if local_part:
            return local_part
        return ProfileService.FALLBACK_NAME

    @staticmethod
    def _fetch(user) -> Profile:
        return Profile.objects_with_deleted.select_related('tenant').get(user_id=user.pk)

    @classmethod
    def resolve_profile(cls, user) -> Profile:
        """
        Return the profile of `user`, creating a minimal one on first access.

        A missing row is a normal branch. Losing a creation race to another
        request surfaces as IntegrityError and is answered by refetching.
        Other database errors raise BackendUnavailableError.
        """
        try:
            return cls._fetch(user)
        except Profile.DoesNotExist:
            pass
        except DatabaseError as e:
            raise BackendUnavailableError(
                'Profile store unavailable',
                details={'user_id': str(user.pk)}
            ) from e

        try:
            with transaction.atomic():
                profile = Profile.objects.create(
                    user=user,
                    name=cls.derive_display_name(user),
                    email=user.email,
                    user_level=USER,
                    tenant=None,
                )
        except IntegrityError:
            logger.info(f"Profile for {user.pk} created concurrently, refetching")
            try:
                return cls._fetch(user)
            except (Profile.DoesNotExist, DatabaseError) as e:
                raise BackendUnavailableError(
                    'Profile store unavailable',
                    details={'user_id': str(user.pk)}
                ) from e
        except DatabaseError as e:
            raise BackendUnavailableError(
                'Profile store unavailable',
                details={'user_id': str(user.pk)}
            ) from e

        logger.info(f"Created profile for {user.pk}")
        return profile

    @classmethod
    def update_profile(cls, user, **changes) -> Profile:
        """
        Self-service update.

        Only name and avatar_url may change here; level and tenant belong
        to RoleAdministrationService.
        """
        forbidden = sorted(set(changes) - set(Profile.SELF_SERVICE_FIELDS))
        if forbidden:
            raise ValidationError(
                'These fields cannot be changed through the profile',
                details={'fields': forbidden}
            )

        profile = cls.resolve_profile(user)
        if not changes:
            return profile

        for field, value in changes.items():
            setattr(profile, field, value)
        profile.save(update_fields=[*changes.keys(), 'updated_at'])
        return profile

    @classmethod
    def sync_level(cls, user) -> Profile:
        """
        Recompute the cached user_level from the user's live RoleGrant rows.

        master clears the home tenant. Other levels adopt the tenant of
        their grant when the profile has none.
        """
        profile = cls.resolve_profile(user)
        grants = list(RoleGrant.objects.filter(user_id=user.pk))
        level = highest_level(grant.role for grant in grants)

        update_fields = []
        if profile.user_level != level:
            profile.user_level = level
            update_fields.append('user_level')

        if level == MASTER:
            if profile.tenant_id is not None:
                profile.tenant = None
                update_fields.append('tenant')
        elif profile.tenant_id is None:
            scoped = next((g for g in grants if g.role == level and g.tenant_id), None)
            if scoped is not None:
                profile.tenant_id = scoped.tenant_id
                update_fields.append('tenant')

        if update_fields:
            profile.save(update_fields=[*update_fields, 'updated_at'])
            logger.info(
                f"Synced profile level for {user.pk}",
                extra={'user_level': profile.user_level}
            )
        return profile


class RoleAdministrationService:
    """
    Role changes, restricted to server-verified masters.

    A user holds one level at a time: setting a level replaces any other
    grants the user had.
    """

    @classmethod
    def _require_master(cls, actor, target, requested_role):
        if RoleVerificationService.is_master(actor.pk):
            return

        actor_level = highest_level(RoleVerificationService.get_user_roles(actor.pk))
        requested_rank = LEVEL_RANK.get(requested_role, 0)
        if target.pk == actor.pk or requested_rank > LEVEL_RANK[actor_level]:
            SecurityLogger.log_privilege_escalation_attempt(actor.pk, target.pk, requested_role)
        else:
            SecurityLogger.log_access_denied(actor.pk, 'role administration requires master')
        raise PermissionDeniedError('Only master users can change roles')

    @classmethod
    def update_user_role(cls, actor, target, level, tenant=None, request=None) -> RoleGrant:
        if level not in LEVELS:
            raise ValidationError(
                f"Unknown level '{level}'",
                details={'allowed': list(LEVELS)}
            )
        cls._require_master(actor, target, level)

        if level == MASTER:
            tenant = None

        with transaction.atomic():
            RoleGrant.objects.filter(user_id=target.pk).exclude(
                role=level, tenant=tenant
            ).delete()
            grant, created = RoleGrant.objects_with_deleted.update_or_create(
                user=target,
                role=level,
                tenant=tenant,
                defaults={
                    'granted_by': actor,
                    'granted_at': timezone.now(),
                    'deleted_at': None,
                }
            )
            profile = ProfileService.sync_level(target)

        AuditLog.log_action(
            action='role_granted',
            user=actor,
            tenant=tenant,
            target_type='User',
            target_id=target.pk,
            diff={'user_level': profile.user_level},
            metadata={'role': level, 'created': created},
            request=request,
        )
        SecurityLogger.log_role_changed(
            actor.pk, target.pk, level,
            tenant_id=tenant.pk if tenant else None,
            granted=True
        )
        return grant

    @classmethod
    def revoke_role(cls, actor, target, role, tenant=None, request=None) -> bool:
        """Soft delete a grant. Returns False when there was nothing to revoke."""
        if role not in LEVELS:
            raise ValidationError(
                f"Unknown level '{role}'",
                details={'allowed': list(LEVELS)}
            )
        cls._require_master(actor, target, role)

        if target.pk == actor.pk and role == MASTER:
            raise ConflictError('Masters cannot revoke their own master role')

        with transaction.atomic():
            revoked = RoleGrant.objects.filter(
                user_id=target.pk, role=role, tenant=tenant
            ).delete()
            if not revoked:
                return False
            ProfileService.sync_level(target)

        AuditLog.log_action(
            action='role_revoked',
            user=actor,
            tenant=tenant,
            target_type='User',
            target_id=target.pk,
            metadata={'role': role},
            request=request,
        )
        SecurityLogger.log_role_changed(
            actor.pk, target.pk, role,
            tenant_id=tenant.pk if tenant else None,
            granted=False
        )
        return True


class AuthService:
    """
    Authentication provider: JWT sessions, sign up, sign in, sign out and
    password reset.
    """

    REVOKED_TOKEN_PREFIX = 'jwt:revoked:'

    @classmethod
    def generate_jwt(cls, user: User) -> str:
        now = timezone.now()
        payload = {
            'user_id': str(user.id),
            'email': user.email,
            'jti': uuid.uuid4().hex,
            'exp': now + timedelta(hours=settings.JWT_EXPIRATION_HOURS),
            'iat': now,
        }
        return jwt.encode(
            payload,
            settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM
        )

    @classmethod
    def validate_jwt(cls, token: str) -> Optional[Dict[str, Any]]:
        """Decoded payload, or None when the token is invalid, expired or revoked."""
        try:
            payload = jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[settings.JWT_ALGORITHM]
            )
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

        jti = payload.get('jti')
        if jti and cache.get(f"{cls.REVOKED_TOKEN_PREFIX}{jti}"):
            return None
        return payload

    @classmethod
    def get_user_from_jwt(cls, token: str) -> Optional[User]:
        payload = cls.validate_jwt(token)
        if not payload:
            return None

        user_id = payload.get('user_id')
        if not user_id:
            return None

        try:
            return User.objects.get(id=user_id, is_active=True)
        except (User.DoesNotExist, ValueError, DatabaseError):
            return None

    @classmethod
    def current_identity(cls, request) -> Optional[str]:
        from apps.rbac.session import session_from_request

        return session_from_request(request).identity

    @classmethod
    def sign_up(cls, email: str, password: str, first_name: str = '',
                last_name: str = '') -> Dict[str, Any]:
        """Create an identity and its profile, then open a session."""
        if User.objects_with_deleted.filter(email=User.objects.normalize_email(email)).exists():
            raise ConflictError('A user with this email already exists')

        try:
            with transaction.atomic():
                user = User.objects.create_user(
                    email=email,
                    password=password,
                    first_name=first_name,
                    last_name=last_name,
                )
        except IntegrityError as e:
            raise ConflictError('A user with this email already exists') from e

        profile = ProfileService.resolve_profile(user)

        AuditLog.log_action(
            action='user_registered',
            user=user,
            target_type='User',
            target_id=user.id,
        )
        logger.info(f"Registered user {user.id}")

        return {
            'user': user,
            'profile': profile,
            'token': cls.generate_jwt(user),
        }

    @classmethod
    def sign_in(cls, email: str, password: str, ip_address: str = 'unknown') -> Dict[str, Any]:
        user = User.objects.active().filter(
            email=User.objects.normalize_email(email)
        ).first()

        if user is None or not user.check_password(password):
            SecurityLogger.log_failed_login(
                email, ip_address,
                reason='unknown user' if user is None else 'bad password'
            )
            raise AuthenticationError('Invalid email or password')

        user.update_last_login()
        profile = ProfileService.resolve_profile(user)
        profile.last_login = user.last_login_at
        profile.save(update_fields=['last_login', 'updated_at'])

        AuditLog.log_action(
            action='user_login',
            user=user,
            target_type='User',
            target_id=user.id,
        )

        return {
            'user': user,
            'profile': profile,
            'token': cls.generate_jwt(user),
        }

    @classmethod
    def sign_out(cls, token: str) -> bool:
        """Revoke a token until its natural expiry."""
        payload = cls.validate_jwt(token)
        if not payload or not payload.get('jti'):
            return False

        ttl = int(payload['exp'] - timezone.now().timestamp())
        if ttl > 0:
            cache.set(f"{cls.REVOKED_TOKEN_PREFIX}{payload['jti']}", True, ttl)
        return True

    @classmethod
    def request_password_reset(cls, email: str) -> Optional[str]:
        """Issue a reset token. Returns None for unknown emails."""
        user = User.objects.active().filter(
            email=User.objects.normalize_email(email)
        ).first()
        if user is None:
            return None

        reset_token = PasswordResetToken.create_token(user)
        AuditLog.log_action(
            action='password_reset_requested',
            user=user,
            target_type='User',
            target_id=user.id,
        )
        return reset_token.token

    @classmethod
    def reset_password(cls, token: str, new_password: str) -> bool:
        reset_token = PasswordResetToken.objects.get_valid_token(token)
        if not reset_token:
            return False

        user = reset_token.user
        user.set_password(new_password)
        user.save(update_fields=['password_hash', 'updated_at'])
        reset_token.mark_as_used()

        AuditLog.log_action(
            action='password_reset_completed',
            user=user,
            target_type='User',
            target_id=user.id,
        )
        return True
