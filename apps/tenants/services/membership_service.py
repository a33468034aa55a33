"""
Tenant membership view.

Resolves a tenant by slug, its member roster and the caller's role inside
it, for tenant-scoped administration screens.
"""
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from django.conf import settings
from django.db import DatabaseError

from apps.core.exceptions import BackendUnavailableError
from apps.rbac.models import Profile
from apps.tenants.models import Tenant, TenantMember

logger = logging.getLogger(__name__)


class MembershipStatus(str, enum.Enum):
    OK = 'ok'
    LOADING = 'loading'
    NOT_FOUND = 'not_found'
    UNAUTHENTICATED = 'unauthenticated'


@dataclass(frozen=True)
class MemberRow:
    member_id: str
    user_id: str
    role: str
    name: Optional[str]
    email: Optional[str]
    joined_at: datetime


@dataclass(frozen=True)
class TenantMembershipResult:
    status: MembershipStatus
    tenant: Optional[Tenant] = None
    members: List[MemberRow] = field(default_factory=list)
    current_user_role: Optional[str] = None
    redirect_to: Optional[str] = None
    members_error: Optional[str] = None


class TenantMembershipService:

    @classmethod
    def load_tenant(cls, session, slug) -> TenantMembershipResult:
        """
        Load a tenant, its members and the caller's membership role.

        An unknown slug is a NOT_FOUND result with a way back to the master
        panel, not an exception. Failing to fetch members is logged and
        leaves the roster empty with members_error set; the tenant summary
        is still returned. Other errors looking up the tenant itself raise
        BackendUnavailableError.

        A session still being resolved is LOADING, never a redirect to login.
        current_user_role is None when the caller has no membership row.
        Whether such a caller may see the tenant at all is decided by the
        view (verified master only).
        """
        if session.is_loading:
            return TenantMembershipResult(status=MembershipStatus.LOADING)

        if not session.is_authenticated:
            return TenantMembershipResult(
                status=MembershipStatus.UNAUTHENTICATED,
                redirect_to=settings.LOGIN_ROUTE,
            )

        try:
            tenant = Tenant.objects.get(slug=slug)
        except Tenant.DoesNotExist:
            logger.info(f"Tenant slug not found: {slug}")
            return TenantMembershipResult(
                status=MembershipStatus.NOT_FOUND,
                redirect_to=settings.MASTER_PANEL_ROUTE,
            )
        except DatabaseError as e:
            raise BackendUnavailableError(
                'Tenant store unavailable',
                details={'slug': slug}
            ) from e

        try:
            members = cls._load_members(tenant)
        except DatabaseError as e:
            logger.error(
                f"Failed to load members of tenant {tenant.slug}: {e}",
                extra={'tenant_id': str(tenant.id)},
                exc_info=True
            )
            return TenantMembershipResult(
                status=MembershipStatus.OK,
                tenant=tenant,
                current_user_role=cls._own_role(tenant, session.identity),
                members_error='Could not load tenant members',
            )

        current_user_role = next(
            (m.role for m in members if m.user_id == session.identity),
            None
        )

        return TenantMembershipResult(
            status=MembershipStatus.OK,
            tenant=tenant,
            members=members,
            current_user_role=current_user_role,
        )

    @staticmethod
    def _load_members(tenant) -> List[MemberRow]:
        memberships = list(
            TenantMember.objects.filter(tenant=tenant).order_by('joined_at')
        )
        if not memberships:
            return []

        # One query for every member's profile
        user_ids = [m.user_id for m in memberships]
        profiles = {
            p.user_id: p
            for p in Profile.objects.filter(user_id__in=user_ids).only('name', 'email')
        }

        rows = []
        for membership in memberships:
            profile = profiles.get(membership.user_id)
            rows.append(MemberRow(
                member_id=str(membership.id),
                user_id=str(membership.user_id),
                role=membership.role,
                name=profile.name if profile else None,
                email=profile.email if profile else None,
                joined_at=membership.joined_at,
            ))
        return rows

    @staticmethod
    def _own_role(tenant, identity) -> Optional[str]:
        # Single-row lookup used when the roster itself could not be loaded
        try:
            return TenantMember.objects.filter(
                tenant=tenant, user_id=identity
            ).values_list('role', flat=True).first()
        except DatabaseError as e:
            logger.error(
                f"Failed to load membership of {identity} in {tenant.slug}: {e}",
                extra={'tenant_id': str(tenant.id)}
            )
            return None
