"""
Services for tenant administration and membership.
"""
from .tenant_service import TenantService
from .membership_service import (
    TenantMembershipService, TenantMembershipResult, MemberRow, MembershipStatus,
)

__all__ = [
    'TenantService',
    'TenantMembershipService',
    'TenantMembershipResult',
    'MemberRow',
    'MembershipStatus',
]
