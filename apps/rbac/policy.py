"""
Static permission policy table.

Maps a user level to the (resource, action) grants it carries. This table
drives UI-level capability gating only: showing or hiding controls, and
the inline "access denied" branch of the route guard. It reads the
client-held level and is NOT an authorization boundary. Anything that
reveals privileged data must also pass a server-verified check through
RoleVerificationService.
"""
from dataclasses import dataclass
from typing import Dict, Tuple

MASTER = 'master'
ADMIN = 'admin'
USER = 'user'

LEVELS = (MASTER, ADMIN, USER)

LEVEL_CHOICES = [
    (MASTER, 'Master'),
    (ADMIN, 'Admin'),
    (USER, 'User'),
]

# Highest first; used when several grants collapse into one cached level
LEVEL_RANK = {MASTER: 3, ADMIN: 2, USER: 1}

WILDCARD = '*'

ACTIONS = ('create', 'read', 'update', 'delete', 'execute')


@dataclass(frozen=True)
class Grant:
    resource: str
    action: str

    def covers(self, resource: str, action: str) -> bool:
        resource_ok = self.resource == WILDCARD or self.resource == resource
        action_ok = self.action == WILDCARD or self.action == action
        return resource_ok and action_ok


def _crud(resource):
    return tuple(Grant(resource, action) for action in ('create', 'read', 'update', 'delete'))


ROLE_PERMISSIONS: Dict[str, Tuple[Grant, ...]] = {
    MASTER: tuple(Grant(WILDCARD, action) for action in ACTIONS),
    ADMIN: (
        *_crud('users'),
        *_crud('clients'),
        *_crud('leads'),
        *_crud('proposals'),
        *_crud('contracts'),
        Grant('telephony', 'execute'),
        Grant('chatbot', 'execute'),
        Grant('reports', 'read'),
    ),
    USER: (
        Grant('clients', 'read'),
        Grant('leads', 'create'),
        Grant('leads', 'read'),
        Grant('leads', 'update'),
        Grant('proposals', 'create'),
        Grant('proposals', 'read'),
        Grant('proposals', 'update'),
        Grant('contracts', 'read'),
        Grant('telephony', 'execute'),
        Grant('chatbot', 'execute'),
    ),
}


def grants_for(level) -> Tuple[Grant, ...]:
    """Grant list for a level; unknown levels get nothing."""
    if not isinstance(level, str):
        return ()
    return ROLE_PERMISSIONS.get(level, ())


def has_permission(level, resource, action) -> bool:
    """
    Pure (level, resource, action) -> bool lookup.

    Matches exactly, or through a wildcard resource and/or action grant.
    Malformed input resolves to False.
    """
    if not isinstance(resource, str) or not isinstance(action, str):
        return False
    if not resource or action not in ACTIONS:
        return False
    return any(grant.covers(resource, action) for grant in grants_for(level))


def highest_level(levels) -> str:
    """Collapse a collection of levels to the most privileged known one."""
    known = [level for level in levels if level in LEVEL_RANK]
    if not known:
        return USER
    return max(known, key=LEVEL_RANK.__getitem__)


class PermissionChecker:
    """
    Capability checks bound to one SessionState.

    UI convenience layer: the level comes from the session snapshot, which
    mirrors the cached Profile.user_level and can be stale.
    """

    def __init__(self, session):
        self.session = session

    @property
    def level(self):
        if not self.session.is_authenticated:
            return None
        return self.session.user_level

    def has_permission(self, resource, action) -> bool:
        if self.level is None:
            return False
        return has_permission(self.level, resource, action)

    def can_create(self, resource):
        return self.has_permission(resource, 'create')

    def can_read(self, resource):
        return self.has_permission(resource, 'read')

    def can_update(self, resource):
        return self.has_permission(resource, 'update')

    def can_delete(self, resource):
        return self.has_permission(resource, 'delete')

    def can_execute(self, resource):
        return self.has_permission(resource, 'execute')

    def capabilities(self):
        """Grant list for menu rendering."""
        if self.level is None:
            return []
        return [
            {'resource': grant.resource, 'action': grant.action}
            for grant in grants_for(self.level)
        ]
