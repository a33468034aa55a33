"""
Server-trusted role functions.

These are the authoritative answers behind RoleVerificationService. Two
backends share one interface:

- DatabaseRoleFunctions evaluates RoleGrant and TenantMember rows in the
  local database.
- RemoteRoleFunctions calls a PostgREST-style RPC endpoint
  (POST {ROLE_RPC_URL}/rpc/<function>) for deployments where roles live in
  a separate auth backend.

Backends return raw answers and raise RoleVerificationError when they
cannot produce one. Turning failures into denials is the job of
RoleVerificationService, not of the backends.
"""
import logging
from django.conf import settings
from django.utils.module_loading import import_string
import requests

from apps.core.exceptions import RoleVerificationError
from apps.rbac.policy import MASTER, ADMIN

logger = logging.getLogger(__name__)


class DatabaseRoleFunctions:
    """Role functions evaluated against the local RoleGrant relation."""

    TENANT_ADMIN_MEMBER_ROLES = ('owner', 'admin')

    def is_master(self, user_id):
        from apps.rbac.models import RoleGrant

        return RoleGrant.objects.filter(user_id=user_id, role=MASTER).exists()

    def is_tenant_admin(self, user_id, tenant_id=None):
        """
        Admin of the given tenant, or of any tenant when tenant_id is None.

        A RoleGrant(admin, tenant) or an owner/admin TenantMember row both
        count.
        """
        from apps.rbac.models import RoleGrant
        from apps.tenants.models import TenantMember

        grants = RoleGrant.objects.filter(user_id=user_id, role=ADMIN)
        members = TenantMember.objects.filter(
            user_id=user_id,
            role__in=self.TENANT_ADMIN_MEMBER_ROLES,
        )
        if tenant_id is not None:
            grants = grants.filter(tenant_id=tenant_id)
            members = members.filter(tenant_id=tenant_id)
        return grants.exists() or members.exists()

    def has_role(self, user_id, role):
        from apps.rbac.models import RoleGrant

        return RoleGrant.objects.filter(user_id=user_id, role=role).exists()

    def get_user_roles(self, user_id):
        from apps.rbac.models import RoleGrant

        return list(RoleGrant.objects.roles_for(user_id))


class RemoteRoleFunctions:
    """
    Role functions served by a remote RPC endpoint.

    Every call is a fresh HTTP request. Non-2xx answers, timeouts and
    payloads that are not JSON raise RoleVerificationError.
    """

    def __init__(self, base_url=None, api_key=None, timeout=None, session=None):
        self.base_url = (base_url or settings.ROLE_RPC_URL or '').rstrip('/')
        self.api_key = api_key if api_key is not None else settings.ROLE_RPC_API_KEY
        self.timeout = timeout or settings.ROLE_RPC_TIMEOUT
        self.session = session or requests.Session()

        if not self.base_url:
            raise RoleVerificationError('ROLE_RPC_URL is not configured')

    def _headers(self):
        headers = {'Content-Type': 'application/json', 'Accept': 'application/json'}
        if self.api_key:
            headers['apikey'] = self.api_key
            headers['Authorization'] = f'Bearer {self.api_key}'
        return headers

    def _request(self, method, path, **kwargs):
        url = f"{self.base_url}/{path}"
        try:
            response = self.session.request(
                method,
                url,
                headers=self._headers(),
                timeout=self.timeout,
                **kwargs
            )
            response.raise_for_status()
            return response.json()

        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            raise RoleVerificationError(
                f"Role RPC HTTP error: {status_code}",
                details={'path': path, 'status_code': status_code}
            ) from e

        except requests.exceptions.Timeout as e:
            raise RoleVerificationError(
                "Role RPC timeout",
                details={'path': path}
            ) from e

        except requests.exceptions.RequestException as e:
            raise RoleVerificationError(
                f"Role RPC request error: {e}",
                details={'path': path}
            ) from e

        except ValueError as e:
            raise RoleVerificationError(
                "Role RPC returned a non-JSON payload",
                details={'path': path}
            ) from e

    def _rpc(self, function, **params):
        return self._request('POST', f'rpc/{function}', json=params)

    def is_master(self, user_id):
        return self._rpc('is_master', _user_id=str(user_id))

    def is_tenant_admin(self, user_id, tenant_id=None):
        return self._rpc(
            'is_tenant_admin',
            _user_id=str(user_id),
            _tenant_id=str(tenant_id) if tenant_id else None,
        )

    def has_role(self, user_id, role):
        return self._rpc('has_role', _user_id=str(user_id), _role=role)

    def get_user_roles(self, user_id):
        rows = self._request(
            'GET',
            'user_roles',
            params={'user_id': f'eq.{user_id}', 'select': 'role'},
        )
        if not isinstance(rows, list):
            raise RoleVerificationError(
                "Role RPC returned a malformed role list",
                details={'path': 'user_roles'}
            )
        return [row.get('role') for row in rows if isinstance(row, dict)]


ROLE_FUNCTION_BACKENDS = {
    'database': DatabaseRoleFunctions,
    'remote': RemoteRoleFunctions,
}


def get_role_functions():
    """
    Instantiate the backend named by settings.ROLE_FUNCTIONS_BACKEND.

    Accepts a short name ('database', 'remote') or a dotted import path.
    """
    backend = getattr(settings, 'ROLE_FUNCTIONS_BACKEND', 'database')
    backend_class = ROLE_FUNCTION_BACKENDS.get(backend)
    if backend_class is None:
        backend_class = import_string(backend)
    return backend_class()
