"""
Role permission administration.

Editing a role's permission list drops that role's cache entry so new
requests see the change before the cache TTL runs out.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from tenant_access.rbac.derivation import PermissionDeriver
from tenant_access.rbac.errors import RoleUpdateError
from tenant_access.rbac.matcher import normalize_required
from tenant_access.utils.document_store import Collections, DocumentStore
from tenant_access.utils.logging import get_logger

logger = get_logger(__name__)


class RoleService:
    def __init__(self, store: DocumentStore, deriver: PermissionDeriver):
        self._store = store
        self._deriver = deriver

    @staticmethod
    def _collection(tenant_id: Optional[str]) -> str:
        if tenant_id:
            return Collections.tenant_roles(tenant_id)
        return Collections.INTERNAL_ROLES

    def get_role(self, role_id: str, tenant_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        return self._store.get(self._collection(tenant_id), role_id)

    def update_role_permissions(
        self,
        role_id: str,
        permissions: Iterable[str],
        actor: str = "system",
        tenant_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Replace a role's permission list.

        Args:
            role_id: Document id of the role
            permissions: New permission list
            actor: Recorded as ``updated.by``
            tenant_id: Edit the tenant's copy instead of the internal role

        Returns:
            The updated role document

        Raises:
            RoleUpdateError: If the role does not exist or is a system role
        """
        collection = self._collection(tenant_id)
        role = self._store.get(collection, role_id)
        if role is None:
            raise RoleUpdateError(f"Role '{role_id}' not found in {collection}")
        if role.get('is_system'):
            raise RoleUpdateError(f"System role '{role_id}' cannot be modified")

        new_permissions = list(normalize_required(list(permissions)))
        updated = self._store.set(
            collection,
            role_id,
            {
                'permissions': new_permissions,
                'updated': {'by': actor, 'when': datetime.now(timezone.utc).isoformat()},
            },
            merge=True,
        )

        role_code = role.get('role_code')
        if role_code:
            self._deriver.invalidate_role(role_code, tenant_id=tenant_id)
        logger.info(
            f"Updated permissions of role '{role_id}' ({role_code}) by {actor}: {len(new_permissions)} permission(s)"
        )
        return updated
