"""
Permission source of truth - role documents keyed by role code.

Outside tenant context roles are read from ``internal_roles``; in tenant
context from ``tenants/{tenant_id}/roles`` (the provisioned copies).
"""

from typing import Any, Dict, List, Optional

from tenant_access.rbac.errors import DerivationLookupError
from tenant_access.rbac.records import StandardRoleRecord
from tenant_access.utils.document_store import Collections, DocumentStore


class RolePermissionSource:
    """Reads the permission list of a role by its code."""

    def __init__(self, store: DocumentStore, collection: str = Collections.INTERNAL_ROLES,
                 tenant_id: Optional[str] = None):
        self._store = store
        self.collection = collection
        self.tenant_id = tenant_id

    @classmethod
    def for_tenant(cls, store: DocumentStore, tenant_id: str) -> 'RolePermissionSource':
        return cls(store, Collections.tenant_roles(tenant_id), tenant_id=tenant_id)

    def cache_key(self, role_code: str) -> str:
        """Cache key for a role code, scoped by tenant when applicable."""
        if self.tenant_id:
            return f"permissions:{self.tenant_id}:{role_code}"
        return f"permissions:{role_code}"

    def find_role(self, role_code: str) -> Optional[Dict[str, Any]]:
        return self._store.find_one(self.collection, 'role_code', role_code)

    def get_permissions(self, role_code: str) -> List[str]:
        """
        Permission list of the role with this code.

        Raises:
            DerivationLookupError: If no role document has this code
            DocumentStoreError: If the store cannot be read
        """
        doc = self.find_role(role_code)
        if doc is None:
            raise DerivationLookupError(role_code)
        return StandardRoleRecord.from_document(doc).permissions
