"""
Permission Derivation - role labels to a flattened permission set

Each label is mapped to a role code through the RoleMappingRegistry (unmapped
labels pass through as codes), each code's permissions are read through the
PermissionCache, and the union is returned. A code with no backing record
contributes nothing; it is reported in the result rather than raised.
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Set, Tuple

from tenant_access.rbac.cache import PermissionCache
from tenant_access.rbac.errors import DerivationLookupError, PermissionCheckSystemError
from tenant_access.rbac.role_mappings import RoleMappingRegistry
from tenant_access.rbac.sources import RolePermissionSource
from tenant_access.utils.document_store import DocumentStore
from tenant_access.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class DerivationResult:
    """
    Outcome of one derivation.

    Attributes:
        permissions: Sorted, deduplicated permissions
        role_codes: Codes the labels resolved to, in first-seen order
        resolved_roles: Codes that had a permission record
        unresolved_roles: Codes without a record (contributed nothing)
    """

    permissions: Tuple[str, ...] = ()
    role_codes: Tuple[str, ...] = ()
    resolved_roles: Tuple[str, ...] = ()
    unresolved_roles: Tuple[str, ...] = ()

    @property
    def is_partial(self) -> bool:
        return bool(self.unresolved_roles)

    @property
    def summary(self) -> str:
        return f"resolved {len(self.resolved_roles)} of {len(self.role_codes)} roles"

    def as_list(self) -> List[str]:
        return list(self.permissions)


class PermissionDeriver:
    """
    Resolves role labels into permissions.

    Example:
        >>> deriver = PermissionDeriver(registry, PermissionCache(), store)
        >>> deriver.derive(["Tenant Admin", "Lookup Manager"]).permissions
        ('lookup.manage', 'tenant.*')
    """

    def __init__(self, registry: RoleMappingRegistry, cache: PermissionCache, store: DocumentStore):
        self.registry = registry
        self.cache = cache
        self._store = store

    def source_for(self, tenant_id: Optional[str] = None) -> RolePermissionSource:
        if tenant_id:
            return RolePermissionSource.for_tenant(self._store, tenant_id)
        return RolePermissionSource(self._store)

    def resolve_role_code(self, role_label: str) -> str:
        """Map a label to its code; unmapped labels are treated as codes already."""
        return self.registry.get_mapping(role_label) or role_label

    def permissions_for_code(self, role_code: str, tenant_id: Optional[str] = None) -> FrozenSet[str]:
        """
        Permissions of one role code, through the cache.

        Raises:
            DerivationLookupError: If the role has no record
            PermissionCheckSystemError: If the source of truth cannot be read
        """
        source = self.source_for(tenant_id)
        key = source.cache_key(role_code)

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            permissions = source.get_permissions(role_code)
        except DerivationLookupError:
            raise
        except Exception as exc:
            logger.error(f"Permission lookup for role '{role_code}' failed: {exc}")
            raise PermissionCheckSystemError(f"Could not read permissions for role '{role_code}'") from exc

        return self.cache.set(key, permissions).permissions

    def derive(self, role_labels: Optional[Iterable[str]], tenant_id: Optional[str] = None) -> DerivationResult:
        """
        Derive the union of permissions granted by the given role labels.

        Args:
            role_labels: Role labels (or codes) held by the principal
            tenant_id: Read tenant-scoped role records instead of internal ones

        Returns:
            DerivationResult; never raises for unknown labels or missing records

        Raises:
            PermissionCheckSystemError: If the source of truth is unreachable
        """
        if not role_labels:
            return DerivationResult()

        try:
            self.registry.initialize()
        except Exception as exc:
            logger.warning(f"Role mapping registry unavailable, continuing with current state: {exc}")

        role_codes: List[str] = []
        for label in role_labels:
            if not label or not isinstance(label, str):
                continue
            code = self.resolve_role_code(label)
            if code not in role_codes:
                role_codes.append(code)

        permissions: Set[str] = set()
        resolved: List[str] = []
        unresolved: List[str] = []
        for code in role_codes:
            try:
                permissions.update(self.permissions_for_code(code, tenant_id=tenant_id))
            except DerivationLookupError:
                logger.debug(f"No permission record for role code '{code}', skipping")
                unresolved.append(code)
                continue
            resolved.append(code)

        result = DerivationResult(
            permissions=tuple(sorted(permissions)),
            role_codes=tuple(role_codes),
            resolved_roles=tuple(resolved),
            unresolved_roles=tuple(unresolved),
        )
        if result.is_partial:
            logger.info(f"Permission derivation {result.summary}; unresolved: {list(unresolved)}")
        return result

    def derive_permissions(self, role_labels: Optional[Iterable[str]], tenant_id: Optional[str] = None) -> List[str]:
        return self.derive(role_labels, tenant_id=tenant_id).as_list()

    def invalidate_role(self, role_code: Optional[str] = None, tenant_id: Optional[str] = None) -> int:
        """Drop cached permissions for one role code, or everything when role_code is None."""
        if role_code is None:
            return self.cache.invalidate()
        return self.cache.invalidate(self.source_for(tenant_id).cache_key(role_code))
