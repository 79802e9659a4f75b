"""
Tenant Provisioning - copy the baseline permissions and roles into a tenant.

Every baseline record is written to the tenant-scoped collection under its
original identifier. Writes are issued in parallel and all of them are
awaited before the result is returned.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from tenant_access.rbac.audit import log_provisioning
from tenant_access.rbac.errors import ProvisioningPartialFailureError
from tenant_access.rbac.records import (
    ActorStamp,
    StandardPermissionRecord,
    StandardRoleRecord,
    TenantPermissionRecord,
    TenantRoleRecord,
)
from tenant_access.utils.document_store import Collections, DocumentStore
from tenant_access.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PROVISIONING_WORKERS = 8


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ProvisioningFailure:
    collection: str
    record_id: str
    error: str


@dataclass
class ProvisioningResult:
    """
    Counts of tenant-scoped records written.

    ``permissions_copied`` and ``roles_copied`` count successful writes only;
    anything that failed is listed in ``failures``.
    """

    tenant_id: str
    permissions_copied: int = 0
    roles_copied: int = 0
    failures: List[ProvisioningFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failures

    def as_dict(self) -> Dict[str, object]:
        return {
            'tenant_id': self.tenant_id,
            'permissions_copied': self.permissions_copied,
            'roles_copied': self.roles_copied,
            'failures': [
                {'collection': f.collection, 'record_id': f.record_id, 'error': f.error}
                for f in self.failures
            ],
        }


class TenantProvisioner:
    """
    Copies ``standard_permissions`` and ``standard_roles`` into
    ``tenants/{tenant_id}/permissions`` and ``tenants/{tenant_id}/roles``.

    Args:
        store: Document store holding both baseline and tenant collections
        max_workers: Upper bound on concurrent writes
        clock: Returns the ISO timestamp stamped on copies (injectable for tests)
    """

    def __init__(
        self,
        store: DocumentStore,
        max_workers: int = DEFAULT_PROVISIONING_WORKERS,
        clock: Optional[Callable[[], str]] = None,
    ):
        self._store = store
        self.max_workers = max(1, max_workers)
        self._clock = clock or _utc_now

    def _read_baseline(self) -> Tuple[List[StandardPermissionRecord], List[StandardRoleRecord]]:
        permissions = [
            StandardPermissionRecord.from_document(doc)
            for doc in self._store.list(Collections.STANDARD_PERMISSIONS)
        ]
        roles = [
            StandardRoleRecord.from_document(doc)
            for doc in self._store.list(Collections.STANDARD_ROLES)
        ]
        return permissions, roles

    def copy_baseline_to_tenant(self, tenant_id: str, actor: str = "system") -> ProvisioningResult:
        """
        Write tenant-scoped copies of every baseline permission and role.

        Args:
            tenant_id: Tenant to provision
            actor: Recorded as ``created.by`` / ``updated.by`` on every copy

        Returns:
            ProvisioningResult with both counts equal to the baseline sizes

        Raises:
            ValueError: If tenant_id is empty
            DocumentStoreError: If a baseline collection cannot be read
            ProvisioningPartialFailureError: If any tenant-scoped write failed;
                the partial result is attached as ``.result``
        """
        if not tenant_id:
            raise ValueError("tenant_id is required for provisioning")

        permissions, roles = self._read_baseline()
        logger.info(
            f"Provisioning tenant '{tenant_id}': {len(permissions)} permissions, {len(roles)} roles"
        )

        stamp = ActorStamp(by=actor, when=self._clock())
        permission_collection = Collections.tenant_permissions(tenant_id)
        role_collection = Collections.tenant_roles(tenant_id)

        writes = [
            (permission_collection, TenantPermissionRecord.copy_of(p, stamp))
            for p in permissions
        ] + [
            (role_collection, TenantRoleRecord.copy_of(r, stamp))
            for r in roles
        ]

        result = ProvisioningResult(tenant_id=tenant_id)
        if writes:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(writes))) as executor:
                futures = {
                    executor.submit(self._store.set, collection, record.id, record.to_document(), True):
                        (collection, record.id)
                    for collection, record in writes
                }
                for future in as_completed(futures):
                    collection, record_id = futures[future]
                    try:
                        future.result()
                    except Exception as exc:
                        logger.error(f"Failed to write {collection}/{record_id}: {exc}")
                        result.failures.append(ProvisioningFailure(collection, record_id, str(exc)))
                        continue
                    if collection == permission_collection:
                        result.permissions_copied += 1
                    else:
                        result.roles_copied += 1

        log_provisioning(
            tenant_id,
            actor,
            result.permissions_copied,
            result.roles_copied,
            failed_ids=[f"{f.collection}/{f.record_id}" for f in result.failures],
        )

        if result.failures:
            raise ProvisioningPartialFailureError(result)
        return result
