"""
Tenant creation followed by baseline provisioning.
"""

import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from tenant_access.rbac.errors import ProvisioningPartialFailureError
from tenant_access.tenants.provisioning import ProvisioningResult, TenantProvisioner
from tenant_access.utils.document_store import Collections, DocumentStore
from tenant_access.utils.logging import get_logger

logger = get_logger(__name__)

TENANT_ID_PREFIX = "TENANT"


def new_tenant_id() -> str:
    """TENANT<epoch-ms><8 hex chars>; the suffix separates tenants created in the same millisecond."""
    return f"{TENANT_ID_PREFIX}{int(time.time() * 1000)}{uuid.uuid4().hex[:8]}"


@dataclass
class TenantCreationResult:
    """
    The stored tenant plus what happened when provisioning it.

    ``provisioning`` is set whenever the copier produced a result (including a
    partial one); ``provisioning_error`` holds the failure message, if any.
    """

    tenant: Dict[str, Any]
    provisioning: Optional[ProvisioningResult] = None
    provisioning_error: Optional[str] = None

    @property
    def tenant_id(self) -> str:
        return self.tenant['id']

    @property
    def fully_provisioned(self) -> bool:
        return self.provisioning is not None and self.provisioning_error is None


class TenantService:
    """Creates tenant records and provisions them from the baseline."""

    def __init__(self, store: DocumentStore, provisioner: TenantProvisioner):
        self._store = store
        self.provisioner = provisioner

    def create_tenant(self, payload: Dict[str, Any], actor: str = "system") -> TenantCreationResult:
        """
        Store a new tenant, then copy the baseline permissions and roles into it.

        A provisioning failure is logged and reported on the result; the tenant
        record is kept either way.

        Args:
            payload: Tenant fields (name, contact details, ...)
            actor: Who is creating the tenant

        Returns:
            TenantCreationResult
        """
        if not isinstance(payload, dict):
            raise ValueError("tenant payload must be a mapping")

        tenant_id = new_tenant_id()
        while self._store.get(Collections.TENANTS, tenant_id) is not None:
            tenant_id = new_tenant_id()
        document = {key: value for key, value in payload.items() if key != 'id'}
        document['created'] = {'by': actor, 'when': datetime.now(timezone.utc).isoformat()}
        document.setdefault('account', {'is_active': {'value': True, 'changes': []}})

        tenant = self._store.set(Collections.TENANTS, tenant_id, document)
        logger.info(f"Created tenant '{tenant_id}' by {actor}")

        result = TenantCreationResult(tenant=tenant)
        try:
            result.provisioning = self.provisioner.copy_baseline_to_tenant(tenant_id, actor=actor)
        except ProvisioningPartialFailureError as exc:
            logger.warning(f"Tenant '{tenant_id}' created but provisioning was incomplete: {exc}")
            result.provisioning = exc.result
            result.provisioning_error = str(exc)
        except Exception as exc:
            logger.error(f"Tenant '{tenant_id}' created but provisioning failed: {exc}")
            result.provisioning_error = str(exc)

        return result

    def get_tenant(self, tenant_id: str) -> Optional[Dict[str, Any]]:
        return self._store.get(Collections.TENANTS, tenant_id)
