"""
Unit tests for TenantService and RoleService.
"""
import re
from unittest.mock import MagicMock

import pytest

from tenant_access.rbac.errors import ProvisioningPartialFailureError, RoleUpdateError
from tenant_access.rbac.roles import RoleService
from tenant_access.tenants.provisioning import ProvisioningFailure, ProvisioningResult, TenantProvisioner
from tenant_access.tenants.service import TenantService
from tenant_access.utils.document_store import Collections, DocumentStoreError


# =============================================================================
# TenantService
# =============================================================================

class TestCreateTenant:

    def test_creates_and_provisions(self, store):
        service = TenantService(store, TenantProvisioner(store))

        result = service.create_tenant({"name": "Acme"}, actor="ops")

        assert re.fullmatch(r"TENANT\d+[0-9a-f]{8}", result.tenant_id)
        assert result.fully_provisioned
        assert result.provisioning.permissions_copied == 3
        assert result.provisioning.roles_copied == 2
        stored = service.get_tenant(result.tenant_id)
        assert stored["name"] == "Acme"
        assert stored["created"]["by"] == "ops"
        assert stored["account"] == {"is_active": {"value": True, "changes": []}}
        assert len(store.list(Collections.tenant_roles(result.tenant_id))) == 2

    def test_payload_id_is_ignored(self, store):
        service = TenantService(store, TenantProvisioner(store))

        result = service.create_tenant({"id": "chosen", "name": "Acme"})

        assert result.tenant_id != "chosen"

    def test_tenant_survives_provisioning_failure(self, store):
        provisioner = MagicMock()
        provisioner.copy_baseline_to_tenant.side_effect = DocumentStoreError("baseline unavailable")
        service = TenantService(store, provisioner)

        result = service.create_tenant({"name": "Acme"})

        assert result.provisioning is None
        assert "baseline unavailable" in result.provisioning_error
        assert not result.fully_provisioned
        assert service.get_tenant(result.tenant_id)["name"] == "Acme"

    def test_partial_provisioning_is_reported(self, store):
        partial = ProvisioningResult(
            tenant_id="ignored",
            permissions_copied=2,
            roles_copied=2,
            failures=[ProvisioningFailure("tenants/x/permissions", "PERM002", "boom")],
        )
        provisioner = MagicMock()
        provisioner.copy_baseline_to_tenant.side_effect = ProvisioningPartialFailureError(partial)
        service = TenantService(store, provisioner)

        result = service.create_tenant({"name": "Acme"})

        assert result.provisioning is partial
        assert "1 failed write" in result.provisioning_error
        assert service.get_tenant(result.tenant_id) is not None

    def test_tenants_created_back_to_back_get_distinct_ids(self, store, monkeypatch):
        monkeypatch.setattr("tenant_access.tenants.service.time.time", lambda: 1792366699.281)
        service = TenantService(store, TenantProvisioner(store))

        ids = [service.create_tenant({"name": f"Tenant {i}"}).tenant_id for i in range(20)]

        assert len(set(ids)) == 20
        for i, tenant_id in enumerate(ids):
            assert service.get_tenant(tenant_id)["name"] == f"Tenant {i}"

    def test_existing_id_is_not_reused(self, store, monkeypatch):
        ids = iter(["TENANT1taken", "TENANT1taken", "TENANT1fresh"])
        monkeypatch.setattr("tenant_access.tenants.service.new_tenant_id", lambda: next(ids))
        service = TenantService(store, TenantProvisioner(store))

        first = service.create_tenant({"name": "First"})
        second = service.create_tenant({"name": "Second"})

        assert (first.tenant_id, second.tenant_id) == ("TENANT1taken", "TENANT1fresh")
        assert service.get_tenant("TENANT1taken")["name"] == "First"

    def test_payload_must_be_mapping(self, store):
        service = TenantService(store, TenantProvisioner(store))

        with pytest.raises(ValueError):
            service.create_tenant(["not", "a", "dict"])

    def test_unknown_tenant(self, store):
        service = TenantService(store, TenantProvisioner(store))

        assert service.get_tenant("TENANT0") is None


# =============================================================================
# RoleService
# =============================================================================

class TestUpdateRolePermissions:

    def test_update_invalidates_cached_permissions(self, store, deriver):
        service = RoleService(store, deriver)
        assert deriver.derive(["editor"]).permissions == ("lookup.manage", "lookup.read", "role.read")

        updated = service.update_role_permissions("IROLE003", ["role.read", "role.update"], actor="ops")

        assert updated["permissions"] == ["role.read", "role.update"]
        assert updated["updated"]["by"] == "ops"
        assert deriver.derive(["editor"]).permissions == ("role.read", "role.update")

    def test_tenant_role_update(self, store, deriver):
        store.set(Collections.tenant_roles("T1"), "ROLE002", {
            "role_code": "TENANT_USER",
            "permissions": ["tenant.read"],
            "is_system": False,
        })
        service = RoleService(store, deriver)
        assert deriver.derive(["Tenant User"], tenant_id="T1").permissions == ("tenant.read",)

        service.update_role_permissions("ROLE002", ["tenant.*"], tenant_id="T1")

        assert deriver.derive(["Tenant User"], tenant_id="T1").permissions == ("tenant.*",)

    def test_system_role_is_refused(self, store, deriver):
        service = RoleService(store, deriver)

        with pytest.raises(RoleUpdateError):
            service.update_role_permissions("IROLE001", ["tenant.read"])
        assert service.get_role("IROLE001")["permissions"] == ["all.access"]

    def test_unknown_role(self, store, deriver):
        with pytest.raises(RoleUpdateError):
            RoleService(store, deriver).update_role_permissions("NOPE", [])
