"""Shared fixtures for tenant-access tests."""
import pytest

from tenant_access.rbac.cache import PermissionCache
from tenant_access.rbac.derivation import PermissionDeriver
from tenant_access.rbac.role_mappings import RoleMappingRegistry
from tenant_access.utils.document_store import Collections, InMemoryDocumentStore


BASELINE_PERMISSIONS = {
    "PERM001": {"module": "tenant", "permissions": ["tenant.read", "tenant.update"], "description": "Tenants"},
    "PERM002": {"module": "role", "permissions": ["role.read", "role.update"], "description": "Roles"},
    "PERM003": {"module": "lookup", "permissions": ["lookup.read"], "description": "Lookups"},
}

BASELINE_ROLES = {
    "ROLE001": {
        "role_name": "Tenant Admin",
        "role_code": "TENANT_ADMIN",
        "permissions": ["tenant.*", "role.read"],
        "is_system": True,
        "is_active": True,
        "priority": 10,
    },
    "ROLE002": {
        "role_name": "Tenant User",
        "role_code": "TENANT_USER",
        "permissions": ["tenant.read", "lookup.read"],
        "is_system": False,
        "is_active": True,
        "priority": 90,
    },
}

INTERNAL_ROLES = {
    "IROLE001": {"role_code": "INTERNAL_ROOT_ADMIN", "permissions": ["all.access"], "is_system": True},
    "IROLE002": {"role_code": "ADMIN", "permissions": ["tenant.read", "role.read", "role.update"]},
    "IROLE003": {"role_code": "EDITOR", "permissions": ["role.read", "lookup.read", "lookup.manage"]},
    "IROLE004": {"role_code": "LOOKUP_MANAGER", "permissions": ["lookup.*"], "is_system": False},
}


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    """In-memory store seeded with baseline and internal role data."""
    return InMemoryDocumentStore({
        Collections.STANDARD_PERMISSIONS: BASELINE_PERMISSIONS,
        Collections.STANDARD_ROLES: BASELINE_ROLES,
        Collections.INTERNAL_ROLES: INTERNAL_ROLES,
    })


@pytest.fixture
def registry(tmp_path, monkeypatch):
    """Registry backed by a temp file that does not exist yet (defaults + test labels)."""
    monkeypatch.delenv("ROLE_MAPPINGS", raising=False)
    reg = RoleMappingRegistry(str(tmp_path / "role_mappings.yaml"))
    reg.initialize()
    reg.add_mapping("admin", "ADMIN")
    reg.add_mapping("editor", "EDITOR")
    return reg


@pytest.fixture
def cache(clock):
    return PermissionCache(clock=clock)


@pytest.fixture
def deriver(registry, cache, store):
    return PermissionDeriver(registry, cache, store)
