"""
RBAC Permission Enum - well-known permission strings.

Permissions use the ``module.action`` format. Each inner class is a str Enum,
so members compare equal to their string values and can be passed anywhere a
plain string is expected.

Usage:
    from tenant_access.rbac.permission_enum import Permission

    @check_permissions(Permission.Tenant.READ)
    def get_tenant(tenant_id): ...
"""

from enum import Enum

# Reserved tokens granting every permission
WILDCARD = "*"
ALL_ACCESS = "all.access"
GLOBAL_PERMISSIONS = frozenset({WILDCARD, ALL_ACCESS})

NAMESPACE_SEPARATOR = "."
NAMESPACE_WILDCARD_SUFFIX = ".*"


class Permission:
    """Namespace for well-known permission strings, grouped by module."""

    ALL_ACCESS = ALL_ACCESS

    class Admin(str, Enum):
        CREATE = "admin.create"
        READ = "admin.read"
        UPDATE = "admin.update"
        DELETE = "admin.delete"
        MANAGE = "admin.manage"

    class Role(str, Enum):
        CREATE = "role.create"
        READ = "role.read"
        UPDATE = "role.update"
        DELETE = "role.delete"

    class RoleMapping(str, Enum):
        READ = "rolemapping.read"
        UPDATE = "rolemapping.update"

    class Tenant(str, Enum):
        CREATE = "tenant.create"
        READ = "tenant.read"
        UPDATE = "tenant.update"
        DELETE = "tenant.delete"
        MANAGE = "tenant.manage"

    class Lookup(str, Enum):
        READ = "lookup.read"
        MANAGE = "lookup.manage"


def namespace_of(permission: str) -> str:
    """Return the module part of ``module.action`` ('' when there is none)."""
    dot = permission.find(NAMESPACE_SEPARATOR)
    return permission[:dot] if dot > 0 else ""
