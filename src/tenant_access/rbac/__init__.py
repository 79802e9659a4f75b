"""
Role-based access control: role mappings, permission derivation and matching.

The Flask layer lives in ``tenant_access.rbac.access`` and
``tenant_access.rbac.decorators`` and is imported from there directly.
"""

from tenant_access.rbac.cache import PERMISSION_CACHE_TTL, PermissionCache
from tenant_access.rbac.derivation import DerivationResult, PermissionDeriver
from tenant_access.rbac.errors import (
    AccessControlError,
    AuthenticationError,
    DerivationLookupError,
    InsufficientPermissionsError,
    NoClaimsError,
    PermissionCheckSystemError,
    ProvisioningPartialFailureError,
    RegistryPersistenceError,
    RegistryUnavailableError,
    RoleUpdateError,
)
from tenant_access.rbac.matcher import (
    AuthorizationDecision,
    DecisionMode,
    evaluate_all,
    evaluate_any,
    match_permission,
)
from tenant_access.rbac.permission_enum import ALL_ACCESS, WILDCARD, Permission
from tenant_access.rbac.principal import Principal, PrincipalKind
from tenant_access.rbac.role_mappings import DEFAULT_ROLE_MAPPINGS, RoleMappingRegistry

__all__ = [
    'PERMISSION_CACHE_TTL',
    'PermissionCache',
    'DerivationResult',
    'PermissionDeriver',
    'AccessControlError',
    'AuthenticationError',
    'DerivationLookupError',
    'InsufficientPermissionsError',
    'NoClaimsError',
    'PermissionCheckSystemError',
    'ProvisioningPartialFailureError',
    'RegistryPersistenceError',
    'RegistryUnavailableError',
    'RoleUpdateError',
    'AuthorizationDecision',
    'DecisionMode',
    'evaluate_all',
    'evaluate_any',
    'match_permission',
    'ALL_ACCESS',
    'WILDCARD',
    'Permission',
    'Principal',
    'PrincipalKind',
    'DEFAULT_ROLE_MAPPINGS',
    'RoleMappingRegistry',
]
