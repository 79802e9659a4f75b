"""
Authenticated principal - the single value upstream authentication hands to
the authorization layer.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple


class PrincipalKind(str, Enum):
    ADMIN = "admin"
    TENANT_ADMIN = "tenant_admin"
    TENANT_USER = "tenant_user"


ADMIN_TOKEN_TYPES = frozenset({"admin", "internal_admin"})
TENANT_ADMIN_TOKEN_TYPES = frozenset({"tenant_admin"})


@dataclass(frozen=True)
class Principal:
    """
    An authenticated administrator, tenant admin or tenant end-user.

    ``permissions`` is None until claims are known; an empty frozenset means
    "known to hold nothing".
    """

    kind: PrincipalKind
    subject: str
    tenant_id: Optional[str] = None
    role_labels: Tuple[str, ...] = ()
    role_code: Optional[str] = None
    permissions: Optional[FrozenSet[str]] = None
    email: Optional[str] = None

    @property
    def has_claims(self) -> bool:
        return self.permissions is not None

    @property
    def role_inputs(self) -> Tuple[str, ...]:
        """Labels plus the pre-resolved role code, if any, for derivation."""
        if self.role_code and self.role_code not in self.role_labels:
            return self.role_labels + (self.role_code,)
        return self.role_labels

    @property
    def derivation_tenant(self) -> Optional[str]:
        """Tenant whose role records apply; administrators use internal roles."""
        if self.kind == PrincipalKind.ADMIN:
            return None
        return self.tenant_id

    def with_permissions(self, permissions: Iterable[str]) -> 'Principal':
        return replace(self, permissions=frozenset(permissions))

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> 'Principal':
        """
        Build a principal from decoded token claims.

        Recognised claims: type, sub/id/email, tenant_id, roles, role,
        role_code, permissions.
        """
        token_type = str(claims.get('type') or '').lower()
        if token_type in ADMIN_TOKEN_TYPES:
            kind = PrincipalKind.ADMIN
        elif token_type in TENANT_ADMIN_TOKEN_TYPES:
            kind = PrincipalKind.TENANT_ADMIN
        else:
            kind = PrincipalKind.TENANT_USER

        roles = claims.get('roles')
        if isinstance(roles, str):
            roles = [roles]
        if not isinstance(roles, (list, tuple)):
            roles = []
        labels = [r for r in roles if isinstance(r, str) and r]
        single_role = claims.get('role')
        if isinstance(single_role, str) and single_role and single_role not in labels:
            labels.append(single_role)

        permissions = claims.get('permissions')
        if isinstance(permissions, (list, tuple)):
            permissions = frozenset(p for p in permissions if isinstance(p, str) and p)
        else:
            permissions = None

        subject = claims.get('sub') or claims.get('id') or claims.get('email') or 'anonymous'

        return cls(
            kind=kind,
            subject=str(subject),
            tenant_id=claims.get('tenant_id') or claims.get('tenantId'),
            role_labels=tuple(labels),
            role_code=claims.get('role_code'),
            permissions=permissions,
            email=claims.get('email'),
        )
