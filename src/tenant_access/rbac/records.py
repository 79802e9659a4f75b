"""
Baseline and tenant-scoped permission/role records.

Baseline ("standard") records are read-only templates. Tenant records are
copies of them made at provisioning time and keep the baseline identifier.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Union

DEFAULT_ROLE_PRIORITY = 50


def _permission_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [p for p in value if isinstance(p, str) and p]


@dataclass(frozen=True)
class ActorStamp:
    by: str
    when: str

    def as_dict(self) -> Dict[str, str]:
        return {'by': self.by, 'when': self.when}


@dataclass
class StandardPermissionRecord:
    """Baseline permission group: one module and its actions."""

    id: str
    module: Optional[str] = None
    permissions: List[str] = field(default_factory=list)
    description: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> 'StandardPermissionRecord':
        return cls(
            id=doc['id'],
            module=doc.get('module'),
            permissions=_permission_list(doc.get('permissions')),
            description=doc.get('description'),
        )


@dataclass
class StandardRoleRecord:
    """Baseline role definition."""

    id: str
    role_name: Optional[str] = None
    role_code: Optional[str] = None
    description: Optional[str] = None
    permissions: List[str] = field(default_factory=list)
    is_system: bool = False
    is_active: bool = True
    priority: Union[int, float] = DEFAULT_ROLE_PRIORITY

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> 'StandardRoleRecord':
        priority = doc.get('priority')
        if not isinstance(priority, (int, float)) or isinstance(priority, bool):
            priority = DEFAULT_ROLE_PRIORITY
        is_active = doc.get('is_active')
        return cls(
            id=doc['id'],
            role_name=doc.get('role_name'),
            role_code=doc.get('role_code'),
            description=doc.get('description'),
            permissions=_permission_list(doc.get('permissions')),
            is_system=bool(doc.get('is_system')),
            is_active=True if is_active is None else bool(is_active),
            priority=priority,
        )


@dataclass
class TenantPermissionRecord:
    permission_id: str
    module: Optional[str]
    permissions: List[str]
    description: Optional[str]
    created: ActorStamp
    updated: ActorStamp

    @classmethod
    def copy_of(cls, source: StandardPermissionRecord, stamp: ActorStamp) -> 'TenantPermissionRecord':
        return cls(
            permission_id=source.id,
            module=source.module,
            permissions=list(source.permissions),
            description=source.description,
            created=stamp,
            updated=stamp,
        )

    @property
    def id(self) -> str:
        return self.permission_id

    def to_document(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TenantRoleRecord:
    role_id: str
    role_name: Optional[str]
    role_code: Optional[str]
    description: Optional[str]
    permissions: List[str]
    is_system: bool
    is_active: bool
    priority: Union[int, float]
    created: ActorStamp
    updated: ActorStamp

    @classmethod
    def copy_of(cls, source: StandardRoleRecord, stamp: ActorStamp) -> 'TenantRoleRecord':
        return cls(
            role_id=source.id,
            role_name=source.role_name,
            role_code=source.role_code,
            description=source.description,
            permissions=list(source.permissions),
            is_system=source.is_system,
            is_active=source.is_active,
            priority=source.priority,
            created=stamp,
            updated=stamp,
        )

    @property
    def id(self) -> str:
        return self.role_id

    def to_document(self) -> Dict[str, Any]:
        return asdict(self)
