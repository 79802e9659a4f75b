"""
Authorization Matcher - ANY-of / ALL-of decisions over permission claims

Matching rules, in order:
- a granted ``*`` or ``all.access`` satisfies everything
- a granted permission satisfies an identical required permission
- a granted ``module.*`` satisfies any required ``module.<action>``
No other wildcard forms exist.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, FrozenSet, Iterable, List, Optional, Tuple

from tenant_access.rbac.errors import AccessDeniedError, InsufficientPermissionsError, NoClaimsError
from tenant_access.rbac.permission_enum import GLOBAL_PERMISSIONS, NAMESPACE_WILDCARD_SUFFIX, namespace_of


class DecisionMode(str, Enum):
    ANY = "any"
    ALL = "all"


class DecisionReason(str, Enum):
    GLOBAL = "global"
    MATCHED = "matched"
    NOTHING_REQUIRED = "nothing_required"
    NO_CLAIMS = "no_claims"
    INSUFFICIENT = "insufficient"


@dataclass(frozen=True)
class AuthorizationDecision:
    """
    Result of one authorization check.

    ``missing`` lists required permissions that no claim satisfied (in required
    order). It never mentions claims the principal holds.
    """

    granted: bool
    mode: DecisionMode
    reason: DecisionReason
    required: Tuple[str, ...] = ()
    matched_permissions: FrozenSet[str] = field(default_factory=frozenset)
    missing: Tuple[str, ...] = ()

    def to_error(self) -> Optional[AccessDeniedError]:
        """The structured denial for this decision, or None when granted."""
        if self.granted:
            return None
        if self.reason == DecisionReason.NO_CLAIMS:
            return NoClaimsError(self.required, all_of=self.mode == DecisionMode.ALL)
        if self.mode == DecisionMode.ALL:
            return InsufficientPermissionsError(self.required, missing=self.missing)
        return InsufficientPermissionsError(self.required)


def _as_permission(value: Any) -> str:
    if isinstance(value, Enum):
        value = value.value
    return value if isinstance(value, str) else ""


def normalize_permissions(permissions: Optional[Iterable[Any]]) -> FrozenSet[str]:
    """Turn any iterable of claims into a set of non-empty strings."""
    if not permissions:
        return frozenset()
    if isinstance(permissions, (str, Enum)):
        permissions = [permissions]
    return frozenset(p for p in (_as_permission(v) for v in permissions) if p)


def normalize_required(*required: Any) -> Tuple[str, ...]:
    """
    Flatten decorator arguments into an ordered, deduplicated tuple.

    Accepts ``("a.read", "b.read")`` as well as ``(["a.read", "b.read"],)``.
    """
    if len(required) == 1 and isinstance(required[0], (list, tuple, set, frozenset)):
        required = tuple(required[0])

    ordered: List[str] = []
    for value in required:
        permission = _as_permission(value)
        if permission and permission not in ordered:
            ordered.append(permission)
    return tuple(ordered)


def match_permission(required: str, granted: str) -> bool:
    """True if the granted claim satisfies the required permission."""
    if not required or not granted:
        return False
    if granted in GLOBAL_PERMISSIONS:
        return True
    if required == granted:
        return True
    namespace = namespace_of(required)
    return bool(namespace) and granted == namespace + NAMESPACE_WILDCARD_SUFFIX


def is_satisfied(required: str, granted: Iterable[str]) -> bool:
    return any(match_permission(required, g) for g in granted)


def has_global_permission(granted: Iterable[str]) -> bool:
    return any(g in GLOBAL_PERMISSIONS for g in granted)


def _required_tuple(required: Any) -> Tuple[str, ...]:
    if isinstance(required, (str, Enum)):
        return normalize_required(required)
    return normalize_required(tuple(required or ()))


def _matched_claims(required: Tuple[str, ...], granted: FrozenSet[str]) -> FrozenSet[str]:
    return frozenset(g for g in granted if any(match_permission(r, g) for r in required))


def evaluate_any(granted: Optional[Iterable[Any]], required: Iterable[Any]) -> AuthorizationDecision:
    """
    ANY-of: at least one required permission must be satisfied.

    Nothing required is vacuously granted, even without claims.
    """
    claims = normalize_permissions(granted)
    needed = _required_tuple(required)
    mode = DecisionMode.ANY

    if not needed:
        return AuthorizationDecision(True, mode, DecisionReason.NOTHING_REQUIRED)

    if not claims:
        return AuthorizationDecision(False, mode, DecisionReason.NO_CLAIMS, required=needed, missing=needed)

    if has_global_permission(claims):
        return AuthorizationDecision(
            True, mode, DecisionReason.GLOBAL, required=needed,
            matched_permissions=claims & GLOBAL_PERMISSIONS,
        )

    if any(is_satisfied(r, claims) for r in needed):
        return AuthorizationDecision(
            True, mode, DecisionReason.MATCHED, required=needed,
            matched_permissions=_matched_claims(needed, claims),
        )

    return AuthorizationDecision(False, mode, DecisionReason.INSUFFICIENT, required=needed, missing=needed)


def evaluate_all(granted: Optional[Iterable[Any]], required: Iterable[Any]) -> AuthorizationDecision:
    """
    ALL-of: every required permission must be satisfied.

    A principal without any claims is always denied with the dedicated
    no-permissions error.
    """
    claims = normalize_permissions(granted)
    needed = _required_tuple(required)
    mode = DecisionMode.ALL

    if not claims:
        return AuthorizationDecision(False, mode, DecisionReason.NO_CLAIMS, required=needed, missing=needed)

    if has_global_permission(claims):
        return AuthorizationDecision(
            True, mode, DecisionReason.GLOBAL, required=needed,
            matched_permissions=claims & GLOBAL_PERMISSIONS,
        )

    if not needed:
        return AuthorizationDecision(True, mode, DecisionReason.NOTHING_REQUIRED)

    missing = tuple(r for r in needed if not is_satisfied(r, claims))
    if missing:
        return AuthorizationDecision(
            False, mode, DecisionReason.INSUFFICIENT, required=needed,
            matched_permissions=_matched_claims(needed, claims), missing=missing,
        )

    return AuthorizationDecision(
        True, mode, DecisionReason.MATCHED, required=needed,
        matched_permissions=_matched_claims(needed, claims),
    )


def evaluate(mode: DecisionMode, granted: Optional[Iterable[Any]], required: Iterable[Any]) -> AuthorizationDecision:
    if mode == DecisionMode.ALL:
        return evaluate_all(granted, required)
    return evaluate_any(granted, required)
