"""
RBAC Decorators - Route protection decorators for Flask endpoints

Both decorators read the authenticated Principal from ``flask.g.principal``.
Claims already carried by the principal are used as-is; otherwise they are
derived once from its role labels and stored back on ``g.principal``.

On every check ``g.authorization`` holds the AuthorizationDecision. On a grant
``g.permissions`` holds the principal's sorted permission list.
"""

from functools import wraps
from typing import Any, Callable, FrozenSet, Optional

from flask import g, jsonify, request

from tenant_access.rbac.access import get_access_control
from tenant_access.rbac.audit import log_permission_check
from tenant_access.rbac.errors import PermissionCheckSystemError
from tenant_access.rbac.matcher import DecisionMode, evaluate, normalize_required
from tenant_access.rbac.principal import Principal
from tenant_access.utils.logging import get_logger

logger = get_logger(__name__)


def get_current_principal() -> Optional[Principal]:
    return getattr(g, 'principal', None)


def resolve_claims(principal: Optional[Principal]) -> FrozenSet[str]:
    """
    Permission claims of the principal, deriving them from roles if needed.

    Raises:
        PermissionCheckSystemError: If derivation could not read the source of truth
    """
    if principal is None:
        return frozenset()
    if principal.has_claims:
        return principal.permissions

    deriver = get_access_control().deriver
    result = deriver.derive(principal.role_inputs, tenant_id=principal.derivation_tenant)
    g.derivation = result
    g.principal = principal.with_permissions(result.permissions)
    return g.principal.permissions


def _authorize(mode: DecisionMode, required, view: Callable, args, kwargs) -> Any:
    principal = get_current_principal()
    user = principal.subject if principal else 'anonymous'
    roles = list(principal.role_labels) if principal else []
    expression = f"{mode.value}({','.join(required)})"

    try:
        claims = resolve_claims(principal)
    except PermissionCheckSystemError as exc:
        logger.error(f"Permission check for {user} on {request.endpoint} failed: {exc}")
        body, status = exc.to_response()
        return jsonify(body), status

    decision = evaluate(mode, claims, required)
    g.authorization = decision

    log_permission_check(
        user=user,
        permission=expression,
        granted=decision.granted,
        endpoint=request.endpoint,
        roles=roles,
        missing=list(decision.missing) if mode == DecisionMode.ALL else None,
        extra={'reason': decision.reason.value},
    )

    if not decision.granted:
        body, status = decision.to_error().to_response()
        return jsonify(body), status

    g.permissions = sorted(claims)
    return view(*args, **kwargs)


def check_permissions(*required) -> Callable:
    """
    Decorator that requires ANY ONE of the specified permissions.

    Usage:
        @app.route('/api/tenants')
        @check_permissions('tenant.read', 'tenant.manage')
        def list_tenants():
            ...
    """
    permissions = normalize_required(*required)

    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            return _authorize(DecisionMode.ANY, permissions, f, args, kwargs)

        return decorated_function

    return decorator


def check_all_permissions(*required) -> Callable:
    """
    Decorator that requires ALL of the specified permissions.

    A denial names the specific missing permissions. A principal with no
    permissions at all gets the dedicated "no permissions assigned" error.

    Usage:
        @app.route('/api/roles/<role_id>', methods=['PUT'])
        @check_all_permissions(Permission.Role.READ, Permission.Role.UPDATE)
        def update_role(role_id):
            ...
    """
    permissions = normalize_required(*required)

    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            return _authorize(DecisionMode.ALL, permissions, f, args, kwargs)

        return decorated_function

    return decorator
