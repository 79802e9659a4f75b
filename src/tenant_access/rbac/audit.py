"""
RBAC Audit Logging - Security event logging for access control

Records permission decisions, role-mapping edits and tenant provisioning
outcomes on a dedicated audit logger.
"""

import json
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from tenant_access.utils.logging import get_logger

# Dedicated audit logger
audit_logger = get_logger('rbac.audit')


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def log_permission_check(
    user: str,
    permission: str,
    granted: bool,
    endpoint: Optional[str],
    roles: List[str],
    missing: Optional[List[str]] = None,
    extra: Optional[dict] = None
) -> None:
    """
    Log a permission check event for audit trail.

    Args:
        user: Subject of the principal (or 'anonymous')
        permission: Permission expression being checked, e.g. "any(a.read,b.read)"
        granted: Whether access was granted
        endpoint: Flask endpoint name
        roles: Principal's role labels
        missing: Permissions that were missing (if denied)
        extra: Additional context information
    """
    result = 'GRANTED' if granted else 'DENIED'

    log_entry = {
        'timestamp': _now(),
        'user': user,
        'permission': permission,
        'result': result,
        'endpoint': endpoint,
        'roles': roles,
    }

    if missing:
        log_entry['missing_permissions'] = missing

    if extra:
        log_entry.update(extra)

    log_message = f"{user} | {permission} | {result} | {endpoint} | roles: {roles}"

    if granted:
        audit_logger.debug(log_message)
    else:
        audit_logger.warning(log_message)
        audit_logger.info(f"AUDIT: {json.dumps(log_entry)}")


def log_mapping_change(
    action: str,
    role_label: str,
    role_code: Optional[str] = None,
    actor: str = 'system'
) -> None:
    """
    Log an add/remove/save/reset of the role mapping registry.

    Args:
        action: 'add', 'remove', 'save', 'reload' or 'reset'
        role_label: Label affected (empty for whole-registry actions)
        role_code: Code the label maps to, when relevant
        actor: Who made the change
    """
    log_entry = {
        'timestamp': _now(),
        'event': 'role_mapping_change',
        'action': action,
        'role_label': role_label,
        'role_code': role_code,
        'actor': actor,
    }

    audit_logger.info(f"MAPPING | {action} | {role_label or '*'} -> {role_code or '-'} | by: {actor}")
    audit_logger.debug(f"AUDIT: {json.dumps(log_entry)}")


def log_provisioning(
    tenant_id: str,
    actor: str,
    permissions_copied: int,
    roles_copied: int,
    failed_ids: Iterable[str] = ()
) -> None:
    """
    Log the outcome of copying baseline permissions and roles into a tenant.
    """
    failed = list(failed_ids)
    log_entry = {
        'timestamp': _now(),
        'event': 'tenant_provisioning',
        'tenant_id': tenant_id,
        'actor': actor,
        'permissions_copied': permissions_copied,
        'roles_copied': roles_copied,
        'failed': failed,
    }

    log_message = (
        f"PROVISION | {tenant_id} | permissions: {permissions_copied} | "
        f"roles: {roles_copied} | by: {actor}"
    )

    if failed:
        audit_logger.warning(f"{log_message} | failed: {failed}")
        audit_logger.info(f"AUDIT: {json.dumps(log_entry)}")
    else:
        audit_logger.info(log_message)
        audit_logger.debug(f"AUDIT: {json.dumps(log_entry)}")
