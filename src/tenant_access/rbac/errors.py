"""
RBAC error taxonomy.

Denial errors (NoClaimsError, InsufficientPermissionsError) never escape the
authorization decorators; they are rendered into structured JSON responses via
``to_response()``. Registry and derivation lookup errors are recovered where
they occur. Provisioning and system errors propagate to the immediate caller.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple

NO_PERMISSIONS_MESSAGE = (
    "Access denied: You do not have any permissions assigned to your account. "
    "Please contact your administrator to have the necessary permissions granted."
)
CONTACT_ADMIN_SUGGESTION = "Please contact your administrator to request the necessary permissions."


class AccessControlError(Exception):
    """Base class for all tenant-access errors."""
    pass


class AccessDeniedError(AccessControlError):
    """A permission check produced a denial."""

    status_code = 403
    error_code = "ACCESS_DENIED"

    def __init__(self, message: str, required: Iterable[str] = ()):
        super().__init__(message)
        self.message = message
        self.required: List[str] = list(required)

    def to_response(self) -> Tuple[Dict[str, Any], int]:
        return {
            'success': False,
            'error': self.message,
            'required': self.required,
            'status': self.status_code,
        }, self.status_code


class NoClaimsError(AccessDeniedError):
    """
    The principal holds no permissions at all.

    ANY-of checks report the generic "Insufficient permissions" body; ALL-of
    checks (``all_of=True``) report the dedicated no-permissions message.
    """

    error_code = "NO_PERMISSIONS_ASSIGNED"

    def __init__(self, required: Iterable[str] = (), all_of: bool = False):
        message = NO_PERMISSIONS_MESSAGE if all_of else "Insufficient permissions"
        super().__init__(message, required)
        self.all_of = all_of

    def to_response(self) -> Tuple[Dict[str, Any], int]:
        if not self.all_of:
            return super().to_response()
        return {
            'success': False,
            'error': {
                'code': self.error_code,
                'message': self.message,
            },
            'required': self.required,
            'status': self.status_code,
        }, self.status_code


class InsufficientPermissionsError(AccessDeniedError):
    """
    Required permissions were not satisfied.

    For ANY-of checks ``missing`` is None and only the required list is reported.
    For ALL-of checks ``missing`` holds exactly the unsatisfied subset.
    """

    error_code = "INSUFFICIENT_PERMISSIONS"

    def __init__(self, required: Iterable[str], missing: Optional[Iterable[str]] = None):
        super().__init__("Insufficient permissions", required)
        self.missing: Optional[List[str]] = list(missing) if missing is not None else None

    def to_response(self) -> Tuple[Dict[str, Any], int]:
        if self.missing is None:
            return super().to_response()
        return {
            'success': False,
            'error': {
                'code': self.error_code,
                'message': "Access denied: You do not have the required permissions to perform this action.",
                'details': {
                    'required': self.required,
                    'missing': self.missing,
                    'suggestion': CONTACT_ADMIN_SUGGESTION,
                },
            },
            'status': self.status_code,
        }, self.status_code


class AuthenticationError(AccessControlError):
    """No usable bearer token was presented."""

    status_code = 401
    error_code = "AUTHENTICATION_FAILED"

    def to_response(self) -> Tuple[Dict[str, Any], int]:
        return {
            'success': False,
            'error': {
                'code': self.error_code,
                'message': f"Authentication failed: {self}",
            },
            'status': self.status_code,
        }, self.status_code


class PermissionCheckSystemError(AccessControlError):
    """The system could not determine whether access is allowed."""

    status_code = 500
    error_code = "PERMISSION_CHECK_FAILED"

    def to_response(self) -> Tuple[Dict[str, Any], int]:
        return {
            'success': False,
            'error': {
                'code': self.error_code,
                'message': "Failed to verify permissions due to a system error. Please try again.",
                'details': {
                    'suggestion': "If the problem persists, please contact technical support.",
                },
            },
            'status': self.status_code,
        }, self.status_code


class RegistryUnavailableError(AccessControlError):
    """Mapping persistence could not be read; the registry falls back to defaults."""
    pass


class RegistryPersistenceError(AccessControlError):
    """Mapping persistence could not be written on an explicit save."""
    pass


class DerivationLookupError(AccessControlError):
    """A role code has no backing permission record."""

    def __init__(self, role_code: str, message: Optional[str] = None):
        super().__init__(message or f"No permission record for role code '{role_code}'")
        self.role_code = role_code


class ProvisioningPartialFailureError(AccessControlError):
    """One or more tenant-scoped writes failed during provisioning."""

    def __init__(self, result):
        failed = len(result.failures)
        super().__init__(
            f"Provisioning for tenant '{result.tenant_id}' had {failed} failed write(s)"
        )
        self.result = result


class RoleUpdateError(AccessControlError):
    """A role permission update was refused."""
    pass
