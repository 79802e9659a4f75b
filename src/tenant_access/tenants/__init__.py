"""
Tenant creation and baseline provisioning.
"""

from tenant_access.tenants.provisioning import (
    ProvisioningFailure,
    ProvisioningResult,
    TenantProvisioner,
)
from tenant_access.tenants.service import TenantCreationResult, TenantService

__all__ = [
    'ProvisioningFailure',
    'ProvisioningResult',
    'TenantProvisioner',
    'TenantCreationResult',
    'TenantService',
]
