"""
tenant-access - role-based permission resolution and tenant provisioning.

Subpackages:
- rbac: role mappings, permission cache, derivation, matching and Flask decorators
- tenants: tenant creation and baseline provisioning
- utils: logging, settings, document stores and the service factory
- cli: role-mapping and provisioning commands
"""

__version__ = "0.3.0"
