"""
Access Service Factory - the composition root for registry, cache, deriver and
tenant services.

One factory owns one set of components; hand it (or the components) to whoever
needs them. There is no process-wide instance.
"""
from typing import Optional

from tenant_access.rbac.cache import PermissionCache
from tenant_access.rbac.derivation import PermissionDeriver
from tenant_access.rbac.role_mappings import RoleMappingRegistry
from tenant_access.rbac.roles import RoleService
from tenant_access.tenants.provisioning import TenantProvisioner
from tenant_access.tenants.service import TenantService
from tenant_access.utils.document_store import DocumentStore, InMemoryDocumentStore, PostgresDocumentStore
from tenant_access.utils.logging import get_logger
from tenant_access.utils.settings import AccessSettings, load_settings

logger = get_logger(__name__)


class AccessServiceFactory:
    """
    Lazily builds and shares access-control components.

    Usage:
        factory = AccessServiceFactory.from_config_file("configs/tenant_access.yaml")

        deriver = factory.deriver
        factory.tenant_service.create_tenant({'name': 'Acme'}, actor='ops')

        # Or inject an existing store (tests, embedding)
        factory = AccessServiceFactory(settings, store=InMemoryDocumentStore())
    """

    def __init__(
        self,
        settings: Optional[AccessSettings] = None,
        store: Optional[DocumentStore] = None,
        registry: Optional[RoleMappingRegistry] = None,
        cache: Optional[PermissionCache] = None,
    ):
        self.settings = settings or AccessSettings()
        self._store = store
        self._registry = registry
        self._cache = cache

        self._deriver: Optional[PermissionDeriver] = None
        self._provisioner: Optional[TenantProvisioner] = None
        self._tenant_service: Optional[TenantService] = None
        self._role_service: Optional[RoleService] = None

    @classmethod
    def from_settings(cls, settings: AccessSettings, **kwargs) -> 'AccessServiceFactory':
        return cls(settings=settings, **kwargs)

    @classmethod
    def from_config_file(cls, config_path: Optional[str] = None, **kwargs) -> 'AccessServiceFactory':
        """Load settings (YAML + environment) and build a factory from them."""
        return cls(settings=load_settings(config_path), **kwargs)

    @property
    def store(self) -> DocumentStore:
        """Document store selected by ``store_backend`` (lazy-initialized)."""
        if self._store is None:
            if self.settings.store_backend == "postgres":
                logger.info(f"Using Postgres document store (table: {self.settings.documents_table})")
                self._store = PostgresDocumentStore(
                    pg_config=self.settings.postgres_params,
                    table=self.settings.documents_table,
                )
            else:
                logger.info("Using in-memory document store")
                self._store = InMemoryDocumentStore()
        return self._store

    @property
    def registry(self) -> RoleMappingRegistry:
        """Role mapping registry; not initialized until first use."""
        if self._registry is None:
            self._registry = RoleMappingRegistry(self.settings.role_mappings_path)
        return self._registry

    @property
    def cache(self) -> PermissionCache:
        if self._cache is None:
            self._cache = PermissionCache()
        return self._cache

    @property
    def deriver(self) -> PermissionDeriver:
        if self._deriver is None:
            self._deriver = PermissionDeriver(self.registry, self.cache, self.store)
        return self._deriver

    @property
    def provisioner(self) -> TenantProvisioner:
        if self._provisioner is None:
            self._provisioner = TenantProvisioner(
                self.store,
                max_workers=self.settings.provisioning_workers,
            )
        return self._provisioner

    @property
    def tenant_service(self) -> TenantService:
        if self._tenant_service is None:
            self._tenant_service = TenantService(self.store, self.provisioner)
        return self._tenant_service

    @property
    def role_service(self) -> RoleService:
        if self._role_service is None:
            self._role_service = RoleService(self.store, self.deriver)
        return self._role_service
