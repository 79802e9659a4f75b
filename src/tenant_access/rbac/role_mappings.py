"""
Role Mapping Registry - friendly role labels to canonical role codes

Labels come from authentication and assignment flows ("Tenant Admin",
"tenantAdmin"); codes key the permission records ("TENANT_ADMIN"). Several
labels may collapse onto one code.

Load order on initialize():
1. $ROLE_MAPPINGS (YAML or JSON mapping), source 'environment'
2. The YAML mapping file, source 'file'
3. DEFAULT_ROLE_MAPPINGS, source 'default'
Environment and file mappings are layered over DEFAULT_ROLE_MAPPINGS.
A source that exists but cannot be read also lands on the defaults.
"""

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import yaml

from tenant_access.rbac.audit import log_mapping_change
from tenant_access.rbac.errors import RegistryPersistenceError, RegistryUnavailableError
from tenant_access.utils.logging import get_logger

logger = get_logger(__name__)

MAPPINGS_ENV_VAR = "ROLE_MAPPINGS"
MAPPINGS_FILE_KEY = "role_mappings"

DEFAULT_ROLE_MAPPINGS: Dict[str, str] = {
    # Root level access
    "root": "INTERNAL_ROOT_ADMIN",
    "Internal Root Admin": "INTERNAL_ROOT_ADMIN",
    "internalRootAdmin": "INTERNAL_ROOT_ADMIN",

    # Admin tiers
    "Internal Super Admin": "INTERNAL_SUPER_ADMIN",
    "internalSuperAdmin": "INTERNAL_SUPER_ADMIN",
    "Internal Standard Admin": "INTERNAL_STANDARD_ADMIN",
    "internalStandardAdmin": "INTERNAL_STANDARD_ADMIN",
    "External Super Admin": "EXTERNAL_SUPER_ADMIN",
    "externalSuperAdmin": "EXTERNAL_SUPER_ADMIN",
    "External Standard Admin": "EXTERNAL_STANDARD_ADMIN",
    "externalStandardAdmin": "EXTERNAL_STANDARD_ADMIN",

    # Specialized roles
    "Lookup Manager": "LOOKUP_MANAGER",
    "lookupManager": "LOOKUP_MANAGER",
    "Tenant Admin": "TENANT_ADMIN",
    "tenantAdmin": "TENANT_ADMIN",
    "Tenant User": "TENANT_USER",
    "tenantUser": "TENANT_USER",

    # Service roles
    "Service Admin": "SERVICE_ADMIN",
    "Service User": "SERVICE_USER",
}


@dataclass(frozen=True)
class RegistryStatus:
    source: str
    loaded_at: Optional[datetime]
    count: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            'source': self.source,
            'loaded_at': self.loaded_at.isoformat() if self.loaded_at else None,
            'count': self.count,
        }


def _parse_mappings(data: Any, origin: str) -> Dict[str, str]:
    """
    Validate a loaded mapping document.

    Accepts either a flat ``{label: code}`` mapping or one nested under a
    ``role_mappings`` key.

    Raises:
        RegistryUnavailableError: If the document is not a label->code mapping
    """
    if isinstance(data, dict) and MAPPINGS_FILE_KEY in data:
        data = data[MAPPINGS_FILE_KEY]
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise RegistryUnavailableError(f"Role mappings from {origin} must be a mapping, got {type(data).__name__}")

    mappings: Dict[str, str] = {}
    for label, code in data.items():
        if not isinstance(label, str) or not isinstance(code, str) or not label or not code:
            raise RegistryUnavailableError(f"Invalid role mapping in {origin}: {label!r} -> {code!r}")
        mappings[label] = code
    return mappings


class RoleMappingRegistry:
    """
    Mutable label -> code registry backed by a YAML file.

    Mutations are in-memory only until save() is called. Mutations are expected
    from administrative flows; concurrent editors must serialize themselves.

    Example:
        >>> registry = RoleMappingRegistry("configs/role_mappings.yaml")
        >>> registry.initialize()
        >>> registry.get_mapping("Tenant Admin")
        'TENANT_ADMIN'
    """

    def __init__(self, path: Optional[str] = None, env_var: Optional[str] = MAPPINGS_ENV_VAR):
        """
        Args:
            path: YAML file holding the mappings (read on load, written on save)
            env_var: Environment variable that overrides the file; None disables it
        """
        self._path = path
        self._env_var = env_var
        self._mappings: Dict[str, str] = {}
        self._source = "unloaded"
        self._loaded_at: Optional[datetime] = None
        self._loaded = False

    @property
    def path(self) -> Optional[str]:
        return self._path

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def initialize(self) -> None:
        """Load mappings once; later calls are no-ops."""
        if self._loaded:
            return
        self._load()

    def reload(self) -> None:
        """Discard in-memory state (including unsaved edits) and load from source."""
        logger.info("Reloading role mappings...")
        self._loaded = False
        self._mappings = {}
        self._load()
        log_mapping_change('reload', '', actor='system')

    def _load(self) -> None:
        try:
            mappings, source = self._read_source()
        except RegistryUnavailableError as exc:
            logger.warning(f"{exc}; using default role mappings")
            mappings, source = dict(DEFAULT_ROLE_MAPPINGS), "default"

        self._mappings = mappings
        self._source = source
        self._loaded_at = datetime.now(timezone.utc)
        self._loaded = True
        logger.info(f"Role mappings loaded: {len(mappings)} mappings (source: {source})")

    def _read_source(self) -> Tuple[Dict[str, str], str]:
        raw = os.environ.get(self._env_var) if self._env_var else None
        if raw:
            try:
                data = yaml.safe_load(raw)
            except yaml.YAMLError as exc:
                raise RegistryUnavailableError(f"Could not parse ${self._env_var}: {exc}") from exc
            return {**DEFAULT_ROLE_MAPPINGS, **_parse_mappings(data, f"${self._env_var}")}, "environment"

        if not self._path or not os.path.exists(self._path):
            logger.info("No role mapping file found, using default role mappings")
            return dict(DEFAULT_ROLE_MAPPINGS), "default"

        try:
            with open(self._path, 'r') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as exc:
            raise RegistryUnavailableError(f"Could not read role mappings from {self._path}: {exc}") from exc

        logger.debug(f"Loaded role mappings from: {self._path}")
        return {**DEFAULT_ROLE_MAPPINGS, **_parse_mappings(data, self._path)}, "file"

    def get_mapping(self, role_label: Optional[str]) -> Optional[str]:
        """
        Exact-match lookup of a label.

        Returns:
            The role code, or None when the label is unknown or empty
        """
        if not role_label:
            return None
        return self._mappings.get(role_label)

    def get_all_mappings(self) -> Dict[str, str]:
        """Snapshot of every mapping; edits to it do not affect the registry."""
        return dict(self._mappings)

    def add_mapping(self, role_label: str, role_code: str, actor: str = 'system') -> None:
        """Add or replace a mapping in memory. Call save() to persist."""
        if not role_label or not role_code:
            raise ValueError("Both role_label and role_code are required")
        self._mappings[role_label] = role_code
        log_mapping_change('add', role_label, role_code, actor=actor)

    def remove_mapping(self, role_label: str, actor: str = 'system') -> bool:
        """
        Remove a mapping in memory. Call save() to persist.

        Returns:
            True if the label existed
        """
        role_code = self._mappings.pop(role_label, None)
        if role_code is None:
            return False
        log_mapping_change('remove', role_label, role_code, actor=actor)
        return True

    def reset_to_defaults(self, actor: str = 'system') -> None:
        """Replace in-memory mappings with DEFAULT_ROLE_MAPPINGS. Call save() to persist."""
        self._mappings = dict(DEFAULT_ROLE_MAPPINGS)
        log_mapping_change('reset', '', actor=actor)

    def save(self, path: Optional[str] = None) -> str:
        """
        Persist current mappings to the YAML file.

        The file is written to a temporary sibling and renamed into place.

        Args:
            path: Optional target overriding the configured path

        Returns:
            The path written

        Raises:
            RegistryPersistenceError: If no path is configured or the write fails
        """
        target = path or self._path
        if not target:
            raise RegistryPersistenceError("No role mapping file configured")

        directory = os.path.dirname(os.path.abspath(target))
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            with tempfile.NamedTemporaryFile('w', dir=directory, suffix='.tmp', delete=False) as f:
                tmp_path = f.name
                yaml.safe_dump({MAPPINGS_FILE_KEY: self._mappings}, f, sort_keys=True, allow_unicode=True)
            os.replace(tmp_path, target)
        except OSError as exc:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            logger.error(f"Failed to save role mappings to {target}: {exc}")
            raise RegistryPersistenceError(f"Failed to save role mappings to {target}: {exc}") from exc

        logger.info(f"Saved {len(self._mappings)} role mappings to {target}")
        log_mapping_change('save', '', actor='system')
        return target

    def get_status(self) -> RegistryStatus:
        return RegistryStatus(
            source=self._source,
            loaded_at=self._loaded_at,
            count=len(self._mappings),
        )
