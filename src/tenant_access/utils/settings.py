"""
Settings - deploy-time configuration for the access-control subsystem.

Settings are read from a YAML file and then overridden from the environment.
Search order for the file:
1. Explicit config_path argument
2. $TENANT_ACCESS_CONFIG
3. ./configs/tenant_access.yaml
If no file is found the defaults below are used.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional

import yaml

from tenant_access.utils.logging import get_logger

logger = get_logger(__name__)

CONFIG_ENV_VAR = "TENANT_ACCESS_CONFIG"
DEFAULT_CONFIG_LOCATIONS = [
    os.path.join("configs", "tenant_access.yaml"),
]


class SettingsError(Exception):
    """Raised when the settings file exists but cannot be used."""
    pass


@dataclass
class AccessSettings:
    """Deploy-time settings for registry, stores, authentication and provisioning."""

    # Role mapping persistence
    role_mappings_path: str = os.path.join("configs", "role_mappings.yaml")

    # Document store
    store_backend: str = "memory"
    postgres: Dict[str, Any] = field(default_factory=dict)
    documents_table: str = "access_documents"

    # Authentication (bearer JWT)
    jwt_secret: Optional[str] = None
    jwt_algorithm: str = "HS256"

    # Provisioning
    provisioning_workers: int = 8

    def __post_init__(self) -> None:
        if self.store_backend not in ("memory", "postgres"):
            raise SettingsError(f"store_backend must be 'memory' or 'postgres', got '{self.store_backend}'")
        if self.provisioning_workers < 1:
            raise SettingsError("provisioning_workers must be at least 1")

    @property
    def postgres_params(self) -> Dict[str, Any]:
        """psycopg2 connection kwargs with defaults filled in."""
        params = {
            'host': 'localhost',
            'port': 5432,
            'database': 'tenant_access',
            'user': 'postgres',
            'password': '',
        }
        params.update({k: v for k, v in self.postgres.items() if v is not None})
        return params


def _find_config_file(config_path: Optional[str]) -> Optional[str]:
    if config_path:
        if not os.path.isfile(config_path):
            raise SettingsError(f"Config file not found: {config_path}")
        return config_path
    for path in [os.environ.get(CONFIG_ENV_VAR)] + DEFAULT_CONFIG_LOCATIONS:
        if path and os.path.isfile(path):
            return path
    return None


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}

    if os.environ.get("ROLE_MAPPINGS_PATH"):
        overrides['role_mappings_path'] = os.environ["ROLE_MAPPINGS_PATH"]
    if os.environ.get("ACCESS_STORE_BACKEND"):
        overrides['store_backend'] = os.environ["ACCESS_STORE_BACKEND"]
    if os.environ.get("JWT_SECRET"):
        overrides['jwt_secret'] = os.environ["JWT_SECRET"]
    if os.environ.get("JWT_ALGORITHM"):
        overrides['jwt_algorithm'] = os.environ["JWT_ALGORITHM"]
    if os.environ.get("PROVISIONING_WORKERS"):
        overrides['provisioning_workers'] = int(os.environ["PROVISIONING_WORKERS"])

    pg_env = {
        'host': os.environ.get("PGHOST"),
        'port': os.environ.get("PGPORT"),
        'database': os.environ.get("PGDATABASE"),
        'user': os.environ.get("PGUSER"),
        'password': os.environ.get("PGPASSWORD"),
    }
    pg_env = {k: v for k, v in pg_env.items() if v}
    if 'port' in pg_env:
        pg_env['port'] = int(pg_env['port'])
    if pg_env:
        overrides['postgres'] = pg_env

    return overrides


def load_settings(config_path: Optional[str] = None) -> AccessSettings:
    """
    Load settings from YAML and the environment.

    Args:
        config_path: Optional explicit path to a YAML settings file

    Returns:
        AccessSettings instance

    Raises:
        SettingsError: If an explicit path is missing or the file is malformed
    """
    data: Dict[str, Any] = {}

    config_file = _find_config_file(config_path)
    if config_file:
        logger.info(f"Loading settings from: {config_file}")
        try:
            with open(config_file, 'r') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise SettingsError(f"Invalid YAML in {config_file}: {exc}") from exc
        if not isinstance(data, dict):
            raise SettingsError(f"Settings file {config_file} must contain a mapping")
    else:
        logger.debug("No settings file found, using defaults")

    env = _env_overrides()
    if 'postgres' in env:
        merged_pg = dict(data.get('postgres') or {})
        merged_pg.update(env.pop('postgres'))
        data['postgres'] = merged_pg
    data.update(env)

    known = {f.name for f in fields(AccessSettings)}
    unknown = set(data) - known
    if unknown:
        logger.warning(f"Ignoring unknown settings keys: {sorted(unknown)}")

    return AccessSettings(**{k: v for k, v in data.items() if k in known})
