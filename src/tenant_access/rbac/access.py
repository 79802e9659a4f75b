"""
Flask integration - attach access-control components to an application.

    app = Flask(__name__)
    AccessControl(app, services=AccessServiceFactory.from_config_file(), authenticate=True)

With ``authenticate=True`` a before_request hook verifies the bearer token and
stores the resulting Principal on ``flask.g.principal``. Otherwise upstream
code is expected to set ``g.principal`` itself.
"""

from typing import Iterable, Optional

from flask import Flask, current_app, g, jsonify, request

from tenant_access.rbac.cache import PermissionCache
from tenant_access.rbac.derivation import PermissionDeriver
from tenant_access.rbac.errors import AuthenticationError
from tenant_access.rbac.jwt_parser import load_principal_from_request
from tenant_access.rbac.role_mappings import RoleMappingRegistry
from tenant_access.utils.logging import get_logger
from tenant_access.utils.service_factory import AccessServiceFactory
from tenant_access.utils.settings import AccessSettings

logger = get_logger(__name__)

EXTENSION_KEY = "tenant_access"


class AccessControl:
    """
    Flask extension holding the application's access-control components.

    Args:
        app: Application to register with (or call init_app later)
        services: Composition root; a default in-memory one is built if omitted
        authenticate: Install the bearer-token before_request hook
        public_paths: Path prefixes the authentication hook skips
    """

    def __init__(
        self,
        app: Optional[Flask] = None,
        services: Optional[AccessServiceFactory] = None,
        authenticate: bool = False,
        public_paths: Iterable[str] = (),
    ):
        self.services = services or AccessServiceFactory()
        self.authenticate = authenticate
        self.public_paths = tuple(public_paths)
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.extensions[EXTENSION_KEY] = self
        if self.authenticate:
            app.before_request(self._authenticate_request)
        logger.debug(f"Access control registered on app '{app.name}' (authenticate={self.authenticate})")

    @property
    def settings(self) -> AccessSettings:
        return self.services.settings

    @property
    def registry(self) -> RoleMappingRegistry:
        return self.services.registry

    @property
    def cache(self) -> PermissionCache:
        return self.services.cache

    @property
    def deriver(self) -> PermissionDeriver:
        return self.services.deriver

    def _is_public(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.public_paths)

    def _authenticate_request(self):
        if self._is_public(request.path):
            return None
        try:
            g.principal = load_principal_from_request(
                self.settings.jwt_secret,
                self.settings.jwt_algorithm,
            )
        except AuthenticationError as exc:
            logger.info(f"Authentication failed for {request.path}: {exc}")
            body, status = exc.to_response()
            return jsonify(body), status
        return None


def get_access_control(app: Optional[Flask] = None) -> AccessControl:
    """
    The AccessControl registered on ``app`` (default: the current app).

    Raises:
        RuntimeError: If init_app was never called for the application
    """
    app = app or current_app
    extension = app.extensions.get(EXTENSION_KEY)
    if extension is None:
        raise RuntimeError("AccessControl has not been initialized for this application")
    return extension
