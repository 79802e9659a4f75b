"""
Unit tests for the Flask authorization decorators and AccessControl extension.
"""
from unittest.mock import MagicMock

import jwt
import pytest
from flask import Flask, g, jsonify

from tenant_access.rbac.access import AccessControl, get_access_control
from tenant_access.rbac.decorators import check_all_permissions, check_permissions
from tenant_access.rbac.principal import Principal, PrincipalKind
from tenant_access.utils.document_store import Collections, DocumentStoreError
from tenant_access.utils.service_factory import AccessServiceFactory
from tenant_access.utils.settings import AccessSettings

SECRET = "unit-test-secret-that-is-long-enough-for-hs256"


def _build_app(factory, authenticate=False):
    app = Flask(__name__)
    app.config["TESTING"] = True
    AccessControl(app, services=factory, authenticate=authenticate, public_paths=("/health",))

    @app.before_request
    def _attach_test_principal():
        principal = app.config.get("TEST_PRINCIPAL")
        if principal is not None:
            g.principal = principal

    @app.route("/health")
    def health():
        return jsonify(ok=True)

    @app.route("/tenants")
    @check_permissions("tenant.read", "tenant.manage")
    def list_tenants():
        return jsonify(
            permissions=g.permissions,
            reason=g.authorization.reason.value,
            subject=g.principal.subject,
        )

    @app.route("/roles", methods=["PUT"])
    @check_all_permissions("role.read", "role.update")
    def update_roles():
        return jsonify(permissions=g.permissions)

    @app.route("/open")
    @check_permissions()
    def open_endpoint():
        return jsonify(ok=True)

    return app


@pytest.fixture
def factory(registry, cache, store):
    settings = AccessSettings(jwt_secret=SECRET)
    return AccessServiceFactory(settings, store=store, registry=registry, cache=cache)


@pytest.fixture
def app(factory):
    return _build_app(factory)


@pytest.fixture
def client(app):
    return app.test_client()


def _principal(**kwargs):
    defaults = {"kind": PrincipalKind.ADMIN, "subject": "ops@example.com"}
    defaults.update(kwargs)
    return Principal(**defaults)


# =============================================================================
# ANY-of decorator
# =============================================================================

class TestCheckPermissions:

    def test_attached_claims_are_used_directly(self, app, client):
        app.config["TEST_PRINCIPAL"] = _principal(permissions=frozenset({"tenant.*"}))

        response = client.get("/tenants")

        assert response.status_code == 200
        data = response.get_json()
        assert data["permissions"] == ["tenant.*"]
        assert data["reason"] == "matched"

    def test_claims_derived_from_roles(self, app, client):
        app.config["TEST_PRINCIPAL"] = _principal(role_labels=("admin",))

        response = client.get("/tenants")

        assert response.status_code == 200
        assert response.get_json()["permissions"] == ["role.read", "role.update", "tenant.read"]

    def test_role_code_slot_is_used(self, app, client):
        app.config["TEST_PRINCIPAL"] = _principal(role_code="INTERNAL_ROOT_ADMIN")

        response = client.get("/tenants")

        assert response.status_code == 200
        assert response.get_json()["reason"] == "global"

    def test_tenant_user_derives_from_tenant_roles(self, app, client, store):
        store.set(Collections.tenant_roles("T1"), "ROLE002", {
            "role_code": "TENANT_USER",
            "permissions": ["tenant.read"],
        })
        app.config["TEST_PRINCIPAL"] = _principal(
            kind=PrincipalKind.TENANT_USER, tenant_id="T1", role_labels=("Tenant User",),
        )

        response = client.get("/tenants")

        assert response.status_code == 200
        assert response.get_json()["permissions"] == ["tenant.read"]

    def test_insufficient_permissions(self, app, client):
        app.config["TEST_PRINCIPAL"] = _principal(permissions=frozenset({"role.read"}))

        response = client.get("/tenants")

        assert response.status_code == 403
        data = response.get_json()
        assert data["error"] == "Insufficient permissions"
        assert data["required"] == ["tenant.read", "tenant.manage"]

    def test_no_claims_is_denied(self, app, client):
        app.config["TEST_PRINCIPAL"] = _principal(permissions=frozenset())

        response = client.get("/tenants")

        assert response.status_code == 403
        assert response.get_json()["error"] == "Insufficient permissions"

    def test_missing_principal_is_denied(self, client):
        response = client.get("/tenants")

        assert response.status_code == 403

    def test_unknown_roles_are_denied_not_failed(self, app, client):
        app.config["TEST_PRINCIPAL"] = _principal(role_labels=("ghost",))

        response = client.get("/tenants")

        assert response.status_code == 403

    def test_nothing_required_is_open(self, client):
        assert client.get("/open").status_code == 200

    def test_source_failure_is_500(self, registry, cache):
        broken_store = MagicMock()
        broken_store.find_one.side_effect = DocumentStoreError("connection refused")
        factory = AccessServiceFactory(AccessSettings(), store=broken_store, registry=registry, cache=cache)
        app = _build_app(factory)
        app.config["TEST_PRINCIPAL"] = _principal(role_labels=("admin",))

        response = app.test_client().get("/tenants")

        assert response.status_code == 500
        assert response.get_json()["error"]["code"] == "PERMISSION_CHECK_FAILED"


# =============================================================================
# ALL-of decorator
# =============================================================================

class TestCheckAllPermissions:

    def test_all_present(self, app, client):
        app.config["TEST_PRINCIPAL"] = _principal(role_labels=("admin",))

        assert client.put("/roles").status_code == 200

    def test_missing_subset_reported(self, app, client):
        app.config["TEST_PRINCIPAL"] = _principal(role_labels=("editor",))

        response = client.put("/roles")

        assert response.status_code == 403
        details = response.get_json()["error"]["details"]
        assert details["missing"] == ["role.update"]
        assert details["required"] == ["role.read", "role.update"]

    def test_no_permissions_assigned(self, app, client):
        app.config["TEST_PRINCIPAL"] = _principal(permissions=frozenset())

        response = client.put("/roles")

        assert response.status_code == 403
        assert response.get_json()["error"]["code"] == "NO_PERMISSIONS_ASSIGNED"

    def test_global_claim_grants(self, app, client):
        app.config["TEST_PRINCIPAL"] = _principal(permissions=frozenset({"*"}))

        assert client.put("/roles").status_code == 200


# =============================================================================
# Extension and authentication hook
# =============================================================================

class TestAccessControl:

    def test_registered_on_app(self, app, factory):
        with app.app_context():
            assert get_access_control().deriver is factory.deriver

    def test_uninitialized_app_raises(self):
        app = Flask(__name__)
        with app.app_context():
            with pytest.raises(RuntimeError):
                get_access_control()

    def test_bearer_token_authenticates(self, factory):
        app = _build_app(factory, authenticate=True)
        token = jwt.encode({"sub": "u1", "type": "admin", "roles": ["admin"]}, SECRET, algorithm="HS256")

        response = app.test_client().get("/tenants", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.get_json()["subject"] == "u1"

    def test_missing_token_is_401(self, factory):
        app = _build_app(factory, authenticate=True)

        response = app.test_client().get("/tenants")

        assert response.status_code == 401
        assert response.get_json()["error"]["code"] == "AUTHENTICATION_FAILED"

    def test_bad_signature_is_401(self, factory):
        app = _build_app(factory, authenticate=True)
        token = jwt.encode({"sub": "u1"}, "another-secret-that-is-also-long-enough", algorithm="HS256")

        response = app.test_client().get("/tenants", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_public_paths_skip_authentication(self, factory):
        app = _build_app(factory, authenticate=True)

        assert app.test_client().get("/health").status_code == 200
