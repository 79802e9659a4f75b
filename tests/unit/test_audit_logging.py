"""
Unit tests for audit logging and the logging helpers.
"""
import io
import json
import logging

from tenant_access.rbac.audit import log_mapping_change, log_permission_check, log_provisioning
from tenant_access.utils.logging import get_logger, setup_logging


def _audit_entries(caplog):
    return [
        json.loads(record.getMessage()[len("AUDIT: "):])
        for record in caplog.records
        if record.getMessage().startswith("AUDIT: ")
    ]


class TestAudit:

    def test_denial_writes_structured_entry(self, caplog):
        caplog.set_level(logging.DEBUG, logger="tenant_access")

        log_permission_check(
            user="u1", permission="all(a.read,b.read)", granted=False,
            endpoint="update_roles", roles=["editor"], missing=["b.read"],
        )

        entries = _audit_entries(caplog)
        assert len(entries) == 1
        assert entries[0]["result"] == "DENIED"
        assert entries[0]["missing_permissions"] == ["b.read"]
        assert any(r.levelno == logging.WARNING for r in caplog.records)

    def test_grant_is_debug_only(self, caplog):
        caplog.set_level(logging.DEBUG, logger="tenant_access")

        log_permission_check(user="u1", permission="any(a.read)", granted=True, endpoint="x", roles=[])

        assert _audit_entries(caplog) == []
        assert all(r.levelno == logging.DEBUG for r in caplog.records)

    def test_mapping_change(self, caplog):
        caplog.set_level(logging.DEBUG, logger="tenant_access")

        log_mapping_change("add", "Auditor", "AUDITOR", actor="ops")

        assert "MAPPING | add | Auditor -> AUDITOR | by: ops" in caplog.text
        assert _audit_entries(caplog)[0]["event"] == "role_mapping_change"

    def test_provisioning_failures_are_listed(self, caplog):
        caplog.set_level(logging.DEBUG, logger="tenant_access")

        log_provisioning("T1", "ops", 2, 2, failed_ids=["tenants/T1/permissions/PERM002"])

        entry = _audit_entries(caplog)[0]
        assert entry["failed"] == ["tenants/T1/permissions/PERM002"]


class TestLoggingHelpers:

    def test_names_are_qualified(self):
        assert get_logger("rbac.audit").name == "tenant_access.rbac.audit"
        assert get_logger("tenant_access.rbac.cache").name == "tenant_access.rbac.cache"

    def test_setup_logging_replaces_its_handler(self):
        root = logging.getLogger("tenant_access")
        stream = io.StringIO()
        try:
            setup_logging(verbosity=4, stream=io.StringIO())
            setup_logging(verbosity=2, stream=stream)

            ours = [h for h in root.handlers if getattr(h, "_tenant_access_handler", False)]
            assert len(ours) == 1
            assert root.level == logging.WARNING

            get_logger("test").warning("visible")
            get_logger("test").info("hidden")
            assert "visible" in stream.getvalue()
            assert "hidden" not in stream.getvalue()
        finally:
            for handler in list(root.handlers):
                root.removeHandler(handler)
            root.setLevel(logging.NOTSET)
