"""
Shared pytest fixtures for the Task Relay test suite.

Autouse fixture below isolates tests from the live audit log:
  - Audit logger -> temp directory (prevents test events in ./audit_logs)
"""

import pytest


@pytest.fixture(autouse=True)
def _isolate_audit_logs(tmp_path):
    """Point the global AuditLogger at a temp directory for every test."""
    import task_relay.core.audit_log as audit_mod

    old_logger = audit_mod._audit_logger
    audit_mod._audit_logger = audit_mod.AuditLogger(log_dir=tmp_path / "audit_logs")

    yield audit_mod._audit_logger

    audit_mod._audit_logger.close()
    audit_mod._audit_logger = old_logger


@pytest.fixture
def audit_lines(_isolate_audit_logs):
    """Callable returning the parsed JSON lines written so far."""
    import json

    def _read():
        path = _isolate_audit_logs.log_file
        if not path.exists():
            return []
        return [
            json.loads(line)
            for line in path.read_text(encoding="utf-8").splitlines()
            if line.strip()
        ]

    return _read
