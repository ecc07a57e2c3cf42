"""Tests for the audit log."""
import logging

import pytest
from vswitch_reconcile.utils.audit_log import (
    ChangeRecord,
    ChangeTracker,
    audit_logger,
    get_recent_changes,
    setup_audit_logging,
)


@pytest.fixture
def audit_file(tmp_path):
    path = setup_audit_logging(str(tmp_path / "audit" / "audit.log"))
    yield path
    for handler in list(audit_logger.handlers):
        audit_logger.removeHandler(handler)
        handler.close()
    audit_logger.propagate = True


def _flush():
    for handler in audit_logger.handlers:
        handler.flush()


class TestChangeRecord:
    """Tests for record serialization."""

    def test_json_round_trip(self):
        record = ChangeRecord(
            timestamp="2024-01-01T00:00:00+00:00",
            switch="dvs-21",
            operation="add_host",
            dry_run=False,
            success=False,
            host_ref="host-3",
            error="AlreadyExists",
            error_category="conflict",
        )
        assert ChangeRecord.from_json(record.to_json()) == record


class TestChangeTracker:
    """Tests for writing audit records."""

    def test_records_kept(self):
        tracker = ChangeTracker("host-12|vSwitch1")
        tracker.log_change("replace_host_switch", success=True, description="Replace spec")
        assert len(tracker.records) == 1
        assert tracker.records[0].switch == "host-12|vSwitch1"
        assert tracker.records[0].dry_run is False

    def test_long_errors_truncated(self):
        record = ChangeTracker("dvs-21").log_change("reconfigure", success=False, error="x" * 5000)
        assert len(record.error) == 1000

    def test_written_to_file(self, audit_file):
        tracker = ChangeTracker("dvs-21")
        tracker.log_change("upgrade_version", success=True)
        tracker.log_change("add_host", success=True, host_ref="host-3")
        ChangeTracker("dvs-99").log_change("reconfigure", success=False, error_category="conflict")
        _flush()

        records = get_recent_changes(audit_file)
        assert [r.operation for r in records] == ["reconfigure", "add_host", "upgrade_version"]

        assert [r.operation for r in get_recent_changes(audit_file, switch="dvs-21")] == [
            "add_host", "upgrade_version",
        ]
        only_adds = get_recent_changes(audit_file, operation="add_host")
        assert only_adds[0].host_ref == "host-3"
        assert len(get_recent_changes(audit_file, limit=1)) == 1


class TestGetRecentChanges:
    """Tests for reading the audit log."""

    def test_missing_file(self, tmp_path):
        assert get_recent_changes(str(tmp_path / "none.log")) == []

    def test_malformed_lines_skipped(self, tmp_path):
        path = tmp_path / "audit.log"
        good = ChangeRecord(
            timestamp="2024-01-01T00:00:00+00:00",
            switch="dvs-21",
            operation="reconfigure",
            dry_run=True,
            success=True,
        )
        path.write_text("not json\n\n" + good.to_json() + "\n")
        assert get_recent_changes(str(path)) == [good]

    def test_setup_returns_expanded_path(self, audit_file):
        assert audit_file.endswith("audit.log")
        assert audit_logger.level == logging.INFO
        assert audit_logger.propagate is False
