"""Audit logging for switch mutations.

Every mutating platform operation applied (or previewed) by the engine is
recorded as one JSON line:
- Timestamped entries per operation
- The encoded switch identity and host, when the operation targets one
- Success flag and classified error category on failure
- Separate rotating audit log file
"""
import json
import logging
import os
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

audit_logger = logging.getLogger("vswitch.audit")

DEFAULT_AUDIT_LOG = os.path.join("~", ".vswitch-reconcile", "audit.log")


def setup_audit_logging(log_file: Optional[str] = None) -> str:
    """Configure audit logging to file.

    Args:
        log_file: Path of the audit log. Defaults to ~/.vswitch-reconcile/audit.log

    Returns:
        The expanded path the audit log writes to
    """
    path = os.path.expanduser(log_file or DEFAULT_AUDIT_LOG)
    Path(path).parent.mkdir(parents=True, exist_ok=True)

    audit_logger.setLevel(logging.INFO)
    for handler in list(audit_logger.handlers):
        audit_logger.removeHandler(handler)
        handler.close()

    handler = RotatingFileHandler(
        path,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)
    audit_logger.propagate = False
    return path


@dataclass
class ChangeRecord:
    """Record of one applied (or previewed) operation."""
    timestamp: str
    switch: str
    operation: str  # upgrade_version, add_host, reconfigure, ...
    dry_run: bool
    success: bool
    host_ref: Optional[str] = None
    description: str = ""
    error: Optional[str] = None
    error_category: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=None)

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeRecord":
        return cls(**json.loads(json_str))


class ChangeTracker:
    """Write change records for one switch."""

    def __init__(self, switch: str):
        self.switch = switch
        self.records: list[ChangeRecord] = []

    def log_change(
        self,
        operation: str,
        success: bool,
        dry_run: bool = False,
        host_ref: Optional[str] = None,
        description: str = "",
        error: Optional[str] = None,
        error_category: Optional[str] = None,
    ) -> ChangeRecord:
        """Log one operation and keep the record for the caller."""
        record = ChangeRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            switch=self.switch,
            operation=operation,
            dry_run=dry_run,
            success=success,
            host_ref=host_ref,
            description=description,
            error=error[:1000] if error else None,
            error_category=error_category,
        )
        audit_logger.info(record.to_json())
        self.records.append(record)
        return record


def get_recent_changes(
    log_file: Optional[str] = None,
    switch: Optional[str] = None,
    operation: Optional[str] = None,
    limit: int = 100,
) -> list[ChangeRecord]:
    """Read recent changes from the audit log.

    Args:
        log_file: Path to audit log. Defaults to ~/.vswitch-reconcile/audit.log
        switch: Filter by encoded switch identity
        operation: Filter by operation kind
        limit: Maximum number of records to return

    Returns:
        List of ChangeRecords, most recent first
    """
    path = os.path.expanduser(log_file or DEFAULT_AUDIT_LOG)
    if not os.path.exists(path):
        return []

    records = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                record = ChangeRecord.from_json(line)
            except (json.JSONDecodeError, TypeError):
                continue  # malformed line

            if switch and record.switch != switch:
                continue
            if operation and record.operation != operation:
                continue
            records.append(record)

    return list(reversed(records[-limit:]))
