"""Utility modules for platform calls, logging and auditing."""
from .connection import call_with_deadline, with_retry
from .logging_config import (
    setup_logging,
    timed_section,
    perf_logger,
)
from .audit_log import (
    ChangeRecord,
    ChangeTracker,
    get_recent_changes,
    setup_audit_logging,
)

__all__ = [
    "call_with_deadline",
    "with_retry",
    "setup_logging",
    "timed_section",
    "perf_logger",
    "ChangeRecord",
    "ChangeTracker",
    "get_recent_changes",
    "setup_audit_logging",
]
