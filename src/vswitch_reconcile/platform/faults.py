"""Structured platform faults and their classification.

Platform calls fail with a RemoteFault carrying the fault class name the
management API reported. classify_fault() maps that name (never the message
text) onto the local error categories so callers can decide between
retrying, treating the object as gone, or surfacing the failure.
"""
import asyncio
import logging
from typing import Any, Optional

from ..errors import (
    RemoteCallError,
    NotFoundError,
    ConflictError,
    TransientError,
    FatalError,
)

logger = logging.getLogger(__name__)


class RemoteFault(Exception):
    """A fault returned by the management platform."""

    def __init__(
        self,
        fault_type: str,
        message: str = "",
        obj_ref: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.fault_type = fault_type
        self.message = message
        self.obj_ref = obj_ref
        self.details = details or {}
        super().__init__(f"{fault_type}: {message}" if message else fault_type)


NOT_FOUND_FAULTS = frozenset({
    "ManagedObjectNotFound",
    "NotFound",
    "HostNotFound",
})

CONFLICT_FAULTS = frozenset({
    "ConcurrentAccess",
    "DuplicateName",
    "AlreadyExists",
    "ResourceInUse",
    "InvalidState",
    "DvsOperationBulkFault",
})

TRANSIENT_FAULTS = frozenset({
    "HostCommunication",
    "HostNotConnected",
    "RequestCanceled",
    "TaskInProgress",
    "Timedout",
})

FATAL_FAULTS = frozenset({
    "InvalidArgument",
    "InvalidRequest",
    "InvalidType",
    "NoPermission",
    "NotAuthenticated",
    "NotSupported",
    "DvsFault",
    "DvsNotAuthorized",
    "PlatformConfigFault",
})

TRANSIENT_EXCEPTIONS = (
    asyncio.TimeoutError,
    TimeoutError,
    ConnectionError,
    EOFError,
)

_CATEGORY_CLASSES: dict[str, type[RemoteCallError]] = {
    "not_found": NotFoundError,
    "conflict": ConflictError,
    "transient": TransientError,
    "fatal": FatalError,
}


def fault_category(fault_type: str) -> str:
    """Return the category name for a platform fault class name."""
    if fault_type in NOT_FOUND_FAULTS:
        return "not_found"
    if fault_type in CONFLICT_FAULTS:
        return "conflict"
    if fault_type in TRANSIENT_FAULTS:
        return "transient"
    if fault_type not in FATAL_FAULTS:
        logger.debug(f"Unknown fault type {fault_type}, classifying as fatal")
    return "fatal"


def classify_fault(
    exc: BaseException,
    operation: Optional[str] = None,
) -> RemoteCallError:
    """
    Map a failure from a platform call to a RemoteCallError subclass.

    Args:
        exc: Exception raised by the platform collaborator
        operation: Name of the operation being attempted (for reporting)

    Returns:
        NotFoundError, ConflictError, TransientError or FatalError with the
        original exception kept on ``.fault``
    """
    if isinstance(exc, RemoteCallError):
        if operation and not exc.operation:
            exc.operation = operation
        return exc

    if isinstance(exc, RemoteFault):
        category = fault_category(exc.fault_type)
        return _CATEGORY_CLASSES[category](str(exc), operation=operation, fault=exc)

    if isinstance(exc, TRANSIENT_EXCEPTIONS):
        message = str(exc) or type(exc).__name__
        return TransientError(message, operation=operation, fault=exc)

    return FatalError(f"{type(exc).__name__}: {exc}", operation=operation, fault=exc)
