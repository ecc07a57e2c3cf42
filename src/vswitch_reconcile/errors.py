"""Error taxonomy for the reconcile engine.

Three families:
- Input errors (ValidationError, ParseError) are raised before any remote call.
- Identity errors (EncodingError, MalformedIdentity) come from the identity codec.
- Remote errors (NotFoundError, ConflictError, TransientError, FatalError) are
  produced by the fault classifier from structured platform faults.
"""
from typing import Any, Optional


class ReconcileError(Exception):
    """Base class for all engine errors."""
    pass


class ValidationError(ReconcileError):
    """Declarative input rejected before reaching the platform."""

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class ParseError(ValidationError):
    """Declarative document could not be parsed."""
    pass


class EncodingError(ReconcileError):
    """Identity cannot be encoded without ambiguity."""
    pass


class MalformedIdentity(ReconcileError):
    """Persisted identity string cannot be decoded."""
    pass


class RemoteCallError(ReconcileError):
    """A platform call failed. Subclasses carry the classified category."""

    category = "fatal"
    retryable = False

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        fault: Optional[Any] = None,
    ):
        self.operation = operation
        self.fault = fault
        super().__init__(message)

    def __str__(self) -> str:
        message = super().__str__()
        if self.operation:
            return f"{self.operation}: {message}"
        return message


class NotFoundError(RemoteCallError):
    """Target object no longer exists on the platform."""
    category = "not_found"


class ConflictError(RemoteCallError):
    """Concurrent modification or naming collision."""
    category = "conflict"


class TransientError(RemoteCallError):
    """Timeout or dropped connection. Safe to retry with backoff."""
    category = "transient"
    retryable = True


class FatalError(RemoteCallError):
    """Malformed request, permission denied, or an unknown fault."""
    category = "fatal"


class PlanApplicationError(ReconcileError):
    """A planned operation failed part-way through a reconcile cycle."""

    def __init__(
        self,
        failed_operation: str,
        applied_operations: list[str],
        error: RemoteCallError,
    ):
        self.failed_operation = failed_operation
        self.applied_operations = list(applied_operations)
        self.error = error
        applied = ", ".join(self.applied_operations) or "none"
        super().__init__(
            f"Operation '{failed_operation}' failed ({error.category}): {error.args[0]}. "
            f"Already applied: {applied}"
        )
