"""Executor for applying operation plans to the platform.

Operations run strictly in plan order, one remote call each. The first
failure halts the cycle: operations already applied stay applied, the rest
of the plan is discarded, and the result names both.
"""
import logging
from typing import Any, Optional

from ..errors import RemoteCallError
from ..platform.base import SwitchPlatform
from ..utils.audit_log import ChangeTracker
from ..utils.connection import call_with_deadline
from ..utils.logging_config import timed_section
from .schema import (
    OperationKind,
    OperationPlan,
    PlannedOperation,
    ReconcilePhase,
    ReconcileResult,
)

logger = logging.getLogger(__name__)


class ConfigExecutor:
    """Execute operation plans against a SwitchPlatform."""

    def __init__(self, platform: SwitchPlatform):
        self.platform = platform

    async def execute(
        self,
        plan: OperationPlan,
        result: ReconcileResult,
        timeout: Optional[float],
    ) -> ReconcileResult:
        """
        Apply a plan, filling in the applied/failed/skipped fields of result.

        Args:
            plan: Ordered operations to apply
            result: Result being built by the engine (identity, dry_run set)
            timeout: Deadline in seconds for each remote call

        Returns:
            The same result, with success and phase updated
        """
        result.phase = ReconcilePhase.APPLYING
        tracker = ChangeTracker(result.identity or "")

        if result.dry_run:
            return self._dry_run(plan, result, tracker)

        for index, operation in enumerate(plan.operations):
            try:
                if operation.kind == OperationKind.RECONFIGURE and result.applied_operations:
                    # Earlier operations in this cycle advanced the config version
                    await self._refresh_config_version(operation, timeout)
                await self._apply(operation, result.identity, timeout)
            except RemoteCallError as e:
                result.success = False
                result.failed_operation = operation.name
                result.skipped_operations = [op.name for op in plan.operations[index + 1:]]
                result.error = e
                result.error_context = self._error_context(result)
                tracker.log_change(
                    operation.kind.value,
                    success=False,
                    host_ref=operation.host_ref,
                    description=operation.description,
                    error=str(e),
                    error_category=e.category,
                )
                logger.error(f"[{result.identity}] {result.error_context}")
                return result

            result.applied_operations.append(operation.name)
            tracker.log_change(
                operation.kind.value,
                success=True,
                host_ref=operation.host_ref,
                description=operation.description,
            )
            logger.info(f"[{result.identity}] Applied {operation.name}")

        result.success = True
        result.phase = ReconcilePhase.DONE
        return result

    def _dry_run(
        self,
        plan: OperationPlan,
        result: ReconcileResult,
        tracker: ChangeTracker,
    ) -> ReconcileResult:
        """Preview mode: record what would run, call nothing."""
        for operation in plan.operations:
            tracker.log_change(
                operation.kind.value,
                success=True,
                dry_run=True,
                host_ref=operation.host_ref,
                description=operation.description,
            )
            logger.info(f"[{result.identity}] [DRY-RUN] {operation.description or operation.name}")
        result.success = True
        result.phase = ReconcilePhase.DONE
        return result

    async def _apply(
        self,
        operation: PlannedOperation,
        switch: Optional[str],
        timeout: Optional[float],
    ) -> Any:
        call = self._dispatch(operation, timeout)
        async with timed_section(operation.kind.value, switch=switch, host=operation.host_ref or "-"):
            return await call_with_deadline(operation.name, call, timeout)

    def _dispatch(self, operation: PlannedOperation, timeout: Optional[float]):
        """Build the platform coroutine for one operation."""
        identity = operation.identity
        kind = operation.kind

        if kind == OperationKind.REPLACE_HOST_SWITCH:
            return self.platform.update_host_switch(
                identity.host_ref, identity.name, operation.payload, timeout
            )
        if kind == OperationKind.UPGRADE_VERSION:
            return self.platform.upgrade_distributed_switch(
                identity.mo_ref, operation.payload, timeout
            )
        if kind == OperationKind.REMOVE_HOST:
            return self.platform.remove_dvs_host(identity.mo_ref, operation.host_ref, timeout)
        if kind == OperationKind.UPDATE_HOST_NICS:
            return self.platform.update_dvs_host(identity.mo_ref, operation.payload, timeout)
        if kind == OperationKind.ADD_HOST:
            return self.platform.add_dvs_host(identity.mo_ref, operation.payload, timeout)
        if kind == OperationKind.RECONFIGURE:
            return self.platform.reconfigure_distributed_switch(
                identity.mo_ref, operation.payload, timeout
            )
        raise ValueError(f"Unknown operation kind: {kind}")

    async def _refresh_config_version(
        self,
        operation: PlannedOperation,
        timeout: Optional[float],
    ) -> None:
        mo_ref = operation.identity.mo_ref
        async with timed_section("get_distributed_switch", switch=mo_ref):
            info = await call_with_deadline(
                "read_config_version",
                self.platform.get_distributed_switch(mo_ref, timeout),
                timeout,
            )
        operation.payload.config_version = info.config_version

    def _error_context(self, result: ReconcileResult) -> str:
        applied = ", ".join(result.applied_operations) or "none"
        skipped = ", ".join(result.skipped_operations) or "none"
        return (
            f"Operation '{result.failed_operation}' failed ({result.error.category}): "
            f"{result.error}. Already applied: {applied}. Not attempted: {skipped}"
        )
