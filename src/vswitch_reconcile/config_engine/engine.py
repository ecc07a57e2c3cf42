"""Reconcile engine - orchestrates the create / read / reconcile / delete workflow.

A reconcile cycle runs Validating -> Diffing -> Planning -> Applying -> Done:
1. Validating the declarative model (no remote calls)
2. Reading and flattening current state, then diffing
3. Planning ordered remote operations
4. Applying them, halting on the first failure
"""
import logging
from dataclasses import replace
from typing import Any, Optional, Union

from ..config.settings import EngineSettings
from ..errors import (
    EncodingError,
    MalformedIdentity,
    NotFoundError,
    ParseError,
    RemoteCallError,
    ValidationError,
)
from ..platform.base import SwitchPlatform
from ..utils.audit_log import ChangeTracker, setup_audit_logging
from ..utils.connection import call_with_deadline, with_retry
from ..utils.logging_config import timed_section
from .diff import DiffEngine, summarize_diff
from .executor import ConfigExecutor
from .expander import SpecExpander
from .flattener import SpecFlattener
from .identity import decode_identity, encode_identity, identity_kind
from .parser import ConfigParser
from .planner import UpdatePlanner
from .schema import (
    DistributedRef,
    HostScoped,
    OperationPlan,
    ReconcilePhase,
    ReconcileResult,
    SwitchConfig,
    SwitchDiff,
    SwitchIdentity,
    SwitchKind,
    ValidationResult,
)
from .validator import ConfigValidator

logger = logging.getLogger(__name__)

ConfigInput = Union[SwitchConfig, dict[str, Any]]
IdentityInput = Union[str, SwitchIdentity]


class ReconcileEngine:
    """
    Drive virtual switches on a platform towards declared configurations.

    Usage:
        engine = ReconcileEngine(platform, EngineSettings.from_env())
        created = await engine.create({"kind": "host", "name": "vSwitch1", ...})
        result = await engine.reconcile(created.identity, desired, dry_run=True)
    """

    def __init__(
        self,
        platform: SwitchPlatform,
        settings: Optional[EngineSettings] = None,
    ):
        """
        Initialize the engine.

        Args:
            platform: Management platform session
            settings: Deadline, retry and audit settings (defaults when omitted)
        """
        self.platform = platform
        self.settings = settings or EngineSettings()
        self.parser = ConfigParser()
        self.expander = SpecExpander()
        self.flattener = SpecFlattener()
        self.diff_engine = DiffEngine()
        self.planner = UpdatePlanner(self.expander)
        self.executor = ConfigExecutor(platform)
        if self.settings.audit_log_path:
            setup_audit_logging(self.settings.audit_log_path)

    # --- Public entry points ---

    def validate(self, config: ConfigInput) -> ValidationResult:
        """Validate a declarative model without touching the platform."""
        try:
            desired = self._parse(config)
        except ParseError as e:
            return ValidationResult(valid=False, errors=e.errors)
        return ConfigValidator().validate(desired)

    async def create(
        self,
        config: ConfigInput,
        timeout: Optional[float] = None,
    ) -> ReconcileResult:
        """
        Create a switch and read back its flattened state.

        Unset teaming and security fields receive the per-kind defaults.
        The encoded identity is returned on the result for the caller to store.
        """
        timeout = self._timeout(timeout)
        result = ReconcileResult()

        try:
            desired = self._parse(config).with_defaults()
            if desired.kind == SwitchKind.DISTRIBUTED and not desired.parent_ref:
                raise ValidationError("Creating a distributed switch requires parent_ref")
            spec = self.expander.expand(desired)
            if desired.kind == SwitchKind.HOST:
                identity = HostScoped(host_ref=desired.host_ref, name=desired.name)
                result.identity = encode_identity(identity)
        except (ValidationError, EncodingError) as e:
            return self._fail(result, e)

        logger.info(f"Creating {desired.kind.value} switch {desired.name}")
        result.phase = ReconcilePhase.APPLYING
        tracker = ChangeTracker(result.identity or desired.name)
        try:
            if desired.kind == SwitchKind.HOST:
                await self._call(
                    "add_host_switch", result.identity,
                    self.platform.add_host_switch(identity.host_ref, identity.name, spec, timeout),
                    timeout,
                )
            else:
                mo_ref = await self._call(
                    "create_distributed_switch", desired.name,
                    self.platform.create_distributed_switch(desired.parent_ref, spec, timeout),
                    timeout,
                )
                identity = DistributedRef(mo_ref=mo_ref)
                result.identity = encode_identity(identity)
        except (RemoteCallError, EncodingError) as e:
            tracker.log_change("create", success=False, error=str(e),
                               error_category=getattr(e, "category", None))
            result.failed_operation = "create"
            return self._fail(result, e)

        result.applied_operations.append("create")
        tracker.switch = result.identity
        tracker.log_change("create", success=True, description=f"Create {desired.name}")

        try:
            result.state = await self.read(identity, timeout=timeout)
        except RemoteCallError as e:
            result.warnings.append(f"Switch created but reading it back failed: {e}")
            logger.warning(f"[{result.identity}] {result.warnings[-1]}")

        result.success = True
        result.phase = ReconcilePhase.DONE
        return result

    async def read(
        self,
        identity: IdentityInput,
        timeout: Optional[float] = None,
    ) -> SwitchConfig:
        """
        Read and flatten the current state of a switch.

        Transient failures are retried with backoff up to settings.read_attempts.

        Raises:
            MalformedIdentity: if the identity string cannot be decoded
            NotFoundError: if the switch no longer exists
            RemoteCallError: for other classified platform failures
        """
        config, _ = await self._fetch(self._identity(identity), self._timeout(timeout))
        return config

    async def plan(
        self,
        identity: IdentityInput,
        desired: ConfigInput,
        timeout: Optional[float] = None,
    ) -> OperationPlan:
        """Compute the operation plan for a desired model without applying it."""
        switch = self._identity(identity)
        desired = self._prepare(switch, desired)
        current, remote = await self._fetch(switch, self._timeout(timeout))
        diff = self.diff_engine.calculate(desired, current)
        return self.planner.plan(switch, desired, current, diff, remote=remote)

    async def reconcile(
        self,
        identity: IdentityInput,
        desired: ConfigInput,
        dry_run: bool = False,
        timeout: Optional[float] = None,
    ) -> ReconcileResult:
        """
        Run one reconcile cycle.

        Args:
            identity: Encoded or decoded switch identity
            desired: Declarative model (SwitchConfig or document dict)
            dry_run: Plan and audit the operations without applying them
            timeout: Per-call deadline in seconds (defaults to settings.api_timeout)

        Returns:
            ReconcileResult; call raise_for_error() to turn a failure into an exception
        """
        timeout = self._timeout(timeout)
        result = ReconcileResult(dry_run=dry_run)

        # Validating
        try:
            switch = self._identity(identity)
            result.identity = encode_identity(switch)
            desired = self._prepare(switch, desired)
        except (ValidationError, MalformedIdentity, EncodingError) as e:
            return self._fail(result, e)

        # Diffing
        self._enter(result, ReconcilePhase.DIFFING)
        try:
            current, remote = await self._fetch(switch, timeout)
        except RemoteCallError as e:
            result.error_context = f"Reading current state failed: {e}"
            return self._fail(result, e)
        diff = self.diff_engine.calculate(desired, current)
        logger.debug(f"[{result.identity}] {summarize_diff(diff)}")

        # Planning
        self._enter(result, ReconcilePhase.PLANNING)
        try:
            plan = self.planner.plan(switch, desired, current, diff, remote=remote)
        except ValidationError as e:
            return self._fail(result, e)
        result.plan = plan

        if plan.is_empty:
            logger.info(f"[{result.identity}] No changes needed")
            result.state = current
            result.success = True
            self._enter(result, ReconcilePhase.DONE)
            return result

        logger.debug(f"[{result.identity}] Plan: {plan.names()}")

        # Applying
        self._enter(result, ReconcilePhase.APPLYING)
        await self.executor.execute(plan, result, timeout)
        if not result.success:
            return result

        if dry_run:
            result.state = current
        else:
            try:
                result.state = await self.read(switch, timeout=timeout)
            except RemoteCallError as e:
                result.warnings.append(f"Changes applied but reading back state failed: {e}")
        self._enter(result, ReconcilePhase.DONE)
        return result

    async def delete(
        self,
        identity: IdentityInput,
        timeout: Optional[float] = None,
    ) -> ReconcileResult:
        """
        Remove a switch. A switch that is already gone counts as deleted.
        """
        timeout = self._timeout(timeout)
        result = ReconcileResult()
        try:
            switch = self._identity(identity)
            result.identity = encode_identity(switch)
        except (MalformedIdentity, EncodingError) as e:
            return self._fail(result, e)

        result.phase = ReconcilePhase.APPLYING
        tracker = ChangeTracker(result.identity)
        try:
            if isinstance(switch, HostScoped):
                await self._call(
                    "remove_host_switch", result.identity,
                    self.platform.remove_host_switch(switch.host_ref, switch.name, timeout),
                    timeout,
                )
            else:
                await self._call(
                    "destroy_distributed_switch", result.identity,
                    self.platform.destroy_distributed_switch(switch.mo_ref, timeout),
                    timeout,
                )
        except NotFoundError:
            logger.info(f"[{result.identity}] Already absent, nothing to delete")
            result.warnings.append("Switch was already absent")
        except RemoteCallError as e:
            tracker.log_change("delete", success=False, error=str(e), error_category=e.category)
            result.failed_operation = "delete"
            return self._fail(result, e)
        else:
            result.applied_operations.append("delete")
            tracker.log_change("delete", success=True)

        result.success = True
        result.phase = ReconcilePhase.DONE
        return result

    async def diff(
        self,
        identity: IdentityInput,
        desired: ConfigInput,
        timeout: Optional[float] = None,
    ) -> SwitchDiff:
        """Calculate the diff for a desired model (for external use)."""
        switch = self._identity(identity)
        desired = self._prepare(switch, desired)
        current, _ = await self._fetch(switch, self._timeout(timeout))
        return self.diff_engine.calculate(desired, current)

    async def preview(
        self,
        identity: IdentityInput,
        desired: ConfigInput,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Preview changes without applying.

        Returns human-readable diff summary followed by the planned operations.
        """
        switch = self._identity(identity)
        try:
            desired = self._prepare(switch, desired)
        except ValidationError as e:
            return "Validation failed:\n" + "\n".join(e.errors)

        current, remote = await self._fetch(switch, self._timeout(timeout))
        diff = self.diff_engine.calculate(desired, current)
        summary = summarize_diff(diff)
        if diff.no_change:
            return summary

        try:
            plan = self.planner.plan(switch, desired, current, diff, remote=remote)
        except ValidationError as e:
            return summary + "\n\nPlanning failed:\n" + "\n".join(e.errors)

        summary += "\n\nPlanned operations:\n" + "\n".join(
            f"  {i}. {op.description or op.name}" for i, op in enumerate(plan.operations, 1)
        )
        return summary

    # --- Internals ---

    def _timeout(self, timeout: Optional[float]) -> float:
        return self.settings.api_timeout if timeout is None else timeout

    def _identity(self, identity: IdentityInput) -> SwitchIdentity:
        if isinstance(identity, str):
            return decode_identity(identity)
        return identity

    def _parse(self, config: ConfigInput) -> SwitchConfig:
        if isinstance(config, SwitchConfig):
            return config
        return self.parser.parse(config)

    def _prepare(self, switch: SwitchIdentity, config: ConfigInput) -> SwitchConfig:
        """Parse and validate a desired model against the identity it targets."""
        desired = self._parse(config)
        kind = identity_kind(switch)
        if desired.kind != kind:
            raise ValidationError(
                f"Desired config is for a {desired.kind.value} switch but the identity "
                f"addresses a {kind.value} switch"
            )
        if isinstance(switch, HostScoped):
            if desired.host_ref and desired.host_ref != switch.host_ref:
                raise ValidationError("Moving a host-local switch to another host is not supported")
            if desired.name and desired.name != switch.name:
                raise ValidationError("Renaming a host-local switch is not supported")
            desired = replace(desired, host_ref=switch.host_ref, name=switch.name)

        validation = ConfigValidator(kind).validate(desired)
        if not validation.valid:
            raise ValidationError(validation.errors)
        for warning in validation.warnings:
            logger.warning(f"{desired.name}: {warning}")
        return desired

    async def _call(
        self,
        operation: str,
        switch: Optional[str],
        call: Any,
        timeout: Optional[float],
    ) -> Any:
        async with timed_section(operation, switch=switch):
            return await call_with_deadline(operation, call, timeout)

    async def _fetch(
        self,
        switch: SwitchIdentity,
        timeout: Optional[float],
    ) -> tuple[SwitchConfig, Any]:
        """Read and flatten current state, retrying transient failures.

        Returns the flattened configuration and the platform object it was
        read from.
        """
        label = encode_identity(switch)

        @with_retry(
            max_attempts=self.settings.read_attempts,
            min_wait=self.settings.retry_min_wait,
            max_wait=self.settings.retry_max_wait,
        )
        async def attempt():
            if isinstance(switch, HostScoped):
                return await self._call(
                    "get_host_switch", label,
                    self.platform.get_host_switch(switch.host_ref, switch.name, timeout),
                    timeout,
                )
            return await self._call(
                "get_distributed_switch", label,
                self.platform.get_distributed_switch(switch.mo_ref, timeout),
                timeout,
            )

        remote = await attempt()
        if isinstance(switch, HostScoped):
            return self.flattener.flatten_host_switch(switch.host_ref, remote), remote
        return self.flattener.flatten_distributed_switch(remote), remote

    def _enter(self, result: ReconcileResult, phase: ReconcilePhase) -> None:
        result.phase = phase
        logger.info(f"[{result.identity}] {phase.value.capitalize()}")

    def _fail(self, result: ReconcileResult, error: Exception) -> ReconcileResult:
        result.success = False
        result.error = error
        if result.error_context is None:
            result.error_context = str(error)
        logger.error(f"[{result.identity}] {result.phase.value} failed: {error}")
        return result
