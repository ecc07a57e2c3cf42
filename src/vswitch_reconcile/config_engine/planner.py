"""Update planner: turns a diff into ordered platform operations.

Host-local switches only support whole-spec replacement, so any change
becomes a single replace operation. Distributed switches get, in order:
a version upgrade, one membership operation per changed host (removals,
then NIC updates, then additions), and finally one reconfigure operation
for every other changed field.
"""
import copy
import logging
from dataclasses import replace
from typing import Any, Optional

from ..errors import ValidationError
from ..platform.types import (
    DVSHostMemberSpec,
    HostNetworkPolicy,
    HostVirtualSwitch,
    NicTeamingPolicy,
)
from .diff import overlay
from .expander import SpecExpander
from .schema import (
    ChangeType,
    DistributedRef,
    HostScoped,
    OperationKind,
    OperationPlan,
    PlannedOperation,
    ResourceControlVersion,
    SwitchConfig,
    SwitchDiff,
    SwitchIdentity,
    SwitchKind,
    TeamingMode,
    UnrecognizedVlan,
)
from .validator import ConfigValidator, parse_version

logger = logging.getLogger(__name__)

MEMBERSHIP_ORDER = {
    ChangeType.DELETE: 0,
    ChangeType.MODIFY: 1,
    ChangeType.CREATE: 2,
}


class UpdatePlanner:
    """Plan the platform operations needed to apply a diff."""

    def __init__(self, expander: Optional[SpecExpander] = None):
        self.expander = expander or SpecExpander()

    def plan(
        self,
        identity: SwitchIdentity,
        desired: SwitchConfig,
        current: SwitchConfig,
        diff: SwitchDiff,
        config_version: Optional[str] = None,
        remote: Any = None,
    ) -> OperationPlan:
        """
        Build the operation plan for one reconcile cycle.

        Args:
            identity: Identity of the switch being reconciled
            desired: Declarative configuration requested by the caller
            current: Configuration flattened from the platform
            diff: Result of DiffEngine.calculate(desired, current)
            config_version: Platform config version for distributed reconfigure
            remote: Platform object ``current`` was flattened from, used to
                carry settings the model cannot express back unchanged

        Returns:
            OperationPlan (empty when the diff has no changes)

        Raises:
            ValidationError: if the merged configuration is invalid
        """
        if diff.no_change:
            return OperationPlan()
        if config_version is None:
            config_version = getattr(remote, "config_version", None)

        target = derive_uplinks(desired, current)
        merged = mask_unrecognized(overlay(current, target), desired)

        result = ConfigValidator(merged.kind).validate(merged)
        if not result.valid:
            raise ValidationError(result.errors)

        if isinstance(identity, HostScoped):
            return self._plan_host_switch(identity, merged, diff, remote)
        return self._plan_distributed_switch(identity, merged, current, diff, config_version)

    def _plan_host_switch(
        self,
        identity: HostScoped,
        merged: SwitchConfig,
        diff: SwitchDiff,
        remote: Any = None,
    ) -> OperationPlan:
        spec = self.expander.expand_host_switch(merged)
        if merged.teaming.mode is None:
            _carry_host_teaming_policy(spec, remote)
        return OperationPlan(operations=[
            PlannedOperation(
                kind=OperationKind.REPLACE_HOST_SWITCH,
                identity=identity,
                payload=spec,
                description=f"Replace spec of {identity.name} on {identity.host_ref} "
                            f"({', '.join(diff.changed_fields())})",
            )
        ])

    def _plan_distributed_switch(
        self,
        identity: DistributedRef,
        merged: SwitchConfig,
        current: SwitchConfig,
        diff: SwitchDiff,
        config_version: Optional[str],
    ) -> OperationPlan:
        plan = OperationPlan()

        if diff.version_change is not None:
            desired_version = diff.version_change.desired
            current_version = diff.version_change.current
            if current_version and parse_version(desired_version) < parse_version(current_version):
                raise ValidationError(
                    f"Cannot downgrade distributed switch from {current_version} to {desired_version}"
                )
            plan.operations.append(PlannedOperation(
                kind=OperationKind.UPGRADE_VERSION,
                identity=identity,
                payload=desired_version,
                description=f"Upgrade {identity.mo_ref} to {desired_version}",
            ))

        kinds = {
            ChangeType.DELETE: OperationKind.REMOVE_HOST,
            ChangeType.MODIFY: OperationKind.UPDATE_HOST_NICS,
            ChangeType.CREATE: OperationKind.ADD_HOST,
        }
        operations = {
            ChangeType.DELETE: "remove",
            ChangeType.MODIFY: "edit",
            ChangeType.CREATE: "add",
        }
        for change in sorted(diff.host_changes, key=lambda c: MEMBERSHIP_ORDER[c.change_type]):
            plan.operations.append(PlannedOperation(
                kind=kinds[change.change_type],
                identity=identity,
                host_ref=change.host_ref,
                payload=DVSHostMemberSpec(
                    host=change.host_ref,
                    pnic_device=list(change.desired_devices),
                    operation=operations[change.change_type],
                ),
                description=f"{operations[change.change_type].capitalize()} host "
                            f"{change.host_ref} on {identity.mo_ref}",
            ))

        if diff.field_changes:
            spec = self.expander.expand_distributed_switch(
                reconfigure_fields(merged, current, diff)
            )
            # Membership and version are applied by the operations above
            spec.host = []
            spec.config_version = config_version
            plan.operations.append(PlannedOperation(
                kind=OperationKind.RECONFIGURE,
                identity=identity,
                payload=spec,
                description=f"Reconfigure {identity.mo_ref} "
                            f"({', '.join(diff.changed_fields())})",
            ))

        logger.debug(f"Planned {len(plan.operations)} operations: {plan.names()}")
        return plan


def derive_uplinks(desired: SwitchConfig, current: SwitchConfig) -> SwitchConfig:
    """
    Re-derive active/standby lists the caller left unset.

    If the caller changed the pool but left active and standby unset, keep
    the current active/standby names that survive in the new pool, in their
    current order. If none survive, every uplink of the new pool is active.

    If the caller set only one of the two lists, the other keeps its current
    names minus those the caller placed in the set list, dropping names
    outside the pool.
    """
    active_set = desired.active_uplinks is not None
    standby_set = desired.standby_uplinks is not None
    if active_set != standby_set:
        return _complete_order(desired, current)
    if active_set:
        return desired
    if desired.uplinks is None or desired.uplinks == current.uplinks:
        return desired
    if current.active_uplinks is None and current.standby_uplinks is None:
        return desired

    pool = set(desired.uplinks)
    active = [u for u in current.active_uplinks or [] if u in pool]
    standby = [u for u in current.standby_uplinks or [] if u in pool]
    if not active and not standby:
        active = list(desired.uplinks)

    logger.info(
        f"Uplink pool changed for {desired.name}; re-derived active={active} standby={standby}"
    )
    return replace(desired, active_uplinks=active, standby_uplinks=standby)


def _complete_order(desired: SwitchConfig, current: SwitchConfig) -> SwitchConfig:
    pool = desired.uplinks if desired.uplinks is not None else current.uplinks
    if desired.active_uplinks is not None:
        taken, other, label = desired.active_uplinks, current.standby_uplinks, "standby_uplinks"
    else:
        taken, other, label = desired.standby_uplinks, current.active_uplinks, "active_uplinks"
    if other is None:
        return desired

    kept = [u for u in other if u not in taken and (pool is None or u in pool)]
    if kept == other:
        return desired
    logger.info(f"Re-derived {label} for {desired.name}: {kept}")
    return replace(desired, **{label: kept})


# Fields written together by a single platform sub-object
FIELD_GROUPS = (
    {"teaming", "active_uplinks", "standby_uplinks"},
    {"contact_name", "contact_detail"},
)


def reconfigure_fields(
    merged: SwitchConfig,
    current: SwitchConfig,
    diff: SwitchDiff,
) -> SwitchConfig:
    """
    Sparse configuration holding only the fields a reconfigure must write.

    Everything else stays Unset so the platform keeps it as is, including
    settings the model can only read back as unrecognized.
    """
    changed = {change.field.split(".")[0] for change in diff.field_changes}
    if (merged.active_uplinks != current.active_uplinks
            or merged.standby_uplinks != current.standby_uplinks):
        changed.update({"active_uplinks", "standby_uplinks"})
    for group in FIELD_GROUPS:
        if changed & group:
            changed |= group
    changed -= {"kind", "name", "hosts", "version"}

    sparse = SwitchConfig(kind=SwitchKind.DISTRIBUTED, name=merged.name)
    for name in changed:
        setattr(sparse, name, copy.deepcopy(getattr(merged, name)))
    return sparse


def mask_unrecognized(merged: SwitchConfig, desired: SwitchConfig) -> SwitchConfig:
    """
    Clear unrecognized platform values the caller did not replace.

    They were read from the platform and are left there untouched; only an
    explicit caller value may overwrite them.
    """
    if merged.teaming.mode == TeamingMode.UNRECOGNIZED and desired.teaming.mode is None:
        merged = replace(merged, teaming=replace(merged.teaming, mode=None))
    if isinstance(merged.vlan, UnrecognizedVlan) and desired.vlan is None:
        merged = replace(merged, vlan=None)
    nrc = merged.resource_control
    if nrc is not None and nrc.version == ResourceControlVersion.UNRECOGNIZED:
        requested = desired.resource_control
        if requested is None or requested.version is None:
            merged = replace(merged, resource_control=replace(nrc, version=None))
    return merged


def _carry_host_teaming_policy(spec, remote: Optional[HostVirtualSwitch]) -> None:
    """Copy the platform's own teaming policy string into a replacement spec."""
    existing = getattr(remote, "spec", None)
    raw = None
    if existing is not None and existing.policy is not None and existing.policy.nic_teaming is not None:
        raw = existing.policy.nic_teaming.policy
    if raw is None:
        return
    if spec.policy is None:
        spec.policy = HostNetworkPolicy()
    if spec.policy.nic_teaming is None:
        spec.policy.nic_teaming = NicTeamingPolicy()
    spec.policy.nic_teaming.policy = raw
