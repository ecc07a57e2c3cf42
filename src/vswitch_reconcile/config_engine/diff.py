"""Diff engine for calculating changes between desired and current state.

Only fields the caller set are compared; an Unset field never produces a
change. Uplink lists are compared in order (order is failover precedence),
VLAN trunk ranges are compared as normalized sets, and host membership is
compared per host.
"""
import copy
from dataclasses import fields, is_dataclass, replace
from typing import Any

from .schema import (
    ChangeType,
    FieldChange,
    HostMembershipChange,
    SwitchConfig,
    SwitchDiff,
    SwitchKind,
    TrunkVlan,
)

# Identity and create-only fields never take part in a diff
IGNORED_FIELDS = {"kind", "host_ref", "parent_ref"}

# Fields handled by dedicated planning steps
MEMBERSHIP_FIELDS = {"hosts", "version"}

# Policy groups compared field by field
NESTED_FIELDS = {"teaming", "security", "ingress_shaping", "egress_shaping",
                 "netflow", "resource_control"}


class DiffEngine:
    """Calculate differences between desired and current switch state."""

    def calculate(self, desired: SwitchConfig, current: SwitchConfig) -> SwitchDiff:
        """
        Calculate diff between desired state and flattened current state.

        Args:
            desired: Declarative configuration requested by the caller
            current: Configuration flattened from the platform

        Returns:
            SwitchDiff with all changes needed
        """
        result = SwitchDiff(kind=desired.kind)

        for f in fields(SwitchConfig):
            name = f.name
            if name in IGNORED_FIELDS or name in MEMBERSHIP_FIELDS:
                continue
            if name == "name" and desired.kind == SwitchKind.HOST:
                continue
            desired_value = getattr(desired, name)
            current_value = getattr(current, name)
            if name in NESTED_FIELDS:
                result.field_changes.extend(
                    self._diff_nested(name, desired_value, current_value)
                )
            elif not _values_equal(desired_value, current_value):
                result.field_changes.append(
                    FieldChange(field=name, current=current_value, desired=desired_value)
                )

        if desired.kind == SwitchKind.DISTRIBUTED:
            if desired.version is not None and desired.version != current.version:
                result.version_change = FieldChange(
                    field="version", current=current.version, desired=desired.version
                )
            if desired.hosts is not None:
                result.host_changes = self._diff_hosts(desired.hosts, current.hosts or {})

        return result

    def _diff_nested(self, name: str, desired: Any, current: Any) -> list[FieldChange]:
        """Compare the set fields of a policy group."""
        if desired is None:
            return []
        if current is None:
            current = type(desired)()
        changes = []
        for f in fields(desired):
            desired_value = getattr(desired, f.name)
            current_value = getattr(current, f.name)
            if not _values_equal(desired_value, current_value):
                changes.append(FieldChange(
                    field=f"{name}.{f.name}",
                    current=current_value,
                    desired=desired_value,
                ))
        return changes

    def _diff_hosts(
        self,
        desired: dict[str, list[str]],
        current: dict[str, list[str]],
    ) -> list[HostMembershipChange]:
        changes = []
        for host_ref in current:
            if host_ref not in desired:
                changes.append(HostMembershipChange(
                    host_ref=host_ref,
                    change_type=ChangeType.DELETE,
                    current_devices=list(current[host_ref]),
                ))
        for host_ref, devices in desired.items():
            if host_ref not in current:
                changes.append(HostMembershipChange(
                    host_ref=host_ref,
                    change_type=ChangeType.CREATE,
                    desired_devices=list(devices),
                ))
            elif list(devices) != list(current[host_ref]):
                changes.append(HostMembershipChange(
                    host_ref=host_ref,
                    change_type=ChangeType.MODIFY,
                    current_devices=list(current[host_ref]),
                    desired_devices=list(devices),
                ))
        return changes


def _values_equal(desired: Any, current: Any) -> bool:
    """Equality for a set field. Unset desired values always match."""
    if desired is None:
        return True
    if isinstance(desired, TrunkVlan) and isinstance(current, TrunkVlan):
        return desired.normalized() == current.normalized()
    return desired == current


def overlay(current: SwitchConfig, desired: SwitchConfig) -> SwitchConfig:
    """
    Return current state with every set field of desired applied on top.

    Policy groups are overlaid field by field so an unset teaming or
    security flag keeps its current value.
    """
    merged = copy.deepcopy(current)
    for f in fields(SwitchConfig):
        value = getattr(desired, f.name)
        if value is None:
            continue
        existing = getattr(merged, f.name)
        if f.name in NESTED_FIELDS and is_dataclass(value) and existing is not None:
            updates = {
                nf.name: copy.deepcopy(getattr(value, nf.name))
                for nf in fields(value)
                if getattr(value, nf.name) is not None
            }
            setattr(merged, f.name, replace(existing, **updates))
        else:
            setattr(merged, f.name, copy.deepcopy(value))
    return merged


def summarize_diff(diff: SwitchDiff) -> str:
    """
    Create a human-readable summary of a diff.

    Useful for dry-run output and logging.
    """
    lines = []

    if diff.no_change:
        return "No changes needed - current state matches desired state"

    lines.append(f"Changes to apply ({diff.total_changes} total):")
    lines.append("")

    if diff.version_change:
        lines.append(
            f"  [~] Upgrade version {diff.version_change.current} -> {diff.version_change.desired}"
        )

    for change in diff.host_changes:
        if change.change_type == ChangeType.CREATE:
            lines.append(f"  [+] Add host {change.host_ref}")
            lines.append(f"      Devices: {', '.join(change.desired_devices) or '(none)'}")
        elif change.change_type == ChangeType.DELETE:
            lines.append(f"  [-] Remove host {change.host_ref}")
            if change.current_devices:
                lines.append(f"      (was: {', '.join(change.current_devices)})")
        elif change.change_type == ChangeType.MODIFY:
            lines.append(f"  [~] Update host {change.host_ref} devices")
            lines.append(
                f"      {', '.join(change.current_devices) or '(none)'} -> "
                f"{', '.join(change.desired_devices) or '(none)'}"
            )

    for change in diff.field_changes:
        lines.append(f"  [~] {change.field}: {_render(change.current)} -> {_render(change.desired)}")

    return "\n".join(lines)


def _render(value: Any) -> str:
    if isinstance(value, TrunkVlan):
        return ", ".join(f"{low}-{high}" for low, high in value.normalized())
    if isinstance(value, list):
        return "[" + ", ".join(str(v) for v in value) + "]"
    if hasattr(value, "value"):
        return str(value.value)
    return repr(value)
