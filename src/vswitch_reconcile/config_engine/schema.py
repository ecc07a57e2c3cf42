"""Schema definitions for the Config Engine.

Defines the declarative switch model and the diff, plan and result
dataclasses. In the declarative model a field set to None is Unset: the
caller expressed no opinion and the platform's current (or inherited) value
stands. Any other value is an override.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional, Union

from ..errors import PlanApplicationError, RemoteCallError


class SwitchKind(str, Enum):
    """Scope of a virtual switch."""
    HOST = "host"                  # Host-local standard switch
    DISTRIBUTED = "distributed"    # Spans many hosts


class TeamingMode(str, Enum):
    """Load balancing / failover algorithm."""
    FAILOVER_EXPLICIT = "failover_explicit"
    LOADBALANCE_SRCID = "loadbalance_srcid"
    LOADBALANCE_SRCMAC = "loadbalance_srcmac"
    LOADBALANCE_IP = "loadbalance_ip"
    LOADBALANCE_LOADBASED = "loadbalance_loadbased"  # Distributed only
    UNRECOGNIZED = "unrecognized"                    # Reported, never written


class ResourceControlVersion(str, Enum):
    """Network resource control version of a distributed switch."""
    VERSION2 = "version2"
    VERSION3 = "version3"
    UNRECOGNIZED = "unrecognized"


class ChangeType(str, Enum):
    """Type of change in a diff."""
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    NO_CHANGE = "no_change"


# --- Identity ---

@dataclass(frozen=True)
class HostScoped:
    """Identity of a host-local switch."""
    host_ref: str
    name: str


@dataclass(frozen=True)
class DistributedRef:
    """Identity of a distributed switch."""
    mo_ref: str


SwitchIdentity = Union[HostScoped, DistributedRef]


# --- Policy groups ---

@dataclass
class TeamingPolicy:
    """NIC teaming and failover settings."""
    mode: Optional[TeamingMode] = None
    check_beacon: Optional[bool] = None
    notify_switches: Optional[bool] = None
    failback: Optional[bool] = None

    def is_set(self) -> bool:
        return any(
            v is not None
            for v in (self.mode, self.check_beacon, self.notify_switches, self.failback)
        )


@dataclass
class SecurityPolicy:
    """Layer 2 security settings."""
    allow_promiscuous: Optional[bool] = None
    allow_forged_transmits: Optional[bool] = None
    allow_mac_changes: Optional[bool] = None

    def is_set(self) -> bool:
        return any(
            v is not None
            for v in (self.allow_promiscuous, self.allow_forged_transmits, self.allow_mac_changes)
        )


@dataclass
class TrafficShapingPolicy:
    """Traffic shaping for one direction."""
    enabled: Optional[bool] = None
    average_bandwidth: Optional[int] = None  # bits per second
    peak_bandwidth: Optional[int] = None     # bits per second
    burst_size: Optional[int] = None         # bytes


@dataclass
class UplinkSet:
    """Declared uplink pool with its active and standby subsets."""
    uplinks: list[str] = field(default_factory=list)
    active: list[str] = field(default_factory=list)
    standby: list[str] = field(default_factory=list)

    @property
    def unused(self) -> list[str]:
        """Uplinks in the pool that are neither active nor standby."""
        assigned = set(self.active) | set(self.standby)
        return [u for u in self.uplinks if u not in assigned]

    @classmethod
    def from_platform(
        cls,
        precedence: list[str],
        active: list[str],
        standby: list[str],
    ) -> "UplinkSet":
        """Rebuild from the platform's precedence list and membership lists.

        Membership names that are not in the precedence list are dropped.
        """
        pool = set(precedence)
        return cls(
            uplinks=list(precedence),
            active=[u for u in active if u in pool],
            standby=[u for u in standby if u in pool],
        )


# --- VLAN variants ---

@dataclass(frozen=True)
class UntaggedVlan:
    """No VLAN tagging."""
    pass


@dataclass(frozen=True)
class SingleVlan:
    """Access port on one VLAN."""
    vlan_id: int


@dataclass(frozen=True)
class TrunkVlan:
    """Trunk admitting inclusive (min, max) VLAN ranges. Compared as a set."""
    ranges: frozenset[tuple[int, int]] = frozenset()

    @classmethod
    def of(cls, *ranges: tuple[int, int]) -> "TrunkVlan":
        return cls(frozenset(ranges))

    def normalized(self) -> list[tuple[int, int]]:
        """Sorted ranges with overlapping and adjacent ranges merged."""
        merged: list[tuple[int, int]] = []
        for low, high in sorted(self.ranges):
            if merged and low <= merged[-1][1] + 1:
                merged[-1] = (merged[-1][0], max(merged[-1][1], high))
            else:
                merged.append((low, high))
        return merged


@dataclass(frozen=True)
class UnrecognizedVlan:
    """A VLAN variant reported by the platform that this engine does not model."""
    type_name: str


VlanConfig = Union[UntaggedVlan, SingleVlan, TrunkVlan, UnrecognizedVlan]


# --- Distributed switch extras ---

@dataclass
class NetFlowConfig:
    """Flow export (IPFIX) settings."""
    collector_ip: Optional[str] = None
    collector_port: Optional[int] = None
    observation_domain_id: Optional[int] = None
    active_flow_timeout: Optional[int] = None  # seconds
    idle_flow_timeout: Optional[int] = None    # seconds
    sampling_rate: Optional[int] = None
    internal_flows_only: Optional[bool] = None
    switch_ip: Optional[str] = None            # Source IP of exported records


@dataclass
class NetworkResourceControl:
    """Network I/O control.

    pools (name -> shares) are only valid under version2; reservations
    (system traffic key -> Mbit/s) are only valid under version3.
    """
    enabled: Optional[bool] = None
    version: Optional[ResourceControlVersion] = None
    pools: Optional[dict[str, int]] = None
    reservations: Optional[dict[str, int]] = None


@dataclass
class LinkDiscovery:
    """CDP/LLDP settings."""
    protocol: str = "cdp"       # cdp, lldp
    operation: str = "listen"   # listen, advertise, both, none


# --- Declarative switch model ---

@dataclass
class SwitchConfig:
    """Declarative configuration of one virtual switch.

    ``uplinks`` is the declared uplink pool: bonded adapter names for a
    host-local switch, uplink port names for a distributed switch. Order is
    the failover precedence.
    """
    kind: SwitchKind
    name: str
    host_ref: Optional[str] = None      # Host-local: owning host
    parent_ref: Optional[str] = None    # Distributed: network folder used on create
    uplinks: Optional[list[str]] = None
    active_uplinks: Optional[list[str]] = None
    standby_uplinks: Optional[list[str]] = None
    teaming: TeamingPolicy = field(default_factory=TeamingPolicy)
    security: SecurityPolicy = field(default_factory=SecurityPolicy)
    ingress_shaping: Optional[TrafficShapingPolicy] = None
    egress_shaping: Optional[TrafficShapingPolicy] = None
    vlan: Optional[VlanConfig] = None
    netflow: Optional[NetFlowConfig] = None
    resource_control: Optional[NetworkResourceControl] = None
    hosts: Optional[dict[str, list[str]]] = None
    link_discovery: Optional[LinkDiscovery] = None
    # Host-local only
    number_of_ports: Optional[int] = None
    mtu: Optional[int] = None
    beacon_interval: Optional[int] = None
    # Distributed only
    version: Optional[str] = None
    description: Optional[str] = None
    contact_name: Optional[str] = None
    contact_detail: Optional[str] = None
    max_mtu: Optional[int] = None

    @property
    def identity(self) -> Optional[SwitchIdentity]:
        """Identity derivable from the model alone (host-local switches only)."""
        if self.kind == SwitchKind.HOST and self.host_ref:
            return HostScoped(host_ref=self.host_ref, name=self.name)
        return None

    def uplink_set(self) -> UplinkSet:
        return UplinkSet(
            uplinks=list(self.uplinks or []),
            active=list(self.active_uplinks or []),
            standby=list(self.standby_uplinks or []),
        )

    def with_defaults(self) -> "SwitchConfig":
        """Return a copy with the per-kind defaults filled into unset fields."""
        defaults = KIND_DEFAULTS[self.kind]
        teaming = TeamingPolicy(
            mode=_pick(self.teaming.mode, defaults["teaming"].mode),
            check_beacon=_pick(self.teaming.check_beacon, defaults["teaming"].check_beacon),
            notify_switches=_pick(self.teaming.notify_switches, defaults["teaming"].notify_switches),
            failback=_pick(self.teaming.failback, defaults["teaming"].failback),
        )
        security = SecurityPolicy(
            allow_promiscuous=_pick(
                self.security.allow_promiscuous, defaults["security"].allow_promiscuous
            ),
            allow_forged_transmits=_pick(
                self.security.allow_forged_transmits, defaults["security"].allow_forged_transmits
            ),
            allow_mac_changes=_pick(
                self.security.allow_mac_changes, defaults["security"].allow_mac_changes
            ),
        )
        egress = self.egress_shaping
        if egress is None and self.kind == SwitchKind.HOST:
            egress = TrafficShapingPolicy(enabled=False)
        return replace(self, teaming=teaming, security=security, egress_shaping=egress)


def _pick(value: Any, default: Any) -> Any:
    return default if value is None else value


KIND_DEFAULTS: dict[SwitchKind, dict[str, Any]] = {
    SwitchKind.HOST: {
        "teaming": TeamingPolicy(
            mode=TeamingMode.LOADBALANCE_SRCID,
            check_beacon=False,
            notify_switches=True,
            failback=True,
        ),
        "security": SecurityPolicy(
            allow_promiscuous=False,
            allow_forged_transmits=True,
            allow_mac_changes=True,
        ),
    },
    SwitchKind.DISTRIBUTED: {
        "teaming": TeamingPolicy(
            mode=TeamingMode.LOADBALANCE_SRCID,
            check_beacon=False,
            notify_switches=True,
            failback=True,
        ),
        "security": SecurityPolicy(
            allow_promiscuous=False,
            allow_forged_transmits=False,
            allow_mac_changes=False,
        ),
    },
}


# --- Validation Results ---

@dataclass
class ValidationResult:
    """Result of config validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# --- Diff Results ---

@dataclass
class FieldChange:
    """A single scalar or collection field that differs."""
    field: str
    current: Any = None
    desired: Any = None


@dataclass
class HostMembershipChange:
    """A change to one host's membership in a distributed switch."""
    host_ref: str
    change_type: ChangeType
    current_devices: list[str] = field(default_factory=list)
    desired_devices: list[str] = field(default_factory=list)


@dataclass
class SwitchDiff:
    """Result of diffing desired vs current switch state."""
    kind: SwitchKind
    field_changes: list[FieldChange] = field(default_factory=list)
    host_changes: list[HostMembershipChange] = field(default_factory=list)
    version_change: Optional[FieldChange] = None

    @property
    def no_change(self) -> bool:
        """Check if there are any changes."""
        return (
            len(self.field_changes) == 0 and
            len(self.host_changes) == 0 and
            self.version_change is None
        )

    @property
    def total_changes(self) -> int:
        """Total number of changes."""
        return (
            len(self.field_changes) +
            len(self.host_changes) +
            (1 if self.version_change else 0)
        )

    def changed_fields(self) -> list[str]:
        return [c.field for c in self.field_changes]


# --- Operation Plan ---

class OperationKind(str, Enum):
    """Remote operation issued while applying a plan."""
    REPLACE_HOST_SWITCH = "replace_host_switch"
    UPGRADE_VERSION = "upgrade_version"
    REMOVE_HOST = "remove_host"
    UPDATE_HOST_NICS = "update_host_nics"
    ADD_HOST = "add_host"
    RECONFIGURE = "reconfigure"


@dataclass
class PlannedOperation:
    """One remote call in a plan."""
    kind: OperationKind
    identity: SwitchIdentity
    payload: Any = None
    host_ref: Optional[str] = None
    description: str = ""

    @property
    def name(self) -> str:
        if self.host_ref:
            return f"{self.kind.value}[{self.host_ref}]"
        return self.kind.value


@dataclass
class OperationPlan:
    """Ordered remote operations for one reconcile cycle."""
    operations: list[PlannedOperation] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return len(self.operations) == 0

    def names(self) -> list[str]:
        return [op.name for op in self.operations]

    def count(self, kind: OperationKind) -> int:
        return sum(1 for op in self.operations if op.kind == kind)


# --- Execution Results ---

class ReconcilePhase(str, Enum):
    """Phase a cycle reached. A failed cycle keeps the phase it failed in."""
    VALIDATING = "validating"
    DIFFING = "diffing"
    PLANNING = "planning"
    APPLYING = "applying"
    DONE = "done"


@dataclass
class ReconcileResult:
    """Result of a create, reconcile or delete cycle."""
    identity: Optional[str] = None
    success: bool = False
    dry_run: bool = False
    phase: ReconcilePhase = ReconcilePhase.VALIDATING
    plan: Optional[OperationPlan] = None
    applied_operations: list[str] = field(default_factory=list)
    failed_operation: Optional[str] = None
    skipped_operations: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: Optional[Exception] = None
    error_context: Optional[str] = None
    state: Optional[SwitchConfig] = None

    @property
    def error_category(self) -> Optional[str]:
        return getattr(self.error, "category", None)

    def raise_for_error(self) -> None:
        """Raise the failure recorded in this result, if any."""
        if self.error is None:
            return
        if isinstance(self.error, RemoteCallError) and self.failed_operation:
            raise PlanApplicationError(
                self.failed_operation, self.applied_operations, self.error
            ) from self.error
        raise self.error

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "identity": self.identity,
            "success": self.success,
            "dry_run": self.dry_run,
            "phase": self.phase.value,
            "planned_operations": self.plan.names() if self.plan else [],
            "applied_operations": self.applied_operations,
            "failed_operation": self.failed_operation,
            "skipped_operations": self.skipped_operations,
            "warnings": self.warnings,
            "error": str(self.error) if self.error else None,
            "error_category": self.error_category,
            "error_context": self.error_context,
        }
