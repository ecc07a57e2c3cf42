"""Pre-flight validation for declarative switch configurations.

Catches logical errors before any platform communication.
"""
import re
from typing import Optional

from .schema import (
    ResourceControlVersion,
    SingleVlan,
    SwitchConfig,
    SwitchKind,
    TeamingMode,
    TrafficShapingPolicy,
    TrunkVlan,
    UnrecognizedVlan,
    ValidationResult,
)


VLAN_MIN = 0
VLAN_MAX = 4094

MTU_MIN = 1280
MTU_MAX = 9000

LINK_DISCOVERY_PROTOCOLS = {
    SwitchKind.HOST: {"cdp"},
    SwitchKind.DISTRIBUTED: {"cdp", "lldp"},
}
LINK_DISCOVERY_OPERATIONS = {"listen", "advertise", "both", "none"}

VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+$")

# Fields that only one switch kind understands
HOST_ONLY_FIELDS = ("number_of_ports", "mtu", "beacon_interval")
DISTRIBUTED_ONLY_FIELDS = (
    "ingress_shaping",
    "vlan",
    "netflow",
    "resource_control",
    "hosts",
    "version",
    "description",
    "contact_name",
    "contact_detail",
    "max_mtu",
)


class ConfigValidator:
    """Validate a declarative switch configuration for logical errors."""

    def __init__(self, kind: Optional[SwitchKind] = None):
        """
        Initialize validator.

        Args:
            kind: Switch kind to validate against; defaults to the config's own kind
        """
        self.kind = kind

    def validate(self, config: SwitchConfig) -> ValidationResult:
        """
        Validate a switch configuration.

        Performs pre-flight checks:
        - Identity fields and kind-specific fields
        - Uplink pool membership of active/standby lists
        - Teaming mode support
        - VLAN ids and trunk ranges
        - Traffic shaping values
        - Flow export and resource control settings
        - Host membership device lists

        Returns:
            ValidationResult with valid flag, errors, and warnings
        """
        errors: list[str] = []
        warnings: list[str] = []
        kind = self.kind or config.kind

        if kind != config.kind:
            errors.append(f"Config is for a {config.kind.value} switch, expected {kind.value}")

        self._validate_identity(config, kind, errors)
        self._validate_kind_fields(config, kind, errors)
        self._validate_uplinks(config, errors, warnings)
        self._validate_teaming(config, kind, errors)
        self._validate_vlan(config, errors)
        self._validate_shaping(config, errors)
        self._validate_netflow(config, errors)
        self._validate_resource_control(config, errors)
        self._validate_hosts(config, errors, warnings)
        self._validate_misc(config, kind, errors)

        return ValidationResult(
            valid=len(errors) == 0,
            errors=errors,
            warnings=warnings,
        )

    def _validate_identity(
        self,
        config: SwitchConfig,
        kind: SwitchKind,
        errors: list[str]
    ) -> None:
        if not config.name:
            errors.append("Switch name is required")
        if kind == SwitchKind.HOST and not config.host_ref:
            errors.append("Host-local switches require a host reference")

    def _validate_kind_fields(
        self,
        config: SwitchConfig,
        kind: SwitchKind,
        errors: list[str]
    ) -> None:
        """Reject settings the other switch kind owns."""
        foreign = DISTRIBUTED_ONLY_FIELDS if kind == SwitchKind.HOST else HOST_ONLY_FIELDS
        for name in foreign:
            if getattr(config, name) is not None:
                errors.append(f"'{name}' is not supported on a {kind.value} switch")

    def _validate_uplinks(
        self,
        config: SwitchConfig,
        errors: list[str],
        warnings: list[str]
    ) -> None:
        """Active/standby must be disjoint subsets of the declared pool."""
        pool = config.uplinks
        active = config.active_uplinks or []
        standby = config.standby_uplinks or []

        if pool is not None:
            duplicates = sorted({u for u in pool if pool.count(u) > 1})
            if duplicates:
                errors.append(f"Duplicate uplinks: {', '.join(duplicates)}")
            if any(not u for u in pool):
                errors.append("Uplink names must not be empty")

            unknown = [u for u in active + standby if u not in pool]
            if unknown:
                errors.append(
                    f"Uplinks {', '.join(unknown)} are not in the declared uplink pool "
                    f"({', '.join(pool) or 'empty'})"
                )

        overlap = [u for u in active if u in standby]
        if overlap:
            errors.append(f"Uplinks {', '.join(overlap)} cannot be both active and standby")

        for label, names in (("active", active), ("standby", standby)):
            repeated = sorted({u for u in names if names.count(u) > 1})
            if repeated:
                errors.append(f"Duplicate {label} uplinks: {', '.join(repeated)}")

        if config.active_uplinks is not None and not config.active_uplinks and standby:
            warnings.append("No active uplinks declared; traffic will only use standby uplinks on failure")

    def _validate_teaming(
        self,
        config: SwitchConfig,
        kind: SwitchKind,
        errors: list[str]
    ) -> None:
        mode = config.teaming.mode
        if mode is None:
            return
        if mode == TeamingMode.UNRECOGNIZED:
            errors.append("Teaming mode reported by the platform is not recognized and cannot be written")
        elif mode == TeamingMode.LOADBALANCE_LOADBASED and kind == SwitchKind.HOST:
            errors.append("Teaming mode loadbalance_loadbased requires a distributed switch")

    def _validate_vlan(self, config: SwitchConfig, errors: list[str]) -> None:
        vlan = config.vlan
        if vlan is None:
            return

        if isinstance(vlan, UnrecognizedVlan):
            errors.append(f"VLAN setting of type {vlan.type_name} cannot be written")
        elif isinstance(vlan, SingleVlan):
            if vlan.vlan_id < 1 or vlan.vlan_id > VLAN_MAX:
                errors.append(
                    f"Invalid VLAN ID {vlan.vlan_id}: must be between 1 and {VLAN_MAX}"
                )
        elif isinstance(vlan, TrunkVlan):
            if not vlan.ranges:
                errors.append("VLAN trunk needs at least one range")
            for low, high in sorted(vlan.ranges):
                if low > high:
                    errors.append(f"Invalid VLAN range {low}-{high}: min is greater than max")
                if not (VLAN_MIN <= low <= VLAN_MAX and VLAN_MIN <= high <= VLAN_MAX):
                    errors.append(
                        f"Invalid VLAN range {low}-{high}: bounds must be between "
                        f"{VLAN_MIN} and {VLAN_MAX}"
                    )

    def _validate_shaping(self, config: SwitchConfig, errors: list[str]) -> None:
        for label, policy in (("ingress", config.ingress_shaping), ("egress", config.egress_shaping)):
            if policy is not None:
                self._check_shaping(label, policy, errors)

    def _check_shaping(
        self,
        label: str,
        policy: TrafficShapingPolicy,
        errors: list[str]
    ) -> None:
        for name in ("average_bandwidth", "peak_bandwidth", "burst_size"):
            value = getattr(policy, name)
            if value is not None and value < 0:
                errors.append(f"{label} shaping {name} must not be negative")

        if (policy.average_bandwidth is not None and policy.peak_bandwidth is not None
                and policy.peak_bandwidth < policy.average_bandwidth):
            errors.append(f"{label} shaping peak bandwidth is lower than average bandwidth")

    def _validate_netflow(self, config: SwitchConfig, errors: list[str]) -> None:
        netflow = config.netflow
        if netflow is None:
            return
        if netflow.collector_port is not None and not 0 <= netflow.collector_port <= 65535:
            errors.append(f"Invalid NetFlow collector port {netflow.collector_port}")
        if netflow.active_flow_timeout is not None and not 60 <= netflow.active_flow_timeout <= 3600:
            errors.append("NetFlow active flow timeout must be between 60 and 3600 seconds")
        if netflow.idle_flow_timeout is not None and not 10 <= netflow.idle_flow_timeout <= 600:
            errors.append("NetFlow idle flow timeout must be between 10 and 600 seconds")
        if netflow.sampling_rate is not None and netflow.sampling_rate < 0:
            errors.append("NetFlow sampling rate must not be negative")
        if netflow.observation_domain_id is not None and netflow.observation_domain_id < 0:
            errors.append("NetFlow observation domain id must not be negative")

    def _validate_resource_control(self, config: SwitchConfig, errors: list[str]) -> None:
        nrc = config.resource_control
        if nrc is None:
            return
        if nrc.version == ResourceControlVersion.UNRECOGNIZED:
            errors.append("Network resource control version reported by the platform cannot be written")
        if nrc.version == ResourceControlVersion.VERSION3 and nrc.pools:
            errors.append(
                "Network resource pools with shares are only valid under version2; "
                "version3 uses system traffic reservations"
            )
        if nrc.version == ResourceControlVersion.VERSION2 and nrc.reservations:
            errors.append("System traffic reservations require network resource control version3")
        for key, value in (nrc.pools or {}).items():
            if value < 1 or value > 100:
                errors.append(f"Resource pool {key} shares must be between 1 and 100")
        for key, value in (nrc.reservations or {}).items():
            if value < 0:
                errors.append(f"Reservation for {key} must not be negative")

    def _validate_hosts(
        self,
        config: SwitchConfig,
        errors: list[str],
        warnings: list[str]
    ) -> None:
        """A physical NIC may be bonded once per host."""
        if config.hosts is None:
            return
        if not config.hosts:
            warnings.append("Distributed switch has no member hosts")
        for host_ref, devices in config.hosts.items():
            if not host_ref:
                errors.append("Host membership entry has an empty host reference")
            repeated = sorted({d for d in devices if devices.count(d) > 1})
            if repeated:
                errors.append(
                    f"Devices {', '.join(repeated)} listed more than once for host {host_ref}"
                )

    def _validate_misc(
        self,
        config: SwitchConfig,
        kind: SwitchKind,
        errors: list[str]
    ) -> None:
        for label, value in (("mtu", config.mtu), ("max_mtu", config.max_mtu)):
            if value is not None and not MTU_MIN <= value <= MTU_MAX:
                errors.append(f"Invalid {label} {value}: must be between {MTU_MIN} and {MTU_MAX}")

        if config.number_of_ports is not None and not 1 <= config.number_of_ports <= 4088:
            errors.append(f"Invalid number_of_ports {config.number_of_ports}: must be between 1 and 4088")

        if config.beacon_interval is not None and config.beacon_interval < 1:
            errors.append("Beacon interval must be at least 1 second")

        if config.version is not None and not VERSION_PATTERN.match(config.version):
            errors.append(f"Invalid switch version {config.version!r}: expected x.y.z")

        ld = config.link_discovery
        if ld is not None:
            if ld.protocol not in LINK_DISCOVERY_PROTOCOLS[kind]:
                errors.append(
                    f"Link discovery protocol {ld.protocol!r} is not supported on a {kind.value} switch"
                )
            if ld.operation not in LINK_DISCOVERY_OPERATIONS:
                errors.append(f"Invalid link discovery operation {ld.operation!r}")


def parse_version(version: str) -> tuple[int, ...]:
    """Split an x.y.z product version into a comparable tuple."""
    return tuple(int(part) for part in version.split("."))
