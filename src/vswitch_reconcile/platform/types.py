"""Imperative specification objects exchanged with the management platform.

These mirror the shapes the platform API reads and writes. An attribute left
as None means "not specified": on a write the platform inherits the value
from the parent policy, on a read the platform did not report an override.
"""
from dataclasses import dataclass, field
from typing import Optional


# --- Shared policy objects ---

@dataclass
class LinkDiscoveryProtocolConfig:
    """CDP/LLDP settings on a switch."""
    protocol: str   # cdp, lldp
    operation: str  # listen, advertise, both, none


@dataclass
class FailureCriteria:
    """Failover detection settings."""
    check_beacon: Optional[bool] = None


@dataclass
class ShapingPolicySpec:
    """Traffic shaping (bandwidth in bits/s, burst in bytes)."""
    enabled: Optional[bool] = None
    average_bandwidth: Optional[int] = None
    peak_bandwidth: Optional[int] = None
    burst_size: Optional[int] = None


# --- Host-local switch ---

@dataclass
class NicOrderPolicy:
    """Active and standby adapter order for a host-local switch."""
    active_nic: list[str] = field(default_factory=list)
    standby_nic: list[str] = field(default_factory=list)


@dataclass
class NicTeamingPolicy:
    """Host-local NIC teaming. rolling_order is the inverse of failback."""
    policy: Optional[str] = None
    notify_switches: Optional[bool] = None
    rolling_order: Optional[bool] = None
    failure_criteria: Optional[FailureCriteria] = None
    nic_order: Optional[NicOrderPolicy] = None


@dataclass
class SecurityPolicySpec:
    """Layer 2 security flags."""
    allow_promiscuous: Optional[bool] = None
    forged_transmits: Optional[bool] = None
    mac_changes: Optional[bool] = None


@dataclass
class HostNetworkPolicy:
    """Policy block of a host-local switch."""
    security: Optional[SecurityPolicySpec] = None
    nic_teaming: Optional[NicTeamingPolicy] = None
    shaping_policy: Optional[ShapingPolicySpec] = None


@dataclass
class HostBondBridge:
    """Physical adapters bonded to a host-local switch, in precedence order."""
    nic_device: list[str] = field(default_factory=list)
    beacon_interval: Optional[int] = None
    link_discovery_protocol_config: Optional[LinkDiscoveryProtocolConfig] = None


@dataclass
class HostVirtualSwitchSpec:
    """Whole-switch specification for a host-local switch."""
    num_ports: Optional[int] = None
    mtu: Optional[int] = None
    bridge: Optional[HostBondBridge] = None
    policy: Optional[HostNetworkPolicy] = None


@dataclass
class HostVirtualSwitch:
    """A host-local switch as reported by the platform."""
    name: str
    spec: HostVirtualSwitchSpec


# --- Distributed switch: VLAN variants ---

class VlanSpec:
    """Base class for the platform's VLAN setting variants."""
    pass


@dataclass
class VlanIdSpec(VlanSpec):
    """Single VLAN. An id of 0 means untagged traffic."""
    vlan_id: int = 0


@dataclass
class NumericRange:
    """Inclusive VLAN id range."""
    start: int
    end: int


@dataclass
class TrunkVlanSpec(VlanSpec):
    """VLAN trunk admitting a list of ranges."""
    vlan_id: list[NumericRange] = field(default_factory=list)


@dataclass
class PvlanSpec(VlanSpec):
    """Private VLAN. Reported by the platform, never written by the engine."""
    pvlan_id: int = 0


# --- Distributed switch: port settings ---

@dataclass
class UplinkPortOrderPolicy:
    """Active and standby uplink order."""
    active_uplink_port: list[str] = field(default_factory=list)
    standby_uplink_port: list[str] = field(default_factory=list)


@dataclass
class UplinkTeamingPolicy:
    """Distributed teaming policy. rolling_order is the inverse of failback."""
    policy: Optional[str] = None
    notify_switches: Optional[bool] = None
    rolling_order: Optional[bool] = None
    failure_criteria: Optional[FailureCriteria] = None
    uplink_port_order: Optional[UplinkPortOrderPolicy] = None


@dataclass
class DVSPortSetting:
    """Default port configuration of a distributed switch."""
    vlan: Optional[VlanSpec] = None
    uplink_teaming_policy: Optional[UplinkTeamingPolicy] = None
    security_policy: Optional[SecurityPolicySpec] = None
    in_shaping_policy: Optional[ShapingPolicySpec] = None
    out_shaping_policy: Optional[ShapingPolicySpec] = None


@dataclass
class IpfixConfig:
    """Flow export settings."""
    collector_ip_address: Optional[str] = None
    collector_port: Optional[int] = None
    observation_domain_id: Optional[int] = None
    active_flow_timeout: Optional[int] = None
    idle_flow_timeout: Optional[int] = None
    sampling_rate: Optional[int] = None
    internal_flows_only: Optional[bool] = None


@dataclass
class NetworkResourcePoolSpec:
    """User-defined resource pool (network resource control version2)."""
    key: str
    shares: int


@dataclass
class SystemTrafficReservation:
    """System traffic reservation in Mbit/s (network resource control version3)."""
    key: str
    reservation: int


@dataclass
class DVSContact:
    """Owner contact of a distributed switch."""
    name: Optional[str] = None
    contact: Optional[str] = None


@dataclass
class DVSHostMember:
    """A host participating in a distributed switch and its bonded adapters."""
    host: str
    pnic_device: list[str] = field(default_factory=list)


@dataclass
class DVSHostMemberSpec(DVSHostMember):
    """Host membership change: operation is add, edit or remove."""
    operation: str = "add"


@dataclass
class DVSConfigSpec:
    """Configuration specification for creating or reconfiguring a distributed switch."""
    name: Optional[str] = None
    config_version: Optional[str] = None
    product_version: Optional[str] = None
    description: Optional[str] = None
    contact: Optional[DVSContact] = None
    max_mtu: Optional[int] = None
    uplink_port_names: Optional[list[str]] = None
    default_port_config: Optional[DVSPortSetting] = None
    ipfix_config: Optional[IpfixConfig] = None
    switch_ip_address: Optional[str] = None
    network_resource_management_enabled: Optional[bool] = None
    network_resource_control_version: Optional[str] = None
    resource_pools: Optional[list[NetworkResourcePoolSpec]] = None
    system_traffic_reservations: Optional[list[SystemTrafficReservation]] = None
    link_discovery_protocol_config: Optional[LinkDiscoveryProtocolConfig] = None
    host: list[DVSHostMember] = field(default_factory=list)


@dataclass
class DVSConfigInfo(DVSConfigSpec):
    """Current configuration of a distributed switch as reported by the platform."""
    mo_ref: str = ""
