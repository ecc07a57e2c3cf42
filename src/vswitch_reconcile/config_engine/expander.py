"""Spec expander: declarative model to platform specification objects.

Sub-objects are emitted only when the caller supplied at least one field
belonging to them. An absent sub-object tells the platform to inherit, so a
policy the caller never mentioned is never overwritten with zero values.
"""
import logging
from typing import Optional, Union

from ..errors import ValidationError
from ..platform.types import (
    DVSConfigSpec,
    DVSContact,
    DVSHostMemberSpec,
    DVSPortSetting,
    FailureCriteria,
    HostBondBridge,
    HostNetworkPolicy,
    HostVirtualSwitchSpec,
    IpfixConfig,
    LinkDiscoveryProtocolConfig,
    NetworkResourcePoolSpec,
    NicOrderPolicy,
    NicTeamingPolicy,
    NumericRange,
    SecurityPolicySpec,
    ShapingPolicySpec,
    SystemTrafficReservation,
    TrunkVlanSpec,
    UplinkPortOrderPolicy,
    UplinkTeamingPolicy,
    VlanIdSpec,
    VlanSpec,
)
from .schema import (
    SingleVlan,
    SwitchConfig,
    SwitchKind,
    TrafficShapingPolicy,
    TrunkVlan,
    UntaggedVlan,
    VlanConfig,
)
from .validator import ConfigValidator

logger = logging.getLogger(__name__)


class SpecExpander:
    """Build platform specification objects from a SwitchConfig."""

    def expand(self, config: SwitchConfig) -> Union[HostVirtualSwitchSpec, DVSConfigSpec]:
        """
        Expand a configuration into the spec object for its switch kind.

        Raises:
            ValidationError: if the configuration fails validation
        """
        if config.kind == SwitchKind.HOST:
            return self.expand_host_switch(config)
        return self.expand_distributed_switch(config)

    def _check(self, config: SwitchConfig, kind: SwitchKind) -> None:
        result = ConfigValidator(kind).validate(config)
        if not result.valid:
            raise ValidationError(result.errors)
        for warning in result.warnings:
            logger.warning(f"{config.name}: {warning}")

    # --- Host-local ---

    def expand_host_switch(self, config: SwitchConfig) -> HostVirtualSwitchSpec:
        """Build the whole-switch spec for a host-local switch."""
        self._check(config, SwitchKind.HOST)

        spec = HostVirtualSwitchSpec(
            num_ports=config.number_of_ports,
            mtu=config.mtu,
        )

        if (config.uplinks is not None or config.beacon_interval is not None
                or config.link_discovery is not None):
            spec.bridge = HostBondBridge(
                nic_device=list(config.uplinks or []),
                beacon_interval=config.beacon_interval,
                link_discovery_protocol_config=self._link_discovery(config),
            )

        teaming = self._host_teaming(config)
        security = self._security(config)
        shaping = self._shaping(config.egress_shaping)
        if teaming or security or shaping:
            spec.policy = HostNetworkPolicy(
                security=security,
                nic_teaming=teaming,
                shaping_policy=shaping,
            )

        return spec

    def _host_teaming(self, config: SwitchConfig) -> Optional[NicTeamingPolicy]:
        if not self._teaming_requested(config):
            return None
        policy = NicTeamingPolicy(
            policy=config.teaming.mode.value if config.teaming.mode else None,
            notify_switches=config.teaming.notify_switches,
            rolling_order=_invert(config.teaming.failback),
            failure_criteria=self._failure_criteria(config),
        )
        if config.active_uplinks is not None or config.standby_uplinks is not None:
            policy.nic_order = NicOrderPolicy(
                active_nic=list(config.active_uplinks or []),
                standby_nic=list(config.standby_uplinks or []),
            )
        return policy

    # --- Distributed ---

    def expand_distributed_switch(self, config: SwitchConfig) -> DVSConfigSpec:
        """Build the configuration spec for a distributed switch.

        Host members are emitted in declaration order, each listing its
        devices in the order supplied (first device takes the first uplink).
        """
        self._check(config, SwitchKind.DISTRIBUTED)

        spec = DVSConfigSpec(
            name=config.name,
            product_version=config.version,
            description=config.description,
            max_mtu=config.max_mtu,
            uplink_port_names=list(config.uplinks) if config.uplinks is not None else None,
            link_discovery_protocol_config=self._link_discovery(config),
        )

        if config.contact_name is not None or config.contact_detail is not None:
            spec.contact = DVSContact(name=config.contact_name, contact=config.contact_detail)

        port_setting = DVSPortSetting(
            vlan=self.expand_vlan(config.vlan),
            uplink_teaming_policy=self._uplink_teaming(config),
            security_policy=self._security(config),
            in_shaping_policy=self._shaping(config.ingress_shaping),
            out_shaping_policy=self._shaping(config.egress_shaping),
        )
        if any(v is not None for v in vars(port_setting).values()):
            spec.default_port_config = port_setting

        if config.netflow is not None:
            nf = config.netflow
            spec.ipfix_config = IpfixConfig(
                collector_ip_address=nf.collector_ip,
                collector_port=nf.collector_port,
                observation_domain_id=nf.observation_domain_id,
                active_flow_timeout=nf.active_flow_timeout,
                idle_flow_timeout=nf.idle_flow_timeout,
                sampling_rate=nf.sampling_rate,
                internal_flows_only=nf.internal_flows_only,
            )
            spec.switch_ip_address = nf.switch_ip

        if config.resource_control is not None:
            nrc = config.resource_control
            spec.network_resource_management_enabled = nrc.enabled
            spec.network_resource_control_version = nrc.version.value if nrc.version else None
            if nrc.pools is not None:
                spec.resource_pools = [
                    NetworkResourcePoolSpec(key=key, shares=shares)
                    for key, shares in nrc.pools.items()
                ]
            if nrc.reservations is not None:
                spec.system_traffic_reservations = [
                    SystemTrafficReservation(key=key, reservation=value)
                    for key, value in nrc.reservations.items()
                ]

        spec.host = self.expand_host_members(config.hosts or {})
        return spec

    def expand_host_members(
        self,
        hosts: dict[str, list[str]],
        operation: str = "add",
    ) -> list[DVSHostMemberSpec]:
        """One member entry per host, devices kept in declared order."""
        return [
            DVSHostMemberSpec(host=host_ref, pnic_device=list(devices), operation=operation)
            for host_ref, devices in hosts.items()
        ]

    def _uplink_teaming(self, config: SwitchConfig) -> Optional[UplinkTeamingPolicy]:
        if not self._teaming_requested(config):
            return None
        policy = UplinkTeamingPolicy(
            policy=config.teaming.mode.value if config.teaming.mode else None,
            notify_switches=config.teaming.notify_switches,
            rolling_order=_invert(config.teaming.failback),
            failure_criteria=self._failure_criteria(config),
        )
        if config.active_uplinks is not None or config.standby_uplinks is not None:
            policy.uplink_port_order = UplinkPortOrderPolicy(
                active_uplink_port=list(config.active_uplinks or []),
                standby_uplink_port=list(config.standby_uplinks or []),
            )
        return policy

    def expand_vlan(self, vlan: Optional[VlanConfig]) -> Optional[VlanSpec]:
        """Translate a VLAN variant. Trunk ranges are sorted and merged."""
        if vlan is None:
            return None
        if isinstance(vlan, UntaggedVlan):
            return VlanIdSpec(vlan_id=0)
        if isinstance(vlan, SingleVlan):
            return VlanIdSpec(vlan_id=vlan.vlan_id)
        if isinstance(vlan, TrunkVlan):
            return TrunkVlanSpec(vlan_id=[
                NumericRange(start=low, end=high) for low, high in vlan.normalized()
            ])
        raise ValidationError(f"Cannot expand VLAN setting {vlan!r}")

    # --- Shared ---

    def _teaming_requested(self, config: SwitchConfig) -> bool:
        return (
            config.teaming.is_set() or
            config.active_uplinks is not None or
            config.standby_uplinks is not None
        )

    def _failure_criteria(self, config: SwitchConfig) -> Optional[FailureCriteria]:
        if config.teaming.check_beacon is None:
            return None
        return FailureCriteria(check_beacon=config.teaming.check_beacon)

    def _security(self, config: SwitchConfig) -> Optional[SecurityPolicySpec]:
        if not config.security.is_set():
            return None
        return SecurityPolicySpec(
            allow_promiscuous=config.security.allow_promiscuous,
            forged_transmits=config.security.allow_forged_transmits,
            mac_changes=config.security.allow_mac_changes,
        )

    def _shaping(self, policy: Optional[TrafficShapingPolicy]) -> Optional[ShapingPolicySpec]:
        if policy is None:
            return None
        return ShapingPolicySpec(
            enabled=policy.enabled,
            average_bandwidth=policy.average_bandwidth,
            peak_bandwidth=policy.peak_bandwidth,
            burst_size=policy.burst_size,
        )

    def _link_discovery(self, config: SwitchConfig) -> Optional[LinkDiscoveryProtocolConfig]:
        if config.link_discovery is None:
            return None
        return LinkDiscoveryProtocolConfig(
            protocol=config.link_discovery.protocol,
            operation=config.link_discovery.operation,
        )


def _invert(value: Optional[bool]) -> Optional[bool]:
    return None if value is None else not value
