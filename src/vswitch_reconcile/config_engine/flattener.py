"""Spec flattener: platform specification objects back to the declarative model.

An absent sub-object means the platform inherits the value, so the
corresponding model fields stay Unset (None). Explicitly empty collections
are kept as empty lists.
"""
import logging
from typing import Optional, Union

from ..platform.types import (
    DVSConfigSpec,
    HostVirtualSwitch,
    HostVirtualSwitchSpec,
    LinkDiscoveryProtocolConfig,
    NicTeamingPolicy,
    SecurityPolicySpec,
    ShapingPolicySpec,
    TrunkVlanSpec,
    UplinkTeamingPolicy,
    VlanIdSpec,
    VlanSpec,
)
from .schema import (
    LinkDiscovery,
    NetFlowConfig,
    NetworkResourceControl,
    ResourceControlVersion,
    SecurityPolicy,
    SingleVlan,
    SwitchConfig,
    SwitchKind,
    TeamingMode,
    TeamingPolicy,
    TrafficShapingPolicy,
    TrunkVlan,
    UnrecognizedVlan,
    UntaggedVlan,
    UplinkSet,
    VlanConfig,
)

logger = logging.getLogger(__name__)


class SpecFlattener:
    """Populate a SwitchConfig from platform specification objects."""

    def flatten_host_switch(
        self,
        host_ref: str,
        switch: Union[HostVirtualSwitch, HostVirtualSwitchSpec],
        name: Optional[str] = None,
    ) -> SwitchConfig:
        """Flatten a host-local switch (or a bare spec plus its name)."""
        if isinstance(switch, HostVirtualSwitch):
            name = switch.name
            spec = switch.spec
        else:
            spec = switch

        config = SwitchConfig(
            kind=SwitchKind.HOST,
            name=name or "",
            host_ref=host_ref,
            number_of_ports=spec.num_ports,
            mtu=spec.mtu,
        )

        precedence: Optional[list[str]] = None
        if spec.bridge is not None:
            precedence = list(spec.bridge.nic_device)
            config.uplinks = precedence
            config.beacon_interval = spec.bridge.beacon_interval
            config.link_discovery = self._link_discovery(spec.bridge.link_discovery_protocol_config)

        policy = spec.policy
        if policy is not None:
            config.security = self._security(policy.security)
            config.egress_shaping = self._shaping(policy.shaping_policy)
            if policy.nic_teaming is not None:
                config.teaming = self._teaming(policy.nic_teaming)
                order = policy.nic_teaming.nic_order
                if order is not None:
                    self._set_uplink_order(
                        config, precedence, order.active_nic, order.standby_nic
                    )

        return config

    def flatten_distributed_switch(self, spec: DVSConfigSpec) -> SwitchConfig:
        """Flatten distributed switch configuration (info or spec)."""
        config = SwitchConfig(
            kind=SwitchKind.DISTRIBUTED,
            name=spec.name or "",
            version=spec.product_version,
            description=spec.description,
            max_mtu=spec.max_mtu,
            link_discovery=self._link_discovery(spec.link_discovery_protocol_config),
        )

        if spec.contact is not None:
            config.contact_name = spec.contact.name
            config.contact_detail = spec.contact.contact

        precedence: Optional[list[str]] = None
        if spec.uplink_port_names is not None:
            precedence = list(spec.uplink_port_names)
            config.uplinks = precedence

        port = spec.default_port_config
        if port is not None:
            config.vlan = self.flatten_vlan(port.vlan)
            config.security = self._security(port.security_policy)
            config.ingress_shaping = self._shaping(port.in_shaping_policy)
            config.egress_shaping = self._shaping(port.out_shaping_policy)
            if port.uplink_teaming_policy is not None:
                config.teaming = self._teaming(port.uplink_teaming_policy)
                order = port.uplink_teaming_policy.uplink_port_order
                if order is not None:
                    self._set_uplink_order(
                        config, precedence, order.active_uplink_port, order.standby_uplink_port
                    )

        if spec.ipfix_config is not None or spec.switch_ip_address is not None:
            ipfix = spec.ipfix_config
            config.netflow = NetFlowConfig(switch_ip=spec.switch_ip_address)
            if ipfix is not None:
                config.netflow.collector_ip = ipfix.collector_ip_address
                config.netflow.collector_port = ipfix.collector_port
                config.netflow.observation_domain_id = ipfix.observation_domain_id
                config.netflow.active_flow_timeout = ipfix.active_flow_timeout
                config.netflow.idle_flow_timeout = ipfix.idle_flow_timeout
                config.netflow.sampling_rate = ipfix.sampling_rate
                config.netflow.internal_flows_only = ipfix.internal_flows_only

        config.resource_control = self._resource_control(spec)

        config.hosts = {
            member.host: list(member.pnic_device)
            for member in spec.host
        }
        return config

    def flatten_vlan(self, vlan: Optional[VlanSpec]) -> Optional[VlanConfig]:
        """Map a platform VLAN variant. Unknown variants become UnrecognizedVlan."""
        if vlan is None:
            return None
        if isinstance(vlan, VlanIdSpec):
            if vlan.vlan_id == 0:
                return UntaggedVlan()
            return SingleVlan(vlan_id=vlan.vlan_id)
        if isinstance(vlan, TrunkVlanSpec):
            return TrunkVlan(frozenset((r.start, r.end) for r in vlan.vlan_id))
        logger.warning(f"Unrecognized VLAN setting {type(vlan).__name__}")
        return UnrecognizedVlan(type_name=type(vlan).__name__)

    def _set_uplink_order(
        self,
        config: SwitchConfig,
        precedence: Optional[list[str]],
        active: list[str],
        standby: list[str],
    ) -> None:
        if precedence is None:
            config.active_uplinks = list(active)
            config.standby_uplinks = list(standby)
            return
        uplink_set = UplinkSet.from_platform(precedence, active, standby)
        config.active_uplinks = uplink_set.active
        config.standby_uplinks = uplink_set.standby

    def _teaming(self, policy: Union[NicTeamingPolicy, UplinkTeamingPolicy]) -> TeamingPolicy:
        mode = None
        if policy.policy is not None:
            try:
                mode = TeamingMode(policy.policy)
            except ValueError:
                logger.warning(f"Unrecognized teaming policy {policy.policy!r}")
                mode = TeamingMode.UNRECOGNIZED
        return TeamingPolicy(
            mode=mode,
            check_beacon=policy.failure_criteria.check_beacon if policy.failure_criteria else None,
            notify_switches=policy.notify_switches,
            failback=None if policy.rolling_order is None else not policy.rolling_order,
        )

    def _security(self, policy: Optional[SecurityPolicySpec]) -> SecurityPolicy:
        if policy is None:
            return SecurityPolicy()
        return SecurityPolicy(
            allow_promiscuous=policy.allow_promiscuous,
            allow_forged_transmits=policy.forged_transmits,
            allow_mac_changes=policy.mac_changes,
        )

    def _shaping(self, policy: Optional[ShapingPolicySpec]) -> Optional[TrafficShapingPolicy]:
        if policy is None:
            return None
        return TrafficShapingPolicy(
            enabled=policy.enabled,
            average_bandwidth=policy.average_bandwidth,
            peak_bandwidth=policy.peak_bandwidth,
            burst_size=policy.burst_size,
        )

    def _link_discovery(
        self, ld: Optional[LinkDiscoveryProtocolConfig]
    ) -> Optional[LinkDiscovery]:
        if ld is None:
            return None
        return LinkDiscovery(protocol=ld.protocol, operation=ld.operation)

    def _resource_control(self, spec: DVSConfigSpec) -> Optional[NetworkResourceControl]:
        if (spec.network_resource_management_enabled is None
                and spec.network_resource_control_version is None
                and spec.resource_pools is None
                and spec.system_traffic_reservations is None):
            return None

        version = None
        if spec.network_resource_control_version:
            try:
                version = ResourceControlVersion(spec.network_resource_control_version)
            except ValueError:
                logger.warning(
                    f"Unrecognized resource control version {spec.network_resource_control_version!r}"
                )
                version = ResourceControlVersion.UNRECOGNIZED

        nrc = NetworkResourceControl(
            enabled=spec.network_resource_management_enabled,
            version=version,
        )
        if spec.resource_pools is not None:
            nrc.pools = {p.key: p.shares for p in spec.resource_pools}
        if spec.system_traffic_reservations is not None:
            nrc.reservations = {r.key: r.reservation for r in spec.system_traffic_reservations}
        return nrc
