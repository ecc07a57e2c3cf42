"""Tests for the spec flattener and the expand/flatten round trip."""
from dataclasses import replace

import pytest
from vswitch_reconcile.config_engine import (
    DiffEngine,
    LinkDiscovery,
    NetFlowConfig,
    NetworkResourceControl,
    ResourceControlVersion,
    SecurityPolicy,
    SingleVlan,
    SpecExpander,
    SpecFlattener,
    SwitchConfig,
    SwitchKind,
    TeamingMode,
    TeamingPolicy,
    TrafficShapingPolicy,
    TrunkVlan,
    UntaggedVlan,
    UnrecognizedVlan,
)
from vswitch_reconcile.platform.types import (
    DVSConfigInfo,
    DVSHostMember,
    DVSPortSetting,
    HostBondBridge,
    HostNetworkPolicy,
    HostVirtualSwitch,
    HostVirtualSwitchSpec,
    NicOrderPolicy,
    NicTeamingPolicy,
    NumericRange,
    PvlanSpec,
    TrunkVlanSpec,
    UplinkTeamingPolicy,
    VlanIdSpec,
)


class TestHostSwitchFlattening:
    """Tests for flattening host-local switches."""

    def test_absent_sub_objects_stay_unset(self):
        config = SpecFlattener().flatten_host_switch(
            "host-12", HostVirtualSwitch(name="vSwitch1", spec=HostVirtualSwitchSpec())
        )
        assert config.name == "vSwitch1"
        assert config.host_ref == "host-12"
        assert config.uplinks is None
        assert config.active_uplinks is None
        assert config.teaming == TeamingPolicy()
        assert config.egress_shaping is None

    def test_failback_is_inverted(self):
        spec = HostVirtualSwitchSpec(policy=HostNetworkPolicy(
            nic_teaming=NicTeamingPolicy(rolling_order=True),
        ))
        config = SpecFlattener().flatten_host_switch("host-12", spec, name="vSwitch1")
        assert config.teaming.failback is False

    def test_order_names_outside_bridge_are_dropped(self):
        spec = HostVirtualSwitchSpec(
            bridge=HostBondBridge(nic_device=["vmnic0", "vmnic1"]),
            policy=HostNetworkPolicy(nic_teaming=NicTeamingPolicy(
                nic_order=NicOrderPolicy(active_nic=["vmnic0", "vmnic9"], standby_nic=["vmnic1"]),
            )),
        )
        config = SpecFlattener().flatten_host_switch("host-12", spec, name="vSwitch1")
        assert config.active_uplinks == ["vmnic0"]
        assert config.standby_uplinks == ["vmnic1"]

    def test_unknown_teaming_policy(self):
        spec = HostVirtualSwitchSpec(policy=HostNetworkPolicy(
            nic_teaming=NicTeamingPolicy(policy="loadbalance_future"),
        ))
        config = SpecFlattener().flatten_host_switch("host-12", spec, name="vSwitch1")
        assert config.teaming.mode == TeamingMode.UNRECOGNIZED


class TestDistributedSwitchFlattening:
    """Tests for flattening distributed switches."""

    def test_trunk_range_order_does_not_matter(self):
        """Two specs listing the same ranges in different order flatten equal."""
        first = DVSConfigInfo(name="dvs", default_port_config=DVSPortSetting(
            vlan=TrunkVlanSpec(vlan_id=[NumericRange(1000, 1999), NumericRange(3000, 3999)]),
        ))
        second = DVSConfigInfo(name="dvs", default_port_config=DVSPortSetting(
            vlan=TrunkVlanSpec(vlan_id=[NumericRange(3000, 3999), NumericRange(1000, 1999)]),
        ))
        flattener = SpecFlattener()
        assert (
            flattener.flatten_distributed_switch(first)
            == flattener.flatten_distributed_switch(second)
        )

    def test_vlan_variants(self):
        flattener = SpecFlattener()
        assert flattener.flatten_vlan(None) is None
        assert flattener.flatten_vlan(VlanIdSpec(0)) == UntaggedVlan()
        assert flattener.flatten_vlan(VlanIdSpec(42)) == SingleVlan(42)

    def test_unknown_vlan_variant(self):
        """Variants the engine does not model become explicit Unrecognized values."""
        vlan = SpecFlattener().flatten_vlan(PvlanSpec(pvlan_id=7))
        assert vlan == UnrecognizedVlan(type_name="PvlanSpec")

    def test_membership(self):
        info = DVSConfigInfo(name="dvs", host=[
            DVSHostMember(host="host-1", pnic_device=["vmnic1"]),
            DVSHostMember(host="host-2", pnic_device=["vmnic1", "vmnic2"]),
        ])
        config = SpecFlattener().flatten_distributed_switch(info)
        assert config.hosts == {"host-1": ["vmnic1"], "host-2": ["vmnic1", "vmnic2"]}

    def test_unknown_resource_control_version(self):
        info = DVSConfigInfo(name="dvs", network_resource_control_version="version9")
        config = SpecFlattener().flatten_distributed_switch(info)
        assert config.resource_control.version == ResourceControlVersion.UNRECOGNIZED

    def test_uplink_order(self):
        info = DVSConfigInfo(
            name="dvs",
            uplink_port_names=["uplink1", "uplink2", "uplink3"],
            default_port_config=DVSPortSetting(uplink_teaming_policy=UplinkTeamingPolicy(
                policy="loadbalance_loadbased",
            )),
        )
        config = SpecFlattener().flatten_distributed_switch(info)
        assert config.uplinks == ["uplink1", "uplink2", "uplink3"]
        assert config.teaming.mode == TeamingMode.LOADBALANCE_LOADBASED
        assert config.active_uplinks is None


def _host_models():
    yield SwitchConfig(
        kind=SwitchKind.HOST, name="vSwitch1", host_ref="host-12",
        uplinks=["tfup1", "tfup2"],
        active_uplinks=["tfup1"],
        standby_uplinks=["tfup2"],
    )
    yield SwitchConfig(
        kind=SwitchKind.HOST, name="vSwitch2", host_ref="host-12",
        uplinks=["vmnic0", "vmnic1", "vmnic2"],
        active_uplinks=["vmnic1", "vmnic0"],
        standby_uplinks=[],
        teaming=TeamingPolicy(
            mode=TeamingMode.FAILOVER_EXPLICIT,
            check_beacon=True,
            notify_switches=False,
            failback=False,
        ),
        security=SecurityPolicy(
            allow_promiscuous=False,
            allow_forged_transmits=True,
            allow_mac_changes=False,
        ),
        egress_shaping=TrafficShapingPolicy(
            enabled=True, average_bandwidth=1000, peak_bandwidth=2000, burst_size=4096,
        ),
        number_of_ports=128,
        mtu=9000,
        beacon_interval=1,
        link_discovery=LinkDiscovery(protocol="cdp", operation="advertise"),
    )


def _distributed_models():
    yield SwitchConfig(
        kind=SwitchKind.DISTRIBUTED, name="dvs-a",
        uplinks=["tfup1", "tfup2"],
        active_uplinks=["tfup1"],
        standby_uplinks=["tfup2"],
        hosts={},
    )
    yield SwitchConfig(
        kind=SwitchKind.DISTRIBUTED, name="dvs-b",
        uplinks=["uplink1", "uplink2", "uplink3", "uplink4"],
        active_uplinks=["uplink1", "uplink2"],
        standby_uplinks=["uplink3"],
        teaming=TeamingPolicy(mode=TeamingMode.LOADBALANCE_LOADBASED, failback=True),
        security=SecurityPolicy(allow_promiscuous=True),
        ingress_shaping=TrafficShapingPolicy(enabled=False),
        egress_shaping=TrafficShapingPolicy(enabled=True, average_bandwidth=500),
        vlan=TrunkVlan.of((1000, 1999), (3000, 3999)),
        netflow=NetFlowConfig(
            collector_ip="10.0.0.10",
            collector_port=4739,
            observation_domain_id=1,
            active_flow_timeout=60,
            idle_flow_timeout=15,
            sampling_rate=0,
            internal_flows_only=False,
            switch_ip="10.0.0.1",
        ),
        resource_control=NetworkResourceControl(
            enabled=True,
            version=ResourceControlVersion.VERSION2,
            pools={"vmotion": 50, "iscsi": 100},
        ),
        hosts={"host-1": ["vmnic1", "vmnic2"], "host-2": ["vmnic1"]},
        link_discovery=LinkDiscovery(protocol="lldp", operation="both"),
        version="6.5.0",
        description="production fabric",
        contact_name="netops",
        contact_detail="netops@example.com",
        max_mtu=9000,
    )
    yield SwitchConfig(
        kind=SwitchKind.DISTRIBUTED, name="dvs-c",
        vlan=SingleVlan(100),
        hosts={"host-1": ["vmnic4"]},
    )


class TestRoundTrip:
    """Flatten(Expand(model)) == model for models that carry no remote defaults.

    Distributed models declare hosts: the platform member list has no unset
    state, so an undeclared membership reads back as an empty one.
    """

    @pytest.mark.parametrize("model", list(_host_models()), ids=lambda m: m.name)
    def test_host_switch(self, model):
        spec = SpecExpander().expand(model)
        flattened = SpecFlattener().flatten_host_switch(model.host_ref, spec, name=model.name)
        assert flattened == model

    @pytest.mark.parametrize("model", list(_distributed_models()), ids=lambda m: m.name)
    def test_distributed_switch(self, model):
        spec = SpecExpander().expand(model)
        assert SpecFlattener().flatten_distributed_switch(spec) == model

    def test_untagged_vlan(self):
        model = SwitchConfig(
            kind=SwitchKind.DISTRIBUTED, name="dvs-u", vlan=UntaggedVlan(), hosts={},
        )
        spec = SpecExpander().expand(model)
        assert SpecFlattener().flatten_distributed_switch(spec) == model

    def test_undeclared_membership_reads_back_empty(self):
        model = SwitchConfig(kind=SwitchKind.DISTRIBUTED, name="dvs-n", max_mtu=9000)
        flattened = SpecFlattener().flatten_distributed_switch(SpecExpander().expand(model))

        assert flattened.hosts == {}
        assert flattened == replace(model, hosts={})
        assert DiffEngine().calculate(model, flattened).no_change
