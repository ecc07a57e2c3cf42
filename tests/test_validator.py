"""Tests for pre-flight validation."""
from vswitch_reconcile.config_engine import (
    ConfigValidator,
    LinkDiscovery,
    NetFlowConfig,
    NetworkResourceControl,
    ResourceControlVersion,
    SingleVlan,
    SwitchConfig,
    SwitchKind,
    TeamingMode,
    TeamingPolicy,
    TrafficShapingPolicy,
    TrunkVlan,
    UnrecognizedVlan,
)


def host_switch(**kwargs) -> SwitchConfig:
    return SwitchConfig(kind=SwitchKind.HOST, name="vSwitch1", host_ref="host-12", **kwargs)


def dvs(**kwargs) -> SwitchConfig:
    return SwitchConfig(kind=SwitchKind.DISTRIBUTED, name="dvs-prod", **kwargs)


class TestIdentityFields:
    """Tests for required identity fields."""

    def test_valid_minimal_host_switch(self):
        result = ConfigValidator().validate(host_switch())
        assert result.valid
        assert result.errors == []

    def test_missing_name(self):
        config = SwitchConfig(kind=SwitchKind.HOST, name="", host_ref="host-12")
        result = ConfigValidator().validate(config)
        assert not result.valid
        assert any("name" in e for e in result.errors)

    def test_host_switch_needs_host_ref(self):
        config = SwitchConfig(kind=SwitchKind.HOST, name="vSwitch1")
        result = ConfigValidator().validate(config)
        assert not result.valid

    def test_kind_mismatch(self):
        result = ConfigValidator(SwitchKind.DISTRIBUTED).validate(host_switch())
        assert not result.valid

    def test_distributed_only_fields_rejected_on_host(self):
        """VLAN and ingress shaping belong to distributed switches."""
        config = host_switch(
            vlan=SingleVlan(100),
            ingress_shaping=TrafficShapingPolicy(enabled=True),
        )
        result = ConfigValidator().validate(config)
        assert not result.valid
        assert any("vlan" in e for e in result.errors)
        assert any("ingress_shaping" in e for e in result.errors)

    def test_host_only_fields_rejected_on_dvs(self):
        result = ConfigValidator().validate(dvs(number_of_ports=128))
        assert not result.valid


class TestUplinks:
    """Tests for the active/standby uplink invariant."""

    def test_valid_split(self):
        config = host_switch(
            uplinks=["tfup1", "tfup2"],
            active_uplinks=["tfup1"],
            standby_uplinks=["tfup2"],
        )
        assert ConfigValidator().validate(config).valid

    def test_overlap_rejected(self):
        config = host_switch(
            uplinks=["tfup1", "tfup2"],
            active_uplinks=["tfup1"],
            standby_uplinks=["tfup1", "tfup2"],
        )
        result = ConfigValidator().validate(config)
        assert not result.valid
        assert any("both active and standby" in e for e in result.errors)

    def test_name_outside_pool_rejected(self):
        config = dvs(
            uplinks=["uplink1", "uplink2"],
            active_uplinks=["uplink1", "uplink3"],
        )
        result = ConfigValidator().validate(config)
        assert not result.valid
        assert any("uplink3" in e for e in result.errors)

    def test_duplicate_pool_entries(self):
        result = ConfigValidator().validate(host_switch(uplinks=["vmnic0", "vmnic0"]))
        assert not result.valid

    def test_standby_only_warns(self):
        config = host_switch(
            uplinks=["vmnic0", "vmnic1"],
            active_uplinks=[],
            standby_uplinks=["vmnic1"],
        )
        result = ConfigValidator().validate(config)
        assert result.valid
        assert len(result.warnings) == 1


class TestTeaming:
    """Tests for teaming mode support."""

    def test_loadbased_needs_distributed_switch(self):
        config = host_switch(teaming=TeamingPolicy(mode=TeamingMode.LOADBALANCE_LOADBASED))
        assert not ConfigValidator().validate(config).valid

    def test_loadbased_on_dvs(self):
        config = dvs(teaming=TeamingPolicy(mode=TeamingMode.LOADBALANCE_LOADBASED))
        assert ConfigValidator().validate(config).valid

    def test_unrecognized_mode_cannot_be_written(self):
        config = dvs(teaming=TeamingPolicy(mode=TeamingMode.UNRECOGNIZED))
        assert not ConfigValidator().validate(config).valid


class TestVlan:
    """Tests for VLAN settings."""

    def test_single_vlan_bounds(self):
        assert ConfigValidator().validate(dvs(vlan=SingleVlan(4094))).valid
        assert not ConfigValidator().validate(dvs(vlan=SingleVlan(4095))).valid

    def test_trunk_min_greater_than_max(self):
        result = ConfigValidator().validate(dvs(vlan=TrunkVlan.of((200, 100))))
        assert not result.valid
        assert any("greater than max" in e for e in result.errors)

    def test_trunk_out_of_range(self):
        assert not ConfigValidator().validate(dvs(vlan=TrunkVlan.of((1, 5000)))).valid

    def test_trunk_overlapping_ranges_allowed(self):
        """Overlaps are merged on expansion rather than rejected."""
        config = dvs(vlan=TrunkVlan.of((1000, 1999), (1500, 2500)))
        assert ConfigValidator().validate(config).valid

    def test_unrecognized_vlan_rejected(self):
        config = dvs(vlan=UnrecognizedVlan(type_name="PvlanSpec"))
        assert not ConfigValidator().validate(config).valid


class TestDistributedSettings:
    """Tests for shaping, flow export, resource control and membership."""

    def test_negative_bandwidth(self):
        config = dvs(egress_shaping=TrafficShapingPolicy(enabled=True, average_bandwidth=-1))
        assert not ConfigValidator().validate(config).valid

    def test_peak_below_average(self):
        config = dvs(ingress_shaping=TrafficShapingPolicy(
            enabled=True, average_bandwidth=1000, peak_bandwidth=500,
        ))
        assert not ConfigValidator().validate(config).valid

    def test_netflow_timeouts(self):
        config = dvs(netflow=NetFlowConfig(active_flow_timeout=30, idle_flow_timeout=5))
        result = ConfigValidator().validate(config)
        assert len(result.errors) == 2

    def test_version3_rejects_pools(self):
        config = dvs(resource_control=NetworkResourceControl(
            enabled=True,
            version=ResourceControlVersion.VERSION3,
            pools={"vmotion": 50},
        ))
        assert not ConfigValidator().validate(config).valid

    def test_version2_pools(self):
        config = dvs(resource_control=NetworkResourceControl(
            enabled=True,
            version=ResourceControlVersion.VERSION2,
            pools={"vmotion": 50},
        ))
        assert ConfigValidator().validate(config).valid

    def test_same_nic_name_on_different_hosts(self):
        """NICs are identified per host, so vmnic1 may be used on every host."""
        config = dvs(hosts={
            "host-1": ["vmnic1", "vmnic2"],
            "host-2": ["vmnic1", "vmnic2"],
        })
        assert ConfigValidator().validate(config).valid

    def test_duplicate_nic_within_host(self):
        config = dvs(hosts={"host-1": ["vmnic1", "vmnic1"]})
        assert not ConfigValidator().validate(config).valid

    def test_no_hosts_warns(self):
        result = ConfigValidator().validate(dvs(hosts={}))
        assert result.valid
        assert result.warnings

    def test_version_format(self):
        assert ConfigValidator().validate(dvs(version="6.5.0")).valid
        assert not ConfigValidator().validate(dvs(version="6.5")).valid

    def test_lldp_only_on_dvs(self):
        lldp = LinkDiscovery(protocol="lldp", operation="both")
        assert ConfigValidator().validate(dvs(link_discovery=lldp)).valid
        assert not ConfigValidator().validate(host_switch(link_discovery=lldp)).valid
