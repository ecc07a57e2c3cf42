"""Parser for declarative switch documents.

Converts dict/YAML input to SwitchConfig objects. Every key the document
omits stays None (Unset), so presence and absence remain distinguishable.
"""
import logging
from typing import Any, Optional

import yaml

from ..errors import ParseError
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
    UntaggedVlan,
    VlanConfig,
)

logger = logging.getLogger(__name__)

# Spellings accepted for teaming modes
TEAMING_ALIASES = {
    "explicit_failover_order": TeamingMode.FAILOVER_EXPLICIT,
    "fail_over_explicit": TeamingMode.FAILOVER_EXPLICIT,
    "failover_explicit": TeamingMode.FAILOVER_EXPLICIT,
    "loadbalance_srcid": TeamingMode.LOADBALANCE_SRCID,
    "loadbalance_srcmac": TeamingMode.LOADBALANCE_SRCMAC,
    "loadbalance_ip": TeamingMode.LOADBALANCE_IP,
    "loadbalance_loadbased": TeamingMode.LOADBALANCE_LOADBASED,
}

# Document key -> (SwitchConfig field, alternative key)
LIST_KEYS = {
    "uplinks": ("uplinks", "network_adapters"),
    "active_uplinks": ("active_uplinks", "active_nics"),
    "standby_uplinks": ("standby_uplinks", "standby_nics"),
}

INT_KEYS = ("number_of_ports", "mtu", "beacon_interval", "max_mtu")
STR_KEYS = ("version", "description", "contact_name", "contact_detail", "parent_ref")
TEAMING_KEYS = ("teaming_policy", "check_beacon", "notify_switches", "failback")
SECURITY_KEYS = ("allow_promiscuous", "allow_forged_transmits", "allow_mac_changes")

KNOWN_KEYS = (
    {"kind", "name", "host_system_id", "host_ref", "ingress_shaping", "egress_shaping",
     "vlan_id", "vlan_range", "netflow", "network_resource_control", "hosts",
     "link_discovery"}
    | {key for pair in LIST_KEYS.values() for key in pair}
    | set(INT_KEYS) | set(STR_KEYS) | set(TEAMING_KEYS) | set(SECURITY_KEYS)
)

SHAPING_KEYS = {"enabled", "average_bandwidth", "peak_bandwidth", "burst_size"}
NETFLOW_KEYS = {
    "collector_ip", "collector_port", "observation_domain_id", "active_flow_timeout",
    "idle_flow_timeout", "sampling_rate", "internal_flows_only", "switch_ip",
}
RESOURCE_CONTROL_KEYS = {"enabled", "version", "pools", "reservations"}


class ConfigParser:
    """Parse declarative switch documents from dict/YAML format."""

    def parse(self, config: dict[str, Any]) -> SwitchConfig:
        """
        Parse a document into a SwitchConfig.

        Args:
            config: Dict with kind, name and any switch settings

        Returns:
            SwitchConfig with omitted settings left Unset

        Raises:
            ParseError: If the document is malformed
        """
        if not isinstance(config, dict):
            raise ParseError(f"Switch document must be a mapping, got {type(config).__name__}")

        for key in config:
            if key not in KNOWN_KEYS:
                logger.warning(f"Ignoring unknown key '{key}'")

        kind = self._parse_kind(config.get("kind"))
        name = config.get("name")
        if not isinstance(name, str) or not name:
            raise ParseError("Missing required field: name")

        result = SwitchConfig(
            kind=kind,
            name=name,
            host_ref=self._str(config, "host_system_id") or self._str(config, "host_ref"),
        )

        for field_name, (key, alias) in LIST_KEYS.items():
            if key in config and alias in config:
                raise ParseError(f"Use either '{key}' or '{alias}', not both")
            raw_key = key if key in config else alias
            setattr(result, field_name, self._str_list(config, raw_key))

        for key in INT_KEYS:
            setattr(result, key, self._int(config, key))
        for key in STR_KEYS:
            setattr(result, key, self._str(config, key))

        result.teaming = TeamingPolicy(
            mode=self._teaming_mode(config.get("teaming_policy")),
            check_beacon=self._bool(config, "check_beacon"),
            notify_switches=self._bool(config, "notify_switches"),
            failback=self._bool(config, "failback"),
        )
        result.security = SecurityPolicy(
            allow_promiscuous=self._bool(config, "allow_promiscuous"),
            allow_forged_transmits=self._bool(config, "allow_forged_transmits"),
            allow_mac_changes=self._bool(config, "allow_mac_changes"),
        )

        result.ingress_shaping = self._parse_shaping(config, "ingress_shaping")
        result.egress_shaping = self._parse_shaping(config, "egress_shaping")
        result.vlan = self._parse_vlan(config)
        result.netflow = self._parse_netflow(config.get("netflow"))
        result.resource_control = self._parse_resource_control(
            config.get("network_resource_control")
        )
        result.hosts = self._parse_hosts(config.get("hosts"))
        result.link_discovery = self._parse_link_discovery(config.get("link_discovery"))

        return result

    def parse_file(self, path: str) -> SwitchConfig:
        """Parse a YAML document from disk."""
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ParseError(f"Cannot read {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ParseError(f"Invalid YAML in {path}: {e}") from e
        return self.parse(data)

    def _parse_kind(self, value: Any) -> SwitchKind:
        if value is None:
            raise ParseError("Missing required field: kind")
        try:
            return SwitchKind(str(value).lower())
        except ValueError:
            raise ParseError(
                f"Invalid kind: {value}. Must be 'host' or 'distributed'"
            )

    def _teaming_mode(self, value: Any) -> Optional[TeamingMode]:
        if value is None:
            return None
        mode = TEAMING_ALIASES.get(str(value).lower().replace("-", "_"))
        if mode is None:
            raise ParseError(
                f"Invalid teaming_policy: {value}. "
                f"Must be one of {', '.join(m.value for m in TeamingMode if m != TeamingMode.UNRECOGNIZED)}"
            )
        return mode

    def _parse_shaping(self, config: dict, key: str) -> Optional[TrafficShapingPolicy]:
        data = self._mapping(config.get(key), key, SHAPING_KEYS)
        if data is None:
            return None
        return TrafficShapingPolicy(
            enabled=self._bool(data, "enabled", key),
            average_bandwidth=self._int(data, "average_bandwidth", key),
            peak_bandwidth=self._int(data, "peak_bandwidth", key),
            burst_size=self._int(data, "burst_size", key),
        )

    def _parse_vlan(self, config: dict) -> Optional[VlanConfig]:
        """vlan_id 0 means untagged; vlan_range declares a trunk."""
        if "vlan_id" in config and "vlan_range" in config:
            raise ParseError("Use either 'vlan_id' or 'vlan_range', not both")

        if "vlan_id" in config:
            vlan_id = self._int(config, "vlan_id")
            if vlan_id is None:
                return None
            return UntaggedVlan() if vlan_id == 0 else SingleVlan(vlan_id=vlan_id)

        raw = config.get("vlan_range")
        if raw is None:
            return None
        if not isinstance(raw, list):
            raw = [raw]
        return TrunkVlan(frozenset(self._parse_range(item) for item in raw))

    def _parse_range(self, item: Any) -> tuple[int, int]:
        """Accept {min_vlan, max_vlan}, "a-b" or a single id."""
        try:
            if isinstance(item, dict):
                return _whole(item["min_vlan"]), _whole(item["max_vlan"])
            if isinstance(item, int):
                return item, item
            if isinstance(item, str):
                if "-" in item:
                    low, high = item.split("-", 1)
                    return int(low), int(high)
                return int(item), int(item)
        except (KeyError, ValueError, TypeError):
            pass
        raise ParseError(f"Invalid VLAN range: {item!r}")

    def _parse_netflow(self, value: Any) -> Optional[NetFlowConfig]:
        data = self._mapping(value, "netflow", NETFLOW_KEYS)
        if data is None:
            return None
        return NetFlowConfig(
            collector_ip=self._str(data, "collector_ip", "netflow"),
            collector_port=self._int(data, "collector_port", "netflow"),
            observation_domain_id=self._int(data, "observation_domain_id", "netflow"),
            active_flow_timeout=self._int(data, "active_flow_timeout", "netflow"),
            idle_flow_timeout=self._int(data, "idle_flow_timeout", "netflow"),
            sampling_rate=self._int(data, "sampling_rate", "netflow"),
            internal_flows_only=self._bool(data, "internal_flows_only", "netflow"),
            switch_ip=self._str(data, "switch_ip", "netflow"),
        )

    def _parse_resource_control(self, value: Any) -> Optional[NetworkResourceControl]:
        key = "network_resource_control"
        data = self._mapping(value, key, RESOURCE_CONTROL_KEYS)
        if data is None:
            return None

        version = None
        if data.get("version") is not None:
            try:
                version = ResourceControlVersion(str(data["version"]))
            except ValueError:
                raise ParseError(
                    f"Invalid {key} version: {data['version']}. Must be 'version2' or 'version3'"
                )
            if version == ResourceControlVersion.UNRECOGNIZED:
                raise ParseError(f"Invalid {key} version: {data['version']}")

        return NetworkResourceControl(
            enabled=self._bool(data, "enabled", key),
            version=version,
            pools=self._int_mapping(data.get("pools"), f"{key}.pools"),
            reservations=self._int_mapping(data.get("reservations"), f"{key}.reservations"),
        )

    def _parse_hosts(self, value: Any) -> Optional[dict[str, list[str]]]:
        """
        Parse host membership, keeping declaration order.

        Accepts a list of {host_system_id, devices} entries or a mapping of
        host reference to device list.
        """
        if value is None:
            return None

        hosts: dict[str, list[str]] = {}
        if isinstance(value, dict):
            entries = [{"host_system_id": k, "devices": v} for k, v in value.items()]
        elif isinstance(value, list):
            entries = value
        else:
            raise ParseError("hosts must be a list or a mapping")

        for entry in entries:
            if not isinstance(entry, dict):
                raise ParseError(f"Invalid host entry: {entry!r}")
            host_ref = entry.get("host_system_id") or entry.get("host_ref")
            if not isinstance(host_ref, str) or not host_ref:
                raise ParseError(f"Host entry is missing host_system_id: {entry!r}")
            if host_ref in hosts:
                raise ParseError(f"Host {host_ref} is declared more than once")
            devices = self._str_list(entry, "devices", f"hosts[{host_ref}]")
            hosts[host_ref] = devices or []
        return hosts

    def _parse_link_discovery(self, value: Any) -> Optional[LinkDiscovery]:
        data = self._mapping(value, "link_discovery", {"protocol", "operation"})
        if data is None:
            return None
        defaults = LinkDiscovery()
        return LinkDiscovery(
            protocol=str(data.get("protocol", defaults.protocol)).lower(),
            operation=str(data.get("operation", defaults.operation)).lower(),
        )

    # --- Scalar helpers ---

    def _mapping(self, value: Any, key: str, allowed: set[str]) -> Optional[dict]:
        if value is None:
            return None
        if not isinstance(value, dict):
            raise ParseError(f"{key} must be a mapping")
        for sub in value:
            if sub not in allowed:
                logger.warning(f"Ignoring unknown key '{key}.{sub}'")
        return value

    def _int(self, data: dict, key: str, prefix: str = "") -> Optional[int]:
        value = data.get(key)
        if value is None:
            return None
        if isinstance(value, bool):
            raise ParseError(f"{_label(prefix, key)} must be an integer, got {value!r}")
        try:
            return _whole(value)
        except (ValueError, TypeError):
            raise ParseError(f"{_label(prefix, key)} must be an integer, got {value!r}")

    def _bool(self, data: dict, key: str, prefix: str = "") -> Optional[bool]:
        value = data.get(key)
        if value is None:
            return None
        if not isinstance(value, bool):
            raise ParseError(f"{_label(prefix, key)} must be true or false, got {value!r}")
        return value

    def _str(self, data: dict, key: str, prefix: str = "") -> Optional[str]:
        value = data.get(key)
        if value is None:
            return None
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise ParseError(f"{_label(prefix, key)} must be a string, got {value!r}")
        return str(value)

    def _str_list(self, data: dict, key: str, prefix: str = "") -> Optional[list[str]]:
        value = data.get(key)
        if value is None:
            return None
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ParseError(f"{_label(prefix, key)} must be a list of names")
        return list(value)

    def _int_mapping(self, value: Any, key: str) -> Optional[dict[str, int]]:
        if value is None:
            return None
        if not isinstance(value, dict):
            raise ParseError(f"{key} must be a mapping")
        try:
            return {str(k): _whole(v) for k, v in value.items()}
        except (ValueError, TypeError):
            raise ParseError(f"{key} values must be integers")


def _label(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


def _whole(value: Any) -> int:
    """int() that refuses to truncate a fractional number."""
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{value!r} is not a whole number")
    return int(value)
