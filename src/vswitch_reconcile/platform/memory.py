"""InMemoryPlatform - in-process simulation of the management platform.

Keeps host-local and distributed switches in dictionaries, records every
call, and supports fault and latency injection for exercising the engine's
error handling without a live platform.
"""
import asyncio
import copy
import itertools
import logging
from dataclasses import fields, is_dataclass
from typing import Optional

from .base import SwitchPlatform
from .faults import RemoteFault
from .types import (
    DVSConfigInfo,
    DVSConfigSpec,
    DVSHostMember,
    DVSHostMemberSpec,
    HostVirtualSwitch,
    HostVirtualSwitchSpec,
)

logger = logging.getLogger(__name__)

DEFAULT_UPLINKS = ["uplink1", "uplink2", "uplink3", "uplink4"]
DEFAULT_PRODUCT_VERSION = "6.5.0"


class InMemoryPlatform(SwitchPlatform):
    """Platform simulation. All state is deep-copied in and out."""

    def __init__(self, name: str = "memory"):
        super().__init__(name)
        self._host_switches: dict[tuple[str, str], HostVirtualSwitchSpec] = {}
        self._dvs: dict[str, DVSConfigInfo] = {}
        self._ids = itertools.count(1)
        self._faults: dict[str, list[BaseException]] = {}
        self._delays: dict[str, float] = {}
        self.calls: list[tuple[str, ...]] = []

    # --- Injection helpers ---

    def fail_next(self, method: str, fault: BaseException, times: int = 1) -> None:
        """Make the next ``times`` calls of ``method`` raise ``fault``."""
        self._faults.setdefault(method, []).extend([fault] * times)

    def delay(self, method: str, seconds: float) -> None:
        """Make every call of ``method`` sleep before completing."""
        self._delays[method] = seconds

    def mutating_calls(self) -> list[tuple[str, ...]]:
        """Recorded calls excluding reads."""
        return [c for c in self.calls if not c[0].startswith("get_")]

    def seed_host_switch(self, host_ref: str, name: str, spec: HostVirtualSwitchSpec) -> None:
        """Store a host-local switch without recording a call."""
        self._host_switches[(host_ref, name)] = copy.deepcopy(spec)

    def seed_distributed_switch(self, info: DVSConfigInfo) -> str:
        """Store a distributed switch without recording a call."""
        info = copy.deepcopy(info)
        if not info.mo_ref:
            info.mo_ref = f"dvs-{next(self._ids)}"
        if info.config_version is None:
            info.config_version = "1"
        self._dvs[info.mo_ref] = info
        return info.mo_ref

    async def _enter(self, method: str, *args: str) -> None:
        self.calls.append((method, *args))
        delay = self._delays.get(method)
        if delay:
            await asyncio.sleep(delay)
        pending = self._faults.get(method)
        if pending:
            raise pending.pop(0)

    # --- Host-local switches ---

    async def get_host_switch(self, host_ref, name, timeout):
        await self._enter("get_host_switch", host_ref, name)
        spec = self._host_switches.get((host_ref, name))
        if spec is None:
            raise RemoteFault("NotFound", f"vSwitch {name} not found on {host_ref}", obj_ref=host_ref)
        return HostVirtualSwitch(name=name, spec=copy.deepcopy(spec))

    async def add_host_switch(self, host_ref, name, spec, timeout):
        await self._enter("add_host_switch", host_ref, name)
        if (host_ref, name) in self._host_switches:
            raise RemoteFault("AlreadyExists", f"vSwitch {name} already exists on {host_ref}")
        self._host_switches[(host_ref, name)] = copy.deepcopy(spec)

    async def update_host_switch(self, host_ref, name, spec, timeout):
        await self._enter("update_host_switch", host_ref, name)
        if (host_ref, name) not in self._host_switches:
            raise RemoteFault("NotFound", f"vSwitch {name} not found on {host_ref}", obj_ref=host_ref)
        self._host_switches[(host_ref, name)] = copy.deepcopy(spec)

    async def remove_host_switch(self, host_ref, name, timeout):
        await self._enter("remove_host_switch", host_ref, name)
        if self._host_switches.pop((host_ref, name), None) is None:
            raise RemoteFault("NotFound", f"vSwitch {name} not found on {host_ref}", obj_ref=host_ref)

    # --- Distributed switches ---

    def _get_dvs(self, mo_ref: str) -> DVSConfigInfo:
        info = self._dvs.get(mo_ref)
        if info is None:
            raise RemoteFault("ManagedObjectNotFound", f"{mo_ref} has been deleted", obj_ref=mo_ref)
        return info

    def _bump_version(self, info: DVSConfigInfo) -> None:
        info.config_version = str(int(info.config_version or "0") + 1)

    async def get_distributed_switch(self, mo_ref, timeout):
        await self._enter("get_distributed_switch", mo_ref)
        return copy.deepcopy(self._get_dvs(mo_ref))

    async def create_distributed_switch(self, parent_ref, spec, timeout):
        await self._enter("create_distributed_switch", parent_ref)
        if any(d.name == spec.name for d in self._dvs.values()):
            raise RemoteFault("DuplicateName", f"Name {spec.name} already exists")

        info = DVSConfigInfo(mo_ref=f"dvs-{next(self._ids)}")
        _merge_config(info, spec)
        info.config_version = "1"
        info.product_version = spec.product_version or DEFAULT_PRODUCT_VERSION
        if info.uplink_port_names is None:
            info.uplink_port_names = list(DEFAULT_UPLINKS)
        info.host = [
            DVSHostMember(host=m.host, pnic_device=list(m.pnic_device))
            for m in spec.host
        ]
        self._dvs[info.mo_ref] = info
        return info.mo_ref

    async def reconfigure_distributed_switch(self, mo_ref, spec, timeout):
        await self._enter("reconfigure_distributed_switch", mo_ref)
        info = self._get_dvs(mo_ref)
        if spec.config_version is not None and spec.config_version != info.config_version:
            raise RemoteFault(
                "ConcurrentAccess",
                f"config version {spec.config_version} is stale (current {info.config_version})",
                obj_ref=mo_ref,
            )
        _merge_config(info, spec)
        self._bump_version(info)

    async def upgrade_distributed_switch(self, mo_ref, product_version, timeout):
        await self._enter("upgrade_distributed_switch", mo_ref, product_version)
        info = self._get_dvs(mo_ref)
        info.product_version = product_version
        self._bump_version(info)

    async def add_dvs_host(self, mo_ref, member, timeout):
        await self._enter("add_dvs_host", mo_ref, member.host)
        info = self._get_dvs(mo_ref)
        if _find_member(info, member.host) is not None:
            raise RemoteFault("AlreadyExists", f"{member.host} is already a member of {mo_ref}")
        info.host.append(DVSHostMember(host=member.host, pnic_device=list(member.pnic_device)))
        self._bump_version(info)

    async def update_dvs_host(self, mo_ref, member, timeout):
        await self._enter("update_dvs_host", mo_ref, member.host)
        info = self._get_dvs(mo_ref)
        existing = _find_member(info, member.host)
        if existing is None:
            raise RemoteFault("HostNotFound", f"{member.host} is not a member of {mo_ref}")
        existing.pnic_device = list(member.pnic_device)
        self._bump_version(info)

    async def remove_dvs_host(self, mo_ref, host_ref, timeout):
        await self._enter("remove_dvs_host", mo_ref, host_ref)
        info = self._get_dvs(mo_ref)
        if _find_member(info, host_ref) is None:
            raise RemoteFault("HostNotFound", f"{host_ref} is not a member of {mo_ref}")
        info.host = [m for m in info.host if m.host != host_ref]
        self._bump_version(info)

    async def destroy_distributed_switch(self, mo_ref, timeout):
        await self._enter("destroy_distributed_switch", mo_ref)
        self._get_dvs(mo_ref)
        del self._dvs[mo_ref]


def _find_member(info: DVSConfigInfo, host_ref: str) -> Optional[DVSHostMember]:
    for member in info.host:
        if member.host == host_ref:
            return member
    return None


def _merge_config(info: DVSConfigInfo, spec: DVSConfigSpec) -> None:
    """Overlay the set attributes of a config spec onto stored state.

    Nested policies merge attribute by attribute, so anything left unset in
    the spec keeps its stored value. Host membership and versions are
    managed by their own calls.
    """
    skip = {"host", "config_version", "product_version"}
    for f in fields(DVSConfigSpec):
        if f.name in skip:
            continue
        value = getattr(spec, f.name)
        if value is not None:
            setattr(info, f.name, _overlay(getattr(info, f.name), value))


def _overlay(stored, value):
    if stored is None or not is_dataclass(value) or type(stored) is not type(value):
        return copy.deepcopy(value)
    for f in fields(value):
        sub = getattr(value, f.name)
        if sub is not None:
            setattr(stored, f.name, _overlay(getattr(stored, f.name), sub))
    return stored
