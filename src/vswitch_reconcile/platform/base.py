"""Management platform abstraction consumed by the reconcile engine."""
import logging
from abc import ABC, abstractmethod

from .types import (
    DVSConfigInfo,
    DVSConfigSpec,
    DVSHostMemberSpec,
    HostVirtualSwitch,
    HostVirtualSwitchSpec,
)

logger = logging.getLogger(__name__)


class SwitchPlatform(ABC):
    """Abstract session against a virtualization management platform.

    Every call accepts a timeout in seconds. Failures are raised as
    platform faults (see faults.RemoteFault); the engine classifies them.
    Implementations are not required to be safe for concurrent use.
    """

    def __init__(self, name: str = "platform"):
        self.name = name
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    # Session management
    async def connect(self) -> None:
        """Open the API session."""
        self._connected = True

    async def disconnect(self) -> None:
        """Close the API session."""
        self._connected = False

    # Host-local switches
    @abstractmethod
    async def get_host_switch(
        self, host_ref: str, name: str, timeout: float
    ) -> HostVirtualSwitch:
        """Read a host-local switch by host reference and name."""
        pass

    @abstractmethod
    async def add_host_switch(
        self, host_ref: str, name: str, spec: HostVirtualSwitchSpec, timeout: float
    ) -> None:
        """Create a host-local switch."""
        pass

    @abstractmethod
    async def update_host_switch(
        self, host_ref: str, name: str, spec: HostVirtualSwitchSpec, timeout: float
    ) -> None:
        """Replace the whole spec of a host-local switch."""
        pass

    @abstractmethod
    async def remove_host_switch(
        self, host_ref: str, name: str, timeout: float
    ) -> None:
        """Delete a host-local switch."""
        pass

    # Distributed switches
    @abstractmethod
    async def get_distributed_switch(
        self, mo_ref: str, timeout: float
    ) -> DVSConfigInfo:
        """Read the current configuration of a distributed switch."""
        pass

    @abstractmethod
    async def create_distributed_switch(
        self, parent_ref: str, spec: DVSConfigSpec, timeout: float
    ) -> str:
        """Create a distributed switch under a network folder.

        Returns:
            Managed object reference of the new switch
        """
        pass

    @abstractmethod
    async def reconfigure_distributed_switch(
        self, mo_ref: str, spec: DVSConfigSpec, timeout: float
    ) -> None:
        """Apply a configuration spec to a distributed switch."""
        pass

    @abstractmethod
    async def upgrade_distributed_switch(
        self, mo_ref: str, product_version: str, timeout: float
    ) -> None:
        """Upgrade the product version of a distributed switch."""
        pass

    @abstractmethod
    async def add_dvs_host(
        self, mo_ref: str, member: DVSHostMemberSpec, timeout: float
    ) -> None:
        """Join a host to a distributed switch."""
        pass

    @abstractmethod
    async def update_dvs_host(
        self, mo_ref: str, member: DVSHostMemberSpec, timeout: float
    ) -> None:
        """Change the bonded adapters of a member host."""
        pass

    @abstractmethod
    async def remove_dvs_host(
        self, mo_ref: str, host_ref: str, timeout: float
    ) -> None:
        """Remove a host from a distributed switch."""
        pass

    @abstractmethod
    async def destroy_distributed_switch(
        self, mo_ref: str, timeout: float
    ) -> None:
        """Delete a distributed switch."""
        pass

    # Context manager support
    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
        return False
