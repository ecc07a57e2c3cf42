"""Management platform interface, spec objects and fault classification."""
from .base import SwitchPlatform
from .faults import RemoteFault, classify_fault, fault_category
from .memory import InMemoryPlatform

__all__ = [
    "SwitchPlatform",
    "RemoteFault",
    "classify_fault",
    "fault_category",
    "InMemoryPlatform",
]
