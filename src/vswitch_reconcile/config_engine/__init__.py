"""Config Engine - declarative reconciliation of virtual switches.

The engine lets callers declare the desired state of a host-local or
distributed virtual switch instead of issuing individual API calls:
- Validation before any remote call
- Field-level diff against the flattened current state
- Ordered, minimal operation plans
- Halt-on-first-failure application with an audit trail

Usage:
    from vswitch_reconcile.config_engine import ReconcileEngine

    engine = ReconcileEngine(platform)
    result = await engine.reconcile("dvs-21", {
        "kind": "distributed",
        "name": "dvs-prod",
        "hosts": {"host-1": ["vmnic1"], "host-3": ["vmnic2"]},
    }, dry_run=True)
"""

from .engine import ReconcileEngine
from .schema import (
    SwitchKind,
    SwitchConfig,
    HostScoped,
    DistributedRef,
    SwitchIdentity,
    TeamingMode,
    TeamingPolicy,
    SecurityPolicy,
    TrafficShapingPolicy,
    UplinkSet,
    UntaggedVlan,
    SingleVlan,
    TrunkVlan,
    UnrecognizedVlan,
    NetFlowConfig,
    NetworkResourceControl,
    ResourceControlVersion,
    LinkDiscovery,
    ValidationResult,
    SwitchDiff,
    FieldChange,
    HostMembershipChange,
    ChangeType,
    OperationKind,
    PlannedOperation,
    OperationPlan,
    ReconcilePhase,
    ReconcileResult,
)
from .identity import encode_identity, decode_identity, identity_kind
from .parser import ConfigParser
from .validator import ConfigValidator
from .expander import SpecExpander
from .flattener import SpecFlattener
from .diff import DiffEngine, overlay, summarize_diff
from .planner import UpdatePlanner, derive_uplinks
from .executor import ConfigExecutor

__all__ = [
    # Main engine
    "ReconcileEngine",
    # Declarative model
    "SwitchKind",
    "SwitchConfig",
    "HostScoped",
    "DistributedRef",
    "SwitchIdentity",
    "TeamingMode",
    "TeamingPolicy",
    "SecurityPolicy",
    "TrafficShapingPolicy",
    "UplinkSet",
    "UntaggedVlan",
    "SingleVlan",
    "TrunkVlan",
    "UnrecognizedVlan",
    "NetFlowConfig",
    "NetworkResourceControl",
    "ResourceControlVersion",
    "LinkDiscovery",
    # Results
    "ValidationResult",
    "SwitchDiff",
    "FieldChange",
    "HostMembershipChange",
    "ChangeType",
    "OperationKind",
    "PlannedOperation",
    "OperationPlan",
    "ReconcilePhase",
    "ReconcileResult",
    # Identity codec
    "encode_identity",
    "decode_identity",
    "identity_kind",
    # Components (for advanced use)
    "ConfigParser",
    "ConfigValidator",
    "SpecExpander",
    "SpecFlattener",
    "DiffEngine",
    "overlay",
    "summarize_diff",
    "UpdatePlanner",
    "derive_uplinks",
    "ConfigExecutor",
]
