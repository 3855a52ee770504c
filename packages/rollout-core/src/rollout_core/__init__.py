"""
Reconcile core for the Kafka rollout operator.

Decides what to restart, when it is safe to restart it, and how to report
progress, for a Kafka broker ensemble plus its ZooKeeper ensemble. All
platform access goes through rollout_protocols.ClusterStateStoreProtocol.

Main entry points:
- ClusterReconciler: One reconcile cycle of one cluster
- ReconcileLoop: Daemon reconciling every cluster of a spec source
- SimulatedClusterStore: In-memory store for tests and demos
"""

from rollout_core.classifier import ChangeClassifier
from rollout_core.config import OperatorSettings
from rollout_core.context import ReconcileContext
from rollout_core.exceptions import (
    ReconcileAbortedError,
    RolloutError,
    TransientStoreError,
)
from rollout_core.loop import ClusterWorker, ReconcileLoop
from rollout_core.merge import effective_spec
from rollout_core.quorum import GateVerdict, QuorumSafetyGate
from rollout_core.reconcile import ClusterReconciler
from rollout_core.roller import RollingUpdateCoordinator
from rollout_core.scale import ScaleManager
from rollout_core.simulation import SimulatedClusterStore
from rollout_core.spec import (
    ConfigRef,
    DeploymentStrategy,
    DesiredSpec,
    ExternalConfig,
    ProbeSpec,
    ResourceRequirements,
    RoleSpec,
    RoleTemplate,
    StoragePolicy,
)
from rollout_core.status import StatusReporter
from rollout_core.types import (
    DecisionKind,
    ReconcileOutcome,
    RollDecision,
    RollPlan,
    RollResult,
    RollState,
    ScaleResult,
)

__all__ = [
    # Components
    "ChangeClassifier",
    "ClusterReconciler",
    "ClusterWorker",
    "QuorumSafetyGate",
    "ReconcileLoop",
    "RollingUpdateCoordinator",
    "ScaleManager",
    "SimulatedClusterStore",
    "StatusReporter",
    # Context and settings
    "OperatorSettings",
    "ReconcileContext",
    # Spec model
    "ConfigRef",
    "DeploymentStrategy",
    "DesiredSpec",
    "ExternalConfig",
    "ProbeSpec",
    "ResourceRequirements",
    "RoleSpec",
    "RoleTemplate",
    "StoragePolicy",
    "effective_spec",
    # Results
    "DecisionKind",
    "GateVerdict",
    "ReconcileOutcome",
    "RollDecision",
    "RollPlan",
    "RollResult",
    "RollState",
    "ScaleResult",
    # Errors
    "ReconcileAbortedError",
    "RolloutError",
    "TransientStoreError",
]
