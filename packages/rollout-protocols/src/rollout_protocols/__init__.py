"""
Protocol definitions for the Kafka rollout operator.

This package provides the Protocol definitions and shared data types used
between the reconcile core and platform backends. It has zero dependencies
on other rollout-* packages.

Key protocols:
- ClusterStateStoreProtocol: Access to one cluster's platform objects
- DesiredSpecSourceProtocol: Provider of desired specs

Key types:
- Role, MemberId, Member: Member identity and observed member state
- ObservedState, ReplicationUnit: Per-role observation snapshot
- MemberTemplate: Template members are (re)created from
- Condition, StatusRecord: Status subresource content
"""

from rollout_protocols.source import DesiredSpecSourceProtocol
from rollout_protocols.store import ClusterStateStoreProtocol
from rollout_protocols.types import (
    Condition,
    ContentHash,
    Member,
    MemberId,
    MemberTemplate,
    ObservedState,
    ReplicationUnit,
    Role,
    StatusRecord,
    member_name,
)

__all__ = [
    # Protocols
    "ClusterStateStoreProtocol",
    "DesiredSpecSourceProtocol",
    # Data types
    "Condition",
    "ContentHash",
    "Member",
    "MemberId",
    "MemberTemplate",
    "ObservedState",
    "ReplicationUnit",
    "Role",
    "StatusRecord",
    "member_name",
]
