"""
Desired-spec source protocol.

The DesiredSpecSourceProtocol defines where the reconcile loop gets its
desired state from. The Kubernetes implementation reads custom resources
and resolves their external configuration references; tests use plain
in-memory lists.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class DesiredSpecSourceProtocol(Protocol):
    """
    Protocol for desired-state providers.

    list_specs() returns one immutable DesiredSpec (rollout_core.spec) per
    managed cluster. Any external objects referenced by a resource (logging
    or metrics configuration) are already resolved into the returned spec,
    so a change to a referenced object shows up as a different spec.
    """

    async def list_specs(self) -> list[Any]:
        """
        Load the current desired specs of all managed clusters.

        Returns:
            List of DesiredSpec objects, one per cluster resource.
        """
        ...
