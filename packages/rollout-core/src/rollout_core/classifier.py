"""
Change classification.

Maps the difference between the digests a member recorded at its last
successful apply and the digests of the desired spec to a RollDecision.

Rules (per resource, for the member's own role):
- Known member-affecting resource changed (config, logging, metrics,
  probes, JVM options, resources, image, member metadata):
  RequiresRollingRestart under RollingUpdate, RequiresRecreate under Recreate
- Satellite configuration changed: NoAction
- Anything else changed (pass-through "extra.*" sections, resources without
  a rule): RequiresRollingRestart

The derived configuration object has no digest at all, so drift in it can
never cause a restart.

A member's decision is the most severe decision among its changed resources.
"""

import logging

from rollout_core.fingerprint import ROLE_RESOURCES, SATELLITE_PREFIX
from rollout_core.spec import DeploymentStrategy
from rollout_core.types import NO_ACTION, DecisionKind, RollDecision
from rollout_protocols import ContentHash, Member, MemberId, ObservedState, Role

logger = logging.getLogger(__name__)


def changed_resources(recorded: ContentHash, desired: ContentHash) -> list[str]:
    """
    Names of resources whose recorded digest differs from the desired one.

    A resource present on only one side counts as changed (e.g. metrics
    configuration removed, or a member that never recorded anything).
    """
    names = list(desired) + [name for name in recorded if name not in desired]
    return [name for name in names if recorded.get(name) != desired.get(name)]


class ChangeClassifier:
    """
    Classifies spec changes into restart decisions.

    Stateless apart from the deployment strategy, which decides whether a
    member-affecting change is applied by rolling restart or by recreate.

    Example:
        classifier = ChangeClassifier(DeploymentStrategy.ROLLING_UPDATE)
        decisions = classifier.classify(observed, desired_hashes(spec, role))
        planned = [m for m, d in decisions.items() if d.requires_restart]
    """

    def __init__(self, strategy: DeploymentStrategy) -> None:
        self.strategy = strategy

    def classify_resource(self, role: Role, resource: str) -> RollDecision:
        """
        Decision for one changed resource of a role.

        Args:
            role: Role the resource belongs to.
            resource: Resource name (e.g. "readiness_probe", "extra.rack").

        Returns:
            The decision the change requires.
        """
        if resource.startswith(SATELLITE_PREFIX):
            return NO_ACTION
        if resource in ROLE_RESOURCES:
            kind = (
                DecisionKind.REQUIRES_RECREATE
                if self.strategy is DeploymentStrategy.RECREATE
                else DecisionKind.REQUIRES_ROLLING_RESTART
            )
            return RollDecision(kind, f"{role.value} {resource} changed")
        return RollDecision(
            DecisionKind.REQUIRES_ROLLING_RESTART,
            f"{role.value} {resource} changed (no rule, restarting)",
        )

    def classify_member(self, member: Member, desired: ContentHash) -> RollDecision:
        """Merged decision for one member against the desired digests."""
        changed = changed_resources(member.content_hash, desired)
        decision = RollDecision.merge(
            [self.classify_resource(member.id.role, name) for name in changed]
        )
        if changed:
            logger.debug(
                "%s: changed %s -> %s", member.id, ", ".join(changed), decision.kind.value
            )
        return decision

    def classify(
        self, observed: ObservedState, desired: ContentHash
    ) -> dict[MemberId, RollDecision]:
        """
        Classify every observed member of a role.

        Args:
            observed: Current members of the role.
            desired: Desired digests for the role (see templates.desired_hashes).

        Returns:
            Decision per member, in observation order.
        """
        return {m.id: self.classify_member(m, desired) for m in observed.members}
