"""
Manifest builders for member pods, volume claims and events.

Pods are built from the role's MemberTemplate: template labels and
annotations go on the pod metadata, the template revision is stamped as an
annotation, and the derived configuration object is mounted at
/opt/kafka/custom-config.
"""

from datetime import datetime, timezone
from typing import Any

from rollout_kubernetes.naming import (
    ANNOTATION_REVISION,
    auxiliary_volume_names,
    data_volume_name,
    hash_annotations,
    member_labels,
)
from rollout_protocols import MemberId, MemberTemplate, Role

DEFAULT_IMAGES = {
    Role.KAFKA: "quay.io/strimzi/kafka:0.41.0-kafka-3.7.0",
    Role.ZOOKEEPER: "quay.io/strimzi/kafka:0.41.0-kafka-3.7.0",
}
CONFIG_MOUNT = "/opt/kafka/custom-config"
DATA_MOUNT = "/var/lib/kafka"
PORTS = {
    Role.KAFKA: [("replication", 9091), ("clients", 9092)],
    Role.ZOOKEEPER: [("clients", 2181), ("clustering", 2888), ("election", 3888)],
}
CLIENT_PORTS = {Role.KAFKA: 9092, Role.ZOOKEEPER: 2181}


def _probe(template_probe: dict[str, int], port: int) -> dict[str, Any]:
    return {"tcpSocket": {"port": port}, **template_probe}


def jvm_env(jvm_options: dict[str, Any]) -> str:
    """Render JVM options as a KAFKA_JVM_PERFORMANCE_OPTS style string."""
    parts = []
    for key, value in jvm_options.items():
        if isinstance(value, bool):
            parts.append(f"-XX:{'+' if value else '-'}{key}")
        elif key.startswith("-"):
            parts.append(f"{key}{value}" if value not in (None, "") else key)
        else:
            parts.append(f"-D{key}={value}")
    return " ".join(parts)


def pod_manifest(
    member: MemberId,
    template: MemberTemplate,
    namespace: str,
    hashes: dict[str, str] | None = None,
) -> dict[str, Any]:
    """
    Build the pod manifest of a member from its role template.

    Args:
        member: Member identity (pod name and ordinal).
        template: Current template of the member's role.
        namespace: Target namespace.
        hashes: Content digests to carry on the pod. Digests of the template
            itself are only recorded once the member is confirmed ready.

    Returns:
        A v1 Pod manifest.
    """
    labels = {**dict(template.labels), **member_labels(member.cluster, member.role)}
    annotations = {
        **dict(template.annotations),
        ANNOTATION_REVISION: template.revision,
        **hash_annotations(hashes or {}),
    }
    client_port = CLIENT_PORTS[member.role]

    env = [{"name": k, "value": v} for k, v in template.env.items()]
    env.append({"name": "MEMBER_ORDINAL", "value": str(member.ordinal)})
    if template.jvm_options:
        env.append(
            {"name": "KAFKA_JVM_PERFORMANCE_OPTS", "value": jvm_env(dict(template.jvm_options))}
        )

    volumes = [
        {"name": "custom-config", "configMap": {"name": template.config_name}},
        {
            "name": "data",
            "persistentVolumeClaim": {"claimName": data_volume_name(member)},
        },
    ]
    mounts = [
        {"name": "custom-config", "mountPath": CONFIG_MOUNT},
        {"name": "data", "mountPath": f"{DATA_MOUNT}/data-0"},
    ]
    for n, claim in enumerate(
        auxiliary_volume_names(member, template.auxiliary_volumes), start=1
    ):
        volumes.append({"name": f"data-{n}", "persistentVolumeClaim": {"claimName": claim}})
        mounts.append({"name": f"data-{n}", "mountPath": f"{DATA_MOUNT}/data-{n}"})

    container: dict[str, Any] = {
        "name": member.role.value,
        "image": template.image or DEFAULT_IMAGES[member.role],
        "ports": [{"name": n, "containerPort": p} for n, p in PORTS[member.role]],
        "env": env,
        "volumeMounts": mounts,
        "readinessProbe": _probe(dict(template.readiness_probe), client_port),
        "livenessProbe": _probe(dict(template.liveness_probe), client_port),
    }
    if template.resources:
        container["resources"] = {k: dict(v) for k, v in template.resources.items()}

    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {
            "name": member.name,
            "namespace": namespace,
            "labels": labels,
            "annotations": annotations,
        },
        "spec": {
            "hostname": member.name,
            "subdomain": f"{member.cluster}-{member.role.value}-headless",
            "containers": [container],
            "volumes": volumes,
        },
    }


def pvc_manifest(
    name: str, member: MemberId, template: MemberTemplate, namespace: str
) -> dict[str, Any]:
    """Build a persistent volume claim manifest for one of a member's volumes."""
    spec: dict[str, Any] = {
        "accessModes": ["ReadWriteOnce"],
        "resources": {"requests": {"storage": template.storage_size}},
    }
    if template.storage_class:
        spec["storageClassName"] = template.storage_class
    return {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": member_labels(member.cluster, member.role),
        },
        "spec": spec,
    }


def event_manifest(
    member: MemberId, reason: str, message: str, namespace: str
) -> dict[str, Any]:
    """Build a core/v1 Event about a member pod."""
    now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return {
        "apiVersion": "v1",
        "kind": "Event",
        "metadata": {
            "generateName": f"{member.name}.",
            "namespace": namespace,
        },
        "involvedObject": {
            "apiVersion": "v1",
            "kind": "Pod",
            "name": member.name,
            "namespace": namespace,
        },
        "reason": reason,
        "message": message,
        "type": "Normal",
        "source": {"component": "rollout-operator"},
        "firstTimestamp": now,
        "lastTimestamp": now,
        "count": 1,
    }
