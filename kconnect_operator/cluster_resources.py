"""Manifests for the Kubernetes objects that make up a Kafka Connect cluster."""

from __future__ import annotations

from typing import Any

from .v1alpha1 import DEFAULT_IMAGE, Cluster

CONNECT_PORT = 8083


def _pod_labels(cluster: Cluster) -> dict[str, str]:
    return {
        "app.kubernetes.io/name": "kafka-connect",
        "app.kubernetes.io/instance": cluster.metadata.name,
    }


def _connect_name(cluster: Cluster) -> str:
    return f"{cluster.metadata.name}-connect"


def owner_reference_for_cluster(cluster: Cluster) -> dict[str, Any]:
    """Controller owner reference pointing at the cluster."""
    return {
        "apiVersion": cluster.api_version,
        "kind": cluster.kind,
        "name": cluster.metadata.name,
        "uid": cluster.metadata.uid,
        "blockOwnerDeletion": True,
        "controller": True,
    }


def _metadata(cluster: Cluster, name: str, owned: bool = True) -> dict[str, Any]:
    metadata: dict[str, Any] = {"name": name, "namespace": cluster.metadata.namespace}
    if owned:
        metadata["ownerReferences"] = [owner_reference_for_cluster(cluster)]
    return metadata


def _health_probe(initial_delay: int, period: int, timeout: int) -> dict[str, Any]:
    return {
        "httpGet": {"path": "/health", "port": "http"},
        "initialDelaySeconds": initial_delay,
        "periodSeconds": period,
        "timeoutSeconds": timeout,
        "failureThreshold": 3,
    }


def deployment_for_cluster(cluster: Cluster) -> dict[str, Any]:
    """The Deployment running the Kafka Connect workers."""
    image = cluster.spec.image if cluster.spec.image is not None else DEFAULT_IMAGE
    replicas = cluster.spec.replicas if cluster.spec.replicas is not None else 1
    config_hash = cluster.status.config_hash or ""
    labels = _pod_labels(cluster)

    container = {
        "name": "kafka-connect",
        "image": image,
        "imagePullPolicy": "IfNotPresent",
        "command": ["/opt/kafka/bin/connect-distributed.sh", "/config/connect.properties"],
        "env": [
            {
                "name": "CONNECT_REST_ADVERTISED_HOST_NAME",
                "valueFrom": {"fieldRef": {"fieldPath": "status.podIP"}},
            }
        ],
        "ports": [{"containerPort": CONNECT_PORT, "name": "http"}],
        # Requests and limits follow the usual cloud ratio of 1 CPU to 4 GB.
        "resources": {
            "requests": {"cpu": "250m", "memory": "1Gi"},
            "limits": {"cpu": "1000m", "memory": "4Gi"},
        },
        "livenessProbe": _health_probe(30, 10, 5),
        "readinessProbe": _health_probe(10, 5, 3),
        "volumeMounts": [{"name": "config", "mountPath": "/config", "readOnly": True}],
        "securityContext": {
            "runAsNonRoot": True,
            "runAsUser": 65534,
            "allowPrivilegeEscalation": False,
            "capabilities": {"drop": ["ALL"]},
        },
    }

    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": _metadata(cluster, _connect_name(cluster)),
        "spec": {
            "replicas": replicas,
            "selector": {"matchLabels": dict(labels)},
            "template": {
                "metadata": {
                    "labels": dict(labels),
                    "annotations": {"config/hash": config_hash},
                },
                "spec": {
                    "securityContext": {"runAsNonRoot": True},
                    "containers": [container],
                    "volumes": [
                        {
                            "name": "config",
                            "configMap": {"name": config_map_name_for_cluster(cluster)},
                        }
                    ],
                },
            },
        },
    }


def kafka_connect_configs_for_cluster(cluster: Cluster) -> dict[str, str]:
    """The worker configuration: the user's settings with the mandatory ones forced."""
    configs = dict(cluster.spec.config)
    configs.update(
        {
            "listeners": f"http://:{CONNECT_PORT}",
            "rest.advertised.host.name": "${env:CONNECT_REST_ADVERTISED_HOST_NAME}",
            "rest.advertised.listener": "http",
            "rest.advertised.port": str(CONNECT_PORT),
            # The cluster is secured through network policies.
            "rest.extension.classes": "",
            # Allow CONNECT_* environment variables to be referenced in configs.
            "config.providers": "env",
            "config.providers.env.class": "org.apache.kafka.common.config.provider.EnvVarConfigProvider",
            "config.providers.env.param.allowlist.pattern": "^CONNECT_.*",
        }
    )
    return configs


def config_map_name_for_cluster(cluster: Cluster) -> str:
    return f"{cluster.metadata.name}-connect-config"


def config_map_for_cluster(cluster: Cluster) -> dict[str, Any]:
    """The ConfigMap holding connect.properties, keys in sorted order."""
    configs = kafka_connect_configs_for_cluster(cluster)
    properties = "".join(f"{key}={configs[key]}\n" for key in sorted(configs))
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": _metadata(cluster, config_map_name_for_cluster(cluster)),
        "data": {"connect.properties": properties},
    }


def service_for_cluster(cluster: Cluster) -> dict[str, Any]:
    """The Service exposing the Kafka Connect REST API."""
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": _metadata(cluster, _connect_name(cluster), owned=False),
        "spec": {
            "selector": _pod_labels(cluster),
            "ports": [{"protocol": "TCP", "port": CONNECT_PORT, "targetPort": "http"}],
        },
    }


def network_policy_for_cluster(cluster: Cluster, operator_namespace: str) -> dict[str, Any]:
    """Ingress policy letting in only the operator and the cluster's own pods."""
    pod_labels = _pod_labels(cluster)
    operator_pod_labels = {
        "control-plane": "controller-manager",
        "app.kubernetes.io/name": "kafka-connect-operator",
    }
    operator_namespace_labels = {"kubernetes.io/metadata.name": operator_namespace}

    def connect_port() -> list[dict[str, Any]]:
        return [{"protocol": "TCP", "port": CONNECT_PORT}]

    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "NetworkPolicy",
        "metadata": _metadata(cluster, _connect_name(cluster)),
        "spec": {
            "podSelector": {"matchLabels": dict(pod_labels)},
            "policyTypes": ["Ingress"],
            "ingress": [
                {
                    "from": [
                        {
                            "namespaceSelector": {"matchLabels": operator_namespace_labels},
                            "podSelector": {"matchLabels": operator_pod_labels},
                        }
                    ],
                    "ports": connect_port(),
                },
                {
                    "from": [{"podSelector": {"matchLabels": dict(pod_labels)}}],
                    "ports": connect_port(),
                },
            ],
        },
    }