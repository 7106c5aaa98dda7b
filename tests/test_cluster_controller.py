import base64

import pytest

from kconnect_operator.cluster_controller import ClusterReconciler, config_map_hash
from kconnect_operator.meta import (
    ApiError,
    ConditionStatus,
    KubeClient,
    NotFoundError,
    ObjectMeta,
    Request,
    Result,
    find_status_condition,
)
from kconnect_operator.utils import fnv_hash_string
from kconnect_operator.v1alpha1 import Cluster, ClusterSpec, NetworkPolicyConfig

NAME = "test-resource"
NAMESPACE = "default"
OPERATOR_NAMESPACE = "kafka-connect-operator"
REQUEST = Request(namespace=NAMESPACE, name=NAME)


def _cluster(spec=None):
    return Cluster(
        metadata=ObjectMeta(name=NAME, namespace=NAMESPACE, uid="uid-1"),
        spec=spec or ClusterSpec(),
    )


def _reconciler(spec=None):
    client = KubeClient([_cluster(spec)])
    return client, ClusterReconciler(client, OPERATOR_NAMESPACE)


def _reconcile(reconciler, times):
    return [reconciler.reconcile(REQUEST) for _ in range(times)]


def _stored_cluster(client):
    return client.get("Cluster", NAMESPACE, NAME)


def test_reconcile_created_resource_succeeds():
    client, reconciler = _reconciler()
    assert reconciler.reconcile(REQUEST) == Result()
    condition = find_status_condition(_stored_cluster(client).status.conditions, "Available")
    assert condition.status is ConditionStatus.UNKNOWN
    assert condition.reason == "Reconciling"


def test_first_pass_only_initializes_conditions():
    client, reconciler = _reconciler()
    reconciler.reconcile(REQUEST)
    assert _stored_cluster(client).status.config_hash is None
    with pytest.raises(NotFoundError):
        client.get("Service", NAMESPACE, f"{NAME}-connect")


def test_missing_cluster_is_ignored():
    client = KubeClient()
    reconciler = ClusterReconciler(client, OPERATOR_NAMESPACE)
    assert reconciler.reconcile(REQUEST) == Result()
    with pytest.raises(NotFoundError):
        client.get("Cluster", NAMESPACE, NAME)


def test_converges_to_all_owned_objects():
    client, reconciler = _reconciler()
    results = _reconcile(reconciler, 3)
    assert results == [Result()] * 3

    service = client.get("Service", NAMESPACE, f"{NAME}-connect")
    assert service["spec"]["ports"][0]["port"] == 8083

    policy = client.get("NetworkPolicy", NAMESPACE, f"{NAME}-connect")
    peer = policy["spec"]["ingress"][0]["from"][0]
    assert peer["namespaceSelector"]["matchLabels"] == {
        "kubernetes.io/metadata.name": OPERATOR_NAMESPACE
    }

    config_map = client.get("ConfigMap", NAMESPACE, f"{NAME}-connect-config")
    cluster = _stored_cluster(client)
    assert cluster.status.config_hash == config_map_hash(config_map)

    deployment = client.get("Deployment", NAMESPACE, f"{NAME}-connect")
    annotations = deployment["spec"]["template"]["metadata"]["annotations"]
    assert annotations["config/hash"] == cluster.status.config_hash
    assert deployment["spec"]["replicas"] == 1


def test_converged_cluster_is_not_updated_again():
    client, reconciler = _reconciler()
    _reconcile(reconciler, 3)
    version = _stored_cluster(client).metadata.resource_version
    _reconcile(reconciler, 2)
    assert _stored_cluster(client).metadata.resource_version == version


def test_network_policy_disabled_is_skipped():
    client, reconciler = _reconciler(
        ClusterSpec(network_policy=NetworkPolicyConfig(enabled=False))
    )
    _reconcile(reconciler, 3)
    with pytest.raises(NotFoundError):
        client.get("NetworkPolicy", NAMESPACE, f"{NAME}-connect")
    deployment = client.get("Deployment", NAMESPACE, f"{NAME}-connect")
    assert deployment["kind"] == "Deployment"


def test_deployment_availability_is_propagated():
    client, reconciler = _reconciler()
    _reconcile(reconciler, 3)

    deployment = client.get("Deployment", NAMESPACE, f"{NAME}-connect")
    deployment["status"] = {
        "conditions": [
            {
                "type": "Available",
                "status": "True",
                "reason": "MinimumReplicasAvailable",
                "message": "Deployment has minimum availability.",
            }
        ]
    }
    client.update_status(deployment)

    assert reconciler.reconcile(REQUEST) == Result()
    condition = find_status_condition(_stored_cluster(client).status.conditions, "Available")
    assert condition.status is ConditionStatus.TRUE
    assert condition.reason == "MinimumReplicasAvailable"
    assert condition.message == "Deployment has minimum availability."

    version = _stored_cluster(client).metadata.resource_version
    reconciler.reconcile(REQUEST)
    assert _stored_cluster(client).metadata.resource_version == version


def test_apply_conflict_marks_cluster_failed():
    client, reconciler = _reconciler()
    client.apply(
        {
            "apiVersion": "v1",
            "kind": "Service",
            "metadata": {"name": f"{NAME}-connect", "namespace": NAMESPACE},
        },
        field_manager="someone-else",
    )
    reconciler.reconcile(REQUEST)

    with pytest.raises(ApiError, match="failed to apply Service") as info:
        reconciler.reconcile(REQUEST)
    assert info.value.code == 409

    condition = find_status_condition(_stored_cluster(client).status.conditions, "Available")
    assert condition.status is ConditionStatus.FALSE
    assert condition.reason == "Error"
    assert condition.message.startswith("Failed to apply Service:")


def test_config_map_hash_of_empty_config_map_is_offset_basis():
    assert config_map_hash({}) == "cbf29ce484222325"


def test_config_map_hash_concatenates_key_and_value():
    assert config_map_hash({"data": {"k": "v"}}) == fnv_hash_string("kv")


def test_config_map_hash_ignores_insertion_order():
    first = {"data": {"a": "1", "b": "2"}}
    second = {"data": {"b": "2", "a": "1"}}
    assert config_map_hash(first) == config_map_hash(second)
    assert config_map_hash(first) == fnv_hash_string("a1b2")


def test_config_map_hash_decodes_binary_data():
    encoded = base64.b64encode(b"raw").decode()
    assert config_map_hash({"binaryData": {"bin": encoded}}) == fnv_hash_string("binraw")


def test_config_map_hash_changes_with_content():
    assert config_map_hash({"data": {"k": "v1"}}) != config_map_hash({"data": {"k": "v2"}})
    assert config_map_hash({"data": {"k": "v1"}}) == fnv_hash_string("kv1")