from datetime import datetime, timezone

import pytest

from kconnect_operator.meta import GROUP_VERSION, Condition, ConditionStatus, ObjectMeta
from kconnect_operator.v1alpha1 import (
    Cluster,
    ClusterSpec,
    ClusterStatus,
    Connector,
    ConnectorSpec,
    ConnectorStatus,
    NetworkPolicyConfig,
)

WHEN = datetime(2024, 3, 4, 5, 6, 7, tzinfo=timezone.utc)


def _cluster():
    return Cluster(
        metadata=ObjectMeta(name="demo", namespace="default", uid="uid-1", labels={"team": "data"}),
        spec=ClusterSpec(
            replicas=3,
            image="docker.io/apache/kafka:latest",
            config={"group.id": "demo"},
            network_policy=NetworkPolicyConfig(enabled=False),
        ),
        status=ClusterStatus(
            conditions=[Condition("Available", ConditionStatus.TRUE, "Ready", "ok", 2, WHEN)],
            config_hash="abc",
        ),
    )


def test_cluster_round_trip():
    cluster = _cluster()
    assert Cluster.from_dict(cluster.to_dict()) == cluster


def test_cluster_dict_uses_api_names():
    data = _cluster().to_dict()
    assert data["apiVersion"] == str(GROUP_VERSION)
    assert data["kind"] == "Cluster"
    assert data["spec"]["networkPolicy"] == {"enabled": False}
    assert data["status"]["configHash"] == "abc"
    assert data["status"]["conditions"][0]["lastTransitionTime"] == "2024-03-04T05:06:07Z"


def test_cluster_dict_omits_unset_fields():
    data = Cluster(metadata=ObjectMeta(name="c")).to_dict()
    assert data["spec"] == {"config": {}}
    assert data["status"] == {}


def test_negative_replicas_rejected():
    with pytest.raises(ValueError):
        ClusterSpec(replicas=-1)


def test_negative_replicas_rejected_from_dict():
    with pytest.raises(ValueError):
        Cluster.from_dict({"kind": "Cluster", "spec": {"replicas": -2}})


def test_from_dict_rejects_other_kind():
    with pytest.raises(ValueError):
        Cluster.from_dict({"kind": "Connector", "metadata": {"name": "x"}})


def test_from_dict_missing_config_is_empty():
    cluster = Cluster.from_dict({"kind": "Cluster", "metadata": {"name": "x"}, "spec": {}})
    assert cluster.spec.config == {}
    assert cluster.spec.network_policy is None


def test_connector_round_trip():
    connector = Connector(
        metadata=ObjectMeta(name="sink", namespace="default", finalizers=["a"], deletion_timestamp=WHEN),
        spec=ConnectorSpec(cluster_ref="demo", config={"tasks.max": "1"}),
        status=ConnectorStatus(conditions=[Condition("Running", ConditionStatus.FALSE, "Starting")]),
    )
    data = connector.to_dict()
    assert data["spec"]["cluster"] == {"name": "demo"}
    assert Connector.from_dict(data) == connector


def test_connector_finalizers():
    connector = Connector(metadata=ObjectMeta(name="sink"))
    assert connector.add_finalizer("kafka-connect.b1zzu.net/connector") is True
    assert connector.add_finalizer("kafka-connect.b1zzu.net/connector") is False
    assert connector.has_finalizer("kafka-connect.b1zzu.net/connector")
    assert connector.remove_finalizer("kafka-connect.b1zzu.net/connector") is True
    assert connector.remove_finalizer("kafka-connect.b1zzu.net/connector") is False
    assert connector.metadata.finalizers == []