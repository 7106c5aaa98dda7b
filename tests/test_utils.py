import pytest

from kconnect_operator.utils import (
    find_status_deployment_condition,
    fnv64a,
    fnv_hash_string,
    properties_to_envs,
)


def test_fnv_empty_string_is_offset_basis():
    assert fnv_hash_string("") == "cbf29ce484222325"


def test_fnv_known_vector():
    assert fnv_hash_string("a") == "af63dc4c8601ec8c"


@pytest.mark.parametrize("text", ["", "a", "connect.properties", "key=value\n"])
def test_fnv_string_matches_bytes(text):
    assert fnv_hash_string(text) == format(fnv64a([text.encode()]), "x")


def test_fnv_is_streaming():
    assert fnv64a([b"con", b"nect", b""]) == fnv64a([b"connect"])


def test_fnv_fits_64_bits():
    assert 0 <= fnv64a([b"x" * 1000]) < 2**64


def test_fnv_order_matters():
    assert fnv64a([b"ab"]) != fnv64a([b"ba"])


def test_properties_to_envs():
    envs = properties_to_envs({"bootstrap.servers": "broker:9092"})
    assert envs == [{"name": "KAFKA_BOOTSTRAP_SERVERS", "value": "broker:9092"}]


def test_properties_to_envs_keeps_every_value():
    props = {"group.id": "g", "offset.storage.topic": "t", "plain": "p"}
    envs = properties_to_envs(props)
    assert sorted(e["value"] for e in envs) == sorted(props.values())
    assert all(e["name"].startswith("KAFKA_") and "." not in e["name"] for e in envs)


def test_find_status_deployment_condition():
    available = {"type": "Available", "status": "True", "reason": "MinimumReplicasAvailable"}
    conditions = [{"type": "Progressing", "status": "True"}, available]
    assert find_status_deployment_condition(conditions, "Available") is available
    assert find_status_deployment_condition(conditions, "ReplicaFailure") is None
    assert find_status_deployment_condition([], "Available") is None