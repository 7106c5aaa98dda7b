"""Cluster and Connector resource types of the kafka-connect API group."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Optional

from .meta import GROUP_VERSION, Condition, ConditionStatus, ObjectMeta

DEFAULT_IMAGE = "docker.io/apache/kafka:latest"

_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def _format_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(_TIME_FORMAT)


def _parse_time(value: str) -> datetime:
    return datetime.strptime(value, _TIME_FORMAT).replace(tzinfo=timezone.utc)


def _condition_to_dict(condition: Condition) -> dict[str, Any]:
    data: dict[str, Any] = {"type": condition.type, "status": condition.status.value}
    if condition.observed_generation:
        data["observedGeneration"] = condition.observed_generation
    if condition.last_transition_time is not None:
        data["lastTransitionTime"] = _format_time(condition.last_transition_time)
    data["reason"] = condition.reason
    data["message"] = condition.message
    return data


def _condition_from_dict(data: dict[str, Any]) -> Condition:
    transition = data.get("lastTransitionTime")
    return Condition(
        type=data["type"],
        status=ConditionStatus(data["status"]),
        reason=data.get("reason", ""),
        message=data.get("message", ""),
        observed_generation=data.get("observedGeneration", 0),
        last_transition_time=_parse_time(transition) if transition else None,
    )


def _meta_to_dict(meta: ObjectMeta) -> dict[str, Any]:
    data: dict[str, Any] = {"name": meta.name}
    if meta.namespace:
        data["namespace"] = meta.namespace
    if meta.uid:
        data["uid"] = meta.uid
    if meta.generation:
        data["generation"] = meta.generation
    if meta.resource_version:
        data["resourceVersion"] = meta.resource_version
    if meta.labels:
        data["labels"] = dict(meta.labels)
    if meta.annotations:
        data["annotations"] = dict(meta.annotations)
    if meta.finalizers:
        data["finalizers"] = list(meta.finalizers)
    if meta.deletion_timestamp is not None:
        data["deletionTimestamp"] = _format_time(meta.deletion_timestamp)
    return data


def _meta_from_dict(data: dict[str, Any]) -> ObjectMeta:
    deletion = data.get("deletionTimestamp")
    return ObjectMeta(
        name=data.get("name", ""),
        namespace=data.get("namespace", ""),
        uid=data.get("uid", ""),
        generation=data.get("generation", 0),
        resource_version=data.get("resourceVersion", ""),
        labels=dict(data.get("labels") or {}),
        annotations=dict(data.get("annotations") or {}),
        finalizers=list(data.get("finalizers") or []),
        deletion_timestamp=_parse_time(deletion) if deletion else None,
    )


def _check_type(data: dict[str, Any], kind: str) -> None:
    if data.get("kind", kind) != kind:
        raise ValueError(f"expected kind {kind!r}, got {data.get('kind')!r}")
    api_version = str(GROUP_VERSION)
    if data.get("apiVersion", api_version) != api_version:
        raise ValueError(f"expected apiVersion {api_version!r}, got {data.get('apiVersion')!r}")


@dataclass
class NetworkPolicyConfig:
    """Whether NetworkPolicies are created for a cluster (unset means yes)."""

    enabled: Optional[bool] = None


@dataclass
class ClusterSpec:
    """Desired state of a Kafka Connect cluster."""

    replicas: Optional[int] = None
    image: Optional[str] = None
    config: dict[str, str] = field(default_factory=dict)
    network_policy: Optional[NetworkPolicyConfig] = None

    def __post_init__(self) -> None:
        if self.replicas is not None and self.replicas < 0:
            raise ValueError(f"replicas must be at least 0, got {self.replicas}")


@dataclass
class ClusterStatus:
    """Observed state of a Kafka Connect cluster."""

    conditions: list[Condition] = field(default_factory=list)
    config_hash: Optional[str] = None


@dataclass
class Cluster:
    """A Kafka Connect cluster resource."""

    kind: ClassVar[str] = "Cluster"
    api_version: ClassVar[str] = str(GROUP_VERSION)

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: ClusterSpec = field(default_factory=ClusterSpec)
    status: ClusterStatus = field(default_factory=ClusterStatus)

    def to_dict(self) -> dict[str, Any]:
        spec: dict[str, Any] = {}
        if self.spec.replicas is not None:
            spec["replicas"] = self.spec.replicas
        if self.spec.image is not None:
            spec["image"] = self.spec.image
        spec["config"] = dict(self.spec.config)
        if self.spec.network_policy is not None:
            policy: dict[str, Any] = {}
            if self.spec.network_policy.enabled is not None:
                policy["enabled"] = self.spec.network_policy.enabled
            spec["networkPolicy"] = policy

        status: dict[str, Any] = {}
        if self.status.conditions:
            status["conditions"] = [_condition_to_dict(c) for c in self.status.conditions]
        if self.status.config_hash is not None:
            status["configHash"] = self.status.config_hash

        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": _meta_to_dict(self.metadata),
            "spec": spec,
            "status": status,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Cluster":
        _check_type(data, cls.kind)
        spec = data.get("spec") or {}
        status = data.get("status") or {}
        policy = spec.get("networkPolicy")
        return cls(
            metadata=_meta_from_dict(data.get("metadata") or {}),
            spec=ClusterSpec(
                replicas=spec.get("replicas"),
                image=spec.get("image"),
                config=dict(spec.get("config") or {}),
                network_policy=NetworkPolicyConfig(enabled=policy.get("enabled")) if policy is not None else None,
            ),
            status=ClusterStatus(
                conditions=[_condition_from_dict(c) for c in status.get("conditions") or []],
                config_hash=status.get("configHash"),
            ),
        )


@dataclass
class ConnectorSpec:
    """Desired state of a connector; cluster_ref names the hosting Cluster."""

    cluster_ref: str = ""
    config: dict[str, str] = field(default_factory=dict)


@dataclass
class ConnectorStatus:
    """Observed state of a connector."""

    conditions: list[Condition] = field(default_factory=list)


@dataclass
class Connector:
    """A connector running on a Kafka Connect cluster."""

    kind: ClassVar[str] = "Connector"
    api_version: ClassVar[str] = str(GROUP_VERSION)

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: ConnectorSpec = field(default_factory=ConnectorSpec)
    status: ConnectorStatus = field(default_factory=ConnectorStatus)

    def to_dict(self) -> dict[str, Any]:
        status: dict[str, Any] = {}
        if self.status.conditions:
            status["conditions"] = [_condition_to_dict(c) for c in self.status.conditions]
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": _meta_to_dict(self.metadata),
            "spec": {
                "cluster": {"name": self.spec.cluster_ref},
                "config": dict(self.spec.config),
            },
            "status": status,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Connector":
        _check_type(data, cls.kind)
        spec = data.get("spec") or {}
        status = data.get("status") or {}
        return cls(
            metadata=_meta_from_dict(data.get("metadata") or {}),
            spec=ConnectorSpec(
                cluster_ref=(spec.get("cluster") or {}).get("name", ""),
                config=dict(spec.get("config") or {}),
            ),
            status=ConnectorStatus(
                conditions=[_condition_from_dict(c) for c in status.get("conditions") or []],
            ),
        )

    def has_finalizer(self, finalizer: str) -> bool:
        return finalizer in self.metadata.finalizers

    def add_finalizer(self, finalizer: str) -> bool:
        """Add the finalizer; return whether it was missing."""
        if self.has_finalizer(finalizer):
            return False
        self.metadata.finalizers.append(finalizer)
        return True

    def remove_finalizer(self, finalizer: str) -> bool:
        """Remove the finalizer; return whether it was present."""
        if not self.has_finalizer(finalizer):
            return False
        self.metadata.finalizers = [f for f in self.metadata.finalizers if f != finalizer]
        return True