"""Reconciliation of Cluster resources into a Service, NetworkPolicy, ConfigMap and Deployment."""

from __future__ import annotations

import base64
import logging
from typing import Any, Callable, Iterator, Optional

from .cluster_resources import (
    config_map_for_cluster,
    deployment_for_cluster,
    network_policy_for_cluster,
    service_for_cluster,
)
from .meta import (
    ApiError,
    Condition,
    ConditionStatus,
    KubeClient,
    NotFoundError,
    Request,
    Result,
    find_status_condition,
    set_status_condition,
)
from .utils import find_status_deployment_condition, fnv64a
from .v1alpha1 import Cluster

_log = logging.getLogger(__name__)

TYPE_AVAILABLE_CLUSTER = "Available"
SERVER_SIDE_APPLY_MANAGER = "kafka-connect-operator"


def config_map_hash(config_map: dict[str, Any]) -> str:
    """FNV-1a hash over the keys and values of a ConfigMap manifest, as hex.

    Keys are visited in sorted order, ``data`` before ``binaryData``; binary
    values given as strings are taken to be base64 encoded.
    """
    data = config_map.get("data") or {}
    binary = config_map.get("binaryData") or {}

    def chunks() -> Iterator[bytes]:
        for key in sorted(data):
            yield key.encode()
            yield str(data[key]).encode()
        for key in sorted(binary):
            value = binary[key]
            if isinstance(value, str):
                value = base64.b64decode(value)
            yield key.encode()
            yield bytes(value)

    return format(fnv64a(chunks()), "x")


def _wrap(exc: ApiError, message: str) -> ApiError:
    return ApiError(f"{message}: {exc}", exc.code)


class ClusterReconciler:
    """Moves the observed state of a Cluster towards its desired state.

    ``namespace`` is the namespace the operator runs in; the NetworkPolicy
    lets in traffic from operator pods there.
    """

    def __init__(self, client: KubeClient, namespace: str = "") -> None:
        self.client = client
        self.namespace = namespace

    def reconcile(self, request: Request) -> Result:
        """Run one reconciliation pass for the Cluster named by the request."""
        _log.info("Start Reconcile loop")

        cluster = self._get_cluster(request.namespace, request.name)
        steps: tuple[Callable[[Cluster], Optional[Cluster]], ...] = (
            self._initialize_status_conditions,
            self._reconcile_service,
            self._reconcile_network_policy,
            self._reconcile_config_map,
            self._reconcile_deployment,
        )
        for step in steps:
            if cluster is None:
                # Deleted, or changed in a way that triggers another pass.
                return Result()
            cluster = step(cluster)

        if cluster is not None:
            _log.info("Reconcile completed")
        return Result()

    def _get_cluster(self, namespace: str, name: str) -> Optional[Cluster]:
        try:
            return self.client.get(Cluster.kind, namespace, name)
        except NotFoundError:
            # Deleted: owned objects are left to the garbage collector.
            _log.info("Resource has been deleted")
            return None
        except ApiError as exc:
            raise _wrap(exc, "failed to get Cluster") from exc

    def _refetch(self, cluster: Cluster) -> Optional[Cluster]:
        return self._get_cluster(cluster.metadata.namespace, cluster.metadata.name)

    def _update_status_condition(self, cluster: Cluster, condition: Condition) -> None:
        _log.info(
            "Update Cluster status condition: type=%s status=%s",
            condition.type,
            condition.status.value,
        )
        set_status_condition(cluster.status.conditions, condition)
        try:
            self.client.update_status(cluster)
        except ApiError as exc:
            raise _wrap(exc, "failed to update Cluster status condition") from exc

    def _initialize_status_conditions(self, cluster: Cluster) -> Optional[Cluster]:
        if cluster.status.conditions:
            return cluster
        try:
            self._update_status_condition(
                cluster,
                Condition(
                    type=TYPE_AVAILABLE_CLUSTER,
                    status=ConditionStatus.UNKNOWN,
                    reason="Reconciling",
                ),
            )
        except ApiError as exc:
            raise _wrap(exc, "failed to initialize Cluster condition") from exc
        _log.info("Resource initial condition updated successfully")
        return None

    def _apply(self, cluster: Cluster, manifest: dict[str, Any], what: str) -> Optional[Cluster]:
        """Apply a manifest, marking the cluster failed on error, then refetch it."""
        try:
            self.client.apply(manifest, field_manager=SERVER_SIDE_APPLY_MANAGER, force=False)
        except ApiError as exc:
            _log.error("Failed to apply %s: %s", what, exc)
            try:
                self._update_status_condition(
                    cluster,
                    Condition(
                        type=TYPE_AVAILABLE_CLUSTER,
                        status=ConditionStatus.FALSE,
                        reason="Error",
                        message=f"Failed to apply {what}: {exc}",
                    ),
                )
            except ApiError as status_exc:
                raise _wrap(
                    status_exc, f"failed to update Cluster status after failed to apply {what}"
                ) from status_exc
            raise _wrap(exc, f"failed to apply {what}") from exc
        return self._refetch(cluster)

    def _reconcile_service(self, cluster: Cluster) -> Optional[Cluster]:
        return self._apply(cluster, service_for_cluster(cluster), "Service")

    def _reconcile_network_policy(self, cluster: Cluster) -> Optional[Cluster]:
        policy = cluster.spec.network_policy
        enabled = True
        if policy is not None and policy.enabled is not None:
            enabled = policy.enabled
        if not enabled:
            return cluster
        manifest = network_policy_for_cluster(cluster, self.namespace)
        return self._apply(cluster, manifest, "NetworkPolicy")

    def _reconcile_config_map(self, cluster: Cluster) -> Optional[Cluster]:
        manifest = config_map_for_cluster(cluster)
        refreshed = self._apply(cluster, manifest, "ConfigMap")
        if refreshed is None:
            return None
        cluster = refreshed

        metadata = manifest["metadata"]
        try:
            config_map = self.client.get("ConfigMap", metadata["namespace"], metadata["name"])
        except ApiError as exc:
            raise _wrap(exc, "failed to get ConfigMap after apply") from exc

        digest = config_map_hash(config_map)
        if cluster.status.config_hash == digest:
            return cluster

        cluster.status.config_hash = digest
        _log.info("Update Cluster status configHash: %s", digest)
        try:
            self.client.update_status(cluster)
        except ApiError as exc:
            raise _wrap(
                exc, "failed to update Cluster status after updating the configHash"
            ) from exc
        # The status update triggers another pass.
        return None

    def _reconcile_deployment(self, cluster: Cluster) -> Optional[Cluster]:
        manifest = deployment_for_cluster(cluster)
        refreshed = self._apply(cluster, manifest, "Deployment")
        if refreshed is None:
            return None
        cluster = refreshed

        metadata = manifest["metadata"]
        deployment = self.client.get("Deployment", metadata["namespace"], metadata["name"])
        conditions = (deployment.get("status") or {}).get("conditions") or []
        deployment_available = find_status_deployment_condition(conditions, "Available")
        if deployment_available is None:
            return cluster

        status = ConditionStatus(deployment_available.get("status", "Unknown"))
        cluster_available = find_status_condition(cluster.status.conditions, TYPE_AVAILABLE_CLUSTER)
        if cluster_available is not None and cluster_available.status == status:
            return cluster

        condition = Condition(
            type=TYPE_AVAILABLE_CLUSTER,
            status=status,
            reason=deployment_available.get("reason", ""),
            message=deployment_available.get("message", ""),
        )
        _log.info(
            "Update Cluster status Available condition according to Deployment status: "
            "status=%s reason=%s",
            condition.status.value,
            condition.reason,
        )
        try:
            self._update_status_condition(cluster, condition)
        except ApiError as exc:
            raise _wrap(exc, "failed to update Cluster status with Deployment status") from exc
        return None