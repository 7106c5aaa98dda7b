"""Reconciliation of Connector resources against the Kafka Connect REST API."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Callable, Iterable, Optional

from .kafka_connect import (
    Client,
    ConnectorConfig,
    ConnectorStatusReport,
    ConnectorStatusTask,
    KafkaConnectError,
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
from .v1alpha1 import Connector

_log = logging.getLogger(__name__)

TYPE_RUNNING_CONNECTOR = "Running"
CONNECTOR_FINALIZER = "kafka-connect.b1zzu.net/connector"
STATUS_POLL_INTERVAL = timedelta(minutes=1)


def connector_configs_equal(actual: dict[str, str], desired: dict[str, str]) -> bool:
    """True when both configurations hold the same keys with the same values."""
    if len(actual) != len(desired):
        return False
    return all(key in actual and actual[key] == value for key, value in desired.items())


def count_failed_tasks(tasks: Iterable[ConnectorStatusTask]) -> int:
    """Number of tasks in the FAILED state."""
    return sum(1 for task in tasks if task.state == "FAILED")


def map_connector_status_to_condition(status: ConnectorStatusReport) -> Condition:
    """Translate a Kafka Connect status report into a Running condition."""
    state = status.connector.state
    if state == "RUNNING":
        failed = count_failed_tasks(status.tasks)
        if failed > 0:
            return Condition(
                type=TYPE_RUNNING_CONNECTOR,
                status=ConditionStatus.FALSE,
                reason="Failed",
                message=f"Connector has {failed} failed task(s) out of {len(status.tasks)}",
            )
        return Condition(
            type=TYPE_RUNNING_CONNECTOR,
            status=ConditionStatus.TRUE,
            reason="Running",
            message=f"Connector is running with {len(status.tasks)} task(s)",
        )
    if state == "PAUSED":
        return Condition(
            type=TYPE_RUNNING_CONNECTOR,
            status=ConditionStatus.FALSE,
            reason="Paused",
            message="Connector is paused",
        )
    if state == "FAILED":
        trace = status.connector.trace.replace("\n\t", "\n")
        return Condition(
            type=TYPE_RUNNING_CONNECTOR,
            status=ConditionStatus.FALSE,
            reason="Failed",
            message=f"Connector failed with trace: {trace}",
        )
    return Condition(
        type=TYPE_RUNNING_CONNECTOR,
        status=ConditionStatus.UNKNOWN,
        reason="Unknown",
        message=f"Connector in unknown state: {state}",
    )


class ConnectorReconciler:
    """Keeps a connector in Kafka Connect in line with its Connector resource.

    ``connect_client_factory`` builds a Kafka Connect client from an endpoint URL.
    """

    def __init__(
        self,
        client: KubeClient,
        connect_client_factory: Callable[[str], Client] = Client,
    ) -> None:
        self.client = client
        self.connect_client_factory = connect_client_factory

    def reconcile(self, request: Request) -> Result:
        """Run one reconciliation pass for the Connector named by the request."""
        _log.info("Start Reconcile loop")

        connector = self._get_connector(request.namespace, request.name)
        steps: tuple[Callable[[Connector], Optional[Connector]], ...] = (
            self._initialize_status_conditions,
            self._reconcile_finalizer,
            self._reconcile_connector,
            self._reconcile_connector_status,
        )
        for step in steps:
            if connector is None:
                return Result()
            connector = step(connector)
        if connector is None:
            return Result()

        _log.info("Reconcile completed")
        # Keep watching the connector status.
        return Result(requeue_after=STATUS_POLL_INTERVAL)

    def _get_connector(self, namespace: str, name: str) -> Optional[Connector]:
        try:
            return self.client.get(Connector.kind, namespace, name)
        except NotFoundError:
            _log.info("Resource has been deleted")
            return None
        except ApiError as exc:
            raise ApiError(f"failed to get Connector: {exc}", exc.code) from exc

    def _connect_client(self, connector: Connector) -> Client:
        endpoint = (
            f"http://{connector.spec.cluster_ref}-connect."
            f"{connector.metadata.namespace}:8083"
        )
        return self.connect_client_factory(endpoint)

    def _update_status_condition(self, connector: Connector, condition: Condition) -> None:
        set_status_condition(connector.status.conditions, condition)
        try:
            self.client.update_status(connector)
        except ApiError as exc:
            raise ApiError(
                f"failed to update Connector status condition: {exc}", exc.code
            ) from exc

    def _failure(self, connector: Connector, exc: Exception, reason: str) -> Exception:
        """Mark the connector failed and return the error to raise."""
        try:
            self._update_status_condition(
                connector,
                Condition(
                    type=TYPE_RUNNING_CONNECTOR,
                    status=ConditionStatus.FALSE,
                    reason="Error",
                    message=f"{reason}: {exc}",
                ),
            )
        except ApiError as status_exc:
            return ApiError(f"failed to update status after {reason}: {status_exc}", status_exc.code)
        return KafkaConnectError(f"{reason}: {exc}")

    def _set_progress(self, connector: Connector, reason: str) -> None:
        try:
            self._update_status_condition(
                connector,
                Condition(
                    type=TYPE_RUNNING_CONNECTOR,
                    status=ConditionStatus.FALSE,
                    reason=reason,
                ),
            )
        except ApiError as exc:
            raise ApiError(f"failed to update status: {exc}", exc.code) from exc

    def _initialize_status_conditions(self, connector: Connector) -> Optional[Connector]:
        if connector.status.conditions:
            return connector
        try:
            self._update_status_condition(
                connector,
                Condition(
                    type=TYPE_RUNNING_CONNECTOR,
                    status=ConditionStatus.UNKNOWN,
                    reason="Reconciling",
                ),
            )
        except ApiError as exc:
            raise ApiError(f"failed to initialize condition: {exc}", exc.code) from exc
        _log.info("Resource initial condition updated successfully")
        return None

    def _reconcile_finalizer(self, connector: Connector) -> Optional[Connector]:
        if connector.metadata.deletion_timestamp is not None:
            _log.info("Deleting connector")
            try:
                self._connect_client(connector).delete_connector(connector.metadata.name)
            except KafkaConnectError as exc:
                raise self._failure(connector, exc, "failed to delete connector") from exc

            _log.info("Connector deleted successfully, removing finalizer")
            connector.remove_finalizer(CONNECTOR_FINALIZER)
            try:
                self.client.update(connector)
            except ApiError as exc:
                raise ApiError(f"failed to remove finalizer: {exc}", exc.code) from exc
            return None

        if not connector.has_finalizer(CONNECTOR_FINALIZER):
            _log.info("Adding finalizer")
            connector.add_finalizer(CONNECTOR_FINALIZER)
            try:
                self.client.update(connector)
            except ApiError as exc:
                raise ApiError(f"failed to add finalizer: {exc}", exc.code) from exc
            return None

        return connector

    def _reconcile_connector(self, connector: Connector) -> Optional[Connector]:
        kafka_connect = self._connect_client(connector)
        name = connector.metadata.name

        try:
            existing = kafka_connect.get_connector(name)
        except KafkaConnectError as exc:
            try:
                self._update_status_condition(
                    connector,
                    Condition(
                        type=TYPE_RUNNING_CONNECTOR,
                        status=ConditionStatus.UNKNOWN,
                        reason="Error",
                        message=f"Failed to get connector: {exc}",
                    ),
                )
            except ApiError as status_exc:
                raise ApiError(
                    f"failed to update status after failed to get connector: {status_exc}",
                    status_exc.code,
                ) from status_exc
            raise KafkaConnectError(f"failed to get connector: {exc}") from exc

        desired = dict(connector.spec.config)

        if existing is None:
            _log.info("Creating connector")
            try:
                kafka_connect.create_connector(ConnectorConfig(name=name, config=desired))
            except KafkaConnectError as exc:
                raise self._failure(connector, exc, "failed to create connector") from exc
            self._set_progress(connector, "Starting")
            _log.info("Connector created successfully")
            return None

        # Kafka Connect reports the name among the configs; it is never in the spec.
        actual = dict(existing.config)
        actual.pop("name", None)

        if not connector_configs_equal(actual, desired):
            _log.info("Updating connector")
            try:
                kafka_connect.update_connector_config(name, desired)
            except KafkaConnectError as exc:
                raise self._failure(connector, exc, "failed to update connector config") from exc
            self._set_progress(connector, "Updating")
            _log.info("Connector config updated successfully")
            return None

        return connector

    def _reconcile_connector_status(self, connector: Connector) -> Optional[Connector]:
        try:
            report = self._connect_client(connector).get_connector_status(connector.metadata.name)
        except KafkaConnectError as exc:
            raise self._failure(connector, exc, "failed to get connector status") from exc

        new_condition = map_connector_status_to_condition(report)
        current = find_status_condition(connector.status.conditions, TYPE_RUNNING_CONNECTOR)
        if (
            current is not None
            and current.status == new_condition.status
            and current.reason == new_condition.reason
            and current.message == new_condition.message
        ):
            return connector

        _log.info(
            "Updating condition: status=%s reason=%s",
            new_condition.status.value,
            new_condition.reason,
        )
        try:
            self._update_status_condition(connector, new_condition)
        except ApiError as exc:
            raise ApiError(f"failed to update status condition: {exc}", exc.code) from exc
        return None