"""HTTP client for the Kafka Connect REST API."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional

import requests

DEFAULT_TIMEOUT = 30.0


class KafkaConnectError(Exception):
    """A request to Kafka Connect failed or returned an unexpected response."""


@dataclass
class ConnectorConfig:
    """A connector as Kafka Connect knows it: its name and configuration."""

    name: str
    config: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "config": dict(self.config)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConnectorConfig":
        return cls(name=data.get("name", ""), config=dict(data.get("config") or {}))


@dataclass
class ConnectorStatusConnector:
    """State of the connector instance itself."""

    state: str = ""
    worker_id: str = ""
    trace: str = ""


@dataclass
class ConnectorStatusTask:
    """State of one task of a connector."""

    id: int = 0
    state: str = ""
    worker_id: str = ""


@dataclass
class ConnectorStatusReport:
    """The status of a connector and its tasks."""

    name: str = ""
    connector: ConnectorStatusConnector = field(default_factory=ConnectorStatusConnector)
    tasks: list[ConnectorStatusTask] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConnectorStatusReport":
        connector = data.get("connector") or {}
        return cls(
            name=data.get("name", ""),
            connector=ConnectorStatusConnector(
                state=connector.get("state", ""),
                worker_id=connector.get("worker_id", ""),
                trace=connector.get("trace", ""),
            ),
            tasks=[
                ConnectorStatusTask(
                    id=int(task.get("id", 0)),
                    state=task.get("state", ""),
                    worker_id=task.get("worker_id", ""),
                )
                for task in data.get("tasks") or []
            ],
        )


def _status_line(response: requests.Response) -> str:
    return f"{response.status_code} {response.reason or ''}".rstrip()


def _decode_object(response: requests.Response, what: str) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError as exc:
        raise KafkaConnectError(f"failed to decode {what} response: {exc}") from exc
    if not isinstance(data, dict):
        raise KafkaConnectError(f"failed to decode {what} response: expected a JSON object")
    return data


class Client:
    """Talks to one Kafka Connect cluster.

    ``endpoint`` is the URL prefix of every request, for example
    ``http://localhost:8083``.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self._session = session or requests.Session()

    def _send(
        self,
        method: str,
        path: str,
        action: str,
        body: Any = None,
    ) -> requests.Response:
        url = f"{self.endpoint}{path}"
        kwargs: dict[str, Any] = {"timeout": self.timeout}
        if body is not None:
            try:
                kwargs["data"] = json.dumps(body) + "\n"
            except (TypeError, ValueError) as exc:
                raise KafkaConnectError(f"failed to encode {action}: {exc}") from exc
            kwargs["headers"] = {"Content-Type": "application/json"}
        try:
            return self._session.request(method, url, **kwargs)
        except requests.RequestException as exc:
            raise KafkaConnectError(f"failed to {action}: {exc}") from exc

    def get_connector(self, name: str) -> Optional[ConnectorConfig]:
        """Return the connector, or None when it does not exist."""
        response = self._send("GET", f"/connectors/{name}", "get connector")
        with response:
            if response.status_code == 404:
                return None
            if response.status_code != 200:
                raise KafkaConnectError(
                    f"failed to get connector with status: {_status_line(response)}"
                )
            return ConnectorConfig.from_dict(_decode_object(response, "connector"))

    def create_connector(self, connector: ConnectorConfig) -> None:
        """Create a new connector."""
        response = self._send("POST", "/connectors", "create connector", connector.to_dict())
        with response:
            if response.status_code not in (200, 201):
                raise KafkaConnectError(
                    f"failed to create connector with status: {_status_line(response)}; "
                    f"body: {response.text}"
                )

    def get_connector_status(self, name: str) -> ConnectorStatusReport:
        """Return the status of the connector and its tasks."""
        response = self._send("GET", f"/connectors/{name}/status", "get connector status")
        with response:
            if response.status_code != 200:
                raise KafkaConnectError(
                    f"failed to get connector status with status: {_status_line(response)}"
                )
            return ConnectorStatusReport.from_dict(_decode_object(response, "connector status"))

    def update_connector_config(self, name: str, config: dict[str, str]) -> None:
        """Replace the configuration of a connector."""
        response = self._send(
            "PUT", f"/connectors/{name}/config", "update connector config", dict(config)
        )
        with response:
            if response.status_code not in (200, 201):
                raise KafkaConnectError(
                    f"failed to update connector config with status: {_status_line(response)}; "
                    f"body: {response.text}"
                )

    def delete_connector(self, name: str) -> None:
        """Delete a connector; a connector that is already gone is not an error."""
        response = self._send("DELETE", f"/connectors/{name}", "delete connector")
        with response:
            if response.status_code in (204, 404):
                return
            raise KafkaConnectError(
                f"failed to delete connector with status: {_status_line(response)}; "
                f"body: {response.text}"
            )