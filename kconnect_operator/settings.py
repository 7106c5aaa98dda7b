"""Command-line options of the operator manager and discovery of its namespace."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

SERVICE_ACCOUNT_NAMESPACE_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"
DEFAULT_OPERATOR_NAMESPACE = "kafka-connect-operator"
LEADER_ELECTION_ID = "dad9d45f.b1zzu.net"

_TRUE_WORDS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_WORDS = {"0", "f", "F", "FALSE", "false", "False"}


def _parse_bool(value: str) -> bool:
    if value in _TRUE_WORDS:
        return True
    if value in _FALSE_WORDS:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {value!r}")


@dataclass(frozen=True)
class Options:
    """Settings of the manager process."""

    metrics_bind_address: str = "0"
    health_probe_bind_address: str = ":8081"
    leader_elect: bool = False
    metrics_secure: bool = True
    webhook_cert_path: str = ""
    webhook_cert_name: str = "tls.crt"
    webhook_cert_key: str = "tls.key"
    metrics_cert_path: str = ""
    metrics_cert_name: str = "tls.crt"
    metrics_cert_key: str = "tls.key"
    enable_http2: bool = False

    @property
    def next_protos(self) -> Optional[list[str]]:
        """ALPN protocols for the servers; HTTP/2 stays off unless enabled."""
        if self.enable_http2:
            return None
        return ["http/1.1"]

    @property
    def metrics_enabled(self) -> bool:
        """Whether a metrics endpoint is served at all ("0" turns it off)."""
        return self.metrics_bind_address != "0"

    @property
    def uses_webhook_certs(self) -> bool:
        return bool(self.webhook_cert_path)

    @property
    def uses_metrics_certs(self) -> bool:
        return bool(self.metrics_cert_path)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="manager", allow_abbrev=False)

    def string(flag: str, dest: str, default: str, help_text: str) -> None:
        parser.add_argument(f"-{flag}", f"--{flag}", dest=dest, default=default, help=help_text)

    def boolean(flag: str, dest: str, default: bool, help_text: str) -> None:
        parser.add_argument(
            f"-{flag}",
            f"--{flag}",
            dest=dest,
            default=default,
            nargs="?",
            const=True,
            type=_parse_bool,
            help=help_text,
        )

    string(
        "metrics-bind-address",
        "metrics_bind_address",
        "0",
        "The address the metrics endpoint binds to. Use :8443 for HTTPS or :8080 for HTTP, "
        "or leave as 0 to disable the metrics service.",
    )
    string(
        "health-probe-bind-address",
        "health_probe_bind_address",
        ":8081",
        "The address the probe endpoint binds to.",
    )
    boolean(
        "leader-elect",
        "leader_elect",
        False,
        "Enable leader election for controller manager. "
        "Enabling this will ensure there is only one active controller manager.",
    )
    boolean(
        "metrics-secure",
        "metrics_secure",
        True,
        "If set, the metrics endpoint is served securely via HTTPS. "
        "Use --metrics-secure=false to use HTTP instead.",
    )
    string(
        "webhook-cert-path",
        "webhook_cert_path",
        "",
        "The directory that contains the webhook certificate.",
    )
    string("webhook-cert-name", "webhook_cert_name", "tls.crt", "The name of the webhook certificate file.")
    string("webhook-cert-key", "webhook_cert_key", "tls.key", "The name of the webhook key file.")
    string(
        "metrics-cert-path",
        "metrics_cert_path",
        "",
        "The directory that contains the metrics server certificate.",
    )
    string(
        "metrics-cert-name",
        "metrics_cert_name",
        "tls.crt",
        "The name of the metrics server certificate file.",
    )
    string("metrics-cert-key", "metrics_cert_key", "tls.key", "The name of the metrics server key file.")
    boolean(
        "enable-http2",
        "enable_http2",
        False,
        "If set, HTTP/2 will be enabled for the metrics and webhook servers",
    )
    return parser


def parse_options(argv: Optional[Sequence[str]] = None) -> Options:
    """Parse command-line flags; invalid flags exit with status 2."""
    namespace = _build_parser().parse_args(argv)
    return Options(**vars(namespace))


def get_operator_namespace(path: Union[str, Path] = SERVICE_ACCOUNT_NAMESPACE_FILE) -> str:
    """Namespace the operator runs in, read from the service-account mount.

    When the file does not exist (running outside a cluster) the default
    namespace is returned.
    """
    try:
        content = Path(path).read_text()
    except FileNotFoundError:
        return DEFAULT_OPERATOR_NAMESPACE
    except OSError as exc:
        raise OSError(f"failed to read namespace: {exc}") from exc
    return content.strip()