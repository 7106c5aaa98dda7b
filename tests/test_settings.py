import pytest

from kconnect_operator.settings import (
    DEFAULT_OPERATOR_NAMESPACE,
    Options,
    get_operator_namespace,
    parse_options,
)


def test_defaults_match_flag_defaults():
    options = parse_options([])
    assert options == Options()
    assert options.metrics_bind_address == "0"
    assert options.health_probe_bind_address == ":8081"
    assert options.webhook_cert_name == "tls.crt"
    assert options.metrics_cert_key == "tls.key"
    assert options.metrics_secure is True
    assert options.leader_elect is False
    assert options.enable_http2 is False


def test_string_flags_are_taken():
    options = parse_options(
        [
            "--metrics-bind-address=:8443",
            "--health-probe-bind-address",
            ":9090",
            "--webhook-cert-path=/certs",
            "-metrics-cert-path",
            "/metrics-certs",
        ]
    )
    assert options.metrics_bind_address == ":8443"
    assert options.health_probe_bind_address == ":9090"
    assert options.webhook_cert_path == "/certs"
    assert options.metrics_cert_path == "/metrics-certs"
    assert options.uses_webhook_certs
    assert options.uses_metrics_certs


def test_bare_bool_flag_sets_true():
    options = parse_options(["--leader-elect", "--enable-http2"])
    assert options.leader_elect is True
    assert options.enable_http2 is True


@pytest.mark.parametrize("word", ["false", "0", "f", "F", "FALSE", "False"])
def test_bool_flag_false_words(word):
    assert parse_options([f"--metrics-secure={word}"]).metrics_secure is False


@pytest.mark.parametrize("word", ["true", "1", "t", "T", "TRUE", "True"])
def test_bool_flag_true_words(word):
    assert parse_options([f"--leader-elect={word}"]).leader_elect is True


def test_invalid_bool_exits():
    with pytest.raises(SystemExit) as info:
        parse_options(["--metrics-secure=maybe"])
    assert info.value.code == 2


def test_unknown_flag_exits():
    with pytest.raises(SystemExit) as info:
        parse_options(["--no-such-flag"])
    assert info.value.code == 2


def test_http2_disabled_by_default():
    assert parse_options([]).next_protos == ["http/1.1"]
    assert parse_options(["--enable-http2"]).next_protos is None


def test_metrics_disabled_by_zero_address():
    assert parse_options([]).metrics_enabled is False
    assert parse_options(["--metrics-bind-address=:8080"]).metrics_enabled is True


def test_namespace_read_and_trimmed(tmp_path):
    path = tmp_path / "namespace"
    path.write_text("  operators\n")
    assert get_operator_namespace(path) == "operators"


def test_namespace_missing_file_falls_back(tmp_path):
    assert get_operator_namespace(tmp_path / "missing") == DEFAULT_OPERATOR_NAMESPACE
    assert DEFAULT_OPERATOR_NAMESPACE == "kafka-connect-operator"


def test_namespace_unreadable_raises(tmp_path):
    with pytest.raises(OSError, match="failed to read namespace"):
        get_operator_namespace(tmp_path)