import socket

from typer.testing import CliRunner

from mcpbridge.cli.commands import app
from mcpbridge.cli.shared.network_utils import is_port_in_use

runner = CliRunner()


def _clear_env(monkeypatch):
    for name in ("PROJECT_REF", "SUPABASE_ACCESS_TOKEN", "PORT", "HOST"):
        monkeypatch.delenv(name, raising=False)


def test_check_fails_without_required_env(monkeypatch):
    _clear_env(monkeypatch)
    result = runner.invoke(app, ["check"])
    assert result.exit_code == 1


def test_check_prints_configuration(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("PROJECT_REF", "abcd1234")
    monkeypatch.setenv("SUPABASE_ACCESS_TOKEN", "sbp_secret_value")
    result = runner.invoke(app, ["check"])
    assert result.exit_code == 0
    assert "abcd1234" in result.stdout
    assert "sbp_secret_value" not in result.stdout


def test_serve_fails_without_required_env(monkeypatch):
    _clear_env(monkeypatch)
    result = runner.invoke(app, ["serve"])
    assert result.exit_code == 1


def test_status_reports_unreachable_bridge():
    result = runner.invoke(app, ["status", "--url", "http://127.0.0.1:1"])
    assert result.exit_code == 1


def test_is_port_in_use_detects_listener():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        sock.listen(1)
        port = sock.getsockname()[1]
        assert is_port_in_use("127.0.0.1", port) is True
