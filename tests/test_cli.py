import socket

from click.testing import CliRunner

from witransfer.cli import cli

from helpers import free_port


def test_whoami_shows_descriptor():
    result = CliRunner().invoke(cli, ["whoami", "--name", "Alice"], obj={})

    assert result.exit_code == 0, result.output
    assert "Alice" in result.output
    assert socket.gethostname() in result.output


def test_discover_runs_for_duration():
    port = free_port()

    result = CliRunner().invoke(cli, [
        "discover", "--bind", "127.0.0.1", "--port", str(port),
        "--broadcast", "127.0.0.1", "--interval", "0.1", "--duration", "0.5",
    ], obj={})

    assert result.exit_code == 0, result.output
    assert "Nearby devices" in result.output


def test_discover_bind_failure_exits_nonzero():
    blocker = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    blocker.bind(("127.0.0.1", 0))
    port = blocker.getsockname()[1]
    try:
        result = CliRunner().invoke(cli, [
            "discover", "--bind", "127.0.0.1", "--port", str(port), "--duration", "0.5",
        ], obj={})
    finally:
        blocker.close()

    assert result.exit_code == 1
    assert "Cannot open discovery socket" in result.output


def test_discover_rejects_unknown_color():
    result = CliRunner().invoke(cli, ["discover", "--color", "not-a-color"], obj={})

    assert result.exit_code == 2
