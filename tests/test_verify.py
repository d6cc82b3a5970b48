"""
Tests for connectivity verification
"""
from revtunnel.core.exceptions import RemoteExecError, VerificationFailure
from revtunnel.core.interfaces import CommandResult
from revtunnel.domain.tunnel import ConnectivityVerifier, RenderedConfig, Role
from revtunnel.domain.tunnel.verify import ping_argv

from .fakes import FakeRemoteHost, FakeRunner

CONFIG = RenderedConfig(role=Role.LOCAL, content="[Interface]\n")


def test_ping_argv():
    assert ping_argv("10.10.10.1", 3, 3) == ["ping", "-c", "3", "-W", "3", "10.10.10.1"]


def test_both_directions_ok(controller, telemetry):
    runner = FakeRunner()
    host = FakeRemoteHost()
    controller.up(CONFIG)

    result = ConnectivityVerifier(runner, controller, host).verify("10.10.10.1", "10.10.10.2")

    assert result.ok
    assert result.failure() is None
    assert result.diagnostics is None
    assert runner.pings() == ["10.10.10.1"]
    assert host.count("ping -c 2 -W 2 10.10.10.2") == 1
    directions = [e.metadata["direction"] for e in telemetry.get_events("verify.result")]
    assert directions == ["local", "remote"]


def test_local_failure_carries_status_dump(controller):
    runner = FakeRunner({"ping": CommandResult(stdout="", exit_code=1)})
    controller.up(CONFIG)

    result = ConnectivityVerifier(runner, controller).verify("10.10.10.1")

    assert not result.ok
    assert result.remote_ok is None
    assert "interface: wg0" in result.diagnostics
    failure = result.failure()
    assert isinstance(failure, VerificationFailure)
    assert "client -> server" in str(failure)


def test_remote_failure_is_reported(controller):
    host = FakeRemoteHost()
    host.ping_ok = False

    result = ConnectivityVerifier(FakeRunner(), controller, host).verify("10.10.10.1", "10.10.10.2")

    assert result.local_ok
    assert result.remote_ok is False
    assert "server -> client" in str(result.failure())
    assert result.diagnostics == "interface wg0 is not present"


def test_remote_probe_channel_error_is_not_fatal(controller):
    host = FakeRemoteHost()
    host.fail_on["ping"] = RemoteExecError("channel closed")

    assert ConnectivityVerifier(FakeRunner(), controller, host).probe_remote("10.10.10.2") is False
