"""
End-to-end pipeline tests against in-memory hosts
"""
from dataclasses import replace

import pytest

from revtunnel.core.exceptions import (
    KeyRetrievalError,
    RemoteExecError,
    RunCancelled,
    TransferError,
)
from revtunnel.core.interfaces import CommandResult
from revtunnel.domain.tunnel import TunnelService

from .fakes import CLIENT_PUB, SERVER_PUB, FakeRunner

SCRIPT = "/usr/local/bin/wg-server-tunnel.sh"
UNIT = "/etc/systemd/system/wg-server-tunnel.service"


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_service(settings, connection_factory, runner, wg, controller, sleeps):
    def factory(**kwargs):
        kwargs.setdefault("sleep", sleeps.append)
        return TunnelService(
            settings,
            connection_factory,
            runner=runner,
            wg=wg,
            controller=controller,
            **kwargs,
        )
    return factory


def downs(telemetry):
    return len(telemetry.get_events("tunnel.down"))


# ============================================================
# Scenarios
# ============================================================

def test_first_run_deploys_once_then_probes(make_service, remote_host, runner, telemetry, sleeps):
    report = make_service().run(supervise=False)

    assert report.deployed is True
    assert len(telemetry.get_events("deploy.completed")) == 1
    assert remote_host.files[SCRIPT] == report.artifact.content
    assert remote_host.units[UNIT] is True
    assert remote_host.active["wg-server-tunnel.service"] is True

    assert runner.pings() == ["10.10.10.1"]
    names = telemetry.names()
    assert names.index("deploy.completed") < names.index("verify.result")
    assert report.verification.ok
    assert sleeps == [3, 15]


def test_second_run_only_ensures_running(make_service, remote_host, telemetry):
    make_service().run(supervise=False)
    copies = list(remote_host.copies)
    telemetry.clear()
    remote_host.commands.clear()

    report = make_service().run(supervise=False)

    assert report.deployed is False
    assert remote_host.copies == copies
    assert telemetry.get_events("deploy.completed") == []
    assert len(telemetry.get_events("deploy.skipped")) == 1
    assert remote_host.count("systemctl is-active") == 1
    assert remote_host.count("systemctl start") == 0
    assert remote_host.count("systemctl restart") == 0


def test_second_run_starts_stopped_service(make_service, remote_host):
    make_service().run(supervise=False)
    remote_host.active.clear()

    make_service().run(supervise=False)

    assert remote_host.count("systemctl start wg-server-tunnel.service") == 1


def test_changed_parameter_redeploys(make_service, settings, connection_factory, runner, wg, controller, remote_host):
    first = make_service().run(supervise=False)

    changed = TunnelService(
        replace(settings, additional_ip="203.0.113.6"),
        connection_factory, runner=runner, wg=wg, controller=controller, sleep=lambda s: None,
    )
    second = changed.run(supervise=False)

    assert second.deployed is True
    assert second.artifact.fingerprint != first.artifact.fingerprint
    assert remote_host.files[SCRIPT] == second.artifact.content


def test_callbacks_report_each_phase(make_service):
    seen = []
    service = make_service(
        on_key=lambda role, key: seen.append((role, key)),
        on_tunnel_up=lambda iface: seen.append(("up", iface)),
        on_deployed=lambda artifact: seen.append("deployed"),
        on_verified=lambda result: seen.append(("verified", result.ok)),
    )
    service.run(supervise=False)

    assert seen == [("server", SERVER_PUB), ("client", CLIENT_PUB), ("up", "wg0"), "deployed", ("verified", True)]


def test_channel_closed_after_provisioning(make_service, remote_host):
    make_service().run(supervise=False)
    assert remote_host.closed == 1


def test_verification_failure_does_not_abort(make_service):
    runner = FakeRunner({"ping": CommandResult(stdout="", exit_code=1)})
    service = make_service()
    service.runner = runner

    report = service.run(supervise=False)

    assert report.verification.ok is False
    assert report.verification.diagnostics


def test_supervision_runs_until_stopped(make_service, telemetry):
    service = make_service()
    service.on_supervising = service.stop

    service.run(supervise=True)

    assert service.loop is not None
    assert downs(telemetry) == 1


# ============================================================
# Failures and cancellation
# ============================================================

def test_key_failure_aborts_before_interface_up(make_service, remote_host, wg, telemetry):
    remote_host.fail_on["revtunnel:generated"] = CommandResult(stdout="", stderr="denied", exit_code=1)

    with pytest.raises(KeyRetrievalError):
        make_service().run(supervise=False)

    assert not any(call[0] == "up" for call in wg.calls)
    assert downs(telemetry) == 1
    assert remote_host.closed == 1


def test_deploy_failure_tears_down_once(make_service, remote_host, controller, telemetry):
    remote_host.fail_on["copy "] = TransferError("broken pipe", step="transfer")

    with pytest.raises(TransferError):
        make_service().run(supervise=False)

    assert downs(telemetry) == 1
    assert not controller.is_up()


def test_install_failure_names_step(make_service, remote_host):
    remote_host.fail_on[" mv "] = CommandResult(stdout="", stderr="no space left", exit_code=1)

    with pytest.raises(RemoteExecError, match="install script"):
        make_service().run(supervise=False)


def _cancel(*args, **kwargs):
    raise RunCancelled("SIGTERM")


def _cancel_on_call(n):
    calls = []

    def sleep(seconds):
        calls.append(seconds)
        if len(calls) == n:
            raise RunCancelled("SIGINT")
    return sleep


@pytest.mark.parametrize("phase", [
    "remote_key",
    "local_key",
    "handshake_wait",
    "drift_check",
    "deploy",
    "settle",
    "verify",
    "supervise",
])
def test_cancellation_at_any_phase_tears_down_once(phase, make_service, remote_host, runner, controller, telemetry, monkeypatch):
    kwargs = {}
    if phase == "remote_key":
        remote_host.fail_on["revtunnel:generated"] = RunCancelled("SIGINT")
    elif phase == "local_key":
        monkeypatch.setattr("revtunnel.domain.tunnel.keys.KeyMaterialManager.ensure_local", _cancel)
    elif phase == "handshake_wait":
        kwargs["sleep"] = _cancel_on_call(1)
    elif phase == "drift_check":
        remote_host.fail_on["sha256sum"] = RunCancelled("SIGINT")
    elif phase == "deploy":
        remote_host.fail_on["copy "] = RunCancelled("SIGINT")
    elif phase == "settle":
        kwargs["sleep"] = _cancel_on_call(2)
    elif phase == "verify":
        monkeypatch.setattr(runner, "run", _cancel)
    elif phase == "supervise":
        kwargs["on_supervising"] = _cancel

    service = make_service(**kwargs)
    with pytest.raises(RunCancelled):
        service.run(supervise=True)

    assert downs(telemetry) == 1
    assert not controller.is_up()


# ============================================================
# Status
# ============================================================

def test_inspect_before_first_run(make_service, remote_host, wg):
    report = make_service().inspect()

    assert report.tunnel.interface_up is False
    assert report.remote.script_fingerprint is None
    assert report.remote.service_installed is False
    assert report.local_fingerprint is None
    assert report.needs_update is None
    assert remote_host.server_key is None
    assert wg.genkey_calls == 0


def test_inspect_after_run_is_converged(make_service, controller):
    run = make_service().run(supervise=False)
    # the run tore the interface down on exit
    controller.up(run.local_config)

    report = make_service().inspect()

    assert report.tunnel.interface_up is True
    assert report.remote.service_installed is True
    assert report.remote.service_active is True
    assert report.local_fingerprint == report.remote.script_fingerprint == run.artifact.fingerprint
    assert report.needs_update is False
