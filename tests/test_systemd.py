"""
Tests for systemd unit management
"""
import pytest

from revtunnel.core.exceptions import RemoteExecError
from revtunnel.core.interfaces import CommandResult
from revtunnel.infrastructure.systemd import SystemdSupervisor, render_unit, unit_name, unit_path

from .fakes import FakeRemoteHost


def test_unit_name_normalization():
    assert unit_name("wg-server-tunnel") == "wg-server-tunnel.service"
    assert unit_name("wg-server-tunnel.service") == "wg-server-tunnel.service"
    assert unit_path("wg") == "/etc/systemd/system/wg.service"
    assert unit_name("wg.tunnel") == "wg.tunnel.service"
    assert unit_name("wg-check.timer") == "wg-check.timer"


def test_rendered_unit():
    unit = render_unit("/usr/local/bin/wg-server-tunnel.sh")

    assert "Description=WireGuard Server Reverse Tunnel" in unit
    assert "ExecStart=/usr/local/bin/wg-server-tunnel.sh" in unit
    assert "Restart=always" in unit
    assert "RestartSec=5" in unit
    assert "WantedBy=multi-user.target" in unit


def test_exec_start_with_spaces_is_quoted():
    unit = render_unit("/opt/my scripts/tunnel.sh")

    assert "ExecStart=\"/opt/my scripts/tunnel.sh\"\n" in unit


def test_install_is_guarded_and_reloads():
    host = FakeRemoteHost()
    supervisor = SystemdSupervisor(host)

    assert supervisor.unit_exists("wg-server-tunnel") is False
    supervisor.install_unit("wg-server-tunnel", "/usr/local/bin/wg-server-tunnel.sh")

    command = host.commands[-1]
    assert command.startswith("if [ ! -f /etc/systemd/system/wg-server-tunnel.service ]; then")
    assert "systemctl daemon-reload" in command
    assert supervisor.unit_exists("wg-server-tunnel") is True


def test_lifecycle_commands():
    host = FakeRemoteHost()
    supervisor = SystemdSupervisor(host)

    supervisor.enable("svc")
    supervisor.restart("svc")
    supervisor.start("svc")

    assert host.commands == [
        "systemctl enable svc.service",
        "systemctl restart svc.service",
        "systemctl start svc.service",
    ]
    assert supervisor.is_active("svc") is True
    assert supervisor.is_active("other") is False


def test_failing_step_is_named():
    host = FakeRemoteHost()
    host.fail_on["systemctl restart"] = CommandResult(stdout="", stderr="Unit not found.", exit_code=5)

    with pytest.raises(RemoteExecError) as exc:
        SystemdSupervisor(host).restart("svc")
    assert exc.value.step == "restart service"
    assert "Unit not found." in str(exc.value)


def test_is_active_degrades_on_channel_error():
    host = FakeRemoteHost()
    host.fail_on["is-active"] = RemoteExecError("timed out")
    assert SystemdSupervisor(host).is_active("svc") is False
