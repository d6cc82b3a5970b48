"""
systemd unit management over the remote channel
"""
from ..core.constants import SYSTEMD_UNIT_DIR, UNIT_DESCRIPTION, UNIT_RESTART_SEC, UNIT_SUFFIXES
from ..core.exceptions import RemoteExecError
from ..core.interfaces import RemoteChannel, ServiceSupervisor
from ..core.logging import get_logger
from ..core.utils import first_token, q

logger = get_logger(__name__)


def unit_name(name: str) -> str:
    """Normalize to a full unit name ("foo" -> "foo.service")"""
    return name if name.endswith(UNIT_SUFFIXES) else f"{name}.service"


def unit_path(name: str) -> str:
    return f"{SYSTEMD_UNIT_DIR}/{unit_name(name)}"


def exec_path(path: str) -> str:
    """Double-quote an ExecStart path only when systemd would split it"""
    if not any(c.isspace() or c in "\"\\" for c in path):
        return path
    escaped = path.replace("\\", "\\\\").replace("\"", "\\\"")
    return f"\"{escaped}\""


def render_unit(exec_start_path: str, description: str = UNIT_DESCRIPTION) -> str:
    return (
        "[Unit]\n"
        f"Description={description}\n"
        "After=network.target\n"
        "\n"
        "[Service]\n"
        "Type=simple\n"
        f"ExecStart={exec_path(exec_start_path)}\n"
        "Restart=always\n"
        f"RestartSec={UNIT_RESTART_SEC}\n"
        "\n"
        "[Install]\n"
        "WantedBy=multi-user.target\n"
    )


class SystemdSupervisor(ServiceSupervisor):
    """
    ServiceSupervisor for systemd hosts.

    Every mutating call raises RemoteExecError (naming the step) on a
    non-zero exit; is_active degrades to False instead.
    """

    def __init__(self, channel: RemoteChannel, description: str = UNIT_DESCRIPTION):
        self.channel = channel
        self.description = description

    def _run(self, command: str, step: str) -> str:
        result = self.channel.execute(command)
        if not result.ok:
            raise RemoteExecError(
                f"exit {result.exit_code}: {result.stderr.strip() or result.stdout.strip()}",
                step=step,
            )
        return result.stdout

    def unit_exists(self, name: str) -> bool:
        out = self._run(
            f"[ -f {q(unit_path(name))} ] && echo yes || echo no",
            step="check service unit",
        )
        return first_token(out) == "yes"

    def install_unit(self, name: str, exec_start_path: str) -> None:
        path = q(unit_path(name))
        unit = render_unit(exec_start_path, self.description)
        command = (
            f"if [ ! -f {path} ]; then\n"
            f"    printf '%s' {q(unit)} > {path}\n"
            f"    systemctl daemon-reload\n"
            f"fi\n"
        )
        self._run(command, step="install service unit")
        logger.info(f"Installed service unit {unit_name(name)}")

    def enable(self, name: str) -> None:
        self._run(f"systemctl enable {q(unit_name(name))}", step="enable service")

    def restart(self, name: str) -> None:
        self._run(f"systemctl restart {q(unit_name(name))}", step="restart service")

    def start(self, name: str) -> None:
        self._run(f"systemctl start {q(unit_name(name))}", step="start service")

    def is_active(self, name: str) -> bool:
        try:
            result = self.channel.execute(f"systemctl is-active --quiet {q(unit_name(name))}")
        except RemoteExecError as e:
            logger.warning(f"Could not verify service status: {e}")
            return False
        return result.ok
