"""
Remote script deployment and service installation
"""
import os
import posixpath
import tempfile
from pathlib import Path

from ...core.constants import REMOTE_TMP_DIR
from ...core.exceptions import RemoteExecError
from ...core.interfaces import RemoteChannel, ServiceSupervisor
from ...core.logging import get_logger
from ...core.telemetry import get_telemetry
from ...core.utils import q
from .models import ScriptArtifact

logger = get_logger(__name__)
telemetry = get_telemetry()


class RemoteDeployer:
    """
    Installs the control script and its service unit on the remote host.

    There is no retry and no rollback: a failed transfer or install step
    raises and leaves the remote side as it was at that point.
    """

    def __init__(
        self,
        channel: RemoteChannel,
        supervisor: ServiceSupervisor,
        script_path: str,
        service_name: str,
    ):
        self.channel = channel
        self.supervisor = supervisor
        self.script_path = script_path
        self.service_name = service_name

    def temp_path(self) -> str:
        return f"{REMOTE_TMP_DIR}/{posixpath.basename(self.script_path)}.{os.getpid()}"

    def _transfer(self, artifact: ScriptArtifact, remote_tmp: str) -> None:
        fd, local_tmp = tempfile.mkstemp(prefix="revtunnel-server-", suffix=".sh")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(artifact.content)
            self.channel.copy(Path(local_tmp), remote_tmp)
        finally:
            os.unlink(local_tmp)

    def _install_script(self, remote_tmp: str) -> None:
        target = q(self.script_path)
        result = self.channel.execute(
            f"mkdir -p \"$(dirname {target})\" && "
            f"mv {q(remote_tmp)} {target} && "
            f"chmod +x {target}"
        )
        if not result.ok:
            raise RemoteExecError(
                f"exit {result.exit_code}: {result.stderr.strip()}", step="install script"
            )

    def deploy(self, artifact: ScriptArtifact) -> None:
        """Transfer, install, ensure the unit exists, then restart unconditionally"""
        logger.info("Deploying updated configuration to server...")
        remote_tmp = self.temp_path()
        self._transfer(artifact, remote_tmp)

        logger.info("Installing and starting server configuration...")
        self._install_script(remote_tmp)

        if not self.supervisor.unit_exists(self.service_name):
            self.supervisor.install_unit(self.service_name, self.script_path)
            self.supervisor.enable(self.service_name)

        self.supervisor.restart(self.service_name)
        telemetry.record_event("deploy.completed", {
            "script_path": self.script_path,
            "fingerprint": artifact.fingerprint,
        })
        logger.info("Server configuration deployed and service restarted")

    def ensure_running(self) -> bool:
        """
        Start the service only if it is not active.

        Returns True when the service is (now) running. A failed start is
        reported, not raised.
        """
        if self.supervisor.is_active(self.service_name):
            logger.info("Service is already running")
            telemetry.record_event("deploy.skipped", {"started": False})
            return True

        logger.info("Service is not running, starting it...")
        try:
            self.supervisor.start(self.service_name)
        except RemoteExecError as e:
            logger.warning(f"Could not start service {self.service_name}: {e}")
            telemetry.record_event("deploy.skipped", {"started": False, "error": str(e)})
            return False
        telemetry.record_event("deploy.skipped", {"started": True})
        return True
