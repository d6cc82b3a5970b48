"""
Drift detection between the synthesized script and the remote deployment
"""
from typing import Tuple

from ...core.constants import FINGERPRINT_ABSENT
from ...core.exceptions import RemoteExecError
from ...core.interfaces import RemoteChannel, ServiceSupervisor
from ...core.logging import get_logger
from ...core.telemetry import get_telemetry
from ...core.utils import first_token, q
from .models import RemoteDeploymentState, ScriptArtifact

logger = get_logger(__name__)
telemetry = get_telemetry()


def needs_update(artifact: ScriptArtifact, remote: RemoteDeploymentState) -> bool:
    """
    Redeploy unless the remote script matches and the unit is installed.

    | remote fingerprint | unit installed | update |
    | absent / different | any            | yes    |
    | equal              | no             | yes    |
    | equal              | yes            | no     |
    """
    if remote.script_fingerprint is None:
        return True
    if remote.script_fingerprint != artifact.fingerprint:
        return True
    return not remote.service_installed


class DriftReconciler:
    """
    Queries the remote deployment state and decides whether to redeploy.

    Only the deployed script's fingerprint and the unit's existence are
    compared; live NAT rules or interface state changed by hand on the
    server are not inspected.
    """

    def __init__(self, channel: RemoteChannel, supervisor: ServiceSupervisor):
        self.channel = channel
        self.supervisor = supervisor

    def remote_fingerprint(self, script_path: str):
        """SHA256 of the deployed script, or None if it is absent"""
        path = q(script_path)
        result = self.channel.execute(
            f"if [ -f {path} ]; then sha256sum {path} | awk '{{print $1}}'; "
            f"else echo {FINGERPRINT_ABSENT}; fi"
        )
        if not result.ok:
            raise RemoteExecError(
                f"exit {result.exit_code}: {result.stderr.strip()}",
                step="read deployed script fingerprint",
            )
        value = first_token(result.stdout)
        if not value or value == FINGERPRINT_ABSENT:
            return None
        return value

    def query_remote_state(
        self, script_path: str, service_name: str, include_active: bool = False
    ) -> RemoteDeploymentState:
        return RemoteDeploymentState(
            script_fingerprint=self.remote_fingerprint(script_path),
            service_installed=self.supervisor.unit_exists(service_name),
            service_active=self.supervisor.is_active(service_name) if include_active else None,
        )

    def needs_update(self, artifact: ScriptArtifact, remote: RemoteDeploymentState) -> bool:
        return needs_update(artifact, remote)

    def evaluate(
        self, artifact: ScriptArtifact, script_path: str, service_name: str
    ) -> Tuple[bool, RemoteDeploymentState]:
        """Query remote state and decide; logs the reason"""
        logger.info("Checking if server configuration needs updating...")
        remote = self.query_remote_state(script_path, service_name)
        update = needs_update(artifact, remote)

        if remote.script_fingerprint is None:
            logger.info("Server script is not deployed yet")
        elif remote.script_fingerprint != artifact.fingerprint:
            logger.info("Server configuration changed (checksum mismatch)")
        else:
            logger.info("Server configuration up-to-date")
        if not remote.service_installed:
            logger.info("Service file does not exist, will create it")

        telemetry.record_event("drift.evaluated", {
            "needs_update": update,
            "remote_fingerprint": remote.script_fingerprint,
            "local_fingerprint": artifact.fingerprint,
            "service_installed": remote.service_installed,
        })
        return update, remote
