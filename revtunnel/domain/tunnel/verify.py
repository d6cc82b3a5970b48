"""
Reachability probes across the tunnel
"""
from dataclasses import dataclass
from typing import Optional

from ...core.constants import (
    DEFAULT_PROBE_ATTEMPTS,
    DEFAULT_PROBE_TIMEOUT,
    REMOTE_PROBE_ATTEMPTS,
    REMOTE_PROBE_TIMEOUT,
)
from ...core.exceptions import RemoteExecError, VerificationFailure
from ...core.interfaces import CommandRunner, RemoteChannel
from ...core.logging import get_logger
from ...core.telemetry import get_telemetry
from ...core.utils import q
from .local import LocalTunnelController

logger = get_logger(__name__)
telemetry = get_telemetry()


def ping_argv(target: str, attempts: int, timeout: int) -> list:
    return ["ping", "-c", str(attempts), "-W", str(timeout), target]


@dataclass
class VerificationResult:
    """Outcome of both probe directions"""
    local_ok: bool
    remote_ok: Optional[bool] = None  # None: not probed
    diagnostics: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.local_ok and self.remote_ok is not False

    def failure(self) -> Optional[VerificationFailure]:
        if self.ok:
            return None
        failed = []
        if not self.local_ok:
            failed.append("client -> server")
        if self.remote_ok is False:
            failed.append("server -> client")
        return VerificationFailure(f"Tunnel connectivity test failed ({', '.join(failed)})")


class ConnectivityVerifier:
    """
    Informational probes; a failure is reported with the interface
    status dump and never aborts the run.
    """

    def __init__(
        self,
        runner: CommandRunner,
        controller: LocalTunnelController,
        channel: Optional[RemoteChannel] = None,
    ):
        self.runner = runner
        self.controller = controller
        self.channel = channel

    def probe(
        self,
        target: str,
        attempts: int = DEFAULT_PROBE_ATTEMPTS,
        timeout: int = DEFAULT_PROBE_TIMEOUT,
    ) -> bool:
        """ping target from this host; True if any reply arrives"""
        result = self.runner.run(
            ping_argv(target, attempts, timeout),
            timeout=attempts * (timeout + 1) + 5,
        )
        telemetry.record_event("verify.result", {"direction": "local", "target": target, "ok": result.ok})
        if result.ok:
            return True
        logger.warning(f"Cannot reach {target} through the tunnel")
        return False

    def probe_remote(
        self,
        target: str,
        attempts: int = REMOTE_PROBE_ATTEMPTS,
        timeout: int = REMOTE_PROBE_TIMEOUT,
    ) -> bool:
        """Ask the remote host to ping target (the client end)"""
        if self.channel is None:
            return False
        try:
            result = self.channel.execute(
                " ".join(q(arg) for arg in ping_argv(target, attempts, timeout)),
                timeout=attempts * (timeout + 1) + 10,
            )
            ok = result.ok
        except RemoteExecError as e:
            logger.warning(f"Remote probe could not run: {e}")
            ok = False
        telemetry.record_event("verify.result", {"direction": "remote", "target": target, "ok": ok})
        return ok

    def diagnostics(self) -> str:
        return self.controller.status_text() or f"interface {self.controller.interface} is not present"

    def verify(
        self,
        server_address: str,
        client_address: Optional[str] = None,
        attempts: int = DEFAULT_PROBE_ATTEMPTS,
        timeout: int = DEFAULT_PROBE_TIMEOUT,
    ) -> VerificationResult:
        """Probe server from client, then (optionally) client from server"""
        local_ok = self.probe(server_address, attempts, timeout)
        remote_ok = None
        if client_address is not None and self.channel is not None:
            remote_ok = self.probe_remote(client_address)

        result = VerificationResult(local_ok=local_ok, remote_ok=remote_ok)
        if not result.ok:
            result.diagnostics = self.diagnostics()
        return result
