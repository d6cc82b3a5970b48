"""
Tunnel domain service - provisioning and reconciliation pipeline
"""
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ...core.constants import HANDSHAKE_WAIT_SECONDS, WIREGUARD_DIR
from ...core.interfaces import (
    CommandRunner,
    ConnectionFactory,
    RemoteChannel,
    ServiceSupervisor,
    TunnelCli,
)
from ...core.logging import get_logger
from ...core.runner import LocalRunner
from ...core.telemetry import get_telemetry
from ...infrastructure.systemd import SystemdSupervisor
from ...infrastructure.wireguard import WireGuardCli
from .deploy import RemoteDeployer
from .drift import DriftReconciler, needs_update
from .keys import KeyMaterialManager
from .local import LocalTunnelController, TunnelLease
from .models import (
    ProvisioningParameters,
    RemoteDeploymentState,
    RenderedConfig,
    Role,
    ScriptArtifact,
    TunnelState,
)
from .render import render
from .script import RemoteScriptSynthesizer
from .settings import TunnelSettings
from .supervise import SupervisionLoop
from .verify import ConnectivityVerifier, VerificationResult

logger = get_logger(__name__)
telemetry = get_telemetry()


@dataclass
class RunReport:
    """What one pass of the pipeline did"""
    params: ProvisioningParameters
    local_config: RenderedConfig
    artifact: ScriptArtifact
    deployed: bool
    verification: Optional[VerificationResult] = None


@dataclass
class StatusReport:
    """Observed state of both ends"""
    tunnel: TunnelState
    remote: RemoteDeploymentState
    local_fingerprint: Optional[str]
    needs_update: Optional[bool]


class TunnelService:
    """
    Tunnel service - pure business logic.

    Runs the pipeline strictly in order: remote key, local key, local
    config + interface up, script synthesis, drift check, deploy or
    ensure-running, settle, verify, supervise. The local interface is
    held through a TunnelLease for the whole run, so every exit path
    (success, provisioning error, cancellation) tears it down once.
    No CLI, Typer or console dependency.
    """

    def __init__(
        self,
        settings: TunnelSettings,
        connection_factory: ConnectionFactory,
        runner: Optional[CommandRunner] = None,
        wg: Optional[TunnelCli] = None,
        controller: Optional[LocalTunnelController] = None,
        supervisor_factory: Callable[[RemoteChannel], ServiceSupervisor] = SystemdSupervisor,
        synthesizer: Optional[RemoteScriptSynthesizer] = None,
        stop_event: Optional[threading.Event] = None,
        sleep: Callable[[float], None] = time.sleep,
        on_key: Optional[Callable[[str, str], None]] = None,
        on_tunnel_up: Optional[Callable[[str], None]] = None,
        on_deployed: Optional[Callable[[ScriptArtifact], None]] = None,
        on_up_to_date: Optional[Callable[[bool], None]] = None,
        on_verified: Optional[Callable[[VerificationResult], None]] = None,
        on_supervising: Optional[Callable[[], None]] = None,
    ):
        """
        Args:
            settings: Validated run settings
            connection_factory: Creates the remote channel (lazy connect)
            runner: Local command runner
            wg: Tunnel CLI (defaults to wg / wg-quick through runner)
            controller: Local interface controller
            supervisor_factory: Builds the service supervisor for a channel
            synthesizer: Remote script synthesizer
            stop_event: Set to end the supervision loop
            sleep: Delay function (settle / handshake waits)
            on_key: Callback (role, public_key) once a key is known
            on_tunnel_up: Callback (interface) after local bring-up
            on_deployed: Callback (artifact) after a deploy
            on_up_to_date: Callback (service_running) when no deploy was needed
            on_verified: Callback (result) after the probes
            on_supervising: Callback when the supervision loop starts
        """
        self.settings = settings
        self.connection_factory = connection_factory
        self.runner = runner or LocalRunner()
        self.wg = wg or WireGuardCli(self.runner)
        self.controller = controller or LocalTunnelController(
            self.wg, interface=settings.wg_interface, config_dir=Path(WIREGUARD_DIR)
        )
        self.supervisor_factory = supervisor_factory
        self.synthesizer = synthesizer or RemoteScriptSynthesizer(settings.check_interval)
        self.keys = KeyMaterialManager(self.wg)
        self.stop_event = stop_event or threading.Event()
        self.sleep = sleep
        self.on_key = on_key
        self.on_tunnel_up = on_tunnel_up
        self.on_deployed = on_deployed
        self.on_up_to_date = on_up_to_date
        self.on_verified = on_verified
        self.on_supervising = on_supervising
        self.loop: Optional[SupervisionLoop] = None
        self.lease: Optional[TunnelLease] = None

    # --------------------
    # Phases
    # --------------------
    def resolve_parameters(self, channel: RemoteChannel):
        """Keys (remote first, then local) -> ProvisioningParameters"""
        s = self.settings
        logger.info("Getting server WireGuard public key...")
        server_pub = self.keys.ensure_key_pair(s.server_wg_keyfile, s.server_wg_pubfile, channel)
        if self.on_key:
            self.on_key("server", server_pub)

        client = self.keys.ensure_local(Path(s.client_wg_keyfile), Path(s.client_wg_pubfile))
        if self.on_key:
            self.on_key("client", client.public_key)

        return s.parameters(server_pub, client.public_key), client

    def reconcile_remote(self, channel: RemoteChannel, artifact: ScriptArtifact) -> bool:
        """Drift check, then deploy or ensure-running. Returns True if deployed."""
        s = self.settings
        supervisor = self.supervisor_factory(channel)
        reconciler = DriftReconciler(channel, supervisor)
        deployer = RemoteDeployer(channel, supervisor, s.remote_script, s.remote_service)

        update, _ = reconciler.evaluate(artifact, s.remote_script, s.remote_service)
        if update:
            deployer.deploy(artifact)
            if self.on_deployed:
                self.on_deployed(artifact)
            return True

        logger.info("Ensuring service is running...")
        running = deployer.ensure_running()
        if self.on_up_to_date:
            self.on_up_to_date(running)
        return False

    def provision(self, lease: TunnelLease, channel: RemoteChannel) -> RunReport:
        """Sections that abort the run on failure"""
        params, client = self.resolve_parameters(channel)

        local_config = render(Role.LOCAL, params, client.private_key)
        lease.up(local_config)
        if self.on_tunnel_up:
            self.on_tunnel_up(params.interface)
        logger.info("Waiting for WireGuard handshake...")
        self.sleep(HANDSHAKE_WAIT_SECONDS)

        logger.info("Generating server configuration...")
        artifact = self.synthesizer.synthesize(params)
        deployed = self.reconcile_remote(channel, artifact)
        return RunReport(params=params, local_config=local_config, artifact=artifact, deployed=deployed)

    def verify(self, channel: RemoteChannel, report: RunReport) -> VerificationResult:
        """Never raises on probe failure; the result carries diagnostics"""
        s = self.settings
        if s.settle_seconds > 0:
            logger.info(f"Waiting {s.settle_seconds} seconds for tunnel to stabilize...")
            self.sleep(s.settle_seconds)

        verifier = ConnectivityVerifier(self.runner, self.controller, channel)
        result = verifier.verify(
            report.params.server_tunnel_address,
            report.params.client_tunnel_address,
            attempts=s.probe_attempts,
            timeout=s.probe_timeout,
        )
        failure = result.failure()
        if failure is not None:
            logger.warning(str(failure))
            logger.info(f"Diagnostics:\n{result.diagnostics}")
        report.verification = result
        if self.on_verified:
            self.on_verified(result)
        return result

    def supervise(self, local_config: RenderedConfig) -> None:
        self.loop = SupervisionLoop(
            self.controller,
            local_config,
            period=self.settings.check_interval,
            stop_event=self.stop_event,
        )
        if self.on_supervising:
            self.on_supervising()
        self.loop.run()

    # --------------------
    # Entry point
    # --------------------
    def run(self, supervise: bool = True) -> RunReport:
        """
        Execute the full pipeline.

        Raises:
            TunnelError: provisioning failure (after local teardown)
            RunCancelled: external cancellation (after local teardown)
        """
        with self.controller.session() as lease:
            self.lease = lease
            channel = self.connection_factory.create(self.settings.connection_params())
            try:
                report = self.provision(lease, channel)
                self.verify(channel, report)
            finally:
                # the remote side runs on its own from here
                channel.close()

            if supervise:
                self.supervise(report.local_config)
            return report

    def stop(self) -> None:
        self.stop_event.set()

    def inspect(self) -> StatusReport:
        """
        Read-only view of both sides: no key generation, no deploy.

        Raises:
            RemoteExecError: if the remote host cannot be queried
        """
        s = self.settings
        tunnel = self.controller.state()
        channel = self.connection_factory.create(s.connection_params())
        try:
            supervisor = self.supervisor_factory(channel)
            reconciler = DriftReconciler(channel, supervisor)
            remote = reconciler.query_remote_state(
                s.remote_script, s.remote_service, include_active=True
            )
            server_pub = self.keys.read_remote_public(channel, s.server_wg_pubfile)
        finally:
            channel.close()

        client = self.keys.read_local(Path(s.client_wg_keyfile), Path(s.client_wg_pubfile))
        artifact = None
        if server_pub and client:
            artifact = self.synthesizer.synthesize(s.parameters(server_pub, client.public_key))
        return StatusReport(
            tunnel=tunnel,
            remote=remote,
            local_fingerprint=artifact.fingerprint if artifact else None,
            needs_update=needs_update(artifact, remote) if artifact else None,
        )
