"""
Main CLI application
"""
import signal
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from ...core.constants import DEFAULT_INTERFACE
from ...core.exceptions import PreconditionError, RunCancelled, TunnelError
from ...core.logging import setup_logging, get_logger, get_stdout_console, get_stderr_console
from ...core.runner import LocalRunner
from ...core.utils import require_commands
from ...domain.tunnel import (
    LocalTunnelController,
    Role,
    TunnelService,
    TunnelSettings,
    render,
)
from ...domain.tunnel.verify import VerificationResult
from ...infrastructure.wireguard import WireGuardCli
from ..config.loader import ConfigLoader
from .connection import RemoteConnectionFactory
from .output import RichReporter

logger = get_logger(__name__)
stdout_console = get_stdout_console()
stderr_console = get_stderr_console()
reporter = RichReporter()

LOCAL_COMMANDS = ("wg", "wg-quick", "ping")

app = typer.Typer(
    name="revtunnel",
    add_completion=False,
    help="WireGuard reverse tunnel: forward a server's additional IP to this host",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

ConfigOption = typer.Option(None, "--config", "-c", help="Configuration file path (TOML)")
EnvFileOption = typer.Option(None, "--env-file", "-e", help=".env file (default: next to --config, else ./.env)")


@app.callback()
def main(
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        "-l",
        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Log file path",
    ),
):
    """
    revtunnel - provision and supervise a WireGuard reverse tunnel
    
    - up: provision both ends, verify, and keep the tunnel alive
    - status: show local interface and remote deployment state
    - render: print a rendered config or the server control script
    - down: bring the local interface down
    """
    setup_logging(level=log_level, log_file=log_file)


def _load_settings(config_file: Optional[Path], env_file: Optional[Path]) -> TunnelSettings:
    try:
        settings = ConfigLoader().load_settings(toml_path=config_file, env_file=env_file)
    except PreconditionError as e:
        stderr_console.print(f"[red]Config Error:[/red] {e}")
        stderr_console.print("Copy '.env.example' to '.env' and fill values, or set variables in the environment.")
        raise typer.Exit(1)
    logger.debug(f"Settings: {settings.redacted()}")
    return settings


@contextmanager
def cancel_on_signals(service: TunnelService):
    """
    Turn the first SIGINT/SIGTERM into RunCancelled. Later signals, and
    any signal arriving once the lease is being released, only stop the
    supervision loop so teardown is not interrupted.
    """
    cancelled = False

    def handler(signum, frame):
        nonlocal cancelled
        service.stop()
        lease = getattr(service, "lease", None)
        if cancelled or (lease is not None and lease.released):
            # teardown already under way; let it finish
            return
        cancelled = True
        raise RunCancelled(signal.Signals(signum).name)

    previous = {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)


def _print_verification(result: VerificationResult, settings: TunnelSettings) -> None:
    if result.ok:
        reporter.success("Tunnel is online!")
        reporter.info(
            f"Traffic to {settings.additional_ip} will be forwarded to client at {settings.client_tunnel_ip}"
        )
        return
    reporter.error("Tunnel connectivity test failed")
    if result.diagnostics:
        reporter.panel(result.diagnostics, title="Diagnostics", border_style="yellow")
    stdout_console.print("Check server logs:")
    stdout_console.print(
        f"  ssh {settings.ssh_user}@{settings.server_ssh_ip} 'journalctl -u {settings.remote_service} -n 50'"
    )


def _print_summary(settings: TunnelSettings) -> None:
    reporter.summary("Setup Summary", [
        ("Client tunnel IP", settings.client_tunnel_ip),
        ("Server tunnel IP", settings.server_tunnel_ip),
        ("Additional IP", settings.additional_ip),
        ("WireGuard port", str(settings.wg_port)),
    ])


@app.command(name="up")
def tunnel_up(
    config_file: Optional[Path] = ConfigOption,
    env_file: Optional[Path] = EnvFileOption,
    supervise: bool = typer.Option(
        True, "--supervise/--no-supervise",
        help="Keep running and self-heal the interface (--no-supervise: provision, verify, tear down)",
    ),
):
    """
    Provision both ends of the tunnel and keep it alive until Ctrl+C
    
    Examples:
        revtunnel up
        revtunnel up --config tunnel.toml
        revtunnel -l DEBUG up --env-file /etc/revtunnel/.env
    """
    settings = _load_settings(config_file, env_file)

    def on_verified(result: VerificationResult) -> None:
        status = WireGuardCli(LocalRunner()).show_status(settings.wg_interface)
        if status:
            reporter.panel(status.rstrip(), title="Client WireGuard status")
        _print_verification(result, settings)
        _print_summary(settings)

    service = TunnelService(
        settings,
        RemoteConnectionFactory(),
        on_key=lambda role, key: reporter.success(f"{role.capitalize()} public key: [cyan]{key}[/cyan]"),
        on_tunnel_up=lambda iface: reporter.success(f"WireGuard interface [cyan]{iface}[/cyan] is up"),
        on_deployed=lambda artifact: reporter.success(
            f"Server configuration deployed and service restarted ({artifact.fingerprint[:12]})"
        ),
        on_up_to_date=lambda running: (
            reporter.success("Server configuration up-to-date, service running")
            if running else reporter.warning("Could not verify service status")
        ),
        on_verified=on_verified,
        on_supervising=lambda: reporter.info("Client will keep running. Press Ctrl+C to stop."),
    )

    try:
        require_commands(LOCAL_COMMANDS)
        with cancel_on_signals(service):
            service.run(supervise=supervise)
    except RunCancelled as e:
        reporter.info(f"Stopped ({e}); local interface brought down")
        raise typer.Exit(0)
    except TunnelError as e:
        stderr_console.print(f"[red]{type(e).__name__}:[/red] {e}")
        raise typer.Exit(1)
    except Exception as e:
        logger.exception("Tunnel run failed")
        stderr_console.print(f"[red]Error:[/red] Tunnel run failed: {e}")
        raise typer.Exit(1)


@app.command(name="status")
def tunnel_status(
    config_file: Optional[Path] = ConfigOption,
    env_file: Optional[Path] = EnvFileOption,
):
    """
    Show local interface state and remote deployment state
    
    Examples:
        revtunnel status
    """
    settings = _load_settings(config_file, env_file)
    service = TunnelService(settings, RemoteConnectionFactory())
    try:
        report = service.inspect()
    except TunnelError as e:
        stderr_console.print(f"[red]{type(e).__name__}:[/red] {e}")
        raise typer.Exit(1)

    def yes_no(value: Optional[bool]) -> str:
        if value is None:
            return "[dim]unknown[/dim]"
        return "[green]yes[/green]" if value else "[red]no[/red]"

    age = report.tunnel.last_handshake_age
    table = Table(title=f"Tunnel Status: {settings.wg_interface}", show_header=True, header_style="bold cyan")
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    table.add_row("Local interface up", yes_no(report.tunnel.interface_up))
    table.add_row("Last handshake", f"{int(age.total_seconds())}s ago" if age is not None else "[dim]unknown[/dim]")
    table.add_row("Remote script", report.remote.script_fingerprint or "[red]absent[/red]")
    table.add_row("Local script", report.local_fingerprint or "[dim]unknown (keys missing)[/dim]")
    table.add_row("Service installed", yes_no(report.remote.service_installed))
    table.add_row("Service active", yes_no(report.remote.service_active))
    table.add_row("Update needed", yes_no(report.needs_update))
    stdout_console.print(table)


@app.command(name="render")
def tunnel_render(
    role: str = typer.Option("script", "--role", "-r", help="local, remote, or script"),
    config_file: Optional[Path] = ConfigOption,
    env_file: Optional[Path] = EnvFileOption,
    show_secrets: bool = typer.Option(False, "--show-secrets", help="Do not mask the local private key"),
):
    """
    Print a rendered artifact and its fingerprint (keys are created if absent)
    
    Examples:
        revtunnel render
        revtunnel render --role local
    """
    if role not in ("local", "remote", "script"):
        stderr_console.print(f"[red]Error:[/red] Invalid role: {role}, must be local, remote or script")
        raise typer.Exit(1)

    settings = _load_settings(config_file, env_file)
    service = TunnelService(settings, RemoteConnectionFactory())
    try:
        channel = service.connection_factory.create(settings.connection_params())
        try:
            params, client = service.resolve_parameters(channel)
        finally:
            channel.close()
    except TunnelError as e:
        stderr_console.print(f"[red]{type(e).__name__}:[/red] {e}")
        raise typer.Exit(1)

    if role == "script":
        artifact = service.synthesizer.synthesize(params)
        stdout_console.print(artifact.content, markup=False, highlight=False, soft_wrap=True, end="")
        stderr_console.print(f"fingerprint: {artifact.fingerprint}")
    elif role == "remote":
        stdout_console.print(service.synthesizer.render_config(params), markup=False, highlight=False, soft_wrap=True, end="")
    else:
        private_key = client.private_key if show_secrets else "(hidden)"
        config = render(Role.LOCAL, params, private_key)
        stdout_console.print(config.content, markup=False, highlight=False, soft_wrap=True, end="")


@app.command(name="down")
def tunnel_down(
    interface: str = typer.Option(DEFAULT_INTERFACE, "--interface", "-i", help="WireGuard interface name"),
):
    """Bring the local WireGuard interface down (best effort)"""
    LocalTunnelController(WireGuardCli(LocalRunner()), interface=interface).down()
    reporter.success(f"Interface {interface} is down")


def run():
    """CLI entry point"""
    app()


if __name__ == "__main__":
    run()
