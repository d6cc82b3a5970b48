"""
Core infrastructure layer
"""
from .client import RemoteClient, ClientConfig
from .constants import *
from .exceptions import *
from .logging import setup_logging, get_logger, get_stdout_console, get_stderr_console
from .interfaces import (
    CommandResult,
    CommandRunner,
    ConnectionFactory,
    RemoteChannel,
    ServiceSupervisor,
    TunnelCli,
)
from .runner import LocalRunner
from .telemetry import Telemetry, get_telemetry
from .utils import load_ssh_config, fingerprint, require_commands

__all__ = [
    "RemoteClient",
    "ClientConfig",
    "setup_logging",
    "get_logger",
    "get_stdout_console",
    "get_stderr_console",
    "CommandResult",
    "CommandRunner",
    "ConnectionFactory",
    "RemoteChannel",
    "ServiceSupervisor",
    "TunnelCli",
    "LocalRunner",
    "Telemetry",
    "get_telemetry",
    "load_ssh_config",
    "fingerprint",
    "require_commands",
]
