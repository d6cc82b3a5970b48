from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Literal
import shlex
import socket
import paramiko
from pathlib import Path

from .constants import DEFAULT_SSH_PORT, DEFAULT_SSH_TIMEOUT, DEFAULT_INTERPRETER
from .exceptions import RemoteExecError, TransferError
from .interfaces import CommandResult, RemoteChannel
from .logging import get_logger

logger = get_logger(__name__)

# Errors that mean "the channel is broken", as opposed to a non-zero exit
_CHANNEL_ERRORS = (paramiko.SSHException, socket.timeout, socket.error, EOFError)


@dataclass
class ClientConfig:
    host: str
    user: str
    port: int = DEFAULT_SSH_PORT
    auth_method: Literal["password", "key", "agent"] = "agent"
    password: Optional[str] = None
    key_path: Optional[str] = None
    timeout: float = DEFAULT_SSH_TIMEOUT


class RemoteClient(RemoteChannel):
    """
    Paramiko SSHClient wrapper used as the remote execution and file
    transfer channel:
    - keeps host / user / port explicitly
    - password, key file, or agent / default key authentication
    - loads Ed25519 and RSA private keys
    - connects lazily on first use and reuses the connection
    - supports the with-statement
    """
    def __init__(
        self,
        host: str,
        user: str,
        port: int = DEFAULT_SSH_PORT,
        auth_method: Literal["password", "key", "agent"] = "agent",
        password: Optional[str] = None,
        key_path: Optional[str] = None,
        timeout: float = DEFAULT_SSH_TIMEOUT,
    ) -> None:
        self.config = ClientConfig(
            host=host,
            user=user,
            port=port,
            auth_method=auth_method,
            password=password,
            key_path=key_path,
            timeout=timeout,
        )
        self.host = host
        self.user = user

        self.client = paramiko.SSHClient()
        self.client.load_system_host_keys()
        self.client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        
        self._sftp: Optional[paramiko.SFTPClient] = None
        self._connected = False

    # --------------------
    # Connection management
    # --------------------
    def connect(self) -> None:
        """Open the SSH connection (idempotent)"""
        if self._connected and self._transport_alive():
            return
        try:
            self._connect()
        except (paramiko.AuthenticationException, *_CHANNEL_ERRORS) as e:
            raise RemoteExecError(
                f"cannot reach {self.user}@{self.host}:{self.config.port}: {e}",
                step="connect",
            ) from e
        self._connected = True

    def _connect(self) -> None:
        cfg = self.config
        kwargs = dict(
            hostname=cfg.host,
            port=cfg.port,
            username=cfg.user,
            timeout=cfg.timeout,
            banner_timeout=cfg.timeout,
            auth_timeout=cfg.timeout,
        )

        if cfg.auth_method == "password":
            self.client.connect(password=cfg.password, look_for_keys=False, **kwargs)
        elif cfg.auth_method == "key":
            key = self._load_private_key(cfg.key_path)
            self.client.connect(pkey=key, **kwargs)
        elif cfg.auth_method == "agent":
            self.client.connect(**kwargs)
        else:
            raise ValueError(f"Unsupported auth method: {cfg.auth_method}")

    def _transport_alive(self) -> bool:
        transport = self.client.get_transport()
        return transport is not None and transport.is_active()

    # --------------------
    # Load private key
    # --------------------
    def _load_private_key(self, path: Optional[str]) -> paramiko.PKey:
        """Try Ed25519 first, then RSA"""
        if not path:
            raise RemoteExecError("key authentication requested without a key path", step="connect")
        p = Path(path).expanduser()

        try:
            return paramiko.Ed25519Key.from_private_key_file(str(p))
        except (paramiko.SSHException, OSError):
            try:
                return paramiko.RSAKey.from_private_key_file(str(p))
            except (paramiko.SSHException, OSError) as e:
                raise RemoteExecError(f"failed to load private key at {p}", step="connect") from e

    # --------------------
    # Channel operations
    # --------------------
    def execute(self, command: str, timeout: Optional[float] = None) -> CommandResult:
        """Run a command body through bash and return (stdout, stderr, exit_code)"""
        self.connect()
        wrapped = f"{DEFAULT_INTERPRETER} -c {shlex.quote(command)}"
        logger.debug(f"[ssh {self.host}] {command.strip().splitlines()[0] if command.strip() else ''}")
        try:
            _, stdout, stderr = self.client.exec_command(
                wrapped, timeout=timeout or self.config.timeout
            )
            out = stdout.read().decode("utf-8", errors="replace")
            err = stderr.read().decode("utf-8", errors="replace")
            exit_code = stdout.channel.recv_exit_status()
        except _CHANNEL_ERRORS as e:
            raise RemoteExecError(str(e) or type(e).__name__, step="execute") from e
        return CommandResult(stdout=out, stderr=err, exit_code=exit_code)

    def open_sftp(self) -> paramiko.SFTPClient:
        """Return SFTP client, reusing the existing one"""
        self.connect()
        if self._sftp is None or self._sftp.get_channel() is None or self._sftp.get_channel().closed:
            self._sftp = self.client.open_sftp()
        return self._sftp

    def copy(self, local_path: Path, remote_path: str, timeout: Optional[float] = None) -> None:
        try:
            sftp = self.open_sftp()
            sftp.get_channel().settimeout(timeout or self.config.timeout)
            sftp.put(str(local_path), remote_path)
        except (RemoteExecError, IOError, *_CHANNEL_ERRORS) as e:
            raise TransferError(f"copy {local_path} -> {remote_path} failed: {e}", step="transfer") from e

    def close(self) -> None:
        if self._sftp:
            try:
                self._sftp.close()
            except (IOError, *_CHANNEL_ERRORS):
                pass
            self._sftp = None
        self.client.close()
        self._connected = False

    # --------------------
    # Context manager
    # --------------------
    def __enter__(self) -> RemoteClient:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
