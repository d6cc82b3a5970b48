"""
Validated run settings
"""
import ipaddress
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from ...core.constants import (
    DEFAULT_CHECK_INTERVAL,
    DEFAULT_CLIENT_KEYFILE,
    DEFAULT_CLIENT_PUBFILE,
    DEFAULT_INTERFACE,
    DEFAULT_KEEPALIVE,
    DEFAULT_PROBE_ATTEMPTS,
    DEFAULT_PROBE_TIMEOUT,
    DEFAULT_SETTLE_SECONDS,
    DEFAULT_SSH_TIMEOUT,
    DEFAULT_TUNNEL_PREFIX,
)
from ...core.exceptions import PreconditionError
from .models import ProvisioningParameters

REQUIRED_KEYS = (
    "WG_PORT",
    "SERVER_SSH_IP",
    "SERVER_TUNNEL_IP",
    "CLIENT_TUNNEL_IP",
    "ADDITIONAL_IP",
    "SSH_USER",
    "SSH_PORT",
    "REMOTE_SCRIPT",
    "REMOTE_SERVICE",
    "SERVER_WG_KEYFILE",
    "SERVER_WG_PUBFILE",
)

OPTIONAL_DEFAULTS: Dict[str, Any] = {
    "SSH_KEY": None,
    "SSH_PASSWORD": None,
    "SSH_TIMEOUT": DEFAULT_SSH_TIMEOUT,
    "WG_INTERFACE": DEFAULT_INTERFACE,
    "CLIENT_WG_KEYFILE": DEFAULT_CLIENT_KEYFILE,
    "CLIENT_WG_PUBFILE": DEFAULT_CLIENT_PUBFILE,
    "TUNNEL_PREFIX": DEFAULT_TUNNEL_PREFIX,
    "ALLOWED_RANGE": None,
    "KEEPALIVE": DEFAULT_KEEPALIVE,
    "CHECK_INTERVAL": DEFAULT_CHECK_INTERVAL,
    "SETTLE_SECONDS": DEFAULT_SETTLE_SECONDS,
    "PROBE_ATTEMPTS": DEFAULT_PROBE_ATTEMPTS,
    "PROBE_TIMEOUT": DEFAULT_PROBE_TIMEOUT,
}

KNOWN_KEYS = REQUIRED_KEYS + tuple(OPTIONAL_DEFAULTS)

_INT_KEYS = {
    "WG_PORT", "SSH_PORT", "SSH_TIMEOUT", "TUNNEL_PREFIX", "KEEPALIVE",
    "CHECK_INTERVAL", "SETTLE_SECONDS", "PROBE_ATTEMPTS", "PROBE_TIMEOUT",
}


@dataclass(frozen=True)
class TunnelSettings:
    """One client/server pair, fully resolved from configuration"""
    wg_port: int
    server_ssh_ip: str
    server_tunnel_ip: str
    client_tunnel_ip: str
    additional_ip: str
    ssh_user: str
    ssh_port: int
    remote_script: str
    remote_service: str
    server_wg_keyfile: str
    server_wg_pubfile: str
    ssh_key: Optional[str] = None
    ssh_password: Optional[str] = None
    ssh_timeout: int = DEFAULT_SSH_TIMEOUT
    wg_interface: str = DEFAULT_INTERFACE
    client_wg_keyfile: str = DEFAULT_CLIENT_KEYFILE
    client_wg_pubfile: str = DEFAULT_CLIENT_PUBFILE
    tunnel_prefix: int = DEFAULT_TUNNEL_PREFIX
    allowed_range: Optional[str] = None
    keepalive: int = DEFAULT_KEEPALIVE
    check_interval: int = DEFAULT_CHECK_INTERVAL
    settle_seconds: int = DEFAULT_SETTLE_SECONDS
    probe_attempts: int = DEFAULT_PROBE_ATTEMPTS
    probe_timeout: int = DEFAULT_PROBE_TIMEOUT

    @classmethod
    def from_mapping(cls, cfg: Dict[str, Any]) -> "TunnelSettings":
        """
        Build settings from a merged configuration mapping.

        Raises:
            PreconditionError: listing every missing required key, or
                naming the first malformed value
        """
        missing = [k for k in REQUIRED_KEYS if cfg.get(k) in (None, "")]
        if missing:
            raise PreconditionError(
                f"Missing required configuration values: {' '.join(missing)}"
            )

        values: Dict[str, Any] = {}
        for key in KNOWN_KEYS:
            value = cfg.get(key)
            if value in (None, ""):
                value = OPTIONAL_DEFAULTS.get(key)
            if value is not None and key in _INT_KEYS:
                try:
                    value = int(value)
                except (TypeError, ValueError) as e:
                    raise PreconditionError(f"{key} must be an integer, got {value!r}") from e
            elif value is not None:
                value = str(value)
            values[key.lower()] = value

        settings = cls(**values)
        for port_key in ("wg_port", "ssh_port"):
            port = getattr(settings, port_key)
            if not (1 <= port <= 65535):
                raise PreconditionError(f"{port_key.upper()} out of range: {port}")
        for positive_key in ("check_interval", "probe_attempts", "probe_timeout", "ssh_timeout"):
            if getattr(settings, positive_key) <= 0:
                raise PreconditionError(f"{positive_key.upper()} must be positive")
        settings._validate_addresses()
        return settings

    def _validate_addresses(self) -> None:
        """Reject unusable addresses before any remote or local work"""
        for key in ("server_tunnel_ip", "client_tunnel_ip", "additional_ip"):
            try:
                ipaddress.ip_address(getattr(self, key))
            except ValueError as e:
                raise PreconditionError(f"{key.upper()} is not an IP address: {getattr(self, key)!r}") from e
        try:
            ipaddress.ip_interface(f"{self.server_tunnel_ip}/{self.tunnel_prefix}")
        except ValueError as e:
            raise PreconditionError(f"TUNNEL_PREFIX out of range: {self.tunnel_prefix}") from e
        if self.allowed_range is not None:
            try:
                ipaddress.ip_network(self.allowed_range)
            except ValueError as e:
                raise PreconditionError(f"ALLOWED_RANGE is not a network: {self.allowed_range!r}") from e

    def connection_params(self) -> Dict[str, Any]:
        return {
            "host": self.server_ssh_ip,
            "user": self.ssh_user,
            "port": self.ssh_port,
            "key": self.ssh_key,
            "password": self.ssh_password,
            "timeout": self.ssh_timeout,
        }

    def parameters(self, server_public_key: str, client_public_key: str) -> ProvisioningParameters:
        """Provisioning parameters for this run (validated on construction)"""
        return ProvisioningParameters(
            listen_port=self.wg_port,
            server_tunnel_address=self.server_tunnel_ip,
            client_tunnel_address=self.client_tunnel_ip,
            additional_address=self.additional_ip,
            server_public_key=server_public_key,
            client_public_key=client_public_key,
            endpoint_host=self.server_ssh_ip,
            server_private_key_path=self.server_wg_keyfile,
            allowed_range=self.allowed_range,
            keepalive_interval=self.keepalive,
            prefix_length=self.tunnel_prefix,
            interface=self.wg_interface,
        )

    def redacted(self) -> Dict[str, Any]:
        """Field values with secrets masked, for display"""
        out = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "ssh_password" and value:
                value = "********"
            out[f.name] = value
        return out
