"""
Tunnel domain models
"""
import ipaddress
import re
from dataclasses import dataclass, replace
from datetime import timedelta
from enum import Enum
from typing import Optional

from ...core.constants import DEFAULT_INTERFACE, DEFAULT_KEEPALIVE, DEFAULT_TUNNEL_PREFIX
from ...core.exceptions import PreconditionError

# WireGuard keys are 32 bytes, base64 encoded
WG_KEY_PATTERN = re.compile(r"^[A-Za-z0-9+/]{42}[AEIMQUYcgkosw480]=$")
INTERFACE_PATTERN = re.compile(r"^[A-Za-z0-9_=+.-]{1,15}$")


class Role(str, Enum):
    """Which side of the tunnel a configuration is rendered for"""
    LOCAL = "local"
    REMOTE = "remote"


def is_wg_key(value: str) -> bool:
    return bool(WG_KEY_PATTERN.match(value or ""))


@dataclass(frozen=True)
class KeyPair:
    """Key material of one host; the private half never leaves its host"""
    public_key: str
    private_key: Optional[str] = None


@dataclass(frozen=True)
class ProvisioningParameters:
    """
    Everything needed to render both ends of the tunnel.

    Immutable: a change is expressed by building a new value (``evolve``)
    and re-rendering, never by mutation.
    """
    listen_port: int
    server_tunnel_address: str
    client_tunnel_address: str
    additional_address: str
    server_public_key: str
    client_public_key: str
    endpoint_host: str
    server_private_key_path: str
    allowed_range: Optional[str] = None
    keepalive_interval: int = DEFAULT_KEEPALIVE
    prefix_length: int = DEFAULT_TUNNEL_PREFIX
    interface: str = DEFAULT_INTERFACE

    def __post_init__(self):
        if self.allowed_range is None:
            try:
                network = ipaddress.ip_interface(
                    f"{self.server_tunnel_address}/{self.prefix_length}"
                ).network
            except ValueError as e:
                raise PreconditionError(
                    f"Invalid tunnel address or prefix: {self.server_tunnel_address}/{self.prefix_length}"
                ) from e
            object.__setattr__(self, "allowed_range", str(network))
        self.validate()

    def validate(self) -> None:
        """Reject values that cannot be rendered safely"""
        if not (1 <= self.listen_port <= 65535):
            raise PreconditionError(f"Invalid listen port: {self.listen_port}")
        for label, value in (
            ("server tunnel address", self.server_tunnel_address),
            ("client tunnel address", self.client_tunnel_address),
            ("additional address", self.additional_address),
        ):
            try:
                ipaddress.ip_address(value)
            except ValueError as e:
                raise PreconditionError(f"Invalid {label}: {value!r}") from e
        try:
            ipaddress.ip_network(self.allowed_range)
        except ValueError as e:
            raise PreconditionError(f"Invalid allowed range: {self.allowed_range!r}") from e
        for label, value in (
            ("server public key", self.server_public_key),
            ("client public key", self.client_public_key),
        ):
            if not is_wg_key(value):
                raise PreconditionError(f"Invalid {label}: {value!r}")
        if not INTERFACE_PATTERN.match(self.interface):
            raise PreconditionError(f"Invalid interface name: {self.interface!r}")
        if not (0 <= self.prefix_length <= 128):
            raise PreconditionError(f"Invalid prefix length: {self.prefix_length}")
        if self.keepalive_interval < 0:
            raise PreconditionError(f"Invalid keepalive: {self.keepalive_interval}")
        if not self.endpoint_host or any(c.isspace() for c in self.endpoint_host):
            raise PreconditionError(f"Invalid endpoint host: {self.endpoint_host!r}")

    @property
    def endpoint(self) -> str:
        host = self.endpoint_host
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        return f"{host}:{self.listen_port}"

    def evolve(self, **changes) -> "ProvisioningParameters":
        """Copy with some fields replaced"""
        return replace(self, **changes)


@dataclass(frozen=True)
class RenderedConfig:
    """Textual interface configuration for one role"""
    role: Role
    content: str


@dataclass(frozen=True)
class ScriptArtifact:
    """Remote control script plus its content fingerprint"""
    content: str
    fingerprint: str


@dataclass(frozen=True)
class RemoteDeploymentState:
    """Observed remote state; always queried, never assumed"""
    script_fingerprint: Optional[str]
    service_installed: bool
    service_active: Optional[bool] = None  # None: not queried


@dataclass(frozen=True)
class TunnelState:
    """Observed local interface state"""
    interface_up: bool
    last_handshake_age: Optional[timedelta] = None
