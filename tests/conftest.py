"""
Shared fixtures
"""
import pytest

from revtunnel.core.telemetry import get_telemetry
from revtunnel.domain.tunnel import (
    LocalTunnelController,
    ProvisioningParameters,
    TunnelSettings,
)

from .fakes import (
    CLIENT_PUB,
    SERVER_PUB,
    FakeConnectionFactory,
    FakeRemoteHost,
    FakeRunner,
    FakeWireGuard,
)


@pytest.fixture(autouse=True)
def telemetry():
    t = get_telemetry()
    t.clear()
    yield t
    t.clear()


@pytest.fixture
def params():
    return ProvisioningParameters(
        listen_port=51820,
        server_tunnel_address="10.10.10.1",
        client_tunnel_address="10.10.10.2",
        additional_address="203.0.113.5",
        server_public_key=SERVER_PUB,
        client_public_key=CLIENT_PUB,
        endpoint_host="198.51.100.7",
        server_private_key_path="/etc/wireguard/server_private.key",
    )


@pytest.fixture
def config_mapping(tmp_path):
    return {
        "WG_PORT": "51820",
        "SERVER_SSH_IP": "198.51.100.7",
        "SERVER_TUNNEL_IP": "10.10.10.1",
        "CLIENT_TUNNEL_IP": "10.10.10.2",
        "ADDITIONAL_IP": "203.0.113.5",
        "SSH_USER": "root",
        "SSH_PORT": "22",
        "REMOTE_SCRIPT": "/usr/local/bin/wg-server-tunnel.sh",
        "REMOTE_SERVICE": "wg-server-tunnel",
        "SERVER_WG_KEYFILE": "/etc/wireguard/server_private.key",
        "SERVER_WG_PUBFILE": "/etc/wireguard/server_public.key",
        "CLIENT_WG_KEYFILE": str(tmp_path / "keys" / "client_private.key"),
        "CLIENT_WG_PUBFILE": str(tmp_path / "keys" / "client_public.key"),
    }


@pytest.fixture
def settings(config_mapping):
    return TunnelSettings.from_mapping(config_mapping)


@pytest.fixture
def remote_host():
    return FakeRemoteHost(host="198.51.100.7")


@pytest.fixture
def connection_factory(remote_host):
    return FakeConnectionFactory(remote_host)


@pytest.fixture
def wg():
    return FakeWireGuard()


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def controller(wg, tmp_path):
    return LocalTunnelController(wg, interface="wg0", config_dir=tmp_path / "wireguard")
