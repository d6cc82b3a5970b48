"""
WireGuard interface configuration rendering (pure, no I/O)
"""
from typing import List

from ...core.exceptions import RenderError
from .models import ProvisioningParameters, RenderedConfig, Role


def nat_rules(params: ProvisioningParameters, action: str) -> List[str]:
    """
    iptables commands that hand the additional address to the client.

    DNAT rewrites traffic for the additional address to the client tunnel
    address; SNAT makes replies come back through the tunnel.
    action is "-A" (append) or "-D" (delete).
    """
    return [
        f"iptables -t nat {action} PREROUTING -d {params.additional_address} "
        f"-j DNAT --to-destination {params.client_tunnel_address}",
        f"iptables -t nat {action} POSTROUTING -d {params.client_tunnel_address} "
        f"-j SNAT --to-source {params.server_tunnel_address}",
    ]


def _interface_section(private_key: str, address: str, params: ProvisioningParameters) -> List[str]:
    return [
        "[Interface]",
        f"PrivateKey = {private_key}",
        f"Address = {address}/{params.prefix_length}",
        f"ListenPort = {params.listen_port}",
    ]


def render_local(params: ProvisioningParameters, private_key: str) -> RenderedConfig:
    lines = _interface_section(private_key, params.client_tunnel_address, params)
    lines += [
        "",
        "[Peer]",
        f"PublicKey = {params.server_public_key}",
        f"Endpoint = {params.endpoint}",
        f"AllowedIPs = {params.allowed_range}",
        f"PersistentKeepalive = {params.keepalive_interval}",
    ]
    return RenderedConfig(role=Role.LOCAL, content="\n".join(lines) + "\n")


def render_remote(params: ProvisioningParameters, private_key: str) -> RenderedConfig:
    lines = _interface_section(private_key, params.server_tunnel_address, params)
    lines += [
        "SaveConfig = false",
        "",
        "# Enable IP forwarding",
        "PostUp = sysctl -w net.ipv4.ip_forward=1",
        "PostUp = sysctl -w net.ipv6.conf.all.forwarding=1",
        "",
        "# Forward ALL traffic to Additional IP through tunnel to client",
        "# SNAT ensures replies come back through the tunnel",
    ]
    lines += [f"PostUp = {rule}" for rule in nat_rules(params, "-A")]
    lines.append("")
    lines += [f"PostDown = {rule}" for rule in nat_rules(params, "-D")]
    lines += [
        "",
        "[Peer]",
        f"PublicKey = {params.client_public_key}",
        f"AllowedIPs = {params.allowed_range}",
        f"PersistentKeepalive = {params.keepalive_interval}",
    ]
    return RenderedConfig(role=Role.REMOTE, content="\n".join(lines) + "\n")


def render(role: Role, params: ProvisioningParameters, private_key: str) -> RenderedConfig:
    """
    Render the interface configuration for one side of the tunnel.

    Identical inputs give byte-identical output.
    """
    if not private_key or "\n" in private_key:
        raise RenderError(f"unusable private key for {Role(role).value} config")
    if Role(role) is Role.LOCAL:
        return render_local(params, private_key)
    return render_remote(params, private_key)
