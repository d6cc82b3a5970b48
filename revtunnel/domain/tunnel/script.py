"""
Remote control script synthesis
"""
import re
from string import Template

from ...core.constants import (
    DEFAULT_CHECK_INTERVAL,
    REMOTE_PROBE_ATTEMPTS,
    REMOTE_PROBE_TIMEOUT,
    WIREGUARD_DIR,
)
from ...core.exceptions import RenderError
from ...core.utils import fingerprint, q
from .models import ProvisioningParameters, Role, ScriptArtifact
from .render import nat_rules, render

# Expanded by the remote shell when the heredoc is written
PRIVATE_KEY_REFERENCE = "${SERVER_PRIVATE_KEY}"
HEREDOC_MARKER = "WGCONF"

# Characters the shell would still interpret inside an unquoted heredoc
_HEREDOC_ACTIVE = re.compile(r"[$`\\]")


class _ScriptTemplate(Template):
    delimiter = "@"


SERVER_SCRIPT = _ScriptTemplate("""\
#!/bin/bash
# Generated by revtunnel. Rewritten on every deploy; local edits show up as drift.
set -euo pipefail

INTERFACE=@{interface}
CONFIG_PATH=@{config_path}
SERVER_WG_KEYFILE=@{keyfile}
SERVER_TUNNEL_IP=@{server_ip}
CLIENT_TUNNEL_IP=@{client_ip}
ADDITIONAL_IP=@{additional_ip}
WG_PORT=@{port}
SERVER_PUBLIC_KEY=@{server_pub}
CHECK_INTERVAL=@{interval}

cleanup() {
    echo "Server cleanup..."
@{nat_cleanup}
    wg-quick down "$INTERFACE" 2>/dev/null || true
}

cleanup
trap 'cleanup; exit 0' INT TERM

echo "Creating server WireGuard configuration..."
SERVER_PRIVATE_KEY="$(cat "$SERVER_WG_KEYFILE")"
mkdir -p "$(dirname "$CONFIG_PATH")"
umask 077
cat > "$CONFIG_PATH" <<@{marker}
@{config}@{marker}

echo "Bringing up WireGuard interface..."
wg-quick up "$INTERFACE"

echo ""
echo "Server configuration complete!"
echo "Testing tunnel connectivity..."
sleep 2

if ping -c @{probe_count} -W @{probe_timeout} "$CLIENT_TUNNEL_IP"; then
    echo "Tunnel is UP! Can reach client at $CLIENT_TUNNEL_IP"
else
    echo "Cannot reach client at $CLIENT_TUNNEL_IP"
    echo "Showing WireGuard status:"
    wg show "$INTERFACE" || true
fi

echo ""
echo "=== Server Summary ==="
echo "- Tunnel IP: $SERVER_TUNNEL_IP"
echo "- Client IP: $CLIENT_TUNNEL_IP"
echo "- Listen port: $WG_PORT"
echo "- Public key: $SERVER_PUBLIC_KEY"
echo "- Additional IP $ADDITIONAL_IP now forwards to client"
echo ""

while true; do
    sleep "$CHECK_INTERVAL" &
    wait $! || true
    if ! wg show "$INTERFACE" >/dev/null 2>&1; then
        echo "WireGuard interface went down! Attempting to restart..."
        wg-quick up "$INTERFACE" || true
    fi
done
""")


def remote_config_path(interface: str) -> str:
    return f"{WIREGUARD_DIR}/{interface}.conf"


class RemoteScriptSynthesizer:
    """
    Builds the self-contained control script run by the remote service.

    Parameter values reach the script in two ways only: as shell-quoted
    variable assignments, or inside the rendered WireGuard config, whose
    fields are validated addresses, ports and base64 keys. Anything else
    that could be expanded by the shell is rejected with RenderError.
    """

    def __init__(self, check_interval: int = DEFAULT_CHECK_INTERVAL):
        self.check_interval = check_interval

    def render_config(self, params: ProvisioningParameters) -> str:
        config = render(Role.REMOTE, params, private_key=PRIVATE_KEY_REFERENCE).content
        literal = config.replace(PRIVATE_KEY_REFERENCE, "")
        if _HEREDOC_ACTIVE.search(literal):
            raise RenderError("remote config contains shell-active characters")
        if any(line.strip() == HEREDOC_MARKER for line in config.splitlines()):
            raise RenderError("remote config collides with heredoc marker")
        return config

    def synthesize(self, params: ProvisioningParameters) -> ScriptArtifact:
        """Render the script; fingerprint is the SHA256 of the final text"""
        nat_cleanup = "\n".join(
            f"    {rule} 2>/dev/null || true" for rule in nat_rules(params, "-D")
        )
        content = SERVER_SCRIPT.substitute(
            interface=q(params.interface),
            config_path=q(remote_config_path(params.interface)),
            keyfile=q(params.server_private_key_path),
            server_ip=q(params.server_tunnel_address),
            client_ip=q(params.client_tunnel_address),
            additional_ip=q(params.additional_address),
            port=q(params.listen_port),
            server_pub=q(params.server_public_key),
            interval=q(self.check_interval),
            nat_cleanup=nat_cleanup,
            marker=HEREDOC_MARKER,
            config=self.render_config(params),
            probe_count=REMOTE_PROBE_ATTEMPTS,
            probe_timeout=REMOTE_PROBE_TIMEOUT,
        )
        return ScriptArtifact(content=content, fingerprint=fingerprint(content))
