"""
Key material management (local and remote)
"""
import os
from pathlib import Path
from typing import Optional

from ...core.constants import KEY_FILE_MODE
from ...core.exceptions import KeyRetrievalError, RemoteExecError, TunnelError
from ...core.interfaces import RemoteChannel, TunnelCli
from ...core.logging import get_logger
from ...core.telemetry import get_telemetry
from ...core.utils import q
from .models import KeyPair, is_wg_key

logger = get_logger(__name__)
telemetry = get_telemetry()

GENERATED_MARKER = "revtunnel:generated"


def remote_ensure_command(priv_path: str, pub_path: str) -> str:
    """Check-then-generate sequence run on the remote host"""
    return f"""\
set -e
KEYFILE={q(priv_path)}
PUBFILE={q(pub_path)}
mkdir -p "$(dirname "$KEYFILE")" "$(dirname "$PUBFILE")"
if [ ! -f "$KEYFILE" ]; then
    (umask 077 && wg genkey > "$KEYFILE")
    chmod 600 "$KEYFILE"
    wg pubkey < "$KEYFILE" > "$PUBFILE"
    echo {GENERATED_MARKER} >&2
elif [ ! -s "$PUBFILE" ]; then
    wg pubkey < "$KEYFILE" > "$PUBFILE"
fi
cat "$PUBFILE"
"""


def _write_secret(path: Path, content: str) -> None:
    fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, KEY_FILE_MODE)
    with os.fdopen(fd, "w") as f:
        f.write(content + "\n")
    path.chmod(KEY_FILE_MODE)


class KeyMaterialManager:
    """
    Ensures a WireGuard keypair exists at the configured paths.

    Keys are generated only when the private key file is absent and are
    never rotated. Any failure to obtain a public key is fatal
    (KeyRetrievalError): nothing can be rendered without it.
    """

    def __init__(self, wg: TunnelCli):
        self.wg = wg

    def ensure_key_pair(
        self,
        priv_path: str,
        pub_path: str,
        channel: Optional[RemoteChannel] = None,
    ) -> str:
        """Return the public key, generating the pair first if needed"""
        if channel is None:
            return self.ensure_local(Path(priv_path), Path(pub_path)).public_key
        return self.ensure_remote(channel, priv_path, pub_path)

    # --------------------
    # Remote host
    # --------------------
    def ensure_remote(self, channel: RemoteChannel, priv_path: str, pub_path: str) -> str:
        try:
            result = channel.execute(remote_ensure_command(priv_path, pub_path))
        except RemoteExecError as e:
            raise KeyRetrievalError(f"Failed to get server public key: {e}") from e

        if not result.ok:
            raise KeyRetrievalError(
                f"Failed to get server public key (exit {result.exit_code}): {result.stderr.strip()}"
            )
        public_key = result.stdout.strip()
        if not public_key:
            raise KeyRetrievalError("Failed to get server public key: empty response")
        if not is_wg_key(public_key):
            raise KeyRetrievalError(f"Server public key is malformed: {public_key!r}")

        generated = GENERATED_MARKER in result.stderr
        if generated:
            logger.info(f"Generated server keypair at {priv_path}")
        telemetry.record_event("keys.ready", {"host": "remote", "generated": generated})
        return public_key

    # --------------------
    # Local host
    # --------------------
    def ensure_local(self, priv_path: Path, pub_path: Path) -> KeyPair:
        generated = False
        try:
            if not priv_path.exists():
                logger.info("Generating WireGuard keypair for client")
                priv_path.parent.mkdir(parents=True, exist_ok=True)
                pub_path.parent.mkdir(parents=True, exist_ok=True)
                private_key = self.wg.genkey()
                _write_secret(priv_path, private_key)
                pub_path.write_text(self.wg.pubkey(private_key) + "\n")
                generated = True
            else:
                logger.info("Using existing WireGuard keypair")

            private_key = priv_path.read_text().strip()
            if not pub_path.exists() or not pub_path.read_text().strip():
                pub_path.write_text(self.wg.pubkey(private_key) + "\n")
            public_key = pub_path.read_text().strip()
        except (OSError, TunnelError) as e:
            raise KeyRetrievalError(f"Failed to prepare client keypair: {e}") from e

        if not public_key or not private_key:
            raise KeyRetrievalError(f"Client key material at {priv_path} is empty")
        telemetry.record_event("keys.ready", {"host": "local", "generated": generated})
        return KeyPair(public_key=public_key, private_key=private_key)

    # --------------------
    # Read-only lookups (status)
    # --------------------
    def read_remote_public(self, channel: RemoteChannel, pub_path: str) -> Optional[str]:
        """Public key stored on the remote host, or None; never generates"""
        result = channel.execute(f"cat {q(pub_path)} 2>/dev/null || true")
        key = result.stdout.strip()
        return key if is_wg_key(key) else None

    def read_local(self, priv_path: Path, pub_path: Path) -> Optional[KeyPair]:
        """Existing local keypair, or None; never generates"""
        try:
            private_key = priv_path.read_text().strip()
            public_key = pub_path.read_text().strip()
        except OSError:
            return None
        if not private_key or not is_wg_key(public_key):
            return None
        return KeyPair(public_key=public_key, private_key=private_key)
