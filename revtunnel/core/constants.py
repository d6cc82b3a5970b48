"""
Project constants definitions
"""

# ============================================================
# Default Values
# ============================================================

DEFAULT_SSH_PORT = 22
DEFAULT_SSH_TIMEOUT = 10
DEFAULT_INTERPRETER = "/bin/bash"

# ============================================================
# WireGuard Defaults
# ============================================================

DEFAULT_INTERFACE = "wg0"
WIREGUARD_DIR = "/etc/wireguard"
DEFAULT_CLIENT_KEYFILE = "/etc/wireguard/wg0.key"
DEFAULT_CLIENT_PUBFILE = "/etc/wireguard/wg0.pub"
DEFAULT_TUNNEL_PREFIX = 24
DEFAULT_KEEPALIVE = 25
KEY_FILE_MODE = 0o600
CONFIG_FILE_MODE = 0o600

# ============================================================
# Reconciliation / Supervision
# ============================================================

DEFAULT_CHECK_INTERVAL = 60
DEFAULT_SETTLE_SECONDS = 15
HANDSHAKE_WAIT_SECONDS = 3
DEFAULT_PROBE_ATTEMPTS = 3
DEFAULT_PROBE_TIMEOUT = 3
REMOTE_PROBE_ATTEMPTS = 2
REMOTE_PROBE_TIMEOUT = 2
MAX_TELEMETRY_EVENTS = 1000

# ============================================================
# Remote Service
# ============================================================

SYSTEMD_UNIT_DIR = "/etc/systemd/system"
UNIT_DESCRIPTION = "WireGuard Server Reverse Tunnel"
UNIT_RESTART_SEC = 5
UNIT_SUFFIXES = (".service", ".socket", ".timer", ".target", ".path", ".mount")
REMOTE_TMP_DIR = "/tmp"
FINGERPRINT_ABSENT = "none"

# ============================================================
# Configuration
# ============================================================

DEFAULT_ENV_FILE = ".env"
TOML_SECTION = "tunnel"
