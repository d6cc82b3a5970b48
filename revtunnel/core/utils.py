"""
Core utility functions
"""
import hashlib
import shlex
import shutil
from pathlib import Path
from typing import Dict, Any, Iterable, List

import paramiko

from .constants import DEFAULT_SSH_PORT
from .exceptions import PreconditionError


# ============================================================
# SSH Config Management
# ============================================================

SSH_CONFIG_PATH = "~/.ssh/config"


def load_ssh_config(hostname: str) -> Dict[str, Any]:
    """
    Look up a Host entry in ~/.ssh/config.
    
    Returns an empty dict when the file does not exist, otherwise a
    dictionary containing host, user, port, key_file.
    """
    config_path = Path(SSH_CONFIG_PATH).expanduser()
    if not config_path.exists():
        return {}

    ssh_config = paramiko.SSHConfig.from_path(str(config_path))
    entry = ssh_config.lookup(hostname)

    return {
        "host": entry.get("hostname", hostname),
        "user": entry.get("user", None),
        "port": int(entry.get("port", DEFAULT_SSH_PORT)),
        "key_file": entry.get("identityfile", [None])[0],
    }


# ============================================================
# Shell helpers
# ============================================================

def q(value: Any) -> str:
    """Shell-quote a value for embedding in a remote command"""
    return shlex.quote(str(value))


def fingerprint(text: str) -> str:
    """SHA256 hex digest of text; matches `sha256sum` of the same bytes"""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def first_token(output: str) -> str:
    """First whitespace-separated token of command output, or ''"""
    parts = output.split()
    return parts[0] if parts else ""


# ============================================================
# Preflight
# ============================================================

def require_commands(commands: Iterable[str]) -> None:
    """
    Fail if any of the given commands is not on PATH.
    
    Raises:
        PreconditionError: naming every missing command
    """
    missing: List[str] = [c for c in commands if shutil.which(c) is None]
    if missing:
        raise PreconditionError(f"required command(s) not found: {', '.join(missing)}")
