"""
wg / wg-quick command wrapper
"""
from pathlib import Path
from typing import Optional

from ..core.exceptions import TunnelCommandError
from ..core.interfaces import CommandRunner, TunnelCli


class WireGuardCli(TunnelCli):
    """Tunnel CLI surface backed by the local wg(8) and wg-quick(8) tools"""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def _checked(self, *argv: str, input: Optional[str] = None) -> str:
        result = self.runner.run(argv, input=input)
        if not result.ok:
            raise TunnelCommandError(
                f"'{' '.join(argv)}' failed (exit {result.exit_code}): {result.stderr.strip()}"
            )
        return result.stdout.strip()

    def genkey(self) -> str:
        return self._checked("wg", "genkey")

    def pubkey(self, private_key: str) -> str:
        return self._checked("wg", "pubkey", input=private_key.strip() + "\n")

    def apply_interface(self, config_path: Path) -> None:
        self._checked("wg-quick", "up", str(config_path))

    def teardown_interface(self, name: str) -> None:
        self._checked("wg-quick", "down", name)

    def show_status(self, name: str) -> Optional[str]:
        result = self.runner.run(["wg", "show", name])
        if not result.ok:
            return None
        return result.stdout

    def latest_handshake(self, name: str) -> Optional[int]:
        """
        Parse `wg show <name> latest-handshakes` ("<pubkey>\\t<epoch>" per
        peer). A zero timestamp means no handshake yet.
        """
        result = self.runner.run(["wg", "show", name, "latest-handshakes"])
        if not result.ok:
            return None
        latest = 0
        for line in result.stdout.splitlines():
            parts = line.split()
            if len(parts) == 2 and parts[1].isdigit():
                latest = max(latest, int(parts[1]))
        return latest or None
