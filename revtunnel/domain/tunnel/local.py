"""
Local tunnel interface control
"""
import os
import time
from datetime import timedelta
from pathlib import Path
from typing import Optional

from ...core.constants import CONFIG_FILE_MODE, DEFAULT_INTERFACE, WIREGUARD_DIR
from ...core.exceptions import TunnelError
from ...core.interfaces import TunnelCli
from ...core.logging import get_logger
from ...core.telemetry import get_telemetry
from .models import RenderedConfig, TunnelState

logger = get_logger(__name__)
telemetry = get_telemetry()


class LocalTunnelController:
    """Brings the local WireGuard interface up and down"""

    def __init__(
        self,
        wg: TunnelCli,
        interface: str = DEFAULT_INTERFACE,
        config_dir: Path = Path(WIREGUARD_DIR),
    ):
        self.wg = wg
        self.interface = interface
        self.config_dir = Path(config_dir)

    @property
    def config_path(self) -> Path:
        return self.config_dir / f"{self.interface}.conf"

    def _teardown(self) -> bool:
        try:
            self.wg.teardown_interface(self.interface)
            return True
        except (TunnelError, OSError) as e:
            # Usually "is not a WireGuard interface": already down
            logger.debug(f"Teardown of {self.interface} skipped: {e}")
            return False

    def write_config(self, config: RenderedConfig) -> Path:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(self.config_path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, CONFIG_FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(config.content)
        self.config_path.chmod(CONFIG_FILE_MODE)
        return self.config_path

    def up(self, config: RenderedConfig) -> None:
        """Write the config and apply it; safe to call while already up"""
        self._teardown()
        path = self.write_config(config)
        logger.info(f"Bringing up WireGuard interface {self.interface}")
        self.wg.apply_interface(path)
        telemetry.record_event("tunnel.up", {"interface": self.interface})

    def down(self) -> None:
        """Best-effort teardown; never raises"""
        logger.info("Cleanup: bringing down WireGuard interface")
        removed = self._teardown()
        telemetry.record_event("tunnel.down", {"interface": self.interface, "removed": removed})

    def is_up(self) -> bool:
        try:
            return self.wg.show_status(self.interface) is not None
        except (TunnelError, OSError):
            return False

    def status_text(self) -> Optional[str]:
        try:
            return self.wg.show_status(self.interface)
        except (TunnelError, OSError):
            return None

    def last_handshake_age(self) -> Optional[timedelta]:
        """Age of the most recent handshake, None when unknown"""
        try:
            latest = self.wg.latest_handshake(self.interface)
        except (TunnelError, OSError):
            return None
        if not latest:
            return None
        return timedelta(seconds=max(0, int(time.time()) - latest))

    def state(self) -> TunnelState:
        return TunnelState(
            interface_up=self.is_up(),
            last_handshake_age=self.last_handshake_age(),
        )

    def session(self) -> "TunnelLease":
        """Scoped ownership of the interface: release always tears down once"""
        return TunnelLease(self)


class TunnelLease:
    """
    Handle returned by LocalTunnelController.session().

    Leaving the with-block (normally, by error, or by cancellation)
    calls controller.down() exactly once, even if the interface was
    never brought up.
    """

    def __init__(self, controller: LocalTunnelController):
        self.controller = controller
        self._released = False

    def up(self, config: RenderedConfig) -> None:
        self.controller.up(config)

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self.controller.down()

    @property
    def released(self) -> bool:
        return self._released

    def __enter__(self) -> "TunnelLease":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.release()
