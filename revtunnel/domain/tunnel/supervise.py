"""
Local liveness supervision
"""
import threading
from enum import Enum
from typing import Optional

from ...core.constants import DEFAULT_CHECK_INTERVAL
from ...core.logging import get_logger
from ...core.telemetry import get_telemetry
from .local import LocalTunnelController
from .models import RenderedConfig

logger = get_logger(__name__)
telemetry = get_telemetry()


class LinkState(str, Enum):
    UP = "up"
    DOWN = "down"


class SupervisionLoop:
    """
    Periodic interface check with best-effort self-heal.

    Each tick starts in UP. If the interface is gone the loop moves to
    DOWN and re-applies the config once; errors are logged and the next
    tick starts over. The loop only ends when stop_event is set (or the
    caller is interrupted while it sleeps).
    """

    def __init__(
        self,
        controller: LocalTunnelController,
        config: RenderedConfig,
        period: float = DEFAULT_CHECK_INTERVAL,
        stop_event: Optional[threading.Event] = None,
    ):
        self.controller = controller
        self.config = config
        self.period = period
        self.stop_event = stop_event or threading.Event()
        self.state = LinkState.UP
        self.ticks = 0
        self.restarts = 0

    def tick(self) -> LinkState:
        self.ticks += 1
        self.state = LinkState.UP
        try:
            alive = self.controller.is_up()
        except Exception as e:
            logger.warning(f"Liveness check failed: {e}")
            alive = False

        if alive:
            age = self.controller.last_handshake_age()
            logger.debug(f"{self.controller.interface} up, last handshake: {age if age is not None else 'unknown'}")
            return self.state

        self.state = LinkState.DOWN
        self.restarts += 1
        logger.warning("WireGuard interface went down! Attempting to restart...")
        try:
            self.controller.up(self.config)
        except Exception as e:
            logger.warning(f"Restart of {self.controller.interface} failed: {e}")
        telemetry.record_event("supervise.restart", {"interface": self.controller.interface})
        return self.state

    def stop(self) -> None:
        self.stop_event.set()

    def run(self) -> None:
        logger.info(f"Supervising {self.controller.interface} every {self.period}s")
        while not self.stop_event.is_set():
            self.tick()
            if self.stop_event.wait(self.period):
                break
