"""
Phase event recording
"""
from collections import deque
from typing import Deque, Dict, Any, Optional, List
from dataclasses import dataclass, field
import time

from .constants import MAX_TELEMETRY_EVENTS


@dataclass
class Event:
    """Event record"""
    name: str
    timestamp: float = field(default_factory=time.time)
    metadata: Dict[str, Any] = field(default_factory=dict)


class Telemetry:
    """
    In-process event recorder.

    Each reconciliation phase records one event when it finishes, so a run
    can be replayed in order (``names()``) by the CLI summary and by tests.
    Only the newest ``max_events`` are kept, since supervision runs for the
    life of the process.
    """
    
    def __init__(self, max_events: int = MAX_TELEMETRY_EVENTS):
        self._events: Deque[Event] = deque(maxlen=max_events)
    
    def record_event(self, name: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        """Record an event"""
        self._events.append(Event(name=name, metadata=metadata or {}))
    
    def get_events(self, prefix: str = "") -> List[Event]:
        """Get recorded events, optionally filtered by name prefix"""
        return [e for e in self._events if e.name.startswith(prefix)]
    
    def names(self) -> List[str]:
        """Event names in recording order"""
        return [e.name for e in self._events]
    
    def last(self, name: str) -> Optional[Event]:
        """Most recent event with the given name"""
        for event in reversed(self._events):
            if event.name == name:
                return event
        return None
    
    def clear(self) -> None:
        """Clear all events"""
        self._events.clear()


# Global telemetry instance
_telemetry = Telemetry()


def get_telemetry() -> Telemetry:
    """Get global telemetry instance"""
    return _telemetry
