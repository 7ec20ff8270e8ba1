"""Connection state and poll statistics."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional


class ConnectionState(str, Enum):
    """Polling engine connection state."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class HealthReporter:
    """
    Aggregates poll cycle outcomes for a session.

    The session records each cycle; the health server reads snapshots.
    """

    def __init__(self) -> None:
        """Initialize reporter with empty state."""
        self.cycles = 0
        self.failed_cycles = 0
        self.last_datapoints = 0
        self.last_poll: Optional[datetime] = None

    def record(self, datapoints: int, failed: bool) -> None:
        """Record a finished poll cycle."""
        self.cycles += 1
        if failed:
            self.failed_cycles += 1
        self.last_datapoints = datapoints
        self.last_poll = datetime.now(timezone.utc)

    def snapshot(self, state: ConnectionState) -> Dict[str, object]:
        """Return current health snapshot."""
        return {
            "status": state.value,
            "cycles": self.cycles,
            "failed_cycles": self.failed_cycles,
            "last_datapoints": self.last_datapoints,
            "last_poll": self.last_poll.isoformat() if self.last_poll else None,
        }
