"""Measurement container produced by one poll cycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Tuple, Union

# Asset name of the measurement returned when the device cannot be reached.
FAILED_ASSET = "failed"

Value = Union[int, float]


@dataclass(frozen=True)
class Datapoint:
    """Single named value within a measurement."""

    name: str
    value: Value


@dataclass(frozen=True)
class Measurement:
    """
    One poll cycle's output.

    Datapoints keep read order; a name read twice appears twice.
    """

    asset_name: str
    datapoints: Tuple[Datapoint, ...] = ()
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def failed(cls) -> "Measurement":
        """Empty measurement signalling the transport could not connect."""
        return cls(asset_name=FAILED_ASSET)

    @property
    def is_failed(self) -> bool:
        return self.asset_name == FAILED_ASSET and not self.datapoints

    def items(self) -> List[Tuple[str, Value]]:
        """Return ``(name, value)`` pairs in read order."""
        return [(point.name, point.value) for point in self.datapoints]

    def __len__(self) -> int:
        return len(self.datapoints)


class MeasurementAssembler:
    """Append-only builder for a single cycle's measurement."""

    def __init__(self) -> None:
        self._points: List[Datapoint] = []

    def append(self, name: str, value: Value) -> None:
        """Record a value; no deduplication."""
        self._points.append(Datapoint(name=name, value=value))

    def build(self, asset_name: str) -> Measurement:
        """Finalize into an immutable measurement tagged with ``asset_name``."""
        return Measurement(asset_name=asset_name, datapoints=tuple(self._points))

    def __len__(self) -> int:
        return len(self._points)
