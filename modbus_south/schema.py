"""Serialization strategy for measurements sent downstream."""

import json
from typing import Dict

from modbus_south.measurement import Measurement


class SchemaManager:
    """
    Handles the downstream message format.

    Readings keep poll order and duplicates.
    """

    @staticmethod
    def to_message(measurement: Measurement) -> Dict[str, object]:
        """Map a measurement to a telemetry message."""
        return {
            "asset": measurement.asset_name,
            "timestamp": measurement.timestamp.isoformat(),
            "readings": [{"name": name, "value": value} for name, value in measurement.items()],
        }

    def encode(self, measurement: Measurement) -> bytes:
        """Serialize measurement into bytes."""
        return json.dumps(self.to_message(measurement)).encode("utf-8")
