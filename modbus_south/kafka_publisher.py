"""Kafka publisher for poll measurements."""

from __future__ import annotations

import logging
from typing import Optional

from kafka import KafkaProducer
from kafka.errors import KafkaError

from modbus_south.errors import PublishError
from modbus_south.measurement import Measurement
from modbus_south.schema import SchemaManager

logger = logging.getLogger(__name__)


class KafkaPublisher:
    """Publishes measurements to one Kafka topic; the producer is created on first use."""

    def __init__(self, bootstrap: str, topic: str, schema: Optional[SchemaManager] = None) -> None:
        self._bootstrap = bootstrap
        self._topic = topic
        self._schema = schema or SchemaManager()
        self._producer: Optional[KafkaProducer] = None

    def publish(self, measurement: Measurement) -> None:
        """Send one measurement and wait for delivery."""
        try:
            if self._producer is None:
                self._producer = KafkaProducer(
                    bootstrap_servers=self._bootstrap,
                    value_serializer=self._schema.encode,
                )
            self._producer.send(self._topic, measurement)
            self._producer.flush()
        except KafkaError as exc:
            raise PublishError(f"Kafka publish to {self._topic} failed: {exc}") from exc
        logger.debug("Published %d readings for %s", len(measurement), measurement.asset_name)

    def close(self) -> None:
        if self._producer is not None:
            self._producer.close()
            self._producer = None
