"""Standalone Modbus south entrypoint."""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, Dict

from modbus_south.config import load_config
from modbus_south.errors import ConfigError
from modbus_south.health_server import HealthServer
from modbus_south.kafka_publisher import KafkaPublisher
from modbus_south.session import ModbusSession


def read_config() -> Dict[str, Any]:
    """Read raw configuration from MODBUS_CONFIG_JSON or MODBUS_CONFIG."""
    config_path = os.getenv("MODBUS_CONFIG")
    config_json = os.getenv("MODBUS_CONFIG_JSON")
    if not config_path and not config_json:
        raise ConfigError("MODBUS_CONFIG or MODBUS_CONFIG_JSON is required")

    try:
        if config_json:
            return json.loads(config_json)
        if config_path.strip().startswith("{"):
            return json.loads(config_path)
        return json.loads(Path(config_path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Unable to read Modbus config: {exc}") from exc


def main() -> None:
    """Application entrypoint: poll the device and publish to Kafka."""
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(read_config())
    session = ModbusSession(config)
    print(f"modbus_south started for {session.transport.describe()}", flush=True)

    health_host = os.getenv("HEALTH_HOST")
    health_port = os.getenv("HEALTH_PORT")
    if health_host and health_port:
        server = HealthServer(health_host, int(health_port), session.health_snapshot)
        threading.Thread(target=server.serve_forever, daemon=True).start()

    publisher = None
    if config.output is not None:
        publisher = KafkaPublisher(config.output.kafka_bootstrap, config.output.topic)

    try:
        while True:
            measurement = session.poll()
            if publisher is not None and len(measurement):
                publisher.publish(measurement)
                print(f"modbus_south published {len(measurement)} readings", flush=True)
            time.sleep(config.poll_interval_ms / 1000)
    except KeyboardInterrupt:
        print("modbus_south stopping", flush=True)
    finally:
        if publisher is not None:
            publisher.close()
        session.shutdown()


if __name__ == "__main__":
    main()
