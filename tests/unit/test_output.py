# tests/unit/test_output.py
"""Tests for the downstream message format, Kafka publisher, health server and entrypoint config."""

import json
import threading
from datetime import datetime, timezone
from unittest.mock import Mock, patch
from urllib.error import HTTPError
from urllib.request import urlopen

import pytest
from kafka.errors import KafkaTimeoutError

from modbus_south.errors import ConfigError, PublishError
from modbus_south.health_server import HealthServer
from modbus_south.kafka_publisher import KafkaPublisher
from modbus_south.main import read_config
from modbus_south.measurement import Datapoint, Measurement
from modbus_south.schema import SchemaManager


@pytest.fixture
def measurement():
    return Measurement(
        asset_name="plant",
        datapoints=(Datapoint("temperature", 23.5), Datapoint("humidity", 55), Datapoint("humidity", 56)),
        timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    )


# ================================================================
# SCHEMA TESTS
# ================================================================
class TestSchemaManager:
    def test_to_message(self, measurement):
        message = SchemaManager.to_message(measurement)

        assert message == {
            "asset": "plant",
            "timestamp": "2024-05-01T12:00:00+00:00",
            "readings": [
                {"name": "temperature", "value": 23.5},
                {"name": "humidity", "value": 55},
                {"name": "humidity", "value": 56},
            ],
        }

    def test_encode_is_utf8_json(self, measurement):
        payload = SchemaManager().encode(measurement)

        assert json.loads(payload.decode("utf-8"))["asset"] == "plant"


# ================================================================
# KAFKA PUBLISHER TESTS
# ================================================================
class TestKafkaPublisher:
    @patch("modbus_south.kafka_publisher.KafkaProducer")
    def test_publish_creates_producer_once(self, producer_class, measurement):
        publisher = KafkaPublisher("localhost:9092", "telemetry")

        publisher.publish(measurement)
        publisher.publish(measurement)

        producer_class.assert_called_once()
        assert producer_class.call_args.kwargs["bootstrap_servers"] == "localhost:9092"
        producer = producer_class.return_value
        producer.send.assert_called_with("telemetry", measurement)
        assert producer.flush.call_count == 2

    @patch("modbus_south.kafka_publisher.KafkaProducer")
    def test_serializer_encodes_measurement(self, producer_class, measurement):
        KafkaPublisher("localhost:9092", "telemetry").publish(measurement)

        serializer = producer_class.call_args.kwargs["value_serializer"]
        assert json.loads(serializer(measurement))["readings"][0]["name"] == "temperature"

    @patch("modbus_south.kafka_publisher.KafkaProducer")
    def test_kafka_error_wrapped(self, producer_class, measurement):
        producer_class.return_value.flush.side_effect = KafkaTimeoutError("flush timed out")
        publisher = KafkaPublisher("localhost:9092", "telemetry")

        with pytest.raises(PublishError, match="telemetry"):
            publisher.publish(measurement)

    @patch("modbus_south.kafka_publisher.KafkaProducer")
    def test_close(self, producer_class, measurement):
        publisher = KafkaPublisher("localhost:9092", "telemetry")
        publisher.publish(measurement)

        publisher.close()
        publisher.close()

        producer_class.return_value.close.assert_called_once()


# ================================================================
# HEALTH SERVER TESTS
# ================================================================
class TestHealthServer:
    @pytest.fixture
    def server(self):
        health = Mock(return_value={"status": "disconnected", "cycles": 2})
        server = HealthServer("127.0.0.1", 0, health)
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        yield server, health
        server.shutdown()
        server.server_close()

    def _url(self, server, path):
        host, port = server.server_address[:2]
        return f"http://{host}:{port}{path}"

    def test_health_returns_snapshot(self, server):
        srv, _ = server

        with urlopen(self._url(srv, "/health")) as response:
            body = json.loads(response.read())

        assert response.status == 200
        assert body == {"status": "disconnected", "cycles": 2}

    def test_ready_is_503_when_disconnected(self, server):
        srv, _ = server

        with pytest.raises(HTTPError) as exc_info:
            urlopen(self._url(srv, "/health/ready"))

        assert exc_info.value.code == 503

    def test_ready_when_connected(self, server):
        srv, health = server
        health.return_value = {"status": "connected"}

        with urlopen(self._url(srv, "/health/ready")) as response:
            assert response.status == 200

    def test_unknown_path(self, server):
        srv, _ = server

        with pytest.raises(HTTPError) as exc_info:
            urlopen(self._url(srv, "/metrics"))

        assert exc_info.value.code == 404


# ================================================================
# ENTRYPOINT CONFIG TESTS
# ================================================================
class TestReadConfig:
    def test_requires_env(self, monkeypatch):
        monkeypatch.delenv("MODBUS_CONFIG", raising=False)
        monkeypatch.delenv("MODBUS_CONFIG_JSON", raising=False)

        with pytest.raises(ConfigError, match="MODBUS_CONFIG"):
            read_config()

    def test_inline_json(self, monkeypatch, tcp_config):
        monkeypatch.delenv("MODBUS_CONFIG", raising=False)
        monkeypatch.setenv("MODBUS_CONFIG_JSON", json.dumps(tcp_config))

        assert read_config() == tcp_config

    def test_file_path(self, monkeypatch, tmp_path, tcp_config):
        path = tmp_path / "modbus.json"
        path.write_text(json.dumps(tcp_config), encoding="utf-8")
        monkeypatch.delenv("MODBUS_CONFIG_JSON", raising=False)
        monkeypatch.setenv("MODBUS_CONFIG", str(path))

        assert read_config() == tcp_config

    def test_unreadable_file(self, monkeypatch, tmp_path):
        monkeypatch.delenv("MODBUS_CONFIG_JSON", raising=False)
        monkeypatch.setenv("MODBUS_CONFIG", str(tmp_path / "missing.json"))

        with pytest.raises(ConfigError, match="Unable to read"):
            read_config()
