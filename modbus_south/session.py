"""Modbus session facade behind the plugin handle."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Union

from modbus_south.config import SessionConfig, build_register_map, load_config
from modbus_south.errors import InvalidHandleError
from modbus_south.health import HealthReporter
from modbus_south.measurement import Measurement
from modbus_south.poller import PollingEngine
from modbus_south.transport import TransportHandle, create_transport

logger = logging.getLogger(__name__)


class ModbusSession:
    """
    Facade for one polled device.

    Responsibilities:
    - Own the transport handle, register map and polling engine
    - Attempt the initial connect
    - Rebuild on reconfigure, keeping the transport when its settings match
    - Release everything on shutdown
    """

    def __init__(self, config: Union[SessionConfig, Mapping[str, Any]]) -> None:
        """Initialize session; a failed initial connect is not fatal."""
        self.config = _as_session_config(config)
        self.health = HealthReporter()
        self.closed = False
        self.transport: TransportHandle = create_transport(self.config.transport)
        self.engine = self._build_engine(self.transport)
        self.transport.connect()

    def _build_engine(self, transport: TransportHandle) -> PollingEngine:
        register_map = build_register_map(self.config.register_map, self.config.default_slave)
        logger.info("Modbus register map loaded: %r", register_map)
        return PollingEngine(
            transport=transport,
            register_map=register_map,
            asset_name=self.config.asset_name,
            default_slave=self.config.default_slave,
        )

    def poll(self) -> Measurement:
        """Run one poll cycle."""
        self._ensure_open()
        measurement = self.engine.poll()
        self.health.record(len(measurement), failed=measurement.is_failed)
        return measurement

    def reconfigure(self, config: Union[SessionConfig, Mapping[str, Any]]) -> None:
        """Apply a new configuration without replacing the session."""
        self._ensure_open()
        new_config = _as_session_config(config)
        transport_changed = self.config.transport_changed(new_config)
        self.config = new_config

        if transport_changed:
            logger.info("Modbus transport settings changed, reopening link")
            self.transport.disconnect()
            self.transport = create_transport(new_config.transport)
            self.engine = self._build_engine(self.transport)
            self.transport.connect()
        else:
            self.engine = self._build_engine(self.transport)

    def shutdown(self) -> None:
        """Close the transport and drop the register map."""
        self._ensure_open()
        self.transport.disconnect()
        self.closed = True
        logger.info("Modbus session for %s shut down", self.config.asset_name)

    def health_snapshot(self) -> Dict[str, object]:
        """Return health snapshot for the session."""
        snapshot = self.health.snapshot(self.engine.state)
        snapshot["asset"] = self.config.asset_name
        snapshot["transport"] = self.transport.describe()
        return snapshot

    def _ensure_open(self) -> None:
        if self.closed:
            raise InvalidHandleError("Modbus session has been shut down")


def _as_session_config(config: Union[SessionConfig, Mapping[str, Any]]) -> SessionConfig:
    if isinstance(config, SessionConfig):
        return config
    return load_config(config)
