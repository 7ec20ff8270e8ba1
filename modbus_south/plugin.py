"""
Host-facing plugin interface.

The host calls ``plugin_init`` once, ``plugin_poll`` on its own
schedule, ``plugin_reconfigure`` when the configuration changes and
``plugin_shutdown`` at the end.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Mapping

from modbus_south import __version__
from modbus_south.errors import InvalidHandleError
from modbus_south.measurement import Measurement
from modbus_south.session import ModbusSession

DEFAULT_MAP = {
    "values": [
        {"name": "temperature", "slave": 1, "register": 0, "scale": 0.1, "offset": 0.0},
        {"name": "humidity", "register": 1},
    ]
}

DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "plugin": {"description": "Modbus TCP and RTU south plugin", "type": "string", "default": "modbus"},
    "asset": {"description": "Asset name", "type": "string", "default": "modbus"},
    "protocol": {"description": "Protocol", "type": "enumeration", "default": "RTU", "options": ["RTU", "TCP"]},
    "address": {"description": "Address of Modbus TCP server", "type": "string", "default": "127.0.0.1"},
    "port": {"description": "Port of Modbus TCP server", "type": "integer", "default": "2222"},
    "device": {"description": "Device for Modbus RTU", "type": "string", "default": ""},
    "baud": {"description": "Baud rate of Modbus RTU", "type": "integer", "default": "9600"},
    "bits": {"description": "Number of data bits for Modbus RTU", "type": "integer", "default": "8"},
    "stopbits": {"description": "Number of stop bits for Modbus RTU", "type": "integer", "default": "1"},
    "parity": {"description": "Parity to use", "type": "string", "default": "none"},
    "slave": {"description": "The Modbus device default slave ID", "type": "integer", "default": "1"},
    "map": {"description": "Modbus register map", "type": "JSON", "default": json.dumps(DEFAULT_MAP)},
}

PLUGIN_INFO: Dict[str, Any] = {
    "name": "modbus",
    "version": __version__,
    "mode": "poll",
    "type": "south",
    "interface": "1.0.0",
    "config": DEFAULT_CONFIG,
}


def plugin_info() -> Dict[str, Any]:
    """Return the information about this plugin."""
    return PLUGIN_INFO


def plugin_init(config: Mapping[str, Any]) -> ModbusSession:
    """Create a session from configuration; raises ConfigError when invalid."""
    return ModbusSession(config)


def plugin_poll(handle: ModbusSession) -> Measurement:
    return _session(handle).poll()


def plugin_reconfigure(handle: ModbusSession, new_config: Mapping[str, Any]) -> ModbusSession:
    """Apply ``new_config`` to the existing session and return the same handle."""
    session = _session(handle)
    session.reconfigure(new_config)
    return session


def plugin_shutdown(handle: ModbusSession) -> None:
    _session(handle).shutdown()


def _session(handle: Any) -> ModbusSession:
    if not isinstance(handle, ModbusSession):
        raise InvalidHandleError("Bad plugin handle")
    if handle.closed:
        raise InvalidHandleError("Plugin handle has been shut down")
    return handle
