"""Session configuration models and loading."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import jsonschema

from modbus_south.errors import ConfigError
from modbus_south.register_map import KIND_ORDER, RegisterMap
from modbus_south.transport import PARITY_CODES

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent / "schemas" / "modbus_config.schema.json"

_INT_KEYS = ("port", "baud", "bits", "stopbits", "slave", "poll_interval_ms")
_FLOAT_KEYS = ("timeout",)


@dataclass(frozen=True)
class TransportConfig:
    """Connection parameters for one device link."""

    protocol: str
    address: str = ""
    port: int = 502
    device: str = ""
    baud: int = 9600
    parity: str = "N"
    bits: int = 8
    stopbits: int = 1
    timeout: float = 3.0


@dataclass(frozen=True)
class OutputConfig:
    """Downstream Kafka target used by the standalone entrypoint."""

    kafka_bootstrap: str
    topic: str


@dataclass(frozen=True)
class SessionConfig:
    """Complete configuration for one Modbus session."""

    transport: TransportConfig
    asset_name: str = "modbus"
    default_slave: int = 1
    register_map: Dict[str, Any] = field(default_factory=dict)
    poll_interval_ms: int = 1000
    output: Optional[OutputConfig] = None

    def transport_changed(self, other: "SessionConfig") -> bool:
        """True when ``other`` needs a different transport handle."""
        return self.transport != other.transport


class ConfigRepository:
    """
    Repository for loading session configuration from a JSON file.

    The host normally hands a parsed mapping straight to ``load_config``.
    """

    def __init__(self, path: str, schema_path: str | None = None) -> None:
        """Initialize with config file path and optional schema path."""
        self._path = Path(path)
        self._schema_path = Path(schema_path) if schema_path else SCHEMA_PATH

    def load(self) -> SessionConfig:
        """Load and validate session configuration."""
        if not self._path.exists():
            raise ConfigError(f"Config file not found: {self._path}")

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in config file: {exc}") from exc

        return load_config(raw, schema_path=self._schema_path)


def load_config(raw: Mapping[str, Any], schema_path: Path | None = None) -> SessionConfig:
    """Parse and validate a configuration mapping.

    Accepts category-style items (``{"type": ..., "value": ...}``) and
    string scalars as well as plain values.

    Raises:
        ConfigError: protocol missing or unknown, required connection
            parameter absent, or the document fails schema validation.
    """
    if not isinstance(raw, Mapping):
        raise ConfigError("Config must be a JSON object")

    values = _flatten(raw)
    if "protocol" not in values:
        raise ConfigError("Modbus missing protocol specification")

    values["map"] = _parse_map(values.get("map"))
    _coerce_scalars(values)
    _validate(values, schema_path or SCHEMA_PATH)

    protocol = values["protocol"]
    if protocol == "TCP" and not values.get("address"):
        raise ConfigError("Modbus TCP requires a non-empty 'address'")
    if protocol == "RTU" and not values.get("device"):
        raise ConfigError("Modbus RTU requires a non-empty 'device'")

    transport = TransportConfig(
        protocol=protocol,
        address=values.get("address", ""),
        port=values.get("port", 502),
        device=values.get("device", ""),
        baud=values.get("baud", 9600),
        parity=_parity_code(values.get("parity", "none")),
        bits=values.get("bits", 8),
        stopbits=values.get("stopbits", 1),
        timeout=values.get("timeout", 3.0),
    )

    output = None
    if "output" in values:
        output = OutputConfig(
            kafka_bootstrap=values["output"]["kafka_bootstrap"],
            topic=values["output"]["topic"],
        )

    return SessionConfig(
        transport=transport,
        asset_name=values.get("asset", "modbus"),
        default_slave=values.get("slave", 1),
        register_map=values["map"],
        poll_interval_ms=values.get("poll_interval_ms", 1000),
        output=output,
    )


def build_register_map(description: Mapping[str, Any], default_slave: int) -> RegisterMap:
    """Build a register map from a map description.

    ``values`` entries go to the per-slave grouping, one item per kind key
    present; the flat ``coils``/``inputs``/``registers``/``inputRegisters``
    objects go to the legacy grouping.
    """
    register_map = RegisterMap()

    for entry in description.get("values", []):
        slave = entry.get("slave", default_slave)
        scale = entry.get("scale", 1.0)
        offset = entry.get("offset", 0.0)
        for kind in KIND_ORDER:
            if kind.value in entry:
                register_map.add(kind, slave, entry["name"], entry[kind.value], scale, offset)

    for kind in KIND_ORDER:
        for name, address in description.get(kind.legacy_key, {}).items():
            register_map.add_legacy(kind, name, address)

    return register_map


def _flatten(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Collapse category items to their configured value."""
    values: Dict[str, Any] = {}
    for key, item in raw.items():
        if isinstance(item, Mapping) and "type" in item and ("value" in item or "default" in item):
            item = item["value"] if "value" in item else item["default"]
        values[key] = item

    if "stopBits" in values:
        values.setdefault("stopbits", values.pop("stopBits"))
    return values


def _parse_map(value: Any) -> Dict[str, Any]:
    if value is None or value == "":
        return {}
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in register map: {exc}") from exc
    if not isinstance(value, Mapping):
        raise ConfigError("Register map must be a JSON object")
    return dict(value)


def _coerce_scalars(values: Dict[str, Any]) -> None:
    for keys, cast in ((_INT_KEYS, int), (_FLOAT_KEYS, float)):
        for key in keys:
            value = values.get(key)
            if not isinstance(value, str):
                continue
            try:
                values[key] = cast(value.strip())
            except ValueError as exc:
                raise ConfigError(f"Invalid value for '{key}': {value!r}") from exc


def _validate(values: Dict[str, Any], schema_path: Path) -> None:
    """Validate config against the JSON Schema."""
    try:
        schema = json.loads(schema_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Unable to load config schema {schema_path}: {exc}") from exc

    try:
        jsonschema.validate(instance=values, schema=schema)
    except jsonschema.ValidationError as exc:
        location = "/".join(str(part) for part in exc.absolute_path) or "<root>"
        raise ConfigError(f"Config schema validation failed at {location}: {exc.message}") from exc


def _parity_code(value: str) -> str:
    if value.lower() in PARITY_CODES:
        return PARITY_CODES[value.lower()]
    if value.upper() in PARITY_CODES.values():
        return value.upper()
    logger.warning("Unknown parity %r, using none", value)
    return "N"
