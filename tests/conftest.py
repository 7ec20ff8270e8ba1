# tests/conftest.py
"""Shared pytest fixtures for Modbus south tests.

The simulated device stands in for a pymodbus sync client: it answers
single-address reads from per-slave tables and can be told to refuse
connections, return error responses, or lose the link.
"""

from typing import Dict, List, Set, Tuple
from unittest.mock import patch

import pytest
from pymodbus.exceptions import ConnectionException


class FakeResponse:
    """Minimal pymodbus read response."""

    def __init__(self, bits=None, registers=None, error: bool = False):
        self.bits = bits or []
        self.registers = registers or []
        self._error = error

    def isError(self) -> bool:  # noqa: N802
        return self._error

    def __str__(self) -> str:
        return "ExceptionResponse(illegal data address)"


class FakeModbusClient:
    """In-memory Modbus device addressed by (slave, address)."""

    def __init__(self):
        self.coils: Dict[int, Dict[int, bool]] = {}
        self.discrete_inputs: Dict[int, Dict[int, bool]] = {}
        self.holding_registers: Dict[int, Dict[int, int]] = {}
        self.input_registers: Dict[int, Dict[int, int]] = {}
        self.connect_result = True
        self.broken = False
        self.calls: List[Tuple[str, int, int]] = []
        self.connect_calls = 0
        self.close_calls = 0
        self.io_errors: Set[Tuple[str, int, int]] = set()

    # lifecycle
    def connect(self) -> bool:
        self.connect_calls += 1
        if self.connect_result:
            self.broken = False
        return self.connect_result

    def close(self) -> None:
        self.close_calls += 1

    # reads
    def _read(self, method: str, table: Dict[int, Dict[int, object]], address: int, device_id: int, bit: bool):
        self.calls.append((method, address, device_id))
        if self.broken:
            raise ConnectionException("[Errno 32] Broken pipe")
        if (method, address, device_id) in self.io_errors:
            raise ConnectionResetError(104, "Connection reset by peer")
        values = table.get(device_id, {})
        if address not in values:
            return FakeResponse(error=True)
        if bit:
            return FakeResponse(bits=[bool(values[address])] + [False] * 7)
        return FakeResponse(registers=[values[address]])

    def read_coils(self, address, count=1, device_id=1):
        return self._read("read_coils", self.coils, address, device_id, True)

    def read_discrete_inputs(self, address, count=1, device_id=1):
        return self._read("read_discrete_inputs", self.discrete_inputs, address, device_id, True)

    def read_holding_registers(self, address, count=1, device_id=1):
        return self._read("read_holding_registers", self.holding_registers, address, device_id, False)

    def read_input_registers(self, address, count=1, device_id=1):
        return self._read("read_input_registers", self.input_registers, address, device_id, False)


@pytest.fixture
def device() -> FakeModbusClient:
    """Simulated device answering every configured address."""
    return FakeModbusClient()


@pytest.fixture
def patched_clients(device):
    """Route both pymodbus client classes to the simulated device."""
    with patch("modbus_south.transport.ModbusTcpClient", return_value=device) as tcp, patch(
        "modbus_south.transport.ModbusSerialClient", return_value=device
    ) as rtu:
        yield tcp, rtu


@pytest.fixture
def tcp_config() -> dict:
    """Configuration from the plugin's default map, over TCP."""
    return {
        "asset": "plant",
        "protocol": "TCP",
        "address": "127.0.0.1",
        "port": 2222,
        "slave": 1,
        "map": {
            "values": [
                {"name": "temperature", "slave": 1, "register": 0, "scale": 0.1, "offset": 0.0},
                {"name": "humidity", "register": 1},
            ]
        },
    }
