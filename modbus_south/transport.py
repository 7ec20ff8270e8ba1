"""Modbus transport handles using pymodbus sync clients.

Single-address reads only. No retries; reconnect policy belongs to the
polling engine.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Union

from pymodbus.client import ModbusSerialClient, ModbusTcpClient
from pymodbus.exceptions import ConnectionException, ModbusException

from modbus_south.register_map import RegisterKind

logger = logging.getLogger(__name__)

# Errors meaning the link is gone and must be reopened.
BROKEN_PIPE_ERRORS = (ConnectionException, ConnectionError)

_READ_METHODS: Dict[RegisterKind, str] = {
    RegisterKind.COIL: "read_coils",
    RegisterKind.DISCRETE_INPUT: "read_discrete_inputs",
    RegisterKind.HOLDING_REGISTER: "read_holding_registers",
    RegisterKind.INPUT_REGISTER: "read_input_registers",
}

PARITY_CODES = {"none": "N", "even": "E", "odd": "O"}


class TransportHandle:
    """
    Connection to one physical Modbus device.

    Owns the pymodbus client and the ``connected`` flag. Reads report
    failure by returning None; a broken-pipe class error also clears
    ``connected``.
    """

    transport_name = "modbus"

    def __init__(self, timeout: float = 3.0) -> None:
        """Initialize handle; the client is created on first connect."""
        self.timeout = timeout
        self.client: Optional[Union[ModbusTcpClient, ModbusSerialClient]] = None
        self.connected: bool = False
        self.slave: int = 1

    def _create_client(self) -> Union[ModbusTcpClient, ModbusSerialClient]:
        raise NotImplementedError

    def describe(self) -> str:
        """Human readable link description for logs."""
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def connect(self) -> bool:
        """Open the link once; log and return False on failure."""
        if self.client is None:
            self.client = self._create_client()
        else:
            # Drop any half-open socket left by a broken pipe.
            self.client.close()

        try:
            self.connected = bool(self.client.connect())
        except (ModbusException, OSError) as exc:
            logger.error("Failed to connect to %s: %s", self.describe(), exc)
            self.connected = False
            return False

        if self.connected:
            logger.info("%s connected %s", self.transport_name, self.describe())
        else:
            logger.error("Failed to connect to %s", self.describe())
        return self.connected

    def disconnect(self) -> None:
        """Close the link and forget the client."""
        if self.client is not None:
            self.client.close()
            self.client = None
        self.connected = False

    def select_slave(self, slave: int) -> None:
        """Address subsequent reads to ``slave``."""
        self.slave = int(slave)

    # ------------------------------------------------------------------
    # Single-address reads
    # ------------------------------------------------------------------
    def read_coil(self, address: int) -> Optional[bool]:
        return self.read(RegisterKind.COIL, address)

    def read_discrete_input(self, address: int) -> Optional[bool]:
        return self.read(RegisterKind.DISCRETE_INPUT, address)

    def read_holding_register(self, address: int) -> Optional[int]:
        return self.read(RegisterKind.HOLDING_REGISTER, address)

    def read_input_register(self, address: int) -> Optional[int]:
        return self.read(RegisterKind.INPUT_REGISTER, address)

    def read(self, kind: RegisterKind, address: int) -> Optional[Union[bool, int]]:
        """Issue one protocol read for ``address`` in the ``kind`` table."""
        if self.client is None:
            self.client = self._create_client()

        method = getattr(self.client, _READ_METHODS[kind])
        try:
            response = method(address, count=1, device_id=self.slave)
        except BROKEN_PIPE_ERRORS as exc:
            logger.warning(
                "Modbus read %s %d on slave %d: link lost (%s)", kind.value, address, self.slave, exc
            )
            self.connected = False
            return None
        except (ModbusException, OSError) as exc:
            logger.error("Modbus read %s %d on slave %d, %s", kind.value, address, self.slave, exc)
            return None

        if response.isError():
            logger.error("Modbus read %s %d on slave %d, %s", kind.value, address, self.slave, response)
            return None

        if kind.is_bit:
            return bool(response.bits[0])
        return int(response.registers[0])


class TcpTransport(TransportHandle):
    """Modbus TCP link to ``host:port``."""

    transport_name = "Modbus TCP"

    def __init__(self, host: str, port: int = 502, timeout: float = 3.0) -> None:
        super().__init__(timeout=timeout)
        self.host = host
        self.port = port

    def _create_client(self) -> ModbusTcpClient:
        return ModbusTcpClient(host=self.host, port=self.port, timeout=self.timeout)

    def describe(self) -> str:
        return f"{self.host}:{self.port}"


class RtuTransport(TransportHandle):
    """Modbus RTU link over a serial device."""

    transport_name = "Modbus RTU"

    def __init__(
        self,
        device: str,
        baudrate: int = 9600,
        parity: str = "N",
        bytesize: int = 8,
        stopbits: int = 1,
        timeout: float = 3.0,
    ) -> None:
        super().__init__(timeout=timeout)
        self.device = device
        self.baudrate = baudrate
        self.parity = parity
        self.bytesize = bytesize
        self.stopbits = stopbits

    def _create_client(self) -> ModbusSerialClient:
        return ModbusSerialClient(
            port=self.device,
            baudrate=self.baudrate,
            bytesize=self.bytesize,
            parity=self.parity,
            stopbits=self.stopbits,
            timeout=self.timeout,
        )

    def describe(self) -> str:
        return f"{self.device} ({self.baudrate} {self.bytesize}{self.parity}{self.stopbits})"


def create_transport(settings) -> TransportHandle:
    """Build the transport handle described by a ``TransportConfig``."""
    if settings.protocol == "TCP":
        return TcpTransport(host=settings.address, port=settings.port, timeout=settings.timeout)
    return RtuTransport(
        device=settings.device,
        baudrate=settings.baud,
        parity=settings.parity,
        bytesize=settings.bits,
        stopbits=settings.stopbits,
        timeout=settings.timeout,
    )
