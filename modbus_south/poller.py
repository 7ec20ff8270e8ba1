"""Polling engine: one read/transform/aggregate cycle per call."""

from __future__ import annotations

import logging

from modbus_south.health import ConnectionState
from modbus_south.measurement import Measurement, MeasurementAssembler
from modbus_south.register_map import RegisterKind, RegisterMap
from modbus_south.transport import TransportHandle

logger = logging.getLogger(__name__)


class PollingEngine:
    """
    Reads a register map through a transport handle.

    Two states, Disconnected and Connected, held by the transport's
    ``connected`` flag. ``poll()`` reconnects when disconnected; a read
    that loses the link moves back to Disconnected.

    Cycle order:
    - legacy items on the default slave: coils, inputs, registers,
      input registers; raw integers, no transform
    - per-slave coils, slaves ascending; raw 0/1
    - per-slave inputs, registers, input registers; ``offset + raw * scale``
    """

    def __init__(
        self,
        transport: TransportHandle,
        register_map: RegisterMap,
        asset_name: str = "modbus",
        default_slave: int = 1,
    ) -> None:
        self.transport = transport
        self.register_map = register_map
        self.asset_name = asset_name
        self.default_slave = default_slave

    @property
    def state(self) -> ConnectionState:
        if self.transport.connected:
            return ConnectionState.CONNECTED
        return ConnectionState.DISCONNECTED

    def poll(self) -> Measurement:
        """Run one poll cycle and return its measurement."""
        if self.state is ConnectionState.DISCONNECTED:
            if not self.transport.connect():
                logger.error("Failed to connect to Modbus device %s", self.transport.describe())
                return Measurement.failed()

        assembler = MeasurementAssembler()

        self.transport.select_slave(self.default_slave)
        for item in self.register_map.legacy_items():
            raw = self.transport.read(item.kind, item.address)
            if raw is not None:
                assembler.append(item.name, int(raw))

        for kind, slave, items in self.register_map.slave_groups():
            self.transport.select_slave(slave)
            for item in items:
                raw = self.transport.read(kind, item.address)
                if raw is None:
                    continue
                if kind is RegisterKind.COIL:
                    assembler.append(item.name, int(raw))
                else:
                    assembler.append(item.name, item.transform(int(raw)))

        if self.state is ConnectionState.DISCONNECTED:
            logger.warning("Modbus link lost during poll, %d datapoints read", len(assembler))
        return assembler.build(self.asset_name)
