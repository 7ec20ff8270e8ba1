"""Register map model: the named items polled from a Modbus device."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple


class RegisterKind(str, Enum):
    """Modbus data table an item is read from.

    Values match the per-entry keys of the register-map description.
    """

    COIL = "coil"
    DISCRETE_INPUT = "input"
    HOLDING_REGISTER = "register"
    INPUT_REGISTER = "inputRegister"

    @property
    def legacy_key(self) -> str:
        """Name of the flat name -> address object for this kind."""
        return _LEGACY_KEYS[self]

    @property
    def is_bit(self) -> bool:
        """True for the single-bit tables (coils and discrete inputs)."""
        return self in (RegisterKind.COIL, RegisterKind.DISCRETE_INPUT)


_LEGACY_KEYS = {
    RegisterKind.COIL: "coils",
    RegisterKind.DISCRETE_INPUT: "inputs",
    RegisterKind.HOLDING_REGISTER: "registers",
    RegisterKind.INPUT_REGISTER: "inputRegisters",
}

# Poll order for both groupings.
KIND_ORDER: Tuple[RegisterKind, ...] = (
    RegisterKind.COIL,
    RegisterKind.DISCRETE_INPUT,
    RegisterKind.HOLDING_REGISTER,
    RegisterKind.INPUT_REGISTER,
)


@dataclass(frozen=True)
class RegisterItem:
    """Single named, readable quantity.

    ``slave`` is None for legacy items, which are read from the session's
    default slave.
    """

    name: str
    kind: RegisterKind
    address: int
    slave: Optional[int] = None
    scale: float = 1.0
    offset: float = 0.0

    @property
    def is_identity(self) -> bool:
        """True when the linear transform leaves raw values unchanged."""
        return self.scale == 1.0 and self.offset == 0.0

    def transform(self, raw: int) -> float:
        """Apply ``offset + raw * scale``."""
        return self.offset + raw * self.scale


class RegisterMap:
    """
    Items to poll, held in two groupings at once.

    - legacy: one flat list per kind, read from the default slave with no
      transform (configurations predating multi-slave support)
    - per slave: slave id -> list of items, per kind

    Both groupings are read on every poll. An item added to both shows up
    twice in the output; duplicates are never merged or rejected.
    """

    def __init__(self) -> None:
        """Initialize an empty map."""
        self._legacy: Dict[RegisterKind, List[RegisterItem]] = {kind: [] for kind in KIND_ORDER}
        self._slaves: Dict[RegisterKind, Dict[int, List[RegisterItem]]] = {kind: {} for kind in KIND_ORDER}

    # Multi-slave form

    def add(
        self,
        kind: RegisterKind,
        slave: int,
        name: str,
        address: int,
        scale: float = 1.0,
        offset: float = 0.0,
    ) -> RegisterItem:
        """Append an item to the per-slave grouping for ``kind``."""
        item = RegisterItem(
            name=name,
            kind=kind,
            address=int(address),
            slave=int(slave),
            scale=float(scale),
            offset=float(offset),
        )
        self._slaves[kind].setdefault(item.slave, []).append(item)
        return item

    def add_coil(self, slave: int, name: str, address: int, scale: float = 1.0, offset: float = 0.0) -> RegisterItem:
        return self.add(RegisterKind.COIL, slave, name, address, scale, offset)

    def add_input(self, slave: int, name: str, address: int, scale: float = 1.0, offset: float = 0.0) -> RegisterItem:
        return self.add(RegisterKind.DISCRETE_INPUT, slave, name, address, scale, offset)

    def add_register(self, slave: int, name: str, address: int, scale: float = 1.0, offset: float = 0.0) -> RegisterItem:
        return self.add(RegisterKind.HOLDING_REGISTER, slave, name, address, scale, offset)

    def add_input_register(
        self, slave: int, name: str, address: int, scale: float = 1.0, offset: float = 0.0
    ) -> RegisterItem:
        return self.add(RegisterKind.INPUT_REGISTER, slave, name, address, scale, offset)

    # Legacy flat form

    def add_legacy(self, kind: RegisterKind, name: str, address: int) -> RegisterItem:
        """Append an item to the flat default-slave list for ``kind``."""
        item = RegisterItem(name=name, kind=kind, address=int(address))
        self._legacy[kind].append(item)
        return item

    def add_legacy_coil(self, name: str, address: int) -> RegisterItem:
        return self.add_legacy(RegisterKind.COIL, name, address)

    def add_legacy_input(self, name: str, address: int) -> RegisterItem:
        return self.add_legacy(RegisterKind.DISCRETE_INPUT, name, address)

    def add_legacy_register(self, name: str, address: int) -> RegisterItem:
        return self.add_legacy(RegisterKind.HOLDING_REGISTER, name, address)

    def add_legacy_input_register(self, name: str, address: int) -> RegisterItem:
        return self.add_legacy(RegisterKind.INPUT_REGISTER, name, address)

    # Iteration

    def legacy_items(self) -> Iterator[RegisterItem]:
        """Yield flat items: coils, inputs, registers, input registers."""
        for kind in KIND_ORDER:
            yield from self._legacy[kind]

    def slave_groups(self) -> Iterator[Tuple[RegisterKind, int, List[RegisterItem]]]:
        """Yield ``(kind, slave, items)`` in kind order, slaves ascending."""
        for kind in KIND_ORDER:
            groups = self._slaves[kind]
            for slave in sorted(groups):
                yield kind, slave, list(groups[slave])

    def __iter__(self) -> Iterator[RegisterItem]:
        """Yield every item in poll order."""
        yield from self.legacy_items()
        for _, _, items in self.slave_groups():
            yield from items

    def __len__(self) -> int:
        legacy = sum(len(items) for items in self._legacy.values())
        grouped = sum(len(items) for groups in self._slaves.values() for items in groups.values())
        return legacy + grouped

    def slaves(self) -> List[int]:
        """Return every slave id referenced by the per-slave grouping."""
        ids = set()
        for groups in self._slaves.values():
            ids.update(groups)
        return sorted(ids)

    def __repr__(self) -> str:
        return f"RegisterMap(items={len(self)}, slaves={self.slaves()})"
