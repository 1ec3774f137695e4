# mbtcp/state/data_store.py
"""
Addressable data store for the Modbus server.

Four independently addressed, zero-based, bounds-checked tables:

    coils               1 bit, read/write
    discrete_inputs     1 bit, read-only from the protocol's perspective
    holding_registers   16-bit unsigned, read/write
    input_registers     16-bit unsigned, read-only from the protocol's perspective

All four tables share one lock owned by the DataStore, so every operation
(a single coil write, a multi-register write, a multi-value read) is atomic
with respect to every other operation on the store. The lock is a thread
lock so the store stays consistent when touched outside the event loop.

Example:
    >>> store = DataStore(holding_registers=[1, 2, 3, 4, 5, 6, 7, 8, 9])
    >>> store.holding_registers.write(3, [1, 2, 3, 4, 5])
    >>> store.holding_registers.snapshot()
    [1, 2, 3, 1, 2, 3, 4, 5, 9]
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence

from mbtcp.security.logging_system import get_logger

__all__ = ["OutOfRange", "Table", "DataStore", "BIT_RANGE", "REGISTER_RANGE"]

logger = get_logger(__name__)

BIT_RANGE = (0, 1)
REGISTER_RANGE = (0, 0xFFFF)


class OutOfRange(IndexError):
    """Address range falls outside a table. Surfaces as IllegalDataAddress."""

    def __init__(self, table: str, address: int, quantity: int, length: int):
        super().__init__(
            f"{table}: range {address}+{quantity} outside table of length {length}"
        )
        self.table = table
        self.address = address
        self.quantity = quantity
        self.length = length


class Table:
    """
    One addressable table of bits or registers.

    Never hands out its backing list; reads return copies.
    """

    def __init__(
        self,
        name: str,
        value_range: tuple[int, int],
        lock: threading.Lock,
        values: Iterable[int] = (),
    ):
        self.name = name
        self.value_range = value_range
        self._lock = lock
        self._values: list[int] = []
        self._replace(values)

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)

    def __repr__(self) -> str:
        return f"Table({self.name!r}, length={len(self)})"

    def read(self, address: int, quantity: int) -> list[int]:
        """Read quantity values starting at address.

        Raises:
            OutOfRange: If address < 0 or address + quantity exceeds the table
        """
        with self._lock:
            self._check_range(address, quantity)
            return self._values[address : address + quantity]

    def write(self, address: int, values: Sequence[int]) -> None:
        """Write values starting at address.

        Raises:
            OutOfRange: If the range falls outside the table
            ValueError: If a value is outside the table's domain
        """
        self._check_values(values)
        with self._lock:
            self._check_range(address, len(values))
            self._values[address : address + len(values)] = [int(v) for v in values]

    def load(self, values: Iterable[int]) -> None:
        """Replace the whole table contents in place. Length may change."""
        with self._lock:
            self._replace(values)
            count = len(self._values)
        logger.debug(f"{self.name}: loaded {count} values")

    def snapshot(self) -> list[int]:
        with self._lock:
            return list(self._values)

    def _replace(self, values: Iterable[int]) -> None:
        new_values = [int(v) for v in values]
        self._check_values(new_values)
        self._values = new_values

    def _check_range(self, address: int, quantity: int) -> None:
        if address < 0 or quantity < 0 or address + quantity > len(self._values):
            raise OutOfRange(self.name, address, quantity, len(self._values))

    def _check_values(self, values: Sequence[int]) -> None:
        low, high = self.value_range
        for value in values:
            if not low <= int(value) <= high:
                raise ValueError(
                    f"{self.name} values must be {low}-{high}, got {value}"
                )


class DataStore:
    """
    The server's shared memory.

    Created once with caller-supplied contents and mutated element-wise for
    the server's lifetime; never replaced.

    Args:
        coils: Initial coil values (0/1, bools accepted)
        discrete_inputs: Initial discrete input values (0/1)
        holding_registers: Initial holding register values (0-65535)
        input_registers: Initial input register values (0-65535)
    """

    def __init__(
        self,
        coils: Iterable[int] = (),
        discrete_inputs: Iterable[int] = (),
        holding_registers: Iterable[int] = (),
        input_registers: Iterable[int] = (),
    ):
        self.lock = threading.Lock()
        self.coils = Table("coils", BIT_RANGE, self.lock, coils)
        self.discrete_inputs = Table("discrete_inputs", BIT_RANGE, self.lock, discrete_inputs)
        self.holding_registers = Table(
            "holding_registers", REGISTER_RANGE, self.lock, holding_registers
        )
        self.input_registers = Table(
            "input_registers", REGISTER_RANGE, self.lock, input_registers
        )

    @classmethod
    def with_sizes(
        cls,
        num_coils: int = 0,
        num_discrete_inputs: int = 0,
        num_holding_registers: int = 0,
        num_input_registers: int = 0,
    ) -> DataStore:
        """Create a zero-filled store of the given table sizes."""
        for name, size in (
            ("num_coils", num_coils),
            ("num_discrete_inputs", num_discrete_inputs),
            ("num_holding_registers", num_holding_registers),
            ("num_input_registers", num_input_registers),
        ):
            if size < 0:
                raise ValueError(f"{name} must be >= 0, got {size}")

        return cls(
            coils=[0] * num_coils,
            discrete_inputs=[0] * num_discrete_inputs,
            holding_registers=[0] * num_holding_registers,
            input_registers=[0] * num_input_registers,
        )

    def tables(self) -> dict[str, Table]:
        return {
            "coils": self.coils,
            "discrete_inputs": self.discrete_inputs,
            "holding_registers": self.holding_registers,
            "input_registers": self.input_registers,
        }

    def get_summary(self) -> dict[str, int]:
        """Table sizes keyed by table name."""
        return {name: len(table) for name, table in self.tables().items()}
