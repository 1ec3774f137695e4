# mbtcp/client/slave.py
"""
Typed request API for one unit id.

Obtained from ModbusTCPClient.with_slave(). Every method is one wire
request; protocol exceptions are raised as their typed ModbusException
(IllegalDataAddress, IllegalDataValue, ...). Use request() for the
non-raising ModbusResponse form.

Quantities are passed through untouched: the server owns the protocol
maxima. Only values that do not fit their wire fields raise ValueError.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from mbtcp.client.response import ModbusResponse
from mbtcp.protocol.errors import ResponseMismatch
from mbtcp.protocol.frame import PDU
from mbtcp.protocol.function_codes import FunctionCode
from mbtcp.protocol.pdu import (
    parse_read_bits_response,
    parse_read_registers_response,
    parse_write_response,
    read_request,
    write_multiple_coils_request,
    write_multiple_registers_request,
    write_single_coil_request,
    write_single_register_request,
)

if TYPE_CHECKING:
    from mbtcp.client.tcp_client import ModbusTCPClient

__all__ = ["Slave"]


class Slave:
    """
    One unit id reached through a shared client connection.

    Args:
        client: Connection the requests go through
        unit_id: Target unit id (0 = broadcast)
    """

    def __init__(self, client: ModbusTCPClient, unit_id: int):
        if not 0 <= unit_id <= 0xFF:
            raise ValueError(f"unit_id must be 0-255, got {unit_id}")
        self.client = client
        self.unit_id = unit_id

    def __repr__(self) -> str:
        return f"Slave(unit_id={self.unit_id}, {self.client!r})"

    # ----------------------------------------------------------------
    # Generic requests
    # ----------------------------------------------------------------

    async def request(self, pdu: PDU) -> ModbusResponse:
        """Send a PDU and return the correlated response without raising
        for protocol exceptions."""
        return await self.client.execute(self.unit_id, pdu)

    async def query(self, request: bytes) -> bytes:
        """Send raw PDU bytes (function code first) and return the response
        payload, raising the typed error for an exception response."""
        if not request:
            raise ValueError("request cannot be empty")
        response = await self.request(PDU.from_bytes(request))
        response.raise_for_exception()
        return response.data

    async def _call(self, pdu: PDU) -> ModbusResponse:
        response = await self.request(pdu)
        return response.raise_for_exception()

    # ----------------------------------------------------------------
    # Reads
    # ----------------------------------------------------------------

    async def read_coils(self, address: int, quantity: int) -> list[int]:
        """FC01. Returns 0/1 per coil."""
        response = await self._call(read_request(FunctionCode.READ_COILS, address, quantity))
        return parse_read_bits_response(response.data, quantity)

    async def read_discrete_inputs(self, address: int, quantity: int) -> list[int]:
        """FC02. Returns 0/1 per input."""
        response = await self._call(
            read_request(FunctionCode.READ_DISCRETE_INPUTS, address, quantity)
        )
        return parse_read_bits_response(response.data, quantity)

    async def read_holding_registers(self, address: int, quantity: int) -> list[int]:
        """FC03."""
        response = await self._call(
            read_request(FunctionCode.READ_HOLDING_REGISTERS, address, quantity)
        )
        return parse_read_registers_response(response.data, quantity)

    async def read_input_registers(self, address: int, quantity: int) -> list[int]:
        """FC04."""
        response = await self._call(
            read_request(FunctionCode.READ_INPUT_REGISTERS, address, quantity)
        )
        return parse_read_registers_response(response.data, quantity)

    async def read_coil(self, address: int) -> int:
        return (await self.read_coils(address, 1))[0]

    async def read_discrete_input(self, address: int) -> int:
        return (await self.read_discrete_inputs(address, 1))[0]

    async def read_holding_register(self, address: int) -> int:
        return (await self.read_holding_registers(address, 1))[0]

    async def read_input_register(self, address: int) -> int:
        return (await self.read_input_registers(address, 1))[0]

    # ----------------------------------------------------------------
    # Writes
    #
    # Each returns the (address, value) or (address, quantity) the server
    # echoed back. Coil values are echoed in wire form (0xFF00 / 0x0000).
    # ----------------------------------------------------------------

    async def write_single_coil(self, address: int, value: int | bool) -> tuple[int, int]:
        """FC05."""
        return await self._write(write_single_coil_request(address, value))

    async def write_single_register(self, address: int, value: int) -> tuple[int, int]:
        """FC06."""
        return await self._write(write_single_register_request(address, value))

    async def write_multiple_coils(
        self, address: int, values: Sequence[int | bool]
    ) -> tuple[int, int]:
        """FC15."""
        return await self._write(write_multiple_coils_request(address, values))

    async def write_multiple_registers(
        self, address: int, values: Sequence[int]
    ) -> tuple[int, int]:
        """FC16."""
        return await self._write(write_multiple_registers_request(address, values))

    write_coil = write_single_coil
    write_register = write_single_register
    write_coils = write_multiple_coils
    write_registers = write_multiple_registers

    async def _write(self, pdu: PDU) -> tuple[int, int]:
        response = await self._call(pdu)
        echoed = parse_write_response(response.data)

        # FC05/06 echo the whole request; FC15/16 echo address + quantity
        if echoed != parse_write_response(pdu.data[:4]):
            raise ResponseMismatch(
                f"Write response echoed {echoed}, request was {parse_write_response(pdu.data[:4])}",
                request=pdu.to_bytes(),
                response=response.pdu.to_bytes(),
            )
        return echoed
