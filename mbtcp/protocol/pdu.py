# mbtcp/protocol/pdu.py
"""
Function-specific PDU payloads.

Request side (client builds, server parses) and response side (server
builds, client parses) for the eight supported function codes.

Server-side parsers raise IllegalDataValue on malformed payloads because
the request was framed correctly but its data field is not acceptable.
Client-side parsers raise ResponseMismatch because the server answered
something other than what was asked.

Payload layouts:
    FC01/02 request:   address(2) quantity(2)
    FC01/02 response:  byte_count(1) bits (LSB first, zero padded)
    FC03/04 request:   address(2) quantity(2)
    FC03/04 response:  byte_count(1) registers (2 bytes each)
    FC05/06 request:   address(2) value(2)        response: echo
    FC15 request:      address(2) quantity(2) byte_count(1) bits
    FC16 request:      address(2) quantity(2) byte_count(1) registers
    FC15/16 response:  address(2) quantity(2)
"""

import struct
from collections.abc import Sequence

from mbtcp.protocol.errors import IllegalDataValue, ResponseMismatch
from mbtcp.protocol.frame import PDU
from mbtcp.protocol.function_codes import EXCEPTION_FLAG, FunctionCode

__all__ = [
    "COIL_ON",
    "COIL_OFF",
    "pack_bits",
    "unpack_bits",
    "pack_registers",
    "unpack_registers",
    "read_request",
    "write_single_coil_request",
    "write_single_register_request",
    "write_multiple_coils_request",
    "write_multiple_registers_request",
    "parse_read_request",
    "parse_write_single_request",
    "parse_write_multiple_coils_request",
    "parse_write_multiple_registers_request",
    "read_bits_response",
    "read_registers_response",
    "write_single_response",
    "write_multiple_response",
    "exception_response",
    "parse_read_bits_response",
    "parse_read_registers_response",
    "parse_write_response",
]

COIL_ON = 0xFF00
COIL_OFF = 0x0000

_ADDRESS_QUANTITY = struct.Struct(">HH")
_ADDRESS_QUANTITY_COUNT = struct.Struct(">HHB")


# ----------------------------------------------------------------
# Value packing
# ----------------------------------------------------------------


def pack_bits(values: Sequence[int]) -> bytes:
    """Pack 0/1 values into bytes, 8 per byte, least significant bit first."""
    packed = bytearray((len(values) + 7) // 8)
    for i, value in enumerate(values):
        if value:
            packed[i // 8] |= 1 << (i % 8)
    return bytes(packed)


def unpack_bits(data: bytes, count: int) -> list[int]:
    """Unpack the first count bits from LSB-first packed bytes."""
    return [(data[i // 8] >> (i % 8)) & 1 for i in range(count)]


def pack_registers(values: Sequence[int]) -> bytes:
    return struct.pack(f">{len(values)}H", *values)


def unpack_registers(data: bytes) -> list[int]:
    return list(struct.unpack(f">{len(data) // 2}H", data))


def _check_field(name: str, value: int) -> None:
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"{name} must be 0-65535, got {value}")


# ----------------------------------------------------------------
# Requests (client side)
# ----------------------------------------------------------------


def read_request(function_code: FunctionCode, address: int, quantity: int) -> PDU:
    """Build a FC01-04 read request.

    Quantity is only checked against the 16-bit field width; protocol
    maxima are the server's decision.
    """
    _check_field("address", address)
    _check_field("quantity", quantity)
    return PDU(function_code, _ADDRESS_QUANTITY.pack(address, quantity))


def write_single_coil_request(address: int, value: int | bool) -> PDU:
    _check_field("address", address)
    return PDU(
        FunctionCode.WRITE_SINGLE_COIL,
        _ADDRESS_QUANTITY.pack(address, COIL_ON if value else COIL_OFF),
    )


def write_single_register_request(address: int, value: int) -> PDU:
    _check_field("address", address)
    _check_field("value", value)
    return PDU(FunctionCode.WRITE_SINGLE_REGISTER, _ADDRESS_QUANTITY.pack(address, value))


def write_multiple_coils_request(address: int, values: Sequence[int | bool]) -> PDU:
    _check_field("address", address)
    if not values:
        raise ValueError("values cannot be empty")
    packed = pack_bits([1 if v else 0 for v in values])
    if len(packed) > 0xFF:
        raise ValueError(f"Too many coils for one request: {len(values)}")
    return PDU(
        FunctionCode.WRITE_MULTIPLE_COILS,
        _ADDRESS_QUANTITY_COUNT.pack(address, len(values), len(packed)) + packed,
    )


def write_multiple_registers_request(address: int, values: Sequence[int]) -> PDU:
    _check_field("address", address)
    if not values:
        raise ValueError("values cannot be empty")
    for value in values:
        _check_field("value", value)
    byte_count = len(values) * 2
    if byte_count > 0xFF:
        raise ValueError(f"Too many registers for one request: {len(values)}")
    return PDU(
        FunctionCode.WRITE_MULTIPLE_REGISTERS,
        _ADDRESS_QUANTITY_COUNT.pack(address, len(values), byte_count)
        + pack_registers(values),
    )


# ----------------------------------------------------------------
# Request parsing (server side)
# ----------------------------------------------------------------


def parse_read_request(data: bytes) -> tuple[int, int]:
    """Return (address, quantity) from a FC01-04 request payload."""
    if len(data) != _ADDRESS_QUANTITY.size:
        raise IllegalDataValue()
    return _ADDRESS_QUANTITY.unpack(data)


def parse_write_single_request(data: bytes) -> tuple[int, int]:
    """Return (address, raw value) from a FC05/06 request payload."""
    if len(data) != _ADDRESS_QUANTITY.size:
        raise IllegalDataValue()
    return _ADDRESS_QUANTITY.unpack(data)


def parse_write_multiple_coils_request(data: bytes) -> tuple[int, int, list[int]]:
    """Return (address, quantity, values) from a FC15 request payload."""
    address, quantity, byte_count = _parse_multiple_header(data)
    if byte_count != (quantity + 7) // 8:
        raise IllegalDataValue()
    return address, quantity, unpack_bits(data[_ADDRESS_QUANTITY_COUNT.size :], quantity)


def parse_write_multiple_registers_request(data: bytes) -> tuple[int, int, list[int]]:
    """Return (address, quantity, values) from a FC16 request payload."""
    address, quantity, byte_count = _parse_multiple_header(data)
    if byte_count != quantity * 2:
        raise IllegalDataValue()
    return address, quantity, unpack_registers(data[_ADDRESS_QUANTITY_COUNT.size :])


def _parse_multiple_header(data: bytes) -> tuple[int, int, int]:
    if len(data) < _ADDRESS_QUANTITY_COUNT.size:
        raise IllegalDataValue()
    address, quantity, byte_count = _ADDRESS_QUANTITY_COUNT.unpack_from(data)
    if len(data) - _ADDRESS_QUANTITY_COUNT.size != byte_count:
        raise IllegalDataValue()
    return address, quantity, byte_count


# ----------------------------------------------------------------
# Responses (server side)
# ----------------------------------------------------------------


def read_bits_response(function_code: int, values: Sequence[int]) -> PDU:
    packed = pack_bits(values)
    return PDU(function_code, bytes((len(packed),)) + packed)


def read_registers_response(function_code: int, values: Sequence[int]) -> PDU:
    return PDU(function_code, bytes((len(values) * 2,)) + pack_registers(values))


def write_single_response(function_code: int, address: int, value: int) -> PDU:
    return PDU(function_code, _ADDRESS_QUANTITY.pack(address, value))


def write_multiple_response(function_code: int, address: int, quantity: int) -> PDU:
    return PDU(function_code, _ADDRESS_QUANTITY.pack(address, quantity))


def exception_response(function_code: int, exception_code: int) -> PDU:
    """Exception PDU: (function code | 0x80) + exception code."""
    return PDU((function_code | EXCEPTION_FLAG) & 0xFF, bytes((exception_code,)))


# ----------------------------------------------------------------
# Response parsing (client side)
# ----------------------------------------------------------------


def parse_read_bits_response(data: bytes, quantity: int) -> list[int]:
    byte_count = (quantity + 7) // 8
    if not data or data[0] != byte_count or len(data) != byte_count + 1:
        raise ResponseMismatch(
            f"Expected {byte_count} data bytes for {quantity} bits, got {len(data) - 1 if data else 0}",
            response=data,
        )
    return unpack_bits(data[1:], quantity)


def parse_read_registers_response(data: bytes, quantity: int) -> list[int]:
    byte_count = quantity * 2
    if not data or data[0] != byte_count or len(data) != byte_count + 1:
        raise ResponseMismatch(
            f"Expected {byte_count} data bytes for {quantity} registers, got {len(data) - 1 if data else 0}",
            response=data,
        )
    return unpack_registers(data[1:])


def parse_write_response(data: bytes) -> tuple[int, int]:
    """Return (address, value or quantity) echoed by a FC05/06/15/16 response."""
    if len(data) != _ADDRESS_QUANTITY.size:
        raise ResponseMismatch(
            f"Write response must carry 4 data bytes, got {len(data)}",
            response=data,
        )
    return _ADDRESS_QUANTITY.unpack(data)
