# mbtcp/protocol/frame.py
"""
Modbus TCP frame codec.

Stateless serialisation of the Application Data Unit. Never touches a socket;
stream reading lives in mbtcp.network.transport.

MBAP Header Format (7 bytes):
    Transaction ID:  2 bytes (big-endian, client-assigned correlation token)
    Protocol ID:     2 bytes (always 0x0000 for Modbus)
    Length:          2 bytes (byte count of Unit ID + PDU)
    Unit ID:         1 byte  (0 = broadcast, 1-247 = slave address)

PDU Format:
    Function Code:   1 byte
    Data:            Variable (function-specific, at most 252 bytes)
"""

import struct
from dataclasses import dataclass

from mbtcp.protocol.errors import FrameError
from mbtcp.protocol.function_codes import EXCEPTION_FLAG

__all__ = [
    "PDU",
    "ADU",
    "MBAP_HEADER_SIZE",
    "MBAP_PREFIX_SIZE",
    "MAX_PDU_SIZE",
    "MAX_ADU_SIZE",
    "PROTOCOL_ID",
    "encode",
    "decode",
    "encode_adu",
    "decode_adu",
    "parse_header",
    "format_frame",
]

PROTOCOL_ID = 0x0000

_MBAP = struct.Struct(">HHHB")
_MBAP_PREFIX = struct.Struct(">HHH")

MBAP_HEADER_SIZE = _MBAP.size  # 7
MBAP_PREFIX_SIZE = _MBAP_PREFIX.size  # 6, everything before the Length-counted bytes
MAX_PDU_SIZE = 253
MAX_ADU_SIZE = MBAP_HEADER_SIZE + MAX_PDU_SIZE  # 260

# Length counts unit id + function code at minimum
_MIN_LENGTH = 2
_MAX_LENGTH = 1 + MAX_PDU_SIZE


@dataclass(frozen=True)
class PDU:
    """Protocol Data Unit: function code plus function-specific payload."""

    function_code: int
    data: bytes = b""

    @property
    def is_exception(self) -> bool:
        return bool(self.function_code & EXCEPTION_FLAG)

    @property
    def exception_code(self) -> int | None:
        """Exception code carried by an exception PDU, None for normal PDUs."""
        if not self.is_exception or not self.data:
            return None
        return self.data[0]

    def to_bytes(self) -> bytes:
        if not 0 <= self.function_code <= 0xFF:
            raise ValueError(f"function_code must be 0-255, got {self.function_code}")
        raw = bytes((self.function_code,)) + bytes(self.data)
        if len(raw) > MAX_PDU_SIZE:
            raise ValueError(f"PDU must be at most {MAX_PDU_SIZE} bytes, got {len(raw)}")
        return raw

    @classmethod
    def from_bytes(cls, raw: bytes) -> "PDU":
        if not raw:
            raise FrameError("PDU is empty, function code missing")
        return cls(function_code=raw[0], data=bytes(raw[1:]))


@dataclass(frozen=True)
class ADU:
    """Application Data Unit: one request or response on the wire."""

    transaction_id: int
    unit_id: int
    pdu: PDU


def encode(unit_id: int, transaction_id: int, pdu: PDU) -> bytes:
    """Wrap a PDU in an MBAP header.

    Raises:
        ValueError: If a field does not fit its wire width
    """
    if not 0 <= transaction_id <= 0xFFFF:
        raise ValueError(f"transaction_id must be 0-65535, got {transaction_id}")
    if not 0 <= unit_id <= 0xFF:
        raise ValueError(f"unit_id must be 0-255, got {unit_id}")

    body = pdu.to_bytes()
    return _MBAP.pack(transaction_id, PROTOCOL_ID, len(body) + 1, unit_id) + body


def decode(frame: bytes) -> tuple[int, int, PDU]:
    """Unwrap one complete ADU.

    Returns:
        (unit_id, transaction_id, pdu)

    Raises:
        FrameError: Protocol id is nonzero, or declared length does not
            match the bytes available
    """
    if len(frame) < MBAP_HEADER_SIZE + 1:
        raise FrameError(
            f"Frame too short: {len(frame)} bytes, need at least {MBAP_HEADER_SIZE + 1}"
        )

    transaction_id, protocol_id, length, unit_id = _MBAP.unpack_from(frame)

    if protocol_id != PROTOCOL_ID:
        raise FrameError(f"Invalid protocol ID: {protocol_id:#06x}")

    available = len(frame) - MBAP_PREFIX_SIZE
    if length != available:
        raise FrameError(
            f"Length mismatch: header declares {length} bytes, {available} available"
        )

    return unit_id, transaction_id, PDU.from_bytes(frame[MBAP_HEADER_SIZE:])


def encode_adu(adu: ADU) -> bytes:
    return encode(adu.unit_id, adu.transaction_id, adu.pdu)


def decode_adu(frame: bytes) -> ADU:
    unit_id, transaction_id, pdu = decode(frame)
    return ADU(transaction_id=transaction_id, unit_id=unit_id, pdu=pdu)


def parse_header(prefix: bytes) -> int:
    """Validate the first six MBAP bytes and return how many bytes follow.

    Used by stream readers to learn the remaining frame size before reading
    it, so that partial frames are never handed to decode().

    Raises:
        FrameError: Bad protocol id or a length outside 2-254
    """
    if len(prefix) != MBAP_PREFIX_SIZE:
        raise FrameError(f"MBAP prefix must be {MBAP_PREFIX_SIZE} bytes, got {len(prefix)}")

    _, protocol_id, length = _MBAP_PREFIX.unpack(prefix)

    if protocol_id != PROTOCOL_ID:
        raise FrameError(f"Invalid protocol ID: {protocol_id:#06x}")
    if not _MIN_LENGTH <= length <= _MAX_LENGTH:
        raise FrameError(f"Invalid length field: {length} (must be {_MIN_LENGTH}-{_MAX_LENGTH})")

    return length


def format_frame(frame: bytes) -> str:
    """Render bytes as [00][01][ff] for debug logs."""
    return "".join(f"[{byte:02x}]" for byte in frame)
