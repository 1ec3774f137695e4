"""Modbus wire protocol: frame codec, PDU payloads, function codes, errors."""

from mbtcp.protocol.errors import (
    ExceptionCode,
    FrameError,
    IllegalDataAddress,
    IllegalDataValue,
    IllegalFunction,
    ModbusError,
    ModbusException,
    ModbusTimeout,
    ResponseMismatch,
    exception_for_code,
)
from mbtcp.protocol.frame import ADU, PDU, decode, decode_adu, encode, encode_adu
from mbtcp.protocol.function_codes import FunctionCode

__all__ = [
    "ADU",
    "PDU",
    "encode",
    "decode",
    "encode_adu",
    "decode_adu",
    "FunctionCode",
    "ExceptionCode",
    "ModbusError",
    "ModbusException",
    "IllegalFunction",
    "IllegalDataAddress",
    "IllegalDataValue",
    "ModbusTimeout",
    "FrameError",
    "ResponseMismatch",
    "exception_for_code",
]
