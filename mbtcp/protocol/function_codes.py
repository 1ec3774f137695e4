# mbtcp/protocol/function_codes.py
"""
Supported Modbus function codes and their per-request quantity ceilings.

The set is closed: anything not listed here is answered with
IllegalFunction by the server.
"""

from enum import IntEnum

__all__ = [
    "FunctionCode",
    "EXCEPTION_FLAG",
    "MAX_QUANTITY",
    "READ_FUNCTIONS",
    "WRITE_FUNCTIONS",
    "BIT_FUNCTIONS",
    "is_supported",
]

EXCEPTION_FLAG = 0x80


class FunctionCode(IntEnum):
    READ_COILS = 0x01
    READ_DISCRETE_INPUTS = 0x02
    READ_HOLDING_REGISTERS = 0x03
    READ_INPUT_REGISTERS = 0x04
    WRITE_SINGLE_COIL = 0x05
    WRITE_SINGLE_REGISTER = 0x06
    WRITE_MULTIPLE_COILS = 0x0F
    WRITE_MULTIPLE_REGISTERS = 0x10


# Quantity ceilings from the Modbus Application Protocol.
# Single writes always carry exactly one value.
MAX_QUANTITY: dict[FunctionCode, int] = {
    FunctionCode.READ_COILS: 0x07D0,  # 2000
    FunctionCode.READ_DISCRETE_INPUTS: 0x07D0,  # 2000
    FunctionCode.READ_HOLDING_REGISTERS: 0x007D,  # 125
    FunctionCode.READ_INPUT_REGISTERS: 0x007D,  # 125
    FunctionCode.WRITE_SINGLE_COIL: 1,
    FunctionCode.WRITE_SINGLE_REGISTER: 1,
    FunctionCode.WRITE_MULTIPLE_COILS: 0x07B0,  # 1968
    FunctionCode.WRITE_MULTIPLE_REGISTERS: 0x007B,  # 123
}

READ_FUNCTIONS = frozenset(
    {
        FunctionCode.READ_COILS,
        FunctionCode.READ_DISCRETE_INPUTS,
        FunctionCode.READ_HOLDING_REGISTERS,
        FunctionCode.READ_INPUT_REGISTERS,
    }
)

WRITE_FUNCTIONS = frozenset(
    {
        FunctionCode.WRITE_SINGLE_COIL,
        FunctionCode.WRITE_SINGLE_REGISTER,
        FunctionCode.WRITE_MULTIPLE_COILS,
        FunctionCode.WRITE_MULTIPLE_REGISTERS,
    }
)

# Functions whose payload values are single bits
BIT_FUNCTIONS = frozenset(
    {
        FunctionCode.READ_COILS,
        FunctionCode.READ_DISCRETE_INPUTS,
        FunctionCode.WRITE_SINGLE_COIL,
        FunctionCode.WRITE_MULTIPLE_COILS,
    }
)


def is_supported(function_code: int) -> bool:
    return function_code in FunctionCode._value2member_map_
