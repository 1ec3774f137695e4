# mbtcp/protocol/exception_mapper.py
"""
Exception mapper.

Turns a failure raised while dispatching a request into exactly one Modbus
exception code, and builds the exception PDU that answers it.

Precedence is enforced by the order in which the dispatcher validates:
    1. Unsupported function code         -> IllegalFunction
    2. Quantity outside [1, maximum],
       malformed payload                  -> IllegalDataValue
    3. Address range outside the store    -> IllegalDataAddress
Anything else is an internal fault       -> SlaveDeviceFailure
"""

from mbtcp.protocol.errors import ExceptionCode, ModbusException
from mbtcp.protocol.frame import PDU
from mbtcp.protocol.pdu import exception_response
from mbtcp.state.data_store import OutOfRange

__all__ = ["map_exception_code", "build_exception_pdu"]


def map_exception_code(error: BaseException) -> ExceptionCode:
    if isinstance(error, ModbusException):
        return ExceptionCode(error.exception_code)
    if isinstance(error, OutOfRange):
        return ExceptionCode.ILLEGAL_DATA_ADDRESS
    return ExceptionCode.SLAVE_DEVICE_FAILURE


def build_exception_pdu(function_code: int, error: BaseException) -> PDU:
    return exception_response(function_code, map_exception_code(error))
