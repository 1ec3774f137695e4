# mbtcp/protocol/errors.py
"""
Modbus error taxonomy.

Two families share the ModbusError root:

- Protocol exceptions (ModbusException subclasses) travel on the wire as an
  exception PDU: function code | 0x80 followed by one exception-code byte.
  The server raises them during dispatch, the client re-raises them when an
  exception PDU comes back.
- Transport-side failures (FrameError, ModbusTimeout, ResponseMismatch) never
  travel on the wire. They are raised locally to the calling task.

Exception codes (Modbus Application Protocol v1.1b3, section 7):
    0x01 - Illegal Function
    0x02 - Illegal Data Address
    0x03 - Illegal Data Value
    0x04 - Slave Device Failure
    0x05 - Acknowledge
    0x06 - Slave Device Busy
    0x08 - Memory Parity Error
    0x0A - Gateway Path Unavailable
    0x0B - Gateway Target Device Failed To Respond
"""

from enum import IntEnum

__all__ = [
    "ExceptionCode",
    "ModbusError",
    "FrameError",
    "ModbusTimeout",
    "ResponseMismatch",
    "ModbusException",
    "IllegalFunction",
    "IllegalDataAddress",
    "IllegalDataValue",
    "SlaveDeviceFailure",
    "Acknowledge",
    "SlaveDeviceBusy",
    "MemoryParityError",
    "GatewayPathUnavailable",
    "GatewayTargetDeviceFailedToRespond",
    "exception_for_code",
]


class ExceptionCode(IntEnum):
    """Modbus exception codes."""

    ILLEGAL_FUNCTION = 0x01
    ILLEGAL_DATA_ADDRESS = 0x02
    ILLEGAL_DATA_VALUE = 0x03
    SLAVE_DEVICE_FAILURE = 0x04
    ACKNOWLEDGE = 0x05
    SLAVE_DEVICE_BUSY = 0x06
    MEMORY_PARITY_ERROR = 0x08
    GATEWAY_PATH_UNAVAILABLE = 0x0A
    GATEWAY_TARGET_FAILED_TO_RESPOND = 0x0B


# ----------------------------------------------------------------
# Local (non-wire) errors
# ----------------------------------------------------------------


class ModbusError(Exception):
    """Root of every error raised by this package."""


class FrameError(ModbusError):
    """Malformed byte stream: bad protocol id, length mismatch, truncation."""


class ModbusTimeout(ModbusError, TimeoutError):
    """No correlated response arrived before the deadline on any attempt."""

    def __init__(self, message: str = "Timed out during read attempt"):
        super().__init__(message)


class ResponseMismatch(ModbusError):
    """A well-framed response that does not answer the request that was sent."""

    def __init__(self, message: str, request: bytes = b"", response: bytes = b""):
        super().__init__(message)
        self.request = request
        self.response = response


# ----------------------------------------------------------------
# Protocol exceptions
# ----------------------------------------------------------------


class ModbusException(ModbusError):
    """
    Protocol-level exception carried by an exception PDU.

    Subclasses pin exception_code and description. The description is the
    standard Modbus Application Protocol text and doubles as the message.

    Attributes:
        exception_code: Modbus exception code (1 byte on the wire)
        function_code: Function code of the request that failed, if known
    """

    exception_code: int = 0
    description: str = "Unknown Modbus exception"

    def __init__(self, message: str | None = None, function_code: int | None = None):
        super().__init__(message or self.description)
        self.function_code = function_code

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(exception_code={self.exception_code:#04x}, "
            f"function_code={self.function_code})"
        )


class IllegalFunction(ModbusException):
    exception_code = ExceptionCode.ILLEGAL_FUNCTION
    description = (
        "The function code received in the query is not an allowable action for the server"
    )


class IllegalDataAddress(ModbusException):
    exception_code = ExceptionCode.ILLEGAL_DATA_ADDRESS
    description = (
        "The data address received in the query is not an allowable address for the server"
    )


class IllegalDataValue(ModbusException):
    exception_code = ExceptionCode.ILLEGAL_DATA_VALUE
    description = (
        "A value contained in the query data field is not an allowable value for server"
    )


class SlaveDeviceFailure(ModbusException):
    exception_code = ExceptionCode.SLAVE_DEVICE_FAILURE
    description = (
        "An unrecoverable error occurred while the server was attempting "
        "to perform the requested action"
    )


class Acknowledge(ModbusException):
    exception_code = ExceptionCode.ACKNOWLEDGE
    description = (
        "The server has accepted the request and is processing it, "
        "but a long duration of time will be required to do so"
    )


class SlaveDeviceBusy(ModbusException):
    exception_code = ExceptionCode.SLAVE_DEVICE_BUSY
    description = "The server is engaged in processing a long duration program command"


class MemoryParityError(ModbusException):
    exception_code = ExceptionCode.MEMORY_PARITY_ERROR
    description = "The extended file area failed to pass a consistency check"


class GatewayPathUnavailable(ModbusException):
    exception_code = ExceptionCode.GATEWAY_PATH_UNAVAILABLE
    description = (
        "The gateway was unable to allocate an internal communication path "
        "from the input port to the output port for processing the request"
    )


class GatewayTargetDeviceFailedToRespond(ModbusException):
    exception_code = ExceptionCode.GATEWAY_TARGET_FAILED_TO_RESPOND
    description = "No response was obtained from the target device behind the gateway"


_EXCEPTIONS_BY_CODE: dict[int, type[ModbusException]] = {
    cls.exception_code: cls
    for cls in (
        IllegalFunction,
        IllegalDataAddress,
        IllegalDataValue,
        SlaveDeviceFailure,
        Acknowledge,
        SlaveDeviceBusy,
        MemoryParityError,
        GatewayPathUnavailable,
        GatewayTargetDeviceFailedToRespond,
    )
}


def exception_for_code(
    exception_code: int, function_code: int | None = None
) -> ModbusException:
    """Build the typed exception for a code received in an exception PDU.

    Unknown codes produce a plain ModbusException that still carries the code.
    """
    cls = _EXCEPTIONS_BY_CODE.get(exception_code)
    if cls is not None:
        return cls(function_code=function_code)

    error = ModbusException(
        f"Unknown Modbus exception code {exception_code:#04x}",
        function_code=function_code,
    )
    error.exception_code = exception_code
    return error
