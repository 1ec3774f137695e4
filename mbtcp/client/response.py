# mbtcp/client/response.py
"""
Explicit result type for client requests.

A ModbusResponse is what came back for one request: either a normal PDU or
an exception PDU. It never raises on its own; callers choose between
inspecting it and calling raise_for_exception().

Example:
    >>> response = await slave.request(read_request(FunctionCode.READ_COILS, 0, 8))
    >>> if response.is_error():
    ...     print(response.exception_code)
"""

from dataclasses import dataclass

from mbtcp.protocol.errors import ModbusException, exception_for_code
from mbtcp.protocol.frame import PDU
from mbtcp.protocol.function_codes import EXCEPTION_FLAG

__all__ = ["ModbusResponse"]


@dataclass(frozen=True)
class ModbusResponse:
    """Response ADU correlated to a request."""

    transaction_id: int
    unit_id: int
    pdu: PDU

    @property
    def function_code(self) -> int:
        """Function code of the request this answers, exception flag stripped."""
        return self.pdu.function_code & ~EXCEPTION_FLAG

    @property
    def data(self) -> bytes:
        return self.pdu.data

    @property
    def exception_code(self) -> int | None:
        return self.pdu.exception_code

    def is_error(self) -> bool:
        return self.pdu.is_exception

    def exception(self) -> ModbusException | None:
        """Typed exception for an exception response, None otherwise."""
        if not self.is_error():
            return None
        return exception_for_code(self.exception_code or 0, self.function_code)

    def raise_for_exception(self) -> "ModbusResponse":
        """Raise the typed ModbusException if this is an exception response.

        Returns:
            self, so calls can be chained
        """
        error = self.exception()
        if error is not None:
            raise error
        return self
