# mbtcp/network/servers/request_dispatcher.py
"""
Request dispatcher for the Modbus TCP server.

Every received ADU goes through:

    RECEIVED -> DROPPED      unit id is neither broadcast (0) nor ours
    RECEIVED -> RESPONDED    everything else, including protocol exceptions

Dispatch is an explicit table keyed by FunctionCode. Each handler parses
its payload, checks the quantity ceiling, then lets the target table check
the address range, so the first failing check decides the exception code:

    unsupported function code      -> IllegalFunction
    quantity outside [1, maximum]  -> IllegalDataValue
    address range outside table    -> IllegalDataAddress

Broadcast requests are answered exactly like direct ones. On a TCP link
there is no shared bus to keep quiet on, and clients expect a reply.

Writes are applied to the shared DataStore before the response is built,
so a read on any connection afterwards observes them.
"""

from collections.abc import Callable
from enum import Enum

from mbtcp.protocol.errors import IllegalDataValue, IllegalFunction, ModbusException
from mbtcp.protocol.exception_mapper import build_exception_pdu
from mbtcp.protocol.frame import ADU, PDU
from mbtcp.protocol.function_codes import MAX_QUANTITY, FunctionCode, is_supported
from mbtcp.protocol.pdu import (
    COIL_OFF,
    COIL_ON,
    parse_read_request,
    parse_write_multiple_coils_request,
    parse_write_multiple_registers_request,
    parse_write_single_request,
    read_bits_response,
    read_registers_response,
    write_multiple_response,
    write_single_response,
)
from mbtcp.security.logging_system import get_logger
from mbtcp.state.data_store import DataStore, OutOfRange, Table

__all__ = ["BROADCAST_UNIT_ID", "DispatchState", "RequestDispatcher"]

BROADCAST_UNIT_ID = 0

Handler = Callable[[bytes], PDU]


class DispatchState(Enum):
    RECEIVED = "RECEIVED"
    RESPONDED = "RESPONDED"
    DROPPED = "DROPPED"


class RequestDispatcher:
    """
    Validates requests and executes them against the data store.

    Args:
        data_store: Shared store all connections read and write
        unit_id: The one non-broadcast unit id this server answers (1-247)
    """

    def __init__(self, data_store: DataStore, unit_id: int):
        if not 1 <= unit_id <= 247:
            raise ValueError(f"unit_id must be 1-247, got {unit_id}")

        self.data_store = data_store
        self.unit_id = unit_id
        self.logger = get_logger(__name__)

        self._handlers: dict[FunctionCode, Handler] = {
            FunctionCode.READ_COILS: self._read_coils,
            FunctionCode.READ_DISCRETE_INPUTS: self._read_discrete_inputs,
            FunctionCode.READ_HOLDING_REGISTERS: self._read_holding_registers,
            FunctionCode.READ_INPUT_REGISTERS: self._read_input_registers,
            FunctionCode.WRITE_SINGLE_COIL: self._write_single_coil,
            FunctionCode.WRITE_SINGLE_REGISTER: self._write_single_register,
            FunctionCode.WRITE_MULTIPLE_COILS: self._write_multiple_coils,
            FunctionCode.WRITE_MULTIPLE_REGISTERS: self._write_multiple_registers,
        }

        self.stats = {
            "requests_total": 0,
            "responses_total": 0,
            "exceptions_total": 0,
            "dropped_total": 0,
        }
        for function_code in FunctionCode:
            self.stats[f"requests_fc{function_code.value:02d}"] = 0

    # ----------------------------------------------------------------
    # Entry points
    # ----------------------------------------------------------------

    def accepts(self, unit_id: int) -> bool:
        """True for broadcast and for our own unit id."""
        return unit_id in (BROADCAST_UNIT_ID, self.unit_id)

    def process(self, adu: ADU) -> tuple[DispatchState, ADU | None]:
        """Run one received ADU to a terminal state.

        Returns:
            (DROPPED, None) or (RESPONDED, response ADU echoing the
            request's transaction id and unit id)
        """
        self.stats["requests_total"] += 1

        if not self.accepts(adu.unit_id):
            self.stats["dropped_total"] += 1
            self.logger.debug(
                f"Dropping request for unit {adu.unit_id} (configured unit {self.unit_id})"
            )
            return DispatchState.DROPPED, None

        response = self.handle_pdu(adu.pdu)
        self.stats["responses_total"] += 1
        return DispatchState.RESPONDED, ADU(
            transaction_id=adu.transaction_id,
            unit_id=adu.unit_id,
            pdu=response,
        )

    def handle_pdu(self, pdu: PDU) -> PDU:
        """Produce the response or exception PDU for one request PDU."""
        function_code = pdu.function_code

        try:
            if not is_supported(function_code):
                raise IllegalFunction(function_code=function_code)

            function = FunctionCode(function_code)
            self.stats[f"requests_fc{function.value:02d}"] += 1
            return self._handlers[function](pdu.data)

        except (ModbusException, OutOfRange) as e:
            self.stats["exceptions_total"] += 1
            self.logger.debug(f"FC{function_code:02d} rejected: {e}")
            return build_exception_pdu(function_code, e)

        except Exception as e:
            self.stats["exceptions_total"] += 1
            self.logger.error(f"Error processing FC{function_code:02d}: {e}", exc_info=True)
            return build_exception_pdu(function_code, e)

    # ----------------------------------------------------------------
    # Validation
    # ----------------------------------------------------------------

    @staticmethod
    def _check_quantity(function: FunctionCode, quantity: int) -> None:
        if not 1 <= quantity <= MAX_QUANTITY[function]:
            raise IllegalDataValue(function_code=function)

    # ----------------------------------------------------------------
    # Reads
    # ----------------------------------------------------------------

    def _read_bits(self, function: FunctionCode, table: Table, data: bytes) -> PDU:
        address, quantity = parse_read_request(data)
        self._check_quantity(function, quantity)
        return read_bits_response(function, table.read(address, quantity))

    def _read_registers(self, function: FunctionCode, table: Table, data: bytes) -> PDU:
        address, quantity = parse_read_request(data)
        self._check_quantity(function, quantity)
        return read_registers_response(function, table.read(address, quantity))

    def _read_coils(self, data: bytes) -> PDU:
        return self._read_bits(FunctionCode.READ_COILS, self.data_store.coils, data)

    def _read_discrete_inputs(self, data: bytes) -> PDU:
        return self._read_bits(
            FunctionCode.READ_DISCRETE_INPUTS, self.data_store.discrete_inputs, data
        )

    def _read_holding_registers(self, data: bytes) -> PDU:
        return self._read_registers(
            FunctionCode.READ_HOLDING_REGISTERS, self.data_store.holding_registers, data
        )

    def _read_input_registers(self, data: bytes) -> PDU:
        return self._read_registers(
            FunctionCode.READ_INPUT_REGISTERS, self.data_store.input_registers, data
        )

    # ----------------------------------------------------------------
    # Writes
    # ----------------------------------------------------------------

    def _write_single_coil(self, data: bytes) -> PDU:
        address, value = parse_write_single_request(data)
        if value not in (COIL_ON, COIL_OFF):
            raise IllegalDataValue(function_code=FunctionCode.WRITE_SINGLE_COIL)

        self.data_store.coils.write(address, [1 if value == COIL_ON else 0])
        return write_single_response(FunctionCode.WRITE_SINGLE_COIL, address, value)

    def _write_single_register(self, data: bytes) -> PDU:
        address, value = parse_write_single_request(data)
        self.data_store.holding_registers.write(address, [value])
        return write_single_response(FunctionCode.WRITE_SINGLE_REGISTER, address, value)

    def _write_multiple_coils(self, data: bytes) -> PDU:
        address, quantity, values = parse_write_multiple_coils_request(data)
        self._check_quantity(FunctionCode.WRITE_MULTIPLE_COILS, quantity)
        self.data_store.coils.write(address, values)
        return write_multiple_response(FunctionCode.WRITE_MULTIPLE_COILS, address, quantity)

    def _write_multiple_registers(self, data: bytes) -> PDU:
        address, quantity, values = parse_write_multiple_registers_request(data)
        self._check_quantity(FunctionCode.WRITE_MULTIPLE_REGISTERS, quantity)
        self.data_store.holding_registers.write(address, values)
        return write_multiple_response(
            FunctionCode.WRITE_MULTIPLE_REGISTERS, address, quantity
        )

    def get_stats(self) -> dict[str, int]:
        return self.stats.copy()
