# tests/unit/client/test_modbus_slave.py
"""Tests for Slave, the typed per-unit request API.

Runs against a real ModbusTCPServer over loopback (see conftest.py for
the table contents).

Test Coverage:
- All four reads and their single-value forms
- All four writes and their echoes
- Typed protocol exceptions
- Raw query() and non-raising request()
"""

import pytest

from mbtcp.protocol.errors import (
    IllegalDataAddress,
    IllegalDataValue,
    IllegalFunction,
    ModbusException,
)
from mbtcp.protocol.function_codes import FunctionCode
from mbtcp.protocol.pdu import read_request


@pytest.fixture
def slave(modbus_client):
    return modbus_client.with_slave(1)


# ================================================================
# READ TESTS
# ================================================================
class TestSlaveReads:
    """Test read requests."""

    async def test_read_coils(self, slave):
        """Test FC01.

        WHY: Bits unpack LSB first into 0/1 values.
        """
        assert await slave.read_coils(0, 8) == [1, 0, 1, 0, 1, 0, 1, 0]

    async def test_read_discrete_inputs(self, slave):
        """Test FC02."""
        assert await slave.read_discrete_inputs(0, 4) == [0, 1, 0, 1]

    async def test_read_holding_registers(self, slave):
        """Test FC03."""
        assert await slave.read_holding_registers(2, 3) == [20, 30, 40]

    async def test_read_input_registers(self, slave):
        """Test FC04."""
        assert await slave.read_input_registers(98, 2) == [1098, 1099]

    async def test_single_value_reads(self, slave):
        """Test the one-value helpers.

        WHY: Convenience forms return a scalar, not a list.
        """
        assert await slave.read_coil(2) == 1
        assert await slave.read_discrete_input(1) == 1
        assert await slave.read_holding_register(5) == 50
        assert await slave.read_input_register(0) == 1000


# ================================================================
# WRITE TESTS
# ================================================================
class TestSlaveWrites:
    """Test write requests."""

    async def test_write_single_coil(self, slave, data_store):
        """Test FC05 echo and effect.

        WHY: Coil on is echoed as 0xFF00.
        """
        assert await slave.write_single_coil(1, True) == (1, 0xFF00)
        assert data_store.coils.read(1, 1) == [1]

        assert await slave.write_coil(1, 0) == (1, 0)
        assert data_store.coils.read(1, 1) == [0]

    async def test_write_single_register(self, slave, data_store):
        """Test FC06."""
        assert await slave.write_single_register(3, 0xBEEF) == (3, 0xBEEF)
        assert data_store.holding_registers.read(3, 1) == [0xBEEF]

    async def test_write_multiple_coils(self, slave, data_store):
        """Test FC15 echoes address and quantity."""
        assert await slave.write_multiple_coils(8, [1, 1, 0, 1]) == (8, 4)
        assert data_store.coils.read(8, 4) == [1, 1, 0, 1]

    async def test_write_multiple_registers(self, slave, data_store):
        """Test FC16 echoes address and quantity."""
        assert await slave.write_registers(10, [1, 2, 3]) == (10, 3)
        assert await slave.read_holding_registers(10, 3) == [1, 2, 3]

    async def test_write_value_out_of_field(self, slave):
        """Test that unencodable values fail locally.

        WHY: Nothing is sent for a value that does not fit 16 bits.
        """
        with pytest.raises(ValueError):
            await slave.write_single_register(0, 0x10000)


# ================================================================
# EXCEPTION TESTS
# ================================================================
class TestSlaveExceptions:
    """Test protocol exceptions surface as typed errors."""

    async def test_illegal_function(self, slave):
        """Test an unsupported function code via raw query.

        WHY: Unknown function codes answer IllegalFunction.
        """
        with pytest.raises(IllegalFunction):
            await slave.query(b"\x43")

    async def test_illegal_data_value(self, slave):
        """Test a register quantity over 125.

        WHY: Quantity limits are checked by the server.
        """
        with pytest.raises(IllegalDataValue) as exc_info:
            await slave.read_holding_registers(0, 126)

        assert str(exc_info.value) == IllegalDataValue.description

    async def test_illegal_data_address(self, slave):
        """Test reading past the end of the coil table.

        WHY: Out-of-range addresses answer IllegalDataAddress.
        """
        with pytest.raises(IllegalDataAddress):
            await slave.read_coils(10, 8)

    async def test_exceptions_share_a_base(self, slave):
        """Test a single except clause catches all protocol errors."""
        with pytest.raises(ModbusException):
            await slave.read_input_registers(200, 1)

    async def test_request_does_not_raise(self, slave):
        """Test the explicit-result form.

        WHY: Callers that want to inspect exceptions get a ModbusResponse.
        """
        response = await slave.request(
            read_request(FunctionCode.READ_HOLDING_REGISTERS, 0, 126)
        )

        assert response.is_error()
        assert response.exception_code == 3
        assert response.function_code == 0x03

    async def test_query_returns_payload(self, slave):
        """Test raw query for a normal response."""
        assert await slave.query(b"\x03\x00\x01\x00\x01") == b"\x02\x00\x0a"

    async def test_query_empty(self, slave):
        """Test an empty raw request."""
        with pytest.raises(ValueError):
            await slave.query(b"")
