"""
mbtcp - Modbus TCP server and client engine.

Structure:
    mbtcp/
    ├── protocol/      # Frame codec, PDU payloads, function codes, errors
    ├── state/         # Bounds-checked data store (coils, registers)
    ├── network/       # Stream transport, request dispatcher, TCP server
    ├── client/        # Transaction manager and per-unit slave handle
    ├── security/      # Structured logging and audit trail
    └── config/        # YAML configuration loader

Usage:
    from mbtcp import ModbusTCPServer, ModbusTCPClient

    server = ModbusTCPServer(port=5020, unit_id=1)
    server.holding_registers = [1, 2, 3, 4]
    await server.start()

    async with ModbusTCPClient("127.0.0.1", 5020) as client:
        slave = client.with_slave(1)
        values = await slave.read_holding_registers(0, 4)
"""

from mbtcp.client import ModbusResponse, ModbusTCPClient, Slave
from mbtcp.network.servers import ModbusTCPServer
from mbtcp.protocol.errors import (
    FrameError,
    IllegalDataAddress,
    IllegalDataValue,
    IllegalFunction,
    ModbusError,
    ModbusException,
    ModbusTimeout,
    ResponseMismatch,
)
from mbtcp.state.data_store import DataStore, OutOfRange

__version__ = "0.1.0"

__all__ = [
    "ModbusTCPServer",
    "ModbusTCPClient",
    "ModbusResponse",
    "Slave",
    "DataStore",
    "OutOfRange",
    "ModbusError",
    "ModbusException",
    "IllegalFunction",
    "IllegalDataAddress",
    "IllegalDataValue",
    "ModbusTimeout",
    "FrameError",
    "ResponseMismatch",
]
