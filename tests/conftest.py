# tests/conftest.py
"""Shared pytest fixtures for Modbus TCP tests.

Networked fixtures bind 127.0.0.1 on port 0 so the OS picks a free port;
the resolved port is available as server.port after start().

Tests use real components wherever possible: a real DataStore behind a
real server, reached through a real client over loopback TCP.
"""

import tempfile
from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import pytest

from mbtcp.client.tcp_client import ModbusTCPClient
from mbtcp.network.servers.modbus_tcp_server import ModbusTCPServer
from mbtcp.state.data_store import DataStore


# ----------------------------------------------------------------
# Configuration fixtures
# ----------------------------------------------------------------
@pytest.fixture
def temp_config_dir() -> Iterator[Path]:
    """Create a temporary directory for test configuration files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ----------------------------------------------------------------
# Data store fixtures
# ----------------------------------------------------------------
@pytest.fixture
def data_store() -> DataStore:
    """Store with recognisable contents in every table.

    coils:              [1, 0, 1, 0, 1, 0, 1, 0] + 8 zeros
    discrete_inputs:    [0, 1, 0, 1] + 12 zeros
    holding_registers:  0, 10, 20, ... 990   (100 registers)
    input_registers:    1000, 1001, ... 1099 (100 registers)
    """
    return DataStore(
        coils=[1, 0, 1, 0, 1, 0, 1, 0] + [0] * 8,
        discrete_inputs=[0, 1, 0, 1] + [0] * 12,
        holding_registers=[i * 10 for i in range(100)],
        input_registers=[1000 + i for i in range(100)],
    )


# ----------------------------------------------------------------
# Network fixtures
# ----------------------------------------------------------------
@pytest.fixture
async def modbus_server(data_store) -> AsyncIterator[ModbusTCPServer]:
    """Running server for unit 1 on an ephemeral loopback port."""
    server = ModbusTCPServer(0, 1, host="127.0.0.1", data_store=data_store)
    await server.start()
    yield server
    await server.stop()


@pytest.fixture
async def modbus_client(modbus_server) -> AsyncIterator[ModbusTCPClient]:
    """Client connected to modbus_server with a short timeout and no retries."""
    client = ModbusTCPClient(
        "127.0.0.1", modbus_server.port, timeout=0.5, read_retries=0
    )
    await client.connect()
    yield client
    await client.close()
