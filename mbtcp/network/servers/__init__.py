"""
Modbus TCP server side.

    base_server.py          BaseProtocolServer (binding, logging, status)
    request_dispatcher.py   RequestDispatcher (validation + execution)
    modbus_tcp_server.py    ModbusTCPServer (connection manager)

Example:
    $ mbtcp serve --port 5020 --unit-id 1
    $ mbtget -r3 -a 0 -n 10 -p 5020 localhost
"""

from mbtcp.network.servers.modbus_tcp_server import ModbusTCPServer
from mbtcp.network.servers.request_dispatcher import (
    BROADCAST_UNIT_ID,
    DispatchState,
    RequestDispatcher,
)

__all__ = [
    "ModbusTCPServer",
    "RequestDispatcher",
    "DispatchState",
    "BROADCAST_UNIT_ID",
]
