"""
Modbus TCP client side.

    tcp_client.py   ModbusTCPClient (connection, transaction ids, retries)
    slave.py        Slave (typed request API for one unit id)
    response.py     ModbusResponse (explicit result type)
"""

from mbtcp.client.response import ModbusResponse
from mbtcp.client.slave import Slave
from mbtcp.client.tcp_client import ModbusTCPClient

__all__ = ["ModbusTCPClient", "Slave", "ModbusResponse"]
