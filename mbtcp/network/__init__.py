"""Network layer: framed stream transport and the Modbus TCP server."""

from mbtcp.network.transport import FramedStream

__all__ = ["FramedStream"]
