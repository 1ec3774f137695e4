# mbtcp/network/transport.py
"""
Framed byte-stream transport over asyncio streams.

The only place that reads from or writes to a socket. Reads exactly one
MBAP-framed ADU at a time: first the six-byte prefix, which declares how
many bytes follow, then exactly that many bytes. A partial frame is never
handed to the codec.
"""

import asyncio

from mbtcp.protocol.errors import FrameError
from mbtcp.protocol.frame import (
    ADU,
    MBAP_PREFIX_SIZE,
    decode_adu,
    encode_adu,
    parse_header,
)

__all__ = ["FramedStream"]


class FramedStream:
    """
    Connected byte stream that speaks whole ADUs.

    Args:
        reader: asyncio stream reader
        writer: asyncio stream writer
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.reader = reader
        self.writer = writer
        self.bytes_received = 0
        self.bytes_sent = 0

    @property
    def peername(self) -> str:
        peer = self.writer.get_extra_info("peername")
        return f"{peer[0]}:{peer[1]}" if peer else "unknown"

    async def read_frame(self) -> bytes | None:
        """Read exactly one raw frame.

        Returns:
            Frame bytes, or None when the peer closed at a frame boundary

        Raises:
            FrameError: Bad header, or the peer closed mid-frame
        """
        try:
            prefix = await self.reader.readexactly(MBAP_PREFIX_SIZE)
        except asyncio.IncompleteReadError as e:
            if not e.partial:
                return None
            raise FrameError(
                f"Connection closed inside MBAP header after {len(e.partial)} bytes"
            ) from e

        remaining = parse_header(prefix)

        try:
            body = await self.reader.readexactly(remaining)
        except asyncio.IncompleteReadError as e:
            raise FrameError(
                f"Truncated frame: expected {remaining} bytes, got {len(e.partial)}"
            ) from e

        self.bytes_received += MBAP_PREFIX_SIZE + remaining
        return prefix + body

    async def read_adu(self) -> ADU | None:
        frame = await self.read_frame()
        if frame is None:
            return None
        return decode_adu(frame)

    async def write_frame(self, frame: bytes) -> None:
        self.writer.write(frame)
        await self.writer.drain()
        self.bytes_sent += len(frame)

    async def write_adu(self, adu: ADU) -> bytes:
        """Encode and send one ADU. Returns the bytes written."""
        frame = encode_adu(adu)
        await self.write_frame(frame)
        return frame

    def is_closing(self) -> bool:
        return self.writer.is_closing()

    async def close(self) -> None:
        if self.writer.is_closing():
            return
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError):
            # Peer already reset the socket
            pass
