# mbtcp/client/tcp_client.py
"""
Modbus TCP client: transaction manager over one shared connection.

Many tasks may share one client. Each call gets its own transaction id and
waits on its own future; a single background reader task pulls whole ADUs
off the socket and resolves the future whose id matches. Responses can
therefore come back in any order.

    caller task ──► allocate tx id ──► send (serialised) ──► await future
                                                               ▲
    reader task ──► read ADU ──► pending[tx id].set_result ────┘

Timeouts are per attempt. A timed-out attempt forgets its transaction id,
so a response arriving for it later is logged and dropped, and the retry
goes out under a fresh id.

Example:
    >>> async with ModbusTCPClient("127.0.0.1", 5020) as client:
    ...     slave = client.with_slave(1)
    ...     await slave.read_holding_registers(0, 10)
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from mbtcp.client.response import ModbusResponse
from mbtcp.network.transport import FramedStream
from mbtcp.protocol.errors import FrameError, ModbusError, ModbusTimeout, ResponseMismatch
from mbtcp.protocol.frame import ADU, PDU
from mbtcp.protocol.function_codes import EXCEPTION_FLAG
from mbtcp.security.logging_system import get_logger

if TYPE_CHECKING:
    from mbtcp.client.slave import Slave
    from mbtcp.config.config_loader import ClientConfig

__all__ = ["ModbusTCPClient"]


class ModbusTCPClient:
    """
    Connection to one Modbus TCP server, shared by any number of slaves.

    Args:
        host: Server address
        port: Server port
        timeout: Seconds to wait for each attempt's response
        read_retries: Extra attempts after a timeout (total = read_retries + 1)
        device_name: Name used as logging context
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 502,
        *,
        timeout: float = 1.0,
        read_retries: int = 3,
        device_name: str = "modbus_client",
    ):
        if not host:
            raise ValueError("host cannot be empty")
        if not 1 <= port < 65536:
            raise ValueError(f"port must be 1-65535, got {port}")
        if timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {timeout}")
        if read_retries < 0:
            raise ValueError(f"read_retries must be >= 0, got {read_retries}")

        self.host = host
        self.port = port
        self.timeout = timeout
        self.read_retries = read_retries
        self.logger = get_logger(__name__, device=device_name)

        self._stream: FramedStream | None = None
        self._reader_task: asyncio.Task | None = None
        self._pending: dict[int, asyncio.Future] = {}
        self._send_lock = asyncio.Lock()
        self._connect_lock = asyncio.Lock()
        self._last_transaction_id = 0

        self.stats = {
            "requests": 0,
            "responses": 0,
            "retries": 0,
            "timeouts": 0,
            "late_responses": 0,
        }

    @classmethod
    def from_config(cls, config: ClientConfig, **kwargs) -> ModbusTCPClient:
        return cls(
            config.host,
            config.port,
            timeout=config.timeout,
            read_retries=config.read_retries,
            **kwargs,
        )

    def __repr__(self) -> str:
        state = "connected" if self.connected else "closed"
        return f"ModbusTCPClient({self.host}:{self.port}, {state})"

    # ----------------------------------------------------------------
    # Connection lifecycle
    # ----------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._stream is not None and not self._stream.is_closing()

    @property
    def closed(self) -> bool:
        return not self.connected

    async def connect(self) -> None:
        """Open the connection if it is not open already.

        Raises:
            ConnectionError: Server unreachable or refused the connection
        """
        await self._ensure_connected()

    async def _ensure_connected(self) -> FramedStream:
        async with self._connect_lock:
            if self.connected:
                return self._stream

            try:
                reader, writer = await asyncio.wait_for(
                    asyncio.open_connection(self.host, self.port),
                    self.timeout,
                )
            except (OSError, asyncio.TimeoutError) as e:
                self.logger.error(f"Unable to connect to {self.host}:{self.port}: {e}")
                raise ConnectionError(f"Unable to connect to {self.host}:{self.port}: {e}") from e

            stream = FramedStream(reader, writer)
            self._stream = stream
            self._reader_task = asyncio.create_task(self._read_loop(stream))
            self.logger.info(f"Connected to {self.host}:{self.port}")
            return stream

    async def close(self) -> None:
        """Close the connection. Pending calls fail with ConnectionError."""
        task = self._reader_task
        self._reader_task = None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        # A reader cancelled before its first step never runs its own cleanup
        stream = self._stream
        self._stream = None
        self._fail_pending(ConnectionError("Connection closed"))
        if stream is not None:
            await stream.close()

    async def __aenter__(self) -> ModbusTCPClient:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ----------------------------------------------------------------
    # Slaves
    # ----------------------------------------------------------------

    def with_slave(self, unit_id: int) -> Slave:
        """Handle addressing one unit id over this connection."""
        from mbtcp.client.slave import Slave

        return Slave(self, unit_id)

    # ----------------------------------------------------------------
    # Transactions
    # ----------------------------------------------------------------

    def _allocate_transaction_id(self) -> int:
        """Next 16-bit id not held by an outstanding call."""
        for _ in range(0x10000):
            self._last_transaction_id = (self._last_transaction_id + 1) & 0xFFFF
            if self._last_transaction_id not in self._pending:
                return self._last_transaction_id
        raise ModbusError("All 65536 transaction ids are in use")

    async def execute(self, unit_id: int, pdu: PDU) -> ModbusResponse:
        """
        Send one request and wait for its response, retrying on timeout.

        Protocol exceptions come back as an error ModbusResponse, not raised.

        Raises:
            ValueError: unit_id or PDU cannot be encoded
            ModbusTimeout: No response on any attempt
            ResponseMismatch: Response does not answer this request
            FrameError: Server sent a malformed frame
            ConnectionError: Connection failed or dropped while waiting
        """
        if not 0 <= unit_id <= 0xFF:
            raise ValueError(f"unit_id must be 0-255, got {unit_id}")
        pdu.to_bytes()

        attempts = self.read_retries + 1
        loop = asyncio.get_running_loop()

        for attempt in range(1, attempts + 1):
            stream = await self._ensure_connected()

            transaction_id = self._allocate_transaction_id()
            future: asyncio.Future = loop.create_future()
            self._pending[transaction_id] = future
            request = ADU(transaction_id=transaction_id, unit_id=unit_id, pdu=pdu)

            try:
                async with self._send_lock:
                    await stream.write_adu(request)
                self.stats["requests"] += 1
                response = await asyncio.wait_for(future, self.timeout)
            except asyncio.TimeoutError:
                self.stats["timeouts"] += 1
                if attempt < attempts:
                    self.stats["retries"] += 1
                    self.logger.warning(
                        f"No response to transaction {transaction_id} "
                        f"(FC{pdu.function_code:02d}, unit {unit_id}) within {self.timeout}s, "
                        f"retry {attempt}/{self.read_retries}"
                    )
                continue
            finally:
                self._pending.pop(transaction_id, None)

            self.stats["responses"] += 1
            return self._correlate(request, response)

        self.logger.error(
            f"Timed out: FC{pdu.function_code:02d} to unit {unit_id} at "
            f"{self.host}:{self.port} after {attempts} attempts"
        )
        raise ModbusTimeout()

    @staticmethod
    def _correlate(request: ADU, response: ADU) -> ModbusResponse:
        if response.unit_id != request.unit_id:
            raise ResponseMismatch(
                f"Response unit id {response.unit_id} does not match request unit id {request.unit_id}",
                request=request.pdu.to_bytes(),
                response=response.pdu.to_bytes(),
            )

        if response.pdu.function_code & ~EXCEPTION_FLAG != request.pdu.function_code:
            raise ResponseMismatch(
                f"Response function code {response.pdu.function_code:#04x} does not answer "
                f"request function code {request.pdu.function_code:#04x}",
                request=request.pdu.to_bytes(),
                response=response.pdu.to_bytes(),
            )

        if response.pdu.is_exception and len(response.pdu.data) != 1:
            raise ResponseMismatch(
                "Exception response must carry exactly one exception code byte",
                request=request.pdu.to_bytes(),
                response=response.pdu.to_bytes(),
            )

        return ModbusResponse(
            transaction_id=response.transaction_id,
            unit_id=response.unit_id,
            pdu=response.pdu,
        )

    # ----------------------------------------------------------------
    # Reader
    # ----------------------------------------------------------------

    async def _read_loop(self, stream: FramedStream) -> None:
        error: Exception = ConnectionError(f"Connection to {self.host}:{self.port} closed by server")

        try:
            while True:
                adu = await stream.read_adu()
                if adu is None:
                    if self._pending:
                        self.logger.warning(
                            f"Connection to {self.host}:{self.port} closed "
                            f"with {len(self._pending)} calls pending"
                        )
                    return

                future = self._pending.get(adu.transaction_id)
                if future is None or future.done():
                    self.stats["late_responses"] += 1
                    self.logger.debug(
                        f"Dropping response for unknown transaction {adu.transaction_id}"
                    )
                    continue

                future.set_result(adu)

        except FrameError as e:
            self.logger.warning(f"Malformed frame from {self.host}:{self.port}: {e}")
            error = e
        except (ConnectionError, OSError) as e:
            self.logger.warning(f"Connection to {self.host}:{self.port} lost: {e}")
            error = ConnectionError(str(e))
        except asyncio.CancelledError:
            error = ConnectionError("Connection closed")
            raise
        finally:
            self._fail_pending(error)
            if self._stream is stream:
                self._stream = None
            await stream.close()

    def _fail_pending(self, error: Exception) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()

    def get_stats(self) -> dict[str, Any]:
        stats = self.stats.copy()
        stats["pending"] = len(self._pending)
        return stats
