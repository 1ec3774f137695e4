# mbtcp/network/servers/modbus_tcp_server.py
"""
Modbus TCP Server.

Opens a real TCP port and serves any number of concurrent clients against
one shared DataStore. Each connection is an independent asyncio task that
reads whole ADUs, hands them to the RequestDispatcher and writes back the
response, until the peer closes or sends a frame that cannot be decoded.

Connection limit:
    max_connections=None accepts everything. With a limit set, a connection
    arriving while the limit is reached is closed immediately without reading
    from it, and a security event is logged.

Example:
    >>> server = ModbusTCPServer(5020, unit_id=1, max_connections=5)
    >>> server.holding_registers = [0] * 100
    >>> await server.start()
    >>> ...
    >>> await server.stop()

External tools can connect as to any Modbus TCP slave:
    $ mbtget -r3 -a 0 -n 10 -u 1 -p 5020 localhost
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from mbtcp.network.servers.base_server import BaseProtocolServer
from mbtcp.network.servers.request_dispatcher import DispatchState, RequestDispatcher
from mbtcp.network.transport import FramedStream
from mbtcp.protocol.errors import FrameError
from mbtcp.protocol.frame import decode_adu, format_frame
from mbtcp.protocol.function_codes import WRITE_FUNCTIONS, FunctionCode
from mbtcp.security.logging_system import EventSeverity
from mbtcp.state.data_store import DataStore

if TYPE_CHECKING:
    from mbtcp.config.config_loader import ServerConfig

__all__ = ["ModbusTCPServer"]


class ModbusTCPServer(BaseProtocolServer):
    """
    Modbus TCP slave.

    Args:
        port: TCP port to listen on (0 picks a free port, see .port after start)
        unit_id: Unit id this server answers besides broadcast (1-247)
        host: Bind address. The default "0.0.0.0" covers every IPv4
            interface; pass "::" or a specific address for IPv6
        max_connections: Concurrent connection limit, None for unbounded
        data_store: Shared store; an empty one is created if omitted
        device_name: Name used as logging context
    """

    def __init__(
        self,
        port: int = 502,
        unit_id: int = 1,
        *,
        host: str = "0.0.0.0",
        max_connections: int | None = None,
        data_store: DataStore | None = None,
        device_name: str = "modbus_tcp",
    ):
        super().__init__(host=host, port=port, device_name=device_name)

        if max_connections is not None and max_connections < 1:
            raise ValueError(f"max_connections must be >= 1 or None, got {max_connections}")

        self.unit_id = unit_id
        self.max_connections = max_connections
        self.data_store = data_store if data_store is not None else DataStore()
        self.dispatcher = RequestDispatcher(self.data_store, unit_id)

        self._server: asyncio.Server | None = None
        self._connection_tasks: set[asyncio.Task] = set()
        self.active_connections = 0

        self.stats = {
            "connections_total": 0,
            "connections_rejected": 0,
            "frame_errors": 0,
            "bytes_received": 0,
            "bytes_sent": 0,
        }

        self.logger.info(
            f"Modbus TCP server initialised - Unit {unit_id}, {host}:{port}, "
            f"max connections {max_connections if max_connections is not None else 'unbounded'}"
        )

    @classmethod
    def from_config(cls, config: ServerConfig, **kwargs) -> ModbusTCPServer:
        """Build a server and its data store from a ServerConfig."""
        data_store = DataStore(
            coils=config.coils,
            discrete_inputs=config.discrete_inputs,
            holding_registers=config.holding_registers,
            input_registers=config.input_registers,
        )
        return cls(
            config.port,
            config.unit_id,
            host=config.host,
            max_connections=config.max_connections,
            data_store=data_store,
            **kwargs,
        )

    # ----------------------------------------------------------------
    # Table access
    # ----------------------------------------------------------------

    @property
    def coils(self) -> list[int]:
        return self.data_store.coils.snapshot()

    @coils.setter
    def coils(self, values: Iterable[int]) -> None:
        self.data_store.coils.load(values)

    @property
    def discrete_inputs(self) -> list[int]:
        return self.data_store.discrete_inputs.snapshot()

    @discrete_inputs.setter
    def discrete_inputs(self, values: Iterable[int]) -> None:
        self.data_store.discrete_inputs.load(values)

    @property
    def holding_registers(self) -> list[int]:
        return self.data_store.holding_registers.snapshot()

    @holding_registers.setter
    def holding_registers(self, values: Iterable[int]) -> None:
        self.data_store.holding_registers.load(values)

    @property
    def input_registers(self) -> list[int]:
        return self.data_store.input_registers.snapshot()

    @input_registers.setter
    def input_registers(self, values: Iterable[int]) -> None:
        self.data_store.input_registers.load(values)

    # ----------------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._server is not None and self._server.is_serving()

    async def start(self) -> bool:
        """Bind and start accepting connections.

        Raises:
            OSError: If unable to bind to host:port
        """
        if self.running:
            return True

        try:
            self._server = await asyncio.start_server(
                self._handle_connection,
                self.host,
                self.port,
            )
        except OSError as e:
            await self.log_security(
                f"Failed to start Modbus TCP server on {self.host}:{self.port}: {e}",
                severity=EventSeverity.ERROR,
                data={"host": self.host, "port": self.port, "error": str(e)},
            )
            raise

        if self.port == 0:
            self.port = self._server.sockets[0].getsockname()[1]

        self.logger.info(f"Modbus TCP server listening on {self.host}:{self.port}")
        return True

    async def stop(self) -> None:
        """Stop accepting, drop open connections and release the port."""
        if self._server is None:
            return

        self.logger.info(
            f"Stopping Modbus TCP server {self.host}:{self.port} "
            f"({self.active_connections} active connections)"
        )

        self._server.close()

        # Handlers blocked on a read would keep wait_closed() waiting forever
        if self._connection_tasks:
            tasks = list(self._connection_tasks)
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            self._connection_tasks.clear()

        await self._server.wait_closed()
        self._server = None

        self.logger.info(
            f"Modbus TCP server stopped: served {self.stats['connections_total']} connections"
        )

    async def serve_forever(self) -> None:
        """Start if needed and serve until cancelled."""
        await self.start()
        try:
            await self._server.serve_forever()
        except asyncio.CancelledError:
            await self.stop()
            raise

    # ----------------------------------------------------------------
    # Connection handling
    # ----------------------------------------------------------------

    async def _handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        stream = FramedStream(reader, writer)
        peer = stream.peername
        self.stats["connections_total"] += 1

        if self.max_connections is not None and self.active_connections >= self.max_connections:
            self.stats["connections_rejected"] += 1
            await self.log_security(
                f"Rejected connection from {peer}: limit of {self.max_connections} reached",
                severity=EventSeverity.WARNING,
                source_ip=peer,
                data={"active_connections": self.active_connections},
            )
            await stream.close()
            return

        task = asyncio.current_task()
        if task is not None:
            self._connection_tasks.add(task)
        self.active_connections += 1
        self.logger.info(f"Connection from {peer}")

        try:
            await self._serve(stream, peer)
        except FrameError as e:
            self.stats["frame_errors"] += 1
            self.logger.warning(f"Closing connection from {peer}: {e}")
        except (ConnectionError, OSError) as e:
            self.logger.info(f"Connection from {peer} lost: {e}")
        finally:
            self.active_connections -= 1
            if task is not None:
                self._connection_tasks.discard(task)
            self.stats["bytes_received"] += stream.bytes_received
            self.stats["bytes_sent"] += stream.bytes_sent
            await stream.close()
            self.logger.info(f"Connection from {peer} closed")

    async def _serve(self, stream: FramedStream, peer: str) -> None:
        debug = self.logger.is_enabled_for(logging.DEBUG)

        while True:
            frame = await stream.read_frame()
            if frame is None:
                return

            if debug:
                self.logger.debug(f"Rx ({len(frame)} bytes) from {peer}: {format_frame(frame)}")

            request = decode_adu(frame)
            state, response = self.dispatcher.process(request)

            if state is DispatchState.DROPPED:
                await self.log_security(
                    f"Ignored request for unit {request.unit_id}",
                    severity=EventSeverity.NOTICE,
                    source_ip=peer,
                    data={
                        "unit_id": request.unit_id,
                        "function_code": request.pdu.function_code,
                    },
                )
                continue

            sent = await stream.write_adu(response)
            if debug:
                self.logger.debug(f"Tx ({len(sent)} bytes) to {peer}: {format_frame(sent)}")

            if request.pdu.function_code in WRITE_FUNCTIONS and not response.pdu.is_exception:
                function = FunctionCode(request.pdu.function_code)
                await self.logger.log_audit(
                    f"{function.name} from {peer} (unit {request.unit_id})",
                    user=peer,
                    action=function.name.lower(),
                    result="ALLOWED",
                    source_ip=peer,
                    data={"request": request.pdu.data.hex()},
                )

    # ----------------------------------------------------------------
    # Status
    # ----------------------------------------------------------------

    def get_status(self) -> dict[str, Any]:
        status = super().get_status()
        status.update(
            {
                "protocol": "modbus_tcp",
                "unit_id": self.unit_id,
                "max_connections": self.max_connections,
                "active_connections": self.active_connections,
                "tables": self.data_store.get_summary(),
                "stats": self.stats.copy(),
                "dispatcher": self.dispatcher.get_stats(),
            }
        )
        return status
