# mbtcp/cli.py
"""
Command line interface.

    mbtcp serve  [--config-dir D] [--host H] [--port P] [--unit-id U] [--max-connections N]
    mbtcp read   {coils,discrete-inputs,holding-registers,input-registers} ADDRESS QUANTITY
    mbtcp write  {coil,register,coils,registers} ADDRESS VALUE...

Command line options override values from the YAML config directory.

Exit codes:
    0  ok
    1  Modbus exception response
    2  timeout
    3  connection or framing error
"""

import argparse
import asyncio
import signal
import sys
from collections.abc import Sequence

from mbtcp.client.tcp_client import ModbusTCPClient
from mbtcp.config.config_loader import ClientConfig, ConfigLoader, ServerConfig
from mbtcp.network.servers.modbus_tcp_server import ModbusTCPServer
from mbtcp.protocol.errors import FrameError, ModbusException, ModbusTimeout, ResponseMismatch
from mbtcp.security.logging_system import configure_logging, get_logger

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_MODBUS_EXCEPTION = 1
EXIT_TIMEOUT = 2
EXIT_CONNECTION_ERROR = 3

READ_TABLES = {
    "coils": "read_coils",
    "discrete-inputs": "read_discrete_inputs",
    "holding-registers": "read_holding_registers",
    "input-registers": "read_input_registers",
}

WRITE_KINDS = {
    "coil": "write_single_coil",
    "register": "write_single_register",
    "coils": "write_multiple_coils",
    "registers": "write_multiple_registers",
}

_COIL_WORDS = {"1": 1, "on": 1, "true": 1, "0": 0, "off": 0, "false": 0}


# ----------------------------------------------------------------
# Argument types
# ----------------------------------------------------------------


def _u16(text: str) -> int:
    try:
        value = int(text, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {text!r}") from None
    if not 0 <= value <= 0xFFFF:
        raise argparse.ArgumentTypeError(f"must be 0-65535, got {value}")
    return value


def _unit_id(text: str) -> int:
    value = _u16(text)
    if value > 0xFF:
        raise argparse.ArgumentTypeError(f"must be 0-255, got {value}")
    return value


def _positive_float(text: str) -> float:
    value = float(text)
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be > 0, got {value}")
    return value


def _coil_value(text: str) -> int:
    try:
        return _COIL_WORDS[text.lower()]
    except KeyError:
        raise argparse.ArgumentTypeError(
            f"coil value must be one of {', '.join(_COIL_WORDS)}, got {text!r}"
        ) from None


# ----------------------------------------------------------------
# Parser
# ----------------------------------------------------------------


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config-dir", default=None, help="Directory holding server/client/logging .yml"
    )
    parser.add_argument("--host", default=None, help="Server host")
    parser.add_argument("--port", type=_u16, default=None, help="Server port")
    parser.add_argument("--unit-id", type=_unit_id, default=None, help="Unit id")
    parser.add_argument(
        "--timeout", type=_positive_float, default=None, help="Seconds per attempt"
    )
    parser.add_argument(
        "--retries", type=int, default=None, help="Extra attempts after a timeout"
    )
    parser.add_argument(
        "--log-level", default=None, help="Logging level (DEBUG, INFO, WARNING, ...)"
    )


def create_parser():
    """Create argument parser with all commands."""
    parser = argparse.ArgumentParser(
        prog="mbtcp",
        description="Modbus TCP server and client",
        epilog="""
Examples:
  # Serve a slave on port 5020 answering unit 1
  mbtcp serve --port 5020 --unit-id 1

  # Read ten holding registers starting at 0
  mbtcp read holding-registers 0 10 --port 5020

  # Write three registers starting at 100
  mbtcp write registers 100 1 2 0x10 --port 5020
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run a Modbus TCP server")
    _add_common_arguments(serve_parser)
    serve_parser.add_argument(
        "--max-connections",
        type=int,
        default=None,
        help="Concurrent connection limit (default: unbounded)",
    )

    # read
    read_parser = subparsers.add_parser("read", help="Read from a server")
    _add_common_arguments(read_parser)
    read_parser.add_argument("table", choices=sorted(READ_TABLES))
    read_parser.add_argument("address", type=_u16)
    read_parser.add_argument("quantity", type=_u16)

    # write
    write_parser = subparsers.add_parser("write", help="Write to a server")
    _add_common_arguments(write_parser)
    write_parser.add_argument("kind", choices=sorted(WRITE_KINDS))
    write_parser.add_argument("address", type=_u16)
    write_parser.add_argument("values", nargs="+")

    return parser


# ----------------------------------------------------------------
# Config resolution
# ----------------------------------------------------------------


def _override(config, **overrides):
    for name, value in overrides.items():
        if value is not None:
            setattr(config, name, value)
    # Re-run validation on the merged values
    config.__post_init__()
    return config


def _server_config(args) -> ServerConfig:
    if args.config_dir:
        config = ConfigLoader(args.config_dir).load_server_config()
    else:
        config = ServerConfig(
            port=5020,
            coils=[0] * 100,
            discrete_inputs=[0] * 100,
            holding_registers=[0] * 100,
            input_registers=[0] * 100,
        )
    return _override(
        config,
        host=args.host,
        port=args.port,
        unit_id=args.unit_id,
        max_connections=args.max_connections,
    )


def _client_config(args) -> ClientConfig:
    if args.config_dir:
        config = ConfigLoader(args.config_dir).load_client_config()
    else:
        config = ClientConfig()
    return _override(
        config,
        host=args.host,
        port=args.port,
        unit_id=args.unit_id,
        timeout=args.timeout,
        read_retries=args.retries,
    )


def _configure_logging(args, default_level: str) -> None:
    if args.config_dir:
        logging_config = ConfigLoader(args.config_dir).load_logging_config()
        configure_logging(
            log_dir=logging_config.log_dir if logging_config.json else None,
            level=args.log_level or logging_config.level,
        )
    else:
        configure_logging(level=args.log_level or default_level)


# ----------------------------------------------------------------
# Commands
# ----------------------------------------------------------------


async def _serve(args) -> int:
    config = _server_config(args)
    server = ModbusTCPServer.from_config(config)

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}")
        loop.call_soon_threadsafe(shutdown.set)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    await server.start()
    print(f"Serving unit {server.unit_id} on {server.host}:{server.port}. Press Ctrl+C to stop.")
    try:
        await shutdown.wait()
    finally:
        await server.stop()
    return EXIT_OK


async def _read(args) -> int:
    config = _client_config(args)
    async with ModbusTCPClient.from_config(config) as client:
        slave = client.with_slave(config.unit_id)
        values = await getattr(slave, READ_TABLES[args.table])(args.address, args.quantity)

    for offset, value in enumerate(values):
        print(f"{args.address + offset}: {value}")
    return EXIT_OK


def _write_values(kind: str, raw: Sequence[str]) -> list[int]:
    parse = _coil_value if kind.startswith("coil") else _u16
    try:
        return [parse(text) for text in raw]
    except argparse.ArgumentTypeError as e:
        raise ValueError(str(e)) from None


async def _write(args) -> int:
    values = _write_values(args.kind, args.values)
    if args.kind in ("coil", "register") and len(values) != 1:
        raise ValueError(f"write {args.kind} takes exactly one value, got {len(values)}")

    config = _client_config(args)
    async with ModbusTCPClient.from_config(config) as client:
        slave = client.with_slave(config.unit_id)
        method = getattr(slave, WRITE_KINDS[args.kind])
        if args.kind in ("coil", "register"):
            address, echoed = await method(args.address, values[0])
            print(f"{address}: {echoed:#06x}" if args.kind == "coil" else f"{address}: {echoed}")
        else:
            address, quantity = await method(args.address, values)
            print(f"Wrote {quantity} {args.kind} at {address}")
    return EXIT_OK


COMMANDS = {
    "serve": _serve,
    "read": _read,
    "write": _write,
}


async def run(args) -> int:
    """Run a parsed command, mapping failures to exit codes."""
    try:
        return await COMMANDS[args.command](args)
    except ModbusException as e:
        print(f"Modbus exception {e.exception_code:#04x}: {e}", file=sys.stderr)
        return EXIT_MODBUS_EXCEPTION
    except ModbusTimeout as e:
        print(f"Timeout: {e}", file=sys.stderr)
        return EXIT_TIMEOUT
    except (FrameError, ResponseMismatch, ConnectionError) as e:
        print(f"Connection error: {e}", file=sys.stderr)
        return EXIT_CONNECTION_ERROR


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        _configure_logging(args, "INFO" if args.command == "serve" else "WARNING")
        return asyncio.run(run(args))
    except ValueError as e:
        parser.error(str(e))


if __name__ == "__main__":
    sys.exit(main())
