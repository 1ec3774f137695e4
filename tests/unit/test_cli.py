# tests/unit/test_cli.py
"""Tests for the mbtcp command line interface.

Commands are run in-process through cli.run() against a real server on
loopback, so exit codes and printed output are checked end to end.
"""

import pytest
import yaml

from mbtcp import cli
from mbtcp.security.logging_system import configure_logging


@pytest.fixture
def parser():
    return cli.create_parser()


def _client_args(server, *extra):
    return [*extra, "--host", "127.0.0.1", "--port", str(server.port), "--timeout", "0.5"]


# ================================================================
# PARSER TESTS
# ================================================================
class TestParser:
    """Test argument parsing."""

    def test_read_arguments(self, parser):
        args = parser.parse_args(["read", "holding-registers", "0x10", "4", "--unit-id", "3"])

        assert args.command == "read"
        assert args.table == "holding-registers"
        assert args.address == 16
        assert args.quantity == 4
        assert args.unit_id == 3

    def test_unknown_table_rejected(self, parser):
        with pytest.raises(SystemExit):
            parser.parse_args(["read", "widgets", "0", "1"])

    def test_address_out_of_range(self, parser):
        with pytest.raises(SystemExit):
            parser.parse_args(["read", "coils", "65536", "1"])

    def test_unit_id_out_of_range(self, parser):
        with pytest.raises(SystemExit):
            parser.parse_args(["read", "coils", "0", "1", "--unit-id", "256"])

    def test_command_required(self, parser):
        with pytest.raises(SystemExit):
            parser.parse_args([])

    def test_serve_max_connections(self, parser):
        args = parser.parse_args(["serve", "--port", "1502", "--max-connections", "4"])

        config = cli._server_config(args)

        assert config.port == 1502
        assert config.max_connections == 4
        assert len(config.holding_registers) == 100

    def test_serve_invalid_override(self, parser):
        """Test that overrides are validated like config files.

        WHY: 0 is not a valid max_connections.
        """
        args = parser.parse_args(["serve", "--max-connections", "0"])

        with pytest.raises(ValueError, match="max_connections"):
            cli._server_config(args)

    def test_client_config_from_dir_with_overrides(self, parser, temp_config_dir):
        with open(temp_config_dir / "client.yml", "w") as f:
            yaml.dump({"client": {"host": "10.1.1.1", "port": 502, "read_retries": 5}}, f)
        args = parser.parse_args(
            ["read", "coils", "0", "1", "--config-dir", str(temp_config_dir), "--port", "1502"]
        )

        config = cli._client_config(args)

        assert config.host == "10.1.1.1"
        assert config.port == 1502
        assert config.read_retries == 5

    def test_main_parser_error_on_bad_write(self):
        """Test that invalid values exit with a usage error.

        WHY: Bad input is the user's mistake, not a network failure.
        """
        try:
            with pytest.raises(SystemExit) as exc_info:
                cli.main(["write", "coil", "0", "maybe"])
            assert exc_info.value.code == 2
        finally:
            configure_logging()


# ================================================================
# READ COMMAND TESTS
# ================================================================
class TestReadCommand:
    """Test mbtcp read."""

    async def test_read_holding_registers(self, parser, modbus_server, capsys):
        args = parser.parse_args(_client_args(modbus_server, "read", "holding-registers", "2", "3"))

        assert await cli.run(args) == cli.EXIT_OK
        assert capsys.readouterr().out.splitlines() == ["2: 20", "3: 30", "4: 40"]

    async def test_read_coils(self, parser, modbus_server, capsys):
        args = parser.parse_args(_client_args(modbus_server, "read", "coils", "0", "4"))

        assert await cli.run(args) == cli.EXIT_OK
        assert capsys.readouterr().out.splitlines() == ["0: 1", "1: 0", "2: 1", "3: 0"]

    async def test_modbus_exception_exit_code(self, parser, modbus_server, capsys):
        args = parser.parse_args(
            _client_args(modbus_server, "read", "holding-registers", "0", "126")
        )

        assert await cli.run(args) == cli.EXIT_MODBUS_EXCEPTION
        assert "Modbus exception 0x03" in capsys.readouterr().err

    async def test_timeout_exit_code(self, parser, modbus_server, capsys):
        """Test a unit id the server does not answer.

        WHY: Ignored requests surface as timeouts.
        """
        args = parser.parse_args(
            _client_args(
                modbus_server, "read", "coils", "0", "1", "--unit-id", "9", "--retries", "0"
            )
        )

        assert await cli.run(args) == cli.EXIT_TIMEOUT
        assert "Timed out during read attempt" in capsys.readouterr().err

    async def test_connection_error_exit_code(self, parser, capsys):
        from mbtcp.network.servers.modbus_tcp_server import ModbusTCPServer

        server = ModbusTCPServer(0, 1, host="127.0.0.1")
        await server.start()
        port = server.port
        await server.stop()

        args = parser.parse_args(
            ["read", "coils", "0", "1", "--host", "127.0.0.1", "--port", str(port)]
        )

        assert await cli.run(args) == cli.EXIT_CONNECTION_ERROR
        assert "Connection error" in capsys.readouterr().err


# ================================================================
# WRITE COMMAND TESTS
# ================================================================
class TestWriteCommand:
    """Test mbtcp write."""

    async def test_write_coil(self, parser, modbus_server, data_store, capsys):
        args = parser.parse_args(_client_args(modbus_server, "write", "coil", "3", "on"))

        assert await cli.run(args) == cli.EXIT_OK
        assert capsys.readouterr().out.strip() == "3: 0xff00"
        assert data_store.coils.read(3, 1) == [1]

    async def test_write_register(self, parser, modbus_server, data_store, capsys):
        args = parser.parse_args(_client_args(modbus_server, "write", "register", "1", "0x2a"))

        assert await cli.run(args) == cli.EXIT_OK
        assert capsys.readouterr().out.strip() == "1: 42"
        assert data_store.holding_registers.read(1, 1) == [42]

    async def test_write_registers(self, parser, modbus_server, data_store, capsys):
        args = parser.parse_args(
            _client_args(modbus_server, "write", "registers", "5", "1", "2", "3")
        )

        assert await cli.run(args) == cli.EXIT_OK
        assert capsys.readouterr().out.strip() == "Wrote 3 registers at 5"
        assert data_store.holding_registers.read(5, 3) == [1, 2, 3]

    async def test_write_coils(self, parser, modbus_server, data_store, capsys):
        args = parser.parse_args(
            _client_args(modbus_server, "write", "coils", "8", "1", "off", "true")
        )

        assert await cli.run(args) == cli.EXIT_OK
        assert data_store.coils.read(8, 3) == [1, 0, 1]

    async def test_single_write_rejects_many_values(self, parser, modbus_server):
        args = parser.parse_args(_client_args(modbus_server, "write", "register", "1", "2", "3"))

        with pytest.raises(ValueError, match="exactly one value"):
            await cli.run(args)
