# mbtcp/config/config_loader.py
"""
Config loader module for modular YAML configuration.

    config/
    ├── server.yml     # server:  host, port, unit_id, max_connections, tables
    ├── client.yml     # client:  host, port, unit_id, timeout, read_retries
    └── logging.yml    # logging: log_dir, level, json

Table entries in server.yml are either a list of initial values or an int
size meaning that many zeros:

    server:
      port: 5020
      holding_registers: [1, 2, 3, 4]
      coils: 16
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from mbtcp.security.logging_system import get_logger

__all__ = [
    "ConfigLoader",
    "ServerConfig",
    "ClientConfig",
    "LoggingConfig",
]

logger = get_logger(__name__)

TABLE_NAMES = ("coils", "discrete_inputs", "holding_registers", "input_registers")


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 502
    unit_id: int = 1
    max_connections: int | None = None
    coils: list[int] = field(default_factory=list)
    discrete_inputs: list[int] = field(default_factory=list)
    holding_registers: list[int] = field(default_factory=list)
    input_registers: list[int] = field(default_factory=list)

    def __post_init__(self):
        if not self.host:
            raise ValueError("host cannot be empty")
        if not 0 <= self.port < 65536:
            raise ValueError(f"port must be 0-65535, got {self.port}")
        if not 1 <= self.unit_id <= 247:
            raise ValueError(f"unit_id must be 1-247, got {self.unit_id}")
        if self.max_connections is not None and self.max_connections < 1:
            raise ValueError(
                f"max_connections must be >= 1 or null, got {self.max_connections}"
            )


@dataclass
class ClientConfig:
    host: str = "127.0.0.1"
    port: int = 502
    unit_id: int = 1
    timeout: float = 1.0
    read_retries: int = 3

    def __post_init__(self):
        if not self.host:
            raise ValueError("host cannot be empty")
        if not 1 <= self.port < 65536:
            raise ValueError(f"port must be 1-65535, got {self.port}")
        if not 0 <= self.unit_id <= 255:
            raise ValueError(f"unit_id must be 0-255, got {self.unit_id}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")
        if self.read_retries < 0:
            raise ValueError(f"read_retries must be >= 0, got {self.read_retries}")


@dataclass
class LoggingConfig:
    log_dir: str | None = None
    level: str = "INFO"
    json: bool = True


def _table_values(name: str, value: Any) -> list[int]:
    """Expand an int size to zeros, pass lists through."""
    if value is None:
        return []
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a list of values or a size, got {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"{name} size must be >= 0, got {value}")
        return [0] * value
    if isinstance(value, list):
        return [int(v) for v in value]
    raise ValueError(f"{name} must be a list of values or a size, got {value!r}")


class ConfigLoader:
    """Loads and merges modular configuration files."""

    def __init__(self, config_dir="config"):
        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)

    def _read(self, filename: str, key: str) -> dict[str, Any] | None:
        path = self.config_dir / filename
        if not path.exists():
            return None
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        section = data.get(key, {})
        if not isinstance(section, dict):
            raise ValueError(f"{path}: '{key}' must be a mapping")
        return section

    def load_all(self):
        """Load all configuration files and merge them."""
        config = {}

        # Load server config
        server = self._read("server.yml", "server")
        if server is None:
            server = self._create_default_server()
            self._save_server(server)
        config["server"] = server

        # Load client config
        client = self._read("client.yml", "client")
        config["client"] = client if client is not None else {}

        # Load logging config
        logging_section = self._read("logging.yml", "logging")
        config["logging"] = logging_section if logging_section is not None else {}

        return config

    def load_server_config(self) -> ServerConfig:
        raw = dict(self.load_all()["server"])
        for name in TABLE_NAMES:
            raw[name] = _table_values(name, raw.get(name))
        return ServerConfig(**_known_fields(ServerConfig, raw, "server"))

    def load_client_config(self) -> ClientConfig:
        raw = self._read("client.yml", "client") or {}
        return ClientConfig(**_known_fields(ClientConfig, raw, "client"))

    def load_logging_config(self) -> LoggingConfig:
        raw = self._read("logging.yml", "logging") or {}
        return LoggingConfig(**_known_fields(LoggingConfig, raw, "logging"))

    def _create_default_server(self):
        """Create default server configuration."""
        return {
            "host": "0.0.0.0",
            "port": 5020,
            "unit_id": 1,
            "max_connections": None,
            "coils": 100,
            "discrete_inputs": 100,
            "holding_registers": 100,
            "input_registers": 100,
        }

    def _save_server(self, server):
        """Save server configuration to file."""
        server_path = self.config_dir / "server.yml"
        with open(server_path, "w") as f:
            yaml.dump({"server": server}, f, default_flow_style=False)
        logger.info(f"Created default server config at {server_path}")


def _known_fields(cls, raw: dict[str, Any], section: str) -> dict[str, Any]:
    known = cls.__dataclass_fields__.keys()
    unknown = sorted(set(raw) - set(known))
    if unknown:
        logger.warning(f"Ignoring unknown {section} config keys: {', '.join(unknown)}")
    return {k: v for k, v in raw.items() if k in known}
