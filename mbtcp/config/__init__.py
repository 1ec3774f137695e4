"""YAML configuration for servers, clients and logging."""

from mbtcp.config.config_loader import (
    ClientConfig,
    ConfigLoader,
    LoggingConfig,
    ServerConfig,
)

__all__ = ["ConfigLoader", "ServerConfig", "ClientConfig", "LoggingConfig"]
