# mbtcp/network/servers/base_server.py
"""
Base class for TCP protocol servers.

Provides shared infrastructure that a protocol server needs:
- Host/port binding
- Instance identity (device_name, used as logging context)
- ModbusLogger integration (security and audit events)
- Common status reporting
"""

from abc import ABC, abstractmethod
from typing import Any

from mbtcp.security.logging_system import EventSeverity, ModbusLogger, get_logger


class BaseProtocolServer(ABC):
    """Base class for TCP protocol servers.

    Subclasses must implement: running, start(), stop().
    """

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 0,
        device_name: str = "unknown",
    ):
        if not host:
            raise ValueError("host cannot be empty")
        if not 0 <= port < 65536:
            raise ValueError(f"port must be 0-65535, got {port}")

        self.host = host
        self.port = port
        self.device_name = device_name
        self.logger: ModbusLogger = get_logger(
            self.__class__.__module__,
            device=device_name,
        )

    @property
    @abstractmethod
    def running(self) -> bool: ...

    @abstractmethod
    async def start(self) -> Any: ...

    @abstractmethod
    async def stop(self) -> None: ...

    async def log_security(
        self,
        message: str,
        severity: EventSeverity = EventSeverity.INFO,
        source_ip: str = "",
        data: dict[str, Any] | None = None,
    ) -> None:
        """Log a security event via ModbusLogger."""
        await self.logger.log_security(
            message=message,
            severity=severity,
            source_ip=source_ip,
            data=data or {},
        )

    def get_status(self) -> dict[str, Any]:
        """Get server status. Override to add protocol-specific fields."""
        return {
            "running": self.running,
            "host": self.host,
            "port": self.port,
            "device": self.device_name,
        }
