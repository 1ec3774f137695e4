# mbtcp/security/logging_system.py
"""
Structured logging system for the Modbus engine.

Provides:
- Structured logging (JSON file logs and plain console text)
- Audit trail for writes that mutate the data store
- Security events for traffic the server refuses (wrong unit id,
  connections over capacity)
- Log rotation and retention

Modbus TCP carries no authentication, so the audit trail and the security
events are the only record of who changed what.
"""

import json
import logging
import logging.handlers
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

__all__ = [
    "EventSeverity",
    "EventCategory",
    "LogEntry",
    "UptimeFormatter",
    "JSONFormatter",
    "ModbusLogger",
    "configure_logging",
    "get_logger",
]

_PROCESS_START = time.monotonic()


def _uptime() -> float:
    return time.monotonic() - _PROCESS_START


# ----------------------------------------------------------------
# Event Classification
# ----------------------------------------------------------------


class EventSeverity(Enum):
    """
    Event severity levels (aligned with IEC 62443).

    Lower number = higher severity
    """

    CRITICAL = 1
    ALERT = 2
    ERROR = 3
    WARNING = 4
    NOTICE = 5
    INFO = 6
    DEBUG = 7


class EventCategory(Enum):
    SECURITY = "security"  # Refused traffic
    AUDIT = "audit"  # Data store mutations
    SYSTEM = "system"  # Lifecycle
    COMMUNICATION = "communication"  # Network/protocol events


# Map Python logging levels to severity
LOGGING_TO_SEVERITY = {
    logging.CRITICAL: EventSeverity.CRITICAL,
    logging.ERROR: EventSeverity.ERROR,
    logging.WARNING: EventSeverity.WARNING,
    logging.INFO: EventSeverity.INFO,
    logging.DEBUG: EventSeverity.DEBUG,
}

SEVERITY_TO_LOGGING = {
    EventSeverity.CRITICAL: logging.CRITICAL,
    EventSeverity.ALERT: logging.CRITICAL,
    EventSeverity.ERROR: logging.ERROR,
    EventSeverity.WARNING: logging.WARNING,
    EventSeverity.NOTICE: logging.INFO,
    EventSeverity.INFO: logging.INFO,
    EventSeverity.DEBUG: logging.DEBUG,
}


# ----------------------------------------------------------------
# Structured Log Entry
# ----------------------------------------------------------------


@dataclass
class LogEntry:
    """Structured log entry."""

    uptime: float  # Seconds since process start
    wall_time: float  # Wall clock time
    severity: EventSeverity
    category: EventCategory
    message: str

    # Context
    device: str = ""  # Server/client instance name
    component: str = ""
    user: str = ""

    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    source_ip: str = ""  # Peer address for network events

    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialisation."""
        entry_dict = {
            "uptime": self.uptime,
            "wall_time": self.wall_time,
            "severity": self.severity.name,
            "category": self.category.value,
            "message": self.message,
            "event_id": self.event_id,
        }

        if self.device:
            entry_dict["device"] = self.device
        if self.component:
            entry_dict["component"] = self.component
        if self.user:
            entry_dict["user"] = self.user
        if self.source_ip:
            entry_dict["source_ip"] = self.source_ip
        if self.data:
            entry_dict["data"] = json.dumps(self.data)

        return entry_dict

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def to_human_readable(self) -> str:
        device_str = f"{self.device}:" if self.device else ""
        source_str = f" (from {self.source_ip})" if self.source_ip else ""
        return (
            f"[{self.category.value.upper()}] {device_str} {self.message}{source_str}"
        )


# ----------------------------------------------------------------
# Formatters
# ----------------------------------------------------------------


class UptimeFormatter(logging.Formatter):
    """Format log records with a process uptime prefix."""

    def __init__(self):
        super().__init__(fmt="[UP:%(uptime)8.2fs] [%(levelname)8s] %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        record.uptime = _uptime()
        return super().format(record)


class JSONFormatter(logging.Formatter):
    """Format log records as JSON lines."""

    def __init__(self, device: str = ""):
        super().__init__()
        self.device = device

    def format(self, record: logging.LogRecord) -> str:
        severity = LOGGING_TO_SEVERITY.get(record.levelno, EventSeverity.INFO)

        log_entry = LogEntry(
            uptime=_uptime(),
            wall_time=record.created,
            severity=severity,
            category=EventCategory.SYSTEM,
            message=record.getMessage(),
            device=self.device,
            component=record.name,
        )

        if record.exc_info:
            log_entry.data["exception"] = self.formatException(record.exc_info)

        return log_entry.to_json()


# ----------------------------------------------------------------
# Modbus Logger
# ----------------------------------------------------------------


class ModbusLogger:
    """
    Logger for Modbus servers and clients.

    Wraps Python's logging with:
    - Structured events (severity + category)
    - Audit trail of data store mutations
    - Security events for refused traffic
    - Optional rotating JSON file output
    """

    def __init__(
        self,
        name: str,
        device: str = "",
        log_dir: Path | None = None,
        level: int = logging.INFO,
        enable_json: bool = True,
        enable_console: bool = True,
        max_audit_entries: int = 10000,
    ):
        """
        Initialise logger.

        Args:
            name: Logger name (typically module name)
            device: Instance name for context
            log_dir: Directory for log files (None = no file logging)
            level: Python logging level for the handlers
            enable_json: Enable JSON formatted logs (requires log_dir)
            enable_console: Enable console output
            max_audit_entries: Maximum audit trail entries to retain
        """
        self.name = name
        self.device = device
        self.log_dir = Path(log_dir) if log_dir else None

        self.logger = logging.getLogger(name if not device else f"{name}.{device}")
        self.logger.propagate = False
        self._setup_handlers(level, enable_console, enable_json)

        # Audit trail storage (in-memory)
        self.audit_trail: list[LogEntry] = []
        self._audit_lock = threading.Lock()
        self._max_audit_entries = max_audit_entries

    def reconfigure(
        self,
        log_dir: Path | None = None,
        level: int = logging.INFO,
        enable_console: bool = True,
        enable_json: bool = True,
    ) -> None:
        """Rebuild handlers in place. Audit trail is kept."""
        self.log_dir = Path(log_dir) if log_dir else None
        self._setup_handlers(level, enable_console, enable_json)

    def _setup_handlers(self, level: int, enable_console: bool, enable_json: bool) -> None:
        self.logger.setLevel(level)
        for handler in self.logger.handlers:
            handler.close()
        self.logger.handlers.clear()

        if enable_console:
            self._add_console_handler(level)

        if enable_json and self.log_dir:
            self._add_json_handler(level)

    def _add_console_handler(self, level: int) -> None:
        handler = logging.StreamHandler()
        handler.setLevel(level)
        handler.setFormatter(UptimeFormatter())
        self.logger.addHandler(handler)

    def _add_json_handler(self, level: int) -> None:
        """Add JSON file handler with rotation."""
        if not self.log_dir:
            return

        self.log_dir.mkdir(parents=True, exist_ok=True)
        log_file = self.log_dir / f"{self.device or 'mbtcp'}.json.log"

        # Rotating file handler (10MB max, 5 backups)
        handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
        )
        handler.setLevel(level)
        handler.setFormatter(JSONFormatter(device=self.device))
        self.logger.addHandler(handler)

    # ----------------------------------------------------------------
    # Standard logging methods
    # ----------------------------------------------------------------

    def debug(self, message: str, **kwargs) -> None:
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self.logger.error(message, **kwargs)

    def critical(self, message: str, **kwargs) -> None:
        self.logger.critical(message, **kwargs)

    def exception(self, message: str, **kwargs) -> None:
        """Log exception with traceback."""
        self.logger.exception(message, **kwargs)

    def is_enabled_for(self, level: int) -> bool:
        return self.logger.isEnabledFor(level)

    # ----------------------------------------------------------------
    # Structured events
    # ----------------------------------------------------------------

    async def log_event(
        self,
        severity: EventSeverity,
        category: EventCategory,
        message: str,
        **kwargs,
    ) -> LogEntry:
        """
        Log structured event.

        Args:
            severity: Event severity level
            category: Event category
            message: Event message
            **kwargs: Additional context (device, user, source_ip, data)

        Returns:
            LogEntry that was created
        """
        device = kwargs.pop("device", self.device)

        entry = LogEntry(
            uptime=_uptime(),
            wall_time=time.time(),
            severity=severity,
            category=category,
            message=message,
            device=device,
            component=self.name,
            **kwargs,
        )

        self.logger.log(
            SEVERITY_TO_LOGGING.get(severity, logging.INFO), entry.to_human_readable()
        )

        if category in (EventCategory.AUDIT, EventCategory.SECURITY):
            with self._audit_lock:
                self.audit_trail.append(entry)
                if len(self.audit_trail) > self._max_audit_entries:
                    self.audit_trail = self.audit_trail[-self._max_audit_entries :]

        return entry

    async def log_audit(
        self, message: str, user: str = "", action: str = "", result: str = "", **kwargs
    ) -> LogEntry:
        """
        Log audit trail event.

        Args:
            message: Audit message
            user: Peer or operator who performed the action
            action: Action performed (e.g. write_multiple_registers)
            result: Result of action (ALLOWED, REJECTED, ...)
            **kwargs: Additional context
        """
        data = kwargs.get("data", {})
        data.update({"action": action, "result": result})
        kwargs["data"] = data

        return await self.log_event(
            severity=EventSeverity.NOTICE,
            category=EventCategory.AUDIT,
            message=message,
            user=user,
            **kwargs,
        )

    async def log_security(
        self, message: str, severity: EventSeverity = EventSeverity.WARNING, **kwargs
    ) -> LogEntry:
        return await self.log_event(
            severity=severity,
            category=EventCategory.SECURITY,
            message=message,
            **kwargs,
        )

    # ----------------------------------------------------------------
    # Audit trail access
    # ----------------------------------------------------------------

    async def get_audit_trail(
        self,
        limit: int = 100,
        severity: EventSeverity | None = None,
        category: EventCategory | None = None,
    ) -> list[LogEntry]:
        """
        Get audit trail entries, most recent last.

        Filters are applied before the limit.
        """
        with self._audit_lock:
            entries = list(self.audit_trail)

        if severity:
            entries = [e for e in entries if e.severity == severity]
        if category:
            entries = [e for e in entries if e.category == category]

        return entries[-limit:]

    async def clear_audit_trail(self) -> int:
        """Clear audit trail. Returns the number of entries cleared."""
        with self._audit_lock:
            count = len(self.audit_trail)
            self.audit_trail.clear()
            return count


# ----------------------------------------------------------------
# Global logger factory
# ----------------------------------------------------------------

_loggers: dict[str, ModbusLogger] = {}
_loggers_lock = threading.Lock()
_default_log_dir: Path | None = None
_default_level: int = logging.INFO
_default_console: bool = True


def configure_logging(
    log_dir: Path | str | None = None,
    level: int | str = logging.INFO,
    enable_console: bool = True,
) -> None:
    """
    Configure global logging settings.

    Existing loggers are reconfigured in place, so module-level loggers
    pick up the new settings too.

    Args:
        log_dir: Directory for JSON log files
        level: Logging level (int or name such as "DEBUG")
        enable_console: Write to stderr
    """
    global _default_log_dir, _default_level, _default_console

    if log_dir:
        _default_log_dir = Path(log_dir)
        _default_log_dir.mkdir(parents=True, exist_ok=True)
    else:
        _default_log_dir = None

    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown logging level: {level}")
        level = resolved

    _default_level = level
    _default_console = enable_console

    with _loggers_lock:
        for logger in _loggers.values():
            logger.reconfigure(
                log_dir=_default_log_dir,
                level=_default_level,
                enable_console=_default_console,
            )


def get_logger(name: str, device: str = "", **kwargs) -> ModbusLogger:
    """
    Get or create a logger.

    Thread-safe logger factory.

    Args:
        name: Logger name (typically __name__)
        device: Instance name for context
        **kwargs: Additional ModbusLogger arguments

    Returns:
        ModbusLogger instance
    """
    logger_key = f"{name}:{device}"

    with _loggers_lock:
        if logger_key not in _loggers:
            if "log_dir" not in kwargs and _default_log_dir:
                kwargs["log_dir"] = _default_log_dir
            kwargs.setdefault("level", _default_level)
            kwargs.setdefault("enable_console", _default_console)

            _loggers[logger_key] = ModbusLogger(name, device, **kwargs)

        return _loggers[logger_key]
