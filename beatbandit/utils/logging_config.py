"""
BeatBandit Logging Configuration

structlog on top of stdlib logging. Until ``setup_logging`` runs, module
loggers use structlog's defaults and the metric helpers below are silent,
so the engine can be embedded without touching the host's logging.

Channels:
- performance: timings of recommendation requests, queues and mixes
- strategies: bandit and blended strategy decisions
- catalog: HTTP requests made by catalog clients
- errors: unexpected exceptions with context
"""

import logging
import logging.handlers
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars

MAIN_LOG_FILE = "beatbandit.log"
ERROR_LOG_FILE = "errors.log"

# HTTP client internals only above WARNING
QUIET_MODULES = ("aiohttp", "aiohttp.access", "aiohttp.client", "urllib3")

SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
]


@dataclass
class LoggingSettings:
    log_dir: str = "logs"
    log_level: str = "INFO"
    enable_console: bool = True
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5

    @property
    def level(self) -> int:
        return getattr(logging, self.log_level.upper(), logging.INFO)


class BeatBanditLogger:
    """
    Installs the handlers described by a LoggingSettings and emits the
    channel events. Files get JSON lines; the console gets colored output.
    """

    def __init__(self, settings: LoggingSettings):
        self.settings = settings
        self.log_dir = Path(settings.log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.handlers: List[logging.Handler] = []

        self._install()

    def _install(self) -> None:
        structlog.configure(
            processors=SHARED_PROCESSORS + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=False,
        )

        json_formatter = structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(default=str),
        )
        self.handlers.append(self._file_handler(MAIN_LOG_FILE, self.settings.level, json_formatter))
        self.handlers.append(self._file_handler(ERROR_LOG_FILE, logging.ERROR, json_formatter))

        if self.settings.enable_console:
            console = logging.StreamHandler(sys.stdout)
            console.setLevel(self.settings.level)
            console.setFormatter(structlog.stdlib.ProcessorFormatter(
                processor=structlog.dev.ConsoleRenderer(colors=True),
            ))
            self.handlers.append(console)

        root = logging.getLogger()
        for handler in self.handlers:
            root.addHandler(handler)
        root.setLevel(self.settings.level)

        for module in QUIET_MODULES:
            logging.getLogger(module).setLevel(logging.WARNING)

    def _file_handler(
        self,
        filename: str,
        level: int,
        formatter: logging.Formatter
    ) -> logging.handlers.RotatingFileHandler:
        handler = logging.handlers.RotatingFileHandler(
            filename=self.log_dir / filename,
            maxBytes=self.settings.max_file_size,
            backupCount=self.settings.backup_count,
            encoding="utf-8"
        )
        handler.setLevel(level)
        handler.setFormatter(formatter)
        return handler

    def uninstall(self) -> None:
        """Detach and close this instance's handlers."""
        root = logging.getLogger()
        for handler in self.handlers:
            root.removeHandler(handler)
            handler.close()
        self.handlers = []
        structlog.reset_defaults()

    def channel(self, name: str) -> structlog.stdlib.BoundLogger:
        return structlog.get_logger(name)


_logger_instance: Optional[BeatBanditLogger] = None


def setup_logging(
    log_dir: str = "logs",
    log_level: str = "INFO",
    enable_console: bool = True,
    **kwargs
) -> BeatBanditLogger:
    """
    Configure process-wide logging. Calling it again replaces the previous
    configuration.

    Args:
        log_dir: Directory for the rotating log files
        log_level: Level name for the main log and console
        enable_console: Also log to stdout
        **kwargs: ``max_file_size`` and ``backup_count``

    Returns:
        The active BeatBanditLogger
    """
    global _logger_instance

    if _logger_instance is not None:
        _logger_instance.uninstall()

    _logger_instance = BeatBanditLogger(LoggingSettings(
        log_dir=log_dir,
        log_level=log_level,
        enable_console=enable_console,
        **kwargs
    ))
    return _logger_instance


def shutdown_logging() -> None:
    """Undo ``setup_logging``."""
    global _logger_instance

    if _logger_instance is not None:
        _logger_instance.uninstall()
        _logger_instance = None


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Logger for a component once logging is configured.

    Raises:
        RuntimeError: If setup_logging() has not been called
    """
    if _logger_instance is None:
        raise RuntimeError("Logging not setup. Call setup_logging() first.")
    return _logger_instance.channel(name)


def _emit(channel: str, event: str, **fields) -> None:
    if _logger_instance is not None:
        _logger_instance.channel(channel).info(event, **fields)


def log_performance(operation: str, duration: float, **kwargs):
    """Timing of one engine operation, in seconds."""
    _emit("performance", "performance_metric", operation=operation, duration_seconds=round(duration, 6), **kwargs)


def log_api_request(method: str, url: str, status_code: int, duration: float, **kwargs):
    _emit("catalog", "catalog_request", method=method, url=url, status_code=status_code,
          duration_seconds=round(duration, 6), **kwargs)


def log_strategy_decision(strategy: str, confidence: float, **kwargs):
    """Strategy picked for a request and the confidence behind it."""
    _emit("strategies", "strategy_decision", strategy=strategy, confidence=confidence, **kwargs)


def log_error(error: Exception, context: Dict[str, Any], **kwargs):
    if _logger_instance is not None:
        _logger_instance.channel("errors").error(
            "error_occurred",
            error_type=type(error).__name__,
            error_message=str(error),
            context=context,
            **kwargs
        )


def set_request_context(request_id: str, user_id: Optional[str] = None):
    """Bind request identifiers to every event logged in this context."""
    clear_contextvars()
    bind_contextvars(
        request_id=request_id,
        user_id=user_id,
        started_at=datetime.now(timezone.utc).isoformat()
    )
