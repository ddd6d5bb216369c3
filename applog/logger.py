"""
Structured logger engine

Level filtering, meta normalization, redaction, record assembly and
dispatch to a stdout or file handler. Records are written through a
private stdlib logging.Logger so write failures are reported by the
handler instead of reaching the caller.
"""

import logging
import sys
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, TextIO, TypeVar

from applog.config import EngineConfig, load_config
from applog.context import ContextStore
from applog.formatter import build_formatter
from applog.levels import is_enabled, parse_level, to_levelno
from applog.normalizer import normalize_meta
from applog.redactor import Redactor

T = TypeVar("T")

# Checked in order on the raw data passed to a log call
CORRELATION_KEYS = ("requestId", "correlationId", "request_id", "correlation_id")


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with milliseconds, e.g. 2026-01-02T03:04:05.678Z"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _explicit_request_id(data: Any) -> Optional[str]:
    if not isinstance(data, Mapping):
        return None
    for key in CORRELATION_KEYS:
        value = data.get(key)
        if value:
            return str(value)
    return None


class StructuredLogger:
    """Structured logger with per-level methods, redaction and request correlation"""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        stream: Optional[TextIO] = None,
        context: Optional[ContextStore] = None,
    ):
        """
        Setup the engine and open its destination

        Args:
            config: Engine configuration (default: read from the environment)
            stream: Write here instead of stdout; ignored when config.file_path is set
            context: Context store to share with other engines (default: a new one)

        Raises:
            OSError: if the configured file cannot be opened for appending
        """
        self.config = config or load_config()
        self.context = context or ContextStore()
        self.redactor = Redactor(self.config.redact_keys)

        if self.config.file_path:
            handler: logging.Handler = logging.FileHandler(self.config.file_path, mode="a", encoding="utf-8")
        else:
            handler = logging.StreamHandler(stream or sys.stdout)
        handler.setFormatter(build_formatter(self.config.format))
        self.handler = handler

        # Not registered with logging.getLogger, so engines never share handlers
        self._logger = logging.Logger(f"applog.{self.config.service_name}")
        self._logger.propagate = False
        self._logger.setLevel(to_levelno(self.config.level))
        self._logger.addHandler(handler)

    def __enter__(self) -> "StructuredLogger":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        try:
            self.handler.flush()
        except (OSError, ValueError):
            # Destination already closed (same as logging.shutdown)
            pass
        finally:
            self._logger.removeHandler(self.handler)
            self.handler.close()

    # Context

    def run_with_context(self, request_id: Optional[str], fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        return self.context.run(request_id, fn, *args, **kwargs)

    async def arun_with_context(
        self, request_id: Optional[str], fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        return await self.context.arun(request_id, fn, *args, **kwargs)

    def current_request_id(self) -> Optional[str]:
        return self.context.current()

    # Core write

    def build_entry(self, level: str, message: str, data: Any = None) -> Dict[str, Any]:
        """Assemble the record for a log call without writing it"""
        meta = normalize_meta(data, self.config.include_stack_traces, self.config.max_error_depth)
        if self.redactor:
            meta = self.redactor.redact(meta)

        entry: Dict[str, Any] = {
            "timestamp": utc_timestamp(),
            "level": level,
            "message": message,
            "service": self.config.service_name,
            "environment": self.config.environment,
            "meta": meta,
        }

        request_id = _explicit_request_id(data) or self.context.current()
        if request_id:
            entry["requestId"] = request_id

        return entry

    def log(self, level: str, message: str, meta: Any = None) -> None:
        level = parse_level(level)
        # Only the configured minimum filters; logging.disable() does not apply
        if not is_enabled(level, self.config.level):
            return

        entry = self.build_entry(level, message, meta)
        record = self._logger.makeRecord(
            self._logger.name, to_levelno(level), "(unknown file)", 0, message, (), None, extra={"entry": entry}
        )
        self._logger.handle(record)

    # Public API

    def error(self, message: str, meta: Any = None) -> None:
        self.log("error", message, meta)

    def warn(self, message: str, meta: Any = None) -> None:
        self.log("warn", message, meta)

    warning = warn

    def info(self, message: str, meta: Any = None) -> None:
        self.log("info", message, meta)

    def http(self, message: str, meta: Optional[Mapping[str, Any]] = None) -> None:
        """
        Log a completed HTTP exchange

        `meta` is expected to carry at least method, url, statusCode and
        duration; the middleware also sends statusMessage, requestId, ip,
        userAgent and contentLength.
        """
        self.log("http", message, meta)

    def debug(self, message: str, meta: Any = None) -> None:
        self.log("debug", message, meta)

    # Child logger

    def bind(self, **fields: Any) -> "BoundLogger":
        return BoundLogger(self, fields)

    def child(self, fields: Optional[Mapping[str, Any]] = None) -> "BoundLogger":
        return BoundLogger(self, dict(fields or {}))


class BoundLogger:
    """Logger view that merges fixed fields under every call's data"""

    def __init__(self, parent: StructuredLogger, fields: Mapping[str, Any]):
        self.parent = parent
        self.fields = dict(fields)

    def _merge(self, meta: Any) -> Any:
        if meta is None:
            return dict(self.fields)
        if not isinstance(meta, Mapping):
            config = self.parent.config
            meta = normalize_meta(meta, config.include_stack_traces, config.max_error_depth)
        return {**self.fields, **meta}

    def log(self, level: str, message: str, meta: Any = None) -> None:
        self.parent.log(level, message, self._merge(meta))

    def error(self, message: str, meta: Any = None) -> None:
        self.parent.error(message, self._merge(meta))

    def warn(self, message: str, meta: Any = None) -> None:
        self.parent.warn(message, self._merge(meta))

    warning = warn

    def info(self, message: str, meta: Any = None) -> None:
        self.parent.info(message, self._merge(meta))

    def http(self, message: str, meta: Optional[Mapping[str, Any]] = None) -> None:
        self.parent.http(message, self._merge(meta))

    def debug(self, message: str, meta: Any = None) -> None:
        self.parent.debug(message, self._merge(meta))

    def bind(self, **fields: Any) -> "BoundLogger":
        return BoundLogger(self.parent, {**self.fields, **fields})


# Global logger instance
shared_logger: Optional[StructuredLogger] = None


def get_logger(config: Optional[EngineConfig] = None) -> StructuredLogger:
    """
    Get or create the process-wide logger

    The first call decides the configuration. A later call with a
    different config keeps the existing instance and logs a warning.
    """
    global shared_logger
    if shared_logger is None:
        shared_logger = StructuredLogger(config)
    elif config is not None and config != shared_logger.config:
        shared_logger.warn(
            "Shared logger already configured; ignoring new configuration",
            {"requestedService": config.service_name, "activeService": shared_logger.config.service_name},
        )
    return shared_logger


def reset_shared_logger() -> None:
    """Close and forget the process-wide logger"""
    global shared_logger
    logger, shared_logger = shared_logger, None
    if logger is not None:
        logger.close()
