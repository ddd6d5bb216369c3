"""
Structured logging with request correlation, error serialization and redaction
"""

from applog.config import EngineConfig, LoggerSettings, load_config
from applog.context import ContextStore
from applog.errors import serialize_error
from applog.formatter import render
from applog.levels import LogLevel
from applog.logger import BoundLogger, StructuredLogger, get_logger, reset_shared_logger
from applog.normalizer import normalize_meta
from applog.redactor import REDACTED, Redactor, redact

__all__ = [
    "BoundLogger",
    "ContextStore",
    "EngineConfig",
    "LogLevel",
    "LoggerSettings",
    "REDACTED",
    "Redactor",
    "StructuredLogger",
    "get_logger",
    "load_config",
    "normalize_meta",
    "redact",
    "render",
    "reset_shared_logger",
    "serialize_error",
]
