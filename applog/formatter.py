"""
Rendering of finished log entries as JSON lines or colored text
"""

import json
import logging
import math
from collections.abc import Mapping
from typing import Any, Dict

from pythonjsonlogger.json import JsonEncoder, JsonFormatter

COLORS = {
    "error": "\x1b[31m",
    "warn": "\x1b[33m",
    "info": "\x1b[36m",
    "http": "\x1b[32m",
    "debug": "\x1b[35m",
}
RESET = "\x1b[0m"

CIRCULAR = "[Circular]"

FORMATS = ("json", "text")


def _break_cycles(value: Any, ancestors: set) -> Any:
    """Copy containers, replacing any that is its own ancestor with a marker"""
    if isinstance(value, float) and not math.isfinite(value):
        return None

    if not isinstance(value, (Mapping, list, tuple)):
        return value

    marker = id(value)
    if marker in ancestors:
        return CIRCULAR

    ancestors.add(marker)
    try:
        if isinstance(value, Mapping):
            return {
                key if isinstance(key, str) else str(key): _break_cycles(item, ancestors)
                for key, item in value.items()
            }
        return [_break_cycles(item, ancestors) for item in value]
    finally:
        ancestors.discard(marker)


def to_json(value: Any) -> str:
    """Serialize to single-line JSON without failing on cycles or unknown objects"""
    return json.dumps(
        _break_cycles(value, set()),
        cls=JsonEncoder,
        ensure_ascii=False,
        separators=(",", ":"),
    )


def render_json(entry: Mapping[str, Any]) -> str:
    return to_json(entry)


def render_text(entry: Mapping[str, Any]) -> str:
    """
    Human-readable layout:
    2026-01-02 03:04:05 INFO  [req-1] message {"key":"value"}
    """
    level = entry["level"]
    color = COLORS.get(level, "")
    timestamp = entry["timestamp"].replace("T", " ")[:19]
    label = level.upper().ljust(5)
    request_id = f"[{entry['requestId']}]" if entry.get("requestId") else ""
    meta = entry.get("meta") or {}
    rendered_meta = f" {to_json(meta)}" if meta else ""
    message = str(entry["message"]).replace("\r", "\\r").replace("\n", "\\n")

    return f"{timestamp} {color}{label}{RESET} {request_id} {message}{rendered_meta}"


def render(entry: Mapping[str, Any], mode: str = "json") -> str:
    """Render an entry as one line of text in the given mode (json or text)"""
    if mode == "json":
        return render_json(entry)
    if mode == "text":
        return render_text(entry)
    raise ValueError(f"Unknown log format {mode!r}. Expected one of: {', '.join(FORMATS)}")


class JsonEntryFormatter(JsonFormatter):
    """JSON formatter for records that carry a prepared entry"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        log_record.update(record.entry)

    def jsonify_log_record(self, log_record: Dict[str, Any]) -> str:
        return render_json(log_record)


class TextEntryFormatter(logging.Formatter):
    """Colored single-line formatter for records that carry a prepared entry"""

    def format(self, record: logging.LogRecord) -> str:
        return render_text(record.entry)


def build_formatter(mode: str) -> logging.Formatter:
    if mode == "json":
        return JsonEntryFormatter()
    if mode == "text":
        return TextEntryFormatter()
    raise ValueError(f"Unknown log format {mode!r}. Expected one of: {', '.join(FORMATS)}")
