"""
Log levels and their ordering
"""

import logging
from typing import Dict, Literal

LogLevel = Literal["error", "warn", "info", "http", "debug"]

# Most severe first
SEVERITY: Dict[str, int] = {
    "error": 0,
    "warn": 1,
    "info": 2,
    "http": 3,
    "debug": 4,
}

HTTP = 15
logging.addLevelName(HTTP, "HTTP")

LEVEL_NUMBERS: Dict[str, int] = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "http": HTTP,
    "debug": logging.DEBUG,
}

_ALIASES = {"warning": "warn"}


def parse_level(name: str) -> str:
    """
    Resolve a level name from configuration or a caller

    Raises:
        ValueError: if the name is not one of the known levels
    """
    level = str(name).strip().lower()
    level = _ALIASES.get(level, level)
    if level not in SEVERITY:
        raise ValueError(
            f"Unknown log level {name!r}. Expected one of: {', '.join(SEVERITY)}"
        )
    return level


def severity(level: str) -> int:
    return SEVERITY[parse_level(level)]


def is_enabled(level: str, minimum: str) -> bool:
    """True when `level` is at least as severe as `minimum`"""
    return severity(level) <= severity(minimum)


def to_levelno(level: str) -> int:
    return LEVEL_NUMBERS[parse_level(level)]
