import io
import json

import pytest

from applog.config import EngineConfig
from applog.logger import StructuredLogger, reset_shared_logger

ENV_VARS = [
    "SERVICE_NAME",
    "ENVIRONMENT",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_INCLUDE_STACK_TRACES",
    "LOG_REDACT_KEYS",
    "LOG_REDACT_PATTERNS",
    "LOG_FILE",
    "LOG_MAX_ERROR_DEPTH",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_shared_logger()
    yield
    reset_shared_logger()


class Captured:
    def __init__(self, logger, buffer):
        self.logger = logger
        self.buffer = buffer

    def lines(self):
        return [line for line in self.buffer.getvalue().splitlines() if line]

    def records(self):
        return [json.loads(line) for line in self.lines()]


@pytest.fixture
def make_logger():
    created = []

    def factory(**options):
        options.setdefault("service_name", "test-service")
        options.setdefault("format", "json")
        options.setdefault("level", "debug")
        buffer = io.StringIO()
        logger = StructuredLogger(EngineConfig(**options), stream=buffer)
        created.append(logger)
        return Captured(logger, buffer)

    yield factory

    for logger in created:
        logger.close()
