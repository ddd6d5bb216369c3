from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import json
import re

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from applog.errors import DEFAULT_MAX_DEPTH
from applog.formatter import FORMATS
from applog.levels import parse_level
from applog.redactor import RedactRule

# Load environment variables from .env file
load_dotenv()

PRODUCTION = "production"


@dataclass(frozen=True)
class EngineConfig:
    """Immutable configuration of one logger engine"""

    service_name: str = "app"
    level: str = "debug"
    format: str = "text"
    include_stack_traces: bool = True
    redact_keys: Tuple[RedactRule, ...] = field(default_factory=tuple)
    file_path: Optional[str] = None
    environment: str = "development"
    max_error_depth: int = DEFAULT_MAX_DEPTH

    def __post_init__(self):
        # Normalize in place; the dataclass is frozen
        object.__setattr__(self, "level", parse_level(self.level))
        object.__setattr__(self, "format", str(self.format).lower())
        object.__setattr__(self, "redact_keys", tuple(self.redact_keys))
        if self.format not in FORMATS:
            raise ValueError(f"Unknown log format {self.format!r}. Expected one of: {', '.join(FORMATS)}")
        if self.max_error_depth < 1:
            raise ValueError("max_error_depth must be at least 1")

    @property
    def is_production(self) -> bool:
        return self.environment == PRODUCTION

    @classmethod
    def for_environment(cls, environment: str = "development", **overrides) -> "EngineConfig":
        """
        Build a config with the environment-sensitive defaults

        production: level info, json output, no stack traces
        anything else: level debug, text output, stack traces
        """
        is_prod = environment == PRODUCTION
        defaults = {
            "level": "info" if is_prod else "debug",
            "format": "json" if is_prod else "text",
            "include_stack_traces": not is_prod,
        }
        defaults.update({key: value for key, value in overrides.items() if value is not None})
        return cls(environment=environment, **defaults)


def _split_list(value):
    if value is None or isinstance(value, (list, tuple)):
        return value
    text = str(value).strip()
    if not text:
        return []
    if text.startswith("["):
        return json.loads(text)
    return [item.strip() for item in text.split(",") if item.strip()]


class LoggerSettings(BaseSettings):
    """Logger settings loaded from environment variables"""

    service_name: str = Field(default="app")
    environment: str = Field(default="development")

    # Unset values fall back to the environment-sensitive defaults
    log_level: Optional[str] = Field(default=None)
    log_format: Optional[str] = Field(default=None)
    log_include_stack_traces: Optional[bool] = Field(default=None)
    log_redact_keys: str = Field(default="")
    log_redact_patterns: str = Field(default="")
    log_file: Optional[str] = Field(default=None)
    log_max_error_depth: int = Field(default=DEFAULT_MAX_DEPTH)

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @field_validator("log_level")
    @classmethod
    def check_level(cls, value: Optional[str]) -> Optional[str]:
        return parse_level(value) if value else None

    def redact_rules(self) -> List[RedactRule]:
        rules: List[RedactRule] = list(_split_list(self.log_redact_keys))
        rules.extend(re.compile(pattern) for pattern in _split_list(self.log_redact_patterns))
        return rules

    def to_config(self) -> EngineConfig:
        return EngineConfig.for_environment(
            self.environment,
            service_name=self.service_name,
            level=self.log_level,
            format=self.log_format,
            include_stack_traces=self.log_include_stack_traces,
            redact_keys=tuple(self.redact_rules()),
            file_path=self.log_file or None,
            max_error_depth=self.log_max_error_depth,
        )


def load_config(**overrides) -> EngineConfig:
    """Read settings from the environment, letting explicit keyword arguments win"""
    config = LoggerSettings().to_config()
    if not overrides:
        return config
    values = {
        "service_name": config.service_name,
        "level": config.level,
        "format": config.format,
        "include_stack_traces": config.include_stack_traces,
        "redact_keys": config.redact_keys,
        "file_path": config.file_path,
        "environment": config.environment,
        "max_error_depth": config.max_error_depth,
    }
    values.update(overrides)
    return EngineConfig(**values)
