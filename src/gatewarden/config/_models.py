"""Configuration models for gatewarden.

This module defines the pydantic models for gateway declarations and
runtime settings:
- GatewayKind: Wire values for the two kinds of gateway
- GatewayDeclaration: A single declared gateway
- GatewaysFile: Top-level shape of the declaration file
- InvalidDeclaration: An entry that failed validation and was skipped
- LoggingConfig: Logging section of the settings
- Settings: Supervisor runtime settings
"""

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field


class GatewayKind(StrEnum):
    """Kinds of declared gateway.

    - STDIO: Owned process. The supervisor spawns the helper, which exposes
      the wrapped command on the declared port.
    - HTTP: External endpoint. The supervisor only probes the declared URL.
    """

    STDIO = "stdio"
    HTTP = "http"


class LogLevel(StrEnum):
    """Log level threshold values."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogFormat(StrEnum):
    """Log output format values."""

    JSON = "json"
    TEXT = "text"


class GatewayDeclaration(BaseModel):
    """A gateway as declared in the configuration file.

    Required fields for each kind are checked by `missing_fields()` rather
    than by the schema, so a single incomplete entry is reported and skipped
    without discarding the rest of the file.

    Attributes:
        name: Unique identifier for the gateway.
        type: Owned process (stdio) or external endpoint (http).
        command: Command wrapped by the helper (stdio only).
        args: Arguments appended to the wrapped command (stdio only).
        env: Environment overrides for the helper process (stdio only).
        port: Port the helper binds (stdio only).
        url: Address of the existing endpoint (http only).
        optional: Whether unavailability is reported as a warning.
        description: Free-form description.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(min_length=1)
    type: GatewayKind
    command: str | None = None
    args: tuple[str, ...] = ()
    env: dict[str, str] = Field(default_factory=dict)
    port: int | None = Field(default=None, ge=0, le=65535)
    url: str | None = None
    optional: bool = False
    description: str = ""

    @property
    def is_owned(self) -> bool:
        """Return True if the supervisor spawns this gateway's process."""
        return self.type == GatewayKind.STDIO

    def missing_fields(self) -> list[str]:
        """Return the names of required fields that are absent for this kind."""
        if self.type == GatewayKind.STDIO:
            missing: list[str] = []
            if not self.command:
                missing.append("command")
            if not self.port:
                missing.append("port")
            return missing
        return [] if self.url else ["url"]


class GatewaysFile(BaseModel):
    """Top-level structure of the gateway declaration file.

    Entries are kept raw and validated one at a time, so an invalid entry
    is skipped without discarding the rest of the file.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    gateways: list[Any] = Field(default_factory=list)  # pyright: ignore[reportExplicitAny]


@dataclass(frozen=True, slots=True)
class InvalidDeclaration:
    """A declaration file entry that failed validation.

    Attributes:
        index: Position of the entry in the file.
        name: The entry's name, if it has a usable one.
        error: Summary of the validation failures.
    """

    index: int
    name: str | None
    error: str


class LoggingConfig(BaseModel):
    """Logging configuration section.

    Attributes:
        level: Log level threshold. None defers to GATEWARDEN_LOG_LEVEL.
        format: Log output format.
        file: Path to log file (empty logs to stderr).
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    level: LogLevel | None = None
    format: LogFormat = LogFormat.JSON
    file: str = ""


class Settings(BaseModel):
    """Runtime settings for the gateway supervisor.

    Attributes:
        config_path: Declaration file location. None uses the default path.
        helper_command: Executable name of the wrapping helper.
        startup_grace: Seconds to wait after spawning before the first health pass.
        health_interval: Seconds between periodic health passes.
        probe_timeout: Upper bound in seconds for a single health probe.
        container_host_alias: Hostname that reaches the host loopback from
            inside a container network namespace.
        logging: Logging settings.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    config_path: Path | None = None
    helper_command: str = "supergateway"
    startup_grace: float = Field(default=10.0, ge=0)
    health_interval: float = Field(default=30.0, gt=0)
    probe_timeout: float = Field(default=5.0, gt=0)
    container_host_alias: str = "host.docker.internal"
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
