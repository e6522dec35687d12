"""Gatewarden exceptions."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


class GatewardenError(Exception):
    """Base exception for gatewarden errors."""


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigError(GatewardenError):
    """Base exception for configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when the gateway declaration file cannot be read or parsed."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        """Initialize with error message and optional location context."""
        super().__init__(message)
        self.path: Path | None = path
        self.line: int | None = line
        self.column: int | None = column


# =============================================================================
# Supervisor Exceptions
# =============================================================================


class SupervisorError(GatewardenError):
    """Base exception for supervisor errors."""


class GatewayNotFoundError(SupervisorError, KeyError):
    """Raised when a gateway cannot be found by name.

    Attributes:
        gateway_name: The name of the gateway that was not found.
    """

    def __init__(self, message: str, *, gateway_name: str | None = None) -> None:
        """Initialize with error message and gateway context.

        Args:
            message: Human-readable error message.
            gateway_name: The name of the gateway that was not found.
        """
        super().__init__(message)
        self.gateway_name: str | None = gateway_name


class GatewaySpawnError(SupervisorError):
    """Raised when the helper process for a gateway cannot be started.

    Attributes:
        gateway_name: The name of the gateway that failed to start.
        cause: The underlying exception that caused the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        gateway_name: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and gateway context.

        Args:
            message: Human-readable error message.
            gateway_name: The name of the gateway that failed to start.
            cause: The underlying exception that caused the failure.
        """
        super().__init__(message)
        self.gateway_name: str | None = gateway_name
        self.cause: Exception | None = cause
