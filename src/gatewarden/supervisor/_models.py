"""Data models for the gateway supervisor.

This module defines the core data types for gateway supervision:
- ProcessState: Process track states for owned gateways
- HealthState: Health track states for all gateways
- ProcessEventType: Terminal events of an owned process instance
- ProcessEvent: Immutable terminal event record
- RestartDue: Control message posted when a restart timer fires
- ReachableGateway: Entry of the published directory
- ManagedGateway: Mutable per-gateway supervision record
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import anyio

    from gatewarden.config import GatewayDeclaration

    from ._protocol import ProcessHandle

LOOPBACK_HOST = "127.0.0.1"
HEALTH_PATH = "/sse"


def get_timestamp() -> str:
    """Get current timestamp in ISO 8601 format."""
    import pendulum  # noqa: PLC0415

    return pendulum.now("UTC").to_iso8601_string()


class ProcessState(StrEnum):
    """Process track states for owned gateways.

    - STARTING: The helper is being launched
    - RUNNING: The helper process is alive
    - STOPPED: The helper exited and a restart is pending, or the
      supervisor shut down
    - SKIPPED: The declaration is missing required fields and is never started
    """

    STARTING = "starting"
    RUNNING = "running"
    STOPPED = "stopped"
    SKIPPED = "skipped"


class HealthState(StrEnum):
    """Health track states, driven by periodic probing."""

    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class ProcessEventType(StrEnum):
    """Terminal events of an owned process instance.

    - EXITED: The helper process terminated
    - SPAWN_ERROR: The helper process could not be started
    """

    EXITED = "exited"
    SPAWN_ERROR = "spawn_error"


@dataclass(frozen=True, slots=True)
class ProcessEvent:
    """Immutable terminal event of an owned process instance.

    Attributes:
        gateway: Name of the gateway the process belongs to.
        event_type: Whether the process exited or failed to spawn.
        generation: Launch generation of the instance that produced the event.
        timestamp: ISO 8601 formatted timestamp.
        exit_code: Exit code if the process exited.
        cause: Failure description if the process could not be spawned.
    """

    gateway: str
    event_type: ProcessEventType
    generation: int
    timestamp: str
    exit_code: int | None = None
    cause: str | None = None


@dataclass(frozen=True, slots=True)
class RestartDue:
    """Posted to the control loop when a gateway's restart timer fires."""

    gateway: str


@dataclass(frozen=True, slots=True)
class ReachableGateway:
    """A currently healthy gateway and the address consumers should use."""

    name: str
    url: str


@dataclass(slots=True)
class ManagedGateway:
    """Mutable supervision record for one declared gateway.

    Mutated only by the supervisor's control loop and health passes.

    Attributes:
        declaration: The immutable declaration.
        process: Handle to the running helper, if any.
        process_state: Process track state. None for external endpoints,
            SKIPPED for any declaration missing required fields.
        health: Health track state.
        restart_count: Exits observed since the gateway was last healthy.
        restart_scope: Cancel scope of the pending restart timer, if any.
        generation: Number of launches so far; identifies the current instance.
        last_exit_code: Exit code from the last process termination.
        started_at: ISO 8601 timestamp of the last launch.
        stopped_at: ISO 8601 timestamp of the last exit.
    """

    declaration: GatewayDeclaration
    process: ProcessHandle | None = None
    process_state: ProcessState | None = None
    health: HealthState = HealthState.UNKNOWN
    restart_count: int = 0
    restart_scope: anyio.CancelScope | None = None
    generation: int = 0
    last_exit_code: int | None = None
    started_at: str | None = None
    stopped_at: str | None = None

    @property
    def name(self) -> str:
        """Return the unique name of this gateway."""
        return self.declaration.name

    @property
    def healthy(self) -> bool:
        """Return True if the last health probe succeeded."""
        return self.health == HealthState.HEALTHY

    @property
    def address(self) -> str:
        """Return the address probed for health.

        Owned gateways are probed on the loopback interface at the port the
        helper binds; external endpoints at their declared URL.
        """
        declaration = self.declaration
        if declaration.is_owned:
            return f"http://{LOOPBACK_HOST}:{declaration.port}{HEALTH_PATH}"
        return declaration.url or ""
