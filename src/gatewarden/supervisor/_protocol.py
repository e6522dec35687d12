"""Protocol definitions for the gateway supervisor.

This module defines the interfaces that decouple the supervisor core from
process spawning and network probing:
- ProcessHandle: Protocol for one spawned helper instance
- Launcher: Protocol for spawning helpers
- Prober: Protocol for health probes
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from gatewarden.config import GatewayDeclaration

    from ._models import ProcessEvent


@runtime_checkable
class ProcessHandle(Protocol):
    """Protocol for a spawned helper instance.

    A handle produces exactly one terminal event, returned by `wait()`.
    """

    @property
    def gateway(self) -> str:
        """Return the name of the gateway this process serves."""
        ...

    @property
    def generation(self) -> int:
        """Return the launch generation of this instance."""
        ...

    @property
    def pid(self) -> int:
        """Return the process ID."""
        ...

    async def wait(self) -> ProcessEvent:
        """Wait for the process to exit and return its `exited` event."""
        ...

    def terminate(self) -> None:
        """Request graceful termination without waiting."""
        ...


@runtime_checkable
class Launcher(Protocol):
    """Protocol for spawning the helper of an owned gateway."""

    async def launch(
        self,
        declaration: GatewayDeclaration,
        generation: int,
    ) -> ProcessHandle:
        """Spawn a helper instance.

        Args:
            declaration: An owned-process declaration with command and port.
            generation: Launch generation to stamp on the handle.

        Returns:
            Handle to the running instance.

        Raises:
            GatewaySpawnError: If the helper cannot be started.
        """
        ...


@runtime_checkable
class Prober(Protocol):
    """Protocol for health probes.

    Implementations must never raise and must complete in bounded time.
    """

    async def __call__(self, address: str) -> bool:
        """Return True if something answers at `address`."""
        ...
