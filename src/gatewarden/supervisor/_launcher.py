"""Helper process launching for owned gateways.

This module provides the ProcessLauncher, which spawns the wrapping helper
for a stdio gateway, and GatewayProcess, the handle to one spawned
instance. The helper is invoked as:

    <helper> --stdio "<command> <args...>" --port <port>
"""

from __future__ import annotations

import contextlib
import os
import subprocess
from typing import TYPE_CHECKING, Literal, final

import anyio
from anyio.streams.text import TextReceiveStream

from gatewarden.exceptions import GatewaySpawnError

from ._models import ProcessEvent, ProcessEventType, get_timestamp
from ._resolver import WELL_KNOWN_BIN_DIRS, augment_path, resolve_command

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    import anyio.abc
    from structlog.typing import FilteringBoundLogger

    from gatewarden.config import GatewayDeclaration

DEFAULT_HELPER = "supergateway"

# Seconds to keep reading output after the helper exits. Descendants that
# inherited the pipes can hold them open indefinitely.
OUTPUT_DRAIN_TIMEOUT = 1.0


@final
class GatewayProcess:
    """Handle to one spawned helper instance.

    Attributes:
        gateway: Name of the gateway this process serves.
        generation: Launch generation identifying this instance.
    """

    __slots__ = ("_logger", "_process", "gateway", "generation")

    def __init__(
        self,
        gateway: str,
        generation: int,
        process: anyio.abc.Process,
        logger: FilteringBoundLogger,
    ) -> None:
        self.gateway = gateway
        self.generation = generation
        self._process = process
        self._logger = logger

    @property
    def pid(self) -> int:
        """Return the process ID of the helper."""
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        """Return the exit code, or None while the helper is running."""
        return self._process.returncode

    def _log_line(self, line: str, stream_name: Literal["stdout", "stderr"]) -> None:
        text = line.strip()
        if text:
            self._logger.debug(
                "gateway_output",
                gateway=self.gateway,
                stream=stream_name,
                line=text,
            )

    async def _forward_output(
        self,
        stream: anyio.abc.ByteReceiveStream,
        stream_name: Literal["stdout", "stderr"],
    ) -> None:
        """Forward a byte stream to the logger one line at a time.

        Args:
            stream: The helper's stdout or stderr.
            stream_name: Name of the stream ("stdout" or "stderr").
        """
        pending = ""
        try:
            async for chunk in TextReceiveStream(stream, errors="replace"):
                pending += chunk
                *lines, pending = pending.split("\n")
                for line in lines:
                    self._log_line(line, stream_name)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            # Stream closed, which is expected on process exit
            pass
        self._log_line(pending, stream_name)

    async def wait(self) -> ProcessEvent:
        """Forward output until the helper exits.

        Returns:
            The `exited` event for this instance.
        """
        async with anyio.create_task_group() as tg:
            if self._process.stdout is not None:
                tg.start_soon(self._forward_output, self._process.stdout, "stdout")
            if self._process.stderr is not None:
                tg.start_soon(self._forward_output, self._process.stderr, "stderr")

            exit_code = await self._process.wait()
            tg.cancel_scope.deadline = anyio.current_time() + OUTPUT_DRAIN_TIMEOUT

        return ProcessEvent(
            gateway=self.gateway,
            event_type=ProcessEventType.EXITED,
            generation=self.generation,
            timestamp=get_timestamp(),
            exit_code=exit_code,
        )

    def terminate(self) -> None:
        """Request graceful termination with SIGTERM without waiting."""
        with contextlib.suppress(ProcessLookupError):
            self._process.terminate()


@final
class ProcessLauncher:
    """Spawns the wrapping helper for owned gateways.

    One call to `launch` creates exactly one OS process. Retry policy
    belongs to the supervisor.
    """

    __slots__ = ("_logger", "helper", "search_dirs")

    def __init__(
        self,
        logger: FilteringBoundLogger,
        *,
        helper: str = DEFAULT_HELPER,
        search_dirs: Sequence[str] = WELL_KNOWN_BIN_DIRS,
    ) -> None:
        """Initialize the launcher.

        Args:
            logger: Receives spawn diagnostics and forwarded helper output.
            helper: Executable name or path of the wrapping helper.
            search_dirs: Installation directories used for command
                resolution and prepended to the helper's PATH.
        """
        self._logger = logger
        self.helper = helper
        self.search_dirs = tuple(search_dirs)

    def build_command(self, declaration: GatewayDeclaration) -> tuple[str, ...]:
        """Build the helper invocation for a declaration.

        Args:
            declaration: An owned-process declaration with command and port.

        Returns:
            The argument vector, helper path first.

        Raises:
            ValueError: If the declaration lacks a command or port.
        """
        if not declaration.command or not declaration.port:
            msg = f"Gateway '{declaration.name}' requires a command and a port"
            raise ValueError(msg)

        target = resolve_command(declaration.command, search_dirs=self.search_dirs)
        wrapped = " ".join((target, *declaration.args))
        helper_path = resolve_command(self.helper, search_dirs=self.search_dirs)
        return (helper_path, "--stdio", wrapped, "--port", str(declaration.port))

    def build_environment(
        self,
        declaration: GatewayDeclaration,
        base: Mapping[str, str] | None = None,
    ) -> dict[str, str]:
        """Build the helper's environment.

        The helper spawns the wrapped command through a shell that inherits
        this PATH, so the installation directories are prepended to it.
        Declaration overrides are applied last.

        Args:
            declaration: The gateway declaration.
            base: Environment to inherit. Uses os.environ if None.

        Returns:
            The complete environment for the helper.
        """
        env = dict(os.environ if base is None else base)
        env["PATH"] = augment_path(env.get("PATH"), self.search_dirs)
        env.update(declaration.env)
        return env

    async def launch(
        self,
        declaration: GatewayDeclaration,
        generation: int,
    ) -> GatewayProcess:
        """Spawn the helper for a declaration.

        Args:
            declaration: An owned-process declaration with command and port.
            generation: Launch generation to stamp on the handle.

        Returns:
            Handle to the running helper.

        Raises:
            GatewaySpawnError: If the helper cannot be started.
        """
        command = self.build_command(declaration)
        self._logger.info(
            "gateway_spawning",
            gateway=declaration.name,
            port=declaration.port,
            command=command[0],
            stdio_command=command[2],
        )

        try:
            process = await anyio.open_process(
                command,
                env=self.build_environment(declaration),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except (OSError, ValueError) as e:
            msg = f"Failed to start helper for gateway '{declaration.name}': {e}"
            raise GatewaySpawnError(msg, gateway_name=declaration.name, cause=e) from e

        return GatewayProcess(declaration.name, generation, process, self._logger)
