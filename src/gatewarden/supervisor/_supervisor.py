"""Gateway supervisor coordinating owned processes and health polling.

This module provides the GatewaySupervisor class. Process exits, spawn
failures and restart timers are posted as messages to a single control
loop; health passes apply their results without awaiting in between. No
two handlers ever mutate the same ManagedGateway concurrently, so no locks
are needed.
"""

from __future__ import annotations

import math
import signal
from contextlib import AsyncExitStack
from typing import TYPE_CHECKING, final

import anyio

from gatewarden.config import Settings, dedupe_declarations, load_declarations
from gatewarden.exceptions import GatewayNotFoundError, GatewaySpawnError
from gatewarden.utils import create_supervisor_logger

from ._backoff import ExponentialBackoff
from ._directory import currently_reachable
from ._health import HealthProber
from ._launcher import ProcessLauncher
from ._models import (
    HealthState,
    ManagedGateway,
    ProcessEvent,
    ProcessEventType,
    ProcessState,
    ReachableGateway,
    RestartDue,
    get_timestamp,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import TracebackType
    from typing import Self

    import anyio.abc
    from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
    from structlog.typing import FilteringBoundLogger

    from gatewarden.config import GatewayDeclaration

    from ._protocol import Launcher, ProcessHandle, Prober

ControlMessage = ProcessEvent | RestartDue


@final
class GatewaySupervisor:
    """Supervises owned gateway processes and probes every gateway's health.

    `start()` and `stop()` must be awaited from the same task, because the
    supervisor's task group is entered in one and exited in the other.
    Using the supervisor as an async context manager, or calling `run()`,
    satisfies this.

    Example:
        >>> async with GatewaySupervisor(declarations) as supervisor:
        ...     supervisor.currently_reachable()
        [ReachableGateway(name='filesystem', url='http://host.docker.internal:9100/sse')]
    """

    __slots__ = (
        "_active_prober",
        "_backoff",
        "_declarations",
        "_exit_stack",
        "_gateways",
        "_launcher",
        "_logger",
        "_poll_scope",
        "_prober",
        "_send_stream",
        "_task_group",
        "settings",
    )

    def __init__(
        self,
        declarations: Sequence[GatewayDeclaration] | None = None,
        *,
        settings: Settings | None = None,
        launcher: Launcher | None = None,
        prober: Prober | None = None,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        """Initialize the supervisor.

        Args:
            declarations: Gateways to supervise. If None, they are loaded
                from the declaration file when the supervisor starts.
            settings: Runtime settings. Uses defaults if None.
            launcher: Spawns helper processes. Uses ProcessLauncher if None.
            prober: Probes gateway addresses. A HealthProber is created for
                the supervisor's lifetime if None.
            logger: Structured logger. Built from the settings if None.
        """
        self.settings = settings or Settings()
        logging_config = self.settings.logging
        self._logger: FilteringBoundLogger = logger or create_supervisor_logger(
            level=logging_config.level.value if logging_config.level else None,
            log_format=logging_config.format.value,  # type: ignore[arg-type]
            log_file=logging_config.file,
        )
        self._launcher: Launcher = launcher or ProcessLauncher(
            self._logger,
            helper=self.settings.helper_command,
        )
        self._prober: Prober | None = prober
        self._backoff = ExponentialBackoff()
        self._declarations: list[GatewayDeclaration] | None = (
            None
            if declarations is None
            else dedupe_declarations(declarations, logger=self._logger)
        )
        self._gateways: dict[str, ManagedGateway] = {}
        self._exit_stack: AsyncExitStack | None = None
        self._task_group: anyio.abc.TaskGroup | None = None
        self._send_stream: MemoryObjectSendStream[ControlMessage] | None = None
        self._poll_scope: anyio.CancelScope | None = None
        self._active_prober: Prober | None = None

    @property
    def gateways(self) -> dict[str, ManagedGateway]:
        """Return the supervision records keyed by gateway name."""
        return self._gateways

    @property
    def is_started(self) -> bool:
        """Return True between `start()` and `stop()`."""
        return self._exit_stack is not None

    def get_gateway(self, name: str) -> ManagedGateway:
        """Get a gateway by name.

        Args:
            name: The gateway name.

        Returns:
            The supervision record for the named gateway.

        Raises:
            GatewayNotFoundError: If no gateway exists with that name.
        """
        managed = self._gateways.get(name)
        if managed is None:
            msg = f"Gateway '{name}' not found"
            raise GatewayNotFoundError(msg, gateway_name=name)
        return managed

    # -------------------------------------------------------------------------
    # Control loop
    # -------------------------------------------------------------------------

    def _post(self, message: ControlMessage) -> None:
        """Deliver a message to the control loop."""
        if self._send_stream is None:
            return
        try:
            self._send_stream.send_nowait(message)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            # Supervisor is shutting down
            pass

    async def _dispatch(self, receive: MemoryObjectReceiveStream[ControlMessage]) -> None:
        """Consume control messages one at a time until shutdown."""
        async with receive:
            async for message in receive:
                if isinstance(message, RestartDue):
                    await self._handle_restart_due(message)
                else:
                    self._handle_process_event(message)

    async def _watch_process(self, handle: ProcessHandle) -> None:
        event = await handle.wait()
        self._post(event)

    async def _start_gateway_process(self, managed: ManagedGateway) -> None:
        """Launch a new helper instance for an owned gateway.

        A spawn failure is posted as a `spawn_error` event and follows the
        same restart path as an exit.
        """
        if self._task_group is None:
            return

        managed.generation += 1
        generation = managed.generation
        managed.process_state = ProcessState.STARTING
        managed.started_at = get_timestamp()

        try:
            handle = await self._launcher.launch(managed.declaration, generation)
        except GatewaySpawnError as e:
            self._logger.error("gateway_spawn_error", gateway=managed.name, error=str(e))
            self._post(
                ProcessEvent(
                    gateway=managed.name,
                    event_type=ProcessEventType.SPAWN_ERROR,
                    generation=generation,
                    timestamp=get_timestamp(),
                    cause=str(e.cause or e),
                )
            )
            return

        if self._task_group is None or self._gateways.get(managed.name) is not managed:
            # Stopped while the helper was being spawned
            handle.terminate()
            return

        managed.process = handle
        managed.process_state = ProcessState.RUNNING
        self._task_group.start_soon(self._watch_process, handle)

    def _handle_process_event(self, event: ProcessEvent) -> None:
        """Mark the gateway down and schedule a restart with backoff.

        Events from superseded instances, and repeated events for an instance
        that was already handled, are ignored.
        """
        managed = self._gateways.get(event.gateway)
        if (
            managed is None
            or event.generation != managed.generation
            or managed.process_state not in (ProcessState.STARTING, ProcessState.RUNNING)
        ):
            return

        managed.process = None
        managed.process_state = ProcessState.STOPPED
        managed.health = HealthState.UNHEALTHY
        managed.stopped_at = event.timestamp
        managed.last_exit_code = event.exit_code

        if event.event_type == ProcessEventType.EXITED:
            self._logger.warning(
                "gateway_exited",
                gateway=managed.name,
                exit_code=event.exit_code,
            )

        delay = self._backoff.delay(managed.restart_count)
        managed.restart_count += 1
        self._logger.info(
            "gateway_restart_scheduled",
            gateway=managed.name,
            delay=delay,
            restart_count=managed.restart_count,
        )
        self._schedule_restart(managed, delay)

    def _schedule_restart(self, managed: ManagedGateway, delay: float) -> None:
        if self._task_group is None:
            return
        if managed.restart_scope is not None:
            managed.restart_scope.cancel()

        scope = anyio.CancelScope()
        managed.restart_scope = scope
        self._task_group.start_soon(self._restart_after, managed.name, delay, scope)

    async def _restart_after(
        self,
        name: str,
        delay: float,
        scope: anyio.CancelScope,
    ) -> None:
        with scope:
            await anyio.sleep(delay)
            self._post(RestartDue(gateway=name))

    async def _handle_restart_due(self, message: RestartDue) -> None:
        managed = self._gateways.get(message.gateway)
        if managed is None or managed.process_state != ProcessState.STOPPED:
            return
        managed.restart_scope = None
        await self._start_gateway_process(managed)

    # -------------------------------------------------------------------------
    # Health track
    # -------------------------------------------------------------------------

    def _apply_health(self, managed: ManagedGateway, healthy: bool) -> None:  # noqa: FBT001
        """Record a probe result, logging only edge transitions."""
        was_healthy = managed.healthy
        managed.health = HealthState.HEALTHY if healthy else HealthState.UNHEALTHY

        if healthy and not was_healthy:
            managed.restart_count = 0
            self._logger.info("gateway_became_healthy", gateway=managed.name)
        elif not healthy and was_healthy:
            if managed.declaration.optional:
                self._logger.warning(
                    "optional_gateway_became_unhealthy", gateway=managed.name
                )
            else:
                self._logger.error("gateway_became_unhealthy", gateway=managed.name)

    async def check_all_health(self) -> None:
        """Probe every supervised gateway once and record the results.

        Probes run concurrently. A result is discarded if the gateway's
        process instance changed while its probe was in flight.
        """
        prober = self._active_prober
        if prober is None:
            return
        targets = [
            managed
            for managed in self._gateways.values()
            if managed.process_state != ProcessState.SKIPPED
        ]
        results: dict[str, bool] = {}
        tokens = {managed.name: (managed.generation, managed.process) for managed in targets}

        async def probe_one(managed: ManagedGateway) -> None:
            results[managed.name] = await prober(managed.address)

        async with anyio.create_task_group() as tg:
            for managed in targets:
                tg.start_soon(probe_one, managed)

        for managed in targets:
            if self._gateways.get(managed.name) is not managed:
                continue
            if tokens[managed.name] != (managed.generation, managed.process):
                continue
            self._apply_health(managed, results[managed.name])

    async def _poll_health(self) -> None:
        with anyio.CancelScope() as scope:
            self._poll_scope = scope
            while True:
                await anyio.sleep(self.settings.health_interval)
                await self.check_all_health()

    def _log_summary(self) -> None:
        for name, managed in self._gateways.items():
            if managed.healthy:
                self._logger.info("gateway_started", gateway=name, url=managed.address)
            elif managed.declaration.optional:
                self._logger.warning("optional_gateway_unavailable", gateway=name)
            else:
                self._logger.error("required_gateway_unavailable", gateway=name)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Start all owned gateways and begin health polling.

        Creates a record per declaration, launches every owned gateway with
        its required fields present, waits the startup grace period, runs one
        health pass, logs a per-gateway summary and starts the recurring
        health poll. Returns once the summary is logged. Calling it again
        while started does nothing.
        """
        if self._exit_stack is not None:
            return

        stack = AsyncExitStack()
        self._exit_stack = stack

        if self._prober is None:
            self._active_prober = await stack.enter_async_context(
                HealthProber(self.settings.probe_timeout)
            )
        else:
            self._active_prober = self._prober

        send_stream, receive_stream = anyio.create_memory_object_stream[
            ControlMessage
        ](max_buffer_size=math.inf)
        self._send_stream = send_stream
        self._task_group = await stack.enter_async_context(anyio.create_task_group())
        self._task_group.start_soon(self._dispatch, receive_stream)

        declarations = self._declarations
        if declarations is None:
            declarations = load_declarations(
                self.settings.config_path, logger=self._logger
            )

        for declaration in declarations:
            managed = ManagedGateway(declaration=declaration)
            self._gateways[declaration.name] = managed

            missing = declaration.missing_fields()
            if missing:
                managed.process_state = ProcessState.SKIPPED
                self._logger.error(
                    "gateway_misconfigured",
                    gateway=declaration.name,
                    type=declaration.type.value,
                    missing=missing,
                )
                continue

            if declaration.is_owned:
                await self._start_gateway_process(managed)

        if not self._gateways:
            return

        await anyio.sleep(self.settings.startup_grace)
        await self.check_all_health()
        self._log_summary()

        if self._task_group is not None:
            self._task_group.start_soon(self._poll_health)

    async def stop(self) -> None:
        """Stop polling, cancel restarts and terminate owned processes.

        Termination is requested with SIGTERM and not awaited. All records
        are discarded. Calling it when not started does nothing.
        """
        stack = self._exit_stack
        if stack is None:
            return
        self._exit_stack = None

        if self._poll_scope is not None:
            self._poll_scope.cancel()
            self._poll_scope = None

        for name, managed in self._gateways.items():
            if managed.restart_scope is not None:
                managed.restart_scope.cancel()
                managed.restart_scope = None
            if managed.process is not None:
                self._logger.info("gateway_stopping", gateway=name, pid=managed.process.pid)
                managed.process.terminate()
                managed.process = None
            if managed.process_state in (ProcessState.STARTING, ProcessState.RUNNING):
                managed.process_state = ProcessState.STOPPED

        self._gateways.clear()
        self._active_prober = None

        if self._send_stream is not None:
            self._send_stream.close()
            self._send_stream = None
        if self._task_group is not None:
            self._task_group.cancel_scope.cancel()
            self._task_group = None

        await stack.aclose()

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.stop()

    async def run(self) -> None:
        """Run the supervisor until SIGINT or SIGTERM is received."""
        async with self:
            with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
                async for signum in signals:
                    self._logger.info("supervisor_shutdown", signal=signum.name)
                    break

    # -------------------------------------------------------------------------
    # Published views
    # -------------------------------------------------------------------------

    def currently_reachable(self) -> list[ReachableGateway]:
        """Return the healthy gateways with container-reachable addresses."""
        return currently_reachable(
            self._gateways.values(),
            alias=self.settings.container_host_alias,
        )

    def get_status(self) -> dict[str, dict[str, object]]:
        """Get status summary for all gateways.

        Returns:
            Dictionary mapping gateway names to status dictionaries.
        """
        return {
            name: {
                "type": managed.declaration.type.value,
                "optional": managed.declaration.optional,
                "description": managed.declaration.description,
                "address": managed.address,
                "health": managed.health.value,
                "process_state": (
                    managed.process_state.value
                    if managed.process_state is not None
                    else None
                ),
                "pid": managed.process.pid if managed.process is not None else None,
                "restart_count": managed.restart_count,
                "last_exit_code": managed.last_exit_code,
                "started_at": managed.started_at,
                "stopped_at": managed.stopped_at,
            }
            for name, managed in self._gateways.items()
        }
