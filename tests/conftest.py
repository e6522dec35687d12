"""Shared test fixtures for gatewarden tests."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, cast

import anyio
import pytest
import structlog
from structlog.testing import LogCapture

from gatewarden.config import GatewayDeclaration, GatewayKind, Settings
from gatewarden.exceptions import GatewaySpawnError
from gatewarden.supervisor import ProcessEvent, ProcessEventType
from gatewarden.supervisor._models import get_timestamp

if TYPE_CHECKING:
    from structlog.typing import EventDict, FilteringBoundLogger


class FakeProcess:
    """In-memory stand-in for a spawned helper instance."""

    def __init__(self, gateway: str, generation: int, pid: int) -> None:
        self.gateway = gateway
        self.generation = generation
        self.pid = pid
        self.terminated = False
        self.exit_code: int | None = None
        self._exited = anyio.Event()

    async def wait(self) -> ProcessEvent:
        await self._exited.wait()
        return ProcessEvent(
            gateway=self.gateway,
            event_type=ProcessEventType.EXITED,
            generation=self.generation,
            timestamp=get_timestamp(),
            exit_code=self.exit_code,
        )

    def exit(self, code: int = 1) -> None:
        self.exit_code = code
        self._exited.set()

    def terminate(self) -> None:
        self.terminated = True
        self.exit(-15)


class FakeLauncher:
    """Launcher that creates FakeProcess handles and records every launch."""

    def __init__(self, *, failing: set[str] | None = None) -> None:
        self.failing: set[str] = failing or set()
        self.launches: list[tuple[str, int]] = []
        self.processes: list[FakeProcess] = []

    async def launch(
        self, declaration: GatewayDeclaration, generation: int
    ) -> FakeProcess:
        self.launches.append((declaration.name, generation))
        if declaration.name in self.failing:
            msg = f"Failed to start helper for gateway '{declaration.name}'"
            raise GatewaySpawnError(
                msg,
                gateway_name=declaration.name,
                cause=FileNotFoundError("supergateway"),
            )
        process = FakeProcess(declaration.name, generation, pid=1000 + len(self.processes))
        self.processes.append(process)
        return process

    def latest(self, name: str) -> FakeProcess:
        return [p for p in self.processes if p.gateway == name][-1]

    def launch_count(self, name: str) -> int:
        return sum(1 for gateway, _ in self.launches if gateway == name)


class FakeProber:
    """Prober answering from a fixed address table. Unknown addresses are down."""

    def __init__(self, results: dict[str, bool] | None = None) -> None:
        self.results: dict[str, bool] = results or {}
        self.calls: list[str] = []

    async def __call__(self, address: str) -> bool:
        self.calls.append(address)
        return self.results.get(address, False)


async def wait_until(predicate: Callable[[], bool], timeout: float = 3.0) -> None:
    """Yield to the event loop until `predicate` holds."""
    with anyio.fail_after(timeout):
        while not predicate():
            await anyio.sleep(0.01)


def events(log_capture: LogCapture, name: str) -> list[EventDict]:
    """Return the captured entries with the given event name."""
    return [entry for entry in log_capture.entries if entry["event"] == name]


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def log_capture() -> LogCapture:
    return LogCapture()


@pytest.fixture
def logger(log_capture: LogCapture) -> FilteringBoundLogger:
    """Create a logger whose entries are collected by `log_capture`."""
    return cast(
        "FilteringBoundLogger",
        structlog.wrap_logger(
            None,
            processors=[log_capture],
            wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
            context_class=dict,
        ),
    )


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with no startup grace and a poll interval tests never reach."""
    return Settings(startup_grace=0.0, health_interval=3600.0, probe_timeout=1.0)


@pytest.fixture
def fake_launcher() -> FakeLauncher:
    return FakeLauncher()


@pytest.fixture
def fake_prober() -> FakeProber:
    return FakeProber()


def owned(name: str, port: int, /, **overrides: object) -> GatewayDeclaration:
    """Build an owned-process declaration."""
    fields: dict[str, object] = {
        "name": name,
        "type": GatewayKind.STDIO,
        "command": f"mcp-{name}",
        "port": port,
    }
    fields.update(overrides)
    return GatewayDeclaration.model_validate(fields)


def external(name: str, url: str, /, **overrides: object) -> GatewayDeclaration:
    """Build an external-endpoint declaration."""
    fields: dict[str, object] = {"name": name, "type": GatewayKind.HTTP, "url": url}
    fields.update(overrides)
    return GatewayDeclaration.model_validate(fields)
