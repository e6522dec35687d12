"""Supervisor package for networked gateways.

This package supervises owned helper processes that expose a command on a
port, probes the health of every declared gateway, and publishes the
gateways that are currently reachable.

Key Components:
    - GatewaySupervisor: Lifecycle and health coordinator
    - ManagedGateway: Per-gateway supervision record
    - ProcessLauncher: Spawns the wrapping helper
    - HealthProber: Bounded HTTP reachability probe
    - ExponentialBackoff: Restart delay calculator
    - currently_reachable: Directory snapshot with address rewriting
    - create_gateway_router: FastAPI endpoint factory

Example:
    >>> from gatewarden.config import GatewayDeclaration
    >>> from gatewarden.supervisor import GatewaySupervisor
    >>> declarations = [
    ...     GatewayDeclaration(name="fs", type="stdio", command="mcp-fs", port=9100),
    ...     GatewayDeclaration(name="db", type="http", url="https://db.example:443"),
    ... ]
    >>> async with GatewaySupervisor(declarations) as supervisor:
    ...     supervisor.currently_reachable()
"""

from ._api import create_gateway_router
from ._backoff import ExponentialBackoff
from ._directory import (
    DEFAULT_CONTAINER_HOST_ALIAS,
    currently_reachable,
    rewrite_loopback,
)
from ._health import PROBE_TIMEOUT, HealthProber, probe
from ._launcher import DEFAULT_HELPER, GatewayProcess, ProcessLauncher
from ._models import (
    HEALTH_PATH,
    LOOPBACK_HOST,
    HealthState,
    ManagedGateway,
    ProcessEvent,
    ProcessEventType,
    ProcessState,
    ReachableGateway,
    RestartDue,
)
from ._protocol import Launcher, ProcessHandle, Prober
from ._resolver import WELL_KNOWN_BIN_DIRS, augment_path, resolve_command
from ._supervisor import GatewaySupervisor

__all__ = [
    "DEFAULT_CONTAINER_HOST_ALIAS",
    "DEFAULT_HELPER",
    "HEALTH_PATH",
    "LOOPBACK_HOST",
    "PROBE_TIMEOUT",
    "WELL_KNOWN_BIN_DIRS",
    "ExponentialBackoff",
    "GatewayProcess",
    "GatewaySupervisor",
    "HealthProber",
    "HealthState",
    "Launcher",
    "ManagedGateway",
    "ProcessEvent",
    "ProcessEventType",
    "ProcessHandle",
    "ProcessLauncher",
    "ProcessState",
    "Prober",
    "ReachableGateway",
    "RestartDue",
    "augment_path",
    "create_gateway_router",
    "currently_reachable",
    "probe",
    "resolve_command",
    "rewrite_loopback",
]
