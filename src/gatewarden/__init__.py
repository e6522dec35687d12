"""Supervisor for networked gateway processes and endpoints."""

from gatewarden.config import GatewayDeclaration, GatewayKind, Settings
from gatewarden.supervisor import GatewaySupervisor, ReachableGateway

__all__ = [
    "GatewayDeclaration",
    "GatewayKind",
    "GatewaySupervisor",
    "ReachableGateway",
    "Settings",
]
