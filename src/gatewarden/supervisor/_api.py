"""FastAPI endpoints exposing gateway status and the reachable directory.

Other processes on the host query these endpoints to learn which gateway
addresses are live, already rewritten for use from inside containers.
"""

# pyright: reportUnusedFunction=false
# FastAPI route handlers are registered via decorators, not direct calls

from __future__ import annotations

from typing import TYPE_CHECKING, Never

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from gatewarden.exceptions import GatewayNotFoundError

if TYPE_CHECKING:
    from ._supervisor import GatewaySupervisor


class GatewayStatusResponse(BaseModel):
    """Response model for gateway status."""

    name: str
    type: str
    optional: bool
    description: str
    address: str
    health: str
    process_state: str | None
    pid: int | None
    restart_count: int
    last_exit_code: int | None
    started_at: str | None
    stopped_at: str | None


class ReachableGatewayResponse(BaseModel):
    """Response model for one entry of the directory."""

    name: str
    url: str


class SupervisorStatusResponse(BaseModel):
    """Response model for overall supervisor status."""

    gateways: dict[str, GatewayStatusResponse]
    total_gateways: int
    healthy_gateways: int


def _build_gateway_status(name: str, data: dict[str, object]) -> GatewayStatusResponse:
    """Build a GatewayStatusResponse from one entry of the supervisor status.

    Args:
        name: The gateway name.
        data: Raw status dictionary from the supervisor.

    Returns:
        GatewayStatusResponse with validated fields.
    """
    return GatewayStatusResponse.model_validate({**data, "name": name})


def _raise_not_found(name: str, cause: GatewayNotFoundError) -> Never:
    """Raise HTTP 404 for gateway not found.

    Raises:
        HTTPException: Always raises with 404 status.
    """
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Gateway '{name}' not found",
    ) from cause


def create_gateway_router(supervisor: GatewaySupervisor) -> APIRouter:
    """Create a FastAPI router for gateway status endpoints.

    Args:
        supervisor: The GatewaySupervisor instance to report on.

    Returns:
        A FastAPI APIRouter mounted at /gateways.
    """
    router = APIRouter(prefix="/gateways", tags=["gateways"])

    @router.get("", response_model=SupervisorStatusResponse)
    async def get_supervisor_status() -> SupervisorStatusResponse:
        """Get the status of every gateway."""
        gateways = {
            name: _build_gateway_status(name, data)
            for name, data in supervisor.get_status().items()
        }
        return SupervisorStatusResponse(
            gateways=gateways,
            total_gateways=len(gateways),
            healthy_gateways=sum(1 for g in gateways.values() if g.health == "healthy"),
        )

    @router.get("/reachable", response_model=list[ReachableGatewayResponse])
    async def list_reachable() -> list[ReachableGatewayResponse]:
        """List healthy gateways with container-reachable addresses."""
        return [
            ReachableGatewayResponse(name=entry.name, url=entry.url)
            for entry in supervisor.currently_reachable()
        ]

    @router.get("/{name}", response_model=GatewayStatusResponse)
    async def get_gateway_status(name: str) -> GatewayStatusResponse:
        """Get the status of a specific gateway."""
        try:
            _ = supervisor.get_gateway(name)
        except GatewayNotFoundError as e:
            _raise_not_found(name, e)

        return _build_gateway_status(name, supervisor.get_status()[name])

    return router
