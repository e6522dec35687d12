"""Async runner for the run command.

This module provides the control application factory and the async entry
point that runs the supervisor, optionally alongside the control API.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import anyio
import uvicorn
from fastapi import FastAPI

from gatewarden.supervisor import GatewaySupervisor, create_gateway_router

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from gatewarden.config import Settings

CONTROL_HOST = "127.0.0.1"


def create_control_app(supervisor: GatewaySupervisor) -> FastAPI:
    """Create the FastAPI control application.

    Args:
        supervisor: The GatewaySupervisor instance to report on.

    Returns:
        A FastAPI application with the gateway endpoints mounted.
    """
    app = FastAPI(
        title="Gatewarden Control",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.include_router(create_gateway_router(supervisor))
    return app


async def run_supervisor(
    settings: Settings,
    control_port: int | None = None,
    *,
    logger: FilteringBoundLogger | None = None,
) -> None:
    """Run the supervisor until interrupted.

    Args:
        settings: Runtime settings for the supervisor.
        control_port: Port for the control API on the loopback interface.
            The control API is not served if None.
        logger: Structured logger. Built from the settings if None.
    """
    supervisor = GatewaySupervisor(settings=settings, logger=logger)

    if control_port is None:
        await supervisor.run()
        return

    uvicorn_config = uvicorn.Config(
        app=create_control_app(supervisor),
        host=CONTROL_HOST,
        port=control_port,
        log_level="warning",
        access_log=False,
    )
    control_server = uvicorn.Server(uvicorn_config)

    async with anyio.create_task_group() as tg:
        # Serve status while gateways are still in their grace period
        tg.start_soon(control_server.serve)

        # Blocks until SIGINT or SIGTERM
        await supervisor.run()

        control_server.should_exit = True
