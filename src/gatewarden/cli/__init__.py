"""Command-line interface for gatewarden."""

from ._app import app, create_app, main
from ._runner import create_control_app, run_supervisor
from ._shared import ExitCode, exit_with_error

__all__ = [
    "ExitCode",
    "app",
    "create_app",
    "create_control_app",
    "exit_with_error",
    "main",
    "run_supervisor",
]
