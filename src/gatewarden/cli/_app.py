"""The command-line interface for gatewarden."""
# ruff: noqa: TC003  # Path needed at runtime for cyclopts parameter parsing

from pathlib import Path
from typing import Annotated

import anyio
from cyclopts import App, Parameter
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from gatewarden.config import (
    ConfigLoadError,
    GatewayDeclaration,
    InvalidDeclaration,
    Settings,
    dedupe_declarations,
    get_config_path,
    parse_declarations,
    read_declaration_file,
    settings_from_env,
)
from gatewarden.supervisor import resolve_command

from ._shared import ExitCode, exit_with_error

HELP = "Supervise networked gateways and publish the ones that are reachable."


def _load_settings(config: Path | None, error_console: Console) -> Settings:
    try:
        return settings_from_env(config_path=config)
    except ValidationError as e:
        exit_with_error(
            f"Invalid settings: {e}", ExitCode.VALIDATION_ERROR, console=error_console
        )


def _describe_target(declaration: GatewayDeclaration) -> str:
    if declaration.is_owned:
        parts = [declaration.command or "", *declaration.args]
        return " ".join(part for part in parts if part)
    return declaration.url or ""


def _build_table(
    path: Path,
    declarations: list[GatewayDeclaration],
    invalid: list[InvalidDeclaration],
) -> Table:
    table = Table(title=str(path))
    table.add_column("Name", no_wrap=True)
    table.add_column("Type")
    table.add_column("Target")
    table.add_column("Port")
    table.add_column("Optional")
    table.add_column("Status")

    for declaration in declarations:
        missing = declaration.missing_fields()
        status = (
            f"[red]missing {', '.join(missing)}[/red]" if missing else "[green]ok[/green]"
        )
        table.add_row(
            declaration.name,
            declaration.type.value,
            _describe_target(declaration),
            str(declaration.port) if declaration.port is not None else "",
            "yes" if declaration.optional else "no",
            status,
        )
    for entry in invalid:
        table.add_row(
            escape(entry.name or f"#{entry.index}"),
            "",
            "",
            "",
            "",
            f"[red]invalid: {escape(entry.error)}[/red]",
        )
    return table


def create_app(
    console: Console | None = None,
    error_console: Console | None = None,
    *,
    exit_on_error: bool = True,
) -> App:
    """Create the gatewarden CLI application.

    Args:
        console: Console for regular output. Writes to stdout if None.
        error_console: Console for errors. Writes to stderr if None.
        exit_on_error: Whether cyclopts exits on argument parsing errors.

    Returns:
        The configured cyclopts application.
    """
    if console is None:
        console = Console()
    if error_console is None:
        error_console = Console(stderr=True)
    app = App(
        name="gatewarden",
        help=HELP,
        help_on_error=True,
        console=console,
        error_console=error_console,
        exit_on_error=exit_on_error,
    )

    @app.command(name="run")
    def run(  # pyright: ignore[reportUnusedFunction]
        *,
        config: Annotated[
            Path | None, Parameter(name="--config", help="Path to declaration file")
        ] = None,
        control_port: Annotated[
            int | None,
            Parameter(
                name="--control-port",
                help="Serve the control API on this loopback port.",
            ),
        ] = None,
    ) -> None:
        """Supervise the declared gateways until interrupted."""
        from ._runner import run_supervisor

        settings = _load_settings(config, error_console)
        anyio.run(run_supervisor, settings, control_port)

    @app.command(name="check")
    def check(  # pyright: ignore[reportUnusedFunction]
        *,
        config: Annotated[
            Path | None, Parameter(name="--config", help="Path to declaration file")
        ] = None,
    ) -> None:
        """Validate the declaration file and list its gateways.

        Exits non-zero if the file cannot be loaded, an entry is invalid, or
        a gateway is missing a field its kind requires.
        """
        settings = _load_settings(config, error_console)
        path = get_config_path(settings.config_path)

        try:
            gateways_file = read_declaration_file(path)
        except FileNotFoundError:
            exit_with_error(
                f"Declaration file not found: {path}",
                ExitCode.NOT_FOUND,
                console=error_console,
            )
        except ConfigLoadError as e:
            exit_with_error(str(e), ExitCode.LOAD_ERROR, console=error_console)
        except OSError as e:
            exit_with_error(
                f"Cannot read {path}: {e}", ExitCode.IO_ERROR, console=error_console
            )

        valid, invalid = parse_declarations(gateways_file.gateways)
        declarations = dedupe_declarations(valid)
        console.print(_build_table(path, declarations, invalid))

        misconfigured = any(declaration.missing_fields() for declaration in declarations)
        if invalid or misconfigured:
            raise SystemExit(ExitCode.VALIDATION_ERROR)

    @app.command(name="resolve")
    def resolve(name: str) -> None:  # pyright: ignore[reportUnusedFunction]
        """Print the path a command name resolves to.

        Args:
            name: Executable name to look up.
        """
        console.print(resolve_command(name), highlight=False, soft_wrap=True)

    return app


app = create_app()


def main() -> None:
    """Default entrypoint for the `gatewarden` CLI."""
    app()


if __name__ == "__main__":
    main()
