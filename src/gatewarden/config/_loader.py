# pyright: reportAny=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""Declaration file loading and settings from the environment."""

from __future__ import annotations

import json
import os
import tomllib
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from gatewarden.exceptions import ConfigLoadError

from ._discovery import get_config_path
from ._models import GatewayDeclaration, GatewaysFile, InvalidDeclaration, Settings

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from pydantic_core import ErrorDetails
    from structlog.typing import FilteringBoundLogger

ENV_PREFIX = "GATEWARDEN_"

# Variables consumed elsewhere that must not be read as settings keys
_RESERVED_ENV_KEYS = frozenset({"CONFIG", "DEBUG", "LOG_LEVEL"})


def _read_raw(path: Path) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Read a JSON or TOML file into a dictionary based on its suffix.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigLoadError: If the file cannot be parsed.
    """
    if path.suffix == ".toml":
        try:
            with path.open("rb") as f:
                return tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            msg = f"Failed to parse TOML file: {e}"
            raise ConfigLoadError(
                msg,
                path=path,
                line=getattr(e, "lineno", None),
                column=getattr(e, "colno", None),
            ) from e
        except UnicodeDecodeError as e:
            msg = f"Declaration file is not valid UTF-8: {e}"
            raise ConfigLoadError(msg, path=path) from e

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        msg = f"Failed to parse JSON file: {e}"
        raise ConfigLoadError(msg, path=path, line=e.lineno, column=e.colno) from e
    except UnicodeDecodeError as e:
        msg = f"Declaration file is not valid UTF-8: {e}"
        raise ConfigLoadError(msg, path=path) from e

    if not isinstance(data, dict):
        msg = "Declaration file must contain an object at the top level"
        raise ConfigLoadError(msg, path=path)
    return data


def read_declaration_file(path: Path) -> GatewaysFile:
    """Read and validate a gateway declaration file.

    Args:
        path: Path to a `.json` or `.toml` declaration file.

    Returns:
        The validated file contents.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigLoadError: If the file cannot be parsed or its top-level
            structure is invalid. Individual entries are not validated here.
    """
    data = _read_raw(path)
    try:
        return GatewaysFile.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid gateway declarations: {e}"
        raise ConfigLoadError(msg, path=path) from e


def _format_error(error: ErrorDetails) -> str:
    key = ".".join(str(part) for part in error.get("loc", ()))
    message = str(error.get("msg", "Validation error"))
    return f"{key}: {message}" if key else message


def parse_declarations(
    entries: Iterable[object],
) -> tuple[list[GatewayDeclaration], list[InvalidDeclaration]]:
    """Validate raw declaration entries one at a time.

    Args:
        entries: Raw entries from the declaration file, in file order.

    Returns:
        The valid declarations and the entries that failed validation.
    """
    valid: list[GatewayDeclaration] = []
    invalid: list[InvalidDeclaration] = []
    for index, entry in enumerate(entries):
        try:
            valid.append(GatewayDeclaration.model_validate(entry))
        except ValidationError as e:
            name = entry.get("name") if isinstance(entry, dict) else None
            invalid.append(
                InvalidDeclaration(
                    index=index,
                    name=name if isinstance(name, str) and name else None,
                    error="; ".join(_format_error(err) for err in e.errors()),
                )
            )
    return valid, invalid


def dedupe_declarations(
    declarations: Iterable[GatewayDeclaration],
    *,
    logger: FilteringBoundLogger | None = None,
) -> list[GatewayDeclaration]:
    """Collapse declarations that share a name.

    The last declaration with a given name wins and takes the position of
    the first one, so ordering stays stable.

    Args:
        declarations: Declarations in file order.
        logger: Receives a warning for every overridden declaration.

    Returns:
        Declarations with unique names.
    """
    by_name: dict[str, GatewayDeclaration] = {}
    for declaration in declarations:
        if declaration.name in by_name and logger is not None:
            logger.warning("duplicate_gateway_name", gateway=declaration.name)
        by_name[declaration.name] = declaration
    return list(by_name.values())


def load_declarations(
    path: Path | None = None,
    *,
    logger: FilteringBoundLogger,
) -> list[GatewayDeclaration]:
    """Load gateway declarations, skipping whatever cannot be used.

    A missing file is not an error. A file that cannot be parsed is logged
    and treated as an empty declaration list. An entry that fails validation
    is logged and skipped; the remaining entries are kept.

    Args:
        path: Explicit declaration file. Uses the discovered path if None.
        logger: Logger for load diagnostics.

    Returns:
        Declarations with unique names, in file order.
    """
    config_path = get_config_path(path)
    if not config_path.exists():
        logger.info("gateway_config_not_found", path=str(config_path))
        return []

    try:
        gateways_file = read_declaration_file(config_path)
    except ConfigLoadError as e:
        logger.error("gateway_config_invalid", path=str(config_path), error=str(e))
        return []
    except OSError as e:
        logger.error("gateway_config_unreadable", path=str(config_path), error=str(e))
        return []

    declarations, invalid = parse_declarations(gateways_file.gateways)
    for entry in invalid:
        logger.error(
            "gateway_misconfigured",
            gateway=entry.name,
            index=entry.index,
            error=entry.error,
        )

    return dedupe_declarations(declarations, logger=logger)


def set_nested_key(
    data: dict[str, Any],  # pyright: ignore[reportExplicitAny]
    key_path: str,
    value: Any,  # pyright: ignore[reportExplicitAny]
) -> None:
    """Set a value in a nested dictionary using a dotted key path.

    Args:
        data: Dictionary to modify in place.
        key_path: Dotted path such as "logging.level".
        value: Value to set.
    """
    *parents, leaf = key_path.split(".")
    current = data
    for part in parents:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[leaf] = value


def parse_env_vars(prefix: str = ENV_PREFIX) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Parse environment variables into a settings dictionary.

    Environment variable naming:
        - Add prefix (GATEWARDEN_)
        - Convert to uppercase
        - Replace dots with double underscores
        - Example: logging.level -> GATEWARDEN_LOGGING__LEVEL

    Values are kept as strings; pydantic coerces them during validation.

    Args:
        prefix: Environment variable prefix.

    Returns:
        Nested dictionary of raw settings values.
    """
    result: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        config_key = key[len(prefix) :]
        if not config_key or config_key in _RESERVED_ENV_KEYS:
            continue
        set_nested_key(result, config_key.replace("__", ".").lower(), value)

    return result


def settings_from_env(**overrides: Any) -> Settings:  # pyright: ignore[reportExplicitAny]
    """Build settings from GATEWARDEN_* variables plus explicit overrides.

    Args:
        **overrides: Top-level settings that take precedence over the
            environment. None values are ignored.

    Returns:
        Validated settings.

    Raises:
        pydantic.ValidationError: If a value cannot be coerced.
    """
    data = parse_env_vars()
    data.update({key: value for key, value in overrides.items() if value is not None})
    return Settings.model_validate(data)
