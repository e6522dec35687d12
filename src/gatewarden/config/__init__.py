"""Gatewarden configuration.

Gateway declarations are read once at startup from a JSON or TOML file:

    >>> from gatewarden.config import load_declarations
    >>> declarations = load_declarations(logger=logger)
    >>> [d.name for d in declarations]
    ['filesystem', 'search']
"""

from gatewarden.exceptions import ConfigError, ConfigLoadError

from ._discovery import CONFIG_ENV_VAR, get_config_path, get_user_config_path
from ._loader import (
    dedupe_declarations,
    load_declarations,
    parse_declarations,
    parse_env_vars,
    read_declaration_file,
    set_nested_key,
    settings_from_env,
)
from ._models import (
    GatewayDeclaration,
    GatewayKind,
    GatewaysFile,
    InvalidDeclaration,
    LogFormat,
    LoggingConfig,
    LogLevel,
    Settings,
)

__all__ = [
    "CONFIG_ENV_VAR",
    "ConfigError",
    "ConfigLoadError",
    "GatewayDeclaration",
    "GatewayKind",
    "GatewaysFile",
    "InvalidDeclaration",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "Settings",
    "dedupe_declarations",
    "get_config_path",
    "get_user_config_path",
    "load_declarations",
    "parse_declarations",
    "parse_env_vars",
    "read_declaration_file",
    "set_nested_key",
    "settings_from_env",
]
