"""Declaration file discovery.

The declaration file lives in the platform-specific user configuration
directory unless GATEWARDEN_CONFIG points elsewhere.
"""

import os
from pathlib import Path

import platformdirs

CONFIG_ENV_VAR = "GATEWARDEN_CONFIG"


def get_user_config_path() -> Path:
    r"""Get the platform-specific default declaration file path.

    - Linux: ``~/.config/gatewarden/gateways.json``
    - macOS: ``~/Library/Application Support/gatewarden/gateways.json``
    - Windows: ``%APPDATA%\gatewarden\gateways.json``

    The path is returned regardless of whether the file exists.

    Returns:
        Path to the default declaration file for the current platform.
    """
    return platformdirs.user_config_path("gatewarden") / "gateways.json"


def get_config_path(explicit: Path | None = None) -> Path:
    """Resolve the declaration file path.

    Precedence: the explicit argument, then GATEWARDEN_CONFIG, then the
    platform default.

    Args:
        explicit: Path given on the command line or in settings.

    Returns:
        The path to read declarations from.
    """
    if explicit is not None:
        return explicit
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return get_user_config_path()
