"""Executable resolution for minimal-PATH environments.

Service managers such as launchd or systemd start processes with a bare
PATH, so helper binaries installed by Homebrew or a Node.js toolchain are
not found by name. These helpers resolve names against a fixed list of
installation directories as a fallback.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

WELL_KNOWN_BIN_DIRS: tuple[str, ...] = (
    "/usr/local/bin",
    "/usr/local/opt/node@22/bin",
    "/opt/homebrew/bin",
)

DEFAULT_PATH = "/usr/bin:/bin"


def resolve_command(
    name: str,
    *,
    search_dirs: Sequence[str] = WELL_KNOWN_BIN_DIRS,
) -> str:
    """Resolve a logical command name to an invocable path.

    Tries the host lookup first, then each directory in `search_dirs` in
    order. Never raises; an unresolvable name is returned unchanged and the
    caller fails at invocation time instead.

    Args:
        name: Executable name or path.
        search_dirs: Directories probed when the host lookup fails.

    Returns:
        The absolute path of the executable, or `name` if none was found.
    """
    found = shutil.which(name)
    if found is not None:
        return found

    for directory in search_dirs:
        candidate = Path(directory) / name
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return str(candidate)

    return name


def augment_path(
    current: str | None,
    extra: Sequence[str] = WELL_KNOWN_BIN_DIRS,
) -> str:
    """Prepend directories to a PATH value without duplicates.

    Args:
        current: The existing PATH value, if any.
        extra: Directories to place first.

    Returns:
        The combined PATH, new entries first, first occurrence kept.
    """
    existing = (current or DEFAULT_PATH).split(os.pathsep)
    combined = dict.fromkeys(entry for entry in (*extra, *existing) if entry)
    return os.pathsep.join(combined)
