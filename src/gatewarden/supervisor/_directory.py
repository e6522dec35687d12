"""Published directory of reachable gateways.

Consumers may run in another network namespace (a container) where the
host's loopback interface is reachable only through a hostname alias.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import urlsplit, urlunsplit

from ._models import LOOPBACK_HOST, ReachableGateway

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ._models import ManagedGateway

DEFAULT_CONTAINER_HOST_ALIAS = "host.docker.internal"


def rewrite_loopback(url: str, alias: str = DEFAULT_CONTAINER_HOST_ALIAS) -> str:
    """Replace a loopback host with `alias`, keeping scheme, port and path.

    Args:
        url: The address to rewrite.
        alias: Hostname that reaches the host from the consumer's namespace.

    Returns:
        The rewritten address, or `url` unchanged if its host is not loopback.
    """
    parts = urlsplit(url)
    if parts.hostname != LOOPBACK_HOST:
        return url
    netloc = alias if parts.port is None else f"{alias}:{parts.port}"
    return urlunsplit(parts._replace(netloc=netloc))


def currently_reachable(
    gateways: Iterable[ManagedGateway],
    *,
    alias: str = DEFAULT_CONTAINER_HOST_ALIAS,
) -> list[ReachableGateway]:
    """Snapshot the gateways whose last recorded health is healthy.

    Any address whose host is the loopback interface is published with
    `alias` in its place, whether the gateway is owned or external. Other
    addresses are published exactly as declared.

    Args:
        gateways: Supervision records in declaration order.
        alias: Hostname substituted for the loopback host.

    Returns:
        Name and address of each healthy gateway.
    """
    results: list[ReachableGateway] = []
    for managed in gateways:
        if not managed.healthy:
            continue
        url = rewrite_loopback(managed.address, alias)
        results.append(ReachableGateway(name=managed.name, url=url))
    return results
