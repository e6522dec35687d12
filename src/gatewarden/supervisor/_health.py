"""HTTP reachability probing for gateways.

A probe answers one question: is something listening at this address and
speaking HTTP? The status code and body are irrelevant. Streaming endpoints
such as `/sse` never finish their body, so it is never read.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, final

import anyio
import httpx

if TYPE_CHECKING:
    from types import TracebackType
    from typing import Self

PROBE_TIMEOUT = 5.0


async def _request(client: httpx.AsyncClient, address: str) -> bool:
    async with client.stream("GET", address):
        return True


async def probe(
    address: str,
    *,
    timeout: float = PROBE_TIMEOUT,
    client: httpx.AsyncClient | None = None,
) -> bool:
    """Check whether an address answers a single HTTP request.

    Any response counts as healthy, including 4xx and 5xx statuses.
    Connection failures, timeouts and malformed addresses count as
    unhealthy. Never raises.

    Args:
        address: The URL to request.
        timeout: Upper bound in seconds for the whole attempt.
        client: Client to reuse. A short-lived client is created if None.

    Returns:
        True if any HTTP response was received within the timeout.
    """
    with anyio.move_on_after(timeout):
        try:
            if client is not None:
                return await _request(client, address)
            async with httpx.AsyncClient(timeout=timeout, trust_env=False) as own:
                return await _request(own, address)
        except (httpx.HTTPError, httpx.InvalidURL):
            return False
    return False


@final
class HealthProber:
    """Probe callable that shares one HTTP client across probes.

    Use as an async context manager so the connection pool is closed:

        >>> async with HealthProber() as prober:
        ...     healthy = await prober("http://127.0.0.1:9000/sse")
    """

    __slots__ = ("_client", "timeout")

    def __init__(self, timeout: float = PROBE_TIMEOUT) -> None:
        """Initialize the prober.

        Args:
            timeout: Upper bound in seconds for each probe.
        """
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> Self:
        self._client = httpx.AsyncClient(timeout=self.timeout, trust_env=False)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __call__(self, address: str) -> bool:
        """Probe an address with the shared client."""
        return await probe(address, timeout=self.timeout, client=self._client)
