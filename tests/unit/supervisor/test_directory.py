import pytest

from gatewarden.config import GatewayDeclaration
from gatewarden.supervisor import (
    HealthState,
    ManagedGateway,
    ReachableGateway,
    currently_reachable,
    rewrite_loopback,
)
from tests.conftest import external, owned


def managed(declaration: GatewayDeclaration, health: HealthState) -> ManagedGateway:
    return ManagedGateway(declaration=declaration, health=health)


class TestRewriteLoopback:
    def test_replaces_loopback_keeping_port_and_path(self) -> None:
        result = rewrite_loopback("http://127.0.0.1:9000/sse")

        assert result == "http://host.docker.internal:9000/sse"

    def test_custom_alias(self) -> None:
        result = rewrite_loopback("http://127.0.0.1:9000/sse", "gateway.local")

        assert result == "http://gateway.local:9000/sse"

    def test_without_port(self) -> None:
        assert rewrite_loopback("http://127.0.0.1/sse") == "http://host.docker.internal/sse"

    @pytest.mark.parametrize(
        "url",
        [
            "https://db.example:443",
            "http://localhost:9000/sse",
            "http://127.0.0.10:9000/sse",
        ],
    )
    def test_other_hosts_unchanged(self, url: str) -> None:
        assert rewrite_loopback(url) == url


class TestCurrentlyReachable:
    def test_owned_gateway_address_is_rewritten(self) -> None:
        gateways = [managed(owned("fs", 9000), HealthState.HEALTHY)]

        result = currently_reachable(gateways)

        assert result == [
            ReachableGateway(name="fs", url="http://host.docker.internal:9000/sse")
        ]

    def test_external_endpoint_published_as_declared(self) -> None:
        gateways = [managed(external("db", "https://db.example:443"), HealthState.HEALTHY)]

        result = currently_reachable(gateways)

        assert result == [ReachableGateway(name="db", url="https://db.example:443")]

    def test_external_loopback_endpoint_is_rewritten(self) -> None:
        gateways = [
            managed(external("local", "http://127.0.0.1:8080/mcp"), HealthState.HEALTHY)
        ]

        result = currently_reachable(gateways)

        assert result == [
            ReachableGateway(name="local", url="http://host.docker.internal:8080/mcp")
        ]

    @pytest.mark.parametrize("health", [HealthState.UNKNOWN, HealthState.UNHEALTHY])
    def test_excludes_gateways_not_healthy(self, health: HealthState) -> None:
        gateways = [
            managed(owned("fs", 9000), health),
            managed(external("db", "https://db.example"), HealthState.HEALTHY),
        ]

        result = currently_reachable(gateways)

        assert [entry.name for entry in result] == ["db"]

    def test_preserves_declaration_order(self) -> None:
        gateways = [
            managed(owned(name, 9000 + i), HealthState.HEALTHY)
            for i, name in enumerate(["c", "a", "b"])
        ]

        assert [entry.name for entry in currently_reachable(gateways)] == ["c", "a", "b"]

    def test_empty(self) -> None:
        assert currently_reachable([]) == []
