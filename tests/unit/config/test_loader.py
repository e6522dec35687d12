from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError
from structlog.testing import LogCapture

from gatewarden.config import (
    ConfigLoadError,
    GatewayKind,
    LogLevel,
    dedupe_declarations,
    load_declarations,
    parse_env_vars,
    parse_declarations,
    read_declaration_file,
    set_nested_key,
    settings_from_env,
)
from gatewarden.config._loader import ENV_PREFIX
from tests.conftest import events, external, owned

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger


def write_json(path: Path, data: object) -> Path:
    path.write_text(json.dumps(data))
    return path


class TestReadDeclarationFile:
    def test_reads_json(self, tmp_path: Path) -> None:
        path = write_json(
            tmp_path / "gateways.json",
            {
                "gateways": [
                    {
                        "name": "filesystem",
                        "type": "stdio",
                        "command": "mcp-filesystem",
                        "args": ["--root", "/srv"],
                        "env": {"TOKEN": "x"},
                        "port": 9100,
                    },
                    {"name": "db", "type": "http", "url": "https://db.example:443"},
                ]
            },
        )

        result = read_declaration_file(path)
        declarations, invalid = parse_declarations(result.gateways)

        assert invalid == []
        assert [g.name for g in declarations] == ["filesystem", "db"]
        first = declarations[0]
        assert first.type is GatewayKind.STDIO
        assert first.args == ("--root", "/srv")
        assert first.env == {"TOKEN": "x"}
        assert first.port == 9100

    def test_reads_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "gateways.toml"
        path.write_text(
            """
[[gateways]]
name = "search"
type = "http"
url = "http://127.0.0.1:7000/sse"
optional = true
"""
        )

        result = read_declaration_file(path)
        [declaration], _ = parse_declarations(result.gateways)

        assert declaration.optional is True

    def test_missing_gateways_key_means_empty(self, tmp_path: Path) -> None:
        path = write_json(tmp_path / "gateways.json", {})

        assert read_declaration_file(path).gateways == []

    def test_malformed_json_raises_with_location(self, tmp_path: Path) -> None:
        path = tmp_path / "gateways.json"
        path.write_text('{"gateways": [\n  {"name": }\n]}')

        with pytest.raises(ConfigLoadError) as exc_info:
            _ = read_declaration_file(path)

        assert exc_info.value.path == path
        assert exc_info.value.line == 2

    def test_malformed_toml_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "gateways.toml"
        path.write_text("[[gateways]\nname = ")

        with pytest.raises(ConfigLoadError) as exc_info:
            _ = read_declaration_file(path)

        assert exc_info.value.path == path

    def test_non_object_top_level_raises(self, tmp_path: Path) -> None:
        path = write_json(tmp_path / "gateways.json", [1, 2, 3])

        with pytest.raises(ConfigLoadError, match="top level"):
            _ = read_declaration_file(path)

    def test_non_list_gateways_raises(self, tmp_path: Path) -> None:
        path = write_json(tmp_path / "gateways.json", {"gateways": "fs"})

        with pytest.raises(ConfigLoadError, match="Invalid gateway declarations"):
            _ = read_declaration_file(path)

    def test_missing_file_raises_file_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            _ = read_declaration_file(tmp_path / "absent.json")

    def test_entries_are_not_validated(self, tmp_path: Path) -> None:
        path = write_json(
            tmp_path / "gateways.json",
            {"gateways": [{"name": "x", "type": "carrier-pigeon"}]},
        )

        result = read_declaration_file(path)

        assert result.gateways == [{"name": "x", "type": "carrier-pigeon"}]


class TestParseDeclarations:
    def test_incomplete_entries_are_kept(self) -> None:
        declarations, invalid = parse_declarations([{"name": "fs", "type": "stdio"}])

        assert invalid == []
        assert declarations[0].missing_fields() == ["command", "port"]

    def test_zero_port_is_reported_as_missing(self) -> None:
        declarations, invalid = parse_declarations(
            [{"name": "fs", "type": "stdio", "command": "echo", "port": 0}]
        )

        assert invalid == []
        assert declarations[0].missing_fields() == ["port"]

    @pytest.mark.parametrize(
        "entry",
        [
            {"name": "fs", "type": "stdio", "command": "echo", "port": 70000},
            {"name": "fs", "type": "stdio", "command": "echo", "port": "high"},
            {"name": "fs", "type": "carrier-pigeon"},
            {"name": "fs"},
        ],
    )
    def test_invalid_entry_skipped_others_kept(self, entry: dict[str, object]) -> None:
        good = {"name": "good", "type": "http", "url": "http://example:1/x"}

        declarations, invalid = parse_declarations([good, entry])

        assert [d.name for d in declarations] == ["good"]
        [bad] = invalid
        assert bad.index == 1
        assert bad.name == "fs"
        assert bad.error

    def test_error_names_the_failing_field(self) -> None:
        _, [bad] = parse_declarations(
            [{"name": "fs", "type": "stdio", "command": "echo", "port": 70000}]
        )

        assert bad.error.startswith("port:")

    @pytest.mark.parametrize("entry", ["fs", 42, {"name": 7, "type": "http"}])
    def test_unnamed_entry_has_no_name(self, entry: object) -> None:
        declarations, [bad] = parse_declarations([entry])

        assert declarations == []
        assert bad.index == 0
        assert bad.name is None


class TestDedupeDeclarations:
    def test_last_declared_wins_at_first_position(self) -> None:
        declarations = [
            owned("fs", 9000),
            external("db", "https://db.example"),
            owned("fs", 9001),
        ]

        result = dedupe_declarations(declarations)

        assert [d.name for d in result] == ["fs", "db"]
        assert result[0].port == 9001

    def test_logs_each_override(
        self, logger: FilteringBoundLogger, log_capture: LogCapture
    ) -> None:
        declarations = [owned("fs", 9000), owned("fs", 9001), owned("fs", 9002)]

        _ = dedupe_declarations(declarations, logger=logger)

        duplicates = events(log_capture, "duplicate_gateway_name")
        assert len(duplicates) == 2
        assert all(entry["log_level"] == "warning" for entry in duplicates)
        assert all(entry["gateway"] == "fs" for entry in duplicates)

    def test_unique_names_unchanged(self) -> None:
        declarations = [owned("a", 9000), owned("b", 9001)]

        assert dedupe_declarations(declarations) == declarations


class TestLoadDeclarations:
    def test_missing_file_returns_empty_and_logs_info(
        self,
        tmp_path: Path,
        logger: FilteringBoundLogger,
        log_capture: LogCapture,
    ) -> None:
        result = load_declarations(tmp_path / "absent.json", logger=logger)

        assert result == []
        [entry] = events(log_capture, "gateway_config_not_found")
        assert entry["log_level"] == "info"

    def test_malformed_file_returns_empty_and_logs_error(
        self,
        tmp_path: Path,
        logger: FilteringBoundLogger,
        log_capture: LogCapture,
    ) -> None:
        path = tmp_path / "gateways.json"
        path.write_text("{not json")

        result = load_declarations(path, logger=logger)

        assert result == []
        [entry] = events(log_capture, "gateway_config_invalid")
        assert entry["log_level"] == "error"
        assert entry["path"] == str(path)

    def test_unreadable_file_returns_empty_and_logs_error(
        self,
        tmp_path: Path,
        logger: FilteringBoundLogger,
        log_capture: LogCapture,
    ) -> None:
        # A directory exists but cannot be read as a file
        path = tmp_path / "gateways.json"
        path.mkdir()

        result = load_declarations(path, logger=logger)

        assert result == []
        assert events(log_capture, "gateway_config_unreadable")

    def test_invalid_entry_does_not_discard_the_file(
        self,
        tmp_path: Path,
        logger: FilteringBoundLogger,
        log_capture: LogCapture,
    ) -> None:
        path = write_json(
            tmp_path / "gateways.json",
            {
                "gateways": [
                    {"name": "good", "type": "http", "url": "http://example:1/x"},
                    {"name": "bad", "type": "stdio", "command": "echo", "port": -5},
                    {"name": "zero", "type": "stdio", "command": "echo", "port": 0},
                ]
            },
        )

        result = load_declarations(path, logger=logger)

        assert [d.name for d in result] == ["good", "zero"]
        assert not events(log_capture, "gateway_config_invalid")
        [entry] = events(log_capture, "gateway_misconfigured")
        assert entry["log_level"] == "error"
        assert entry["gateway"] == "bad"
        assert entry["index"] == 1
        assert "port" in entry["error"]

    def test_applies_duplicate_policy(
        self,
        tmp_path: Path,
        logger: FilteringBoundLogger,
        log_capture: LogCapture,
    ) -> None:
        path = write_json(
            tmp_path / "gateways.json",
            {
                "gateways": [
                    {"name": "db", "type": "http", "url": "https://old.example"},
                    {"name": "db", "type": "http", "url": "https://new.example"},
                ]
            },
        )

        result = load_declarations(path, logger=logger)

        assert [d.url for d in result] == ["https://new.example"]
        assert events(log_capture, "duplicate_gateway_name")

    def test_uses_env_var_when_no_path(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        logger: FilteringBoundLogger,
    ) -> None:
        path = write_json(
            tmp_path / "custom.json",
            {"gateways": [{"name": "db", "type": "http", "url": "https://db"}]},
        )
        monkeypatch.setenv("GATEWARDEN_CONFIG", str(path))

        result = load_declarations(logger=logger)

        assert [d.name for d in result] == ["db"]


class TestSetNestedKey:
    def test_sets_top_level_key(self) -> None:
        data: dict[str, object] = {}
        set_nested_key(data, "helper_command", "sg")
        assert data == {"helper_command": "sg"}

    def test_creates_intermediate_dicts(self) -> None:
        data: dict[str, object] = {}
        set_nested_key(data, "logging.level", "debug")
        assert data == {"logging": {"level": "debug"}}

    def test_replaces_non_dict_intermediate(self) -> None:
        data: dict[str, object] = {"logging": "flat"}
        set_nested_key(data, "logging.level", "debug")
        assert data == {"logging": {"level": "debug"}}


class TestParseEnvVars:
    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        import os

        for key in list(os.environ):
            if key.startswith(ENV_PREFIX):
                monkeypatch.delenv(key)

    def test_parses_flat_and_nested_keys(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("GATEWARDEN_HELPER_COMMAND", "sg")
        monkeypatch.setenv("GATEWARDEN_LOGGING__LEVEL", "debug")

        result = parse_env_vars()

        assert result == {"helper_command": "sg", "logging": {"level": "debug"}}

    def test_skips_reserved_keys(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GATEWARDEN_CONFIG", "/x.json")
        monkeypatch.setenv("GATEWARDEN_DEBUG", "1")
        monkeypatch.setenv("GATEWARDEN_LOG_LEVEL", "debug")

        assert parse_env_vars() == {}

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GATEWARDEN_HEALTH_INTERVAL", "12.5")
        monkeypatch.setenv("GATEWARDEN_LOGGING__LEVEL", "warning")

        settings = settings_from_env()

        assert settings.health_interval == 12.5
        assert settings.logging.level is LogLevel.WARNING

    def test_overrides_take_precedence(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.setenv("GATEWARDEN_CONFIG_PATH", "/from/env.json")

        settings = settings_from_env(config_path=tmp_path / "cli.json")

        assert settings.config_path == tmp_path / "cli.json"

    def test_none_overrides_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GATEWARDEN_HELPER_COMMAND", "sg")

        settings = settings_from_env(helper_command=None)

        assert settings.helper_command == "sg"

    def test_invalid_value_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GATEWARDEN_PROBE_TIMEOUT", "soon")

        with pytest.raises(ValidationError):
            _ = settings_from_env()
