"""Tests for configuration loading and validation."""

import json
from datetime import time
from pathlib import Path

import pytest
import yaml

from nixupgrade.config.loader import (
    DEFAULT_FLAGS,
    ConfigError,
    ConfigNotFound,
    ConfigUnreadable,
    ConflictingSource,
    InvalidFlags,
    InvalidOperation,
    InvalidSetting,
    InvalidTimeFormat,
    Operation,
    Source,
    SourceKind,
    UpgradeConfig,
    config_from_dict,
    load_config,
    read_config,
)


def _write_json(path: Path, data: dict) -> Path:
    path.write_text(json.dumps(data))
    return path


class TestReadConfig:
    """Tests for read_config."""

    def test_reads_json(self, tmp_path: Path) -> None:
        cfg = _write_json(tmp_path / "nix-upgrade.json", {"operation": "switch"})
        assert read_config(cfg) == {"operation": "switch"}

    def test_reads_yaml(self, tmp_path: Path) -> None:
        cfg = tmp_path / "nix-upgrade.yaml"
        cfg.write_text(yaml.dump({"operation": "boot", "flags": ["-L"]}))
        assert read_config(cfg) == {"operation": "boot", "flags": ["-L"]}

    def test_missing_file_raises_not_found(self) -> None:
        with pytest.raises(ConfigNotFound) as exc_info:
            read_config(Path("/nonexistent/nix-upgrade.json"))
        assert exc_info.value.kind == "NotFound"

    def test_empty_file_is_empty_mapping(self, tmp_path: Path) -> None:
        cfg = tmp_path / "empty.json"
        cfg.write_text("")
        assert read_config(cfg) == {}

    def test_malformed_document_is_unreadable(self, tmp_path: Path) -> None:
        cfg = tmp_path / "broken.json"
        cfg.write_text('{"operation": [')
        with pytest.raises(ConfigUnreadable):
            read_config(cfg)

    def test_non_mapping_root_is_unreadable(self, tmp_path: Path) -> None:
        cfg = tmp_path / "list.json"
        cfg.write_text('["boot"]')
        with pytest.raises(ConfigUnreadable):
            read_config(cfg)

    def test_directory_is_unreadable(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigUnreadable):
            read_config(tmp_path)


class TestLoadConfig:
    """Tests for load_config."""

    def test_empty_document_uses_defaults(self, tmp_path: Path) -> None:
        cfg = tmp_path / "empty.json"
        cfg.write_text("{}")

        config = load_config(cfg)

        assert config == UpgradeConfig()
        assert config.operation is Operation.BOOT
        assert config.source.kind is SourceKind.UNSET
        assert config.extra_flags == ("--no-build-output",)
        assert config.allow_reboot is False
        assert config.reboot_window is None
        assert config.program == "nixos-rebuild"
        assert config.timeout is None

    def test_full_document(self, tmp_path: Path) -> None:
        cfg = _write_json(
            tmp_path / "nix-upgrade.json",
            {
                "operation": "switch",
                "flake": "github:me/nixos",
                "channel": None,
                "flags": ["--a", "--b"],
                "allowReboot": True,
                "rebootWindow": {"lower": "22:00", "upper": "02:00"},
                "timeout": 3600,
                "networkTimeout": 5,
                "networkProbes": ["cache.nixos.org:443"],
            },
        )

        config = load_config(cfg)

        assert config.operation is Operation.SWITCH
        assert config.source == Source.flake("github:me/nixos")
        assert config.extra_flags == ("--a", "--b")
        assert config.allow_reboot is True
        assert config.reboot_window is not None
        assert config.reboot_window.lower == time(22, 0)
        assert config.reboot_window.upper == time(2, 0)
        assert config.timeout == 3600
        assert config.network_timeout == 5.0
        assert config.network_probes == ("cache.nixos.org:443",)

    def test_missing_file_raises(self) -> None:
        with pytest.raises(ConfigNotFound):
            load_config(Path("/nonexistent/nix-upgrade.json"))

    def test_errors_share_base_class(self, tmp_path: Path) -> None:
        cfg = _write_json(tmp_path / "c.json", {"operation": "upgrade"})
        with pytest.raises(ConfigError):
            load_config(cfg)


class TestConfigFromDict:
    """Validation rules of config_from_dict."""

    def test_missing_operation_defaults_to_boot(self) -> None:
        assert config_from_dict({}).operation is Operation.BOOT

    @pytest.mark.parametrize("op", ["switch", "boot"])
    def test_valid_operations(self, op: str) -> None:
        assert config_from_dict({"operation": op}).operation.value == op

    @pytest.mark.parametrize("op", ["test", "dry-build", "", "BOOT", 1])
    def test_invalid_operation(self, op: object) -> None:
        with pytest.raises(InvalidOperation) as exc_info:
            config_from_dict({"operation": op})
        assert exc_info.value.kind == "InvalidOperation"

    def test_flake_and_channel_conflict(self) -> None:
        with pytest.raises(ConflictingSource):
            config_from_dict({"flake": "github:x/y", "channel": "nixos-24.05"})

    def test_null_flake_with_channel_is_fine(self) -> None:
        config = config_from_dict({"flake": None, "channel": "nixos-24.05"})
        assert config.source == Source.channel("nixos-24.05")

    def test_non_string_flake_rejected(self) -> None:
        with pytest.raises(InvalidSetting):
            config_from_dict({"flake": 42})

    def test_empty_flags_list_allowed(self) -> None:
        assert config_from_dict({"flags": []}).extra_flags == ()

    def test_missing_flags_defaults(self) -> None:
        assert config_from_dict({}).extra_flags == DEFAULT_FLAGS

    @pytest.mark.parametrize("flags", ["--no-build-output", ["--a", 1], {"a": "b"}])
    def test_invalid_flags(self, flags: object) -> None:
        with pytest.raises(InvalidFlags):
            config_from_dict({"flags": flags})

    @pytest.mark.parametrize(
        "window",
        [
            {"lower": "1am", "upper": "05:00"},
            {"lower": "01:00", "upper": "25:00"},
            {"lower": "01:00"},
            {"upper": "05:00"},
            "01:00-05:00",
        ],
    )
    def test_invalid_reboot_window(self, window: object) -> None:
        with pytest.raises(InvalidTimeFormat):
            config_from_dict({"rebootWindow": window})

    def test_allow_reboot_must_be_bool(self) -> None:
        with pytest.raises(InvalidSetting):
            config_from_dict({"allowReboot": "yes"})

    @pytest.mark.parametrize("timeout", [0, -5, "600", True])
    def test_invalid_timeout(self, timeout: object) -> None:
        with pytest.raises(InvalidSetting):
            config_from_dict({"timeout": timeout})

    def test_invalid_network_timeout(self) -> None:
        with pytest.raises(InvalidSetting):
            config_from_dict({"networkTimeout": 0})

    @pytest.mark.parametrize("probes", [[], ["8.8.8.8"], "8.8.8.8:53"])
    def test_invalid_network_probes(self, probes: object) -> None:
        with pytest.raises(InvalidSetting):
            config_from_dict({"networkProbes": probes})

    def test_custom_rebuild_program(self) -> None:
        config = config_from_dict({"rebuildProgram": "/run/current-system/sw/bin/nixos-rebuild"})
        assert config.program == "/run/current-system/sw/bin/nixos-rebuild"

    def test_empty_rebuild_program_rejected(self) -> None:
        with pytest.raises(InvalidSetting):
            config_from_dict({"rebuildProgram": " "})

    def test_config_is_immutable(self) -> None:
        config = config_from_dict({})
        with pytest.raises(AttributeError):
            config.operation = Operation.SWITCH  # type: ignore[misc]


class TestJsonDocuments:
    """The module-generated config is JSON, which may be tab-indented."""

    def test_tab_indented_json_loads(self, tmp_path: Path) -> None:
        cfg = tmp_path / "nix-upgrade.json"
        cfg.write_text('{\n\t"operation": "switch",\n\t"flake": "github:x\\/y"\n}')

        config = load_config(cfg)

        assert config.operation is Operation.SWITCH
        assert config.source == Source.flake("github:x/y")

    def test_json_syntax_error_is_unreadable(self, tmp_path: Path) -> None:
        cfg = tmp_path / "nix-upgrade.json"
        cfg.write_text("operation: switch")
        with pytest.raises(ConfigUnreadable):
            load_config(cfg)

    def test_yaml_extension_still_uses_yaml(self, tmp_path: Path) -> None:
        cfg = tmp_path / "nix-upgrade.yml"
        cfg.write_text("operation: switch\nflags:\n  - -L\n")
        assert load_config(cfg).extra_flags == ("-L",)


class TestNetworkProbeValidation:
    @pytest.mark.parametrize(
        "probe", ["1.1.1.1:0", "1.1.1.1:65536", "1.1.1.1:dns", "1.1.1.1:", "1.1.1.1:٥٣"]
    )
    def test_invalid_port_rejected(self, probe: str) -> None:
        with pytest.raises(InvalidSetting):
            config_from_dict({"networkProbes": [probe]})

    @pytest.mark.parametrize("probe", ["1.1.1.1:53", "cache.nixos.org:443", "[::1]:65535"])
    def test_valid_probe_accepted(self, probe: str) -> None:
        assert config_from_dict({"networkProbes": [probe]}).network_probes == (probe,)
