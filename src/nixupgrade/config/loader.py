"""Upgrade configuration loader and validator.

The module-generated ``/etc/nix-upgrade.json`` is parsed as JSON; any other
file is read with ``yaml.safe_load`` so hand-written YAML configs work too.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import yaml

from nixupgrade.core.window import RebootWindow, parse_time_of_day

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("/etc/nix-upgrade.json")
DEFAULT_OPERATION = "boot"
DEFAULT_FLAGS = ("--no-build-output",)
DEFAULT_PROGRAM = "nixos-rebuild"
DEFAULT_NETWORK_TIMEOUT = 2.0
DEFAULT_NETWORK_PROBES = ("8.8.8.8:53", "1.1.1.1:53")


# ── Errors ────────────────────────────────────────────────────────────────────


class ConfigError(Exception):
    """Raised for a missing, unreadable or invalid configuration."""

    kind = "ConfigError"


class ConfigNotFound(ConfigError):
    kind = "NotFound"


class ConfigUnreadable(ConfigError):
    kind = "Unreadable"


class InvalidOperation(ConfigError):
    kind = "InvalidOperation"


class ConflictingSource(ConfigError):
    kind = "ConflictingSource"


class InvalidTimeFormat(ConfigError):
    kind = "InvalidTimeFormat"


class InvalidFlags(ConfigError):
    kind = "InvalidFlags"


class InvalidSetting(ConfigError):
    kind = "InvalidSetting"


# ── Model ─────────────────────────────────────────────────────────────────────


class Operation(str, Enum):
    SWITCH = "switch"
    BOOT = "boot"


class SourceKind(Enum):
    FLAKE = "flake"
    CHANNEL = "channel"
    UNSET = "unset"


@dataclass(frozen=True)
class Source:
    """Where the new system configuration comes from."""

    kind: SourceKind = SourceKind.UNSET
    value: Optional[str] = None

    @classmethod
    def flake(cls, uri: str) -> "Source":
        return cls(SourceKind.FLAKE, uri)

    @classmethod
    def channel(cls, name: str) -> "Source":
        return cls(SourceKind.CHANNEL, name)

    def __str__(self) -> str:
        if self.kind is SourceKind.UNSET:
            return "system default"
        return f"{self.kind.value} {self.value}"


@dataclass(frozen=True)
class UpgradeConfig:
    """Validated configuration for a single upgrade run."""

    operation: Operation = Operation.BOOT
    source: Source = Source()
    extra_flags: tuple[str, ...] = DEFAULT_FLAGS
    allow_reboot: bool = False
    reboot_window: Optional[RebootWindow] = None
    program: str = DEFAULT_PROGRAM
    # Seconds; None waits for the rebuild however long it takes.
    timeout: Optional[int] = None
    network_timeout: float = DEFAULT_NETWORK_TIMEOUT
    network_probes: tuple[str, ...] = DEFAULT_NETWORK_PROBES


# ── Loading ───────────────────────────────────────────────────────────────────


def read_config(path: Path) -> dict[str, Any]:
    """
    Read the raw configuration document at ``path``.

    ``.json`` files are parsed with ``json``; anything else with
    ``yaml.safe_load``.

    Returns:
        Parsed mapping (empty if the document is empty)

    Raises:
        ConfigNotFound: If the file does not exist
        ConfigUnreadable: If the file cannot be read or parsed, or its root
            is not a mapping
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigNotFound(f"config file not found: {path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigUnreadable(f"cannot read {path}: {exc}") from exc

    if not text.strip():
        return {}
    try:
        if Path(path).suffix.lower() == ".json":
            raw = json.loads(text)
        else:
            raw = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigUnreadable(f"cannot parse {path}: {exc}") from exc

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigUnreadable(f"{path}: config root must be a mapping")
    return raw


def load_config(path: Path) -> UpgradeConfig:
    """
    Load and validate the upgrade configuration at ``path``.

    Raises:
        ConfigError: One of its subclasses, describing the first problem found
    """
    raw = read_config(Path(path))
    config = config_from_dict(raw)
    logger.debug("Loaded configuration from %s: %s", path, config)
    return config


def config_from_dict(raw: dict[str, Any]) -> UpgradeConfig:
    """Validate a raw config mapping and build an UpgradeConfig from it."""
    operation = _parse_operation(raw.get("operation"))
    source = _parse_source(raw.get("flake"), raw.get("channel"))
    flags = _parse_flags(raw.get("flags"))
    window = _parse_window(raw.get("rebootWindow"))

    allow_reboot = raw.get("allowReboot", False)
    if not isinstance(allow_reboot, bool):
        raise InvalidSetting(f"allowReboot must be true or false, got {allow_reboot!r}")

    program = raw.get("rebuildProgram", DEFAULT_PROGRAM)
    if not isinstance(program, str) or not program.strip():
        raise InvalidSetting(f"rebuildProgram must be a non-empty string, got {program!r}")

    timeout = raw.get("timeout")
    if timeout is not None and (
        isinstance(timeout, bool) or not isinstance(timeout, int) or timeout <= 0
    ):
        raise InvalidSetting(f"timeout must be a positive number of seconds, got {timeout!r}")

    network_timeout = raw.get("networkTimeout", DEFAULT_NETWORK_TIMEOUT)
    if (
        isinstance(network_timeout, bool)
        or not isinstance(network_timeout, (int, float))
        or network_timeout <= 0
    ):
        raise InvalidSetting(
            f"networkTimeout must be a positive number of seconds, got {network_timeout!r}"
        )

    probes = _parse_probes(raw.get("networkProbes"))

    return UpgradeConfig(
        operation=operation,
        source=source,
        extra_flags=flags,
        allow_reboot=allow_reboot,
        reboot_window=window,
        program=program,
        timeout=timeout,
        network_timeout=float(network_timeout),
        network_probes=probes,
    )


# ── Field parsers ─────────────────────────────────────────────────────────────


def _parse_operation(value: Any) -> Operation:
    if value is None:
        return Operation(DEFAULT_OPERATION)
    try:
        return Operation(value)
    except ValueError:
        raise InvalidOperation(
            f"operation must be 'switch' or 'boot', got {value!r}"
        ) from None


def _parse_source(flake: Any, channel: Any) -> Source:
    if flake is not None and channel is not None:
        raise ConflictingSource("only one of 'flake' and 'channel' may be set")
    if flake is not None:
        if not isinstance(flake, str) or not flake:
            raise InvalidSetting(f"flake must be a non-empty string, got {flake!r}")
        return Source.flake(flake)
    if channel is not None:
        if not isinstance(channel, str) or not channel:
            raise InvalidSetting(f"channel must be a non-empty string, got {channel!r}")
        return Source.channel(channel)
    return Source()


def _parse_flags(value: Any) -> tuple[str, ...]:
    if value is None:
        return DEFAULT_FLAGS
    if not isinstance(value, list) or not all(isinstance(f, str) for f in value):
        raise InvalidFlags(f"flags must be a list of strings, got {value!r}")
    return tuple(value)


def _parse_window(value: Any) -> Optional[RebootWindow]:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise InvalidTimeFormat("rebootWindow must be a mapping with 'lower' and 'upper'")
    bounds = {}
    for key in ("lower", "upper"):
        if key not in value:
            raise InvalidTimeFormat(f"rebootWindow is missing '{key}'")
        try:
            bounds[key] = parse_time_of_day(value[key])
        except ValueError as exc:
            raise InvalidTimeFormat(f"rebootWindow.{key}: {exc}") from None
    return RebootWindow(lower=bounds["lower"], upper=bounds["upper"])


def _is_probe(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    host, _, port = value.rpartition(":")
    if not host.strip("[]") or not port.isascii() or not port.isdigit():
        return False
    return 1 <= int(port) <= 65535


def _parse_probes(value: Any) -> tuple[str, ...]:
    if value is None:
        return DEFAULT_NETWORK_PROBES
    if not isinstance(value, list) or not value or not all(_is_probe(p) for p in value):
        raise InvalidSetting(
            f"networkProbes must be a non-empty list of 'host:port' strings, got {value!r}"
        )
    return tuple(value)
