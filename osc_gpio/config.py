"""Bridge configuration loader for osc_gpio.

This module parses the YAML configuration file into frozen records. Loading
happens once at startup; every problem is reported as a ConfigurationError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

DEFAULT_CONFIG_FILE = "osc-to-gpio-config.yml"
DEFAULT_POLL_MS = 50
DEFAULT_GPIO_CHIP = "/dev/gpiochip0"

GPIO_BACKENDS = {"gpiod", "null"}
BIAS_MODES = {"as_is", "pull_up", "pull_down"}


class ConfigurationError(RuntimeError):
    """Raised when the configuration file is missing, malformed or inconsistent."""


class PinIO(str, Enum):
    READABLE = "Readable"
    WRITEABLE = "Writeable"

    @classmethod
    def parse(cls, value: Any) -> "PinIO":
        token = str(value).strip().lower()
        if token in {"readable", "input", "in"}:
            return cls.READABLE
        if token in {"writeable", "writable", "output", "out"}:
            return cls.WRITEABLE
        raise ValueError(f"unknown pin direction {value!r}")


@dataclass(frozen=True)
class PinConfig:
    """One configured GPIO line."""

    identifier: int
    direction: PinIO
    initial_level: bool = False
    bias: str = "as_is"


@dataclass(frozen=True)
class ClientConfig:
    """A destination that receives input change notifications."""

    host: str
    port: int


@dataclass(frozen=True)
class BridgeConfig:
    """Parsed bridge configuration."""

    host: str
    port_in: int
    port_out: Optional[int] = None
    poll_ms: int = DEFAULT_POLL_MS
    pins: Tuple[PinConfig, ...] = ()
    clients: Tuple[ClientConfig, ...] = ()
    gpio_chip: str = DEFAULT_GPIO_CHIP
    gpio_backend: str = "gpiod"
    shared_gpio_handle: bool = False
    strict_pin_ids: bool = False
    log_level: str = "INFO"
    source: Optional[str] = field(default=None, compare=False)

    @property
    def shared_port(self) -> bool:
        """True when inbound and outbound traffic use one socket."""
        return self.port_out is None or self.port_out == self.port_in

    @classmethod
    def load(cls, path: str | Path) -> "BridgeConfig":
        """Load and validate a configuration file from disk."""
        path = Path(path)
        try:
            with path.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle)
        except OSError as exc:
            raise ConfigurationError(f"Error opening file '{path}': {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Error parsing config from '{path}': {exc}") from exc
        return cls.from_dict(data, source=str(path))

    @classmethod
    def from_dict(cls, data: Any, source: Optional[str] = None) -> "BridgeConfig":
        """Build a configuration from an already decoded mapping."""
        where = source or "<config>"
        if not isinstance(data, dict):
            raise ConfigurationError(f"Expected mapping in {where}")

        host = data.get("host")
        if not isinstance(host, str) or not host.strip():
            raise ConfigurationError(f"{where}: 'host' must be a non-empty string")

        if "port_in" in data:
            port_in = _port(data["port_in"], "port_in", where)
            port_out = _port(data["port_out"], "port_out", where) if data.get("port_out") is not None else None
        elif "port" in data:
            port_in = _port(data["port"], "port", where)
            port_out = None
        else:
            raise ConfigurationError(f"{where}: one of 'port_in' or 'port' is required")

        poll_ms = _int(data.get("poll_ms", DEFAULT_POLL_MS), "poll_ms", where)
        if poll_ms <= 0:
            raise ConfigurationError(f"{where}: 'poll_ms' must be positive, got {poll_ms}")

        backend = str(data.get("gpio_backend", "gpiod")).strip().lower()
        if backend not in GPIO_BACKENDS:
            raise ConfigurationError(f"{where}: 'gpio_backend' must be one of {sorted(GPIO_BACKENDS)}")

        return cls(
            host=host.strip(),
            port_in=port_in,
            port_out=port_out,
            poll_ms=poll_ms,
            pins=tuple(_parse_pins(data.get("pins"), where)),
            clients=tuple(_parse_clients(data.get("clients"), where)),
            gpio_chip=str(data.get("gpio_chip", DEFAULT_GPIO_CHIP)),
            gpio_backend=backend,
            shared_gpio_handle=_bool(data.get("shared_gpio_handle", False), "shared_gpio_handle", where),
            strict_pin_ids=_bool(data.get("strict_pin_ids", False), "strict_pin_ids", where),
            log_level=str(data.get("log_level", "INFO")).upper(),
            source=source,
        )


def _parse_pins(entries: Any, where: str) -> List[PinConfig]:
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise ConfigurationError(f"{where}: 'pins' must be a list")

    pins: List[PinConfig] = []
    seen: Dict[int, PinIO] = {}
    for index, entry in enumerate(entries):
        label = f"{where}: pins[{index}]"
        if not isinstance(entry, dict):
            raise ConfigurationError(f"{label} must be a mapping")
        if "pin" not in entry or "io" not in entry:
            raise ConfigurationError(f"{label} requires 'pin' and 'io'")

        identifier = _int(entry["pin"], "pin", label)
        if not 0 <= identifier <= 0xFF:
            raise ConfigurationError(f"{label}: pin {identifier} is outside 0..255")
        try:
            direction = PinIO.parse(entry["io"])
        except ValueError as exc:
            raise ConfigurationError(f"{label}: {exc}") from exc

        bias = str(entry.get("bias", "as_is")).strip().lower()
        if bias not in BIAS_MODES:
            raise ConfigurationError(f"{label}: 'bias' must be one of {sorted(BIAS_MODES)}")

        if identifier in seen:
            raise ConfigurationError(
                f"{label}: pin {identifier} already configured as {seen[identifier].value}"
            )
        seen[identifier] = direction
        pins.append(
            PinConfig(
                identifier=identifier,
                direction=direction,
                initial_level=_bool(entry.get("state", False), "state", label),
                bias=bias,
            )
        )
    return pins


def _parse_clients(entries: Any, where: str) -> List[ClientConfig]:
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise ConfigurationError(f"{where}: 'clients' must be a list")

    clients: List[ClientConfig] = []
    for index, entry in enumerate(entries):
        label = f"{where}: clients[{index}]"
        if not isinstance(entry, dict) or "host" not in entry or "port" not in entry:
            raise ConfigurationError(f"{label} requires 'host' and 'port'")
        clients.append(ClientConfig(host=str(entry["host"]).strip(), port=_port(entry["port"], "port", label)))
    return clients


def _int(value: Any, name: str, where: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{where}: '{name}' must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{where}: '{name}' must be an integer, got {value!r}") from exc


def _port(value: Any, name: str, where: str) -> int:
    port = _int(value, name, where)
    if not 0 <= port <= 0xFFFF:
        raise ConfigurationError(f"{where}: '{name}' {port} is not a valid port")
    return port


def _bool(value: Any, name: str, where: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ConfigurationError(f"{where}: '{name}' must be true or false, got {value!r}")
