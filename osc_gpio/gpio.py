"""GPIO adapters for osc_gpio (libgpiod-backed)."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional
import logging
import threading

LOGGER = logging.getLogger(__name__)

DEVICE_TREE_MODEL = "/proc/device-tree/model"


class HardwareReadError(RuntimeError):
    """Raised when a GPIO line could not be sampled."""


class HardwareWriteError(RuntimeError):
    """Raised when a GPIO line could not be driven."""


class GpioAdapter:
    """Abstract GPIO adapter."""

    def setup_input(self, line: int, bias: str = "as_is") -> None:
        raise NotImplementedError

    def setup_output(self, line: int, initial: bool = False) -> None:
        raise NotImplementedError

    def read(self, line: int) -> bool:
        raise NotImplementedError

    def write(self, line: int, value: bool) -> None:
        raise NotImplementedError

    def close(self) -> None:
        return


class NullGpioAdapter(GpioAdapter):
    """In-memory GPIO adapter for development hosts."""

    def __init__(self) -> None:
        self._values: Dict[int, bool] = {}

    def setup_input(self, line: int, bias: str = "as_is") -> None:
        self._values.setdefault(line, bias == "pull_up")

    def setup_output(self, line: int, initial: bool = False) -> None:
        self._values[line] = bool(initial)

    def read(self, line: int) -> bool:
        return self._values.get(line, False)

    def write(self, line: int, value: bool) -> None:
        self._values[line] = bool(value)


class LockedGpioAdapter(GpioAdapter):
    """Share one adapter between loops, serialising each hardware call."""

    def __init__(self, inner: GpioAdapter) -> None:
        self._inner = inner
        self._lock = threading.Lock()

    def setup_input(self, line: int, bias: str = "as_is") -> None:
        with self._lock:
            self._inner.setup_input(line, bias)

    def setup_output(self, line: int, initial: bool = False) -> None:
        with self._lock:
            self._inner.setup_output(line, initial)

    def read(self, line: int) -> bool:
        with self._lock:
            return self._inner.read(line)

    def write(self, line: int, value: bool) -> None:
        with self._lock:
            self._inner.write(line, value)

    def close(self) -> None:
        with self._lock:
            self._inner.close()


class LibgpiodAdapter(GpioAdapter):
    """libgpiod-backed adapter holding one line request per pin (v1/v2 APIs)."""

    def __init__(self, chip: str = "/dev/gpiochip0", consumer: str = "osc_gpio") -> None:
        self._chip_path = chip
        self._consumer = consumer
        self._handles: Dict[int, Any] = {}
        self._chip: Optional[Any] = None
        self._gpiod = self._load_gpiod()
        self._v2 = hasattr(self._gpiod, "request_lines")
        if not self._v2:
            self._chip = self._gpiod.Chip(self._chip_path)

    @staticmethod
    def _load_gpiod():
        try:
            import gpiod
        except ImportError as exc:
            raise RuntimeError("gpiod is required for GPIO access (pip install gpiod)") from exc
        return gpiod

    def setup_input(self, line: int, bias: str = "as_is") -> None:
        self._release(line)
        if self._v2:
            from gpiod.line import Bias, Direction

            bias_value = {"pull_up": Bias.PULL_UP, "pull_down": Bias.PULL_DOWN}.get(bias, Bias.AS_IS)
            settings = self._gpiod.LineSettings(direction=Direction.INPUT, bias=bias_value)
            self._handles[line] = self._gpiod.request_lines(
                self._chip_path, consumer=self._consumer, config={line: settings}
            )
            return

        flags = 0
        flag_name = {"pull_up": "LINE_REQ_FLAG_BIAS_PULL_UP", "pull_down": "LINE_REQ_FLAG_BIAS_PULL_DOWN"}.get(bias)
        if flag_name and hasattr(self._gpiod, flag_name):
            flags = getattr(self._gpiod, flag_name)
        handle = self._chip.get_line(line)
        handle.request(consumer=self._consumer, type=self._gpiod.LINE_REQ_DIR_IN, flags=flags)
        self._handles[line] = handle

    def setup_output(self, line: int, initial: bool = False) -> None:
        self._release(line)
        if self._v2:
            from gpiod.line import Direction

            settings = self._gpiod.LineSettings(direction=Direction.OUTPUT, output_value=self._encode(initial))
            self._handles[line] = self._gpiod.request_lines(
                self._chip_path, consumer=self._consumer, config={line: settings}
            )
            return

        handle = self._chip.get_line(line)
        handle.request(
            consumer=self._consumer,
            type=self._gpiod.LINE_REQ_DIR_OUT,
            default_vals=[1 if initial else 0],
        )
        self._handles[line] = handle

    def read(self, line: int) -> bool:
        handle = self._handles.get(line)
        if handle is None:
            raise HardwareReadError(f"line {line} was not requested as input")
        try:
            if self._v2:
                from gpiod.line import Value

                return handle.get_value(line) == Value.ACTIVE
            return bool(handle.get_value())
        except Exception as exc:
            # gpiod raises OSError, ValueError and its own RequestReleasedError.
            raise HardwareReadError(f"line {line}: {type(exc).__name__}: {exc}") from exc

    def write(self, line: int, value: bool) -> None:
        handle = self._handles.get(line)
        if handle is None:
            raise HardwareWriteError(f"line {line} was not requested as output")
        try:
            if self._v2:
                handle.set_value(line, self._encode(value))
            else:
                handle.set_value(1 if value else 0)
        except Exception as exc:
            raise HardwareWriteError(f"line {line}: {type(exc).__name__}: {exc}") from exc

    def close(self) -> None:
        for line in list(self._handles):
            self._release(line)
        if self._chip is not None:
            try:
                self._chip.close()
            except OSError:
                pass
            self._chip = None

    def _release(self, line: int) -> None:
        handle = self._handles.pop(line, None)
        if handle is None:
            return
        release = getattr(handle, "release", None)
        if callable(release):
            try:
                release()
            except OSError as exc:
                LOGGER.debug("Failed to release line %s: %s", line, exc)

    def _encode(self, value: bool):
        if self._v2:
            from gpiod.line import Value

            return Value.ACTIVE if value else Value.INACTIVE
        return 1 if value else 0


def create_adapter(backend: str, chip: str) -> GpioAdapter:
    """Factory for GPIO adapters (null adapter for development hosts)."""
    if backend == "null":
        return NullGpioAdapter()
    return LibgpiodAdapter(chip)


def describe_board(path: str = DEVICE_TREE_MODEL) -> str:
    """Return the board model reported by the device tree, or 'unknown'."""
    try:
        raw = Path(path).read_bytes()
    except OSError:
        return "unknown"
    model = raw.rstrip(b"\x00").decode("utf-8", errors="replace").strip()
    return model or "unknown"
