"""Shared fixtures: scripted GPIO and in-memory datagram transport."""

from __future__ import annotations

from collections import deque
from typing import Any, Deque, Dict, List, Set, Tuple

import pytest

from osc_gpio.gpio import GpioAdapter, HardwareWriteError
from osc_gpio.transport import TransportReceiveError, TransportSendError


class FakeGpio(GpioAdapter):
    """GPIO double: reads come from per-line scripts, writes are recorded."""

    def __init__(self) -> None:
        self.inputs: Dict[int, str] = {}
        self.outputs: Dict[int, bool] = {}
        self.writes: List[Tuple[int, bool]] = []
        self.reads: List[int] = []
        self.fail_writes: Set[int] = set()
        self.write_faults: Dict[int, Exception] = {}
        self._scripts: Dict[int, Deque[Any]] = {}
        self._levels: Dict[int, bool] = {}

    def script(self, line: int, *samples: Any) -> None:
        """Queue samples for a line: booleans, or exceptions to raise."""
        self._scripts.setdefault(line, deque()).extend(samples)

    def setup_input(self, line: int, bias: str = "as_is") -> None:
        self.inputs[line] = bias

    def setup_output(self, line: int, initial: bool = False) -> None:
        self.outputs[line] = bool(initial)

    def read(self, line: int) -> bool:
        self.reads.append(line)
        queue = self._scripts.get(line)
        if queue:
            sample = queue.popleft()
            if isinstance(sample, Exception):
                raise sample
            self._levels[line] = bool(sample)
        return self._levels.get(line, False)

    def write(self, line: int, value: bool) -> None:
        self.writes.append((line, bool(value)))
        if line in self.fail_writes:
            raise HardwareWriteError(f"line {line}: simulated fault")
        if line in self.write_faults:
            raise self.write_faults[line]
        self.outputs[line] = bool(value)


class FakeTransport:
    """Datagram transport double with scripted inbound traffic."""

    def __init__(self) -> None:
        self.inbound: Deque[Any] = deque()
        self.sent: List[Tuple[bytes, Tuple[str, int]]] = []
        self.unreachable: Set[Tuple[str, int]] = set()
        self.closed = False

    def feed(self, *items: Any) -> None:
        self.inbound.extend(items)

    def receive(self, bufsize: int = 1536) -> Tuple[bytes, Tuple[str, int]]:
        if not self.inbound:
            self.closed = True
            raise TransportReceiveError("socket closed")
        item = self.inbound.popleft()
        if isinstance(item, Exception):
            raise item
        return item, ("127.0.0.1", 50000)

    def send_to(self, data: bytes, address: Tuple[str, int]) -> None:
        if address in self.unreachable:
            raise TransportSendError(f"Error sending to {address[0]}:{address[1]}: unreachable")
        self.sent.append((data, address))

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def gpio() -> FakeGpio:
    return FakeGpio()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
