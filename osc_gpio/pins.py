"""Pin directory: the startup split of configured lines into readable and writeable sets."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Optional
import logging

from .config import PinConfig, PinIO

LOGGER = logging.getLogger(__name__)


@dataclass
class PinState:
    """Last known level of one line; owned by exactly one loop."""

    identifier: int
    current_level: bool
    bias: str = "as_is"


class Partition:
    """Ordered identifier -> PinState mapping for one direction."""

    def __init__(self, direction: PinIO, states: Iterable[PinState] = ()) -> None:
        self.direction = direction
        self._states: Dict[int, PinState] = {}
        for state in states:
            self.add(state)

    def add(self, state: PinState) -> None:
        if state.identifier in self._states:
            raise ValueError(f"Duplicate pin {state.identifier} in {self.direction.value} partition")
        self._states[state.identifier] = state

    def get(self, identifier: int) -> Optional[PinState]:
        return self._states.get(identifier)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._states

    def __iter__(self) -> Iterator[PinState]:
        return iter(self._states.values())

    def __len__(self) -> int:
        return len(self._states)

    def identifiers(self) -> list[int]:
        return list(self._states)


class PinDirectory:
    """Readable and writeable partitions built once from configuration."""

    def __init__(self, readable: Partition, writeable: Partition) -> None:
        overlap = set(readable.identifiers()) & set(writeable.identifiers())
        if overlap:
            raise ValueError(f"Pins {sorted(overlap)} appear in both partitions")
        self._readable: Optional[Partition] = readable
        self._writeable: Optional[Partition] = writeable
        self.readable_ids = tuple(readable.identifiers())
        self.writeable_ids = tuple(writeable.identifiers())

    @classmethod
    def from_config(cls, pins: Iterable[PinConfig]) -> "PinDirectory":
        readable = Partition(PinIO.READABLE)
        writeable = Partition(PinIO.WRITEABLE)
        for pin in pins:
            other = writeable if pin.direction is PinIO.READABLE else readable
            if pin.identifier in other:
                raise ValueError(f"Pin {pin.identifier} configured as both Readable and Writeable")
            target = readable if pin.direction is PinIO.READABLE else writeable
            target.add(PinState(pin.identifier, pin.initial_level, pin.bias))

        directory = cls(readable, writeable)
        if not readable and not writeable:
            LOGGER.warning("No pins configured; the bridge will idle")
        else:
            LOGGER.info(
                "Pin directory: readable=%s writeable=%s",
                list(directory.readable_ids),
                list(directory.writeable_ids),
            )
        return directory

    def lookup_readable(self, identifier: int) -> Optional[PinState]:
        return self._owned(self._readable, "readable").get(identifier)

    def lookup_writeable(self, identifier: int) -> Optional[PinState]:
        return self._owned(self._writeable, "writeable").get(identifier)

    def take_readable(self) -> Partition:
        """Hand the readable partition to the poller; the directory keeps no reference."""
        partition = self._owned(self._readable, "readable")
        self._readable = None
        return partition

    def take_writeable(self) -> Partition:
        """Hand the writeable partition to the listener; the directory keeps no reference."""
        partition = self._owned(self._writeable, "writeable")
        self._writeable = None
        return partition

    @staticmethod
    def _owned(partition: Optional[Partition], name: str) -> Partition:
        if partition is None:
            raise RuntimeError(f"The {name} partition has already been handed to its loop")
        return partition
