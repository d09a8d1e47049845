"""State poller loop: sample readable pins and notify clients on level changes."""

from __future__ import annotations

import logging
import threading
from typing import List, Optional

from . import codec
from .clients import ClientRegistry
from .gpio import GpioAdapter, HardwareReadError
from .pins import Partition, PinState
from .router import Notification
from .transport import UdpTransport

LOGGER = logging.getLogger(__name__)


def encode_notification(notification: Notification) -> bytes:
    return codec.encode(codec.Message(notification.address, (codec.boolean(notification.level),)))


class StatePoller:
    """Edge-triggered poller over the readable partition it owns."""

    def __init__(
        self,
        transport: UdpTransport,
        gpio: GpioAdapter,
        readable: Partition,
        clients: ClientRegistry,
        poll_ms: int,
    ) -> None:
        self._transport = transport
        self._gpio = gpio
        self._pins = readable
        self._clients = clients
        self._interval = poll_ms / 1000.0
        self._stop_event = threading.Event()

    @property
    def pins(self) -> Partition:
        return self._pins

    def setup(self) -> None:
        """Request every readable line as an input."""
        for pin in self._pins:
            self._gpio.setup_input(pin.identifier, pin.bias)

    def stop(self) -> None:
        self._stop_event.set()

    def run_forever(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self.poll_once()
            except Exception as exc:
                LOGGER.exception("Poller error: %s", exc)

    def poll_once(self) -> List[Notification]:
        """Run one tick and return the notifications it emitted."""
        emitted: List[Notification] = []
        for pin in self._pins:
            notification = self._sample(pin)
            if notification is None:
                continue
            self._publish(notification)
            emitted.append(notification)
        return emitted

    def _sample(self, pin: PinState) -> Optional[Notification]:
        try:
            level = bool(self._gpio.read(pin.identifier))
        except HardwareReadError as exc:
            LOGGER.warning("Failed to read from pin %s, reason: %s", pin.identifier, exc)
            return None
        except Exception as exc:
            LOGGER.exception("Unexpected error reading pin %s: %s", pin.identifier, exc)
            return None
        if level == pin.current_level:
            return None
        LOGGER.info("Change in level on pin %s: %s => %s", pin.identifier, pin.current_level, level)
        pin.current_level = level
        return Notification(pin=pin.identifier, level=level)

    def _publish(self, notification: Notification) -> None:
        payload = encode_notification(notification)
        delivered = self._clients.broadcast(self._transport, payload)
        LOGGER.debug("Sent %s to %s/%s client(s)", notification.address, delivered, len(self._clients))
