"""Command listener loop: inbound OSC datagrams drive the writeable pins."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from . import codec
from .gpio import GpioAdapter, HardwareWriteError
from .pins import Partition
from .router import Command, RoutingError, route_packet
from .transport import TransportReceiveError, UdpTransport

LOGGER = logging.getLogger(__name__)


class CommandListener:
    """Receive commands and apply them to the writeable partition it owns."""

    def __init__(
        self,
        transport: UdpTransport,
        gpio: GpioAdapter,
        writeable: Partition,
        strict_pin_ids: bool = False,
    ) -> None:
        self._transport = transport
        self._gpio = gpio
        self._pins = writeable
        self._strict = strict_pin_ids
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def pins(self) -> Partition:
        return self._pins

    @property
    def transport(self) -> UdpTransport:
        return self._transport

    def setup(self) -> None:
        """Request every writeable line as an output at its configured level."""
        for pin in self._pins:
            self._gpio.setup_output(pin.identifier, pin.current_level)

    def start(self) -> None:
        self._thread = threading.Thread(target=self.serve_forever, name="osc_gpio_listener", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def serve_forever(self) -> None:
        while not self._stop_event.is_set():
            try:
                data, sender = self._transport.receive()
            except TransportReceiveError as exc:
                if self._stop_event.is_set() or self._transport.closed:
                    break
                LOGGER.warning("%s", exc)
                continue
            try:
                self.handle_datagram(data, sender)
            except Exception as exc:
                LOGGER.exception("Listener error handling datagram from %s: %s", sender, exc)

    def handle_datagram(self, data: bytes, sender=None) -> Optional[Command]:
        """Decode, route and apply one datagram. Returns the command applied, if any."""
        try:
            packet = codec.decode(data)
        except codec.DecodeError as exc:
            LOGGER.warning("Error unpacking OSC packet from %s: %s", sender, exc)
            return None
        try:
            command = route_packet(packet, strict=self._strict)
        except RoutingError as exc:
            LOGGER.info("Unexpected message (%s): %s", type(exc).__name__, exc)
            return None
        return self.apply(command)

    def apply(self, command: Command) -> Optional[Command]:
        pin = self._pins.get(command.target_pin)
        if pin is None:
            LOGGER.debug("Ignoring write to pin %s (not a writeable pin)", command.target_pin)
            return None
        try:
            self._gpio.write(pin.identifier, command.requested_level)
        except HardwareWriteError as exc:
            LOGGER.warning("Failed to write pin %s: %s", pin.identifier, exc)
        except Exception as exc:
            LOGGER.exception("Unexpected error writing pin %s: %s", pin.identifier, exc)
        # Fire-and-forget: the stored level follows the command even if the write failed.
        pin.current_level = command.requested_level
        return command
