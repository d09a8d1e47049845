"""UDP datagram transport for osc_gpio."""

from __future__ import annotations

import logging
import socket
from typing import Optional, Tuple

LOGGER = logging.getLogger(__name__)

OSC_MTU = 1536

Address = Tuple[str, int]


class TransportError(RuntimeError):
    """Raised when a socket cannot be provisioned."""


class TransportReceiveError(TransportError):
    """Raised when receiving a datagram fails."""


class TransportSendError(TransportError):
    """Raised when sending a datagram fails."""


class UdpTransport:
    """Blocking UDP socket with receive-with-sender and send-to-address."""

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock
        self._closed = False

    @classmethod
    def bind(cls, host: str, port: int) -> "UdpTransport":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind((host, port))
        except OSError as exc:
            sock.close()
            raise TransportError(f"Unable to provision socket: {host}:{port} ({exc})") from exc
        return cls(sock)

    @property
    def local_address(self) -> Optional[Address]:
        try:
            return self._sock.getsockname()
        except OSError:
            return None

    @property
    def closed(self) -> bool:
        return self._closed

    def receive(self, bufsize: int = OSC_MTU) -> Tuple[bytes, Address]:
        try:
            return self._sock.recvfrom(bufsize)
        except OSError as exc:
            raise TransportReceiveError(f"Error receiving datagram: {exc}") from exc

    def send_to(self, data: bytes, address: Address) -> None:
        try:
            self._sock.sendto(data, address)
        except OSError as exc:
            raise TransportSendError(f"Error sending to {address[0]}:{address[1]}: {exc}") from exc

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            # Wake a thread blocked in recvfrom before closing.
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._sock.close()
