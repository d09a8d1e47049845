"""Client registry: fixed notification destinations resolved at startup."""

from __future__ import annotations

import logging
import socket
from typing import Iterable, Iterator, Tuple

from .config import ClientConfig, ConfigurationError
from .transport import Address, TransportSendError, UdpTransport

LOGGER = logging.getLogger(__name__)


def resolve_address(host: str, port: int) -> Address:
    """Resolve a host/port pair to an IPv4 socket address."""
    if not 0 <= int(port) <= 0xFFFF:
        raise ConfigurationError(f"Unable to use host and port ('{host}:{port}') as an address!")
    try:
        ip = socket.gethostbyname(host)
    except (OSError, UnicodeError) as exc:
        raise ConfigurationError(f"Unable to use host and port ('{host}:{port}') as an address! ({exc})") from exc
    return ip, int(port)


class ClientRegistry:
    """Immutable list of destination addresses."""

    def __init__(self, addresses: Iterable[Address] = ()) -> None:
        self._addresses: Tuple[Address, ...] = tuple(addresses)

    @classmethod
    def from_config(cls, clients: Iterable[ClientConfig]) -> "ClientRegistry":
        return cls(resolve_address(client.host, client.port) for client in clients)

    def __iter__(self) -> Iterator[Address]:
        return iter(self._addresses)

    def __len__(self) -> int:
        return len(self._addresses)

    def __repr__(self) -> str:
        return f"ClientRegistry({', '.join(f'{h}:{p}' for h, p in self._addresses)})"

    def broadcast(self, transport: UdpTransport, payload: bytes) -> int:
        """Send payload to every client; one failed destination never blocks the rest."""
        delivered = 0
        for address in self._addresses:
            try:
                transport.send_to(payload, address)
            except TransportSendError as exc:
                LOGGER.warning("Error sending to client %s:%s, reason: %s", address[0], address[1], exc)
                continue
            delivered += 1
        return delivered
