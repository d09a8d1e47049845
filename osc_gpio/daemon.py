"""Daemon entry point for osc_gpio.

Loads the YAML configuration, splits the pins by direction and runs the
command listener on a background thread and the state poller on the main
thread until SIGTERM/SIGINT.
"""

from __future__ import annotations

import argparse
import logging
import signal
from typing import List, Optional, Sequence, Tuple

from .clients import ClientRegistry
from .config import DEFAULT_CONFIG_FILE, BridgeConfig, ConfigurationError
from .gpio import GpioAdapter, LockedGpioAdapter, create_adapter, describe_board
from .listener import CommandListener
from .pins import PinDirectory
from .poller import StatePoller
from .transport import TransportError, UdpTransport

LOGGER = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments for the daemon."""
    parser = argparse.ArgumentParser(description="OSC to GPIO bridge")
    parser.add_argument(
        "config",
        nargs="?",
        default=DEFAULT_CONFIG_FILE,
        help=f"Path to the YAML configuration (default: {DEFAULT_CONFIG_FILE})",
    )
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    """Set up basic logging for the daemon."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format="%(asctime)s %(levelname)s %(message)s")


def open_gpio(config: BridgeConfig) -> Tuple[GpioAdapter, GpioAdapter]:
    """Return (listener handle, poller handle); one locked handle when shared."""
    if config.shared_gpio_handle:
        shared = LockedGpioAdapter(create_adapter(config.gpio_backend, config.gpio_chip))
        return shared, shared
    return (
        create_adapter(config.gpio_backend, config.gpio_chip),
        create_adapter(config.gpio_backend, config.gpio_chip),
    )


def open_transports(config: BridgeConfig) -> Tuple[UdpTransport, UdpTransport]:
    """Return (inbound, outbound) transports; the same socket when the port is shared."""
    inbound = UdpTransport.bind(config.host, config.port_in)
    if config.shared_port:
        return inbound, inbound
    try:
        outbound = UdpTransport.bind(config.host, config.port_out)
    except TransportError:
        inbound.close()
        raise
    return inbound, outbound


class Bridge:
    """Owns the two loops and the resources handed to them."""

    def __init__(
        self,
        listener: CommandListener,
        poller: StatePoller,
        resources: List[object],
    ) -> None:
        self.listener = listener
        self.poller = poller
        self._resources = resources

    @classmethod
    def from_config(cls, config: BridgeConfig) -> "Bridge":
        try:
            directory = PinDirectory.from_config(config.pins)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        clients = ClientRegistry.from_config(config.clients)
        LOGGER.info("Notifying %s client(s): %s", len(clients), clients)

        gpio_out, gpio_in = open_gpio(config)
        try:
            inbound, outbound = open_transports(config)
        except TransportError:
            _close_all([gpio_out, gpio_in])
            raise

        listener = CommandListener(inbound, gpio_out, directory.take_writeable(), config.strict_pin_ids)
        poller = StatePoller(outbound, gpio_in, directory.take_readable(), clients, config.poll_ms)
        return cls(listener, poller, [inbound, outbound, gpio_out, gpio_in])

    def setup(self) -> None:
        self.listener.setup()
        self.poller.setup()

    def run(self) -> None:
        """Start the listener thread and poll on the calling thread until stopped."""
        self.listener.start()
        self.poller.run_forever()

    def stop(self) -> None:
        self.poller.stop()
        self.listener.stop()

    def close(self) -> None:
        self.stop()
        _close_all(self._resources)
        self.listener.join(timeout=1.0)


def _close_all(resources: List[object]) -> None:
    seen = set()
    for resource in resources:
        if id(resource) in seen:
            continue
        seen.add(id(resource))
        try:
            resource.close()
        except OSError as exc:
            LOGGER.debug("Error closing %r: %s", resource, exc)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point for running the bridge."""
    args = parse_args(argv)
    try:
        config = BridgeConfig.load(args.config)
    except ConfigurationError as exc:
        configure_logging("INFO")
        LOGGER.error("Unable to continue without valid configuration: %s", exc)
        return 1
    configure_logging(config.log_level)
    LOGGER.info("config: %s", config)
    LOGGER.info("Model: %s", describe_board())

    try:
        bridge = Bridge.from_config(config)
    except (ConfigurationError, TransportError, RuntimeError) as exc:
        LOGGER.error("Startup failed: %s", exc)
        return 1

    try:
        bridge.setup()
    except Exception as exc:
        LOGGER.error("Unable to configure GPIO lines: %s", exc)
        bridge.close()
        return 1

    def shutdown(_signum=None, _frame=None):
        LOGGER.info("Shutting down")
        bridge.stop()

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)

    LOGGER.info("Listening on %s:%s...", config.host, config.port_in)
    try:
        bridge.run()
    finally:
        bridge.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
