"""osc_gpio package: OSC over UDP to Raspberry Pi GPIO bridge."""

__all__ = [
    "clients",
    "codec",
    "config",
    "daemon",
    "gpio",
    "listener",
    "pins",
    "poller",
    "router",
    "transport",
]
