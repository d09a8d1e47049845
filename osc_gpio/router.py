"""Command routing: turn a decoded OSC packet into a pin write command."""

from __future__ import annotations

from dataclasses import dataclass

from .codec import Argument, Bundle, Message, Packet

WRITE_ADDRESS = "/gpio/write"
PIN_ADDRESS_TEMPLATE = "/gpio/pin/{}"

PIN_ID_TAGS = {"i", "c"}
LEVEL_TAGS = {"T", "F"}


class RoutingError(ValueError):
    """Base class for rejected inbound packets."""


class UnsupportedBundle(RoutingError):
    """The packet is a bundle; only single messages are accepted."""


class AddressMismatch(RoutingError):
    """The message is not addressed to the write control path."""


class ArgumentShapeMismatch(RoutingError):
    """The arguments are not <pin id, boolean level>."""


@dataclass(frozen=True)
class Command:
    target_pin: int
    requested_level: bool


@dataclass(frozen=True)
class Notification:
    pin: int
    level: bool

    @property
    def address(self) -> str:
        return pin_address(self.pin)


def pin_address(identifier: int) -> str:
    return PIN_ADDRESS_TEMPLATE.format(identifier)


def coerce_pin_id(argument: Argument, strict: bool = False) -> int:
    """Convert an int32 or char argument to an 8-bit pin identifier.

    The default cast keeps only the low byte, so 256 maps to pin 0 and -1 to
    pin 255. With ``strict`` set, values outside 0..255 are rejected instead.
    """
    if argument.tag not in PIN_ID_TAGS:
        raise ArgumentShapeMismatch(f"pin id must be int32 or char, got type tag '{argument.tag}'")
    value = argument.value
    if isinstance(value, str):
        if len(value) != 1:
            raise ArgumentShapeMismatch(f"char argument must be one character, got {value!r}")
        value = ord(value)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ArgumentShapeMismatch(f"pin id value {value!r} is not an integer")
    if strict and not 0 <= value <= 0xFF:
        raise ArgumentShapeMismatch(f"pin id {value} is outside 0..255")
    return value & 0xFF


def coerce_level(argument: Argument) -> bool:
    if argument.tag not in LEVEL_TAGS:
        raise ArgumentShapeMismatch(f"level must be a boolean, got type tag '{argument.tag}'")
    return argument.tag == "T"


def route_message(message: Message, strict: bool = False) -> Command:
    if message.address != WRITE_ADDRESS:
        raise AddressMismatch(f"expected message with path {WRITE_ADDRESS}, got {message.address}")
    if len(message.arguments) != 2:
        raise ArgumentShapeMismatch(
            f"expected args <u8, bool> for {WRITE_ADDRESS}, got {len(message.arguments)} argument(s)"
        )
    pin_arg, level_arg = message.arguments
    return Command(target_pin=coerce_pin_id(pin_arg, strict), requested_level=coerce_level(level_arg))


def route_packet(packet: Packet, strict: bool = False) -> Command:
    """Route a decoded packet, rejecting bundles before any message inspection."""
    if isinstance(packet, Bundle):
        raise UnsupportedBundle(f"expected OSC message but received bundle of {len(packet.contents)} item(s)")
    return route_message(packet, strict)
