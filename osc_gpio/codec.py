"""OSC codec adapter over python-osc.

Datagrams decode into plain records that keep each argument's OSC type tag,
so callers can distinguish an int32 from a char or a boolean.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Tuple, Union

from pythonosc import osc_bundle, osc_message, osc_message_builder
from pythonosc.parsing import osc_types

PARSE_ERRORS = (osc_message.ParseError, osc_bundle.ParseError, osc_types.ParseError)

# Tags without a payload in the datagram.
VALUE_ONLY_TAGS = {"T": True, "F": False, "N": None, "I": float("inf")}


class DecodeError(ValueError):
    """Raised when a datagram is not a valid OSC packet."""


class EncodeError(ValueError):
    """Raised when a message cannot be serialised."""


@dataclass(frozen=True)
class Argument:
    """One typed OSC argument ('i', 'c', 'T', 'F', 'f', 's', ...)."""

    tag: str
    value: Any


@dataclass(frozen=True)
class Message:
    address: str
    arguments: Tuple[Argument, ...] = ()


@dataclass(frozen=True)
class Bundle:
    timestamp: float
    contents: Tuple["Packet", ...] = ()


Packet = Union[Message, Bundle]


def boolean(value: bool) -> Argument:
    return Argument("T" if value else "F", bool(value))


def int32(value: int) -> Argument:
    return Argument("i", int(value))


def decode(data: bytes) -> Packet:
    """Decode a datagram into a Message or a Bundle."""
    try:
        if osc_bundle.OscBundle.dgram_is_bundle(data):
            return _from_bundle(osc_bundle.OscBundle(data))
        return _parse_message(data)
    except PARSE_ERRORS as exc:
        raise DecodeError(str(exc)) from exc


def encode(message: Message) -> bytes:
    """Encode a single Message into a datagram."""
    builder = osc_message_builder.OscMessageBuilder(address=message.address)
    try:
        for argument in message.arguments:
            arg_type = argument.tag if argument.tag not in ("[", "?") else None
            builder.add_arg(argument.value, arg_type)
        return builder.build().dgram
    except (osc_message_builder.BuildError, ValueError) as exc:
        raise EncodeError(f"cannot encode {message.address}: {exc}") from exc


def _from_bundle(bundle: "osc_bundle.OscBundle") -> Bundle:
    contents: List[Packet] = []
    for item in bundle:
        if isinstance(item, osc_bundle.OscBundle):
            contents.append(_from_bundle(item))
        else:
            contents.append(_parse_message(item.dgram))
    return Bundle(timestamp=bundle.timestamp, contents=tuple(contents))


def _parse_message(dgram: bytes) -> Message:
    """Walk the type tag string and read each argument with its own tag."""
    address, index = osc_types.get_string(dgram, 0)
    if index >= len(dgram):
        return Message(address=address)
    type_tags, index = osc_types.get_string(dgram, index)
    if not type_tags.startswith(","):
        raise DecodeError(f"missing type tag string in message to {address}")

    arguments: List[Argument] = []
    for tag in type_tags[1:]:
        if tag in VALUE_ONLY_TAGS:
            value = VALUE_ONLY_TAGS[tag]
        elif tag in ("i", "c"):
            # A char travels as a 32-bit int holding its code.
            value, index = osc_types.get_int(dgram, index)
        elif tag == "f":
            value, index = osc_types.get_float(dgram, index)
        elif tag == "s":
            value, index = osc_types.get_string(dgram, index)
        elif tag == "b":
            value, index = osc_types.get_blob(dgram, index)
        else:
            return _from_python_osc(dgram, address, type_tags)
        arguments.append(Argument(tag, value))
    return Message(address=address, arguments=tuple(arguments))


def _from_python_osc(dgram: bytes, address: str, type_tags: str) -> Message:
    """Decode less common tags with python-osc, rejecting any tag/value mismatch."""
    params = list(osc_message.OscMessage(dgram).params)
    tags = _top_level_tags(type_tags)
    if len(tags) != len(params):
        raise DecodeError(
            f"type tags {type_tags!r} do not match {len(params)} decoded argument(s) for {address}"
        )
    return Message(
        address=address,
        arguments=tuple(Argument(tag, value) for tag, value in zip(tags, params)),
    )


def _top_level_tags(type_tags: str) -> List[str]:
    """Fold each array in a type tag string into a single '[' tag."""
    tags: List[str] = []
    depth = 0
    for tag in type_tags[1:]:
        if tag == "[":
            if depth == 0:
                tags.append("[")
            depth += 1
        elif tag == "]":
            depth -= 1
        elif depth == 0:
            tags.append(tag)
    return tags
