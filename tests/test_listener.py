"""Tests for the command listener loop."""

import logging
import struct

from pythonosc import osc_bundle_builder, osc_message_builder

from osc_gpio.config import PinIO
from osc_gpio.listener import CommandListener
from osc_gpio.pins import Partition, PinState
from osc_gpio.router import Command
from osc_gpio.transport import TransportReceiveError


def datagram(address, *args):
    builder = osc_message_builder.OscMessageBuilder(address=address)
    for arg in args:
        builder.add_arg(arg)
    return builder.build().dgram


def make_listener(transport, gpio, *states, strict=False):
    partition = Partition(PinIO.WRITEABLE, [PinState(identifier, level) for identifier, level in states])
    return CommandListener(transport, gpio, partition, strict_pin_ids=strict)


def test_setup_requests_outputs_at_initial_level(transport, gpio):
    listener = make_listener(transport, gpio, (3, False), (4, True))
    listener.setup()
    assert gpio.outputs == {3: False, 4: True}


def test_write_command_drives_pin(transport, gpio):
    listener = make_listener(transport, gpio, (3, False))
    command = listener.handle_datagram(datagram("/gpio/write", 3, True))
    assert command == Command(3, True)
    assert gpio.writes == [(3, True)]
    assert listener.pins.get(3).current_level is True
    assert transport.sent == []


def test_write_applies_regardless_of_prior_value(transport, gpio):
    listener = make_listener(transport, gpio, (3, True))
    listener.handle_datagram(datagram("/gpio/write", 3, True))
    listener.handle_datagram(datagram("/gpio/write", 3, False))
    assert gpio.writes == [(3, True), (3, False)]
    assert listener.pins.get(3).current_level is False


def test_unknown_pin_is_ignored(transport, gpio):
    listener = make_listener(transport, gpio, (3, False))
    assert listener.handle_datagram(datagram("/gpio/write", 9, True)) is None
    assert gpio.writes == []
    assert listener.pins.get(3).current_level is False


def test_missing_level_argument_rejected(transport, gpio, caplog):
    listener = make_listener(transport, gpio, (7, False))
    with caplog.at_level(logging.INFO):
        assert listener.handle_datagram(datagram("/gpio/write", 7)) is None
    assert gpio.writes == []
    assert listener.pins.get(7).current_level is False
    assert "ArgumentShapeMismatch" in caplog.text


def test_non_boolean_level_rejected(transport, gpio):
    listener = make_listener(transport, gpio, (7, False))
    assert listener.handle_datagram(datagram("/gpio/write", 7, 1)) is None
    assert gpio.writes == []
    assert listener.pins.get(7).current_level is False


def test_other_address_rejected(transport, gpio, caplog):
    listener = make_listener(transport, gpio, (3, False))
    with caplog.at_level(logging.INFO):
        assert listener.handle_datagram(datagram("/other/path", 3, True)) is None
    assert gpio.writes == []
    assert "AddressMismatch" in caplog.text


def test_bundle_rejected(transport, gpio, caplog):
    listener = make_listener(transport, gpio, (3, False))
    builder = osc_bundle_builder.OscBundleBuilder(osc_bundle_builder.IMMEDIATELY)
    msg = osc_message_builder.OscMessageBuilder(address="/gpio/write")
    msg.add_arg(3)
    msg.add_arg(True)
    builder.add_content(msg.build())
    with caplog.at_level(logging.INFO):
        assert listener.handle_datagram(builder.build().dgram) is None
    assert gpio.writes == []
    assert "UnsupportedBundle" in caplog.text


def test_undecodable_datagram_dropped(transport, gpio):
    listener = make_listener(transport, gpio, (3, False))
    assert listener.handle_datagram(b"not-osc") is None
    assert gpio.writes == []


def test_wrapped_pin_id_targets_low_byte(transport, gpio):
    listener = make_listener(transport, gpio, (4, False))
    assert listener.handle_datagram(datagram("/gpio/write", 260, True)) == Command(4, True)
    assert gpio.writes == [(4, True)]


def test_strict_pin_ids_reject_wrapped_value(transport, gpio):
    listener = make_listener(transport, gpio, (4, False), strict=True)
    assert listener.handle_datagram(datagram("/gpio/write", 260, True)) is None
    assert gpio.writes == []


def test_hardware_write_failure_still_updates_state(transport, gpio, caplog):
    gpio.fail_writes.add(3)
    listener = make_listener(transport, gpio, (3, False))
    with caplog.at_level(logging.WARNING):
        assert listener.handle_datagram(datagram("/gpio/write", 3, True)) == Command(3, True)
    assert listener.pins.get(3).current_level is True
    assert "Failed to write pin 3" in caplog.text


def test_serve_forever_survives_receive_errors_and_bad_packets(transport, gpio):
    listener = make_listener(transport, gpio, (3, False), (4, False))
    transport.feed(
        TransportReceiveError("Error receiving datagram: reset"),
        b"garbage",
        datagram("/gpio/write", 3, True),
        datagram("/elsewhere", 4, True),
        datagram("/gpio/write", 4, True),
    )
    listener.serve_forever()
    assert gpio.writes == [(3, True), (4, True)]
    assert transport.sent == []


def test_stop_ends_loop(transport, gpio):
    listener = make_listener(transport, gpio, (3, False))
    listener.stop()
    transport.feed(datagram("/gpio/write", 3, True))
    listener.serve_forever()
    assert gpio.writes == []


def char_write(code, level):
    tags = b",cT\x00" if level else b",cF\x00"
    return b"/gpio/write\x00" + tags + struct.pack(">i", code)


def test_char_pin_id_datagram_drives_pin(transport, gpio):
    listener = make_listener(transport, gpio, (5, False))
    assert listener.handle_datagram(char_write(5, True)) == Command(5, True)
    assert gpio.writes == [(5, True)]
    assert listener.pins.get(5).current_level is True


def test_char_pin_id_wraps_to_low_byte(transport, gpio):
    listener = make_listener(transport, gpio, (5, True))
    assert listener.handle_datagram(char_write(261, False)) == Command(5, False)
    assert gpio.writes == [(5, False)]


def test_unexpected_write_fault_still_updates_state(transport, gpio, caplog):
    gpio.write_faults[3] = ValueError("request released")
    listener = make_listener(transport, gpio, (3, False))
    with caplog.at_level(logging.ERROR):
        assert listener.handle_datagram(datagram("/gpio/write", 3, True)) == Command(3, True)
    assert listener.pins.get(3).current_level is True
    assert "Unexpected error writing pin 3" in caplog.text
