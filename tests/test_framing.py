"""Tests for packet building and parsing."""

import pytest

from picomotor_mcp.errors import EncodingError
from picomotor_mcp.protocol.framing import (
    FLAG_READ,
    FLAG_REPLY,
    MAX_PAYLOAD,
    Command,
    Mode,
    Packet,
    Variant,
    build_line,
    build_packet,
    encode_command,
    parse_packet,
    split_chunks,
)


def test_build_packet_layout():
    """Verify every header byte of a read command with a reply requested.

    Structure: [flags] [seq] [len_lo len_hi] [class] [instr] [payload]
    """
    cmd = Command(opcode=0x1A0C, mode=Mode.READ, expects_reply=True,
                  payload=b"\x07\x08", sequence=5)
    packet = build_packet(cmd)
    assert packet[0] == 0x03  # bit0 read, bit1 reply
    assert packet[1] == 5     # sequence
    assert packet[2] == 0x06  # length low byte (4 + 2)
    assert packet[3] == 0x00  # length high byte
    assert packet[4] == 0x1A  # instruction class
    assert packet[5] == 0x0C  # instruction
    assert packet[6:] == b"\x07\x08"


def test_flag_byte_write_without_reply():
    cmd = Command(opcode=0x3001, mode=Mode.WRITE, expects_reply=False)
    assert build_packet(cmd)[0] == 0x00


def test_flag_byte_write_with_reply():
    cmd = Command(opcode=0x3001, mode=Mode.WRITE, expects_reply=True)
    assert build_packet(cmd)[0] == FLAG_REPLY


def test_unassigned_sequence_is_zero():
    assert build_packet(Command(opcode=0x0205))[1] == 0


def test_length_is_little_endian():
    cmd = Command(opcode=0x0205, payload=bytes(300))
    packet = build_packet(cmd)
    assert int.from_bytes(packet[2:4], "little") == 304
    assert len(packet) == 306


def test_roundtrip_parse():
    """Build a packet and parse it back."""
    cmd = Command(opcode=0x3001, mode=Mode.WRITE, expects_reply=True,
                  payload=b"\x10\x00\x00\x00", sequence=42)
    parsed = parse_packet(build_packet(cmd))

    assert parsed is not None
    assert parsed.flags == FLAG_REPLY
    assert parsed.mode == Mode.WRITE
    assert parsed.reply_requested is True
    assert parsed.sequence == 42
    assert parsed.opcode == 0x3001
    assert parsed.payload == b"\x10\x00\x00\x00"


def test_roundtrip_empty_payload():
    cmd = Command(opcode=0x0205, mode=Mode.READ, sequence=255)
    parsed = parse_packet(build_packet(cmd))
    assert parsed is not None
    assert parsed.flags == FLAG_READ | FLAG_REPLY
    assert parsed.payload == b""


def test_max_payload_encodes():
    cmd = Command(opcode=0x3001, payload=bytes(MAX_PAYLOAD))
    packet = build_packet(cmd)
    assert MAX_PAYLOAD == 65531
    assert int.from_bytes(packet[2:4], "little") == 0xFFFF


def test_oversized_payload_raises():
    cmd = Command(opcode=0x3001, payload=bytes(MAX_PAYLOAD + 1))
    with pytest.raises(EncodingError):
        build_packet(cmd)


def test_bad_sequence_raises():
    with pytest.raises(EncodingError):
        build_packet(Command(opcode=0x0205, sequence=256))


def test_bad_opcode_raises():
    with pytest.raises(EncodingError):
        build_packet(Command(opcode=0x10000))


def test_parse_short_buffer():
    assert parse_packet(b"\x03\x01\x04") is None


def test_parse_reserved_flags():
    bad = bytearray(build_packet(Command(opcode=0x0205)))
    bad[0] |= 0x80
    assert parse_packet(bytes(bad)) is None


def test_parse_truncated_payload():
    packet = build_packet(Command(opcode=0x0205, payload=b"\x01\x02\x03"))
    assert parse_packet(packet[:-1]) is None


def test_parse_ignores_trailing_bytes():
    packet = build_packet(Command(opcode=0x0205, payload=b"\x01"))
    parsed = parse_packet(packet + b"\xff\xff")
    assert parsed is not None
    assert parsed.payload == b"\x01"


def test_build_line_returns_text_unmodified():
    cmd = Command(payload=b"REL a1=100")
    assert build_line(cmd) == b"REL a1=100"
    assert encode_command(cmd, Variant.LINE) == b"REL a1=100"


def test_build_line_rejects_newline():
    with pytest.raises(EncodingError):
        build_line(Command(payload=b"VER\nSTA"))


def test_build_line_rejects_non_printable():
    with pytest.raises(EncodingError):
        build_line(Command(payload=b"VER\x00"))


def test_build_line_rejects_empty():
    with pytest.raises(EncodingError):
        build_line(Command(payload=b""))


def test_split_chunks_150_bytes():
    """A 150-byte packet goes out as 64 + 64 + 22."""
    chunks = split_chunks(bytes(range(150)), 64)
    assert [len(c) for c in chunks] == [64, 64, 22]
    assert b"".join(chunks) == bytes(range(150))


def test_split_chunks_small():
    assert split_chunks(b"VER\r\n") == [b"VER\r\n"]


def test_split_chunks_invalid_size():
    with pytest.raises(ValueError):
        split_chunks(b"abc", 0)


def test_packet_repr():
    r = repr(Packet(flags=0x03, sequence=1, opcode=0x1A0C, payload=b""))
    assert "0x1A0C" in r


def test_command_repr():
    r = repr(Command(opcode=0x0205, sequence=9))
    assert "0x0205" in r
    assert "seq=9" in r
