"""Protocol layer: packet framing, command builders, sequencing and reply parsing."""

from .framing import Command, Mode, Packet, Variant, build_packet, parse_packet
from .commands import Direction, Opcode, Resolution
from .codec import PacketCodec
from .parser import Reply
from .sequence import CommandSequencer
