"""Finding where two send streams start to differ."""

from __future__ import annotations

from typing import BinaryIO

from ..protocol import SendCommand
from ..scanner import Scanner

_SUBVOLUME_STARTS = (SendCommand.SUBVOL, SendCommand.SNAPSHOT)


def find_diff_offset(stream_a: BinaryIO, stream_b: BinaryIO) -> int:
    """Return the command offset at which the two streams first differ.

    Subvolume and snapshot commands match whenever their kinds match, since
    their UUIDs always differ. Streams sent without file data work best.
    Stream errors propagate.
    """
    commands_b = iter(Scanner(stream_b, False))
    offset = 0
    for header_a, _ in Scanner(stream_a, False):
        try:
            header_b, _ = next(commands_b)
        except StopIteration:
            return offset
        if header_a.command == header_b.command and header_a.command in _SUBVOLUME_STARTS:
            offset += 1
            continue
        if (
            header_a.command != header_b.command
            or header_a.crc != header_b.crc
            or header_a.length != header_b.length
        ):
            return offset
        offset += 1
    return offset