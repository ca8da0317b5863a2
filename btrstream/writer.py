"""Writing commands into a send stream."""

from __future__ import annotations

from dataclasses import replace
from typing import BinaryIO

from .commands import end_command
from .crc32 import calculate_crc32
from .errors import HeaderAlreadySentError
from .protocol import CmdAttrs, CmdHeader, StreamHeader


class Writer:
    """Writes a send stream header and checksummed commands to ``stream``."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self.header_sent = False

    def send_header(self) -> None:
        """Write the stream header; it may be written only once."""
        if self.header_sent:
            raise HeaderAlreadySentError()
        self._stream.write(StreamHeader().pack())
        self.header_sent = True

    def write_command(self, command: int, attrs: CmdAttrs) -> None:
        """Write one command, sending the stream header first if needed."""
        if not self.header_sent:
            self.send_header()
        data = attrs.encode()
        header = CmdHeader(length=attrs.binary_size(), command=command, crc=0)
        header = replace(header, crc=calculate_crc32(header, data))
        self._stream.write(header.pack())
        self._stream.write(data)

    def end(self) -> None:
        """Write an END command; further commands may still follow."""
        self.write_command(*end_command())