"""Reading commands out of a send stream."""

from __future__ import annotations

import struct
from collections.abc import Iterator
from typing import BinaryIO

from .crc32 import validate_crc32
from .errors import (
    HeaderAlreadyParsedError,
    InvalidMagicError,
    InvalidVersionError,
    SendStreamError,
)
from .protocol import (
    STREAM_MAGIC,
    STREAM_VERSION,
    CmdAttrs,
    CmdHeader,
    SendAttribute,
    SendCommand,
    StreamHeader,
)


class _CleanEOF(EOFError):
    """The stream ended exactly on a record boundary."""


class Scanner:
    """Parses a send stream into ``(CmdHeader, CmdAttrs)`` pairs.

    Iterating reads the stream header first if it has not been read yet.
    Iteration stops quietly only when the stream ends right after an END
    command; any other end of input raises EOFError. Not safe for
    concurrent use.
    """

    def __init__(self, stream: BinaryIO, ignore_checksums: bool = False) -> None:
        self._stream = stream
        self.ignore_checksums = ignore_checksums
        self._header_parsed = False
        self._current = CmdHeader()
        self._error: BaseException | None = None

    def __iter__(self) -> Iterator[tuple[CmdHeader, CmdAttrs]]:
        if self._error is not None:
            raise self._error
        try:
            if not self._header_parsed:
                self._check_header(self._read_header())
            while True:
                try:
                    header, attrs = self.read_command()
                except _CleanEOF:
                    if self._current.command == SendCommand.END:
                        return
                    raise
                self._current = header
                yield header, attrs
        except Exception as exc:
            self._error = exc
            raise

    def read_header(self, validate: bool = True) -> StreamHeader:
        """Read the stream header; check magic and version when ``validate``."""
        if self._header_parsed:
            raise HeaderAlreadyParsedError()
        header = self._read_header()
        if validate:
            self._check_header(header)
        return header

    def read_command(self) -> tuple[CmdHeader, CmdAttrs]:
        """Read the next command header and its attributes."""
        header = CmdHeader.unpack(self._read(CmdHeader.SIZE))
        return header, self._read_attributes(header)

    def _read_header(self) -> StreamHeader:
        header = StreamHeader.unpack(self._read(StreamHeader.SIZE))
        self._header_parsed = True
        return header

    @staticmethod
    def _check_header(header: StreamHeader) -> None:
        if header.magic != STREAM_MAGIC:
            raise InvalidMagicError(f"invalid magic {header.magic!r}")
        if header.version != STREAM_VERSION:
            raise InvalidVersionError(f"invalid version {header.version}")

    def _read_attributes(self, header: CmdHeader) -> CmdAttrs:
        data = self._read(header.length)
        if not self.ignore_checksums:
            validate_crc32(header, data)
        attrs = CmdAttrs()
        size = len(data)
        pos = 0
        while pos < size:
            if size - pos < 2:
                raise SendStreamError("truncated attribute type in command")
            (kind,) = struct.unpack_from("<H", data, pos)
            pos += 2
            if kind == SendAttribute.DATA:
                length = size - pos
            else:
                if size - pos < 2:
                    raise SendStreamError("truncated attribute length in command")
                (length,) = struct.unpack_from("<H", data, pos)
                pos += 2
            if pos + length > size:
                raise SendStreamError(
                    f"attribute {kind} overruns its command by {pos + length - size} bytes"
                )
            try:
                key: int = SendAttribute(kind)
            except ValueError:
                key = kind
            attrs[key] = data[pos : pos + length]
            pos += length
        return attrs

    def _read(self, size: int) -> bytes:
        if size == 0:
            return b""
        chunks = []
        remaining = size
        while remaining:
            chunk = self._stream.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        data = b"".join(chunks)
        if not data:
            raise _CleanEOF("EOF")
        if remaining:
            raise EOFError("unexpected EOF")
        return data