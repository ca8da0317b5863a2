"""The crc32c variant used to checksum send stream commands."""

from __future__ import annotations

from dataclasses import replace

from .errors import InvalidChecksumError
from .protocol import CmdHeader

_POLY = 0x82F63B78


def _build_table() -> tuple[int, ...]:
    table = []
    for byte in range(256):
        crc = byte
        for _ in range(8):
            crc = (crc >> 1) ^ _POLY if crc & 1 else crc >> 1
        table.append(crc)
    return tuple(table)


_TABLE = _build_table()


def crc32c(data: bytes, seed: int = 0) -> int:
    """Castagnoli crc32 of ``data`` starting from ``seed``, with no final inversion."""
    crc = seed & 0xFFFFFFFF
    for value in data:
        crc = _TABLE[(crc ^ value) & 0xFF] ^ (crc >> 8)
    return crc


def calculate_crc32(header: CmdHeader, data: bytes) -> int:
    """Checksum of the packed ``header`` followed by the command ``data``."""
    return crc32c(header.pack() + bytes(data), 0)


def validate_crc32(header: CmdHeader, data: bytes) -> None:
    """Raise InvalidChecksumError unless ``header.crc`` matches the command."""
    expected = calculate_crc32(replace(header, crc=0), data)
    if expected != header.crc:
        raise InvalidChecksumError(
            f"invalid crc32 checksum for command: computed({expected}) != stream({header.crc})"
        )