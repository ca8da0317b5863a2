"""Wire format of the btrfs send stream: commands, attributes and headers."""

from __future__ import annotations

import struct
import uuid as _uuid
import zlib
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import IntEnum
from typing import ClassVar

STREAM_MAGIC = b"btrfs-stream\x00"
STREAM_VERSION = 2

COMPRESSION_NONE = 0
COMPRESSION_ZLIB = 1
COMPRESSION_ZSTD = 2

_TIMESPEC = struct.Struct("<QI")


class SendCommand(IntEnum):
    """Command identifiers of the send stream."""

    UNSPEC = 0
    # Version 1
    SUBVOL = 1
    SNAPSHOT = 2
    MKFILE = 3
    MKDIR = 4
    MKNOD = 5
    MKFIFO = 6
    MKSOCK = 7
    SYMLINK = 8
    RENAME = 9
    LINK = 10
    UNLINK = 11
    RMDIR = 12
    SET_XATTR = 13
    REMOVE_XATTR = 14
    WRITE = 15
    CLONE = 16
    TRUNCATE = 17
    CHMOD = 18
    CHOWN = 19
    UTIMES = 20
    END = 21
    UPDATE_EXTENT = 22
    MAX_V1 = 22
    # Version 2
    FALLOCATE = 23
    FILEATTR = 24
    ENCODED_WRITE = 25
    MAX_V2 = 25
    # Version 3
    ENABLE_VERITY = 26
    MAX_V3 = 26
    MAX = 26


class SendAttribute(IntEnum):
    """Attribute identifiers of the send stream."""

    UNSPEC = 0
    # Version 1
    UUID = 1
    CTRANSID = 2
    INO = 3
    SIZE = 4
    MODE = 5
    UID = 6
    GID = 7
    RDEV = 8
    CTIME = 9
    MTIME = 10
    ATIME = 11
    OTIME = 12
    XATTR_NAME = 13
    XATTR_DATA = 14
    PATH = 15
    PATH_TO = 16
    PATH_LINK = 17
    FILE_OFFSET = 18
    # Always last in a command; its length is the remainder of the command.
    DATA = 19
    CLONE_UUID = 20
    CLONE_CTRANSID = 21
    CLONE_PATH = 22
    CLONE_OFFSET = 23
    CLONE_LEN = 24
    MAX_V1 = 24
    # Version 2
    FALLOCATE_MODE = 25
    FILEATTR = 26
    UNENCODED_FILE_LEN = 27
    UNENCODED_LEN = 28
    UNENCODED_OFFSET = 29
    COMPRESSION = 30
    ENCRYPTION = 31
    MAX_V2 = 31
    # Version 3
    VERITY_ALGORITHM = 32
    VERITY_BLOCK_SIZE = 33
    VERITY_SALT_DATA = 34
    VERITY_SIG_DATA = 35
    MAX_V3 = 35
    MAX = 35


@dataclass
class EncodedWriteOp:
    """An encoded (possibly compressed) write of file data."""

    offset: int = 0
    data: bytes = b""
    unencoded_file_length: int = 0
    unencoded_length: int = 0
    unencoded_offset: int = 0
    compression: int = COMPRESSION_NONE
    encryption: int = 0

    def decompress(self) -> bytes:
        """Return the plain bytes this operation writes at ``offset``."""
        if self.encryption:
            raise ValueError(f"unsupported encryption type {self.encryption}")
        if self.compression == COMPRESSION_NONE:
            plain = self.data
        elif self.compression == COMPRESSION_ZLIB:
            try:
                plain = zlib.decompress(self.data)
            except zlib.error as exc:
                raise ValueError(f"cannot decompress zlib data: {exc}") from exc
        else:
            raise ValueError(f"unsupported compression type {self.compression}")
        start = self.unencoded_offset
        return bytes(plain[start : start + self.unencoded_length])


@dataclass(frozen=True)
class StreamHeader:
    """The header that opens every send stream."""

    magic: bytes = STREAM_MAGIC
    version: int = STREAM_VERSION

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<13sI")
    SIZE: ClassVar[int] = _STRUCT.size

    def pack(self) -> bytes:
        return self._STRUCT.pack(self.magic, self.version)

    @classmethod
    def unpack(cls, data: bytes) -> StreamHeader:
        if len(data) != cls.SIZE:
            raise ValueError(f"stream header needs {cls.SIZE} bytes, got {len(data)}")
        magic, version = cls._STRUCT.unpack(data)
        return cls(magic, version)


@dataclass(frozen=True)
class CmdHeader:
    """The header that precedes every command's attributes."""

    length: int = 0
    command: int = 0
    crc: int = 0

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<IHI")
    SIZE: ClassVar[int] = _STRUCT.size

    def pack(self) -> bytes:
        return self._STRUCT.pack(self.length, int(self.command), self.crc)

    @classmethod
    def unpack(cls, data: bytes) -> CmdHeader:
        if len(data) != cls.SIZE:
            raise ValueError(f"command header needs {cls.SIZE} bytes, got {len(data)}")
        length, command, crc = cls._STRUCT.unpack(data)
        try:
            command = SendCommand(command)
        except ValueError:
            pass
        return cls(length, command, crc)

    def is_zero(self) -> bool:
        return self.length == 0 and self.command == 0 and self.crc == 0


class CmdAttrs(dict):
    """Attributes of one command, keyed by attribute id, holding raw bytes."""

    def binary_size(self) -> int:
        """Encoded length of the attributes, as stored in the command header."""
        size = 0
        for key, value in self.items():
            size += 2
            if key != SendAttribute.DATA:
                size += 2
            size += len(value)
        return size

    def encode(self) -> bytes:
        """Encode the attributes; DATA, if present, is always written last."""
        parts = []
        for key, value in self.items():
            if key == SendAttribute.DATA:
                continue
            if len(value) > 0xFFFF:
                raise ValueError(f"attribute {key} is too long: {len(value)} bytes")
            parts.append(struct.pack("<HH", int(key), len(value)))
            parts.append(bytes(value))
        if SendAttribute.DATA in self:
            parts.append(struct.pack("<H", int(SendAttribute.DATA)))
            parts.append(bytes(self[SendAttribute.DATA]))
        return b"".join(parts)

    def _bytes(self, key: SendAttribute) -> bytes:
        return bytes(self.get(key, b""))

    def _text(self, key: SendAttribute) -> str:
        return self._bytes(key).decode("utf-8", errors="surrogateescape")

    def _unpack(self, key: SendAttribute, fmt: str):
        raw = self[key]
        try:
            return struct.unpack_from(fmt, raw)
        except struct.error as exc:
            raise ValueError(f"attribute {key!r} is too short: {len(raw)} bytes") from exc

    def _u64(self, key: SendAttribute) -> int:
        return self._unpack(key, "<Q")[0]

    def _u32(self, key: SendAttribute) -> int:
        return self._unpack(key, "<I")[0]

    def _uuid(self, key: SendAttribute) -> _uuid.UUID:
        return _uuid.UUID(bytes=bytes(self[key]))

    def _time(self, key: SendAttribute) -> datetime:
        if len(self[key]) < _TIMESPEC.size:
            raise ValueError(f"attribute {key!r} is too short: {len(self[key])} bytes")
        sec, nsec = _TIMESPEC.unpack_from(self[key])
        return datetime.fromtimestamp(sec, timezone.utc) + timedelta(microseconds=nsec // 1000)

    def data(self) -> bytes:
        return self._bytes(SendAttribute.DATA)

    def file_offset(self) -> int:
        return self._u64(SendAttribute.FILE_OFFSET)

    def path(self) -> str:
        return self._text(SendAttribute.PATH)

    def path_link(self) -> str:
        return self._text(SendAttribute.PATH_LINK)

    def path_to(self) -> str:
        return self._text(SendAttribute.PATH_TO)

    def uuid(self) -> _uuid.UUID:
        return self._uuid(SendAttribute.UUID)

    def clone_uuid(self) -> _uuid.UUID:
        return self._uuid(SendAttribute.CLONE_UUID)

    def ctransid(self) -> int:
        return self._u64(SendAttribute.CTRANSID)

    def clone_ctransid(self) -> int:
        return self._u64(SendAttribute.CLONE_CTRANSID)

    def ino(self) -> int:
        return self._u64(SendAttribute.INO)

    def mode32(self) -> int:
        return self._u32(SendAttribute.MODE)

    def mode64(self) -> int:
        return self._u64(SendAttribute.MODE)

    def rdev(self) -> int:
        return self._u64(SendAttribute.RDEV)

    def unencoded_file_len(self) -> int:
        return self._u64(SendAttribute.UNENCODED_FILE_LEN)

    def unencoded_len(self) -> int:
        return self._u64(SendAttribute.UNENCODED_LEN)

    def unencoded_offset(self) -> int:
        return self._u64(SendAttribute.UNENCODED_OFFSET)

    def compression(self) -> int:
        return self._u32(SendAttribute.COMPRESSION)

    def encryption(self) -> int:
        return self._u32(SendAttribute.ENCRYPTION)

    def clone_len(self) -> int:
        return self._u64(SendAttribute.CLONE_LEN)

    def clone_offset(self) -> int:
        return self._u64(SendAttribute.CLONE_OFFSET)

    def clone_path(self) -> str:
        return self._text(SendAttribute.CLONE_PATH)

    def xattr_name(self) -> str:
        return self._text(SendAttribute.XATTR_NAME)

    def xattr_data(self) -> bytes:
        return self._bytes(SendAttribute.XATTR_DATA)

    def size(self) -> int:
        return self._u64(SendAttribute.SIZE)

    def uid(self) -> int:
        return self._u64(SendAttribute.UID)

    def gid(self) -> int:
        return self._u64(SendAttribute.GID)

    def atime(self) -> datetime:
        return self._time(SendAttribute.ATIME)

    def mtime(self) -> datetime:
        return self._time(SendAttribute.MTIME)

    def otime(self) -> datetime:
        return self._time(SendAttribute.OTIME)

    def ctime(self) -> datetime:
        return self._time(SendAttribute.CTIME)

    def verity_block_size(self) -> int:
        return self._u32(SendAttribute.VERITY_BLOCK_SIZE)

    def verity_salt(self) -> bytes:
        return self._bytes(SendAttribute.VERITY_SALT_DATA)

    def verity_sig(self) -> bytes:
        return self._bytes(SendAttribute.VERITY_SIG_DATA)

    def verity_algorithm(self) -> int:
        return self[SendAttribute.VERITY_ALGORITHM][0]

    def fallocate_mode(self) -> int:
        return self._u32(SendAttribute.FALLOCATE_MODE)

    def fileattr(self) -> int:
        return self._u32(SendAttribute.FILEATTR)