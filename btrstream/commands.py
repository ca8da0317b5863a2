"""Constructors for send stream commands and their attributes."""

from __future__ import annotations

import struct
import uuid as _uuid
from datetime import datetime, timezone

from .protocol import CmdAttrs, EncodedWriteOp, SendAttribute, SendCommand

Command = tuple[SendCommand, CmdAttrs]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_U64_MASK = 0xFFFFFFFFFFFFFFFF


def _u64(value: int) -> bytes:
    if not 0 <= value <= _U64_MASK:
        raise ValueError(f"value {value} does not fit in 64 unsigned bits")
    return struct.pack("<Q", value)


def _u32(value: int) -> bytes:
    if not 0 <= value <= 0xFFFFFFFF:
        raise ValueError(f"value {value} does not fit in 32 unsigned bits")
    return struct.pack("<I", value)


def _text(value: str) -> bytes:
    return value.encode("utf-8", errors="surrogateescape")


def _timespec(moment: datetime) -> bytes:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    delta = moment - _EPOCH
    seconds = delta.days * 86400 + delta.seconds
    return struct.pack("<QI", seconds & _U64_MASK, delta.microseconds * 1000)


def _attrs(path: str, **values: bytes) -> CmdAttrs:
    attrs = CmdAttrs()
    attrs[SendAttribute.PATH] = _text(path)
    for name, raw in values.items():
        attrs[SendAttribute[name.upper()]] = raw
    return attrs


def subvol_command(path: str, uuid: _uuid.UUID, ctransid: int) -> Command:
    """Start a new subvolume; a stream begins with this or a snapshot."""
    return SendCommand.SUBVOL, _attrs(path, uuid=uuid.bytes, ctransid=_u64(ctransid))


def snapshot_command(
    path: str, uuid: _uuid.UUID, ctransid: int, clone_uuid: _uuid.UUID, clone_ctransid: int
) -> Command:
    """Start a snapshot of an existing subvolume."""
    return SendCommand.SNAPSHOT, _attrs(
        path,
        uuid=uuid.bytes,
        ctransid=_u64(ctransid),
        clone_uuid=clone_uuid.bytes,
        clone_ctransid=_u64(clone_ctransid),
    )


def mkfile_command(path: str, ino: int) -> Command:
    return SendCommand.MKFILE, _attrs(path, ino=_u64(ino))


def mkdir_command(path: str, ino: int) -> Command:
    return SendCommand.MKDIR, _attrs(path, ino=_u64(ino))


def mknod_command(path: str, ino: int, mode: int, rdev: int) -> Command:
    return SendCommand.MKNOD, _attrs(path, ino=_u64(ino), mode=_u32(mode), rdev=_u64(rdev))


def mkfifo_command(path: str, ino: int) -> Command:
    return SendCommand.MKFIFO, _attrs(path, ino=_u64(ino))


def mksock_command(path: str, ino: int) -> Command:
    return SendCommand.MKSOCK, _attrs(path, ino=_u64(ino))


def symlink_command(path: str, link: str, ino: int) -> Command:
    return SendCommand.SYMLINK, _attrs(path, ino=_u64(ino), path_link=_text(link))


def rename_command(path: str, path_to: str) -> Command:
    return SendCommand.RENAME, _attrs(path, path_to=_text(path_to))


def link_command(path: str, link: str) -> Command:
    return SendCommand.LINK, _attrs(path, path_link=_text(link))


def unlink_command(path: str) -> Command:
    return SendCommand.UNLINK, _attrs(path)


def rmdir_command(path: str) -> Command:
    return SendCommand.RMDIR, _attrs(path)


def write_command(path: str, offset: int, data: bytes) -> Command:
    return SendCommand.WRITE, _attrs(path, file_offset=_u64(offset), data=bytes(data))


def encoded_write_command(path: str, op: EncodedWriteOp) -> Command:
    """Write already encoded data; the target must support that encoding."""
    return SendCommand.ENCODED_WRITE, _attrs(
        path,
        file_offset=_u64(op.offset),
        data=bytes(op.data),
        unencoded_file_len=_u64(op.unencoded_file_length),
        unencoded_len=_u64(op.unencoded_length),
        unencoded_offset=_u64(op.unencoded_offset),
        compression=_u32(op.compression),
        encryption=_u32(op.encryption),
    )


def clone_command(
    path: str,
    offset: int,
    clone_len: int,
    clone_uuid: _uuid.UUID,
    clone_ctransid: int,
    clone_path: str,
    clone_offset: int,
) -> Command:
    return SendCommand.CLONE, _attrs(
        path,
        file_offset=_u64(offset),
        clone_len=_u64(clone_len),
        clone_uuid=clone_uuid.bytes,
        clone_ctransid=_u64(clone_ctransid),
        clone_path=_text(clone_path),
        clone_offset=_u64(clone_offset),
    )


def set_xattr_command(path: str, name: str, data: bytes) -> Command:
    return SendCommand.SET_XATTR, _attrs(path, xattr_name=_text(name), xattr_data=bytes(data))


def remove_xattr_command(path: str, name: str) -> Command:
    return SendCommand.REMOVE_XATTR, _attrs(path, xattr_name=_text(name))


def truncate_command(path: str, size: int) -> Command:
    return SendCommand.TRUNCATE, _attrs(path, size=_u64(size))


def chmod_command(path: str, mode: int) -> Command:
    return SendCommand.CHMOD, _attrs(path, mode=_u64(mode))


def chown_command(path: str, uid: int, gid: int) -> Command:
    return SendCommand.CHOWN, _attrs(path, uid=_u64(uid), gid=_u64(gid))


def utimes_command(path: str, atime: datetime, mtime: datetime, ctime: datetime) -> Command:
    """Set times; naive datetimes are taken to be in UTC."""
    return SendCommand.UTIMES, _attrs(
        path, atime=_timespec(atime), mtime=_timespec(mtime), ctime=_timespec(ctime)
    )


def update_extent_command(path: str, offset: int, size: int) -> Command:
    return SendCommand.UPDATE_EXTENT, _attrs(path, file_offset=_u64(offset), size=_u64(size))


def enable_verity_command(
    path: str, algorithm: int, block_size: int, salt: bytes, sig: bytes
) -> Command:
    if not 0 <= algorithm <= 0xFF:
        raise ValueError(f"verity algorithm {algorithm} does not fit in one byte")
    return SendCommand.ENABLE_VERITY, _attrs(
        path,
        verity_algorithm=bytes([algorithm]),
        verity_block_size=_u32(block_size),
        verity_salt_data=bytes(salt),
        verity_sig_data=bytes(sig),
    )


def fallocate_command(path: str, mode: int, offset: int, size: int) -> Command:
    return SendCommand.FALLOCATE, _attrs(
        path, fallocate_mode=_u32(mode), file_offset=_u64(offset), size=_u64(size)
    )


def fileattr_command(path: str, attr: int) -> Command:
    return SendCommand.FILEATTR, _attrs(path, fileattr=_u32(attr))


def end_command() -> Command:
    """The command that ends a stream."""
    return SendCommand.END, CmdAttrs()