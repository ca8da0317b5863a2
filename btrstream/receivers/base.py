"""The interface that receives the operations of a send stream."""

from __future__ import annotations

import uuid as _uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Protocol

from ..protocol import CmdAttrs, CmdHeader, EncodedWriteOp
from ..subvolume import ReceivingSubvolume


class NotSupportedError(Exception):
    """The receiver does not support an operation.

    Where a fallback exists (an encoded write falls back to a plain write)
    the caller uses it.
    """

    def __init__(self, operation: str = "") -> None:
        message = "operation not supported by receiver"
        if operation:
            message = f"{message}: {operation}"
        super().__init__(message)
        self.operation = operation


class SkipCommand(Exception):
    """Raised by a receiver, or its pre-op hook, to skip a command."""

    def __init__(self, message: str = "skip command") -> None:
        super().__init__(message)


class ReceiveContext(Protocol):
    """What a receiver learns about the stream while handling an operation."""

    current_offset: int
    current_subvolume: ReceivingSubvolume | None

    def resolve_path(self, path: str) -> str:
        """Path of ``path`` inside the subvolume being received."""
        ...

    def log_verbose(self, level: int, message: str, *args: object) -> None:
        """Log ``message`` when the verbosity is at least ``level``."""
        ...


class Receiver(ABC):
    """Receives send stream operations.

    Every operation raises NotSupportedError unless a subclass handles it.
    """

    def subvol(self, ctx: ReceiveContext, path: str, uuid: _uuid.UUID, ctransid: int) -> None:
        raise NotSupportedError("subvol")

    def snapshot(
        self,
        ctx: ReceiveContext,
        path: str,
        uuid: _uuid.UUID,
        ctransid: int,
        clone_uuid: _uuid.UUID,
        clone_ctransid: int,
    ) -> None:
        raise NotSupportedError("snapshot")

    def mkfile(self, ctx: ReceiveContext, path: str, ino: int) -> None:
        raise NotSupportedError("mkfile")

    def mkdir(self, ctx: ReceiveContext, path: str, ino: int) -> None:
        raise NotSupportedError("mkdir")

    def mknod(self, ctx: ReceiveContext, path: str, ino: int, mode: int, rdev: int) -> None:
        raise NotSupportedError("mknod")

    def mkfifo(self, ctx: ReceiveContext, path: str, ino: int) -> None:
        raise NotSupportedError("mkfifo")

    def mksock(self, ctx: ReceiveContext, path: str, ino: int) -> None:
        raise NotSupportedError("mksock")

    def symlink(self, ctx: ReceiveContext, path: str, ino: int, link_to: str) -> None:
        raise NotSupportedError("symlink")

    def rename(self, ctx: ReceiveContext, old_path: str, new_path: str) -> None:
        raise NotSupportedError("rename")

    def link(self, ctx: ReceiveContext, path: str, link_to: str) -> None:
        raise NotSupportedError("link")

    def unlink(self, ctx: ReceiveContext, path: str) -> None:
        raise NotSupportedError("unlink")

    def rmdir(self, ctx: ReceiveContext, path: str) -> None:
        raise NotSupportedError("rmdir")

    def write(self, ctx: ReceiveContext, path: str, offset: int, data: bytes) -> None:
        raise NotSupportedError("write")

    def encoded_write(self, ctx: ReceiveContext, path: str, op: EncodedWriteOp) -> None:
        raise NotSupportedError("encoded_write")

    def clone(
        self,
        ctx: ReceiveContext,
        path: str,
        offset: int,
        length: int,
        clone_uuid: _uuid.UUID,
        clone_ctransid: int,
        clone_path: str,
        clone_offset: int,
    ) -> None:
        raise NotSupportedError("clone")

    def set_xattr(self, ctx: ReceiveContext, path: str, name: str, data: bytes) -> None:
        raise NotSupportedError("set_xattr")

    def remove_xattr(self, ctx: ReceiveContext, path: str, name: str) -> None:
        raise NotSupportedError("remove_xattr")

    def truncate(self, ctx: ReceiveContext, path: str, size: int) -> None:
        raise NotSupportedError("truncate")

    def chmod(self, ctx: ReceiveContext, path: str, mode: int) -> None:
        raise NotSupportedError("chmod")

    def chown(self, ctx: ReceiveContext, path: str, uid: int, gid: int) -> None:
        raise NotSupportedError("chown")

    def utimes(
        self,
        ctx: ReceiveContext,
        path: str,
        atime: datetime,
        mtime: datetime,
        ctime: datetime,
    ) -> None:
        raise NotSupportedError("utimes")

    def update_extent(
        self, ctx: ReceiveContext, path: str, file_offset: int, tmp_size: int
    ) -> None:
        raise NotSupportedError("update_extent")

    def enable_verity(
        self,
        ctx: ReceiveContext,
        path: str,
        algorithm: int,
        block_size: int,
        salt: bytes,
        sig: bytes,
    ) -> None:
        raise NotSupportedError("enable_verity")

    def fallocate(
        self, ctx: ReceiveContext, path: str, mode: int, offset: int, length: int
    ) -> None:
        raise NotSupportedError("fallocate")

    def fileattr(self, ctx: ReceiveContext, path: str, attr: int) -> None:
        raise NotSupportedError("fileattr")

    def finish_subvolume(self, ctx: ReceiveContext) -> None:
        raise NotSupportedError("finish_subvolume")


class PreOpReceiver(Receiver):
    """A receiver that is consulted before each command is dispatched."""

    @abstractmethod
    def pre_op(self, ctx: ReceiveContext, header: CmdHeader, attrs: CmdAttrs) -> None:
        """Prepare for a command; raise SkipCommand to skip it."""


class PostOpReceiver(Receiver):
    """A receiver that is told after each command has been dispatched."""

    @abstractmethod
    def post_op(self, ctx: ReceiveContext, header: CmdHeader, attrs: CmdAttrs) -> None:
        """Record that a command has been handled."""


class NopReceiver(Receiver):
    """Accepts every operation and does nothing with it."""

    def subvol(self, ctx, path, uuid, ctransid):
        return None

    def snapshot(self, ctx, path, uuid, ctransid, clone_uuid, clone_ctransid):
        return None

    def mkfile(self, ctx, path, ino):
        return None

    def mkdir(self, ctx, path, ino):
        return None

    def mknod(self, ctx, path, ino, mode, rdev):
        return None

    def mkfifo(self, ctx, path, ino):
        return None

    def mksock(self, ctx, path, ino):
        return None

    def symlink(self, ctx, path, ino, link_to):
        return None

    def rename(self, ctx, old_path, new_path):
        return None

    def link(self, ctx, path, link_to):
        return None

    def unlink(self, ctx, path):
        return None

    def rmdir(self, ctx, path):
        return None

    def write(self, ctx, path, offset, data):
        return None

    def encoded_write(self, ctx, path, op):
        return None

    def clone(
        self, ctx, path, offset, length, clone_uuid, clone_ctransid, clone_path, clone_offset
    ):
        return None

    def set_xattr(self, ctx, path, name, data):
        return None

    def remove_xattr(self, ctx, path, name):
        return None

    def truncate(self, ctx, path, size):
        return None

    def chmod(self, ctx, path, mode):
        return None

    def chown(self, ctx, path, uid, gid):
        return None

    def utimes(self, ctx, path, atime, mtime, ctime):
        return None

    def update_extent(self, ctx, path, file_offset, tmp_size):
        return None

    def enable_verity(self, ctx, path, algorithm, block_size, salt, sig):
        return None

    def fallocate(self, ctx, path, mode, offset, length):
        return None

    def fileattr(self, ctx, path, attr):
        return None

    def finish_subvolume(self, ctx):
        return None