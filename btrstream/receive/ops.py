"""Dispatch of decoded send stream commands to a receiver."""

from __future__ import annotations

from collections.abc import Callable, Iterable

from ..errors import SendStreamError
from ..protocol import CmdAttrs, EncodedWriteOp, SendAttribute, SendCommand
from ..receivers.base import NotSupportedError
from ..subvolume import ReceivingSubvolume
from .context import StreamContext

A = SendAttribute


class InvalidSendCommandError(SendStreamError):
    """The stream holds a command that cannot be processed."""

    def __init__(self, command: int) -> None:
        super().__init__(f"invalid send command: {int(command)}")
        self.command = command


class MissingAttributeError(SendStreamError):
    """A command lacks an attribute it requires."""

    def __init__(self, attribute: int, operation: str = "") -> None:
        name = attribute.name if isinstance(attribute, SendAttribute) else str(attribute)
        message = f"missing attribute in send stream: {name}"
        if operation:
            message = f"{operation}: {message}"
        super().__init__(message)
        self.attribute = attribute
        self.operation = operation


def ensure_attrs(attrs: CmdAttrs, keys: Iterable[int]) -> None:
    """Raise MissingAttributeError for the first of ``keys`` absent from ``attrs``."""
    for key in keys:
        if key not in attrs:
            raise MissingAttributeError(key)


def _require(operation: str, attrs: CmdAttrs, *keys: int) -> None:
    try:
        ensure_attrs(attrs, keys)
    except MissingAttributeError as exc:
        raise MissingAttributeError(exc.attribute, operation) from None


def _parse(operation: str, what: str, getter: Callable[[], object]):
    try:
        return getter()
    except ValueError as exc:
        raise ValueError(f"{operation}: error parsing {what}: {exc}") from exc


def _finish_current(ctx: StreamContext) -> None:
    if ctx.current_subvolume is not None:
        ctx.receiver.finish_subvolume(ctx)
        ctx.current_subvolume = None


def _subvol(ctx: StreamContext, attrs: CmdAttrs) -> None:
    _require("subvol", attrs, A.PATH, A.UUID, A.CTRANSID)
    _finish_current(ctx)
    path = attrs.path()
    ctransid = attrs.ctransid()
    uuid = _parse("subvol", "uuid", attrs.uuid)
    ctx.log_verbose(0, "At subvol %r", path)
    ctx.log_verbose(2, "receiving subvol %r uuid=%s, stransid=%d", path, uuid, ctransid)
    ctx.current_subvolume = ReceivingSubvolume(path, uuid, ctransid)
    ctx.receiver.subvol(ctx, path, uuid, ctransid)


def _snapshot(ctx: StreamContext, attrs: CmdAttrs) -> None:
    _require("snapshot", attrs, A.PATH, A.UUID, A.CTRANSID, A.CLONE_UUID, A.CLONE_CTRANSID)
    _finish_current(ctx)
    path = attrs.path()
    uuid = _parse("snapshot", "uuid", attrs.uuid)
    ctransid = attrs.ctransid()
    clone_uuid = _parse("snapshot", "clone uuid", attrs.clone_uuid)
    clone_ctransid = attrs.clone_ctransid()
    ctx.log_verbose(0, "At snapshot %r", path)
    ctx.log_verbose(
        2,
        "receiving snapshot %r uuid=%s, stransid=%d, clone_uuid=%s, clone_stransid=%d",
        path, uuid, ctransid, clone_uuid, clone_ctransid,
    )
    ctx.current_subvolume = ReceivingSubvolume(path, uuid, ctransid)
    ctx.receiver.snapshot(ctx, path, uuid, ctransid, clone_uuid, clone_ctransid)


def _make_inode(name: str) -> Callable[[StreamContext, CmdAttrs], None]:
    def handler(ctx: StreamContext, attrs: CmdAttrs) -> None:
        _require(name, attrs, A.PATH, A.INO)
        path, ino = attrs.path(), attrs.ino()
        ctx.log_verbose(2, "receiving %s %r ino=%d", name, path, ino)
        getattr(ctx.receiver, name)(ctx, path, ino)

    return handler


def _mknod(ctx: StreamContext, attrs: CmdAttrs) -> None:
    _require("mknod", attrs, A.PATH, A.INO, A.MODE, A.RDEV)
    path, ino, mode, rdev = attrs.path(), attrs.ino(), attrs.mode32(), attrs.rdev()
    ctx.log_verbose(2, "receiving mknod %r ino=%d mode=%o rdev=%d", path, ino, mode, rdev)
    ctx.receiver.mknod(ctx, path, ino, mode, rdev)


def _symlink(ctx: StreamContext, attrs: CmdAttrs) -> None:
    _require("symlink", attrs, A.PATH, A.INO, A.PATH_LINK)
    path, ino, link = attrs.path(), attrs.ino(), attrs.path_link()
    ctx.log_verbose(2, "receiving symlink %r ino=%d -> %r", path, ino, link)
    ctx.receiver.symlink(ctx, path, ino, link)


def _rename(ctx: StreamContext, attrs: CmdAttrs) -> None:
    _require("rename", attrs, A.PATH, A.PATH_TO)
    path, path_to = attrs.path(), attrs.path_to()
    ctx.log_verbose(2, "receiving rename %r -> %r", path, path_to)
    ctx.receiver.rename(ctx, path, path_to)


def _link(ctx: StreamContext, attrs: CmdAttrs) -> None:
    _require("link", attrs, A.PATH, A.PATH_LINK)
    path, link = attrs.path(), attrs.path_link()
    ctx.log_verbose(2, "receiving link %r -> %r", path, link)
    ctx.receiver.link(ctx, path, link)


def _unlink(ctx: StreamContext, attrs: CmdAttrs) -> None:
    _require("unlink", attrs, A.PATH)
    path = attrs.path()
    ctx.log_verbose(2, "receiving unlink %r", path)
    ctx.receiver.unlink(ctx, path)


def _rmdir(ctx: StreamContext, attrs: CmdAttrs) -> None:
    _require("rmdir", attrs, A.PATH)
    path = attrs.path()
    ctx.log_verbose(2, "receiving rmdir %r", path)
    ctx.receiver.rmdir(ctx, path)


def _write(ctx: StreamContext, attrs: CmdAttrs) -> None:
    _require("write", attrs, A.PATH, A.FILE_OFFSET, A.DATA)
    path, offset, data = attrs.path(), attrs.file_offset(), attrs.data()
    ctx.log_verbose(2, "receiving write %r offset=%d len=%d", path, offset, len(data))
    ctx.receiver.write(ctx, path, offset, data)


def _decompressed(op: EncodedWriteOp) -> bytes:
    try:
        return op.decompress()
    except ValueError as exc:
        raise ValueError(f"encoded_write: failed to decompress data: {exc}") from exc


def _encoded_write(ctx: StreamContext, attrs: CmdAttrs) -> None:
    _require(
        "encoded_write", attrs,
        A.PATH, A.FILE_OFFSET, A.UNENCODED_FILE_LEN, A.UNENCODED_LEN, A.UNENCODED_OFFSET, A.DATA,
    )
    path = attrs.path()
    op = EncodedWriteOp(
        offset=attrs.file_offset(),
        data=attrs.data(),
        unencoded_file_length=attrs.unencoded_file_len(),
        unencoded_length=attrs.unencoded_len(),
        unencoded_offset=attrs.unencoded_offset(),
    )
    if attrs.get(A.COMPRESSION):
        op.compression = attrs.compression()
    if attrs.get(A.ENCRYPTION):
        op.encryption = attrs.encryption()
    ctx.log_verbose(2, "receiving encoded write %r offset=%d len=%d", path, op.offset, len(op.data))
    if ctx.force_decompress:
        ctx.log_verbose(1, "forcing decompression of encoded write")
        ctx.receiver.write(ctx, path, op.offset, _decompressed(op))
        return
    try:
        ctx.receiver.encoded_write(ctx, path, op)
    except NotSupportedError:
        ctx.log_verbose(1, "receiver does not support encoded writes, forcing decompression")
        ctx.receiver.write(ctx, path, op.offset, _decompressed(op))


def _clone(ctx: StreamContext, attrs: CmdAttrs) -> None:
    _require(
        "clone", attrs,
        A.PATH, A.FILE_OFFSET, A.CLONE_LEN, A.CLONE_UUID,
        A.CLONE_CTRANSID, A.CLONE_PATH, A.CLONE_OFFSET,
    )
    clone_uuid = _parse("clone", "clone uuid", attrs.clone_uuid)
    path = attrs.path()
    offset = attrs.file_offset()
    clone_len = attrs.clone_len()
    clone_ctransid = attrs.clone_ctransid()
    clone_path = attrs.clone_path()
    clone_offset = attrs.clone_offset()
    ctx.log_verbose(
        2,
        "receiving clone %r offset=%d len=%d cloneUUID=%s cloneCTransID=%d "
        "clonePath=%r cloneOffset=%d",
        path, offset, clone_len, clone_uuid, clone_ctransid, clone_path, clone_offset,
    )
    ctx.receiver.clone(
        ctx, path, offset, clone_len, clone_uuid, clone_ctransid, clone_path, clone_offset
    )


def _set_xattr(ctx: StreamContext, attrs: CmdAttrs) -> None:
    _require("set_xattr", attrs, A.PATH, A.XATTR_NAME, A.XATTR_DATA)
    path, name, data = attrs.path(), attrs.xattr_name(), attrs.xattr_data()
    ctx.log_verbose(2, "receiving setxattr %r name=%r len=%d", path, name, len(data))
    ctx.receiver.set_xattr(ctx, path, name, data)


def _remove_xattr(ctx: StreamContext, attrs: CmdAttrs) -> None:
    _require("remove_xattr", attrs, A.PATH, A.XATTR_NAME)
    path, name = attrs.path(), attrs.xattr_name()
    ctx.log_verbose(2, "receiving removexattr %r name=%r", path, name)
    ctx.receiver.remove_xattr(ctx, path, name)


def _truncate(ctx: StreamContext, attrs: CmdAttrs) -> None:
    _require("truncate", attrs, A.PATH, A.SIZE)
    path, size = attrs.path(), attrs.size()
    ctx.log_verbose(2, "receiving truncate %r size=%d", path, size)
    ctx.receiver.truncate(ctx, path, size)


def _chmod(ctx: StreamContext, attrs: CmdAttrs) -> None:
    _require("chmod", attrs, A.PATH, A.MODE)
    path, mode = attrs.path(), attrs.mode64()
    ctx.log_verbose(2, "receiving chmod %r mode=%o", path, mode)
    ctx.receiver.chmod(ctx, path, mode)


def _chown(ctx: StreamContext, attrs: CmdAttrs) -> None:
    _require("chown", attrs, A.PATH, A.UID, A.GID)
    path, uid, gid = attrs.path(), attrs.uid(), attrs.gid()
    ctx.log_verbose(2, "receiving chown %r uid=%d gid=%d", path, uid, gid)
    ctx.receiver.chown(ctx, path, uid, gid)


def _utimes(ctx: StreamContext, attrs: CmdAttrs) -> None:
    _require("utimes", attrs, A.PATH, A.ATIME, A.MTIME, A.CTIME)
    path = attrs.path()
    atime = _parse("utimes", "atime", attrs.atime)
    mtime = _parse("utimes", "mtime", attrs.mtime)
    ctime = _parse("utimes", "ctime", attrs.ctime)
    ctx.log_verbose(2, "receiving utimes %r atime=%s mtime=%s ctime=%s", path, atime, mtime, ctime)
    ctx.receiver.utimes(ctx, path, atime, mtime, ctime)


def _update_extent(ctx: StreamContext, attrs: CmdAttrs) -> None:
    _require("update_extent", attrs, A.PATH, A.FILE_OFFSET, A.SIZE)
    path, offset, size = attrs.path(), attrs.file_offset(), attrs.size()
    ctx.log_verbose(2, "receiving update_extent %r offset=%d size=%d", path, offset, size)
    ctx.receiver.update_extent(ctx, path, offset, size)


def _enable_verity(ctx: StreamContext, attrs: CmdAttrs) -> None:
    _require(
        "enable_verity", attrs,
        A.PATH, A.VERITY_ALGORITHM, A.VERITY_BLOCK_SIZE, A.VERITY_SALT_DATA, A.VERITY_SIG_DATA,
    )
    ctx.receiver.enable_verity(
        ctx,
        attrs.path(),
        attrs.verity_algorithm(),
        attrs.verity_block_size(),
        attrs.verity_salt(),
        attrs.verity_sig(),
    )


def _fallocate(ctx: StreamContext, attrs: CmdAttrs) -> None:
    _require("fallocate", attrs, A.PATH, A.FALLOCATE_MODE, A.FILE_OFFSET, A.SIZE)
    path = attrs.path()
    mode, offset, size = attrs.fallocate_mode(), attrs.file_offset(), attrs.size()
    ctx.log_verbose(
        2, "receiving fallocate %r mode=%d offset=%d size=%d", path, mode, offset, size
    )
    ctx.receiver.fallocate(ctx, path, mode, offset, size)


def _fileattr(ctx: StreamContext, attrs: CmdAttrs) -> None:
    _require("fileattr", attrs, A.PATH, A.FILEATTR)
    path, fileattr = attrs.path(), attrs.fileattr()
    ctx.log_verbose(2, "receiving fileattr %r fileattr=%d", path, fileattr)
    ctx.receiver.fileattr(ctx, path, fileattr)


_HANDLERS: dict[int, Callable[[StreamContext, CmdAttrs], None]] = {
    SendCommand.SUBVOL: _subvol,
    SendCommand.SNAPSHOT: _snapshot,
    SendCommand.MKFILE: _make_inode("mkfile"),
    SendCommand.MKDIR: _make_inode("mkdir"),
    SendCommand.MKNOD: _mknod,
    SendCommand.MKFIFO: _make_inode("mkfifo"),
    SendCommand.MKSOCK: _make_inode("mksock"),
    SendCommand.SYMLINK: _symlink,
    SendCommand.RENAME: _rename,
    SendCommand.LINK: _link,
    SendCommand.UNLINK: _unlink,
    SendCommand.RMDIR: _rmdir,
    SendCommand.WRITE: _write,
    SendCommand.ENCODED_WRITE: _encoded_write,
    SendCommand.CLONE: _clone,
    SendCommand.SET_XATTR: _set_xattr,
    SendCommand.REMOVE_XATTR: _remove_xattr,
    SendCommand.TRUNCATE: _truncate,
    SendCommand.CHMOD: _chmod,
    SendCommand.CHOWN: _chown,
    SendCommand.UTIMES: _utimes,
    SendCommand.UPDATE_EXTENT: _update_extent,
    SendCommand.ENABLE_VERITY: _enable_verity,
    SendCommand.FALLOCATE: _fallocate,
    SendCommand.FILEATTR: _fileattr,
}


def process_command(ctx: StreamContext, command: int, attrs: CmdAttrs) -> None:
    """Hand one command to ``ctx.receiver``.

    END is not handled here; it and unknown commands raise
    InvalidSendCommandError. Receiver exceptions propagate unchanged.
    """
    handler = _HANDLERS.get(int(command))
    if handler is None:
        raise InvalidSendCommandError(command)
    handler(ctx, attrs)