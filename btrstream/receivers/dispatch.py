"""A receiver that hands every operation to several receivers in turn."""

from __future__ import annotations

from .base import Receiver


class DispatchReceiver(Receiver):
    """Forwards each operation to every receiver, stopping at the first error."""

    def __init__(self, *args: Receiver) -> None:
        self.receivers = list(args)

    def _each(self, operation: str, *args) -> None:
        for receiver in self.receivers:
            getattr(receiver, operation)(*args)

    def subvol(self, ctx, path, uuid, ctransid):
        self._each("subvol", ctx, path, uuid, ctransid)

    def snapshot(self, ctx, path, uuid, ctransid, clone_uuid, clone_ctransid):
        self._each("snapshot", ctx, path, uuid, ctransid, clone_uuid, clone_ctransid)

    def mkfile(self, ctx, path, ino):
        self._each("mkfile", ctx, path, ino)

    def mkdir(self, ctx, path, ino):
        self._each("mkdir", ctx, path, ino)

    def mknod(self, ctx, path, ino, mode, rdev):
        self._each("mknod", ctx, path, ino, mode, rdev)

    def mkfifo(self, ctx, path, ino):
        self._each("mkfifo", ctx, path, ino)

    def mksock(self, ctx, path, ino):
        self._each("mksock", ctx, path, ino)

    def symlink(self, ctx, path, ino, link_to):
        self._each("symlink", ctx, path, ino, link_to)

    def rename(self, ctx, old_path, new_path):
        self._each("rename", ctx, old_path, new_path)

    def link(self, ctx, path, link_to):
        self._each("link", ctx, path, link_to)

    def unlink(self, ctx, path):
        self._each("unlink", ctx, path)

    def rmdir(self, ctx, path):
        self._each("rmdir", ctx, path)

    def write(self, ctx, path, offset, data):
        self._each("write", ctx, path, offset, data)

    def encoded_write(self, ctx, path, op):
        self._each("encoded_write", ctx, path, op)

    def clone(
        self, ctx, path, offset, length, clone_uuid, clone_ctransid, clone_path, clone_offset
    ):
        self._each(
            "clone", ctx, path, offset, length, clone_uuid, clone_ctransid, clone_path,
            clone_offset,
        )

    def set_xattr(self, ctx, path, name, data):
        self._each("set_xattr", ctx, path, name, data)

    def remove_xattr(self, ctx, path, name):
        self._each("remove_xattr", ctx, path, name)

    def truncate(self, ctx, path, size):
        self._each("truncate", ctx, path, size)

    def chmod(self, ctx, path, mode):
        self._each("chmod", ctx, path, mode)

    def chown(self, ctx, path, uid, gid):
        self._each("chown", ctx, path, uid, gid)

    def utimes(self, ctx, path, atime, mtime, ctime):
        self._each("utimes", ctx, path, atime, mtime, ctime)

    def update_extent(self, ctx, path, file_offset, tmp_size):
        self._each("update_extent", ctx, path, file_offset, tmp_size)

    def enable_verity(self, ctx, path, algorithm, block_size, salt, sig):
        self._each("enable_verity", ctx, path, algorithm, block_size, salt, sig)

    def fallocate(self, ctx, path, mode, offset, length):
        self._each("fallocate", ctx, path, mode, offset, length)

    def fileattr(self, ctx, path, attr):
        self._each("fileattr", ctx, path, attr)

    def finish_subvolume(self, ctx):
        self._each("finish_subvolume", ctx)