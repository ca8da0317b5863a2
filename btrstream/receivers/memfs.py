"""A receiver that builds an in-memory filesystem from a send stream."""

from __future__ import annotations

import errno
import os
import posixpath
from enum import Enum

from .base import NotSupportedError, Receiver


class _Kind(Enum):
    DIR = 1
    FILE = 2


def _clean(path: str) -> str:
    return posixpath.normpath("/" + path).lstrip("/")


class MemFSReceiver(Receiver):
    """Holds received directories and file contents in memory.

    Paths are relative to the root of the tree; symlinks are recorded by
    their resolved targets in ``symlinks``.
    """

    def __init__(self) -> None:
        self._dirs: set[str] = {""}
        self._files: dict[str, bytearray] = {}
        self._kinds: dict[str, _Kind] = {}
        self.symlinks: dict[str, str] = {}

    # Inspection

    def read_file(self, path: str) -> bytes:
        """Contents of the regular file at ``path``."""
        return bytes(self._file(_clean(path)))

    def is_dir(self, path: str) -> bool:
        """Whether ``path`` is a directory of the tree."""
        return _clean(path) in self._dirs

    # Tree primitives

    def _check_parent(self, path: str) -> None:
        parent = posixpath.dirname(path)
        if parent in self._dirs:
            return
        if parent in self._files:
            raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), parent)
        raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), parent)

    def _file(self, path: str) -> bytearray:
        if path in self._files:
            return self._files[path]
        if path in self._dirs:
            raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), path)
        raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)

    def _has_children(self, path: str) -> bool:
        prefix = path + "/" if path else ""
        return any(
            entry != path and entry.startswith(prefix)
            for entry in (*self._dirs, *self._files)
        )

    def _mkdir(self, path: str) -> None:
        if path in self._dirs or path in self._files:
            raise FileExistsError(errno.EEXIST, os.strerror(errno.EEXIST), path)
        self._check_parent(path)
        self._dirs.add(path)

    def _create(self, path: str) -> None:
        if path in self._dirs:
            raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), path)
        if path in self._files:
            return
        self._check_parent(path)
        self._files[path] = bytearray()

    def _remove(self, path: str) -> None:
        if path in self._files:
            del self._files[path]
        elif path in self._dirs:
            if not path:
                raise PermissionError(errno.EBUSY, "cannot remove the root", path)
            if self._has_children(path):
                raise OSError(errno.ENOTEMPTY, os.strerror(errno.ENOTEMPTY), path)
            self._dirs.discard(path)
        else:
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)

    def _rename(self, old: str, new: str) -> None:
        if old == new:
            return
        if old in self._files:
            if new in self._dirs:
                raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), new)
            self._check_parent(new)
            self._files[new] = self._files.pop(old)
            return
        if old not in self._dirs:
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), old)
        if not old or new.startswith(old + "/"):
            raise OSError(errno.EINVAL, os.strerror(errno.EINVAL), new)
        if new in self._files:
            raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), new)
        if new in self._dirs and self._has_children(new):
            raise OSError(errno.ENOTEMPTY, os.strerror(errno.ENOTEMPTY), new)
        self._check_parent(new)
        prefix = old + "/"

        def moved(entry: str) -> str:
            return new + entry[len(old):]

        self._dirs = {
            moved(entry) if entry == old or entry.startswith(prefix) else entry
            for entry in self._dirs
        }
        self._files = {
            (moved(entry) if entry.startswith(prefix) else entry): data
            for entry, data in self._files.items()
        }

    # Receiver operations

    def subvol(self, ctx, path, uuid, ctransid):
        current = ""
        for component in _clean(path).split("/"):
            if not component:
                continue
            current = posixpath.join(current, component)
            if current not in self._dirs:
                self._mkdir(current)
        self._kinds[_clean(path)] = _Kind.DIR

    def snapshot(self, ctx, path, uuid, ctransid, clone_uuid, clone_ctransid):
        raise NotSupportedError("snapshot")

    def mkfile(self, ctx, path, ino):
        target = _clean(ctx.resolve_path(path))
        self._kinds[target] = _Kind.FILE
        self._create(target)

    def mkdir(self, ctx, path, ino):
        target = _clean(ctx.resolve_path(path))
        self._kinds[target] = _Kind.DIR
        self._mkdir(target)

    def mknod(self, ctx, path, ino, mode, rdev):
        raise NotSupportedError("mknod")

    def mkfifo(self, ctx, path, ino):
        raise NotSupportedError("mkfifo")

    def mksock(self, ctx, path, ino):
        raise NotSupportedError("mksock")

    def symlink(self, ctx, path, ino, link_to):
        self.symlinks[_clean(ctx.resolve_path(path))] = _clean(ctx.resolve_path(link_to))

    def rename(self, ctx, old_path, new_path):
        old = _clean(ctx.resolve_path(old_path))
        new = _clean(ctx.resolve_path(new_path))
        if old in self.symlinks:
            self.symlinks[new] = self.symlinks.pop(old)
            return
        kind = self._kinds.pop(old, None)
        if kind is not None:
            self._kinds[new] = kind
        self._rename(old, new)

    def link(self, ctx, path, link_to):
        raise NotSupportedError("link")

    def unlink(self, ctx, path):
        target = _clean(ctx.resolve_path(path))
        self._kinds.pop(target, None)
        if self.symlinks.pop(target, None) is not None and target not in self._files:
            return
        self._remove(target)

    def rmdir(self, ctx, path):
        target = _clean(ctx.resolve_path(path))
        self._kinds.pop(target, None)
        self._remove(target)

    def write(self, ctx, path, offset, data):
        target = _clean(ctx.resolve_path(path))
        buffer = self._file(target)
        if len(buffer) < offset:
            buffer.extend(bytes(offset - len(buffer)))
        buffer[offset : offset + len(data)] = data
        self._kinds[target] = _Kind.FILE

    def encoded_write(self, ctx, path, op):
        self.write(ctx, path, op.offset, op.decompress())

    def clone(
        self, ctx, path, offset, length, clone_uuid, clone_ctransid, clone_path, clone_offset
    ):
        raise NotSupportedError("clone")

    def set_xattr(self, ctx, path, name, data):
        return None

    def remove_xattr(self, ctx, path, name):
        return None

    def truncate(self, ctx, path, size):
        buffer = self._file(_clean(ctx.resolve_path(path)))
        if size < len(buffer):
            del buffer[size:]
        else:
            buffer.extend(bytes(size - len(buffer)))

    def chmod(self, ctx, path, mode):
        return None

    def chown(self, ctx, path, uid, gid):
        return None

    def utimes(self, ctx, path, atime, mtime, ctime):
        return None

    def update_extent(self, ctx, path, file_offset, tmp_size):
        return None

    def enable_verity(self, ctx, path, algorithm, block_size, salt, sig):
        raise NotSupportedError("enable_verity")

    def fallocate(self, ctx, path, mode, offset, length):
        self._kinds[_clean(ctx.resolve_path(path))] = _Kind.FILE

    def fileattr(self, ctx, path, attr):
        return None

    def finish_subvolume(self, ctx):
        return None