import io
import uuid
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from btrstream.commands import end_command, mkdir_command, subvol_command
from btrstream.protocol import EncodedWriteOp
from btrstream.receive.processor import process_send_stream
from btrstream.receivers.base import NopReceiver, NotSupportedError, Receiver
from btrstream.receivers.dispatch import DispatchReceiver
from btrstream.writer import Writer

UUID_A = uuid.UUID(int=1)
UUID_B = uuid.UUID(int=2)
MOMENT = datetime(2020, 1, 1, tzinfo=timezone.utc)

METHODS = [
    ("subvol", ("p", UUID_A, 1)),
    ("snapshot", ("p", UUID_A, 1, UUID_B, 2)),
    ("mkfile", ("p", 3)),
    ("mkdir", ("p", 3)),
    ("mknod", ("p", 3, 0o644, 5)),
    ("mkfifo", ("p", 3)),
    ("mksock", ("p", 3)),
    ("symlink", ("p", 3, "t")),
    ("rename", ("p", "q")),
    ("link", ("p", "t")),
    ("unlink", ("p",)),
    ("rmdir", ("p",)),
    ("write", ("p", 0, b"d")),
    ("encoded_write", ("p", EncodedWriteOp(data=b"x"))),
    ("clone", ("p", 0, 4, UUID_A, 1, "c", 0)),
    ("set_xattr", ("p", "user.n", b"v")),
    ("remove_xattr", ("p", "user.n")),
    ("truncate", ("p", 9)),
    ("chmod", ("p", 0o755)),
    ("chown", ("p", 1, 2)),
    ("utimes", ("p", MOMENT, MOMENT, MOMENT)),
    ("update_extent", ("p", 0, 9)),
    ("enable_verity", ("p", 1, 4096, b"s", b"g")),
    ("fallocate", ("p", 0, 0, 9)),
    ("fileattr", ("p", 1)),
    ("finish_subvolume", ()),
]


@pytest.mark.parametrize("name,args", METHODS)
def test_forwards_to_every_receiver_in_order(name, args):
    ctx = object()
    parent = Mock()
    dispatcher = DispatchReceiver(parent.first, parent.second)
    getattr(dispatcher, name)(ctx, *args)
    recorded = [(called, tuple(called_args)) for called, called_args, _ in parent.mock_calls]
    assert recorded == [
        (f"first.{name}", (ctx, *args)),
        (f"second.{name}", (ctx, *args)),
    ]


def test_stops_at_first_error():
    parent = Mock()
    parent.first.mkdir.side_effect = OSError("boom")
    dispatcher = DispatchReceiver(parent.first, parent.second)
    with pytest.raises(OSError):
        dispatcher.mkdir(object(), "p", 3)
    assert parent.second.mkdir.call_count == 0


class Bare(Receiver):
    pass


def test_unsupported_operation_propagates():
    dispatcher = DispatchReceiver(NopReceiver(), Bare())
    with pytest.raises(NotSupportedError):
        dispatcher.clone(object(), "p", 0, 4, UUID_A, 1, "c", 0)


class Recorder(NopReceiver):
    def __init__(self):
        self.calls = []

    def subvol(self, ctx, path, uuid, ctransid):
        self.calls.append(("subvol", path))

    def mkdir(self, ctx, path, ino):
        self.calls.append(("mkdir", path))

    def finish_subvolume(self, ctx):
        self.calls.append(("finish", ctx.current_subvolume.path))


def test_both_receivers_see_a_whole_stream():
    buf = io.BytesIO()
    writer = Writer(buf)
    for command, attrs in (
        subvol_command("vol", UUID_A, 1),
        mkdir_command("a", 2),
        end_command(),
    ):
        writer.write_command(command, attrs)
    buf.seek(0)
    first, second = Recorder(), Recorder()
    process_send_stream(buf, receiver=DispatchReceiver(first, second))
    assert first.calls == [("subvol", "vol"), ("mkdir", "a"), ("finish", "vol")]
    assert second.calls == first.calls