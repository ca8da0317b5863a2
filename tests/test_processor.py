import io
import logging
import threading
import uuid

import pytest

from btrstream.commands import (
    encoded_write_command,
    end_command,
    mkdir_command,
    mkfile_command,
    subvol_command,
    write_command,
)
from btrstream.errors import InvalidChecksumError
from btrstream.protocol import CmdAttrs, EncodedWriteOp
from btrstream.receive.ops import InvalidSendCommandError
from btrstream.receive.processor import MaxErrorsReached, process_send_stream
from btrstream.receivers.base import (
    NopReceiver,
    PostOpReceiver,
    PreOpReceiver,
    SkipCommand,
)
from btrstream.writer import Writer

UUID_A = uuid.UUID(int=1)
UUID_B = uuid.UUID(int=2)


def build(*commands):
    buf = io.BytesIO()
    writer = Writer(buf)
    for command, attrs in commands:
        writer.write_command(command, attrs)
    buf.seek(0)
    return buf


def basic_stream():
    return build(
        subvol_command("vol", UUID_A, 7),
        mkdir_command("d", 2),
        mkfile_command("d/f", 3),
        write_command("d/f", 0, b"data"),
        end_command(),
    )


class Recorder(NopReceiver):
    def __init__(self):
        self.calls = []

    def subvol(self, ctx, path, uuid, ctransid):
        self.calls.append(("subvol", path, uuid, ctransid))

    def mkdir(self, ctx, path, ino):
        self.calls.append(("mkdir", path, ino))

    def mkfile(self, ctx, path, ino):
        self.calls.append(("mkfile", path, ctx.resolve_path(path)))

    def write(self, ctx, path, offset, data):
        self.calls.append(("write", path, offset, data))

    def encoded_write(self, ctx, path, op):
        self.calls.append(("encoded", path, op))

    def finish_subvolume(self, ctx):
        self.calls.append(("finish", ctx.current_subvolume.path))


class Failing(Recorder):
    def mkdir(self, ctx, path, ino):
        raise OSError("boom")


class Skipping(Recorder):
    def mkdir(self, ctx, path, ino):
        raise SkipCommand()


class Gate(Recorder, PreOpReceiver):
    def pre_op(self, ctx, header, attrs):
        if attrs.path().startswith("skip"):
            raise SkipCommand()
        if attrs.path().startswith("bad"):
            raise RuntimeError("refused")


class Tracker(Recorder, PostOpReceiver):
    def __init__(self):
        super().__init__()
        self.offsets = []

    def post_op(self, ctx, header, attrs):
        self.offsets.append(ctx.current_offset)


def test_applies_commands_in_order():
    rec = Recorder()
    count = process_send_stream(basic_stream(), receiver=rec)
    assert count == 5
    assert rec.calls == [
        ("subvol", "vol", UUID_A, 7),
        ("mkdir", "d", 2),
        ("mkfile", "d/f", "vol/d/f"),
        ("write", "d/f", 0, b"data"),
        ("finish", "vol"),
    ]


def test_stream_without_end_raises_eof():
    stream = build(subvol_command("vol", UUID_A, 7), mkdir_command("d", 2))
    with pytest.raises(EOFError):
        process_send_stream(stream, receiver=Recorder())


def two_subvolumes():
    return build(
        subvol_command("vol", UUID_A, 1),
        mkdir_command("a", 2),
        end_command(),
        subvol_command("vol2", UUID_B, 3),
        mkdir_command("b", 4),
        end_command(),
    )


def test_honor_end_command_stops_at_first_end():
    rec = Recorder()
    process_send_stream(two_subvolumes(), receiver=rec, honor_end_command=True)
    assert rec.calls == [("subvol", "vol", UUID_A, 1), ("mkdir", "a", 2), ("finish", "vol")]


def test_multiple_streams_without_honoring_end():
    rec = Recorder()
    count = process_send_stream(two_subvolumes(), receiver=rec)
    assert count == 6
    assert rec.calls == [
        ("subvol", "vol", UUID_A, 1),
        ("mkdir", "a", 2),
        ("finish", "vol"),
        ("subvol", "vol2", UUID_B, 3),
        ("mkdir", "b", 4),
        ("finish", "vol2"),
    ]


def test_start_offset_skips_commands_but_tracks_subvolume():
    rec = Recorder()
    count = process_send_stream(basic_stream(), receiver=rec, start_offset=2)
    assert count == 5
    assert rec.calls == [
        ("mkfile", "d/f", "vol/d/f"),
        ("write", "d/f", 0, b"data"),
        ("finish", "vol"),
    ]


def test_single_error_stops_by_default():
    rec = Failing()
    with pytest.raises(MaxErrorsReached) as excinfo:
        process_send_stream(basic_stream(), receiver=rec)
    assert excinfo.value.count == 1
    assert isinstance(excinfo.value.last_error, OSError)
    assert rec.calls == [("subvol", "vol", UUID_A, 7)]


def test_errors_below_limit_are_tolerated():
    rec = Failing()
    count = process_send_stream(basic_stream(), receiver=rec, max_errors=2)
    assert count == 5
    assert rec.calls[-1] == ("finish", "vol")


def test_errors_reaching_limit_raise():
    stream = build(
        subvol_command("vol", UUID_A, 7),
        mkdir_command("a", 2),
        mkdir_command("b", 3),
        end_command(),
    )
    with pytest.raises(MaxErrorsReached) as excinfo:
        process_send_stream(stream, receiver=Failing(), max_errors=2)
    assert excinfo.value.count == 2


def test_skip_command_is_not_an_error():
    rec = Skipping()
    count = process_send_stream(basic_stream(), receiver=rec)
    assert count == 5
    assert ("mkdir", "d", 2) not in rec.calls


def test_pre_op_can_skip_commands():
    stream = build(
        subvol_command("vol", UUID_A, 7),
        mkdir_command("skipme", 2),
        mkdir_command("keep", 3),
        end_command(),
    )
    rec = Gate()
    count = process_send_stream(stream, receiver=rec)
    assert count == 4
    assert rec.calls == [("subvol", "vol", UUID_A, 7), ("mkdir", "keep", 3), ("finish", "vol")]


def test_pre_op_failure_counts_as_error():
    stream = build(subvol_command("vol", UUID_A, 7), mkdir_command("bad", 2), end_command())
    with pytest.raises(MaxErrorsReached) as excinfo:
        process_send_stream(stream, receiver=Gate())
    assert isinstance(excinfo.value.last_error, RuntimeError)


def test_post_op_sees_each_offset():
    rec = Tracker()
    process_send_stream(basic_stream(), receiver=rec)
    assert rec.offsets == list(range(5))


def test_cancelled_before_start_does_nothing():
    rec = Recorder()
    event = threading.Event()
    event.set()
    assert process_send_stream(basic_stream(), receiver=rec, cancel=event) == 0
    assert rec.calls == []


def test_unknown_command_is_an_error():
    stream = build(subvol_command("vol", UUID_A, 7), (200, CmdAttrs()), end_command())
    with pytest.raises(MaxErrorsReached) as excinfo:
        process_send_stream(stream, receiver=Recorder())
    assert isinstance(excinfo.value.last_error, InvalidSendCommandError)


def encoded_stream(op):
    return build(
        subvol_command("vol", UUID_A, 7),
        mkfile_command("f", 2),
        encoded_write_command("f", op),
        end_command(),
    )


def test_force_decompress_turns_encoded_write_into_write():
    op = EncodedWriteOp(offset=4, data=b"hello", unencoded_file_length=5, unencoded_length=5)
    rec = Recorder()
    process_send_stream(encoded_stream(op), receiver=rec, force_decompress=True)
    assert ("write", "f", 4, b"hello") in rec.calls
    assert all(call[0] != "encoded" for call in rec.calls)


def test_encoded_write_passed_through():
    op = EncodedWriteOp(offset=4, data=b"hello", unencoded_file_length=5, unencoded_length=5)
    rec = Recorder()
    process_send_stream(encoded_stream(op), receiver=rec)
    assert ("encoded", "f", op) in rec.calls


def corrupted_stream():
    raw = bytearray(basic_stream().getvalue())
    raw[17 + 6] ^= 0xFF
    return io.BytesIO(bytes(raw))


def test_bad_checksum_raises():
    with pytest.raises(InvalidChecksumError):
        process_send_stream(corrupted_stream(), receiver=Recorder())


def test_bad_checksum_ignored_when_asked():
    rec = Recorder()
    count = process_send_stream(corrupted_stream(), receiver=rec, ignore_checksums=True)
    assert count == 5
    assert rec.calls[0] == ("subvol", "vol", UUID_A, 7)


def test_logs_subvolume_at_verbosity_zero(caplog):
    logger = logging.getLogger("tests.btrstream.processor")
    caplog.set_level(logging.INFO, logger="tests.btrstream.processor")
    process_send_stream(basic_stream(), receiver=Recorder(), logger=logger)
    assert "At subvol 'vol'" in caplog.text