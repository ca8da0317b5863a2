# btrstream

A pure-Python library for the btrfs send stream format (version 2). It can:

- parse a send stream into commands and their attributes (`btrstream.scanner.Scanner`),
- build and write send streams (`btrstream.writer.Writer` and the helpers in
  `btrstream.commands`),
- replay a stream onto a *receiver* (`btrstream.receive.processor.process_send_stream`),
- find where two streams start to differ, for resuming interrupted transfers
  (`btrstream.receive.diff.find_diff_offset`).

It has no third-party dependencies.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Writing a stream

```python
import io
import uuid

from btrstream.commands import subvol_command, mkfile_command, write_command
from btrstream.writer import Writer

buf = io.BytesIO()
writer = Writer(buf)
writer.write_command(*subvol_command("snap", uuid.uuid4(), 1))
writer.write_command(*mkfile_command("hello.txt", 257))
writer.write_command(*write_command("hello.txt", 0, b"hello world"))
writer.end()
```

The stream header is written automatically before the first command; calling
`send_header()` a second time raises `HeaderAlreadySentError`. Each command is
framed with its length and a crc32c checksum (`btrstream.crc32`).

## Reading a stream

```python
from btrstream.scanner import Scanner

buf.seek(0)
for header, attrs in Scanner(buf, False):
    print(header.command.name, attrs.path())
```

Iteration ends quietly when the input ends right after an END command; any
other end of input raises `EOFError`. Commands with a wrong checksum raise
`btrstream.errors.InvalidChecksumError` unless the scanner is created with
`ignore_checksums=True`. A bad magic or version raises `InvalidMagicError` or
`InvalidVersionError`. `Scanner.read_header(validate=False)` reads the header
without checking it, and `Scanner.read_command()` reads a single command.

`btrstream.protocol.CmdAttrs` is a dict of raw attribute bytes with typed
accessors such as `path()`, `ino()`, `file_offset()`, `uuid()` and `mtime()`.

## Replaying a stream

A receiver implements one method per send command; the base class
`btrstream.receivers.base.Receiver` raises `NotSupportedError` for every
operation a subclass does not handle. Included receivers:

- `btrstream.receivers.base.NopReceiver` — accepts everything and does
  nothing; the default.
- `btrstream.receivers.memfs.MemFSReceiver` — builds an in-memory file tree
  you can inspect with `read_file()` and `is_dir()`; symlinks are recorded in
  its `symlinks` mapping. Snapshots, device nodes, fifos, sockets, hard links,
  clones and verity are not supported.
- `btrstream.receivers.dispatch.DispatchReceiver` — hands every operation to
  several receivers in order, stopping at the first error.

```python
from btrstream.receive.processor import process_send_stream
from btrstream.receivers.memfs import MemFSReceiver

buf.seek(0)
fs = MemFSReceiver()
process_send_stream(buf, receiver=fs)
print(fs.read_file("snap/hello.txt"))
```

`process_send_stream` returns the command offset it reached and accepts these
keyword options: `receiver`, `logger` and `verbosity`, `max_errors` (default 1;
reaching it raises `MaxErrorsReached`), `honor_end_command`,
`force_decompress`, `ignore_checksums`, `start_offset` (skip that many
commands when resuming) and `cancel` (any object with an `is_set()` method,
such as `threading.Event`, checked before each command).

A receiver may subclass `PreOpReceiver` or `PostOpReceiver` to be called
before or after each command. Receivers may raise
`btrstream.receivers.base.SkipCommand` to skip a command without counting it as
an error. An encoded write that a receiver rejects with `NotSupportedError`
falls back to a plain write of the decompressed data; only uncompressed and
zlib-compressed data can be decompressed.

## Resuming

```python
from btrstream.receive.diff import find_diff_offset

offset = find_diff_offset(stream_a, stream_b)
```

returns the number of leading commands the two streams share (subvolume and
snapshot commands match whenever their kinds do), suitable as `start_offset`
for a resumed replay.

## What it does not do

- There is no command-line tool; everything is used as a library.
- It does not produce send streams from a filesystem; streams are built
  command by command with `btrstream.commands`.
- No receiver writes to disk: received files live only in memory
  (`MemFSReceiver`), or go to a receiver you write yourself.