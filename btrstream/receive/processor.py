"""Applying a send stream to a receiver."""

from __future__ import annotations

import logging
from typing import BinaryIO, Protocol

from ..protocol import CmdAttrs, SendAttribute, SendCommand
from ..receivers.base import NopReceiver, Receiver, SkipCommand
from ..scanner import Scanner
from ..subvolume import ReceivingSubvolume
from .context import StreamContext
from .ops import ensure_attrs, process_command

_DISCARD = logging.getLogger("btrstream.receive.discard")
_DISCARD.addHandler(logging.NullHandler())
_DISCARD.propagate = False


class MaxErrorsReached(Exception):
    """Processing stopped because too many commands failed."""

    def __init__(self, count: int, last_error: BaseException) -> None:
        super().__init__(f"max errors reached ({count}): last error: {last_error}")
        self.count = count
        self.last_error = last_error


class _Cancel(Protocol):
    def is_set(self) -> bool: ...


class _ErrorBudget:
    """Counts failed commands and stops processing once the limit is hit."""

    def __init__(self, ctx: StreamContext) -> None:
        self._ctx = ctx
        self.count = 0

    def charge(self, exc: Exception, message: str) -> None:
        self.count += 1
        if self.count >= self._ctx.max_errors:
            raise MaxErrorsReached(self.count, exc) from exc
        self._ctx.logger.info(message, exc)


def _resume_subvolume(ctx: StreamContext, command: int, attrs: CmdAttrs) -> None:
    if command not in (SendCommand.SUBVOL, SendCommand.SNAPSHOT):
        return
    ensure_attrs(attrs, (SendAttribute.PATH, SendAttribute.CTRANSID, SendAttribute.UUID))
    path = attrs.path()
    ctransid = attrs.ctransid()
    try:
        uuid = attrs.uuid()
    except ValueError as exc:
        raise ValueError(f"error parsing uuid: {exc}") from exc
    ctx.logger.info("Resuming subvol %s", path)
    ctx.current_subvolume = ReceivingSubvolume(path, uuid, ctransid)


def _finish_quietly(ctx: StreamContext) -> None:
    if ctx.current_subvolume is None:
        return
    try:
        ctx.receiver.finish_subvolume(ctx)
    except Exception as exc:  # noqa: BLE001 - reported, not fatal
        ctx.logger.info("Error finishing subvolume: %s", exc)


def process_send_stream(
    stream: BinaryIO,
    *,
    receiver: Receiver | None = None,
    logger: logging.Logger | None = None,
    verbosity: int = 0,
    max_errors: int = 1,
    honor_end_command: bool = False,
    force_decompress: bool = False,
    ignore_checksums: bool = False,
    start_offset: int = 0,
    cancel: _Cancel | None = None,
) -> int:
    """Read commands from ``stream`` and apply them to ``receiver``.

    Commands before ``start_offset`` are skipped. Failing commands are
    logged until ``max_errors`` of them have failed, at which point
    MaxErrorsReached is raised. Stream errors propagate. Setting ``cancel``
    stops processing before the next command. Returns the offset reached.
    """
    ctx = StreamContext(
        receiver=receiver if receiver is not None else NopReceiver(),
        logger=logger if logger is not None else _DISCARD,
        verbosity=verbosity,
        max_errors=max_errors,
        honor_end_command=honor_end_command,
        force_decompress=force_decompress,
        ignore_checksums=ignore_checksums,
        start_offset=start_offset,
    )
    if cancel is not None and cancel.is_set():
        return ctx.current_offset

    budget = _ErrorBudget(ctx)
    pre_op = getattr(ctx.receiver, "pre_op", None)
    post_op = getattr(ctx.receiver, "post_op", None)

    if ctx.start_offset > 0:
        ctx.logger.info("Skipping to offset %d", ctx.start_offset)

    for header, attrs in Scanner(stream, ctx.ignore_checksums):
        if cancel is not None and cancel.is_set():
            ctx.log_verbose(1, "processing cancelled at offset %d", ctx.current_offset)
            return ctx.current_offset
        command = header.command
        if ctx.verbosity >= 2:
            ctx.logger.info("processing send cmd: %s", command)

        if ctx.start_offset > ctx.current_offset:
            ctx.current_offset += 1
            _resume_subvolume(ctx, command, attrs)
            ctx.log_verbose(2, "skipping cmd at offset %d", ctx.current_offset)
            continue

        if pre_op is not None:
            try:
                pre_op(ctx, header, attrs)
            except SkipCommand:
                ctx.current_offset += 1
                continue
            except Exception as exc:
                ctx.current_offset += 1
                budget.charge(exc, "Error processing pre-op: %s")
                continue

        error: Exception | None = None
        if command == SendCommand.END:
            if ctx.honor_end_command:
                _finish_quietly(ctx)
                return ctx.current_offset
            try:
                ctx.receiver.finish_subvolume(ctx)
            except Exception as exc:
                error = exc
            ctx.current_subvolume = None
        else:
            try:
                process_command(ctx, command, attrs)
            except Exception as exc:
                error = exc
        if error is not None and not isinstance(error, SkipCommand):
            budget.charge(error, "error processing command: %s")

        if post_op is not None:
            try:
                post_op(ctx, header, attrs)
            except SkipCommand:
                pass
            except Exception as exc:
                budget.charge(exc, "Error processing post-op: %s")

        ctx.current_offset += 1

    _finish_quietly(ctx)
    return ctx.current_offset