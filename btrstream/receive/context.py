"""State shared by the receiver and the stream processor."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..receivers.base import NopReceiver, Receiver
from ..subvolume import ReceivingSubvolume


def _default_logger() -> logging.Logger:
    return logging.getLogger("btrstream.receive")


@dataclass
class StreamContext:
    """Options and progress of one send stream being received."""

    receiver: Receiver = field(default_factory=NopReceiver)
    logger: logging.Logger = field(default_factory=_default_logger)
    verbosity: int = 0
    max_errors: int = 1
    honor_end_command: bool = False
    force_decompress: bool = False
    ignore_checksums: bool = False
    start_offset: int = 0
    current_offset: int = 0
    current_subvolume: ReceivingSubvolume | None = None

    def resolve_path(self, path: str) -> str:
        """Path of ``path`` inside the subvolume being received."""
        if self.current_subvolume is None:
            raise RuntimeError("no subvolume is being received")
        return self.current_subvolume.resolve_path(path)

    def log_verbose(self, level: int, message: str, *args: object) -> None:
        """Log ``message % args`` when the verbosity is at least ``level``."""
        if self.verbosity >= level:
            self.logger.info(message, *args)