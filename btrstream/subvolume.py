"""The subvolume currently being received."""

from __future__ import annotations

import posixpath
import uuid as _uuid
from dataclasses import dataclass


def _join(*elements: str) -> str:
    parts = [element for element in elements if element]
    if not parts:
        return ""
    cleaned = posixpath.normpath("/".join(parts))
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


@dataclass
class ReceivingSubvolume:
    """Path, UUID and ctransid of a subvolume under reception."""

    path: str
    uuid: _uuid.UUID
    ctransid: int

    def resolve_path(self, path: str) -> str:
        """Join ``path`` below the subvolume path and clean the result."""
        return _join(self.path, path)