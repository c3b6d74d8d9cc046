"""
Asset Core - content-addressed build outputs.

Every build output becomes an :class:`Asset`, keyed in an
:data:`AssetsMap` by the sha256 digest of its bytes:

.. code-block:: python

    {
        "3b1f...": Asset(path="main.js", extname=".js", hash="3b1f...", size=1532),
        "9ac0...": Asset(path="index.html", extname=".html", hash="9ac0...", size=411),
    }
"""

from __future__ import annotations

import hashlib
import mimetypes
import posixpath
from dataclasses import dataclass, field
from typing import Any, Dict, Union


HASH_ALGORITHM = "sha256"


def compute_hash(data: bytes, algorithm: str = HASH_ALGORITHM) -> str:
    """Hex digest of raw bytes."""
    h = hashlib.new(algorithm)
    h.update(data)
    return h.hexdigest()


def normalize_path(path: str) -> str:
    """Relative, posix-separated asset path."""
    normalized = posixpath.normpath(path.replace("\\", "/"))
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized.lstrip("/")


def guess_mime_type(path: str) -> str:
    mime, _ = mimetypes.guess_type(path)
    return mime or "application/octet-stream"


@dataclass(frozen=True)
class Asset:
    """One build output, immutable once hashed."""

    path: str
    extname: str
    hash: str
    size: int
    buffer: bytes = field(repr=False, compare=False)
    mime_type: str = "application/octet-stream"

    @classmethod
    def from_content(cls, path: str, content: Union[bytes, str]) -> "Asset":
        """Hash ``content`` and build the asset for ``path``."""
        if isinstance(content, str):
            content = content.encode("utf-8")
        path = normalize_path(path)
        return cls(
            path=path,
            extname=posixpath.splitext(path)[1],
            hash=compute_hash(content),
            size=len(content),
            buffer=content,
            mime_type=guess_mime_type(path),
        )

    def verify(self) -> bool:
        """True when the buffer still matches the recorded hash."""
        return compute_hash(self.buffer) == self.hash

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "extname": self.extname,
            "hash": self.hash,
            "size": self.size,
        }


AssetsMap = Dict[str, Asset]
