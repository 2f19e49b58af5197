"""Utility helpers for hashing and string normalization."""

from __future__ import annotations

import hashlib
from typing import Union


def content_hash(data: Union[bytes, str]) -> str:
    """Return the SHA-1 hex digest used as an asset's deduplication key."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha1(data).hexdigest()


def truncate(text: str, limit: int, marker: str = "...") -> str:
    """Shorten text to ``limit`` characters, ending with ``marker`` when cut."""
    if len(text) <= limit:
        return text
    return text[: limit - len(marker)] + marker
