"""Share link formatting, parsing and key continuity across re-publishes."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

from .crypto import is_valid_key
from .models import ShareLinkRecord

FILENAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def format_share_link(url: str, decryption_key: Optional[str] = None) -> str:
    """Append the decryption key as the URL fragment when there is one."""
    if decryption_key:
        return f"{url}#{decryption_key}"
    return url


def parse_share_link(link: Optional[str]) -> Optional[ShareLinkRecord]:
    """Split ``scheme://host/path/<filename>[#<key>]`` into its parts."""
    if not link or not isinstance(link, str):
        return None
    parts = urlsplit(link.strip())
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None
    filename = parts.path.rstrip("/").rsplit("/", 1)[-1]
    if filename.endswith(".html"):
        filename = filename[: -len(".html")]
    if not filename or not FILENAME_PATTERN.match(filename):
        return None
    key = parts.fragment
    if key and not KEY_PATTERN.match(key):
        return None
    url = link.strip().split("#", 1)[0]
    return ShareLinkRecord(filename=filename, decryption_key=key, url=url)


@dataclass
class KeyContinuity:
    """Filename and key carried over from a previous publish, if any."""

    filename: Optional[str] = None
    prior_key: Optional[str] = None


def resolve_key_continuity(existing_link: Optional[str], encrypted: bool = True) -> KeyContinuity:
    """Decide which filename and key a publish run keeps.

    An encrypted run reuses both only when the old link carries a usable key;
    otherwise both are left unset so a fresh pair is minted together.
    A plain run keeps the filename so its URL does not change.
    """
    record = parse_share_link(existing_link)
    if record is None:
        return KeyContinuity()
    if not encrypted:
        return KeyContinuity(filename=record.filename)
    if not record.decryption_key or not is_valid_key(record.decryption_key):
        return KeyContinuity()
    return KeyContinuity(filename=record.filename, prior_key=record.decryption_key)
