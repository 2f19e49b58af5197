"""Asset reading, data URI decoding and file-type classification."""

from __future__ import annotations

import base64
import binascii
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple
from urllib.parse import unquote, unquote_to_bytes

from filetype import guess

from .errors import AssetClassificationFailure

logger = logging.getLogger("share_note")

OCTET_STREAM = "application/octet-stream"

# Stylesheet attachments are opt-in by extension.
CSS_ATTACHMENT_WHITELIST: Dict[str, List[str]] = {
    "ttf": ["font/ttf", "application/x-font-ttf", "application/x-font-truetype", "font/truetype"],
    "otf": ["font/otf", "application/x-font-opentype"],
    "woff": ["font/woff", "application/font-woff", "application/x-font-woff"],
    "woff2": ["font/woff2", "application/font-woff2", "application/x-font-woff2"],
    "svg": ["image/svg+xml"],
}

LOCAL_FILENAME_PATTERN = re.compile(r"([^/\\]+)\.(\w+)$")
APP_URL_PATTERN = re.compile(r"^app://\w+/([^?#]+)")
REMOTE_PREFIXES = ("http:", "https:", "//")


@dataclass
class ClassifiedAsset:
    """An asset that passed classification and can be uploaded."""

    filetype: str
    content: bytes


def extension_from_mime(mime_type: Optional[str]) -> Optional[str]:
    """Map a MIME type onto an allow-listed extension."""
    mime = (mime_type or "").lower()
    for extension, mimes in CSS_ATTACHMENT_WHITELIST.items():
        if mime in mimes:
            return extension
    return None


def sniff_filetype(data: bytes) -> Optional[str]:
    """Detect an allow-listed extension from the buffer's magic bytes."""
    kind = guess(data)
    if kind is None:
        return None
    if kind.extension in CSS_ATTACHMENT_WHITELIST:
        return kind.extension
    return extension_from_mime(kind.mime)


def parse_data_uri(uri: str) -> Tuple[str, bytes]:
    """Split a ``data:`` URI into its declared MIME type and decoded payload."""
    if not uri.startswith("data:") or "," not in uri:
        raise AssetClassificationFailure(f"Malformed data URI: {uri[:40]}")
    header, payload = uri[5:].split(",", 1)
    params = [part.strip() for part in header.split(";")]
    mime_type = params[0].lower() or "text/plain"
    if "base64" in (param.lower() for param in params[1:]):
        try:
            data = base64.b64decode(unquote(payload), validate=False)
        except (binascii.Error, ValueError) as exc:
            raise AssetClassificationFailure(f"Invalid base64 payload: {exc}") from exc
    else:
        data = unquote_to_bytes(payload)
    return mime_type, data


def is_remote(locator: str) -> bool:
    return locator.lower().startswith(REMOTE_PREFIXES)


def classify_data_uri(uri: str) -> Optional[ClassifiedAsset]:
    """Classify an inline asset, sniffing generic octet-stream payloads."""
    try:
        mime_type, data = parse_data_uri(uri)
    except AssetClassificationFailure as exc:
        logger.debug("Skipping data URI: %s", exc)
        return None
    if mime_type == OCTET_STREAM:
        filetype = sniff_filetype(data)
    else:
        filetype = extension_from_mime(mime_type)
    if not filetype:
        logger.debug("Skipping data URI with unsupported type %s", mime_type)
        return None
    return ClassifiedAsset(filetype=filetype, content=data)


def local_extension(locator: str) -> Optional[str]:
    """Return the allow-listed extension of a local locator, if any."""
    match = LOCAL_FILENAME_PATTERN.search(locator)
    if not match:
        return None
    extension = match.group(2).lower()
    if extension not in CSS_ATTACHMENT_WHITELIST:
        return None
    return extension


class AssetReader(Protocol):
    def read(self, locator: str) -> bytes: ...


class LocalAssetReader:
    """Reads application-internal and relative asset locators from disk."""

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()

    def resolve(self, locator: str) -> Path:
        app_match = APP_URL_PATTERN.match(locator)
        if app_match:
            local = unquote(app_match.group(1))
            # Windows paths keep their drive letter; POSIX paths lose the root.
            if not re.match(r"^[A-Za-z]:", local):
                local = "/" + local
            return Path(local)
        if locator.startswith("file://"):
            return Path(unquote(locator[len("file://"):].split("?")[0].split("#")[0]))
        path = Path(unquote(locator.split("?")[0].split("#")[0]))
        if path.is_absolute():
            return path
        return self.base_dir / path

    def read(self, locator: str) -> bytes:
        path = self.resolve(locator)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise AssetClassificationFailure(f"Cannot read {path}: {exc}") from exc


def classify_locator(locator: str, reader: AssetReader) -> Optional[ClassifiedAsset]:
    """Classify a stylesheet asset reference; returns ``None`` when it is skipped."""
    locator = locator.strip()
    if not locator:
        return None
    if locator.startswith("data:"):
        return classify_data_uri(locator)
    if is_remote(locator):
        return None
    extension = local_extension(locator)
    if not extension:
        return None
    try:
        content = reader.read(locator)
    except AssetClassificationFailure as exc:
        logger.warning("Skipping stylesheet asset %s: %s", locator, exc)
        return None
    return ClassifiedAsset(filetype=extension, content=content)


def media_filetype(path: str) -> Optional[str]:
    """Extension of a media file, used as its upload file type."""
    _, extension = os.path.splitext(path)
    return extension[1:].lower() or None
