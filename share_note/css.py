"""Finding and re-hosting assets referenced from stylesheet text."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .assets import AssetReader, ClassifiedAsset, classify_locator
from .errors import UploadFailure
from .models import UploadItem
from .uploads import StatusSink, UploadQueue
from .utils import content_hash

logger = logging.getLogger("share_note")

_QUOTES = "\"'"
_WHITESPACE = " \t\r\n\f"


@dataclass
class CssUrlToken:
    """A complete ``url(...)`` occurrence; ``start``/``end`` slice the source text."""

    start: int
    end: int
    url: str

    def raw(self, css: str) -> str:
        return css[self.start : self.end]


def _skip_whitespace(css: str, pos: int) -> int:
    while pos < len(css) and css[pos] in _WHITESPACE:
        pos += 1
    return pos


def _read_quoted(css: str, pos: int) -> Optional[tuple]:
    """Read a quoted string starting at ``pos``; returns (value, next position)."""
    quote = css[pos]
    pos += 1
    chars = []
    while pos < len(css):
        char = css[pos]
        if char == "\\" and pos + 1 < len(css):
            chars.append(css[pos + 1])
            pos += 2
            continue
        if char == quote:
            return "".join(chars), pos + 1
        chars.append(char)
        pos += 1
    return None


def _read_unquoted(css: str, pos: int) -> Optional[tuple]:
    chars = []
    while pos < len(css):
        char = css[pos]
        if char == "\\" and pos + 1 < len(css):
            chars.append(css[pos + 1])
            pos += 2
            continue
        if char == ")":
            return "".join(chars).rstrip(_WHITESPACE), pos
        chars.append(char)
        pos += 1
    return None


def scan_css_urls(css: str) -> List[CssUrlToken]:
    """Tokenize every ``url(...)`` reference in ``css``.

    Handles whitespace between ``url`` and the parenthesis, single or double
    quotes with backslash escapes, unquoted values, and quoted data URIs that
    contain parentheses. An unterminated token ends the scan.
    """
    tokens: List[CssUrlToken] = []
    lowered = css.lower()
    pos = 0
    while True:
        start = lowered.find("url", pos)
        if start < 0:
            break
        if start > 0 and (lowered[start - 1].isalnum() or lowered[start - 1] in "-_"):
            pos = start + 3
            continue
        cursor = _skip_whitespace(css, start + 3)
        if cursor >= len(css) or css[cursor] != "(":
            pos = start + 3
            continue
        cursor = _skip_whitespace(css, cursor + 1)
        if cursor >= len(css):
            break
        if css[cursor] in _QUOTES:
            quoted = _read_quoted(css, cursor)
            if quoted is None:
                break
            value, cursor = quoted
            cursor = _skip_whitespace(css, cursor)
            if cursor >= len(css) or css[cursor] != ")":
                pos = cursor
                continue
        else:
            unquoted = _read_unquoted(css, cursor)
            if unquoted is None:
                break
            value, cursor = unquoted
        tokens.append(CssUrlToken(start=start, end=cursor + 1, url=value.strip()))
        pos = cursor + 1
    return tokens


def apply_substitutions(css: str, substitutions: Dict[int, str], tokens: List[CssUrlToken]) -> str:
    """Rewrite resolved tokens (keyed by index) as ``url(<public url>)``."""
    parts = []
    last = 0
    for index, token in enumerate(tokens):
        url = substitutions.get(index)
        if url is None:
            continue
        parts.append(css[last : token.start])
        parts.append(f"url({url})")
        last = token.end
    parts.append(css[last:])
    return "".join(parts)


class StylesheetAssetExtractor:
    """Re-hosts fonts and images referenced by the theme CSS, then the CSS itself."""

    def __init__(self, queue: UploadQueue, reader: AssetReader) -> None:
        self.queue = queue
        self.reader = reader

    def _classify(self, tokens: List[CssUrlToken]) -> Dict[int, ClassifiedAsset]:
        seen: Dict[str, Optional[ClassifiedAsset]] = {}
        classified: Dict[int, ClassifiedAsset] = {}
        for index, token in enumerate(tokens):
            if token.url not in seen:
                seen[token.url] = classify_locator(token.url, self.reader)
            asset = seen[token.url]
            if asset is not None:
                classified[index] = asset
        return classified

    async def rewrite(self, css: str, status: Optional[StatusSink] = None) -> str:
        """Upload every classifiable asset and return the CSS pointing at the public copies."""
        tokens = scan_css_urls(css)
        substitutions: Dict[int, str] = {}

        def _record(index: int):
            def _callback(url: str) -> None:
                substitutions[index] = url

            return _callback

        for index, asset in self._classify(tokens).items():
            self.queue.enqueue(
                UploadItem(
                    filetype=asset.filetype,
                    content_hash=content_hash(asset.content),
                    content=asset.content,
                    byte_length=len(asset.content),
                    on_resolved=_record(index),
                )
            )
        if status is not None:
            status.set_status("Uploading CSS attachments...")
        await self.queue.flush(status, label="CSS attachment")
        return apply_substitutions(css, substitutions, tokens)

    async def publish(self, css: str, status: Optional[StatusSink] = None) -> Optional[str]:
        """Rewrite and upload the stylesheet. Returns its URL, or ``None`` on failure."""
        final_css = await self.rewrite(css, status)
        if status is not None:
            status.set_status("Uploading CSS...")
        encoded = final_css.encode("utf-8")
        item = UploadItem(
            filetype="css",
            content_hash=content_hash(encoded),
            content=final_css,
            byte_length=len(encoded),
        )
        try:
            return await asyncio.to_thread(self.queue.transport.upload, item)
        except UploadFailure as exc:
            logger.warning("Failed to upload theme CSS: %s", exc)
            return None
