"""Content-addressed upload queue."""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from typing import Dict, List, Optional, Protocol

from .models import FlushResult, UploadItem
from .transport import Transport

logger = logging.getLogger("share_note")


class StatusSink(Protocol):
    def set_status(self, message: str) -> None: ...


class LoggingStatus:
    """Status sink that writes each update to the log."""

    def __init__(self) -> None:
        self.message = ""

    def set_status(self, message: str) -> None:
        self.message = message
        logger.info(message)


class UploadQueue:
    """Deduplicates queued assets by hash and uploads each hash once.

    Hashes resolved by an earlier flush are remembered for the lifetime of
    the queue, so one queue should be used per publish run. The first flush
    always asks the store, since its reply carries the theme stylesheet state.
    """

    def __init__(self, transport: Transport) -> None:
        self.transport = transport
        self._pending: "OrderedDict[str, List[UploadItem]]" = OrderedDict()
        self._resolved: Dict[str, str] = {}
        self._checked = False
        self._css_url: Optional[str] = None

    def __len__(self) -> int:
        return sum(len(items) for items in self._pending.values())

    def enqueue(self, item: UploadItem) -> None:
        self._pending.setdefault(item.content_hash, []).append(item)

    def clear(self) -> None:
        self._pending.clear()

    async def flush(
        self,
        status: Optional[StatusSink] = None,
        label: str = "attachment",
    ) -> FlushResult:
        """Upload every distinct pending hash and fire each item's callback."""
        pending = self._pending
        self._pending = OrderedDict()
        result = FlushResult()
        unresolved = [
            items[0] for content_hash, items in pending.items() if content_hash not in self._resolved
        ]

        to_upload = []
        if unresolved or not self._checked:
            check = await asyncio.to_thread(self.transport.check_files, unresolved)
            self._checked = True
            self._css_url = check.css_url
            for item in unresolved:
                known = check.files.get(item.content_hash)
                if known:
                    self._resolved[item.content_hash] = known
                else:
                    to_upload.append(item)
        result.css_url = self._css_url

        if to_upload:
            total = len(to_upload)
            done = 0

            async def _upload(item: UploadItem) -> str:
                nonlocal done
                url = await asyncio.to_thread(self.transport.upload, item)
                done += 1
                if status is not None:
                    status.set_status(f"Uploading {label}s: {done} of {total}")
                return url

            outcomes = await asyncio.gather(
                *(_upload(item) for item in to_upload), return_exceptions=True
            )
            for item, outcome in zip(to_upload, outcomes):
                if isinstance(outcome, BaseException):
                    if not isinstance(outcome, Exception):
                        raise outcome
                    logger.warning(
                        "Failed to upload %s %s: %s", label, item.content_hash, outcome
                    )
                    result.errors[item.content_hash] = outcome
                else:
                    self._resolved[item.content_hash] = outcome

        for content_hash, items in pending.items():
            url = self._resolved.get(content_hash)
            if url is None:
                continue
            result.urls[content_hash] = url
            for item in items:
                if item.on_resolved is not None:
                    item.on_resolved(url)
        return result
