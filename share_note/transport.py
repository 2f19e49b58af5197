"""HTTP transport to the remote note store."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

import requests

from .errors import SubmissionFailure, UploadFailure
from .models import CheckResult, PublishTemplate, UploadItem

logger = logging.getLogger("share_note")

REQUEST_TIMEOUT = 30


class Transport(Protocol):
    """What the pipeline needs from the remote store."""

    def check_files(self, items: Sequence[UploadItem]) -> CheckResult: ...

    def upload(self, item: UploadItem) -> str: ...

    def create_document(self, template: PublishTemplate) -> str: ...


class HttpTransport:
    """``requests``-based client for the note store API."""

    def __init__(
        self,
        server: str,
        api_key: str,
        uid: str = "",
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self.server = server.rstrip("/")
        self.api_key = api_key
        self.uid = uid
        self.session = session or requests.Session()
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {"x-sharenote-id": self.uid, "x-sharenote-key": self.api_key}

    def _post_json(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        resp = self.session.post(
            self.server + path,
            json=payload,
            headers=self._headers(),
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def check_files(self, items: Sequence[UploadItem]) -> CheckResult:
        """Ask the store which hashes it already holds."""
        files: List[Dict[str, Any]] = [
            {"hash": item.content_hash, "filetype": item.filetype, "byteLength": item.byte_length}
            for item in items
        ]
        try:
            data = self._post_json("/v1/file/check-files", {"files": files})
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Failed to check existing files: %s", exc)
            return CheckResult(files={})
        known = {
            entry["hash"]: entry["url"]
            for entry in data.get("files", [])
            if entry.get("hash") and entry.get("url")
        }
        css = data.get("css") or {}
        return CheckResult(files=known, css_url=css.get("url") or None)

    def upload(self, item: UploadItem) -> str:
        headers = self._headers()
        headers.update(
            {
                "x-sharenote-filetype": item.filetype,
                "x-sharenote-hash": item.content_hash,
                "x-sharenote-bytelength": str(item.byte_length),
            }
        )
        content = item.content
        if isinstance(content, str):
            content = content.encode("utf-8")
        try:
            resp = self.session.post(
                self.server + "/v1/file/upload",
                data=content,
                headers=headers,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            url = resp.json().get("url")
        except (requests.RequestException, ValueError) as exc:
            raise UploadFailure(
                f"Upload of {item.content_hash}.{item.filetype} failed: {exc}",
                content_hash=item.content_hash,
            ) from exc
        if not url:
            raise UploadFailure(
                f"Upload of {item.content_hash}.{item.filetype} returned no URL",
                content_hash=item.content_hash,
            )
        return url

    def create_document(self, template: PublishTemplate) -> str:
        try:
            data = self._post_json("/v1/file/create-note", template.to_payload())
        except (requests.RequestException, ValueError) as exc:
            raise SubmissionFailure(f"Failed to create note: {exc}") from exc
        url = data.get("url")
        if not url:
            raise SubmissionFailure("The server did not return a share link")
        self._warm_cache(url)
        return url

    def _warm_cache(self, url: str) -> None:
        """Fetch the new page once so the CDN pulls it through."""
        try:
            self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.debug("Cache warm-up for %s failed: %s", url, exc)
