"""
Shared fixtures and in-memory fakes for the publish pipeline tests.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Mapping, Optional

import pytest

from share_note.config import PublishConfig
from share_note.errors import AssetClassificationFailure, UploadFailure
from share_note.models import CheckResult, PublishTemplate, Section, UploadItem


class FakeTransport:
    """Records every call and hands out deterministic URLs."""

    def __init__(
        self,
        known: Optional[Dict[str, str]] = None,
        css_url: Optional[str] = None,
        fail_hashes: Optional[set] = None,
        document_url: str = "https://share.example.com/abc123",
    ) -> None:
        self.known = dict(known or {})
        self.css_url = css_url
        self.fail_hashes = set(fail_hashes or ())
        self.document_url = document_url
        self.uploads: List[UploadItem] = []
        self.checked: List[List[str]] = []
        self.templates: List[PublishTemplate] = []
        self._lock = threading.Lock()

    def check_files(self, items) -> CheckResult:
        self.checked.append([item.content_hash for item in items])
        return CheckResult(
            files={item.content_hash: self.known[item.content_hash] for item in items if item.content_hash in self.known},
            css_url=self.css_url,
        )

    def upload(self, item: UploadItem) -> str:
        with self._lock:
            self.uploads.append(item)
        if item.content_hash in self.fail_hashes:
            raise UploadFailure("boom", content_hash=item.content_hash)
        return f"https://cdn.example.com/{item.content_hash}.{item.filetype}"

    def create_document(self, template: PublishTemplate) -> str:
        self.templates.append(template)
        return self.document_url

    def uploads_of(self, filetype: str) -> List[UploadItem]:
        return [item for item in self.uploads if item.filetype == filetype]


class FakeReader:
    def __init__(self, files: Optional[Dict[str, bytes]] = None) -> None:
        self.files = dict(files or {})
        self.reads: List[str] = []

    def read(self, locator: str) -> bytes:
        self.reads.append(locator)
        if locator not in self.files:
            raise AssetClassificationFailure(f"missing {locator}")
        return self.files[locator]


class FakeDocument:
    def __init__(self, basename: str = "My Note", frontmatter: Optional[Dict[str, Any]] = None) -> None:
        self._basename = basename
        self.data: Dict[str, Any] = dict(frontmatter or {})
        self.writes: List[Dict[str, Any]] = []

    @property
    def basename(self) -> str:
        return self._basename

    def frontmatter(self) -> Dict[str, Any]:
        return dict(self.data)

    def update_frontmatter(self, values: Mapping[str, Any]) -> None:
        self.writes.append(dict(values))
        self.data.update(values)


class FakeGraph:
    def __init__(self, links: Optional[Dict[str, str]] = None) -> None:
        self.links = dict(links or {})

    def share_link_for(self, linkpath: str) -> Optional[str]:
        return self.links.get(linkpath)


class RecordingStatus:
    def __init__(self) -> None:
        self.messages: List[str] = []

    def set_status(self, message: str) -> None:
        self.messages.append(message)


def sections_from(*blocks: str) -> List[Section]:
    return [Section(outer_html=f"<div>{block}</div>", text=block) for block in blocks]


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def status() -> RecordingStatus:
    return RecordingStatus()


@pytest.fixture
def config() -> PublishConfig:
    return PublishConfig(api_key="secret", uid="user-1", poll_interval=0, theme_published=True)
