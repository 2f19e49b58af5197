"""
Upload queue deduplication and callback tests.
"""

import asyncio

from conftest import FakeTransport, RecordingStatus

from share_note.models import UploadItem
from share_note.uploads import UploadQueue
from share_note.utils import content_hash


def _item(content: bytes, sink: list, filetype: str = "png") -> UploadItem:
    return UploadItem(
        filetype=filetype,
        content_hash=content_hash(content),
        content=content,
        byte_length=len(content),
        on_resolved=sink.append,
    )


class TestUploadQueue:
    def test_same_hash_uploads_once(self, transport: FakeTransport):
        queue = UploadQueue(transport)
        first, second, third = [], [], []
        queue.enqueue(_item(b"same", first))
        queue.enqueue(_item(b"same", second))
        queue.enqueue(_item(b"same", third))

        result = asyncio.run(queue.flush())

        assert len(transport.uploads) == 1
        assert first == second == third
        assert len(first) == 1
        assert result.urls[content_hash(b"same")] == first[0]

    def test_distinct_hashes_each_upload(self, transport: FakeTransport):
        queue = UploadQueue(transport)
        urls = []
        for payload in (b"a", b"b", b"c"):
            queue.enqueue(_item(payload, urls))

        asyncio.run(queue.flush())

        assert len(transport.uploads) == 3
        assert len(set(urls)) == 3

    def test_known_remote_hash_skips_upload(self):
        known_hash = content_hash(b"old")
        transport = FakeTransport(known={known_hash: "https://cdn.example.com/existing.png"})
        queue = UploadQueue(transport)
        urls = []
        queue.enqueue(_item(b"old", urls))

        asyncio.run(queue.flush())

        assert transport.uploads == []
        assert urls == ["https://cdn.example.com/existing.png"]

    def test_resolved_hash_reused_by_later_flush(self, transport: FakeTransport):
        queue = UploadQueue(transport)
        first, second = [], []
        queue.enqueue(_item(b"logo", first))
        asyncio.run(queue.flush())
        queue.enqueue(_item(b"logo", second))
        asyncio.run(queue.flush())

        assert len(transport.uploads) == 1
        assert first == second
        assert len(transport.checked) == 1

    def test_failure_is_reported_and_siblings_continue(self):
        bad = content_hash(b"bad")
        transport = FakeTransport(fail_hashes={bad})
        queue = UploadQueue(transport)
        bad_urls, good_urls = [], []
        queue.enqueue(_item(b"bad", bad_urls))
        queue.enqueue(_item(b"good", good_urls))

        result = asyncio.run(queue.flush())

        assert bad in result.errors
        assert not result.ok
        assert bad_urls == []
        assert len(good_urls) == 1

    def test_progress_goes_to_status_sink(self, transport: FakeTransport):
        status = RecordingStatus()
        queue = UploadQueue(transport)
        queue.enqueue(_item(b"x", []))
        queue.enqueue(_item(b"y", []))

        asyncio.run(queue.flush(status))

        assert status.messages[-1] == "Uploading attachments: 2 of 2"

    def test_flush_reports_remote_css(self):
        transport = FakeTransport(css_url="https://cdn.example.com/theme.css")
        result = asyncio.run(UploadQueue(transport).flush())
        assert result.css_url == "https://cdn.example.com/theme.css"
        assert transport.uploads == []

    def test_later_empty_flush_reuses_remote_state(self):
        transport = FakeTransport(css_url="https://cdn.example.com/theme.css")
        queue = UploadQueue(transport)
        asyncio.run(queue.flush())
        result = asyncio.run(queue.flush())

        assert transport.checked == [[]]
        assert result.css_url == "https://cdn.example.com/theme.css"
