"""
HTTP transport tests with a stubbed requests session.
"""

import pytest
import requests

from share_note.errors import SubmissionFailure, UploadFailure
from share_note.models import PublishTemplate, UploadItem
from share_note.transport import HttpTransport


class StubResponse:
    def __init__(self, payload=None, status=200):
        self.payload = payload or {}
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


class StubSession:
    def __init__(self, responses):
        self.responses = dict(responses)
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append(("POST", url, kwargs))
        response = self.responses[url]
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, **kwargs):
        self.calls.append(("GET", url, kwargs))
        raise requests.ConnectionError("offline")


SERVER = "https://api.example.com"


def _transport(responses):
    session = StubSession({SERVER + path: resp for path, resp in responses.items()})
    return HttpTransport(SERVER + "/", "key-1", uid="uid-1", session=session), session


def _item():
    return UploadItem(filetype="png", content_hash="h1", content=b"data", byte_length=4)


class TestHttpTransport:
    def test_check_files(self):
        transport, session = _transport(
            {
                "/v1/file/check-files": StubResponse(
                    {"files": [{"hash": "h1", "url": "https://cdn/h1.png"}, {"hash": "h2"}], "css": {"url": "https://cdn/t.css"}}
                )
            }
        )
        result = transport.check_files([_item()])
        assert result.files == {"h1": "https://cdn/h1.png"}
        assert result.css_url == "https://cdn/t.css"
        _, _, kwargs = session.calls[0]
        assert kwargs["json"] == {"files": [{"hash": "h1", "filetype": "png", "byteLength": 4}]}
        assert kwargs["headers"]["x-sharenote-key"] == "key-1"

    def test_check_files_failure_means_nothing_known(self):
        transport, _ = _transport({"/v1/file/check-files": requests.ConnectionError("down")})
        result = transport.check_files([_item()])
        assert result.files == {}
        assert result.css_url is None

    def test_upload(self):
        transport, session = _transport({"/v1/file/upload": StubResponse({"url": "https://cdn/h1.png"})})
        assert transport.upload(_item()) == "https://cdn/h1.png"
        _, _, kwargs = session.calls[0]
        assert kwargs["data"] == b"data"
        assert kwargs["headers"]["x-sharenote-hash"] == "h1"
        assert kwargs["headers"]["x-sharenote-filetype"] == "png"

    def test_upload_http_error(self):
        transport, _ = _transport({"/v1/file/upload": StubResponse(status=500)})
        with pytest.raises(UploadFailure) as excinfo:
            transport.upload(_item())
        assert excinfo.value.content_hash == "h1"

    def test_upload_without_url(self):
        transport, _ = _transport({"/v1/file/upload": StubResponse({})})
        with pytest.raises(UploadFailure):
            transport.upload(_item())

    def test_create_document_warms_cache(self):
        transport, session = _transport({"/v1/file/create-note": StubResponse({"url": "https://share/abc"})})
        template = PublishTemplate(filename="abc", content="x", math_jax=True)
        assert transport.create_document(template) == "https://share/abc"
        method, url, kwargs = session.calls[0]
        assert kwargs["json"]["mathJax"] is True
        assert "title" not in kwargs["json"]
        assert session.calls[1][:2] == ("GET", "https://share/abc")

    def test_create_document_failure(self):
        transport, _ = _transport({"/v1/file/create-note": StubResponse(status=403)})
        with pytest.raises(SubmissionFailure):
            transport.create_document(PublishTemplate())
