"""Exceptions raised by the publish pipeline."""

from __future__ import annotations


class ShareNoteError(Exception):
    """Base class for publish pipeline errors."""


class AuthMissing(ShareNoteError):
    """No API key is configured; the user has to complete the auth flow."""


class NoActiveDocument(ShareNoteError):
    """There is no document to publish."""


class CaptureParseFailure(ShareNoteError):
    """The rendered document or its styles could not be captured."""


class AssetClassificationFailure(ShareNoteError):
    """An asset could not be read or its type could not be determined."""


class UploadFailure(ShareNoteError):
    """The transport failed to store an asset."""

    def __init__(self, message: str, content_hash: str = "") -> None:
        super().__init__(message)
        self.content_hash = content_hash


class SubmissionFailure(ShareNoteError):
    """The remote store rejected the publish template."""


class MetadataWriteFailure(ShareNoteError):
    """The share link could not be written back to the document."""


class ClipboardDenied(ShareNoteError):
    """The clipboard refused the share link."""
