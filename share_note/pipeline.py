"""High-level orchestration for capturing, uploading and publishing a note."""

from __future__ import annotations

import asyncio
import datetime as dt
import enum
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from .assets import AssetReader, LocalAssetReader, media_filetype
from .config import PublishConfig
from .crypto import CipherService
from .css import StylesheetAssetExtractor
from .errors import (
    AssetClassificationFailure,
    AuthMissing,
    CaptureParseFailure,
    ClipboardDenied,
    NoActiveDocument,
    ShareNoteError,
)
from .links import format_share_link, resolve_key_continuity
from .metadata import DocumentGraph, DocumentMetadata
from .models import ElementStyle, FlushResult, PublishTemplate, StyleRuleSet, UploadItem
from .render import RenderSource, wait_for_render
from .transform import (
    build_description,
    first_heading,
    has_math,
    parse_snapshot,
    transform_document,
)
from .transport import Transport
from .uploads import LoggingStatus, StatusSink, UploadQueue
from .utils import content_hash

logger = logging.getLogger("share_note")

MEDIA_ELEMENTS = "img, video"
LOCAL_MEDIA_PREFIXES = ("app://", "file://")


class PipelineState(enum.Enum):
    IDLE = "idle"
    AWAITING_AUTH = "awaiting_auth"
    CAPTURING_SNAPSHOT = "capturing_snapshot"
    TRANSFORMING_CONTENT = "transforming_content"
    EXTRACTING_ASSETS = "extracting_assets"
    EXTRACTING_STYLE_ASSETS = "extracting_style_assets"
    ENCRYPTING = "encrypting"
    SUBMITTING = "submitting"
    PATCHING_METADATA = "patching_metadata"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PublishOptions:
    """Per-run overrides. ``encrypted=None`` defers to the note's frontmatter."""

    encrypted: Optional[bool] = None
    force_upload: bool = False
    force_clipboard: bool = False


@dataclass
class PublishResult:
    """Terminal status of one publish run."""

    state: PipelineState
    url: Optional[str] = None
    message: str = ""
    theme_published: bool = False

    @property
    def ok(self) -> bool:
        return self.state is PipelineState.DONE


@dataclass
class CapturedNote:
    """Everything read from the renderer for one run."""

    soup: BeautifulSoup
    elements: List[ElementStyle]
    styles: StyleRuleSet


class PublishPipeline:
    """Runs one document through capture, upload, encryption and submission."""

    def __init__(
        self,
        config: PublishConfig,
        transport: Transport,
        cipher: Optional[CipherService] = None,
        status: Optional[StatusSink] = None,
        reader: Optional[AssetReader] = None,
        clipboard: Optional[Callable[[str], None]] = None,
        auth_redirect: Optional[Callable[[], None]] = None,
    ) -> None:
        self.config = config
        self.transport = transport
        self.cipher = cipher or CipherService()
        self.status = status or LoggingStatus()
        self.reader = reader or LocalAssetReader()
        self.clipboard = clipboard
        self.auth_redirect = auth_redirect
        self.state = PipelineState.IDLE

    def _enter(self, state: PipelineState) -> None:
        logger.debug("Publish state %s -> %s", self.state.value, state.value)
        self.state = state

    async def publish(
        self,
        source: RenderSource,
        document: Optional[DocumentMetadata],
        graph: Optional[DocumentGraph] = None,
        options: Optional[PublishOptions] = None,
    ) -> PublishResult:
        """Publish ``document`` as rendered by ``source`` and return the outcome."""
        options = options or PublishOptions()
        self.state = PipelineState.IDLE
        self.status.set_status("Sharing note...")
        queue = UploadQueue(self.transport)
        captured: Optional[CapturedNote] = None
        try:
            if not self.config.api_key:
                raise AuthMissing("No API key is configured")
            if document is None:
                raise NoActiveDocument("There is no active file to share")

            captured = await self._capture(source)
            frontmatter = document.frontmatter()
            encrypted = options.encrypted
            if encrypted is None:
                encrypted = not frontmatter.get(self.config.field("unencrypted"))

            self._enter(PipelineState.TRANSFORMING_CONTENT)
            transform_document(
                captured.soup,
                captured.styles.rules,
                graph,
                remove_yaml=self.config.remove_yaml,
            )

            self._enter(PipelineState.EXTRACTING_ASSETS)
            media_result = await self._extract_media(captured.soup, queue)

            self._enter(PipelineState.EXTRACTING_STYLE_ASSETS)
            theme_published = await self._extract_style_assets(
                captured.styles, queue, media_result, options.force_upload
            )

            self._enter(PipelineState.ENCRYPTING)
            template, decryption_key = self._assemble(
                captured, frontmatter, document.basename, encrypted
            )

            self._enter(PipelineState.SUBMITTING)
            self.status.set_status("Uploading note...")
            url = await asyncio.to_thread(self.transport.create_document, template)

            self._enter(PipelineState.PATCHING_METADATA)
            share_link = format_share_link(url, decryption_key if encrypted else None)
            document.update_frontmatter(
                {
                    self.config.field("link"): share_link,
                    self.config.field("updated"): _timestamp(),
                }
            )
            message = "The note has been shared"
            if (self.config.clipboard or options.force_clipboard) and self._copy(share_link):
                message += " and the link is copied to your clipboard"

            self._enter(PipelineState.DONE)
            self.status.set_status(message)
            return PublishResult(
                state=PipelineState.DONE,
                url=share_link,
                message=message,
                theme_published=theme_published,
            )
        except AuthMissing as exc:
            self._enter(PipelineState.AWAITING_AUTH)
            logger.info("%s; starting the authorisation flow", exc)
            if self.auth_redirect is not None:
                self.auth_redirect()
            return PublishResult(
                state=PipelineState.AWAITING_AUTH,
                message=str(exc),
                theme_published=self.config.theme_published,
            )
        except ShareNoteError as exc:
            return self._fail(str(exc))
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Unexpected error while publishing")
            return self._fail(f"Failed to share note: {exc}")
        finally:
            queue.clear()
            if captured is not None:
                captured.soup.decompose()

    def _fail(self, message: str) -> PublishResult:
        self._enter(PipelineState.FAILED)
        logger.error(message)
        self.status.set_status(message)
        return PublishResult(
            state=PipelineState.FAILED,
            message=message,
            theme_published=self.config.theme_published,
        )

    async def _capture(self, source: RenderSource) -> CapturedNote:
        self._enter(PipelineState.CAPTURING_SNAPSHOT)
        html = await wait_for_render(
            source, interval=self.config.poll_interval, max_polls=self.config.max_polls
        )
        try:
            elements = await source.element_styles()
            styles = StyleRuleSet.from_rules(await source.style_rules())
            soup = parse_snapshot(html)
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Failed to capture the rendered note")
            raise CaptureParseFailure(
                "Failed to parse current note, check logs for details"
            ) from exc
        return CapturedNote(soup=soup, elements=elements, styles=styles)

    async def _extract_media(self, soup: BeautifulSoup, queue: UploadQueue) -> FlushResult:
        """Queue every locally stored image and video and swap in its public URL."""
        self.status.set_status("Processing attachments...")
        for element in soup.select(MEDIA_ELEMENTS):
            src = element.get("src") or ""
            if not src.startswith(LOCAL_MEDIA_PREFIXES):
                continue
            try:
                content = self.reader.read(src)
            except AssetClassificationFailure as exc:
                logger.warning("Skipping attachment %s: %s", src, exc)
                continue
            filetype = media_filetype(src.split("?")[0].split("#")[0])
            if filetype:
                queue.enqueue(
                    UploadItem(
                        filetype=filetype,
                        content_hash=content_hash(content),
                        content=content,
                        byte_length=len(content),
                        on_resolved=_set_src(element),
                    )
                )
            del element["alt"]
        return await queue.flush(self.status)

    async def _extract_style_assets(
        self,
        styles: StyleRuleSet,
        queue: UploadQueue,
        media_result: FlushResult,
        force_upload: bool,
    ) -> bool:
        """Upload the theme CSS if it has never been published; returns the new theme state."""
        published = self.config.theme_published and media_result.css_url is not None
        if published and not force_upload:
            logger.debug("Theme already published at %s", media_result.css_url)
            return True
        self.status.set_status("Processing CSS...")
        extractor = StylesheetAssetExtractor(queue, self.reader)
        css_url = await extractor.publish(styles.css, self.status)
        if css_url is None:
            return published
        logger.info("Uploaded theme CSS to %s", css_url)
        return True

    def _select_title(self, soup: BeautifulSoup, frontmatter: Dict[str, Any], basename: str) -> str:
        title: Any = ""
        if self.config.title_source == "h1":
            title = first_heading(soup)
        elif self.config.title_source == "frontmatter":
            title = frontmatter.get(self.config.field("title"))
        if not title:
            return basename
        return str(title)

    def _apply_theme(self, elements: List[ElementStyle]) -> None:
        mode = self.config.theme_mode
        if mode == "same":
            return
        for element in elements:
            if element.element != "body":
                continue
            element.classes = [
                cls for cls in element.classes if cls not in ("theme-dark", "theme-light")
            ]
            element.classes.append(f"theme-{mode}")

    def _assemble(
        self,
        captured: CapturedNote,
        frontmatter: Dict[str, Any],
        basename: str,
        encrypted: bool,
    ) -> Tuple[PublishTemplate, Optional[str]]:
        """Build the template; returns it with the decryption key in effect."""
        self.status.set_status("Processing note...")
        continuity = resolve_key_continuity(frontmatter.get(self.config.field("link")), encrypted)
        template = PublishTemplate(
            filename=continuity.filename or self.cipher.mint_filename(),
            width=self.config.note_width,
            encrypted=encrypted,
        )
        title = self._select_title(captured.soup, frontmatter, basename)
        body_html = captured.soup.decode()
        decryption_key = None
        if encrypted:
            self.status.set_status("Encrypting note...")
            plaintext = json.dumps({"content": body_html, "basename": title})
            payload = self.cipher.encrypt(plaintext, continuity.prior_key)
            template.content = json.dumps({"ciphertext": payload.ciphertext, "iv": payload.iv})
            decryption_key = payload.key
        else:
            template.content = body_html
            template.title = title
            template.description = build_description(captured.soup)
        self._apply_theme(captured.elements)
        template.elements = captured.elements
        template.math_jax = has_math(body_html)
        return template, decryption_key

    def _copy(self, share_link: str) -> bool:
        if self.clipboard is None:
            return False
        try:
            self.clipboard(share_link)
        except ClipboardDenied as exc:
            logger.debug("Clipboard unavailable: %s", exc)
            return False
        return True


def _set_src(element):
    def _callback(url: str) -> None:
        element["src"] = url

    return _callback


def _timestamp() -> str:
    return dt.datetime.now().astimezone().replace(microsecond=0).isoformat()
