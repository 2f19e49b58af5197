"""Waiting for an external renderer to settle and flattening its output."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Protocol, Sequence

from .models import ElementStyle, Section, StyleRule

logger = logging.getLogger("share_note")

POLL_INTERVAL = 0.1
MAX_POLLS = 30
# Documents with this many sections or fewer are too short to sample.
MIN_SAMPLED_SECTIONS = 10
MIN_RENDERED_TAIL = 2


class RenderSource(Protocol):
    """Read-only view of a renderer that populates sections asynchronously."""

    async def sections(self) -> List[Section]: ...

    async def is_parsing(self) -> bool: ...

    async def element_styles(self) -> List[ElementStyle]: ...

    async def style_rules(self) -> List[StyleRule]: ...


class StaticRenderSource:
    """Render source over content that is already fully rendered."""

    def __init__(
        self,
        sections: Sequence[Section],
        element_styles: Optional[Sequence[ElementStyle]] = None,
        style_rules: Optional[Sequence[StyleRule]] = None,
    ) -> None:
        self._sections = list(sections)
        self._element_styles = list(element_styles or [])
        self._style_rules = list(style_rules or [])

    async def sections(self) -> List[Section]:
        return list(self._sections)

    async def is_parsing(self) -> bool:
        return False

    async def element_styles(self) -> List[ElementStyle]:
        return list(self._element_styles)

    async def style_rules(self) -> List[StyleRule]:
        return list(self._style_rules)


def flatten_sections(sections: Sequence[Section]) -> str:
    return "".join(section.outer_html for section in sections)


def is_render_complete(sections: Sequence[Section]) -> bool:
    """Judge whether the trailing sections have been populated."""
    if len(sections) <= MIN_SAMPLED_SECTIONS:
        return True
    tail = sections[-6:-1]
    rendered = sum(1 for section in tail if section.text)
    return rendered > MIN_RENDERED_TAIL


async def wait_for_render(
    source: RenderSource,
    interval: float = POLL_INTERVAL,
    max_polls: int = MAX_POLLS,
) -> str:
    """Poll ``source`` until it looks stable and return the flattened HTML.

    Gives up waiting after ``max_polls`` polls and returns whatever has been
    rendered so far. Never raises.
    """
    polls = 0
    parsing_polls = 0
    try:
        while True:
            polls += 1
            if await source.is_parsing():
                parsing_polls += 1
            sections = await source.sections()
            complete = polls > parsing_polls and is_render_complete(sections)
            if complete or polls >= max_polls:
                if not complete:
                    logger.debug("Render did not settle after %d polls", polls)
                return flatten_sections(sections)
            await asyncio.sleep(interval)
    except Exception:  # pylint: disable=broad-except
        logger.debug("Polling render source failed; using current sections", exc_info=True)
        try:
            return flatten_sections(await source.sections())
        except Exception:  # pylint: disable=broad-except
            logger.warning("Could not read rendered sections", exc_info=True)
            return ""
