"""Rewriting the captured document before it is published."""

from __future__ import annotations

import json
import logging
import re
from typing import Callable, List, Optional
from urllib.parse import unquote

from bs4 import BeautifulSoup

from .metadata import DocumentGraph
from .models import StyleRule
from .utils import truncate

logger = logging.getLogger("share_note")

FRONTMATTER_SELECTORS = ("div.metadata-container", "pre.frontmatter", "div.frontmatter-container")
DEFAULT_CALLOUT_ICON = "pencil"
CALLOUT_ICON_PROPERTY = "--callout-icon"
ICON_PREFIX = "lucide-"
LINK_PATH_PATTERN = re.compile(r"^([^#]+)")
DESCRIPTION_LIMIT = 200


def parse_snapshot(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def find_callout_icon(rules: List[StyleRule], test: Callable[[str], bool]) -> str:
    """Icon declared by the first matching rule that sets ``--callout-icon``."""
    for rule in rules:
        if not rule.selector or not test(rule.selector):
            continue
        icon = (rule.properties.get(CALLOUT_ICON_PROPERTY) or "").strip().strip("\"'")
        if icon:
            return icon
    return ""


def remove_frontmatter(soup: BeautifulSoup) -> None:
    for selector in FRONTMATTER_SELECTORS:
        for tag in soup.select(selector):
            tag.decompose()


def normalize_callout_icons(soup: BeautifulSoup, rules: List[StyleRule]) -> None:
    """Swap each callout's icon for a placeholder the published page can draw."""
    default_icon = find_callout_icon(rules, lambda selector: selector == ".callout") or DEFAULT_CALLOUT_ICON
    for callout in soup.find_all(class_="callout"):
        callout_type = callout.get("data-callout")
        icon = ""
        if callout_type:
            marker = f'data-callout="{callout_type}"'
            icon = find_callout_icon(rules, lambda selector: marker in selector)
        icon = (icon or default_icon).replace(ICON_PREFIX, "")
        icon_el = callout.select_one("div.callout-icon")
        svg = icon_el.find("svg") if icon_el else None
        if svg is not None:
            placeholder = soup.new_tag("svg", attrs={"width": "16", "height": "16"})
            placeholder["data-share-note-lucide"] = icon
            svg.replace_with(placeholder)


def _scroll_handler(heading: str) -> str:
    value = heading.replace("\\", "\\\\").replace('"', '\\"')
    selector = json.dumps(f'[data-heading="{value}"]')
    return f"document.querySelectorAll({selector})[0].scrollIntoView(true)"


def rewrite_internal_links(soup: BeautifulSoup, graph: Optional[DocumentGraph]) -> None:
    """Point links at published notes; anything unpublished becomes plain text."""
    for anchor in soup.select("a.internal-link"):
        href = anchor.get("href") or ""
        if href.startswith("#"):
            heading = href[1:]
            if soup.find(attrs={"data-heading": heading}) is not None:
                anchor["onclick"] = _scroll_handler(heading)
            del anchor["target"]
            del anchor["href"]
            continue
        match = LINK_PATH_PATTERN.match(href)
        if match and graph is not None:
            share_link = graph.share_link_for(unquote(match.group(1)))
            if share_link:
                anchor["href"] = share_link
                del anchor["target"]
                continue
        logger.debug("Unlinking unpublished note %s", href)
        anchor.unwrap()


def strip_external_targets(soup: BeautifulSoup) -> None:
    for anchor in soup.select("a.external-link"):
        del anchor["target"]


def transform_document(
    soup: BeautifulSoup,
    rules: List[StyleRule],
    graph: Optional[DocumentGraph] = None,
    remove_yaml: bool = True,
) -> BeautifulSoup:
    """Apply every content rewrite in order. Mutates and returns ``soup``."""
    if remove_yaml:
        remove_frontmatter(soup)
    normalize_callout_icons(soup, rules)
    rewrite_internal_links(soup, graph)
    strip_external_targets(soup)
    return soup


def first_heading(soup: BeautifulSoup) -> str:
    heading = soup.find("h1")
    return heading.get_text().strip() if heading else ""


def build_description(soup: BeautifulSoup, limit: int = DESCRIPTION_LIMIT) -> str:
    """Preview text for plain shares, made from the paragraph text."""
    paragraphs = [p.get_text() for p in soup.find_all("p")]
    text = " ".join(paragraph for paragraph in paragraphs if paragraph)
    return truncate(text, limit)


def has_math(html: str) -> bool:
    return "<mjx-container" in html
