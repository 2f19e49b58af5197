"""Playwright-backed render source for capturing a document page."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List
from urllib.parse import unquote, urlsplit

from playwright.async_api import Page, async_playwright

from .models import ElementStyle, Section, StyleRule

logger = logging.getLogger("share_note")

DEFAULT_SECTION_SELECTOR = ".markdown-preview-section > div"


def page_url(html: str) -> str:
    """Turn a rendered-note argument into a URL Playwright can open."""
    if "://" in html:
        return html
    return Path(html).expanduser().resolve().as_uri()


def page_assets_dir(html: str) -> Path:
    """Folder that relative stylesheet assets of the page are read from."""
    if "://" not in html:
        return Path(html).expanduser().resolve().parent
    parts = urlsplit(html)
    if parts.scheme == "file":
        return Path(unquote(parts.path)).parent
    return Path.cwd()


_SECTIONS_SCRIPT = """
(selector) => Array.from(document.querySelectorAll(selector)).map(el => ({
    html: el.outerHTML,
    text: el.innerText || '',
}))
"""

_ELEMENT_STYLES_SCRIPT = """
() => {
    const targets = [
        ['html', document.documentElement],
        ['body', document.body],
        ['preview', document.querySelector('.markdown-preview-view.markdown-rendered')],
        ['pusher', document.querySelector('.markdown-preview-pusher')],
    ];
    return targets.filter(([, el]) => el).map(([name, el]) => ({
        element: name,
        classes: Array.from(el.classList),
        style: el.getAttribute('style') || '',
    }));
}
"""

_STYLE_RULES_SCRIPT = """
() => {
    const rules = [];
    for (const sheet of Array.from(document.styleSheets)) {
        let cssRules;
        try {
            cssRules = sheet.cssRules;
        } catch (e) {
            continue;
        }
        for (const rule of Array.from(cssRules)) {
            const properties = {};
            if (rule.style) {
                for (const name of Array.from(rule.style)) {
                    if (name.startsWith('--')) {
                        properties[name] = rule.style.getPropertyValue(name).trim();
                    }
                }
            }
            rules.push({
                selector: rule.selectorText || '',
                cssText: rule.cssText,
                properties: properties,
            });
        }
    }
    return rules;
}
"""


class PlaywrightRenderSource:
    """Reads sections and styles from a page rendered in headless Chromium."""

    def __init__(self, page: Page, section_selector: str = DEFAULT_SECTION_SELECTOR) -> None:
        self.page = page
        self.section_selector = section_selector

    async def sections(self) -> List[Section]:
        rows = await self.page.evaluate(_SECTIONS_SCRIPT, self.section_selector)
        return [Section(outer_html=row["html"], text=row["text"]) for row in rows]

    async def is_parsing(self) -> bool:
        state = await self.page.evaluate("() => document.readyState")
        return state != "complete"

    async def element_styles(self) -> List[ElementStyle]:
        rows = await self.page.evaluate(_ELEMENT_STYLES_SCRIPT)
        return [
            ElementStyle(element=row["element"], classes=list(row["classes"]), style=row["style"])
            for row in rows
        ]

    async def style_rules(self) -> List[StyleRule]:
        rows = await self.page.evaluate(_STYLE_RULES_SCRIPT)
        return [
            StyleRule(
                selector=row["selector"],
                css_text=row["cssText"],
                properties=dict(row["properties"]),
            )
            for row in rows
        ]


@asynccontextmanager
async def open_render_source(
    url: str,
    navigation_timeout: float = 30.0,
    section_selector: str = DEFAULT_SECTION_SELECTOR,
) -> AsyncIterator[PlaywrightRenderSource]:
    """Load ``url`` in a headless browser and yield a render source for it."""
    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=True)
        page = await browser.new_page()
        page.set_default_navigation_timeout(navigation_timeout * 1000)
        try:
            logger.info("Loading %s", url)
            await page.goto(url, wait_until="domcontentloaded")
            yield PlaywrightRenderSource(page, section_selector)
        finally:
            await browser.close()
