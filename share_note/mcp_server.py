"""MCP server exposing the share-note publish tool."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from mcp.server.fastmcp import FastMCP

from .assets import LocalAssetReader
from .browser import open_render_source, page_assets_dir, page_url
from .config import DEFAULT_SERVER, PublishConfig
from .metadata import MarkdownDocument, VaultGraph
from .pipeline import PublishOptions, PublishPipeline
from .transport import HttpTransport

logger = logging.getLogger("share_note.mcp")
logger.setLevel(logging.ERROR)

mcp = FastMCP(name="share-note")


def _config_from_env() -> PublishConfig:
    return PublishConfig(
        server=os.getenv("SHARE_NOTE_SERVER", DEFAULT_SERVER),
        api_key=os.getenv("SHARE_NOTE_API_KEY", ""),
        uid=os.getenv("SHARE_NOTE_UID", ""),
        clipboard=False,
        theme_published=os.getenv("SHARE_NOTE_THEME_PUBLISHED", "") == "1",
    )


@mcp.tool()
async def publish(
    note: str,
    html_url: str,
    vault: Optional[str] = None,
    plain: bool = False,
) -> str:
    """Publish a rendered note and return its share link."""

    note_path = Path(note).expanduser().resolve()
    if not note_path.is_file():
        raise FileNotFoundError(f"Note does not exist: {note_path}")

    config = _config_from_env()
    pipeline = PublishPipeline(
        config,
        HttpTransport(config.server, config.api_key, uid=config.uid),
        reader=LocalAssetReader(page_assets_dir(html_url)),
    )
    vault_root = Path(vault).expanduser().resolve() if vault else note_path.parent
    async with open_render_source(page_url(html_url)) as source:
        result = await pipeline.publish(
            source,
            MarkdownDocument(note_path),
            VaultGraph(vault_root, link_field=config.field("link")),
            PublishOptions(encrypted=False if plain else None),
        )
    if not result.ok:
        raise RuntimeError(result.message)
    return result.url


def main() -> None:
    """Entry point for running the MCP server."""
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()
