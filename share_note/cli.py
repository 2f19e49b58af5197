"""Command-line entry point for publishing notes."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
import time
import webbrowser
from pathlib import Path
from typing import Iterable, Optional, Sequence

from .assets import LocalAssetReader
from .browser import DEFAULT_SECTION_SELECTOR, open_render_source, page_assets_dir, page_url
from .clipboard import copy_to_clipboard
from .config import DEFAULT_SERVER, THEME_MODES, TITLE_SOURCES, PublishConfig
from .metadata import MarkdownDocument, VaultGraph
from .pipeline import PublishOptions, PublishPipeline, PublishResult
from .transport import HttpTransport

logger = logging.getLogger("share_note.cli")


def _ensure_command_prefix(argv: Sequence[str], commands: Iterable[str]) -> Sequence[str]:
    if not argv:
        return argv
    first = argv[0]
    if first in commands or first.startswith("-"):
        return argv
    return ("publish", *argv)


def _add_publish_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("note", type=Path, help="Markdown note whose frontmatter receives the link")
    parser.add_argument(
        "--html",
        required=True,
        help="URL or file path of the rendered note",
    )
    parser.add_argument(
        "--vault",
        type=Path,
        default=None,
        help="Vault directory used to resolve links to other notes (default: the note's folder)",
    )
    parser.add_argument(
        "--assets",
        type=Path,
        default=None,
        help="Directory that relative stylesheet assets are read from (default: the HTML file's folder)",
    )
    parser.add_argument(
        "--server",
        default=os.getenv("SHARE_NOTE_SERVER", DEFAULT_SERVER),
        help="Note store API server",
    )
    parser.add_argument(
        "--api-key",
        default=os.getenv("SHARE_NOTE_API_KEY", ""),
        help="API key for the note store (or set SHARE_NOTE_API_KEY)",
    )
    parser.add_argument(
        "--uid",
        default=os.getenv("SHARE_NOTE_UID", ""),
        help="Account identifier sent with every request",
    )
    parser.add_argument(
        "--yaml-field",
        default="share",
        help="Prefix for the frontmatter properties written after publishing",
    )
    parser.add_argument(
        "--title-source",
        choices=TITLE_SOURCES,
        default="note",
        help="Where the published title comes from",
    )
    parser.add_argument(
        "--theme",
        choices=THEME_MODES,
        default="same",
        help="Force a light or dark theme on the published page",
    )
    parser.add_argument(
        "--width",
        type=int,
        default=700,
        help="Maximum width of the published note in pixels",
    )
    parser.add_argument(
        "--keep-yaml",
        action="store_true",
        help="Publish the frontmatter block instead of removing it",
    )
    parser.add_argument(
        "--plain",
        action="store_true",
        help="Share without encryption",
    )
    parser.add_argument(
        "--clipboard",
        action="store_true",
        help="Also copy the share link to the system clipboard",
    )
    parser.add_argument(
        "--force-upload",
        action="store_true",
        help="Upload the theme CSS and its assets even if they were published before",
    )
    parser.add_argument(
        "--theme-published",
        action="store_true",
        help="The theme CSS has already been published for this account",
    )
    parser.add_argument(
        "--section-selector",
        default=DEFAULT_SECTION_SELECTOR,
        help="CSS selector matching the rendered sections of the note",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Navigation timeout in seconds",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Publish a rendered note, optionally end-to-end encrypted.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    publish_parser = subparsers.add_parser(
        "publish", help="Capture a rendered note and publish it"
    )
    _add_publish_arguments(publish_parser)

    argv = list(sys.argv[1:] if argv is None else argv)
    argv = list(_ensure_command_prefix(argv, subparsers.choices.keys()))
    return parser.parse_args(argv)


def _assets_dir(args: argparse.Namespace) -> Path:
    if args.assets:
        return args.assets.resolve()
    return page_assets_dir(args.html)


def build_options(args: argparse.Namespace) -> PublishOptions:
    return PublishOptions(
        encrypted=False if args.plain else None,
        force_upload=args.force_upload,
        force_clipboard=args.clipboard,
    )


def build_config(args: argparse.Namespace) -> PublishConfig:
    return PublishConfig(
        server=args.server,
        api_key=args.api_key,
        uid=args.uid,
        yaml_field=args.yaml_field,
        remove_yaml=not args.keep_yaml,
        title_source=args.title_source,
        theme_mode=args.theme,
        note_width=args.width,
        clipboard=False,
        theme_published=args.theme_published,
    )


async def run_publish(args: argparse.Namespace, config: PublishConfig) -> PublishResult:
    def _auth_redirect() -> None:
        url = f"{config.server}/v1/account/get-key?id={config.uid}"
        logger.error("No API key configured. Get one from %s", url)
        webbrowser.open(url)

    note = args.note.resolve()
    vault = (args.vault or note.parent).resolve()
    pipeline = PublishPipeline(
        config,
        HttpTransport(config.server, config.api_key, uid=config.uid),
        reader=LocalAssetReader(_assets_dir(args)),
        clipboard=copy_to_clipboard,
        auth_redirect=_auth_redirect,
    )
    document: Optional[MarkdownDocument] = MarkdownDocument(note) if note.is_file() else None
    async with open_render_source(
        page_url(args.html),
        navigation_timeout=args.timeout,
        section_selector=args.section_selector,
    ) as source:
        return await pipeline.publish(
            source,
            document,
            VaultGraph(vault, link_field=config.field("link")),
            build_options(args),
        )


def _run_publish(args: argparse.Namespace) -> int:
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    config = build_config(args)
    overall_start = time.perf_counter()
    result = asyncio.run(run_publish(args, config))
    logger.debug("Publish finished in %.2fs", time.perf_counter() - overall_start)

    if not result.ok:
        logger.error("%s", result.message)
        return 1
    logger.info("%s", result.message)
    if result.theme_published and not config.theme_published:
        logger.info("Theme CSS published; pass --theme-published next time to skip it")
    sys.stdout.write(result.url + "\n")
    sys.stdout.flush()
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    sys.exit(_run_publish(args))


if __name__ == "__main__":
    main()
