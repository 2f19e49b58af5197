"""Document metadata stored as YAML frontmatter, and link resolution within a vault."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple

import yaml

from .errors import MetadataWriteFailure

logger = logging.getLogger("share_note")

FRONTMATTER_PATTERN = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)


def split_frontmatter(text: str) -> Tuple[Dict[str, Any], str]:
    """Return the parsed frontmatter mapping and the remaining body."""
    match = FRONTMATTER_PATTERN.match(text)
    if not match:
        return {}, text
    try:
        data = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as exc:
        logger.warning("Ignoring unreadable frontmatter: %s", exc)
        return {}, text
    if not isinstance(data, dict):
        return {}, text
    return data, text[match.end() :]


def compose_frontmatter(data: Mapping[str, Any], body: str) -> str:
    dumped = yaml.safe_dump(dict(data), sort_keys=False, allow_unicode=True).strip()
    return f"---\n{dumped}\n---\n{body}"


class DocumentMetadata(Protocol):
    """The document being published, as seen by the pipeline."""

    @property
    def basename(self) -> str: ...

    def frontmatter(self) -> Dict[str, Any]: ...

    def update_frontmatter(self, values: Mapping[str, Any]) -> None: ...


class MarkdownDocument:
    """A Markdown note whose properties live in its YAML frontmatter."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @property
    def basename(self) -> str:
        return self.path.stem

    def frontmatter(self) -> Dict[str, Any]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Cannot read %s: %s", self.path, exc)
            return {}
        data, _ = split_frontmatter(text)
        return data

    def update_frontmatter(self, values: Mapping[str, Any]) -> None:
        """Merge ``values`` into the frontmatter, keeping the body untouched."""
        try:
            text = self.path.read_text(encoding="utf-8")
            data, body = split_frontmatter(text)
            data.update(values)
            self.path.write_text(compose_frontmatter(data, body), encoding="utf-8")
        except OSError as exc:
            raise MetadataWriteFailure(f"Cannot update {self.path}: {exc}") from exc


class DocumentGraph(Protocol):
    def share_link_for(self, linkpath: str) -> Optional[str]: ...


class VaultGraph:
    """Resolves internal link paths to Markdown files in a vault directory."""

    def __init__(self, root: Path, link_field: str = "share_link") -> None:
        self.root = Path(root)
        self.link_field = link_field
        self._index: Optional[Dict[str, Path]] = None

    def _build_index(self) -> Dict[str, Path]:
        index: Dict[str, Path] = {}
        for path in sorted(self.root.rglob("*.md")):
            relative = path.relative_to(self.root).with_suffix("").as_posix().lower()
            index.setdefault(relative, path)
            index.setdefault(path.stem.lower(), path)
        return index

    def resolve(self, linkpath: str) -> Optional[Path]:
        """Find the note a link points at, matching names case-insensitively."""
        if self._index is None:
            self._index = self._build_index()
        key = linkpath.strip().strip("/")
        if key.lower().endswith(".md"):
            key = key[:-3]
        key = key.lower()
        return self._index.get(key) or self._index.get(key.rsplit("/", 1)[-1])

    def share_link_for(self, linkpath: str) -> Optional[str]:
        path = self.resolve(linkpath)
        if path is None:
            return None
        link = MarkdownDocument(path).frontmatter().get(self.link_field)
        return link if isinstance(link, str) and link else None
