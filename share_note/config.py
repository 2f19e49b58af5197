"""Configuration objects and constants for the publish pipeline."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_SERVER = "https://api.note.sx"

TITLE_SOURCES = ("note", "h1", "frontmatter")
THEME_MODES = ("same", "light", "dark")


@dataclass
class PublishConfig:
    """Top-level settings that control capture, upload and publishing."""

    server: str = DEFAULT_SERVER
    api_key: str = ""
    uid: str = ""
    yaml_field: str = "share"
    title_field: str = "title"
    remove_yaml: bool = True
    title_source: str = "note"
    theme_mode: str = "same"
    note_width: int = 700
    clipboard: bool = True
    theme_published: bool = False
    poll_interval: float = 0.1
    max_polls: int = 30

    def field(self, key: str) -> str:
        """Return the frontmatter property name for a share field, eg 'share_link'."""
        if key == "title":
            return self.title_field
        return f"{self.yaml_field}_{key}"
