"""
Frontmatter metadata store and vault link resolution tests.
"""

from pathlib import Path

import pytest

from share_note.errors import MetadataWriteFailure
from share_note.metadata import MarkdownDocument, VaultGraph, split_frontmatter


def _note(path: Path, frontmatter: str, body: str = "# Heading\n\nBody text.\n") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"---\n{frontmatter}\n---\n{body}", encoding="utf-8")
    return path


class TestMarkdownDocument:
    def test_reads_frontmatter(self, tmp_path: Path):
        doc = MarkdownDocument(_note(tmp_path / "Note.md", "title: Hello\nshare_unencrypted: true"))
        assert doc.basename == "Note"
        assert doc.frontmatter() == {"title": "Hello", "share_unencrypted": True}

    def test_no_frontmatter(self, tmp_path: Path):
        path = tmp_path / "Plain.md"
        path.write_text("Just text\n", encoding="utf-8")
        assert MarkdownDocument(path).frontmatter() == {}

    def test_update_keeps_body_and_other_keys(self, tmp_path: Path):
        path = _note(tmp_path / "Note.md", "title: Hello")
        MarkdownDocument(path).update_frontmatter({"share_link": "https://share.note.sx/a#k"})

        data, body = split_frontmatter(path.read_text(encoding="utf-8"))
        assert data == {"title": "Hello", "share_link": "https://share.note.sx/a#k"}
        assert body == "# Heading\n\nBody text.\n"

    def test_update_adds_frontmatter(self, tmp_path: Path):
        path = tmp_path / "New.md"
        path.write_text("Body\n", encoding="utf-8")
        MarkdownDocument(path).update_frontmatter({"share_updated": "2026-01-01T00:00:00+00:00"})
        assert path.read_text(encoding="utf-8") == "---\nshare_updated: '2026-01-01T00:00:00+00:00'\n---\nBody\n"

    def test_update_missing_file_fails(self, tmp_path: Path):
        with pytest.raises(MetadataWriteFailure):
            MarkdownDocument(tmp_path / "gone.md").update_frontmatter({"a": 1})

    def test_invalid_yaml_is_ignored(self):
        data, body = split_frontmatter("---\n: [unclosed\n---\nBody")
        assert data == {}
        assert body.endswith("Body")


class TestVaultGraph:
    def test_resolves_published_note(self, tmp_path: Path):
        _note(tmp_path / "sub" / "Other Note.md", "share_link: https://share.note.sx/xyz#k")
        graph = VaultGraph(tmp_path)
        assert graph.share_link_for("Other Note") == "https://share.note.sx/xyz#k"
        assert graph.share_link_for("sub/other note.md") == "https://share.note.sx/xyz#k"

    def test_unpublished_or_missing(self, tmp_path: Path):
        _note(tmp_path / "Draft.md", "title: Draft")
        graph = VaultGraph(tmp_path)
        assert graph.share_link_for("Draft") is None
        assert graph.share_link_for("Nowhere") is None

    def test_custom_link_field(self, tmp_path: Path):
        _note(tmp_path / "A.md", "pub_link: https://share.note.sx/a")
        assert VaultGraph(tmp_path, link_field="pub_link").share_link_for("a") == "https://share.note.sx/a"
