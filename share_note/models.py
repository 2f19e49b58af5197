"""Data models used throughout the publish pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union


@dataclass
class Section:
    """One rendered block of the document as reported by the render source."""

    outer_html: str
    text: str


@dataclass
class ElementStyle:
    """Presentation snapshot of a single page element."""

    element: str
    classes: List[str]
    style: str

    def to_payload(self) -> Dict[str, Any]:
        return {"element": self.element, "classes": list(self.classes), "style": self.style}


@dataclass
class StyleRule:
    """A parsed stylesheet rule; ``properties`` holds its declared custom properties."""

    selector: str
    css_text: str
    properties: Dict[str, str] = field(default_factory=dict)


@dataclass
class StyleRuleSet:
    """All style rules active at capture time plus the flattened CSS text."""

    rules: List[StyleRule]
    css: str

    @classmethod
    def from_rules(cls, rules: List[StyleRule]) -> "StyleRuleSet":
        css = "".join(rule.css_text for rule in rules).replace("\n", "")
        return cls(rules=list(rules), css=css)


@dataclass
class UploadItem:
    """A single asset waiting for a public URL."""

    filetype: str
    content_hash: str
    content: Union[bytes, str]
    byte_length: int
    on_resolved: Optional[Callable[[str], None]] = None


@dataclass
class FlushResult:
    """Outcome of draining the upload queue."""

    urls: Dict[str, str] = field(default_factory=dict)
    errors: Dict[str, Exception] = field(default_factory=dict)
    css_url: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class CheckResult:
    """Remote state for a batch of content hashes."""

    files: Dict[str, str]
    css_url: Optional[str] = None


@dataclass
class EncryptedPayload:
    """Ciphertext and the material needed to decrypt it."""

    ciphertext: str
    iv: str
    key: str


@dataclass
class ShareLinkRecord:
    """A previously published link split into its parts."""

    filename: str
    decryption_key: str
    url: str


@dataclass
class PublishTemplate:
    """Payload submitted to the remote store for one document."""

    filename: Optional[str] = None
    content: str = ""
    title: Optional[str] = None
    description: Optional[str] = None
    width: int = 700
    elements: List[ElementStyle] = field(default_factory=list)
    math_jax: bool = False
    encrypted: bool = True

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "filename": self.filename,
            "content": self.content,
            "width": self.width,
            "elements": [element.to_payload() for element in self.elements],
            "mathJax": self.math_jax,
            "encrypted": self.encrypted,
        }
        if self.title is not None:
            payload["title"] = self.title
        if self.description is not None:
            payload["description"] = self.description
        return payload
