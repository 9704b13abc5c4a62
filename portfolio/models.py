"""
Domain records shared by the stores, the reconciliation layer and the API.
"""

from __future__ import annotations

import base64
import mimetypes
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

# Canonical project categories. Legacy free-form values are kept as-is.
PROJECT_CATEGORIES = (
    "Water Supply & Hydraulics",
    "Transport & Railways",
    "BIM & Engineering Support",
    "Roads & Structures",
    "Buildings & Special Projects",
)

SERVICE_CARDS_KEY = "services.cards"
BROCHURE_SLOTS = (1, 2)

ContentDocument = dict[str, Any]


def new_card_id() -> str:
    return uuid.uuid4().hex


@dataclass
class PendingFile:
    """A file chosen in the editor that has not been uploaded yet."""

    filename: str
    data: bytes
    content_type: Optional[str] = None

    def __post_init__(self):
        if not self.content_type:
            guessed, _ = mimetypes.guess_type(self.filename)
            self.content_type = guessed or "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.data)

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.content_type};base64,{encoded}"


@dataclass
class ServiceCard:
    """One capability blurb in the services list, addressed by a stable id."""

    title: str = ""
    items: list[str] = field(default_factory=list)
    link: str = ""
    icon: str = ""
    icon_alt: str = ""
    id: str = field(default_factory=new_card_id)

    @classmethod
    def from_dict(cls, data: dict) -> "ServiceCard":
        items = data.get("list") or []
        return cls(
            title=data.get("title") or "",
            items=[str(item) for item in items] if isinstance(items, list) else [],
            link=data.get("link") or "",
            icon=data.get("icon") or "",
            icon_alt=data.get("iconAlt") or "",
            id=data.get("id") or new_card_id(),
        )

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "icon": self.icon,
            "iconAlt": self.icon_alt or self.title,
            "title": self.title,
            "list": list(self.items),
            "link": self.link,
        }


@dataclass
class Project:
    id: Optional[int] = None
    title: str = ""
    category: str = ""
    description: str = ""
    plain_description: str = ""
    image: str = ""
    gallery: list[str] = field(default_factory=list)
    video: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Project":
        raw_id = data.get("id")
        gallery = data.get("gallery") or []
        return cls(
            id=int(raw_id) if raw_id not in (None, "") else None,
            title=data.get("title") or "",
            category=data.get("category") or "",
            description=data.get("description") or "",
            plain_description=(
                data.get("plain_description") or data.get("plainDescription") or ""
            ),
            image=(
                data.get("image") or data.get("image_url") or data.get("image_path") or ""
            ),
            gallery=[str(url) for url in gallery] if isinstance(gallery, list) else [],
            video=data.get("video") or "",
        )

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "description": self.description,
            "plain_description": self.plain_description,
            "image": self.image,
            "gallery": list(self.gallery),
            "video": self.video,
        }

    def editable_fields(self) -> dict:
        data = self.as_dict()
        data.pop("id")
        return data

    @property
    def has_canonical_category(self) -> bool:
        return self.category in PROJECT_CATEGORIES


@dataclass(frozen=True)
class Brochure:
    slot: int
    title: str = ""
    description: str = ""
    pdf_path: str = ""
    image_path: str = ""

    @classmethod
    def from_content(cls, document: ContentDocument, slot: int) -> "Brochure":
        prefix = f"brochure{slot}"
        image_path = document.get(f"{prefix}.image_path") or document.get(
            f"{prefix}_file"
        )
        return cls(
            slot=slot,
            title=document.get(f"{prefix}.title") or "",
            description=document.get(f"{prefix}.description") or "",
            pdf_path=document.get(f"{prefix}.pdf_path") or "",
            image_path=image_path or "",
        )


def normalize_cards(document: ContentDocument) -> ContentDocument:
    """Assign ids to service cards saved before cards carried one."""
    cards = document.get(SERVICE_CARDS_KEY)
    if not isinstance(cards, list):
        return document
    document[SERVICE_CARDS_KEY] = [
        ServiceCard.from_dict(card).as_dict()
        for card in cards
        if isinstance(card, dict)
    ]
    return document


class ContentView:
    """Read-only access to a content document with empty defaults."""

    def __init__(self, document: Optional[ContentDocument] = None):
        self._document = document or {}

    def text(self, key: str) -> str:
        value = self._document.get(key)
        if value is None:
            return ""
        if isinstance(value, list):
            return "\n".join(str(item) for item in value)
        return str(value)

    def items(self, key: str) -> list[str]:
        value = self._document.get(key)
        if isinstance(value, list):
            return [str(item) for item in value if not isinstance(item, dict)]
        return []

    def cards(self) -> list[ServiceCard]:
        cards = self._document.get(SERVICE_CARDS_KEY)
        if not isinstance(cards, list):
            return []
        return [ServiceCard.from_dict(card) for card in cards if isinstance(card, dict)]

    def brochure(self, slot: int) -> Brochure:
        return Brochure.from_content(self._document, slot)

    def brochures(self) -> list[Brochure]:
        return [self.brochure(slot) for slot in BROCHURE_SLOTS]


@dataclass
class ContentEdit:
    """Editor field values to copy into the content document on save.

    ``values`` are copied verbatim, ``html`` holds serialized rich-text
    surfaces, ``lines`` holds newline-delimited textboxes that become string
    lists, and ``files`` maps a document key to a pending upload whose public
    URL replaces the key's value.
    """

    values: dict[str, Any] = field(default_factory=dict)
    html: dict[str, str] = field(default_factory=dict)
    lines: dict[str, str] = field(default_factory=dict)
    files: dict[str, PendingFile] = field(default_factory=dict)


@dataclass
class ProjectForm:
    """The project editor's state at submit time."""

    title: str = ""
    category: str = ""
    description: str = ""
    # True when ``description`` is serialized rich-text HTML.
    rich_text: bool = False
    video: str = ""
    id: Optional[int] = None
    image: str = ""
    cover_file: Optional[PendingFile] = None
    existing_gallery: list[str] = field(default_factory=list)
    removed_gallery: list[str] = field(default_factory=list)
    gallery_files: list[PendingFile] = field(default_factory=list)
