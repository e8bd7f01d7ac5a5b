"""
Resume document model and the legacy (v4) document importer.

The new schema stores a resume as a single JSON document. This module
provides:

- ResumeData: Pydantic model of the new document; its defaults are the
  default document used when a legacy payload cannot be imported
- default_resume_data(): A fresh copy of the default document
- parse_legacy_resume(): Convert a legacy v4 payload (JSON string or mapping)
  into ResumeData, raising DocumentParseError on structural failure
- DocumentParser: Callable type the resume transformer consumes, so another
  importer can be injected

Documents are stored in camelCase (``ResumeData.to_document()``).
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Callable, Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from legacymigrate.exceptions import DocumentParseError
from legacymigrate.serialization import json_loads

TEMPLATES = frozenset(
    {
        "azurill",
        "bronzor",
        "chikorita",
        "ditgar",
        "ditto",
        "gengar",
        "glalie",
        "kakuna",
        "lapras",
        "leafish",
        "onyx",
        "pikachu",
        "rhyhorn",
    }
)

DEFAULT_TEMPLATE = "onyx"

SECTION_NAMES = (
    "profiles",
    "experience",
    "education",
    "projects",
    "skills",
    "languages",
    "interests",
    "awards",
    "certifications",
    "publications",
    "volunteer",
    "references",
)


# =============================================================================
# Document model
# =============================================================================


class DocumentModel(BaseModel):
    """Base for document models: snake_case in Python, camelCase on disk."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class Website(DocumentModel):
    url: str = ""
    label: str = ""


class CustomField(DocumentModel):
    id: str
    icon: str = ""
    text: str = ""
    link: str = ""


class Picture(DocumentModel):
    hidden: bool = False
    url: str = ""
    size: float = Field(default=80, ge=32, le=512)
    rotation: float = Field(default=0, ge=0, le=360)
    aspect_ratio: float = Field(default=1, ge=0.5, le=2.5)
    border_radius: float = Field(default=0, ge=0, le=100)
    border_color: str = "rgba(0, 0, 0, 0.5)"
    border_width: float = Field(default=0, ge=0)
    shadow_color: str = "rgba(0, 0, 0, 0.5)"
    shadow_width: float = Field(default=0, ge=0)


class Basics(DocumentModel):
    name: str = ""
    headline: str = ""
    email: str = ""
    phone: str = ""
    location: str = ""
    website: Website = Field(default_factory=Website)
    custom_fields: list[CustomField] = Field(default_factory=list)


class Summary(DocumentModel):
    title: str = ""
    columns: int = Field(default=1, ge=1)
    hidden: bool = False
    content: str = ""


class Section(DocumentModel):
    """A built-in section; item shapes vary per section."""

    title: str = ""
    columns: int = Field(default=1, ge=1)
    hidden: bool = False
    items: list[dict[str, Any]] = Field(default_factory=list)


class Sections(DocumentModel):
    profiles: Section = Field(default_factory=Section)
    experience: Section = Field(default_factory=Section)
    education: Section = Field(default_factory=Section)
    projects: Section = Field(default_factory=Section)
    skills: Section = Field(default_factory=Section)
    languages: Section = Field(default_factory=Section)
    interests: Section = Field(default_factory=Section)
    awards: Section = Field(default_factory=Section)
    certifications: Section = Field(default_factory=Section)
    publications: Section = Field(default_factory=Section)
    volunteer: Section = Field(default_factory=Section)
    references: Section = Field(default_factory=Section)


class CustomSection(Section):
    id: str
    type: str = "experience"


class LayoutPage(DocumentModel):
    full_width: bool = False
    main: list[str] = Field(default_factory=list)
    sidebar: list[str] = Field(default_factory=list)


def _default_pages() -> list[LayoutPage]:
    return [
        LayoutPage(
            full_width=False,
            main=["profiles", "summary", "education", "experience", "projects", "volunteer", "references"],
            sidebar=["skills", "certifications", "awards", "languages", "interests", "publications"],
        )
    ]


class Layout(DocumentModel):
    sidebar_width: float = Field(default=35, ge=10, le=50)
    pages: list[LayoutPage] = Field(default_factory=_default_pages)


class Css(DocumentModel):
    enabled: bool = False
    value: str = ""


class Page(DocumentModel):
    gap_x: float = Field(default=4, ge=0)
    gap_y: float = Field(default=6, ge=0)
    margin_x: float = Field(default=14, ge=0)
    margin_y: float = Field(default=12, ge=0)
    format: Literal["a4", "letter"] = "a4"
    locale: str = "en-US"
    hide_icons: bool = False


class Colors(DocumentModel):
    primary: str = "rgba(220, 38, 38, 1)"
    text: str = "rgba(0, 0, 0, 1)"
    background: str = "rgba(255, 255, 255, 1)"


class Level(DocumentModel):
    icon: str = "star"
    type: str = "circle"


class Design(DocumentModel):
    colors: Colors = Field(default_factory=Colors)
    level: Level = Field(default_factory=Level)


class Font(DocumentModel):
    font_family: str = "IBM Plex Serif"
    font_weights: list[str] = Field(default_factory=lambda: ["400", "500"])
    font_size: float = Field(default=10, ge=6, le=24)
    line_height: float = Field(default=1.5, ge=0.5, le=4)


def _default_heading() -> Font:
    return Font(font_weights=["600"], font_size=14)


class Typography(DocumentModel):
    body: Font = Field(default_factory=Font)
    heading: Font = Field(default_factory=_default_heading)


class Metadata(DocumentModel):
    template: str = DEFAULT_TEMPLATE
    layout: Layout = Field(default_factory=Layout)
    css: Css = Field(default_factory=Css)
    page: Page = Field(default_factory=Page)
    design: Design = Field(default_factory=Design)
    typography: Typography = Field(default_factory=Typography)
    notes: str = ""


class ResumeData(DocumentModel):
    """
    The new resume document.

    Constructing ResumeData() with no arguments yields the default document.

    Example:
        >>> data = ResumeData()
        >>> data.metadata.template
        'onyx'
        >>> data.to_document()["customSections"]
        []
    """

    picture: Picture = Field(default_factory=Picture)
    basics: Basics = Field(default_factory=Basics)
    summary: Summary = Field(default_factory=Summary)
    sections: Sections = Field(default_factory=Sections)
    custom_sections: list[CustomSection] = Field(default_factory=list)
    metadata: Metadata = Field(default_factory=Metadata)

    def to_document(self) -> dict[str, Any]:
        """Return the camelCase JSON-compatible document stored in the target."""
        return self.model_dump(mode="json", by_alias=True)


DocumentParser = Callable[[Any], ResumeData]
"""Converts a raw legacy payload into ResumeData; raises DocumentParseError on failure."""


def default_resume_data() -> ResumeData:
    return ResumeData()


# =============================================================================
# Legacy (v4) importer
# =============================================================================

_EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+'-]+@[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}$")
_RGB_RE = re.compile(r"^rgba?\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*(?:,\s*([\d.]+))?\s*\)$")
_HEX6_RE = re.compile(r"^#([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})$")
_HEX3_RE = re.compile(r"^#([0-9a-fA-F])([0-9a-fA-F])([0-9a-fA-F])$")

_FONT_WEIGHTS = {
    "regular": "400",
    "italic": "400",
    "bold": "700",
    "bold-italic": "700",
    **{str(w): str(w) for w in range(100, 1000, 100)},
}


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def sanitize_email(email: Any) -> str:
    """Return ``email`` if it looks like an address, else an empty string."""
    if not email or not isinstance(email, str):
        return ""
    return email if _EMAIL_RE.match(email) else ""


def color_to_rgba(color: str) -> str:
    """Normalize an rgb()/rgba()/hex color to ``rgba(r, g, b, a)``; unknown input becomes opaque black."""
    value = color.strip()
    if match := _RGB_RE.match(value):
        r, g, b = (int(match.group(i)) for i in (1, 2, 3))
        a = float(match.group(4)) if match.group(4) else 1.0
    elif match := _HEX6_RE.match(value):
        r, g, b = (int(match.group(i), 16) for i in (1, 2, 3))
        a = 1.0
    elif match := _HEX3_RE.match(value):
        r, g, b = (int(match.group(i) * 2, 16) for i in (1, 2, 3))
        a = 1.0
    else:
        return "rgba(0, 0, 0, 1)"
    return f"rgba({r}, {g}, {b}, {a:g})"


def _font_weights(variants: Any, default: str = "400") -> list[str]:
    if not variants:
        return [default]
    return [_FONT_WEIGHTS.get(str(v).lower(), default) for v in variants]


def _heading_weights(variants: Any) -> list[str]:
    weights = [w for w in _font_weights(variants, "600") if int(w) >= 600]
    return weights or ["600"]


def _font_size(px: float) -> float:
    return clamp(px * 0.75, 6, 24)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _number(value: Any, default: float) -> float:
    return default if value is None else float(value)


def _website(item: Mapping[str, Any]) -> dict[str, str]:
    url = item.get("url") or {}
    return {"url": _text(url.get("href")), "label": _text(url.get("label"))}


def _field(key: str) -> Callable[[Mapping[str, Any]], str]:
    return lambda item: _text(item.get(key))


def _const(value: Any) -> Callable[[Mapping[str, Any]], Any]:
    return lambda item: value


def _level(item: Mapping[str, Any]) -> float:
    return clamp(_number(item.get("level"), 0), 0, 5)


def _keywords(item: Mapping[str, Any]) -> list[str]:
    return [str(k) for k in item.get("keywords") or []]


def _project_description(item: Mapping[str, Any]) -> str:
    summary = item.get("summary")
    return _text(summary if summary is not None else item.get("description"))


# Per section: the legacy field an item must have (non-empty) to be kept, and
# how each new item field is built from the legacy item.
_ITEM_FIELDS: dict[str, tuple[str, dict[str, Callable[[Mapping[str, Any]], Any]]]] = {
    "profiles": (
        "network",
        {
            "icon": _field("icon"),
            "network": _field("network"),
            "username": _field("username"),
            "website": _website,
        },
    ),
    "experience": (
        "company",
        {
            "company": _field("company"),
            "position": _field("position"),
            "location": _field("location"),
            "period": _field("date"),
            "website": _website,
            "description": _field("summary"),
        },
    ),
    "education": (
        "institution",
        {
            "school": _field("institution"),
            "degree": _field("studyType"),
            "area": _field("area"),
            "grade": _field("score"),
            "location": _const(""),
            "period": _field("date"),
            "website": _website,
            "description": _field("summary"),
        },
    ),
    "projects": (
        "name",
        {
            "name": _field("name"),
            "period": _field("date"),
            "website": _website,
            "description": _project_description,
        },
    ),
    "skills": (
        "name",
        {
            "icon": _const(""),
            "name": _field("name"),
            "proficiency": _field("description"),
            "level": _level,
            "keywords": _keywords,
        },
    ),
    "languages": (
        "language",
        {
            "language": _field("language"),
            "fluency": _field("fluency"),
            "level": _level,
        },
    ),
    "interests": (
        "name",
        {
            "icon": _const(""),
            "name": _field("name"),
            "keywords": _keywords,
        },
    ),
    "awards": (
        "title",
        {
            "title": _field("title"),
            "awarder": _field("awarder"),
            "date": _field("date"),
            "website": _website,
            "description": _field("summary"),
        },
    ),
    "certifications": (
        "name",
        {
            "title": _field("name"),
            "issuer": _field("issuer"),
            "date": _field("date"),
            "website": _website,
            "description": _field("summary"),
        },
    ),
    "publications": (
        "name",
        {
            "title": _field("name"),
            "publisher": _field("publisher"),
            "date": _field("date"),
            "website": _website,
            "description": _field("summary"),
        },
    ),
    "volunteer": (
        "organization",
        {
            "organization": _field("organization"),
            "location": _field("location"),
            "period": _field("date"),
            "website": _website,
            "description": _field("summary"),
        },
    ),
    "references": (
        "name",
        {
            "name": _field("name"),
            "position": _field("description"),
            "phone": _const(""),
            "website": _website,
            "description": _field("summary"),
        },
    ),
}


def _new_id() -> str:
    return uuid.uuid4().hex


def _section_header(section: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "title": _text(section.get("name")),
        "columns": section.get("columns") or 1,
        "hidden": not section.get("visible", True),
    }


def _convert_section(name: str, section: Mapping[str, Any] | None) -> dict[str, Any]:
    section = section or {}
    required, fields = _ITEM_FIELDS[name]
    items = []
    for item in section.get("items") or []:
        if not item.get(required):
            continue
        converted = {"id": item.get("id") or _new_id(), "hidden": not item.get("visible", True)}
        converted.update({key: build(item) for key, build in fields.items()})
        items.append(converted)
    return {**_section_header(section), "items": items}


def _convert_custom_sections(custom: Mapping[str, Any] | None) -> list[dict[str, Any]]:
    sections = []
    for section_id, section in (custom or {}).items():
        visible_items = [item for item in section.get("items") or [] if item.get("visible") is not False]
        items = [
            {
                "id": item.get("id") or _new_id(),
                "hidden": not item.get("visible"),
                "company": _text(item.get("name")).strip() or f"#{index + 1}",
                "position": _text(item.get("description")),
                "location": _text(item.get("location")),
                "period": _text(item.get("date")),
                "website": _website(item),
                "description": _text(item.get("summary")),
            }
            for index, item in enumerate(visible_items)
        ]
        sections.append(
            {
                "id": section.get("id") or section_id,
                "type": "experience",
                **_section_header(section),
                "items": items,
            }
        )
    return sections


def _convert_layout(layout: Any) -> list[dict[str, Any]]:
    pages = []
    for page in layout or []:
        main = list(page[0]) if len(page) > 0 and page[0] else []
        sidebar = list(page[1]) if len(page) > 1 and page[1] else []
        pages.append(
            {
                "fullWidth": not sidebar,
                "main": [section for section in main if section != "summary"],
                "sidebar": sidebar,
            }
        )
    return pages


def _convert(v4: Mapping[str, Any]) -> dict[str, Any]:
    basics = v4["basics"]
    sections = v4["sections"]
    metadata = v4["metadata"]

    picture = basics.get("picture") or {}
    effects = picture.get("effects") or {}
    url = basics.get("url") or {}
    summary = sections.get("summary") or {}
    page = metadata.get("page") or {}
    theme = metadata.get("theme") or {}
    css = metadata.get("css") or {}
    typography = metadata.get("typography") or {}
    font = typography.get("font") or {}
    margin = _number(page.get("margin"), 14)
    body_size = _font_size(_number(font.get("size"), 14.67))
    line_height = clamp(_number(typography.get("lineHeight"), 1.5), 0.5, 4)
    family = font.get("family") or "IBM Plex Serif"
    template = metadata.get("template")

    document = {
        "picture": {
            "hidden": bool(effects.get("hidden", False)),
            "url": _text(picture.get("url")),
            "size": clamp(_number(picture.get("size"), 80), 32, 512),
            "rotation": clamp(0, 0, 360),
            "aspectRatio": clamp(_number(picture.get("aspectRatio"), 1), 0.5, 2.5),
            "borderRadius": clamp(_number(picture.get("borderRadius"), 0), 0, 100),
            "borderColor": "rgba(0, 0, 0, 0.5)" if effects.get("border") else "rgba(0, 0, 0, 0)",
            "borderWidth": 1 if effects.get("border") else 0,
            "shadowColor": "rgba(0, 0, 0, 0.5)",
            "shadowWidth": 0,
        },
        "basics": {
            "name": _text(basics.get("name")),
            "headline": _text(basics.get("headline")),
            "email": sanitize_email(basics.get("email")),
            "phone": _text(basics.get("phone")),
            "location": _text(basics.get("location")),
            "website": {"url": _text(url.get("href")), "label": _text(url.get("label"))},
            "customFields": [
                {
                    "id": field.get("id") or _new_id(),
                    "icon": _text(field.get("icon")),
                    "text": _text(field.get("text")),
                    "link": "",
                }
                for field in basics.get("customFields") or []
            ],
        },
        "summary": {
            **_section_header(summary),
            "content": _text(summary.get("content")),
        },
        "sections": {name: _convert_section(name, sections.get(name)) for name in SECTION_NAMES},
        "customSections": _convert_custom_sections(sections.get("custom")),
        "metadata": {
            "template": template if template in TEMPLATES else DEFAULT_TEMPLATE,
            "layout": {
                "sidebarWidth": 35,
                "pages": _convert_layout(metadata.get("layout")),
            },
            "css": {"enabled": bool(css.get("visible", False)), "value": _text(css.get("value"))},
            "page": {
                "gapX": 4,
                "gapY": 6,
                "marginX": max(0, margin),
                "marginY": max(0, margin),
                "format": page.get("format") or "a4",
                "locale": "en-US",
                "hideIcons": bool(typography.get("hideIcons", False)),
            },
            "design": {
                "colors": {
                    "primary": color_to_rgba(theme["primary"]) if theme.get("primary") else "rgba(220, 38, 38, 1)",
                    "text": color_to_rgba(theme["text"]) if theme.get("text") else "rgba(0, 0, 0, 1)",
                    "background": (
                        color_to_rgba(theme["background"])
                        if theme.get("background")
                        else "rgba(255, 255, 255, 1)"
                    ),
                },
                "level": {"icon": "star", "type": "circle"},
            },
            "typography": {
                "body": {
                    "fontFamily": family,
                    "fontWeights": _font_weights(font.get("variants")),
                    "fontSize": body_size,
                    "lineHeight": line_height,
                },
                "heading": {
                    "fontFamily": family,
                    "fontWeights": _heading_weights(font.get("variants")),
                    "fontSize": clamp(body_size + 3, 6, 24),
                    "lineHeight": line_height,
                },
            },
            "notes": _text(metadata.get("notes")),
        },
    }

    pages = document["metadata"]["layout"]["pages"]
    if summary.get("visible") and summary.get("content") and pages:
        pages[0]["main"].insert(0, "summary")

    return document


def parse_legacy_resume(raw: Any) -> ResumeData:
    """
    Convert a legacy v4 resume payload into ResumeData.

    Args:
        raw: JSON string or already-decoded mapping from the legacy ``data`` column

    Returns:
        Validated ResumeData

    Raises:
        DocumentParseError: If the payload is not JSON, lacks the basics,
            sections or metadata objects, or fails validation.
    """
    try:
        v4 = json_loads(raw) if isinstance(raw, (str, bytes)) else raw
        if not isinstance(v4, Mapping):
            raise TypeError(f"expected a JSON object, got {type(v4).__name__}")
        return ResumeData.model_validate(_convert(v4))
    except ValidationError as e:
        raise DocumentParseError(f"Resume document failed validation: {e.error_count()} errors") from e
    except (ValueError, KeyError, TypeError, AttributeError, IndexError, RecursionError) as e:
        raise DocumentParseError(f"Cannot import resume document: {e!r}") from e


__all__ = [
    "ResumeData",
    "DocumentParser",
    "default_resume_data",
    "parse_legacy_resume",
    "sanitize_email",
    "color_to_rgba",
    "clamp",
    "TEMPLATES",
    "SECTION_NAMES",
]
