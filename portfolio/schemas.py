from pydantic import BaseModel, ValidationError, field_validator, model_validator
from typing import Any, Dict, Literal, Optional
import re

SLUG_RE = re.compile(r"^[a-z0-9]+(?:[-_.][a-z0-9]+)*$")

CHECKBOX_TRUE = {"1", "on", "true", "yes"}


class EntryForm(BaseModel):
    """Admin create/edit form, validated before anything reaches the store.

    Defaults: optional text fields become "" and are trimmed; an empty kind means
    project; an empty date is None; category only survives for kind=other;
    published is a checkbox, so a missing field means False.
    """

    slug: str
    title: str
    subtitle: str = ""
    summary: str = ""
    role: str = ""
    timeframe: str = ""
    tools: str = ""
    tags: str = ""
    external_url: str = ""
    body_markdown: str = ""
    published: bool = False
    kind: Literal["project", "lab", "other"] = "project"
    category: Optional[str] = None
    date: Optional[str] = None

    @field_validator(
        "slug", "title", "subtitle", "summary", "role", "timeframe", "tools", "tags",
        "external_url", mode="before",
    )
    @classmethod
    def strip_text(cls, value: Any) -> str:
        return str(value or "").strip()

    @field_validator("body_markdown", mode="before")
    @classmethod
    def default_body(cls, value: Any) -> str:
        return str(value or "")

    @field_validator("slug")
    @classmethod
    def check_slug(cls, value: str) -> str:
        value = value.lower()
        if not value:
            raise ValueError("Slug is required")
        if not SLUG_RE.match(value):
            raise ValueError("Slug may only contain letters, digits and single - _ . separators")
        return value

    @field_validator("title")
    @classmethod
    def check_title(cls, value: str) -> str:
        if not value:
            raise ValueError("Title is required")
        return value

    @field_validator("kind", mode="before")
    @classmethod
    def default_kind(cls, value: Any) -> str:
        return str(value or "project").strip().lower()

    @field_validator("published", mode="before")
    @classmethod
    def parse_checkbox(cls, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        return str(value or "").strip().lower() in CHECKBOX_TRUE

    @field_validator("category", "date", mode="before")
    @classmethod
    def empty_to_none(cls, value: Any) -> Optional[str]:
        value = str(value or "").strip()
        return value or None

    @model_validator(mode="after")
    def category_only_for_other(self) -> "EntryForm":
        if self.kind != "other":
            self.category = None
        return self

    @classmethod
    def from_form(cls, form) -> "EntryForm":
        return cls(**{name: form.get(name) for name in cls.model_fields})


def form_error_message(exc: ValidationError) -> str:
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "Invalid value").removeprefix("Value error, ")
        messages.append(f"{field}: {message}" if field else message)
    return "; ".join(messages)


def form_values(form) -> Dict[str, Any]:
    """Raw submitted values, used to re-render the form after an error."""
    values = {name: form.get(name) or "" for name in EntryForm.model_fields}
    values["published"] = str(form.get("published") or "").lower() in CHECKBOX_TRUE
    return values


class MarkdownPreviewRequest(BaseModel):
    markdown: str = ""


class MarkdownPreviewResponse(BaseModel):
    ok: bool = True
    html: str


class AnalyticsEvent(BaseModel):
    type: Optional[str] = None
    slug: Optional[str] = None
    url: Optional[str] = None
    source: Optional[str] = None
    section: Optional[str] = None
    href: Optional[str] = None
