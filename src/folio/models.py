"""Pydantic models for CMS entities.

Every record the API returns is an :class:`Entity`: a frozen snapshot with a
string ``id`` and an open set of extra fields.  The per-resource subclasses
declare the fields the listing pages filter and sort on; anything else the
API sends is kept in ``model_extra``.

The API speaks camelCase (``publishedAt``, ``isPublic``); models expose
snake_case attributes and accept either spelling on input.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Literal, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

PostStatus = Literal["DRAFT", "PUBLISHED", "ARCHIVED"]


class Entity(BaseModel):
    """Generic record of any resource type."""

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("id must be a string or integer")
        if isinstance(value, int):
            return str(value)
        if isinstance(value, str):
            normalized = value.strip()
            if not normalized:
                raise ValueError("id must be a non-empty string")
            return normalized
        return value


# ---------------------------------------------------------------------------
# Blog
# ---------------------------------------------------------------------------


class BlogCategory(Entity):
    """A blog category."""

    name: str = ""
    color: str | None = None
    icon: str | None = None


class SeriesRef(Entity):
    """Series summary embedded in a post."""

    title: str = ""
    slug: str | None = None


class BlogPost(Entity):
    """A blog post as listed by the admin dashboard."""

    title: str = ""
    slug: str | None = None
    excerpt: str | None = None
    status: PostStatus = "DRAFT"
    featured: bool = False
    # Single-post routes return the raw relation names.
    category: BlogCategory | None = Field(
        default=None,
        validation_alias=AliasChoices("category", "blogCategories", "blog_categories"),
    )
    series: SeriesRef | None = Field(
        default=None,
        validation_alias=AliasChoices("series", "blogSeries", "blog_series"),
    )
    series_order: int | None = None
    tags: list[str] = Field(default_factory=list)
    views: int = 0
    likes: int = 0
    published_at: datetime | None = None
    updated_at: datetime | None = None


class Series(Entity):
    """A blog series."""

    title: str = ""
    slug: str | None = None
    description: str | None = None
    published: bool = False
    sort_order: int = 0
    tags: list[str] = Field(default_factory=list)


class PostRef(Entity):
    """Post summary embedded in a comment."""

    title: str = ""
    slug: str | None = None


class Comment(Entity):
    """A reader comment awaiting or past moderation.

    The API only sends ``isApproved``; ``status`` is derived from it
    (``APPROVED`` or ``PENDING``) so the listing can filter on one field.
    """

    content: str = ""
    author_name: str | None = None
    author_email: str | None = None
    is_approved: bool = False
    status: str = "PENDING"
    post_id: str | None = None
    post: PostRef | None = Field(
        default=None,
        validation_alias=AliasChoices("post", "blogPosts", "blog_posts"),
    )
    created_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _status_from_approval(cls, data: Any) -> Any:
        if not isinstance(data, Mapping) or "status" in data:
            return data
        approved = data.get("isApproved", data.get("is_approved"))
        if approved is None:
            return data
        return {**data, "status": "APPROVED" if approved else "PENDING"}


# ---------------------------------------------------------------------------
# Portfolio
# ---------------------------------------------------------------------------


class Project(Entity):
    """A portfolio project card."""

    title: str = ""
    slug: str | None = None
    description: str | None = None
    category: str | None = None
    technologies: list[str] = Field(default_factory=list)
    featured: bool = False
    status: str | None = None
    sort_order: int = 0


class Course(Entity):
    """A course on the education timeline."""

    code: str = ""
    title: str = ""
    credits: int = 0
    year: int | None = None
    semester: str | None = None
    status: str = "UPCOMING"
    instructor: str | None = None
    is_public: bool = True
    featured: bool = False
    sort_order: int = 0


class AcademicProgram(Entity):
    """A degree program."""

    name: str = ""
    degree: str | None = None
    institution: str | None = None
    status: str = "planned"
    current_year: int | None = None
    total_years: int | None = None


class Setting(Entity):
    """A site setting row."""

    key: str = ""
    value: Any = None
    type: str = "text"
    category: str | None = None
    description: str | None = None
    is_public: bool = False


# ---------------------------------------------------------------------------
# Field access
# ---------------------------------------------------------------------------


E = TypeVar("E", bound="Entity")


def merge_entity(current: E, incoming: Entity) -> E:
    """Overlay the fields *incoming* was actually sent with onto *current*.

    Mutation responses are often partial (``{"id": ..., "featured": true}``)
    or omit relations; fields absent from *incoming* keep their cached value.
    """
    fields = type(current).model_fields
    extra = incoming.model_extra or {}
    update: dict[str, Any] = {}
    for name in incoming.model_fields_set:
        if name in extra:
            update[name] = extra[name]
        elif name in fields:
            update[name] = getattr(incoming, name)
    return current.model_copy(update=update)


def field_value(obj: Any, path: str) -> Any:
    """Resolve a dotted *path* (``"category.id"``) against an entity.

    Works on models (declared fields and extras, snake_case or camelCase)
    and on plain mappings.  Returns ``None`` when any segment is missing.
    """
    current = obj
    for part in path.split("."):
        if current is None:
            return None
        current = _lookup(current, part)
    return current


def _lookup(obj: Any, name: str) -> Any:
    if isinstance(obj, BaseModel):
        fields = type(obj).model_fields
        if name in fields:
            return getattr(obj, name)
        for field_name, info in fields.items():
            if info.alias == name:
                return getattr(obj, field_name)
        extra = obj.model_extra or {}
        if name in extra:
            return extra[name]
        return extra.get(to_camel(name))
    if isinstance(obj, Mapping):
        if name in obj:
            return obj[name]
        return obj.get(to_camel(name))
    return None
