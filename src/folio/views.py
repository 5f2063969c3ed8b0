"""List-view presets for the CMS listing pages.

Each preset names the endpoint, response envelope, entity model, filters,
sort stage and page size of one admin or public listing.  Criteria are
built fresh for every view so views never share filter state.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import httpx

from folio.cache import DataCache
from folio.client import ResourceClient, UpdateMethod
from folio.config import DEFAULT_SEARCH_DEBOUNCE_MS, FolioConfig
from folio.filters import (
    ChoiceCriterion,
    FilterCriterion,
    FilterPipeline,
    FlagCriterion,
    SearchCriterion,
    SortStage,
)
from folio.listview import ListView
from folio.models import BlogPost, Comment, Course, Entity, Project, Series, Setting
from folio.runtime import setup


@dataclass(frozen=True)
class ViewPreset:
    """Static description of one listing page."""

    name: str
    endpoint: str
    model: type[Entity]
    criteria: Callable[[], list[FilterCriterion]]
    envelope: str | None = None
    item_key: str | None = None
    sort: SortStage | None = None
    page_size: int = 12
    update_method: UpdateMethod = "PUT"
    id_field: str = "id"
    moderation_key: str | None = None


PRESETS: dict[str, ViewPreset] = {
    preset.name: preset
    for preset in (
        ViewPreset(
            name="posts",
            endpoint="admin/blog/posts",
            model=BlogPost,
            envelope="posts",
            item_key="post",
            page_size=9,
            update_method="PATCH",
            criteria=lambda: [
                SearchCriterion("search", fields=("title", "excerpt")),
                ChoiceCriterion("status", field="status"),
                ChoiceCriterion("category", field="category.id"),
                ChoiceCriterion("series", field="series.id"),
                FlagCriterion("featured", field="featured"),
            ],
        ),
        ViewPreset(
            name="series",
            endpoint="admin/blog/series",
            model=Series,
            envelope="series",
            item_key="series",
            page_size=9,
            sort=SortStage("sort_order"),
            criteria=lambda: [
                SearchCriterion("search", fields=("title", "description")),
                FlagCriterion("published", field="published"),
            ],
        ),
        ViewPreset(
            name="projects",
            endpoint="projects",
            model=Project,
            envelope="projects",
            item_key="project",
            sort=SortStage("sort_order"),
            criteria=lambda: [
                SearchCriterion("search", fields=("title", "description", "technologies")),
                ChoiceCriterion("category", field="category"),
                FlagCriterion("featured", field="featured"),
            ],
        ),
        ViewPreset(
            name="courses",
            endpoint="courses",
            model=Course,
            envelope="courses",
            item_key="course",
            sort=SortStage("sort_order"),
            criteria=lambda: [
                SearchCriterion("search", fields=("title", "code", "instructor")),
                ChoiceCriterion("status", field="status", case_insensitive=True),
                ChoiceCriterion("year", field="year"),
                FlagCriterion("public", field="is_public"),
            ],
        ),
        ViewPreset(
            name="settings",
            endpoint="settings",
            model=Setting,
            envelope="settings",
            item_key="setting",
            id_field="key",
            criteria=lambda: [
                SearchCriterion("search", fields=("key", "description")),
                ChoiceCriterion("category", field="category"),
                FlagCriterion("public", field="is_public"),
            ],
        ),
        ViewPreset(
            name="comments",
            endpoint="admin/comments",
            model=Comment,
            envelope="comments",
            item_key="comment",
            moderation_key="commentId",
            criteria=lambda: [
                SearchCriterion("search", fields=("content", "author_name")),
                ChoiceCriterion("status", field="status", case_insensitive=True),
            ],
        ),
    )
}


def get_preset(name: str) -> ViewPreset:
    try:
        return PRESETS[name]
    except KeyError:
        known = ", ".join(sorted(PRESETS))
        raise KeyError(f"Unknown view {name!r} (known: {known})") from None


def create_list_view(
    name: str,
    config: FolioConfig,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> ListView:
    """Build a :class:`ListView` for preset *name* using *config*.

    Per-view settings in ``[views.<name>]`` override the preset's endpoint,
    page size and search debounce.  When *http_client* is omitted the view
    creates its own and closes it on :meth:`ListView.aclose`.  The first
    view built in a process also applies ``[folio.logging]`` and tracing
    (see :func:`folio.runtime.setup`).
    """
    preset = get_preset(name)
    overrides = config.view(name)
    setup(config)

    client = ResourceClient(
        base_url=config.base_url,
        endpoint=overrides.endpoint or preset.endpoint,
        model=preset.model,
        envelope=preset.envelope,
        item_key=preset.item_key,
        update_method=preset.update_method,
        id_field=preset.id_field,
        moderation_key=preset.moderation_key,
        http_client=http_client,
        timeout_s=config.timeout_s,
    )
    pipeline = FilterPipeline(preset.criteria(), sort=preset.sort)

    debounce_ms = overrides.search_debounce_ms
    if debounce_ms is None:
        debounce_ms = DEFAULT_SEARCH_DEBOUNCE_MS

    return ListView(
        name,
        DataCache(client),
        pipeline,
        page_size=overrides.page_size or preset.page_size,
        search_debounce_s=debounce_ms / 1000,
        owns_client=http_client is None,
    )
