"""Tests for list-view presets and the view factory."""

from __future__ import annotations

import pytest

from folio.config import FolioConfig, ViewConfig
from folio.filters import ChoiceCriterion, FlagCriterion, SearchCriterion
from folio.listview import ListView
from folio.models import Comment, Course, Project, Series
from folio.views import PRESETS, create_list_view, get_preset
from tests.conftest import BASE_URL, FakeCMS, make_comment

pytestmark = pytest.mark.unit


class TestPresets:
    def test_known_views(self):
        assert set(PRESETS) == {"posts", "series", "projects", "courses", "settings", "comments"}

    def test_unknown_view(self):
        with pytest.raises(KeyError, match="Unknown view 'widgets'"):
            get_preset("widgets")

    @pytest.mark.parametrize("name", sorted(PRESETS))
    def test_every_preset_has_a_search_box(self, name):
        criteria = PRESETS[name].criteria()
        assert isinstance(criteria[0], SearchCriterion)

    def test_criteria_are_fresh_per_call(self):
        preset = get_preset("posts")
        first, second = preset.criteria(), preset.criteria()
        assert all(a is not b for a, b in zip(first, second, strict=True))

    def test_posts_preset(self):
        preset = get_preset("posts")
        names = [c.name for c in preset.criteria()]
        assert names == ["search", "status", "category", "series", "featured"]
        assert preset.page_size == 9
        assert preset.update_method == "PATCH"

    def test_course_status_is_case_insensitive(self):
        status = next(c for c in get_preset("courses").criteria() if c.name == "status")
        assert isinstance(status, ChoiceCriterion)
        assert status.case_insensitive


class TestCreateListView:
    def test_builds_view_from_preset(self, folio_config: FolioConfig):
        view = create_list_view("projects", folio_config)
        assert isinstance(view, ListView)
        assert view.name == "projects"
        assert view.page_size == 12
        assert view.cache.client.collection_url == f"{BASE_URL}/projects"
        assert view.filters == {"search": "", "category": "all", "featured": "all"}
        view.close()

    def test_config_overrides(self):
        config = FolioConfig(
            base_url=BASE_URL,
            views={
                "courses": ViewConfig(
                    page_size=4, search_debounce_ms=0, endpoint="public/courses"
                )
            },
        )
        view = create_list_view("courses", config)
        assert view.page_size == 4
        assert view.cache.client.collection_url == f"{BASE_URL}/public/courses"
        # zero debounce: the search reaches the pipeline immediately
        view.set_filter("search", "algebra")
        assert view.filters["search"] == "algebra"
        view.close()

    async def test_projects_sorted_by_sort_order(
        self, fake_cms: FakeCMS, http_client, folio_config: FolioConfig
    ):
        fake_cms.add(
            "projects",
            [
                {"id": "a", "title": "Later", "sortOrder": 3, "category": "web"},
                {"id": "b", "title": "First", "sortOrder": 1, "category": "ml"},
                {"id": "c", "title": "Second", "sortOrder": 2, "category": "web"},
            ],
            envelope="projects",
        )
        async with create_list_view("projects", folio_config, http_client=http_client) as view:
            assert all(isinstance(p, Project) for p in view.items)
            assert [p.id for p in view.visible_items] == ["b", "c", "a"]
            view.set_filter("category", "web")
            assert [p.id for p in view.visible_items] == ["c", "a"]

    async def test_courses_filters(self, fake_cms: FakeCMS, http_client, folio_config):
        fake_cms.add(
            "courses",
            [
                {"id": 1, "code": "MA101", "year": 2023, "status": "completed"},
                {"id": 2, "code": "CS201", "year": 2024, "status": "IN_PROGRESS"},
                {"id": 3, "code": "CS301", "year": 2024, "status": "UPCOMING", "isPublic": False},
            ],
            envelope="courses",
        )
        async with create_list_view("courses", folio_config, http_client=http_client) as view:
            assert all(isinstance(c, Course) for c in view.items)
            view.set_filter("status", "COMPLETED")
            assert [c.id for c in view.visible_items] == ["1"]
            view.set_filter("status", "all")
            view.set_filter("year", "2024")
            assert [c.id for c in view.visible_items] == ["2", "3"]
            view.set_filter("public", False)
            assert [c.id for c in view.visible_items] == ["3"]

    async def test_series_toggle_published(self, fake_cms: FakeCMS, http_client, folio_config):
        fake_cms.add(
            "admin/blog/series",
            [{"id": "s1", "title": "Rust in practice", "published": False, "sortOrder": 0}],
            envelope="series",
        )
        async with create_list_view("series", folio_config, http_client=http_client) as view:
            assert isinstance(view.items[0], Series)
            view.set_filter("published", True)
            assert view.visible_items == ()
            await view.toggle_flag("s1", "published")
            assert [s.id for s in view.visible_items] == ["s1"]
            assert ("PUT", "admin/blog/series/s1") in fake_cms.requests

    def test_flag_criteria_target_model_fields(self):
        flags = {
            name: [c.field for c in preset.criteria() if isinstance(c, FlagCriterion)]
            for name, preset in PRESETS.items()
        }
        for name, fields in flags.items():
            model_fields = PRESETS[name].model.model_fields
            assert all(field in model_fields for field in fields), name

    def test_view_owns_only_a_client_it_created(self, folio_config: FolioConfig, http_client):
        shared = create_list_view("posts", folio_config, http_client=http_client)
        own = create_list_view("posts", folio_config)
        assert not shared.owns_client
        assert own.owns_client
        shared.close()
        own.close()

    async def test_settings_update_addresses_key(
        self, fake_cms: FakeCMS, http_client, folio_config: FolioConfig
    ):
        resource = fake_cms.add(
            "settings",
            [
                {"id": "cuid-1", "key": "site_title", "value": "Old", "category": "general"},
                {"id": "cuid-2", "key": "show_blog", "value": True, "isPublic": True},
            ],
            envelope="settings",
            id_field="key",
            echo=lambda record: {"data": record},
        )
        async with create_list_view("settings", folio_config, http_client=http_client) as view:
            updated = await view.update_item("cuid-1", {"value": "New"})
            assert updated is not None and updated.value == "New"
            assert ("PUT", "settings/site_title") in fake_cms.requests
            assert view.cache.get("cuid-1").category == "general"

            await view.delete_item("cuid-2")
            assert ("DELETE", "settings/show_blog") in fake_cms.requests
            assert [s.key for s in view.items] == ["site_title"]
            assert [r["key"] for r in resource.records] == ["site_title"]

    async def test_comments_status_filter_and_moderation(
        self, fake_cms: FakeCMS, http_client, folio_config: FolioConfig
    ):
        fake_cms.add(
            "admin/comments",
            [make_comment(1), make_comment(2, approved=True), make_comment(3)],
            envelope="comments",
            moderated=True,
        )
        async with create_list_view("comments", folio_config, http_client=http_client) as view:
            assert all(isinstance(c, Comment) for c in view.items)
            view.set_filter("status", "approved")
            assert [c.id for c in view.visible_items] == ["comment-2"]

            await view.moderate_item("comment-1", "approve")
            assert [c.id for c in view.visible_items] == ["comment-1", "comment-2"]

            await view.moderate_item("comment-2", "reject")
            assert [c.id for c in view.visible_items] == ["comment-1"]

            await view.moderate_item("comment-3", "delete")
            assert [c.id for c in view.items] == ["comment-1", "comment-2"]
            assert all(request == ("PATCH", "admin/comments") for request in fake_cms.requests[1:])

    async def test_unknown_moderation_action(self, http_client, folio_config: FolioConfig):
        view = create_list_view("comments", folio_config, http_client=http_client)
        with pytest.raises(ValueError, match="Unknown moderation action 'spam'"):
            await view.moderate_item("comment-1", "spam")
        view.close()
