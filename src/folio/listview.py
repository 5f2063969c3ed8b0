"""List-view controller: one instance per listing page.

Combines a :class:`~folio.cache.DataCache`, a
:class:`~folio.filters.FilterPipeline` and a
:class:`~folio.pagination.PaginationWindow`.  Whenever the cached collection
or a filter value changes, the visible set is recomputed and the current
page clamped, then subscribers are notified so the host can re-render.

Search criteria are debounced: :attr:`ListView.search_input` follows every
keystroke while the pipeline only sees the value once typing pauses.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Generic, Self, TypeVar

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from folio.cache import DataCache
from folio.core.logging import set_view_context
from folio.counts import ListCounts, count_items
from folio.debounce import Debouncer
from folio.filters import FilterPipeline, SearchCriterion
from folio.models import Entity, field_value
from folio.pagination import PaginationWindow

E = TypeVar("E", bound=Entity)

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_DEBOUNCE_S = 0.25
MODERATION_ACTIONS = ("approve", "reject", "delete")

Listener = Callable[[], None]


class ListView(Generic[E]):
    """Reactive list state plus the commands a listing page issues."""

    def __init__(
        self,
        name: str,
        cache: DataCache[E],
        pipeline: FilterPipeline,
        *,
        page_size: int,
        search_debounce_s: float = DEFAULT_SEARCH_DEBOUNCE_S,
        owns_client: bool = False,
    ) -> None:
        self._name = name
        self._cache = cache
        self._pipeline = pipeline
        self._window = PaginationWindow(page_size)
        self._owns_client = owns_client
        self._visible: tuple[E, ...] = ()
        self._typed: dict[str, str] = {}
        self._debouncers: dict[str, Debouncer] = {
            criterion.name: Debouncer(search_debounce_s)
            for criterion in pipeline.criteria
            if isinstance(criterion, SearchCriterion)
        }
        self._listeners: list[Listener] = []
        self._closed = False
        self._unsubscribe = cache.subscribe(self._recompute)
        self._recompute()

    # ------------------------------------------------------------------
    # Reactive fields
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def cache(self) -> DataCache[E]:
        return self._cache

    @property
    def pipeline(self) -> FilterPipeline:
        return self._pipeline

    @property
    def items(self) -> tuple[E, ...]:
        return self._cache.items

    @property
    def is_loading(self) -> bool:
        return self._cache.is_loading

    @property
    def error(self) -> str | None:
        return self._cache.error

    @property
    def visible_items(self) -> tuple[E, ...]:
        return self._visible

    @property
    def current_page_items(self) -> tuple[E, ...]:
        return tuple(self._window.current_slice(self._visible))

    @property
    def current_page(self) -> int:
        return self._window.current_page

    @property
    def total_pages(self) -> int:
        return self._window.total_pages

    @property
    def page_size(self) -> int:
        return self._window.page_size

    @property
    def filters(self) -> dict[str, Any]:
        """Effective filter values (what the pipeline currently applies)."""
        return self._pipeline.values()

    @property
    def search_input(self) -> str:
        """Text as typed into the (first) search box, ahead of debouncing."""
        for name in self._debouncers:
            return self.input_value(name)
        return ""

    def input_value(self, name: str) -> Any:
        """Value as last entered for filter *name* (typed text for search)."""
        if name in self._typed:
            return self._typed[name]
        return self._pipeline.get(name).value

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def owns_client(self) -> bool:
        """True when :meth:`aclose` also closes the HTTP client."""
        return self._owns_client

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call *listener* after every visible change.  Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Filter and page commands
    # ------------------------------------------------------------------

    def set_filter(self, name: str, value: Any) -> None:
        """Set filter *name* to *value*.

        Search filters update :attr:`search_input` at once and reach the
        pipeline after the debounce delay; other filters apply immediately.

        Raises
        ------
        KeyError
            If the view has no filter called *name*.
        ValueError
            If *value* is invalid for that filter.
        """
        criterion = self._pipeline.get(name)
        coerced = criterion.coerce(value)
        debouncer = self._debouncers.get(name)
        if debouncer is None:
            self._apply_filter(name, coerced)
            return
        self._typed[name] = coerced
        self._notify()
        debouncer.call(lambda: self._apply_filter(name, coerced))

    def flush_filters(self) -> None:
        """Apply any debounced search text immediately."""
        for debouncer in self._debouncers.values():
            debouncer.flush()

    def reset_filters(self) -> None:
        """Return every filter to ``"all"``/empty."""
        for debouncer in self._debouncers.values():
            debouncer.cancel()
        self._typed.clear()
        if self._pipeline.reset():
            self._recompute()
        else:
            self._notify()

    def _apply_filter(self, name: str, value: Any) -> None:
        if self._closed:
            return
        if self._pipeline.set_value(name, value):
            logger.debug("Filter %s=%r on %s", name, value, self._name)
            self._recompute()

    def go_to_page(self, page_number: int) -> int:
        page = self._window.go_to(page_number)
        self._notify()
        return page

    def next_page(self) -> int:
        page = self._window.next()
        self._notify()
        return page

    def previous_page(self) -> int:
        page = self._window.previous()
        self._notify()
        return page

    def set_page_size(self, page_size: int) -> None:
        self._window.set_page_size(page_size)
        self._window.sync(len(self._visible))
        self._notify()

    # ------------------------------------------------------------------
    # Data commands
    # ------------------------------------------------------------------

    async def refresh(self) -> bool:
        """Reload the collection.  Returns True if this load was applied."""
        set_view_context(self._name)
        return await self._cache.load()

    async def create_item(self, data: Mapping[str, Any] | BaseModel) -> E | None:
        """Create an entity.  Raises :class:`~folio.errors.MutationFailure` on failure."""
        set_view_context(self._name)
        return await self._cache.create(data)

    async def update_item(self, entity_id: str, patch: Mapping[str, Any] | BaseModel) -> E | None:
        """Update an entity.  Raises :class:`~folio.errors.MutationFailure` on failure."""
        set_view_context(self._name)
        return await self._cache.update(entity_id, patch)

    async def delete_item(self, entity_id: str) -> None:
        """Delete an entity.  Raises :class:`~folio.errors.MutationFailure` on failure."""
        set_view_context(self._name)
        await self._cache.remove(entity_id)

    async def toggle_flag(self, entity_id: str, field: str) -> E | None:
        """Flip a boolean field (``featured``, ``published``) on one entity.

        Raises
        ------
        KeyError
            If *entity_id* is not in the collection.
        """
        entity = self._cache.get(entity_id)
        if entity is None:
            raise KeyError(f"No {self._cache.client.resource} with id {entity_id!r}")
        current = bool(field_value(entity, field))
        return await self.update_item(entity_id, {to_camel(field): not current})

    async def duplicate_item(self, entity_id: str) -> E | None:
        """Have the server copy an entity (as a draft) and add the copy."""
        set_view_context(self._name)
        return await self._cache.duplicate(entity_id)

    async def moderate_item(self, entity_id: str, action: str) -> E | None:
        """Approve, reject or delete a moderated entity (comments).

        Raises
        ------
        ValueError
            If *action* is unknown or the resource is not moderated.
        """
        if action not in MODERATION_ACTIONS:
            raise ValueError(
                f"Unknown moderation action {action!r} (expected one of {MODERATION_ACTIONS})"
            )
        set_view_context(self._name)
        return await self._cache.moderate(entity_id, action)

    def counts(
        self,
        *,
        status_field: str | None = "status",
        flag_field: str | None = "featured",
    ) -> ListCounts:
        """Dashboard totals over the whole collection plus the visible count."""
        return count_items(
            self._cache.items,
            self._visible,
            status_field=status_field,
            flag_field=flag_field,
            noun=self._name,
        )

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def _recompute(self) -> None:
        self._visible = self._pipeline.apply(self._cache.items)
        if self._window.sync(len(self._visible)):
            logger.debug(
                "Clamped %s to page %d of %d",
                self._name,
                self._window.current_page,
                self._window.total_pages,
            )
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("List view listener failed for %s", self._name)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Unmount: drop pending searches and ignore any in-flight results."""
        if self._closed:
            return
        self._closed = True
        for debouncer in self._debouncers.values():
            debouncer.cancel()
        self._unsubscribe()
        self._cache.close()
        self._listeners.clear()

    async def aclose(self) -> None:
        self.close()
        if self._owns_client:
            await self._cache.client.aclose()

    async def __aenter__(self) -> Self:
        await self.refresh()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        await self.aclose()
