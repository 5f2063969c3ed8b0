"""Data cache: the authoritative local copy of one resource's collection.

The cache owns the last successfully fetched collection plus its loading and
error state, and reconciles the collection after mutations so the view does
not need a full refetch.

Loads are guarded by a monotonically increasing request token.  Only the
most recently issued load may apply its result; a slower, older response is
discarded when it finally arrives.  A successful mutation also advances the
token: a load issued before it may have read the server before the write
landed, so it is discarded and reissued.  After :meth:`DataCache.close` no
result is applied at all (the owning view has gone away).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from folio.client import ResourceClient
from folio.errors import FetchFailure, MutationFailure
from folio.models import Entity, merge_entity

E = TypeVar("E", bound=Entity)
T = TypeVar("T")

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class DataCache(Generic[E]):
    """Collection, loading flag and error for a single resource."""

    def __init__(self, client: ResourceClient[E]) -> None:
        self._client = client
        self._items: tuple[E, ...] = ()
        self._error: str | None = None
        self._loaded = False
        self._closed = False
        # Token of the most recently issued load, and of the last one that settled.
        self._issued_token = 0
        self._settled_token = 0
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def client(self) -> ResourceClient[E]:
        return self._client

    @property
    def items(self) -> tuple[E, ...]:
        return self._items

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def is_loading(self) -> bool:
        return self._settled_token < self._issued_token

    @property
    def loaded(self) -> bool:
        """True once any load has succeeded."""
        return self._loaded

    @property
    def closed(self) -> bool:
        return self._closed

    def get(self, entity_id: str) -> E | None:
        for item in self._items:
            if item.id == entity_id:
                return item
        return None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call *listener* after every state change.  Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Cache listener failed for %s", self._client.resource)

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    async def load(self) -> bool:
        """Fetch the full collection.

        On success the collection is replaced and the error cleared.  On
        any failure the previous collection is kept and ``error`` is set.
        Only cancellation propagates; the load is settled first.

        Returns True when this call's result was applied, False when it was
        superseded by a later load or mutation, failed, or arrived after close.
        """
        if self._closed:
            return False

        self._issued_token += 1
        token = self._issued_token
        self._notify()

        try:
            items = await self._client.fetch_all()
        except FetchFailure as exc:
            logger.warning(
                "Failed to load %s (status=%s): %s",
                self._client.resource,
                exc.status_code,
                exc.message,
            )
            return self._settle_failure(token, exc.message)
        except asyncio.CancelledError:
            self._settle_cancelled(token)
            raise
        except Exception as exc:
            logger.exception("Unexpected error loading %s", self._client.resource)
            return self._settle_failure(token, str(exc).strip() or type(exc).__name__)

        if not self._is_current(token):
            logger.debug(
                "Discarding stale %s response (token %d, latest %d)",
                self._client.resource,
                token,
                self._issued_token,
            )
            return False

        self._settled_token = token
        self._items = items
        self._error = None
        self._loaded = True
        logger.debug("Loaded %d %s", len(items), self._client.resource)
        self._notify()
        return True

    def _is_current(self, token: int) -> bool:
        return not self._closed and token == self._issued_token

    def _settle_failure(self, token: int, message: str) -> bool:
        if not self._is_current(token):
            logger.debug("Ignoring failure of superseded %s load", self._client.resource)
            return False
        self._settled_token = token
        self._error = message
        self._notify()
        return False

    def _settle_cancelled(self, token: int) -> None:
        if not self._is_current(token):
            return
        logger.debug("Load of %s cancelled", self._client.resource)
        self._settled_token = token
        self._notify()

    async def _supersede_loads(self) -> None:
        """Discard loads issued before a mutation; reissue one if any was pending."""
        pending = self.is_loading
        self._issued_token += 1
        self._settled_token = self._issued_token
        if pending:
            logger.debug("Reloading %s after mutation", self._client.resource)
            await self.load()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, data: Mapping[str, Any] | BaseModel) -> E | None:
        """Create an entity and append it to the collection.

        Falls back to a full reload when the API does not echo the entity.

        Raises
        ------
        MutationFailure
            The collection is left untouched.
        """
        entity = await self._mutate("create", self._client.create(data))
        return await self._add(entity)

    async def duplicate(self, entity_id: str) -> E | None:
        """Ask the server to copy an entity and append the copy.

        Raises
        ------
        MutationFailure
            The collection is left untouched.
        """
        entity = await self._mutate("duplicate", self._client.duplicate(self._route(entity_id)))
        return await self._add(entity)

    async def update(self, entity_id: str, patch: Mapping[str, Any] | BaseModel) -> E | None:
        """Apply a partial update and merge the response into the cached entity.

        Fields the response omits keep their cached values.

        Raises
        ------
        MutationFailure
            The collection is left untouched.
        """
        entity = await self._mutate(
            "update", self._client.update(self._route(entity_id), patch)
        )
        return await self._reconcile(entity_id, entity)

    async def moderate(self, entity_id: str, action: str) -> E | None:
        """Run a moderation *action* (``approve``/``reject``/``delete``).

        Raises
        ------
        MutationFailure
            The collection is left untouched.
        """
        entity = await self._mutate("moderate", self._client.moderate(entity_id, action))
        if action == "delete":
            await self._discard(entity_id)
            return None
        return await self._reconcile(entity_id, entity)

    async def remove(self, entity_id: str) -> None:
        """Delete an entity and drop it from the collection.

        Raises
        ------
        MutationFailure
            The collection is left untouched.
        """
        await self._mutate("delete", self._client.delete(self._route(entity_id)))
        await self._discard(entity_id)

    async def _add(self, entity: E | None) -> E | None:
        if self._closed:
            return entity
        if entity is None:
            await self.load()
            return None
        self._items = _replace_or_append(self._items, entity.id, entity)
        self._notify()
        await self._supersede_loads()
        return entity

    async def _reconcile(self, entity_id: str, entity: E | None) -> E | None:
        if self._closed:
            return entity
        if entity is None:
            await self.load()
            return None
        current = self.get(entity_id)
        if current is not None:
            entity = merge_entity(current, entity)
        self._items = _replace_or_append(self._items, entity_id, entity)
        self._notify()
        await self._supersede_loads()
        return entity

    async def _discard(self, entity_id: str) -> None:
        if self._closed:
            return
        remaining = tuple(item for item in self._items if item.id != entity_id)
        if len(remaining) != len(self._items):
            self._items = remaining
            self._notify()
        await self._supersede_loads()

    def _route(self, entity_id: str) -> str:
        entity = self.get(entity_id)
        return self._client.route_key(entity) if entity is not None else entity_id

    async def _mutate(self, operation: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except MutationFailure as exc:
            logger.warning(
                "Failed to %s %s (status=%s): %s",
                operation,
                self._client.resource,
                exc.status_code,
                exc.message,
            )
            raise

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Detach the cache; results arriving afterwards are not applied."""
        self._closed = True
        self._listeners.clear()


def _replace_or_append(
    items: tuple[E, ...],
    entity_id: str,
    entity: E,
) -> tuple[E, ...]:
    for index, item in enumerate(items):
        if item.id == entity_id:
            return items[:index] + (entity,) + items[index + 1 :]
    return items + (entity,)
