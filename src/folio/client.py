"""REST client for one CMS resource.

Wraps ``GET/POST /<endpoint>``, ``PUT|PATCH|DELETE /<endpoint>/<id>``,
``POST /<endpoint>/<id>/duplicate`` and collection-level moderation on an
``httpx.AsyncClient`` and normalises the API's inconsistent
response shapes:

- collections arrive as a bare array, ``{"items": [...]}``,
  ``{"data": [...]}`` or ``{"<envelope>": [...]}`` (``{"posts": [...]}``)
- mutation responses arrive as a bare entity or wrapped in ``data``,
  the singular item key, or the envelope key

Every request runs inside a ``folio.<operation>`` span.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Generic, Literal, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from folio.core.telemetry import inject_trace_context, request_span
from folio.errors import FetchFailure, MutationFailure, ShapeMismatch
from folio.models import Entity, field_value

E = TypeVar("E", bound=Entity)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 20.0
_GENERIC_COLLECTION_KEYS = ("items", "data")
_MAX_ERROR_MESSAGE_CHARS = 200

UpdateMethod = Literal["PUT", "PATCH"]


class ResourceClient(Generic[E]):
    """Async CRUD client for a single resource endpoint.

    Parameters
    ----------
    base_url:
        API root, e.g. ``"https://example.com/api"``.
    endpoint:
        Resource path below the root, e.g. ``"admin/blog/posts"``.
    model:
        Entity subclass used to validate records.
    envelope:
        Key under which the collection is wrapped, e.g. ``"posts"``.
    item_key:
        Key under which a single entity may be wrapped, e.g. ``"post"``.
    update_method:
        ``"PUT"`` or ``"PATCH"`` for partial updates.
    id_field:
        Entity field that addresses one record in item URLs (``"key"`` for
        settings).
    moderation_key:
        Body key naming the target record for resources moderated through
        ``PATCH /<endpoint>`` (``"commentId"``).  Deletes go through the same
        route when set.
    http_client:
        Shared client.  When omitted the resource client creates and owns one.
    """

    def __init__(
        self,
        *,
        base_url: str,
        endpoint: str,
        model: type[E] = Entity,
        envelope: str | None = None,
        item_key: str | None = None,
        update_method: UpdateMethod = "PUT",
        id_field: str = "id",
        moderation_key: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        endpoint = endpoint.strip("/")
        if not endpoint:
            raise ValueError("endpoint must be a non-empty path")
        self._base_url = base_url.rstrip("/")
        self._endpoint = endpoint
        self._model = model
        self._envelope = envelope
        self._item_key = item_key
        self._update_method = update_method
        self._id_field = id_field
        self._moderation_key = moderation_key
        self._owns_http_client = http_client is None
        self._http_client = (
            http_client
            if http_client is not None
            else httpx.AsyncClient(timeout=httpx.Timeout(timeout_s, connect=10.0))
        )

    @property
    def resource(self) -> str:
        """Short resource name (last endpoint segment)."""
        return self._endpoint.rsplit("/", 1)[-1]

    @property
    def collection_url(self) -> str:
        return f"{self._base_url}/{self._endpoint}"

    def item_url(self, entity_id: str) -> str:
        return f"{self.collection_url}/{quote(str(entity_id), safe='')}"

    @property
    def moderated(self) -> bool:
        return self._moderation_key is not None

    def route_key(self, entity: Entity) -> str:
        """Value that addresses *entity* in item URLs."""
        value = field_value(entity, self._id_field)
        if value is None or value == "":
            return entity.id
        return str(value)

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    async def fetch_all(self) -> tuple[E, ...]:
        """Fetch the full collection.

        Raises
        ------
        FetchFailure
            On a transport error or non-2xx response.
        ShapeMismatch
            When the payload is not a recognised collection shape.
        """
        with request_span("fetch", resource=self.resource) as span:
            try:
                response = await self._http_client.get(
                    self.collection_url, headers=self._headers()
                )
            except httpx.HTTPError as exc:
                raise FetchFailure(
                    status_code=None,
                    message=_describe_transport_error(exc),
                ) from exc

            span.set_attribute("http.status_code", response.status_code)
            if not response.is_success:
                raise FetchFailure(
                    status_code=response.status_code,
                    message=safe_error_message(response),
                )

            try:
                payload = response.json()
            except ValueError as exc:
                raise ShapeMismatch(resource=self.resource, message="invalid JSON") from exc

            records = normalize_collection(
                payload, resource=self.resource, envelope=self._envelope
            )
            entities = self._parse_collection(records)
            span.set_attribute("folio.count", len(entities))

        logger.debug("Fetched %d %s", len(entities), self.resource)
        return entities

    def _parse_collection(self, records: list[Mapping[str, Any]]) -> tuple[E, ...]:
        entities: list[E] = []
        seen: set[str] = set()
        for index, record in enumerate(records):
            try:
                entity = self._model.model_validate(record)
            except ValidationError as exc:
                raise ShapeMismatch(
                    resource=self.resource,
                    message=f"record {index} is invalid ({exc.error_count()} error(s))",
                ) from exc
            if entity.id in seen:
                logger.warning(
                    "Duplicate %s id %r in collection; keeping first occurrence",
                    self.resource,
                    entity.id,
                )
                continue
            seen.add(entity.id)
            entities.append(entity)
        return tuple(entities)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, data: Mapping[str, Any] | BaseModel) -> E | None:
        """POST a new entity.

        Returns the created entity, or ``None`` when the response does not
        carry a complete entity (the caller should refetch).
        """
        response = await self._send("create", "POST", self.collection_url, json=_body(data))
        return self._parse_entity(response)

    async def update(self, entity_id: str, patch: Mapping[str, Any] | BaseModel) -> E | None:
        """PUT/PATCH a partial update.  Same return contract as :meth:`create`."""
        response = await self._send(
            "update", self._update_method, self.item_url(entity_id), json=_body(patch)
        )
        return self._parse_entity(response)

    async def delete(self, entity_id: str) -> None:
        """DELETE an entity.  Any 2xx (typically 200 or 204) is success."""
        if self.moderated:
            await self.moderate(entity_id, "delete")
            return
        await self._send("delete", "DELETE", self.item_url(entity_id))

    async def duplicate(self, entity_id: str) -> E | None:
        """POST ``/<endpoint>/<id>/duplicate``.  Returns the copy, if echoed."""
        response = await self._send("duplicate", "POST", f"{self.item_url(entity_id)}/duplicate")
        return self._parse_entity(response)

    async def moderate(self, entity_id: str, action: str) -> E | None:
        """PATCH the collection with ``{<moderation_key>: id, "action": action}``.

        Returns the moderated entity when the response carries one (never for
        ``"delete"``).

        Raises
        ------
        ValueError
            If this resource has no moderation route.
        """
        if self._moderation_key is None:
            raise ValueError(f"{self.resource} does not support moderation")
        response = await self._send(
            "moderate",
            "PATCH",
            self.collection_url,
            json={self._moderation_key: entity_id, "action": action},
        )
        return self._parse_entity(response)

    async def _send(
        self,
        operation: str,
        method: str,
        url: str,
        *,
        json: Any = None,
    ) -> httpx.Response:
        with request_span(operation, resource=self.resource) as span:
            try:
                response = await self._http_client.request(
                    method, url, json=json, headers=self._headers()
                )
            except httpx.HTTPError as exc:
                raise MutationFailure(
                    operation=operation,
                    status_code=None,
                    message=_describe_transport_error(exc),
                ) from exc

            span.set_attribute("http.status_code", response.status_code)
            if not response.is_success:
                raise MutationFailure(
                    operation=operation,
                    status_code=response.status_code,
                    message=safe_error_message(response),
                )
        return response

    def _parse_entity(self, response: httpx.Response) -> E | None:
        if response.status_code == 204 or not response.content:
            return None
        try:
            payload = response.json()
        except ValueError:
            logger.warning("%s mutation returned a non-JSON body", self.resource)
            return None

        record = normalize_entity(payload, keys=(self._item_key, self._envelope))
        if record is None:
            return None
        try:
            return self._model.model_validate(record)
        except ValidationError:
            logger.warning(
                "%s mutation response did not validate as %s",
                self.resource,
                self._model.__name__,
            )
            return None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        return {"Accept": "application/json", **inject_trace_context()}

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()


# ---------------------------------------------------------------------------
# Shape normalisation
# ---------------------------------------------------------------------------


def normalize_collection(
    payload: Any,
    *,
    resource: str,
    envelope: str | None = None,
) -> list[Mapping[str, Any]]:
    """Return the list of raw records inside a collection payload.

    Raises
    ------
    ShapeMismatch
        If *payload* is neither a list nor a mapping holding a list under
        *envelope*, ``items`` or ``data``, or if any record is not an object.
    """
    if isinstance(payload, list):
        records = payload
    elif isinstance(payload, Mapping):
        keys = (envelope, *_GENERIC_COLLECTION_KEYS) if envelope else _GENERIC_COLLECTION_KEYS
        records = None
        for key in keys:
            candidate = payload.get(key)
            if isinstance(candidate, list):
                records = candidate
                break
        if records is None:
            found = ", ".join(sorted(str(k) for k in payload)) or "no keys"
            raise ShapeMismatch(
                resource=resource,
                message=f"expected a list or one of {list(keys)}, got object with {found}",
            )
    else:
        raise ShapeMismatch(
            resource=resource,
            message=f"expected a list or object, got {type(payload).__name__}",
        )

    for index, record in enumerate(records):
        if not isinstance(record, Mapping):
            raise ShapeMismatch(
                resource=resource,
                message=f"record {index} is {type(record).__name__}, expected object",
            )
    return records


def normalize_entity(
    payload: Any,
    *,
    keys: tuple[str | None, ...] = (),
) -> Mapping[str, Any] | None:
    """Return the entity record inside a mutation response, or ``None``."""
    if not isinstance(payload, Mapping):
        return None
    if "id" in payload:
        return payload
    for key in ("data", *keys):
        if key is None:
            continue
        candidate = payload.get(key)
        if isinstance(candidate, Mapping) and "id" in candidate:
            return candidate
    return None


def safe_error_message(response: httpx.Response) -> str:
    """Extract a short, single-line error message from an error response."""
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error_payload = payload.get("error")
        if isinstance(error_payload, dict):
            message = error_payload.get("message")
            if isinstance(message, str) and message.strip():
                return " ".join(message.split())[:_MAX_ERROR_MESSAGE_CHARS]
        elif isinstance(error_payload, str) and error_payload.strip():
            return " ".join(error_payload.split())[:_MAX_ERROR_MESSAGE_CHARS]
        message = payload.get("message") or payload.get("detail")
        if isinstance(message, str) and message.strip():
            return " ".join(message.split())[:_MAX_ERROR_MESSAGE_CHARS]

    text = response.text.strip()
    if text:
        return " ".join(text.split())[:_MAX_ERROR_MESSAGE_CHARS]
    return f"HTTP {response.status_code}"


def _describe_transport_error(exc: httpx.HTTPError) -> str:
    text = str(exc).strip()
    return text or type(exc).__name__


def _body(data: Mapping[str, Any] | BaseModel) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True, exclude_unset=True)
    return dict(data)
