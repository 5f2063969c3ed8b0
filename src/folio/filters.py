"""Filter pipeline: derive the visible subset of a collection.

A :class:`FilterPipeline` holds named criteria, each with a current value.
A criterion at its default (``"all"`` or empty search text) matches
everything; active criteria AND together.  Criteria are evaluated in stage
order (search, categorical, flag) so cheap rejections short-circuit, but the
result does not depend on that order.

:func:`apply` is pure and synchronous.  It keeps the collection's relative
order unless a :class:`SortStage` is supplied.
"""

from __future__ import annotations

import abc
import dataclasses
import enum
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from folio.models import Entity, field_value

logger = logging.getLogger(__name__)

ALL = "all"

FlagValue = bool | Literal["all"]


class Stage(enum.IntEnum):
    """Evaluation order of criterion kinds."""

    SEARCH = 0
    CATEGORICAL = 1
    FLAG = 2


class FilterCriterion(abc.ABC):
    """A named predicate over one field (or several) of an entity."""

    name: str
    value: Any
    stage: Stage

    @abc.abstractmethod
    def default_value(self) -> Any:
        """Value that makes the criterion a no-op."""
        ...

    @abc.abstractmethod
    def coerce(self, value: Any) -> Any:
        """Validate and normalise a value before it is stored.

        Raises ``ValueError`` for values the criterion cannot hold.
        """
        ...

    @abc.abstractmethod
    def matches(self, entity: Entity) -> bool:
        ...

    def is_default(self) -> bool:
        return self.value == self.default_value()


@dataclass
class SearchCriterion(FilterCriterion):
    """Case-insensitive substring search over several fields.

    An entity matches when any of *fields* contains the search text.  A
    missing field never matches but does not exclude the entity on its own.
    List-valued fields (tags, technologies) match on any element.
    """

    name: str
    fields: tuple[str, ...]
    value: str = ""
    stage: Stage = dataclasses.field(default=Stage.SEARCH, init=False)

    def __post_init__(self) -> None:
        if not self.fields:
            raise ValueError(f"search criterion {self.name!r} needs at least one field")
        self.fields = tuple(self.fields)

    def default_value(self) -> str:
        return ""

    def coerce(self, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError(f"{self.name} expects a string, got {type(value).__name__}")
        return value

    def is_default(self) -> bool:
        return not self.value.strip()

    def matches(self, entity: Entity) -> bool:
        needle = self.value.strip().casefold()
        if not needle:
            return True
        for path in self.fields:
            candidate = field_value(entity, path)
            if candidate is None:
                continue
            if isinstance(candidate, (list, tuple)):
                if any(needle in str(item).casefold() for item in candidate if item is not None):
                    return True
            elif needle in str(candidate).casefold():
                return True
        return False


@dataclass
class ChoiceCriterion(FilterCriterion):
    """Equality filter on one field (status, category id, year).

    ``field`` is a dotted path such as ``"category.id"``.  List-valued
    fields match when they contain the value.  Values compare equal to
    their string form so ``year=2024`` matches a ``"2024"`` selection.
    An entity without the field, or referencing an unknown id, is excluded.
    """

    name: str
    field: str
    value: Any = ALL
    case_insensitive: bool = False
    stage: Stage = dataclasses.field(default=Stage.CATEGORICAL, init=False)

    def default_value(self) -> str:
        return ALL

    def coerce(self, value: Any) -> Any:
        if value is None or value == "":
            return ALL
        if isinstance(value, (list, dict, set)):
            raise ValueError(f"{self.name} expects a single value, got {type(value).__name__}")
        return value

    def matches(self, entity: Entity) -> bool:
        if self.value == ALL:
            return True
        actual = field_value(entity, self.field)
        if actual is None:
            return False
        if isinstance(actual, (list, tuple)):
            return any(self._equal(item, self.value) for item in actual)
        return self._equal(actual, self.value)

    def _equal(self, actual: Any, expected: Any) -> bool:
        if actual == expected:
            return True
        if isinstance(actual, bool) or isinstance(expected, bool):
            return False
        left, right = str(actual), str(expected)
        if self.case_insensitive:
            return left.casefold() == right.casefold()
        return left == right


@dataclass
class FlagCriterion(FilterCriterion):
    """Boolean filter: ``True``, ``False`` or ``"all"``.  Missing counts as False."""

    name: str
    field: str
    value: FlagValue = ALL
    stage: Stage = dataclasses.field(default=Stage.FLAG, init=False)

    def default_value(self) -> str:
        return ALL

    def coerce(self, value: Any) -> FlagValue:
        if value is None or value == ALL:
            return ALL
        if isinstance(value, bool):
            return value
        raise ValueError(f"{self.name} expects True, False or 'all', got {value!r}")

    def matches(self, entity: Entity) -> bool:
        if self.value == ALL:
            return True
        return bool(field_value(entity, self.field)) is self.value


@dataclass(frozen=True)
class SortStage:
    """Stable sort applied after filtering.  Entities lacking the field go last."""

    field: str
    descending: bool = False

    def apply(self, entities: Sequence[Entity]) -> tuple[Entity, ...]:
        present: list[tuple[Any, Entity]] = []
        missing: list[Entity] = []
        for entity in entities:
            key = field_value(entity, self.field)
            if key is None:
                missing.append(entity)
            else:
                present.append((key, entity))

        try:
            ordered = sorted(present, key=lambda pair: pair[0], reverse=self.descending)
        except TypeError:
            logger.debug("Mixed types in sort field %r; comparing as strings", self.field)
            ordered = sorted(present, key=lambda pair: str(pair[0]), reverse=self.descending)
        return tuple(entity for _, entity in ordered) + tuple(missing)


def apply(
    collection: Iterable[Entity],
    criteria: Iterable[FilterCriterion],
    sort: SortStage | None = None,
) -> tuple[Entity, ...]:
    """Return the entities of *collection* matching every criterion.

    Deterministic and side-effect free: identical inputs give identical
    output, and the output is always a subset of *collection*.
    """
    active = sorted(
        (criterion for criterion in criteria if not criterion.is_default()),
        key=lambda criterion: criterion.stage,
    )
    if active:
        visible = tuple(
            entity for entity in collection if all(c.matches(entity) for c in active)
        )
    else:
        visible = tuple(collection)
    if sort is not None:
        visible = sort.apply(visible)
    return visible


class FilterPipeline:
    """Ordered, named set of criteria plus an optional sort stage."""

    def __init__(
        self,
        criteria: Iterable[FilterCriterion] = (),
        *,
        sort: SortStage | None = None,
    ) -> None:
        ordered = sorted(criteria, key=lambda criterion: criterion.stage)
        names = [criterion.name for criterion in ordered]
        duplicates = {name for name in names if names.count(name) > 1}
        if duplicates:
            raise ValueError(f"Duplicate filter name(s): {', '.join(sorted(duplicates))}")
        self._criteria: dict[str, FilterCriterion] = {c.name: c for c in ordered}
        self._sort = sort

    @property
    def criteria(self) -> tuple[FilterCriterion, ...]:
        return tuple(self._criteria.values())

    @property
    def sort(self) -> SortStage | None:
        return self._sort

    def get(self, name: str) -> FilterCriterion:
        try:
            return self._criteria[name]
        except KeyError:
            known = ", ".join(self._criteria) or "none"
            raise KeyError(f"Unknown filter {name!r} (known: {known})") from None

    def values(self) -> dict[str, Any]:
        return {name: criterion.value for name, criterion in self._criteria.items()}

    def set_value(self, name: str, value: Any) -> bool:
        """Set the value of criterion *name*.  Returns True if it changed.

        Raises
        ------
        KeyError
            If no criterion is called *name*.
        ValueError
            If *value* is not valid for that criterion.
        """
        criterion = self.get(name)
        coerced = criterion.coerce(value)
        if coerced == criterion.value and type(coerced) is type(criterion.value):
            return False
        criterion.value = coerced
        return True

    def reset(self) -> bool:
        """Return every criterion to its default.  Returns True if any changed."""
        changed = False
        for criterion in self._criteria.values():
            default = criterion.default_value()
            if criterion.value != default:
                criterion.value = default
                changed = True
        return changed

    def apply(self, collection: Iterable[Entity]) -> tuple[Entity, ...]:
        return apply(collection, self._criteria.values(), self._sort)
