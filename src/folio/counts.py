"""Dashboard counters for a listing page.

The admin dashboards show totals above the list (published, draft,
featured) and an "N of M posts" line under the filters.  Totals are taken
over the whole cached collection, not the filtered set.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from folio.models import Entity, field_value


@dataclass(frozen=True)
class ListCounts:
    total: int
    visible: int
    flagged: int = 0
    by_status: Mapping[str, int] = field(default_factory=dict)
    noun: str = "items"

    def status(self, value: str) -> int:
        """Number of entities whose status is *value* (case-insensitive)."""
        return self.by_status.get(value.upper(), 0)

    @property
    def summary(self) -> str:
        return f"{self.visible} of {self.total} {self.noun}"


def count_items(
    items: Iterable[Entity],
    visible: Iterable[Entity],
    *,
    status_field: str | None = "status",
    flag_field: str | None = "featured",
    noun: str = "items",
) -> ListCounts:
    items = tuple(items)
    by_status: Counter[str] = Counter()
    flagged = 0
    for item in items:
        if status_field is not None:
            status = field_value(item, status_field)
            if status is not None:
                by_status[str(status).upper()] += 1
        if flag_field is not None and field_value(item, flag_field) is True:
            flagged += 1
    return ListCounts(
        total=len(items),
        visible=sum(1 for _ in visible),
        flagged=flagged,
        by_status=dict(by_status),
        noun=noun,
    )
