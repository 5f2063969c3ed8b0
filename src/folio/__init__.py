"""folio: list-view engine for the portfolio CMS REST API.

One :class:`ListView` per listing page: cached fetch with stale-response
protection, a composable filter pipeline and a clamped pagination window.
"""

from __future__ import annotations

from folio.cache import DataCache
from folio.client import ResourceClient
from folio.config import ConfigError, FolioConfig, load_config
from folio.counts import ListCounts, count_items
from folio.errors import FetchFailure, FolioError, MutationFailure, ShapeMismatch
from folio.filters import (
    ALL,
    ChoiceCriterion,
    FilterPipeline,
    FlagCriterion,
    SearchCriterion,
    SortStage,
)
from folio.listview import ListView
from folio.pagination import PaginationWindow
from folio.runtime import setup
from folio.views import PRESETS, create_list_view

__all__ = [
    "ALL",
    "ChoiceCriterion",
    "ConfigError",
    "DataCache",
    "FetchFailure",
    "FilterPipeline",
    "FlagCriterion",
    "FolioConfig",
    "FolioError",
    "ListCounts",
    "ListView",
    "MutationFailure",
    "PRESETS",
    "PaginationWindow",
    "ResourceClient",
    "SearchCriterion",
    "ShapeMismatch",
    "SortStage",
    "count_items",
    "create_list_view",
    "load_config",
    "setup",
]
