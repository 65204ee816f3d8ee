# src/rentfolio/services/query.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Literal, Sequence

from pydantic import BaseModel, ConfigDict, Field

from rentfolio.adapters.config import config
from rentfolio.domain.analysis import AnalysisStatus, SavedAnalysis, as_utc

SortBy = Literal["created_at", "updated_at", "property_value", "title"]
SortOrder = Literal["asc", "desc"]


class AnalysisQuery(BaseModel):
    """
    Filters, ordering and paging for saved-analysis listings.

    Every filter left as None imposes no constraint. `tags=[]` is a filter
    that nothing satisfies, unlike `tags=None`.
    """
    model_config = ConfigDict(extra="ignore")

    search: str | None = None
    status: AnalysisStatus | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    min_value: float | None = None
    max_value: float | None = None
    bedrooms: int | None = None
    bathrooms: int | None = None
    tags: list[str] | None = None

    sort_by: SortBy = "updated_at"
    sort_order: SortOrder = "desc"

    page: int = Field(default=1, ge=1)
    page_size: int = Field(default_factory=lambda: config.DEFAULT_PAGE_SIZE, ge=1)


@dataclass(frozen=True)
class AnalysisPage:
    analyses: list[SavedAnalysis]
    total: int
    page: int
    page_size: int
    has_more: bool


def _predicates(q: AnalysisQuery) -> list[Callable[[SavedAnalysis], bool]]:
    preds: list[Callable[[SavedAnalysis], bool]] = []

    if q.search:
        needle = q.search.lower()
        preds.append(
            lambda a: needle in a.title.lower() or needle in a.property.address.lower()
        )

    if q.status is not None:
        preds.append(lambda a: a.metadata.status == q.status)

    if q.date_from is not None:
        lo = as_utc(q.date_from)
        preds.append(lambda a: a.metadata.created_at >= lo)

    if q.date_to is not None:
        hi = as_utc(q.date_to)
        preds.append(lambda a: a.metadata.created_at <= hi)

    if q.min_value is not None:
        preds.append(lambda a: a.property.value_clp >= q.min_value)

    if q.max_value is not None:
        preds.append(lambda a: a.property.value_clp <= q.max_value)

    if q.bedrooms is not None:
        preds.append(lambda a: a.property.bedrooms == q.bedrooms)

    if q.bathrooms is not None:
        preds.append(lambda a: a.property.bathrooms == q.bathrooms)

    if q.tags is not None:
        wanted = set(q.tags)
        # empty set intersects nothing
        preds.append(lambda a: bool(wanted.intersection(a.metadata.tags or ())))

    return preds


_SORT_KEYS: dict[str, Callable[[SavedAnalysis], Any]] = {
    "created_at": lambda a: a.metadata.created_at,
    "updated_at": lambda a: a.metadata.updated_at,
    "property_value": lambda a: a.property.value_clp,
    "title": lambda a: a.title,
}


def filter_analyses(records: Sequence[SavedAnalysis], q: AnalysisQuery) -> list[SavedAnalysis]:
    preds = _predicates(q)
    return [r for r in records if all(p(r) for p in preds)]


def sort_analyses(records: Sequence[SavedAnalysis], q: AnalysisQuery) -> list[SavedAnalysis]:
    # sorted() is stable in both directions: equal keys keep input order
    return sorted(records, key=_SORT_KEYS[q.sort_by], reverse=q.sort_order == "desc")


def query_analyses(records: Sequence[SavedAnalysis], q: AnalysisQuery | None = None) -> AnalysisPage:
    q = q or AnalysisQuery()

    matched = sort_analyses(filter_analyses(records, q), q)
    total = len(matched)

    start = (q.page - 1) * q.page_size
    end = q.page * q.page_size

    return AnalysisPage(
        analyses=matched[start:end],
        total=total,
        page=q.page,
        page_size=q.page_size,
        has_more=end < total,
    )
