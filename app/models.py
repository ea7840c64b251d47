"""Pydantic models describing search filters, results and pages."""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from .errors import EmptyQueryError, PartialDataError
from .utils import format_duration, format_view_count, parse_duration_seconds

SortOrder = Literal["relevance", "recency", "view-count", "rating"]
DurationBucket = Literal["any", "short", "medium", "long"]
UploadWindow = Literal["any", "today", "week", "month", "year"]

# Values accepted by the upstream ``order`` parameter.
SORT_ORDER_PARAMS: dict[str, str] = {
    "relevance": "relevance",
    "recency": "date",
    "view-count": "viewCount",
    "rating": "rating",
}

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"


def _subtract_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 - months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def published_after(window: UploadWindow, now: datetime | None = None) -> datetime | None:
    """Return the lower publish-time bound for a relative upload window."""

    if window == "any":
        return None
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    if window == "today":
        return current - timedelta(days=1)
    if window == "week":
        return current - timedelta(days=7)
    if window == "month":
        return _subtract_months(current, 1)
    if window == "year":
        return _subtract_months(current, 12)
    raise ValueError(f"Unknown upload window: {window}")


class FilterSelection(BaseModel):
    """The filter controls currently chosen in a session."""

    model_config = ConfigDict(frozen=True)

    sort: SortOrder = "relevance"
    duration: DurationBucket = "any"
    upload_window: UploadWindow = "any"

    def with_changes(self, **changes: Any) -> "FilterSelection":
        """Return a validated copy with the supplied fields replaced."""

        cleaned = {key: value for key, value in changes.items() if value is not None}
        return FilterSelection.model_validate({**self.model_dump(), **cleaned})


class SearchFilters(BaseModel):
    """Immutable parameters for one search invocation."""

    model_config = ConfigDict(frozen=True)

    query: str
    sort: SortOrder = "relevance"
    duration: DurationBucket = "any"
    published_after: datetime | None = None
    published_before: datetime | None = None
    result_type: Literal["video"] = "video"
    region_code: str = "KR"

    @field_validator("query")
    @classmethod
    def _require_query(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Search query must not be empty")
        return stripped

    @field_validator("region_code")
    @classmethod
    def _normalise_region(cls, value: str) -> str:
        return value.strip().upper()

    @classmethod
    def build(
        cls,
        query: str,
        selection: FilterSelection,
        *,
        region_code: str,
        now: datetime | None = None,
    ) -> "SearchFilters":
        """Combine query text and a filter selection into search filters."""

        if not (query or "").strip():
            raise EmptyQueryError()
        return cls(
            query=query,
            sort=selection.sort,
            duration=selection.duration,
            published_after=published_after(selection.upload_window, now),
            region_code=region_code,
        )


class ResultItem(BaseModel):
    """A single catalog entry after merging search and detail data.

    Items compare equal by identifier so the same video can live in both the
    result list and the curated list without aliasing.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    title: str = ""
    description: str = ""
    thumbnail: str | None = None
    channel_title: str = ""
    published_at: datetime | None = None
    view_count: int | None = None
    like_count: int | None = None
    duration: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def url(self) -> str:
        return WATCH_URL.format(video_id=self.id)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ResultItem):
            return self.id == other.id
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.id)

    def to_card(self) -> dict[str, object]:
        """Return the JSON payload used by result and curated list views."""

        card = self.model_dump(mode="json")
        card["duration_seconds"] = parse_duration_seconds(self.duration)
        card["duration_label"] = format_duration(self.duration)
        card["view_count_label"] = format_view_count(self.view_count)
        card["like_count_label"] = (
            format_view_count(self.like_count) if self.like_count is not None else None
        )
        return card


class ResultPage(BaseModel):
    """One merged page of results in upstream order."""

    items: list[ResultItem] = Field(default_factory=list)
    next_cursor: str | None = None
    total_results: int | None = None
    missing_detail_ids: list[str] = Field(default_factory=list)

    @property
    def partial_error(self) -> PartialDataError | None:
        if not self.missing_detail_ids:
            return None
        return PartialDataError(self.missing_detail_ids)

