"""Two-phase search aggregation: search stubs first, then batched details."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from ..errors import MissingCredentialError, UpstreamError
from ..models import ResultItem, ResultPage, SearchFilters
from .youtube import VideoDetails, YouTubeClient

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 24


class SearchAggregator:
    """Produce merged result pages from the search and detail endpoints."""

    def __init__(self, client: YouTubeClient, *, page_size: int = DEFAULT_PAGE_SIZE):
        self._client = client
        self._page_size = page_size

    @property
    def page_size(self) -> int:
        return self._page_size

    async def fetch_page(
        self,
        filters: SearchFilters,
        cursor: str | None = None,
        *,
        credential: str | None,
    ) -> ResultPage:
        """Fetch one page of results and enrich it with per-video details.

        Raises ``MissingCredentialError`` before any request when no key is
        supplied and ``UpstreamError`` when either request fails. Videos the
        detail endpoint does not return keep empty statistics and are listed
        in ``ResultPage.missing_detail_ids``.
        """

        if not credential or not credential.strip():
            raise MissingCredentialError()

        batch = await self._client.search(
            filters,
            credential=credential,
            cursor=cursor,
            page_size=self._page_size,
        )
        if not batch.stubs:
            return ResultPage(
                items=[],
                next_cursor=batch.next_cursor,
                total_results=batch.total_results,
            )

        video_ids = [stub["id"] for stub in batch.stubs]
        details = await self._client.fetch_details(video_ids, credential=credential)

        items: list[ResultItem] = []
        missing: list[str] = []
        for stub in batch.stubs:
            detail = details.get(stub["id"])
            if detail is None:
                missing.append(stub["id"])
            items.append(self._merge(stub, detail))

        if missing:
            logger.warning(
                "Detail lookup returned no data for %s of %s videos",
                len(missing),
                len(video_ids),
            )

        return ResultPage(
            items=items,
            next_cursor=batch.next_cursor,
            total_results=batch.total_results,
            missing_detail_ids=missing,
        )

    @staticmethod
    def _merge(stub: dict[str, object], detail: VideoDetails | None) -> ResultItem:
        data = dict(stub)
        if detail is not None:
            data["view_count"] = _parse_count(detail.view_count)
            data["like_count"] = _parse_count(detail.like_count)
            data["duration"] = detail.duration
        try:
            return ResultItem.model_validate(data)
        except ValidationError as exc:
            logger.warning(
                "Malformed search result %s: %s",
                stub.get("id"),
                exc.errors(include_url=False, include_input=False),
            )
            raise UpstreamError(
                f"Malformed search result {stub.get('id')}", phase="search"
            ) from exc


def _parse_count(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None
