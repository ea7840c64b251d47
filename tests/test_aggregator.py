"""Tests for the two-phase search aggregation."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

import httpx
import pytest

from app.errors import MissingCredentialError, PartialDataError, UpstreamError
from app.models import SearchFilters
from app.services.aggregator import SearchAggregator
from app.services.youtube import YouTubeClient
from conftest import make_search_item, make_video_item

API_KEY = "secret-test-key"


class FakeYouTube:
    """Serve canned search and video payloads while recording requests."""

    def __init__(
        self,
        search_ids: list[str],
        *,
        detail_ids: list[str] | None = None,
        next_cursor: str | None = "CURSOR-2",
        total: int = 1_000_000,
    ) -> None:
        self.search_ids = search_ids
        self.detail_ids = search_ids if detail_ids is None else detail_ids
        self.next_cursor = next_cursor
        self.total = total
        self.requests: list[httpx.Request] = []
        self.search_status = 200
        self.videos_status = 200

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/search"):
            if self.search_status >= 400:
                return httpx.Response(
                    self.search_status,
                    json={
                        "error": {
                            "code": self.search_status,
                            "message": "The request cannot be completed because you have exceeded your quota.",
                            "errors": [{"reason": "quotaExceeded"}],
                        }
                    },
                )
            payload: dict[str, object] = {
                "items": [make_search_item(video_id) for video_id in self.search_ids],
                "pageInfo": {"totalResults": self.total, "resultsPerPage": 24},
            }
            if self.next_cursor:
                payload["nextPageToken"] = self.next_cursor
            return httpx.Response(200, json=payload)
        if request.url.path.endswith("/videos"):
            if self.videos_status >= 400:
                return httpx.Response(self.videos_status, json={"error": {"message": "boom"}})
            requested = request.url.params["id"].split(",")
            # The detail endpoint answers in its own order.
            items = [
                make_video_item(video_id, views=str(1000 + index))
                for index, video_id in enumerate(reversed(requested))
                if video_id in self.detail_ids
            ]
            return httpx.Response(200, json={"items": items})
        return httpx.Response(404)


def build_aggregator(
    handler: Callable[[httpx.Request], httpx.Response],
) -> tuple[httpx.AsyncClient, SearchAggregator]:
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url="https://youtube.example.com/v3",
    )
    return http_client, SearchAggregator(YouTubeClient(http_client), page_size=24)


def filters(**overrides: object) -> SearchFilters:
    data: dict[str, object] = {"query": "tokyo travel 2024"}
    data.update(overrides)
    return SearchFilters(**data)  # type: ignore[arg-type]


@pytest.mark.anyio("asyncio")
async def test_fetch_page_preserves_search_order() -> None:
    """Merged items follow the search phase order, not the detail order."""

    ids = ["c3", "a1", "b2", "z9"]
    fake = FakeYouTube(ids)
    http_client, aggregator = build_aggregator(fake.handler)
    async with http_client:
        page = await aggregator.fetch_page(filters(), credential=API_KEY)

    assert [item.id for item in page.items] == ids
    assert all(item.view_count is not None for item in page.items)
    assert page.next_cursor == "CURSOR-2"
    assert page.total_results == 1_000_000
    assert page.partial_error is None


@pytest.mark.anyio("asyncio")
async def test_fetch_page_batches_detail_lookup() -> None:
    """Details are fetched with a single comma-joined request."""

    fake = FakeYouTube(["a", "b", "c"])
    http_client, aggregator = build_aggregator(fake.handler)
    async with http_client:
        await aggregator.fetch_page(filters(), credential=API_KEY)

    assert fake.paths() == ["/v3/search", "/v3/videos"]
    videos_request = fake.requests[1]
    assert videos_request.url.params["id"] == "a,b,c"
    assert videos_request.url.params["part"] == "statistics,contentDetails"
    assert videos_request.url.params["key"] == API_KEY


@pytest.mark.anyio("asyncio")
async def test_fetch_page_empty_search_skips_detail_phase() -> None:
    fake = FakeYouTube([], next_cursor=None, total=0)
    http_client, aggregator = build_aggregator(fake.handler)
    async with http_client:
        page = await aggregator.fetch_page(filters(), credential=API_KEY)

    assert page.items == []
    assert page.next_cursor is None
    assert fake.paths() == ["/v3/search"]


@pytest.mark.anyio("asyncio")
async def test_fetch_page_with_one_missing_detail() -> None:
    """24 stubs with details for 23 yield one degraded item and no error."""

    ids = [f"vid{index:02d}" for index in range(24)]
    missing = ids[7]
    fake = FakeYouTube(ids, detail_ids=[video_id for video_id in ids if video_id != missing])
    http_client, aggregator = build_aggregator(fake.handler)
    async with http_client:
        page = await aggregator.fetch_page(filters(), credential=API_KEY)

    assert len(page.items) == 24
    populated = [item for item in page.items if item.view_count is not None]
    assert len(populated) == 23
    assert all(item.like_count is not None and item.duration for item in populated)

    degraded = page.items[7]
    assert degraded.id == missing
    assert degraded.view_count is None
    assert degraded.like_count is None
    assert degraded.duration is None
    assert degraded.url == f"https://www.youtube.com/watch?v={missing}"

    assert page.next_cursor is not None
    assert page.missing_detail_ids == [missing]
    assert isinstance(page.partial_error, PartialDataError)
    assert page.partial_error.missing_ids == (missing,)


@pytest.mark.anyio("asyncio")
async def test_search_parameters_follow_filters() -> None:
    fake = FakeYouTube(["a"])
    http_client, aggregator = build_aggregator(fake.handler)
    after = datetime(2024, 3, 24, 12, 0, tzinfo=timezone.utc)
    async with http_client:
        await aggregator.fetch_page(
            filters(sort="recency", duration="long", published_after=after, region_code="jp"),
            "PAGE-TOKEN",
            credential=API_KEY,
        )

    params = fake.requests[0].url.params
    assert params["q"] == "tokyo travel 2024"
    assert params["part"] == "snippet"
    assert params["type"] == "video"
    assert params["order"] == "date"
    assert params["videoDuration"] == "long"
    assert params["publishedAfter"] == "2024-03-24T12:00:00Z"
    assert params["pageToken"] == "PAGE-TOKEN"
    assert params["maxResults"] == "24"
    assert params["regionCode"] == "JP"
    assert params["key"] == API_KEY
    assert "publishedBefore" not in params


@pytest.mark.anyio("asyncio")
async def test_any_duration_is_not_sent_upstream() -> None:
    fake = FakeYouTube(["a"])
    http_client, aggregator = build_aggregator(fake.handler)
    async with http_client:
        await aggregator.fetch_page(filters(sort="view-count"), credential=API_KEY)

    params = fake.requests[0].url.params
    assert "videoDuration" not in params
    assert "publishedAfter" not in params
    assert "pageToken" not in params
    assert params["order"] == "viewCount"


@pytest.mark.anyio("asyncio")
@pytest.mark.parametrize("credential", [None, "", "   "])
async def test_missing_credential_is_rejected_before_any_request(
    credential: str | None,
) -> None:
    fake = FakeYouTube(["a"])
    http_client, aggregator = build_aggregator(fake.handler)
    async with http_client:
        with pytest.raises(MissingCredentialError):
            await aggregator.fetch_page(filters(), credential=credential)

    assert fake.requests == []


@pytest.mark.anyio("asyncio")
async def test_search_failure_raises_upstream_error_without_leaking_key(
    caplog: pytest.LogCaptureFixture,
) -> None:
    fake = FakeYouTube(["a"])
    fake.search_status = 403
    http_client, aggregator = build_aggregator(fake.handler)
    caplog.set_level(logging.DEBUG)
    async with http_client:
        with pytest.raises(UpstreamError) as exc_info:
            await aggregator.fetch_page(filters(), credential=API_KEY)

    error = exc_info.value
    assert error.phase == "search"
    assert error.status_code == 403
    assert "quotaExceeded" in str(error)
    assert API_KEY not in str(error)
    assert API_KEY not in caplog.text
    assert fake.paths() == ["/v3/search"]


@pytest.mark.anyio("asyncio")
async def test_detail_failure_raises_upstream_error() -> None:
    fake = FakeYouTube(["a", "b"])
    fake.videos_status = 500
    http_client, aggregator = build_aggregator(fake.handler)
    async with http_client:
        with pytest.raises(UpstreamError) as exc_info:
            await aggregator.fetch_page(filters(), credential=API_KEY)

    assert exc_info.value.phase == "details"
    assert exc_info.value.status_code == 500


@pytest.mark.anyio("asyncio")
async def test_transport_error_becomes_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    http_client, aggregator = build_aggregator(handler)
    async with http_client:
        with pytest.raises(UpstreamError) as exc_info:
            await aggregator.fetch_page(filters(), credential=API_KEY)

    assert exc_info.value.phase == "search"
    assert exc_info.value.status_code is None


@pytest.mark.anyio("asyncio")
async def test_non_json_response_becomes_upstream_error() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    http_client, aggregator = build_aggregator(handler)
    async with http_client:
        with pytest.raises(UpstreamError):
            await aggregator.fetch_page(filters(), credential=API_KEY)


@pytest.mark.anyio("asyncio")
async def test_stubs_without_snippet_fields_keep_their_place() -> None:
    """Entries without a video id are skipped; sparse snippets are kept."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/search"):
            untitled = make_search_item("untitled")
            del untitled["snippet"]["title"]
            del untitled["snippet"]["publishedAt"]
            return httpx.Response(
                200,
                json={
                    "items": [
                        {"id": {"kind": "youtube#channel", "channelId": "UC1"}},
                        make_search_item("good"),
                        untitled,
                        make_search_item("last"),
                        "garbage",
                    ],
                    "pageInfo": {"totalResults": 3},
                },
            )
        return httpx.Response(
            200,
            json={
                "items": [
                    make_video_item("good"),
                    make_video_item("untitled"),
                    make_video_item("last"),
                ]
            },
        )

    http_client, aggregator = build_aggregator(handler)
    async with http_client:
        page = await aggregator.fetch_page(filters(), credential=API_KEY)

    assert [item.id for item in page.items] == ["good", "untitled", "last"]
    sparse = page.items[1]
    assert sparse.title == ""
    assert sparse.published_at is None
    assert sparse.view_count == 1500
    assert page.next_cursor is None
    assert page.missing_detail_ids == []


@pytest.mark.anyio("asyncio")
async def test_unparseable_stub_fails_the_search_phase() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/search"):
            return httpx.Response(
                200,
                json={
                    "items": [
                        make_search_item("good"),
                        make_search_item("broken", publishedAt="last tuesday"),
                    ]
                },
            )
        return httpx.Response(
            200, json={"items": [make_video_item("good"), make_video_item("broken")]}
        )

    http_client, aggregator = build_aggregator(handler)
    async with http_client:
        with pytest.raises(UpstreamError) as exc_info:
            await aggregator.fetch_page(filters(), credential=API_KEY)

    assert exc_info.value.phase == "search"
    assert "broken" in str(exc_info.value)


@pytest.mark.anyio("asyncio")
async def test_repeated_calls_are_not_cached() -> None:
    fake = FakeYouTube(["a"])
    http_client, aggregator = build_aggregator(fake.handler)
    async with http_client:
        await aggregator.fetch_page(filters(), credential=API_KEY)
        await aggregator.fetch_page(filters(), credential=API_KEY)

    assert fake.paths() == ["/v3/search", "/v3/videos", "/v3/search", "/v3/videos"]
