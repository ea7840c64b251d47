"""Utilities for communicating with the YouTube Data API v3."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

import httpx

from ..errors import FetchPhase, MissingCredentialError, UpstreamError
from ..models import SORT_ORDER_PARAMS, SearchFilters
from ..utils import to_rfc3339

logger = logging.getLogger(__name__)

# httpx logs full request URLs, which carry the API key as a query parameter.
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@dataclass(slots=True)
class SearchBatch:
    """Normalized view of one ``search.list`` response."""

    stubs: list[dict[str, Any]]
    next_cursor: str | None = None
    total_results: int | None = None


@dataclass(slots=True)
class VideoDetails:
    """Statistics and content details for a single video."""

    video_id: str
    view_count: str | None = None
    like_count: str | None = None
    duration: str | None = None


@dataclass(slots=True)
class _ErrorInfo:
    message: str
    reasons: list[str] = field(default_factory=list)


class YouTubeClient:
    """Thin wrapper around the two YouTube endpoints used for searching.

    The API key is passed per call and only ever sent as the ``key`` query
    parameter; it is never logged or echoed back in error messages.
    """

    def __init__(self, http_client: httpx.AsyncClient):
        self._client = http_client

    async def search(
        self,
        filters: SearchFilters,
        *,
        credential: str,
        cursor: str | None = None,
        page_size: int = 24,
    ) -> SearchBatch:
        """Run ``search.list`` and return the ordered result stubs."""

        params: dict[str, Any] = {
            "part": "snippet",
            "q": filters.query,
            "type": filters.result_type,
            "order": SORT_ORDER_PARAMS[filters.sort],
            "maxResults": page_size,
            "regionCode": filters.region_code,
            "key": self._require_credential(credential),
        }
        if filters.duration != "any":
            params["videoDuration"] = filters.duration
        if filters.published_after is not None:
            params["publishedAfter"] = to_rfc3339(filters.published_after)
        if filters.published_before is not None:
            params["publishedBefore"] = to_rfc3339(filters.published_before)
        if cursor:
            params["pageToken"] = cursor

        payload = await self._get("/search", params, phase="search")
        items = payload.get("items")
        if items is None:
            items = []
        if not isinstance(items, list):
            raise UpstreamError(
                "Unexpected search response structure", phase="search"
            )

        stubs: list[dict[str, Any]] = []
        for entry in items:
            stub = self._extract_stub(entry)
            if stub is None:
                logger.warning("Skipping search result without a video id")
                continue
            stubs.append(stub)

        next_cursor = payload.get("nextPageToken")
        if not isinstance(next_cursor, str) or not next_cursor:
            next_cursor = None

        return SearchBatch(
            stubs=stubs,
            next_cursor=next_cursor,
            total_results=self._extract_total(payload.get("pageInfo")),
        )

    async def fetch_details(
        self, video_ids: Iterable[str], *, credential: str
    ) -> dict[str, VideoDetails]:
        """Fetch statistics and durations for a batch of videos in one call."""

        ids = [video_id for video_id in video_ids if video_id]
        if not ids:
            return {}
        params = {
            "part": "statistics,contentDetails",
            "id": ",".join(ids),
            "key": self._require_credential(credential),
        }
        payload = await self._get("/videos", params, phase="details")
        items = payload.get("items")
        if items is None:
            items = []
        if not isinstance(items, list):
            raise UpstreamError(
                "Unexpected video details response structure", phase="details"
            )

        details: dict[str, VideoDetails] = {}
        for entry in items:
            if not isinstance(entry, dict):
                continue
            video_id = entry.get("id")
            if not isinstance(video_id, str) or not video_id:
                continue
            statistics = entry.get("statistics")
            if not isinstance(statistics, dict):
                statistics = {}
            content = entry.get("contentDetails")
            if not isinstance(content, dict):
                content = {}
            details[video_id] = VideoDetails(
                video_id=video_id,
                view_count=self._as_text(statistics.get("viewCount")),
                like_count=self._as_text(statistics.get("likeCount")),
                duration=self._as_text(content.get("duration")),
            )
        return details

    async def _get(
        self, path: str, params: dict[str, Any], *, phase: FetchPhase
    ) -> dict[str, Any]:
        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            logger.warning(
                "YouTube %s request failed: %s", phase, exc.__class__.__name__
            )
            raise UpstreamError(
                f"Could not reach YouTube ({exc.__class__.__name__})", phase=phase
            ) from exc

        if response.status_code >= 400:
            info = self._extract_error(response)
            logger.warning(
                "YouTube %s request returned %s: %s",
                phase,
                response.status_code,
                info.message,
            )
            detail = info.message
            if info.reasons:
                detail = f"{detail} ({', '.join(info.reasons)})"
            raise UpstreamError(
                f"YouTube {phase} failed: {detail}",
                phase=phase,
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            logger.warning("Unexpected non-JSON YouTube %s response", phase)
            raise UpstreamError(
                "YouTube returned a non-JSON response", phase=phase
            ) from exc
        if not isinstance(payload, dict):
            raise UpstreamError("Unexpected YouTube response structure", phase=phase)
        return payload

    @staticmethod
    def _require_credential(credential: str | None) -> str:
        if not credential or not credential.strip():
            raise MissingCredentialError()
        return credential.strip()

    @staticmethod
    def _extract_stub(entry: Any) -> dict[str, Any] | None:
        if not isinstance(entry, dict):
            return None
        identifier = entry.get("id")
        video_id = identifier.get("videoId") if isinstance(identifier, dict) else None
        if not isinstance(video_id, str) or not video_id:
            return None
        snippet = entry.get("snippet")
        if not isinstance(snippet, dict):
            snippet = {}
        thumbnails = snippet.get("thumbnails")
        thumbnail = None
        if isinstance(thumbnails, dict):
            for size in ("medium", "high", "default"):
                candidate = thumbnails.get(size)
                if isinstance(candidate, dict) and isinstance(candidate.get("url"), str):
                    thumbnail = candidate["url"]
                    break
        return {
            "id": video_id,
            "title": _text_or_empty(snippet.get("title")),
            "description": _text_or_empty(snippet.get("description")),
            "thumbnail": thumbnail,
            "channel_title": _text_or_empty(snippet.get("channelTitle")),
            "published_at": snippet.get("publishedAt") or None,
        }

    @staticmethod
    def _extract_total(page_info: Any) -> int | None:
        if not isinstance(page_info, dict):
            return None
        value = page_info.get("totalResults")
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _extract_error(response: httpx.Response) -> _ErrorInfo:
        try:
            payload = response.json()
        except ValueError:
            return _ErrorInfo(message=response.reason_phrase or "HTTP error")
        error = payload.get("error") if isinstance(payload, dict) else None
        if not isinstance(error, dict):
            return _ErrorInfo(message=response.reason_phrase or "HTTP error")
        reasons = [
            str(entry.get("reason"))
            for entry in error.get("errors") or []
            if isinstance(entry, dict) and entry.get("reason")
        ]
        message = str(error.get("message") or response.reason_phrase or "HTTP error")
        return _ErrorInfo(message=message, reasons=reasons)

    @staticmethod
    def _as_text(value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None


def _text_or_empty(value: Any) -> str:
    return value if isinstance(value, str) else ""
