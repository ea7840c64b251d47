"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# ``app`` sits at the project root; make it importable without an editable
# install.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


def make_search_item(video_id: str, **snippet: object) -> dict:
    """Return a ``search.list`` entry in the upstream wire format."""

    return {
        "kind": "youtube#searchResult",
        "id": {"kind": "youtube#video", "videoId": video_id},
        "snippet": {
            "title": snippet.get("title", f"Video {video_id}"),
            "description": snippet.get("description", f"About {video_id}"),
            "channelTitle": snippet.get("channelTitle", "Travel Channel"),
            "publishedAt": snippet.get("publishedAt", "2024-03-01T09:00:00Z"),
            "thumbnails": {
                "medium": {"url": f"https://i.ytimg.com/vi/{video_id}/mqdefault.jpg"}
            },
        },
    }


def make_video_item(
    video_id: str, *, views: str = "1500", likes: str | None = "120", duration: str = "PT4M13S"
) -> dict:
    """Return a ``videos.list`` entry in the upstream wire format."""

    statistics = {"viewCount": views}
    if likes is not None:
        statistics["likeCount"] = likes
    return {
        "id": video_id,
        "statistics": statistics,
        "contentDetails": {"duration": duration},
    }


FIXED_NOW = datetime(2024, 3, 31, 12, 0, tzinfo=timezone.utc)
