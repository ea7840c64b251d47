"""Ordered, identifier-deduplicated shortlist of videos."""

from __future__ import annotations

import logging
from typing import Iterator

from .models import ResultItem

logger = logging.getLogger(__name__)


class CuratedList:
    """A list of videos kept in insertion order with unique identifiers.

    The list is independent from search state: items stay curated even when
    they scroll out of the current result page.
    """

    def __init__(self) -> None:
        self._items: dict[str, ResultItem] = {}

    def add(self, item: ResultItem) -> bool:
        """Append ``item`` unless a video with the same id is already listed."""

        if item.id in self._items:
            return False
        self._items[item.id] = item
        return True

    def remove(self, video_id: str) -> bool:
        return self._items.pop(video_id, None) is not None

    def clear(self, *, confirmed: bool) -> bool:
        """Empty the list, but only when the caller confirmed the action."""

        if not confirmed:
            return False
        if self._items:
            logger.info("Clearing %s curated videos", len(self._items))
        self._items.clear()
        return True

    def export(self) -> str:
        """Return the canonical URLs in curated order, one per line."""

        return "\n".join(item.url for item in self._items.values())

    @property
    def ids(self) -> list[str]:
        return list(self._items)

    def items(self) -> list[ResultItem]:
        return list(self._items.values())

    def to_payload(self) -> dict[str, object]:
        return {
            "count": len(self._items),
            "items": [item.to_card() for item in self._items.values()],
        }

    def __contains__(self, value: object) -> bool:
        if isinstance(value, ResultItem):
            return value.id in self._items
        return value in self._items

    def __iter__(self) -> Iterator[ResultItem]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)
