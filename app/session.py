"""Per-session search state: active query, filters, results and cursor."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Protocol

from .curation import CuratedList
from .errors import CuratorError, EmptyQueryError, MissingCredentialError
from .models import (
    DurationBucket,
    FilterSelection,
    ResultItem,
    ResultPage,
    SearchFilters,
    SortOrder,
    UploadWindow,
)

logger = logging.getLogger(__name__)


class PageFetcher(Protocol):
    async def fetch_page(
        self,
        filters: SearchFilters,
        cursor: str | None = None,
        *,
        credential: str | None,
    ) -> ResultPage: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SearchSession:
    """Owns the query session and the two pagination strategies.

    Every fetch is tagged with a generation number; a response that arrives
    after a newer fetch was started is dropped so overlapping requests can
    never overwrite fresher state. Fetch failures are stored in ``error``
    and never raised to the caller.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        *,
        credential: str | None = None,
        region_code: str = "KR",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._fetcher = fetcher
        self._clock = clock
        self.credential: str | None = None
        self.region_code = region_code
        self.selection = FilterSelection()
        self.query: str | None = None
        self._submitted_query: str | None = None
        self.filters: SearchFilters | None = None
        self.results: list[ResultItem] = []
        self.cursor: str | None = None
        self.total_results: int | None = None
        self.missing_detail_ids: list[str] = []
        self.error: CuratorError | None = None
        self.has_searched = False
        self.scroll_to_top = False
        self._generation = 0
        self._in_flight = 0
        self.set_credential(credential)

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def credential_required(self) -> bool:
        return isinstance(self.error, MissingCredentialError)

    def set_credential(self, credential: str | None) -> None:
        cleaned = (credential or "").strip()
        self.credential = cleaned or None
        if self.credential and self.credential_required:
            self.error = None

    async def search(self, query: str | None = None) -> bool:
        """Start a fresh search, replacing results, cursor and error state.

        ``query`` defaults to the text of the previous search. Returns True
        when the results were replaced. ``query`` in the snapshot only
        changes once the results for it are in.
        """

        text = (self._submitted_query if query is None else query) or ""
        if not text.strip():
            self.error = EmptyQueryError()
            return False
        if not self.credential:
            self.error = MissingCredentialError()
            return False

        submitted = text.strip()
        self._submitted_query = submitted
        filters = SearchFilters.build(
            submitted,
            self.selection,
            region_code=self.region_code,
            now=self._clock(),
        )
        current, page = await self._run(filters, None)
        if not current:
            return False
        if page is None:
            # A key rejected before any request does not count as a search.
            if not isinstance(self.error, MissingCredentialError):
                self.has_searched = True
            return False

        self.has_searched = True
        self.query = submitted
        self.filters = filters
        self.results = list(page.items)
        self.cursor = page.next_cursor
        self.total_results = page.total_results
        self.missing_detail_ids = list(page.missing_detail_ids)
        self.scroll_to_top = False
        return True

    async def advance_append(self) -> bool:
        """Load the next page and append it to the visible results."""

        return await self._advance(replace=False)

    async def advance_replace(self) -> bool:
        """Load the next page in place of the visible results.

        Returns True when the caller should scroll the view back to the top.
        """

        return await self._advance(replace=True)

    async def update_filters(
        self,
        *,
        sort: SortOrder | None = None,
        duration: DurationBucket | None = None,
        upload_window: UploadWindow | None = None,
    ) -> bool:
        """Store a new filter selection and re-run the search if one happened.

        Before the first search the selection is only stored. Returns True
        when a re-search was issued.
        """

        selection = self.selection.with_changes(
            sort=sort, duration=duration, upload_window=upload_window
        )
        if selection == self.selection:
            return False
        self.selection = selection
        if not self.has_searched:
            return False
        await self.search(self._submitted_query)
        return True

    def find_result(self, video_id: str) -> ResultItem | None:
        for item in self.results:
            if item.id == video_id:
                return item
        return None

    def snapshot(self) -> dict[str, object]:
        """Return a JSON-ready view of the session state without the key."""

        return {
            "query": self.query,
            "filters": self.selection.model_dump(),
            "results": [item.to_card() for item in self.results],
            "result_count": len(self.results),
            "total_results": self.total_results,
            "has_more": bool(self.cursor),
            "missing_detail_ids": list(self.missing_detail_ids),
            "has_searched": self.has_searched,
            "loading": self.loading,
            "scroll_to_top": self.scroll_to_top,
            "error": self.error.to_payload() if self.error else None,
            "credential_configured": bool(self.credential),
            "credential_required": self.credential_required,
        }

    async def _advance(self, *, replace: bool) -> bool:
        if not self.cursor or self.filters is None:
            return False
        current, page = await self._run(self.filters, self.cursor)
        if not current or page is None:
            return False

        if replace:
            self.results = list(page.items)
            self.missing_detail_ids = list(page.missing_detail_ids)
        else:
            # Pages are concatenated as returned; duplicates across pages
            # are kept.
            self.results = [*self.results, *page.items]
            self.missing_detail_ids = [
                *self.missing_detail_ids,
                *page.missing_detail_ids,
            ]
        self.cursor = page.next_cursor
        if page.total_results is not None:
            self.total_results = page.total_results
        self.scroll_to_top = replace
        return replace

    async def _run(
        self, filters: SearchFilters, cursor: str | None
    ) -> tuple[bool, ResultPage | None]:
        """Fetch a page; return whether it is still current and the page."""

        self._generation += 1
        generation = self._generation
        self._in_flight += 1
        try:
            page = await self._fetcher.fetch_page(
                filters, cursor, credential=self.credential
            )
        except CuratorError as exc:
            if generation != self._generation:
                logger.debug("Ignoring failure from superseded request %s", generation)
                return False, None
            logger.info("Search request failed (%s): %s", exc.code, exc)
            self.error = exc
            return True, None
        finally:
            self._in_flight -= 1

        if generation != self._generation:
            logger.debug("Discarding stale response for request %s", generation)
            return False, None
        self.error = None
        return True, page


@dataclass(slots=True)
class CuratorSession:
    """Everything owned by one user session."""

    id: str
    search: SearchSession
    curated: CuratedList = field(default_factory=CuratedList)

    def snapshot(self) -> dict[str, object]:
        return {
            "id": self.id,
            "search": self.search.snapshot(),
            "curated": self.curated.to_payload(),
        }


class SessionRegistry:
    """In-memory store of live sessions keyed by an opaque id."""

    def __init__(
        self,
        fetcher: PageFetcher,
        *,
        default_credential: str | None = None,
        region_code: str = "KR",
    ) -> None:
        self._fetcher = fetcher
        self._default_credential = default_credential
        self._region_code = region_code
        self._sessions: dict[str, CuratorSession] = {}

    def create(self, credential: str | None = None) -> CuratorSession:
        session_id = secrets.token_urlsafe(12)
        search = SearchSession(
            self._fetcher,
            credential=(credential or "").strip() or self._default_credential,
            region_code=self._region_code,
        )
        session = CuratorSession(id=session_id, search=search)
        self._sessions[session_id] = session
        logger.info("Started session %s", session_id)
        return session

    def get(self, session_id: str) -> CuratorSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise KeyError(f"Unknown session: {session_id}") from None

    def close(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is None:
            raise KeyError(f"Unknown session: {session_id}")
        logger.info("Closed session %s", session_id)

    def __len__(self) -> int:
        return len(self._sessions)
