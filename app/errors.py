"""Error taxonomy shared by the search and curation layers."""

from __future__ import annotations

from typing import Iterable, Literal

FetchPhase = Literal["search", "details"]


class CuratorError(Exception):
    """Base class for every error surfaced to session callers."""

    code = "curator_error"

    def to_payload(self) -> dict[str, object]:
        return {"code": self.code, "message": str(self)}


class UpstreamError(CuratorError):
    """Either phase of a page fetch failed outright."""

    code = "upstream_error"

    def __init__(
        self,
        message: str,
        *,
        phase: FetchPhase,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.phase = phase
        self.status_code = status_code

    def to_payload(self) -> dict[str, object]:
        payload = super().to_payload()
        payload["phase"] = self.phase
        if self.status_code is not None:
            payload["status"] = self.status_code
        return payload


class PartialDataError(CuratorError):
    """The detail phase omitted identifiers returned by the search phase.

    This is a soft condition: the page is still returned and the affected
    items simply lack statistics and duration.
    """

    code = "partial_data"

    def __init__(self, missing_ids: Iterable[str]) -> None:
        self.missing_ids = tuple(missing_ids)
        super().__init__(
            f"No details returned for {len(self.missing_ids)} video(s): "
            + ", ".join(self.missing_ids)
        )

    def to_payload(self) -> dict[str, object]:
        payload = super().to_payload()
        payload["missing_ids"] = list(self.missing_ids)
        return payload


class EmptyQueryError(CuratorError, ValueError):
    code = "empty_query"

    def __init__(self, message: str = "Search query must not be empty") -> None:
        super().__init__(message)


class MissingCredentialError(CuratorError):
    """No API key is configured for the session."""

    code = "missing_credential"

    def __init__(self, message: str = "A YouTube API key is required to search") -> None:
        super().__init__(message)
