"""Entry point for the FastAPI-powered curation service."""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import settings
from .models import DurationBucket, SortOrder, UploadWindow
from .services.aggregator import SearchAggregator
from .services.youtube import YouTubeClient
from .session import CuratorSession, SessionRegistry

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


class SessionCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    credential: str | None = Field(default=None, alias="apiKey")


class CredentialRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    credential: str = Field(alias="apiKey")


class FilterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sort: SortOrder | None = None
    duration: DurationBucket | None = None
    upload_window: UploadWindow | None = Field(default=None, alias="uploadWindow")


class SearchRequest(FilterRequest):
    query: str


class CurateRequest(BaseModel):
    id: str = Field(min_length=1)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    youtube_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.youtube_api_url),
            timeout=httpx.Timeout(settings.request_timeout_seconds, connect=5.0),
        )
    )
    aggregator = SearchAggregator(
        YouTubeClient(youtube_http_client), page_size=settings.search_page_size
    )
    fastapi_app.state.sessions = SessionRegistry(
        aggregator,
        default_credential=settings.youtube_api_key,
        region_code=settings.default_region_code,
    )

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Search YouTube, page through results and curate a shortlist of links",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_session_registry(fastapi_app: FastAPI) -> SessionRegistry:
    registry = getattr(fastapi_app.state, "sessions", None)
    if not isinstance(registry, SessionRegistry):
        raise RuntimeError("Session registry not initialised")
    return registry


def register_routes(fastapi_app: FastAPI) -> None:
    def _session(session_id: str) -> CuratorSession:
        registry = get_session_registry(fastapi_app)
        try:
            return registry.get(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    async def _payload(request: Request) -> dict[str, Any]:
        try:
            payload = await request.json()
        except json.JSONDecodeError:
            payload = {}
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Invalid payload")
        return payload

    async def _parse(request: Request, model: type[BaseModel]) -> Any:
        payload = await _payload(request)
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            detail = exc.errors(include_url=False, include_context=False)
            raise HTTPException(status_code=400, detail=detail) from exc

    def _state(session: CuratorSession, **extra: Any) -> JSONResponse:
        payload = session.snapshot()
        payload.update(extra)
        return JSONResponse(payload)

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.post("/api/sessions", status_code=201)
    async def create_session(request: Request) -> JSONResponse:
        body = await _parse(request, SessionCreateRequest)
        session = get_session_registry(fastapi_app).create(body.credential)
        return JSONResponse(session.snapshot(), status_code=201)

    @fastapi_app.get("/api/sessions/{session_id}")
    async def session_state(session_id: str) -> JSONResponse:
        return _state(_session(session_id))

    @fastapi_app.delete("/api/sessions/{session_id}", status_code=204)
    async def close_session(session_id: str) -> None:
        try:
            get_session_registry(fastapi_app).close(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    @fastapi_app.put("/api/sessions/{session_id}/credential")
    async def set_credential(request: Request, session_id: str) -> JSONResponse:
        session = _session(session_id)
        body = await _parse(request, CredentialRequest)
        session.search.set_credential(body.credential)
        return _state(session)

    @fastapi_app.post("/api/sessions/{session_id}/search")
    async def run_search(request: Request, session_id: str) -> JSONResponse:
        session = _session(session_id)
        body = await _parse(request, SearchRequest)
        # Applying the selection first must not trigger the automatic
        # re-search; the explicit search below covers it.
        search = session.search
        search.selection = search.selection.with_changes(
            sort=body.sort, duration=body.duration, upload_window=body.upload_window
        )
        await search.search(body.query)
        return _state(session)

    @fastapi_app.patch("/api/sessions/{session_id}/filters")
    async def update_filters(request: Request, session_id: str) -> JSONResponse:
        session = _session(session_id)
        body = await _parse(request, FilterRequest)
        researched = await session.search.update_filters(
            sort=body.sort, duration=body.duration, upload_window=body.upload_window
        )
        return _state(session, researched=researched)

    @fastapi_app.post("/api/sessions/{session_id}/results/more")
    async def load_more(session_id: str) -> JSONResponse:
        session = _session(session_id)
        await session.search.advance_append()
        return _state(session)

    @fastapi_app.post("/api/sessions/{session_id}/results/next")
    async def next_page(session_id: str) -> JSONResponse:
        session = _session(session_id)
        await session.search.advance_replace()
        return _state(session)

    @fastapi_app.post("/api/sessions/{session_id}/curated")
    async def curate(request: Request, session_id: str) -> JSONResponse:
        session = _session(session_id)
        body = await _parse(request, CurateRequest)
        item = session.search.find_result(body.id)
        if item is None:
            raise HTTPException(
                status_code=404, detail=f"Video {body.id} is not in the current results"
            )
        added = session.curated.add(item)
        return JSONResponse({**session.curated.to_payload(), "added": added})

    @fastapi_app.delete("/api/sessions/{session_id}/curated/{video_id}")
    async def uncurate(session_id: str, video_id: str) -> JSONResponse:
        session = _session(session_id)
        removed = session.curated.remove(video_id)
        return JSONResponse({**session.curated.to_payload(), "removed": removed})

    @fastapi_app.delete("/api/sessions/{session_id}/curated")
    async def clear_curated(session_id: str, confirm: bool = False) -> JSONResponse:
        session = _session(session_id)
        if not session.curated.clear(confirmed=confirm):
            raise HTTPException(
                status_code=400,
                detail="Clearing the curated list requires confirm=true",
            )
        return JSONResponse(session.curated.to_payload())

    @fastapi_app.get("/api/sessions/{session_id}/curated/export")
    async def export_curated(session_id: str) -> PlainTextResponse:
        session = _session(session_id)
        return PlainTextResponse(session.curated.export())


app = create_app()
