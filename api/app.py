"""HTTP surface: FastAPI routes over the tracker repositories."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import uvicorn
from fastapi import APIRouter, Body, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from tracker import (
    AppContext,
    TaskFilter,
    TrackerError,
    StoreError,
    UpdateTaskFields,
    load_settings,
    parse_object_id,
    setup_logging,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "smart-task-tracker-api"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "same-origin",
}


def get_context(request: Request) -> AppContext:
    return request.app.state.context


router = APIRouter()


# ── Health ────────────────────────────────────────────────────


@router.get("/", response_class=PlainTextResponse)
def index() -> str:
    return "Smart Task Tracker API is running. Try GET /health or /tasks."


@router.get("/health")
def health() -> dict[str, Any]:
    return {"ok": True, "service": SERVICE_NAME}


# ── Tasks ─────────────────────────────────────────────────────


@router.get("/tasks")
def list_tasks(
    status: str | None = None,
    priority: str | None = None,
    tag: str | None = None,
    q: str | None = None,
    sort: str | None = None,
    direction: str | None = Query(None, alias="dir"),
    ctx: AppContext = Depends(get_context),
) -> list[dict[str, Any]]:
    """List tasks; unknown filter values are ignored rather than rejected."""
    flt = TaskFilter.from_dict(
        {"status": status, "priority": priority, "tag": tag, "q": q, "sort": sort, "dir": direction}
    )
    return [t.to_dict() for t in ctx.tasks.list(flt)]


@router.post("/tasks", status_code=201)
def create_task(
    payload: dict[str, Any] = Body(default={}),
    ctx: AppContext = Depends(get_context),
) -> dict[str, Any]:
    return ctx.tasks.create(payload).to_dict()


@router.patch("/tasks/{task_id}")
def update_task(
    task_id: str,
    payload: dict[str, Any] = Body(default={}),
    ctx: AppContext = Depends(get_context),
) -> dict[str, Any]:
    """Partial update. Moving into or out of ``done`` maintains completedAt."""
    # Reject a bad id before looking at the body.
    parse_object_id(task_id)
    fields = UpdateTaskFields.from_dict(payload)
    return ctx.tasks.update(task_id, fields).to_dict()


@router.delete("/tasks/{task_id}")
def delete_task(task_id: str, ctx: AppContext = Depends(get_context)) -> dict[str, Any]:
    return ctx.tasks.delete(task_id)


# ── Stats ─────────────────────────────────────────────────────


@router.get("/stats/overview")
def stats_overview(ctx: AppContext = Depends(get_context)) -> dict[str, Any]:
    try:
        return ctx.stats.overview().to_dict()
    except Exception as e:
        logger.exception("stats error")
        raise StoreError("stats failed", status_code=500) from e


# ── Focus ─────────────────────────────────────────────────────


@router.post("/focus/start", status_code=201)
def focus_start(
    payload: dict[str, Any] = Body(default={}),
    ctx: AppContext = Depends(get_context),
) -> dict[str, Any]:
    return ctx.focus.start(payload.get("taskId")).to_dict()


@router.post("/focus/stop")
def focus_stop(
    payload: dict[str, Any] = Body(default={}),
    ctx: AppContext = Depends(get_context),
) -> dict[str, Any]:
    return ctx.focus.stop(payload.get("sessionId")).to_dict()


@router.get("/focus/sessions")
def focus_sessions(
    limit: str | None = None,
    ctx: AppContext = Depends(get_context),
) -> list[dict[str, Any]]:
    return [s.to_dict() for s in ctx.focus.list(limit)]


# ── App factory ───────────────────────────────────────────────


async def _tracker_error_handler(request: Request, exc: TrackerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("%s %s -> 400: %s", request.method, request.url.path, exc.errors())
    return JSONResponse({"error": "bad request"}, status_code=400)


async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("%s %s raised %s", request.method, request.url.path, type(exc).__name__)
    return JSONResponse({"error": "bad request"}, status_code=400)


def create_app(context: AppContext | None = None) -> FastAPI:
    """Build the FastAPI app.

    Without a context, settings are loaded and MongoDB is connected right
    here, so a server started with ``--factory`` refuses to come up when the
    store is unreachable. The app closes a context it created on shutdown.
    """
    owned = context is None
    if context is None:
        settings = load_settings()
        setup_logging(settings.log_level)
        context = AppContext.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            if owned:
                context.close()

    app = FastAPI(title="Smart Task Tracker API", version="1.0.0", lifespan=lifespan)
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=context.settings.cors_origin_regex,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info("%s %s", request.method, request.url.path)
        return await call_next(request)

    app.add_exception_handler(TrackerError, _tracker_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)
    app.include_router(router)
    return app


def main() -> None:
    """Entry point: connect, then serve until interrupted."""
    try:
        settings = load_settings()
    except TrackerError as e:
        setup_logging()
        logger.error("Configuration error: %s", e.message)
        raise SystemExit(1)

    setup_logging(settings.log_level)
    try:
        context = AppContext.from_settings(settings)
    except StoreError as e:
        logger.error("%s", e.message)
        raise SystemExit(1)

    app = create_app(context)
    logger.info("API running on http://%s:%d", settings.host, settings.port)
    try:
        uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
    finally:
        context.close()


if __name__ == "__main__":
    main()
