"""
REST API for the contest backend.
Thin wrappers around validation, services and the repository facades. Every response
uses the envelope {success, data?, error?, details?, pagination?, message?}.
"""
from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import structlog
from fastapi import APIRouter, Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.exceptions import HTTPException as StarletteHTTPException

from cfs_backend.auth import Actor, decode_token
from cfs_backend.config import Settings, get_settings
from cfs_backend.errors import ContestError, StoreUnavailableError, Unauthorized, ValidationError
from cfs_backend.logging_config import bind_request_context, configure_logging
from cfs_backend.persistence import (
    ContestRepository,
    Database,
    FallbackContestStore,
    FallbackUserStore,
    SqliteContestStore,
    SqliteUserStore,
    StoreStatus,
    UserRepository,
)
from cfs_backend.persistence.fallback import FALLBACK_CREATOR_ID, build_sports, fallback_user
from cfs_backend.services import ContestService, ProfileService
from cfs_backend.validation import (
    Validated,
    validate_create,
    validate_list_query,
    validate_profile_update,
    validate_sports_query,
    validate_update,
)

logger = structlog.get_logger(__name__)

security = HTTPBearer(auto_error=False)
router = APIRouter()


# ---------- Envelope ----------


def _ok(data: Any = None, **extra: Any) -> dict[str, Any]:
    out: dict[str, Any] = {"success": True}
    if data is not None:
        out["data"] = data
    out.update(extra)
    return out


def _error_response(status_code: int, error: str, details: Any = None) -> JSONResponse:
    body: dict[str, Any] = {"success": False, "error": error}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


def _require_valid(validated: Validated[Any]) -> Any:
    if not validated.ok:
        raise ValidationError(f"Invalid fields: {', '.join(validated.fields())}", details=validated.details())
    return validated.value


# ---------- Dependencies ----------


def _contest_service(request: Request) -> ContestService:
    return request.app.state.contest_service


def _profile_service(request: Request) -> ProfileService:
    return request.app.state.profile_service


def _current_actor(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Actor | None:
    """Actor from the bearer token, or None if no/invalid token."""
    if credentials is None:
        return None
    return decode_token(credentials.credentials, request.app.state.settings)


def _require_actor(actor: Actor | None = Depends(_current_actor)) -> Actor:
    if actor is None:
        raise Unauthorized("Authentication required")
    return actor


# ---------- Contests ----------


@router.get("/contests")
def list_contests(
    request: Request,
    service: ContestService = Depends(_contest_service),
) -> dict[str, Any]:
    """
    List contests, newest first.
    Filters: sport (slug), status, type, minEntryFee, maxEntryFee; paging: page, limit (max 100).
    """
    query = _require_valid(validate_list_query(dict(request.query_params)))
    page = service.list_contests(query)
    return _ok(
        [c.to_dict() for c in page.items],
        pagination=page.pagination.to_dict(),
    )


@router.post("/contests", status_code=201)
def create_contest(
    payload: Any = Body(default=None),
    actor: Actor = Depends(_require_actor),
    service: ContestService = Depends(_contest_service),
) -> dict[str, Any]:
    """Create a contest owned by the caller. Always starts in DRAFT."""
    data = _require_valid(validate_create(payload))
    contest = service.create_draft(data, actor.user_id)
    return _ok(contest.to_dict())


@router.get("/contests/{contest_id}")
def get_contest(
    contest_id: str,
    service: ContestService = Depends(_contest_service),
) -> dict[str, Any]:
    return _ok(service.get(contest_id).to_dict())


@router.patch("/contests/{contest_id}")
def update_contest(
    contest_id: str,
    payload: Any = Body(default=None),
    actor: Actor = Depends(_require_actor),
    service: ContestService = Depends(_contest_service),
) -> dict[str, Any]:
    """Partial update by the creator or a contest admin. A status change is a lifecycle transition."""
    patch = _require_valid(validate_update(payload))
    contest = service.update(contest_id, patch, actor.user_id, actor.roles)
    return _ok(contest.to_dict())


@router.delete("/contests/{contest_id}")
def delete_contest(
    contest_id: str,
    actor: Actor = Depends(_require_actor),
    service: ContestService = Depends(_contest_service),
) -> dict[str, Any]:
    """Delete a DRAFT contest (creator or contest admin)."""
    service.delete(contest_id, actor.user_id, actor.roles)
    return _ok(message="Contest deleted successfully")


# ---------- Sports ----------


@router.get("/sports")
def list_sports(
    request: Request,
    service: ContestService = Depends(_contest_service),
) -> dict[str, Any]:
    """active=true: active only; active=false: inactive only; omitted: all. Ordered by display name."""
    query = _require_valid(validate_sports_query(dict(request.query_params)))
    return _ok([s.to_dict() for s in service.list_sports(query.active)])


# ---------- Current user ----------


@router.get("/me")
def get_me(
    actor: Actor = Depends(_require_actor),
    service: ProfileService = Depends(_profile_service),
) -> dict[str, Any]:
    return _ok(service.get_me(actor.user_id).to_dict())


@router.patch("/me")
def update_me(
    payload: Any = Body(default=None),
    actor: Actor = Depends(_require_actor),
    service: ProfileService = Depends(_profile_service),
) -> dict[str, Any]:
    """Update core user fields and upsert the profile (notification preferences merge)."""
    update = _require_valid(validate_profile_update(payload))
    return _ok(service.update_me(actor.user_id, update).to_dict())


# ---------- Service status ----------


@router.get("/status")
def service_status(request: Request) -> dict[str, Any]:
    settings: Settings = request.app.state.settings
    store_status: StoreStatus = request.app.state.store_status
    return _ok({
        "database": "fallback" if store_status.unavailable else "connected",
        "auth": settings.auth_mode,
        "mockMode": settings.mock_services,
    })


# ---------- App factory ----------


def _install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ContestError)
    async def _contest_error(request: Request, exc: ContestError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning("Request failed", method=request.method, path=request.url.path, error=str(exc))
        else:
            logger.info(
                "Request rejected",
                method=request.method,
                path=request.url.path,
                status_code=exc.status_code,
                error=str(exc),
            )
        return _error_response(exc.status_code, exc.error, exc.details)

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details: dict[str, list[dict[str, str]]] = {}
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ())) or "body"
            details.setdefault(loc, []).append({"rule": str(err.get("type")), "message": str(err.get("msg"))})
        return _error_response(400, ValidationError.error, details)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", method=request.method, path=request.url.path)
        return _error_response(500, "Internal server error")


def create_app(settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    """
    Build the app. The Database is owned here: initialized on startup, shut down on exit.
    A store that cannot be initialized puts the process in fallback mode for good.
    """
    settings = settings or get_settings()
    database = database or Database(settings.database_url)
    store_status = StoreStatus()
    contest_repo = ContestRepository(SqliteContestStore(database), FallbackContestStore(), store_status)
    user_repo = UserRepository(SqliteUserStore(database), FallbackUserStore(), store_status)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        configure_logging(settings.log_level)
        demo_users = [fallback_user(FALLBACK_CREATOR_ID)] if settings.seed_demo_user else None
        try:
            database.init(sports=build_sports(), users=demo_users)
        except StoreUnavailableError as exc:
            store_status.mark_unavailable(str(exc))
        yield
        database.shutdown()

    app = FastAPI(
        title="CFS Contest API",
        description="Contest lifecycle, sports and profile endpoints with mock-data fallback",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database
    app.state.store_status = store_status
    app.state.contest_service = ContestService(contest_repo)
    app.state.profile_service = ProfileService(user_repo)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next: Any) -> Any:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        bind_request_context(request_id)
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    _install_exception_handlers(app)
    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the default app with uvicorn."""
    import uvicorn

    uvicorn.run("cfs_backend.api:app", host="0.0.0.0", port=8000)
