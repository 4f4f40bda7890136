from contextlib import asynccontextmanager
import logging

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, load_settings
from .context import AppContext, build_context
from .exceptions import DomainException, FailureDetail
from .routers import auth, ladders, matches, rankings
from .utils.sentry import init_sentry

logger = logging.getLogger(__name__)


def _failure(status_code: int, message: str, code: str) -> JSONResponse:
    problem = FailureDetail(message=message, code=code, status=status_code)
    return JSONResponse(status_code=status_code, content=problem.model_dump())


# -----------------------------------------------------------------------------
# Error handling
# -----------------------------------------------------------------------------
async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    return _failure(exc.status_code, exc.message, exc.code)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    code = getattr(exc, "code", f"http_{exc.status_code}")
    return _failure(exc.status_code, detail, code)


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = [str(p) for p in error.get("loc", ()) if p != "body"]
        field = ".".join(loc) or "body"
        parts.append(f"{field}: {error.get('msg', 'invalid value')}")
    return "invalid request: " + "; ".join(parts) if parts else "invalid request"


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return _failure(400, _describe_validation_errors(exc), "invalid_request")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception", exc_info=(type(exc), exc, exc.__traceback__))
    return _failure(500, "internal server error", "internal_server_error")


def create_app(
    settings: Settings | None = None, *, context: AppContext | None = None
) -> FastAPI:
    """Build the API.

    ``context`` lets callers (tests, embedding processes) supply an already
    constructed :class:`AppContext`; otherwise one is built from ``settings``
    at startup and disposed at shutdown. Serve with
    ``uvicorn --factory matchpoint.main:create_app``.
    """

    if context is not None:
        settings = context.settings
    settings = settings or load_settings()
    init_sentry()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = context is None
        app.state.context = context or build_context(settings)
        logger.info("API_PREFIX=%r", settings.api_prefix)
        try:
            yield
        finally:
            if owned:
                await app.state.context.dispose()

    app = FastAPI(
        title="Matchpoint Settlement API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Rate limiting
    app.state.limiter = auth.limiter
    app.add_exception_handler(RateLimitExceeded, auth.rate_limit_handler)

    if settings.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.allowed_origins),
            allow_credentials=settings.allow_credentials,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # -------------------------------------------------------------------------
    # Health checks
    # -------------------------------------------------------------------------
    @app.get("/healthz", tags=["health"])  # Unprefixed for reverse proxy / uptime checks
    def root_healthz():
        return {"status": "ok"}

    # -------------------------------------------------------------------------
    # Routers
    # -------------------------------------------------------------------------
    api_router = APIRouter(prefix=settings.api_prefix, tags=["meta"])

    @api_router.get("/healthz", tags=["health"])
    def api_healthz():
        return {"status": "ok"}

    v0_router = APIRouter(prefix="/v0")
    v0_router.include_router(matches.router)
    v0_router.include_router(rankings.router)
    v0_router.include_router(ladders.router)

    api_router.include_router(v0_router)
    app.include_router(api_router)
    return app
