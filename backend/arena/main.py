import logging

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import sentry_sdk
from slowapi.errors import RateLimitExceeded

from .config import API_PREFIX, allow_credentials, load_allowed_origins
from .exceptions import DomainException, ProblemDetail
from .routers import auth, matches, quick_match, tournaments
from .utils.sentry import init_sentry

logger = logging.getLogger(__name__)

SENTRY_ACTIVE = init_sentry()

# Refuse to start without explicit origins or a usable JWT secret.
ALLOWED_ORIGINS = load_allowed_origins()
ALLOW_CREDENTIALS = allow_credentials()
auth.get_jwt_secret()

app = FastAPI(
    title="Arena Scoreboard API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# Score writes are rate limited per client IP
app.state.limiter = auth.limiter
app.add_exception_handler(RateLimitExceeded, auth.rate_limit_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger.info("API_PREFIX=%r origins=%s", API_PREFIX, ",".join(ALLOWED_ORIGINS))


def _problem_response(problem: ProblemDetail) -> JSONResponse:
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(),
        media_type="application/problem+json",
    )


@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    return _problem_response(
        ProblemDetail(
            type=exc.type,
            title=exc.title,
            detail=exc.detail,
            status=exc.status_code,
            code=exc.code,
            instance=request.url.path,
        )
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _problem_response(
        ProblemDetail(
            title=detail,
            detail=detail,
            status=exc.status_code,
            code=getattr(exc, "code", f"http_{exc.status_code}"),
            instance=request.url.path,
        )
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception", exc_info=(type(exc), exc, exc.__traceback__))
    return _problem_response(
        ProblemDetail(
            title="Internal Server Error",
            detail=str(exc),
            status=500,
            code="internal_server_error",
        )
    )


@app.get("/healthz", tags=["health"])  # unprefixed, for the reverse proxy
def root_healthz():
    return {"status": "ok"}


api_router = APIRouter(prefix=API_PREFIX, tags=["meta"])


@api_router.get("/healthz", tags=["health"])
def api_healthz():
    return {"status": "ok"}


@api_router.post("/sentry-test", tags=["health"])
def sentry_test_check():
    if not SENTRY_ACTIVE:
        raise HTTPException(status_code=400, detail="Sentry is not configured (SENTRY_DSN missing)")
    event_id = sentry_sdk.capture_message("Sentry self-test trigger", level="info")
    return {"status": "sent", "eventId": str(event_id)}


v0_router = APIRouter(prefix="/v0")
for module in (tournaments, matches, quick_match):
    v0_router.include_router(module.router)

api_router.include_router(v0_router)
app.include_router(api_router)
