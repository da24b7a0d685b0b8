"""
FastAPI application factory for the bhajan signup API.

Usage:
    python -m api.app                    # Dev server on port 3000
    APP_DB_PATH=/data/bhajans.sqlite python -m api.app

OpenAPI docs available at http://localhost:3000/docs after starting.

Routes:
    GET  /health                                  liveness + vocabulary
    GET  /api/test-connection                     datastore connectivity probe
    POST /api/bhajans                             catalog listing
    POST /api/bhajan-signups                      signup listing
    POST /api/bhajan-signup/create                signup creation
    GET  /api/bhajan-signups/deity-distribution   signed-up count per deity
    GET  /api/bhajan-signups/tempo-distribution   signed-up count per tempo

Error bodies are rendered from utils.errors.ApiError.to_dict() by the
exception handlers registered in create_app().
"""

import json
import logging
import math
import sqlite3
import threading
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.database import get_db, get_db_path, get_vocabulary
from api.models import ErrorResponse, HealthResponse, request_schemas
from api.routes import bhajans, signups
from utils.config import AppConfig
from utils.database import query_to_dicts
from utils.errors import ApiError, InvalidRequestFormat, UnknownError
from utils.query import SIGNUPS_TABLE, quote_identifier
from utils.vocabulary import Vocabulary, load_vocabulary

# ── Configuration ─────────────────────────────────────────────────────────────
_cfg = AppConfig.from_env()

# ── Structured JSON logging ───────────────────────────────────────────────────


class _JsonFormatter(logging.Formatter):
    """Emit log records as newline-delimited JSON."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Merge extra fields added via logger.info("...", extra={...})
        for key in ("method", "path", "status", "duration_ms", "request_id",
                    "code"):
            if hasattr(record, key):
                data[key] = getattr(record, key)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


_logger = logging.getLogger("bhajan_api")
_handler = logging.StreamHandler()
if _cfg.log_format == "json":
    _handler.setFormatter(_JsonFormatter())
else:
    _handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    )
logging.basicConfig(handlers=[_handler], level=logging.INFO, force=True)

# ── Rate limiting state ───────────────────────────────────────────────────────
# One fixed window shared by every client.
_rate_lock = threading.Lock()
_rate_window: dict[str, float] = {"start": 0.0, "count": 0}


def _reset_rate_limiter() -> None:
    """Start a fresh window (used by tests)."""
    with _rate_lock:
        _rate_window["start"] = 0.0
        _rate_window["count"] = 0


def _check_rate_limit(now: float) -> int | None:
    """Count one request; return seconds until the window resets if over the limit."""
    window = _cfg.rate_limit_window
    with _rate_lock:
        if now - _rate_window["start"] >= window:
            _rate_window["start"] = now
            _rate_window["count"] = 0
        if _rate_window["count"] >= _cfg.rate_limit_max:
            return max(1, math.ceil(_rate_window["start"] + window - now))
        _rate_window["count"] += 1
    return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Warn at startup when the database file is missing."""
    db_path = get_db_path()
    _logger.info("Database: %s", db_path)
    if not db_path.exists():
        _logger.warning(
            "Database not found at %s. Run 'python main.py --init-db' first.",
            db_path,
        )
    yield


def _error_response(exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(db_path: Path | None = None,
               vocabulary: Vocabulary | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        db_path: Override the database path (useful for testing).
        vocabulary: Override the deity/tempo/status vocabulary. Defaults to
            APP_VOCABULARY_PATH when set, else the built-in vocabulary.

    Returns:
        Configured FastAPI application instance.
    """
    if db_path is not None:
        import api.database as _db_mod
        _db_mod._DB_PATH = Path(db_path)

    app = FastAPI(
        title="Bhajan Signup API",
        summary="Signups, catalog search and distribution reports for bhajan sessions.",
        description=(
            "## Bhajan Signup API\n\n"
            "Singers sign up to offer a bhajan on a given date; coordinators "
            "browse signups, search the bhajan catalog and review how the "
            "signed-up offerings spread across deities and tempos.\n\n"
            "### Conventions\n"
            "- List endpoints take a JSON body `{filters?, pagination?, sort?}`.\n"
            "- `pageSize` is at most 100.\n"
            "- `tempo` and `diety` are returned as `{value, icon}`.\n"
            "- Errors carry a machine-readable `code`.\n\n"
            "### Rate limits\n"
            f"- {_cfg.rate_limit_max} requests per {_cfg.rate_limit_window} "
            "seconds, shared by all clients. `/health` is exempt.\n\n"
            "Returns `429 Too Many Requests` with `Retry-After` when exceeded."
        ),
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {
                "name": "signups",
                "description": "List, create and summarize bhajan signups.",
            },
            {
                "name": "bhajans",
                "description": "Search the bhajan catalog.",
            },
            {
                "name": "meta",
                "description": "Health check and datastore connectivity.",
            },
        ],
    )
    app.state.vocabulary = (
        vocabulary if vocabulary is not None
        else load_vocabulary(_cfg.vocabulary_path)
    )

    # ── CORS middleware ───────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cfg.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # ── Request logging + rate limiting middleware ────────────────────────────

    @app.middleware("http")
    async def log_and_rate_limit(request: Request, call_next):
        """Log each request and enforce the global rate limit."""
        request_id = str(uuid.uuid4())[:8]
        start = time.monotonic()
        path = request.url.path

        # Health check is not rate limited
        if path == "/health":
            return await call_next(request)

        retry_after = _check_rate_limit(time.time())
        if retry_after is not None:
            _logger.warning(
                "rate_limited path=%s limit=%d window=%ds",
                path, _cfg.rate_limit_max, _cfg.rate_limit_window,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Too many requests, please try again later",
                    "code": "RateLimited",
                    "status_code": 429,
                },
                headers={"Retry-After": str(retry_after)},
            )

        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        if _cfg.log_format == "json":
            _logger.info(
                "request",
                extra={
                    "method": request.method,
                    "path": path,
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 1),
                    "request_id": request_id,
                },
            )
        else:
            _logger.info(
                "method=%s path=%s status=%d duration_ms=%.1f rid=%s",
                request.method, path, response.status_code, duration_ms,
                request_id,
            )
        return response

    # ── Security headers ──────────────────────────────────────────────────────

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        """Add Content-Security-Policy, X-Content-Type-Options, and X-Frame-Options."""
        response = await call_next(request)
        # The Swagger UI at /docs loads its assets from cdn.jsdelivr.net.
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'self' cdn.jsdelivr.net 'unsafe-inline'; "
            "style-src 'self' cdn.jsdelivr.net 'unsafe-inline'; "
            "img-src 'self' data: fastapi.tiangolo.com; "
            "connect-src 'self';"
        )
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    # ── Error handling ────────────────────────────────────────────────────────

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        """Render a deliberate API error as its JSON body."""
        if exc.status_code >= 500:
            _logger.error("%s %s: %s (%s)", exc.code, request.url.path,
                          exc.message, exc.details)
        else:
            _logger.info("%s %s: %s", exc.code, request.url.path, exc.message)
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request,
                                         exc: RequestValidationError):
        """Malformed JSON or parameters the framework itself rejected."""
        errors = exc.errors()
        detail = errors[0].get("msg") if errors else None
        return _error_response(InvalidRequestFormat(detail))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch unhandled exceptions and return JSON instead of HTML traceback."""
        _logger.exception("unhandled error path=%s", request.url.path)
        return _error_response(UnknownError())

    # ── Health check ──────────────────────────────────────────────────────────

    @app.get(
        "/health",
        tags=["meta"],
        summary="Health check",
        responses={200: {"model": HealthResponse}},
    )
    def health(vocab: Vocabulary = Depends(get_vocabulary)):
        """Return 200 with the legal enumeration values. Never touches the datastore."""
        return {
            "status": "healthy",
            "validDieties": list(vocab.deities),
            "validTempos": list(vocab.tempos),
            "validOfferingStatuses": list(vocab.offering_statuses),
            "vocabularyVersion": vocab.version,
        }

    # ── Datastore connectivity probe ──────────────────────────────────────────

    @app.get(
        "/api/test-connection",
        tags=["meta"],
        summary="Datastore connectivity probe",
        responses={500: {"model": ErrorResponse}},
    )
    def test_connection(conn: sqlite3.Connection = Depends(get_db)):
        """Run a sample select and a distinct-status query against the signups table."""
        table = quote_identifier(SIGNUPS_TABLE)
        try:
            rows = query_to_dicts(conn, f"SELECT * FROM {table} LIMIT 5")
            statuses = query_to_dicts(
                conn,
                f'SELECT DISTINCT "offeringStatus" FROM {table} '
                'ORDER BY "offeringStatus"',
            )
        except sqlite3.Error as exc:
            _logger.error("test-connection failed: %s", exc)
            return JSONResponse(
                status_code=500,
                content={
                    "error": "Failed to connect to database",
                    "details": str(exc),
                    "code": type(exc).__name__,
                    "hint": "Run 'python main.py --init-db' to create the tables.",
                },
            )
        return {
            "status": "connected",
            "selectResult": {
                "rowCount": len(rows),
                "firstRow": rows[0] if rows else None,
                "error": None,
            },
            "filterResult": {
                "availableStatuses": [r["offeringStatus"] for r in statuses],
                "error": None,
            },
        }

    # ── Register routers ──────────────────────────────────────────────────────

    prefix = "/api"
    app.include_router(bhajans.router, prefix=prefix)
    app.include_router(signups.router, prefix=prefix)

    # ── OpenAPI: request body schemas ─────────────────────────────────────────
    # Request models are only referenced from openapi_extra, so FastAPI does
    # not collect them; add them to components once the schema is built.
    base_openapi = app.openapi

    def openapi() -> dict:
        if app.openapi_schema is None:
            schema = base_openapi()
            components = schema.setdefault("components", {}).setdefault("schemas", {})
            for name, definition in request_schemas().items():
                components.setdefault(name, definition)
        return app.openapi_schema

    app.openapi = openapi

    return app


# Singleton instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.app:app",
        host=_cfg.api_host,
        port=_cfg.api_port,
        reload=True,
        log_level="info",
    )
