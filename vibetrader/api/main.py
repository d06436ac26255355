"""FastAPI application entry point."""
import contextvars
import logging
import uuid
from typing import Optional
from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from vibetrader.api.middleware.quota import QuotaMiddleware
from vibetrader.api.routes import chat, dev, events, leaderboard, portfolio
from vibetrader.core.config import get_settings
from vibetrader.core.logging import setup_logging, get_logger
from vibetrader.db.connect import get_conn, init_db
from vibetrader.services.container import AppComponents, build_components

# Thread/async-safe request ID propagation via contextvars
_request_id_ctx: contextvars.ContextVar[str] = contextvars.ContextVar('request_id', default='')


class RequestIDFilter(logging.Filter):
    """Logging filter that injects request_id from contextvars into log records."""
    def filter(self, record):
        record.request_id = _request_id_ctx.get('')
        return True


logger = get_logger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Adds request_id to requests, responses and log records."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        token = _request_id_ctx.set(request_id)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        except HTTPException as exc:
            # Catch HTTPException before BaseHTTPMiddleware wraps it in ExceptionGroup
            return JSONResponse(
                status_code=exc.status_code,
                content=_http_error_content(exc, request_id),
                headers={"X-Request-ID": request_id, **(exc.headers or {})},
            )
        except Exception as exc:
            logger.error(
                "Unhandled in RequestIDMiddleware: %s | req=%s | %s %s",
                str(exc)[:200], request_id, request.method, request.url.path
            )
            return JSONResponse(
                status_code=500,
                content=_internal_error_content(request_id),
                headers={"X-Request-ID": request_id},
            )
        finally:
            _request_id_ctx.reset(token)


def _http_error_content(exc: HTTPException, request_id: str) -> dict:
    return {
        "status": "ERROR",
        "error": {"code": f"HTTP_{exc.status_code}", "message": str(exc.detail), "request_id": request_id},
        "request_id": request_id,
    }


def _internal_error_content(request_id: str) -> dict:
    return {
        "status": "ERROR",
        "error": {"code": "INTERNAL_ERROR", "message": "An internal error occurred", "request_id": request_id},
        "request_id": request_id,
    }


def _find_http_exception(exc):
    """Recursively search an ExceptionGroup tree for the first HTTPException."""
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, ExceptionGroup):
        for sub in exc.exceptions:
            found = _find_http_exception(sub)
            if found:
                return found
    return None


async def http_exception_handler(request: Request, exc: HTTPException):
    """Structured JSON for any HTTPException, original status preserved."""
    request_id = getattr(request.state, 'request_id', str(uuid.uuid4())[:8])
    return JSONResponse(
        status_code=exc.status_code,
        content=_http_error_content(exc, request_id),
        headers={"X-Request-ID": request_id, **(exc.headers or {})},
    )


async def global_exception_handler(request: Request, exc: Exception):
    """All unhandled exceptions become a generic JSON 500."""
    request_id = getattr(request.state, 'request_id', str(uuid.uuid4())[:8])
    logger.error(
        "Unhandled exception: %s | req=%s | %s %s",
        str(exc)[:200], request_id, request.method, request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content=_internal_error_content(request_id),
        headers={"X-Request-ID": request_id},
    )


async def exception_group_handler(request: Request, exc: ExceptionGroup):
    """Unwrap ExceptionGroup from BaseHTTPMiddleware and preserve original status."""
    http_exc = _find_http_exception(exc)
    if http_exc:
        return await http_exception_handler(request, http_exc)
    return await global_exception_handler(request, exc)


def create_app(components: Optional[AppComponents] = None) -> FastAPI:
    """Build the application. Tests pass prebuilt components with fakes."""
    settings = components.settings if components is not None else get_settings()

    setup_logging(settings.log_level)
    root_logger = logging.getLogger()
    if not any(isinstance(f, RequestIDFilter) for f in root_logger.filters):
        root_logger.addFilter(RequestIDFilter())

    # FATAL on failure: the ledger and quota tables are required
    init_db()
    logger.info("Database initialized")

    app = FastAPI(title="Vibe Trader API", version="1.0.0")
    app.state.components = components or build_components(settings)

    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    app.add_exception_handler(ExceptionGroup, exception_group_handler)

    # Last added runs first: RequestID -> CORS -> Quota
    app.add_middleware(QuotaMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    app.include_router(chat.router, prefix="/chat", tags=["chat"])
    app.include_router(portfolio.router, prefix="/portfolio", tags=["portfolio"])
    app.include_router(leaderboard.router, prefix="/leaderboard", tags=["leaderboard"])
    app.include_router(events.router, tags=["events"])

    if settings.is_production:
        logger.info("Dev endpoints disabled (APP_ENV=production)")
    else:
        app.include_router(dev.router, prefix="/dev", tags=["dev"])
        logger.warning(f"Dev endpoints mounted at /dev (APP_ENV={settings.app_env})")

    @app.get("/health")
    async def health():
        db_ok = False
        try:
            with get_conn() as conn:
                conn.execute("SELECT 1")
                db_ok = True
        except Exception as e:
            logger.warning(f"Health check DB probe failed: {e}")

        cache = app.state.components.cache
        cache_ok = await cache.ping() if cache.enabled else None
        return {
            "status": "ok" if db_ok else "degraded",
            "db_ready": db_ok,
            "cache": {"enabled": cache.enabled, "ok": cache_ok},
            "wallet": app.state.components.wallet.public_key,
        }

    @app.on_event("shutdown")
    async def shutdown_event():
        await app.state.components.cache.close()

    return app


app = create_app()
