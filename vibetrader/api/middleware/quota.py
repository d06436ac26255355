"""Daily quota middleware for the chat endpoints."""
import asyncio
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from vibetrader.api.deps import resolve_identity
from vibetrader.core.logging import get_logger
from vibetrader.services.quota import exhausted_message

logger = get_logger(__name__)


class QuotaMiddleware(BaseHTTPMiddleware):
    """Admission gate in front of the generation endpoints."""

    GATED_PATHS = {"/chat", "/chat/stream"}

    async def dispatch(self, request: Request, call_next):
        if request.method != "POST" or request.url.path not in self.GATED_PATHS:
            return await call_next(request)

        components = getattr(request.app.state, "components", None)
        if components is None:
            return await call_next(request)

        identity, identity_class = resolve_identity(request)
        request.state.identity = identity
        request.state.identity_class = identity_class

        result = await asyncio.to_thread(
            components.quota_gate.check_and_admit, identity, identity_class
        )

        # Never raise inside BaseHTTPMiddleware.dispatch; return the 429 directly
        if not result.admitted:
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Rate limit exceeded",
                    "message": exhausted_message(identity_class, result.ceiling),
                    "rateLimit": result.metadata.to_dict(),
                },
                headers=result.metadata.headers(),
            )

        request.state.quota = result.metadata
        response = await call_next(request)
        if result.metadata is not None:
            for name, value in result.metadata.headers().items():
                response.headers[name] = value
        return response
