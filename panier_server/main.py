from __future__ import annotations

import logging
import os
from typing import List

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.gzip import GZipMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from .config import get_settings
from .matching.errors import PanierError
from .observability import configure_logging, init_sentry
from .startup import validate_settings
from .routes import health, catalog, recipes, matching, shopping
from .ratelimit import limiter
from slowapi.errors import RateLimitExceeded
from slowapi import _rate_limit_exceeded_handler

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("X-Frame-Options", "DENY")
        return response


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, max_bytes: int):
        super().__init__(app)
        self.max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next):
        length = request.headers.get("content-length")
        if length and length.isdigit() and int(length) > self.max_bytes:
            return JSONResponse(
                status_code=413,
                content={"detail": "Request body too large", "code": "payload_too_large"},
            )
        return await call_next(request)


async def panier_error_handler(request: Request, exc: PanierError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning(
            "Request failed path=%s code=%s error=%s", request.url.path, exc.code, exc.message
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


def create_app() -> FastAPI:
    s = get_settings()
    configure_logging(json_logs=s.log_json, level=s.log_level)
    init_sentry(s)
    validate_settings(s)
    app = FastAPI(title=s.app_name)

    # CORS
    origins: List[str] = s.cors_allowed_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(BodySizeLimitMiddleware, max_bytes=s.request_max_body_mb * 1024 * 1024)
    app.add_middleware(GZipMiddleware, minimum_size=1024)

    # Routers
    prefix = "/v1"
    app.include_router(health.router, prefix=prefix)
    app.include_router(catalog.router, prefix=prefix)
    app.include_router(recipes.router, prefix=prefix)
    app.include_router(matching.router, prefix=prefix)
    app.include_router(shopping.router, prefix=prefix)

    app.add_exception_handler(PanierError, panier_error_handler)

    # Rate limit handling
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Metrics
    Instrumentator().instrument(app).expose(app, include_in_schema=False)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", "8000"))
    uvicorn.run("panier_server.main:app", host="0.0.0.0", port=port, reload=False)
