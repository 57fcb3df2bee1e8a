from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from hostscan.logging_setup import get_logger

log = get_logger(__name__)

OPEN_PATHS = ("/healthz",)


class ApiKeyMiddleware(BaseHTTPMiddleware):
    """Require ``X-API-Key`` on every route except the health check."""

    def __init__(self, app, api_key: str | None):
        super().__init__(app)
        self.api_key = api_key

    async def dispatch(self, request: Request, call_next):
        if self.api_key and request.url.path not in OPEN_PATHS:
            if request.headers.get("x-api-key") != self.api_key:
                client = request.client.host if request.client else "anon"
                log.warning("api_key_rejected", path=request.url.path, client=client)
                return JSONResponse({"detail": "Invalid API key"}, status_code=401)
        return await call_next(request)
