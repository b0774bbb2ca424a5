import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from damage_assessor.common.logging import get_logger

logger = get_logger("middleware")

CORS_ALLOW_METHODS = "GET,POST,PUT,OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type"


class AuditMiddleware(BaseHTTPMiddleware):
    """Logs every request and turns unhandled errors into a JSON 500."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            response = JSONResponse({"error": "Internal server error"}, status_code=500)
        duration_ms = (time.time() - start_time) * 1000

        logger.info(
            "%s %s %d %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )

        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"
        return response


class CORSHeadersMiddleware(BaseHTTPMiddleware):
    """Permissive CORS on every response; any OPTIONS request is answered with 204."""

    def __init__(self, app: ASGIApp, allowed_origins: str = "*") -> None:
        super().__init__(app)
        self.allowed_origins = [o.strip() for o in allowed_origins.split(",") if o.strip()]

    def _allow_origin(self, request: Request) -> str | None:
        if "*" in self.allowed_origins:
            return "*"
        origin = request.headers.get("origin")
        return origin if origin in self.allowed_origins else None

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method == "OPTIONS":
            response = Response(status_code=204)
        else:
            response = await call_next(request)

        allow_origin = self._allow_origin(request)
        if allow_origin:
            response.headers["Access-Control-Allow-Origin"] = allow_origin
            if allow_origin != "*":
                response.headers["Vary"] = "Origin"
        response.headers["Access-Control-Allow-Methods"] = CORS_ALLOW_METHODS
        response.headers["Access-Control-Allow-Headers"] = CORS_ALLOW_HEADERS
        return response
