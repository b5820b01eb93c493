"""
Request size limiting middleware for FastAPI.
Rejects oversized payloads and architectures before they reach the engine.
"""
from typing import Any, Dict, Optional, Set
import json
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)


MAX_REQUEST_BODY_SIZE = 262_144  # 256 KB in bytes
MAX_ARCHITECTURE_SERVICES = 100

# Endpoints whose body carries an architecture
PROTECTED_ENDPOINTS: Set[str] = {
    "/api/estimate",
    "/api/estimate/regions",
    "/api/recommendations",
    "/api/projections",
}


def _too_large(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=413,
        content={
            "status": "error",
            "error": "request_too_large",
            "message": message,
        },
    )


class RequestSizeLimiterMiddleware(BaseHTTPMiddleware):
    """
    Applies body-size and architecture-size limits to configured endpoints.
    Other routes pass through untouched.
    """

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path not in PROTECTED_ENDPOINTS:
            return await call_next(request)

        content_length = request.headers.get("Content-Length")
        if content_length and content_length.isdigit() and int(content_length) > MAX_REQUEST_BODY_SIZE:
            logger.info(f"Request body size exceeded for {path}: {content_length} bytes")
            return _too_large("Request body size exceeds allowed limit of 256 KB.")

        body_bytes = await request.body()
        if len(body_bytes) > MAX_REQUEST_BODY_SIZE:
            logger.info(f"Request body size exceeded for {path}: {len(body_bytes)} bytes")
            return _too_large("Request body size exceeds allowed limit of 256 KB.")

        if body_bytes:
            try:
                body_json = json.loads(body_bytes.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError):
                # Malformed JSON is reported by FastAPI's own validation
                body_json = None
            error = self._validate_payload(body_json)
            if error:
                logger.info(f"Payload validation failed for {path}: {error}")
                return _too_large(error)

        return await call_next(request)

    @staticmethod
    def _validate_payload(body_json: Any) -> Optional[str]:
        """
        Check the number of services in the request's architecture.

        Returns:
            Error message if the architecture is too large, None otherwise
        """
        if not isinstance(body_json, dict):
            return None
        architecture: Dict[str, Any] = body_json.get("architecture") or {}
        services = architecture.get("services") if isinstance(architecture, dict) else None
        if isinstance(services, list) and len(services) > MAX_ARCHITECTURE_SERVICES:
            return (
                f"Architecture too large: {len(services)} services "
                f"(limit: {MAX_ARCHITECTURE_SERVICES})"
            )
        return None
