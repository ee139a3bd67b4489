"""Facility scoping middleware using ContextVar.

Extracts the current facility from the X-Facility-ID request header (or
falls back to subdomain detection). The facility ID is stored in a
ContextVar so that routers and repositories can call
get_current_facility() without explicit parameter passing.
"""

from contextvars import ContextVar

from fastapi import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# ---------------------------------------------------------------------------
# Context variable: task-safe facility state
# ---------------------------------------------------------------------------

_current_facility: ContextVar[str | None] = ContextVar("current_facility", default=None)


def get_current_facility() -> str | None:
    """Return the facility ID for the current request, if one was sent."""
    return _current_facility.get()


async def require_facility() -> str:
    """FastAPI dependency: the current facility, or 400 when none was sent."""
    facility_id = _current_facility.get()
    if not facility_id:
        raise HTTPException(status_code=400, detail="X-Facility-ID header is required")
    return facility_id


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

class FacilityMiddleware(BaseHTTPMiddleware):
    """Extract facility from request headers or subdomain.

    Priority:
    1. X-Facility-ID header (explicit)
    2. First subdomain segment (e.g., riverside.courts.app → "riverside")
    3. Unset
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        facility_id = request.headers.get("X-Facility-ID")

        if not facility_id:
            host = request.headers.get("host", "")
            parts = host.split(".")
            if len(parts) > 2:
                facility_id = parts[0]

        token = _current_facility.set(facility_id or None)
        try:
            response = await call_next(request)
            return response
        finally:
            _current_facility.reset(token)
