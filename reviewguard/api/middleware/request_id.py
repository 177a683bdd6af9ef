import re
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from structlog.contextvars import bind_contextvars, clear_contextvars

# app_logs.request_id is String(64); anything else from the client gets replaced
_VALID_RID = re.compile(r"^[A-Za-z0-9._\-]{1,64}$")


def resolve_request_id(header_value: str | None) -> str:
    if header_value and _VALID_RID.match(header_value):
        return header_value
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        clear_contextvars()
        rid = resolve_request_id(request.headers.get("X-Request-ID"))
        bind_contextvars(request_id=rid, path=request.url.path)
        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
