import re
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from creditpath.core.logging import bind_request_id, latency_bucket_ms, log_event

# Incoming ids are echoed into headers and logs, so only accept plain tokens.
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def resolve_request_id(incoming: str | None) -> str:
    if incoming and _VALID_REQUEST_ID.match(incoming):
        return incoming
    return str(uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request_id for the request's logs and echo it in the response."""

    def __init__(self, app, header_name: str = "x-request-id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next):
        rid = resolve_request_id(request.headers.get(self.header_name))
        request.state.request_id = rid

        start = time.perf_counter()
        with bind_request_id(rid):
            response = await call_next(request)
        response.headers[self.header_name] = rid

        log_event(
            "info",
            "request.complete",
            request_id=rid,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "latency_bucket": latency_bucket_ms((time.perf_counter() - start) * 1000),
            },
        )
        return response
