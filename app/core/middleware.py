"""HTTP middleware for request ID propagation, access logging and origin checks.

``request_id_middleware``:
- Accepts an incoming X-Request-ID header or generates a UUID
- Stores request_id in contextvars for log correlation
- Echoes request_id and the request duration in response headers
- Emits one ``http.request`` log line per request (no bodies, no query)
- Clears context after request completion to prevent context leaks

``origin_check_middleware`` rejects state-changing requests that a browser
sent from another site: the Origin header (or, when absent, the Referer)
must name the same host the request was sent to. Requests with neither
header, such as curl or the bundled client, pass.

Both read the settings the app was created with from ``app.state.settings``.

Usage:
    app.middleware("http")(origin_check_middleware)
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid
from urllib.parse import urlsplit

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from app.core.logging import clear_request_id, get_request_id, set_request_id

logger = logging.getLogger(__name__)

# Longest client-supplied request id we echo back
MAX_REQUEST_ID_LENGTH = 128

STATE_CHANGING_METHODS = frozenset({"POST", "PUT", "DELETE", "PATCH"})


def _incoming_request_id(request: Request, header_name: str) -> str:
    incoming = request.headers.get(header_name, "").strip()
    if incoming and len(incoming) <= MAX_REQUEST_ID_LENGTH and incoming.isprintable():
        return incoming
    return str(uuid.uuid4())


async def request_id_middleware(request: Request, call_next) -> Response:
    """Attach a correlation id to the request, its logs and its response.

    Side Effects:
        - Sets request_id in contextvars (accessible via get_request_id())
        - Adds the request id and X-Request-Duration-ms response headers
    """

    header_name = request.app.state.settings.log.request_id_header
    request_id = _incoming_request_id(request, header_name)
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "http.request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


def _host_of(url: str) -> str | None:
    """``host[:port]`` of an absolute URL, or None if it has none."""
    try:
        netloc = urlsplit(url).netloc
    except ValueError:
        return None
    host = netloc.rpartition("@")[2].lower()
    return host or None


def _forbidden(reason: str, request: Request) -> JSONResponse:
    logger.warning(
        "http.cross_origin_blocked",
        extra={"reason": reason, "method": request.method, "path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={
            "error": {
                "code": "cross_origin_forbidden",
                "message": "Cross-origin request rejected",
                "request_id": get_request_id(),
            }
        },
    )


async def origin_check_middleware(request: Request, call_next) -> Response:
    """Reject cross-site POST/PUT/DELETE/PATCH requests with 403.

    - Origin present: its host must equal the Host header; an unparseable
      Origin (including ``null``) is rejected.
    - Origin absent, Referer present: a Referer naming another host is
      rejected; an unparseable Referer is allowed.
    - Neither present: allowed.
    """

    if (
        request.method not in STATE_CHANGING_METHODS
        or not request.app.state.settings.app.origin_check_enabled
    ):
        return await call_next(request)

    host = request.headers.get("host", "").lower()
    origin = request.headers.get("origin")

    if origin:
        origin_host = _host_of(origin)
        if origin_host is None:
            return _forbidden("invalid_origin", request)
        if origin_host != host:
            return _forbidden("origin_mismatch", request)
    else:
        referer = request.headers.get("referer")
        if referer:
            referer_host = _host_of(referer)
            if referer_host is not None and referer_host != host:
                return _forbidden("referer_mismatch", request)

    return await call_next(request)
