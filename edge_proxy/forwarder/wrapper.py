import logging

from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from edge_proxy.vars import PROXY_IDENTITY

from .dispatcher import UpstreamResponse
from .errors import ProxyFailure
from .target import TargetURL

logger = logging.getLogger("uvicorn.error")

ALLOWED_METHODS = "GET, POST, PUT, DELETE, PATCH, OPTIONS"
PREFLIGHT_MAX_AGE = "86400"
ROOT_GREETING = "Hello World"

# Connection-level headers the ASGI server recomputes for its own leg
UPSTREAM_HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "transfer-encoding",
}


def cors_headers() -> dict:
    return {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Access-Control-Allow-Headers": "*",
    }


def preflight_response() -> Response:
    headers = cors_headers()
    headers["Access-Control-Max-Age"] = PREFLIGHT_MAX_AGE
    return Response(status_code=200, headers=headers)


def root_response() -> Response:
    return PlainTextResponse(ROOT_GREETING, status_code=200)


def error_response(failure: ProxyFailure) -> JSONResponse:
    return JSONResponse(
        failure.to_client_payload(),
        status_code=failure.status_code,
        headers={"Access-Control-Allow-Origin": "*"},
    )


def wrap_upstream_response(
    upstream: UpstreamResponse, target: TargetURL
) -> StreamingResponse:
    """
    Relay the upstream response with CORS and proxy headers laid over it.

    Upstream headers are copied as raw pairs so repeated headers such as
    set-cookie survive; the overlay replaces any upstream value.
    """
    if upstream.reason_phrase:
        logger.debug(
            f"Upstream {target.href} answered {upstream.status_code} {upstream.reason_phrase}"
        )

    response = StreamingResponse(
        upstream.aiter_raw(),
        status_code=upstream.status_code,
        background=BackgroundTask(upstream.aclose),
    )
    # Raw bytes, so values that are not ASCII pass through untouched
    for name, value in upstream.headers.raw:
        name = name.lower()
        if name.decode("latin-1") in UPSTREAM_HOP_BY_HOP_HEADERS:
            continue
        response.raw_headers.append((name, value))

    for name, value in cors_headers().items():
        response.headers[name] = value
    response.headers["X-Proxied-By"] = PROXY_IDENTITY
    response.headers["X-Target-URL"] = target.href
    return response
