import logging

from fastapi import APIRouter, Request
from fastapi.responses import Response
from opentelemetry import trace

from edge_proxy.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)

from .dispatcher import DEFAULT_ERROR_MESSAGE, dispatch
from .errors import ProxyError, ProxyFailure
from .headers import build_outbound_headers
from .target import extract_target, resolve_target
from .wrapper import (
    error_response,
    preflight_response,
    root_response,
    wrap_upstream_response,
)

router = APIRouter()
tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")


def get_raw_path(request: Request) -> str:
    """The request path as the caller sent it, percent escapes intact."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        return raw_path.decode("latin-1").split("?", 1)[0]
    return request.url.path


def get_proxy_origin(request: Request) -> str:
    return f"{request.url.scheme}://{request.url.netloc}"


async def forward_request(request: Request) -> Response:
    """
    Run one inbound request through the forwarding pipeline.

    Preflight and root requests are answered locally. Everything else is
    resolved, filtered, dispatched and wrapped; any ProxyFailure along the
    way is rendered as a JSON error here and nowhere else.
    """
    if request.method == "OPTIONS":
        return preflight_response()

    candidate = extract_target(get_raw_path(request), request.url.query)

    with tracer.start_as_current_span("proxy_request") as span:
        span.set_attribute("proxy.method", request.method)
        try:
            target = resolve_target(candidate, get_proxy_origin(request))
            if target is None:
                return root_response()

            span.set_attribute("proxy.target_url", target.href)
            logger.debug(f"Proxying {request.method} {candidate} -> {target.href}")

            headers = build_outbound_headers(request.headers.raw, target)
            upstream = await dispatch(
                request.method, target, headers, body=request.stream()
            )
        except ProxyFailure as failure:
            span.set_attribute("proxy.status_code", failure.status_code)
            if failure.status_code < 500:
                logger.info(
                    f"Rejected {request.method} /{candidate}: {failure.error}"
                )
            return error_response(failure)

        span.set_attribute("proxy.status_code", upstream.status_code)
        try:
            return wrap_upstream_response(upstream, target)
        except Exception as e:
            await upstream.aclose()
            log_exception_with_details(logger, f"[Proxy] relaying {target.href}", e)
            span.set_attribute("proxy.error", "relay_failed")
            return error_response(
                ProxyError(
                    format_exception_message(e, DEFAULT_ERROR_MESSAGE), target.href
                )
            )


async def proxy_all(request: Request) -> Response:
    """Catch-all route: the path is the target URL."""
    return await forward_request(request)


# A plain route with no method list, so every method reaches the proxy
router.add_route("/{path:path}", proxy_all, include_in_schema=False)
