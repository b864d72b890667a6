import logging
from typing import AsyncIterator, Optional

import httpx
from opentelemetry import trace

from edge_proxy.vars import PROXY_TIMEOUT
from edge_proxy.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)

from .errors import ProxyError
from .headers import HeaderMap
from .target import TargetURL

logger = logging.getLogger("uvicorn.error")

METHODS_WITHOUT_BODY = ("GET", "HEAD")
FRAMING_HEADERS = ("content-length", "transfer-encoding")
DEFAULT_ERROR_MESSAGE = "Failed to proxy request"


class UpstreamResponse:
    """
    A streamed upstream response together with the client that owns its
    connection. Closing it releases both.
    """

    def __init__(self, response: httpx.Response, client: httpx.AsyncClient):
        self.response = response
        self.client = client

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def reason_phrase(self) -> str:
        return self.response.reason_phrase

    @property
    def headers(self) -> httpx.Headers:
        return self.response.headers

    @property
    def url(self) -> str:
        return str(self.response.url)

    async def aiter_raw(self) -> AsyncIterator[bytes]:
        """Yield the body exactly as received, content-encoding untouched."""
        try:
            async for chunk in self.response.aiter_raw():
                yield chunk
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        await self.response.aclose()
        await self.client.aclose()


def build_client(
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """A fresh client per request; nothing is pooled across requests."""
    client = httpx.AsyncClient(
        timeout=httpx.Timeout(PROXY_TIMEOUT),
        follow_redirects=True,
        transport=transport,
    )
    # Only the caller's headers go upstream, not httpx's defaults
    client.headers.clear()
    return client


def transport_headers(headers: HeaderMap, has_body: bool) -> HeaderMap:
    """Drop framing headers the transport computes for the body it sends."""
    prepared = HeaderMap(headers.items())
    if not has_body:
        for name in FRAMING_HEADERS:
            prepared.pop(name)
    else:
        prepared.pop("transfer-encoding")
    return prepared


def select_body(
    method: str, body: Optional[AsyncIterator[bytes]]
) -> Optional[AsyncIterator[bytes]]:
    if method in METHODS_WITHOUT_BODY:
        return None
    return body


async def dispatch(
    method: str,
    target: TargetURL,
    headers: HeaderMap,
    body: Optional[AsyncIterator[bytes]] = None,
) -> UpstreamResponse:
    """
    Send the request upstream and wait for the final response headers.

    Redirects are followed. The body is never attached to GET or HEAD.
    Any failure before the response headers arrive becomes a ProxyError.
    """
    content = select_body(method, body)
    outbound = transport_headers(headers, has_body=content is not None)
    span = trace.get_current_span()

    client = build_client()
    try:
        request = client.build_request(
            method=method,
            url=target.href,
            headers=outbound.raw_items(),
            content=content,
        )
        response = await client.send(request, stream=True)
    except httpx.TimeoutException as e:
        await client.aclose()
        logger.error(f"Proxy timeout for {target.href}: {e}")
        span.set_attribute("proxy.error", "timeout")
        raise ProxyError(
            format_exception_message(e, DEFAULT_ERROR_MESSAGE), target.href
        )
    except httpx.ConnectError as e:
        await client.aclose()
        logger.error(f"Failed to connect to target {target.href}: {e}")
        span.set_attribute("proxy.error", "connection_failed")
        raise ProxyError(
            format_exception_message(e, DEFAULT_ERROR_MESSAGE), target.href
        )
    except Exception as e:
        await client.aclose()
        log_exception_with_details(logger, f"[Proxy] {target.href}", e)
        span.set_attribute("proxy.error", format_exception_message(e))
        raise ProxyError(
            format_exception_message(e, DEFAULT_ERROR_MESSAGE), target.href
        )
    except BaseException:
        # Cancelled because the caller went away
        await client.aclose()
        raise

    if response.history:
        logger.debug(
            f"Followed {len(response.history)} redirect(s) from {target.href} to {response.url}"
        )
    return UpstreamResponse(response, client)
