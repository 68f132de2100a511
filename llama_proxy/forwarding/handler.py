import logging
from typing import AsyncIterator, Optional

import httpx
from fastapi import Request
from fastapi.responses import Response, StreamingResponse
from opentelemetry import trace
from starlette.background import BackgroundTask

from llama_proxy.forwarding.domains import get_root_domain, parse_target_url
from llama_proxy.forwarding.errors import (
    InvalidTarget,
    MissingTarget,
    OriginRejected,
    UpstreamFailure,
    UpstreamTimeout,
)
from llama_proxy.forwarding.headers import relayable_headers, transfer_headers
from llama_proxy.forwarding.settings import ProxySettings
from llama_proxy.utils import mask_password
from llama_proxy.utils.exception_logging import log_exception_with_details

logger = logging.getLogger("uvicorn.error")


def build_client(settings: ProxySettings) -> httpx.AsyncClient:
    """Create the client for one forwarded request; closed once the body is relayed."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.timeout),
        follow_redirects=True,
    )


def resolve_target(request: Request, settings: ProxySettings) -> httpx.URL:
    """
    Run the origin and target checks in order and return the URL to contact.

    Raises the matching ForwardingError for the first check that fails.
    """
    origin = request.headers.get("origin")
    root_domain = get_root_domain(origin or "")
    if not settings.allows(root_domain):
        logger.info(f"Rejecting origin {origin!r} (root domain {root_domain!r})")
        raise OriginRejected()

    forwarded_url = request.query_params.get("url")
    if not forwarded_url:
        raise MissingTarget()

    target = parse_target_url(forwarded_url)
    if target is None:
        raise InvalidTarget()
    return target


def _request_body(request: Request) -> Optional[AsyncIterator[bytes]]:
    # A request carries a body only when it is framed by one of these
    if "content-length" in request.headers or "transfer-encoding" in request.headers:
        return request.stream()
    return None


async def _close_upstream(response: httpx.Response, client: httpx.AsyncClient) -> None:
    await response.aclose()
    await client.aclose()


async def relay(
    request: Request, target: httpx.URL, settings: ProxySettings
) -> StreamingResponse:
    """
    Send the request on to ``target`` and stream the answer back.

    The inbound body and the upstream body are both streamed, neither is
    buffered in memory. Redirects from the target are followed.
    """
    headers = transfer_headers(request.headers, target)
    client = build_client(settings)
    outbound = client.build_request(
        request.method,
        target,
        headers=headers,
        content=_request_body(request),
    )

    try:
        upstream = await client.send(outbound, stream=True)
    except httpx.TimeoutException as e:
        await client.aclose()
        log_exception_with_details(
            logger, f"[Proxy] Timeout for {mask_password(target)}", e
        )
        raise UpstreamTimeout() from e
    except httpx.HTTPError as e:
        await client.aclose()
        log_exception_with_details(
            logger, f"[Proxy] Failed to reach {mask_password(target)}", e
        )
        raise UpstreamFailure() from e

    response = StreamingResponse(
        upstream.aiter_raw(),
        status_code=upstream.status_code,
        background=BackgroundTask(_close_upstream, upstream, client),
    )
    response.raw_headers.extend(relayable_headers(upstream.headers.raw))
    return response


async def forward_request(request: Request, settings: ProxySettings) -> Response:
    """
    Handle one inbound request: validate it, answer preflights, otherwise relay.

    CORS headers are not applied here; the caller adds them to whatever
    response (or error) comes out.
    """
    target = resolve_target(request, settings)
    trace.get_current_span().set_attribute("proxy.target_url", mask_password(target))

    if request.method == "OPTIONS":
        return Response(status_code=204)

    logger.debug(f"Proxying {request.method} -> {mask_password(target)}")
    return await relay(request, target, settings)
