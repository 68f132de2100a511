import logging
from typing import Iterable, Optional, Tuple

import httpx
from starlette.datastructures import Headers
from starlette.responses import Response

logger = logging.getLogger("uvicorn.error")

# Hop-by-hop headers that should NOT be forwarded (RFC 2616)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# Callers set these on the outbound request through x-llama-<Name>
OVERRIDE_PREFIX = "x-llama-"

ALLOW_ORIGIN = "Access-Control-Allow-Origin"
ALLOW_METHODS = "Access-Control-Allow-Methods"
ALLOW_HEADERS = "Access-Control-Allow-Headers"
ALLOW_CREDENTIALS = "Access-Control-Allow-Credentials"


def _discard(headers: httpx.Headers, name: str) -> None:
    if name in headers:
        del headers[name]


def target_origin(target: httpx.URL) -> str:
    return f"{target.scheme}://{target.netloc.decode('ascii')}"


def transfer_headers(inbound: Headers, target: httpx.URL) -> httpx.Headers:
    """
    Build the header set sent to the target.

    Host, Origin and Referer are rewritten to point at the target, then every
    ``x-llama-<Name>`` header replaces ``<Name>``. Overrides run last so that
    ``x-llama-Origin`` or ``x-llama-Host`` win over the automatic rewrite.
    """
    outbound = httpx.Headers(
        [
            (name, value)
            for name, value in inbound.raw
            if name.decode("latin-1").lower() not in HOP_BY_HOP_HEADERS
        ]
    )

    for name in ("Host", "Origin", "Referer"):
        _discard(outbound, name)

    origin = target_origin(target)
    outbound["Host"] = target.netloc.decode("ascii")
    outbound["Origin"] = origin
    outbound["Referer"] = origin + "/"

    # Duplicate overrides are folded into one comma separated value
    for name, value in httpx.Headers(inbound.raw).items():
        if not name.lower().startswith(OVERRIDE_PREFIX):
            continue
        override = name[len(OVERRIDE_PREFIX):]
        _discard(outbound, name)
        if not override:
            logger.debug("Dropping header override with an empty name")
            continue
        _discard(outbound, override)
        outbound[override] = value

    return outbound


def relayable_headers(
    raw: Iterable[Tuple[bytes, bytes]]
) -> list[Tuple[bytes, bytes]]:
    """
    Filter upstream response headers down to the ones relayed to the caller.

    Names are lower-cased, the form Starlette header lookups and deletes match on.
    """
    return [
        (name.lower(), value)
        for name, value in raw
        if name.decode("latin-1").lower() not in HOP_BY_HOP_HEADERS
    ]


def apply_cors_headers(response: Response, request_headers: Headers) -> Response:
    """
    Overwrite the CORS headers on ``response``, whichever path produced it.

    Values echo the caller's Origin and preflight request headers, falling
    back to ``*``. Anything the proxied server set for these names is dropped.
    """
    for name in (ALLOW_ORIGIN, ALLOW_METHODS, ALLOW_HEADERS, ALLOW_CREDENTIALS):
        del response.headers[name]

    response.headers[ALLOW_ORIGIN] = _or_wildcard(request_headers.get("origin"))
    response.headers[ALLOW_METHODS] = _or_wildcard(
        request_headers.get("access-control-request-method")
    )
    response.headers[ALLOW_HEADERS] = _or_wildcard(
        request_headers.get("access-control-request-headers")
    )
    return response


def _or_wildcard(value: Optional[str]) -> str:
    return value or "*"
