from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, Response
from opentelemetry import trace

from llama_proxy.forwarding import (
    ForwardingError,
    apply_cors_headers,
    forward_request,
    load_settings,
)
from llama_proxy.utils.traced_requests import traced_request

router = APIRouter()
tracer = trace.get_tracer(__name__)


async def handle(request: Request) -> Response:
    """Run the forwarding pipeline; every outcome leaves with CORS headers."""
    settings = load_settings()
    with traced_request(
        tracer,
        "proxy_request",
        request.method,
        f"Handling {request.method} {request.url.path}",
    ) as span:
        try:
            response = await forward_request(request, settings)
        except ForwardingError as e:
            span.set_attribute("proxy.error", e.reason)
            response = PlainTextResponse(e.detail, status_code=e.status_code)
        span.set_attribute("proxy.status_code", response.status_code)
    return apply_cors_headers(response, request.headers)


async def proxy_all(request: Request) -> Response:
    """Catch-all route that forwards to the url given in the query string."""
    return await handle(request)


# A plain Starlette route with no method list, so every verb (PROPFIND,
# TRACE, custom ones) reaches the pipeline instead of a bare 405
router.add_route("/{path:path}", proxy_all, include_in_schema=False)
