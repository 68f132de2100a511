"""
Tests for the forwarding pipeline.

Tests cover:
- Origin and target checks, in order
- Preflight short-circuit
- Mapping of transport failures onto gateway errors
"""

from unittest.mock import Mock, patch

import httpx
import pytest
from fastapi import Request
from starlette.datastructures import Headers

from llama_proxy.forwarding import handler
from llama_proxy.forwarding.errors import (
    InvalidTarget,
    MissingTarget,
    OriginRejected,
    UpstreamFailure,
    UpstreamTimeout,
)
from llama_proxy.forwarding.headers import apply_cors_headers
from llama_proxy.forwarding.settings import ProxySettings

SETTINGS = ProxySettings(allowed_domains=frozenset({"example.com", "foo.org"}))


@pytest.fixture
def mock_request():
    """Create a mock FastAPI Request object from an allowed origin."""

    def _create(method="GET", origin="https://app.example.com", url="https://api.target.io/v1"):
        request = Mock(spec=Request)
        request.method = method
        raw = [(b"user-agent", b"test-agent")]
        if origin is not None:
            raw.append((b"origin", origin.encode()))
        request.headers = Headers(raw=raw)
        request.query_params = {"url": url} if url is not None else {}
        return request

    return _create


def client_for(transport_handler):
    def _build(settings):
        return httpx.AsyncClient(
            transport=httpx.MockTransport(transport_handler), follow_redirects=True
        )

    return _build


class TestResolveTarget:
    """Checks that run before anything is sent upstream."""

    def test_allowed_origin_returns_target(self, mock_request):
        target = handler.resolve_target(mock_request(), SETTINGS)
        assert str(target) == "https://api.target.io/v1"

    def test_missing_origin_rejected(self, mock_request):
        with pytest.raises(OriginRejected):
            handler.resolve_target(mock_request(origin=None), SETTINGS)

    def test_unlisted_origin_rejected(self, mock_request):
        with pytest.raises(OriginRejected):
            handler.resolve_target(mock_request(origin="https://evil.net"), SETTINGS)

    def test_opaque_origin_rejected(self, mock_request):
        with pytest.raises(OriginRejected):
            handler.resolve_target(mock_request(origin="null"), SETTINGS)

    def test_subdomain_of_allowed_domain_accepted(self, mock_request):
        request = mock_request(origin="https://a.b.example.com")
        assert handler.resolve_target(request, SETTINGS).host == "api.target.io"

    def test_origin_checked_before_url(self, mock_request):
        with pytest.raises(OriginRejected):
            handler.resolve_target(
                mock_request(origin="https://evil.net", url=None), SETTINGS
            )

    def test_missing_url(self, mock_request):
        with pytest.raises(MissingTarget):
            handler.resolve_target(mock_request(url=None), SETTINGS)

    def test_empty_url_counts_as_missing(self, mock_request):
        with pytest.raises(MissingTarget):
            handler.resolve_target(mock_request(url=""), SETTINGS)

    def test_non_http_scheme_invalid(self, mock_request):
        with pytest.raises(InvalidTarget):
            handler.resolve_target(mock_request(url="ftp://example.com"), SETTINGS)

    def test_empty_allow_list_rejects_everything(self, mock_request):
        with pytest.raises(OriginRejected):
            handler.resolve_target(mock_request(), ProxySettings())


class TestForwardRequest:
    """Behaviour after the checks pass."""

    @pytest.mark.asyncio
    async def test_preflight_never_contacts_target(self, mock_request):
        with patch.object(handler, "build_client") as build_client:
            response = await handler.forward_request(
                mock_request(method="OPTIONS"), SETTINGS
            )

        assert response.status_code == 204
        assert response.body == b""
        build_client.assert_not_called()

    @pytest.mark.asyncio
    async def test_connection_error_maps_to_bad_gateway(self, mock_request, monkeypatch):
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        monkeypatch.setattr(handler, "build_client", client_for(refuse))

        with pytest.raises(UpstreamFailure) as exc_info:
            await handler.forward_request(mock_request(), SETTINGS)

        assert exc_info.value.status_code == 502
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_timeout_maps_to_gateway_timeout(self, mock_request, monkeypatch):
        def hang(request):
            raise httpx.ReadTimeout("timed out", request=request)

        monkeypatch.setattr(handler, "build_client", client_for(hang))

        with pytest.raises(UpstreamTimeout) as exc_info:
            await handler.forward_request(mock_request(), SETTINGS)

        assert exc_info.value.status_code == 504
        assert exc_info.value.detail == "Gateway Timeout"

    @pytest.mark.asyncio
    async def test_upstream_failure_is_logged(self, mock_request, monkeypatch):
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        monkeypatch.setattr(handler, "build_client", client_for(refuse))

        with patch.object(handler, "log_exception_with_details") as log_exc:
            with pytest.raises(UpstreamFailure):
                await handler.forward_request(mock_request(), SETTINGS)

        log_exc.assert_called_once()
        assert "api.target.io" in log_exc.call_args[0][1]

    @pytest.mark.asyncio
    async def test_relayed_response_streams_upstream_body(self, mock_request, monkeypatch):
        seen = []

        def upstream(request):
            seen.append(request)
            return httpx.Response(
                201,
                headers={"Content-Type": "application/json", "Connection": "close"},
                stream=httpx.ByteStream(b'{"ok": true}'),
            )

        monkeypatch.setattr(handler, "build_client", client_for(upstream))

        response = await handler.forward_request(mock_request(), SETTINGS)

        assert response.status_code == 201
        assert response.headers["content-type"] == "application/json"
        assert "connection" not in response.headers
        assert hasattr(response, "body_iterator")

        chunks = [chunk async for chunk in response.body_iterator]
        assert b"".join(chunks) == b'{"ok": true}'
        await response.background()

        assert seen[0].method == "GET"
        assert seen[0].url == "https://api.target.io/v1"
        assert seen[0].headers["host"] == "api.target.io"


def test_build_client_without_timeout():
    client = handler.build_client(ProxySettings())
    assert client.timeout == httpx.Timeout(None)
    assert client.follow_redirects is True


def test_build_client_with_timeout():
    client = handler.build_client(ProxySettings(timeout=12.0))
    assert client.timeout == httpx.Timeout(12.0)


@pytest.mark.asyncio
async def test_upstream_cors_headers_replaced_whatever_their_case(
    mock_request, monkeypatch
):
    def upstream(request):
        return httpx.Response(
            200,
            headers=[
                ("Access-Control-Allow-Origin", "https://leak.example"),
                ("ACCESS-CONTROL-ALLOW-CREDENTIALS", "true"),
                ("Set-Cookie", "a=1"),
                ("Set-Cookie", "b=2"),
            ],
            stream=httpx.ByteStream(b"hi"),
        )

    monkeypatch.setattr(handler, "build_client", client_for(upstream))
    request = mock_request()

    response = await handler.forward_request(request, SETTINGS)
    response = apply_cors_headers(response, request.headers)
    await response.background()

    assert response.headers.getlist("access-control-allow-origin") == [
        "https://app.example.com"
    ]
    assert "access-control-allow-credentials" not in response.headers
    assert response.headers.getlist("set-cookie") == ["a=1", "b=2"]
