"""
Outbound HTTP client for discovery and code verification.
Bounded redirects and short timeouts; HTTP/2 where the peer supports it.
"""
import httpx

from token_server.config import (
    HTTP2_ENABLED,
    HTTP_CONNECT_TIMEOUT,
    HTTP_MAX_REDIRECTS,
    HTTP_TIMEOUT,
)


def build_http_client(transport: httpx.BaseTransport | None = None) -> httpx.Client:
    return httpx.Client(
        http2=HTTP2_ENABLED,
        timeout=httpx.Timeout(HTTP_TIMEOUT, connect=HTTP_CONNECT_TIMEOUT),
        follow_redirects=True,
        max_redirects=HTTP_MAX_REDIRECTS,
        transport=transport,
    )


def get_http_client():
    """Dependency: yield an HTTP client for the duration of one request."""
    client = build_http_client()
    try:
        yield client
    finally:
        client.close()
