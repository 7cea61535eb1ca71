"""Tests for authorization code verification against the authorization endpoint."""
import json
from urllib.parse import parse_qs

import httpx
import pytest

from token_server.exchange import CodeVerification, parse_verification, verify_code
from token_server.http_client import build_http_client

ENDPOINT = "https://auth.example/auth"


def _client(handler) -> httpx.Client:
    return build_http_client(transport=httpx.MockTransport(handler))


def test_verify_code_posts_form_and_returns_assertion():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["accept"] = request.headers.get("accept")
        seen["content_type"] = request.headers.get("content-type")
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={"me": "https://user.example/", "scope": "create update"})

    with _client(handler) as client:
        result = verify_code(client, "abc 123", "https://app.example/", "https://app.example/cb", ENDPOINT)

    assert result == CodeVerification(me="https://user.example/", scope="create update")
    assert seen["method"] == "POST"
    assert seen["accept"] == "application/json"
    assert seen["content_type"] == "application/x-www-form-urlencoded"
    assert seen["form"] == {
        "code": ["abc 123"],
        "client_id": ["https://app.example/"],
        "redirect_uri": ["https://app.example/cb"],
    }


def test_verify_code_returns_endpoint_identity_not_requested_one():
    def handler(request):
        return httpx.Response(200, json={"me": "https://canonical.example/", "scope": "read"})

    with _client(handler) as client:
        result = verify_code(client, "c", "https://app.example/", "https://app.example/cb", ENDPOINT)
    assert result.me == "https://canonical.example/"


def test_verify_code_transport_error_is_invalid():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with _client(handler) as client:
        assert verify_code(client, "c", "https://app.example/", "https://app.example/cb", ENDPOINT) is None


def test_verify_code_error_answer_is_invalid():
    def handler(request):
        return httpx.Response(400, json={"error": "invalid_grant"})

    with _client(handler) as client:
        assert verify_code(client, "c", "https://app.example/", "https://app.example/cb", ENDPOINT) is None


@pytest.mark.parametrize(
    "body",
    [
        "not json",
        "",
        '"https://user.example/"',
        "[1, 2]",
        json.dumps({"me": "https://user.example/"}),
        json.dumps({"scope": "create"}),
        json.dumps({"me": "user.example", "scope": "create"}),
        json.dumps({"me": ["https://user.example/"], "scope": "create"}),
        json.dumps({"me": "https://user.example/", "scope": ["create"]}),
        json.dumps({"me": "https://user.example/", "scope": 5}),
        json.dumps({"me": "https://user.example/", "scope": ""}),
        json.dumps({"me": "https://user.example/", "scope": "create  update"}),
        json.dumps({"me": "https://user.example/", "scope": " create"}),
        json.dumps({"me": "https://user.example/", "scope": "create\n"}),
        json.dumps({"me": "https://user.example/", "scope": 'create "update"'}),
        json.dumps({"me": "https://user.example/", "scope": "create\\update"}),
        json.dumps({"me": "https://user.example/", "scope": "créate"}),
        json.dumps({"me": "https://user.example/\n", "scope": "create"}),
        json.dumps({"me": " https://user.example/", "scope": "create"}),
        json.dumps({"me": "https://user.example/\t", "scope": "create"}),
        json.dumps({"me": "http://user.example:abc/", "scope": "create"}),
    ],
)
def test_parse_verification_rejects(body):
    assert parse_verification(body) is None


def test_parse_verification_depth_limit():
    shallow = {"me": "https://user.example/", "scope": "a", "extra": [1, 2]}
    deep = {"me": "https://user.example/", "scope": "a", "extra": {"nested": [1]}}
    assert parse_verification(json.dumps(shallow)) == CodeVerification(me="https://user.example/", scope="a")
    assert parse_verification(json.dumps(deep)) is None


def test_parse_verification_accepts_scope_punctuation():
    body = json.dumps({"me": "https://user.example/", "scope": "read:posts write!#$ a~z"})
    assert parse_verification(body).scope == "read:posts write!#$ a~z"


def test_verify_code_unusable_endpoint_url_is_invalid():
    def handler(request):
        return httpx.Response(200, json={"me": "https://user.example/", "scope": "read"})

    with _client(handler) as client:
        assert verify_code(client, "c", "https://app.example/", "https://app.example/cb", "http://auth.example:abc/") is None
