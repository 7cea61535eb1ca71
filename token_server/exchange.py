"""
Authorization code verification against a trusted authorization endpoint.
The endpoint answers with the identity (me) and the granted scope; both are validated
before anything is stored.
"""
import json
import logging
import re
from dataclasses import dataclass

import httpx

from token_server.uri import is_absolute_url

logger = logging.getLogger(__name__)

# scope-token per RFC 6749 §3.3 (NQCHAR: visible ASCII minus '"' and '\'), single-space separated
SCOPE_RE = re.compile(r"^[\x21\x23-\x5B\x5D-\x7E]+( [\x21\x23-\x5B\x5D-\x7E]+)*$")

# Deepest container nesting accepted in the endpoint's JSON answer
MAX_JSON_DEPTH = 2


@dataclass(frozen=True)
class CodeVerification:
    me: str
    scope: str


def _depth(value) -> int:
    if isinstance(value, dict):
        return 1 + max((_depth(v) for v in value.values()), default=0)
    if isinstance(value, list):
        return 1 + max((_depth(v) for v in value), default=0)
    return 0


def parse_verification(body: str) -> CodeVerification | None:
    """Validate the endpoint's JSON answer; None on any unexpected shape."""
    try:
        info = json.loads(body)
    except (ValueError, RecursionError):
        return None
    if not isinstance(info, dict) or _depth(info) > MAX_JSON_DEPTH:
        return None
    me = info.get("me")
    scope = info.get("scope")
    if not is_absolute_url(me):
        return None
    if not isinstance(scope, str) or not SCOPE_RE.fullmatch(scope):
        return None
    return CodeVerification(me=me, scope=scope)


def verify_code(
    client: httpx.Client,
    code: str,
    client_id: str,
    redirect_uri: str,
    endpoint: str,
) -> CodeVerification | None:
    """POST the code to the authorization endpoint and return the asserted me/scope, or None."""
    try:
        response = client.post(
            endpoint,
            data={
                "code": code,
                "client_id": client_id,
                "redirect_uri": redirect_uri,
            },
            headers={"Accept": "application/json"},
            follow_redirects=True,
        )
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.debug("Code verification request to %s failed: %s", endpoint, e)
        return None
    verification = parse_verification(response.text)
    if verification is None:
        logger.debug("Authorization endpoint %s returned an unusable answer (status %s)", endpoint, response.status_code)
    return verification
