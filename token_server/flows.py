"""
Token endpoint flows: introspection, revocation and issuance.
Issuance runs discovery, trust gate, code verification and storage in order and fails
closed at the first negative result without telling the caller which step failed.
"""
import enum
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass

import httpx
from sqlalchemy.orm import Session

from token_server.discovery import LinkFinder, discover_authorization_endpoint
from token_server.exchange import verify_code
from token_server.models import Token
from token_server.token_store import Exhausted, TokenStore
from token_server.trust import is_trusted_endpoint
from token_server.uri import is_absolute_url

logger = logging.getLogger(__name__)

BEARER_RE = re.compile(r"^Bearer [0-9a-z]+$")
CODE_RE = re.compile(r"^[\x20-\x7E]+$")

# parse_bearer result for a present but unusable Authorization header
MALFORMED = object()


class TokenStorageExhausted(RuntimeError):
    """Every generated token value collided with an existing one."""


class IntrospectionStatus(enum.Enum):
    ACTIVE = "active"
    UNKNOWN = "unknown"
    REVOKED = "revoked"


@dataclass(frozen=True)
class Introspection:
    status: IntrospectionStatus
    token: Token | None = None


@dataclass(frozen=True)
class IssuanceRequest:
    code: str
    client_id: str
    redirect_uri: str
    me: str


@dataclass(frozen=True)
class IssuedToken:
    access_token: str
    me: str
    scope: str

    def as_response(self) -> dict:
        return {
            "access_token": self.access_token,
            "token_type": "Bearer",
            "scope": self.scope,
            "me": self.me,
        }


def parse_bearer(header: str | None):
    """Token from 'Bearer <token>'; None when the header is absent, MALFORMED otherwise."""
    if header is None:
        return None
    if not BEARER_RE.fullmatch(header):
        return MALFORMED
    return header[len("Bearer "):]


def introspect(store: TokenStore, value: str) -> Introspection:
    token = store.lookup(value)
    if token is None:
        return Introspection(IntrospectionStatus.UNKNOWN)
    if token.is_revoked:
        return Introspection(IntrospectionStatus.REVOKED, token)
    return Introspection(IntrospectionStatus.ACTIVE, token)


def revoke(store: TokenStore, value: str | None) -> None:
    """Revocation always succeeds from the caller's point of view."""
    if isinstance(value, str):
        store.revoke(value)


def parse_issuance_request(form: Mapping) -> IssuanceRequest | None:
    """All of grant_type, code, client_id, redirect_uri and me must be present and well-formed."""
    grant_type = form.get("grant_type")
    code = form.get("code")
    client_id = form.get("client_id")
    redirect_uri = form.get("redirect_uri")
    me = form.get("me")
    if grant_type != "authorization_code":
        return None
    if not isinstance(code, str) or not CODE_RE.fullmatch(code):
        return None
    if not all(is_absolute_url(v) for v in (client_id, redirect_uri, me)):
        return None
    return IssuanceRequest(code=code, client_id=client_id, redirect_uri=redirect_uri, me=me)


def issue(
    request: IssuanceRequest,
    *,
    http: httpx.Client,
    db: Session,
    store: TokenStore,
    finder: LinkFinder | None = None,
) -> IssuedToken | None:
    """
    Exchange an authorization code for a bearer token. Returns None for any discovery,
    trust or verification failure. The stored identity and scope are the ones asserted by
    the authorization endpoint; client_id is the one the client declared.
    """
    endpoint = discover_authorization_endpoint(http, request.me, finder)
    if endpoint is None:
        logger.debug("Issuance rejected: no authorization endpoint for %s", request.me)
        return None
    if not is_trusted_endpoint(db, endpoint):
        logger.debug("Issuance rejected: untrusted authorization endpoint %s", endpoint)
        return None
    verification = verify_code(http, request.code, request.client_id, request.redirect_uri, endpoint)
    if verification is None:
        logger.debug("Issuance rejected: code not verified by %s", endpoint)
        return None

    result = store.issue(verification.me, request.client_id, verification.scope)
    if isinstance(result, Exhausted):
        raise TokenStorageExhausted(f"no unique token value after {result.attempts} attempts")
    return IssuedToken(access_token=result.value, me=verification.me, scope=verification.scope)
