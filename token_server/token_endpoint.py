"""
IndieAuth token endpoint (/token).
GET with a bearer token: introspection. POST action=revoke: revocation.
POST grant_type=authorization_code: issuance. Any other method: 405 with Allow: GET, POST.
"""
import logging
import re

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.exception_handlers import http_exception_handler
from sqlalchemy.orm import Session
from starlette.datastructures import FormData
from starlette.exceptions import HTTPException as StarletteHTTPException

from token_server import flows
from token_server.database import get_db
from token_server.discovery import LinkFinder, SoupLinkFinder
from token_server.flows import MALFORMED, IntrospectionStatus, TokenStorageExhausted
from token_server.http_client import get_http_client
from token_server.token_store import TokenStore

logger = logging.getLogger(__name__)
router = APIRouter()

FORM_CONTENT_TYPE_RE = re.compile(r"^application/x-www-form-urlencoded(;.*)?$")


def get_token_store(db: Session = Depends(get_db)) -> TokenStore:
    return TokenStore(db)


def get_link_finder() -> LinkFinder:
    return SoupLinkFinder()


async def read_form(request: Request) -> FormData:
    """Dependency: form body of a urlencoded POST; 415 for any other content type."""
    if not FORM_CONTENT_TYPE_RE.match(request.headers.get("content-type", "")):
        raise HTTPException(status_code=415, detail={"error": "unsupported_media_type"})
    return await request.form()


def _invalid_token(description: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={"error": "invalid_token", "error_description": description},
        headers={
            "WWW-Authenticate": f'Bearer, error="invalid_token", error_description="{description}"',
        },
    )


def _invalid_request() -> HTTPException:
    # One answer for every rejected issuance; the reason is only logged
    return HTTPException(status_code=400, detail={"error": "invalid_request"})


@router.get("/token")
def introspect_token(request: Request, store: TokenStore = Depends(get_token_store)):
    """Report identity, client and scope of an active bearer token."""
    bearer = flows.parse_bearer(request.headers.get("authorization"))
    if bearer is None:
        raise HTTPException(
            status_code=401,
            detail={"error": "invalid_request", "error_description": "Authorization header missing"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    if bearer is MALFORMED:
        raise _invalid_token("The access token is malformed")

    result = flows.introspect(store, bearer)
    if result.status is IntrospectionStatus.UNKNOWN:
        raise _invalid_token("The access token is unknown")
    if result.status is IntrospectionStatus.REVOKED:
        raise _invalid_token("The access token is revoked")
    return {
        "me": result.token.me,
        "client_id": result.token.client_id,
        "scope": result.token.scope,
    }


@router.post("/token")
def token(
    form: FormData = Depends(read_form),
    db: Session = Depends(get_db),
    store: TokenStore = Depends(get_token_store),
    http: httpx.Client = Depends(get_http_client),
    finder: LinkFinder = Depends(get_link_finder),
):
    """
    action=revoke: revoke the given token; always 200 so callers learn nothing about it.
    grant_type=authorization_code: verify the code with the me URL's authorization endpoint
    and issue a bearer token.
    """
    if form.get("action") == "revoke":
        flows.revoke(store, form.get("token"))
        return Response(status_code=200)

    issuance = flows.parse_issuance_request(form)
    if issuance is None:
        raise _invalid_request()
    try:
        issued = flows.issue(issuance, http=http, db=db, store=store, finder=finder)
    except TokenStorageExhausted:
        logger.exception("Token storage exhausted for client_id=%s", issuance.client_id)
        raise HTTPException(status_code=500, detail={"error": "server_error"})
    if issued is None:
        raise _invalid_request()
    return issued.as_response()


async def method_not_allowed_handler(request: Request, exc: StarletteHTTPException):
    """Routing 405s for /token advertise both supported methods, whatever method was tried."""
    if exc.status_code == 405 and request.url.path == "/token":
        exc.headers = {**(exc.headers or {}), "Allow": "GET, POST"}
    return await http_exception_handler(request, exc)
