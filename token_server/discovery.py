"""
Authorization endpoint discovery for an IndieAuth identity URL.
The endpoint is declared with rel="authorization_endpoint", either in an HTTP Link header
or in the page markup, and resolved against the final URL reached after redirects.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Protocol

import httpx
from bs4 import BeautifulSoup

from token_server.uri import resolve

logger = logging.getLogger(__name__)

AUTHORIZATION_ENDPOINT_REL = "authorization_endpoint"

_LINK_TARGET_RE = re.compile(r"^\s*<([^>]*)>(.*)$", re.DOTALL)
_LINK_PARAM_RE = re.compile(r';\s*([^\s=;,]+)\s*(?:=\s*(?:"((?:[^"\\]|\\.)*)"|([^\s;,]*)))?')


@dataclass
class DiscoveryResult:
    """Effective URL after redirects and the Link header values seen for that URL."""

    url: str
    links: list[str] = field(default_factory=list)


class LinkFinder(Protocol):
    """Locates link relations inside a fetched document."""

    def find_first_matching_link(self, document: str) -> str | None: ...

    def find_base_href(self, document: str) -> str | None: ...


class SoupLinkFinder:
    """BeautifulSoup-backed finder; html.parser recovers from malformed markup."""

    def __init__(self, rel: str = AUTHORIZATION_ENDPOINT_REL, features: str = "html.parser"):
        self.rel = rel
        self.features = features
        self._parsed: tuple[str, BeautifulSoup] | None = None

    def _soup(self, document: str) -> BeautifulSoup:
        """Parse tree for document; the last one is kept so both lookups share a single parse."""
        if self._parsed is None or self._parsed[0] != document:
            self._parsed = (document, BeautifulSoup(document, self.features))
        return self._parsed[1]

    def find_first_matching_link(self, document: str) -> str | None:
        def matches(tag) -> bool:
            if not tag.has_attr("href"):
                return False
            rels = " ".join(tag.get_attribute_list("rel", [])).split()
            return self.rel in rels

        tag = self._soup(document).find(matches)
        return tag["href"] if tag is not None else None

    def find_base_href(self, document: str) -> str | None:
        tag = self._soup(document).find("base", href=True)
        return tag["href"] if tag is not None else None


def _split_link_values(header: str) -> list[str]:
    """Split one Link header into link-values on commas outside <...> and quoted strings."""
    values = []
    current = []
    in_target = in_quotes = escaped = False
    for ch in header:
        if escaped:
            escaped = False
        elif in_quotes and ch == "\\":
            escaped = True
        elif ch == '"' and not in_target:
            in_quotes = not in_quotes
        elif ch == "<" and not in_quotes:
            in_target = True
        elif ch == ">" and not in_quotes:
            in_target = False
        elif ch == "," and not in_target and not in_quotes:
            values.append("".join(current))
            current = []
            continue
        current.append(ch)
    values.append("".join(current))
    return [v for v in values if v.strip()]


def find_link_header_endpoint(headers: list[str], rel: str = AUTHORIZATION_ENDPOINT_REL) -> str | None:
    """First URI reference, in header order, whose rel parameter contains the rel token."""
    for header in headers:
        for link_value in _split_link_values(header):
            match = _LINK_TARGET_RE.match(link_value)
            if match is None:
                continue
            target, params = match.groups()
            for name, quoted, token in _LINK_PARAM_RE.findall(params):
                if name.lower() != "rel":
                    continue
                if rel in (quoted or token).split():
                    return target
                # Only the first rel parameter counts (RFC 8288 §3.3)
                break
    return None


def collect_link_headers(response: httpx.Response) -> DiscoveryResult:
    """
    Link header values observed for the final URL only. Walking the redirect chain,
    values are discarded each time the effective URL changes.
    """
    effective = None
    links: list[str] = []
    for hop in [*response.history, response]:
        url = str(hop.url)
        if url != effective:
            links = []
            effective = url
        links.extend(hop.headers.get_list("link"))
    return DiscoveryResult(url=effective, links=links)


def discover_authorization_endpoint(
    client: httpx.Client,
    identity_url: str,
    finder: LinkFinder | None = None,
) -> str | None:
    """
    Fetch identity_url and return the absolute authorization endpoint it declares, or None.
    Unusable URLs, transport errors, timeouts, too many redirects and non-200 responses
    all yield None.
    """
    try:
        response = client.get(identity_url, follow_redirects=True)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.debug("Discovery fetch failed for %s: %s", identity_url, e)
        return None
    if response.status_code != 200:
        logger.debug("Discovery fetch for %s returned %s", identity_url, response.status_code)
        return None

    result = collect_link_headers(response)
    base = result.url
    endpoint = find_link_header_endpoint(result.links)
    if endpoint is None:
        finder = finder or SoupLinkFinder()
        document = response.text
        endpoint = finder.find_first_matching_link(document)
        if endpoint is None:
            logger.debug("No authorization endpoint declared at %s", base)
            return None
        base_href = finder.find_base_href(document)
        if base_href is not None:
            base = resolve(base, base_href)
    return resolve(base, endpoint)
