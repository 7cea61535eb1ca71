"""
URI reference resolution per RFC 3986 §5.
Used to turn discovered (possibly relative) endpoint references into absolute URLs.
No I/O; parsing never raises, malformed parts simply come back as absent (None).
"""
import re
from dataclasses import dataclass

# RFC 3986 Appendix B
_URI_RE = re.compile(r"^(?:([^:/?#]+):)?(?://([^/?#]*))?([^?#]*)(?:\?([^#]*))?(?:#(.*))?$", re.DOTALL)
_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")
_PRINTABLE_RE = re.compile(r"^[\x21-\x7E]+$")

# Schemes that are valid without a host component
_HOSTLESS_SCHEMES = {"mailto", "news", "file"}


@dataclass
class URI:
    """Five URI components; None means absent, which is not the same as empty."""

    scheme: str | None = None
    authority: str | None = None
    path: str | None = None
    query: str | None = None
    fragment: str | None = None

    def __str__(self) -> str:
        result = ""
        if self.scheme is not None:
            result += self.scheme + ":"
        if self.authority is not None:
            result += "//" + self.authority
        result += self.path or ""
        if self.query is not None:
            result += "?" + self.query
        if self.fragment is not None:
            result += "#" + self.fragment
        return result


def parse(uri: str) -> URI:
    match = _URI_RE.match(uri)
    if match is None:
        return URI()
    scheme, authority, path, query, fragment = match.groups()
    if scheme is not None and not _SCHEME_RE.match(scheme):
        # Not a scheme after all: the colon belongs to the path
        return URI(path=uri.split("?", 1)[0].split("#", 1)[0], query=query, fragment=fragment)
    return URI(scheme=scheme, authority=authority, path=path, query=query, fragment=fragment)


def merge_paths(base: URI, reference: URI) -> str:
    """RFC 3986 §5.2.3."""
    if base.authority is not None and not base.path:
        return "/" + (reference.path or "")
    pos = (base.path or "").rfind("/")
    if pos == -1:
        return reference.path or ""
    return base.path[: pos + 1] + (reference.path or "")


def remove_dot_segments(path: str) -> str:
    """RFC 3986 §5.2.4, applied left to right until the input buffer is empty."""
    input_ = path
    output = ""
    while input_:
        if input_.startswith("../"):
            input_ = input_[3:]
        elif input_.startswith("./"):
            input_ = input_[2:]
        elif input_.startswith("/./"):
            input_ = "/" + input_[3:]
        elif input_ == "/.":
            input_ = "/"
        elif input_.startswith("/../") or input_ == "/..":
            input_ = "/" + input_[4:] if input_.startswith("/../") else "/"
            pos = output.rfind("/")
            output = output[:pos] if pos != -1 else ""
        elif input_ in (".", ".."):
            input_ = ""
        else:
            pos = input_.find("/", 1 if input_.startswith("/") else 0)
            if pos == -1:
                output += input_
                input_ = ""
            else:
                output += input_[:pos]
                input_ = input_[pos:]
    return output


def resolve(base_uri: str, reference_uri: str) -> str:
    """Resolve reference_uri against base_uri (RFC 3986 §5.2.2) and recompose (§5.3)."""
    base = parse(base_uri)
    if not base.path:
        base.path = "/"
    reference = parse(reference_uri)
    target = URI()

    if reference.scheme is not None:
        target.scheme = reference.scheme
        target.authority = reference.authority
        target.path = remove_dot_segments(reference.path or "")
        target.query = reference.query
    else:
        if reference.authority is not None:
            target.authority = reference.authority
            target.path = remove_dot_segments(reference.path or "")
            target.query = reference.query
        else:
            if not reference.path:
                target.path = base.path
                target.query = reference.query if reference.query is not None else base.query
            else:
                if reference.path.startswith("/"):
                    target.path = remove_dot_segments(reference.path)
                else:
                    target.path = remove_dot_segments(merge_paths(base, reference))
                target.query = reference.query
            target.authority = base.authority
        target.scheme = base.scheme

    target.fragment = reference.fragment
    if reference_uri == "#":
        target.fragment = ""
    return str(target)


def is_absolute_url(value) -> bool:
    """
    True for a well-formed absolute URL: printable ASCII without whitespace, a valid scheme,
    and a host unless the scheme is one of mailto/news/file. A port, if given, is 0-65535.
    """
    if not isinstance(value, str) or not _PRINTABLE_RE.fullmatch(value):
        return False
    uri = parse(value)
    if uri.scheme is None:
        return False
    if uri.scheme.lower() in _HOSTLESS_SCHEMES:
        return bool(uri.authority or uri.path)
    if not uri.authority:
        return False
    host = uri.authority.rpartition("@")[2]
    if host.startswith("["):
        end = host.find("]")
        if end <= 1:
            return False
        host, port = host[: end + 1], host[end + 1 :]
        if port and not port.startswith(":"):
            return False
        port = port[1:]
    else:
        host, _, port = host.partition(":")
    if port and not (port.isdigit() and int(port) <= 65535):
        return False
    return bool(host)
