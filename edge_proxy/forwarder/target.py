"""
Target resolution: turn the inbound request path into the absolute URL we
forward to.

The inbound path carries the whole target, e.g.
``/https://api.example.com/users/42?x=1``. Parsing follows browser URL
rules where they matter for a proxy: the scheme is lowercased, special
schemes tolerate collapsed or missing slashes, the host is validated and
lowercased, default ports are dropped and the path is normalized.
"""

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, unquote, urlsplit

from .errors import InvalidProtocol, InvalidURL

ALLOWED_SCHEMES = ("http", "https")
DEFAULT_PORTS = {"http": 80, "https": 443}
USAGE_EXAMPLE = "https://example.com"

_SCHEME_RE = re.compile(r"^([A-Za-z][A-Za-z0-9+.\-]*):(.*)$", re.DOTALL)
_AUTHORITY_RE = re.compile(r"^([^/\\?#]*)(.*)$", re.DOTALL)
_FORBIDDEN_HOST_RE = re.compile(r"[\x00-\x20#%/:<>?@\[\\\]^|\x7f]")
_STRIP_CHARS = "".join(chr(c) for c in range(0x21))
_TAB_OR_NEWLINE_RE = re.compile(r"[\t\n\r]")

# Existing percent escapes are kept as they are
_PATH_SAFE = "/%:@!$&'()*+,;=-._~"
_QUERY_SAFE = _PATH_SAFE + "?[]{}|\\^`"


@dataclass(frozen=True)
class TargetURL:
    scheme: str
    hostname: str
    port: Optional[int] = None
    path: str = "/"
    query: Optional[str] = None
    fragment: Optional[str] = None
    userinfo: Optional[str] = None

    @property
    def host(self) -> str:
        """Hostname plus port, the port only when it is not the scheme default."""
        if self.port is None:
            return self.hostname
        return f"{self.hostname}:{self.port}"

    @property
    def path_and_query(self) -> str:
        if self.query is None:
            return self.path
        return f"{self.path}?{self.query}"

    @property
    def href(self) -> str:
        userinfo = f"{self.userinfo}@" if self.userinfo is not None else ""
        fragment = f"#{self.fragment}" if self.fragment is not None else ""
        return f"{self.scheme}://{userinfo}{self.host}{self.path_and_query}{fragment}"

    def __str__(self) -> str:
        return self.href


def extract_target(raw_path: str, query: str) -> str:
    """
    Build the candidate target string from the inbound path and query.

    Returns an empty string for the root path, even when a query string is
    present, so ``/`` and ``/?anything`` both land on the greeting.
    """
    path = raw_path[1:] if raw_path.startswith("/") else raw_path
    if not path:
        return ""
    if query:
        return f"{path}?{query}"
    return path


def resolve_target(candidate: str, proxy_origin: str) -> Optional[TargetURL]:
    """
    Parse ``candidate`` into a TargetURL.

    Returns None for the root case (empty candidate). Raises InvalidURL when
    the candidate is not an absolute URL and InvalidProtocol when it is one
    but its scheme is neither http nor https.
    """
    if not candidate:
        return None

    usage = f"{proxy_origin}/{USAGE_EXAMPLE}"
    text = _TAB_OR_NEWLINE_RE.sub("", candidate.strip(_STRIP_CHARS))

    match = _SCHEME_RE.match(text)
    if not match:
        raise InvalidURL(usage, candidate=candidate)
    scheme = match.group(1).lower()
    rest = match.group(2)

    if scheme not in ALLOWED_SCHEMES:
        _check_opaque_url(text, usage, candidate)
        raise InvalidProtocol(scheme)

    return _parse_special(scheme, rest, usage, candidate)


def _check_opaque_url(text: str, usage: str, candidate: str) -> None:
    """Reject URLs with another scheme that do not parse at all."""
    try:
        parts = urlsplit(text)
        parts.port
    except ValueError:
        raise InvalidURL(usage, candidate=candidate)


def _parse_special(scheme: str, rest: str, usage: str, candidate: str) -> TargetURL:
    # http:example.com, http:/example.com and http:\\example.com all mean
    # http://example.com
    rest = rest.lstrip("/\\")
    authority, tail = _AUTHORITY_RE.match(rest).groups()

    fragment = None
    if "#" in tail:
        tail, fragment = tail.split("#", 1)
    query = None
    if "?" in tail:
        tail, query = tail.split("?", 1)
    path = _remove_dot_segments(tail.replace("\\", "/")) or "/"

    userinfo = None
    if "@" in authority:
        userinfo, authority = authority.rsplit("@", 1)

    hostname, port = _split_host_port(authority, usage, candidate)
    if port == DEFAULT_PORTS[scheme]:
        port = None

    return TargetURL(
        scheme=scheme,
        hostname=hostname,
        port=port,
        path=quote(path, safe=_PATH_SAFE),
        query=quote(query, safe=_QUERY_SAFE) if query is not None else None,
        fragment=quote(fragment, safe=_QUERY_SAFE + "#") if fragment is not None else None,
        userinfo=userinfo or None,
    )


def _split_host_port(authority: str, usage: str, candidate: str):
    port_text = ""
    if authority.startswith("["):
        end = authority.find("]")
        if end == -1:
            raise InvalidURL(usage, candidate=candidate)
        hostname = authority[: end + 1].lower()
        remainder = authority[end + 1 :]
        if remainder:
            if not remainder.startswith(":"):
                raise InvalidURL(usage, candidate=candidate)
            port_text = remainder[1:]
        if not re.fullmatch(r"\[[0-9a-f:.]+\]", hostname):
            raise InvalidURL(usage, candidate=candidate)
    else:
        hostname, _, port_text = authority.partition(":")
        hostname = _normalize_hostname(hostname, usage, candidate)

    port = None
    if port_text:
        if not port_text.isdigit() or not port_text.isascii():
            raise InvalidURL(usage, candidate=candidate)
        port = int(port_text)
        if port > 65535:
            raise InvalidURL(usage, candidate=candidate)
    return hostname, port


def _normalize_hostname(hostname: str, usage: str, candidate: str) -> str:
    try:
        # escapes in the host decode to UTF-8 before validation
        hostname = unquote(hostname, errors="strict")
    except UnicodeDecodeError:
        raise InvalidURL(usage, candidate=candidate)
    if not hostname or _FORBIDDEN_HOST_RE.search(hostname):
        raise InvalidURL(usage, candidate=candidate)
    if not hostname.isascii():
        try:
            hostname = hostname.encode("idna").decode("ascii")
        except UnicodeError:
            raise InvalidURL(usage, candidate=candidate)
    return hostname.lower()


def _remove_dot_segments(path: str) -> str:
    if not path:
        return path
    output = []
    segments = path.split("/")
    for index, segment in enumerate(segments):
        last = index == len(segments) - 1
        if segment == ".":
            if last:
                output.append("")
        elif segment == "..":
            if len(output) > 1:
                output.pop()
            if last:
                output.append("")
        else:
            output.append(segment)
    return "/".join(output)
