"""
Domain records and per-request state for the JWT auth filter.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from starlette.requests import Request


CONSUMER_ID_HEADER = "X-Consumer-ID"
CONSUMER_CUSTOM_ID_HEADER = "X-Consumer-Custom-ID"
CONSUMER_USERNAME_HEADER = "X-Consumer-Username"
ANONYMOUS_HEADER = "X-Anonymous-Consumer"

# A located token: a single string, a list when a query parameter was
# repeated, or None when the request carries no token.
RawToken = Union[str, List[str], None]

# Control characters other than tab cannot appear in a header value.
_UNSAFE_HEADER_CHARS = re.compile(r"[\x00-\x08\x0a-\x1f\x7f]")


@dataclass(frozen=True)
class SecretRecord:
    """Signing material registered for a consumer under a lookup key."""

    key: str
    consumer_id: str
    algorithm: Optional[str] = "HS256"
    secret: Optional[str] = None
    rsa_public_key: Optional[str] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class ConsumerRecord:
    """Identity a verified credential (or the anonymous fallback) maps to."""

    id: str
    custom_id: Optional[str] = None
    username: Optional[str] = None


@dataclass(frozen=True)
class Authenticated:
    consumer: ConsumerRecord
    credential: SecretRecord
    token: str


@dataclass(frozen=True)
class AnonymousFallback:
    consumer: ConsumerRecord


@dataclass(frozen=True)
class Rejected:
    status_code: int
    message: Any


@dataclass(frozen=True)
class Skipped:
    """The filter did not run: preflight request or already authenticated."""

    reason: str


AuthOutcome = Union[Authenticated, AnonymousFallback, Rejected, Skipped]


def _decode_header_value(value: bytes) -> Union[str, bytes]:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        # Left undecoded; the token locator reports it.
        return value


@dataclass
class GatewayRequest:
    """
    The view of an inbound request the auth filter works on.

    ``query_params`` maps each parameter name to every value it was given,
    in order. Header names are lower-cased. Header values are normally
    strings but may be raw bytes when they could not be decoded.

    ``context`` is shared by every auth filter handling the request, and
    ``upstream_headers`` records the header mutations to forward upstream,
    where a ``None`` value clears the header.
    """

    method: str
    path: str = "/"
    query_params: Dict[str, List[str]] = field(default_factory=dict)
    cookies: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, Union[str, bytes]] = field(default_factory=dict)
    context: Dict[str, Any] = field(default_factory=dict)
    upstream_headers: Dict[str, Optional[str]] = field(default_factory=dict)

    @classmethod
    def from_starlette(cls, request: Request, context: Optional[Dict[str, Any]] = None) -> "GatewayRequest":
        """Build a gateway request from a Starlette/FastAPI request."""
        query_params: Dict[str, List[str]] = {}
        for name, value in request.query_params.multi_items():
            query_params.setdefault(name, []).append(value)

        headers: Dict[str, Union[str, bytes]] = {}
        for raw_name, raw_value in request.headers.raw:
            name = raw_name.decode("latin-1").lower()
            if name not in headers:
                headers[name] = _decode_header_value(raw_value)

        return cls(
            method=request.method.upper(),
            path=request.url.path,
            query_params=query_params,
            cookies=dict(request.cookies),
            headers=headers,
            context=context if context is not None else {},
        )

    def set_header(self, name: str, value: Any) -> None:
        """Record an upstream header; ``None`` clears it."""
        self.upstream_headers[name] = None if value is None else header_safe_value(str(value))

    def header_mutations(self) -> List[Tuple[str, Optional[str]]]:
        return list(self.upstream_headers.items())

    def forwarded_headers(self) -> Mapping[str, str]:
        """The upstream headers that carry a value."""
        return {name: value for name, value in self.upstream_headers.items() if value is not None}


def header_safe_value(text: str) -> str:
    """
    Return ``text`` unchanged when it can travel as an HTTP header value.

    Text that is not latin-1 or that carries control characters (CR and LF
    included) is sent as a JSON string literal instead, with every
    non-ASCII character escaped, e.g. ``"\\u540d"``.
    """
    try:
        text.encode("latin-1")
    except UnicodeEncodeError:
        return json.dumps(text, ensure_ascii=True)
    if _UNSAFE_HEADER_CHARS.search(text):
        return json.dumps(text, ensure_ascii=True)
    return text
