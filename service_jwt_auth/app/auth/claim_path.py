"""
Small path language for addressing values inside JWT claims.

Supported forms::

    $.sub
    $.user.name
    $['https://example.com/roles'][0]
    realm_access.roles[1]

A leading ``$`` is optional. Segments are ``.name``, ``['name']``,
``["name"]`` or ``[index]``. Nothing else (wildcards, filters, slices,
recursive descent) is accepted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Tuple, Union

Segment = Union[str, int]

_NAME_CHARS = frozenset(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-:"
)


class ClaimPathError(ValueError):
    """A claim path could not be parsed."""


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def error(self, message: str) -> ClaimPathError:
        return ClaimPathError(f"{message} at position {self.pos} in claim path {self.text!r}")

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def parse(self) -> Tuple[Segment, ...]:
        segments = []
        if self.peek() == "$":
            self.pos += 1
        elif self.peek() not in ("", ".", "["):
            segments.append(self.name())

        while self.pos < len(self.text):
            char = self.peek()
            if char == ".":
                self.pos += 1
                segments.append(self.name())
            elif char == "[":
                self.pos += 1
                segments.append(self.bracket())
            else:
                raise self.error(f"unexpected {char!r}")

        if not segments:
            raise self.error("empty path")
        return tuple(segments)

    def name(self) -> str:
        start = self.pos
        while self.peek() and self.peek() in _NAME_CHARS:
            self.pos += 1
        if self.pos == start:
            raise self.error("expected a field name")
        return self.text[start:self.pos]

    def bracket(self) -> Segment:
        char = self.peek()
        if char in ("'", '"'):
            segment: Segment = self.quoted(char)
        elif char.isdigit():
            segment = self.index()
        else:
            raise self.error("expected a quoted name or an index")
        if self.peek() != "]":
            raise self.error("expected ']'")
        self.pos += 1
        return segment

    def quoted(self, quote: str) -> str:
        self.pos += 1
        chars = []
        while True:
            char = self.peek()
            if not char:
                raise self.error("unterminated string")
            self.pos += 1
            if char == "\\":
                escaped = self.peek()
                if not escaped:
                    raise self.error("unterminated string")
                chars.append(escaped)
                self.pos += 1
            elif char == quote:
                return "".join(chars)
            else:
                chars.append(char)

    def index(self) -> int:
        start = self.pos
        while self.peek().isdigit():
            self.pos += 1
        return int(self.text[start:self.pos])


@dataclass(frozen=True)
class ClaimPath:
    """A parsed claim path."""

    expression: str
    segments: Tuple[Segment, ...]

    @classmethod
    def parse(cls, expression: str) -> "ClaimPath":
        if not isinstance(expression, str) or not expression.strip():
            raise ClaimPathError("claim path must be a non-empty string")
        expression = expression.strip()
        return cls(expression=expression, segments=_Parser(expression).parse())

    def evaluate(self, document: Any) -> Any:
        """Return the addressed value, or MISSING when any step is absent."""
        return _walk(document, self.segments)

    def __str__(self) -> str:
        return self.expression


def _walk(node: Any, segments: Tuple[Segment, ...]) -> Any:
    if not segments:
        return node
    head, rest = segments[0], segments[1:]
    if isinstance(head, int):
        if isinstance(node, list) and head < len(node):
            return _walk(node[head], rest)
        return MISSING
    if isinstance(node, dict) and head in node:
        return _walk(node[head], rest)
    return MISSING
