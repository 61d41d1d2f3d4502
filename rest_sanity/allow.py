"""Parsing and formatting for the HTTP ``Allow`` header (RFC 9110 §10.2.1).

The header is compared as a set: order is irrelevant, tokens are trimmed
and upper-cased, and empty tokens produced by stray commas are dropped.
"""

from typing import FrozenSet, Iterable, Optional


def parse_allow_header(value: Optional[str]) -> FrozenSet[str]:
    """Split an ``Allow`` header value into a set of method tokens.

    ``None`` or an empty header yields an empty set.

    >>> sorted(parse_allow_header("GET, put,"))
    ['GET', 'PUT']
    """
    if not value:
        return frozenset()
    return frozenset(
        token.strip().upper()
        for token in value.split(",")
        if token.strip()
    )


def format_allow_header(methods: Iterable[str]) -> str:
    """Join method tokens into a header value, sorted and de-duplicated."""
    return ",".join(sorted({m.strip().upper() for m in methods if m.strip()}))


def normalize_methods(methods: Iterable[str]) -> FrozenSet[str]:
    """Upper-case and de-duplicate a collection of method names."""
    return frozenset(m.strip().upper() for m in methods if m.strip())


def describe_methods(methods: Iterable[str]) -> str:
    """Render a method set for messages, e.g. ``{GET, PUT}``."""
    return "{" + ", ".join(sorted(methods)) + "}"


def incorrect_method_prefix(uri: str, method: str) -> str:
    """The leading part of the server's 405 explanation, up to ``allowed:``."""
    return f"Incorrect HTTP method for uri [{uri}] and method [{method.upper()}], allowed:"


def incorrect_method_message(uri: str, method: str, allowed: Iterable[str]) -> str:
    """The full 405 explanation the server is expected to put in the body.

    ``allowed`` is rendered in the order given, bracketed and comma-separated:
    ``Incorrect HTTP method for uri [/_tasks] and method [DELETE], allowed: [GET]``.
    """
    listed = ", ".join(m.upper() for m in allowed)
    return f"{incorrect_method_prefix(uri, method)} [{listed}]"
