"""
Small helpers: random request identifiers, state/nonce values and query strings.

The random values are tracing / anti-replay tokens, not secrets, so they come
from the `random` module rather than `secrets`.
"""

from __future__ import annotations

import random
from typing import Mapping
from urllib.parse import parse_qs, urlencode, urlparse

RQUID_CHARSET = "abcdefABCDEF0123456789"
RQUID_LENGTH = 32

STATE_CHARSET = "abcdefghiklmnoprstxyzABCDEFGHIKLMNOPRSTXYZ0123456789_-"
STATE_LENGTH = 8
NONCE_LENGTH = 16


def _random_from(charset: str, length: int) -> str:
    if length < 0:
        raise ValueError(f"length must be >= 0, got {length}")
    return "".join(random.choices(charset, k=length))


def generate_rquid(length: int = RQUID_LENGTH) -> str:
    """
    Generate a request identifier for the RqUID / x-introspect-rquid headers.
    """
    return _random_from(RQUID_CHARSET, length)


def generate_random_string(length: int) -> str:
    return _random_from(STATE_CHARSET, length)


def generate_state() -> str:
    return generate_random_string(STATE_LENGTH)


def generate_nonce() -> str:
    return generate_random_string(NONCE_LENGTH)


def build_query(params: Mapping[str, str]) -> str:
    """
    URL-encode a string-to-string mapping into a query string.
    """
    return urlencode(dict(params))


def parse_url_param(url: str, key: str) -> str:
    """
    Return the value of query parameter `key` in `url`.

    Returns "" when the parameter is absent and the first value when it is
    repeated. Raises ValueError if the URL cannot be parsed.
    """
    parsed = urlparse(url)
    values = parse_qs(parsed.query, keep_blank_values=True).get(key)
    if not values:
        return ""
    return values[0]
