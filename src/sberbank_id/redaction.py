"""
Helpers that make request/response details safe to log.

Secrets (passwords, client secret, tokens, authorization codes) are replaced
entirely. Identifiers such as the client id keep a short prefix/suffix so two
integrations can still be told apart in the logs.
"""

from __future__ import annotations

import re

_SENSITIVE_KEYS = {
    "password",
    "login",
    "access_token",
    "id_token",
    "client_secret",
    "x-ibm-client-secret",
    "code",
    "authorization",
    "nonce",
    "state",
}


def redact(value: object) -> str:
    """
    Redact an identifier, keeping three characters at each end.
    """
    if value is None:
        return "<none>"
    s = str(value)
    if not s:
        return "<empty>"
    if len(s) <= 8:
        return "<redacted>"
    return f"{s[:3]}...{s[-3:]}"


def redact_sensitive(value: object) -> str:
    """
    Redact *fully* for secret-bearing fields.

    Unlike `redact()`, this never keeps a prefix/suffix because even partial
    leaks of tokens or codes can be risky in logs.
    """
    if value is None:
        return "<none>"
    s = str(value)
    if not s:
        return "<empty>"
    return "<redacted>"


def sanitize_mapping(d: dict) -> dict:
    """
    Return a shallow copy safe for logging (redacts sensitive keys).
    """
    safe: dict = {}
    for k, v in d.items():
        if str(k).lower() in _SENSITIVE_KEYS:
            safe[k] = redact_sensitive(v)
        else:
            safe[k] = v
    return safe


def sanitize_obj(obj: object) -> object:
    """
    Deep-sanitize JSON-like objects (dict/list/tuple) for safe logging.
    """
    if isinstance(obj, dict):
        out: dict = {}
        for k, v in obj.items():
            if str(k).lower() in _SENSITIVE_KEYS:
                out[k] = redact_sensitive(v)
            else:
                out[k] = sanitize_obj(v)
        return out
    if isinstance(obj, list):
        return [sanitize_obj(v) for v in obj]
    if isinstance(obj, tuple):
        return tuple(sanitize_obj(v) for v in obj)
    return obj


def sanitize_text(text: str) -> str:
    """
    Best-effort scrub of token fields and codes in free-form text.

    Over-redaction is preferred to an accidental leak.
    """
    if not text:
        return text
    scrubbed = re.sub(r'("(?:access_token|id_token)"\s*:\s*")[^"]+(")', r"\1<redacted>\2", text, flags=re.IGNORECASE)
    scrubbed = re.sub(r"((?:access_token|id_token)=)[^&\s]+", r"\1<redacted>", scrubbed, flags=re.IGNORECASE)
    scrubbed = re.sub(r"(code=)[^&\"\s]+", r"\1<redacted>", scrubbed, flags=re.IGNORECASE)
    return scrubbed
