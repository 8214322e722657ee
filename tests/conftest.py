"""
Pytest configuration for the `sberbank-id` test suite.

Tests import `sberbank_id` normally. To make that work in a fresh checkout
without requiring an editable install, the local `src` directory is added to
`sys.path`.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional


def pytest_configure() -> None:
    """
    Ensure the local `sberbank_id` package is importable for tests.
    """

    project_root = Path(__file__).resolve().parent.parent
    src = project_root / "src"

    if src.is_dir():
        # Prepend so local sources win over any globally installed package.
        sys.path.insert(0, str(src))


def make_response(
    *,
    status_code: int = 200,
    payload: object = None,
    body: Optional[bytes] = None,
    headers: Optional[dict] = None,
    url: str = "https://example.invalid/",
):
    """
    Build a real `requests.Response` without any network traffic.

    `payload` is JSON-encoded; `body` is used verbatim (for malformed bodies).
    """
    import requests

    resp = requests.Response()
    resp.status_code = status_code
    if payload is not None:
        resp.headers["Content-Type"] = "application/json"
        resp._content = json.dumps(payload).encode("utf-8")  # noqa: SLF001 - requests.Response test helper
    else:
        resp._content = body if body is not None else b""  # noqa: SLF001
    for k, v in (headers or {}).items():
        resp.headers[k] = v
    resp.encoding = "utf-8"
    resp.url = url
    return resp
