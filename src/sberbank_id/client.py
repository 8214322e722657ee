"""
Sberbank ID client.

Implements the three-step identity flow against a fixed set of endpoints:

1. `auth_request()`: POST the user's login/password to the authorize endpoint
   and pick the authorization code out of the `Location` header,
2. `get_token()`: exchange the code for an access token,
3. `get_personal_data()`: fetch the user's personal data with that token.

Every call performs exactly one blocking HTTP round trip through the wrapped
`requests.Session`. Nothing is retried, cached or stored.

The returned `state` is not compared with the generated one; callers that
receive the redirect themselves must do that check.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import requests

from . import config as config_mod
from .config import Environment
from .exceptions import AuthRequestError, PersonalDataError, TokenDecodeError
from .redaction import redact, sanitize_mapping, sanitize_obj, sanitize_text
from .utils import build_query, generate_nonce, generate_rquid, generate_state, parse_url_param

# The userinfo schema varies with the granted scope.
PersonData = dict[str, Any]

_BODY_EXCERPT_CHARS = 500


@dataclass(frozen=True)
class Credentials:
    client_id: str
    client_secret: str = field(repr=False)


@dataclass(frozen=True)
class ClientConfig:
    scope: str
    redirect_url: str
    environment: Union[Environment, str, None] = None
    verbose: bool = False
    # None leaves timeouts to the transport.
    timeout_seconds: Optional[float] = None
    ssl_verify: bool = True


@dataclass(frozen=True)
class TokenResponse:
    access_token: str = field(repr=False)
    token_type: str = ""
    expires_in: int = 0
    scope: str = ""
    id_token: str = field(default="", repr=False)

    @classmethod
    def from_dict(cls, payload: Any) -> "TokenResponse":
        """
        Build a TokenResponse from a decoded token endpoint body.

        Raises TokenDecodeError if the body is not an object, a field has the
        wrong type, or access_token is missing.
        """
        if not isinstance(payload, dict):
            raise TokenDecodeError(f"token response must be a JSON object, got {type(payload).__name__}")

        values: dict[str, str] = {}
        for name in ("access_token", "token_type", "scope", "id_token"):
            value = payload.get(name)
            if value is None:
                values[name] = ""
            elif isinstance(value, str):
                values[name] = value
            else:
                raise TokenDecodeError(f"token response field {name!r} must be a string, got {type(value).__name__}")

        expires_in = payload.get("expires_in")
        if expires_in is None:
            expires_in = 0
        elif isinstance(expires_in, bool) or not isinstance(expires_in, int):
            raise TokenDecodeError(f"token response field 'expires_in' must be an integer, got {type(expires_in).__name__}")

        if not values["access_token"]:
            raise TokenDecodeError(f"token response missing access_token. Keys: {sorted(payload.keys())}")

        return cls(expires_in=expires_in, **values)


class SberbankIdClient:
    """
    Client for one Sberbank ID integration (one client id/secret pair).

    `state` and `nonce` are generated once here and sent with every
    authorization request made by this instance.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        config: ClientConfig,
        *,
        session: Optional[requests.Session] = None,
        log: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        environment = config_mod.resolve_environment(config.environment)
        self._config = dataclasses.replace(config, environment=environment)
        self._credentials = Credentials(client_id=client_id, client_secret=client_secret)
        self._owns_session = session is None
        self._session = session if session is not None else requests.Session()
        self._log = log if log is not None else logging.LoggerAdapter(logging.getLogger("sberbank_id.client"), {})
        self._state = generate_state()
        self._nonce = generate_nonce()

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    @property
    def environment(self) -> Environment:
        return self._config.environment  # type: ignore[return-value]

    @property
    def session(self) -> requests.Session:
        return self._session

    @property
    def state(self) -> str:
        return self._state

    @property
    def nonce(self) -> str:
        return self._nonce

    def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> "SberbankIdClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _detail(self, msg: str, *args: object) -> None:
        level = logging.INFO if self._config.verbose else logging.DEBUG
        self._log.log(level, msg, *args)

    def _transport_kwargs(self) -> dict[str, Any]:
        return {"timeout": self._config.timeout_seconds, "verify": self._config.ssl_verify}

    def auth_request(self, login: str, password: str) -> str:
        """
        Log the user in at the authorize endpoint and return the authorization code.

        The provider answers with HTTP 200 and a `Location` header pointing at
        the redirect URI, as if a browser were being redirected. Redirects are
        therefore not followed. Anything else raises AuthRequestError;
        transport errors propagate unchanged.
        """
        params = {
            "response_type": "code",
            "client_type": "PRIVATE",
            "scope": self._config.scope,
            "client_id": self._credentials.client_id,
            "state": self._state,
            "nonce": self._nonce,
            "redirect_uri": self._config.redirect_url,
        }
        body = {"login": login, "password": password}
        headers = {"Content-Type": "application/json"}
        base_url = config_mod.get_authorize_url(self._config.environment)

        self._log.info("requesting authorization code")
        self._detail(
            "authorize request details (sanitized): %s",
            {
                "url": base_url,
                "params": sanitize_mapping({**params, "client_id": redact(params["client_id"])}),
                "headers": headers,
                "body": sanitize_mapping(body),
                "allow_redirects": False,
            },
        )

        start = time.perf_counter()
        resp = self._session.post(
            f"{base_url}?{build_query(params)}",
            json=body,
            headers=headers,
            allow_redirects=False,
            **self._transport_kwargs(),
        )
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        location = resp.headers.get("Location") or ""
        self._detail(
            "authorize response details: %s",
            {
                "status_code": resp.status_code,
                "elapsed_ms": elapsed_ms,
                "has_location_header": bool(location),
                "content_type": resp.headers.get("Content-Type"),
            },
        )

        if resp.status_code != 200:
            self._log.warning("authorize failed: HTTP %s", resp.status_code)
            raise AuthRequestError()
        if not location:
            self._log.warning("authorize response has no Location header")
            raise AuthRequestError()

        try:
            code = parse_url_param(location, "code")
        except ValueError as e:
            self._log.warning("authorize Location header could not be parsed")
            raise AuthRequestError() from e
        if not code:
            self._log.warning("authorize Location header carries no code parameter")
            raise AuthRequestError()

        self._log.info("authorization code received")
        self._detail("authorization code extracted (length=%s)", len(code))
        return code

    def get_token(self, code: str) -> TokenResponse:
        """
        Exchange an authorization code for a TokenResponse.

        The HTTP status is not used to decide success: an error status still
        has its body decoded, and only a body that does not decode into a
        TokenResponse raises TokenDecodeError.
        """
        form = {
            "grant_type": "authorization_code",
            "scope": self._config.scope,
            "redirect_uri": self._config.redirect_url,
            "code": code,
            "client_id": self._credentials.client_id,
            "client_secret": self._credentials.client_secret,
        }
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/x-www-form-urlencoded",
            "X-IBM-Client-ID": self._credentials.client_id,
            "X-IBM-Client-Secret": self._credentials.client_secret,
            "RqUID": generate_rquid(),
        }
        url = config_mod.get_token_url(self._config.environment)

        self._log.info("exchanging authorization code for access token")
        self._detail(
            "token request details (sanitized): %s",
            {
                "url": url,
                "form": sanitize_mapping({**form, "client_id": redact(form["client_id"])}),
                "headers": sanitize_mapping({**headers, "X-IBM-Client-ID": redact(headers["X-IBM-Client-ID"])}),
            },
        )

        start = time.perf_counter()
        resp = self._session.post(url, data=build_query(form), headers=headers, **self._transport_kwargs())
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        self._detail(
            "token response details: %s",
            {
                "status_code": resp.status_code,
                "elapsed_ms": elapsed_ms,
                "content_type": resp.headers.get("Content-Type"),
            },
        )
        if resp.status_code >= 400:
            self._log.warning("token endpoint returned HTTP %s; decoding body anyway", resp.status_code)

        try:
            payload = resp.json()
        except ValueError as e:
            raise TokenDecodeError(
                f"token response was not valid JSON: {e}. "
                f"Body (truncated, sanitized): {sanitize_text((resp.text or '')[:_BODY_EXCERPT_CHARS])!r}"
            ) from e

        token = TokenResponse.from_dict(payload)
        self._log.info("access token acquired")
        self._detail("token response body (sanitized): %s", sanitize_obj(payload))
        return token

    def get_personal_data(self, token: Union[TokenResponse, str]) -> PersonData:
        """
        Fetch the personal data of the user the access token was issued for.

        Accepts a TokenResponse or a bare access token. Only the keys of the
        returned data are ever logged.
        """
        access_token = token.access_token if isinstance(token, TokenResponse) else token
        headers = {
            "x-introspect-rquid": generate_rquid(),
            "X-IBM-Client-ID": self._credentials.client_id,
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
            "RqUID": generate_rquid(),
        }
        url = config_mod.get_userinfo_url(self._config.environment)

        self._log.info("fetching personal data")
        self._detail(
            "userinfo request details (sanitized): %s",
            {
                "url": url,
                "headers": sanitize_mapping({**headers, "X-IBM-Client-ID": redact(headers["X-IBM-Client-ID"])}),
            },
        )

        start = time.perf_counter()
        resp = self._session.get(url, headers=headers, **self._transport_kwargs())
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        self._detail(
            "userinfo response details: %s",
            {
                "status_code": resp.status_code,
                "elapsed_ms": elapsed_ms,
                "content_type": resp.headers.get("Content-Type"),
            },
        )
        if resp.status_code >= 400:
            self._log.warning("userinfo endpoint returned HTTP %s; decoding body anyway", resp.status_code)

        try:
            payload = resp.json()
        except ValueError as e:
            raise PersonalDataError(f"failed to fetch personal data: response was not valid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise PersonalDataError(
                f"failed to fetch personal data: expected a JSON object, got {type(payload).__name__}"
            )

        self._log.info("personal data received")
        self._detail("personal data keys: %s", sorted(payload.keys()))
        return payload
