"""
Sberbank ID environment and endpoint configuration.

Maps an `Environment` to its fixed base URL and derives the endpoint URLs
(authorize, token, userinfo). Base URLs are constants, not user-supplied.

Also loads a .env file for the CLI, so credentials can be kept out of the
shell history. Environment variables already set always take precedence.
"""

from __future__ import annotations

import enum
import logging
import os
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlparse

from dotenv import load_dotenv

from .exceptions import ConfigurationError


class Environment(str, enum.Enum):
    SANDBOX = "sandbox"
    DEV = "dev"
    PROD = "prod"


BASE_URLS: dict[Environment, str] = {
    Environment.SANDBOX: "http://45.12.238.224:8181",
    Environment.DEV: "https://dev.api.sberbank.ru",
    Environment.PROD: "https://sec.api.sberbank.ru",
}

AUTHORIZE_PATH = "/CSAFront/oidc/sberbank_id/authorize.do"
TOKEN_PATH = "/ru/prod/tokens/v2/oidc"
USERINFO_PATH = "/ru/prod/sberbankid/v2.1/userInfo"

DEFAULT_SCOPE = "openid name snils gender mobile inn maindoc birthdate verified"
DEFAULT_REDIRECT_URL = "http://127.0.0.1:8080/login"


def resolve_environment(value: Union[Environment, str, None]) -> Environment:
    """
    Coerce `value` to an `Environment`. `None` means sandbox.

    Raises ConfigurationError for anything that is not a known environment.
    """
    if value is None:
        return Environment.SANDBOX
    if isinstance(value, Environment):
        return value
    try:
        return Environment(str(value).strip().lower())
    except ValueError as e:
        known = ", ".join(env.value for env in Environment)
        raise ConfigurationError(f"unknown environment {value!r} (expected one of: {known})") from e


def get_env_url(environment: Union[Environment, str, None], path: str) -> str:
    """
    Return the absolute URL of `path` in `environment`.

    The result must have both a scheme and a host; there is no fallback to
    another environment.
    """
    env = resolve_environment(environment)
    base = BASE_URLS.get(env)
    if not base:
        raise ConfigurationError(f"no base URL configured for environment {env.value!r}")

    url = base.rstrip("/") + path
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise ConfigurationError(f"malformed endpoint URL {url!r}: {e}") from e
    if not parsed.scheme or not parsed.netloc:
        raise ConfigurationError(f"malformed endpoint URL {url!r}: scheme and host are required")
    return url


def get_authorize_url(environment: Union[Environment, str, None]) -> str:
    """Return full authorize endpoint URL."""
    return get_env_url(environment, AUTHORIZE_PATH)


def get_token_url(environment: Union[Environment, str, None]) -> str:
    """Return full token endpoint URL."""
    return get_env_url(environment, TOKEN_PATH)


def get_userinfo_url(environment: Union[Environment, str, None]) -> str:
    """Return full userinfo (personal data) endpoint URL."""
    return get_env_url(environment, USERINFO_PATH)


def load_dotenv_file(log: Optional[logging.LoggerAdapter] = None) -> None:
    """
    Load a .env file into the process environment (if one exists).

    Search order:
    1. Current working directory (.env)
    2. The project root, two levels up from the package
       (src/sberbank_id/config.py -> src/ -> project root)

    Shell / CI environment variables already set take priority: load_dotenv()
    is called with override=False so existing values are never overwritten.
    """
    cwd_env = Path.cwd() / ".env"
    project_root_env = Path(__file__).resolve().parents[2] / ".env"

    env_file: Optional[Path] = None
    if cwd_env.is_file():
        env_file = cwd_env
    elif project_root_env.is_file():
        env_file = project_root_env

    if env_file is None:
        return

    loaded = load_dotenv(env_file, override=False)
    if log is not None:
        if loaded:
            log.debug("loaded .env from %s (shell vars take precedence)", env_file)
        else:
            log.debug(
                ".env found at %s but all variables were already set in the environment",
                env_file,
            )


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Get environment variable, stripped; return default if unset or empty."""
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value or default
