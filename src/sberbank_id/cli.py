#!/usr/bin/env python3
"""
Sberbank ID end-to-end CLI (authorize -> token -> userinfo).

Logs in with a test user, exchanges the authorization code for an access
token and prints the user's personal data as JSON to stdout. Useful for
checking an integration's credentials against sandbox/dev/prod by hand.

Environment variables (a .env file is loaded first; shell vars win):
  - SBERBANK_ID_CLIENT_ID         (required)
  - SBERBANK_ID_CLIENT_SECRET     (required)
  - SBERBANK_ID_LOGIN             (required)
  - SBERBANK_ID_PASSWORD          (required)
  - SBERBANK_ID_SCOPE             (optional, default: openid name snils gender mobile inn maindoc birthdate verified)
  - SBERBANK_ID_REDIRECT_URL      (optional, default: http://127.0.0.1:8080/login)
  - SBERBANK_ID_ENVIRONMENT       (optional, default: sandbox)
  - SBERBANK_ID_LOG_LEVEL         (optional, default: INFO)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import uuid
from dataclasses import dataclass, field
from typing import Optional

import requests

from . import config as config_mod
from .client import ClientConfig, SberbankIdClient
from .config import Environment
from .exceptions import SberbankIdError
from .redaction import redact, sanitize_text

_LOGGER_NAME = "sberbank_id.cli"


class _RunIdFilter(logging.Filter):
    """
    Ensure every log record has a run_id attribute for formatting.
    """

    def __init__(self, run_id: str) -> None:
        super().__init__()
        self._run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 - logging uses `filter` name
        if not hasattr(record, "run_id"):
            record.run_id = self._run_id
        return True


def _coerce_log_level(level: str) -> int:
    level_upper = (level or "").strip().upper()
    if not level_upper:
        return logging.INFO
    return logging._nameToLevel.get(level_upper, logging.INFO)


def configure_logging(*, run_id: str, level: str) -> logging.LoggerAdapter:
    """
    Configure logging for CLI runs.

    - Configures the root logger only if nothing is configured yet.
    - Adds a run_id to all records so the three steps of one run can be correlated.
    """
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=_coerce_log_level(level),
            format="%(asctime)s %(levelname)s [%(name)s] [run=%(run_id)s] %(message)s",
        )
    else:
        root.setLevel(_coerce_log_level(level))

    # Replace the filter of a previous run so records get the current run_id.
    for h in root.handlers:
        for old in [f for f in h.filters if isinstance(f, _RunIdFilter)]:
            h.removeFilter(old)
        h.addFilter(_RunIdFilter(run_id))

    return logging.LoggerAdapter(logging.getLogger(_LOGGER_NAME), {"run_id": run_id})


@dataclass(frozen=True)
class Settings:
    client_id: str
    client_secret: str = field(repr=False)
    login: str = field(repr=False)
    password: str = field(repr=False)
    scope: str = config_mod.DEFAULT_SCOPE
    redirect_url: str = config_mod.DEFAULT_REDIRECT_URL
    environment: Environment = Environment.SANDBOX
    timeout_seconds: Optional[float] = None
    ssl_verify: bool = True
    verbose: bool = False

    def client_config(self) -> ClientConfig:
        return ClientConfig(
            scope=self.scope,
            redirect_url=self.redirect_url,
            environment=self.environment,
            verbose=self.verbose,
            timeout_seconds=self.timeout_seconds,
            ssl_verify=self.ssl_verify,
        )


def load_settings(args: argparse.Namespace, *, log: logging.LoggerAdapter) -> Settings:
    """
    Build Settings from the environment. The .env file must already be loaded.
    """
    client_id = config_mod.get_env("SBERBANK_ID_CLIENT_ID")
    client_secret = config_mod.get_env("SBERBANK_ID_CLIENT_SECRET")
    login = config_mod.get_env("SBERBANK_ID_LOGIN")
    password = config_mod.get_env("SBERBANK_ID_PASSWORD")

    missing = [
        k
        for k, v in [
            ("SBERBANK_ID_CLIENT_ID", client_id),
            ("SBERBANK_ID_CLIENT_SECRET", client_secret),
            ("SBERBANK_ID_LOGIN", login),
            ("SBERBANK_ID_PASSWORD", password),
        ]
        if not v
    ]
    if missing:
        raise SberbankIdError(f"Missing required environment variables: {', '.join(missing)}")

    environment = config_mod.resolve_environment(
        args.environment or config_mod.get_env("SBERBANK_ID_ENVIRONMENT", Environment.SANDBOX.value)
    )

    timeout_seconds: Optional[float] = None
    if args.timeout_seconds is not None:
        try:
            timeout_seconds = float(args.timeout_seconds)
        except ValueError as e:
            raise SberbankIdError(f"--timeout-seconds must be a number, got {args.timeout_seconds!r}") from e

    settings = Settings(
        client_id=client_id,
        client_secret=client_secret,
        login=login,
        password=password,
        scope=config_mod.get_env("SBERBANK_ID_SCOPE", config_mod.DEFAULT_SCOPE),
        redirect_url=config_mod.get_env("SBERBANK_ID_REDIRECT_URL", config_mod.DEFAULT_REDIRECT_URL),
        environment=environment,
        timeout_seconds=timeout_seconds,
        ssl_verify=not bool(args.insecure_skip_ssl_verify),
        verbose=bool(args.verbose),
    )

    log.info("loaded configuration")
    log.debug(
        "config details (sanitized): %s",
        {
            "client_id": redact(settings.client_id),
            "scope": settings.scope,
            "redirect_url": settings.redirect_url,
            "environment": settings.environment.value,
            "timeout_seconds": settings.timeout_seconds,
            "ssl_verify": settings.ssl_verify,
            "verbose": settings.verbose,
        },
    )
    return settings


def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="sberbank-id",
        description="Sberbank ID end-to-end check (authorize -> token -> userinfo).",
    )
    p.add_argument("--pretty", action="store_true", help="Pretty-print JSON output.")
    p.add_argument(
        "--environment",
        default=None,
        choices=[env.value for env in Environment],
        help='Target environment (default: SBERBANK_ID_ENVIRONMENT or "sandbox").',
    )
    p.add_argument("--timeout-seconds", default=None, help="HTTP timeout in seconds (default: none).")
    p.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help='Logging verbosity (default: SBERBANK_ID_LOG_LEVEL or "INFO").',
    )
    p.add_argument("--verbose", action="store_true", help="Log sanitized request/response details at INFO.")
    p.add_argument(
        "--insecure-skip-ssl-verify",
        action="store_true",
        help="Disable TLS certificate verification (NOT recommended).",
    )
    return p.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    log = logging.LoggerAdapter(logging.getLogger(_LOGGER_NAME), {})
    try:
        config_mod.load_dotenv_file()
        run_id = uuid.uuid4().hex[:12]
        log_level = args.log_level or config_mod.get_env("SBERBANK_ID_LOG_LEVEL") or "INFO"
        log = configure_logging(run_id=run_id, level=log_level)

        log.info("starting sberbank id flow")
        settings = load_settings(args, log=log)

        with SberbankIdClient(
            settings.client_id,
            settings.client_secret,
            settings.client_config(),
            session=requests.Session(),
        ) as client:
            log.info("step 1: authorization request (environment=%s)", settings.environment.value)
            code = client.auth_request(settings.login, settings.password)
            log.info("step 2: token exchange")
            token = client.get_token(code)
            log.info("step 3: personal data")
            person = client.get_personal_data(token)

        if args.pretty:
            print(json.dumps(person, indent=2, ensure_ascii=False, sort_keys=True))
        else:
            print(json.dumps(person, ensure_ascii=False))
        log.info("completed successfully")
        return 0
    except SberbankIdError as e:
        log.error("error: %s", sanitize_text(str(e)))
        print(f"Error: {sanitize_text(str(e))}", file=sys.stderr)
        return 2
    except requests.exceptions.SSLError as e:
        log.error("SSL error: %s", e)
        print(
            "Error: SSL verification failed. "
            "If you must (not recommended), retry with --insecure-skip-ssl-verify. "
            f"Details: {e}",
            file=sys.stderr,
        )
        return 3
    except requests.exceptions.Timeout:
        log.error("request timed out")
        print("Error: request timed out. Try increasing --timeout-seconds.", file=sys.stderr)
        return 4
    except requests.exceptions.RequestException as e:
        log.error("transport error: %s", sanitize_text(str(e)))
        print(f"Error: request failed: {sanitize_text(str(e))}", file=sys.stderr)
        return 5
    except KeyboardInterrupt:
        log.warning("interrupted by user")
        print("Interrupted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
