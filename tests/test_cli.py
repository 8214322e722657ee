"""
Tests for the `sberbank-id` command line driver.
"""

from __future__ import annotations

import json
import logging
import os
from unittest.mock import Mock

import pytest
import requests

import sberbank_id.cli as cli_mod
from conftest import make_response
from sberbank_id.config import Environment

_ENV = {
    "SBERBANK_ID_CLIENT_ID": "012345670123abcd0123012345678901",
    "SBERBANK_ID_CLIENT_SECRET": "QWERTY",
    "SBERBANK_ID_LOGIN": "Q0002",
    "SBERBANK_ID_PASSWORD": "Password2",
}


@pytest.fixture
def cli_env(tmp_path, monkeypatch: pytest.MonkeyPatch):
    # Run from an empty directory so no developer .env is picked up.
    monkeypatch.chdir(tmp_path)
    for name in (
        "SBERBANK_ID_SCOPE",
        "SBERBANK_ID_REDIRECT_URL",
        "SBERBANK_ID_ENVIRONMENT",
        "SBERBANK_ID_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    for name, value in _ENV.items():
        monkeypatch.setenv(name, value)
    return monkeypatch


@pytest.fixture
def fake_session(monkeypatch: pytest.MonkeyPatch) -> Mock:
    session = Mock()
    session.post.side_effect = [
        make_response(status_code=200, headers={"Location": "http://127.0.0.1:8080/login?code=ABC123"}),
        make_response(payload={"access_token": "T1", "token_type": "Bearer", "scope": "openid"}),
    ]
    session.get.return_value = make_response(payload={"name": "Ivan", "snils": "123"})
    monkeypatch.setattr(cli_mod.requests, "Session", lambda: session)
    return session


def test_main_runs_full_flow_and_prints_personal_data(cli_env, fake_session, capsys) -> None:
    exit_code = cli_mod.main(["--pretty"])

    assert exit_code == 0
    assert json.loads(capsys.readouterr().out) == {"name": "Ivan", "snils": "123"}
    assert fake_session.post.call_count == 2
    assert fake_session.get.call_args[1]["headers"]["Authorization"] == "Bearer T1"


def test_main_uses_environment_option(cli_env, fake_session) -> None:
    cli_env.setenv("SBERBANK_ID_ENVIRONMENT", "dev")

    assert cli_mod.main(["--environment", "prod"]) == 0
    assert fake_session.get.call_args[0][0].startswith("https://sec.api.sberbank.ru/")


def test_main_reports_missing_variables(cli_env, capsys) -> None:
    cli_env.delenv("SBERBANK_ID_PASSWORD")

    assert cli_mod.main([]) == 2
    assert "SBERBANK_ID_PASSWORD" in capsys.readouterr().err


def test_main_reports_unknown_environment(cli_env, capsys) -> None:
    cli_env.setenv("SBERBANK_ID_ENVIRONMENT", "staging")

    assert cli_mod.main([]) == 2
    assert "unknown environment" in capsys.readouterr().err


def test_main_reports_auth_failure(cli_env, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    session = Mock()
    session.post.return_value = make_response(status_code=401, body=b"denied")
    monkeypatch.setattr(cli_mod.requests, "Session", lambda: session)

    assert cli_mod.main([]) == 2
    assert "auth request failed" in capsys.readouterr().err


@pytest.mark.parametrize(
    "error, expected",
    [
        (requests.exceptions.SSLError("bad cert"), 3),
        (requests.exceptions.ConnectTimeout("slow"), 4),
        (requests.exceptions.ConnectionError("refused"), 5),
    ],
)
def test_main_maps_transport_errors_to_exit_codes(cli_env, monkeypatch: pytest.MonkeyPatch, error, expected) -> None:
    session = Mock()
    session.post.side_effect = error
    monkeypatch.setattr(cli_mod.requests, "Session", lambda: session)

    assert cli_mod.main([]) == expected


def test_load_settings_applies_defaults_and_flags(cli_env) -> None:
    args = cli_mod.parse_args(["--timeout-seconds", "12", "--insecure-skip-ssl-verify", "--verbose"])
    log = cli_mod.configure_logging(run_id="test-run", level="DEBUG")

    settings = cli_mod.load_settings(args, log=log)

    assert settings.environment is Environment.SANDBOX
    assert settings.scope == "openid name snils gender mobile inn maindoc birthdate verified"
    assert settings.redirect_url == "http://127.0.0.1:8080/login"
    assert settings.timeout_seconds == 12.0
    assert settings.ssl_verify is False
    assert settings.verbose is True
    assert "QWERTY" not in repr(settings)

    client_config = settings.client_config()
    assert client_config.timeout_seconds == 12.0
    assert client_config.environment is Environment.SANDBOX


def test_load_settings_rejects_bad_timeout(cli_env) -> None:
    args = cli_mod.parse_args(["--timeout-seconds", "soon"])
    log = cli_mod.configure_logging(run_id="test-run", level="INFO")

    with pytest.raises(cli_mod.SberbankIdError):
        cli_mod.load_settings(args, log=log)


def test_main_applies_log_level_from_dotenv(cli_env, fake_session, tmp_path) -> None:
    (tmp_path / ".env").write_text("SBERBANK_ID_LOG_LEVEL=ERROR\n")
    root = logging.getLogger()
    previous_level = root.level
    try:
        assert cli_mod.main([]) == 0
        assert root.level == logging.ERROR
    finally:
        root.setLevel(previous_level)
        os.environ.pop("SBERBANK_ID_LOG_LEVEL", None)


def test_configure_logging_replaces_previous_run_id() -> None:
    root = logging.getLogger()
    previous_level = root.level
    try:
        cli_mod.configure_logging(run_id="first-run", level="INFO")
        cli_mod.configure_logging(run_id="second-run", level="INFO")

        assert root.handlers
        for h in root.handlers:
            run_filters = [f for f in h.filters if isinstance(f, cli_mod._RunIdFilter)]
            assert len(run_filters) == 1
            record = logging.LogRecord("sberbank_id.client", logging.INFO, __file__, 1, "msg", None, None)
            run_filters[0].filter(record)
            assert record.run_id == "second-run"
    finally:
        root.setLevel(previous_level)
