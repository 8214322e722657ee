"""
Client for the Sberbank ID identity flow.

Provides the authorize -> token -> userinfo sequence (`SberbankIdClient`),
environment/endpoint resolution and the small helpers it relies on.
"""
from .client import ClientConfig, Credentials, PersonData, SberbankIdClient, TokenResponse
from .config import Environment, get_env_url
from .exceptions import (
    AuthRequestError,
    ConfigurationError,
    PersonalDataError,
    SberbankIdError,
    TokenDecodeError,
)

__all__: list[str] = [
    "AuthRequestError",
    "ClientConfig",
    "ConfigurationError",
    "Credentials",
    "Environment",
    "PersonData",
    "PersonalDataError",
    "SberbankIdClient",
    "SberbankIdError",
    "TokenDecodeError",
    "TokenResponse",
    "get_env_url",
]
