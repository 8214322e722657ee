"""Exceptions raised by the Sberbank ID client."""


class SberbankIdError(RuntimeError):
    """Base class for every error raised by this package."""


class ConfigurationError(SberbankIdError):
    """Unknown environment or an endpoint URL that is not absolute."""


class AuthRequestError(SberbankIdError):
    """The authorize call did not yield an authorization code."""

    def __init__(self, message: str = "auth request failed") -> None:
        super().__init__(message)


class TokenDecodeError(SberbankIdError):
    """The token endpoint body could not be decoded into a TokenResponse."""


class PersonalDataError(SberbankIdError):
    """The userinfo endpoint body could not be decoded into personal data."""

    def __init__(self, message: str = "failed to fetch personal data") -> None:
        super().__init__(message)
