# auth/credentials.py
"""
X API Credentials
=================

This module defines the credential bundle the server is started with and the
errors raised when that bundle is unusable.

The CredentialSet is loaded once from the environment at process start and
never mutated afterwards. Two capability predicates are derived from it:

- read-capable: a bearer token is present (app-only, read-only access)
- delegated-capable: the consumer key/secret and the user access token/secret
  are all present (OAuth 1.0a user context, required for writes)
"""

import logging
from collections import namedtuple
from typing import Optional
from urllib.parse import unquote

from pydantic import BaseModel

from config import Settings, get_settings

logger = logging.getLogger(__name__)

OAuthToken = namedtuple("OAuthToken", ["key", "secret"])
"""
A key/secret pair used when signing. Represents the consumer (the app), a
temporary request token during the authorization flow, or a permanent user
access token.
"""


class ConfigurationError(Exception):
    """Raised when the process cannot run with the configured credentials."""


class SigningPreconditionError(Exception):
    """Raised when a delegated call is attempted without delegated credentials."""


class CredentialSet(BaseModel):
    """
    Immutable bundle of the credentials available to the process.

    Attributes:
        consumer_key (str): The app's API key
        consumer_secret (str): The app's API secret
        access_token (str): The user's OAuth 1.0a access token
        access_token_secret (str): The user's OAuth 1.0a access token secret
        bearer_token (str): The app-only bearer token
    """

    consumer_key: str = ""
    consumer_secret: str = ""
    access_token: str = ""
    access_token_secret: str = ""
    bearer_token: str = ""

    class Config:
        frozen = True

    @property
    def is_read_capable(self) -> bool:
        return bool(self.bearer_token)

    @property
    def is_delegated_capable(self) -> bool:
        return all((
            self.consumer_key,
            self.consumer_secret,
            self.access_token,
            self.access_token_secret,
        ))

    @property
    def consumer(self) -> OAuthToken:
        return OAuthToken(self.consumer_key, self.consumer_secret)

    @property
    def token(self) -> OAuthToken:
        if not self.is_delegated_capable:
            raise SigningPreconditionError(
                "OAuth 1.0a credentials are incomplete; delegated calls are unavailable"
            )
        return OAuthToken(self.access_token, self.access_token_secret)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CredentialSet":
        """
        Build a CredentialSet from process settings.

        The bearer token is URL-decoded, since the developer portal hands it
        out percent-encoded and it is frequently pasted that way.

        Args:
            settings (Optional[Settings]): Settings to read, defaults to get_settings()

        Returns:
            CredentialSet: The loaded credentials
        """
        settings = settings or get_settings()
        return cls(
            consumer_key=settings.API_KEY or "",
            consumer_secret=settings.API_SECRET or "",
            access_token=settings.ACCESS_TOKEN or "",
            access_token_secret=settings.ACCESS_TOKEN_SECRET or "",
            bearer_token=unquote(settings.BEARER_TOKEN or ""),
        )


def load_credentials(settings: Optional[Settings] = None) -> CredentialSet:
    """
    Load credentials and check that the server can run at all.

    Raises:
        ConfigurationError: If no bearer token is configured
    """
    credentials = CredentialSet.from_settings(settings)
    if not credentials.is_read_capable:
        raise ConfigurationError("X_BEARER_TOKEN environment variable is required")
    if credentials.is_delegated_capable:
        logger.info("Loaded bearer and OAuth 1.0a user credentials")
    else:
        logger.info("Loaded bearer credentials only")
    return credentials
