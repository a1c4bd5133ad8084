"""
Bearer token providers.

Token issuance and refresh belong to the session/auth layer; the gateway only
asks for the current token. When none is available it surfaces the same
re-authentication signal as an upstream 401.
"""
import os
from typing import Optional, Protocol

from config import SpotifyConfig
from gateway.errors import UnauthorizedError


class TokenProvider(Protocol):
    def get_valid_token(self) -> str:
        ...

    def revoke(self) -> None:
        """Called after the upstream rejected the current token."""
        ...


class StaticTokenProvider:
    """Serves a token obtained elsewhere (e.g. by the web session)."""

    def __init__(self, access_token: Optional[str]):
        self.access_token = access_token

    @classmethod
    def from_config(cls, config: SpotifyConfig) -> 'StaticTokenProvider':
        return cls(config.access_token)

    def get_valid_token(self) -> str:
        if not self.access_token:
            raise UnauthorizedError("Not authorized. Please sign in again.")
        return self.access_token

    def revoke(self) -> None:
        self.access_token = None


class EnvTokenProvider:
    """Reads the token from the environment on every request, so an external refresh is picked up."""

    def __init__(self, variable: str = 'SPOTIFY_ACCESS_TOKEN'):
        self.variable = variable
        self.rejected: Optional[str] = None

    def get_valid_token(self) -> str:
        token = os.getenv(self.variable)
        if not token:
            raise UnauthorizedError(f"{self.variable} is not set. Please sign in again.")
        if token == self.rejected:
            raise UnauthorizedError(f"{self.variable} was rejected. Please sign in again.")
        return token

    def revoke(self) -> None:
        """Refuse the current token until the environment holds a new one."""
        self.rejected = os.getenv(self.variable)
