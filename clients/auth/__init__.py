"""
Authentication boundary.
Supplies bearer tokens to the API client; issuance and refresh live elsewhere.
"""
from .token_provider import TokenProvider, StaticTokenProvider, EnvTokenProvider

__all__ = [
    'TokenProvider',
    'StaticTokenProvider',
    'EnvTokenProvider'
]
