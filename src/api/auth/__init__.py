# API Authentication
"""
API key authentication: key set, credential extraction and the guard.
"""

from src.api.auth.guard import (
    APIKeyError,
    APIKeyGuard,
    InvalidCredentialError,
    MissingCredentialError,
    RejectedAttempt,
    ServerMisconfiguredError,
)
from src.api.auth.key_set import KeySet, load_key_set, parse_keys
from src.api.auth.settings import GuardSettings

__all__ = [
    "APIKeyError",
    "APIKeyGuard",
    "GuardSettings",
    "InvalidCredentialError",
    "KeySet",
    "MissingCredentialError",
    "RejectedAttempt",
    "ServerMisconfiguredError",
    "load_key_set",
    "parse_keys",
]
