"""
Settings for the API key guard.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass

from src.api.auth.extractors import DEFAULT_HEADER_NAME, DEFAULT_QUERY_PARAM
from src.api.auth.key_set import KeySet, load_key_set

TRUTHY = {"1", "true", "yes", "on"}


def env_flag(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    """Read a boolean flag; 1/true/yes/on count as set."""
    value = env.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in TRUTHY


@dataclass(frozen=True)
class GuardSettings:
    """
    Everything the guard needs, resolved once at startup.

    Attributes:
        key_set: Accepted keys.
        header_name: Custom header checked after `Authorization: ApiKey`.
        allow_query_param: Accept the key from the query string. Off by
            default since query strings end up in logs and browser history.
        query_param_name: Query parameter read when allowed.
        protected_prefixes: Path prefixes the middleware guards.
    """

    key_set: KeySet
    header_name: str = DEFAULT_HEADER_NAME
    allow_query_param: bool = False
    query_param_name: str = DEFAULT_QUERY_PARAM
    protected_prefixes: tuple[str, ...] = ("/api",)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "GuardSettings":
        env = os.environ if environ is None else environ
        return cls(
            key_set=load_key_set(env),
            header_name=(env.get("API_KEY_HEADER") or DEFAULT_HEADER_NAME).strip().lower(),
            allow_query_param=env_flag(env, "API_KEY_ALLOW_QUERY"),
        )
