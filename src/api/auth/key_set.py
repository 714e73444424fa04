"""
Immutable set of shared-secret API keys.

Keys are loaded once at startup from one of:
1. Environment variable API_KEYS (comma-separated)
2. Environment variable API_KEY (a single key)
3. JSON file at the path in API_KEYS_FILE

The first source that yields a value wins. Membership checks compare
fixed-length SHA-256 digests with hmac.compare_digest and always walk every
key, so neither the candidate length nor the position of the closest key
affects how long a check takes.
"""

import hashlib
import hmac
import json
import os
from collections.abc import Iterable, Mapping
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

KEYS_ENV_VAR = "API_KEYS"
SINGLE_KEY_ENV_VAR = "API_KEY"
KEYS_FILE_ENV_VAR = "API_KEYS_FILE"


def _digest(value: str) -> bytes:
    return hashlib.sha256(value.encode("utf-8")).digest()


def parse_keys(raw: str | None) -> list[str]:
    """Split a comma-separated key list, trimming entries and dropping empties."""
    if not raw or not raw.strip():
        return []
    return [k.strip() for k in raw.split(",") if k.strip()]


class KeySet:
    """
    Read-only collection of accepted API keys.

    Only digests of the keys are kept after construction.
    """

    __slots__ = ("_digests", "_source")

    def __init__(self, keys: Iterable[str] = (), source: str = "direct") -> None:
        unique = {k for k in keys if k}
        self._digests: tuple[bytes, ...] = tuple(sorted(_digest(k) for k in unique))
        self._source = source

    def __len__(self) -> int:
        return len(self._digests)

    def __bool__(self) -> bool:
        return bool(self._digests)

    def __repr__(self) -> str:
        return f"KeySet(count={len(self)}, source={self._source!r})"

    @property
    def source(self) -> str:
        """Where the keys were loaded from (environment, file, direct or none)."""
        return self._source

    def matches(self, candidate: str) -> bool:
        """
        Check whether candidate is exactly one of the configured keys.

        Every key is compared; there is no early exit on a match.
        """
        candidate_digest = _digest(candidate)
        matched = False
        for key_digest in self._digests:
            matched |= hmac.compare_digest(candidate_digest, key_digest)
        return matched

    @classmethod
    def from_string(cls, raw: str | None, source: str = "environment") -> "KeySet":
        """Build a key set from a comma-separated string."""
        return cls(parse_keys(raw), source=source)


def _load_from_file(file_path: str) -> list[str]:
    """Load keys from a JSON file holding a list or {"keys": [...]}."""
    path = Path(file_path)
    if not path.exists():
        logger.warning("API keys file not found", path=file_path)
        return []

    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse API keys file", path=file_path, error=str(e))
        return []
    except OSError as e:
        logger.error("Failed to read API keys file", path=file_path, error=str(e))
        return []

    if isinstance(data, dict) and "keys" in data:
        data = data["keys"]
    if not isinstance(data, list):
        logger.error("Invalid API keys file format", path=file_path)
        return []

    keys = [k.strip() for k in data if isinstance(k, str) and k.strip()]
    logger.debug("Loaded API keys from file", count=len(keys), path=file_path)
    return keys


def load_key_set(environ: Mapping[str, str] | None = None) -> KeySet:
    """
    Load the key set from process configuration.

    Args:
        environ: Mapping to read from. Defaults to os.environ.

    Returns:
        A KeySet, empty when nothing usable is configured.
    """
    env = os.environ if environ is None else environ

    keys = parse_keys(env.get(KEYS_ENV_VAR))
    if keys:
        logger.debug("Loaded API keys from environment", count=len(keys))
        return KeySet(keys, source="environment")

    single = (env.get(SINGLE_KEY_ENV_VAR) or "").strip()
    if single:
        return KeySet([single], source="environment")

    file_path = env.get(KEYS_FILE_ENV_VAR)
    if file_path:
        keys = _load_from_file(file_path)
        if keys:
            return KeySet(keys, source="file")

    logger.warning("No API keys configured")
    return KeySet(source="none")
