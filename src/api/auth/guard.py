"""
API key guard.

Decides, for a single request, whether it carries one of the configured
shared-secret keys. There are exactly three failure outcomes:

- ServerMisconfiguredError (500): no keys are configured, so every request
  fails closed.
- MissingCredentialError (401): no credential in any enabled source.
- InvalidCredentialError (401): a credential was sent but matches no key.

Missing and invalid share a status code; only the message differs.
"""

from collections.abc import Callable
from dataclasses import dataclass

import structlog
from starlette.requests import HTTPConnection

from src.api.auth.extractors import build_extractors, extract_credential
from src.api.auth.settings import GuardSettings

logger = structlog.get_logger(__name__)

TRUNCATE_AT = 6
AUTH_STATE_ATTR = "authenticated_with_api_key"


class APIKeyError(Exception):
    """Base class for guard failures."""

    status_code = 401
    message = "Unauthorized"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ServerMisconfiguredError(APIKeyError):
    status_code = 500
    message = "API key configuration missing on server."


class MissingCredentialError(APIKeyError):
    status_code = 401
    message = "API key required."


class InvalidCredentialError(APIKeyError):
    status_code = 401
    message = "Invalid API key."


@dataclass(frozen=True)
class RejectedAttempt:
    """Audit record handed to the on_rejected callback."""

    client_address: str
    path: str
    truncated_credential: str


RejectionHandler = Callable[[RejectedAttempt], None]


def truncate_credential(credential: str) -> str:
    """Keep only the first few characters of a credential for logs."""
    return credential[:TRUNCATE_AT] + "..."


class APIKeyGuard:
    """
    Validates requests against an immutable key set.

    The guard holds no mutable state after construction and performs no I/O,
    so one instance can serve any number of concurrent requests.
    """

    def __init__(
        self,
        settings: GuardSettings,
        on_rejected: RejectionHandler | None = None,
    ) -> None:
        """
        Initialize the guard.

        Args:
            settings: Guard settings including the loaded key set.
            on_rejected: Optional callback invoked for invalid (not missing)
                credentials, for audit logging.
        """
        self.settings = settings
        self.on_rejected = on_rejected
        self._extractors = build_extractors(
            header_name=settings.header_name,
            allow_query_param=settings.allow_query_param,
            query_param_name=settings.query_param_name,
        )

    @property
    def configured(self) -> bool:
        return bool(self.settings.key_set)

    def is_protected(self, path: str) -> bool:
        """Check whether a path falls under one of the protected prefixes."""
        return any(
            path == prefix or path.startswith(prefix.rstrip("/") + "/")
            for prefix in self.settings.protected_prefixes
        )

    def authenticate(self, request: HTTPConnection) -> None:
        """
        Authenticate a request or raise an APIKeyError.

        On success sets `request.state.authenticated_with_api_key = True`.
        """
        if not self.configured:
            logger.error(
                "API key check failed: no keys configured",
                path=request.url.path,
            )
            raise ServerMisconfiguredError()

        credential = extract_credential(request, self._extractors)
        if not credential:
            logger.info(
                "API key missing",
                path=request.url.path,
                method=request.scope.get("method"),
            )
            raise MissingCredentialError()

        if not self.settings.key_set.matches(credential):
            attempt = RejectedAttempt(
                client_address=request.client.host if request.client else "unknown",
                path=request.url.path,
                truncated_credential=truncate_credential(credential),
            )
            logger.warning(
                "Invalid API key",
                path=attempt.path,
                client_ip=attempt.client_address,
                key_prefix=attempt.truncated_credential,
            )
            if self.on_rejected is not None:
                try:
                    self.on_rejected(attempt)
                except Exception:
                    logger.exception("on_rejected callback failed", path=attempt.path)
            raise InvalidCredentialError()

        setattr(request.state, AUTH_STATE_ATTR, True)
