"""
Credential extractors.

Each extractor looks at one place in a request and returns the credential it
found there, or None when that source is absent. The guard tries them in
order and uses the first non-None result, even if it is an empty string.
"""

from collections.abc import Callable

from starlette.requests import HTTPConnection

Extractor = Callable[[HTTPConnection], str | None]

AUTHORIZATION_SCHEME = "ApiKey "
DEFAULT_HEADER_NAME = "x-api-key"
DEFAULT_QUERY_PARAM = "api_key"


def from_authorization(request: HTTPConnection) -> str | None:
    """Read `Authorization: ApiKey <key>`. Other schemes are ignored."""
    auth_header = request.headers.get("authorization")
    if not auth_header or not auth_header.startswith(AUTHORIZATION_SCHEME):
        return None
    return auth_header[len(AUTHORIZATION_SCHEME):].strip()


def header_extractor(header_name: str = DEFAULT_HEADER_NAME) -> Extractor:
    """Build an extractor for a named header."""

    def from_header(request: HTTPConnection) -> str | None:
        value = request.headers.get(header_name)
        if not value:
            return None
        return value.strip()

    from_header.__name__ = f"from_header[{header_name}]"
    return from_header


def query_extractor(param_name: str = DEFAULT_QUERY_PARAM) -> Extractor:
    """Build an extractor for a query string parameter."""

    def from_query(request: HTTPConnection) -> str | None:
        value = request.query_params.get(param_name)
        if not value:
            return None
        return value

    from_query.__name__ = f"from_query[{param_name}]"
    return from_query


def build_extractors(
    header_name: str = DEFAULT_HEADER_NAME,
    allow_query_param: bool = False,
    query_param_name: str = DEFAULT_QUERY_PARAM,
) -> tuple[Extractor, ...]:
    """
    Return the extractors in priority order.

    Authorization header first, then the named header, then the query
    parameter when it has been enabled.
    """
    extractors: list[Extractor] = [from_authorization, header_extractor(header_name)]
    if allow_query_param:
        extractors.append(query_extractor(query_param_name))
    return tuple(extractors)


def extract_credential(
    request: HTTPConnection, extractors: tuple[Extractor, ...]
) -> str | None:
    """Run extractors in order and return the first credential found."""
    for extractor in extractors:
        credential = extractor(request)
        if credential is not None:
            return credential
    return None
