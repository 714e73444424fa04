"""
Request payload sanitisation.

Two levels are offered:

- strip_dangerous_keys: drops keys that look like query operators (`$...`)
  or path expressions (`a.b`) and runs every string through the HTML
  sanitiser with its default allow-list. Applied to any JSON body read
  through `sanitized_json_body` and to query parameters read through
  `sanitized_query`.
- clean_markup: removes markup entirely (script, iframe and style elements
  lose their contents too), escapes any leftover angle brackets and trims
  whitespace. Used for form submissions whose values are stored and shown
  back to shoppers.
"""

import json
from typing import Any

import nh3
import structlog
from fastapi import HTTPException, Request

logger = structlog.get_logger(__name__)

PROTOTYPE_KEYS = frozenset({"__proto__", "prototype", "constructor"})
STRIPPED_BODY_TAGS = frozenset({"script", "iframe", "style"})
BODY_TOO_LARGE_MESSAGE = "Request body too large."


def is_dangerous_key(key: str) -> bool:
    return key.startswith("$") or "." in key


def strip_dangerous_keys(value: Any) -> Any:
    """Return a copy of value without dangerous keys and with sanitised strings."""
    if isinstance(value, dict):
        return {
            k: strip_dangerous_keys(v)
            for k, v in value.items()
            if not is_dangerous_key(str(k))
        }
    if isinstance(value, list):
        return [strip_dangerous_keys(v) for v in value]
    if isinstance(value, str):
        return nh3.clean(value)
    return value


def has_forbidden_keys(value: Any) -> bool:
    """True if any mapping at any depth has an operator, dotted or prototype key."""
    if isinstance(value, dict):
        for k, v in value.items():
            key = str(k)
            if is_dangerous_key(key) or key in PROTOTYPE_KEYS:
                return True
            if has_forbidden_keys(v):
                return True
        return False
    if isinstance(value, list):
        return any(has_forbidden_keys(v) for v in value)
    return False


def clean_markup(value: Any) -> Any:
    """Strip all markup from strings, recursing into lists and mappings."""
    if isinstance(value, str):
        return nh3.clean(value, tags=set(), clean_content_tags=set(STRIPPED_BODY_TAGS)).strip()
    if isinstance(value, list):
        return [clean_markup(v) for v in value]
    if isinstance(value, dict):
        return {k: clean_markup(v) for k, v in value.items()}
    return value


def sanitized_query(request: Request) -> dict[str, str]:
    """FastAPI dependency returning query parameters, sanitised like JSON bodies."""
    return strip_dangerous_keys(dict(request.query_params))


def _body_too_large(request: Request, size: int) -> HTTPException:
    logger.warning("Request body too large", path=request.url.path, size=size)
    return HTTPException(status_code=413, detail=BODY_TOO_LARGE_MESSAGE)


async def read_body_limited(request: Request, limit: int | None) -> bytes:
    """
    Read the request body, giving up as soon as it exceeds `limit` bytes.

    A declared Content-Length above the limit is rejected before anything
    is read.

    Raises:
        HTTPException: 413 when the body is too large.
    """
    if limit is None:
        return await request.body()

    content_length = request.headers.get("content-length", "")
    if content_length.isdigit() and int(content_length) > limit:
        raise _body_too_large(request, int(content_length))

    chunks: list[bytes] = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > limit:
            raise _body_too_large(request, received)
        chunks.append(chunk)
    return b"".join(chunks)


async def read_json_body(request: Request) -> Any:
    """
    Read and parse a JSON body, enforcing the configured size limit.

    Raises:
        HTTPException: 413 when the body is too large, 400 when it is not JSON.
    """
    settings = getattr(request.app.state, "settings", None)
    limit = settings.max_body_bytes if settings is not None else None

    body = await read_body_limited(request, limit)
    if not body:
        return None
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise HTTPException(status_code=400, detail="Invalid JSON body.") from e


async def sanitized_json_body(request: Request) -> Any:
    """FastAPI dependency returning the sanitised JSON body."""
    return strip_dangerous_keys(await read_json_body(request))
