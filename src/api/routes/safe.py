"""
Validated form submission endpoints.

POST /api/safe/submit rejects payloads with operator, dotted or prototype
keys, validates the known fields and returns every value with markup removed.
"""

from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Request
from pydantic import ValidationError

from src.api.sanitize import clean_markup, has_forbidden_keys, read_json_body
from src.api.schemas import EchoResponse, SafeSubmission, SafeSubmissionResponse

logger = structlog.get_logger(__name__)

router = APIRouter()


def invalid_fields(exc: ValidationError) -> list[str]:
    """Top-level field names named in a validation error, in first-seen order."""
    fields: list[str] = []
    for error in exc.errors():
        loc = error.get("loc") or ("body",)
        field = str(loc[0])
        if field not in fields:
            fields.append(field)
    return fields


@router.post("/submit", response_model=SafeSubmissionResponse)
async def submit(request: Request) -> SafeSubmissionResponse:
    """Validate and clean a contact-style submission."""
    body: Any = await read_json_body(request)
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Body must be a JSON object.")

    if has_forbidden_keys(body):
        logger.warning("Forbidden keys in submission", path=request.url.path)
        raise HTTPException(status_code=400, detail="Forbidden keys detected in payload.")

    try:
        SafeSubmission.model_validate(body)
    except ValidationError as e:
        fields = invalid_fields(e)
        logger.info("Submission rejected", fields=fields)
        raise HTTPException(
            status_code=400, detail={"error": "Invalid input.", "fields": fields}
        ) from e

    return SafeSubmissionResponse(data=clean_markup(body))


@router.get("/echo", response_model=EchoResponse)
async def echo(msg: str | None = None) -> EchoResponse:
    """Return the cleaned `msg` query value, or "ok"."""
    return EchoResponse(message=clean_markup(msg) if msg is not None else "ok")
