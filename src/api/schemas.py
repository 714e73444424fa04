"""
Pydantic schemas for API requests and responses.
"""

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class SafeSubmission(BaseModel):
    """
    Request body for POST /api/safe/submit.

    Unknown fields are allowed through; they are cleaned but not validated.
    """

    model_config = ConfigDict(extra="allow")

    name: StrictStr = Field(..., max_length=100, description="Display name")
    email: StrictStr = Field(..., description="Contact email address")
    age: StrictInt | None = Field(default=None, ge=13, le=120, description="Age in years")

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be blank")
        return v

    @field_validator("email")
    @classmethod
    def email_format(cls, v: str) -> str:
        if not EMAIL_PATTERN.match(v):
            raise ValueError("invalid email address")
        return v

    @field_validator("age", mode="before")
    @classmethod
    def age_whole_number(cls, v: Any) -> Any:
        """Reject an explicit null and accept whole-valued floats such as 36.0."""
        if v is None:
            raise ValueError("age must be a number when present")
        if isinstance(v, float) and v.is_integer():
            return int(v)
        return v


class SafeSubmissionResponse(BaseModel):
    ok: bool = True
    data: dict[str, Any]


class EchoResponse(BaseModel):
    ok: bool = True
    message: str


class StatusResponse(BaseModel):
    message: str
    timestamp: str
    environment: str | None = None
