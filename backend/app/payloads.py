"""
Credential payload schema and boundary validation.

``validate_payload`` never raises: it returns a tagged ``PayloadResult``
carrying either the parsed payload or a field -> messages breakdown.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

# Key used for errors that are not tied to a single field.
FORM_ERRORS_KEY = "_form"


class CredentialPayload(BaseModel):
    """Login or signup form submitted to the ``user-pass`` strategy."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=128)
    full_name: Optional[str] = Field(default=None, alias="fullName", max_length=255)
    toc_accepted: Optional[Literal[True]] = Field(default=None, alias="tocAccepted")
    type: Literal["login", "signup"]

    @field_validator("email")
    @classmethod
    def _looks_like_email(cls, value: str) -> str:
        value = value.strip()
        local, sep, domain = value.partition("@")
        if not sep or not local or not domain or "@" in domain:
            raise ValueError("must be an email address")
        return value


@dataclass
class PayloadResult:
    ok: bool
    payload: Optional[CredentialPayload] = None
    errors: Dict[str, List[str]] = field(default_factory=dict)


def flatten_errors(exc: PydanticValidationError) -> Dict[str, List[str]]:
    """Group pydantic errors by top-level field name."""
    fields: Dict[str, List[str]] = {}
    for err in exc.errors():
        loc = err.get("loc") or ()
        key = str(loc[0]) if loc else FORM_ERRORS_KEY
        fields.setdefault(key, []).append(err.get("msg", "invalid"))
    return fields


def validate_payload(data: Any) -> PayloadResult:
    """Validate raw form/JSON data against ``CredentialPayload``."""
    if not isinstance(data, dict):
        return PayloadResult(ok=False, errors={FORM_ERRORS_KEY: ["expected an object"]})
    try:
        payload = CredentialPayload.model_validate(data)
    except PydanticValidationError as exc:
        return PayloadResult(ok=False, errors=flatten_errors(exc))
    return PayloadResult(ok=True, payload=payload)
