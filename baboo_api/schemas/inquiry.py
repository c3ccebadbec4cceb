import re
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator

PHONE_PATTERN = re.compile(r"^\+[1-9]\d{8,14}$")


def normalize_phone(raw: Optional[str]) -> Optional[str]:
    """Strip formatting and require E.164. Empty input means no phone."""
    if raw is None:
        return None
    cleaned = re.sub(r"[^\d+]", "", raw)
    if not cleaned:
        return None
    if not PHONE_PATTERN.match(cleaned):
        raise ValueError("Invalid phone number format. Please use international format (e.g., +1234567890)")
    return cleaned


class InquiryCreate(BaseModel):
    customerName: str
    customerEmail: str
    customerPhone: Optional[str] = None
    message: str
    assignedExpertId: UUID

    @field_validator("customerName", "customerEmail", "message")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("customerPhone")
    @classmethod
    def valid_phone(cls, v: Optional[str]) -> Optional[str]:
        return normalize_phone(v)


class InquiryStatusUpdate(BaseModel):
    status: Literal["new", "assigned", "in_progress", "resolved"]

