from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel


class AcceptRequest(BaseModel):
    conversationId: UUID


class AcceptBySidRequest(BaseModel):
    conversationSid: str


class AcceptanceData(BaseModel):
    inquiry_id: UUID
    conversation_sid: Optional[str] = None
    status: str
    accepted_at: Optional[datetime] = None


class AcceptResponse(BaseModel):
    success: bool
    message: str
    data: AcceptanceData


class AcceptanceCheckResponse(BaseModel):
    accepted: bool
    status: str
    auto_accepted: bool
    inquiry_id: UUID


class PendingConversationsResponse(BaseModel):
    conversations: list[dict[str, Any]]
    total: int
    pending: int
    accepted: int
