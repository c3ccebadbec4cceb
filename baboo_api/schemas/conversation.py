from typing import Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field


class SendMessageRequest(BaseModel):
    body: str = Field(min_length=1, validation_alias=AliasChoices("body", "message"))


class ExpertAdminDMCreate(BaseModel):
    expertId: Optional[UUID] = None
    adminId: Optional[UUID] = None


class ExternalSendMessageRequest(BaseModel):
    conversationSid: Optional[str] = None
    body: Optional[str] = None
    author: Optional[str] = None
    from_: Optional[str] = Field(default=None, validation_alias=AliasChoices("from", "from_"))
    travelerName: Optional[str] = None
    webhook_secret: Optional[str] = None


class ExternalCreateConversationRequest(BaseModel):
    customerName: Optional[str] = None
    customerEmail: Optional[str] = None
    customerPhone: Optional[str] = None
    expertEmail: Optional[str] = None
    message: Optional[str] = None
    webhook_secret: Optional[str] = None
