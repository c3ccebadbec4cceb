from typing import Literal, Optional

from pydantic import BaseModel, Field


class SendToTravelerRequest(BaseModel):
    conversationSid: str = Field(min_length=1)
    message: str = Field(min_length=1)
    travelerName: Optional[str] = None


class SendToTravelerDMRequest(BaseModel):
    conversationSid: str = Field(min_length=1)
    message: str = Field(min_length=1)
    travelerEmail: str = Field(min_length=1)
    travelerPhone: Optional[str] = None
    travelerName: str = Field(min_length=1)
    adminName: Optional[str] = None


class BotSettingsRequest(BaseModel):
    conversationSid: str = Field(min_length=1)
    action: Literal["enable", "disable"]
    type: Literal["Expert Bot", "Traveler Bot"]


class AdminActionResponse(BaseModel):
    success: bool
    message: str
    data: Optional[dict] = None
