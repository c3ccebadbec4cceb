from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ProviderEvent(BaseModel):
    """Form fields posted by Conversations webhooks. Unknown fields are ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    event_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("EventType", "event_type"))
    conversation_sid: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ConversationSid", "conversation_sid")
    )


class MessageAddedEvent(ProviderEvent):
    message_sid: Optional[str] = Field(default=None, validation_alias=AliasChoices("MessageSid", "message_sid"))
    author: Optional[str] = Field(default=None, validation_alias=AliasChoices("Author", "author"))
    body: Optional[str] = Field(default=None, validation_alias=AliasChoices("Body", "body"))
    date_created: Optional[str] = Field(default=None, validation_alias=AliasChoices("DateCreated", "date_created"))
    participant_sid: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ParticipantSid", "participant_sid")
    )
    source: Optional[str] = Field(default=None, validation_alias=AliasChoices("Source", "source"))


class ConversationStateEvent(ProviderEvent):
    state_from: Optional[str] = Field(default=None, validation_alias=AliasChoices("StateFrom", "state_from"))
    conversation_state: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ConversationState", "StateTo", "conversation_state")
    )
    friendly_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("FriendlyName", "friendly_name"))
    unique_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("UniqueName", "unique_name"))


class ParticipantAddedEvent(ProviderEvent):
    participant_sid: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ParticipantSid", "participant_sid")
    )
    identity: Optional[str] = Field(default=None, validation_alias=AliasChoices("Identity", "identity"))
    messaging_binding_address: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("MessagingBinding.Address", "messaging_binding_address")
    )
    messaging_binding_proxy_address: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MessagingBinding.ProxyAddress", "messaging_binding_proxy_address"),
    )


class ConversationAddedEvent(ProviderEvent):
    friendly_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("FriendlyName", "friendly_name"))
    unique_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("UniqueName", "unique_name"))
    attributes: Optional[str] = Field(default=None, validation_alias=AliasChoices("Attributes", "attributes"))


class WebhookAck(BaseModel):
    success: bool = True
    message: str = "ok"
