"""Chat request and response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from applifix.models.conversation import Speaker


class ChatMessageIn(BaseModel):
    message: str | None = None
    chat_id: int | None = None
    topic_id: int | None = None

    @model_validator(mode="after")
    def _message_or_topic(self):
        if not (self.message and self.message.strip()) and self.topic_id is None:
            raise ValueError("The message field is required when no topic_id is given.")
        return self


class TopicChatIn(BaseModel):
    topic_id: int


class PreviewTurnOut(BaseModel):
    role: Speaker
    message: str
    created_at: datetime


class ExchangeOut(BaseModel):
    ai_message: str
    chat_id: int | None = None
    turns: list[PreviewTurnOut] | None = None


class TurnOut(BaseModel):
    id: int
    conversation_id: int
    author_id: int
    body: str
    speaker: Speaker
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class ConversationOut(BaseModel):
    id: int
    title: str
    owner_id: int
    origin_topic_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    turns: list[TurnOut] = []

    model_config = {"from_attributes": True}


class ChatHistoryIn(BaseModel):
    chat_id: int
    message: str = Field(min_length=1)
    role: Literal["user", "assistant"]
