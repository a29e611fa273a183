# backend/perfume_chat/models/chat_models.py

from typing import Annotated, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, HttpUrl


# -----------------------------
# Message parts
# -----------------------------
class TextPart(BaseModel):
    type: Literal["text"]
    text: str = Field(min_length=1, max_length=2000)


class FilePart(BaseModel):
    type: Literal["file"]
    media_type: Literal["image/jpeg", "image/png"] = Field(alias="mediaType")
    name: str = Field(min_length=1, max_length=100)
    url: HttpUrl

    model_config = ConfigDict(populate_by_name=True)


MessagePart = Annotated[Union[TextPart, FilePart], Field(discriminator="type")]


class UserMessage(BaseModel):
    id: UUID
    role: Literal["user"]
    parts: List[MessagePart] = Field(min_length=1)


# -----------------------------
# POST /api/chat body
# -----------------------------
class PostRequestBody(BaseModel):
    id: UUID
    message: UserMessage
    selected_chat_model: Literal["chat-model", "chat-model-reasoning"] = Field(alias="selectedChatModel")
    selected_visibility_type: Literal["public", "private"] = Field(alias="selectedVisibilityType")

    model_config = ConfigDict(populate_by_name=True)


class VisibilityIn(BaseModel):
    visibility: Literal["public", "private"]


# -----------------------------
# Responses
# -----------------------------
class ChatOut(BaseModel):
    id: str
    user_id: str
    title: str
    visibility: str
    created_at: str
    updated_at: Optional[str] = None
    last_context: Optional[dict] = None


class MessageOut(BaseModel):
    id: str
    chat_id: str
    role: str
    parts: list
    attachments: list = []
    created_at: str
