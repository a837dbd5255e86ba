from __future__ import annotations
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class MessageKind(str, Enum):
    TEXT = "text"
    ATTRIBUTED_TEXT = "attributed_text"
    PHOTO = "photo"
    VIDEO = "video"
    LOCATION = "location"
    EMOJI = "emoji"
    AUDIO = "audio"
    CONTACT = "contact"
    CUSTOM = "custom"
    LINK_PREVIEW = "linkPreview"


MEDIA_KINDS = (MessageKind.PHOTO, MessageKind.VIDEO)
PLACEHOLDER_SIZE = 300


# ---- Rich content, discriminated on `kind` ----
class TextContent(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class MediaContent(BaseModel):
    kind: Literal["photo", "video"]
    url: str
    placeholder_width: int = PLACEHOLDER_SIZE
    placeholder_height: int = PLACEHOLDER_SIZE


class OpaqueContent(BaseModel):
    """Kinds the store keeps only as a type tag (content is stored empty)."""
    kind: Literal[
        "attributed_text", "location", "emoji", "audio", "contact", "custom", "linkPreview"
    ]
    payload: Optional[str] = None


MessageContent = Annotated[
    Union[TextContent, MediaContent, OpaqueContent],
    Field(discriminator="kind"),
]


class Sender(BaseModel):
    sender_id: str          # safe email
    display_name: str
    photo_url: str = ""


class Message(BaseModel):
    message_id: str
    sent_date: datetime
    sender: Sender
    content: MessageContent

    @property
    def kind(self) -> MessageKind:
        return MessageKind(self.content.kind)

    def stored_content(self) -> str:
        """Text kinds keep the literal text, photo/video the media url, everything else ''."""
        if isinstance(self.content, TextContent):
            return self.content.text
        if isinstance(self.content, MediaContent):
            return self.content.url
        return ""


# ---- Stored shape under <conversationId>/messages ----
class MessageEntry(BaseModel):
    id: str
    type: MessageKind
    content: str
    date: str
    sender_email: str
    is_read: bool
    name: str

    model_config = {"use_enum_values": True}
