# store/codec.py
"""
Conversion between stored JSON shapes and the typed models.
Array nodes are decoded element by element: a bad element is logged and
dropped, it never fails the whole read.
"""
from __future__ import annotations

import logging
from typing import Any, List, Type, TypeVar

from pydantic import BaseModel, ValidationError

from models.conversation import ConversationSummary, LatestMessage
from models.message import (
    MEDIA_KINDS,
    MediaContent,
    Message,
    MessageEntry,
    MessageKind,
    Sender,
    TextContent,
)
from shared.time import MessageDateFormatter
from store.errors import NotFoundError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def as_list(raw: Any, path: str) -> List[Any]:
    """The node must exist and be an array; the realtime database may hand back {index: item}."""
    if raw is None:
        raise NotFoundError(path)
    if isinstance(raw, dict) and all(str(k).isdigit() for k in raw):
        raw = [raw[k] for k in sorted(raw, key=lambda k: int(k))]
    if not isinstance(raw, list):
        raise NotFoundError(path, f"expected an array, got {type(raw).__name__}")
    return raw


def decode_list(raw: Any, model: Type[M], path: str) -> List[M]:
    out: List[M] = []
    for idx, item in enumerate(as_list(raw, path)):
        if item is None:
            continue
        try:
            out.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning("[STORE] skipping %s[%d] in '%s': %s", model.__name__, idx, path, e.errors())
    return out


def to_entry(message: Message, sender_email: str, name: str, formatter: MessageDateFormatter) -> MessageEntry:
    return MessageEntry(
        id=message.message_id,
        type=message.kind,
        content=message.stored_content(),
        date=formatter.format(message.sent_date),
        sender_email=sender_email,
        is_read=False,
        name=name,
    )


def latest_from(message: Message, formatter: MessageDateFormatter) -> LatestMessage:
    return LatestMessage(
        date=formatter.format(message.sent_date),
        message=message.stored_content(),
        is_read=False,
    )


def summary_for(conversation_id: str, other_user_email: str, name: str, latest: LatestMessage) -> ConversationSummary:
    return ConversationSummary(
        id=conversation_id,
        other_user_email=other_user_email,
        name=name,
        latest_message=latest,
    )


def decode_messages(raw: Any, path: str, formatter: MessageDateFormatter) -> List[Message]:
    messages: List[Message] = []
    for entry in decode_list(raw, MessageEntry, path):
        try:
            sent_date = formatter.parse(entry.date)
        except ValueError as e:
            logger.warning("[STORE] skipping message %s in '%s': %s", entry.id, path, e)
            continue

        kind = MessageKind(entry.type)
        if kind in MEDIA_KINDS:
            content = MediaContent(kind=kind.value, url=entry.content)
        else:
            content = TextContent(text=entry.content)

        messages.append(Message(
            message_id=entry.id,
            sent_date=sent_date,
            sender=Sender(sender_id=entry.sender_email, display_name=entry.name),
            content=content,
        ))
    return messages
