from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, List, Optional

from db.document_store import DocumentStore, Listener
from models.conversation import ConversationSummary, LatestMessage
from models.message import Message, MessageContent, Sender
from models.user import ChatSession
from shared.config import WriteMode
from shared import identity
from shared.identity import safe_email
from shared.time import MessageDateFormatter, utcnow
from store.codec import as_list, decode_list, decode_messages, latest_from, summary_for, to_entry
from store.errors import ChatStoreError, NotFoundError

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[ChatStoreError], None]


def conversations_path(email: str) -> str:
    return f"{safe_email(email)}/conversations"


def messages_path(conversation_id: str) -> str:
    return f"{conversation_id}/messages"


class ConversationStore:
    """
    Conversations and messages, denormalized.

    Each participant owns a summary array under <safeEmail>/conversations;
    the messages live once under <conversationId>/messages. Multi-step
    operations run their steps in order and stop at the first failure;
    steps that already landed are not undone.
    """

    def __init__(
        self,
        db: DocumentStore,
        formatter: Optional[MessageDateFormatter] = None,
        write_mode: WriteMode = "etag",
        max_write_attempts: int = 5,
    ):
        self.db = db
        self.formatter = formatter or MessageDateFormatter()
        self.write_mode = write_mode
        self.max_write_attempts = max_write_attempts

    async def _rmw(self, path: str, mutate: Callable[[Any], Any]) -> Any:
        return await asyncio.to_thread(
            self.db.read_modify_write,
            path,
            mutate,
            mode=self.write_mode,
            max_attempts=self.max_write_attempts,
        )

    # ---- composing ----
    def compose_message(
        self,
        session: ChatSession,
        other_user_email: str,
        content: MessageContent,
        sent_date: Optional[datetime] = None,
    ) -> Message:
        """A new outgoing message with an id derived from both emails and the send time."""
        sent_date = sent_date or utcnow()
        message_id = identity.make_message_id(
            other_user_email, session.email, self.formatter.format(sent_date)
        )
        return Message(
            message_id=message_id,
            sent_date=sent_date,
            sender=Sender(sender_id=session.safe_email, display_name=session.name),
            content=content,
        )

    # ---- create ----
    async def create_new_conversation(
        self,
        session: ChatSession,
        other_user_email: str,
        other_user_name: str,
        first_message: Message,
    ) -> str:
        my_email = session.safe_email
        other_email = safe_email(other_user_email)

        user_node = await asyncio.to_thread(self.db.get, my_email)
        if not isinstance(user_node, dict):
            logger.error("[STORE] user %s not found, cannot start a conversation", my_email)
            raise NotFoundError(my_email, "user not found")

        conversation_id = identity.conversation_id_for(first_message.message_id)
        latest = latest_from(first_message, self.formatter)
        mine = summary_for(conversation_id, other_email, other_user_name, latest).model_dump()
        theirs = summary_for(conversation_id, my_email, session.name, latest).model_dump()

        def _appender(summary: dict, path: str):
            def _append(current: Any) -> List[dict]:
                if current is None:
                    return [summary]
                conversations = as_list(current, path)
                conversations.append(summary)
                return conversations
            return _append

        recipient_path = conversations_path(other_email)
        await self._rmw(recipient_path, _appender(theirs, recipient_path))

        my_path = conversations_path(my_email)
        await self._rmw(my_path, _appender(mine, my_path))

        entry = to_entry(first_message, my_email, other_user_name, self.formatter)
        await asyncio.to_thread(self.db.set, messages_path(conversation_id), [entry.model_dump()])

        logger.info("[STORE] Created conversation %s between %s and %s", conversation_id, my_email, other_email)
        return conversation_id

    # ---- read ----
    async def get_all_conversations(self, email: str) -> List[ConversationSummary]:
        path = conversations_path(email)
        raw = await asyncio.to_thread(self.db.get, path)
        return decode_list(raw, ConversationSummary, path)

    async def get_all_messages(self, conversation_id: str) -> List[Message]:
        path = messages_path(conversation_id)
        raw = await asyncio.to_thread(self.db.get, path)
        return decode_messages(raw, path, self.formatter)

    def observe_conversations(
        self,
        email: str,
        on_update: Callable[[List[ConversationSummary]], None],
        on_error: Optional[ErrorCallback] = None,
    ) -> Listener:
        """Deliver the decoded conversation list now and after every change, until closed."""
        path = conversations_path(email)
        decode = lambda raw: decode_list(raw, ConversationSummary, path)  # noqa: E731
        return self.db.listen(path, self._decoding(path, decode, on_update, on_error))

    def observe_messages(
        self,
        conversation_id: str,
        on_update: Callable[[List[Message]], None],
        on_error: Optional[ErrorCallback] = None,
    ) -> Listener:
        path = messages_path(conversation_id)
        decode = lambda raw: decode_messages(raw, path, self.formatter)  # noqa: E731
        return self.db.listen(path, self._decoding(path, decode, on_update, on_error))

    @staticmethod
    def _decoding(path, decode, on_update, on_error):
        def _callback(raw: Any) -> None:
            try:
                decoded = decode(raw)
            except NotFoundError as e:
                logger.info("[STORE] nothing at '%s' yet", path)
                if on_error is not None:
                    on_error(e)
                return
            on_update(decoded)
        return _callback

    # ---- send ----
    async def send_message(
        self,
        session: ChatSession,
        conversation_id: str,
        other_user_email: str,
        name: str,
        message: Message,
    ) -> None:
        """
        Append to the message list, then refresh latest_message in the
        sender's and the recipient's summaries (appending a fresh summary to
        either side that no longer has one).
        """
        my_email = session.safe_email
        other_email = safe_email(other_user_email)
        list_path = messages_path(conversation_id)

        entry = to_entry(message, my_email, name, self.formatter).model_dump()

        def _append_message(current: Any) -> List[dict]:
            messages = as_list(current, list_path)
            messages.append(entry)
            return messages

        await self._rmw(list_path, _append_message)

        latest = latest_from(message, self.formatter)
        for path, fallback in (
            (conversations_path(my_email), summary_for(conversation_id, other_email, name, latest)),
            (conversations_path(other_email), summary_for(conversation_id, my_email, session.name, latest)),
        ):
            await self._rmw(path, self._upsert_latest(path, conversation_id, latest, fallback))
        logger.info("[STORE] %s sent %s to %s", my_email, message.message_id, conversation_id)

    @staticmethod
    def _upsert_latest(path: str, conversation_id: str, latest: LatestMessage, fallback: ConversationSummary):
        def _mutate(current: Any) -> List[dict]:
            conversations = [] if current is None else as_list(current, path)
            for conversation in conversations:
                if isinstance(conversation, dict) and conversation.get("id") == conversation_id:
                    conversation["latest_message"] = latest.model_dump()
                    return conversations
            conversations.append(fallback.model_dump())
            return conversations
        return _mutate

    # ---- delete ----
    async def delete_conversation(self, session: ChatSession, conversation_id: str) -> None:
        """
        Remove the conversation from the caller's own list only. The other
        participant keeps their summary and the message list stays.
        """
        path = conversations_path(session.safe_email)

        def _remove(current: Any) -> List[dict]:
            conversations = as_list(current, path)
            kept = [c for c in conversations if not (isinstance(c, dict) and c.get("id") == conversation_id)]
            if len(kept) == len(conversations):
                logger.warning("[STORE] %s not in '%s', nothing removed", conversation_id, path)
            return kept

        await self._rmw(path, _remove)
        logger.info("[STORE] Deleted conversation %s for %s", conversation_id, session.safe_email)

    # ---- lookup ----
    async def conversation_exists(self, session: ChatSession, target_recipient_email: str) -> str:
        """Id of the conversation the target already has with the caller, else NotFoundError."""
        path = conversations_path(target_recipient_email)
        raw = await asyncio.to_thread(self.db.get, path)
        for conversation in as_list(raw, path):
            if isinstance(conversation, dict) and conversation.get("other_user_email") == session.safe_email:
                conversation_id = conversation.get("id")
                if conversation_id:
                    return conversation_id
        raise NotFoundError(path, f"no conversation with {session.safe_email}")
