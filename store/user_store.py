import asyncio
import logging
from typing import Any, List

from db.document_store import DocumentStore
from models.user import ChatAppUser, ChatSession, DirectoryEntry, UserRecord
from shared.config import WriteMode
from shared.identity import safe_email
from store.codec import as_list, decode_list
from store.errors import NotFoundError

logger = logging.getLogger(__name__)

DIRECTORY_PATH = "users"


class UserStore:
    """Account records keyed by safe email, plus the global `users` directory used for search."""

    def __init__(self, db: DocumentStore, write_mode: WriteMode = "etag", max_write_attempts: int = 5):
        self.db = db
        self.write_mode = write_mode
        self.max_write_attempts = max_write_attempts

    async def user_exists(self, email: str) -> bool:
        value = await asyncio.to_thread(self.db.get, safe_email(email))
        return value is not None

    async def get_user(self, email: str) -> UserRecord:
        path = safe_email(email)
        value = await asyncio.to_thread(self.db.get, path)
        if not isinstance(value, dict):
            raise NotFoundError(path)
        return UserRecord.model_validate(value)

    async def insert_user(self, user: ChatAppUser) -> None:
        """
        Write the user record, then append {name, email} to the directory.
        If the append fails the record stays written.
        """
        record = UserRecord(first_name=user.first_name, last_name=user.last_name)
        # field-level update: a re-registration must not wipe <safeEmail>/conversations
        await asyncio.to_thread(self.db.update, user.safe_email, record.model_dump())
        logger.info("[STORE] Saved user record %s", user.safe_email)

        entry = DirectoryEntry(name=user.full_name, email=user.safe_email).model_dump()

        def _append(current: Any) -> List[dict]:
            if current is None:
                return [entry]
            users = as_list(current, DIRECTORY_PATH)
            users.append(entry)
            return users

        await asyncio.to_thread(
            self.db.read_modify_write,
            DIRECTORY_PATH,
            _append,
            mode=self.write_mode,
            max_attempts=self.max_write_attempts,
        )
        logger.info("[STORE] Added %s to the user directory", user.safe_email)

    async def get_all_users(self) -> List[DirectoryEntry]:
        raw = await asyncio.to_thread(self.db.get, DIRECTORY_PATH)
        return decode_list(raw, DirectoryEntry, DIRECTORY_PATH)

    async def search_users(self, session: ChatSession, query: str) -> List[DirectoryEntry]:
        """Directory entries whose name starts with `query` (case-insensitive), never the caller."""
        term = query.strip().lower()
        if not term:
            return []
        users = await self.get_all_users()
        return [
            DirectoryEntry(name=u.name.lower(), email=u.email)
            for u in users
            if u.email != session.safe_email and u.name.lower().startswith(term)
        ]
