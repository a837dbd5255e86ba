# shared/chat.py
import logging
from dataclasses import dataclass
from typing import Optional

from db.document_store import DocumentStore, FirebaseDocumentStore
from db.memory import InMemoryDocumentStore, InMemoryObjectStore
from db.object_store import FirebaseObjectStore, ObjectStore
from shared.config import ChatSettings, load_settings
from shared.time import MessageDateFormatter
from store.conversation_store import ConversationStore
from store.media_store import MediaStore
from store.user_store import UserStore

logger = logging.getLogger(__name__)


@dataclass
class ChatServices:
    users: UserStore
    conversations: ConversationStore
    media: MediaStore


def build_backends(settings: ChatSettings) -> tuple[DocumentStore, ObjectStore]:
    if settings.backend == "memory":
        logger.info("[DB] using in-memory backends")
        return InMemoryDocumentStore(), InMemoryObjectStore()

    from db.base import get_app
    app = get_app(settings)
    return (
        FirebaseDocumentStore(app=app),
        FirebaseObjectStore(app=app, signed_url_minutes=settings.signed_url_minutes),
    )


def build_services(
    settings: Optional[ChatSettings] = None,
    db: Optional[DocumentStore] = None,
    objects: Optional[ObjectStore] = None,
) -> ChatServices:
    """Wire the three accessors; explicit `db`/`objects` win over the configured backend."""
    settings = settings or load_settings()
    if db is None or objects is None:
        default_db, default_objects = build_backends(settings)
        db = db or default_db
        objects = objects or default_objects

    return ChatServices(
        users=UserStore(db, settings.write_mode, settings.max_write_attempts),
        conversations=ConversationStore(
            db,
            formatter=MessageDateFormatter(settings.timezone),
            write_mode=settings.write_mode,
            max_write_attempts=settings.max_write_attempts,
        ),
        media=MediaStore(objects),
    )
